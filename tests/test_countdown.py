"""Tests for the countdown indicator loop."""

import pytest

from conversation_replay.countdown import FRAME_MS, Countdown
from conversation_replay.models import CIRCLE_DASH_LENGTH, TimerStyle
from conversation_replay.scheduler import VirtualScheduler
from conversation_replay.view import RecordingView


def make(frame_ms=FRAME_MS, is_active=lambda: True):
    scheduler = VirtualScheduler()
    view = RecordingView(record_progress=True)
    return scheduler, view, Countdown(scheduler, view, is_active=is_active, frame_ms=frame_ms)


class TestCountdown:
    def test_start_resets_indicator(self):
        scheduler, view, countdown = make()
        countdown.start(1000)
        assert view.last_indicator == 0.0
        assert countdown.running
        assert countdown.animating

    def test_progress_tracks_elapsed(self):
        scheduler, view, countdown = make()
        countdown.start(1000)
        scheduler.advance(500)
        assert countdown.progress() == pytest.approx(0.5)
        assert 0.45 < view.last_indicator <= 0.5

    def test_indicator_is_monotonic(self):
        scheduler, view, countdown = make()
        countdown.start(300)
        scheduler.run()
        values = [args[0] for name, args in view.calls if name == "set_progress_indicator"]
        assert values == sorted(values)
        assert values[-1] == 1.0

    def test_loop_ends_at_full_progress(self):
        scheduler, view, countdown = make()
        countdown.start(100)
        scheduler.advance(200)
        assert view.last_indicator == 1.0
        assert not countdown.animating
        assert scheduler.pending() == []

    def test_loop_ends_when_inactive(self):
        active = [True]
        scheduler, view, countdown = make(is_active=lambda: active[0])
        countdown.start(1000)
        scheduler.advance(100)
        active[0] = False
        scheduler.advance(50)
        assert not countdown.animating
        assert scheduler.pending() == []

    def test_stop_clears_indicator(self):
        scheduler, view, countdown = make()
        countdown.start(1000)
        scheduler.advance(100)
        countdown.stop()
        assert view.last_indicator is None
        assert countdown.progress() == 0.0
        assert scheduler.pending() == []

    def test_zero_duration_is_complete(self):
        scheduler, view, countdown = make()
        countdown.start(0)
        assert countdown.progress() == 1.0

    def test_retime_preserves_progress(self):
        scheduler, view, countdown = make(frame_ms=None)
        countdown.start(3000)
        scheduler.advance(1000)
        before = countdown.progress()
        # Halve the remaining time: 1000ms of content time consumed at 1x
        countdown.retime(1500, scheduler.now() - 500)
        assert countdown.progress() == pytest.approx(before)

    def test_suspend_and_resume(self):
        scheduler, view, countdown = make()
        countdown.start(1000)
        countdown.suspend()
        assert not countdown.animating
        scheduler.advance(500)
        # Schedule kept; only drawing stopped
        assert countdown.progress() == pytest.approx(0.5)
        countdown.resume()
        assert countdown.animating

    def test_resume_after_stop_does_nothing(self):
        scheduler, view, countdown = make()
        countdown.start(1000)
        countdown.stop()
        countdown.resume()
        assert not countdown.animating

    def test_no_frames_without_frame_interval(self):
        scheduler, view, countdown = make(frame_ms=None)
        countdown.start(1000)
        assert scheduler.pending() == []
        assert view.last_indicator == 0.0


class TestTimerStyleEncoding:
    def test_bar_grows(self):
        assert TimerStyle.BAR.encode(0) == 0
        assert TimerStyle.BAR.encode(0.25) == 25
        assert TimerStyle.BAR.encode(1) == 100

    def test_circle_empties(self):
        assert TimerStyle.CIRCLE.encode(0) == 0
        assert TimerStyle.CIRCLE.encode(1) == CIRCLE_DASH_LENGTH

    def test_clamped(self):
        assert TimerStyle.BAR.encode(1.7) == 100
        assert TimerStyle.CIRCLE.encode(-0.3) == 0
