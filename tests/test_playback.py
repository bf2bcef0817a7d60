"""Tests for the playback controller state machine."""

import pytest

from conversation_replay.parser import parse_demo
from conversation_replay.playback import FADE_MS, PlaybackController, PlaybackState
from conversation_replay.scheduler import VirtualScheduler
from conversation_replay.view import PlayButton, RecordingView

from conftest import multi_yaml

STEP_MS = 3000      # every short message clamps to minDelay
UP_NEXT_MS = 2500


def controller_for(demo, view, scheduler, **kwargs):
    kwargs.setdefault("frame_ms", None)
    controller = PlaybackController(demo, view, scheduler, **kwargs)
    controller.initialize()
    return controller


def contents(view):
    return [step.content for step in view.revealed_steps()]


class TestInitialState:
    def test_preview_shows_first_step(self, single_demo, view, scheduler):
        c = controller_for(single_demo, view, scheduler)
        assert contents(view) == ["Hello there"]
        assert view.overlay_visible is True
        assert view.play_state is PlayButton.PLAY
        assert c.state is PlaybackState.UNSTARTED
        assert c.current_step_index == 0
        assert scheduler.pending() == []

    def test_rejects_non_positive_speed(self, single_demo, view, scheduler):
        with pytest.raises(ValueError):
            PlaybackController(single_demo, view, scheduler, speed=0)


class TestReveal:
    def test_play_reveals_in_order(self, single_demo, view, scheduler):
        c = controller_for(single_demo, view, scheduler)
        c.play()
        assert view.overlay_visible is False
        assert view.play_state is PlayButton.PAUSE
        assert c.state is PlaybackState.PLAYING
        # The preview step is not rendered twice
        assert contents(view) == ["Hello there"]

        scheduler.advance(STEP_MS - 1)
        assert len(view.revealed_steps()) == 1
        scheduler.advance(1)
        assert contents(view) == ["Hello there", "Hi Alice"]

        scheduler.advance(STEP_MS)
        assert contents(view)[-1] == "They know each other"
        assert c.state is PlaybackState.SCENE_COMPLETE
        assert view.play_state is PlayButton.DISABLED
        assert scheduler.pending() == []

    def test_at_most_one_pending_timer(self, multi_demo, view, scheduler):
        c = controller_for(multi_demo, view, scheduler)
        c.play()
        for _ in range(40):
            assert len(scheduler.pending()) <= 1
            if c.pending_timer is not None:
                assert scheduler.pending() == [c.pending_timer]
            scheduler.advance(250)

    def test_progress_reported(self, single_demo, view, scheduler):
        c = controller_for(single_demo, view, scheduler)
        c.play()
        scheduler.run()
        progress = [args for name, args in view.calls if name == "set_progress"]
        assert progress[0] == (0, 3)
        assert progress[-1] == (3, 3)

    def test_double_play_is_noop(self, single_demo, view, scheduler):
        c = controller_for(single_demo, view, scheduler)
        c.play()
        timer = c.pending_timer
        c.play()
        assert c.pending_timer is timer

    def test_speed_scales_delay(self, single_demo, view, scheduler):
        c = controller_for(single_demo, view, scheduler, speed=2)
        c.play()
        scheduler.advance(STEP_MS / 2)
        assert len(view.revealed_steps()) == 2


class TestPauseResume:
    def test_pause_stops_reveals(self, single_demo, view, scheduler):
        c = controller_for(single_demo, view, scheduler)
        c.play()
        scheduler.advance(1000)
        c.pause()
        assert c.state is PlaybackState.PAUSED
        assert view.play_state is PlayButton.PLAY
        assert c.pending_timer is None
        scheduler.advance(60_000)
        assert len(view.revealed_steps()) == 1

    def test_resume_reveals_next_step_immediately(self, single_demo, view, scheduler):
        c = controller_for(single_demo, view, scheduler)
        c.play()
        c.pause()
        c.play()
        assert contents(view) == ["Hello there", "Hi Alice"]
        assert c.state is PlaybackState.PLAYING

    def test_pause_when_not_playing_is_noop(self, single_demo, view, scheduler):
        c = controller_for(single_demo, view, scheduler)
        calls = len(view.calls)
        c.pause()
        assert len(view.calls) == calls
        assert c.state is PlaybackState.UNSTARTED

    def test_toggle(self, single_demo, view, scheduler):
        c = controller_for(single_demo, view, scheduler)
        c.toggle_play_pause()
        assert c.is_actively_playing
        c.toggle_play_pause()
        assert c.state is PlaybackState.PAUSED

    def test_stale_callback_ignored(self, single_demo, view, scheduler):
        c = controller_for(single_demo, view, scheduler)
        c.play()
        handle = c.pending_timer
        c.pause()
        # A cancelled timer that still fires must not reveal anything
        handle.callback()
        assert len(view.revealed_steps()) == 1


class TestCompletionAndReplay:
    def test_play_after_completion_replays(self, single_demo, view, scheduler):
        c = controller_for(single_demo, view, scheduler)
        c.play()
        scheduler.run()
        assert c.is_complete

        c.play()
        assert view.rendered == [single_demo.scenarios[0].steps[0]]
        assert c.current_step_index == 1
        assert c.state is PlaybackState.PLAYING

    def test_reset_returns_to_preview(self, single_demo, view, scheduler):
        c = controller_for(single_demo, view, scheduler)
        c.play()
        scheduler.advance(STEP_MS)
        c.reset()
        assert c.state is PlaybackState.UNSTARTED
        assert view.rendered == [single_demo.scenarios[0].steps[0]]
        assert view.overlay_visible is True
        assert c.pending_timer is None
        scheduler.advance(60_000)
        assert len(view.rendered) == 1

    def test_show_all_instantly(self, single_demo, view, scheduler):
        c = controller_for(single_demo, view, scheduler)
        c.play()
        c.show_all_instantly()
        assert len(view.rendered) == 3
        assert c.state is PlaybackState.SCENE_COMPLETE
        assert scheduler.pending() == []


class TestSpeedChange:
    def test_remaining_delay_rescaled(self, single_demo, view, scheduler):
        c = controller_for(single_demo, view, scheduler)
        c.play()
        scheduler.advance(1000)
        c.set_speed(2)
        # 2000ms of content time left, at 2x
        scheduler.advance(999)
        assert len(view.revealed_steps()) == 1
        scheduler.advance(1)
        assert len(view.revealed_steps()) == 2

    def test_slowing_down(self, single_demo, view, scheduler):
        c = controller_for(single_demo, view, scheduler)
        c.play()
        scheduler.advance(1000)
        c.set_speed(0.5)
        scheduler.advance(3999)
        assert len(view.revealed_steps()) == 1
        scheduler.advance(1)
        assert len(view.revealed_steps()) == 2

    def test_countdown_does_not_jump(self, single_demo, view, scheduler):
        c = controller_for(single_demo, view, scheduler)
        c.play()
        scheduler.advance(1200)
        before = c.countdown.progress()
        c.set_speed(4)
        assert c.countdown.progress() == pytest.approx(before)
        assert c.countdown.duration_ms == pytest.approx(STEP_MS / 4)

    def test_next_delays_use_new_speed(self, single_demo, view, scheduler):
        c = controller_for(single_demo, view, scheduler)
        c.play()
        c.set_speed(2)
        scheduler.advance(STEP_MS / 2)
        assert len(view.revealed_steps()) == 2
        assert c.pending_timer.due_ms == pytest.approx(scheduler.now() + STEP_MS / 2)

    def test_speed_change_while_paused(self, single_demo, view, scheduler):
        c = controller_for(single_demo, view, scheduler)
        c.play()
        c.pause()
        c.set_speed(4)
        assert c.speed_multiplier == 4
        assert c.pending_timer is None

    def test_two_changes_within_one_step(self, single_demo, view, scheduler):
        c = controller_for(single_demo, view, scheduler)
        c.play()
        scheduler.advance(1000)
        c.set_speed(2)
        scheduler.advance(500)
        c.set_speed(4)
        # 2000ms of content time consumed, 1000ms left at 4x
        scheduler.advance(249)
        assert len(view.revealed_steps()) == 1
        scheduler.advance(1)
        assert len(view.revealed_steps()) == 2
        assert scheduler.now() == 1750

    def test_up_next_dwell_rescaled(self, multi_demo, view, scheduler):
        c = controller_for(multi_demo, view, scheduler)
        c.play()
        scheduler.advance(STEP_MS)
        assert view.count("show_up_next") == 1
        scheduler.advance(500)
        c.set_speed(2)
        # (2500 - 500) / 2
        scheduler.advance(999)
        assert c.pending_switch is None
        assert not view.faded
        scheduler.advance(1)
        assert c.pending_switch is not None
        assert view.faded
        assert view.count("show_up_next") == 1

    def test_fade_not_rescaled(self, multi_demo, view, scheduler):
        c = controller_for(multi_demo, view, scheduler)
        c.play()
        scheduler.advance(STEP_MS + UP_NEXT_MS)
        assert c.pending_switch is not None
        c.set_speed(4)
        scheduler.advance(FADE_MS - 1)
        assert c.current_scenario_id == "a"
        scheduler.advance(1)
        assert c.current_scenario_id == "b"
        assert c.speed_multiplier == 4

    def test_invalid_speed(self, single_demo, view, scheduler):
        c = controller_for(single_demo, view, scheduler)
        with pytest.raises(ValueError):
            c.set_speed(-1)


class TestAutoAdvance:
    def test_up_next_then_switch(self, multi_demo, view, scheduler):
        c = controller_for(multi_demo, view, scheduler)
        c.play()
        scheduler.advance(STEP_MS)
        assert view.count("show_up_next") == 1
        assert ("up_next", "Part B") in view.rendered
        assert c.state is PlaybackState.TRANSITIONING

        scheduler.advance(UP_NEXT_MS)
        assert view.faded
        assert c.pending_switch is not None
        assert c.current_scenario_id == "a"

        scheduler.advance(FADE_MS)
        assert not view.faded
        assert c.current_scenario_id == "b"
        assert c.state is PlaybackState.PLAYING
        assert contents(view)[-1] == "b one"
        # Lands straight into playback, no overlay
        assert view.overlay_visible is False

    def test_wraps_to_first_scenario(self, multi_demo, view, scheduler):
        c = controller_for(multi_demo, view, scheduler)
        c.play()
        cycle = STEP_MS + UP_NEXT_MS + FADE_MS
        scheduler.advance(cycle * 3)
        assert c.current_scenario_id == "a"
        assert c.is_actively_playing

    def test_up_next_shown_once_across_pause(self, multi_demo, view, scheduler):
        c = controller_for(multi_demo, view, scheduler)
        c.play()
        scheduler.advance(STEP_MS + 100)
        c.pause()
        c.play()
        c.pause()
        c.play()
        assert view.count("show_up_next") == 1
        scheduler.advance(UP_NEXT_MS + FADE_MS)
        assert c.current_scenario_id == "b"

    def test_no_auto_advance_completes(self, manual_demo, view, scheduler):
        c = controller_for(manual_demo, view, scheduler)
        c.play()
        scheduler.run()
        assert c.current_scenario_id == "a"
        assert c.state is PlaybackState.SCENE_COMPLETE
        assert view.count("show_up_next") == 0


class TestTabSwitching:
    def test_switch_to_current_is_noop(self, multi_demo, view, scheduler):
        c = controller_for(multi_demo, view, scheduler)
        calls = len(view.calls)
        c.switch_tab("a")
        assert len(view.calls) == calls

    def test_switch_while_idle_shows_preview(self, multi_demo, view, scheduler):
        c = controller_for(multi_demo, view, scheduler)
        c.switch_tab("c")
        assert c.state is PlaybackState.TRANSITIONING
        scheduler.advance(FADE_MS)
        assert c.current_scenario_id == "c"
        assert c.state is PlaybackState.UNSTARTED
        assert contents(view)[-1] == "c one"
        assert view.overlay_visible is True

    def test_switch_while_playing_resumes(self, multi_demo, view, scheduler):
        c = controller_for(multi_demo, view, scheduler)
        c.play()
        c.switch_tab("b")
        scheduler.advance(FADE_MS)
        assert c.current_scenario_id == "b"
        assert c.state is PlaybackState.PLAYING

    def test_repeated_switch_during_fade_is_idempotent(self, multi_demo, view, scheduler):
        c = controller_for(multi_demo, view, scheduler)
        c.switch_tab("b")
        c.switch_tab("b")
        assert view.count("fade_out") == 1
        scheduler.run()
        assert view.count("set_active_scenario") == 2

    def test_switch_during_fade_retargets(self, multi_demo, view, scheduler):
        c = controller_for(multi_demo, view, scheduler)
        c.switch_tab("b")
        c.switch_tab("c")
        scheduler.run()
        assert c.current_scenario_id == "c"

    def test_pause_during_fade_lands_without_resuming(self, multi_demo, view, scheduler):
        c = controller_for(multi_demo, view, scheduler)
        c.play()
        c.switch_tab("b")
        c.pause()
        assert c.pending_switch is None
        assert c.current_scenario_id == "b"
        assert c.state is PlaybackState.UNSTARTED
        assert not view.faded
        scheduler.advance(60_000)
        assert contents(view)[-1] == "b one"

    def test_reset_during_fade(self, multi_demo, view, scheduler):
        c = controller_for(multi_demo, view, scheduler)
        c.play()
        c.switch_tab("c")
        c.reset()
        assert c.current_scenario_id == "c"
        assert c.state is PlaybackState.UNSTARTED
        assert scheduler.pending() == []

    def test_play_during_fade_resumes_after_landing(self, multi_demo, view, scheduler):
        c = controller_for(multi_demo, view, scheduler)
        c.switch_tab("b")
        c.play()
        assert c.pending_switch.resume
        scheduler.advance(FADE_MS)
        assert c.current_scenario_id == "b"
        assert c.state is PlaybackState.PLAYING

    def test_no_reveal_leaks_across_switch(self, multi_demo, view, scheduler):
        c = controller_for(multi_demo, view, scheduler)
        c.play()
        scheduler.advance(STEP_MS - 10)
        c.switch_tab("c")
        scheduler.advance(FADE_MS)
        assert contents(view)[-1] == "c one"
        assert contents(view).count("a two") == 0

    def test_unknown_scenario(self, multi_demo, view, scheduler):
        c = controller_for(multi_demo, view, scheduler)
        with pytest.raises(KeyError):
            c.switch_tab("zzz")


class TestKeyboardNavigation:
    @pytest.mark.parametrize("key,expected", [
        ("ArrowRight", "b"),
        ("ArrowDown", "b"),
        ("ArrowLeft", "c"),
        ("ArrowUp", "c"),
        ("Home", None),
        ("End", "c"),
    ])
    def test_keys_from_first(self, multi_demo, view, scheduler, key, expected):
        c = controller_for(multi_demo, view, scheduler)
        result = c.switch_tab_by_key(key)
        if expected is None:
            # Home on the first tab selects it again, which is a no-op
            assert result == "a"
            assert c.pending_switch is None
        else:
            assert result == expected
            assert c.pending_switch.scenario_id == expected

    def test_other_keys_ignored(self, multi_demo, view, scheduler):
        c = controller_for(multi_demo, view, scheduler)
        assert c.switch_tab_by_key("Enter") is None
        assert c.pending_switch is None

    def test_navigation_follows_pending_target(self, multi_demo, view, scheduler):
        c = controller_for(multi_demo, view, scheduler)
        c.switch_tab_by_key("ArrowRight")
        assert c.switch_tab_by_key("ArrowRight") == "c"
        scheduler.run()
        assert c.current_scenario_id == "c"

    def test_wraps_forward(self, multi_demo, view, scheduler):
        c = controller_for(multi_demo, view, scheduler)
        c.switch_tab("c")
        scheduler.run()
        assert c.switch_tab_by_key("ArrowRight") == "a"


class TestReducedMotion:
    def test_initialize_shows_everything(self, single_demo, view, scheduler):
        c = controller_for(single_demo, view, scheduler, reduced_motion=True)
        assert len(view.rendered) == 3
        assert c.state is PlaybackState.SCENE_COMPLETE
        assert view.overlay_visible is False

    def test_play_and_reset_never_schedule(self, single_demo, view, scheduler):
        c = controller_for(single_demo, view, scheduler, reduced_motion=True)
        c.play()
        assert scheduler.pending() == []
        c.reset()
        assert len(view.rendered) == 3
        assert scheduler.pending() == []

    def test_switch_lands_fully_revealed(self, multi_demo, view, scheduler):
        c = controller_for(multi_demo, view, scheduler, reduced_motion=True)
        c.switch_tab("b")
        scheduler.run()
        assert contents(view)[-2:] == ["b one", "b two"]
        assert view.rendered == list(multi_demo.scenario("b").steps)


class TestVisibility:
    def test_hidden_suspends_countdown(self, single_demo, view, scheduler):
        c = controller_for(single_demo, view, scheduler, frame_ms=16)
        c.play()
        assert c.countdown.animating
        c.set_visibility(hidden=True)
        assert not c.countdown.animating
        # The reveal schedule is unaffected
        scheduler.advance(STEP_MS)
        assert len(view.revealed_steps()) == 2
        c.set_visibility(hidden=False)
        assert c.countdown.animating


def test_two_scenario_wrap_alternates():
    demo = parse_demo(multi_yaml(scenarios=2))
    scheduler = VirtualScheduler()
    view = RecordingView()
    c = controller_for(demo, view, scheduler)
    c.play()
    seen = []
    for _ in range(4):
        scheduler.advance(STEP_MS + UP_NEXT_MS + FADE_MS)
        seen.append(c.current_scenario_id)
    assert seen == ["b", "a", "b", "a"]


def test_auto_advance_into_single_step_scenario():
    demo = parse_demo(
        "meta:\n  title: T\n  speed:\n    upNextDelay: 2500\n"
        "scenarios:\n"
        "  - id: a\n    title: A\n    participants: [{id: p, label: P}]\n"
        "    steps: [{from: p, content: one}, {from: p, content: two}]\n"
        "  - id: b\n    title: B\n    participants: [{id: p, label: P}]\n"
        "    steps: [{from: p, content: only}]\n"
    )
    scheduler = VirtualScheduler()
    view = RecordingView()
    c = controller_for(demo, view, scheduler)
    c.play()
    scheduler.advance(STEP_MS + UP_NEXT_MS + FADE_MS)
    assert c.current_scenario_id == "b"
    # B starts playing with its first step, never showing the static preview
    assert view.rendered == [demo.scenario("b").steps[0]]
    assert view.overlay_visible is False
    assert c.is_actively_playing
