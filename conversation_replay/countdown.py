"""Countdown indicator for the step currently on screen.

Purely observational: the countdown mirrors the controller's schedule
but never drives it. A per-frame loop recomputes

    progress = clamp(elapsed / duration, 0, 1)

and hands it to the view, which maps it to a growing bar or an emptying
circle (see ``TimerStyle.encode``). The loop ends by itself once progress
reaches 1 or playback is no longer active.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from conversation_replay.scheduler import Scheduler, TimerHandle
from conversation_replay.view import PlaybackView

logger = logging.getLogger(__name__)

# One rendering frame at 60 Hz
FRAME_MS = 1000 / 60


class Countdown:
    """Cancelable per-frame progress loop.

    Args:
        scheduler: Source of time and frame callbacks.
        view: Receives ``set_progress_indicator`` updates.
        is_active: Returns False when playback stopped; ends the loop.
        frame_ms: Frame interval. None disables the loop entirely, leaving
            only the start/stop updates (used for fast simulation).
    """

    def __init__(
        self,
        scheduler: Scheduler,
        view: PlaybackView,
        is_active: Callable[[], bool] = lambda: True,
        frame_ms: Optional[float] = FRAME_MS,
    ) -> None:
        self.scheduler = scheduler
        self.view = view
        self.is_active = is_active
        self.frame_ms = frame_ms
        self.duration_ms = 0.0
        self.started_at = 0.0
        self.running = False
        self._frame: Optional[TimerHandle] = None

    def progress(self, at: Optional[float] = None) -> float:
        """Elapsed fraction of the current duration, clamped to [0, 1]."""
        if not self.running:
            return 0.0
        if self.duration_ms <= 0:
            return 1.0
        now = self.scheduler.now() if at is None else at
        return min(1.0, max(0.0, (now - self.started_at) / self.duration_ms))

    def start(self, duration_ms: float) -> None:
        """Restart the countdown for a new delay."""
        self._cancel_frame()
        self.duration_ms = duration_ms
        self.started_at = self.scheduler.now()
        self.running = True
        self.view.set_progress_indicator(0.0)
        self._request_frame()

    def stop(self) -> None:
        """Halt the loop and reset the indicator to empty."""
        self._cancel_frame()
        self.running = False
        self.view.set_progress_indicator(None)

    def retime(self, duration_ms: float, started_at: float) -> None:
        """Swap in a rescaled schedule without a visible jump.

        The caller chooses ``started_at`` so that
        ``(now - started_at) / duration_ms`` equals the progress shown
        before the change.
        """
        self.duration_ms = duration_ms
        self.started_at = started_at

    def suspend(self) -> None:
        """Stop drawing frames (e.g. document hidden); keeps the schedule."""
        self._cancel_frame()

    def resume(self) -> None:
        """Continue drawing after ``suspend`` if a countdown is still running."""
        if self.running and self._frame is None:
            self._request_frame()

    @property
    def animating(self) -> bool:
        return self._frame is not None

    def _request_frame(self) -> None:
        if self.frame_ms is None:
            return
        self._frame = self.scheduler.call_later(self.frame_ms, self._on_frame)

    def _cancel_frame(self) -> None:
        if self._frame is not None:
            self.scheduler.cancel(self._frame)
            self._frame = None

    def _on_frame(self) -> None:
        self._frame = None
        if not self.running:
            return
        progress = self.progress()
        self.view.set_progress_indicator(progress)
        if progress < 1 and self.is_active():
            self._request_frame()
        else:
            logger.debug("countdown loop ended at progress %.3f", progress)
