"""Playback controller — the state machine behind the replay player.

One controller exists per rendered document. It owns the playback
position and flags, schedules the next reveal through a ``Scheduler`` and
asks a ``PlaybackView`` to perform every visible effect.

States (see ``PlaybackState``)::

    UNSTARTED --play--> PLAYING --pause--> PAUSED --play--> PLAYING
    PLAYING --last reveal--> SCENE_COMPLETE          (no auto-advance)
    PLAYING --last reveal--> TRANSITIONING --dwell+fade--> PLAYING (next scenario)
    SCENE_COMPLETE --play--> PLAYING                 (replay from step 0)
    any --reset--> UNSTARTED

Timer discipline: at most one timer is outstanding (``pending_timer``).
Every state-changing operation cancels it before doing anything else, and
every callback checks that it is still the pending timer before acting, so
a reveal can never fire after a pause, reset or scenario switch.

A scenario switch fades out for ``FADE_MS`` before the new scenario
appears. That fade is itself the pending timer; interrupting it lands the
switch immediately, without resuming playback.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from conversation_replay.countdown import FRAME_MS, Countdown
from conversation_replay.models import Demo, Scenario, Step
from conversation_replay.scheduler import Scheduler, TimerHandle
from conversation_replay.timing import DEFAULT_SPEED, base_delay
from conversation_replay.view import PlaybackView, PlayButton

logger = logging.getLogger(__name__)

# Opacity fade around scenario switches (not speed-scaled)
FADE_MS = 300

TAB_KEYS_PREVIOUS = ("ArrowLeft", "ArrowUp")
TAB_KEYS_NEXT = ("ArrowRight", "ArrowDown")


class PlaybackState(Enum):
    """Observable controller states."""

    UNSTARTED = "unstarted"
    PLAYING = "playing"
    PAUSED = "paused"
    SCENE_COMPLETE = "scene_complete"
    TRANSITIONING = "transitioning"


@dataclass
class PendingSwitch:
    """A scenario switch waiting for its fade to finish."""

    scenario_id: str
    resume: bool
    auto: bool = False


class PlaybackController:
    """Event-driven playback state machine.

    Args:
        demo: Validated demo; never mutated.
        view: Rendering capabilities.
        scheduler: Timer source.
        speed: Initial speed multiplier.
        reduced_motion: Reveal everything at once instead of animating.
        frame_ms: Countdown frame interval (None disables the frame loop).
    """

    def __init__(
        self,
        demo: Demo,
        view: PlaybackView,
        scheduler: Scheduler,
        *,
        speed: float = DEFAULT_SPEED,
        reduced_motion: bool = False,
        frame_ms: Optional[float] = FRAME_MS,
    ) -> None:
        if speed <= 0:
            raise ValueError(f"Speed multiplier must be positive (got {speed})")

        self.demo = demo
        self.view = view
        self.scheduler = scheduler
        self.speed_config = demo.meta.speed
        self.auto_advance = demo.meta.auto_advance
        self.reduced_motion = reduced_motion

        # Runtime state
        self.current_scenario_id = demo.scenarios[0].id
        self.current_step_index = 0
        self.is_playing = False
        self.is_paused = False
        self.has_started = False
        self.speed_multiplier = speed
        self.pending_timer: Optional[TimerHandle] = None
        self.current_step_base_delay = 0.0

        self._pending_callback: Optional[Callable[[], None]] = None
        self._pending_switch: Optional[PendingSwitch] = None
        self._delay_started_at = 0.0
        self._rendered = 0
        self._up_next_shown = False

        self.countdown = Countdown(
            scheduler,
            view,
            is_active=lambda: self.is_actively_playing,
            frame_ms=frame_ms,
        )

    # ── Derived state ─────────────────────────────────────────────────────

    @property
    def scenario(self) -> Scenario:
        return self.demo.scenario(self.current_scenario_id)

    @property
    def steps(self) -> tuple[Step, ...]:
        return self.scenario.steps

    @property
    def is_actively_playing(self) -> bool:
        return self.is_playing and not self.is_paused

    @property
    def is_complete(self) -> bool:
        return self.current_step_index >= len(self.steps)

    @property
    def pending_switch(self) -> Optional[PendingSwitch]:
        return self._pending_switch

    @property
    def state(self) -> PlaybackState:
        if self._pending_switch is not None:
            return PlaybackState.TRANSITIONING
        if self._up_next_shown and self.is_actively_playing:
            return PlaybackState.TRANSITIONING
        if not self.has_started:
            return PlaybackState.UNSTARTED
        if self.is_playing:
            return PlaybackState.PAUSED if self.is_paused else PlaybackState.PLAYING
        if self.is_complete:
            return PlaybackState.SCENE_COMPLETE
        return PlaybackState.PAUSED

    # ── Public operations ─────────────────────────────────────────────────

    def initialize(self) -> None:
        """Render the first scenario's static preview."""
        self.view.set_active_scenario(self.current_scenario_id)
        self._show_initial_preview()
        if self.reduced_motion:
            self.show_all_instantly()

    def play(self) -> None:
        """Start, resume, or replay the current scenario."""
        if self.reduced_motion:
            self.show_all_instantly()
            return

        if self._pending_switch is not None:
            # Mid-fade: start playing once the new scenario lands
            self._pending_switch.resume = True
            return

        if not self.has_started:
            self._cancel_timer()
            self.view.set_overlay(False)
            self.has_started = True
            self.is_playing = True
            self.is_paused = False
            self._update_play_state()

            first = self.steps[0]
            # Auto-advance lands on an empty canvas; show the first step now
            if self._rendered == 0:
                self._render(first)
            self.current_step_index = 1
            self._update_progress()
            logger.debug("play %s from the start", self.current_scenario_id)
            self._schedule(base_delay(first, self.speed_config), self._show_next_step)
            return

        if self.is_paused:
            self.is_paused = False
            self.is_playing = True
            self._update_play_state()
            logger.debug("resume %s at step %d", self.current_scenario_id, self.current_step_index)
            self._show_next_step()
            return

        if self.is_playing:
            return

        if self.is_complete:
            self._replay()
            return

        self.is_playing = True
        self.is_paused = False
        self._update_play_state()
        self._show_next_step()

    def pause(self) -> None:
        """Stop scheduling reveals; the position is kept."""
        if not self.is_actively_playing:
            return
        if self._pending_switch is not None:
            self._interrupt()
            return
        self._cancel_timer()
        self.is_paused = True
        self.countdown.stop()
        self._update_play_state()
        logger.debug("pause %s at step %d", self.current_scenario_id, self.current_step_index)

    def toggle_play_pause(self) -> None:
        if self.is_actively_playing:
            self.pause()
        else:
            self.play()

    def reset(self) -> None:
        """Return the current scenario to its static preview."""
        self._interrupt()
        self._enter_scenario(self.current_scenario_id)
        if self.reduced_motion:
            self.show_all_instantly()
        else:
            self._show_initial_preview()

    def show_all_instantly(self) -> None:
        """Reveal every step of the current scenario with no scheduling."""
        self._interrupt()
        self._clear()
        self.view.set_overlay(False)
        self.has_started = True
        for step in self.steps:
            self._render(step, scroll=False)
        self.current_step_index = len(self.steps)
        self.is_playing = False
        self.is_paused = False
        self._update_progress()
        self._update_play_state()

    def switch_tab(self, scenario_id: str) -> None:
        """User-selected scenario switch; playback resumes only if it was active."""
        target = (
            self._pending_switch.scenario_id
            if self._pending_switch is not None
            else self.current_scenario_id
        )
        if scenario_id == target:
            return
        self.demo.scenario(scenario_id)

        was_playing = self.is_actively_playing or (
            self._pending_switch is not None and self._pending_switch.resume
        )
        self._interrupt()
        logger.debug("tab switch %s -> %s (resume=%s)", self.current_scenario_id, scenario_id, was_playing)
        self._begin_switch(scenario_id, resume=was_playing)

    def switch_tab_by_key(self, key: str) -> Optional[str]:
        """Keyboard tab navigation with wrap-around. Returns the selected id."""
        ids = self.demo.scenario_ids
        current = (
            self._pending_switch.scenario_id
            if self._pending_switch is not None
            else self.current_scenario_id
        )
        index = ids.index(current)

        if key in TAB_KEYS_PREVIOUS:
            new_index = (index - 1) % len(ids)
        elif key in TAB_KEYS_NEXT:
            new_index = (index + 1) % len(ids)
        elif key == "Home":
            new_index = 0
        elif key == "End":
            new_index = len(ids) - 1
        else:
            return None

        self.switch_tab(ids[new_index])
        return ids[new_index]

    def set_speed(self, multiplier: float) -> None:
        """Change playback speed, rescaling the in-flight delay.

        Content time already consumed is ``elapsed * old``; the remainder
        of the base delay is rescheduled at the new speed, and the
        countdown is retimed so its progress does not jump.
        """
        if multiplier <= 0:
            raise ValueError(f"Speed multiplier must be positive (got {multiplier})")

        old = self.speed_multiplier
        self.speed_multiplier = multiplier

        if (
            not self.is_actively_playing
            or self.pending_timer is None
            or self._pending_switch is not None
            or self.current_step_base_delay <= 0
        ):
            return

        now = self.scheduler.now()
        elapsed_base = (now - self._delay_started_at) * old
        remaining_base = self.current_step_base_delay - elapsed_base
        if remaining_base <= 0:
            return

        callback = self._pending_callback
        self._cancel_timer()
        self._delay_started_at = now - elapsed_base / multiplier
        self.countdown.retime(self.current_step_base_delay / multiplier, self._delay_started_at)
        self._arm(remaining_base / multiplier, callback)
        logger.debug("speed %sx -> %sx, %.0fms remaining", old, multiplier, remaining_base / multiplier)

    def set_visibility(self, hidden: bool) -> None:
        """Document visibility changed. Only the countdown animation reacts."""
        if hidden:
            self.countdown.suspend()
        else:
            self.countdown.resume()

    # ── Reveal sequence ───────────────────────────────────────────────────

    def _show_next_step(self) -> None:
        self.countdown.stop()
        steps = self.steps

        if self.current_step_index >= len(steps):
            self._on_scenario_end()
            return

        if self.is_paused:
            return

        step = steps[self.current_step_index]
        self._render(step)
        self.current_step_index += 1
        self._update_progress()

        if self.current_step_index < len(steps):
            self._schedule(base_delay(step, self.speed_config), self._show_next_step)
        else:
            self._on_scenario_end()

    def _on_scenario_end(self) -> None:
        if self.auto_advance and self.demo.has_multiple_scenarios:
            self._advance_to_next_scenario()
        else:
            self.is_playing = False
            self._update_play_state()
            logger.debug("scenario %s complete", self.current_scenario_id)

    def _advance_to_next_scenario(self) -> None:
        next_id = self.demo.next_scenario_id(self.current_scenario_id)
        if not self._up_next_shown:
            self.view.show_up_next(self.demo.scenario(next_id).title)
            self._rendered += 1
            self.view.scroll_into_view()
            self._up_next_shown = True
        self._schedule(
            self.speed_config.up_next_delay,
            functools.partial(self._begin_switch, next_id, True, True),
        )

    def _replay(self) -> None:
        self._cancel_timer()
        self._clear()
        self._up_next_shown = False
        first = self.steps[0]
        self._render(first)
        self.current_step_index = 1
        self.is_playing = True
        self.is_paused = False
        self._update_play_state()
        self._update_progress()
        logger.debug("replay %s", self.current_scenario_id)
        self._schedule(base_delay(first, self.speed_config), self._show_next_step)

    def _show_initial_preview(self) -> None:
        self._render(self.steps[0], scroll=False)
        self.current_step_index = 0
        self.view.set_overlay(True)
        self.has_started = False
        self._update_progress()
        self._update_play_state()

    # ── Scenario switching ────────────────────────────────────────────────

    def _begin_switch(self, scenario_id: str, resume: bool, auto: bool = False) -> None:
        self.countdown.stop()
        self.view.fade_out()
        self._pending_switch = PendingSwitch(scenario_id, resume, auto)
        self._arm(FADE_MS, self._finish_switch)

    def _finish_switch(self) -> None:
        switch = self._pending_switch
        self._pending_switch = None
        self._land(switch)

    def _land(self, switch: PendingSwitch) -> None:
        self._enter_scenario(switch.scenario_id)
        self.view.set_overlay(False)
        self.view.fade_in()

        if self.reduced_motion:
            self.show_all_instantly()
        elif switch.auto and switch.resume:
            # Straight into playback; no static preview flash
            self.play()
        else:
            self._show_initial_preview()
            if switch.resume:
                self.play()

    def _enter_scenario(self, scenario_id: str) -> None:
        self.current_scenario_id = scenario_id
        self.current_step_index = 0
        self.is_playing = False
        self.is_paused = False
        self.has_started = False
        self.current_step_base_delay = 0.0
        self._up_next_shown = False
        self.view.set_active_scenario(scenario_id)
        self._clear()

    # ── Timer primitives ──────────────────────────────────────────────────

    def _schedule(self, base_ms: float, callback: Callable[[], None]) -> None:
        """Schedule ``callback`` after ``base_ms`` of content time."""
        self._cancel_timer()
        delay = base_ms / self.speed_multiplier
        self.current_step_base_delay = base_ms
        self._delay_started_at = self.scheduler.now()
        self.countdown.start(delay)
        self._arm(delay, callback)

    def _arm(self, delay_ms: float, callback: Callable[[], None]) -> None:
        handle: Optional[TimerHandle] = None

        def fire() -> None:
            if handle is not self.pending_timer:
                logger.debug("ignoring stale timer callback")
                return
            self.pending_timer = None
            self._pending_callback = None
            callback()

        handle = self.scheduler.call_later(delay_ms, fire)
        self.pending_timer = handle
        self._pending_callback = callback

    def _cancel_timer(self) -> None:
        if self.pending_timer is not None:
            self.scheduler.cancel(self.pending_timer)
        self.pending_timer = None
        self._pending_callback = None

    def _interrupt(self) -> None:
        """Cancel the pending timer; an in-flight switch lands without resuming."""
        switch = self._pending_switch
        self._pending_switch = None
        self._cancel_timer()
        self.countdown.stop()
        if switch is not None:
            switch.resume = False
            self._land(switch)

    # ── View helpers ──────────────────────────────────────────────────────

    def _render(self, step: Step, scroll: bool = True) -> None:
        self.view.reveal(step, self.scenario)
        self._rendered += 1
        if scroll:
            self.view.scroll_into_view()

    def _clear(self) -> None:
        self.view.clear_all()
        self._rendered = 0

    def _update_progress(self) -> None:
        self.view.set_progress(self.current_step_index, len(self.steps))

    def _update_play_state(self) -> None:
        if self.is_actively_playing:
            self.view.set_play_state(PlayButton.PAUSE)
        elif self.is_complete:
            self.view.set_play_state(PlayButton.DISABLED)
        else:
            self.view.set_play_state(PlayButton.PLAY)
