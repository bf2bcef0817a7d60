"""Schedule preview by running the real controller on a virtual clock.

``simulate`` drives a ``PlaybackController`` with a ``VirtualScheduler``
and a view that turns every reveal into a ``TimelineEvent``. Nothing
sleeps, so a ten-minute demo simulates instantly, and because it is the
same controller the browser mirrors, the preview cannot drift from the
real pacing.
"""

from __future__ import annotations

import logging
from typing import Optional

from conversation_replay.models import Demo, Scenario, Step
from conversation_replay.playback import PlaybackController
from conversation_replay.scheduler import VirtualScheduler
from conversation_replay.timeline import EventType, Timeline, TimelineEvent
from conversation_replay.timing import DEFAULT_SPEED
from conversation_replay.view import PlaybackView

logger = logging.getLogger(__name__)

SUMMARY_WIDTH = 60


def _summary(text: str) -> str:
    text = " ".join(text.split())
    if len(text) <= SUMMARY_WIDTH:
        return text
    return text[: SUMMARY_WIDTH - 1] + "…"


class TimelineView(PlaybackView):
    """View that appends timeline events stamped with the scheduler clock.

    Recording stops by itself when playback wraps back to the scenario it
    started on.
    """

    def __init__(self, scheduler: VirtualScheduler) -> None:
        self.scheduler = scheduler
        self.timeline = Timeline()
        self.origin = 0.0
        self.start_scenario: Optional[str] = None
        self.active_scenario: Optional[str] = None
        self.wrapped = False
        self._revealed = 0

    def begin(self, start_scenario: str) -> None:
        """Discard anything recorded so far and restart the clock at zero."""
        self.timeline = Timeline()
        self.origin = self.scheduler.now()
        self.start_scenario = start_scenario
        self.wrapped = False

    def _add(self, event_type: EventType, **kwargs) -> None:
        if self.wrapped:
            return
        self.timeline.add(
            TimelineEvent(
                t_ms=self.scheduler.now() - self.origin,
                event_type=event_type,
                scenario_id=self.active_scenario or "",
                **kwargs,
            )
        )

    def reveal(self, step: Step, scenario: Scenario) -> None:
        meta = {"type": step.step_type.value}
        if step.sender is not None:
            meta["from"] = step.sender
        self._add(
            EventType.REVEAL,
            step_index=self._revealed,
            text=_summary(step.content),
            meta=meta,
        )
        self._revealed += 1

    def clear_all(self) -> None:
        self._revealed = 0

    def show_up_next(self, title: str) -> None:
        self._add(EventType.UP_NEXT, text=title)

    def set_active_scenario(self, scenario_id: str) -> None:
        changed = self.active_scenario is not None and scenario_id != self.active_scenario
        self.active_scenario = scenario_id
        if not changed:
            return
        self._add(EventType.SWITCH, text=scenario_id)
        if self.start_scenario is not None and scenario_id == self.start_scenario:
            self.complete()
            self.wrapped = True

    def complete(self) -> None:
        self._add(EventType.COMPLETE, text=self.active_scenario or "")

    def finish(self) -> Timeline:
        """Fill in durations from the gap to the following event."""
        events = self.timeline.events
        for event, following in zip(events, events[1:]):
            if event.event_type in (EventType.REVEAL, EventType.UP_NEXT):
                event.duration_ms = following.t_ms - event.t_ms
        return self.timeline


def simulate(
    demo: Demo,
    speed: float = DEFAULT_SPEED,
    scenario_id: Optional[str] = None,
    reduced_motion: bool = False,
) -> Timeline:
    """Record an uninterrupted playback of ``demo``.

    Playback starts on ``scenario_id`` (default: the first scenario). With
    auto-advance the run stops once every scenario has played and the
    player wraps back to where it started.

    Raises:
        KeyError: If ``scenario_id`` is not in the demo.
        ValueError: If ``speed`` is not positive.
    """
    scheduler = VirtualScheduler()
    view = TimelineView(scheduler)
    controller = PlaybackController(
        demo, view, scheduler, speed=speed, reduced_motion=reduced_motion, frame_ms=None
    )
    controller.initialize()

    start = scenario_id or demo.scenarios[0].id
    demo.scenario(start)
    if start != controller.current_scenario_id:
        controller.switch_tab(start)
        scheduler.run()

    # Re-render the starting preview so step 0 is stamped at t=0
    view.begin(start)
    controller.reset()
    if not reduced_motion:
        controller.play()

    callbacks = 0
    while not view.wrapped and scheduler.step():
        callbacks += 1

    if not view.wrapped:
        view.complete()
    logger.debug("simulated %s in %d callbacks", start, callbacks)
    return view.finish()
