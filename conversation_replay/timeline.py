"""Timeline event model for playback previews.

A timeline records what a viewer would see, and when, if they pressed play
and never touched the controls. It is produced by ``simulate`` from the
real playback controller and is used for schedule previews (the CLI
``timeline`` command) and for tests.

All timing is in milliseconds. Events are ordered chronologically.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class EventType(Enum):
    """Types of timeline events."""

    REVEAL = "reveal"
    UP_NEXT = "up_next"
    SWITCH = "switch"
    COMPLETE = "complete"


@dataclass
class TimelineEvent:
    """A single event in the playback timeline.

    Attributes:
        t_ms: Absolute timestamp in milliseconds.
        event_type: The type of event.
        scenario_id: Scenario active when the event happened.
        step_index: Index of the revealed step (reveal events only).
        text: Short human-readable description.
        duration_ms: How long the event stays current (0 when unknown).
        meta: Arbitrary metadata (step type, sender, ...).
    """

    t_ms: float
    event_type: EventType
    scenario_id: str
    step_index: Optional[int] = None
    text: str = ""
    duration_ms: float = 0.0
    meta: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Serialize to dict for debugging/export."""
        return {
            "t_ms": self.t_ms,
            "type": self.event_type.value,
            "scenario": self.scenario_id,
            "step": self.step_index,
            "text": self.text,
            "duration_ms": self.duration_ms,
            "meta": self.meta,
        }


class Timeline:
    """Ordered sequence of timeline events."""

    def __init__(self) -> None:
        self._events: list[TimelineEvent] = []

    def add(self, event: TimelineEvent) -> None:
        """Add an event to the timeline."""
        self._events.append(event)

    @property
    def events(self) -> list[TimelineEvent]:
        """Get all events in order."""
        return list(self._events)

    @property
    def last(self) -> Optional[TimelineEvent]:
        return self._events[-1] if self._events else None

    @property
    def duration_ms(self) -> float:
        """Total timeline duration."""
        if not self._events:
            return 0.0
        return max(e.t_ms + e.duration_ms for e in self._events)

    def events_in_range(self, start_ms: float, end_ms: float) -> list[TimelineEvent]:
        """Get events within a time range."""
        return [e for e in self._events if start_ms <= e.t_ms < end_ms]

    def for_scenario(self, scenario_id: str) -> list[TimelineEvent]:
        """Get the events that happened while ``scenario_id`` was active."""
        return [e for e in self._events if e.scenario_id == scenario_id]

    def of_type(self, event_type: EventType) -> list[TimelineEvent]:
        return [e for e in self._events if e.event_type is event_type]

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self):
        return iter(self._events)
