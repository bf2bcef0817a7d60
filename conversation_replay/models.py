"""Demo data model.

A demo is built once from validated YAML and never mutated afterwards:
the playback controller reads scenarios and steps but only tracks their
visibility. Field names follow Python conventions; the YAML keys they come
from are camelCase (``codeBlock``, ``autoAdvance`` ...).
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Optional

from conversation_replay.timing import SpeedConfig


# Full stroke length of the circle countdown (r=7)
CIRCLE_DASH_LENGTH = 44


class StepType(Enum):
    """Kinds of conversation steps."""

    MESSAGE = "message"
    ANNOTATION = "annotation"
    TRANSITION = "transition"


class ParticipantRole(Enum):
    """Which side of the conversation a participant speaks from."""

    LEFT = "left"
    RIGHT = "right"


class TimerStyle(Enum):
    """Countdown indicator shown while a step is current."""

    BAR = "bar"
    CIRCLE = "circle"

    def encode(self, progress: float) -> float:
        """Map a progress fraction to the indicator value.

        Bar: width percent, growing 0 -> 100.
        Circle: stroke-dashoffset, 0 -> 44 as the arc empties.

        The player runtime applies the same mapping in ``drawIndicator``.
        """
        progress = min(1.0, max(0.0, progress))
        if self is TimerStyle.CIRCLE:
            return progress * CIRCLE_DASH_LENGTH
        return progress * 100


class CornerStyle(Enum):
    """Corner treatment for the chat container and bubbles."""

    ROUNDED = "rounded"
    STRAIGHT = "straight"


@dataclass(frozen=True)
class Participant:
    """A speaker in a scenario."""

    id: str
    label: str
    role: ParticipantRole = ParticipantRole.LEFT


@dataclass(frozen=True)
class Step:
    """A single unit of conversation revealed atomically.

    Attributes:
        step_type: message, annotation or transition.
        content: Plain text shown for the step.
        sender: Participant id (messages only).
        code_block: Preformatted text under the message (messages only).
        footnote: Secondary italic text (messages only).
    """

    step_type: StepType
    content: str
    sender: Optional[str] = None
    code_block: Optional[str] = None
    footnote: Optional[str] = None

    @property
    def is_annotation(self) -> bool:
        return self.step_type is StepType.ANNOTATION

    def to_dict(self) -> dict:
        """Serialize with YAML key names, omitting empty optionals."""
        data: dict = {"type": self.step_type.value, "content": self.content}
        if self.sender is not None:
            data["from"] = self.sender
        if self.code_block:
            data["codeBlock"] = self.code_block
        if self.footnote:
            data["footnote"] = self.footnote
        return data


@dataclass(frozen=True)
class Scenario:
    """One independently playable conversation (a tab when there are several)."""

    id: str
    title: str
    participants: tuple[Participant, ...]
    steps: tuple[Step, ...]

    def participant(self, participant_id: str) -> Participant:
        for p in self.participants:
            if p.id == participant_id:
                return p
        raise KeyError(f"Unknown participant '{participant_id}' in scenario '{self.id}'")

    def __len__(self) -> int:
        return len(self.steps)


@dataclass(frozen=True)
class ColorConfig:
    """Optional CSS color overrides, each mapped to a player CSS variable."""

    accent: Optional[str] = None
    page_bg: Optional[str] = None
    canvas_bg: Optional[str] = None
    left_bg: Optional[str] = None
    left_border: Optional[str] = None
    right_bg: Optional[str] = None
    right_border: Optional[str] = None
    tab_inactive_color: Optional[str] = None
    annotation_text: Optional[str] = None
    annotation_border: Optional[str] = None

    # YAML key -> (field name, CSS variable)
    KEYS = {
        "accent": ("accent", "--accent"),
        "pageBg": ("page_bg", "--bg-primary"),
        "canvasBg": ("canvas_bg", "--bg-chat"),
        "leftBg": ("left_bg", "--left-bg"),
        "leftBorder": ("left_border", "--left-border"),
        "rightBg": ("right_bg", "--right-bg"),
        "rightBorder": ("right_border", "--right-border"),
        "tabInactiveColor": ("tab_inactive_color", "--tab-inactive-color"),
        "annotationText": ("annotation_text", "--annotation-text"),
        "annotationBorder": ("annotation_border", "--annotation-border"),
    }

    def css_variables(self) -> dict[str, str]:
        """CSS variable overrides for the colors that are set."""
        return {
            var: getattr(self, name)
            for name, var in self.KEYS.values()
            if getattr(self, name) is not None
        }

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))


@dataclass(frozen=True)
class DemoMeta:
    """Display and timing configuration for a demo."""

    title: str
    description: Optional[str] = None
    theme: str = "chat"
    article_url: Optional[str] = None
    hide_header_in_iframe: bool = True
    auto_advance: bool = True
    annotation_label: str = "Behind the Scenes"
    colors: ColorConfig = field(default_factory=ColorConfig)
    timer_style: TimerStyle = TimerStyle.CIRCLE
    corner_style: CornerStyle = CornerStyle.ROUNDED
    speed: SpeedConfig = field(default_factory=SpeedConfig)
    initial_blur: float = 1.0


@dataclass(frozen=True)
class Demo:
    """A complete demo with one or more scenarios."""

    meta: DemoMeta
    scenarios: tuple[Scenario, ...]

    @property
    def scenario_ids(self) -> list[str]:
        return [s.id for s in self.scenarios]

    @property
    def has_multiple_scenarios(self) -> bool:
        return len(self.scenarios) > 1

    def scenario(self, scenario_id: str) -> Scenario:
        for s in self.scenarios:
            if s.id == scenario_id:
                return s
        available = ", ".join(self.scenario_ids)
        raise KeyError(f"Unknown scenario '{scenario_id}'. Available: {available}")

    def next_scenario_id(self, scenario_id: str) -> str:
        """Scenario after ``scenario_id`` in declared order, wrapping to the first."""
        ids = self.scenario_ids
        return ids[(ids.index(scenario_id) + 1) % len(ids)]
