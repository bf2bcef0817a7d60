"""Content-aware step timing.

Every revealed step stays on screen for a duration derived from how much
there is to read:

  - one ``ms_per_word`` per word of message text and footnote
  - code blocks count 1.3x (code reads slower)
  - the total is clamped to ``[min_delay, max_delay]``
  - annotations dwell ``annotation_multiplier`` longer

The result is divided by the playback speed multiplier. All timing is in
milliseconds.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from conversation_replay.models import Step


WHITESPACE_RE = re.compile(r"\s+")

CODE_WORD_WEIGHT = 1.3

# Speeds offered by the player's speed selector
SPEED_MULTIPLIERS: tuple[float, ...] = (0.5, 1, 2, 4)
DEFAULT_SPEED = 1


@dataclass(frozen=True)
class SpeedConfig:
    """Timing knobs for step progression."""

    min_delay: float = 3000           # Shortest time a step stays current
    max_delay: float = 8000           # Longest time a step stays current
    ms_per_word: float = 200          # Reading-speed estimate
    annotation_multiplier: float = 1.15  # Extra dwell for annotations
    up_next_delay: float = 2500       # "Up Next" card dwell before switching

    # YAML key -> field name
    KEYS = {
        "minDelay": "min_delay",
        "maxDelay": "max_delay",
        "msPerWord": "ms_per_word",
        "annotationMultiplier": "annotation_multiplier",
        "upNextDelay": "up_next_delay",
    }

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "SpeedConfig":
        """Build from camelCase YAML keys, falling back to defaults."""
        data = data or {}
        return cls(**{name: data[key] for key, name in cls.KEYS.items() if key in data})

    def to_dict(self) -> dict[str, float]:
        """Serialize with camelCase keys for the browser runtime."""
        by_field = {f.name: getattr(self, f.name) for f in fields(self)}
        return {key: by_field[name] for key, name in self.KEYS.items()}


def word_count(text: Optional[str]) -> int:
    """Count whitespace-separated words; empty or missing text has none."""
    if not text or not text.strip():
        return 0
    return len(WHITESPACE_RE.split(text.strip()))


def content_word_count(step: "Step") -> int:
    """Weighted word count of everything a viewer reads in a step."""
    count = word_count(step.content)
    if step.code_block:
        count += math.floor(word_count(step.code_block) * CODE_WORD_WEIGHT)
    if step.footnote:
        count += word_count(step.footnote)
    return count


def base_delay(step: "Step", config: SpeedConfig) -> float:
    """Delay for a step before speed scaling (content time)."""
    delay = min(config.max_delay, max(config.min_delay, content_word_count(step) * config.ms_per_word))
    if step.is_annotation:
        delay = math.floor(delay * config.annotation_multiplier)
    return delay


def _check_speed(speed: float) -> None:
    if speed <= 0:
        raise ValueError(f"Speed multiplier must be positive (got {speed})")


def calculate_delay(step: "Step", config: SpeedConfig, speed: float = DEFAULT_SPEED) -> float:
    """Wall-clock time a step stays current at the given speed."""
    _check_speed(speed)
    return base_delay(step, config) / speed


def up_next_delay(config: SpeedConfig, speed: float = DEFAULT_SPEED) -> float:
    """Wall-clock dwell of the "Up Next" card at the given speed."""
    _check_speed(speed)
    return config.up_next_delay / speed
