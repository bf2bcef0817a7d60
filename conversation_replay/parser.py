"""Demo YAML loader and validator.

Turns a demo file into an immutable ``Demo``. Every structural problem is
reported as a ``ParseError`` naming the offending key path, e.g.
``scenarios[0].steps[3].from "bob" is not a valid participant id``.
Defaults (theme, timing knobs, labels) are resolved here once, so the
playback controller never has to look for missing values.
"""

from __future__ import annotations

import math
import re
from pathlib import Path
from typing import Any, Optional

import yaml

from conversation_replay.models import (
    ColorConfig,
    CornerStyle,
    Demo,
    DemoMeta,
    Participant,
    ParticipantRole,
    Scenario,
    Step,
    StepType,
    TimerStyle,
)
from conversation_replay.themes import list_themes
from conversation_replay.timing import SpeedConfig


class ParseError(Exception):
    """Raised when a demo file is malformed."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = path


# ── CSS color allow-list ──────────────────────────────────────────────────

CSS_INJECTION_RE = re.compile(r"[;{}]|url\s*\(|expression\s*\(|javascript:", re.IGNORECASE)

CSS_COLOR_PATTERNS = [
    re.compile(r"^#[0-9a-f]{3,8}$", re.IGNORECASE),
    re.compile(r"^rgb\(\s*\d+\s*,\s*\d+\s*,\s*\d+\s*\)$", re.IGNORECASE),
    re.compile(r"^rgba\(\s*\d+\s*,\s*\d+\s*,\s*\d+\s*,\s*[\d.]+\s*\)$", re.IGNORECASE),
    re.compile(r"^hsl\(\s*\d+\s*,\s*[\d.]+%\s*,\s*[\d.]+%\s*\)$", re.IGNORECASE),
    re.compile(r"^hsla\(\s*\d+\s*,\s*[\d.]+%\s*,\s*[\d.]+%\s*,\s*[\d.]+\s*\)$", re.IGNORECASE),
    re.compile(r"^var\(--[a-z0-9-]+\)$", re.IGNORECASE),
    re.compile(r"^[a-z]+$", re.IGNORECASE),  # named colors, transparent, inherit, currentColor
]


def is_valid_css_color(value: str) -> bool:
    """Check a color against the allow-list; blocks CSS injection attempts."""
    if CSS_INJECTION_RE.search(value):
        return False
    value = value.strip()
    return any(p.match(value) for p in CSS_COLOR_PATTERNS)


# ── Helpers ───────────────────────────────────────────────────────────────

def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _required_str(data: dict, key: str, message: str, path: Optional[str]) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ParseError(message, path)
    return value.strip()


def _optional_str(data: dict, key: str, label: str, path: Optional[str]) -> Optional[str]:
    if data.get(key) is None:
        return None
    if not isinstance(data[key], str):
        raise ParseError(f"{label} must be a string", path)
    return data[key]


def _enum_value(enum_cls, value: Any, label: str, path: Optional[str]):
    valid = [e.value for e in enum_cls]
    if value not in valid:
        raise ParseError(f"{label} must be one of: {', '.join(valid)}", path)
    return enum_cls(value)


# ── Meta ──────────────────────────────────────────────────────────────────

def _parse_speed(raw: Any, path: Optional[str]) -> SpeedConfig:
    if not isinstance(raw, dict):
        raise ParseError("meta.speed must be an object", path)

    for key in SpeedConfig.KEYS:
        if key in raw:
            value = raw[key]
            if not _is_number(value) or value < 0:
                raise ParseError(f"meta.speed.{key} must be a positive number", path)

    speed = SpeedConfig.from_dict(raw)
    if speed.min_delay > speed.max_delay:
        raise ParseError(
            "meta.speed.minDelay cannot be greater than meta.speed.maxDelay", path
        )
    return speed


def _parse_colors(raw: Any, path: Optional[str]) -> ColorConfig:
    if not isinstance(raw, dict):
        raise ParseError("meta.colors must be an object", path)

    values = {}
    for key, (name, _var) in ColorConfig.KEYS.items():
        if raw.get(key) is None:
            continue
        value = raw[key]
        if not isinstance(value, str):
            raise ParseError(f"meta.colors.{key} must be a string", path)
        if not is_valid_css_color(value):
            raise ParseError(
                f'meta.colors.{key} contains invalid CSS color value: "{value}"', path
            )
        values[name] = value.strip()

    return ColorConfig(**values)


def _parse_meta(raw: Any, path: Optional[str]) -> DemoMeta:
    if not isinstance(raw, dict):
        raise ParseError("meta section is required", path)

    title = _required_str(
        raw, "title", "meta.title is required and must be a non-empty string", path
    )
    options: dict[str, Any] = {}

    description = _optional_str(raw, "description", "meta.description", path)
    if description is not None:
        options["description"] = description.strip()

    if raw.get("theme") is not None:
        themes = list_themes()
        if raw["theme"] not in themes:
            raise ParseError(f"meta.theme must be one of: {', '.join(themes)}", path)
        options["theme"] = raw["theme"]

    article_url = _optional_str(raw, "articleUrl", "meta.articleUrl", path)
    if article_url is not None:
        options["article_url"] = article_url.strip()

    if raw.get("hideHeaderInIframe") is not None:
        options["hide_header_in_iframe"] = bool(raw["hideHeaderInIframe"])

    if raw.get("autoAdvance") is not None:
        options["auto_advance"] = bool(raw["autoAdvance"])

    label = _optional_str(raw, "annotationLabel", "meta.annotationLabel", path)
    if label is not None:
        options["annotation_label"] = label.strip()

    if raw.get("colors") is not None:
        options["colors"] = _parse_colors(raw["colors"], path)

    if raw.get("timerStyle") is not None:
        options["timer_style"] = _enum_value(TimerStyle, raw["timerStyle"], "meta.timerStyle", path)

    if raw.get("cornerStyle") is not None:
        options["corner_style"] = _enum_value(
            CornerStyle, raw["cornerStyle"], "meta.cornerStyle", path
        )

    if raw.get("speed") is not None:
        options["speed"] = _parse_speed(raw["speed"], path)

    if raw.get("initialBlur") is not None:
        blur = raw["initialBlur"]
        if not _is_number(blur) or blur < 0:
            raise ParseError("meta.initialBlur must be a non-negative number", path)
        options["initial_blur"] = float(blur)

    return DemoMeta(title=title, **options)


# ── Scenarios ─────────────────────────────────────────────────────────────

def _parse_participants(raw: Any, prefix: str, path: Optional[str]) -> tuple[Participant, ...]:
    if not isinstance(raw, list):
        raise ParseError(f"{prefix}.participants must be an array", path)
    if not raw:
        raise ParseError(f"{prefix}: at least one participant is required", path)

    seen: set[str] = set()
    participants = []
    for i, p in enumerate(raw):
        p_prefix = f"{prefix}.participants[{i}]"
        if not isinstance(p, dict):
            raise ParseError(f"{p_prefix} must be an object", path)

        pid = _required_str(p, "id", f"{p_prefix}.id is required", path)
        if pid in seen:
            raise ParseError(f"{prefix}: duplicate participant id: {pid}", path)
        seen.add(pid)

        label = _required_str(p, "label", f"{p_prefix}.label is required", path)

        role = p.get("role", "left")
        if role not in ("left", "right"):
            raise ParseError(f"{p_prefix}.role must be 'left' or 'right'", path)

        participants.append(Participant(id=pid, label=label, role=ParticipantRole(role)))

    return tuple(participants)


def _parse_step(
    raw: Any, prefix: str, participant_ids: set[str], path: Optional[str]
) -> Step:
    if not isinstance(raw, dict):
        raise ParseError(f"{prefix} must be an object", path)

    step_type = raw.get("type", "message")

    if step_type in ("annotation", "transition"):
        content = _required_str(
            raw, "content", f"{prefix}.content is required for {step_type}", path
        )
        return Step(step_type=StepType(step_type), content=content)

    if step_type != "message":
        raise ParseError(
            f"{prefix}.type must be 'message', 'annotation', or 'transition'", path
        )

    sender = _required_str(raw, "from", f"{prefix}.from is required for message", path)
    if sender not in participant_ids:
        raise ParseError(f'{prefix}.from "{sender}" is not a valid participant id', path)

    content = _required_str(raw, "content", f"{prefix}.content is required for message", path)
    code_block = _optional_str(raw, "codeBlock", f"{prefix}.codeBlock", path)
    footnote = _optional_str(raw, "footnote", f"{prefix}.footnote", path)

    return Step(
        step_type=StepType.MESSAGE,
        content=content,
        sender=sender,
        code_block=code_block or None,
        footnote=footnote.strip() if footnote and footnote.strip() else None,
    )


def _parse_scenarios(raw: list, path: Optional[str]) -> tuple[Scenario, ...]:
    if not raw:
        raise ParseError("at least one scenario is required", path)

    seen: set[str] = set()
    scenarios = []
    for i, s in enumerate(raw):
        prefix = f"scenarios[{i}]"
        if not isinstance(s, dict):
            raise ParseError(f"{prefix} must be an object", path)

        sid = _required_str(s, "id", f"{prefix}.id is required", path)
        if sid in seen:
            raise ParseError(f"duplicate scenario id: {sid}", path)
        seen.add(sid)

        title = _required_str(s, "title", f"{prefix}.title is required", path)
        participants = _parse_participants(s.get("participants"), prefix, path)

        raw_steps = s.get("steps")
        if not isinstance(raw_steps, list):
            raise ParseError(f"{prefix}.steps must be an array", path)
        if not raw_steps:
            raise ParseError(f"{prefix}: at least one step is required", path)

        ids = {p.id for p in participants}
        steps = tuple(
            _parse_step(step, f"{prefix}.steps[{j}]", ids, path)
            for j, step in enumerate(raw_steps)
        )

        scenarios.append(Scenario(id=sid, title=title, participants=participants, steps=steps))

    return tuple(scenarios)


# ── Entry points ──────────────────────────────────────────────────────────

def parse_demo(text: str, path: Optional[str] = None) -> Demo:
    """Parse demo YAML text into a validated Demo."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ParseError(f"Invalid YAML syntax: {e}", path) from e

    if not isinstance(data, dict):
        raise ParseError("Demo must be an object", path)

    if not isinstance(data.get("scenarios"), list):
        raise ParseError('Demo must have a "scenarios" array', path)

    meta = _parse_meta(data.get("meta"), path)
    scenarios = _parse_scenarios(data["scenarios"], path)
    return Demo(meta=meta, scenarios=scenarios)


def load_demo(path: str | Path) -> Demo:
    """Load and validate a demo from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise ParseError(f"File not found: {path}", str(path))
    return parse_demo(path.read_text(encoding="utf-8"), str(path))
