"""Authoring helpers: starter template, JSON schema, field reference.

The JSON schema and the reference text are derived from the same
constants the parser uses (theme registry, color keys, timing defaults),
so the documentation cannot drift from what ``parse_demo`` accepts.
"""

from __future__ import annotations

from typing import Any, Optional

from conversation_replay.config import DEFAULT_THEME
from conversation_replay.models import ColorConfig, CornerStyle, StepType, TimerStyle
from conversation_replay.themes import list_themes
from conversation_replay.timing import SpeedConfig


COLOR_DESCRIPTIONS = {
    "accent": "Buttons, links, countdown",
    "pageBg": "Page background",
    "canvasBg": "Chat container background",
    "leftBg": "Left bubble background",
    "leftBorder": "Left bubble border",
    "rightBg": "Right bubble background",
    "rightBorder": "Right bubble border",
    "tabInactiveColor": "Inactive tab text",
    "annotationText": "Annotation text",
    "annotationBorder": "Annotation accent bar",
}

SPEED_DESCRIPTIONS = {
    "minDelay": "Minimum time a step stays current (ms)",
    "maxDelay": "Maximum time a step stays current (ms)",
    "msPerWord": "Reading time per word (ms)",
    "annotationMultiplier": "Extra dwell multiplier for annotations",
    "upNextDelay": "'Up Next' card display time (ms)",
}

SECTIONS = ("meta", "colors", "speed", "steps")


# ── Template ──────────────────────────────────────────────────────────────

def generate_template(theme: str = DEFAULT_THEME) -> str:
    """Starter demo YAML with the optional settings commented out."""
    defaults = SpeedConfig()
    themes = " | ".join(list_themes()) or DEFAULT_THEME
    return f"""\
# Conversation Replay demo
#
# Build:    conversation-replay build this-file.yaml -o output.html
# Validate: conversation-replay validate this-file.yaml
# Preview:  conversation-replay timeline this-file.yaml

meta:
  title: "My Demo Title"                   # Required: shown in header
  description: "A brief description"       # Optional: [links](https://example.com) allowed
  theme: {theme}                            # {themes}
  # articleUrl: "/related-article"         # Makes the title a link
  # annotationLabel: "Behind the Scenes"   # Label above annotation steps
  # autoAdvance: true                      # Play the next scenario when one ends
  # hideHeaderInIframe: true               # Hide the header when embedded

  # timerStyle: circle                     # circle | bar
  # cornerStyle: rounded                   # rounded | straight
  # initialBlur: 1                         # Play overlay blur (px)

  # colors:
  #   accent: "#4f46e5"
  #   leftBg: "#eef2ff"
  #   rightBg: "#f1f5f9"

  # speed:
  #   minDelay: {defaults.min_delay:g}
  #   maxDelay: {defaults.max_delay:g}
  #   msPerWord: {defaults.ms_per_word:g}
  #   annotationMultiplier: {defaults.annotation_multiplier:g}
  #   upNextDelay: {defaults.up_next_delay:g}

scenarios:
  - id: main
    title: "Scenario Title"                # Tab label when there are several

    participants:
      - id: user1
        label: "Person A"
        role: left
      - id: user2
        label: "Person B"
        role: right

    steps:
      - type: message
        from: user1                        # Must match a participant id
        content: "Hello! This is a sample message."

      - type: message
        from: user2
        content: "Hi there! Here's a response."
        # footnote: "Optional italic footnote"

      # - type: message
      #   from: user2
      #   content: "Here's some code:"
      #   codeBlock: |
      #     def example():
      #         return "hello"

      - type: annotation
        content: "This annotation explains something to the viewer."

      # - type: transition
      #   content: "Later that day..."

  # Additional scenarios appear as tabs
  # - id: part2
  #   title: "Part Two"
  #   participants:
  #     - id: analyst
  #       label: "Analyst"
  #   steps:
  #     - from: analyst
  #       content: "This is another scenario."
"""


# ── JSON schema ───────────────────────────────────────────────────────────

def _enum(values: list[str], description: str, default: Optional[str] = None) -> dict[str, Any]:
    prop: dict[str, Any] = {"type": "string", "enum": values, "description": description}
    if default is not None:
        prop["default"] = default
    return prop


def _text(description: str) -> dict[str, Any]:
    return {"type": "string", "description": description}


def build_json_schema() -> dict[str, Any]:
    """Draft-07 JSON schema for demo files."""
    speed_defaults = SpeedConfig().to_dict()

    message = {
        "type": "object",
        "description": "A message from a participant",
        "required": ["from", "content"],
        "properties": {
            "type": {"const": StepType.MESSAGE.value},
            "from": _text("Participant id"),
            "content": _text("Message text"),
            "codeBlock": _text("Optional preformatted text"),
            "footnote": _text("Optional italic footnote"),
        },
    }
    annotation = {
        "type": "object",
        "description": "A callout addressed to the viewer",
        "required": ["type", "content"],
        "properties": {
            "type": {"const": StepType.ANNOTATION.value},
            "content": _text("Annotation text"),
        },
    }
    transition = {
        "type": "object",
        "description": "A centered scene break",
        "required": ["type", "content"],
        "properties": {
            "type": {"const": StepType.TRANSITION.value},
            "content": _text("Transition text, e.g. 'Later that day...'"),
        },
    }

    return {
        "$schema": "http://json-schema.org/draft-07/schema#",
        "title": "Conversation Replay Demo",
        "description": "Schema for conversation replay YAML files",
        "type": "object",
        "required": ["meta", "scenarios"],
        "properties": {
            "meta": {
                "type": "object",
                "required": ["title"],
                "properties": {
                    "title": {**_text("Demo title shown in header"), "minLength": 1},
                    "description": _text("Shown below the title; [text](url) links allowed"),
                    "theme": _enum(list_themes(), "Visual theme", DEFAULT_THEME),
                    "articleUrl": _text("Link target for the title"),
                    "hideHeaderInIframe": {"type": "boolean", "default": True},
                    "autoAdvance": {"type": "boolean", "default": True},
                    "annotationLabel": {**_text("Label above annotations"),
                                        "default": "Behind the Scenes"},
                    "timerStyle": _enum([s.value for s in TimerStyle], "Countdown style",
                                        TimerStyle.CIRCLE.value),
                    "cornerStyle": _enum([s.value for s in CornerStyle], "Corner radius style",
                                         CornerStyle.ROUNDED.value),
                    "initialBlur": {"type": "number", "minimum": 0, "default": 1,
                                    "description": "Play overlay blur in pixels"},
                    "colors": {
                        "type": "object",
                        "additionalProperties": False,
                        "properties": {
                            key: _text(COLOR_DESCRIPTIONS[key]) for key in ColorConfig.KEYS
                        },
                    },
                    "speed": {
                        "type": "object",
                        "additionalProperties": False,
                        "properties": {
                            key: {"type": "number", "minimum": 0,
                                  "description": SPEED_DESCRIPTIONS[key],
                                  "default": speed_defaults[key]}
                            for key in SpeedConfig.KEYS
                        },
                    },
                },
            },
            "scenarios": {
                "type": "array",
                "minItems": 1,
                "items": {
                    "type": "object",
                    "required": ["id", "title", "participants", "steps"],
                    "properties": {
                        "id": {**_text("Unique scenario id"), "minLength": 1},
                        "title": {**_text("Tab label"), "minLength": 1},
                        "participants": {
                            "type": "array",
                            "minItems": 1,
                            "items": {
                                "type": "object",
                                "required": ["id", "label"],
                                "properties": {
                                    "id": _text("Referenced by message 'from'"),
                                    "label": _text("Name shown above messages"),
                                    "role": _enum(["left", "right"], "Bubble side", "left"),
                                },
                            },
                        },
                        "steps": {
                            "type": "array",
                            "minItems": 1,
                            "items": {"oneOf": [message, annotation, transition]},
                        },
                    },
                },
            },
        },
    }


JSON_SCHEMA = build_json_schema()


# ── Reference text ────────────────────────────────────────────────────────

def _rows(rows: list[tuple[str, str]]) -> str:
    return "\n".join(f"  {name:<26} {text}" for name, text in rows)


def schema_reference(section: Optional[str] = None) -> str:
    """Human-readable field reference, whole or for one section.

    Raises:
        ValueError: If ``section`` is not one of ``SECTIONS``.
    """
    if section is not None and section not in SECTIONS:
        raise ValueError(f"Unknown section '{section}'. Available: {', '.join(SECTIONS)}")

    if section == "meta":
        return "META OPTIONS\n============\n\n" + _rows([
            ("title: string", "Demo title (required)"),
            ("description: string", "Text below the title"),
            ("theme: string", f"{' | '.join(list_themes())} (default: {DEFAULT_THEME})"),
            ("articleUrl: string", "Makes the title a link"),
            ("annotationLabel: string", 'Annotation label (default: "Behind the Scenes")'),
            ("autoAdvance: boolean", "Play the next scenario when one ends (default: true)"),
            ("hideHeaderInIframe: bool", "Hide header when embedded (default: true)"),
            ("timerStyle: string", "circle | bar (default: circle)"),
            ("cornerStyle: string", "rounded | straight (default: rounded)"),
            ("initialBlur: number", "Play overlay blur in px (default: 1)"),
            ("colors: object", "Color overrides (see: schema colors)"),
            ("speed: object", "Timing configuration (see: schema speed)"),
        ])

    if section == "colors":
        return (
            "COLOR OPTIONS (meta.colors)\n===========================\n\n"
            "CSS colors: hex, rgb(a), hsl(a), var(--name) or a color keyword.\n\n"
            + _rows([(f"{key}: string", COLOR_DESCRIPTIONS[key]) for key in ColorConfig.KEYS])
        )

    if section == "speed":
        defaults = SpeedConfig().to_dict()
        return "SPEED OPTIONS (meta.speed)\n==========================\n\n" + _rows([
            (f"{key}: number", f"{SPEED_DESCRIPTIONS[key]} (default: {defaults[key]:g})")
            for key in SpeedConfig.KEYS
        ])

    if section == "steps":
        return "\n".join([
            "STEP TYPES",
            "==========",
            "",
            "MESSAGE (default type)",
            _rows([
                ("from: string", "Participant id (required)"),
                ("content: string", "Message text (required)"),
                ("codeBlock: string", "Preformatted block under the text"),
                ("footnote: string", "Italic footnote"),
            ]),
            "",
            "ANNOTATION",
            _rows([("content: string", "Callout text (required)")]),
            "",
            "TRANSITION",
            _rows([("content: string", "Scene break text (required)")]),
        ])

    return "\n".join([
        "CONVERSATION REPLAY SCHEMA",
        "==========================",
        "",
        "meta:                        Demo configuration (see: schema meta)",
        "scenarios:                   One or more conversations",
        "",
        "SCENARIO",
        _rows([
            ("id: string", "Unique identifier (required)"),
            ("title: string", "Tab label (required)"),
            ("participants: array", "Speakers (required)"),
            ("steps: array", "Conversation steps (required)"),
        ]),
        "",
        "PARTICIPANT",
        _rows([
            ("id: string", "Referenced by message 'from' (required)"),
            ("label: string", "Name shown above messages (required)"),
            ("role: string", "left | right (default: left)"),
        ]),
        "",
        "Sections: " + ", ".join(f"schema {s}" for s in SECTIONS),
    ])
