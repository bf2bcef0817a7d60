"""Theme loader, validator, and registry.

Themes are JSON files in the package themes/ directory that define:
  - Light color palette (page, canvas, bubbles, annotations, accent)
  - Optional dark palette applied under prefers-color-scheme / data-theme
  - Body and monospace font stacks
"""

from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

from conversation_replay.config import THEMES_DIR


# ── Schema for validation ─────────────────────────────────────────────────

REQUIRED_COLORS = {
    "bg_primary", "bg_chat", "text_primary", "text_secondary",
    "accent", "left_bg", "right_bg",
}
OPTIONAL_COLORS = {
    "text_muted", "accent_hover", "left_text", "left_border", "right_text",
    "right_border", "annotation_text", "annotation_border", "border_color",
    "transition_border",
}
ALL_COLORS = REQUIRED_COLORS | OPTIONAL_COLORS

FONT_KEYS = {"body", "mono"}

HEX_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{4}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")


class ThemeError(Exception):
    """Raised when a theme is invalid."""

    pass


@dataclass
class ThemeColors:
    """Theme color palette."""

    bg_primary: str = "#f8fafc"
    bg_chat: str = "#ffffff"
    text_primary: str = "#0f172a"
    text_secondary: str = "#475569"
    text_muted: str = "#94a3b8"
    accent: str = "#4f46e5"
    accent_hover: str = "#6366f1"
    left_bg: str = "#eef2ff"
    left_text: str = "#1e293b"
    left_border: str = "#eef2ff"
    right_bg: str = "#f1f5f9"
    right_text: str = "#1e293b"
    right_border: str = "#f1f5f9"
    annotation_text: str = "#475569"
    annotation_border: str = "#cbd5e1"
    border_color: str = "#e2e8f0"
    transition_border: str = "#a5b4fc"

    def css_variables(self) -> dict[str, str]:
        """Map palette entries to player CSS variables."""
        return {f"--{k.replace('_', '-')}": v for k, v in asdict(self).items()}


@dataclass
class ThemeFonts:
    """Font stacks used by the player."""

    body: str = '-apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, Helvetica, Arial, sans-serif'
    mono: str = '"SF Mono", Consolas, Menlo, monospace'


@dataclass
class Theme:
    """A fully resolved theme."""

    id: str
    name: str = ""
    colors: ThemeColors = field(default_factory=ThemeColors)
    dark: dict[str, str] = field(default_factory=dict)
    fonts: ThemeFonts = field(default_factory=ThemeFonts)
    meta: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.name:
            self.name = self.id.title()

    def dark_css_variables(self) -> dict[str, str]:
        return {f"--{k.replace('_', '-')}": v for k, v in self.dark.items()}


# ── Loader ────────────────────────────────────────────────────────────────

def _check_palette(palette: Any, label: str, source: str, errors: list[str]) -> None:
    if not isinstance(palette, dict):
        errors.append(f"{source}: '{label}' must be an object")
        return
    for key, val in palette.items():
        if key not in ALL_COLORS:
            errors.append(f"{source}: unknown color key '{key}'")
        if not isinstance(val, str) or not HEX_RE.match(val):
            errors.append(f"{source}: color '{key}' must be a hex string (got {val!r})")


def validate_theme_data(data: dict, source: str = "<unknown>") -> list[str]:
    """Validate theme JSON data. Returns list of error messages (empty = valid)."""
    errors = []

    if "id" not in data:
        errors.append(f"{source}: missing required field 'id'")

    colors = data.get("colors", {})
    if isinstance(colors, dict):
        for key in sorted(REQUIRED_COLORS):
            if key not in colors:
                errors.append(f"{source}: missing required color '{key}'")
    _check_palette(colors, "colors", source, errors)

    if "dark" in data:
        _check_palette(data["dark"], "dark", source, errors)

    fonts = data.get("fonts", {})
    for key, val in fonts.items():
        if key not in FONT_KEYS:
            errors.append(f"{source}: unknown font key '{key}'")
        elif not isinstance(val, str) or not val.strip():
            errors.append(f"{source}: font '{key}' must be a non-empty string")
        elif re.search(r"[;{}<>]", val):
            errors.append(f"{source}: font '{key}' contains forbidden characters")

    return errors


def load_theme_from_dict(data: dict) -> Theme:
    """Load a Theme from a validated dict."""
    colors_data = data.get("colors", {})
    fonts_data = data.get("fonts", {})

    colors = ThemeColors(**{k: v for k, v in colors_data.items() if k in ALL_COLORS})
    fonts = ThemeFonts(**{k: v for k, v in fonts_data.items() if k in FONT_KEYS})

    return Theme(
        id=data["id"],
        name=data.get("name", data["id"].title()),
        colors=colors,
        dark={k: v for k, v in data.get("dark", {}).items() if k in ALL_COLORS},
        fonts=fonts,
        meta=data.get("meta", {}),
    )


def load_theme(name: str, themes_dir: Optional[Path] = None) -> Theme:
    """Load a theme by name from the themes directory."""
    themes_dir = themes_dir or THEMES_DIR
    path = themes_dir / f"{name}.json"

    if not path.exists():
        available = list_themes(themes_dir)
        raise ThemeError(
            f"Theme '{name}' not found at {path}. "
            f"Available: {', '.join(available) or 'none'}"
        )

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ThemeError(f"Invalid JSON in {path}: {e}") from e

    errors = validate_theme_data(data, source=str(path))
    if errors:
        raise ThemeError("Theme validation failed:\n  " + "\n  ".join(errors))

    return load_theme_from_dict(data)


def list_themes(themes_dir: Optional[Path] = None) -> list[str]:
    """List available theme names."""
    themes_dir = themes_dir or THEMES_DIR
    if not themes_dir.exists():
        return []
    return sorted(p.stem for p in themes_dir.glob("*.json"))
