"""Font discovery for poster rendering.

Handles:
  - System font discovery via fontconfig (fc-list)
  - Preference-ordered family profiles (sans for text, mono for code)
  - Pillow's bundled default font when nothing is installed
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Union

from PIL import ImageFont

logger = logging.getLogger(__name__)

Font = Union[ImageFont.FreeTypeFont, ImageFont.ImageFont]

# ── Font profiles ─────────────────────────────────────────────────────────

FONT_PROFILES: dict[str, list[str]] = {
    "sans": [
        "Inter",
        "Noto Sans",
        "DejaVu Sans",
        "Liberation Sans",
        "Arial",
    ],
    "mono": [
        "JetBrains Mono",
        "DejaVu Sans Mono",
        "Liberation Mono",
        "Noto Sans Mono",
    ],
}

DEFAULT_FONT_SIZE = 20


# ── System font discovery ─────────────────────────────────────────────────

@lru_cache(maxsize=4)
def discover_system_fonts(style: str = "Regular") -> dict[str, str]:
    """Discover installed fonts of one style via fc-list.

    Returns dict mapping family name → file path.
    """
    fonts: dict[str, str] = {}
    try:
        result = subprocess.run(
            ["fc-list", f":style={style}", "family", "file"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError):
        logger.debug("fc-list unavailable; using Pillow's default font")
        return fonts

    for line in result.stdout.strip().split("\n"):
        if ":" not in line:
            continue
        file_part, family_part = line.split(":", 1)
        file_path = file_part.strip()
        # fc-list can return comma-separated family names
        for fam in (f.strip() for f in family_part.split(",")):
            if fam and file_path:
                fonts.setdefault(fam, file_path)
    return fonts


def find_font_path(family: str, style: str = "Regular") -> Optional[str]:
    """Find a font family's file path on the system."""
    system_fonts = discover_system_fonts(style)

    if family in system_fonts:
        return system_fonts[family]

    family_lower = family.lower()
    for name, path in system_fonts.items():
        if name.lower().startswith(family_lower):
            return path

    return None


def load_font(profile: str = "sans", size: int = DEFAULT_FONT_SIZE, bold: bool = False) -> Font:
    """Load the first installed family of ``profile`` at ``size``.

    Bold falls back to the regular face, and a missing profile falls back
    to Pillow's bundled font.
    """
    families = FONT_PROFILES.get(profile, FONT_PROFILES["sans"])
    styles = ["Bold", "Regular"] if bold else ["Regular"]

    for style in styles:
        for fam in families:
            path = find_font_path(fam, style)
            if path:
                try:
                    return ImageFont.truetype(path, size)
                except OSError:
                    logger.debug("could not load %s", path)

    return ImageFont.load_default(size=size)


@dataclass
class FontSet:
    """Fonts used by the poster layout."""

    title: Font
    body: Font
    label: Font
    mono: Font


def resolve_fonts(scale: float = 1.0) -> FontSet:
    """Resolve the poster fonts, sized for a canvas ``scale`` x 1200px wide."""
    def px(n: int) -> int:
        return max(8, int(n * scale))

    return FontSet(
        title=load_font("sans", px(40), bold=True),
        body=load_font("sans", px(20)),
        label=load_font("sans", px(15), bold=True),
        mono=load_font("mono", px(17)),
    )
