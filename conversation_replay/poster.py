"""Cover image rendering.

Draws a static social/preview card for a demo with Pillow:
  - Page background and title in theme colors
  - Chat canvas with the opening steps of a scenario as bubbles
  - The player's play button over the canvas

Colors come from the theme palette with the demo's color overrides on
top; overrides Pillow cannot parse (``var(--x)``) are ignored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from PIL import Image, ImageColor, ImageDraw

from conversation_replay.config import DEFAULT_POSTER_SIZE
from conversation_replay.fonts import Font, FontSet, resolve_fonts
from conversation_replay.models import CornerStyle, Demo, ParticipantRole, Scenario, Step, StepType
from conversation_replay.themes import Theme, load_theme

logger = logging.getLogger(__name__)

# ColorConfig field -> palette key
OVERRIDE_KEYS = {
    "accent": "accent",
    "page_bg": "bg_primary",
    "canvas_bg": "bg_chat",
    "left_bg": "left_bg",
    "left_border": "left_border",
    "right_bg": "right_bg",
    "right_border": "right_border",
    "annotation_text": "annotation_text",
    "annotation_border": "annotation_border",
}

MAX_BUBBLE_LINES = 4


@dataclass
class PosterResult:
    """Result of a poster export."""

    path: Path
    size_bytes: int = 0
    resolution: tuple[int, int] = (0, 0)

    def __str__(self) -> str:
        return (
            f"PNG: {self.path.name} ({self.size_bytes / 1024:.1f}KB, "
            f"{self.resolution[0]}x{self.resolution[1]})"
        )


# ── Helpers ───────────────────────────────────────────────────────────────

def _rgb(value: str) -> Optional[tuple[int, int, int]]:
    try:
        return ImageColor.getrgb(value)[:3]
    except ValueError:
        return None


def resolve_palette(demo: Demo, theme: Theme) -> dict[str, tuple[int, int, int]]:
    """Theme colors with the demo's parseable overrides applied."""
    palette = {}
    for key, value in vars(theme.colors).items():
        rgb = _rgb(value)
        if rgb is not None:
            palette[key] = rgb

    for name, key in OVERRIDE_KEYS.items():
        value = getattr(demo.meta.colors, name)
        if value is None:
            continue
        rgb = _rgb(value)
        if rgb is None:
            logger.debug("poster ignores color override %s=%s", name, value)
            continue
        palette[key] = rgb
    return palette


def line_height(font: Font) -> int:
    top, bottom = font.getbbox("Ag")[1::2]
    return int((bottom - top) * 1.5) + 2


def wrap_text(draw: ImageDraw.ImageDraw, text: str, font: Font, max_width: float) -> list[str]:
    """Greedy word wrap by rendered width. Over-long words get their own line."""
    lines: list[str] = []
    for paragraph in text.splitlines() or [""]:
        line = ""
        for word in paragraph.split():
            candidate = f"{line} {word}" if line else word
            if not line or draw.textlength(candidate, font=font) <= max_width:
                line = candidate
            else:
                lines.append(line)
                line = word
        lines.append(line)
    return lines


def _clip(lines: list[str], limit: int) -> list[str]:
    if len(lines) <= limit:
        return lines
    return lines[: limit - 1] + [lines[limit - 1].rstrip() + " …"]


# ── Layout ────────────────────────────────────────────────────────────────

class PosterCanvas:
    """Draws steps top-down inside the chat canvas until space runs out."""

    def __init__(
        self,
        draw: ImageDraw.ImageDraw,
        box: tuple[int, int, int, int],
        palette: dict[str, tuple[int, int, int]],
        fonts: FontSet,
        scale: float,
        radius: int,
        annotation_label: str,
    ) -> None:
        self.draw = draw
        self.palette = palette
        self.fonts = fonts
        self.scale = scale
        self.radius = radius
        self.annotation_label = annotation_label
        self.pad = int(28 * scale)
        self.left = box[0] + self.pad
        self.right = box[2] - self.pad
        self.bottom = box[3] - self.pad
        self.y = box[1] + self.pad
        self.gap = int(18 * scale)

    @property
    def width(self) -> int:
        return self.right - self.left

    def fits(self, height: int) -> bool:
        return self.y + height <= self.bottom

    def draw_step(self, step: Step, scenario: Scenario) -> bool:
        """Draw ``step`` if it fits. Returns False once the canvas is full."""
        if step.step_type is StepType.ANNOTATION:
            return self._annotation(step)
        if step.step_type is StepType.TRANSITION:
            return self._transition(step)
        return self._message(step, scenario)

    def _message(self, step: Step, scenario: Scenario) -> bool:
        participant = scenario.participant(step.sender)
        side = "left" if participant.role is ParticipantRole.LEFT else "right"
        fonts, pad = self.fonts, int(14 * self.scale)
        max_text = int(self.width * 0.7) - 2 * pad

        text_lines = _clip(wrap_text(self.draw, step.content, fonts.body, max_text), MAX_BUBBLE_LINES)
        code_lines = []
        if step.code_block:
            code_lines = _clip(step.code_block.rstrip("\n").splitlines(), 2)

        body_lh, mono_lh, label_lh = (
            line_height(fonts.body), line_height(fonts.mono), line_height(fonts.label)
        )
        text_w = max(
            [self.draw.textlength(l, font=fonts.body) for l in text_lines]
            + [self.draw.textlength(l, font=fonts.mono) for l in code_lines]
        )
        bubble_w = int(min(text_w, max_text)) + 2 * pad
        bubble_h = len(text_lines) * body_lh + len(code_lines) * mono_lh + 2 * pad
        if not self.fits(label_lh + bubble_h):
            return False

        x = self.left if side == "left" else self.right - bubble_w
        label_x = x if side == "left" else self.right - self.draw.textlength(participant.label, font=fonts.label)
        self.draw.text((label_x, self.y), participant.label, font=fonts.label,
                       fill=self.palette["text_secondary"])
        top = self.y + label_lh

        self.draw.rounded_rectangle(
            (x, top, x + bubble_w, top + bubble_h),
            radius=self.radius,
            fill=self.palette[f"{side}_bg"],
            outline=self.palette.get(f"{side}_border"),
        )
        ty = top + pad
        for line in text_lines:
            self.draw.text((x + pad, ty), line, font=fonts.body, fill=self.palette[f"{side}_text"])
            ty += body_lh
        for line in code_lines:
            self.draw.text((x + pad, ty), line, font=fonts.mono, fill=self.palette[f"{side}_text"])
            ty += mono_lh

        self.y = top + bubble_h + self.gap
        return True

    def _annotation(self, step: Step) -> bool:
        fonts = self.fonts
        indent = int(20 * self.scale)
        lines = _clip(wrap_text(self.draw, step.content, fonts.body, self.width - indent), 3)
        label_lh, body_lh = line_height(fonts.label), line_height(fonts.body)
        height = label_lh + len(lines) * body_lh
        if not self.fits(height):
            return False

        bar_w = max(2, int(4 * self.scale))
        self.draw.rectangle(
            (self.left, self.y, self.left + bar_w, self.y + height),
            fill=self.palette["annotation_border"],
        )
        color = self.palette["annotation_text"]
        self.draw.text((self.left + indent, self.y), self.annotation_label.upper(),
                       font=fonts.label, fill=color)
        ty = self.y + label_lh
        for line in lines:
            self.draw.text((self.left + indent, ty), line, font=fonts.body, fill=color)
            ty += body_lh

        self.y += height + self.gap
        return True

    def _transition(self, step: Step) -> bool:
        font = self.fonts.label
        lines = _clip(wrap_text(self.draw, step.content, font, self.width), 2)
        lh = line_height(font)
        height = len(lines) * lh
        if not self.fits(height):
            return False

        center = (self.left + self.right) / 2
        for line in lines:
            w = self.draw.textlength(line, font=font)
            self.draw.text((center - w / 2, self.y), line, font=font, fill=self.palette["text_muted"])
            self.y += lh
        self.y += self.gap
        return True


def draw_play_button(
    draw: ImageDraw.ImageDraw,
    center: tuple[int, int],
    radius: int,
    accent: tuple[int, int, int],
) -> None:
    """White disc with an accent play triangle, as on the player overlay."""
    cx, cy = center
    draw.ellipse((cx - radius, cy - radius, cx + radius, cy + radius), fill=(255, 255, 255))
    r = radius * 0.45
    # Shifted right for optical centering
    ox = radius * 0.1
    draw.polygon(
        [(cx - r * 0.8 + ox, cy - r), (cx - r * 0.8 + ox, cy + r), (cx + r + ox, cy)],
        fill=accent,
    )


# ── Entry points ──────────────────────────────────────────────────────────

def render_poster(
    demo: Demo,
    theme: Optional[Theme] = None,
    size: tuple[int, int] = DEFAULT_POSTER_SIZE,
    scenario_id: Optional[str] = None,
    max_steps: int = 4,
) -> Image.Image:
    """Render a cover image for ``demo``.

    Args:
        theme: Palette to use; defaults to the demo's theme.
        size: Output (width, height) in pixels.
        scenario_id: Scenario whose opening steps are shown (default: first).
        max_steps: Upper bound on steps drawn; fewer when space runs out.
    """
    theme = theme or load_theme(demo.meta.theme)
    scenario = demo.scenario(scenario_id) if scenario_id else demo.scenarios[0]
    width, height = size
    scale = width / DEFAULT_POSTER_SIZE[0]
    palette = resolve_palette(demo, theme)
    fonts = resolve_fonts(scale)

    img = Image.new("RGB", size, palette["bg_primary"])
    draw = ImageDraw.Draw(img)

    margin = int(48 * scale)
    title_lines = _clip(wrap_text(draw, demo.meta.title, fonts.title, width - 2 * margin), 2)
    y = int(40 * scale)
    for line in title_lines:
        draw.text((margin, y), line, font=fonts.title, fill=palette["text_primary"])
        y += line_height(fonts.title)

    straight = demo.meta.corner_style is CornerStyle.STRAIGHT
    box = (margin, y + int(16 * scale), width - margin, height - int(40 * scale))
    draw.rounded_rectangle(
        box,
        radius=0 if straight else int(12 * scale),
        fill=palette["bg_chat"],
        outline=palette.get("border_color"),
    )

    canvas = PosterCanvas(
        draw, box, palette, fonts, scale,
        radius=0 if straight else int(8 * scale),
        annotation_label=demo.meta.annotation_label,
    )
    drawn = 0
    for step in scenario.steps[:max_steps]:
        if not canvas.draw_step(step, scenario):
            break
        drawn += 1
    logger.debug("poster shows %d step(s) of %s", drawn, scenario.id)

    center = ((box[0] + box[2]) // 2, (box[1] + box[3]) // 2)
    draw_play_button(draw, center, int(36 * scale), palette["accent"])
    return img


def export_poster(
    demo: Demo,
    output_path: str | Path,
    theme: Optional[Theme] = None,
    size: tuple[int, int] = DEFAULT_POSTER_SIZE,
) -> PosterResult:
    """Render the cover image and save it as PNG."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    img = render_poster(demo, theme, size)
    img.save(str(output_path), format="PNG")

    return PosterResult(
        path=output_path,
        size_bytes=output_path.stat().st_size,
        resolution=img.size,
    )
