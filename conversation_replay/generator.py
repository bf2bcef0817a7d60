"""Self-contained HTML generation.

Builds a single HTML file holding everything a viewer needs:
  - Page shell (assets/player.html)
  - Theme, dark-mode and per-demo color CSS variables + assets/player.css
  - Tab styling (assets/tabs.css), only when there is more than one scenario
  - Demo data as an inert JSON <script> block
  - The browser runtime (assets/player.js)

Assets use {{name}} placeholders. Expansion is a single pass, so demo
content containing braces is never re-expanded.
"""

from __future__ import annotations

import html
import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from conversation_replay import __version__
from conversation_replay.config import ASSETS_DIR
from conversation_replay.models import (
    CIRCLE_DASH_LENGTH,
    CornerStyle,
    Demo,
    Scenario,
    TimerStyle,
)
from conversation_replay.playback import FADE_MS
from conversation_replay.themes import Theme, load_theme
from conversation_replay.timing import DEFAULT_SPEED, SPEED_MULTIPLIERS

logger = logging.getLogger(__name__)

TEMPLATE_RE = re.compile(r"\{\{(\w+)\}\}")
MARKDOWN_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")

UNSAFE_URL_SCHEMES = ("javascript:", "data:", "vbscript:")
# Characters browsers drop while parsing a URL: tab and newlines anywhere,
# C0 controls and spaces at the start.
URL_IGNORED_RE = re.compile(r"[\t\n\r]|^[\x00-\x20]+")

# (bubble radius, container radius)
CORNER_RADII = {
    CornerStyle.ROUNDED: ("8px", "12px"),
    CornerStyle.STRAIGHT: ("0", "0"),
}

# Must outrank both dark-palette selectors
OVERRIDE_SELECTOR = ':root, :root:not([data-theme="light"]), :root[data-theme="dark"]'


@dataclass
class BuildOptions:
    """Presentation overrides applied at build time."""

    theme: Optional[str] = None  # overrides meta.theme when set
    include_header: bool = True


@dataclass
class BuildResult:
    """Result of writing a demo to disk."""

    path: Path
    size_bytes: int = 0
    scenarios: int = 0
    steps: int = 0

    @property
    def size_kb(self) -> float:
        return self.size_bytes / 1024

    def __str__(self) -> str:
        return (
            f"HTML: {self.path.name} ({self.size_kb:.1f}KB, "
            f"{self.scenarios} scenario(s), {self.steps} step(s))"
        )


# ── Escaping ──────────────────────────────────────────────────────────────

def escape_html(text: str) -> str:
    """Escape text for HTML element content and quoted attributes."""
    return html.escape(text, quote=True)


def is_safe_url(url: str) -> bool:
    """Reject script-capable URL schemes; relative and http(s) URLs pass."""
    return not URL_IGNORED_RE.sub("", url).strip().lower().startswith(UNSAFE_URL_SCHEMES)


def parse_markdown_links(text: str) -> str:
    """Escape ``text`` and turn ``[label](url)`` into anchors.

    Links with unsafe schemes are left as their (escaped) literal text.
    """
    def replacer(match: re.Match) -> str:
        label, url = match.group(1), match.group(2)
        if not is_safe_url(html.unescape(url)):
            return match.group(0)
        return f'<a href="{url}">{label}</a>'

    return MARKDOWN_LINK_RE.sub(replacer, escape_html(text))


def json_for_script(data: object) -> str:
    """Serialize JSON for embedding inside a <script> element.

    Every ``<`` becomes ``\\u003c`` so no tag or comment opener survives.
    """
    return json.dumps(data, ensure_ascii=False, indent=None).replace("<", "\\u003c")


# ── Templates ─────────────────────────────────────────────────────────────

def load_asset(name: str, assets_dir: Optional[Path] = None) -> str:
    path = (assets_dir or ASSETS_DIR) / name
    return path.read_text(encoding="utf-8")


def expand_template(template: str, values: dict[str, str]) -> str:
    """Expand {{name}} placeholders; unknown names are left as-is."""
    def replacer(match: re.Match) -> str:
        return values.get(match.group(1), match.group(0))

    return TEMPLATE_RE.sub(replacer, template)


def css_block(selector: str, variables: dict[str, str], indent: str = "") -> str:
    if not variables:
        return ""
    body = "\n".join(f"{indent}  {name}: {value};" for name, value in variables.items())
    return f"{indent}{selector} {{\n{body}\n{indent}}}"


# ── CSS ───────────────────────────────────────────────────────────────────

def theme_variables(demo: Demo, theme: Theme) -> dict[str, str]:
    """Light palette, fonts and shape variables for ``:root``."""
    radius, radius_lg = CORNER_RADII[demo.meta.corner_style]
    variables = theme.colors.css_variables()
    variables.update({
        "--font-body": theme.fonts.body,
        "--font-mono": theme.fonts.mono,
        "--radius": radius,
        "--radius-lg": radius_lg,
        "--initial-blur": f"{demo.meta.initial_blur:g}px",
    })
    return variables


def dark_css(theme: Theme) -> str:
    """Dark palette for the OS preference and for a parent-synced data-theme."""
    variables = theme.dark_css_variables()
    if not variables:
        return ""
    dark_chrome = {
        "--controls-bg": "rgba(30, 41, 59, 0.8)",
        "--overlay-bg": "rgba(30, 41, 59, 0.35)",
        "--hover-bg": "rgba(255, 255, 255, 0.1)",
    }
    variables = {**variables, **dark_chrome}
    return "\n\n".join([
        "@media (prefers-color-scheme: dark) {\n"
        + css_block(':root:not([data-theme="light"])', variables, indent="  ")
        + "\n}",
        css_block(':root[data-theme="dark"]', variables),
    ])


def generate_css(demo: Demo, theme: Theme) -> str:
    overrides = demo.meta.colors.css_variables()
    return expand_template(
        load_asset("player.css"),
        {
            "theme_variables": css_block(":root", theme_variables(demo, theme)),
            "dark_variables": dark_css(theme),
            "color_overrides": css_block(OVERRIDE_SELECTOR, overrides),
            "tab_css": load_asset("tabs.css") if demo.has_multiple_scenarios else "",
        },
    )


# ── Markup ────────────────────────────────────────────────────────────────

def render_header(demo: Demo) -> str:
    meta = demo.meta
    title = escape_html(meta.title)
    if meta.article_url and is_safe_url(meta.article_url):
        title = (
            f'<a href="{escape_html(meta.article_url)}" class="demo-title-link">{title}</a>'
        )

    description = ""
    if meta.description:
        description = f'\n      <p class="demo-description">{parse_markdown_links(meta.description)}</p>'

    return (
        '<header class="demo-header" id="demo-header">\n'
        f'      <h1 class="demo-title">{title}</h1>{description}\n'
        "    </header>"
    )


SCROLL_LEFT_ICON = (
    '<svg viewBox="0 0 24 24"><path d="M18.41 7.41L17 6l-6 6 6 6 1.41-1.41L13.83 12z"/>'
    '<path d="M12.41 7.41L11 6l-6 6 6 6 1.41-1.41L7.83 12z"/></svg>'
)
SCROLL_RIGHT_ICON = (
    '<svg viewBox="0 0 24 24"><path d="M5.59 7.41L7 6l6 6-6 6-1.41-1.41L10.17 12z"/>'
    '<path d="M11.59 7.41L13 6l6 6-6 6-1.41-1.41L16.17 12z"/></svg>'
)


def render_tabs(demo: Demo) -> str:
    """Tab list for multi-scenario demos; empty for a single scenario."""
    if not demo.has_multiple_scenarios:
        return ""

    buttons = []
    for i, scenario in enumerate(demo.scenarios):
        active = i == 0
        buttons.append(
            f'<button class="tab{" active" if active else ""}" role="tab" '
            f'data-scenario="{escape_html(scenario.id)}" '
            f'aria-selected="{"true" if active else "false"}" '
            f'tabindex="{0 if active else -1}">{escape_html(scenario.title)}</button>'
        )

    return (
        '<div class="tabs-wrapper">\n'
        f'      <button class="tab-scroll-btn left" aria-label="Scroll tabs left">{SCROLL_LEFT_ICON}</button>\n'
        '      <nav class="tabs" role="tablist">\n        '
        + "\n        ".join(buttons)
        + "\n      </nav>\n"
        f'      <button class="tab-scroll-btn right" aria-label="Scroll tabs right">{SCROLL_RIGHT_ICON}</button>\n'
        "    </div>"
    )


def render_timer(style: TimerStyle) -> str:
    if style is TimerStyle.CIRCLE:
        return (
            '<svg class="timer-circle" id="timer-element" aria-hidden="true" viewBox="0 0 18 18">'
            '<circle cx="9" cy="9" r="7"/></svg>'
        )
    return '<div class="timer-bar" id="timer-element" aria-hidden="true"></div>'


def render_speed_options() -> str:
    return "\n          ".join(
        f'<option value="{m:g}"{" selected" if m == DEFAULT_SPEED else ""}>{m:g}x</option>'
        for m in SPEED_MULTIPLIERS
    )


# ── Data ──────────────────────────────────────────────────────────────────

def _scenario_data(scenario: Scenario) -> dict:
    return {
        "title": scenario.title,
        "participants": {
            p.id: {"label": p.label, "role": p.role.value} for p in scenario.participants
        },
        "steps": [step.to_dict() for step in scenario.steps],
    }


def player_data(demo: Demo) -> dict:
    """Everything the browser runtime reads, with camelCase keys."""
    meta = demo.meta
    return {
        "scenarioOrder": demo.scenario_ids,
        "scenarios": {s.id: _scenario_data(s) for s in demo.scenarios},
        "autoAdvance": meta.auto_advance,
        "hasMultipleScenarios": demo.has_multiple_scenarios,
        "hideHeaderInIframe": meta.hide_header_in_iframe,
        "annotationLabel": meta.annotation_label,
        "timerStyle": meta.timer_style.value,
        "speed": meta.speed.to_dict(),
        "fadeMs": FADE_MS,
        "circleDashLength": CIRCLE_DASH_LENGTH,
    }


# ── Entry points ──────────────────────────────────────────────────────────

def generate_html(demo: Demo, options: Optional[BuildOptions] = None) -> str:
    """Render ``demo`` as a complete HTML document.

    Raises:
        ThemeError: If the selected theme cannot be loaded.
    """
    options = options or BuildOptions()
    theme = load_theme(options.theme or demo.meta.theme)
    logger.debug("generating %s with theme %s", demo.meta.title, theme.id)

    return expand_template(
        load_asset("player.html"),
        {
            "version": __version__,
            "title": escape_html(demo.meta.title),
            "css": generate_css(demo, theme),
            "header": render_header(demo) if options.include_header else "",
            "tabs": render_tabs(demo),
            "timer": render_timer(demo.meta.timer_style),
            "speed_options": render_speed_options(),
            "data": json_for_script(player_data(demo)),
            "js": load_asset("player.js"),
        },
    )


def build_demo(
    demo: Demo,
    output_path: str | Path,
    options: Optional[BuildOptions] = None,
) -> BuildResult:
    """Generate the HTML for ``demo`` and write it to ``output_path``."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    document = generate_html(demo, options)
    output_path.write_text(document, encoding="utf-8")
    logger.info("wrote %s", output_path)

    return BuildResult(
        path=output_path,
        size_bytes=output_path.stat().st_size,
        scenarios=len(demo.scenarios),
        steps=sum(len(s) for s in demo.scenarios),
    )
