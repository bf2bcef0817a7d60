"""Central configuration for conversation replay builds."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


# Resolve package data relative to this file
PACKAGE_DIR = Path(__file__).resolve().parent
THEMES_DIR = PACKAGE_DIR / "themes"
ASSETS_DIR = PACKAGE_DIR / "assets"

DEFAULT_THEME = "chat"
DEFAULT_POSTER_SIZE = (1200, 630)


@dataclass
class BuildConfig:
    """Build configuration assembled from CLI flags and defaults."""

    input_path: Path
    output_path: Path

    # Presentation
    theme: Optional[str] = None  # overrides meta.theme when set
    include_header: bool = True

    # Cover image
    cover: bool = False
    cover_path: Optional[Path] = None

    def __post_init__(self) -> None:
        self.input_path = Path(self.input_path)
        self.output_path = Path(self.output_path)
        if self.cover and self.cover_path is None:
            self.cover_path = self.output_path.with_suffix(".png")
