"""Rendering capabilities the playback controller drives.

The controller never touches a DOM or a terminal directly. It calls the
methods of a ``PlaybackView``; the browser runtime implements the same
calls against the page, while Python code uses one of:

  - RecordingView: records calls for tests and timeline simulation
  - TerminalView:  prints the conversation to a text stream
"""

from __future__ import annotations

import sys
import textwrap
from enum import Enum
from typing import Any, Optional, TextIO

from conversation_replay.models import ParticipantRole, Scenario, Step, StepType


class PlayButton(Enum):
    """Affordance shown on the play/pause control."""

    PLAY = "play"
    PAUSE = "pause"
    DISABLED = "disabled"


class PlaybackView:
    """Capability interface. Every call is a no-op by default."""

    def reveal(self, step: Step, scenario: Scenario) -> None:
        """Render a step and mark it visible."""

    def show_up_next(self, title: str) -> None:
        """Render the "Up Next" card announcing the next scenario."""

    def clear_all(self) -> None:
        """Remove every rendered step of the active scenario."""

    def set_progress_indicator(self, fraction: Optional[float]) -> None:
        """Update the countdown; None clears it."""

    def set_play_state(self, state: PlayButton) -> None:
        """Reflect play / pause / disabled on the control surface."""

    def set_progress(self, revealed: int, total: int) -> None:
        """Show "revealed / total" step progress."""

    def set_overlay(self, visible: bool) -> None:
        """Show or hide the click-to-play overlay."""

    def set_active_scenario(self, scenario_id: str) -> None:
        """Mark the active scenario tab."""

    def fade_out(self) -> None:
        """Start the opacity fade used around scenario switches."""

    def fade_in(self) -> None:
        """Undo ``fade_out``."""

    def scroll_into_view(self) -> None:
        """Keep the newest rendered element visible."""


class RecordingView(PlaybackView):
    """View that records every call as ``(name, args)``.

    Countdown updates arrive once per frame, so they are only recorded
    when ``record_progress`` is set.
    """

    def __init__(self, record_progress: bool = False) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.record_progress = record_progress
        self.rendered: list[Any] = []
        self.last_indicator: Optional[float] = None
        self.play_state: Optional[PlayButton] = None
        self.overlay_visible: Optional[bool] = None
        self.faded = False

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))

    def reveal(self, step: Step, scenario: Scenario) -> None:
        self.rendered.append(step)
        self._record("reveal", step, scenario)

    def show_up_next(self, title: str) -> None:
        self.rendered.append(("up_next", title))
        self._record("show_up_next", title)

    def clear_all(self) -> None:
        self.rendered.clear()
        self._record("clear_all")

    def set_progress_indicator(self, fraction: Optional[float]) -> None:
        self.last_indicator = fraction
        if self.record_progress:
            self._record("set_progress_indicator", fraction)

    def set_play_state(self, state: PlayButton) -> None:
        self.play_state = state
        self._record("set_play_state", state)

    def set_progress(self, revealed: int, total: int) -> None:
        self._record("set_progress", revealed, total)

    def set_overlay(self, visible: bool) -> None:
        self.overlay_visible = visible
        self._record("set_overlay", visible)

    def set_active_scenario(self, scenario_id: str) -> None:
        self._record("set_active_scenario", scenario_id)

    def fade_out(self) -> None:
        self.faded = True
        self._record("fade_out")

    def fade_in(self) -> None:
        self.faded = False
        self._record("fade_in")

    def scroll_into_view(self) -> None:
        self._record("scroll_into_view")

    # ── Queries ───────────────────────────────────────────────────────────

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def revealed_steps(self) -> list[Step]:
        return [args[0] for name, args in self.calls if name == "reveal"]

    def count(self, name: str) -> int:
        return sum(1 for n, _ in self.calls if n == name)


class TerminalView(PlaybackView):
    """Plain-text rendering of a conversation for terminal playback."""

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        annotation_label: str = "Behind the Scenes",
        width: int = 72,
    ) -> None:
        self.stream = stream or sys.stdout
        self.annotation_label = annotation_label
        self.width = width

    def _write(self, text: str = "") -> None:
        self.stream.write(text + "\n")
        self.stream.flush()

    def _wrap(self, text: str, indent: str) -> str:
        return textwrap.fill(
            text, width=self.width, initial_indent=indent, subsequent_indent=indent
        )

    def reveal(self, step: Step, scenario: Scenario) -> None:
        if step.step_type is StepType.ANNOTATION:
            self._write(f"  │ {self.annotation_label.upper()}")
            self._write(self._wrap(step.content, "  │ "))
            self._write()
            return

        if step.step_type is StepType.TRANSITION:
            self._write(step.content.center(self.width))
            self._write(("─" * 5).center(self.width))
            self._write()
            return

        participant = scenario.participant(step.sender)
        indent = "  " if participant.role is ParticipantRole.LEFT else " " * 16
        self._write(f"{indent}{participant.label}:")
        self._write(self._wrap(step.content, indent + "  "))
        if step.code_block:
            for line in step.code_block.rstrip("\n").splitlines():
                self._write(f"{indent}  │ {line}")
        if step.footnote:
            self._write(self._wrap(f"({step.footnote})", indent + "  "))
        self._write()

    def show_up_next(self, title: str) -> None:
        self._write(f"UP NEXT: {title}".center(self.width))
        self._write()

    def set_active_scenario(self, scenario_id: str) -> None:
        self._write(f"▸ {scenario_id}")
        self._write()
