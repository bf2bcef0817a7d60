"""Shared fixtures: small demos and a virtual clock."""

import textwrap

import pytest

from conversation_replay.parser import parse_demo
from conversation_replay.scheduler import VirtualScheduler
from conversation_replay.view import RecordingView


SINGLE_YAML = """\
meta:
  title: "Single"
  autoAdvance: false
scenarios:
  - id: only
    title: "Only"
    participants:
      - id: a
        label: "Alice"
      - id: b
        label: "Bob"
        role: right
    steps:
      - from: a
        content: "Hello there"
      - from: b
        content: "Hi Alice"
      - type: annotation
        content: "They know each other"
"""


def multi_yaml(auto_advance: bool = True, scenarios: int = 3) -> str:
    blocks = []
    for i in range(scenarios):
        sid = "abcdefgh"[i]
        blocks.append(textwrap.dedent(f"""\
          - id: {sid}
            title: "Part {sid.upper()}"
            participants:
              - id: p
                label: "Pat"
            steps:
              - from: p
                content: "{sid} one"
              - from: p
                content: "{sid} two"
        """))
    return (
        "meta:\n"
        '  title: "Multi"\n'
        f"  autoAdvance: {'true' if auto_advance else 'false'}\n"
        "scenarios:\n"
        + "".join(textwrap.indent(b, "  ") for b in blocks)
    )


@pytest.fixture
def single_demo():
    return parse_demo(SINGLE_YAML)


@pytest.fixture
def multi_demo():
    return parse_demo(multi_yaml())


@pytest.fixture
def manual_demo():
    """Three scenarios without auto-advance."""
    return parse_demo(multi_yaml(auto_advance=False))


@pytest.fixture
def scheduler():
    return VirtualScheduler()


@pytest.fixture
def view():
    return RecordingView()
