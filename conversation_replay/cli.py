"""CLI entrypoint for conversation replay.

Usage:
    conversation-replay build demo.yaml -o demo.html --cover
    conversation-replay validate demo.yaml
    conversation-replay timeline demo.yaml --speed 2
    conversation-replay play demo.yaml --scenario intro
    conversation-replay init my-demo.yaml --theme slack
    python -m conversation_replay schema speed
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import traceback
from pathlib import Path
from typing import Optional

from conversation_replay import __version__
from conversation_replay.config import DEFAULT_THEME, BuildConfig
from conversation_replay.generator import BuildOptions, build_demo
from conversation_replay.models import Demo
from conversation_replay.parser import ParseError, load_demo
from conversation_replay.playback import PlaybackController, PlaybackState
from conversation_replay.poster import export_poster
from conversation_replay.scheduler import AsyncioScheduler, VirtualScheduler
from conversation_replay.schema import JSON_SCHEMA, SECTIONS, generate_template, schema_reference
from conversation_replay.simulate import simulate
from conversation_replay.themes import ThemeError, list_themes, load_theme
from conversation_replay.timing import DEFAULT_SPEED, SPEED_MULTIPLIERS
from conversation_replay.view import TerminalView

logger = logging.getLogger(__name__)

# Poll interval for live terminal playback
POLL_S = 0.05


def _speed(value: str) -> float:
    try:
        speed = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid speed: {value!r}")
    if speed <= 0:
        raise argparse.ArgumentTypeError("speed must be positive")
    return speed


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    speeds = ", ".join(f"{m:g}" for m in SPEED_MULTIPLIERS)
    parser = argparse.ArgumentParser(
        prog="conversation-replay",
        description="Conversation Replay — turn YAML conversations into self-contained HTML players",
        epilog="Examples:\n"
        "  %(prog)s build demo.yaml -o demo.html --cover\n"
        "  %(prog)s timeline demo.yaml --speed 2\n"
        "  %(prog)s init my-demo.yaml --theme slack\n",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    sub = parser.add_subparsers(dest="command", metavar="command")
    sub.required = True

    # build
    p = sub.add_parser("build", help="Generate a self-contained HTML player")
    p.add_argument("file", type=Path, help="Demo YAML file")
    p.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output HTML path (default: input name with .html)",
    )
    p.add_argument(
        "--theme",
        default=None,
        help=f"Override meta.theme ({', '.join(list_themes())})",
    )
    p.add_argument(
        "--no-header",
        action="store_true",
        help="Omit the title/description header",
    )
    p.add_argument(
        "--cover",
        action="store_true",
        help="Also write a PNG cover image next to the HTML",
    )

    # validate
    p = sub.add_parser("validate", help="Check a demo file without building")
    p.add_argument("file", type=Path, help="Demo YAML file")

    # timeline
    p = sub.add_parser("timeline", help="Show when each step appears during playback")
    p.add_argument("file", type=Path, help="Demo YAML file")
    p.add_argument(
        "--speed",
        type=_speed,
        default=DEFAULT_SPEED,
        help=f"Speed multiplier ({speeds}; default: 1)",
    )
    p.add_argument("--scenario", default=None, help="Start scenario id (default: first)")
    p.add_argument("--json", action="store_true", help="Print events as JSON")

    # play
    p = sub.add_parser("play", help="Replay a demo in the terminal")
    p.add_argument("file", type=Path, help="Demo YAML file")
    p.add_argument(
        "--speed",
        type=_speed,
        default=DEFAULT_SPEED,
        help=f"Speed multiplier ({speeds}; default: 1)",
    )
    p.add_argument("--scenario", default=None, help="Start scenario id (default: first)")
    p.add_argument(
        "--instant",
        action="store_true",
        help="Print every scenario at once without delays",
    )

    # init
    p = sub.add_parser("init", help="Write a starter demo file")
    p.add_argument("path", type=Path, nargs="?", default=Path("demo.yaml"))
    p.add_argument("--theme", default=DEFAULT_THEME, help="Theme for the template")
    p.add_argument("--force", action="store_true", help="Overwrite an existing file")

    # schema
    p = sub.add_parser("schema", help="Show the demo file reference")
    p.add_argument("section", nargs="?", choices=SECTIONS, default=None)
    p.add_argument("--json", action="store_true", help="Print the JSON schema")

    return parser


# ── Commands ──────────────────────────────────────────────────────────────

def _load(path: Path) -> Demo:
    print(f"▸ Loading demo: {path}")
    demo = load_demo(path)
    steps = sum(len(s) for s in demo.scenarios)
    print(f"  {demo.meta.title!r}: {len(demo.scenarios)} scenario(s), {steps} step(s)")
    return demo


def cmd_build(args: argparse.Namespace) -> int:
    config = BuildConfig(
        input_path=args.file,
        output_path=args.output or args.file.with_suffix(".html"),
        theme=args.theme,
        include_header=not args.no_header,
        cover=args.cover,
    )
    demo = _load(config.input_path)

    theme_name = config.theme or demo.meta.theme
    print(f"▸ Building HTML: theme={theme_name}, header={'on' if config.include_header else 'off'}")
    result = build_demo(
        demo,
        config.output_path,
        BuildOptions(theme=config.theme, include_header=config.include_header),
    )
    print(f"  {result}")

    if config.cover:
        print(f"▸ Rendering cover: {config.cover_path}")
        poster = export_poster(demo, config.cover_path, theme=load_theme(theme_name))
        print(f"  {poster}")

    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    demo = _load(args.file)
    for scenario in demo.scenarios:
        print(f"  - {scenario.id}: {scenario.title!r} "
              f"({len(scenario.participants)} participant(s), {len(scenario)} step(s))")
    print("✓ Valid")
    return 0


def cmd_timeline(args: argparse.Namespace) -> int:
    demo = load_demo(args.file)
    timeline = simulate(demo, speed=args.speed, scenario_id=args.scenario)

    if args.json:
        print(json.dumps([e.to_dict() for e in timeline], indent=2, ensure_ascii=False))
        return 0

    print(f"▸ Timeline: {demo.meta.title!r} at {args.speed:g}x")
    for event in timeline:
        d = event.to_dict()
        step = "" if d["step"] is None else f"#{d['step']}"
        print(f"  [{d['t_ms'] / 1000:8.2f}s] {d['type']:8s} {d['scenario']:<14s} "
              f"{step:>4s} {d['text']}")
    print(f"  events: {len(timeline)}, duration: {timeline.duration_ms / 1000:.1f}s")
    return 0


def _play_instant(demo: Demo, view: TerminalView, start: str) -> None:
    """Print every scenario, starting at ``start``, with no delays."""
    scheduler = VirtualScheduler()
    controller = PlaybackController(demo, view, scheduler, reduced_motion=True, frame_ms=None)
    controller.current_scenario_id = start
    ids = demo.scenario_ids
    for scenario_id in ids[ids.index(start):] + ids[:ids.index(start)]:
        if scenario_id == controller.current_scenario_id:
            view.set_active_scenario(scenario_id)
            controller.show_all_instantly()
        else:
            controller.switch_tab(scenario_id)
        scheduler.run()


def _wrapping_to(controller: PlaybackController, start: str) -> bool:
    switch = controller.pending_switch
    return switch is not None and switch.auto and switch.scenario_id == start


async def _play_live(demo: Demo, view: TerminalView, start: str, speed: float) -> None:
    """Play until the start scenario completes or auto-advance wraps back to it.

    Timers still pending on exit are dropped along with the event loop.
    """
    scheduler = AsyncioScheduler(asyncio.get_running_loop())
    controller = PlaybackController(demo, view, scheduler, speed=speed, frame_ms=None)
    controller.current_scenario_id = start
    controller.initialize()
    controller.play()

    while True:
        await asyncio.sleep(POLL_S)
        if controller.state is PlaybackState.SCENE_COMPLETE or _wrapping_to(controller, start):
            break


def cmd_play(args: argparse.Namespace) -> int:
    demo = load_demo(args.file)
    start = args.scenario or demo.scenarios[0].id
    demo.scenario(start)
    view = TerminalView(annotation_label=demo.meta.annotation_label)

    print(f"▸ Playing: {demo.meta.title!r}" + ("" if args.instant else f" at {args.speed:g}x"))
    print()
    if args.instant:
        _play_instant(demo, view, start)
    else:
        asyncio.run(_play_live(demo, view, start, args.speed))
    return 0


def cmd_init(args: argparse.Namespace) -> int:
    themes = list_themes()
    if args.theme not in themes:
        raise ValueError(f"Unknown theme '{args.theme}'. Available: {', '.join(themes)}")
    if args.path.exists() and not args.force:
        print(f"✗ {args.path} already exists (use --force to overwrite)", file=sys.stderr)
        return 1

    args.path.parent.mkdir(parents=True, exist_ok=True)
    args.path.write_text(generate_template(args.theme), encoding="utf-8")
    print(f"▸ Created {args.path}")
    print(f"  next: conversation-replay build {args.path} -o {args.path.with_suffix('.html')}")
    return 0


def cmd_schema(args: argparse.Namespace) -> int:
    if args.json:
        print(json.dumps(JSON_SCHEMA, indent=2))
    else:
        print(schema_reference(args.section))
    return 0


COMMANDS = {
    "build": cmd_build,
    "validate": cmd_validate,
    "timeline": cmd_timeline,
    "play": cmd_play,
    "init": cmd_init,
    "schema": cmd_schema,
}


def run(args: argparse.Namespace) -> int:
    """Dispatch a parsed command line and return the exit code."""
    try:
        return COMMANDS[args.command](args)

    except ParseError as e:
        location = f"{e.path}: " if e.path else ""
        print(f"✗ Error: {location}{e.message}", file=sys.stderr)
        return 1

    except ThemeError as e:
        print(f"✗ Theme error: {e}", file=sys.stderr)
        return 1

    except KeyError as e:
        print(f"✗ Error: {e.args[0]}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\n✗ Interrupted", file=sys.stderr)
        return 130

    except Exception as e:
        print(f"\n✗ Error: {e}", file=sys.stderr)
        if getattr(args, "verbose", False):
            traceback.print_exc()
        return 1


def main(argv: Optional[list[str]] = None) -> None:
    """CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    sys.exit(run(args))


if __name__ == "__main__":
    main()
