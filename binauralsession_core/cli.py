"""Command line entry point: list, play and render session programs."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from .catalog import build_program_catalog
from .config import EngineConfig, load_default_config, load_engine_config
from .errors import ContextUnavailable
from .logging_utils import configure_logging, log_exception
from .session import StageTimeline, classify_beat
from .utils.progression_file import PROGRESSION_FILE_EXTENSION, load_progression, progression_to_timeline

logger = logging.getLogger(__name__)


def _format_clock(seconds: float) -> str:
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours:d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def _resolve_timeline(program: str, preset_dirs: List[Path], config: EngineConfig) -> StageTimeline:
    path = Path(program)
    if path.suffix == PROGRESSION_FILE_EXTENSION or path.is_file():
        return progression_to_timeline(load_progression(str(path)), higher_ear=config.higher_ear)
    catalog = build_program_catalog(preset_dirs)
    choice = catalog.get(program) or catalog.get(f"builtin:{program}")
    if choice is None:
        raise KeyError(f"Unknown program: {program}")
    return choice.timeline(config.higher_ear)


def _cmd_list(args: argparse.Namespace, config: EngineConfig) -> int:
    catalog = build_program_catalog(args.preset_dir)
    for preset_id, choice in catalog.items():
        print(f"{preset_id:<32} {_format_clock(choice.total_duration):>9}  {choice.label}")
        if args.verbose:
            for stage in choice.stages:
                band = classify_beat(stage.beat_hz).value
                print(
                    f"    {stage.name or '-':<28} {stage.carrier_hz:7.1f} Hz  "
                    f"beat {stage.beat_hz:5.1f} Hz ({band})  {_format_clock(stage.duration_seconds)}"
                )
    return 0


def _cmd_render(args: argparse.Namespace, config: EngineConfig) -> int:
    from .synthesis import render_timeline_to_file

    timeline = _resolve_timeline(args.program, args.preset_dir, config)
    path = render_timeline_to_file(timeline, args.output, config.sample_rate, volume=args.volume, config=config)
    print(f"Wrote {path}")
    return 0


def _cmd_play(args: argparse.Namespace, config: EngineConfig) -> int:
    from PyQt5.QtCore import QCoreApplication, QTimer

    from .audio import ContextLifecycleManager, PlaybackController

    timeline = _resolve_timeline(args.program, args.preset_dir, config)
    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    lifecycle = ContextLifecycleManager(config)
    lifecycle.watch_application(app)
    controller = PlaybackController(lifecycle, config)
    controller.set_volume(args.volume)

    last_printed = {"second": -1}

    def _report(state) -> None:
        second = int(state.total_elapsed_seconds)
        if not state.is_playing or second == last_printed["second"]:
            return
        last_printed["second"] = second
        print(
            f"\rstage {state.current_stage_index + 1}/{len(timeline)}  "
            f"{state.current_carrier_hz:7.2f} Hz  beat {state.current_beat_hz:5.2f} Hz  "
            f"remaining {_format_clock(state.remaining_seconds)}",
            end="",
            flush=True,
        )

    controller.set_state_callback(_report)
    controller.set_completion_callback(app.quit)
    signal.signal(signal.SIGINT, lambda *_: app.quit())
    # Give the interpreter a chance to run the SIGINT handler.
    wakeup = QTimer()
    wakeup.timeout.connect(lambda: None)
    wakeup.start(250)

    controller.play(timeline)
    try:
        app.exec_()
    finally:
        print()
        controller.shutdown()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="binauralsession", description=__doc__)
    parser.add_argument("--config", help="Engine settings file (.engine)")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    parser.add_argument(
        "--preset-dir",
        action="append",
        type=Path,
        default=[],
        help="Directory with .progression files (repeatable)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    list_parser = sub.add_parser("list", help="List available programs")
    list_parser.add_argument("-v", "--verbose", action="store_true", help="Show every stage")
    list_parser.set_defaults(func=_cmd_list)

    play_parser = sub.add_parser("play", help="Play a program until it completes")
    play_parser.add_argument("program", help="Program id or .progression file")
    play_parser.add_argument("--volume", type=float, default=None, help="Volume between 0 and 1")
    play_parser.set_defaults(func=_cmd_play)

    render_parser = sub.add_parser("render", help="Render a program to an audio file")
    render_parser.add_argument("program", help="Program id or .progression file")
    render_parser.add_argument("output", type=Path, help="Output path (.wav or .flac)")
    render_parser.add_argument("--volume", type=float, default=None, help="Volume between 0 and 1")
    render_parser.set_defaults(func=_cmd_render)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level.upper())

    try:
        config = load_engine_config(args.config) if args.config else load_default_config()
    except (OSError, ValueError) as exc:
        print(f"Could not load settings: {exc}", file=sys.stderr)
        return 2
    if getattr(args, "volume", None) is None and hasattr(args, "volume"):
        args.volume = config.default_volume

    try:
        return args.func(args, config)
    except (KeyError, ValueError, FileNotFoundError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except ContextUnavailable as exc:
        log_exception(args.command, exc)
        print(f"Audio output unavailable: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
