"""
Command line entry point.

Runs a sketch in a headless render loop, reloading it live as the file is
edited:

    python -m livesketch sketch.py --frames 600 --verbose
"""

import argparse
import sys
import time
from pathlib import Path
from typing import List, Optional

from .config import load_config
from .console import DiagnosticsConsole
from .exceptions import TrackedFileError
from .logging_config import restore_stderr_logging, suppress_stderr_logging
from .reload import InterpreterState, ReloadOrchestrator
from .runtime import RecordingRenderer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="livesketch", description="Run a Python sketch with live reloading")
    parser.add_argument("sketch", type=Path, help="Sketch file to run")
    parser.add_argument("--frames", type=int, default=0, help="Stop after N frames (default: run until interrupted)")
    parser.add_argument("--fps", type=float, help="Target frame rate")
    parser.add_argument("--width", type=int, help="Initial canvas width")
    parser.add_argument("--height", type=int, help="Initial canvas height")
    parser.add_argument("--reload-frames", type=int, help="Frames between checks for file changes")
    parser.add_argument("--verbose", "-v", action="store_true", help="Print reload status and tracebacks")
    return parser


def run(orchestrator: ReloadOrchestrator, frames: int, fps: float) -> None:
    """Headless render loop: setup once, then update and draw every frame."""
    renderer = orchestrator.renderer
    frame_time = 1.0 / fps
    orchestrator.on_setup()
    count = 0
    try:
        while frames <= 0 or count < frames:
            started = time.perf_counter()
            renderer.begin_frame()
            orchestrator.on_update()
            orchestrator.on_draw()
            renderer.end_frame()
            count += 1
            remaining = frame_time - (time.perf_counter() - started)
            if remaining > 0:
                time.sleep(remaining)
    except KeyboardInterrupt:
        pass
    finally:
        orchestrator.on_exit()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the livesketch runner."""
    args = build_parser().parse_args(argv)

    config = load_config(args.sketch.resolve().parent)
    if args.fps is not None:
        config.fps = args.fps
    if args.width is not None:
        config.width = args.width
    if args.height is not None:
        config.height = args.height
    if args.reload_frames is not None:
        config.reload_interval_frames = args.reload_frames
    if args.verbose:
        config.verbose = True

    console = DiagnosticsConsole(verbose=config.verbose)
    for warning in config.validate():
        console.warning(warning)

    orchestrator = ReloadOrchestrator(
        renderer=RecordingRenderer(config.width, config.height),
        config=config,
        console=console,
    )

    # the diagnostics console reports errors; keep the trace log off stderr
    suppress_stderr_logging()
    try:
        orchestrator.load(args.sketch)
        if orchestrator.state is InterpreterState.RUNNING:
            console.info(f"Running {args.sketch}")
        run(orchestrator, args.frames, config.fps)
    except TrackedFileError as e:
        console.fatal(f"FATAL ERROR: {e}. livesketch must quit.")
        console.fatal("  The file is either missing or otherwise inaccessible. Check the file name")
        console.fatal("  or the file's permissions.")
        return 1
    finally:
        restore_stderr_logging()

    return 0


if __name__ == "__main__":
    sys.exit(main())
