"""
dropwatch CLI - Thin entrypoint for operator commands.

Commands:
- run: Watch the configured directories and process stable files
- show-log: Render a process tree event log

Exit Codes:
===========
- 0: Success
- 1: Configuration error, or an event log that did not finish cleanly
- 2: One or more tasks failed (run --once)
- 4: System error (file not found, unreadable log, etc.)
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, NoReturn, Optional

from .config import load_settings
from .observability.error_display import render_error_lines, render_progress_lines
from .observability.event_log import read_event_log
from .watchfolders.errors import SchedulerPassError, TaskConfigError
from .watchfolders.inspector import FileTreeInspector
from .watchfolders.scheduler import Scheduler
from .watchfolders.stability import StabilityDetector
from .watchfolders.tasks import task_from_config
from .watchfolders.ticker import RealTicker


def cmd_run(args: argparse.Namespace) -> NoReturn:
    """
    Run the watcher.

    Exit codes:
        0: Pass(es) completed, or stopped by user
        1: Configuration error
        2: A task failed during a single pass (--once)
    """
    try:
        settings = load_settings(Path(args.config))
    except TaskConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    if not settings.tasks:
        print("ERROR: No tasks configured", file=sys.stderr)
        sys.exit(1)

    ticker = RealTicker(settings.stability.tick_seconds)
    detector = StabilityDetector(
        FileTreeInspector(), tick=ticker.tick, settings=settings.stability
    )
    scheduler = Scheduler(detector)
    tasks = {config.name: task_from_config(config) for config in settings.tasks}

    try:
        if args.once:
            asyncio.run(scheduler.run_pass(tasks))
        else:
            asyncio.run(
                scheduler.run_forever(
                    tasks, interval_ticks=settings.poll_ticks, max_passes=args.max_passes
                )
            )
    except SchedulerPassError as e:
        print(f"✗ {e}", file=sys.stderr)
        sys.exit(2)
    except KeyboardInterrupt:
        print("\nWatcher stopped by user.", file=sys.stderr)
        sys.exit(0)

    sys.exit(0)


def cmd_show_log(args: argparse.Namespace) -> NoReturn:
    """
    Render an event log as a bulleted progress list.

    Exit codes:
        0: The run finished without failures
        1: The run failed, or the log ends without a terminating event
        4: Log file missing or unreadable
    """
    log_path = Path(args.logfile)

    try:
        replay = read_event_log(log_path)
    except (OSError, ValueError) as e:
        print(f"ERROR: Cannot read event log {log_path}: {e}", file=sys.stderr)
        sys.exit(4)

    for line in render_progress_lines(replay):
        print(line)

    if replay.succeeded:
        sys.exit(0)

    if replay.error is not None:
        print("", file=sys.stderr)
        for line in render_error_lines(replay.error):
            print(line, file=sys.stderr)
    elif not replay.completed:
        print("\n✗ Log ended before the run finished", file=sys.stderr)

    sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dropwatch",
        description="Wait for inbound files to finish writing, then process them",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Diagnostic log level (default: INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to execute")

    parser_run = subparsers.add_parser("run", help="Watch configured directories")
    parser_run.add_argument("config", help="Path to JSON configuration file")
    parser_run.add_argument(
        "--once",
        action="store_true",
        help="Perform a single discovery pass and exit",
    )
    parser_run.add_argument(
        "--max-passes",
        type=int,
        default=None,
        help="Stop after this many passes (default: run until interrupted)",
    )
    parser_run.set_defaults(func=cmd_run)

    parser_show = subparsers.add_parser("show-log", help="Render a process tree event log")
    parser_show.add_argument("logfile", help="Path to a JSON-lines event log")
    parser_show.set_defaults(func=cmd_show_log)

    return parser


def main(argv: Optional[List[str]] = None) -> NoReturn:
    """
    Main CLI entrypoint.

    Parses arguments and dispatches to subcommands.
    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args.func(args)


if __name__ == "__main__":
    main()
