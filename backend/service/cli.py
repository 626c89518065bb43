"""
GitWatch Command Line Interface.

Usage:
    gitwatch <directory> [-delayed]
"""

import argparse
import sys
from pathlib import Path

from pydantic import ValidationError

from service.app import GitWatch
from utils.config import (
    CommitMode,
    CommitSettings,
    LoggingSettings,
    Settings,
    WatcherSettings,
    get_settings,
)
from utils.logger import configure_logging, get_logger


logger = get_logger("gitwatch")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="gitwatch",
        usage="gitwatch <directory> [-delayed]",
        description="Watch a directory tree and commit changed files to git",
    )
    parser.add_argument(
        "directory",
        nargs="?",
        type=Path,
        help="Directory tree to watch",
    )
    parser.add_argument(
        "-delayed",
        "--delayed",
        dest="delayed",
        action="store_true",
        help="Commit a file only after it has stopped changing",
    )
    parser.add_argument(
        "--message",
        default=None,
        help="Commit message (default: Cleanup)",
    )
    parser.add_argument(
        "--inactivity-minutes",
        type=float,
        default=None,
        help="Quiet time before a delayed commit (default: 10)",
    )
    parser.add_argument(
        "--settle-delay-ms",
        type=int,
        default=None,
        help="Pause before an immediate commit (default: 2000)",
    )
    parser.add_argument(
        "--register-new-directories",
        action="store_true",
        default=None,
        help="Also watch directories created after startup",
    )
    parser.add_argument(
        "--verify",
        action="store_true",
        default=None,
        help="Treat a failing git command as an error",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (default: INFO)",
    )
    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """
    Apply command line options on top of settings.

    Args:
        settings: Settings loaded from the environment
        args: Parsed command line

    Returns:
        A new Settings instance

    Raises:
        ValidationError: If an option is out of range
    """
    commit_updates: dict[str, object] = {}
    if args.delayed:
        commit_updates["mode"] = CommitMode.DEFERRED
    if args.message is not None:
        commit_updates["message"] = args.message
    if args.inactivity_minutes is not None:
        commit_updates["inactivity_period_seconds"] = args.inactivity_minutes * 60.0
    if args.settle_delay_ms is not None:
        commit_updates["settle_delay_ms"] = args.settle_delay_ms
    if args.verify is not None:
        commit_updates["verify_exit_status"] = args.verify

    watcher_updates: dict[str, object] = {}
    if args.register_new_directories is not None:
        watcher_updates["register_new_directories"] = args.register_new_directories

    logging_updates: dict[str, object] = {}
    if args.log_level is not None:
        logging_updates["level"] = args.log_level

    return settings.model_copy(
        update={
            "commit": CommitSettings.model_validate(
                {**settings.commit.model_dump(), **commit_updates}
            ),
            "watcher": WatcherSettings.model_validate(
                {**settings.watcher.model_dump(), **watcher_updates}
            ),
            "logging": LoggingSettings.model_validate(
                {**settings.logging.model_dump(), **logging_updates}
            ),
        }
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.directory is None:
        parser.print_usage()
        return 0

    if not args.directory.is_dir():
        print(f"Error: Path is not a directory: {args.directory}")
        return 1

    try:
        settings = apply_overrides(get_settings(), args)
    except ValidationError as e:
        print(f"Error: Invalid option: {e}")
        return 1

    configure_logging(settings)

    try:
        watcher = GitWatch(args.directory, settings)
    except OSError as e:
        logger.error("startup_failed", path=str(args.directory), error=str(e))
        return 1

    try:
        watcher.run()
    except KeyboardInterrupt:
        # Interrupted mid-commit rather than while waiting for events
        logger.info("interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
