#!/usr/bin/env python3
"""
CLI for watching directories through Watchman.

Usage:
    python -m src.cli watch /path/to/folder
    python -m src.cli watch /path/to/folder --expression '["suffix", "txt"]' --existing
    python -m src.cli check --watchman-binary /usr/local/bin/watchman
"""

import argparse
import json
import logging
import signal
import sys
import time
from pathlib import Path

from src.swordsman import (
    ClientRegistry,
    Watcher,
    WatcherConfig,
    WatcherError,
    WatcherEvent,
)
from src.swordsman.subscription import Subscription


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("cli")


class GracefulShutdown:
    """Handle graceful shutdown on SIGINT/SIGTERM."""

    def __init__(self):
        self.should_exit = False
        signal.signal(signal.SIGINT, self._handler)
        signal.signal(signal.SIGTERM, self._handler)

    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.should_exit = True


def parse_expression(value: str) -> list:
    """Parse a JSON watchman expression given on the command line."""
    try:
        expression = json.loads(value)
    except json.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"invalid JSON expression: {e}")
    if not isinstance(expression, list):
        raise argparse.ArgumentTypeError("expression must be a JSON array")
    return expression


def print_event(event: WatcherEvent, path: Path, stats=None) -> None:
    """Print one file event."""
    if stats is None:
        print(f"{event.value:<7} {path}", flush=True)
    else:
        print(f"{event.value:<7} {path} ({stats.st_size} bytes)", flush=True)


def cmd_watch(args):
    """Watch a directory and print file events."""
    root = Path(args.path).resolve()

    if not root.is_dir():
        logger.error(f"Not a directory: {root}")
        sys.exit(1)

    config = WatcherConfig(
        watchman_binary_path=args.watchman_binary,
        report_existing_files=args.existing,
        check_capabilities=args.check,
    )
    query = {"expression": args.expression} if args.expression else None

    watcher = Watcher(root, query=query, config=config)
    for event in (WatcherEvent.ADD, WatcherEvent.CHANGE, WatcherEvent.DELETE):
        watcher.on(event, lambda path, stats=None, event=event: print_event(event, path, stats))

    shutdown = GracefulShutdown()

    with watcher:
        watcher.start()

        if not watcher.wait_ready(timeout=args.timeout):
            logger.error(f"Could not start watching {root}")
            sys.exit(1)

        logger.info(f"Watching {root}")
        logger.info("Press Ctrl+C to stop")

        while not shutdown.should_exit:
            time.sleep(0.5)

    logger.info("Watcher stopped")


def cmd_check(args):
    """Check that the watchman daemon supports the required capabilities."""
    config = WatcherConfig(watchman_binary_path=args.watchman_binary)
    registry = ClientRegistry()
    handle = registry.acquire(
        config.watchman_binary_path,
        command_timeout=config.command_timeout,
        poll_interval=config.poll_interval,
    )

    try:
        Subscription(handle, registry, Path.cwd()).check(config.required_capabilities)
    except WatcherError as e:
        logger.error(f"Capability check failed: {e}")
        sys.exit(1)
    finally:
        registry.close_all()

    print(f"watchman supports: {', '.join(config.required_capabilities)}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Watch directories for file changes through Watchman",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Print every change under ./documents
  python -m src.cli watch ./documents

  # Only text files, including the ones already present
  python -m src.cli watch ./documents --expression '["suffix", "txt"]' --existing

  # Check the daemon
  python -m src.cli check
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Watch command
    watch_parser = subparsers.add_parser("watch", help="Watch a directory")
    watch_parser.add_argument("path", help="Directory to watch")
    watch_parser.add_argument("--expression", type=parse_expression, help="Watchman expression as JSON")
    watch_parser.add_argument("--watchman-binary", help="Path to the watchman binary")
    watch_parser.add_argument("--existing", action="store_true", help="Report files already present")
    watch_parser.add_argument("--check", action="store_true", help="Check daemon capabilities first")
    watch_parser.add_argument("--timeout", type=float, default=30.0, help="Seconds to wait for the watch to start")
    watch_parser.set_defaults(func=cmd_watch)

    # Check command
    check_parser = subparsers.add_parser("check", help="Check watchman capabilities")
    check_parser.add_argument("--watchman-binary", help="Path to the watchman binary")
    check_parser.set_defaults(func=cmd_check)

    return parser


def main():
    parser = build_parser()
    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    args.func(args)


if __name__ == "__main__":
    main()
