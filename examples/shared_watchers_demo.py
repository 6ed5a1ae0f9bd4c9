#!/usr/bin/env python3
"""
Shared watchers demo.

This example demonstrates:
1. Two watchers on different directories sharing one watchman connection
2. ADD / CHANGE / DELETE events with lstat metadata
3. The connection being closed when the last watcher closes

Usage:
    python examples/shared_watchers_demo.py

Requires a running (or startable) watchman and the ``watchman`` extra.
"""

import sys
import tempfile
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.swordsman import ClientRegistry, Watcher, WatcherEvent


def attach_printer(watcher: Watcher, label: str) -> None:
    """Print every event of a watcher with a label."""
    watcher.on(WatcherEvent.ADD, lambda path, stats: print(f"[{label}] add    {path.name} ({stats.st_size} bytes)"))
    watcher.on(WatcherEvent.CHANGE, lambda path, stats: print(f"[{label}] change {path.name} ({stats.st_size} bytes)"))
    watcher.on(WatcherEvent.DELETE, lambda path: print(f"[{label}] delete {path.name}"))
    watcher.on(WatcherEvent.ERROR, lambda message: print(f"[{label}] error  {message}"))


def main():
    registry = ClientRegistry()

    with tempfile.TemporaryDirectory(prefix="swordsman-demo") as tmp:
        base = Path(tmp).resolve()
        docs = base / "docs"
        notes = base / "notes"
        docs.mkdir()
        notes.mkdir()

        watchers = [Watcher(docs, registry=registry), Watcher(notes, registry=registry)]
        for watcher, label in zip(watchers, ("DOCS", "NOTES")):
            attach_printer(watcher, label)
            watcher.start()

        if not all(w.wait_ready(timeout=30) for w in watchers):
            print("Could not start watching, is watchman installed?")
            sys.exit(1)

        handle = registry.get()
        print(f"Both watchers share one connection: {handle.subscription_count} subscriptions")

        (docs / "readme.txt").write_text("hello")
        (notes / "todo.txt").write_text("buy milk")
        time.sleep(0.5)

        (docs / "readme.txt").write_text("hello, world")
        time.sleep(0.5)

        (notes / "todo.txt").unlink()
        time.sleep(0.5)

        for watcher in watchers:
            watcher.close()

        print(f"Connection closed: {handle.closed}")


if __name__ == "__main__":
    main()
