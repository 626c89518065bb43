"""
GitWatch Watcher Package.

Directory change notifications and the main event loop.
Requires Python 3.11+.
"""

from watcher.watch_service import EventKind, WatchEvent, WatchKey, WatchService
from watcher.registry import WatchRegistry
from watcher.event_loop import EventLoop, LoopState

__all__ = [
    "EventKind",
    "WatchEvent",
    "WatchKey",
    "WatchService",
    "WatchRegistry",
    "EventLoop",
    "LoopState",
]
