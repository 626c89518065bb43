"""
GitWatch Watch Service.

Per-directory change notification keys on top of watchdog.
Requires Python 3.11+.
"""

import os
import queue
import threading
from collections.abc import Iterable
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any

from watchdog.events import (
    DirMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
    FileMovedEvent,
)
from watchdog.observers import Observer

from utils.errors import ClosedWatchServiceError
from utils.logger import LoggerMixin

# Events buffered per key before the key records an overflow
MAX_PENDING_EVENTS = 512


class EventKind(str, Enum):
    """Kinds of change notification a key can report."""

    MODIFY = "modify"
    CREATE = "create"
    OVERFLOW = "overflow"


@dataclass(frozen=True)
class WatchEvent:
    """A change observed in a watched directory."""

    kind: EventKind
    name: str | None  # relative to the watched directory, None for overflow
    count: int = 1


OVERFLOW_EVENT = WatchEvent(kind=EventKind.OVERFLOW, name=None)

_CLOSED = object()


class WatchKey:
    """
    Registration of one directory with a WatchService.

    A key starts out ready. The first event moves it to signalled and queues
    it with its service; further events accumulate until the consumer drains
    them with poll_events() and re-arms the key with reset().
    """

    def __init__(
        self,
        service: "WatchService",
        directory: Path,
        kinds: frozenset[EventKind],
    ) -> None:
        self._service = service
        self._directory = directory
        self._kinds = kinds
        self._lock = threading.Lock()
        self._events: list[WatchEvent] = []
        self._signalled = False
        self._valid = True

    @property
    def directory(self) -> Path:
        """Directory this key watches."""
        return self._directory

    @property
    def kinds(self) -> frozenset[EventKind]:
        """Event kinds this key reports."""
        return self._kinds

    @property
    def is_valid(self) -> bool:
        """Whether the key has not been cancelled or invalidated."""
        return self._valid

    def poll_events(self) -> list[WatchEvent]:
        """Drain and return the pending events in arrival order."""
        with self._lock:
            events, self._events = self._events, []
        return events

    def reset(self) -> bool:
        """
        Re-arm the key after its events have been drained.

        Returns:
            False if the key is no longer valid
        """
        with self._lock:
            if self._valid and not self._directory.is_dir():
                self._valid = False
            if not self._valid:
                return False
            if self._events:
                self._service._enqueue(self)
            else:
                self._signalled = False
            return True

    def validate(self) -> bool:
        """Check the watched directory still exists, invalidating the key if not."""
        with self._lock:
            if self._valid and not self._directory.is_dir():
                self._valid = False
            return self._valid

    def cancel(self) -> None:
        """Stop watching the directory."""
        with self._lock:
            self._valid = False
            self._events.clear()
        self._service._unschedule(self)

    def _post(self, event: WatchEvent) -> None:
        """Record an event from an observer thread."""
        if event.kind not in self._kinds:
            return

        with self._lock:
            if not self._valid:
                return

            if self._events and self._events[-1].kind is EventKind.OVERFLOW:
                return

            if len(self._events) >= MAX_PENDING_EVENTS:
                self._events.append(OVERFLOW_EVENT)
            elif (
                self._events
                and self._events[-1].kind == event.kind
                and self._events[-1].name == event.name
            ):
                last = self._events[-1]
                self._events[-1] = replace(last, count=last.count + 1)
            else:
                self._events.append(event)

            self._signal()

    def _invalidate(self) -> None:
        """Mark the key invalid and signal it so the consumer notices."""
        with self._lock:
            self._valid = False
            self._signal()

    def _signal(self) -> None:
        # Caller holds self._lock
        if not self._signalled:
            self._signalled = True
            self._service._enqueue(self)

    def __repr__(self) -> str:
        return f"WatchKey({str(self._directory)!r}, valid={self._valid})"


def _normalize(path: str | bytes | os.PathLike) -> str:
    return os.path.normpath(os.fsdecode(os.fspath(path)))


def _is_within(path: str, root: str) -> bool:
    return path == root or path.startswith(root.rstrip(os.sep) + os.sep)


class TreeEventHandler(FileSystemEventHandler):
    """
    Routes watchdog events from recursive watches to per-directory keys.

    An event is reported to the key of the directory that contains the
    changed entry; entries in unregistered directories are dropped. Deletion
    or move of a registered directory invalidates its key and the keys of
    everything below it.
    """

    def __init__(self, service: "WatchService") -> None:
        super().__init__()
        self._service = service

    def _route(self, src_path: str | bytes, kind: EventKind) -> None:
        path = _normalize(src_path)
        key = self._service._key_for(os.path.dirname(path))
        name = os.path.basename(path)
        if key is not None and name:
            key._post(WatchEvent(kind=kind, name=name))

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle file/directory modification."""
        self._route(event.src_path, EventKind.MODIFY)

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle file/directory creation."""
        self._route(event.src_path, EventKind.CREATE)

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle deletion of a watched directory."""
        self._service._invalidate_within(_normalize(event.src_path))

    def on_moved(self, event: FileMovedEvent | DirMovedEvent) -> None:
        """Handle a watched directory moving away, or an entry moved into place."""
        self._service._invalidate_within(_normalize(event.src_path))

        # Editors that save via rename only ever produce a move into place
        if event.is_directory:
            self._route(event.dest_path, EventKind.CREATE)
        else:
            self._route(event.dest_path, EventKind.MODIFY)


class WatchService(LoggerMixin):
    """
    Blocking change notification service.

    Wraps a watchdog observer. Every registered directory gets its own
    WatchKey, but the observer only holds one recursive watch per
    registered tree, so a large tree costs a single inotify instance.
    Signalled keys are handed out by poll() in the order they were
    signalled.
    """

    def __init__(self, observer: Any | None = None) -> None:
        """
        Initialize and start the watch service.

        Args:
            observer: watchdog observer to use (a new Observer by default)

        Raises:
            OSError: If the notification subsystem cannot be started
        """
        self._observer = observer if observer is not None else Observer()
        self._handler = TreeEventHandler(self)
        self._signals: queue.Queue[Any] = queue.Queue()
        self._lock = threading.Lock()
        self._keys: dict[str, WatchKey] = {}
        self._watches: dict[str, Any] = {}
        self._closed = False
        self._observer.start()

    def register(
        self,
        directory: Path,
        kinds: Iterable[EventKind] = (EventKind.MODIFY,),
    ) -> WatchKey:
        """
        Register a directory for change notifications.

        A directory inside an already watched tree shares that tree's
        observer watch. Registering the same directory twice returns the
        existing key.

        Args:
            directory: Directory to watch
            kinds: Event kinds to report

        Returns:
            The key for this directory

        Raises:
            OSError: If the observer cannot watch the directory
        """
        if self._closed:
            raise ClosedWatchServiceError("watch service is closed")

        path = _normalize(directory)
        with self._lock:
            existing = self._keys.get(path)
            if existing is not None and existing.is_valid:
                return existing
            covered = any(_is_within(path, root) for root in self._watches)

        if not covered:
            watch = self._observer.schedule(self._handler, path, recursive=True)
            with self._lock:
                nested = [root for root in self._watches if _is_within(root, path)]
                stale = [self._watches.pop(root) for root in nested]
                self._watches[path] = watch
            for old in stale:
                self._unschedule_watch(old)
            self.log.debug("tree_watch_scheduled", root=path, replaced=len(stale))

        key = WatchKey(self, Path(directory), frozenset(kinds))
        with self._lock:
            self._keys[path] = key
        return key

    def poll(self, timeout: float | None = None) -> WatchKey | None:
        """
        Wait for the next signalled key.

        Args:
            timeout: Seconds to wait, or None to wait indefinitely

        Returns:
            The signalled key, or None if the timeout elapsed

        Raises:
            ClosedWatchServiceError: If the service is closed
        """
        if self._closed:
            raise ClosedWatchServiceError("watch service is closed")

        try:
            item = self._signals.get(timeout=timeout)
        except queue.Empty:
            return None

        if item is _CLOSED:
            # Wake any other blocked pollers too
            self._signals.put(_CLOSED)
            raise ClosedWatchServiceError("watch service is closed")
        return item

    def close(self) -> None:
        """Stop the observer and wake any blocked poll()."""
        if self._closed:
            return

        self._closed = True
        self._signals.put(_CLOSED)
        self._observer.stop()
        self._observer.join(timeout=5.0)
        self.log.debug("watch_service_closed")

    @property
    def is_closed(self) -> bool:
        """Check if the service has been closed."""
        return self._closed

    @property
    def watched_roots(self) -> list[str]:
        """Get the roots of the observer's recursive watches."""
        with self._lock:
            return list(self._watches)

    def _enqueue(self, key: WatchKey) -> None:
        self._signals.put(key)

    def _key_for(self, directory: str) -> WatchKey | None:
        with self._lock:
            return self._keys.get(directory)

    def _invalidate_within(self, path: str) -> None:
        with self._lock:
            affected = [
                key for directory, key in self._keys.items() if _is_within(directory, path)
            ]
        for key in affected:
            key._invalidate()

    def _unschedule(self, key: WatchKey) -> None:
        path = _normalize(key.directory)
        with self._lock:
            if self._keys.get(path) is key:
                del self._keys[path]
            orphaned = [
                root
                for root in self._watches
                if not any(_is_within(directory, root) for directory in self._keys)
            ]
            stale = [self._watches.pop(root) for root in orphaned]

        for watch in stale:
            self._unschedule_watch(watch)

    def _unschedule_watch(self, watch: Any) -> None:
        # Called without self._lock: the observer holds its own lock while dispatching
        if self._closed:
            return

        try:
            self._observer.unschedule(watch)
        except KeyError:
            # Already gone from the observer
            self.log.debug("watch_already_unscheduled", root=str(watch.path))

    def __enter__(self) -> "WatchService":
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.close()
