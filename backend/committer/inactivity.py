"""
GitWatch Inactivity Tracker.

Defers commits until a file has stopped changing.
Requires Python 3.11+.
"""

import os
import subprocess
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from committer.git import GitCommitter
from utils.errors import CommitError
from utils.logger import LoggerMixin

NANOS_PER_SECOND = 1_000_000_000


class PendingPaths:
    """A lock-guarded set of absolute path strings."""

    def __init__(self) -> None:
        self._paths: set[str] = set()
        self._lock = threading.Lock()

    def add(self, path: str) -> bool:
        """
        Add a path.

        Returns:
            True if the path was not already pending
        """
        with self._lock:
            if path in self._paths:
                return False
            self._paths.add(path)
            return True

    def discard(self, path: str) -> None:
        """Remove a path if present."""
        with self._lock:
            self._paths.discard(path)

    def snapshot(self) -> list[str]:
        """Get a sorted copy of the pending paths."""
        with self._lock:
            return sorted(self._paths)

    def clear(self) -> None:
        """Remove all paths."""
        with self._lock:
            self._paths.clear()

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._paths

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)


class InactivityTracker(LoggerMixin):
    """
    Commits pending files once they have been quiet long enough.

    A background thread ticks every interval (the first tick runs as soon
    as the tracker starts). Each tick commits and drops every pending file
    whose last modification is at least the inactivity period old. Files
    that cannot be stat'ed or committed stay pending for the next tick.
    """

    def __init__(
        self,
        committer: GitCommitter,
        inactivity_period: float = 600.0,
        interval: float = 60.0,
        clock_ns: Callable[[], int] = time.time_ns,
    ) -> None:
        """
        Initialize the tracker.

        Args:
            committer: Committer used for quiet files
            inactivity_period: Seconds without modification before committing
            interval: Seconds between ticks
            clock_ns: Wall clock in nanoseconds, comparable to st_mtime_ns
        """
        self._committer = committer
        self._threshold_ns = int(inactivity_period * NANOS_PER_SECOND)
        self._interval = interval
        self._clock_ns = clock_ns
        self._pending = PendingPaths()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def add(self, path: str | Path) -> bool:
        """
        Queue a file for a deferred commit.

        Returns:
            True if the file was not already pending
        """
        path = str(path)
        added = self._pending.add(path)
        if added:
            self.log.debug("path_pending", path=path, pending=len(self._pending))
        return added

    def tick(self) -> list[str]:
        """
        Evaluate every pending file once.

        Returns:
            Paths committed and removed during this tick
        """
        committed: list[str] = []

        for path in self._pending.snapshot():
            try:
                mtime_ns = os.stat(path).st_mtime_ns
            except OSError as e:
                self.log.warning("stat_failed", path=path, error=str(e))
                continue

            elapsed_ns = self._clock_ns() - mtime_ns
            if elapsed_ns < self._threshold_ns:
                continue

            # A change recorded while committing re-adds the path
            self._pending.discard(path)
            try:
                self._committer.commit(Path(path))
            except (OSError, subprocess.SubprocessError, CommitError):
                self.log.exception("deferred_commit_failed", path=path)
                self._pending.add(path)
                continue

            committed.append(path)

        if committed:
            self.log.info("deferred_commits", count=len(committed), pending=len(self._pending))
        return committed

    def start(self) -> None:
        """Start ticking on a background thread."""
        if self._thread is not None:
            return

        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="inactivity-tracker",
            daemon=True,
        )
        self._thread.start()
        self.log.info(
            "inactivity_tracker_started",
            interval_seconds=self._interval,
            inactivity_seconds=self._threshold_ns / NANOS_PER_SECOND,
        )

    def stop(self, timeout: float | None = 5.0) -> None:
        """Stop ticking. Pending files are left uncommitted."""
        if self._thread is None:
            return

        self._stop.set()
        self._thread.join(timeout=timeout)
        self._thread = None
        self.log.info("inactivity_tracker_stopped", pending=len(self._pending))

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.tick()
            except Exception as e:
                # Keep the schedule alive; the next tick retries everything
                self.log.error("tick_failed", error=str(e))
            self._stop.wait(self._interval)

    @property
    def is_running(self) -> bool:
        """Check if the background thread is running."""
        return self._thread is not None

    @property
    def pending_count(self) -> int:
        """Get number of pending files."""
        return len(self._pending)

    @property
    def pending_paths(self) -> list[str]:
        """Get list of pending files."""
        return self._pending.snapshot()

    def __enter__(self) -> "InactivityTracker":
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.stop()
