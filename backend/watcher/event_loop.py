"""
GitWatch Event Loop.

Turns directory change notifications into commits.
Requires Python 3.11+.
"""

import fnmatch
import subprocess
from collections.abc import Iterable
from enum import Enum
from pathlib import Path

from committer.strategy import CommitStrategy
from watcher.registry import WatchRegistry
from watcher.watch_service import EventKind, WatchEvent, WatchKey, WatchService
from utils.errors import ClosedWatchServiceError, CommitError
from utils.logger import LoggerMixin


class LoopState(str, Enum):
    """States of the event loop."""

    LISTENING = "listening"
    DRAINING = "draining"
    TERMINATED = "terminated"


class EventLoop(LoggerMixin):
    """
    Main watch loop.

    Blocks on the watch service for a signalled key, drains its events,
    filters out files that should not be committed and submits the rest
    to the commit strategy. The loop ends when no watched directories are
    left, when the service is closed, or on KeyboardInterrupt.
    """

    def __init__(
        self,
        watch_service: WatchService,
        registry: WatchRegistry,
        strategy: CommitStrategy,
        poll_timeout: float = 60.0,
        backup_suffix: str = "~",
        ignore_patterns: Iterable[str] = (),
        register_new_directories: bool = False,
    ) -> None:
        """
        Initialize the event loop.

        Args:
            watch_service: Source of signalled keys
            registry: Key to directory mapping, shared with startup registration
            strategy: Where qualifying files are sent
            poll_timeout: Seconds to block before checking watch liveness
            backup_suffix: File name suffix of editor backups to skip
            ignore_patterns: Glob patterns matched against each path component
            register_new_directories: Start watching directories created later
        """
        self._service = watch_service
        self._registry = registry
        self._strategy = strategy
        self._poll_timeout = poll_timeout
        self._backup_suffix = backup_suffix
        self._ignore_patterns = list(ignore_patterns)
        self._register_new_directories = register_new_directories
        self._state = LoopState.LISTENING

    @property
    def state(self) -> LoopState:
        """Get the current loop state."""
        return self._state

    def run(self) -> None:
        """Process events until the loop terminates."""
        self.log.info(
            "event_loop_started",
            directories=len(self._registry),
            mode=self._strategy.mode.value,
        )
        while self.process_next():
            pass
        self.log.info("event_loop_terminated")

    def process_next(self) -> bool:
        """
        Wait for one signalled key and process its events.

        Returns:
            False once the loop has terminated
        """
        if self._state is LoopState.TERMINATED:
            return False

        self._state = LoopState.LISTENING
        try:
            key = self._service.poll(self._poll_timeout)
        except KeyboardInterrupt:
            self.log.info("interrupted")
            return self._terminate()
        except ClosedWatchServiceError:
            self.log.info("watch_service_closed")
            return self._terminate()

        if key is None:
            self._sweep_invalid_keys()
        else:
            self._drain(key)

        if self._registry.is_empty:
            self.log.info("no_directories_left")
            return self._terminate()

        self._state = LoopState.LISTENING
        return True

    def _terminate(self) -> bool:
        self._state = LoopState.TERMINATED
        return False

    def _drain(self, key: WatchKey) -> None:
        directory = self._registry.resolve(key)
        if directory is None:
            return

        self._state = LoopState.DRAINING
        for event in key.poll_events():
            self._handle_event(directory, event)

        if not key.reset():
            self._registry.invalidate(key)

    def _sweep_invalid_keys(self) -> None:
        for key in self._registry.keys:
            if not key.validate():
                self._registry.invalidate(key)

    def _handle_event(self, directory: Path, event: WatchEvent) -> None:
        if event.kind is EventKind.OVERFLOW or event.name is None:
            self.log.warning("events_overflowed", directory=str(directory))
            return

        path = directory / event.name
        try:
            if event.kind is EventKind.CREATE:
                self._handle_created(path)
            elif self.should_commit(path):
                self.log.info("file_changed", path=str(path), count=event.count)
                self._strategy.submit(path)
        except (OSError, subprocess.SubprocessError, CommitError):
            self.log.exception("event_failed", path=str(path))

    def _handle_created(self, path: Path) -> None:
        if not self._register_new_directories or self.is_ignored(path):
            return
        if path.is_dir() and not self._registry.is_registered(path):
            count = self._registry.register_tree(path)
            self.log.info("new_directory_watched", directory=str(path), directories=count)

    def is_ignored(self, path: Path) -> bool:
        """Check if any component below the watched root matches an ignore pattern."""
        for part in self._registry.relative_parts(path):
            for pattern in self._ignore_patterns:
                if fnmatch.fnmatch(part, pattern):
                    return True
        return False

    def should_commit(self, path: Path) -> bool:
        """
        Check if a changed path qualifies for a commit.

        Editor backups, ignored paths, missing paths, directories and
        empty files are skipped.

        Raises:
            OSError: If the file size cannot be read
        """
        if self._backup_suffix and path.name.endswith(self._backup_suffix):
            return False
        if self.is_ignored(path):
            return False
        if not path.exists() or path.is_dir():
            return False
        if path.stat().st_size <= 0:
            self.log.debug("empty_file_skipped", path=str(path))
            return False
        return True
