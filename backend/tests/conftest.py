"""
GitWatch Test Configuration.

Pytest fixtures and configuration.
Requires Python 3.11+.
"""

import os
from collections.abc import Generator, Sequence
from pathlib import Path
from typing import Any

import pytest
from watchdog.events import FileSystemEvent

from committer.process_runner import CommandResult, ProcessRunner
from watcher.watch_service import WatchService


def _covers(watch: "StubWatch", path: str) -> bool:
    if path == watch.path:
        return True
    parent = os.path.dirname(path)
    if watch.is_recursive:
        return parent == watch.path or parent.startswith(watch.path + os.sep)
    return parent == watch.path


class StubWatch:
    """Stands in for watchdog's ObservedWatch."""

    def __init__(self, path: str, recursive: bool) -> None:
        self.path = path
        self.is_recursive = recursive


class StubObserver:
    """
    Observer that delivers events only when a test emits them.

    An emitted event goes to every handler whose watch covers its source
    or destination path, the way a real observer routes a change.
    """

    def __init__(self) -> None:
        self.handlers: dict[StubWatch, Any] = {}
        self.started = False
        self.stopped = False

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def join(self, timeout: float | None = None) -> None:
        pass

    def schedule(self, handler: Any, path: str, recursive: bool = False) -> StubWatch:
        watch = StubWatch(path, recursive)
        self.handlers[watch] = handler
        return watch

    def unschedule(self, watch: StubWatch) -> None:
        del self.handlers[watch]

    @property
    def paths(self) -> list[str]:
        return [watch.path for watch in self.handlers]

    def emit(self, event: FileSystemEvent) -> None:
        paths = [event.src_path, getattr(event, "dest_path", "")]
        for watch, handler in list(self.handlers.items()):
            if any(path and _covers(watch, path) for path in paths):
                handler.dispatch(event)


class RecordingRunner(ProcessRunner):
    """Process runner that records invocations instead of running them."""

    def __init__(self, returncode: int = 0, error: Exception | None = None) -> None:
        self.calls: list[tuple[tuple[str, ...], Path]] = []
        self.returncode = returncode
        self.error = error

    def run(self, args: Sequence[str], cwd: Path) -> CommandResult:
        argv = tuple(str(a) for a in args)
        self.calls.append((argv, Path(cwd)))
        if self.error is not None:
            raise self.error
        return CommandResult(args=argv, cwd=Path(cwd), returncode=self.returncode)


@pytest.fixture
def stub_observer() -> StubObserver:
    """Create a stub observer."""
    return StubObserver()


@pytest.fixture
def watch_service(stub_observer: StubObserver) -> Generator[WatchService, None, None]:
    """Create a watch service driven by the stub observer."""
    service = WatchService(observer=stub_observer)
    yield service
    service.close()


@pytest.fixture
def runner() -> RecordingRunner:
    """Create a recording process runner."""
    return RecordingRunner()


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    """
    Create a small directory tree.

    repo/
        notes.txt
        docs/
            guide/
        src/
    """
    root = tmp_path / "repo"
    (root / "docs" / "guide").mkdir(parents=True)
    (root / "src").mkdir()
    (root / "notes.txt").write_text("notes\n")
    return root


@pytest.fixture
def make_runner() -> type[RecordingRunner]:
    """Get the recording runner class for tests that need a custom one."""
    return RecordingRunner
