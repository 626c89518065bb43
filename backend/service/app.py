"""
GitWatch Service.

Wires the watcher and committer packages together from settings.
Requires Python 3.11+.
"""

from pathlib import Path
from typing import Any

from committer.git import GitCommitter
from committer.inactivity import InactivityTracker
from committer.process_runner import ProcessRunner
from committer.strategy import CommitStrategy, create_strategy
from watcher.event_loop import EventLoop
from watcher.registry import WatchRegistry
from watcher.watch_service import EventKind, WatchService
from utils.config import Settings, get_settings
from utils.logger import LoggerMixin


class GitWatch(LoggerMixin):
    """
    Watches a directory tree and commits changed files.

    Construction registers the whole tree, so startup failures surface
    before run() is called.
    """

    def __init__(
        self,
        root: Path,
        settings: Settings | None = None,
        watch_service: WatchService | None = None,
        runner: ProcessRunner | None = None,
    ) -> None:
        """
        Initialize the service.

        Args:
            root: Directory tree to watch
            settings: Application settings (defaults to get_settings())
            watch_service: Notification source (a new WatchService by default)
            runner: Process runner used for git

        Raises:
            NotADirectoryError: If root is not a directory
            OSError: If notifications cannot be set up or the tree cannot be walked
        """
        self._settings = settings or get_settings()
        self._root = Path(root).absolute()

        if not self._root.is_dir():
            raise NotADirectoryError(f"Not a directory: {self._root}")

        watcher_settings = self._settings.watcher
        commit_settings = self._settings.commit

        kinds = [EventKind.MODIFY]
        if watcher_settings.register_new_directories:
            kinds.append(EventKind.CREATE)

        self._service = watch_service or WatchService()
        self._registry = WatchRegistry(self._service, kinds=kinds)

        try:
            self._registry.register_tree(self._root)
        except OSError:
            self._service.close()
            raise

        self._committer = GitCommitter(
            runner=runner,
            message=commit_settings.message,
            git_executable=commit_settings.git_executable,
            verify_exit_status=commit_settings.verify_exit_status,
        )
        self._tracker = InactivityTracker(
            self._committer,
            inactivity_period=commit_settings.inactivity_period_seconds,
            interval=commit_settings.tick_interval_seconds,
        )
        self._strategy = create_strategy(
            commit_settings.mode,
            self._committer,
            self._tracker,
            settle_delay=commit_settings.settle_delay_seconds,
        )
        self._loop = EventLoop(
            self._service,
            self._registry,
            self._strategy,
            poll_timeout=watcher_settings.poll_timeout_seconds,
            backup_suffix=watcher_settings.backup_suffix,
            ignore_patterns=watcher_settings.ignore_patterns,
            register_new_directories=watcher_settings.register_new_directories,
        )

    def run(self) -> None:
        """Watch until no directories are left or the loop is interrupted."""
        self.log.info(
            "watching_directory",
            path=str(self._root),
            mode=self._settings.commit.mode.value,
            directories=len(self._registry),
        )

        if self._settings.is_deferred:
            self._tracker.start()

        try:
            self._loop.run()
        finally:
            self._tracker.stop()
            self._service.close()

    def stop(self) -> None:
        """Ask a running loop to finish."""
        self._service.close()

    @property
    def root(self) -> Path:
        """Get the watched root directory."""
        return self._root

    @property
    def registry(self) -> WatchRegistry:
        """Get the watch registry."""
        return self._registry

    @property
    def tracker(self) -> InactivityTracker:
        """Get the inactivity tracker."""
        return self._tracker

    @property
    def strategy(self) -> CommitStrategy:
        """Get the active commit strategy."""
        return self._strategy

    @property
    def loop(self) -> EventLoop:
        """Get the event loop."""
        return self._loop

    def __enter__(self) -> "GitWatch":
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.stop()
