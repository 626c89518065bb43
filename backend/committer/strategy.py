"""
GitWatch Commit Strategies.

Immediate and deferred commit policies.
Requires Python 3.11+.
"""

import time
from collections.abc import Callable
from pathlib import Path

from committer.git import CommitResult, GitCommitter
from committer.inactivity import InactivityTracker
from utils.config import CommitMode
from utils.logger import LoggerMixin


class CommitStrategy(LoggerMixin):
    """Decides what happens to a file that qualifies for a commit."""

    mode: CommitMode

    def submit(self, path: Path) -> CommitResult | None:
        """Handle a changed file."""
        raise NotImplementedError


class ImmediateCommitStrategy(CommitStrategy):
    """
    Commits right after a change.

    Waits the settle delay first so the writer can finish flushing, then
    commits on the calling thread.
    """

    mode = CommitMode.IMMEDIATE

    def __init__(
        self,
        committer: GitCommitter,
        settle_delay: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._committer = committer
        self._settle_delay = settle_delay
        self._sleep = sleep

    def submit(self, path: Path) -> CommitResult:
        if self._settle_delay > 0:
            self._sleep(self._settle_delay)
        return self._committer.commit(path)


class DeferredCommitStrategy(CommitStrategy):
    """Hands changed files to the inactivity tracker."""

    mode = CommitMode.DEFERRED

    def __init__(self, tracker: InactivityTracker) -> None:
        self._tracker = tracker

    def submit(self, path: Path) -> None:
        self._tracker.add(path)
        return None


def create_strategy(
    mode: CommitMode,
    committer: GitCommitter,
    tracker: InactivityTracker,
    settle_delay: float = 2.0,
) -> CommitStrategy:
    """
    Build the strategy for a commit mode.

    Args:
        mode: Commit mode from settings
        committer: Committer for immediate commits
        tracker: Tracker for deferred commits
        settle_delay: Seconds to wait before an immediate commit

    Returns:
        The matching CommitStrategy
    """
    if CommitMode(mode) is CommitMode.DEFERRED:
        return DeferredCommitStrategy(tracker)
    return ImmediateCommitStrategy(committer, settle_delay=settle_delay)
