"""
GitWatch Committer Package.

Git invocation and the immediate/deferred commit policies.
Requires Python 3.11+.
"""

from committer.process_runner import CommandResult, ProcessRunner
from committer.git import CommitResult, GitCommitter
from committer.inactivity import InactivityTracker, PendingPaths
from committer.strategy import (
    CommitStrategy,
    DeferredCommitStrategy,
    ImmediateCommitStrategy,
    create_strategy,
)

__all__ = [
    "CommandResult",
    "ProcessRunner",
    "CommitResult",
    "GitCommitter",
    "InactivityTracker",
    "PendingPaths",
    "CommitStrategy",
    "DeferredCommitStrategy",
    "ImmediateCommitStrategy",
    "create_strategy",
]
