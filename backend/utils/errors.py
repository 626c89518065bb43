"""
GitWatch Exceptions.

Requires Python 3.11+.
"""

from typing import Any


class GitWatchError(Exception):
    """Base class for GitWatch errors."""


class CommitError(GitWatchError):
    """A git step exited with a non-zero status while verification was on."""

    def __init__(self, message: str, result: Any = None) -> None:
        super().__init__(message)
        self.result = result


class ClosedWatchServiceError(GitWatchError):
    """The watch service was closed while (or before) polling."""
