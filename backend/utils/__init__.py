"""
GitWatch Utilities Package.

Configuration and logging shared across all packages.
Requires Python 3.11+.
"""

from utils.config import CommitMode, Settings, get_settings
from utils.errors import ClosedWatchServiceError, CommitError, GitWatchError
from utils.logger import configure_logging, get_logger, LoggerMixin

__all__ = [
    "CommitMode",
    "Settings",
    "get_settings",
    "GitWatchError",
    "CommitError",
    "ClosedWatchServiceError",
    "configure_logging",
    "get_logger",
    "LoggerMixin",
]
