"""
GitWatch Configuration Module.

Centralizes all configuration settings using Pydantic Settings.
Requires Python 3.11+.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file into os.environ at module import time
# This ensures nested BaseSettings classes can read the values
_env_file = Path(__file__).parent.parent / ".env"
if _env_file.exists():
    load_dotenv(_env_file)
else:
    # Try current working directory
    load_dotenv()


class CommitMode(str, Enum):
    """When a qualifying change is committed."""

    IMMEDIATE = "immediate"
    DEFERRED = "deferred"


class WatcherSettings(BaseSettings):
    """Directory watch configuration settings."""

    model_config = SettingsConfigDict(env_prefix="WATCHER_", frozen=True)

    poll_timeout_seconds: float = Field(
        default=60.0, gt=0, description="Bounded wait for change notifications"
    )
    backup_suffix: str = Field(default="~", description="Editor backup file suffix to skip")
    ignore_patterns: list[str] = Field(
        default=[".git"],
        description="Glob patterns matched against each path component",
    )
    register_new_directories: bool = Field(
        default=False,
        description="Watch directories created after startup",
    )

    @field_validator("ignore_patterns", mode="before")
    @classmethod
    def parse_ignore_patterns(cls, v: str | list[str]) -> list[str]:
        """Parse ignore patterns from comma-separated string or list."""
        if isinstance(v, str):
            return [p.strip() for p in v.split(",") if p.strip()]
        return v


class CommitSettings(BaseSettings):
    """Commit policy configuration settings."""

    model_config = SettingsConfigDict(env_prefix="COMMIT_", frozen=True)

    mode: CommitMode = Field(default=CommitMode.IMMEDIATE)
    message: str = Field(default="Cleanup", min_length=1)
    settle_delay_ms: int = Field(default=2000, ge=0, description="Pause before an immediate commit")
    inactivity_period_seconds: float = Field(
        default=600.0, gt=0, description="Quiet time before a deferred commit"
    )
    tick_interval_seconds: float = Field(
        default=60.0, gt=0, description="How often pending files are re-evaluated"
    )
    git_executable: str = Field(default="git")
    verify_exit_status: bool = Field(
        default=False,
        description="Treat a non-zero git exit status as a failed commit",
    )

    @property
    def settle_delay_seconds(self) -> float:
        """Settle delay expressed in seconds."""
        return self.settle_delay_ms / 1000.0


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(env_prefix="LOG_", frozen=True)

    level: str = Field(default="INFO")
    format: str = Field(default="console")  # "json" or "console"


class Settings(BaseSettings):
    """Main application settings aggregating all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Application metadata
    app_name: str = Field(default="GitWatch")
    app_version: str = Field(default="0.1.0")
    environment: str = Field(default="development")

    # Sub-settings
    watcher: WatcherSettings = Field(default_factory=WatcherSettings)
    commit: CommitSettings = Field(default_factory=CommitSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @property
    def is_deferred(self) -> bool:
        """Check if commits wait for files to go quiet."""
        return self.commit.mode is CommitMode.DEFERRED


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns singleton instance of Settings for performance.
    """
    return Settings()
