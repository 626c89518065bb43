"""
GitWatch Process Runner.

Runs external commands synchronously.
Requires Python 3.11+.
"""

import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from utils.logger import LoggerMixin


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external command invocation."""

    args: tuple[str, ...]
    cwd: Path
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        """Check if the command exited with status zero."""
        return self.returncode == 0


class ProcessRunner(LoggerMixin):
    """
    Runs a command in a working directory and waits for it to exit.

    There is no timeout: a hung command blocks the caller.
    """

    def run(self, args: Sequence[str], cwd: Path) -> CommandResult:
        """
        Run a command to completion.

        Args:
            args: Program and its arguments
            cwd: Working directory for the process

        Returns:
            CommandResult with the exit status and captured output

        Raises:
            OSError: If the process cannot be started
        """
        argv = tuple(str(a) for a in args)
        completed = subprocess.run(
            argv,
            cwd=cwd,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            errors="replace",
        )

        result = CommandResult(
            args=argv,
            cwd=Path(cwd),
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )

        if not result.ok:
            self.log.warning(
                "command_failed",
                command=" ".join(argv),
                cwd=str(cwd),
                returncode=result.returncode,
                stderr=result.stderr.strip(),
            )
        return result
