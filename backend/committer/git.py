"""
GitWatch Git Committer.

Stages and commits a single file.
Requires Python 3.11+.
"""

from dataclasses import dataclass
from pathlib import Path

from committer.process_runner import CommandResult, ProcessRunner
from utils.errors import CommitError
from utils.logger import LoggerMixin


@dataclass(frozen=True)
class CommitResult:
    """Outcome of an add+commit sequence for one file."""

    path: Path
    add: CommandResult
    commit: CommandResult

    @property
    def ok(self) -> bool:
        """Check if both git steps exited with status zero."""
        return self.add.ok and self.commit.ok


class GitCommitter(LoggerMixin):
    """
    Runs `git add <path>` followed by `git commit -m <message>`.

    Both commands run in the file's parent directory so git discovers the
    repository the file belongs to. By default exit statuses are reported
    but not enforced.
    """

    def __init__(
        self,
        runner: ProcessRunner | None = None,
        message: str = "Cleanup",
        git_executable: str = "git",
        verify_exit_status: bool = False,
    ) -> None:
        """
        Initialize the committer.

        Args:
            runner: Process runner (a new ProcessRunner by default)
            message: Commit message for every commit
            git_executable: git program to invoke
            verify_exit_status: Raise CommitError when a step fails
        """
        self._runner = runner or ProcessRunner()
        self._message = message
        self._git = git_executable
        self._verify = verify_exit_status

    @property
    def message(self) -> str:
        """Get the commit message."""
        return self._message

    def commit(self, path: Path) -> CommitResult:
        """
        Stage and commit one file.

        Args:
            path: Absolute path of the changed file

        Returns:
            CommitResult with both command outcomes

        Raises:
            OSError: If git cannot be started
            CommitError: If verification is on and a step fails
        """
        path = Path(path)
        cwd = path.parent

        self.log.info("committing_file", path=str(path))

        add = self._runner.run([self._git, "add", str(path)], cwd)
        if self._verify and not add.ok:
            raise CommitError(f"git add failed for {path} ({add.returncode})", add)

        commit = self._runner.run([self._git, "commit", "-m", self._message], cwd)
        if self._verify and not commit.ok:
            raise CommitError(f"git commit failed for {path} ({commit.returncode})", commit)

        return CommitResult(path=path, add=add, commit=commit)
