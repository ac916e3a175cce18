"""Custom error hierarchy for git-smart-branch-delete."""

from __future__ import annotations


class BranchDeleteError(RuntimeError):
    """Base error for the CLI."""


class GitCommandError(BranchDeleteError):
    """Raised when an underlying git command fails."""

    def __init__(
        self,
        command: list[str],
        returncode: int,
        *,
        stdout: str | None = None,
        stderr: str | None = None,
    ):
        self.command = command
        self.returncode = returncode
        self.stdout = stdout or ""
        self.stderr = stderr or ""
        message = f"git command failed (exit {returncode}): {' '.join(command)}"
        details = "\n".join(
            section
            for section in (self.stdout.strip(), self.stderr.strip())
            if section
        )
        if details:
            message = f"{message}\n{details}"
        super().__init__(message)

    @property
    def details(self) -> str:
        """The most useful single line of output git produced."""

        return self.stderr.strip() or self.stdout.strip() or f"git exited with status {self.returncode}"


class ValidationError(BranchDeleteError):
    """Raised when user input fails validation."""


class InvalidBranchNameError(ValidationError):
    """Raised when a branch or remote name is unsafe to pass to git."""

    def __init__(self, name: str, reason: str, *, kind: str = "branch"):
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid {kind} name {name!r}: {reason}")


class ConfigError(ValidationError):
    """Raised when a configuration file or option value is malformed."""


class RepositoryAccessError(BranchDeleteError):
    """Raised when the repository cannot be inspected at all."""


class NoDeletableSelectionError(BranchDeleteError):
    """Raised when every selected branch was filtered out by the safety net."""

    def __init__(self, message: str = "No deletable branches selected (check your protected branches)."):
        super().__init__(message)


class UserAbort(BranchDeleteError):
    """Raised when the user cancels an interactive flow."""


__all__ = [
    "BranchDeleteError",
    "GitCommandError",
    "ValidationError",
    "InvalidBranchNameError",
    "ConfigError",
    "RepositoryAccessError",
    "NoDeletableSelectionError",
    "UserAbort",
]
