"""Custom error hierarchy for github-local-pilot."""

from __future__ import annotations

from pathlib import Path


class GhlpError(RuntimeError):
    """Base error for the CLI."""


class ParseError(GhlpError):
    """Raised when a reference URL cannot be parsed."""

    UNSUPPORTED_SCHEME = "unsupported_scheme"
    MALFORMED = "malformed"

    def __init__(self, url: str, reason: str, detail: str | None = None):
        self.url = url
        self.reason = reason
        message = f"Invalid URL: {url}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class BackendError(GhlpError):
    """Raised when the repository backend cannot complete an operation."""


class GitCommandError(BackendError):
    """Raised when an underlying git or gh command fails."""

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
        message = f"command failed (exit {returncode}): {' '.join(command)}"
        details = "\n".join(
            section
            for section in (self.stdout.strip(), self.stderr.strip())
            if section
        )
        if details:
            message = f"{message}\n{details}"
        super().__init__(message)


class BranchInUseError(GitCommandError):
    """Raised when a branch is already checked out by another worktree."""

    def __init__(self, branch: str, existing_path: Path, source: GitCommandError):
        super().__init__(
            source.command,
            source.returncode,
            stdout=source.stdout,
            stderr=source.stderr,
        )
        self.branch = branch
        self.existing_path = existing_path


class MigrationError(GhlpError):
    """Raised when renaming a legacy main repository directory fails."""


class ConfigError(GhlpError):
    """Raised when a configuration file is missing or unreadable."""


class ValidationError(GhlpError):
    """Raised when user input fails validation."""


class WorkspaceConflictError(GhlpError):
    """Raised when a target directory is occupied by a different checkout."""


class UserAbort(GhlpError):
    """Raised when the user cancels an interactive flow."""


__all__ = [
    "GhlpError",
    "ParseError",
    "BackendError",
    "GitCommandError",
    "BranchInUseError",
    "MigrationError",
    "ConfigError",
    "ValidationError",
    "WorkspaceConflictError",
    "UserAbort",
]
