"""Protocol definition for repository backends."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from .models import WorktreeInfo


class RepositoryBackend(Protocol):
    """Capabilities the orchestrator and cleanup engine need from version control.

    Mutating operations raise :class:`~github_local_pilot.exceptions.BackendError`
    subclasses on failure. ``create_worktree`` raises
    :class:`~github_local_pilot.exceptions.BranchInUseError` when the branch is
    already checked out by another worktree.
    """

    def find_main_repo(self, base_dir: Path) -> Path | None: ...

    def clone(self, org: str, repo: str, target: Path) -> None: ...

    def fetch(self, repo_dir: Path) -> None: ...

    def fetch_in_background(self, repo_dir: Path) -> None: ...

    def default_branch(self, repo_dir: Path) -> str: ...

    def create_worktree(
        self,
        main_repo: Path,
        target: Path,
        ref: str,
        *,
        create_branch: bool = False,
        base_branch: str | None = None,
        detach: bool = False,
    ) -> None: ...

    def checkout_pr(self, worktree: Path, pr_number: str) -> None: ...

    def pr_head_branch(self, org: str, repo: str, pr_number: str) -> str | None: ...

    def remote_branch_exists(self, repo_dir: Path, branch: str) -> bool: ...

    def local_branch_exists(self, repo_dir: Path, branch: str) -> bool: ...

    def current_branch(self, repo_dir: Path) -> str | None: ...

    def list_worktrees(self, main_repo: Path) -> list[WorktreeInfo]: ...

    def remove_worktree(self, main_repo: Path, path: Path) -> None: ...

    def prune(self, main_repo: Path) -> None: ...

    def behind_upstream_count(self, repo_dir: Path) -> int: ...

    def has_local_changes(self, repo_dir: Path) -> bool: ...


__all__ = ["RepositoryBackend"]
