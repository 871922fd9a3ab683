"""Classify and remove worktrees that no longer track a live remote branch."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from .backend import RepositoryBackend
from .exceptions import BackendError, GhlpError
from .fs import iter_child_dirs, remove_tree
from .models import Classification, CleanOptions, CleanReport, CleanupEntry, RepoCleanup, WorktreeInfo
from .orchestrator import repo_lock

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8


class CleanupEngine:
    def __init__(self, backend: RepositoryBackend, workspace: Path, *, max_workers: int = DEFAULT_MAX_WORKERS) -> None:
        self.backend = backend
        self.workspace = Path(workspace)
        self.max_workers = max_workers

    def repo_roots(self, target: str | Path | None = None) -> list[Path]:
        """Resolve the ``{org}/{repo}`` directories to clean.

        ``None`` means every repository in the workspace. A relative ``org/repo``
        is looked up in the workspace; anything else is used as a path.
        """

        if target is None:
            return [repo for org in iter_child_dirs(self.workspace) for repo in iter_child_dirs(org)]
        path = Path(target).expanduser()
        if not path.is_absolute() and "/" in str(target):
            return [self.workspace / path]
        return [path]

    def clean(self, target: str | Path | None = None, options: CleanOptions | None = None) -> CleanReport:
        options = options or CleanOptions()
        report = CleanReport(dry_run=options.dry_run)
        for repo_root in self.repo_roots(target):
            try:
                result = self.clean_repo(repo_root, options)
            except (GhlpError, OSError) as exc:
                logger.error("Cleaning %s failed: %s", repo_root, exc)
                result = RepoCleanup(repo_root=repo_root, error=str(exc))
            report.repos.append(result)
        return report

    def clean_repo(self, repo_root: Path, options: CleanOptions) -> RepoCleanup:
        if not repo_root.is_dir():
            return RepoCleanup(repo_root=repo_root, skipped_reason="directory not found")
        if options.force_delete_all:
            if not options.dry_run:
                with repo_lock(repo_root):
                    remove_tree(repo_root)
            return RepoCleanup(repo_root=repo_root, force_deleted=True)

        main_repo = self.backend.find_main_repo(repo_root)
        if main_repo is None:
            return RepoCleanup(repo_root=repo_root, skipped_reason="no main repository")

        with repo_lock(repo_root):
            entries = self.classify(repo_root, main_repo)
            candidates = [entry for entry in entries if entry.classification.removable]
            if options.dry_run:
                for entry in candidates:
                    entry.cleaned = True
            else:
                self._remove_all(main_repo, candidates)
        return RepoCleanup(repo_root=repo_root, entries=entries)

    def classify(self, repo_root: Path, main_repo: Path) -> list[CleanupEntry]:
        """Classify every registered worktree plus unregistered directories under ``repo_root``."""

        worktrees = self.backend.list_worktrees(main_repo)
        main_resolved = main_repo.resolve()
        tracked = [wt for wt in worktrees if not self._is_main(wt, main_resolved) and wt.branch]
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            remote_flags = list(pool.map(lambda wt: self._has_remote(main_repo, wt.branch), tracked))
        has_remote = {wt.path: flag for wt, flag in zip(tracked, remote_flags)}

        entries: list[CleanupEntry] = []
        for wt in worktrees:
            if self._is_main(wt, main_resolved):
                classification = Classification.MAIN
            elif wt.branch is None:
                classification = Classification.DETACHED
            elif has_remote[wt.path]:
                classification = Classification.REMOTE
            else:
                classification = Classification.LOCAL
            entries.append(CleanupEntry(path=wt.path, classification=classification, branch=wt.branch))

        known = {wt.path.resolve() for wt in worktrees} | {main_resolved}
        for child in iter_child_dirs(repo_root):
            if child.resolve() not in known:
                entries.append(CleanupEntry(path=child, classification=Classification.ORPHAN))
        return entries

    @staticmethod
    def _is_main(worktree: WorktreeInfo, main_resolved: Path) -> bool:
        return worktree.is_main or worktree.path.resolve() == main_resolved

    def _has_remote(self, main_repo: Path, branch: str) -> bool:
        try:
            return self.backend.remote_branch_exists(main_repo, branch)
        except BackendError as exc:
            # Unknown means keep.
            logger.warning("Could not check remote branch %s: %s", branch, exc)
            return True

    def _remove_all(self, main_repo: Path, candidates: list[CleanupEntry]) -> None:
        if not candidates:
            return
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            needs_prune = list(pool.map(lambda entry: self._remove(main_repo, entry), candidates))
        if any(needs_prune):
            try:
                self.backend.prune(main_repo)
            except BackendError as exc:
                logger.warning("git worktree prune failed in %s: %s", main_repo, exc)

    def _remove(self, main_repo: Path, entry: CleanupEntry) -> bool:
        """Remove one candidate; return whether the worktree registry needs pruning."""

        if entry.classification is not Classification.ORPHAN:
            try:
                self.backend.remove_worktree(main_repo, entry.path)
                entry.cleaned = True
                return False
            except BackendError as exc:
                logger.debug("git worktree remove failed for %s, deleting directly: %s", entry.path, exc)
        try:
            remove_tree(entry.path)
        except OSError as exc:
            logger.warning("Failed to remove %s: %s", entry.path, exc)
            entry.error = str(exc)
            return False
        entry.cleaned = True
        return True


__all__ = ["CleanupEngine"]
