"""Resolve a reference to a ready-to-use checkout under the workspace.

Per repository the flow moves through three states: no main clone, main clone
present, target materialized. Every step depends on the previous one so the
backend calls run sequentially; a run interrupted halfway is resumed by calling
``open`` again with the same reference.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console

from . import render
from .backend import RepositoryBackend
from .bootstrap import run_bootstrap
from .exceptions import BackendError, BranchInUseError, MigrationError, WorkspaceConflictError
from .fs import is_git_checkout, remove_tree, rewrite_pointer_files, worktree_pointer_files
from .mappings import apply_mappings, is_mapped, resolve_origin_type
from .metadata import Metadata, read_metadata, write_metadata
from .models import MappingResult, OpenResult, OriginType, ParsedReference, RefKind, WorkspaceConfig
from .paths import TEMP_CLONE_NAME, main_repo_dir, repo_base_dir, resolve_target_dir
from .url_parser import format_url, parse_url

logger = logging.getLogger(__name__)

_LOCKS: dict[Path, threading.Lock] = {}
_LOCKS_GUARD = threading.Lock()


def repo_lock(base_dir: Path) -> threading.Lock:
    """Return the in-process lock serializing operations on one repository."""

    key = Path(base_dir).absolute()
    with _LOCKS_GUARD:
        return _LOCKS.setdefault(key, threading.Lock())


@dataclass(frozen=True, slots=True)
class _Request:
    ref: ParsedReference
    original_url: str
    resolved_url: str
    custom_branch: str | None
    origin_type: OriginType


class WorkspaceOrchestrator:
    def __init__(
        self,
        backend: RepositoryBackend,
        workspace: Path,
        *,
        console: Console | None = None,
        bootstrap: bool = True,
    ) -> None:
        self.backend = backend
        self.workspace = Path(workspace)
        self.console = console or render.console
        self.bootstrap = bootstrap

    def open(
        self,
        ref: ParsedReference,
        *,
        original_url: str | None = None,
        mapping: MappingResult | None = None,
    ) -> OpenResult:
        original_url = original_url or format_url(ref)
        mapping = mapping or MappingResult(url=original_url)
        request = _Request(
            ref=ref,
            original_url=original_url,
            resolved_url=mapping.url,
            custom_branch=mapping.branch,
            origin_type=resolve_origin_type(original_url, mapping),
        )
        self.console.print(f"\n[cyan]📂 Opening {ref.kind.value}: {ref.slug}[/cyan]")
        if ref.identifier:
            self.console.print(f"[dim]   {ref.kind.label}: {ref.identifier}[/dim]")
        if request.custom_branch:
            self.console.print(f"[dim]   Custom branch: {request.custom_branch}[/dim]")

        with repo_lock(repo_base_dir(self.workspace, ref.org, ref.repo)):
            return self._open(request)

    def _open(self, request: _Request) -> OpenResult:
        ref = request.ref
        main_repo, default_branch, cloned = self.ensure_main_repo(ref.org, ref.repo)
        if cloned and ref.kind is RefKind.REPO:
            return self._finalize(request, main_repo, default_branch)

        target = resolve_target_dir(self.workspace, ref, request.custom_branch, default_branch)
        if is_git_checkout(target):
            return self._reuse(request, target)

        with self.console.status("Fetching latest changes…"):
            self.backend.fetch(main_repo)

        if ref.kind is RefKind.REPO:
            return self._finalize(request, main_repo, default_branch)
        if ref.kind is RefKind.BRANCH:
            return self._open_branch(request, main_repo, target)
        if ref.kind is RefKind.PR:
            return self._open_pr(request, main_repo, default_branch)
        if ref.kind is RefKind.ISSUE:
            return self._open_issue(request, main_repo, target, default_branch)
        return self._open_tag(request, main_repo, target)

    def ensure_main_repo(self, org: str, repo: str) -> tuple[Path, str, bool]:
        """Return ``(main_repo, default_branch, freshly_cloned)``, cloning when needed."""

        base = repo_base_dir(self.workspace, org, repo)
        main_repo = self.backend.find_main_repo(base)
        if main_repo is None:
            return self._clone_main_repo(org, repo, base)

        default_branch = self.backend.default_branch(main_repo)
        try:
            main_repo = self.migrate_main_repo(main_repo, main_repo_dir(self.workspace, org, repo, default_branch))
        except MigrationError as exc:
            logger.warning("%s; keeping %s for now.", exc, main_repo)
        return main_repo, default_branch, False

    def _clone_main_repo(self, org: str, repo: str, base: Path) -> tuple[Path, str, bool]:
        scratch = base / TEMP_CLONE_NAME
        if scratch.exists():
            # A main repo would have been found; this is an interrupted clone.
            remove_tree(scratch)
        with self.console.status(f"Cloning {org}/{repo}…"):
            self.backend.clone(org, repo, scratch)
        default_branch = self.backend.default_branch(scratch)
        main_repo = main_repo_dir(self.workspace, org, repo, default_branch)
        try:
            scratch.rename(main_repo)
        except OSError as exc:
            raise BackendError(f"Unable to move clone into {main_repo}: {exc}") from exc
        render.success("Repository cloned", self.console)
        return main_repo, default_branch, True

    def migrate_main_repo(self, current: Path, expected: Path) -> Path:
        """Rename a legacy main repo directory to ``expected``.

        Only runs when the names differ and ``expected`` is free. Worktree pointer
        files referencing the old location are rewritten after the rename.
        """

        if current == expected or expected.exists():
            return current
        base = current.parent
        # git records absolute paths, possibly with symlinks resolved.
        resolved_current = current.resolve()
        try:
            current.rename(expected)
        except OSError as exc:
            raise MigrationError(f"Unable to rename {current} to {expected}: {exc}") from exc
        try:
            pointers = worktree_pointer_files(expected, base)
            rewrite_pointer_files(pointers, current, expected)
            if resolved_current != current:
                rewrite_pointer_files(pointers, resolved_current, expected.resolve())
        except OSError as exc:
            raise MigrationError(f"Renamed {current} but could not update worktree pointers: {exc}") from exc
        self.console.print(f"[dim]  Migrated: {current.name} → {expected.name}[/dim]")
        return expected

    def _reuse(self, request: _Request, target: Path, branch: str | None = None) -> OpenResult:
        ref = request.ref
        if ref.kind is RefKind.BRANCH:
            recorded = read_metadata(target) or {}
            if recorded.get("kind") == RefKind.BRANCH.value and recorded.get("branch") not in (None, ref.identifier):
                raise WorkspaceConflictError(
                    f"{target} already holds branch '{recorded['branch']}', not '{ref.identifier}'."
                )
        behind = self.backend.behind_upstream_count(target)
        if behind > 0:
            render.warning(f"{behind} commit(s) behind upstream, run 'git pull' to update", self.console)
        if self.backend.has_local_changes(target):
            render.warning("Local uncommitted changes detected", self.console)
        self.backend.fetch_in_background(target)
        render.success(f"Ready: {target}", self.console)
        return OpenResult(path=target, ref=ref, branch=branch or self.backend.current_branch(target), created=False)

    def _open_branch(self, request: _Request, main_repo: Path, target: Path) -> OpenResult:
        branch = request.ref.identifier or ""
        self.console.print(f"[yellow]  Creating worktree for branch: {branch}[/yellow]")
        try:
            if self.backend.local_branch_exists(main_repo, branch):
                self.backend.create_worktree(main_repo, target, branch)
            else:
                self.backend.create_worktree(main_repo, target, branch, create_branch=True, base_branch=branch)
        except BranchInUseError as exc:
            return self._reuse_existing(request, exc)
        return self._finalize(request, target, branch)

    def _open_pr(self, request: _Request, main_repo: Path, default_branch: str) -> OpenResult:
        ref = request.ref
        number = ref.identifier or ""
        with self.console.status(f"Getting PR #{number} info…"):
            head = self.backend.pr_head_branch(ref.org, ref.repo, number)
        if head is None:
            logger.info("Could not resolve the head branch of PR #%s; using pr-%s.", number, number)
        target = resolve_target_dir(self.workspace, ref, head or request.custom_branch, default_branch)
        if is_git_checkout(target):
            return self._reuse(request, target)

        suffix = f" ({head})" if head else ""
        self.console.print(f"[yellow]  Creating worktree for PR #{number}{suffix}…[/yellow]")
        self.backend.create_worktree(main_repo, target, "HEAD", detach=True)
        with self.console.status(f"Checking out PR #{number}…"):
            self.backend.checkout_pr(target, number)
        return self._finalize(request, target, head or f"pr-{number}")

    def _open_issue(self, request: _Request, main_repo: Path, target: Path, default_branch: str) -> OpenResult:
        number = request.ref.identifier or ""
        branch = request.custom_branch or f"issue-{number}"
        self.console.print(f"[yellow]  Creating worktree for Issue #{number} on {branch}[/yellow]")
        try:
            if self.backend.local_branch_exists(main_repo, branch):
                self.backend.create_worktree(main_repo, target, branch)
            elif self.backend.remote_branch_exists(main_repo, branch):
                self.backend.create_worktree(main_repo, target, branch, create_branch=True, base_branch=branch)
            else:
                self.backend.create_worktree(
                    main_repo, target, branch, create_branch=True, base_branch=default_branch
                )
        except BranchInUseError as exc:
            return self._reuse_existing(request, exc)
        return self._finalize(request, target, branch)

    def _open_tag(self, request: _Request, main_repo: Path, target: Path) -> OpenResult:
        tag = request.ref.identifier or ""
        self.console.print(f"[yellow]  Creating worktree for tag: {tag}[/yellow]")
        self.backend.create_worktree(main_repo, target, f"refs/tags/{tag}", detach=True)
        return self._finalize(request, target, tag)

    def _reuse_existing(self, request: _Request, exc: BranchInUseError) -> OpenResult:
        render.warning(f"Branch already in use at: {exc.existing_path}", self.console)
        return self._reuse(request, exc.existing_path, exc.branch)

    def _finalize(self, request: _Request, target: Path, branch: str) -> OpenResult:
        if self.bootstrap:
            run_bootstrap(target)
        metadata = Metadata.for_reference(
            request.ref,
            branch=branch,
            original_url=request.original_url,
            resolved_url=request.resolved_url,
            origin_type=request.origin_type,
        )
        write_metadata(target, metadata)
        render.success(f"Ready: {target}", self.console)
        return OpenResult(path=target, ref=request.ref, branch=branch, created=True)


def open_url(
    url: str,
    *,
    workspace: Path,
    backend: RepositoryBackend,
    config: WorkspaceConfig | None = None,
    console: Console | None = None,
    bootstrap: bool = True,
) -> OpenResult:
    """Map, parse and open ``url`` in ``workspace``."""

    config = config or WorkspaceConfig()
    console = console or render.console
    mapping = apply_mappings(url, config.mappings)
    if is_mapped(url, mapping):
        console.print(f"[dim]  Mapped: {url}[/dim]")
        console.print(f"[dim]       → {mapping.url}[/dim]")
    ref = parse_url(mapping.url)
    orchestrator = WorkspaceOrchestrator(backend, workspace, console=console, bootstrap=bootstrap)
    return orchestrator.open(ref, original_url=url, mapping=mapping)


__all__ = ["WorkspaceOrchestrator", "open_url", "repo_lock"]
