"""Thin wrappers around the git and gh CLIs."""

from __future__ import annotations

import logging
import os
import re
import subprocess
from pathlib import Path
from typing import Sequence

import requests

from .exceptions import BackendError, BranchInUseError, GitCommandError
from .fs import ensure_directory, find_main_repo
from .models import WorktreeInfo
from .paths import METADATA_FILENAME

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
LS_REMOTE_NO_MATCH = 2

_BRANCH_IN_USE = re.compile(r"'(?P<branch>[^']+)' is already (?:checked out|used by worktree) at '(?P<path>[^']+)'")


def run_command(
    command: Sequence[str],
    *,
    cwd: Path | None = None,
    check: bool = True,
) -> subprocess.CompletedProcess[str]:
    """Execute a command and optionally raise on failure."""

    command = list(command)
    logger.debug("Running %s (cwd=%s)", " ".join(command), cwd or ".")
    try:
        result = subprocess.run(
            command,
            cwd=str(cwd) if cwd else None,
            text=True,
            capture_output=True,
        )
    except FileNotFoundError as exc:
        raise BackendError(f"Required binary not found in PATH: {command[0]}") from exc
    if check and result.returncode != 0:
        raise GitCommandError(command, result.returncode, stdout=result.stdout, stderr=result.stderr)
    return result


def run_git(
    args: Sequence[str],
    *,
    cwd: Path | None = None,
    check: bool = True,
) -> subprocess.CompletedProcess[str]:
    return run_command(["git", *args], cwd=cwd, check=check)


def run_gh(
    args: Sequence[str],
    *,
    cwd: Path | None = None,
    check: bool = True,
) -> subprocess.CompletedProcess[str]:
    return run_command(["gh", *args], cwd=cwd, check=check)


def parse_worktree_porcelain(text: str) -> list[WorktreeInfo]:
    """Parse ``git worktree list --porcelain``; the first entry is the main worktree."""

    entries: list[WorktreeInfo] = []
    current: dict[str, str | bool] = {}
    for line in text.splitlines() + [""]:
        if not line.strip():
            if current.get("worktree"):
                branch_value = current.get("branch")
                entries.append(
                    WorktreeInfo(
                        path=Path(str(current["worktree"])),
                        branch=_strip_heads(str(branch_value)) if branch_value else None,
                        is_main=not entries,
                        head=str(current["HEAD"]) if current.get("HEAD") else None,
                        is_locked=bool(current.get("locked")),
                        is_prunable=bool(current.get("prunable")),
                    )
                )
            current = {}
            continue
        key, _, value = line.partition(" ")
        if key in {"locked", "prunable", "detached", "bare"}:
            current[key] = True
        else:
            current[key] = value.strip()
    return entries


def parse_branch_in_use(error: GitCommandError) -> tuple[str, Path] | None:
    match = _BRANCH_IN_USE.search(error.stderr) or _BRANCH_IN_USE.search(error.stdout)
    if not match:
        return None
    return match.group("branch"), Path(match.group("path"))


def _strip_heads(value: str) -> str:
    prefix = "refs/heads/"
    if value.startswith(prefix):
        return value[len(prefix) :]
    return value


class GitBackend:
    """Repository backend that shells out to git, gh and the GitHub REST API."""

    def __init__(self, remote_base: str = "https://github.com", api_url: str = GITHUB_API_URL) -> None:
        self.remote_base = remote_base.rstrip("/")
        self.api_url = api_url.rstrip("/")

    def find_main_repo(self, base_dir: Path) -> Path | None:
        return find_main_repo(base_dir)

    def clone(self, org: str, repo: str, target: Path) -> None:
        ensure_directory(target.parent)
        run_git(["clone", f"{self.remote_base}/{org}/{repo}.git", str(target)])

    def fetch(self, repo_dir: Path) -> None:
        run_git(["fetch", "--all", "--tags", "--prune"], cwd=repo_dir)

    def fetch_in_background(self, repo_dir: Path) -> None:
        kwargs: dict = {}
        if os.name == "nt":
            kwargs["creationflags"] = subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            kwargs["start_new_session"] = True
        try:
            subprocess.Popen(
                ["git", "fetch", "--all", "--quiet"],
                cwd=str(repo_dir),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                **kwargs,
            )
        except OSError as exc:
            logger.debug("Background fetch in %s could not start: %s", repo_dir, exc)

    def default_branch(self, repo_dir: Path) -> str:
        run_git(["remote", "set-head", "origin", "--auto"], cwd=repo_dir, check=False)
        result = run_git(["symbolic-ref", "--short", "refs/remotes/origin/HEAD"], cwd=repo_dir, check=False)
        ref = result.stdout.strip()
        if result.returncode == 0 and ref:
            return ref.split("/", 1)[1] if ref.startswith("origin/") else ref
        for fallback in ("main", "master"):
            if self.local_branch_exists(repo_dir, fallback):
                return fallback
        return "main"

    def create_worktree(
        self,
        main_repo: Path,
        target: Path,
        ref: str,
        *,
        create_branch: bool = False,
        base_branch: str | None = None,
        detach: bool = False,
    ) -> None:
        ensure_directory(target.parent)
        args = ["worktree", "add"]
        if detach:
            args.extend(["--detach", str(target)])
            if ref != "HEAD":
                args.append(ref)
        elif create_branch:
            base = base_branch or self.default_branch(main_repo)
            args.extend(["--track" if base == ref else "--no-track", "-b", ref, str(target), f"origin/{base}"])
        else:
            args.extend([str(target), ref])
        try:
            run_git(args, cwd=main_repo)
        except GitCommandError as exc:
            in_use = parse_branch_in_use(exc)
            if in_use:
                branch, existing = in_use
                raise BranchInUseError(branch, existing, exc) from exc
            raise

    def checkout_pr(self, worktree: Path, pr_number: str) -> None:
        run_gh(["pr", "checkout", pr_number], cwd=worktree)

    def pr_head_branch(self, org: str, repo: str, pr_number: str) -> str | None:
        try:
            result = run_gh(
                ["pr", "view", pr_number, "--repo", f"{org}/{repo}", "--json", "headRefName", "--jq", ".headRefName"],
                check=False,
            )
        except BackendError:
            result = None
        if result is not None and result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip()
        return self._pr_head_branch_from_api(org, repo, pr_number)

    def _pr_head_branch_from_api(self, org: str, repo: str, pr_number: str) -> str | None:
        headers = {"Accept": "application/vnd.github+json"}
        token = os.environ.get("GITHUB_TOKEN") or os.environ.get("GH_TOKEN")
        if token:
            headers["Authorization"] = f"Bearer {token}"
        url = f"{self.api_url}/repos/{org}/{repo}/pulls/{pr_number}"
        try:
            response = requests.get(url, headers=headers, timeout=10)
            response.raise_for_status()
            head = response.json().get("head") or {}
        except (requests.RequestException, ValueError) as exc:
            logger.debug("GitHub API lookup for %s/%s#%s failed: %s", org, repo, pr_number, exc)
            return None
        return head.get("ref") or None

    def remote_branch_exists(self, repo_dir: Path, branch: str) -> bool:
        """Ask origin whether ``branch`` exists.

        ``ls-remote --exit-code`` exits 2 when the ref is missing; any other
        failure leaves the answer unknown and is raised.
        """

        command = ["ls-remote", "--exit-code", "--heads", "origin", f"refs/heads/{branch}"]
        result = run_git(command, cwd=repo_dir, check=False)
        if result.returncode == 0:
            return True
        if result.returncode == LS_REMOTE_NO_MATCH:
            return False
        raise GitCommandError(["git", *command], result.returncode, stdout=result.stdout, stderr=result.stderr)

    def local_branch_exists(self, repo_dir: Path, branch: str) -> bool:
        result = run_git(
            ["show-ref", "--verify", "--quiet", f"refs/heads/{branch}"],
            cwd=repo_dir,
            check=False,
        )
        return result.returncode == 0

    def current_branch(self, repo_dir: Path) -> str | None:
        result = run_git(["branch", "--show-current"], cwd=repo_dir, check=False)
        return result.stdout.strip() or None

    def list_worktrees(self, main_repo: Path) -> list[WorktreeInfo]:
        output = run_git(["worktree", "list", "--porcelain"], cwd=main_repo)
        return parse_worktree_porcelain(output.stdout)

    def remove_worktree(self, main_repo: Path, path: Path) -> None:
        run_git(["worktree", "remove", "--force", str(path)], cwd=main_repo)

    def prune(self, main_repo: Path) -> None:
        run_git(["worktree", "prune"], cwd=main_repo)

    def behind_upstream_count(self, repo_dir: Path) -> int:
        result = run_git(["rev-list", "--count", "HEAD..@{u}"], cwd=repo_dir, check=False)
        if result.returncode != 0:
            return 0
        try:
            return int(result.stdout.strip() or 0)
        except ValueError:
            return 0

    def has_local_changes(self, repo_dir: Path) -> bool:
        result = run_git(["status", "--porcelain"], cwd=repo_dir, check=False)
        if result.returncode != 0:
            return False
        for line in result.stdout.splitlines():
            if line.strip() and not line.rstrip().endswith(METADATA_FILENAME):
                return True
        return False


__all__ = [
    "run_command",
    "run_git",
    "run_gh",
    "parse_worktree_porcelain",
    "parse_branch_in_use",
    "GitBackend",
]
