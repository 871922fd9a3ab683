"""Filesystem helpers for github-local-pilot."""

from __future__ import annotations

import errno
import logging
import os
import shutil
import stat
import sys
from pathlib import Path
from typing import Iterable

from . import processes

logger = logging.getLogger(__name__)

# EBUSY/ETXTBSY on POSIX, sharing violation / access denied on Windows.
_LOCK_ERRNOS = {errno.EBUSY, errno.ETXTBSY}
_LOCK_WINERRORS = {5, 32}


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def is_git_checkout(path: Path) -> bool:
    return (path / ".git").exists()


def is_main_repo(path: Path) -> bool:
    """A main repository has a real ``.git`` directory, worktrees have a pointer file."""

    return (path / ".git").is_dir()


def is_worktree(path: Path) -> bool:
    return (path / ".git").is_file()


def iter_child_dirs(path: Path) -> Iterable[Path]:
    """Yield non-hidden child directories in name order."""

    if not path.is_dir():
        return
    for child in sorted(path.iterdir()):
        if child.is_dir() and not child.name.startswith("."):
            yield child


def find_main_repo(base_dir: Path) -> Path | None:
    for child in iter_child_dirs(base_dir):
        if is_main_repo(child):
            return child
    return None


def worktree_pointer_files(main_repo: Path, base_dir: Path) -> list[Path]:
    """Collect ``.git`` pointer files of worktrees attached to ``main_repo``.

    Registered worktrees are found through ``.git/worktrees/*/gitdir``; sibling
    directories under ``base_dir`` are included as well.
    """

    found: dict[Path, None] = {}
    admin_dir = main_repo / ".git" / "worktrees"
    if admin_dir.is_dir():
        for gitdir_file in sorted(admin_dir.glob("*/gitdir")):
            try:
                pointer = Path(gitdir_file.read_text(encoding="utf-8").strip())
            except OSError:
                continue
            if pointer.is_file():
                found[pointer] = None
    for child in iter_child_dirs(base_dir):
        if child != main_repo and is_worktree(child):
            found[child / ".git"] = None
    return list(found)


def rewrite_pointer_files(pointer_files: Iterable[Path], old: Path, new: Path) -> list[Path]:
    """Replace ``old`` with ``new`` inside each pointer file; return the files changed."""

    old_text, new_text = str(old), str(new)
    changed: list[Path] = []
    for pointer in pointer_files:
        content = pointer.read_text(encoding="utf-8")
        if old_text not in content:
            continue
        pointer.write_text(content.replace(old_text, new_text), encoding="utf-8")
        changed.append(pointer)
    return changed


def is_lock_error(exc: OSError) -> bool:
    if getattr(exc, "winerror", None) in _LOCK_WINERRORS:
        return True
    return exc.errno in _LOCK_ERRNOS


def remove_tree(path: Path, *, terminate_lockers: bool = True) -> None:
    """Recursively delete ``path``.

    When deletion fails because a process holds the directory open, the
    processes running from inside it are terminated and deletion is retried once.
    """

    try:
        _rmtree(path)
        return
    except FileNotFoundError:
        return
    except OSError as exc:
        if not terminate_lockers or not is_lock_error(exc):
            raise
        pids = processes.find_processes_under(path)
        if not pids:
            raise
        logger.warning("Terminating %d process(es) holding %s", len(pids), path)
        processes.terminate(pids)
    _rmtree(path)


def _rmtree(path: Path) -> None:
    if not path.exists():
        return
    if sys.version_info >= (3, 12):
        shutil.rmtree(path, onexc=_retry_writable)
    else:
        shutil.rmtree(path, onerror=_retry_writable)


_RETRYABLE = (os.unlink, os.remove, os.rmdir)


def _retry_writable(func, path, exc) -> None:
    # onerror passes exc_info, onexc the exception itself.
    error = exc[1] if isinstance(exc, tuple) else exc
    if func not in _RETRYABLE:
        raise error
    # git marks object files read-only, which blocks deletion on Windows.
    os.chmod(path, stat.S_IWRITE)
    func(path)


__all__ = [
    "ensure_directory",
    "is_git_checkout",
    "is_main_repo",
    "is_worktree",
    "iter_child_dirs",
    "find_main_repo",
    "worktree_pointer_files",
    "rewrite_pointer_files",
    "is_lock_error",
    "remove_tree",
]
