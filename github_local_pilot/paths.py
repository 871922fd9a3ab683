"""Map parsed references onto the workspace directory layout."""

from __future__ import annotations

from pathlib import Path

from .exceptions import ValidationError
from .models import ParsedReference, RefKind

TEMP_CLONE_NAME = "__temp_clone__"
METADATA_FILENAME = ".ghlp-metadata.json"


def sanitize_name(name: str) -> str:
    """Produce a single path component from a branch or tag name."""

    if "\0" in name:
        raise ValidationError("Names cannot contain null characters.")
    slug = name.strip().replace("/", "-").replace("\\", "-")
    if not slug or slug in {".", ".."}:
        raise ValidationError(f"Cannot derive a directory name from {name!r}.")
    return slug


def repo_base_dir(workspace: Path, org: str, repo: str) -> Path:
    return Path(workspace) / org / repo


def main_repo_dir(workspace: Path, org: str, repo: str, default_branch: str) -> Path:
    return repo_base_dir(workspace, org, repo) / f"{sanitize_name(default_branch)}-{repo}"


def target_dir_name(ref: ParsedReference, custom_branch: str | None = None, default_branch: str = "main") -> str:
    suffix = f"-{ref.repo}"
    if ref.kind is RefKind.REPO:
        return f"{sanitize_name(default_branch)}{suffix}"
    identifier = ref.identifier or ""
    if ref.kind is RefKind.BRANCH:
        return f"{sanitize_name(identifier)}{suffix}"
    if ref.kind in {RefKind.PR, RefKind.ISSUE}:
        if custom_branch:
            return f"{sanitize_name(custom_branch)}{suffix}"
        return f"{ref.kind.value}-{identifier}{suffix}"
    return f"tag-{sanitize_name(identifier)}{suffix}"


def resolve_target_dir(
    workspace: Path,
    ref: ParsedReference,
    custom_branch: str | None = None,
    default_branch: str = "main",
) -> Path:
    base = repo_base_dir(workspace, ref.org, ref.repo)
    target = base / target_dir_name(ref, custom_branch, default_branch)
    if target.parent != base:
        raise ValidationError(f"Resolved directory escapes {base}: {target}")
    return target


__all__ = [
    "TEMP_CLONE_NAME",
    "METADATA_FILENAME",
    "sanitize_name",
    "repo_base_dir",
    "main_repo_dir",
    "target_dir_name",
    "resolve_target_dir",
]
