"""Shared dataclasses used throughout the CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .exceptions import ValidationError


class RefKind(str, Enum):
    REPO = "repo"
    BRANCH = "branch"
    PR = "pr"
    ISSUE = "issue"
    TAG = "tag"

    @property
    def label(self) -> str:
        return {
            RefKind.REPO: "Repository",
            RefKind.BRANCH: "Branch",
            RefKind.PR: "PR",
            RefKind.ISSUE: "Issue",
            RefKind.TAG: "Tag",
        }[self]


class OriginType(str, Enum):
    REPO = "repo"
    BRANCH = "branch"
    PR = "pr"
    ISSUE = "issue"
    TAG = "tag"
    EXTERNAL = "external"


class Classification(str, Enum):
    MAIN = "main"
    REMOTE = "remote"
    LOCAL = "local"
    DETACHED = "detached"
    ORPHAN = "orphan"

    @property
    def removable(self) -> bool:
        return self in {Classification.LOCAL, Classification.DETACHED, Classification.ORPHAN}


@dataclass(frozen=True, slots=True)
class ParsedReference:
    """A GitHub reference resolved from a URL."""

    org: str
    repo: str
    kind: RefKind
    identifier: str | None = None

    def __post_init__(self) -> None:
        if not self.org or not self.repo:
            raise ValidationError("Both org and repo are required.")
        if self.kind is RefKind.REPO:
            if self.identifier is not None:
                raise ValidationError("Repository references do not take an identifier.")
            return
        if not self.identifier:
            raise ValidationError(f"{self.kind.label} references require an identifier.")
        if self.kind in {RefKind.PR, RefKind.ISSUE} and not (self.identifier.isascii() and self.identifier.isdigit()):
            raise ValidationError(f"{self.kind.label} number must be numeric: {self.identifier}")

    @property
    def slug(self) -> str:
        return f"{self.org}/{self.repo}"


@dataclass(frozen=True, slots=True)
class MappingRule:
    pattern: str
    to: str
    branch: str | None = None
    origin_type: OriginType | None = None


@dataclass(frozen=True, slots=True)
class MappingResult:
    url: str
    branch: str | None = None
    origin_type: OriginType | None = None


@dataclass(slots=True)
class WorktreeInfo:
    """Represents a single worktree tracked by git."""

    path: Path
    branch: str | None
    is_main: bool = False
    head: str | None = None
    is_locked: bool = False
    is_prunable: bool = False

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def is_detached(self) -> bool:
        return self.branch is None


@dataclass(slots=True)
class GlobalConfig:
    workspace: Path


@dataclass(slots=True)
class WorkspaceConfig:
    auto_open_ide: str | None = None
    mappings: list[MappingRule] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class CleanOptions:
    dry_run: bool = False
    force_delete_all: bool = False


@dataclass(slots=True)
class CleanupEntry:
    path: Path
    classification: Classification
    branch: str | None = None
    cleaned: bool = False
    error: str | None = None

    @property
    def label(self) -> str:
        return self.branch or self.path.name


@dataclass(slots=True)
class RepoCleanup:
    repo_root: Path
    entries: list[CleanupEntry] = field(default_factory=list)
    skipped_reason: str | None = None
    error: str | None = None
    force_deleted: bool = False

    @property
    def cleaned(self) -> int:
        if self.force_deleted:
            return 1
        return sum(1 for entry in self.entries if entry.cleaned)


@dataclass(slots=True)
class CleanReport:
    dry_run: bool
    repos: list[RepoCleanup] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(repo.cleaned for repo in self.repos)


@dataclass(frozen=True, slots=True)
class OpenResult:
    path: Path
    ref: ParsedReference
    branch: str | None
    created: bool


__all__ = [
    "RefKind",
    "OriginType",
    "Classification",
    "ParsedReference",
    "MappingRule",
    "MappingResult",
    "WorktreeInfo",
    "GlobalConfig",
    "WorkspaceConfig",
    "CleanOptions",
    "CleanupEntry",
    "RepoCleanup",
    "CleanReport",
    "OpenResult",
]
