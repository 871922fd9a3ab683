"""Check that the external tools ghlp shells out to are available."""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class DependencyCheck:
    name: str
    installed: bool
    version: str | None = None
    url: str | None = None


def _version_of(binary: str) -> str | None:
    if shutil.which(binary) is None:
        return None
    try:
        result = subprocess.run([binary, "--version"], capture_output=True, text=True)
    except OSError:
        return None
    if result.returncode != 0:
        return None
    lines = result.stdout.strip().splitlines()
    return lines[0].strip() if lines else ""


def check_git() -> DependencyCheck:
    version = _version_of("git")
    return DependencyCheck("Git", version is not None, version, "https://git-scm.com/")


def check_gh() -> DependencyCheck:
    version = _version_of("gh")
    return DependencyCheck("GitHub CLI", version is not None, version, "https://cli.github.com/")


def check_all() -> list[DependencyCheck]:
    return [check_git(), check_gh()]


def gh_authenticated() -> bool:
    if shutil.which("gh") is None:
        return False
    result = subprocess.run(["gh", "auth", "status"], capture_output=True, text=True)
    return result.returncode == 0


__all__ = ["DependencyCheck", "check_git", "check_gh", "check_all", "gh_authenticated"]
