"""Best-effort dependency installation for freshly materialized checkouts."""

from __future__ import annotations

import logging
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Installer:
    manifest: str
    command: tuple[str, ...]
    name: str


# First match wins; lockfiles come before generic manifests.
INSTALLERS: tuple[Installer, ...] = (
    Installer("pnpm-lock.yaml", ("pnpm", "install"), "pnpm"),
    Installer("yarn.lock", ("yarn",), "yarn"),
    Installer("package-lock.json", ("npm", "install"), "npm"),
    Installer("bun.lockb", ("bun", "install"), "bun"),
    Installer("Cargo.toml", ("cargo", "build"), "cargo"),
    Installer("go.mod", ("go", "mod", "download"), "go"),
    Installer("requirements.txt", (sys.executable, "-m", "pip", "install", "-r", "requirements.txt"), "pip"),
    Installer("Makefile", ("make",), "make"),
)


def detect_installer(directory: Path) -> Installer | None:
    for installer in INSTALLERS:
        if (directory / installer.manifest).is_file():
            return installer
    return None


def run_bootstrap(directory: Path) -> bool:
    """Run the detected installer in ``directory``.

    Output goes to stderr so stdout stays reserved for the resolved path.
    Returns whether an installer ran successfully; failures are only logged.
    """

    installer = detect_installer(directory)
    if installer is None:
        return False
    logger.info("Detected %s project, running: %s", installer.name, " ".join(installer.command))
    try:
        subprocess.run(
            list(installer.command),
            cwd=str(directory),
            stdin=subprocess.DEVNULL,
            stdout=sys.stderr,
            stderr=sys.stderr,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as exc:
        logger.warning("%s initialization failed: %s", installer.name, exc)
        return False
    logger.info("%s initialization complete", installer.name)
    return True


__all__ = ["Installer", "INSTALLERS", "detect_installer", "run_bootstrap"]
