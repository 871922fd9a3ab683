"""Launch the configured IDE on a resolved directory."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

DIR_PLACEHOLDER = "{dir}"


def build_ide_command(template: str, directory: Path) -> str:
    """Expand ``{dir}`` with the shell-quoted path, or append it when absent."""

    quoted = shlex.quote(str(directory))
    if DIR_PLACEHOLDER in template:
        return template.replace(DIR_PLACEHOLDER, quoted)
    return f"{template} {quoted}"


def open_in_ide(template: str, directory: Path) -> None:
    """Start the IDE detached; its exit status is never observed."""

    command = build_ide_command(template, directory)
    logger.debug("Opening IDE: %s", command)
    kwargs: dict = {}
    if os.name != "nt":
        kwargs["start_new_session"] = True
    try:
        subprocess.Popen(
            command,
            shell=True,
            cwd=str(directory),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            **kwargs,
        )
    except OSError as exc:
        logger.warning("Could not launch IDE (%s): %s", command, exc)


__all__ = ["build_ide_command", "open_in_ide"]
