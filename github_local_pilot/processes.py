"""Locate and terminate processes running from inside a directory."""

from __future__ import annotations

import csv
import io
import logging
import os
import shutil
import signal
import subprocess
import time
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)

PROC_ROOT = Path("/proc")


def _is_under(candidate: str | None, root: Path) -> bool:
    if not candidate:
        return False
    try:
        path = Path(candidate).resolve()
    except OSError:
        return False
    return path == root or root in path.parents


def find_processes_under(directory: Path) -> list[int]:
    """Return pids whose executable (or working directory) lies under ``directory``."""

    root = directory.resolve()
    if os.name == "nt":
        pids = _windows_processes_under(root)
    elif PROC_ROOT.is_dir():
        pids = _procfs_processes_under(root)
    else:
        pids = _lsof_processes_under(root)
    return sorted(pid for pid in set(pids) if pid != os.getpid())


def _procfs_processes_under(root: Path) -> list[int]:
    pids: list[int] = []
    for entry in PROC_ROOT.iterdir():
        if not entry.name.isdigit():
            continue
        for link in ("exe", "cwd"):
            try:
                target = os.readlink(entry / link)
            except OSError:
                continue
            if _is_under(target, root):
                pids.append(int(entry.name))
                break
    return pids


def _lsof_processes_under(root: Path) -> list[int]:
    if shutil.which("lsof") is None:
        return []
    result = subprocess.run(["lsof", "-t", "+D", str(root)], capture_output=True, text=True)
    return [int(line) for line in result.stdout.split() if line.strip().isdigit()]


def _windows_processes_under(root: Path) -> list[int]:
    command = (
        "Get-CimInstance Win32_Process | "
        "Select-Object ProcessId,ExecutablePath | ConvertTo-Csv -NoTypeInformation"
    )
    result = subprocess.run(
        ["powershell", "-NoProfile", "-Command", command],
        capture_output=True,
        text=True,
    )
    if result.returncode != 0:
        logger.debug("Process listing failed: %s", result.stderr.strip())
        return []
    return parse_process_csv(result.stdout, root)


def parse_process_csv(text: str, root: Path) -> list[int]:
    pids: list[int] = []
    for row in csv.DictReader(io.StringIO(text)):
        pid = (row.get("ProcessId") or "").strip()
        if pid.isdigit() and _is_under(row.get("ExecutablePath"), root):
            pids.append(int(pid))
    return pids


def terminate(pids: Iterable[int], *, grace: float = 0.5) -> None:
    for pid in pids:
        try:
            if os.name == "nt":
                subprocess.run(["taskkill", "/F", "/PID", str(pid)], capture_output=True, text=True)
            else:
                os.kill(pid, signal.SIGTERM)
        except (OSError, ProcessLookupError) as exc:
            logger.debug("Could not terminate %s: %s", pid, exc)
    time.sleep(grace)


__all__ = ["find_processes_under", "parse_process_csv", "terminate"]
