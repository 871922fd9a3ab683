"""Register ghlp:// as a URL scheme handled by ``ghlp open``."""

from __future__ import annotations

import logging
import os
import platform
import re
import shlex
import shutil
import subprocess
import sys
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from .exceptions import GhlpError

logger = logging.getLogger(__name__)

SCHEME = "ghlp"
DESKTOP_FILE_NAME = "github-local-pilot.desktop"
MAC_BUNDLE_ID = "io.github.github-local-pilot"
LSREGISTER = (
    "/System/Library/Frameworks/CoreServices.framework/Frameworks/"
    "LaunchServices.framework/Support/lsregister"
)


@dataclass(slots=True)
class Registration:
    registered: bool
    location: Path
    manual_steps: list[str] = field(default_factory=list)


def handler_command() -> list[str]:
    """Return the argv prefix that runs ghlp."""

    exe = shutil.which("ghlp")
    if exe:
        return [exe]
    return [sys.executable, "-m", "github_local_pilot"]


def desktop_entry(command: list[str]) -> str:
    exec_line = " ".join(shlex.quote(part) for part in [*command, "open"])
    return (
        "[Desktop Entry]\n"
        "Name=GitHub Local Pilot\n"
        f"Exec={exec_line} %u\n"
        "Type=Application\n"
        "NoDisplay=true\n"
        f"MimeType=x-scheme-handler/{SCHEME};\n"
    )


def windows_reg_file(command: list[str]) -> str:
    def _escape(value: str) -> str:
        return value.replace("\\", "\\\\").replace('"', '\\"')

    quoted = " ".join(f'"{part}"' for part in command)
    command_value = _escape(f'{quoted} open "%1"')
    root = f"HKEY_CURRENT_USER\\Software\\Classes\\{SCHEME}"
    return (
        "Windows Registry Editor Version 5.00\n\n"
        f"[{root}]\n"
        '@="URL:GitHub Local Pilot Protocol"\n'
        '"URL Protocol"=""\n\n'
        f"[{root}\\shell]\n\n"
        f"[{root}\\shell\\open]\n\n"
        f"[{root}\\shell\\open\\command]\n"
        f'@="{command_value}"\n'
    )


def applescript_source(command: list[str]) -> str:
    shell_command = " ".join(shlex.quote(part) for part in [*command, "open"])
    escaped = shell_command.replace("\\", "\\\\").replace('"', '\\"')
    return (
        "on open location theURL\n"
        f'  do shell script "export PATH=/opt/homebrew/bin:/usr/local/bin:$PATH && {escaped} " '
        '& quoted form of theURL & " &> /dev/null &"\n'
        "end open location\n"
    )


def patch_info_plist(plist: str) -> str:
    url_types = (
        "\t<key>CFBundleIdentifier</key>\n"
        f"\t<string>{MAC_BUNDLE_ID}</string>\n"
        "\t<key>CFBundleURLTypes</key>\n"
        "\t<array>\n"
        "\t\t<dict>\n"
        "\t\t\t<key>CFBundleURLName</key>\n"
        "\t\t\t<string>GitHub Local Pilot Protocol</string>\n"
        "\t\t\t<key>CFBundleURLSchemes</key>\n"
        "\t\t\t<array>\n"
        f"\t\t\t\t<string>{SCHEME}</string>\n"
        "\t\t\t</array>\n"
        "\t\t</dict>\n"
        "\t</array>"
    )
    patched, count = re.subn(r"\n</dict>\s*</plist>\s*$", f"\n{url_types}\n</dict>\n</plist>\n", plist)
    if count != 1:
        raise GhlpError("Unexpected Info.plist layout; cannot add the URL scheme.")
    return patched


def register_linux(home: Path | None = None) -> Registration:
    applications = (home or Path.home()) / ".local" / "share" / "applications"
    applications.mkdir(parents=True, exist_ok=True)
    desktop_file = applications / DESKTOP_FILE_NAME
    desktop_file.write_text(desktop_entry(handler_command()), encoding="utf-8")
    xdg_command = ["xdg-mime", "default", DESKTOP_FILE_NAME, f"x-scheme-handler/{SCHEME}"]
    if _run_quietly(xdg_command):
        return Registration(True, desktop_file)
    return Registration(False, desktop_file, [" ".join(xdg_command)])


def register_macos(home: Path | None = None) -> Registration:
    app_dir = (home or Path.home()) / "Applications" / "GHLocalPilot.app"
    if app_dir.exists():
        shutil.rmtree(app_dir)
    with tempfile.TemporaryDirectory() as tmp:
        script = Path(tmp) / "ghlp-handler.applescript"
        script.write_text(applescript_source(handler_command()), encoding="utf-8")
        result = subprocess.run(["osacompile", "-o", str(app_dir), str(script)], capture_output=True, text=True)
    if result.returncode != 0:
        raise GhlpError(f"Failed to compile AppleScript handler: {result.stderr.strip()}")
    plist_path = app_dir / "Contents" / "Info.plist"
    plist_path.write_text(patch_info_plist(plist_path.read_text(encoding="utf-8")), encoding="utf-8")
    if _run_quietly([LSREGISTER, "-R", "-f", str(app_dir)]):
        return Registration(True, app_dir)
    return Registration(False, app_dir, [f'open "{app_dir}"'])


def register_windows() -> Registration:
    reg_file = Path(tempfile.gettempdir()) / "ghlp-register.reg"
    # regedit expects UTF-16 LE with a BOM.
    reg_file.write_text("\ufeff" + windows_reg_file(handler_command()), encoding="utf-16-le")
    if _run_quietly(["reg", "import", str(reg_file)]):
        return Registration(True, reg_file)
    return Registration(False, reg_file, [f'reg import "{reg_file}"', "or double-click the .reg file"])


def register() -> Registration:
    system = platform.system()
    if system == "Linux":
        return register_linux()
    if system == "Darwin":
        return register_macos()
    if system == "Windows" or os.name == "nt":
        return register_windows()
    raise GhlpError(f"Unsupported platform: {system}")


def _run_quietly(command: list[str]) -> bool:
    try:
        result = subprocess.run(command, capture_output=True, text=True)
    except OSError as exc:
        logger.debug("%s failed to start: %s", command[0], exc)
        return False
    return result.returncode == 0


__all__ = [
    "Registration",
    "handler_command",
    "desktop_entry",
    "windows_reg_file",
    "applescript_source",
    "patch_info_plist",
    "register",
    "register_linux",
    "register_macos",
    "register_windows",
]
