"""Tests for protocol handler registration."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from unittest import mock

from github_local_pilot.exceptions import GhlpError
from github_local_pilot.register import (
    DESKTOP_FILE_NAME,
    desktop_entry,
    patch_info_plist,
    register_linux,
    windows_reg_file,
)

PLIST = """<?xml version="1.0" encoding="UTF-8"?>
<plist version="1.0">
<dict>
\t<key>CFBundleName</key>
\t<string>GHLocalPilot</string>
</dict>
</plist>
"""


class HandlerFileTests(unittest.TestCase):
    def test_desktop_entry_declares_scheme(self) -> None:
        entry = desktop_entry(["/usr/local/bin/ghlp"])

        self.assertIn("Exec=/usr/local/bin/ghlp open %u\n", entry)
        self.assertIn("MimeType=x-scheme-handler/ghlp;\n", entry)

    def test_windows_reg_file_escapes_command(self) -> None:
        content = windows_reg_file(["C:\\Tools\\ghlp.exe"])

        self.assertIn("[HKEY_CURRENT_USER\\Software\\Classes\\ghlp\\shell\\open\\command]", content)
        self.assertIn('@="\\"C:\\\\Tools\\\\ghlp.exe\\" open \\"%1\\""', content)

    def test_info_plist_gains_url_scheme(self) -> None:
        patched = patch_info_plist(PLIST)

        self.assertIn("<key>CFBundleURLSchemes</key>", patched)
        self.assertIn("<string>ghlp</string>", patched)
        self.assertTrue(patched.rstrip().endswith("</dict>\n</plist>"))

    def test_unexpected_plist_is_rejected(self) -> None:
        with self.assertRaises(GhlpError):
            patch_info_plist("<plist></plist>")


class RegisterLinuxTests(unittest.TestCase):
    def test_writes_desktop_file_and_sets_default(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            home = Path(tmp)
            with mock.patch("github_local_pilot.register.handler_command", return_value=["ghlp"]), mock.patch(
                "github_local_pilot.register._run_quietly", return_value=True
            ) as run:
                result = register_linux(home)

            desktop_file = home / ".local" / "share" / "applications" / DESKTOP_FILE_NAME
            self.assertTrue(result.registered)
            self.assertEqual(result.location, desktop_file)
            self.assertIn("Exec=ghlp open %u", desktop_file.read_text(encoding="utf-8"))
            run.assert_called_once_with(["xdg-mime", "default", DESKTOP_FILE_NAME, "x-scheme-handler/ghlp"])

    def test_manual_step_when_xdg_mime_fails(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with mock.patch("github_local_pilot.register.handler_command", return_value=["ghlp"]), mock.patch(
                "github_local_pilot.register._run_quietly", return_value=False
            ):
                result = register_linux(Path(tmp))

        self.assertFalse(result.registered)
        self.assertEqual(result.manual_steps, [f"xdg-mime default {DESKTOP_FILE_NAME} x-scheme-handler/ghlp"])


if __name__ == "__main__":
    unittest.main()
