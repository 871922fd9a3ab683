"""Tests for IDE launching, bootstrap detection and process discovery."""

from __future__ import annotations

import subprocess
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from github_local_pilot.bootstrap import detect_installer, run_bootstrap
from github_local_pilot.launcher import build_ide_command
from github_local_pilot.processes import parse_process_csv


class BuildIdeCommandTests(unittest.TestCase):
    def test_placeholder_is_replaced_with_quoted_path(self) -> None:
        self.assertEqual(
            build_ide_command("code --new-window {dir}", Path("/ws/acme/my widgets")),
            "code --new-window '/ws/acme/my widgets'",
        )

    def test_path_is_appended_without_placeholder(self) -> None:
        self.assertEqual(build_ide_command("idea", Path("/ws/acme/widgets")), "idea /ws/acme/widgets")


class BootstrapTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name)

    def test_lockfile_wins_over_generic_manifest(self) -> None:
        (self.root / "package-lock.json").write_text("{}", encoding="utf-8")
        (self.root / "pnpm-lock.yaml").write_text("", encoding="utf-8")
        (self.root / "Makefile").write_text("", encoding="utf-8")

        self.assertEqual(detect_installer(self.root).name, "pnpm")

    def test_nothing_to_run(self) -> None:
        with mock.patch("github_local_pilot.bootstrap.subprocess.run") as run:
            self.assertFalse(run_bootstrap(self.root))

        run.assert_not_called()

    def test_failures_are_logged_not_raised(self) -> None:
        (self.root / "go.mod").write_text("module x\n", encoding="utf-8")
        failure = subprocess.CalledProcessError(1, ["go", "mod", "download"])
        with mock.patch("github_local_pilot.bootstrap.subprocess.run", side_effect=failure):
            with self.assertLogs("github_local_pilot.bootstrap", level="WARNING"):
                self.assertFalse(run_bootstrap(self.root))

    def test_successful_install(self) -> None:
        (self.root / "Cargo.toml").write_text("[package]\n", encoding="utf-8")
        with mock.patch("github_local_pilot.bootstrap.subprocess.run") as run:
            self.assertTrue(run_bootstrap(self.root))

        self.assertEqual(run.call_args.args[0], ["cargo", "build"])
        self.assertEqual(run.call_args.kwargs["cwd"], str(self.root))


class ParseProcessCsvTests(unittest.TestCase):
    def test_selects_processes_running_from_directory(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            inside = root / "node_modules" / ".bin" / "vite"
            csv_text = (
                '"ProcessId","ExecutablePath"\n'
                f'"101","{inside}"\n'
                '"102","/usr/bin/bash"\n'
                '"103",""\n'
            )

            self.assertEqual(parse_process_csv(csv_text, root), [101])


if __name__ == "__main__":
    unittest.main()
