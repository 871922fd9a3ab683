"""Tests for worktree classification and removal."""

from __future__ import annotations

import subprocess
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from github_local_pilot.cleanup import CleanupEngine
from github_local_pilot.git import GitBackend
from github_local_pilot.models import Classification, CleanOptions, WorktreeInfo

from tests.fakes import FakeBackend


class CleanupEngineTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.workspace = Path(self._tmp.name)
        self.base = self.workspace / "acme" / "widgets"
        self.main = self.base / "main-widgets"
        (self.main / ".git").mkdir(parents=True)

        self.backend = FakeBackend()
        self.remote = self.backend.add_worktree(self.base / "feature-a-widgets", "feature-a")
        self.backend.remote_branches.add("feature-a")
        self.local = self.backend.add_worktree(self.base / "local-b-widgets", "local-b")
        self.engine = CleanupEngine(self.backend, self.workspace, max_workers=2)

    def classifications(self, report) -> dict[str, Classification]:
        return {entry.path.name: entry.classification for entry in report.repos[0].entries}

    def test_dry_run_reports_local_worktree_and_deletes_nothing(self) -> None:
        report = self.engine.clean("acme/widgets", CleanOptions(dry_run=True))

        self.assertTrue(report.dry_run)
        self.assertEqual(report.total, 1)
        self.assertEqual(
            self.classifications(report),
            {
                "main-widgets": Classification.MAIN,
                "feature-a-widgets": Classification.REMOTE,
                "local-b-widgets": Classification.LOCAL,
            },
        )
        self.assertTrue(self.local.exists())
        self.assertTrue(self.remote.exists())
        self.assertEqual(self.backend.calls_to("remove_worktree"), [])

    def test_removes_local_worktree_and_keeps_remote_one(self) -> None:
        report = self.engine.clean("acme/widgets")

        self.assertEqual(report.total, 1)
        self.assertFalse(self.local.exists())
        self.assertTrue(self.remote.exists())
        self.assertTrue(self.main.exists())
        self.assertEqual(self.backend.calls_to("remove_worktree"), [("remove_worktree", self.local)])
        self.assertEqual(self.backend.calls_to("prune"), [])

    def test_unregistered_directory_is_orphan_and_removed(self) -> None:
        stray = self.base / "stray-widgets"
        stray.mkdir()
        (stray / "notes.txt").write_text("left over", encoding="utf-8")

        report = self.engine.clean(str(self.base))

        self.assertEqual(self.classifications(report)["stray-widgets"], Classification.ORPHAN)
        self.assertFalse(stray.exists())
        self.assertEqual(len(self.backend.calls_to("prune")), 1)
        self.assertEqual(report.total, 2)

    def test_detached_worktree_is_removable(self) -> None:
        detached = self.backend.add_worktree(self.base / "tag-v1-widgets", None)

        report = self.engine.clean("acme/widgets", CleanOptions(dry_run=True))

        self.assertEqual(self.classifications(report)["tag-v1-widgets"], Classification.DETACHED)
        self.assertEqual(report.total, 2)
        self.assertTrue(detached.exists())

    def test_unknown_remote_state_keeps_worktree(self) -> None:
        self.backend.flaky_branches.add("local-b")

        report = self.engine.clean("acme/widgets")

        self.assertEqual(self.classifications(report)["local-b-widgets"], Classification.REMOTE)
        self.assertEqual(report.total, 0)
        self.assertTrue(self.local.exists())

    def test_unreachable_origin_keeps_worktree_with_git_backend(self) -> None:
        backend = GitBackend()
        worktrees = [
            WorktreeInfo(path=self.main, branch="main", is_main=True),
            WorktreeInfo(path=self.remote, branch="feature-a"),
        ]
        unreachable = subprocess.CompletedProcess(
            ["git", "ls-remote"], 128, stdout="", stderr="fatal: '/gone' does not appear to be a git repository"
        )
        with mock.patch.object(backend, "list_worktrees", return_value=worktrees), mock.patch(
            "github_local_pilot.git.run_git", return_value=unreachable
        ):
            report = CleanupEngine(backend, self.workspace).clean("acme/widgets", CleanOptions(dry_run=True))

        self.assertEqual(self.classifications(report)["feature-a-widgets"], Classification.REMOTE)
        self.assertFalse(report.repos[0].entries[1].cleaned)

    def test_failed_native_removal_falls_back_to_delete_and_prune(self) -> None:
        self.backend.stuck_paths.add(self.local)

        report = self.engine.clean("acme/widgets")

        entry = next(entry for entry in report.repos[0].entries if entry.path == self.local)
        self.assertTrue(entry.cleaned)
        self.assertIsNone(entry.error)
        self.assertFalse(self.local.exists())
        self.assertEqual(self.backend.calls_to("remove_worktree"), [("remove_worktree", self.local)])
        self.assertEqual(len(self.backend.calls_to("prune")), 1)
        self.assertEqual(report.total, 1)

    def test_force_deletes_whole_repository(self) -> None:
        report = self.engine.clean("acme/widgets", CleanOptions(force_delete_all=True))

        self.assertEqual(report.total, 1)
        self.assertTrue(report.repos[0].force_deleted)
        self.assertFalse(self.base.exists())

    def test_force_dry_run_leaves_repository(self) -> None:
        report = self.engine.clean("acme/widgets", CleanOptions(dry_run=True, force_delete_all=True))

        self.assertEqual(report.total, 1)
        self.assertTrue(self.base.exists())

    def test_missing_repository_is_skipped(self) -> None:
        report = self.engine.clean("acme/gadgets")

        self.assertEqual(report.repos[0].skipped_reason, "directory not found")
        self.assertEqual(report.total, 0)

    def test_directory_without_main_repo_is_skipped(self) -> None:
        (self.workspace / "acme" / "empty").mkdir()

        report = self.engine.clean("acme/empty")

        self.assertEqual(report.repos[0].skipped_reason, "no main repository")

    def test_repo_roots_enumerates_workspace(self) -> None:
        (self.workspace / "other" / "tool").mkdir(parents=True)
        (self.workspace / ".ghlp").mkdir()

        roots = self.engine.repo_roots()

        self.assertEqual(roots, [self.base, self.workspace / "other" / "tool"])

    def test_all_repositories_are_cleaned_independently(self) -> None:
        (self.workspace / "other" / "tool").mkdir(parents=True)

        report = self.engine.clean(None, CleanOptions(dry_run=True))

        self.assertEqual(len(report.repos), 2)
        self.assertEqual(report.repos[1].skipped_reason, "no main repository")
        self.assertEqual(report.total, 1)


if __name__ == "__main__":
    unittest.main()
