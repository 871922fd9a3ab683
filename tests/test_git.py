"""Tests for git output parsing and command construction."""

from __future__ import annotations

import subprocess
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import requests

from github_local_pilot.exceptions import BranchInUseError, GitCommandError
from github_local_pilot.git import GitBackend, parse_branch_in_use, parse_worktree_porcelain

PORCELAIN = """\
worktree /ws/acme/widgets/main-widgets
HEAD 1111111111111111111111111111111111111111
branch refs/heads/main

worktree /ws/acme/widgets/fix-typo-widgets
HEAD 2222222222222222222222222222222222222222
detached

worktree /ws/acme/widgets/old-widgets
HEAD 3333333333333333333333333333333333333333
branch refs/heads/feature/old
locked
prunable gitdir file points to non-existent location
"""


def completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(["git"], returncode, stdout=stdout, stderr=stderr)


class ParseWorktreePorcelainTests(unittest.TestCase):
    def test_parses_entries(self) -> None:
        entries = parse_worktree_porcelain(PORCELAIN)

        self.assertEqual([entry.path.name for entry in entries], ["main-widgets", "fix-typo-widgets", "old-widgets"])
        self.assertTrue(entries[0].is_main)
        self.assertEqual(entries[0].branch, "main")
        self.assertFalse(entries[1].is_main)
        self.assertTrue(entries[1].is_detached)
        self.assertEqual(entries[2].branch, "feature/old")
        self.assertTrue(entries[2].is_locked)
        self.assertTrue(entries[2].is_prunable)

    def test_empty_output(self) -> None:
        self.assertEqual(parse_worktree_porcelain(""), [])


class ParseBranchInUseTests(unittest.TestCase):
    def test_recognizes_both_message_shapes(self) -> None:
        messages = [
            "fatal: 'issue-5' is already checked out at '/ws/acme/widgets/hotfix-widgets'",
            "fatal: 'issue-5' is already used by worktree at '/ws/acme/widgets/hotfix-widgets'",
        ]
        for message in messages:
            with self.subTest(message=message):
                error = GitCommandError(["git", "worktree", "add"], 128, stderr=message)
                self.assertEqual(
                    parse_branch_in_use(error),
                    ("issue-5", Path("/ws/acme/widgets/hotfix-widgets")),
                )

    def test_other_failures_are_not_recognized(self) -> None:
        error = GitCommandError(["git", "worktree", "add"], 128, stderr="fatal: invalid reference: nope")

        self.assertIsNone(parse_branch_in_use(error))


class GitBackendTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.main = Path(self._tmp.name) / "main-widgets"
        self.target = Path(self._tmp.name) / "issue-42-widgets"
        self.backend = GitBackend()

    def test_new_branch_from_default_does_not_track(self) -> None:
        with mock.patch("github_local_pilot.git.run_git", return_value=completed()) as run_git:
            self.backend.create_worktree(self.main, self.target, "issue-42", create_branch=True, base_branch="main")

        run_git.assert_called_once_with(
            ["worktree", "add", "--no-track", "-b", "issue-42", str(self.target), "origin/main"],
            cwd=self.main,
        )

    def test_branch_from_same_remote_branch_tracks(self) -> None:
        with mock.patch("github_local_pilot.git.run_git", return_value=completed()) as run_git:
            self.backend.create_worktree(self.main, self.target, "dev", create_branch=True, base_branch="dev")

        self.assertEqual(run_git.call_args.args[0][:3], ["worktree", "add", "--track"])

    def test_detached_head(self) -> None:
        with mock.patch("github_local_pilot.git.run_git", return_value=completed()) as run_git:
            self.backend.create_worktree(self.main, self.target, "HEAD", detach=True)

        run_git.assert_called_once_with(["worktree", "add", "--detach", str(self.target)], cwd=self.main)

    def test_branch_in_use_is_raised_as_typed_error(self) -> None:
        failure = GitCommandError(
            ["git", "worktree", "add"],
            128,
            stderr="fatal: 'issue-42' is already checked out at '/ws/acme/widgets/other-widgets'",
        )
        with mock.patch("github_local_pilot.git.run_git", side_effect=failure):
            with self.assertRaises(BranchInUseError) as ctx:
                self.backend.create_worktree(self.main, self.target, "issue-42")

        self.assertEqual(ctx.exception.branch, "issue-42")
        self.assertEqual(ctx.exception.existing_path, Path("/ws/acme/widgets/other-widgets"))

    def test_other_failures_propagate(self) -> None:
        failure = GitCommandError(["git", "worktree", "add"], 128, stderr="fatal: invalid reference: nope")
        with mock.patch("github_local_pilot.git.run_git", side_effect=failure):
            with self.assertRaises(GitCommandError) as ctx:
                self.backend.create_worktree(self.main, self.target, "nope")

        self.assertNotIsInstance(ctx.exception, BranchInUseError)

    def test_pr_head_prefers_gh(self) -> None:
        with mock.patch("github_local_pilot.git.run_gh", return_value=completed(stdout="fix-typo\n")):
            with mock.patch("github_local_pilot.git.requests.get") as get:
                self.assertEqual(self.backend.pr_head_branch("acme", "widgets", "7"), "fix-typo")

        get.assert_not_called()

    def test_pr_head_falls_back_to_rest_api(self) -> None:
        response = mock.Mock()
        response.json.return_value = {"head": {"ref": "fix-typo"}}
        with mock.patch("github_local_pilot.git.run_gh", return_value=completed(returncode=1)):
            with mock.patch("github_local_pilot.git.requests.get", return_value=response) as get:
                self.assertEqual(self.backend.pr_head_branch("acme", "widgets", "7"), "fix-typo")

        self.assertEqual(get.call_args.args[0], "https://api.github.com/repos/acme/widgets/pulls/7")

    def test_pr_head_unknown_when_api_fails(self) -> None:
        with mock.patch("github_local_pilot.git.run_gh", return_value=completed(returncode=1)):
            with mock.patch(
                "github_local_pilot.git.requests.get", side_effect=requests.ConnectionError("offline")
            ):
                self.assertIsNone(self.backend.pr_head_branch("acme", "widgets", "7"))

    def test_metadata_file_is_not_a_local_change(self) -> None:
        with mock.patch("github_local_pilot.git.run_git", return_value=completed(stdout="?? .ghlp-metadata.json\n")):
            self.assertFalse(self.backend.has_local_changes(self.target))
        with mock.patch("github_local_pilot.git.run_git", return_value=completed(stdout=" M src/app.py\n")):
            self.assertTrue(self.backend.has_local_changes(self.target))

    def test_behind_count_defaults_to_zero_without_upstream(self) -> None:
        with mock.patch("github_local_pilot.git.run_git", return_value=completed(returncode=128)):
            self.assertEqual(self.backend.behind_upstream_count(self.target), 0)
        with mock.patch("github_local_pilot.git.run_git", return_value=completed(stdout="3\n")):
            self.assertEqual(self.backend.behind_upstream_count(self.target), 3)

    def test_remote_branch_lookup_distinguishes_missing_from_unreachable(self) -> None:
        with mock.patch("github_local_pilot.git.run_git", return_value=completed(stdout="abc\trefs/heads/dev\n")):
            self.assertTrue(self.backend.remote_branch_exists(self.main, "dev"))
        with mock.patch("github_local_pilot.git.run_git", return_value=completed(returncode=2)):
            self.assertFalse(self.backend.remote_branch_exists(self.main, "dev"))
        unreachable = completed(returncode=128, stderr="fatal: unable to access 'https://github.com/acme/widgets.git/'")
        with mock.patch("github_local_pilot.git.run_git", return_value=unreachable):
            with self.assertRaises(GitCommandError) as ctx:
                self.backend.remote_branch_exists(self.main, "dev")

        self.assertEqual(ctx.exception.returncode, 128)

    def test_default_branch_from_origin_head(self) -> None:
        responses = [completed(), completed(stdout="origin/develop\n")]
        with mock.patch("github_local_pilot.git.run_git", side_effect=responses):
            self.assertEqual(self.backend.default_branch(self.main), "develop")


if __name__ == "__main__":
    unittest.main()
