"""Tests for branch name validation."""

from __future__ import annotations

import unittest

from git_smart_branch_delete.exceptions import InvalidBranchNameError
from git_smart_branch_delete.refnames import (
    branch_name_problem,
    is_valid_branch_name,
    split_remote_ref,
    validate_branch_name,
)


class BranchNameValidationTests(unittest.TestCase):
    def test_accepts_ordinary_names(self) -> None:
        for name in ("main", "feature/x", "bugfix/JIRA-123_fix", "release/1.2.3", "user.name/topic", "origin"):
            with self.subTest(name=name):
                self.assertTrue(is_valid_branch_name(name))

    def test_rejects_flag_like_names(self) -> None:
        for name in ("-d", "--force", "-"):
            with self.subTest(name=name):
                self.assertFalse(is_valid_branch_name(name))

    def test_rejects_shell_metacharacters(self) -> None:
        for char in ";&|$`'\"<>(){}!#":
            name = f"feat{char}rm"
            with self.subTest(name=name):
                self.assertFalse(is_valid_branch_name(name))

    def test_rejects_whitespace_and_control_characters(self) -> None:
        for name in ("has space", "tab\there", "new\nline", "bell\x07"):
            with self.subTest(name=name):
                self.assertFalse(is_valid_branch_name(name))

    def test_rejects_git_ref_format_violations(self) -> None:
        for name in (
            "",
            "@",
            "a..b",
            "../escape",
            "a/../b",
            "topic@{1}",
            "/leading",
            "trailing/",
            "double//slash",
            "ends.",
            ".hidden",
            "dir/.hidden",
            "branch.lock",
            "dir/name.lock/x",
            "tilde~1",
            "caret^",
            "colon:x",
            "glob*",
            "question?",
            "bracket[",
            "back\\slash",
        ):
            with self.subTest(name=name):
                self.assertIsNotNone(branch_name_problem(name))

    def test_validate_raises_with_reason(self) -> None:
        with self.assertRaises(InvalidBranchNameError) as ctx:
            validate_branch_name("--delete-everything")
        self.assertEqual(ctx.exception.name, "--delete-everything")
        self.assertIn("must not start with '-'", str(ctx.exception))

    def test_validate_reports_kind(self) -> None:
        with self.assertRaises(InvalidBranchNameError) as ctx:
            validate_branch_name("bad remote", kind="remote")
        self.assertIn("Invalid remote name", str(ctx.exception))

    def test_validate_returns_name_when_valid(self) -> None:
        self.assertEqual(validate_branch_name("feature/ok"), "feature/ok")


class SplitRemoteRefTests(unittest.TestCase):
    def test_round_trip(self) -> None:
        for ref in ("origin/main", "upstream/feature/nested/topic", "fork/a"):
            with self.subTest(ref=ref):
                parts = split_remote_ref(ref)
                self.assertIsNotNone(parts)
                self.assertEqual("/".join(parts), ref)

    def test_rejects_incomplete_refs(self) -> None:
        for ref in ("origin", "origin/", "/main", ""):
            with self.subTest(ref=ref):
                self.assertIsNone(split_remote_ref(ref))


if __name__ == "__main__":
    unittest.main()
