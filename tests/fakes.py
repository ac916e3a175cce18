"""Scripted stand-ins for git, prompts and the reporter used across the tests."""

from __future__ import annotations

import subprocess
import threading
from datetime import datetime, timedelta, timezone
from typing import Iterable, Sequence

from git_smart_branch_delete.exceptions import GitCommandError
from git_smart_branch_delete.models import BranchKind, BranchRecord, DeletionPlanItem, ExecutionResult

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_branch(
    name: str,
    *,
    remote: str | None = None,
    days_old: int | None = 1,
    merged: bool = False,
    ahead: int = 0,
    behind: int = 0,
) -> BranchRecord:
    kind = BranchKind.REMOTE if remote else BranchKind.LOCAL
    ref = f"{remote}/{name}" if remote else name
    return BranchRecord(
        ref=ref,
        name=name,
        kind=kind,
        remote=remote,
        last_commit_at=None if days_old is None else NOW - timedelta(days=days_old),
        last_commit_sha="abc123",
        last_commit_subject=f"work on {name}",
        is_merged=merged,
        ahead=ahead,
        behind=behind,
    )


class FakeGit:
    """Runner answering git invocations from a table keyed by argument tuples."""

    def __init__(self) -> None:
        self.responses: dict[tuple[str, ...], tuple[int, str, str]] = {}
        self.calls: list[list[str]] = []
        self._lock = threading.Lock()

    def add(self, args: Iterable[str], stdout: str = "", *, returncode: int = 0, stderr: str = "") -> None:
        self.responses[tuple(args)] = (returncode, stdout, stderr)

    def __call__(self, args, *, cwd, raise_on_error: bool = True) -> subprocess.CompletedProcess[str]:
        args = list(args)
        with self._lock:
            self.calls.append(args)
        returncode, stdout, stderr = self.responses.get(
            tuple(args), (128, "", f"fatal: unexpected command: git {' '.join(args)}")
        )
        if raise_on_error and returncode != 0:
            raise GitCommandError(["git", *args], returncode, stdout=stdout, stderr=stderr)
        return subprocess.CompletedProcess(["git", *args], returncode, stdout, stderr)

    def called(self, *prefix: str) -> list[list[str]]:
        return [call for call in self.calls if call[: len(prefix)] == list(prefix)]


class FakeRepository:
    """In-memory branch source and deleter."""

    def __init__(
        self,
        branches: Sequence[BranchRecord] = (),
        *,
        current: str | None = "main",
        unmerged: Iterable[str] = (),
        broken: Iterable[str] = (),
        clean: bool = True,
        load_error: Exception | None = None,
    ) -> None:
        self.branches = list(branches)
        self.current = current
        self.unmerged = set(unmerged)
        self.broken = set(broken)
        self.clean = clean
        self.load_error = load_error
        self.deletions: list[tuple[str, ...]] = []
        self.fetched = False
        self.include_remote_requests: list[bool] = []

    def current_branch(self) -> str | None:
        if self.load_error:
            raise self.load_error
        return self.current

    def list_branches(self, include_remote: bool = False) -> list[BranchRecord]:
        if self.load_error:
            raise self.load_error
        self.include_remote_requests.append(include_remote)
        return [branch for branch in self.branches if include_remote or not branch.is_remote]

    def is_working_tree_clean(self) -> bool:
        return self.clean

    def fetch_all(self, *, prune: bool = True) -> None:
        self.fetched = True

    def delete_local(self, name: str, *, force: bool = False) -> None:
        self.deletions.append(("local", name, "force" if force else "safe"))
        if name in self.broken:
            raise GitCommandError(["git", "branch", "-d", name], 1, stderr=f"error: cannot lock ref '{name}'")
        if name in self.unmerged and not force:
            raise GitCommandError(
                ["git", "branch", "-d", "--", name],
                1,
                stderr=f"error: the branch '{name}' is not fully merged.",
            )

    def delete_remote(self, remote: str, name: str) -> None:
        self.deletions.append(("remote", remote, name))
        if name in self.broken:
            raise GitCommandError(["git", "push", remote, "--delete", name], 1, stderr="error: failed to push some refs")

    @property
    def mutated(self) -> bool:
        return bool(self.deletions)


class FakePrompts:
    def __init__(
        self,
        *,
        selection: Sequence[str] | None = (),
        confirm: bool = True,
        force: bool = True,
    ) -> None:
        self.selection = selection
        self.confirm_answer = confirm
        self.force_answer = force
        self.selection_requests: list[tuple[BranchRecord, ...]] = []
        self.confirm_requests: list[str] = []
        self.force_requests: list[tuple[DeletionPlanItem, ...]] = []

    def select_branches(self, branches: Sequence[BranchRecord], label: str) -> list[BranchRecord] | None:
        self.selection_requests.append(tuple(branches))
        if self.selection is None:
            return None
        wanted = set(self.selection)
        return [branch for branch in branches if branch.ref in wanted]

    def confirm(self, message: str) -> bool:
        self.confirm_requests.append(message)
        return self.confirm_answer

    def confirm_force(self, items: Sequence[DeletionPlanItem]) -> bool:
        self.force_requests.append(tuple(items))
        return self.force_answer


class RecordingReporter:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []
        self.plans: list[tuple[DeletionPlanItem, ...]] = []
        self.results: list[tuple[ExecutionResult, ...]] = []

    def status(self, message: str) -> None:
        self.messages.append(("status", message))

    def success(self, message: str) -> None:
        self.messages.append(("success", message))

    def warning(self, message: str) -> None:
        self.messages.append(("warning", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))

    def show_plan(self, plan: Sequence[DeletionPlanItem], *, dry_run: bool) -> None:
        self.plans.append(tuple(plan))

    def show_results(self, results: Sequence[ExecutionResult], *, dry_run: bool) -> None:
        self.results.append(tuple(results))

    def of_kind(self, kind: str) -> list[str]:
        return [message for level, message in self.messages if level == kind]
