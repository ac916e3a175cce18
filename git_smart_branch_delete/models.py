"""Dataclasses shared across modules."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable


class BranchKind(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


@dataclass(frozen=True)
class BranchRecord:
    """A single local or remote-tracking branch and the facts we know about it."""

    ref: str
    name: str
    kind: BranchKind
    remote: str | None = None
    last_commit_at: datetime | None = None
    last_commit_sha: str | None = None
    last_commit_subject: str | None = None
    is_merged: bool = False
    ahead: int = 0
    behind: int = 0

    def __post_init__(self) -> None:
        if (self.kind is BranchKind.REMOTE) != (self.remote is not None):
            raise ValueError(f"Remote name must be set exactly for remote branches: {self.ref}")
        if self.ahead < 0 or self.behind < 0:
            raise ValueError(f"Ahead/behind counts cannot be negative: {self.ref}")

    @property
    def is_remote(self) -> bool:
        return self.kind is BranchKind.REMOTE

    @property
    def full_ref(self) -> str:
        prefix = "refs/remotes/" if self.is_remote else "refs/heads/"
        return f"{prefix}{self.ref}"

    @property
    def type_label(self) -> str:
        if self.is_remote:
            return f"remote({self.remote})"
        return "local"


@dataclass(frozen=True)
class DeletionPlanItem:
    branch: BranchRecord
    targets_remote: bool


@dataclass(frozen=True)
class ExecutionResult:
    branch: BranchRecord
    succeeded: bool
    error: str | None = None
    forced: bool = False


@dataclass(frozen=True)
class Settings:
    """Fully resolved options for one session."""

    pattern: str | None = None
    include_remote: bool = False
    local_only: bool = False
    dry_run: bool = False
    skip_confirmation: bool = False
    force: bool = False
    protected_branches: tuple[str, ...] = ("main", "master", "develop")
    default_remote: str = "origin"
    cleanup_merged_days: int | None = None
    fetch: bool = False

    @property
    def remote_enabled(self) -> bool:
        return self.include_remote and not self.local_only

    @property
    def automatic(self) -> bool:
        """Whether branches are picked by the declarative filters instead of the picker."""

        return bool(self.pattern) or self.cleanup_merged_days is not None or self.skip_confirmation


def sort_branches(branches: Iterable[BranchRecord]) -> list[BranchRecord]:
    """Order local before remote, then newest commit first; unknown dates sort last."""

    def key(branch: BranchRecord) -> tuple[int, int, float]:
        timestamp = branch.last_commit_at
        if timestamp is None:
            return (int(branch.is_remote), 1, 0.0)
        return (int(branch.is_remote), 0, -as_utc(timestamp).timestamp())

    return sorted(branches, key=key)


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC so they compare with aware ones."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
