"""Reduce a branch universe to an ordered deletion plan."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Sequence

from .exceptions import NoDeletableSelectionError
from .models import BranchRecord, DeletionPlanItem, Settings, sort_branches
from .policy import ProtectionPolicy, compile_name_pattern, is_current, is_stale

__all__ = [
    "build_automatic_plan",
    "build_interactive_plan",
    "build_plan",
    "filter_deletable",
    "sort_branches",
]


def build_plan(branches: Iterable[BranchRecord]) -> list[DeletionPlanItem]:
    return [DeletionPlanItem(branch=branch, targets_remote=branch.is_remote) for branch in branches]


def filter_deletable(
    branches: Iterable[BranchRecord],
    protected: Sequence[str],
    current_branch: str | None,
) -> list[BranchRecord]:
    """Drop protected branches and the checked-out branch."""

    policy = ProtectionPolicy.from_entries(protected)
    return [
        branch
        for branch in branches
        if not policy.protects(branch.name) and not is_current(branch, current_branch)
    ]


def build_automatic_plan(
    branches: Sequence[BranchRecord],
    settings: Settings,
    current_branch: str | None,
    *,
    now: datetime | None = None,
) -> list[DeletionPlanItem]:
    """Apply pattern, age, protection and current-branch filters in that order."""

    candidates = sort_branches(branches)
    if settings.pattern:
        matcher = compile_name_pattern(settings.pattern)
        candidates = [branch for branch in candidates if matcher.matches(branch.name)]
    candidates = [
        branch
        for branch in candidates
        if is_stale(branch.last_commit_at, settings.cleanup_merged_days, now=now)
    ]
    candidates = filter_deletable(candidates, settings.protected_branches, current_branch)
    return build_plan(candidates)


def build_interactive_plan(
    selected: Sequence[BranchRecord],
    settings: Settings,
    current_branch: str | None,
) -> list[DeletionPlanItem]:
    """Re-check a picker selection against protection rules before anything is deleted."""

    survivors = filter_deletable(selected, settings.protected_branches, current_branch)
    if not survivors:
        raise NoDeletableSelectionError()
    return build_plan(survivors)
