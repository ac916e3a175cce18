"""Sequential plan execution with force-delete escalation for unmerged branches."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, Sequence

from .exceptions import BranchDeleteError, GitCommandError
from .models import DeletionPlanItem, ExecutionResult

logger = logging.getLogger(__name__)

UNMERGED_MARKER = "not fully merged"


class ExecutionPhase(str, Enum):
    IDLE = "idle"
    EXECUTING = "executing"
    AWAITING_FORCE_CONFIRMATION = "awaiting_force_confirmation"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BranchDeleter(Protocol):
    def delete_local(self, name: str, *, force: bool = False) -> None: ...

    def delete_remote(self, remote: str, name: str) -> None: ...


def failure_detail(exc: Exception) -> str:
    if isinstance(exc, GitCommandError):
        return exc.details
    return str(exc) or exc.__class__.__name__


def is_unmerged_failure(result: ExecutionResult) -> bool:
    return not result.succeeded and UNMERGED_MARKER in (result.error or "")


@dataclass
class ExecutionEngine:
    """Runs a deletion plan one branch at a time and tracks every attempt.

    After the first pass, failures git reports as "not fully merged" are held
    back for a force decision unless force was already on. ``history`` keeps
    every attempt; ``final_results`` keeps the latest attempt per branch.
    """

    deleter: BranchDeleter
    phase: ExecutionPhase = ExecutionPhase.IDLE
    history: list[ExecutionResult] = field(default_factory=list)
    pending_force: list[DeletionPlanItem] = field(default_factory=list)
    _plan: list[DeletionPlanItem] = field(default_factory=list, repr=False)

    def execute(
        self,
        plan: Sequence[DeletionPlanItem],
        *,
        dry_run: bool = False,
        force: bool = False,
    ) -> list[ExecutionResult]:
        results = [self._attempt(item, dry_run=dry_run, force=force) for item in plan]
        self.history.extend(results)
        return results

    def run(
        self,
        plan: Sequence[DeletionPlanItem],
        *,
        dry_run: bool = False,
        force: bool = False,
    ) -> list[ExecutionResult]:
        if self.phase is not ExecutionPhase.IDLE:
            raise RuntimeError(f"Execution already started (phase: {self.phase.value}).")
        self._plan = list(plan)
        self.phase = ExecutionPhase.EXECUTING
        results = self.execute(self._plan, dry_run=dry_run, force=force)

        unmerged = [item for item, result in zip(self._plan, results) if is_unmerged_failure(result)]
        if unmerged and not force and not dry_run:
            self.pending_force = unmerged
            self.phase = ExecutionPhase.AWAITING_FORCE_CONFIRMATION
        else:
            self.phase = ExecutionPhase.COMPLETED
        return results

    def retry_with_force(self) -> list[ExecutionResult]:
        self._require_awaiting()
        self.phase = ExecutionPhase.EXECUTING
        results = self.execute(self.pending_force, force=True)
        self.pending_force = []
        self.phase = ExecutionPhase.COMPLETED
        return results

    def decline_force(self) -> None:
        self._require_awaiting()
        self.pending_force = []
        self.phase = ExecutionPhase.CANCELLED

    def final_results(self) -> list[ExecutionResult]:
        latest: dict[str, ExecutionResult] = {}
        for result in self.history:
            latest[result.branch.full_ref] = result
        return [latest[item.branch.full_ref] for item in self._plan if item.branch.full_ref in latest]

    def _attempt(self, item: DeletionPlanItem, *, dry_run: bool, force: bool) -> ExecutionResult:
        branch = item.branch
        forced = force and not item.targets_remote
        if dry_run:
            return ExecutionResult(branch=branch, succeeded=True, forced=forced)
        try:
            if item.targets_remote and branch.remote:
                self.deleter.delete_remote(branch.remote, branch.name)
            else:
                self.deleter.delete_local(branch.name, force=force)
        except (BranchDeleteError, OSError) as exc:
            detail = failure_detail(exc)
            logger.debug("Deleting %s failed: %s", branch.ref, detail)
            return ExecutionResult(branch=branch, succeeded=False, error=detail, forced=forced)
        logger.debug("Deleted %s%s", branch.ref, " (forced)" if forced else "")
        return ExecutionResult(branch=branch, succeeded=True, forced=forced)

    def _require_awaiting(self) -> None:
        if self.phase is not ExecutionPhase.AWAITING_FORCE_CONFIRMATION:
            raise RuntimeError(f"No force decision pending (phase: {self.phase.value}).")
