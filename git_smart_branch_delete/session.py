"""Session state machine tying loading, selection, confirmation and execution together.

The session is a ``SessionState`` value. Each event (load finished, selection
submitted, confirm, cancel, execution finished, force decision) is a pure
function returning the next state; ``run_session`` is the only place that talks
to git and to the prompts.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Protocol, Sequence

from .exceptions import (
    BranchDeleteError,
    GitCommandError,
    NoDeletableSelectionError,
    UserAbort,
    ValidationError,
)
from .executor import BranchDeleter, ExecutionEngine, ExecutionPhase
from .models import BranchRecord, DeletionPlanItem, ExecutionResult, Settings
from .planner import build_automatic_plan, build_interactive_plan, sort_branches
from .policy import is_current

logger = logging.getLogger(__name__)


class SessionPhase(str, Enum):
    LOADING = "loading"
    SELECTING = "selecting"
    CONFIRMING = "confirming"
    EXECUTING = "executing"
    AWAITING_FORCE_CONFIRMATION = "awaiting_force_confirmation"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_PHASES = frozenset({SessionPhase.DONE, SessionPhase.CANCELLED, SessionPhase.FAILED})


class SessionMode(str, Enum):
    INTERACTIVE = "interactive"
    AUTOMATIC = "automatic"


class SessionDisposition(Enum):
    SUCCESS = 0
    PARTIAL_FAILURE = 1
    FATAL = 2
    CANCELLED = 130

    @property
    def exit_code(self) -> int:
        return self.value


@dataclass(frozen=True)
class SessionState:
    phase: SessionPhase
    mode: SessionMode
    settings: Settings
    current_branch: str | None = None
    universe: tuple[BranchRecord, ...] = ()
    plan: tuple[DeletionPlanItem, ...] = ()
    results: tuple[ExecutionResult, ...] = ()
    pending_force: tuple[DeletionPlanItem, ...] = ()
    message: str = ""
    error: str | None = None

    @property
    def terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    @property
    def failures(self) -> tuple[ExecutionResult, ...]:
        return tuple(result for result in self.results if not result.succeeded)

    @property
    def disposition(self) -> SessionDisposition | None:
        if self.phase is SessionPhase.FAILED:
            return SessionDisposition.FATAL
        if self.phase is SessionPhase.CANCELLED:
            return SessionDisposition.CANCELLED
        if self.phase is SessionPhase.DONE:
            return SessionDisposition.PARTIAL_FAILURE if self.failures else SessionDisposition.SUCCESS
        return None


def _expect(state: SessionState, *phases: SessionPhase) -> None:
    if state.phase not in phases:
        expected = ", ".join(phase.value for phase in phases)
        raise RuntimeError(f"Invalid session transition from {state.phase.value} (expected {expected}).")


def _plural(count: int) -> str:
    return "branch" if count == 1 else "branches"


def initial_state(settings: Settings) -> SessionState:
    mode = SessionMode.AUTOMATIC if settings.automatic else SessionMode.INTERACTIVE
    return SessionState(phase=SessionPhase.LOADING, mode=mode, settings=settings, message="Loading branches…")


def on_loaded(
    state: SessionState,
    current_branch: str | None,
    branches: Sequence[BranchRecord],
    *,
    now: datetime | None = None,
) -> SessionState:
    _expect(state, SessionPhase.LOADING)
    settings = state.settings
    universe = list(branches)
    if not settings.force:
        universe = [branch for branch in universe if not is_current(branch, current_branch)]
    universe = sort_branches(universe)
    state = replace(state, current_branch=current_branch, universe=tuple(universe))

    if state.mode is SessionMode.INTERACTIVE:
        if not universe:
            return replace(state, phase=SessionPhase.DONE, message="No branches available for deletion.")
        return replace(state, phase=SessionPhase.SELECTING, message="Select branches to delete")

    plan = build_automatic_plan(universe, settings, current_branch, now=now)
    if not plan:
        return replace(state, phase=SessionPhase.DONE, message="No branches match the deletion criteria.")
    return _planned(state, plan)


def on_load_failed(state: SessionState, error: str) -> SessionState:
    _expect(state, SessionPhase.LOADING)
    return replace(state, phase=SessionPhase.FAILED, message="Unable to read the repository.", error=error)


def on_selection_submitted(state: SessionState, selected: Sequence[BranchRecord]) -> SessionState:
    _expect(state, SessionPhase.SELECTING)
    try:
        plan = build_interactive_plan(selected, state.settings, state.current_branch)
    except NoDeletableSelectionError as exc:
        return replace(state, phase=SessionPhase.FAILED, message=str(exc), error=str(exc))
    return _planned(state, plan)


def on_selection_cancelled(state: SessionState) -> SessionState:
    _expect(state, SessionPhase.SELECTING)
    return replace(state, phase=SessionPhase.CANCELLED, message="Selection cancelled.")


def on_confirmed(state: SessionState) -> SessionState:
    _expect(state, SessionPhase.CONFIRMING)
    return replace(state, phase=SessionPhase.EXECUTING, message=_executing_message(state.settings))


def on_confirmation_cancelled(state: SessionState) -> SessionState:
    _expect(state, SessionPhase.CONFIRMING)
    return replace(state, phase=SessionPhase.CANCELLED, message="Cancelled. No branches were deleted.")


def on_execution_finished(
    state: SessionState,
    results: Sequence[ExecutionResult],
    pending_force: Sequence[DeletionPlanItem] = (),
) -> SessionState:
    _expect(state, SessionPhase.EXECUTING)
    state = replace(state, results=tuple(results), pending_force=tuple(pending_force))
    if pending_force:
        count = len(pending_force)
        return replace(
            state,
            phase=SessionPhase.AWAITING_FORCE_CONFIRMATION,
            message=f"{count} {_plural(count)} not fully merged. Force delete?",
        )
    return replace(state, phase=SessionPhase.DONE, message=_done_message(state))


def on_force_decision(state: SessionState, proceed: bool) -> SessionState:
    _expect(state, SessionPhase.AWAITING_FORCE_CONFIRMATION)
    if proceed:
        return replace(state, phase=SessionPhase.EXECUTING, message="Force deleting unmerged branches…")
    state = replace(state, pending_force=())
    return replace(state, phase=SessionPhase.DONE, message=_done_message(state))


def on_user_abort(state: SessionState) -> SessionState:
    if state.terminal:
        return state
    return replace(state, phase=SessionPhase.CANCELLED, message="Cancelled. No further branches were deleted.")


def on_prompt_failed(state: SessionState, error: str) -> SessionState:
    _expect(state, SessionPhase.SELECTING, SessionPhase.CONFIRMING, SessionPhase.AWAITING_FORCE_CONFIRMATION)
    return replace(state, phase=SessionPhase.FAILED, message=error, error=error)


def _planned(state: SessionState, plan: Sequence[DeletionPlanItem]) -> SessionState:
    count = len(plan)
    state = replace(state, plan=tuple(plan))
    if state.settings.skip_confirmation:
        return replace(state, phase=SessionPhase.EXECUTING, message=_executing_message(state.settings))
    suffix = " (dry run)" if state.settings.dry_run else ""
    return replace(
        state,
        phase=SessionPhase.CONFIRMING,
        message=f"Delete {count} {_plural(count)}?{suffix}",
    )


def _executing_message(settings: Settings) -> str:
    return "DRY RUN: nothing will be deleted" if settings.dry_run else "Deleting branches…"


def _done_message(state: SessionState) -> str:
    if state.settings.dry_run:
        return f"DRY RUN complete: {len(state.results)} {_plural(len(state.results))} would be deleted."
    failed = len(state.failures)
    deleted = len(state.results) - failed
    if failed:
        return f"Deleted {deleted} {_plural(deleted)}; {failed} could not be deleted."
    return f"Deleted {deleted} {_plural(deleted)}."


class BranchSource(BranchDeleter, Protocol):
    def current_branch(self) -> str | None: ...

    def list_branches(self, include_remote: bool = False) -> list[BranchRecord]: ...

    def is_working_tree_clean(self) -> bool: ...

    def fetch_all(self, *, prune: bool = True) -> None: ...


class SessionPrompts(Protocol):
    def select_branches(self, branches: Sequence[BranchRecord], label: str) -> list[BranchRecord] | None: ...

    def confirm(self, message: str) -> bool: ...

    def confirm_force(self, items: Sequence[DeletionPlanItem]) -> bool: ...


class SessionReporter(Protocol):
    def status(self, message: str) -> None: ...

    def success(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def show_plan(self, plan: Sequence[DeletionPlanItem], *, dry_run: bool) -> None: ...

    def show_results(self, results: Sequence[ExecutionResult], *, dry_run: bool) -> None: ...


@dataclass(frozen=True)
class SessionOutcome:
    state: SessionState
    history: tuple[ExecutionResult, ...] = ()

    @property
    def disposition(self) -> SessionDisposition:
        return self.state.disposition or SessionDisposition.FATAL

    @property
    def exit_code(self) -> int:
        return self.disposition.exit_code

    @property
    def results(self) -> tuple[ExecutionResult, ...]:
        return self.state.results


def load_universe(repository: BranchSource, settings: Settings) -> tuple[str | None, list[BranchRecord]]:
    with ThreadPoolExecutor(max_workers=2) as pool:
        current_future = pool.submit(repository.current_branch)
        branches_future = pool.submit(repository.list_branches, settings.remote_enabled)
        return current_future.result(), branches_future.result()


def run_session(
    settings: Settings,
    repository: BranchSource,
    prompts: SessionPrompts,
    reporter: SessionReporter,
    *,
    now: datetime | None = None,
) -> SessionOutcome:
    state = initial_state(settings)
    reporter.status(state.message)
    try:
        if settings.fetch:
            repository.fetch_all()
        current_branch, branches = load_universe(repository, settings)
    except (BranchDeleteError, OSError) as exc:
        state = on_load_failed(state, str(exc))
        reporter.error(state.error or state.message)
        return SessionOutcome(state)

    _warn_if_dirty(repository, reporter)
    state = on_loaded(state, current_branch, branches, now=now)
    engine = ExecutionEngine(repository)

    try:
        while not state.terminal:
            state = _step(state, engine, prompts, reporter)
    except UserAbort:
        state = on_user_abort(state)
    except ValidationError as exc:
        state = on_prompt_failed(state, str(exc))

    if state.phase is SessionPhase.DONE:
        if state.results:
            reporter.show_results(state.results, dry_run=settings.dry_run)
        if state.failures:
            reporter.warning(state.message)
        else:
            reporter.success(state.message)
    elif state.phase is SessionPhase.FAILED:
        reporter.error(state.error or state.message)
    else:
        reporter.warning(state.message)
    return SessionOutcome(state, tuple(engine.history))


def _step(
    state: SessionState,
    engine: ExecutionEngine,
    prompts: SessionPrompts,
    reporter: SessionReporter,
) -> SessionState:
    settings = state.settings
    if state.phase is SessionPhase.SELECTING:
        selected = prompts.select_branches(state.universe, state.message)
        if selected is None:
            return on_selection_cancelled(state)
        return on_selection_submitted(state, selected)

    if state.phase is SessionPhase.CONFIRMING:
        reporter.show_plan(state.plan, dry_run=settings.dry_run)
        if prompts.confirm(state.message):
            return on_confirmed(state)
        return on_confirmation_cancelled(state)

    if state.phase is SessionPhase.EXECUTING:
        if engine.phase is ExecutionPhase.AWAITING_FORCE_CONFIRMATION:
            engine.retry_with_force()
        else:
            if settings.skip_confirmation:
                reporter.show_plan(state.plan, dry_run=settings.dry_run)
            reporter.status(state.message)
            engine.run(state.plan, dry_run=settings.dry_run, force=settings.force)
        return on_execution_finished(state, engine.final_results(), engine.pending_force)

    if state.phase is SessionPhase.AWAITING_FORCE_CONFIRMATION:
        proceed = prompts.confirm_force(state.pending_force)
        if not proceed:
            engine.decline_force()
        return on_force_decision(state, proceed)

    raise RuntimeError(f"Unhandled session phase: {state.phase.value}")


def _warn_if_dirty(repository: BranchSource, reporter: SessionReporter) -> None:
    try:
        clean = repository.is_working_tree_clean()
    except (GitCommandError, OSError) as exc:
        logger.debug("Could not determine working tree status: %s", exc)
        return
    if not clean:
        reporter.warning("Working tree has uncommitted changes.")
