"""Tests for plan execution and the force escalation path."""

from __future__ import annotations

import unittest
from pathlib import Path

from fakes import FakeGit, FakeRepository, make_branch

from git_smart_branch_delete.executor import ExecutionEngine, ExecutionPhase, is_unmerged_failure
from git_smart_branch_delete.planner import build_plan
from git_smart_branch_delete.repository import BranchRepository


class ExecuteTests(unittest.TestCase):
    def test_dry_run_never_mutates(self) -> None:
        repo = FakeRepository()
        plan = build_plan([make_branch("a"), make_branch("b", remote="origin")])
        engine = ExecutionEngine(repo)
        results = engine.run(plan, dry_run=True)
        self.assertTrue(all(result.succeeded for result in results))
        self.assertFalse(repo.mutated)
        self.assertIs(engine.phase, ExecutionPhase.COMPLETED)

    def test_dry_run_does_not_escalate(self) -> None:
        repo = FakeRepository(unmerged=["a"])
        engine = ExecutionEngine(repo)
        engine.run(build_plan([make_branch("a")]), dry_run=True)
        self.assertIs(engine.phase, ExecutionPhase.COMPLETED)
        self.assertEqual(engine.pending_force, [])

    def test_routes_local_and_remote_deletes_in_plan_order(self) -> None:
        repo = FakeRepository()
        plan = build_plan([make_branch("b"), make_branch("x", remote="upstream"), make_branch("a")])
        results = ExecutionEngine(repo).run(plan, force=True)
        self.assertEqual(
            repo.deletions,
            [("local", "b", "force"), ("remote", "upstream", "x"), ("local", "a", "force")],
        )
        self.assertEqual([r.branch.ref for r in results], ["b", "upstream/x", "a"])
        self.assertEqual([r.forced for r in results], [True, False, True])

    def test_failures_are_recorded_and_do_not_abort(self) -> None:
        repo = FakeRepository(broken=["b"])
        plan = build_plan([make_branch("a"), make_branch("b"), make_branch("c")])
        results = ExecutionEngine(repo).run(plan)
        self.assertEqual([r.succeeded for r in results], [True, False, True])
        self.assertIn("cannot lock ref", results[1].error)

    def test_invalid_name_is_a_failed_result(self) -> None:
        git = FakeGit()
        repo = BranchRepository(Path("/repo"), runner=git)
        results = ExecutionEngine(repo).run(build_plan([make_branch("-rf")]))
        self.assertFalse(results[0].succeeded)
        self.assertIn("Invalid branch name", results[0].error)
        self.assertEqual(git.calls, [])


class EscalationTests(unittest.TestCase):
    def test_unmerged_failure_awaits_force_decision(self) -> None:
        repo = FakeRepository(unmerged=["wip"], broken=["locked"])
        plan = build_plan([make_branch("done"), make_branch("wip"), make_branch("locked")])
        engine = ExecutionEngine(repo)
        results = engine.run(plan)
        self.assertIs(engine.phase, ExecutionPhase.AWAITING_FORCE_CONFIRMATION)
        self.assertEqual([item.branch.ref for item in engine.pending_force], ["wip"])
        self.assertTrue(is_unmerged_failure(results[1]))
        self.assertFalse(is_unmerged_failure(results[2]))

    def test_confirmed_force_retries_only_unmerged_subset(self) -> None:
        repo = FakeRepository(unmerged=["wip"])
        plan = build_plan([make_branch("done"), make_branch("wip")])
        engine = ExecutionEngine(repo)
        engine.run(plan)
        retry = engine.retry_with_force()

        self.assertEqual([r.branch.ref for r in retry], ["wip"])
        self.assertTrue(retry[0].succeeded)
        self.assertTrue(retry[0].forced)
        self.assertEqual(
            repo.deletions,
            [("local", "done", "safe"), ("local", "wip", "safe"), ("local", "wip", "force")],
        )
        self.assertIs(engine.phase, ExecutionPhase.COMPLETED)

        final = engine.final_results()
        self.assertEqual([(r.branch.ref, r.succeeded) for r in final], [("done", True), ("wip", True)])
        self.assertEqual(len(engine.history), 3)

    def test_declined_force_keeps_failures(self) -> None:
        repo = FakeRepository(unmerged=["wip"])
        engine = ExecutionEngine(repo)
        engine.run(build_plan([make_branch("wip")]))
        engine.decline_force()
        self.assertIs(engine.phase, ExecutionPhase.CANCELLED)
        self.assertFalse(engine.final_results()[0].succeeded)
        self.assertEqual(len(repo.deletions), 1)

    def test_force_already_active_never_escalates(self) -> None:
        repo = FakeRepository(unmerged=["bugfix/1"])
        engine = ExecutionEngine(repo)
        results = engine.run(build_plan([make_branch("bugfix/1")]), force=True)
        self.assertTrue(results[0].succeeded)
        self.assertIs(engine.phase, ExecutionPhase.COMPLETED)
        self.assertEqual(repo.deletions, [("local", "bugfix/1", "force")])

    def test_retry_without_pending_decision_is_an_error(self) -> None:
        engine = ExecutionEngine(FakeRepository())
        with self.assertRaises(RuntimeError):
            engine.retry_with_force()
        engine.run([])
        with self.assertRaises(RuntimeError):
            engine.decline_force()

    def test_engine_runs_once(self) -> None:
        engine = ExecutionEngine(FakeRepository())
        engine.run([])
        with self.assertRaises(RuntimeError):
            engine.run([])


if __name__ == "__main__":
    unittest.main()
