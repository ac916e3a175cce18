"""Read branch facts from git and perform the two mutating operations."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path

from .exceptions import GitCommandError, RepositoryAccessError
from .git import GitRunner, run_git
from .models import BranchKind, BranchRecord, sort_branches
from .refnames import split_remote_ref, validate_branch_name

logger = logging.getLogger(__name__)

BRANCH_LIST_FORMAT = "%(refname)%00%(committerdate:iso8601-strict)%00%(objectname)%00%(contents:subject)"
DEFAULT_BRANCH_NAMES = ("main", "master", "develop")

_REF_PREFIXES = {
    BranchKind.LOCAL: "refs/heads/",
    BranchKind.REMOTE: "refs/remotes/",
}


@dataclass
class BranchRepository:
    """Branch-level view of a single git repository."""

    repo_path: Path
    base_remote: str = "origin"
    runner: GitRunner = run_git
    max_workers: int = 8

    def ensure_repository(self) -> None:
        try:
            value = self._git("rev-parse", "--is-inside-work-tree").stdout.strip()
        except GitCommandError as exc:
            raise RepositoryAccessError("Not a git repository (or any of the parent directories).") from exc
        if value.lower() != "true":
            raise RepositoryAccessError("Not a git repository (or any of the parent directories).")

    def current_branch(self) -> str | None:
        """Return the checked-out branch, or None when HEAD is detached."""

        try:
            proc = self._git("branch", "--show-current")
        except GitCommandError as exc:
            raise RepositoryAccessError(f"Unable to determine the current branch: {exc.details}") from exc
        return proc.stdout.strip() or None

    def is_working_tree_clean(self) -> bool:
        proc = self._git("status", "--porcelain")
        return not proc.stdout.strip()

    def fetch_all(self, *, prune: bool = True) -> None:
        args = ["fetch", "--all"]
        if prune:
            args.append("--prune")
        self._git(*args)

    def list_branches(self, include_remote: bool = False) -> list[BranchRecord]:
        """Enumerate branches annotated with merge status and ahead/behind counts.

        Listing, merged-set queries and base detection are independent reads and
        run side by side; the per-branch counts follow once the base is known.
        """

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            local_future = pool.submit(self._list_refs, BranchKind.LOCAL)
            local_merged_future = pool.submit(self._merged_set, BranchKind.LOCAL)
            remote_future = remote_merged_future = None
            if include_remote:
                remote_future = pool.submit(self._list_refs, BranchKind.REMOTE)
                remote_merged_future = pool.submit(self._merged_set, BranchKind.REMOTE)
            base_future = pool.submit(self.resolve_base_ref)

            try:
                candidates = local_future.result()
                if remote_future is not None:
                    candidates += remote_future.result()
            except GitCommandError as exc:
                raise RepositoryAccessError(f"Unable to list branches: {exc.details}") from exc

            merged = {
                BranchKind.LOCAL: local_merged_future.result(),
                BranchKind.REMOTE: remote_merged_future.result() if remote_merged_future else set(),
            }
            base = base_future.result()
            if base is None:
                logger.debug("No base branch found; ahead/behind counts default to zero")
                counts = [(0, 0)] * len(candidates)
            else:
                logger.debug("Using %s as base branch for ahead/behind counts", base)
                counts = list(pool.map(lambda branch: self.ahead_behind(base, branch), candidates))

        records = [
            replace(branch, is_merged=branch.ref in merged[branch.kind], ahead=ahead, behind=behind)
            for branch, (ahead, behind) in zip(candidates, counts)
        ]
        return sort_branches(records)

    def resolve_base_ref(self) -> str | None:
        """Return the full ref of the first default branch that exists."""

        candidates = [f"refs/remotes/{self.base_remote}/{name}" for name in DEFAULT_BRANCH_NAMES]
        candidates += [f"refs/heads/{name}" for name in DEFAULT_BRANCH_NAMES]
        for ref in candidates:
            proc = self._git("rev-parse", "--verify", "--quiet", ref, raise_on_error=False)
            if proc.returncode == 0:
                return ref
        return None

    def ahead_behind(self, base_ref: str, branch: BranchRecord) -> tuple[int, int]:
        if branch.full_ref == base_ref:
            return 0, 0
        try:
            proc = self._git("rev-list", "--left-right", "--count", f"{base_ref}...{branch.full_ref}")
            behind, ahead = (int(part) for part in proc.stdout.split())
        except (GitCommandError, ValueError) as exc:
            logger.debug("Could not count commits for %s against %s: %s", branch.ref, base_ref, exc)
            return 0, 0
        return max(ahead, 0), max(behind, 0)

    def delete_local(self, name: str, *, force: bool = False) -> None:
        validate_branch_name(name)
        self._git("branch", "-D" if force else "-d", "--", name)

    def delete_remote(self, remote: str, name: str) -> None:
        validate_branch_name(remote, kind="remote")
        validate_branch_name(name)
        self._git("push", remote, "--delete", name)

    def _list_refs(self, kind: BranchKind) -> list[BranchRecord]:
        proc = self._git("for-each-ref", f"--format={BRANCH_LIST_FORMAT}", _REF_PREFIXES[kind])
        seen: set[str] = set()
        records: list[BranchRecord] = []
        for line in proc.stdout.splitlines():
            record = parse_ref_line(line, kind)
            if record is None or record.ref in seen:
                continue
            seen.add(record.ref)
            records.append(record)
        return records

    def _merged_set(self, kind: BranchKind) -> set[str]:
        args = ["branch", "--merged"] if kind is BranchKind.LOCAL else ["branch", "-r", "--merged"]
        try:
            proc = self._git(*args)
        except GitCommandError as exc:
            logger.debug("Could not list merged %s branches: %s", kind.value, exc.details)
            return set()
        return parse_merged_output(proc.stdout)

    def _git(self, *args: str, raise_on_error: bool = True):
        return self.runner(list(args), cwd=self.repo_path, raise_on_error=raise_on_error)


def parse_ref_line(line: str, kind: BranchKind) -> BranchRecord | None:
    """Build a record from one ``for-each-ref`` line; None for pointers and junk."""

    line = line.strip()
    if not line:
        return None
    refname, date_text, sha, subject = (line.split("\0") + ["", "", ""])[:4]
    prefix = _REF_PREFIXES[kind]
    ref = refname[len(prefix):] if refname.startswith(prefix) else refname
    if not ref or _is_head_pointer(ref):
        return None

    common = {
        "last_commit_at": parse_commit_date(date_text),
        "last_commit_sha": sha.strip() or None,
        "last_commit_subject": subject.strip() or None,
    }
    if kind is BranchKind.REMOTE:
        parts = split_remote_ref(ref)
        if parts is None or _is_head_pointer(parts[1]):
            return None
        remote, name = parts
        return BranchRecord(ref=ref, name=name, kind=kind, remote=remote, **common)
    return BranchRecord(ref=ref, name=ref, kind=kind, **common)


def parse_commit_date(value: str) -> datetime | None:
    value = value.strip()
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def parse_merged_output(output: str) -> set[str]:
    merged: set[str] = set()
    for raw in output.splitlines():
        line = raw.strip()
        if line[:1] in {"*", "+"}:
            line = line[1:].strip()
        if not line or " -> " in line or line.startswith("("):
            continue
        merged.add(line)
    return merged


def _is_head_pointer(value: str) -> bool:
    return value == "HEAD" or value.endswith("/HEAD")
