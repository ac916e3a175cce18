"""Thin wrappers around git CLI commands."""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Callable, Iterable

from .exceptions import GitCommandError, RepositoryAccessError

logger = logging.getLogger(__name__)

GitRunner = Callable[..., "subprocess.CompletedProcess[str]"]

def git_env() -> dict[str, str]:
    """Process environment with git messages forced to untranslated English."""

    return {**os.environ, "LC_ALL": "C"}


def run_git(
    args: Iterable[str],
    *,
    cwd: Path,
    raise_on_error: bool = True,
) -> subprocess.CompletedProcess[str]:
    """Execute a git command and optionally raise on failure."""

    cmd = ["git", *args]
    logger.debug("Running command: %s", shlex.join(cmd))
    proc = subprocess.run(
        cmd,
        cwd=str(cwd),
        capture_output=True,
        text=True,
        check=False,
        env=git_env(),
    )
    if raise_on_error and proc.returncode != 0:
        raise GitCommandError(cmd, proc.returncode, stdout=proc.stdout, stderr=proc.stderr)
    return proc


def require_git() -> None:
    if shutil.which("git") is None:
        raise RepositoryAccessError("Required binary not found in PATH: git")


def rev_parse_toplevel(path: Path, runner: GitRunner = run_git) -> Path:
    try:
        proc = runner(["rev-parse", "--show-toplevel"], cwd=path)
    except GitCommandError as exc:
        raise RepositoryAccessError("Not a git repository (or any of the parent directories).") from exc
    return Path(proc.stdout.strip())
