"""Typer-based CLI for git-smart-branch-delete."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import (
    DEFAULTS,
    global_config_path,
    load_config,
    parse_protected,
    reset_global_config,
    resolve_settings,
    set_global_value,
    unset_global_value,
    write_global_config,
)
from .exceptions import BranchDeleteError, RepositoryAccessError
from .git import require_git, rev_parse_toplevel
from .interactive import InquirerPrompts
from .render import ConsoleReporter
from .repository import BranchRepository
from .session import SessionDisposition, run_session

app = typer.Typer(
    help="Prune local and remote git branches interactively or by declarative filters.",
    add_completion=False,
    rich_markup_mode="rich",
)
config_app = typer.Typer(help="Manage the global configuration file.", add_completion=False)
app.add_typer(config_app, name="config")


@dataclass(slots=True)
class CliState:
    repo: Path | None
    console: Console
    verbose: bool = False


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"git-smart-branch-delete {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    pattern: Optional[str] = typer.Option(
        None, "--pattern", "-p", help="Filter branches by name (regex, or plain substring if not a valid regex)."
    ),
    remote: Optional[bool] = typer.Option(None, "--remote/--no-remote", "-r", help="Include remote branches."),
    local_only: Optional[bool] = typer.Option(
        None, "--local-only/--no-local-only", help="Only consider local branches, even if remotes are configured."
    ),
    dry_run: Optional[bool] = typer.Option(
        None, "--dry-run/--no-dry-run", "-n", help="Show what would be deleted without deleting anything."
    ),
    yes: Optional[bool] = typer.Option(None, "--yes/--no-yes", "-y", help="Skip confirmation prompts."),
    force: Optional[bool] = typer.Option(
        None, "--force/--no-force", "-f", help="Force delete unmerged branches (git branch -D)."
    ),
    protected: Optional[list[str]] = typer.Option(
        None,
        "--protected",
        metavar="LIST",
        help="Comma-separated protected branches; '/regex/flags' entries are patterns. Repeatable.",
    ),
    default_remote: Optional[str] = typer.Option(
        None, "--default-remote", help="Remote used to find the base branch for ahead/behind counts."
    ),
    cleanup_merged: Optional[int] = typer.Option(
        None, "--cleanup-merged", min=0, metavar="DAYS", help="Only delete branches older than DAYS days."
    ),
    fetch: Optional[bool] = typer.Option(
        None, "--fetch/--no-fetch", help="Run 'git fetch --all --prune' before listing branches."
    ),
    no_config: bool = typer.Option(False, "--no-config", help="Ignore configuration files."),
    repo: Optional[Path] = typer.Option(
        None,
        "--repo",
        help="Path to the repository to operate on (defaults to current working directory).",
        dir_okay=True,
        file_okay=False,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging."),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the git-smart-branch-delete version and exit.",
    ),
) -> None:
    """Select branches to delete, or delete everything matching --pattern / --cleanup-merged."""

    _ = version  # handled via callback
    configure_logging(verbose)
    console = Console()
    if ctx.invoked_subcommand is not None:
        ctx.obj = CliState(repo=repo, console=console, verbose=verbose)
        return

    reporter = ConsoleReporter(console)
    protected_list = None
    if protected:
        protected_list = [item for value in protected for item in (parse_protected(value) or [])]
    overrides = {
        "pattern": pattern,
        "remote": remote,
        "local_only": local_only,
        "dry_run": dry_run,
        "yes": yes,
        "force": force,
        "protected_branches": protected_list,
        "default_remote": default_remote,
        "cleanup_merged_days": cleanup_merged,
        "fetch": fetch,
    }
    try:
        require_git()
        repo_root = rev_parse_toplevel(_repo_dir(repo))
        settings = resolve_settings(load_config(repo_root, use_files=not no_config), overrides)
        repository = BranchRepository(repo_root, base_remote=settings.default_remote)
        repository.ensure_repository()
    except BranchDeleteError as exc:
        reporter.error(str(exc))
        raise typer.Exit(SessionDisposition.FATAL.exit_code) from exc

    outcome = run_session(settings, repository, InquirerPrompts(console), reporter)
    raise typer.Exit(outcome.exit_code)


@config_app.command("show", help="Show the effective configuration and where each value comes from.")
def config_show(ctx: typer.Context) -> None:
    state = _require_state(ctx)
    repo_root = _try_repo_root(state.repo)
    try:
        result = load_config(repo_root)
    except BranchDeleteError as exc:
        _fail(str(exc))
    table = Table(show_header=True, header_style="bold")
    table.add_column("Option")
    table.add_column("Value")
    table.add_column("Source")
    for key in sorted(result.values):
        table.add_row(key, _format_value(result.values[key]), result.sources.get(key, "default"))
    state.console.print(table)


@config_app.command("set", help="Store an option in the global configuration file.")
def config_set(
    ctx: typer.Context,
    key: str = typer.Argument(..., help=f"One of: {', '.join(sorted(DEFAULTS))}."),
    value: str = typer.Argument(..., help="Value; lists are comma-separated."),
) -> None:
    state = _require_state(ctx)
    try:
        path = set_global_value(key, value)
    except BranchDeleteError as exc:
        _fail(str(exc))
    state.console.print(f"Saved {key} to {path}")


@config_app.command("unset", help="Remove an option from the global configuration file.")
def config_unset(ctx: typer.Context, key: str = typer.Argument(...)) -> None:
    state = _require_state(ctx)
    try:
        path = unset_global_value(key)
    except BranchDeleteError as exc:
        _fail(str(exc))
    state.console.print(f"Removed {key} from {path}")


@config_app.command("reset", help="Reset the global configuration file to defaults.")
def config_reset(ctx: typer.Context) -> None:
    state = _require_state(ctx)
    path = reset_global_config()
    state.console.print(f"Configuration reset to default: {path}")


@config_app.command("path", help="Print the location of the global configuration file.")
def config_path() -> None:
    typer.echo(str(global_config_path()))


@config_app.command("edit", help="Open the global configuration file in $EDITOR.")
def config_edit() -> None:
    path = global_config_path()
    if not path.exists():
        write_global_config({}, path)
    typer.edit(filename=str(path))


def _require_state(ctx: typer.Context) -> CliState:
    state = ctx.obj
    if not isinstance(state, CliState):  # pragma: no cover
        raise typer.Exit(1)
    return state


def _repo_dir(repo: Path | None) -> Path:
    return repo.expanduser() if repo else Path.cwd()


def _try_repo_root(repo: Path | None) -> Path | None:
    try:
        return rev_parse_toplevel(_repo_dir(repo))
    except (RepositoryAccessError, OSError):
        return None


def _format_value(value: object) -> str:
    if isinstance(value, list):
        return ", ".join(value) if value else "(not set)"
    if value is None or value == "":
        return "(not set)"
    return str(value).lower() if isinstance(value, bool) else str(value)


def _fail(message: str, code: int = SessionDisposition.FATAL.exit_code) -> None:
    typer.secho(message, err=True, fg=typer.colors.RED)
    raise typer.Exit(code)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
