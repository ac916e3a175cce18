"""Rich UI helpers for terminal output."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .models import BranchRecord, DeletionPlanItem, ExecutionResult

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f-\x9f]")


def sanitize(text: str) -> str:
    """Strip control characters (including ANSI escapes) and rich markup from git-provided text."""

    return escape(_CONTROL_CHARS.sub("", text))


def format_date(value: datetime | None) -> str:
    if value is None:
        return "unknown"
    return value.strftime("%Y-%m-%d")


def format_divergence(branch: BranchRecord) -> str:
    parts = []
    if branch.ahead > 0:
        parts.append(f"+{branch.ahead}")
    if branch.behind > 0:
        parts.append(f"-{branch.behind}")
    return ", ".join(parts)


def branch_label(branch: BranchRecord) -> str:
    """One-line plain-text description used by the picker."""

    label = branch.ref
    divergence = format_divergence(branch)
    if divergence:
        label += f" ({divergence})"
    label += f" [{branch.type_label}] {format_date(branch.last_commit_at)}"
    if branch.last_commit_subject:
        label += f" - {_CONTROL_CHARS.sub('', branch.last_commit_subject)}"
    if branch.is_merged:
        label += " ✓"
    return label


class ConsoleReporter:
    """Session reporter printing to a rich console."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def info(self, message: str) -> None:
        self.console.print(f"[blue]ℹ[/blue] {message}")

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {message}")

    def status(self, message: str) -> None:
        self.info(message)

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]⚠[/yellow] {message}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {sanitize(message)}", style="red")

    def show_plan(self, plan: Sequence[DeletionPlanItem], *, dry_run: bool) -> None:
        title = "Branches to delete (dry run)" if dry_run else "Branches to delete"
        table = Table(title=title, show_header=True, header_style="bold")
        table.add_column("Branch")
        table.add_column("Type")
        table.add_column("Last commit")
        table.add_column("Ahead/Behind")
        table.add_column("Merged")
        table.add_column("Subject")
        for item in plan:
            branch = item.branch
            table.add_row(
                sanitize(branch.ref),
                branch.type_label,
                format_date(branch.last_commit_at),
                format_divergence(branch),
                "[green]✓[/green]" if branch.is_merged else "",
                sanitize(branch.last_commit_subject or ""),
            )
        self.console.print(table)

    def show_results(self, results: Sequence[ExecutionResult], *, dry_run: bool) -> None:
        for result in results:
            name = sanitize(result.branch.ref)
            if result.succeeded:
                prefix = "DRY RUN: would delete" if dry_run else "Deleted"
                suffix = " (forced)" if result.forced and not dry_run else ""
                self.console.print(f"[green]✓[/green] {prefix} {name}{suffix}")
            else:
                self.console.print(f"[red]✕[/red] {name} - {sanitize(result.error or 'unknown error')}")
