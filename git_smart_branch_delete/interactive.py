"""Interactive prompt helpers built on InquirerPy."""

from __future__ import annotations

import sys
from typing import Sequence

from InquirerPy import inquirer
from InquirerPy.base.control import Choice
from rich.console import Console

from .exceptions import UserAbort, ValidationError
from .models import BranchRecord, DeletionPlanItem
from .render import branch_label, sanitize


def _ensure_tty() -> None:
    if not sys.stdin.isatty():
        raise ValidationError(
            "Interactive mode requires a TTY. Use --pattern, --cleanup-merged or --yes to run non-interactively."
        )


def build_branch_choices(branches: Sequence[BranchRecord]) -> tuple[list[Choice], dict[str, BranchRecord]]:
    """Return picker choices (all pre-selected) plus a lookup keyed by full ref."""

    lookup: dict[str, BranchRecord] = {}
    choices: list[Choice] = []
    for branch in branches:
        key = branch.full_ref
        if key in lookup:
            continue
        lookup[key] = branch
        choices.append(Choice(value=key, name=branch_label(branch), enabled=True))
    return choices, lookup


class InquirerPrompts:
    """Prompt collaborator for the session backed by InquirerPy."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def select_branches(self, branches: Sequence[BranchRecord], label: str) -> list[BranchRecord] | None:
        _ensure_tty()
        choices, lookup = build_branch_choices(branches)
        try:
            selected = inquirer.fuzzy(
                message=label,
                choices=choices,
                multiselect=True,
                mandatory=False,
                instruction="Tab: toggle · Enter: submit · Esc: cancel · type to filter",
                keybindings={"skip": [{"key": "escape"}]},
            ).execute()
        except KeyboardInterrupt as exc:
            raise UserAbort("User cancelled the prompt.") from exc
        if selected is None:
            return None
        return [lookup[value] for value in selected if value in lookup]

    def confirm(self, message: str) -> bool:
        _ensure_tty()
        try:
            return bool(inquirer.confirm(message=message, default=True).execute())
        except KeyboardInterrupt as exc:
            raise UserAbort("User cancelled the prompt.") from exc

    def confirm_force(self, items: Sequence[DeletionPlanItem]) -> bool:
        _ensure_tty()
        self.console.print("These branches are not fully merged:")
        for item in items:
            self.console.print(f"  • {sanitize(item.branch.ref)}")
        count = len(items)
        noun = "branch" if count == 1 else "branches"
        try:
            return bool(inquirer.confirm(message=f"Force delete {count} {noun}?", default=False).execute())
        except KeyboardInterrupt as exc:
            raise UserAbort("User cancelled the prompt.") from exc
