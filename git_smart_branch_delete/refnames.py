"""Branch and remote name validation applied before any mutating git call."""

from __future__ import annotations

import re

from .exceptions import InvalidBranchNameError

# Characters git refuses in ref names plus anything a shell would interpret.
_FORBIDDEN_CHARS = re.compile(r"[\x00-\x20\x7f~^:?*\[\\;&|$`'\"<>(){}!#]")


def branch_name_problem(name: str) -> str | None:
    """Return a human readable reason the name is unsafe, or None when it is fine."""

    if not name:
        return "name is empty"
    if name.startswith("-"):
        return "name must not start with '-'"
    if name == "@":
        return "'@' is not a valid name"
    match = _FORBIDDEN_CHARS.search(name)
    if match:
        return f"contains forbidden character {match.group()!r}"
    if ".." in name:
        return "contains '..'"
    if "@{" in name:
        return "contains '@{'"
    if name.startswith("/") or name.endswith("/") or "//" in name:
        return "has an empty path component"
    if name.endswith("."):
        return "must not end with '.'"
    for component in name.split("/"):
        if component.startswith("."):
            return "path components must not start with '.'"
        if component.endswith(".lock"):
            return "path components must not end with '.lock'"
    return None


def is_valid_branch_name(name: str) -> bool:
    return branch_name_problem(name) is None


def validate_branch_name(name: str, *, kind: str = "branch") -> str:
    reason = branch_name_problem(name)
    if reason is not None:
        raise InvalidBranchNameError(name, reason, kind=kind)
    return name


def split_remote_ref(ref: str) -> tuple[str, str] | None:
    """Split ``remote/name`` into its parts; None when either side is missing."""

    remote, sep, name = ref.partition("/")
    if not sep or not remote or not name:
        return None
    return remote, name
