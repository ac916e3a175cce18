"""Pure predicates deciding which branches may be deleted."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Sequence, Union

from .models import BranchRecord, as_utc

_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
}
# JavaScript-style flags with no effect on a single match.
_NOOP_FLAGS = frozenset("gudv")


@dataclass(frozen=True)
class LiteralMatcher:
    """Plain text compared either for equality or containment."""

    text: str
    substring: bool = False

    def matches(self, name: str) -> bool:
        if self.substring:
            return self.text in name
        return name == self.text


@dataclass(frozen=True)
class PatternMatcher:
    regex: re.Pattern[str]
    anchored: bool = False

    def matches(self, name: str) -> bool:
        if self.anchored:
            return self.regex.match(name) is not None
        return self.regex.search(name) is not None


Matcher = Union[LiteralMatcher, PatternMatcher]


def compile_name_pattern(pattern: str) -> Matcher:
    """Compile a filter pattern, falling back to substring search when it is not a regex."""

    try:
        return PatternMatcher(re.compile(pattern))
    except re.error:
        return LiteralMatcher(pattern, substring=True)


def matches_pattern(name: str, pattern: str | None) -> bool:
    if not pattern:
        return True
    return compile_name_pattern(pattern).matches(name)


def parse_protected_entry(entry: str) -> Matcher | None:
    """Parse a protection entry: ``/body/flags`` is a regex, anything else an exact name.

    Returns None for regex entries that are malformed; those never match.
    """

    if not entry.startswith("/"):
        return LiteralMatcher(entry)
    closing = entry.rfind("/")
    if closing == 0:
        return None
    body = entry[1:closing]
    flags_text = entry[closing + 1:]
    if not body:
        return None

    flags = 0
    anchored = False
    for flag in flags_text:
        if flag in _FLAG_MAP:
            flags |= _FLAG_MAP[flag]
        elif flag == "y":
            anchored = True
        elif flag not in _NOOP_FLAGS:
            return None
    try:
        return PatternMatcher(re.compile(body, flags), anchored=anchored)
    except re.error:
        return None


@dataclass(frozen=True)
class ProtectionPolicy:
    matchers: tuple[Matcher, ...] = ()

    @classmethod
    def from_entries(cls, entries: Iterable[str]) -> "ProtectionPolicy":
        parsed = (parse_protected_entry(entry) for entry in entries)
        return cls(tuple(matcher for matcher in parsed if matcher is not None))

    def protects(self, name: str) -> bool:
        return any(matcher.matches(name) for matcher in self.matchers)


def is_protected(name: str, protected: Sequence[str]) -> bool:
    return ProtectionPolicy.from_entries(protected).protects(name)


def is_stale(
    last_commit_at: datetime | None,
    threshold_days: int | None,
    *,
    now: datetime | None = None,
) -> bool:
    """Whether a branch is old enough to be cleaned up.

    A missing or non-positive threshold disables age filtering, and branches
    without a known commit date are always eligible.
    """

    if threshold_days is None or threshold_days <= 0:
        return True
    if last_commit_at is None:
        return True
    now = as_utc(now) if now is not None else datetime.now(timezone.utc)
    return as_utc(last_commit_at) <= now - timedelta(days=threshold_days)


def is_current(branch: BranchRecord, current_branch: str | None) -> bool:
    return current_branch is not None and branch.name == current_branch
