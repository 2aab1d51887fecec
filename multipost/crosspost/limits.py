"""Per-platform content length rules.

The same ``measure`` function backs both the live character counter and the
check made right before dispatch, so the two can never disagree.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import grapheme

from multipost.crosspost.base import CountUnit, PlatformKind
from multipost.exceptions import ConstraintError

if TYPE_CHECKING:
    from collections.abc import Iterable


@dataclass(frozen=True)
class WithinLimit:
    """Text fits the platform limit."""

    limit: int
    actual: int


@dataclass(frozen=True)
class ExceedsLimit:
    """Text is longer than the platform allows."""

    limit: int
    actual: int


ConstraintResult = WithinLimit | ExceedsLimit


def measure(kind: PlatformKind, text: str) -> int:
    """Return the length of text as the platform counts it."""
    if kind.count_unit is CountUnit.GRAPHEMES:
        return grapheme.length(text)
    return len(text)


def remaining(kind: PlatformKind, text: str) -> int:
    """Characters left before the limit (negative when over)."""
    return kind.char_limit - measure(kind, text)


def check(kind: PlatformKind, text: str) -> ConstraintResult:
    """Check text against the platform's length limit."""
    actual = measure(kind, text)
    if actual > kind.char_limit:
        return ExceedsLimit(limit=kind.char_limit, actual=actual)
    return WithinLimit(limit=kind.char_limit, actual=actual)


def enforce(kind: PlatformKind, text: str) -> None:
    """Raise ConstraintError when text exceeds the platform limit."""
    result = check(kind, text)
    if isinstance(result, ExceedsLimit):
        raise ConstraintError(kind, result.limit, result.actual)


def check_all(text: str, kinds: Iterable[PlatformKind]) -> dict[PlatformKind, ConstraintResult]:
    """Check text against several platforms at once, e.g. for a counter display."""
    return {kind: check(kind, text) for kind in kinds}
