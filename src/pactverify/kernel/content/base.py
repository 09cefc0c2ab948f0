"""Content matcher port and helpers shared by the per-format matchers."""

from __future__ import annotations

from typing import List, Protocol, runtime_checkable

from ..body import OptionalBody
from ..matching import MatchingContext
from ..mismatch import BodyMatchResult, BodyMismatch


@runtime_checkable
class ContentMatcher(Protocol):
    """Compare two present bodies of one content family.

    Implementations receive bodies that both carry content and whose content
    types have already been checked for compatibility.
    """

    def match_body(
        self,
        expected: OptionalBody,
        actual: OptionalBody,
        context: MatchingContext,
    ) -> BodyMatchResult: ...


def parse_failure(which: str, expected: OptionalBody, actual: OptionalBody, error: Exception) -> BodyMatchResult:
    """A single mismatch at the root for a payload that could not be parsed."""
    return BodyMatchResult(mismatches=[BodyMismatch(
        path="$",
        expected=expected.text(),
        actual=actual.text(),
        mismatch=f"Failed to parse the {which} body: {error}",
    )])


def to_result(mismatches: List[BodyMismatch]) -> BodyMatchResult:
    return BodyMatchResult(mismatches=mismatches)
