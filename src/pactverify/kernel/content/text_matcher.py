"""Plain-text body comparison."""

from __future__ import annotations

from ..body import OptionalBody
from ..matchers import match_group
from ..matching import MatchingContext
from ..mismatch import BodyMatchResult, BodyMismatch
from .base import to_result


def _normalize(text: str) -> str:
    return " ".join(text.split())


class TextContentMatcher:
    """Whole-payload equality, or the rule declared at `$`."""

    def match_body(self, expected: OptionalBody, actual: OptionalBody, context: MatchingContext) -> BodyMatchResult:
        expected_text = expected.text()
        actual_text = actual.text()
        if context.normalize_whitespace:
            expected_text = _normalize(expected_text)
            actual_text = _normalize(actual_text)

        group = context.select_best(())
        if group is not None:
            failures = match_group(group, expected_text, actual_text)
            return to_result([BodyMismatch("$", expected_text, actual_text, f) for f in failures])

        if expected_text == actual_text:
            return BodyMatchResult.ok()
        return to_result([BodyMismatch(
            "$", expected_text, actual_text,
            f"Expected body '{expected_text}' to match '{actual_text}' using equality but did not match",
        )])
