"""application/x-www-form-urlencoded body comparison."""

from __future__ import annotations

from typing import Dict, List
from urllib.parse import parse_qs

from ..body import OptionalBody
from ..matchers import match_group
from ..matching import MatchingContext
from ..mismatch import BodyMatchResult, BodyMismatch
from ..paths import render_path
from .base import to_result


def parse_form(text: str) -> Dict[str, List[str]]:
    return parse_qs(text, keep_blank_values=True)


class FormContentMatcher:
    """Key-wise comparison of decoded form fields (key -> list of values)."""

    def match_body(self, expected: OptionalBody, actual: OptionalBody, context: MatchingContext) -> BodyMatchResult:
        expected_form = parse_form(expected.text())
        actual_form = parse_form(actual.text())

        mismatches: List[BodyMismatch] = []
        for key, expected_values in expected_form.items():
            path = render_path((key,))
            group = context.select_best((key,))
            if group is not None and group.has("ignore"):
                continue
            if key not in actual_form:
                mismatches.append(BodyMismatch(
                    path, expected_values, None,
                    f"Expected form post parameter '{key}' but was missing",
                ))
                continue
            actual_values = actual_form[key]
            if group is not None:
                for index, actual_value in enumerate(actual_values):
                    template = expected_values[index] if index < len(expected_values) else expected_values[0]
                    for failure in match_group(group, template, actual_value):
                        mismatches.append(BodyMismatch(path, template, actual_value, failure))
            elif expected_values != actual_values:
                mismatches.append(BodyMismatch(
                    path, expected_values, actual_values,
                    f"Expected form post parameter '{key}' with value(s) {expected_values} "
                    f"but received {actual_values}",
                ))

        if not context.allow_unexpected_keys:
            for key, actual_values in actual_form.items():
                if key in expected_form:
                    continue
                group = context.select_best((key,))
                if group is not None and group.has("ignore"):
                    continue
                mismatches.append(BodyMismatch(
                    render_path((key,)), None, actual_values,
                    f"Received unexpected form post parameter '{key}'={actual_values}",
                ))
        return to_result(mismatches)
