"""Structural comparison of JSON bodies."""

from __future__ import annotations

import json
from typing import Any, List

from ..body import OptionalBody
from ..matchers import display_value, match_group, type_name, values_equal
from ..matching import CARDINALITY_MATCHERS, MatchingContext
from ..mismatch import BodyMatchResult, BodyMismatch
from ..paths import Location, render_path
from .base import parse_failure, to_result

_ABSENT = object()


class JsonContentMatcher:
    """Recursive, rule-aware comparison of decoded JSON documents."""

    def match_body(self, expected: OptionalBody, actual: OptionalBody, context: MatchingContext) -> BodyMatchResult:
        try:
            expected_value = json.loads(expected.text())
        except ValueError as e:
            return parse_failure("expected", expected, actual, e)
        try:
            actual_value = json.loads(actual.text())
        except ValueError as e:
            return parse_failure("actual", expected, actual, e)

        mismatches: List[BodyMismatch] = []
        compare_values((), expected_value, actual_value, context, mismatches)
        return to_result(mismatches)


def compare_values(location: Location, expected: Any, actual: Any,
                   context: MatchingContext, out: List[BodyMismatch]) -> None:
    """Compare expected against actual at location, appending mismatches to out."""
    group, exact = context.resolve(location)
    if group is not None and group.has("ignore"):
        return
    if isinstance(expected, dict):
        _compare_objects(location, expected, actual, context, out)
    elif isinstance(expected, list):
        _compare_lists(location, expected, actual, context, out)
    elif group is not None:
        for failure in match_group(group, expected, actual, cascaded=not exact):
            out.append(BodyMismatch(render_path(location), expected, actual, failure))
    elif not values_equal(expected, actual):
        out.append(BodyMismatch(
            render_path(location), expected, actual,
            f"Expected {display_value(expected)} ({type_name(expected)}) but received "
            f"{display_value(actual)} ({type_name(actual)})",
        ))


def _type_mismatch(location: Location, expected: Any, actual: Any, expected_kind: str) -> BodyMismatch:
    return BodyMismatch(
        render_path(location), expected, actual,
        f"Type mismatch: Expected {expected_kind} but received {type_name(actual)} {display_value(actual)}",
    )


def _is_ignored(location: Location, context: MatchingContext) -> bool:
    group = context.select_best(location)
    return group is not None and group.has("ignore")


def _compare_objects(location: Location, expected: dict, actual: Any,
                     context: MatchingContext, out: List[BodyMismatch]) -> None:
    if not isinstance(actual, dict):
        out.append(_type_mismatch(location, expected, actual, "Object"))
        return

    group, exact = context.resolve(location)
    if group is not None and not group.is_structural():
        for failure in match_group(group, expected, actual, cascaded=not exact):
            out.append(BodyMismatch(render_path(location), expected, actual, failure))
        return

    if group is not None and group.has("values"):
        # Key names are free; every actual entry must look like the expected entries.
        template = next(iter(expected.values()), _ABSENT)
        for key, actual_value in actual.items():
            expected_value = expected.get(key, template)
            if expected_value is _ABSENT:
                continue
            compare_values(location + (key,), expected_value, actual_value, context, out)
        return

    for key, expected_value in expected.items():
        child = location + (key,)
        if key not in actual:
            if _is_ignored(child, context):
                continue
            out.append(BodyMismatch(
                render_path(child), expected_value, None,
                f"Expected {key}={display_value(expected_value)} but was missing",
            ))
            continue
        compare_values(child, expected_value, actual[key], context, out)

    if context.allow_unexpected_keys:
        return
    for key, actual_value in actual.items():
        if key in expected:
            continue
        child = location + (key,)
        if _is_ignored(child, context):
            continue
        out.append(BodyMismatch(
            render_path(child), None, actual_value,
            f"Received unexpected key '{key}' with value {display_value(actual_value)}",
        ))


def _compare_lists(location: Location, expected: list, actual: Any,
                   context: MatchingContext, out: List[BodyMismatch]) -> None:
    if not isinstance(actual, list):
        out.append(_type_mismatch(location, expected, actual, "Array"))
        return

    group, exact = context.resolve(location)
    if group is not None and not group.is_structural():
        for failure in match_group(group, expected, actual, cascaded=not exact):
            out.append(BodyMismatch(render_path(location), expected, actual, failure))
        return

    if group is not None and group.has("ignore-order"):
        for failure in match_group(group, expected, actual, cascaded=not exact):
            out.append(BodyMismatch(render_path(location), expected, actual, failure))
        _compare_unordered(location, expected, actual, context, out)
        return

    if group is not None and any(rule.match in CARDINALITY_MATCHERS for rule in group.rules):
        for failure in match_group(group, expected, actual, cascaded=not exact):
            out.append(BodyMismatch(render_path(location), expected, actual, failure))
        if not expected:
            return
        for index, actual_item in enumerate(actual):
            template = expected[index] if index < len(expected) else expected[0]
            compare_values(location + (index,), template, actual_item, context, out)
        return

    if len(expected) != len(actual):
        out.append(BodyMismatch(
            render_path(location), expected, actual,
            f"Expected a List with {len(expected)} elements but received {len(actual)} elements",
        ))
    for index, (expected_item, actual_item) in enumerate(zip(expected, actual)):
        compare_values(location + (index,), expected_item, actual_item, context, out)


def _compare_unordered(location: Location, expected: list, actual: list,
                       context: MatchingContext, out: List[BodyMismatch]) -> None:
    """Each expected element must match a distinct actual element, in any position."""
    used = set()
    for index, expected_item in enumerate(expected):
        found = False
        for candidate_index, candidate in enumerate(actual):
            if candidate_index in used:
                continue
            probe: List[BodyMismatch] = []
            compare_values(location + (candidate_index,), expected_item, candidate, context, probe)
            if not probe:
                used.add(candidate_index)
                found = True
                break
        if not found:
            out.append(BodyMismatch(
                render_path(location + (index,)), expected_item, None,
                f"Expected {display_value(expected_item)} to be present in any order but was not found",
            ))
