"""Structural comparison of XML bodies.

Locations follow the element tree: `$.root.child[0]` for the first `child`
element, `$.root.child[0]['@id']` for its `id` attribute and
`$.root.child[0]['#text']` for its text content.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Dict, List

from ..body import OptionalBody
from ..matchers import match_group
from ..matching import CARDINALITY_MATCHERS, MatchingContext
from ..mismatch import BodyMatchResult, BodyMismatch
from ..paths import Location, render_path
from .base import parse_failure, to_result


def _group_children(element: ET.Element) -> Dict[str, List[ET.Element]]:
    grouped: Dict[str, List[ET.Element]] = {}
    for child in element:
        if not isinstance(child.tag, str):
            continue  # comments and processing instructions
        grouped.setdefault(child.tag, []).append(child)
    return grouped


def _text(element: ET.Element) -> str:
    return (element.text or "").strip()


def _ignored(context: MatchingContext, location: Location) -> bool:
    group = context.select_best(location)
    return group is not None and group.has("ignore")


class XmlContentMatcher:
    """Element-by-element comparison of parsed XML trees."""

    def match_body(self, expected: OptionalBody, actual: OptionalBody, context: MatchingContext) -> BodyMatchResult:
        try:
            expected_root = ET.fromstring(expected.value)
        except ET.ParseError as e:
            return parse_failure("expected", expected, actual, e)
        try:
            actual_root = ET.fromstring(actual.value)
        except ET.ParseError as e:
            return parse_failure("actual", expected, actual, e)

        mismatches: List[BodyMismatch] = []
        if expected_root.tag != actual_root.tag:
            mismatches.append(BodyMismatch(
                "$", expected_root.tag, actual_root.tag,
                f"Expected element <{expected_root.tag}> but received <{actual_root.tag}>",
            ))
        else:
            self._compare_element((expected_root.tag,), expected_root, actual_root, context, mismatches)
        return to_result(mismatches)

    def _compare_element(self, location: Location, expected: ET.Element, actual: ET.Element,
                         context: MatchingContext, out: List[BodyMismatch]) -> None:
        if _ignored(context, location):
            return
        self._compare_attributes(location, expected, actual, context, out)
        self._compare_text(location, expected, actual, context, out)
        self._compare_children(location, expected, actual, context, out)

    def _compare_attributes(self, location: Location, expected: ET.Element, actual: ET.Element,
                            context: MatchingContext, out: List[BodyMismatch]) -> None:
        for name, expected_value in expected.attrib.items():
            attr_location = location + (f"@{name}",)
            if name not in actual.attrib:
                if _ignored(context, attr_location):
                    continue
                out.append(BodyMismatch(
                    render_path(attr_location), expected_value, None,
                    f"Expected {name}='{expected_value}' but was missing",
                ))
                continue
            actual_value = actual.attrib[name]
            group, exact = context.resolve(attr_location)
            if group is not None:
                for failure in match_group(group, expected_value, actual_value, cascaded=not exact):
                    out.append(BodyMismatch(render_path(attr_location), expected_value, actual_value, failure))
            elif expected_value != actual_value:
                out.append(BodyMismatch(
                    render_path(attr_location), expected_value, actual_value,
                    f"Expected {name}='{expected_value}' but received '{actual_value}'",
                ))
        if context.allow_unexpected_keys:
            return
        for name, actual_value in actual.attrib.items():
            if name not in expected.attrib and not _ignored(context, location + (f"@{name}",)):
                out.append(BodyMismatch(
                    render_path(location + (f"@{name}",)), None, actual_value,
                    f"Did not expect an attribute {name}='{actual_value}'",
                ))

    def _compare_text(self, location: Location, expected: ET.Element, actual: ET.Element,
                      context: MatchingContext, out: List[BodyMismatch]) -> None:
        text_location = location + ("#text",)
        expected_text = _text(expected)
        actual_text = _text(actual)
        group, exact = context.resolve(text_location)
        if group is not None:
            for failure in match_group(group, expected_text, actual_text, cascaded=not exact):
                out.append(BodyMismatch(render_path(text_location), expected_text, actual_text, failure))
        elif expected_text and expected_text != actual_text:
            out.append(BodyMismatch(
                render_path(text_location), expected_text, actual_text,
                f"Expected value '{expected_text}' but received '{actual_text}'",
            ))

    def _compare_children(self, location: Location, expected: ET.Element, actual: ET.Element,
                          context: MatchingContext, out: List[BodyMismatch]) -> None:
        expected_children = _group_children(expected)
        actual_children = _group_children(actual)

        for tag, expected_list in expected_children.items():
            base = location + (tag,)
            actual_list = actual_children.get(tag, [])
            group, exact = context.resolve(base)
            if group is not None and any(rule.match in CARDINALITY_MATCHERS for rule in group.rules):
                if exact:
                    for rule in group.rules:
                        if rule.min is not None and len(actual_list) < rule.min:
                            out.append(BodyMismatch(
                                render_path(base), len(expected_list), len(actual_list),
                                f"Expected at least {rule.min} <{tag}> element(s) but received {len(actual_list)}",
                            ))
                        if rule.max is not None and len(actual_list) > rule.max:
                            out.append(BodyMismatch(
                                render_path(base), len(expected_list), len(actual_list),
                                f"Expected at most {rule.max} <{tag}> element(s) but received {len(actual_list)}",
                            ))
                for index, actual_child in enumerate(actual_list):
                    template = expected_list[index] if index < len(expected_list) else expected_list[0]
                    self._compare_element(base + (index,), template, actual_child, context, out)
                continue

            if not actual_list:
                if _ignored(context, base):
                    continue
                out.append(BodyMismatch(
                    render_path(base), tag, None,
                    f"Expected child <{tag}/> but was missing",
                ))
                continue
            if len(expected_list) != len(actual_list):
                out.append(BodyMismatch(
                    render_path(base), len(expected_list), len(actual_list),
                    f"Expected {len(expected_list)} <{tag}> element(s) but received {len(actual_list)}",
                ))
            for index, (expected_child, actual_child) in enumerate(zip(expected_list, actual_list)):
                self._compare_element(base + (index,), expected_child, actual_child, context, out)

        if context.allow_unexpected_keys:
            return
        for tag in actual_children:
            if tag not in expected_children and not _ignored(context, location + (tag,)):
                out.append(BodyMismatch(
                    render_path(location + (tag,)), None, tag,
                    f"Unexpected child <{tag}/>",
                ))
