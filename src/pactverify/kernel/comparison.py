"""Comparison of an actual response or message against the expected one.

Each dimension (status, headers or metadata, body) is compared on its own and
returned separately; folding them into a verdict is left to the verifier so
each can be reported independently.
"""

from __future__ import annotations

import difflib
import json
import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional

from pactverify.config import VerifierConfig
from .body import ContentFamily, OptionalBody, base_type, content_family, content_type_parameters
from .content import match_body
from .generators import apply_body_generators, generate_response
from .interaction import ActualResponse, HttpResponse, MessageInteraction
from .matchers import display_value, match_group, values_equal
from .matching import MatchingContext, MatchingRules
from .mismatch import BodyMatchResult, HeaderMismatch, MetadataMismatch, Mismatch, StatusMismatch

logger = logging.getLogger(__name__)

# Headers whose values legitimately contain commas.
_UNSPLIT_HEADERS = frozenset({
    "date",
    "expires",
    "last-modified",
    "if-modified-since",
    "if-unmodified-since",
    "retry-after",
    "set-cookie",
    "user-agent",
    "www-authenticate",
})

_CONTENT_TYPE_KEYS = ("contenttype", "content-type")


@dataclass(frozen=True)
class ResponseComparison:
    status_mismatch: Optional[StatusMismatch]
    header_mismatches: Dict[str, List[HeaderMismatch]]
    body_result: BodyMatchResult
    interaction_id: Optional[str] = None

    def is_ok(self) -> bool:
        return (
            self.status_mismatch is None
            and not any(self.header_mismatches.values())
            and self.body_result.is_ok()
        )

    def all_mismatches(self) -> List[Mismatch]:
        out: List[Mismatch] = []
        if self.status_mismatch is not None:
            out.append(self.status_mismatch)
        for mismatches in self.header_mismatches.values():
            out.extend(mismatches)
        out.extend(self.body_result.all_mismatches())
        return out


@dataclass(frozen=True)
class MessageComparison:
    metadata_mismatches: Dict[str, List[MetadataMismatch]]
    body_result: BodyMatchResult
    interaction_id: Optional[str] = None

    def is_ok(self) -> bool:
        return not any(self.metadata_mismatches.values()) and self.body_result.is_ok()

    def all_mismatches(self) -> List[Mismatch]:
        out: List[Mismatch] = []
        for mismatches in self.metadata_mismatches.values():
            out.extend(mismatches)
        out.extend(self.body_result.all_mismatches())
        return out


def compare_status(expected: int, actual: int, rules: Optional[MatchingRules] = None) -> Optional[StatusMismatch]:
    """Exact equality unless a statusCode rule is declared."""
    group = MatchingContext.for_category(rules, "status").select_best(())
    if group is not None:
        failures = match_group(group, expected, actual)
        if failures:
            return StatusMismatch(expected, actual, "; ".join(failures))
        return None
    if expected != actual:
        return StatusMismatch(expected, actual)
    return None


def _split_values(name: str, values: List[str]) -> List[str]:
    if name.lower() in _UNSPLIT_HEADERS:
        return [v.strip() for v in values]
    out = []
    for value in values:
        out.extend(part.strip() for part in value.split(","))
    return out


def _lookup(headers: Mapping[str, List[str]], name: str) -> Optional[List[str]]:
    lowered = name.lower()
    found: Optional[List[str]] = None
    for key, values in headers.items():
        if key.lower() == lowered:
            found = (found or []) + list(values)
    return found


def _compare_content_type(name: str, expected: str, actual: str) -> List[HeaderMismatch]:
    if base_type(expected) != base_type(actual):
        return [HeaderMismatch(
            name, expected, actual,
            f"Expected header '{name}' to have value '{expected}' but was '{actual}'",
        )]
    actual_params = content_type_parameters(actual)
    for param, value in content_type_parameters(expected).items():
        actual_value = actual_params.get(param)
        same = actual_value is not None and (
            actual_value.lower() == value.lower() if param == "charset" else actual_value == value
        )
        if not same:
            return [HeaderMismatch(
                name, expected, actual,
                f"Expected header '{name}' to have parameter '{param}={value}' but was '{actual}'",
            )]
    return []


def compare_header(name: str, expected_values: List[str], actual_values: Optional[List[str]],
                   context: MatchingContext) -> List[HeaderMismatch]:
    """Compare one declared header. Returns the mismatches recorded under its name."""
    expected_text = ", ".join(expected_values)
    if actual_values is None:
        return [HeaderMismatch(name, expected_text, None, f"Expected a header '{name}' but was missing")]
    actual_text = ", ".join(actual_values)

    group = context.group_for_key(name, case_insensitive=True)
    if group is not None:
        expected_items = _split_values(name, expected_values) or [""]
        mismatches = []
        for index, actual_item in enumerate(_split_values(name, actual_values)):
            template = expected_items[index] if index < len(expected_items) else expected_items[0]
            for failure in match_group(group, template, actual_item):
                mismatches.append(HeaderMismatch(
                    name, expected_text, actual_text,
                    f"Header '{name}': {failure}",
                ))
        return mismatches

    if name.lower() == "content-type":
        return _compare_content_type(name, expected_text, actual_text)

    if _split_values(name, expected_values) != _split_values(name, actual_values):
        return [HeaderMismatch(
            name, expected_text, actual_text,
            f"Expected header '{name}' to have value '{expected_text}' but was '{actual_text}'",
        )]
    return []


def compare_headers(expected: Mapping[str, List[str]], actual: Mapping[str, List[str]],
                    rules: Optional[MatchingRules] = None) -> Dict[str, List[HeaderMismatch]]:
    """Compare every expected header; extra actual headers are not reported.

    Returns:
        Expected header name -> mismatches (an empty list means that header matched)
    """
    context = MatchingContext.for_category(rules, "header")
    return {
        name: compare_header(name, list(values), _lookup(actual, name), context)
        for name, values in expected.items()
    }


def _metadata_content_type(metadata: Mapping[str, Any]) -> Optional[str]:
    for key, value in metadata.items():
        if key.lower() in _CONTENT_TYPE_KEYS and value:
            return str(value)
    return None


def compare_metadata(expected: Mapping[str, Any], actual: Optional[Mapping[str, Any]],
                     rules: Optional[MatchingRules] = None) -> Dict[str, List[MetadataMismatch]]:
    """Compare every expected metadata entry against the actual metadata.

    The content type entry is only checked when the actual metadata declares
    one; its compatibility with the contents is checked by the body comparison.
    """
    actual = actual or {}
    context = MatchingContext.for_category(rules, "metadata")
    results: Dict[str, List[MetadataMismatch]] = {}
    for key, expected_value in expected.items():
        mismatches: List[MetadataMismatch] = []
        if key.lower() in _CONTENT_TYPE_KEYS:
            actual_type = _metadata_content_type(actual)
            if actual_type is not None and base_type(str(expected_value)) != base_type(actual_type):
                mismatches.append(MetadataMismatch(
                    key, expected_value, actual_type,
                    f"Expected metadata '{key}' to have value '{expected_value}' but was '{actual_type}'",
                ))
            results[key] = mismatches
            continue
        if key not in actual:
            mismatches.append(MetadataMismatch(
                key, expected_value, None, f"Expected metadata '{key}' but was missing",
            ))
            results[key] = mismatches
            continue
        actual_value = actual[key]
        group = context.group_for_key(key)
        if group is not None:
            for failure in match_group(group, expected_value, actual_value):
                mismatches.append(MetadataMismatch(key, expected_value, actual_value, f"Metadata '{key}': {failure}"))
        elif not values_equal(expected_value, actual_value):
            mismatches.append(MetadataMismatch(
                key, expected_value, actual_value,
                f"Expected metadata '{key}' to have value {display_value(expected_value)} "
                f"but was {display_value(actual_value)}",
            ))
        results[key] = mismatches
    return results


def _diff_lines(expected: OptionalBody, actual: OptionalBody) -> List[str]:
    def render(body: OptionalBody) -> List[str]:
        if not body.has_content():
            return []
        text = body.text()
        if content_family(body.resolved_content_type()) is ContentFamily.JSON:
            try:
                text = json.dumps(json.loads(text), indent=2, sort_keys=True)
            except ValueError:
                pass
        return text.splitlines()

    return list(difflib.unified_diff(render(expected), render(actual), "expected", "actual", lineterm=""))


def compare_body(expected: OptionalBody, actual: OptionalBody, rules: Optional[MatchingRules] = None,
                 config: Optional[VerifierConfig] = None) -> BodyMatchResult:
    config = config or VerifierConfig()
    context = MatchingContext.for_category(
        rules, "body",
        allow_unexpected_keys=config.allow_unexpected_keys,
        normalize_whitespace=config.normalize_whitespace,
    )
    result = match_body(expected, actual, context)
    if config.show_full_diff and result.mismatches:
        result = replace(result, diff=_diff_lines(expected, actual))
    return result


def compare_response(expected: HttpResponse, actual: ActualResponse, config: Optional[VerifierConfig] = None,
                     generator_context: Optional[Mapping[str, Any]] = None,
                     interaction_id: Optional[str] = None) -> ResponseComparison:
    """Compare status, headers and body of an actual response against the expected one."""
    expected = generate_response(expected, generator_context)
    rules = expected.matching_rules
    expected_body = expected.body.with_content_type(expected.content_type())
    actual_body = actual.body.with_content_type(actual.content_type())
    logger.debug("Comparing response for interaction %s", interaction_id)
    return ResponseComparison(
        status_mismatch=compare_status(expected.status, actual.status, rules),
        header_mismatches=compare_headers(expected.headers, actual.headers, rules),
        body_result=compare_body(expected_body, actual_body, rules, config),
        interaction_id=interaction_id,
    )


def compare_message(expected: MessageInteraction, actual_contents: OptionalBody,
                    actual_metadata: Optional[Mapping[str, Any]] = None,
                    config: Optional[VerifierConfig] = None,
                    generator_context: Optional[Mapping[str, Any]] = None) -> MessageComparison:
    """Compare an actual message (contents + metadata) against the expected message."""
    actual_metadata = dict(actual_metadata or {})
    expected_contents = apply_body_generators(
        expected.contents.with_content_type(expected.content_type()),
        expected.generators.for_category("body"),
        generator_context or {},
    )
    actual_contents = actual_contents.with_content_type(
        actual_contents.content_type or _metadata_content_type(actual_metadata)
    )
    return MessageComparison(
        metadata_mismatches=compare_metadata(expected.metadata, actual_metadata, expected.matching_rules),
        body_result=compare_body(expected_contents, actual_contents, expected.matching_rules, config),
        interaction_id=expected.interaction_id,
    )
