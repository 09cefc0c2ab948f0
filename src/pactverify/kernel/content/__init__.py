"""Content matchers, one per content family, and the body comparison entry point."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from ..body import ContentFamily, OptionalBody, base_type, content_family
from ..matching import MatchingContext
from ..mismatch import BodyMatchResult, BodyMismatch
from .base import ContentMatcher
from .binary_matcher import BinaryContentMatcher
from .form_matcher import FormContentMatcher
from .json_matcher import JsonContentMatcher
from .text_matcher import TextContentMatcher
from .xml_matcher import XmlContentMatcher

logger = logging.getLogger(__name__)

_REGISTRY: Dict[ContentFamily, ContentMatcher] = {
    ContentFamily.JSON: JsonContentMatcher(),
    ContentFamily.XML: XmlContentMatcher(),
    ContentFamily.TEXT: TextContentMatcher(),
    ContentFamily.FORM: FormContentMatcher(),
    ContentFamily.BINARY: BinaryContentMatcher(),
}


def register_content_matcher(family: ContentFamily, matcher: ContentMatcher) -> None:
    """Replace the matcher used for a content family."""
    if not isinstance(matcher, ContentMatcher):
        raise TypeError(f"{matcher!r} does not implement match_body()")
    _REGISTRY[family] = matcher


def matcher_for(content_type: Optional[str]) -> ContentMatcher:
    return _REGISTRY[content_family(content_type)]


def content_types_compatible(expected: str, actual: str) -> bool:
    """JSON and XML flavours are interchangeable within their family; anything
    else must name the same media type."""
    expected_family = content_family(expected)
    if expected_family in (ContentFamily.JSON, ContentFamily.XML):
        return expected_family is content_family(actual)
    return base_type(expected) == base_type(actual)


def _unexpected_content(actual: OptionalBody) -> BodyMatchResult:
    return BodyMatchResult(mismatches=[BodyMismatch(
        "$", None, actual.display(),
        f"Expected an empty body but received '{actual.display()}'",
    )])


def match_body(expected: OptionalBody, actual: OptionalBody, context: Optional[MatchingContext] = None) -> BodyMatchResult:
    """Compare an expected body against an actual one.

    Args:
        expected: The body declared by the interaction
        actual: The body produced by the provider
        context: Body matching rules and options (defaults to no rules)

    Returns:
        BodyMatchResult: a single content-type mismatch, or the list of
        body mismatches (empty when the bodies match)
    """
    context = context or MatchingContext.empty("body")

    if expected.is_missing():
        return BodyMatchResult.ok()

    if expected.is_null():
        if actual.has_content():
            return _unexpected_content(actual)
        return BodyMatchResult.ok()

    if not actual.is_present():
        return BodyMatchResult(mismatches=[BodyMismatch(
            "$", expected.display(), None,
            f"Expected body '{expected.display()}' but was missing",
        )])

    if not expected.has_content():
        if actual.has_content():
            return _unexpected_content(actual)
        return BodyMatchResult.ok()

    if not actual.has_content():
        return BodyMatchResult(mismatches=[BodyMismatch(
            "$", expected.display(), "",
            f"Expected body '{expected.display()}' but was empty",
        )])

    expected_type = expected.resolved_content_type()
    actual_type = actual.resolved_content_type()
    if not content_types_compatible(expected_type, actual_type):
        return BodyMatchResult.of_type_mismatch(base_type(expected_type), base_type(actual_type))

    content_type = expected.content_type or actual.content_type or expected_type
    matcher = matcher_for(content_type)
    logger.debug("Comparing bodies as %s using %s", content_type, type(matcher).__name__)
    return matcher.match_body(expected, actual, context)


__all__ = [
    "ContentMatcher",
    "content_types_compatible",
    "match_body",
    "matcher_for",
    "register_content_matcher",
]
