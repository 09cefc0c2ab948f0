"""Opaque payload comparison: length and digest only."""

from __future__ import annotations

from pactverify._internal.canonical_json import hash_bytes
from ..body import OptionalBody
from ..matching import MatchingContext
from ..mismatch import BodyMatchResult, BodyMismatch
from .base import to_result


class BinaryContentMatcher:
    def match_body(self, expected: OptionalBody, actual: OptionalBody, context: MatchingContext) -> BodyMatchResult:
        group = context.select_best(())
        if group is not None and group.has("ignore"):
            return BodyMatchResult.ok()

        expected_hash = hash_bytes(expected.value)
        actual_hash = hash_bytes(actual.value)
        if len(expected.value) == len(actual.value) and expected_hash == actual_hash:
            return BodyMatchResult.ok()
        return to_result([BodyMismatch(
            "$", expected_hash, actual_hash,
            f"Actual body [{len(actual.value)} bytes, {actual_hash}] is not equal to the expected body "
            f"[{len(expected.value)} bytes, {expected_hash}]",
        )])
