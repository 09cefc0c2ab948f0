"""Tests for body states, content types and matcher selection."""

import pytest

from pactverify.kernel.body import ContentFamily, OptionalBody, content_family, detect_content_type
from pactverify.kernel.content import (
    content_types_compatible,
    match_body,
    matcher_for,
    register_content_matcher,
)
from pactverify.kernel.content.json_matcher import JsonContentMatcher
from pactverify.kernel.mismatch import BodyMatchResult


class TestBodyStates:
    def test_missing_expected_accepts_anything(self):
        assert match_body(OptionalBody.missing(), OptionalBody.body("whatever", "text/plain")).is_ok()
        assert match_body(OptionalBody.missing(), OptionalBody.missing()).is_ok()

    def test_null_and_missing_are_distinct_states(self):
        assert OptionalBody.null().is_null()
        assert not OptionalBody.null().is_missing()
        assert OptionalBody.null() != OptionalBody.missing()

    def test_empty_expected_rejects_content(self):
        result = match_body(OptionalBody.body(b""), OptionalBody.body("x", "text/plain"))
        assert not result.is_ok()
        assert "Expected an empty body" in result.mismatches[0].mismatch

    def test_empty_expected_accepts_only_an_empty_body(self):
        assert match_body(OptionalBody.body(b""), OptionalBody.body(b"")).is_ok()
        assert match_body(OptionalBody.null(), OptionalBody.null()).is_ok()
        assert match_body(OptionalBody.null(), OptionalBody.missing()).is_ok()

    @pytest.mark.parametrize("actual", [OptionalBody.missing(), OptionalBody.null()])
    def test_present_empty_expected_rejects_absent_actual(self, actual):
        result = match_body(OptionalBody.body(b""), actual)
        assert len(result.mismatches) == 1
        assert result.mismatches[0].path == "$"
        assert "but was missing" in result.mismatches[0].mismatch

    def test_expected_content_but_actual_missing(self):
        result = match_body(OptionalBody.json({"a": 1}), OptionalBody.missing())
        assert result.mismatches[0].path == "$"
        assert "but was missing" in result.mismatches[0].mismatch

    def test_expected_content_but_actual_null(self):
        result = match_body(OptionalBody.json({"a": 1}), OptionalBody.null())
        assert "but was missing" in result.mismatches[0].mismatch

    def test_expected_content_but_actual_empty(self):
        result = match_body(OptionalBody.json({"a": 1}), OptionalBody.body(b"", "application/json"))
        assert [m.path for m in result.mismatches] == ["$"]
        assert "but was empty" in result.mismatches[0].mismatch


class TestContentTypes:
    def test_incompatible_content_types_short_circuit(self):
        result = match_body(OptionalBody.json({"a": 1}), OptionalBody.body("<a/>", "application/xml"))
        assert result.type_mismatch is not None
        assert result.mismatches == []
        assert result.all_mismatches() == [result.type_mismatch]
        assert "application/json" in result.type_mismatch.description()

    def test_json_flavours_are_compatible(self):
        assert content_types_compatible("application/json", "application/hal+json; charset=utf-8")
        assert content_types_compatible("application/xml", "text/xml")
        assert not content_types_compatible("text/plain", "text/html")

    def test_detected_actual_type_short_circuits(self):
        result = match_body(OptionalBody.json({"a": 1}), OptionalBody.body("hello world"))
        assert result.mismatches == []
        assert result.all_mismatches() == [result.type_mismatch]
        assert result.type_mismatch.expected == "application/json"
        assert result.type_mismatch.actual == "text/plain"

    def test_detected_types_on_both_sides(self):
        result = match_body(OptionalBody.body("<a/>"), OptionalBody.body('{"a": 1}'))
        assert result.type_mismatch is not None
        assert match_body(OptionalBody.body('{"a": 1}'), OptionalBody.body('{"a": 1}')).is_ok()

    def test_undeclared_actual_type_uses_expected(self):
        expected = OptionalBody.json({"a": 1})
        actual = OptionalBody.body('{"a": 1}')
        assert match_body(expected, actual).is_ok()

    @pytest.mark.parametrize("content_type,family", [
        ("application/json", ContentFamily.JSON),
        ("application/vnd.api+json", ContentFamily.JSON),
        ("text/xml; charset=utf-8", ContentFamily.XML),
        ("text/plain", ContentFamily.TEXT),
        ("application/x-www-form-urlencoded", ContentFamily.FORM),
        ("image/png", ContentFamily.BINARY),
        (None, ContentFamily.BINARY),
    ])
    def test_content_family(self, content_type, family):
        assert content_family(content_type) is family

    def test_detect_content_type(self):
        assert detect_content_type(b'  {"a": 1}') == "application/json"
        assert detect_content_type(b"<html><body/></html>") == "text/html"
        assert detect_content_type(b"<a/>") == "application/xml"
        assert detect_content_type(b"plain words") == "text/plain"
        assert detect_content_type(b"\xff\xfe\x00") == "application/octet-stream"


class TestRegistry:
    def test_matcher_for_family(self):
        assert isinstance(matcher_for("application/json"), JsonContentMatcher)

    def test_register_replaces_matcher(self):
        class AlwaysOk:
            def match_body(self, expected, actual, context):
                return BodyMatchResult.ok()

        original = matcher_for("text/plain")
        register_content_matcher(ContentFamily.TEXT, AlwaysOk())
        try:
            assert match_body(OptionalBody.body("a", "text/plain"), OptionalBody.body("b", "text/plain")).is_ok()
        finally:
            register_content_matcher(ContentFamily.TEXT, original)
        assert not match_body(OptionalBody.body("a", "text/plain"), OptionalBody.body("b", "text/plain")).is_ok()

    def test_register_rejects_non_matchers(self):
        with pytest.raises(TypeError):
            register_content_matcher(ContentFamily.TEXT, object())


def test_body_summary_uses_digest():
    summary = OptionalBody.body(b"abc", "text/plain").to_dict()
    assert summary["state"] == "present"
    assert summary["digest"].startswith("sha256:")
    assert OptionalBody.missing().to_dict()["digest"] is None
