"""Tests for rule path parsing, weighting and rendering."""

import pytest

from pactverify.kernel.paths import STAR, PathError, parse_path, path_weight, render_path


def test_parse_root_only():
    assert parse_path("$") == ()


def test_parse_fields_indexes_and_wildcards():
    assert parse_path("$.a.b[0]") == ("a", "b", 0)
    assert parse_path("$.items[*].id") == ("items", STAR, "id")
    assert parse_path("$.*") == (STAR,)


def test_parse_quoted_names():
    """Quoted names allow spaces and the XML attribute/text markers."""
    assert parse_path("$['first name']") == ("first name",)
    assert parse_path("$.root['@id']") == ("root", "@id")
    assert parse_path('$.root["#text"]') == ("root", "#text")


@pytest.mark.parametrize("expression", ["a.b", "$.", "$[", "$[abc]", "$a"])
def test_parse_rejects_malformed(expression):
    with pytest.raises(PathError):
        parse_path(expression)


def test_weight_zero_when_not_applicable():
    assert path_weight(parse_path("$.a.b"), ("a", "c")) == 0
    assert path_weight(parse_path("$.a.b"), ("a",)) == 0


def test_more_literal_path_outweighs_wildcard():
    location = ("items", 0, "id")
    literal = path_weight(parse_path("$.items[0].id"), location)
    wild = path_weight(parse_path("$.items[*].id"), location)
    parent = path_weight(parse_path("$.items"), location)
    assert literal > wild > parent > 0


def test_parent_path_applies_to_children():
    assert path_weight(parse_path("$.a"), ("a", "b", 1)) > 0
    assert path_weight(parse_path("$"), ("anything",)) == 2


def test_render_path():
    assert render_path(()) == "$"
    assert render_path(("a", 0, "b")) == "$.a[0].b"
    assert render_path(("first name",)) == "$['first name']"
    assert render_path(("root", "@id")) == "$.root['@id']"


def test_render_then_parse_addresses_same_location():
    location = ("orders", 3, "line items", "@sku")
    assert parse_path(render_path(location)) == location
