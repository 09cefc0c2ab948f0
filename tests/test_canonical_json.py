"""Tests for canonical JSON serialization and digests."""

from pactverify._internal.canonical_json import canonical_dumps, hash_bytes, hash_canonical
from pactverify.kernel.body import OptionalBody


def test_key_order_independent():
    assert canonical_dumps({"b": 1, "a": {"d": 2, "c": 3}}) == canonical_dumps({"a": {"c": 3, "d": 2}, "b": 1})


def test_compact_and_unicode_preserving():
    assert canonical_dumps({"name": "café", "n": [1, 2]}) == '{"n":[1,2],"name":"café"}'


def test_bytes_are_digested_not_inlined():
    dumped = canonical_dumps({"payload": b"\x00\x01"})
    assert "sha256:" in dumped
    assert "\\u0000" not in dumped


def test_objects_with_to_dict():
    dumped = canonical_dumps({"body": OptionalBody.body("abc", "text/plain")})
    assert '"state":"present"' in dumped


def test_hash_bytes_str_and_bytes_agree():
    assert hash_bytes("abc") == hash_bytes(b"abc")
    assert hash_bytes(b"abc") == "sha256:ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"


def test_hash_canonical_stable():
    assert hash_canonical({"a": 1, "b": [1, 2]}) == hash_canonical({"b": [1, 2], "a": 1})
    assert hash_canonical({"a": 1}) != hash_canonical({"a": 2})
