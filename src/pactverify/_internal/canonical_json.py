"""Centralized canonical JSON serialization and digests.

This module provides the single serialization used everywhere a stable
representation is needed: interaction keys, binary body digests, and
report output.

Rules:
- UTF-8 (ensure_ascii=False)
- Sorted keys
- Stable separators (",", ":")
- bytes rendered as sha256 digests, never inlined
"""

import hashlib
import json
from typing import Any, Union


def _default(obj: Any) -> Any:
    if isinstance(obj, (bytes, bytearray)):
        return hash_bytes(bytes(obj))
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=lambda v: json.dumps(v, sort_keys=True, default=str))
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return str(obj)


def canonical_dumps(obj: Any) -> str:
    """
    Canonical JSON serialization for byte-stable output.

    Args:
        obj: Python object to serialize

    Returns:
        Canonical JSON string
    """
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_default,
    )


def hash_bytes(content: Union[str, bytes]) -> str:
    """Compute SHA256 of raw content.

    Returns:
        SHA256 hash as hex string (prefixed with "sha256:")
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    return f"sha256:{hashlib.sha256(content).hexdigest()}"


def hash_canonical(obj: Any) -> str:
    """Compute SHA256 of the canonical JSON form of obj (prefixed with "sha256:")."""
    return hash_bytes(canonical_dumps(obj))
