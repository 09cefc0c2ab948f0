"""Optional payloads and content-type handling.

A body has three distinct states that are never treated as equivalent:
- MISSING: no body was declared (no expectation to violate)
- NULL: the body was explicitly declared as null
- PRESENT: bytes were declared (possibly zero-length)
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Optional

from pactverify._internal.canonical_json import hash_bytes


class BodyState(str, Enum):
    MISSING = "missing"
    NULL = "null"
    PRESENT = "present"


class ContentFamily(str, Enum):
    """Comparison strategy families, one content matcher per family."""
    JSON = "json"
    XML = "xml"
    TEXT = "text"
    FORM = "form"
    BINARY = "binary"


FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def base_type(content_type: Optional[str]) -> Optional[str]:
    """Return the lowercased media type without parameters ("text/plain; charset=x" -> "text/plain")."""
    if not content_type:
        return None
    media = content_type.split(";", 1)[0].strip().lower()
    return media or None


def content_type_parameters(content_type: Optional[str]) -> Dict[str, str]:
    """Parse media-type parameters into a lowercased-key dict."""
    if not content_type or ";" not in content_type:
        return {}
    params: Dict[str, str] = {}
    for part in content_type.split(";")[1:]:
        if "=" not in part:
            continue
        key, value = part.split("=", 1)
        params[key.strip().lower()] = value.strip().strip('"')
    return params


def content_family(content_type: Optional[str]) -> ContentFamily:
    """Map a media type onto the content matcher family that compares it."""
    media = base_type(content_type)
    if media is None:
        return ContentFamily.BINARY
    if media.endswith("/json") or media.endswith("+json"):
        return ContentFamily.JSON
    if media.endswith("/xml") or media.endswith("+xml"):
        return ContentFamily.XML
    if media == FORM_CONTENT_TYPE:
        return ContentFamily.FORM
    if media.startswith("text/"):
        return ContentFamily.TEXT
    return ContentFamily.BINARY


def detect_content_type(data: bytes) -> str:
    """Infer a content type from the payload when none is declared."""
    stripped = data.lstrip()
    if stripped[:1] in (b"{", b"["):
        try:
            json.loads(data.decode("utf-8"))
            return "application/json"
        except (UnicodeDecodeError, ValueError):
            pass
    lowered = stripped[:16].lower()
    if lowered.startswith(b"<!doctype html") or lowered.startswith(b"<html"):
        return "text/html"
    if lowered.startswith(b"<"):
        return "application/xml"
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        return "application/octet-stream"
    if all(ch.isprintable() or ch in "\r\n\t" for ch in text):
        return "text/plain"
    return "application/octet-stream"


def header_value(headers: Mapping[str, List[str]], name: str) -> Optional[str]:
    """Case-insensitive single-value header lookup (first value)."""
    lowered = name.lower()
    for key, values in headers.items():
        if key.lower() == lowered and values:
            return values[0]
    return None


@dataclass(frozen=True)
class OptionalBody:
    """A payload that may be absent, explicitly null, or present."""
    state: BodyState
    value: bytes = b""
    content_type: Optional[str] = None

    @classmethod
    def missing(cls) -> "OptionalBody":
        return cls(BodyState.MISSING)

    @classmethod
    def null(cls) -> "OptionalBody":
        return cls(BodyState.NULL)

    @classmethod
    def body(cls, value: bytes | str, content_type: Optional[str] = None) -> "OptionalBody":
        if isinstance(value, str):
            value = value.encode("utf-8")
        return cls(BodyState.PRESENT, value, content_type)

    @classmethod
    def json(cls, value, content_type: str = "application/json") -> "OptionalBody":
        return cls.body(json.dumps(value).encode("utf-8"), content_type)

    def is_missing(self) -> bool:
        return self.state is BodyState.MISSING

    def is_null(self) -> bool:
        return self.state is BodyState.NULL

    def is_present(self) -> bool:
        return self.state is BodyState.PRESENT

    def is_empty(self) -> bool:
        """True when the body carries no bytes (missing, null, or zero-length)."""
        return not self.is_present() or len(self.value) == 0

    def has_content(self) -> bool:
        return self.is_present() and len(self.value) > 0

    def with_content_type(self, content_type: Optional[str]) -> "OptionalBody":
        return OptionalBody(self.state, self.value, content_type)

    def with_value(self, value: bytes) -> "OptionalBody":
        return OptionalBody(BodyState.PRESENT, value, self.content_type)

    def text(self, encoding: Optional[str] = None) -> str:
        """Decode the payload, honouring a declared charset."""
        charset = encoding or content_type_parameters(self.content_type).get("charset") or "utf-8"
        return self.value.decode(charset, errors="replace")

    def resolved_content_type(self) -> Optional[str]:
        """Declared content type, else one detected from the payload."""
        if self.content_type:
            return self.content_type
        if self.has_content():
            return detect_content_type(self.value)
        return None

    def to_dict(self) -> Dict[str, Optional[str]]:
        """Stable summary of the body; content is reduced to its digest."""
        return {
            "state": self.state.value,
            "contentType": self.content_type,
            "digest": hash_bytes(self.value) if self.is_present() else None,
        }

    def display(self, limit: int = 120) -> str:
        if self.is_missing():
            return "<missing>"
        if self.is_null():
            return "<null>"
        if content_family(self.resolved_content_type()) is ContentFamily.BINARY:
            return f"<{len(self.value)} bytes>"
        text = self.text()
        return text if len(text) <= limit else text[:limit] + "..."
