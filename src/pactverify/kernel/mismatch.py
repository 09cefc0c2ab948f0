"""Mismatch records produced by comparison.

Mismatches are pure values: created during comparison, never mutated,
collected into lists. Each variant carries a `kind` tag so consumers can
dispatch on it exhaustively.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Union


@dataclass(frozen=True)
class StatusMismatch:
    """Response status differs from the expected status."""
    expected: int
    actual: int
    mismatch: Optional[str] = None
    kind: Literal["status"] = "status"

    def description(self) -> str:
        return self.mismatch or f"expected status of {self.expected} but was {self.actual}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "expected": self.expected,
            "actual": self.actual,
            "description": self.description(),
        }


@dataclass(frozen=True)
class HeaderMismatch:
    """A declared header is missing or carries a non-matching value."""
    key: str
    expected: Optional[str]
    actual: Optional[str]
    mismatch: str
    kind: Literal["header"] = "header"

    def description(self) -> str:
        return self.mismatch

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "key": self.key,
            "expected": self.expected,
            "actual": self.actual,
            "description": self.mismatch,
        }


@dataclass(frozen=True)
class MetadataMismatch:
    """A declared message metadata entry is missing or carries a non-matching value."""
    key: str
    expected: Any
    actual: Any
    mismatch: str
    kind: Literal["metadata"] = "metadata"

    def description(self) -> str:
        return self.mismatch

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "key": self.key,
            "expected": self.expected,
            "actual": self.actual,
            "description": self.mismatch,
        }


@dataclass(frozen=True)
class BodyMismatch:
    """One point of divergence inside a body, located by path ($.a.b[0])."""
    path: str
    expected: Any
    actual: Any
    mismatch: str
    kind: Literal["body"] = "body"

    def description(self) -> str:
        return self.mismatch

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "path": self.path,
            "expected": self.expected,
            "actual": self.actual,
            "description": self.mismatch,
        }


@dataclass(frozen=True)
class BodyTypeMismatch:
    """Expected and actual bodies use incompatible content types."""
    expected: Optional[str]
    actual: Optional[str]
    kind: Literal["body-content-type"] = "body-content-type"

    def description(self) -> str:
        return (f"Expected a body of '{self.expected}' but the actual content type was "
                f"'{self.actual}'")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "expected": self.expected,
            "actual": self.actual,
            "description": self.description(),
        }


Mismatch = Union[StatusMismatch, HeaderMismatch, MetadataMismatch, BodyMismatch, BodyTypeMismatch]


@dataclass(frozen=True)
class BodyMatchResult:
    """Outcome of a body comparison.

    Either `type_mismatch` is set (content types incompatible, no field-level
    comparison was attempted) or `mismatches` lists the body mismatches.
    """
    type_mismatch: Optional[BodyTypeMismatch] = None
    mismatches: List[BodyMismatch] = field(default_factory=list)
    diff: List[str] = field(default_factory=list)

    @classmethod
    def ok(cls) -> "BodyMatchResult":
        return cls()

    @classmethod
    def of_type_mismatch(cls, expected: Optional[str], actual: Optional[str]) -> "BodyMatchResult":
        return cls(type_mismatch=BodyTypeMismatch(expected=expected, actual=actual))

    def is_ok(self) -> bool:
        return self.type_mismatch is None and not self.mismatches

    def all_mismatches(self) -> List[Mismatch]:
        if self.type_mismatch is not None:
            return [self.type_mismatch]
        return list(self.mismatches)

    def mismatches_by_path(self) -> Dict[str, List[BodyMismatch]]:
        grouped: Dict[str, List[BodyMismatch]] = {}
        for m in self.mismatches:
            grouped.setdefault(m.path, []).append(m)
        return grouped
