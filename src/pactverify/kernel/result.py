"""Test results and their merge algebra.

    Ok    . x     = x            (Ok is the identity on both sides)
    Failed. Failed = Failed      (failure lists concatenated, descriptions de-duplicated)
    Error . x     = Error        (Error dominates Ok and Failed)
    Error . Error = Error        (error lists concatenated)

merge is associative, so partial results (status, headers, body, metadata)
and interaction results can be folded in any grouping.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Literal, Tuple, Union

FailureDetail = Dict[str, Any]


def _dedupe(descriptions: Iterable[str]) -> Tuple[str, ...]:
    seen = []
    for description in descriptions:
        if description not in seen:
            seen.append(description)
    return tuple(seen)


@dataclass(frozen=True)
class Ok:
    kind: Literal["ok"] = "ok"

    def merge(self, other: "TestResult") -> "TestResult":
        return other

    def is_ok(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {"result": "ok"}


@dataclass(frozen=True)
class Failed:
    """One or more checks failed; `results` holds a detail dict per failure."""
    results: Tuple[FailureDetail, ...] = ()
    descriptions: Tuple[str, ...] = ()
    kind: Literal["failed"] = "failed"

    @classmethod
    def of(cls, detail: FailureDetail, description: str) -> "Failed":
        return cls(results=(detail,), descriptions=(description,))

    def merge(self, other: "TestResult") -> "TestResult":
        if isinstance(other, Failed):
            return Failed(
                results=self.results + other.results,
                descriptions=_dedupe(self.descriptions + other.descriptions),
            )
        if isinstance(other, Error):
            return other
        return self

    def is_ok(self) -> bool:
        return False

    @property
    def description(self) -> str:
        return ", ".join(self.descriptions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "result": "failed",
            "description": self.description,
            "failures": [dict(r) for r in self.results],
        }


@dataclass(frozen=True)
class Error:
    """Verification itself broke (not a contract mismatch)."""
    errors: Tuple[FailureDetail, ...] = ()
    kind: Literal["error"] = "error"

    def merge(self, other: "TestResult") -> "TestResult":
        if isinstance(other, Error):
            return Error(errors=self.errors + other.errors)
        return self

    def is_ok(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {"result": "error", "errors": [dict(e) for e in self.errors]}


TestResult = Union[Ok, Failed, Error]


def merge(left: TestResult, right: TestResult) -> TestResult:
    return left.merge(right)


def fold_results(results: Iterable[TestResult]) -> TestResult:
    """Fold results left to right, starting from Ok."""
    folded: TestResult = Ok()
    for result in results:
        folded = folded.merge(result)
    return folded
