"""Matching rules and the per-comparison matching context."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .paths import Location, Token, parse_path, path_weight

logger = logging.getLogger(__name__)


SUPPORTED_MATCHERS = frozenset({
    "equality",
    "regex",
    "type",
    "min",
    "max",
    "minType",
    "maxType",
    "minmax",
    "number",
    "integer",
    "decimal",
    "boolean",
    "null",
    "include",
    "date",
    "time",
    "timestamp",
    "datetime",
    "values",
    "ignore-order",
    "ignore",
    "notEmpty",
    "semver",
    "statusCode",
})

# Rules that describe container shape; they cascade to children as type matching.
CARDINALITY_MATCHERS = frozenset({"type", "min", "max", "minType", "maxType", "minmax"})

CATEGORIES = ("body", "header", "query", "path", "metadata", "status")

# Categories whose keys are plain names rather than path expressions.
KEYED_CATEGORIES = frozenset({"header", "query", "metadata"})


class MatchingRule(BaseModel):
    """A single relaxation of exact equality."""
    match: str
    regex: Optional[str] = None
    min: Optional[int] = None
    max: Optional[int] = None
    value: Optional[str] = None
    format: Optional[str] = None
    status: Optional[str] = None
    status_codes: Optional[Tuple[int, ...]] = None

    model_config = ConfigDict(frozen=True, extra="ignore")

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "MatchingRule":
        """Build a rule from its pact JSON form ({"match": "type", "min": 1} etc.)."""
        match = data.get("match")
        if match is None:
            # V2 shorthand: {"regex": "..."} / {"min": 1}
            if "regex" in data:
                match = "regex"
            elif "min" in data or "max" in data:
                match = "type"
            else:
                match = "equality"
        status = data.get("status")
        status_codes: Optional[Tuple[int, ...]] = None
        if isinstance(status, list):
            status_codes = tuple(int(code) for code in status)
            status = None
        return cls(
            match=str(match),
            regex=data.get("regex"),
            min=data.get("min"),
            max=data.get("max"),
            value=None if data.get("value") is None else str(data.get("value")),
            format=data.get("format") or data.get("date") or data.get("time") or data.get("timestamp"),
            status=status,
            status_codes=status_codes,
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"match": self.match}
        for name in ("regex", "min", "max", "value", "format", "status"):
            val = getattr(self, name)
            if val is not None:
                out[name] = val
        if self.status_codes is not None:
            out["status"] = list(self.status_codes)
        return out


class RuleGroup(BaseModel):
    """The rules declared for one path, combined with AND (default) or OR."""
    rules: Tuple[MatchingRule, ...] = Field(default_factory=tuple)
    combine: Literal["AND", "OR"] = "AND"

    model_config = ConfigDict(frozen=True)

    @classmethod
    def of(cls, *rules: MatchingRule, combine: Literal["AND", "OR"] = "AND") -> "RuleGroup":
        return cls(rules=tuple(rules), combine=combine)

    @classmethod
    def from_json(cls, data: Any) -> "RuleGroup":
        if isinstance(data, dict) and "matchers" in data:
            raw_rules = data.get("matchers") or []
            combine = str(data.get("combine", "AND")).upper()
        elif isinstance(data, list):
            raw_rules, combine = data, "AND"
        else:
            raw_rules, combine = [data], "AND"
        rules = []
        for raw in raw_rules:
            rule = MatchingRule.from_json(raw)
            if rule.match not in SUPPORTED_MATCHERS:
                logger.warning("Ignoring unsupported matching rule '%s'", rule.match)
                continue
            rules.append(rule)
        return cls(rules=tuple(rules), combine="OR" if combine == "OR" else "AND")

    def has(self, *names: str) -> bool:
        return any(rule.match in names for rule in self.rules)

    def find(self, *names: str) -> Optional[MatchingRule]:
        for rule in self.rules:
            if rule.match in names:
                return rule
        return None

    def is_structural(self) -> bool:
        """True when every rule only constrains container shape (type/min/max/ignore-order/values)."""
        return bool(self.rules) and all(
            rule.match in CARDINALITY_MATCHERS or rule.match in ("ignore-order", "values")
            for rule in self.rules
        )


class MatchingRules(BaseModel):
    """Category -> key/path -> rule group, as declared by the interaction."""
    categories: Dict[str, Dict[str, RuleGroup]] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_json(cls, data: Optional[Dict[str, Any]]) -> "MatchingRules":
        """Parse V3/V4 matchingRules ({"body": {"$.a": {"matchers": [...]}}, "path": {"matchers": [...]}})."""
        categories: Dict[str, Dict[str, RuleGroup]] = {}
        for category, entries in (data or {}).items():
            if not isinstance(entries, dict):
                continue
            if "matchers" in entries:
                categories[category] = {"": RuleGroup.from_json(entries)}
            else:
                categories[category] = {
                    key: RuleGroup.from_json(group) for key, group in entries.items()
                }
        return cls(categories=categories)

    @classmethod
    def from_v2_json(cls, data: Optional[Dict[str, Any]]) -> "MatchingRules":
        """Parse V2 matchingRules keyed by '$.body.x' / '$.headers.X' / '$.path' / '$.query.q'."""
        categories: Dict[str, Dict[str, RuleGroup]] = {}
        for key, rule in (data or {}).items():
            group = RuleGroup.from_json(rule)
            if key == "$.body" or key.startswith("$.body.") or key.startswith("$.body["):
                categories.setdefault("body", {})["$" + key[len("$.body"):]] = group
            elif key.startswith("$.headers."):
                categories.setdefault("header", {})[key[len("$.headers."):]] = group
            elif key.startswith("$.query."):
                categories.setdefault("query", {})[key[len("$.query."):]] = group
            elif key == "$.path":
                categories.setdefault("path", {})[""] = group
            else:
                logger.warning("Ignoring V2 matching rule with unrecognised path '%s'", key)
        return cls(categories=categories)

    def rules_for(self, category: str) -> Dict[str, RuleGroup]:
        return self.categories.get(category, {})

    def is_empty(self) -> bool:
        return not any(self.categories.values())


@dataclass(frozen=True)
class MatchingContext:
    """Rules for one comparison pass (one category), read-only during comparison."""
    category: str = "body"
    rules: Dict[str, RuleGroup] = field(default_factory=dict)
    allow_unexpected_keys: bool = False
    normalize_whitespace: bool = False
    _parsed: Tuple[Tuple[Tuple[Token, ...], RuleGroup], ...] = field(default=(), repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.category in KEYED_CATEGORIES:
            return
        parsed = []
        for expression, group in self.rules.items():
            if expression == "":
                parsed.append(((), group))
                continue
            parsed.append((parse_path(expression), group))
        object.__setattr__(self, "_parsed", tuple(parsed))

    @classmethod
    def empty(cls, category: str = "body") -> "MatchingContext":
        return cls(category=category)

    @classmethod
    def for_category(
        cls,
        rules: Optional[MatchingRules],
        category: str,
        allow_unexpected_keys: bool = False,
        normalize_whitespace: bool = False,
    ) -> "MatchingContext":
        return cls(
            category=category,
            rules=dict(rules.rules_for(category)) if rules is not None else {},
            allow_unexpected_keys=allow_unexpected_keys,
            normalize_whitespace=normalize_whitespace,
        )

    def resolve(self, location: Location) -> Tuple[Optional[RuleGroup], bool]:
        """Most specific rule group for location, and whether it was declared for
        exactly this location (False when it cascades from a parent path)."""
        best: Optional[RuleGroup] = None
        best_key = (0, -1)
        for tokens, group in self._parsed:
            weight = path_weight(tokens, location)
            if weight == 0:
                continue
            key = (weight, len(tokens))
            if key > best_key:
                best, best_key = group, key
        return best, best is not None and best_key[1] == len(location)

    def select_best(self, location: Location) -> Optional[RuleGroup]:
        """Most specific rule group whose path applies to location (or one of its parents)."""
        return self.resolve(location)[0]

    def group_for_key(self, key: str, case_insensitive: bool = False) -> Optional[RuleGroup]:
        """Rule group for a header/query/metadata name."""
        if key in self.rules:
            return self.rules[key]
        if case_insensitive:
            lowered = key.lower()
            for name, group in self.rules.items():
                if name.lower() == lowered:
                    return group
        return None

    def is_empty(self) -> bool:
        return not self.rules
