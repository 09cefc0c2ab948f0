"""Evaluation of matching rules against actual values.

Values are plain Python data: the decoded JSON types (None, bool, int,
float, str, list, dict) for structured bodies, and str for headers, query
parameters, XML text and form values. Each check returns a list of
human-readable failure descriptions; an empty list means the value matched.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time
from typing import Any, List, Optional

from .matching import MatchingRule, RuleGroup

_INTEGER = re.compile(r"^-?\d+$")
_DECIMAL = re.compile(r"^-?\d+\.\d+$")
_NUMBER = re.compile(r"^-?\d+(\.\d+)?([eE][+-]?\d+)?$")
_SEMVER = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)

STATUS_CLASSES = {
    "information": range(100, 200),
    "success": range(200, 300),
    "redirect": range(300, 400),
    "clientError": range(400, 500),
    "serverError": range(500, 600),
    "nonError": range(100, 400),
    "error": range(400, 600),
}

# Java SimpleDateFormat letters -> strftime directives.
_JAVA_FORMAT = {
    ("y", 4): "%Y",
    ("y", 2): "%y",
    ("M", 1): "%m",
    ("M", 2): "%m",
    ("M", 3): "%b",
    ("M", 4): "%B",
    ("d", 1): "%d",
    ("d", 2): "%d",
    ("H", 1): "%H",
    ("H", 2): "%H",
    ("h", 1): "%I",
    ("h", 2): "%I",
    ("m", 1): "%M",
    ("m", 2): "%M",
    ("s", 1): "%S",
    ("s", 2): "%S",
    ("S", 1): "%f",
    ("S", 2): "%f",
    ("S", 3): "%f",
    ("S", 6): "%f",
    ("a", 1): "%p",
    ("E", 3): "%a",
    ("E", 4): "%A",
    ("Z", 1): "%z",
    ("X", 1): "%z",
    ("X", 2): "%z",
    ("X", 3): "%z",
    ("x", 1): "%z",
    ("z", 1): "%Z",
}


def type_name(value: Any) -> str:
    if value is None:
        return "Null"
    if isinstance(value, bool):
        return "Boolean"
    if isinstance(value, int):
        return "Integer"
    if isinstance(value, float):
        return "Decimal"
    if isinstance(value, str):
        return "String"
    if isinstance(value, list):
        return "Array"
    if isinstance(value, dict):
        return "Object"
    return type(value).__name__


def display_value(value: Any) -> str:
    if isinstance(value, str):
        return f"'{value}'"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return repr(value)


def _kind(value: Any) -> str:
    name = type_name(value)
    return "Number" if name in ("Integer", "Decimal") else name


def values_equal(expected: Any, actual: Any) -> bool:
    """Type-aware deep equality (True is not 1, but 1 equals 1.0)."""
    if isinstance(expected, bool) or isinstance(actual, bool):
        return isinstance(expected, bool) and isinstance(actual, bool) and expected == actual
    if isinstance(expected, (int, float)) and isinstance(actual, (int, float)):
        return expected == actual
    if isinstance(expected, dict) and isinstance(actual, dict):
        return expected.keys() == actual.keys() and all(
            values_equal(expected[k], actual[k]) for k in expected
        )
    if isinstance(expected, list) and isinstance(actual, list):
        return len(expected) == len(actual) and all(
            values_equal(e, a) for e, a in zip(expected, actual)
        )
    return type(expected) is type(actual) and expected == actual


def _as_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def java_format_to_strftime(pattern: str) -> str:
    """Translate a Java date pattern (yyyy-MM-dd'T'HH:mm:ss) into strftime syntax.

    Raises:
        ValueError: If the pattern uses letters with no strftime equivalent
    """
    out: List[str] = []
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "'":
            end = pattern.find("'", i + 1)
            if end == -1:
                raise ValueError(f"Unterminated quote in date format '{pattern}'")
            literal = pattern[i + 1:end] or "'"
            out.append(literal.replace("%", "%%"))
            i = end + 1
            continue
        if ch.isalpha():
            j = i
            while j < len(pattern) and pattern[j] == ch:
                j += 1
            count = j - i
            directive = _JAVA_FORMAT.get((ch, count)) or _JAVA_FORMAT.get((ch, min(count, 4)))
            if directive is None and ch == "y":
                directive = "%Y"
            if directive is None:
                raise ValueError(f"Unsupported date format letters '{ch * count}' in '{pattern}'")
            out.append(directive)
            i = j
            continue
        out.append("%%" if ch == "%" else ch)
        i += 1
    return "".join(out)


def _parse_temporal(kind: str, text: str, fmt: Optional[str]) -> None:
    if fmt:
        datetime.strptime(text, java_format_to_strftime(fmt))
        return
    if kind == "date":
        date.fromisoformat(text)
    elif kind == "time":
        time.fromisoformat(text)
    else:
        datetime.fromisoformat(text.replace("Z", "+00:00"))


def _check_cardinality(rule: MatchingRule, actual: Any) -> List[str]:
    if not isinstance(actual, list):
        return []
    size = len(actual)
    failures = []
    if rule.min is not None and size < rule.min:
        failures.append(
            f"Expected {display_value(actual)} (size {size}) to have minimum size of {rule.min}"
        )
    if rule.max is not None and size > rule.max:
        failures.append(
            f"Expected {display_value(actual)} (size {size}) to have maximum size of {rule.max}"
        )
    return failures


def match_rule(rule: MatchingRule, expected: Any, actual: Any, cascaded: bool = False) -> List[str]:
    """Evaluate one rule. Returns failure descriptions (empty when matched).

    A cascaded rule was declared on a parent path; size constraints only
    apply at the path they were declared for.
    """
    kind = rule.match

    if kind == "equality":
        if values_equal(expected, actual):
            return []
        return [f"Expected {display_value(actual)} ({type_name(actual)}) to be equal to "
                f"{display_value(expected)} ({type_name(expected)})"]

    if kind == "regex":
        text = _as_text(actual)
        if text is not None and rule.regex is not None and re.fullmatch(rule.regex, text):
            return []
        return [f"Expected {display_value(actual)} to match '{rule.regex}'"]

    if kind in ("type", "min", "max", "minType", "maxType", "minmax"):
        failures = []
        if _kind(expected) != _kind(actual):
            failures.append(
                f"Expected {display_value(actual)} ({type_name(actual)}) to be the same type as "
                f"{display_value(expected)} ({type_name(expected)})"
            )
        if not cascaded:
            failures.extend(_check_cardinality(rule, actual))
        return failures

    if kind in ("number", "integer", "decimal"):
        if kind == "number":
            ok = (isinstance(actual, (int, float)) and not isinstance(actual, bool)) or (
                isinstance(actual, str) and bool(_NUMBER.match(actual)))
        elif kind == "integer":
            ok = (isinstance(actual, int) and not isinstance(actual, bool)) or (
                isinstance(actual, str) and bool(_INTEGER.match(actual)))
        else:
            ok = isinstance(actual, float) or (isinstance(actual, str) and bool(_DECIMAL.match(actual)))
        if ok:
            return []
        return [f"Expected {display_value(actual)} ({type_name(actual)}) to be a {kind} value"]

    if kind == "boolean":
        if isinstance(actual, bool) or actual in ("true", "false"):
            return []
        return [f"Expected {display_value(actual)} ({type_name(actual)}) to be a boolean value"]

    if kind == "null":
        if actual is None:
            return []
        return [f"Expected {display_value(actual)} ({type_name(actual)}) to be a null value"]

    if kind == "include":
        text = _as_text(actual)
        if text is not None and rule.value is not None and rule.value in text:
            return []
        return [f"Expected {display_value(actual)} to include '{rule.value}'"]

    if kind in ("date", "time", "timestamp", "datetime"):
        text = _as_text(actual)
        if text is None:
            return [f"Expected {display_value(actual)} to be a {kind}"]
        try:
            _parse_temporal(kind, text, rule.format)
        except ValueError as e:
            fmt = f" matching '{rule.format}'" if rule.format else ""
            return [f"Expected {display_value(actual)} to be a {kind}{fmt}: {e}"]
        return []

    if kind == "notEmpty":
        if actual is None or (isinstance(actual, (str, list, dict)) and len(actual) == 0):
            return [f"Expected {display_value(actual)} ({type_name(actual)}) to not be empty"]
        if _kind(expected) != _kind(actual) and expected is not None:
            return [f"Expected {display_value(actual)} ({type_name(actual)}) to be the same type as "
                    f"{display_value(expected)} ({type_name(expected)})"]
        return []

    if kind == "semver":
        text = _as_text(actual)
        if text is not None and _SEMVER.match(text):
            return []
        return [f"Expected {display_value(actual)} to be a semantic version"]

    if kind == "statusCode":
        if not isinstance(actual, int):
            return [f"Expected status code but received {display_value(actual)}"]
        if rule.status_codes is not None:
            if actual in rule.status_codes:
                return []
            return [f"Expected status code {actual} to be one of {list(rule.status_codes)}"]
        allowed = STATUS_CLASSES.get(rule.status or "")
        if allowed is not None and actual in allowed:
            return []
        return [f"Expected status code {actual} to be a '{rule.status}' status"]

    if kind == "ignore-order":
        if isinstance(actual, list):
            return [] if cascaded else _check_cardinality(rule, actual)
        return match_rule(MatchingRule(match="equality"), expected, actual)

    if kind == "values":
        if isinstance(actual, dict):
            return []
        return match_rule(MatchingRule(match="equality"), expected, actual)

    if kind == "ignore":
        return []

    return [f"Unsupported matching rule '{kind}'"]


def match_group(group: RuleGroup, expected: Any, actual: Any, cascaded: bool = False) -> List[str]:
    """Evaluate a rule group with its AND/OR combination."""
    if not group.rules:
        return match_rule(MatchingRule(match="equality"), expected, actual)
    results = [match_rule(rule, expected, actual, cascaded) for rule in group.rules]
    if group.combine == "OR":
        if any(not failures for failures in results):
            return []
    return [failure for failures in results for failure in failures]
