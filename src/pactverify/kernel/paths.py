"""Path expressions for matching rules, generators and mismatch locations.

Rule paths use the pact dialect of JSONPath:
    $            the root
    $.a.b        object fields
    $.a[0]       array index
    $.a[*]       any array element
    $.*          any object field
    $['a b']     quoted field names (also used for XML '@attr' and '#text')

Concrete locations inside a document are tuples of segments: str for a
field, int for an array index. A rule path applies to a location when its
tokens match a prefix of the location; the most specific rule path (highest
weight) wins.
"""

from __future__ import annotations

import re
from typing import List, Sequence, Tuple, Union

Segment = Union[str, int]
Location = Tuple[Segment, ...]


class PathError(ValueError):
    """Raised when a path expression cannot be parsed."""
    pass


class _Star:
    """Wildcard token (matches any single field or index)."""

    def __repr__(self) -> str:
        return "*"


STAR = _Star()
Token = Union[str, int, _Star]

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_\-]*$")


def parse_path(expression: str) -> Tuple[Token, ...]:
    """Parse a rule path expression into tokens (the root is implicit).

    Raises:
        PathError: If the expression is malformed
    """
    expr = expression.strip()
    if not expr.startswith("$"):
        raise PathError(f"Path expression '{expression}' must start with '$'")

    tokens: List[Token] = []
    i = 1
    n = len(expr)
    while i < n:
        ch = expr[i]
        if ch == ".":
            i += 1
            start = i
            while i < n and expr[i] not in ".[":
                i += 1
            name = expr[start:i]
            if not name:
                raise PathError(f"Empty field name at position {start} in '{expression}'")
            tokens.append(STAR if name == "*" else name)
        elif ch == "[":
            close = expr.find("]", i)
            if close == -1:
                raise PathError(f"Unterminated '[' at position {i} in '{expression}'")
            inner = expr[i + 1:close].strip()
            if inner == "*":
                tokens.append(STAR)
            elif len(inner) >= 2 and inner[0] == inner[-1] and inner[0] in "'\"":
                tokens.append(inner[1:-1])
            elif inner.isdigit():
                tokens.append(int(inner))
            else:
                raise PathError(f"Invalid index '{inner}' in '{expression}'")
            i = close + 1
        else:
            raise PathError(f"Unexpected character '{ch}' at position {i} in '{expression}'")
    return tuple(tokens)


def _token_weight(token: Token, segment: Segment) -> int:
    if token is STAR:
        return 1
    if isinstance(token, int):
        return 2 if isinstance(segment, int) and segment == token else 0
    return 2 if isinstance(segment, str) and segment == token else 0


def path_weight(tokens: Sequence[Token], location: Sequence[Segment]) -> int:
    """Weight of a rule path against a location (0 means it does not apply).

    The root contributes a factor of 2, exact tokens 2 and wildcards 1, so a
    longer, more literal path always outweighs a shorter or wilder one.
    """
    if len(tokens) > len(location):
        return 0
    weight = 2
    for token, segment in zip(tokens, location):
        w = _token_weight(token, segment)
        if w == 0:
            return 0
        weight *= w
    return weight


def render_path(location: Sequence[Segment]) -> str:
    """Render a location back to its '$.a.b[0]' form."""
    parts = ["$"]
    for segment in location:
        if isinstance(segment, int):
            parts.append(f"[{segment}]")
        elif _IDENTIFIER.match(segment):
            parts.append(f".{segment}")
        else:
            escaped = segment.replace("'", "\\'")
            parts.append(f"['{escaped}']")
    return "".join(parts)
