"""Generators: expected values computed at verification time.

A generator replaces a recorded literal (an id, a timestamp, a value set up
by a provider state) with one produced while verifying. Request generators
are applied before a request is replayed; response generators are applied to
the expected response before it is compared.
"""

from __future__ import annotations

import json
import logging
import random
import re
import string
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from .body import ContentFamily, OptionalBody, content_family
from .matchers import java_format_to_strftime
from .paths import STAR, PathError, Token, parse_path

if TYPE_CHECKING:
    from .interaction import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)

SUPPORTED_GENERATORS = frozenset({
    "RandomInt",
    "RandomDecimal",
    "RandomHexadecimal",
    "RandomString",
    "RandomBoolean",
    "Uuid",
    "Date",
    "Time",
    "DateTime",
    "ProviderState",
})

_EXPRESSION = re.compile(r"\$\{([^}]+)\}")

# Marker for "leave the recorded value in place".
_UNCHANGED = object()


class Generator(BaseModel):
    """One generator declaration ({"type": "RandomInt", "min": 0, "max": 10} etc.)."""
    type: str
    min: Optional[int] = None
    max: Optional[int] = None
    digits: Optional[int] = None
    size: Optional[int] = None
    format: Optional[str] = None
    expression: Optional[str] = None
    data_type: Optional[str] = Field(default=None, alias="dataType")

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Generator":
        return cls.model_validate(data)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def generate(self, context: Mapping[str, Any], current: Any = None) -> Any:
        """Produce a value, or _UNCHANGED when nothing can be generated."""
        kind = self.type
        if kind == "RandomInt":
            low = 0 if self.min is None else self.min
            high = 2147483647 if self.max is None else self.max
            return random.randint(low, high)
        if kind == "RandomDecimal":
            digits = max(self.digits or 10, 2)
            whole = random.randint(1, 9)
            fraction = "".join(random.choice(string.digits) for _ in range(digits - 1))
            return float(f"{whole}.{fraction}")
        if kind == "RandomHexadecimal":
            return "".join(random.choice("0123456789abcdef") for _ in range(self.digits or 10))
        if kind == "RandomString":
            return "".join(random.choice(string.ascii_letters + string.digits) for _ in range(self.size or 20))
        if kind == "RandomBoolean":
            return random.choice([True, False])
        if kind == "Uuid":
            return str(uuid.uuid4())
        if kind in ("Date", "Time", "DateTime"):
            return self._generate_temporal()
        if kind == "ProviderState":
            return self._generate_from_state(context, current)
        logger.warning("Ignoring unsupported generator '%s'", kind)
        return _UNCHANGED

    def _generate_temporal(self) -> str:
        now = datetime.now(timezone.utc)
        if self.format:
            return now.strftime(java_format_to_strftime(self.format))
        if self.type == "Date":
            return now.date().isoformat()
        if self.type == "Time":
            return now.time().replace(microsecond=0).isoformat()
        return now.replace(microsecond=0).isoformat()

    def _generate_from_state(self, context: Mapping[str, Any], current: Any) -> Any:
        expression = self.expression or ""
        whole = _EXPRESSION.fullmatch(expression)
        if whole is not None:
            name = whole.group(1)
            if name not in context:
                logger.warning("Provider state value '%s' is not available, keeping %r", name, current)
                return _UNCHANGED
            return _convert(context[name], self.data_type)

        missing = [name for name in _EXPRESSION.findall(expression) if name not in context]
        if missing:
            logger.warning("Provider state values %s are not available, keeping %r", missing, current)
            return _UNCHANGED
        return _convert(_EXPRESSION.sub(lambda m: str(context[m.group(1)]), expression), self.data_type)


def _convert(value: Any, data_type: Optional[str]) -> Any:
    if data_type is None or data_type == "RAW":
        return value
    if data_type == "STRING":
        return str(value)
    if data_type == "INTEGER":
        return int(value)
    if data_type in ("DECIMAL", "FLOAT"):
        return float(value)
    if data_type == "BOOLEAN":
        return value if isinstance(value, bool) else str(value).lower() == "true"
    return value


class Generators(BaseModel):
    """Category -> key/path -> generator, as declared by the interaction."""
    categories: Dict[str, Dict[str, Generator]] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_json(cls, data: Optional[Dict[str, Any]]) -> "Generators":
        """Parse {"body": {"$.id": {"type": "Uuid"}}, "path": {"type": "ProviderState", ...}}."""
        categories: Dict[str, Dict[str, Generator]] = {}
        for category, entries in (data or {}).items():
            if not isinstance(entries, dict):
                continue
            if "type" in entries and isinstance(entries["type"], str):
                declared = {"": entries}
            else:
                declared = entries
            parsed = {}
            for key, raw in declared.items():
                generator = Generator.from_json(raw)
                if generator.type not in SUPPORTED_GENERATORS:
                    logger.warning("Ignoring unsupported generator '%s' for %s '%s'", generator.type, category, key)
                    continue
                parsed[key] = generator
            categories[category] = parsed
        return cls(categories=categories)

    def for_category(self, category: str) -> Dict[str, Generator]:
        return self.categories.get(category, {})

    def is_empty(self) -> bool:
        return not any(self.categories.values())


def _set_at(node: Any, tokens: List[Token], generator: Generator, context: Mapping[str, Any]) -> Any:
    """Return node with the generated value placed at every location tokens address."""
    if not tokens:
        value = generator.generate(context, node)
        return node if value is _UNCHANGED else value
    head, rest = tokens[0], tokens[1:]
    if isinstance(node, dict):
        keys = list(node.keys()) if head is STAR else [head] if head in node else []
        for key in keys:
            node[key] = _set_at(node[key], rest, generator, context)
    elif isinstance(node, list):
        if head is STAR:
            indexes = range(len(node))
        elif isinstance(head, int) and head < len(node):
            indexes = [head]
        else:
            indexes = []
        for index in indexes:
            node[index] = _set_at(node[index], rest, generator, context)
    return node


def apply_body_generators(body: OptionalBody, generators: Mapping[str, Generator],
                          context: Mapping[str, Any]) -> OptionalBody:
    """Apply body generators to a JSON body (other content types are returned unchanged)."""
    if not generators or not body.has_content():
        return body
    if content_family(body.resolved_content_type()) is not ContentFamily.JSON:
        logger.debug("Body generators only apply to JSON bodies, skipping %s", body.resolved_content_type())
        return body
    try:
        document = json.loads(body.text())
    except ValueError:
        logger.warning("Body is not valid JSON, generators were not applied")
        return body
    for expression, generator in generators.items():
        try:
            tokens = list(parse_path(expression)) if expression else []
        except PathError as e:
            logger.warning("Skipping generator with invalid path: %s", e)
            continue
        document = _set_at(document, tokens, generator, context)
    return body.with_value(json.dumps(document).encode("utf-8"))


def _apply_keyed(values: Dict[str, List[str]], generators: Mapping[str, Generator],
                 context: Mapping[str, Any]) -> Dict[str, List[str]]:
    out = {key: list(items) for key, items in values.items()}
    for key, generator in generators.items():
        generated = []
        for item in out.get(key) or [None]:
            value = generator.generate(context, item)
            if value is not _UNCHANGED:
                generated.append(str(value))
            elif item is not None:
                generated.append(item)
        if generated:
            out[key] = generated
    return out


def generate_request(request: "HttpRequest", context: Optional[Mapping[str, Any]] = None) -> "HttpRequest":
    """Copy of request with its declared generators applied (state-change values in context)."""
    generators = request.generators
    if generators.is_empty():
        return request
    context = context or {}
    update: Dict[str, Any] = {}

    path_generator = generators.for_category("path").get("")
    if path_generator is not None:
        value = path_generator.generate(context, request.path)
        if value is not _UNCHANGED:
            update["path"] = str(value)
    if generators.for_category("header"):
        update["headers"] = _apply_keyed(request.headers, generators.for_category("header"), context)
    if generators.for_category("query"):
        update["query"] = _apply_keyed(request.query, generators.for_category("query"), context)
    if generators.for_category("body"):
        update["body"] = apply_body_generators(request.body, generators.for_category("body"), context)
    return request.model_copy(update=update)


def generate_response(response: "HttpResponse", context: Optional[Mapping[str, Any]] = None) -> "HttpResponse":
    """Copy of the expected response with its declared generators applied."""
    generators = response.generators
    if generators.is_empty():
        return response
    context = context or {}
    update: Dict[str, Any] = {}

    status_generator = generators.for_category("status").get("")
    if status_generator is not None:
        value = status_generator.generate(context, response.status)
        if value is not _UNCHANGED:
            update["status"] = int(value)
    if generators.for_category("header"):
        update["headers"] = _apply_keyed(response.headers, generators.for_category("header"), context)
    if generators.for_category("body"):
        update["body"] = apply_body_generators(response.body, generators.for_category("body"), context)
    return response.model_copy(update=update)
