"""Pact file loading (internal).

Reads V2, V3 and V4 pact JSON documents into frozen Pact models. Wire-format
quirks are handled here so the kernel only ever sees one shape:
- V2 provider states are a single string, V3+ a list of {name, params}
- V2 matching rules are keyed by '$.body...' / '$.headers.X' paths, V3+ by category
- V2 query strings are raw strings, V3+ a map of lists
- V4 bodies are {"content", "contentType", "encoded": false|"base64"|"json"}
"""

import base64
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import parse_qs

from pactverify.kernel.body import OptionalBody, header_value
from pactverify.kernel.generators import Generators
from pactverify.kernel.interaction import (
    HttpRequest,
    HttpResponse,
    Interaction,
    MessageInteraction,
    Pact,
    ProviderState,
    RequestResponseInteraction,
)
from pactverify.kernel.matching import MatchingRules

logger = logging.getLogger(__name__)

V4_HTTP = "Synchronous/HTTP"
V4_ASYNC_MESSAGE = "Asynchronous/Messages"
V4_SYNC_MESSAGE = "Synchronous/Messages"


class PactLoadError(ValueError):
    """Raised when a document is not a usable pact."""
    pass


def _major_version(metadata: Dict[str, Any]) -> int:
    declared = metadata.get("pactSpecification") or metadata.get("pact-specification") or {}
    version = str(declared.get("version", "2.0.0"))
    try:
        return int(version.split(".")[0])
    except ValueError:
        raise PactLoadError(f"Invalid pact specification version '{version}'")


def _parse_headers(raw: Any) -> Dict[str, List[str]]:
    headers: Dict[str, List[str]] = {}
    for name, value in (raw or {}).items():
        if isinstance(value, list):
            headers[name] = [str(v) for v in value]
        else:
            headers[name] = [str(value)]
    return headers


def _parse_query(raw: Any) -> Dict[str, List[str]]:
    if not raw:
        return {}
    if isinstance(raw, str):
        return parse_qs(raw, keep_blank_values=True)
    return {name: [str(v) for v in value] if isinstance(value, list) else [str(value)]
            for name, value in raw.items()}


def _parse_states(data: Dict[str, Any]) -> List[ProviderState]:
    if "providerStates" in data:
        return [ProviderState(name=s["name"], params=s.get("params") or {}) for s in data["providerStates"] or []]
    legacy = data.get("providerState") or data.get("provider_state")
    return [ProviderState(name=legacy)] if legacy else []


def _parse_rules(raw: Any) -> MatchingRules:
    if not raw:
        return MatchingRules()
    if any(key.startswith("$") for key in raw):
        return MatchingRules.from_v2_json(raw)
    if "content" in raw and "body" not in raw:
        raw = dict(raw)
        raw["body"] = raw.pop("content")
    return MatchingRules.from_json(raw)


def _parse_generators(raw: Any) -> Generators:
    if not raw:
        return Generators()
    if "content" in raw and "body" not in raw:
        raw = dict(raw)
        raw["body"] = raw.pop("content")
    return Generators.from_json(raw)


def _legacy_body(data: Dict[str, Any], key: str, content_type: Optional[str]) -> OptionalBody:
    """V2/V3 bodies: any JSON value, a string being the raw payload."""
    if key not in data:
        return OptionalBody.missing()
    value = data[key]
    if value is None:
        return OptionalBody.null()
    if isinstance(value, str):
        return OptionalBody.body(value, content_type)
    return OptionalBody.json(value, content_type or "application/json")


def _v4_body(raw: Any, fallback_content_type: Optional[str]) -> OptionalBody:
    if raw is None:
        return OptionalBody.missing()
    if not isinstance(raw, dict) or "content" not in raw:
        raise PactLoadError(f"Invalid V4 body: {raw!r}")
    content = raw["content"]
    if content is None:
        return OptionalBody.null()
    content_type = raw.get("contentType") or fallback_content_type
    encoded = raw.get("encoded", False)
    if encoded == "base64":
        try:
            return OptionalBody.body(base64.b64decode(content), content_type)
        except (ValueError, TypeError) as e:
            raise PactLoadError(f"Invalid base64 body content: {e}")
    if encoded == "json" or not isinstance(content, str):
        if isinstance(content, str):
            return OptionalBody.body(content, content_type or "application/json")
        return OptionalBody.json(content, content_type or "application/json")
    return OptionalBody.body(content, content_type)


def _parse_body(data: Dict[str, Any], key: str, headers: Dict[str, List[str]], v4: bool) -> OptionalBody:
    content_type = header_value(headers, "Content-Type")
    if v4:
        return _v4_body(data.get(key), content_type)
    return _legacy_body(data, key, content_type)


def _parse_request(data: Dict[str, Any], v4: bool) -> HttpRequest:
    headers = _parse_headers(data.get("headers"))
    return HttpRequest(
        method=str(data.get("method", "GET")).upper(),
        path=data.get("path", "/"),
        query=_parse_query(data.get("query")),
        headers=headers,
        body=_parse_body(data, "body", headers, v4),
        matching_rules=_parse_rules(data.get("matchingRules")),
        generators=_parse_generators(data.get("generators")),
    )


def _parse_response(data: Dict[str, Any], v4: bool) -> HttpResponse:
    headers = _parse_headers(data.get("headers"))
    return HttpResponse(
        status=int(data.get("status", 200)),
        headers=headers,
        body=_parse_body(data, "body", headers, v4),
        matching_rules=_parse_rules(data.get("matchingRules")),
        generators=_parse_generators(data.get("generators")),
    )


def _parse_message(data: Dict[str, Any], v4: bool) -> MessageInteraction:
    metadata = dict(data.get("metadata") or data.get("metaData") or {})
    content_type = None
    for key in ("contentType", "content-type", "Content-Type"):
        if metadata.get(key):
            content_type = str(metadata[key])
            break
    raw = data.get("contents")
    if v4 and isinstance(raw, dict) and "content" in raw:
        contents = _v4_body(raw, content_type)
    else:
        contents = _legacy_body(data, "contents", content_type)
    return MessageInteraction(
        description=data.get("description", ""),
        interaction_id=data.get("_id"),
        key=data.get("key"),
        provider_states=_parse_states(data),
        contents=contents,
        metadata=metadata,
        matching_rules=_parse_rules(data.get("matchingRules")),
        generators=_parse_generators(data.get("generators")),
    )


def _parse_interaction(index: int, data: Dict[str, Any], v4: bool, message_pact: bool) -> Optional[Interaction]:
    if not isinstance(data, dict):
        raise PactLoadError(f"Interaction {index} is not an object")
    kind = data.get("type")
    if v4 and kind is not None:
        if kind == V4_HTTP:
            pass
        elif kind == V4_ASYNC_MESSAGE:
            return _parse_message(data, v4)
        elif kind == V4_SYNC_MESSAGE:
            logger.warning("Interaction %d has type '%s', which is not supported. It will be ignored.", index, kind)
            return None
        else:
            logger.warning("Interaction %d has invalid type '%s'. It will be ignored.", index, kind)
            return None
    elif message_pact or ("request" not in data and "contents" in data):
        return _parse_message(data, v4)

    if "request" not in data:
        raise PactLoadError(f"Interaction {index} ('{data.get('description', '')}') has no request")
    return RequestResponseInteraction(
        description=data.get("description", ""),
        interaction_id=data.get("_id"),
        key=data.get("key"),
        provider_states=_parse_states(data),
        request=_parse_request(data["request"], v4),
        response=_parse_response(data.get("response") or {}, v4),
    )


def load_pact_from_dict(data: Dict[str, Any], source: Optional[str] = None) -> Pact:
    """Build a Pact from a decoded pact document.

    Raises:
        PactLoadError: If the document is missing required sections or is malformed
    """
    if not isinstance(data, dict):
        raise PactLoadError("A pact document must be a JSON object")
    try:
        consumer = data["consumer"]["name"]
        provider = data["provider"]["name"]
    except (KeyError, TypeError):
        raise PactLoadError("A pact document needs consumer.name and provider.name")

    metadata = data.get("metadata") or {}
    v4 = _major_version(metadata) >= 4
    message_pact = "messages" in data and "interactions" not in data
    raw_interactions = data.get("messages") if message_pact else data.get("interactions")

    interactions: List[Interaction] = []
    for index, raw in enumerate(raw_interactions or []):
        interaction = _parse_interaction(index, raw, v4, message_pact)
        if interaction is not None:
            interactions.append(interaction)

    logger.debug("Loaded %d interaction(s) between %s and %s", len(interactions), consumer, provider)
    return Pact(consumer=consumer, provider=provider, interactions=interactions, metadata=metadata, source=source)


def load_pact(path: Union[str, Path]) -> Pact:
    """Load a pact from a JSON file path.

    Raises:
        FileNotFoundError: If the file does not exist
        PactLoadError: If the file is not valid JSON or not a usable pact
    """
    pact_path = Path(path)
    text = pact_path.read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise PactLoadError(f"{pact_path} is not valid JSON: {e}")
    return load_pact_from_dict(data, source=str(pact_path))
