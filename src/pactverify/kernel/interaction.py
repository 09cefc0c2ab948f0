"""Interactions: the expected exchanges recorded in a pact.

All models are frozen; they are built once by the loader and read by every
verification step without being mutated.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from pactverify._internal.canonical_json import hash_canonical
from .body import OptionalBody, header_value
from .generators import Generators
from .matching import MatchingRules


class ProviderState(BaseModel):
    """A named precondition, with parameters, the provider is put into before verifying."""
    name: str
    params: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class HttpRequest(BaseModel):
    method: str = "GET"
    path: str = "/"
    query: Dict[str, List[str]] = Field(default_factory=dict)
    headers: Dict[str, List[str]] = Field(default_factory=dict)
    body: OptionalBody = Field(default_factory=OptionalBody.missing)
    matching_rules: MatchingRules = Field(default_factory=MatchingRules)
    generators: Generators = Field(default_factory=Generators)

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    def content_type(self) -> Optional[str]:
        return self.body.content_type or header_value(self.headers, "Content-Type")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method.upper(),
            "path": self.path,
            "query": self.query,
            "headers": self.headers,
            "body": self.body.to_dict(),
        }


class HttpResponse(BaseModel):
    """The response the consumer expects."""
    status: int = 200
    headers: Dict[str, List[str]] = Field(default_factory=dict)
    body: OptionalBody = Field(default_factory=OptionalBody.missing)
    matching_rules: MatchingRules = Field(default_factory=MatchingRules)
    generators: Generators = Field(default_factory=Generators)

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    def content_type(self) -> Optional[str]:
        return self.body.content_type or header_value(self.headers, "Content-Type")

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "headers": self.headers, "body": self.body.to_dict()}


class ActualResponse(BaseModel):
    """What the provider actually returned (from HTTP replay or a provider method)."""
    status: int
    headers: Dict[str, List[str]] = Field(default_factory=dict)
    body: OptionalBody = Field(default_factory=OptionalBody.missing)

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    def content_type(self) -> Optional[str]:
        return self.body.content_type or header_value(self.headers, "Content-Type")

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "ActualResponse":
        """Build from {"statusCode": 200, "headers": {...}, "contentType": ..., "data": ...}.

        Header values may be single strings or lists of strings. `body` (or
        `data`) may be bytes, str, or any JSON-serialisable value.
        """
        headers: Dict[str, List[str]] = {}
        for name, value in (data.get("headers") or {}).items():
            headers[name] = [str(v) for v in value] if isinstance(value, (list, tuple)) else [str(value)]
        content_type = data.get("contentType") or header_value(headers, "Content-Type")
        raw = data.get("body", data.get("data"))
        if raw is None:
            body = OptionalBody.missing()
        elif isinstance(raw, (bytes, str)):
            body = OptionalBody.body(raw, content_type)
        else:
            body = OptionalBody.json(raw, content_type or "application/json")
        status = data.get("statusCode", data.get("status", 200))
        return cls(status=int(status), headers=headers, body=body)


class _BaseInteraction(BaseModel):
    description: str
    interaction_id: Optional[str] = None
    key: Optional[str] = None
    provider_states: List[ProviderState] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    def display_id(self) -> str:
        return self.interaction_id or self.unique_key()

    def provider_state_names(self) -> List[str]:
        return [state.name for state in self.provider_states]

    def unique_key(self) -> str:
        """Declared key, else a digest of the interaction contents."""
        if self.key:
            return self.key
        return hash_canonical(self.to_dict())[len("sha256:"):][:16]

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError


class RequestResponseInteraction(_BaseInteraction):
    kind: Literal["request-response"] = "request-response"
    request: HttpRequest = Field(default_factory=HttpRequest)
    response: HttpResponse = Field(default_factory=HttpResponse)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "description": self.description,
            "providerStates": [state.model_dump() for state in self.provider_states],
            "request": self.request.to_dict(),
            "response": self.response.to_dict(),
        }


class MessageInteraction(_BaseInteraction):
    """An asynchronous message the provider is expected to produce."""
    kind: Literal["message"] = "message"
    contents: OptionalBody = Field(default_factory=OptionalBody.missing)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    matching_rules: MatchingRules = Field(default_factory=MatchingRules)
    generators: Generators = Field(default_factory=Generators)

    def content_type(self) -> Optional[str]:
        if self.contents.content_type:
            return self.contents.content_type
        for key in ("contentType", "content-type", "Content-Type"):
            if self.metadata.get(key):
                return str(self.metadata[key])
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "description": self.description,
            "providerStates": [state.model_dump() for state in self.provider_states],
            "contents": self.contents.to_dict(),
            "metadata": self.metadata,
        }


Interaction = Union[RequestResponseInteraction, MessageInteraction]


class Pact(BaseModel):
    """A consumer/provider contract: an ordered list of interactions."""
    consumer: str
    provider: str
    interactions: List[Interaction] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    source: Optional[str] = None

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    def pact_version(self) -> str:
        meta = self.metadata.get("pactSpecification") or self.metadata.get("pact-specification") or {}
        return str(meta.get("version", "2.0.0"))
