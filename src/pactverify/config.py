"""Verifier configuration and provider/consumer descriptions.

Configuration is an explicit, immutable object handed to the verifier at
construction time. `VerifierConfig.from_env()` reads the PACT_* environment
variables for callers that configure verification from CI.
"""

import os
import re
from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pactverify.codes import VerificationType

ENV_PUBLISH_RESULTS = "PACT_VERIFIER_PUBLISH_RESULTS"
ENV_SHOW_STACKTRACE = "PACT_SHOW_STACKTRACE"
ENV_SHOW_FULLDIFF = "PACT_SHOW_FULLDIFF"
ENV_FILTER_CONSUMERS = "PACT_FILTER_CONSUMERS"
ENV_FILTER_DESCRIPTION = "PACT_FILTER_DESCRIPTION"
ENV_FILTER_PROVIDERSTATE = "PACT_FILTER_PROVIDERSTATE"
ENV_PROVIDER_VERSION = "PACT_PROVIDER_VERSION"
ENV_PROVIDER_TAG = "PACT_PROVIDER_TAG"

# (state, is_setup) -> optional mapping of values produced by the state setup
StateChangeCallback = Callable[[Any, bool], Optional[Mapping[str, Any]]]


def _flag(value: Optional[str]) -> bool:
    return value is not None and value.strip().lower() in ("true", "1", "yes")


def _csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class VerifierConfig(BaseModel):
    """Options controlling a verification run."""
    publish_results: bool = False
    show_stacktrace: bool = False
    show_full_diff: bool = False
    filter_consumers: List[str] = Field(default_factory=list)
    filter_description: Optional[str] = None  # regex matched against the description
    filter_provider_state: Optional[str] = None  # regex; "" selects interactions without states
    provider_version: Optional[str] = None
    provider_tags: List[str] = Field(default_factory=list)
    request_timeout: float = 30.0
    max_workers: int = 1
    fail_fast: bool = False
    allow_unexpected_keys: bool = False
    normalize_whitespace: bool = False

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("filter_description", "filter_provider_state")
    @classmethod
    def validate_filter_pattern(cls, v: Optional[str]) -> Optional[str]:
        """Filters must be valid regular expressions."""
        if v:
            try:
                re.compile(v)
            except re.error as e:
                raise ValueError(f"Invalid filter pattern '{v}': {e}")
        return v

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> "VerifierConfig":
        """Build a config from PACT_* environment variables; keyword overrides win."""
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {
            "publish_results": _flag(env.get(ENV_PUBLISH_RESULTS)),
            "show_stacktrace": _flag(env.get(ENV_SHOW_STACKTRACE)),
            "show_full_diff": _flag(env.get(ENV_SHOW_FULLDIFF)),
            "filter_consumers": _csv(env.get(ENV_FILTER_CONSUMERS)),
            "filter_description": env.get(ENV_FILTER_DESCRIPTION),
            "filter_provider_state": env.get(ENV_FILTER_PROVIDERSTATE),
            "provider_version": env.get(ENV_PROVIDER_VERSION) or None,
            "provider_tags": _csv(env.get(ENV_PROVIDER_TAG)),
        }
        values.update(overrides)
        return cls(**values)

    def has_filters(self) -> bool:
        return bool(self.filter_consumers) or self.filter_description is not None \
            or self.filter_provider_state is not None


class ProviderInfo(BaseModel):
    """The provider under verification and how to reach it."""
    name: str
    base_url: Optional[str] = None
    state_change_url: Optional[str] = None
    state_change_uses_body: bool = True
    state_change_teardown: bool = False
    state_change_callback: Optional[StateChangeCallback] = None
    verification_type: VerificationType = VerificationType.REQUEST_RESPONSE

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class ConsumerInfo(BaseModel):
    """A consumer whose pact is being verified."""
    name: str
    pact_source: Optional[str] = None
    verification_type: Optional[VerificationType] = None  # overrides the provider's mode

    model_config = ConfigDict(frozen=True)

    def effective_verification_type(self, provider: ProviderInfo) -> VerificationType:
        return self.verification_type or provider.verification_type
