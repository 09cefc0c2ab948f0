"""Public report models for pactverify package."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class InteractionReport(BaseModel):
    """Outcome of one verified interaction."""
    interaction_id: str
    description: str
    consumer: str
    stage: str  # "DONE" | "STATE_CHANGE_FAILED" | "DISPATCH_FAILED"
    result: str  # "ok" | "failed" | "error"
    duration_ms: int
    failures: List[Dict[str, Any]] = Field(default_factory=list)  # detail dicts, each with type + interactionId


class VerificationReport(BaseModel):
    """Outcome of a verification run."""
    ok: bool
    provider: str
    consumer: str
    provider_version: Optional[str] = None
    interactions: List[InteractionReport]  # in pact order
    skipped: List[str] = Field(default_factory=list)  # descriptions not run after an abort
    failures: Dict[str, str] = Field(default_factory=dict)  # failure description -> detail
    summary: Dict[str, int] = Field(default_factory=dict)  # total / passed / failed / errors / skipped
