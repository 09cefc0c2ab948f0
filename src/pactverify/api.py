"""Public API for pactverify package.

High-level functions that return complete, structured results.
Callers should use these functions instead of importing from _internal.
"""

import os
from pathlib import Path
from typing import Optional, Sequence, Union

from pactverify._internal.canonical_json import canonical_dumps
from pactverify._internal.io.pact_file import PactLoadError, load_pact, load_pact_from_dict
from pactverify._internal.reporting.reporter import ResultPublisher, VerifierReporter
from pactverify.config import ConsumerInfo, ProviderInfo, VerifierConfig
from pactverify.contracts import InteractionReport, VerificationReport
from pactverify.kernel.comparison import compare_message, compare_response
from pactverify.kernel.content import match_body
from pactverify.kernel.interaction import Pact
from pactverify.kernel.provider_methods import ProviderMethodRegistry
from pactverify.kernel.result import Error, Failed
from pactverify.kernel.verifier import ClientFactory, ProviderVerifier, RunResult


def _normalize_path(path: Union[str, os.PathLike, Path]) -> Path:
    """Normalize path input to Path object."""
    return Path(path) if not isinstance(path, Path) else path


def _failure_details(result) -> list:
    if isinstance(result, Failed):
        return [dict(r) for r in result.results]
    if isinstance(result, Error):
        return [dict(e) for e in result.errors]
    return []


def build_report(run: RunResult, provider: str, consumer: str,
                 provider_version: Optional[str] = None) -> VerificationReport:
    """Turn a RunResult into the stable, JSON-serialisable report model."""
    interactions = [
        InteractionReport(
            interaction_id=r.interaction_id,
            description=r.description,
            consumer=r.consumer,
            stage=r.stage.value,
            result=r.result.kind,
            duration_ms=int(r.duration * 1000),
            failures=_failure_details(r.result),
        )
        for r in run.results
    ]
    failures = {
        description: detail if isinstance(detail, str) else canonical_dumps(detail)
        for description, detail in run.failures.items()
    }
    summary = {
        "total": len(interactions),
        "passed": sum(1 for i in interactions if i.result == "ok"),
        "failed": sum(1 for i in interactions if i.result == "failed"),
        "errors": sum(1 for i in interactions if i.result == "error"),
        "skipped": len(run.skipped),
    }
    return VerificationReport(
        ok=run.is_ok(),
        provider=provider,
        consumer=consumer,
        provider_version=provider_version,
        interactions=interactions,
        skipped=list(run.skipped),
        failures=failures,
        summary=summary,
    )


def verify_pact(
    pact: Union[Pact, dict, str, os.PathLike, Path],
    provider: ProviderInfo,
    config: Optional[VerifierConfig] = None,
    reporters: Optional[Sequence[VerifierReporter]] = None,
    provider_methods: Optional[ProviderMethodRegistry] = None,
    publisher: Optional[ResultPublisher] = None,
    client_factory: Optional[ClientFactory] = None,
) -> VerificationReport:
    """
    Verify a pact against a provider.

    Args:
        pact: A loaded Pact, a decoded pact document, or a path to a pact file
        provider: The provider to verify (base URL, state change settings)
        config: Run options; defaults to VerifierConfig.from_env()
        reporters: Event sinks notified as verification proceeds
        provider_methods: Registry used for message interactions and provider-method mode
        publisher: Receives the run verdict when config.publish_results is set
        client_factory: Builds the HTTP client (tests pass one backed by a mock transport)

    Returns:
        VerificationReport with per-interaction outcomes and the run verdict

    Raises:
        FileNotFoundError: If a pact path does not exist
        PactLoadError: If the pact document is malformed
    """
    if isinstance(pact, dict):
        pact = load_pact_from_dict(pact)
    elif not isinstance(pact, Pact):
        pact = load_pact(_normalize_path(pact))

    config = config or VerifierConfig.from_env()
    verifier = ProviderVerifier(
        config=config,
        reporters=reporters,
        provider_methods=provider_methods,
        client_factory=client_factory,
        publisher=publisher,
    )
    consumer = ConsumerInfo(name=pact.consumer, pact_source=pact.source)
    run = verifier.verify_pact(pact, provider, consumer)
    return build_report(run, provider.name, consumer.name, config.provider_version)


__all__ = [
    "PactLoadError",
    "build_report",
    "compare_message",
    "compare_response",
    "load_pact",
    "load_pact_from_dict",
    "match_body",
    "verify_pact",
]
