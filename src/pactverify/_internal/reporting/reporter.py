"""Verification event sinks (internal).

Reporters receive structured events as verification proceeds. They are
fire-and-forget: the verifier never consults a return value and logs and
swallows anything a reporter raises.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class VerifierReporter:
    """No-op base class; override the events you care about."""

    def verification_started(self, provider: Any, consumer: Any) -> None:
        pass

    def interaction_description(self, interaction: Any) -> None:
        pass

    def state_for_interaction(self, state: str, provider: Any, consumer: Any, is_setup: bool) -> None:
        pass

    def state_change_failed(self, state: str, error: BaseException) -> None:
        pass

    def state_change_teardown_failed(self, state: str, error: BaseException) -> None:
        pass

    def status_comparison_ok(self, status: int) -> None:
        pass

    def status_comparison_failed(self, status: int, mismatch: Any) -> None:
        pass

    def header_comparison_ok(self, key: str, value: Any) -> None:
        pass

    def header_comparison_failed(self, key: str, value: Any, mismatches: List[Any]) -> None:
        pass

    def body_comparison_ok(self) -> None:
        pass

    def body_comparison_failed(self, result: Any) -> None:
        pass

    def metadata_comparison_ok(self, key: str, value: Any) -> None:
        pass

    def metadata_comparison_failed(self, key: str, value: Any, mismatches: List[Any]) -> None:
        pass

    def request_failed(self, provider: Any, interaction: Any, message: str, error: Optional[BaseException],
                       show_stacktrace: bool) -> None:
        pass

    def no_provider_methods_found(self, interaction: Any) -> None:
        pass

    def verification_failed(self, interaction: Any, error: BaseException, show_stacktrace: bool) -> None:
        pass

    def interaction_finished(self, result: Any) -> None:
        pass

    def display_failures(self, failures: Dict[str, Any]) -> None:
        pass

    def finalise_report(self, run_result: Any) -> None:
        pass


class LoggingReporter(VerifierReporter):
    """Writes every event to the `pactverify.report` logger."""

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self.log = log or logging.getLogger("pactverify.report")

    def verification_started(self, provider, consumer):
        self.log.info("Verifying a pact between %s and %s", consumer.name, provider.name)

    def interaction_description(self, interaction):
        self.log.info("  %s", interaction.description)

    def state_for_interaction(self, state, provider, consumer, is_setup):
        self.log.info("  %s '%s'", "Given" if is_setup else "Tearing down", state)

    def state_change_failed(self, state, error):
        self.log.error("  State change for '%s' failed: %s", state, error)

    def state_change_teardown_failed(self, state, error):
        self.log.warning("  Teardown of '%s' failed: %s", state, error)

    def status_comparison_ok(self, status):
        self.log.info("    has status code %s (OK)", status)

    def status_comparison_failed(self, status, mismatch):
        self.log.info("    has status code %s (FAILED: %s)", status, mismatch.description())

    def header_comparison_ok(self, key, value):
        self.log.info("    includes header '%s' with value %s (OK)", key, value)

    def header_comparison_failed(self, key, value, mismatches):
        self.log.info("    includes header '%s' with value %s (FAILED)", key, value)

    def body_comparison_ok(self):
        self.log.info("    has a matching body (OK)")

    def body_comparison_failed(self, result):
        self.log.info("    has a matching body (FAILED)")

    def metadata_comparison_ok(self, key, value):
        self.log.info("    includes metadata '%s' with value %s (OK)", key, value)

    def metadata_comparison_failed(self, key, value, mismatches):
        self.log.info("    includes metadata '%s' with value %s (FAILED)", key, value)

    def request_failed(self, provider, interaction, message, error, show_stacktrace):
        self.log.error("  Request failed: %s", message, exc_info=error if show_stacktrace else None)

    def no_provider_methods_found(self, interaction):
        self.log.error("  No provider methods were found for '%s'", interaction.description)

    def verification_failed(self, interaction, error, show_stacktrace):
        self.log.error("  Verification of '%s' failed: %s", interaction.description, error,
                       exc_info=error if show_stacktrace else None)

    def display_failures(self, failures):
        if not failures:
            return
        self.log.info("Failures:")
        for index, (description, detail) in enumerate(failures.items(), start=1):
            self.log.info("%d) %s", index, description)
            self.log.info("    %s", detail)

    def finalise_report(self, run_result):
        self.log.info(
            "%d interaction(s) verified, %d failed, %d skipped",
            len(run_result.results), len(run_result.failed()), len(run_result.skipped),
        )


@runtime_checkable
class ResultPublisher(Protocol):
    """Publishes the run verdict (for example to a pact broker)."""

    def publish(self, result: Any, provider_version: str, tags: List[str]) -> None: ...
