"""Provider verification: drive each interaction through its lifecycle.

    STATE_CHANGE_PENDING -> DISPATCHING -> COMPARING -> DONE
            |                   |
    STATE_CHANGE_FAILED   DISPATCH_FAILED

Dispatch (HTTP replay or provider method) returns a DispatchOutcome value;
exceptions never cross it. Comparison results are folded with the TestResult
algebra into one verdict per interaction, and interaction verdicts into one
run verdict. Interactions are isolated from each other and may run on a
thread pool; results and failures are collected in thread-safe sinks.
"""

from __future__ import annotations

import logging
import re
import threading
import time
import traceback
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from pactverify._internal.reporting.reporter import ResultPublisher, VerifierReporter
from pactverify._internal.transport import ProviderClient
from pactverify.codes import FailureCode, VerificationType
from pactverify.config import ConsumerInfo, ProviderInfo, VerifierConfig

from .comparison import MessageComparison, ResponseComparison, compare_message, compare_response
from .generators import generate_request
from .interaction import ActualResponse, Interaction, MessageInteraction, Pact, RequestResponseInteraction
from .mismatch import BodyMatchResult
from .provider_methods import InstanceFactory, ProviderMessage, ProviderMethodRegistry
from .result import Error, Failed, Ok, TestResult, fold_results
from .state_change import DefaultStateChange, StateChangeErr

logger = logging.getLogger(__name__)

ClientFactory = Callable[[ProviderInfo, VerifierConfig], ProviderClient]


def default_client_factory(provider: ProviderInfo, config: VerifierConfig) -> ProviderClient:
    return ProviderClient(provider, timeout=config.request_timeout)


class VerificationStage(str, Enum):
    STATE_CHANGE_PENDING = "STATE_CHANGE_PENDING"
    DISPATCHING = "DISPATCHING"
    COMPARING = "COMPARING"
    DONE = "DONE"
    STATE_CHANGE_FAILED = "STATE_CHANGE_FAILED"
    DISPATCH_FAILED = "DISPATCH_FAILED"


@dataclass(frozen=True)
class DispatchSuccess:
    """Actual outcomes: one ActualResponse or ProviderMessage per dispatch target."""
    actuals: Tuple[Union[ActualResponse, ProviderMessage], ...]


@dataclass(frozen=True)
class DispatchFailure:
    code: FailureCode
    message: str
    exception: Optional[BaseException] = None
    stacktrace: Optional[str] = None


DispatchOutcome = Union[DispatchSuccess, DispatchFailure]


@dataclass(frozen=True)
class InteractionResult:
    interaction_id: str
    description: str
    consumer: str
    stage: VerificationStage
    result: TestResult
    duration: float = 0.0
    comparisons: Tuple[Union[ResponseComparison, MessageComparison], ...] = ()

    def is_ok(self) -> bool:
        return self.result.is_ok()


@dataclass(frozen=True)
class RunResult:
    """Outcome of verifying a sequence of interactions."""
    results: List[InteractionResult] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failures: Dict[str, Any] = field(default_factory=dict)

    @property
    def verdict(self) -> TestResult:
        return fold_results(r.result for r in self.results)

    def is_ok(self) -> bool:
        return self.verdict.is_ok()

    def failed(self) -> List[InteractionResult]:
        return [r for r in self.results if not r.is_ok()]


class ResultSink:
    """Append-only, thread-safe collection of interaction results."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: List[Tuple[int, InteractionResult]] = []

    def append(self, index: int, result: InteractionResult) -> None:
        with self._lock:
            self._items.append((index, result))

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def snapshot(self) -> List[InteractionResult]:
        """Results in interaction order."""
        with self._lock:
            return [result for _, result in sorted(self._items, key=lambda item: item[0])]


class FailureSink:
    """Append-only, thread-safe map of failure description -> detail.

    Recording a description twice keeps both entries (the second gets a
    numeric suffix) so concurrent interactions never overwrite each other.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._failures: Dict[str, Any] = {}

    def record(self, description: str, detail: Any) -> None:
        with self._lock:
            key = description
            counter = 2
            while key in self._failures:
                key = f"{description} ({counter})"
                counter += 1
            self._failures[key] = detail

    def __len__(self) -> int:
        with self._lock:
            return len(self._failures)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._failures)


def _failure(code: FailureCode, interaction: Interaction, message: str, **extra: Any) -> Dict[str, Any]:
    detail: Dict[str, Any] = {"type": code.value, "interactionId": interaction.display_id(), "message": message}
    detail.update(extra)
    return detail


def _as_provider_message(value: Any) -> ProviderMessage:
    if isinstance(value, ProviderMessage):
        return value
    if isinstance(value, tuple) and len(value) == 2 and isinstance(value[1], Mapping):
        return ProviderMessage(contents=value[0], metadata=dict(value[1]))
    if isinstance(value, (bytes, bytearray, str, dict, list)):
        return ProviderMessage(contents=value)
    raise TypeError(
        f"Provider method returned a {type(value).__name__}; expected a ProviderMessage, "
        "a (payload, metadata) pair or a raw payload"
    )


def _as_actual_response(value: Any) -> ActualResponse:
    if isinstance(value, ActualResponse):
        return value
    if isinstance(value, Mapping):
        return ActualResponse.from_mapping(dict(value))
    raise TypeError(
        f"Provider method returned a {type(value).__name__}; expected an ActualResponse or a mapping"
    )


class ProviderVerifier:
    """
    Verifies interactions against a provider.

    Attributes:
        config: Run options (filters, publishing, diff and stack trace display, workers)
        reporters: Event sinks notified as verification proceeds
        provider_methods: Registry used for provider-method verification and messages
        instance_factory: Creates owner instances for provider methods defined on classes
    """

    def __init__(
        self,
        config: Optional[VerifierConfig] = None,
        reporters: Optional[Sequence[VerifierReporter]] = None,
        provider_methods: Optional[ProviderMethodRegistry] = None,
        client_factory: Optional[ClientFactory] = None,
        publisher: Optional[ResultPublisher] = None,
        state_change_handler: Optional[DefaultStateChange] = None,
        instance_factory: Optional[InstanceFactory] = None,
    ) -> None:
        self.config = config or VerifierConfig()
        self.reporters = list(reporters or [])
        self.provider_methods = provider_methods if provider_methods is not None else ProviderMethodRegistry()
        self.client_factory = client_factory or default_client_factory
        self.publisher = publisher
        self.state_change_handler = state_change_handler or DefaultStateChange()
        self.instance_factory = instance_factory
        self._runs_lock = threading.Lock()
        self._active_runs: List[threading.Event] = []
        self._last_run_aborted = False

    # Events

    def emit(self, event: str, *args: Any) -> None:
        """Send an event to every reporter; reporter errors are logged and swallowed."""
        for reporter in self.reporters:
            handler = getattr(reporter, event, None)
            if handler is None:
                continue
            try:
                handler(*args)
            except Exception:
                logger.warning("Reporter %s failed handling '%s'", type(reporter).__name__, event, exc_info=True)

    # Cancellation

    def abort(self) -> None:
        """Ask every run in progress to stop; interactions already running finish normally.

        Each run has its own abort event, so runs started after this call are not affected.
        """
        with self._runs_lock:
            for event in self._active_runs:
                event.set()

    @property
    def aborted(self) -> bool:
        """True when the most recently finished run was aborted."""
        return self._last_run_aborted

    # Filtering

    def select_interaction(self, interaction: Interaction) -> bool:
        """Apply the description and provider-state filters."""
        config = self.config
        if config.filter_description is not None and not re.search(config.filter_description,
                                                                   interaction.description):
            return False
        if config.filter_provider_state is not None:
            names = interaction.provider_state_names()
            if config.filter_provider_state == "":
                return not names
            return any(re.search(config.filter_provider_state, name) for name in names)
        return True

    def select_consumer(self, consumer: ConsumerInfo) -> bool:
        return not self.config.filter_consumers or consumer.name in self.config.filter_consumers

    # Dispatch

    def dispatch(self, provider: ProviderInfo, consumer: ConsumerInfo, interaction: Interaction,
                 context: Mapping[str, Any], client: Optional[ProviderClient]) -> DispatchOutcome:
        """Obtain the actual outcome of an interaction. Never raises."""
        mode = consumer.effective_verification_type(provider)
        if isinstance(interaction, MessageInteraction) or mode is VerificationType.PROVIDER_METHOD:
            logger.debug("Verifying '%s' via provider methods", interaction.description)
            return self._dispatch_provider_methods(interaction)
        logger.debug("Verifying '%s' via request/response", interaction.description)
        return self._dispatch_http(interaction, context, client)

    def _failure_from_exception(self, code: FailureCode, message: str, e: BaseException) -> DispatchFailure:
        stacktrace = "".join(traceback.format_exception(type(e), e, e.__traceback__))
        return DispatchFailure(code=code, message=f"{message}: {e}", exception=e, stacktrace=stacktrace)

    def _dispatch_http(self, interaction: RequestResponseInteraction, context: Mapping[str, Any],
                       client: Optional[ProviderClient]) -> DispatchOutcome:
        if client is None:
            return DispatchFailure(FailureCode.DISPATCH_FAILED, "No HTTP client is available for request replay")
        try:
            request = generate_request(interaction.request, context)
            return DispatchSuccess((client.make_request(request),))
        except Exception as e:
            return self._failure_from_exception(
                FailureCode.DISPATCH_FAILED, "Request to provider failed with an exception", e,
            )

    def _dispatch_provider_methods(self, interaction: Interaction) -> DispatchOutcome:
        methods = self.provider_methods.find(interaction.description)
        if not methods:
            self.emit("no_provider_methods_found", interaction)
            return DispatchFailure(
                FailureCode.NO_PROVIDER_METHOD,
                f"No provider methods were found for interaction '{interaction.description}'. "
                f"Register a function tagged with @provider_method(\"{interaction.description}\") "
                f"that returns the actual {'message' if isinstance(interaction, MessageInteraction) else 'response'}.",
            )
        convert = _as_provider_message if isinstance(interaction, MessageInteraction) else _as_actual_response
        try:
            actuals = tuple(convert(method.invoke(self.instance_factory)) for method in methods)
        except Exception as e:
            return self._failure_from_exception(
                FailureCode.DISPATCH_FAILED, "Request to provider method failed with an exception", e,
            )
        return DispatchSuccess(actuals)

    # Comparison

    def _response_result(self, interaction: RequestResponseInteraction, comparison: ResponseComparison,
                         message: str, failures: FailureSink) -> TestResult:
        expected = interaction.response
        results: List[TestResult] = []

        if comparison.status_mismatch is None:
            self.emit("status_comparison_ok", expected.status)
        else:
            mismatch = comparison.status_mismatch
            self.emit("status_comparison_failed", expected.status, mismatch)
            failures.record(f"{message} has status code {expected.status}", mismatch.description())
            results.append(Failed.of(
                _failure(FailureCode.STATUS_MISMATCH, interaction, mismatch.description(),
                         expected=mismatch.expected, actual=mismatch.actual),
                "Response status did not match",
            ))

        for key, mismatches in comparison.header_mismatches.items():
            value = ", ".join(expected.headers.get(key, []))
            if not mismatches:
                self.emit("header_comparison_ok", key, value)
                continue
            self.emit("header_comparison_failed", key, value, mismatches)
            failures.record(f"{message} includes headers \"{key}\" with value \"{value}\"",
                            "; ".join(m.description() for m in mismatches))
            results.append(Failed.of(
                _failure(FailureCode.HEADER_MISMATCH, interaction, mismatches[0].description(),
                         key=key, mismatches=[m.to_dict() for m in mismatches]),
                "Headers had differences",
            ))

        results.append(self._body_result(interaction, comparison.body_result, message, failures))
        return fold_results(results)

    def _body_result(self, interaction: Interaction, body_result: BodyMatchResult, message: str,
                     failures: FailureSink) -> TestResult:
        if body_result.is_ok():
            self.emit("body_comparison_ok")
            return Ok()
        self.emit("body_comparison_failed", body_result)
        description = f"{message} has a matching body"
        if body_result.type_mismatch is not None:
            mismatch = body_result.type_mismatch
            failures.record(description, mismatch.description())
            return Failed.of(
                _failure(FailureCode.BODY_TYPE_MISMATCH, interaction, mismatch.description(),
                         expected=mismatch.expected, actual=mismatch.actual),
                "Body had differences",
            )
        failures.record(description, [m.to_dict() for m in body_result.mismatches])
        extra: Dict[str, Any] = {"mismatches": [m.to_dict() for m in body_result.mismatches]}
        if body_result.diff:
            extra["diff"] = list(body_result.diff)
        return Failed.of(
            _failure(FailureCode.BODY_MISMATCH, interaction, body_result.mismatches[0].description(), **extra),
            "Body had differences",
        )

    def _message_result(self, interaction: MessageInteraction, comparison: MessageComparison,
                        message: str, failures: FailureSink) -> TestResult:
        description = f"{message} generates a message which"
        results: List[TestResult] = [self._body_result(interaction, comparison.body_result, description, failures)]
        for key, mismatches in comparison.metadata_mismatches.items():
            value = interaction.metadata.get(key)
            if not mismatches:
                self.emit("metadata_comparison_ok", key, value)
                continue
            self.emit("metadata_comparison_failed", key, value, mismatches)
            failures.record(f"{description} includes metadata \"{key}\" with value \"{value}\"",
                            "; ".join(m.description() for m in mismatches))
            results.append(Failed.of(
                _failure(FailureCode.METADATA_MISMATCH, interaction, mismatches[0].description(),
                         key=key, mismatches=[m.to_dict() for m in mismatches]),
                "Metadata had differences",
            ))
        return fold_results(results)

    def compare(self, interaction: Interaction, outcome: DispatchSuccess, context: Mapping[str, Any],
                message: str, failures: FailureSink) -> Tuple[TestResult, Tuple[Any, ...]]:
        results: List[TestResult] = []
        comparisons: List[Union[ResponseComparison, MessageComparison]] = []
        for actual in outcome.actuals:
            if isinstance(interaction, MessageInteraction):
                comparison = compare_message(interaction, actual.body(), actual.metadata, self.config, context)
                results.append(self._message_result(interaction, comparison, message, failures))
            else:
                comparison = compare_response(interaction.response, actual, self.config, context,
                                              interaction.interaction_id)
                results.append(self._response_result(interaction, comparison, message, failures))
            comparisons.append(comparison)
        return fold_results(results), tuple(comparisons)

    # Lifecycle

    def verify_interaction(
        self,
        provider: ProviderInfo,
        consumer: ConsumerInfo,
        failures: FailureSink,
        interaction: Interaction,
        client: Optional[ProviderClient] = None,
    ) -> InteractionResult:
        """Run one interaction through state change, dispatch, comparison and teardown."""
        started = time.monotonic()
        message = (f"Verifying a pact between {consumer.name} and {provider.name} - "
                   f"{interaction.description}")
        owns_client = client is None
        if owns_client:
            client = self.client_factory(provider, self.config)

        def finish(stage: VerificationStage, result: TestResult,
                   comparisons: Tuple[Any, ...] = ()) -> InteractionResult:
            outcome = InteractionResult(
                interaction_id=interaction.display_id(),
                description=interaction.description,
                consumer=consumer.name,
                stage=stage,
                result=result,
                duration=time.monotonic() - started,
                comparisons=comparisons,
            )
            self.emit("interaction_finished", outcome)
            return outcome

        try:
            stage = VerificationStage.STATE_CHANGE_PENDING
            state_change = self.state_change_handler.execute_state_change(
                self, provider, consumer, interaction, message, failures, client,
            )
            if isinstance(state_change.result, StateChangeErr):
                detail = _failure(FailureCode.STATE_CHANGE_FAILED, interaction, "State change request failed",
                                  exception=state_change.result.reason)
                return finish(VerificationStage.STATE_CHANGE_FAILED,
                              Failed.of(detail, "State change request failed"))

            message = state_change.message
            self.emit("interaction_description", interaction)
            context = dict(state_change.result.context)
            try:
                stage = VerificationStage.DISPATCHING
                outcome = self.dispatch(provider, consumer, interaction, context, client)
                if isinstance(outcome, DispatchFailure):
                    failures.record(message, outcome.message)
                    self.emit("request_failed", provider, interaction, outcome.message, outcome.exception,
                              self.config.show_stacktrace)
                    extra = {}
                    if outcome.exception is not None:
                        extra["exception"] = repr(outcome.exception)
                    if self.config.show_stacktrace and outcome.stacktrace:
                        extra["stacktrace"] = outcome.stacktrace
                    detail = _failure(outcome.code, interaction, outcome.message, **extra)
                    return finish(VerificationStage.DISPATCH_FAILED, Failed.of(detail, outcome.message))

                stage = VerificationStage.COMPARING
                try:
                    result, comparisons = self.compare(interaction, outcome, context, message, failures)
                except Exception as e:
                    logger.exception("Comparison of '%s' raised", interaction.description)
                    failures.record(message, str(e))
                    self.emit("verification_failed", interaction, e, self.config.show_stacktrace)
                    extra = {"exception": repr(e)}
                    if self.config.show_stacktrace:
                        extra["stacktrace"] = traceback.format_exc()
                    return finish(VerificationStage.DONE, Error((
                        _failure(FailureCode.VERIFICATION_ERROR, interaction, f"Verification raised: {e}", **extra),
                    )))
                return finish(VerificationStage.DONE, result, comparisons)
            finally:
                if provider.state_change_teardown:
                    logger.debug("Tearing down provider states after stage %s", stage.value)
                    self.state_change_handler.execute_state_change_teardown(
                        self, interaction, provider, consumer, client,
                    )
        finally:
            if owns_client and client is not None:
                client.close()

    def verify_interactions(
        self,
        provider: ProviderInfo,
        consumer: ConsumerInfo,
        interactions: Iterable[Interaction],
    ) -> RunResult:
        """Verify interactions sequentially or on a thread pool (config.max_workers).

        Interactions not started when the run is aborted (explicitly, or by
        fail_fast after a failure) are reported as skipped. Every run has its
        own abort event.
        """
        abort = threading.Event()
        selected = [i for i in interactions if self.select_interaction(i)]
        results = ResultSink()
        failures = FailureSink()
        skipped: List[Tuple[int, str]] = []
        skipped_lock = threading.Lock()

        def run_one(index: int, interaction: Interaction) -> None:
            if abort.is_set():
                with skipped_lock:
                    skipped.append((index, interaction.description))
                return
            try:
                outcome = self.verify_interaction(provider, consumer, failures, interaction)
            except Exception as e:
                logger.exception("Verification of '%s' raised", interaction.description)
                outcome = InteractionResult(
                    interaction_id=interaction.display_id(),
                    description=interaction.description,
                    consumer=consumer.name,
                    stage=VerificationStage.DONE,
                    result=Error((_failure(FailureCode.VERIFICATION_ERROR, interaction, str(e)),)),
                )
            results.append(index, outcome)
            if self.config.fail_fast and not outcome.is_ok():
                logger.info("Stopping after failure of '%s' (fail fast)", interaction.description)
                abort.set()

        with self._runs_lock:
            self._active_runs.append(abort)
        try:
            self.emit("verification_started", provider, consumer)
            if self.config.max_workers <= 1:
                for index, interaction in enumerate(selected):
                    run_one(index, interaction)
            else:
                with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
                    futures = [pool.submit(run_one, index, i) for index, i in enumerate(selected)]
                    for future in futures:
                        future.result()
        finally:
            with self._runs_lock:
                self._active_runs.remove(abort)
        self._last_run_aborted = abort.is_set()

        run = RunResult(
            results=results.snapshot(),
            skipped=[description for _, description in sorted(skipped)],
            failures=failures.snapshot(),
        )
        self.emit("display_failures", run.failures)
        self.emit("finalise_report", run)
        self._publish(run)
        return run

    def verify_pact(self, pact: Pact, provider: ProviderInfo, consumer: Optional[ConsumerInfo] = None) -> RunResult:
        """Verify every interaction of a pact that passes the configured filters."""
        consumer = consumer or ConsumerInfo(name=pact.consumer, pact_source=pact.source)
        if not self.select_consumer(consumer):
            logger.info("Skipping pact for consumer '%s' (filtered out)", consumer.name)
            return RunResult()
        return self.verify_interactions(provider, consumer, pact.interactions)

    def _publish(self, run: RunResult) -> None:
        if not self.config.publish_results or self.publisher is None:
            return
        if not self.config.provider_version:
            logger.warning("Not publishing verification results: no provider version is set")
            return
        try:
            self.publisher.publish(run.verdict, self.config.provider_version, list(self.config.provider_tags))
        except Exception:
            logger.warning("Publishing verification results failed", exc_info=True)
