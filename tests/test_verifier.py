"""Tests for the provider verifier lifecycle."""

import threading

import httpx
import pytest

from pactverify._internal.reporting.reporter import VerifierReporter
from pactverify._internal.transport import ProviderClient
from pactverify.codes import FailureCode, VerificationType
from pactverify.config import ConsumerInfo, ProviderInfo, VerifierConfig
from pactverify.kernel.body import OptionalBody
from pactverify.kernel.interaction import (
    ActualResponse,
    HttpRequest,
    HttpResponse,
    MessageInteraction,
    Pact,
    ProviderState,
    RequestResponseInteraction,
)
from pactverify.kernel.provider_methods import ProviderMessage, ProviderMethodRegistry, provider_method
from pactverify.kernel.result import Error, Failed, Ok
from pactverify.kernel.verifier import FailureSink, ProviderVerifier, VerificationStage

PROVIDER = ProviderInfo(name="users", base_url="http://provider.test")
CONSUMER = ConsumerInfo(name="web")


def _http(description, path, status=200, body=None, states=()):
    return RequestResponseInteraction(
        description=description,
        provider_states=[ProviderState(name=s) for s in states],
        request=HttpRequest(path=path),
        response=HttpResponse(
            status=status,
            body=OptionalBody.json(body) if body is not None else OptionalBody.missing(),
        ),
    )


def _users_app(request):
    if request.url.path == "/users/1":
        return httpx.Response(200, json={"id": 1, "name": "Mary"})
    if request.url.path == "/boom":
        raise httpx.ReadTimeout("timed out", request=request)
    return httpx.Response(404)


def _verifier(handler=_users_app, **kwargs):
    kwargs.setdefault("client_factory", lambda p, c: ProviderClient(p, transport=httpx.MockTransport(handler)))
    return ProviderVerifier(**kwargs)


class TestVerifyInteraction:
    def test_matching_response_is_ok(self):
        outcome = _verifier().verify_interaction(
            PROVIDER, CONSUMER, FailureSink(), _http("get user", "/users/1", body={"id": 1, "name": "Mary"}),
        )
        assert outcome.stage is VerificationStage.DONE
        assert isinstance(outcome.result, Ok)
        assert len(outcome.comparisons) == 1

    def test_mismatches_fold_into_one_failed_result(self):
        failures = FailureSink()
        outcome = _verifier().verify_interaction(
            PROVIDER, CONSUMER, failures, _http("get user", "/users/1", status=201, body={"id": 2, "name": "Mary"}),
        )
        assert isinstance(outcome.result, Failed)
        codes = [r["type"] for r in outcome.result.results]
        assert codes == [FailureCode.STATUS_MISMATCH.value, FailureCode.BODY_MISMATCH.value]
        assert outcome.result.description == "Response status did not match, Body had differences"
        assert len(failures) == 2

    def test_transport_error_is_a_dispatch_failure(self):
        failures = FailureSink()
        outcome = _verifier().verify_interaction(PROVIDER, CONSUMER, failures, _http("slow", "/boom"))
        assert outcome.stage is VerificationStage.DISPATCH_FAILED
        detail = outcome.result.results[0]
        assert detail["type"] == FailureCode.DISPATCH_FAILED.value
        assert "timed out" in detail["message"]
        assert "stacktrace" not in detail
        assert len(failures) == 1

    def test_stacktrace_included_when_configured(self):
        verifier = _verifier(config=VerifierConfig(show_stacktrace=True))
        outcome = verifier.verify_interaction(PROVIDER, CONSUMER, FailureSink(), _http("slow", "/boom"))
        assert "ReadTimeout" in outcome.result.results[0]["stacktrace"]

    def test_comparison_exception_is_an_error(self, monkeypatch):
        verifier = _verifier()

        def explode(*args, **kwargs):
            raise RuntimeError("comparison broke")

        monkeypatch.setattr(verifier, "compare", explode)
        outcome = verifier.verify_interaction(PROVIDER, CONSUMER, FailureSink(), _http("get user", "/users/1"))
        assert isinstance(outcome.result, Error)
        assert outcome.result.errors[0]["type"] == FailureCode.VERIFICATION_ERROR.value

    def test_failure_details_carry_interaction_id(self):
        interaction = _http("missing", "/users/2", body={"id": 2}).model_copy(update={"interaction_id": "abc"})
        outcome = _verifier().verify_interaction(PROVIDER, CONSUMER, FailureSink(), interaction)
        assert all(r["interactionId"] == "abc" for r in outcome.result.results)


class TestProviderMethods:
    def test_message_verified_through_provider_method(self):
        @provider_method("an order event")
        def order_event():
            return ProviderMessage({"orderId": 10}, {"topic": "orders"})

        registry = ProviderMethodRegistry()
        registry.register_function(order_event)
        message = MessageInteraction(
            description="an order event",
            contents=OptionalBody.json({"orderId": 10}),
            metadata={"topic": "orders"},
        )
        outcome = _verifier(provider_methods=registry).verify_interaction(PROVIDER, CONSUMER, FailureSink(), message)
        assert outcome.is_ok()

    def test_message_method_may_return_payload_and_metadata_pair(self):
        registry = ProviderMethodRegistry()
        registry.register("an order event", lambda: ({"orderId": 10}, {"topic": "orders"}))
        message = MessageInteraction(
            description="an order event",
            contents=OptionalBody.json({"orderId": 10}),
            metadata={"topic": "orders"},
        )
        outcome = _verifier(provider_methods=registry).verify_interaction(PROVIDER, CONSUMER, FailureSink(), message)
        assert outcome.is_ok()

    def test_message_method_returning_unsupported_value(self):
        registry = ProviderMethodRegistry()
        registry.register("an event", lambda: 42)
        message = MessageInteraction(description="an event", contents=OptionalBody.json({"a": 1}))
        outcome = _verifier(provider_methods=registry).verify_interaction(PROVIDER, CONSUMER, FailureSink(), message)
        assert outcome.stage is VerificationStage.DISPATCH_FAILED
        assert "(payload, metadata) pair" in outcome.result.results[0]["message"]

    def test_message_without_provider_method(self):
        message = MessageInteraction(description="an unknown event", contents=OptionalBody.json({"a": 1}))
        outcome = _verifier().verify_interaction(PROVIDER, CONSUMER, FailureSink(), message)
        assert outcome.stage is VerificationStage.DISPATCH_FAILED
        assert outcome.result.results[0]["type"] == FailureCode.NO_PROVIDER_METHOD.value
        assert '@provider_method("an unknown event")' in outcome.result.results[0]["message"]

    def test_every_registered_method_must_match(self):
        registry = ProviderMethodRegistry()
        registry.register("an event", lambda: {"a": 1})
        registry.register("an event", lambda: {"a": 2})
        message = MessageInteraction(description="an event", contents=OptionalBody.json({"a": 1}))
        outcome = _verifier(provider_methods=registry).verify_interaction(PROVIDER, CONSUMER, FailureSink(), message)
        assert isinstance(outcome.result, Failed)
        assert len(outcome.comparisons) == 2

    def test_provider_method_mode_for_http_interactions(self):
        registry = ProviderMethodRegistry()
        registry.register("get user", lambda: {"statusCode": 200, "data": {"id": 1}})
        consumer = ConsumerInfo(name="web", verification_type=VerificationType.PROVIDER_METHOD)
        interaction = _http("get user", "/never-called", body={"id": 1})
        outcome = _verifier(handler=lambda r: pytest.fail("HTTP must not be used"), provider_methods=registry) \
            .verify_interaction(PROVIDER, consumer, FailureSink(), interaction)
        assert outcome.is_ok()

    def test_provider_method_returning_response_object(self):
        registry = ProviderMethodRegistry()
        registry.register("get user", lambda: ActualResponse(status=404))
        provider = PROVIDER.model_copy(update={"verification_type": VerificationType.PROVIDER_METHOD})
        outcome = _verifier(provider_methods=registry).verify_interaction(
            provider, CONSUMER, FailureSink(), _http("get user", "/x"),
        )
        assert outcome.result.results[0]["type"] == FailureCode.STATUS_MISMATCH.value

    def test_provider_method_exception_is_dispatch_failure(self):
        registry = ProviderMethodRegistry()
        registry.register("an event", lambda: 1 / 0)
        message = MessageInteraction(description="an event", contents=OptionalBody.json({"a": 1}))
        outcome = _verifier(provider_methods=registry).verify_interaction(PROVIDER, CONSUMER, FailureSink(), message)
        assert outcome.stage is VerificationStage.DISPATCH_FAILED
        assert "division by zero" in outcome.result.results[0]["message"]


class TestVerifyInteractions:
    def _pact(self, count, failing=()):
        interactions = []
        for n in range(count):
            path = "/users/404" if n in failing else "/users/1"
            body = None if n in failing else {"id": 1, "name": "Mary"}
            interactions.append(_http(f"interaction {n}", path, body=body))
        return Pact(consumer="web", provider="users", interactions=interactions)

    def test_sequential_run(self):
        run = _verifier().verify_pact(self._pact(3), PROVIDER)
        assert run.is_ok()
        assert [r.description for r in run.results] == ["interaction 0", "interaction 1", "interaction 2"]

    def test_concurrent_run_keeps_order_and_counts(self):
        lock = threading.Lock()
        seen = []

        def handler(request):
            with lock:
                seen.append(request.url.path)
            return _users_app(request)

        verifier = _verifier(handler=handler, config=VerifierConfig(max_workers=4))
        run = verifier.verify_pact(self._pact(20, failing={3, 11}), PROVIDER)
        assert len(run.results) == 20
        assert len(seen) == 20
        assert [r.description for r in run.results] == [f"interaction {n}" for n in range(20)]
        assert [r.description for r in run.failed()] == ["interaction 3", "interaction 11"]
        assert isinstance(run.verdict, Failed)

    def test_fail_fast_skips_remaining(self):
        verifier = _verifier(config=VerifierConfig(fail_fast=True))
        run = verifier.verify_pact(self._pact(4, failing={1}), PROVIDER)
        assert [r.description for r in run.results] == ["interaction 0", "interaction 1"]
        assert run.skipped == ["interaction 2", "interaction 3"]

    def test_abort_from_reporter(self):
        class AbortAfterFirst(VerifierReporter):
            def __init__(self):
                self.verifier = None

            def interaction_finished(self, result):
                self.verifier.abort()

        reporter = AbortAfterFirst()
        verifier = _verifier(reporters=[reporter])
        reporter.verifier = verifier
        run = verifier.verify_pact(self._pact(3), PROVIDER)
        assert len(run.results) == 1
        assert run.skipped == ["interaction 1", "interaction 2"]
        assert verifier.aborted

    def test_abort_at_start_skips_every_interaction(self):
        class AbortOnStart(VerifierReporter):
            def __init__(self):
                self.verifier = None

            def verification_started(self, provider, consumer):
                self.verifier.abort()

        reporter = AbortOnStart()
        verifier = _verifier(reporters=[reporter])
        reporter.verifier = verifier
        run = verifier.verify_pact(self._pact(2), PROVIDER)
        assert run.results == []
        assert run.skipped == ["interaction 0", "interaction 1"]

    def test_abort_does_not_leak_into_later_runs(self):
        verifier = _verifier(config=VerifierConfig(fail_fast=True))
        first = verifier.verify_pact(self._pact(3, failing={0}), PROVIDER)
        assert first.skipped == ["interaction 1", "interaction 2"]
        assert verifier.aborted

        verifier.abort()
        second = verifier.verify_pact(self._pact(3), PROVIDER)
        assert len(second.results) == 3
        assert second.skipped == []
        assert not verifier.aborted

    def test_filters(self):
        pact = Pact(consumer="web", provider="users", interactions=[
            _http("get user", "/users/1", body={"id": 1, "name": "Mary"}, states=["user exists"]),
            _http("get missing user", "/users/404", status=404),
            _http("list users", "/users/404", status=404, states=["no users"]),
        ])
        by_description = _verifier(config=VerifierConfig(filter_description="^get")).verify_pact(pact, PROVIDER)
        assert [r.description for r in by_description.results] == ["get user", "get missing user"]

        by_state = _verifier(config=VerifierConfig(filter_provider_state="user")).verify_pact(pact, PROVIDER)
        assert [r.description for r in by_state.results] == ["get user", "list users"]

        stateless = _verifier(config=VerifierConfig(filter_provider_state="")).verify_pact(pact, PROVIDER)
        assert [r.description for r in stateless.results] == ["get missing user"]

        other_consumer = _verifier(config=VerifierConfig(filter_consumers=["mobile"])).verify_pact(pact, PROVIDER)
        assert other_consumer.results == []

    def test_reporter_errors_do_not_break_verification(self):
        class Broken(VerifierReporter):
            def body_comparison_ok(self):
                raise RuntimeError("reporter bug")

        run = _verifier(reporters=[Broken()]).verify_pact(self._pact(2), PROVIDER)
        assert run.is_ok()

    def test_duplicate_failure_descriptions_are_kept(self):
        pact = Pact(consumer="web", provider="users", interactions=[
            _http("same", "/users/404", body={"id": 1}),
            _http("same", "/users/404", body={"id": 1}),
        ])
        run = _verifier().verify_pact(pact, PROVIDER)
        keys = list(run.failures)
        assert any(key.endswith("(2)") for key in keys)
        assert len(keys) == 4


class TestPublishing:
    class Publisher:
        def __init__(self):
            self.calls = []

        def publish(self, result, provider_version, tags):
            self.calls.append((result, provider_version, tags))

    def test_publishes_verdict_with_version_and_tags(self):
        publisher = self.Publisher()
        config = VerifierConfig(publish_results=True, provider_version="1.0.0", provider_tags=["main"])
        _verifier(config=config, publisher=publisher).verify_pact(
            Pact(consumer="web", provider="users", interactions=[_http("get", "/users/404", status=404)]),
            PROVIDER,
        )
        assert len(publisher.calls) == 1
        result, version, tags = publisher.calls[0]
        assert isinstance(result, Ok)
        assert version == "1.0.0"
        assert tags == ["main"]

    def test_not_published_without_version_or_flag(self):
        publisher = self.Publisher()
        pact = Pact(consumer="web", provider="users", interactions=[])
        _verifier(config=VerifierConfig(publish_results=True), publisher=publisher).verify_pact(pact, PROVIDER)
        _verifier(config=VerifierConfig(provider_version="1"), publisher=publisher).verify_pact(pact, PROVIDER)
        assert publisher.calls == []
