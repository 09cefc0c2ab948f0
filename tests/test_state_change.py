"""Tests for provider state setup and teardown."""

import json

import httpx

from pactverify._internal.reporting.reporter import VerifierReporter
from pactverify._internal.transport import ProviderClient
from pactverify.codes import FailureCode
from pactverify.config import ConsumerInfo, ProviderInfo
from pactverify.kernel.body import OptionalBody
from pactverify.kernel.interaction import HttpRequest, HttpResponse, ProviderState, RequestResponseInteraction
from pactverify.kernel.result import Failed
from pactverify.kernel.state_change import DefaultStateChange, StateChangeErr, StateChangeOk
from pactverify.kernel.verifier import FailureSink, ProviderVerifier, VerificationStage

CONSUMER = ConsumerInfo(name="web")


def _interaction(*states):
    return RequestResponseInteraction(
        description="get user",
        provider_states=[ProviderState(name=name, params=params) for name, params in states],
        request=HttpRequest(path="/users/1"),
        response=HttpResponse(status=200),
    )


class RecordingReporter(VerifierReporter):
    def __init__(self):
        self.events = []

    def state_for_interaction(self, state, provider, consumer, is_setup):
        self.events.append(("setup" if is_setup else "teardown", state))

    def state_change_teardown_failed(self, state, error):
        self.events.append(("teardown-failed", state))


def test_callback_states_applied_in_order_and_context_merged():
    calls = []

    def callback(state, is_setup):
        calls.append((state.name, is_setup))
        return {"token": state.name.upper()} if is_setup else None

    provider = ProviderInfo(name="users", state_change_callback=callback)
    verifier = ProviderVerifier()
    result = DefaultStateChange().execute_state_change(
        verifier, provider, CONSUMER, _interaction(("a", {"id": 1}), ("b", {"id": 2, "x": 3})),
        "Verifying", FailureSink(), None,
    )
    assert result.is_ok()
    assert calls == [("a", True), ("b", True)]
    assert isinstance(result.result, StateChangeOk)
    # produced values win over state params, the first state's params win over later ones
    assert result.result.context == {"token": "B", "id": 1, "x": 3}
    assert result.message == "Verifying Given a Given b"


def test_failing_state_stops_and_records_single_failure():
    calls = []

    def callback(state, is_setup):
        calls.append(state.name)
        if state.name == "broken":
            raise RuntimeError("database unavailable")
        return {}

    provider = ProviderInfo(name="users", state_change_callback=callback)
    failures = FailureSink()
    result = DefaultStateChange().execute_state_change(
        ProviderVerifier(), provider, CONSUMER, _interaction(("broken", {}), ("never", {})),
        "Verifying", failures, None,
    )
    assert isinstance(result.result, StateChangeErr)
    assert calls == ["broken"]
    snapshot = failures.snapshot()
    assert list(snapshot) == ["Verifying Given broken"]
    assert "database unavailable" in snapshot["Verifying Given broken"]


def test_state_change_failure_skips_dispatch():
    dispatched = []

    def handler(request):
        dispatched.append(str(request.url))
        return httpx.Response(200)

    def callback(state, is_setup):
        raise RuntimeError("nope")

    provider = ProviderInfo(name="users", base_url="http://provider.test", state_change_callback=callback)
    verifier = ProviderVerifier(
        client_factory=lambda p, c: ProviderClient(p, transport=httpx.MockTransport(handler)),
    )
    failures = FailureSink()
    outcome = verifier.verify_interaction(provider, CONSUMER, failures, _interaction(("missing", {})))

    assert dispatched == []
    assert outcome.stage is VerificationStage.STATE_CHANGE_FAILED
    assert isinstance(outcome.result, Failed)
    assert len(outcome.result.results) == 1
    assert outcome.result.results[0]["type"] == FailureCode.STATE_CHANGE_FAILED.value
    assert len(failures) == 1


def test_state_change_over_http_and_teardown_in_reverse():
    posted = []

    def handler(request):
        if request.url.path == "/_pact/state":
            body = json.loads(request.content)
            posted.append((body["action"], body["state"]))
            return httpx.Response(200, json={"userId": 42} if body["action"] == "setup" else None)
        assert request.url.path == "/users/1"
        return httpx.Response(200)

    provider = ProviderInfo(
        name="users",
        base_url="http://provider.test",
        state_change_url="http://provider.test/_pact/state",
        state_change_teardown=True,
    )
    reporter = RecordingReporter()
    verifier = ProviderVerifier(
        reporters=[reporter],
        client_factory=lambda p, c: ProviderClient(p, transport=httpx.MockTransport(handler)),
    )
    outcome = verifier.verify_interaction(provider, CONSUMER, FailureSink(), _interaction(("a", {}), ("b", {})))

    assert outcome.is_ok()
    assert posted == [("setup", "a"), ("setup", "b"), ("teardown", "b"), ("teardown", "a")]
    assert reporter.events == [("setup", "a"), ("setup", "b"), ("teardown", "b"), ("teardown", "a")]


def test_state_change_error_status_fails():
    def handler(request):
        return httpx.Response(500, text="no such user")

    provider = ProviderInfo(name="users", state_change_url="http://provider.test/state")
    with ProviderClient(provider, transport=httpx.MockTransport(handler)) as client:
        result = DefaultStateChange().execute_state_change(
            ProviderVerifier(), provider, CONSUMER, _interaction(("a", {})), "Verifying", FailureSink(), client,
        )
    assert not result.is_ok()
    assert "500" in result.result.reason


def test_teardown_errors_are_reported_not_raised():
    def callback(state, is_setup):
        if not is_setup:
            raise RuntimeError("cleanup failed")
        return {}

    provider = ProviderInfo(name="users", state_change_callback=callback)
    reporter = RecordingReporter()
    DefaultStateChange().execute_state_change_teardown(
        ProviderVerifier(reporters=[reporter]), _interaction(("a", {})), provider, CONSUMER, None,
    )
    assert ("teardown-failed", "a") in reporter.events


def test_no_state_mechanism_is_a_no_op():
    provider = ProviderInfo(name="users")
    result = DefaultStateChange().execute_state_change(
        ProviderVerifier(), provider, CONSUMER, _interaction(("a", {"id": 1})), "Verifying", FailureSink(), None,
    )
    assert result.is_ok()
    assert result.result.context == {"id": 1}
