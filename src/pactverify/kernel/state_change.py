"""Provider state setup and teardown around an interaction.

States are applied in declaration order through one of two mechanisms:
an in-process callback, or an HTTP POST to the provider's state change URL.
A failing setup short-circuits the interaction; teardown is best effort.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Union

from pactverify.config import ConsumerInfo, ProviderInfo

from .interaction import Interaction, ProviderState

if TYPE_CHECKING:
    from pactverify._internal.transport import ProviderClient

    from .verifier import FailureSink, ProviderVerifier

logger = logging.getLogger(__name__)


class StateChangeError(RuntimeError):
    """Raised when the provider rejects a state change."""
    pass


@dataclass(frozen=True)
class StateChangeOk:
    """Setup succeeded; context holds the values produced by the state setup."""
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StateChangeErr:
    reason: str
    exception: Optional[BaseException] = None


@dataclass(frozen=True)
class StateChangeResult:
    result: Union[StateChangeOk, StateChangeErr]
    message: str

    def is_ok(self) -> bool:
        return isinstance(self.result, StateChangeOk)


def _as_context(value: Any) -> Dict[str, Any]:
    if isinstance(value, Mapping):
        return dict(value)
    return {}


class DefaultStateChange:
    """Applies provider states with the provider's callback or state change URL."""

    def apply_state(self, provider: ProviderInfo, state: ProviderState, is_setup: bool,
                    client: Optional["ProviderClient"]) -> Dict[str, Any]:
        """Apply one state; returns the values it produced.

        Raises:
            StateChangeError: If the state change endpoint answers with a status >= 300
        """
        if provider.state_change_callback is not None:
            return _as_context(provider.state_change_callback(state, is_setup))

        if provider.state_change_url:
            if client is None:
                raise StateChangeError("No HTTP client available for the state change request")
            action = "setup" if is_setup else "teardown"
            response = client.make_state_change_request(
                state.name, state.params, action, uses_body=provider.state_change_uses_body,
            )
            if response.status >= 300:
                raise StateChangeError(
                    f"State change request for '{state.name}' returned status {response.status}"
                    + (f": {response.body.display()}" if response.body.has_content() else "")
                )
            if response.body.has_content():
                try:
                    return _as_context(json.loads(response.body.text()))
                except ValueError:
                    logger.debug("State change response for '%s' is not JSON, ignoring it", state.name)
            return {}

        logger.warning(
            "Provider '%s' has no state change URL or callback; ignoring provider state '%s'",
            provider.name, state.name,
        )
        return {}

    def execute_state_change(
        self,
        verifier: "ProviderVerifier",
        provider: ProviderInfo,
        consumer: ConsumerInfo,
        interaction: Interaction,
        message: str,
        failures: "FailureSink",
        client: Optional["ProviderClient"],
    ) -> StateChangeResult:
        """Put the provider into every state the interaction declares.

        Returns:
            StateChangeResult: Ok(context) with the merged values produced by
            the states, or Err(reason) for the first state that failed. The
            message is extended with the applied states.
        """
        context: Dict[str, Any] = {}
        for state in interaction.provider_states:
            verifier.emit("state_for_interaction", state.name, provider, consumer, True)
            try:
                context.update(self.apply_state(provider, state, True, client))
            except Exception as e:
                reason = f"Provider state change for '{state.name}' failed: {e}"
                logger.warning("%s (interaction '%s')", reason, interaction.description)
                failures.record(f"{message} Given {state.name}", reason)
                verifier.emit("state_change_failed", state.name, e)
                return StateChangeResult(StateChangeErr(reason, e), message)
            message = f"{message} Given {state.name}"
            # State parameters are available to generators alongside produced values.
            for name, value in state.params.items():
                context.setdefault(name, value)
        return StateChangeResult(StateChangeOk(context), message)

    def execute_state_change_teardown(
        self,
        verifier: "ProviderVerifier",
        interaction: Interaction,
        provider: ProviderInfo,
        consumer: ConsumerInfo,
        client: Optional["ProviderClient"],
    ) -> None:
        """Tear the interaction's states down in reverse order. Errors are logged, never raised."""
        for state in reversed(interaction.provider_states):
            verifier.emit("state_for_interaction", state.name, provider, consumer, False)
            try:
                self.apply_state(provider, state, False, client)
            except Exception as e:
                logger.warning("Teardown of provider state '%s' failed: %s", state.name, e)
                verifier.emit("state_change_teardown_failed", state.name, e)
