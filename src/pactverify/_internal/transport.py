"""HTTP transport to the provider under verification (httpx).

Turns an HttpRequest into an HTTP call and the reply into an
ActualResponse. It never retries; a timeout or connection error propagates
to the caller, which records it as a dispatch failure.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx

from pactverify.config import ProviderInfo
from pactverify.kernel.body import OptionalBody
from pactverify.kernel.interaction import ActualResponse, HttpRequest

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def _collect_headers(headers: httpx.Headers) -> Dict[str, List[str]]:
    collected: Dict[str, List[str]] = {}
    for name, value in headers.multi_items():
        collected.setdefault(name, []).append(value)
    return collected


def to_actual_response(response: httpx.Response) -> ActualResponse:
    headers = _collect_headers(response.headers)
    body = OptionalBody.body(response.content, response.headers.get("content-type"))
    return ActualResponse(status=response.status_code, headers=headers, body=body)


class ProviderClient:
    """
    Blocking HTTP client bound to one provider.

    Attributes:
        provider: The provider being verified (base URL, state change URL)
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        provider: ProviderInfo,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.provider = provider
        self.timeout = timeout
        self._client = httpx.Client(timeout=timeout, transport=transport, follow_redirects=False)

    def __enter__(self) -> "ProviderClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _url(self, path: str) -> str:
        if not self.provider.base_url:
            raise ValueError(f"Provider '{self.provider.name}' has no base URL configured")
        return self.provider.base_url.rstrip("/") + "/" + path.lstrip("/")

    def make_request(self, request: HttpRequest) -> ActualResponse:
        """Replay request against the provider.

        Raises:
            httpx.HTTPError: On connection errors and timeouts
            ValueError: If the provider has no base URL
        """
        url = self._url(request.path)
        params = [(name, value) for name, values in request.query.items() for value in values]
        headers = [(name, value) for name, values in request.headers.items() for value in values]
        content = request.body.value if request.body.has_content() else None
        if content is not None and request.body.content_type and not any(
            name.lower() == "content-type" for name, _ in headers
        ):
            headers.append(("Content-Type", request.body.content_type))

        logger.debug("%s %s", request.method.upper(), url)
        response = self._client.request(
            request.method.upper(), url, params=params, headers=headers, content=content,
        )
        logger.debug("Provider returned %s for %s %s", response.status_code, request.method.upper(), url)
        return to_actual_response(response)

    def make_state_change_request(
        self,
        state: str,
        params: Mapping[str, Any],
        action: str,
        uses_body: bool = True,
    ) -> ActualResponse:
        """POST a provider state change to the provider's state change URL.

        With uses_body the state is sent as a JSON body
        {"state": ..., "params": ..., "action": "setup"|"teardown"}; otherwise
        the same values are sent as query parameters.
        """
        url = self.provider.state_change_url
        if not url:
            raise ValueError(f"Provider '{self.provider.name}' has no state change URL configured")
        if uses_body:
            response = self._client.post(url, json={"state": state, "params": dict(params), "action": action})
        else:
            query = {"state": state, "action": action}
            query.update({k: str(v) for k, v in params.items()})
            response = self._client.post(url, params=query)
        return to_actual_response(response)
