"""
HTTP client for the OpenAI-compatible backend.

Wraps httpx.AsyncClient. One POST per call, no retries: a failed call is
reported once as an ``api_error``.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from .anthropic_compat.errors import API_ERROR, CONFIGURATION_ERROR, ProxyError

_logger = logging.getLogger(__name__)

DEFAULT_BACKEND_URL = "https://api.aimlapi.com/v1/chat/completions"
DEFAULT_TIMEOUT = 600.0


class BackendClient:
    """
    Asynchronous client for the backend chat-completions endpoint.

    The credential is an opaque string. It may be absent at construction; every
    call then fails with a configuration error instead of reaching the backend.
    """

    def __init__(
        self,
        api_key: Optional[str],
        url: str = DEFAULT_BACKEND_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.url = url
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def ensure_configured(self) -> None:
        if not self.api_key:
            _logger.error("BACKEND_API_KEY is not set")
            raise ProxyError(CONFIGURATION_ERROR, "BACKEND_API_KEY not configured", 500)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _send(self, payload: Dict[str, Any], stream: bool) -> httpx.Response:
        self.ensure_configured()
        client = self._get_client()
        _logger.info(f"Making request to backend with model: {payload.get('model')}")
        request = client.build_request("POST", self.url, headers=self._headers(), json=payload)
        try:
            response = await client.send(request, stream=stream)
        except httpx.HTTPError as e:
            _logger.error(f"Backend request failed: {e}")
            raise ProxyError(API_ERROR, f"Backend request failed: {e}", 502) from e

        if response.is_error:
            error_text = (await response.aread()).decode("utf-8", errors="replace")
            await response.aclose()
            _logger.error(f"Backend API error: {response.status_code} {response.reason_phrase}")
            _logger.error(f"Backend API error response: {error_text}")
            raise ProxyError(
                API_ERROR,
                f"Backend API error: {response.status_code} {response.reason_phrase}",
                502,
            )
        return response

    async def complete(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Send a non-streaming request and return the decoded JSON body."""
        response = await self._send(payload, stream=False)
        try:
            body = response.json()
        except ValueError as e:
            raise ProxyError(API_ERROR, f"Backend returned invalid JSON: {e}", 502) from e
        if not isinstance(body, dict):
            raise ProxyError(API_ERROR, "Backend returned a non-object JSON body", 502)
        return body

    async def open_stream(self, payload: Dict[str, Any]) -> "BackendStream":
        """
        Send a streaming request and return an iterator over the raw body.

        The status is checked before returning, so a backend error surfaces as a
        ProxyError while the client response has not started yet.
        """
        response = await self._send(payload, stream=True)
        return BackendStream(response)


class BackendStream:
    """
    Async iterator over a streaming backend body.

    ``aclose()`` releases the backend connection whether or not iteration has
    started. The body is also released once it has been read to the end.
    """

    def __init__(self, response: httpx.Response):
        self._response = response
        self._chunks = response.aiter_bytes()

    @property
    def closed(self) -> bool:
        return self._response.is_closed

    def __aiter__(self) -> "BackendStream":
        return self

    async def __anext__(self) -> bytes:
        try:
            return await self._chunks.__anext__()
        except StopAsyncIteration:
            await self.aclose()
            raise

    async def aclose(self) -> None:
        await self._response.aclose()
