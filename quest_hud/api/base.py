"""Shared plumbing for the async provider clients.

WHY: Places, directions, weather and the LLM are all thin JSON-over-HTTP
services. They need the same connection handling, the same "must be used
as a context manager" guard and the same typed error on non-2xx replies.

HOW: BaseServiceClient wraps an httpx.AsyncClient that is created in
__aenter__ and closed in __aexit__. Subclasses set default headers and
call _get_json() / _post_json().

RULES:
- Use as: async with SomeClient(...) as client: ...
- Non-2xx responses raise ServiceAPIError with the status code and body
- transport is injectable (httpx.MockTransport in tests)
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

_DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=10.0)


class ServiceAPIError(Exception):
    """Raised when a provider returns an error response.

    WHY: Callers need a typed exception to tell provider errors apart
    from network failures or bugs.

    RULES:
    - Always include status_code and message
    - message is the response body text or the provider's status string
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Service API error {status_code}: {message}")


class BaseServiceClient:
    """Async context manager around an httpx client for one provider."""

    def __init__(
        self,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: httpx.Timeout = _DEFAULT_TIMEOUT,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = headers or {}
        self._transport = transport
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "{} must be used as an async context manager: "
                "async with {}(...) as client: ...".format(
                    type(self).__name__, type(self).__name__
                )
            )
        return self._client

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        client = self._ensure_client()
        resp = await client.get(path, params=params)
        if resp.status_code != 200:
            raise ServiceAPIError(resp.status_code, resp.text)
        return resp.json()

    async def _post_json(self, path: str, body: Dict[str, Any]) -> Any:
        client = self._ensure_client()
        resp = await client.post(path, json=body)
        if resp.status_code not in (200, 201):
            raise ServiceAPIError(resp.status_code, resp.text)
        return resp.json()
