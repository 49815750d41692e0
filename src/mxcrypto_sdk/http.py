"""HTTP transport wrapping httpx with auth headers and outcome classification."""

from __future__ import annotations

from typing import Any

import httpx

from mxcrypto_sdk.errors import MXNetworkError, classify_response
from mxcrypto_sdk.retry import PreparedRequest

DEFAULT_API_PREFIX = "/_matrix/client/v3"


class HTTPClient:
    """Async HTTP client for the homeserver client-server API.

    Makes exactly one attempt per call; retrying is the adapter's job.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        timeout: float = 30.0,
        api_prefix: str = DEFAULT_API_PREFIX,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_prefix = "/" + api_prefix.strip("/")
        self._token = token
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
        )

    @property
    def token(self) -> str | None:
        return self._token

    @token.setter
    def token(self, value: str | None) -> None:
        self._token = value

    def _headers(self) -> dict[str, str]:
        h: dict[str, str] = {}
        if self._token:
            h["Authorization"] = f"Bearer {self._token}"
        return h

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Make one API request; raise MXNetworkError or MXProtocolError on failure."""
        merged_headers = self._headers()
        if headers:
            merged_headers.update(headers)

        try:
            response = await self._client.request(
                method,
                self.api_prefix + path,
                json=json,
                params=params,
                headers=merged_headers,
            )
        except httpx.TransportError as exc:
            raise MXNetworkError.from_transport_error(exc) from exc

        error = classify_response(response)
        if error is not None:
            raise error
        return response

    async def send(self, request: PreparedRequest) -> Any:
        """Transport entry point used by the retry adapter."""
        response = await self.request(
            request.method,
            request.path,
            json=request.json,
            params=dict(request.params) if request.params else None,
        )
        if not response.content:
            return None
        return response.json()

    async def close(self) -> None:
        await self._client.aclose()
