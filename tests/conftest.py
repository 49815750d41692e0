"""Shared test fixtures for SDK tests."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from mxcrypto_sdk.client import Client
from mxcrypto_sdk.http import HTTPClient
from mxcrypto_sdk.retry import PreparedRequest


@pytest.fixture
def mock_transport():
    """Returns an httpx mock transport that records requests.

    Set ``transport.response`` for a fixed reply, or push onto
    ``transport.queue`` (responses or exceptions) to script attempts.
    """
    calls: list[dict[str, Any]] = []
    default_response = httpx.Response(200, json={})

    class RecordingTransport(httpx.AsyncBaseTransport):
        def __init__(self):
            self.response = default_response
            self.queue: list[httpx.Response | Exception] = []

        async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
            body = None
            if request.content:
                try:
                    body = json.loads(request.content)
                except Exception:
                    body = request.content
            calls.append({
                "method": request.method,
                "url": str(request.url),
                "path": request.url.path,
                "headers": dict(request.headers),
                "body": body,
            })
            outcome = self.queue.pop(0) if self.queue else self.response
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

    transport = RecordingTransport()
    return transport, calls


@pytest.fixture
def http_client(mock_transport):
    """HTTPClient with a mock transport."""
    transport, calls = mock_transport
    client = HTTPClient("https://hs.test", token="test-token")
    client._client = httpx.AsyncClient(
        base_url="https://hs.test",
        transport=transport,
    )
    return client, transport, calls


def make_client(transport: httpx.AsyncBaseTransport, **kwargs: Any) -> Client:
    client = Client("https://hs.test", "test-token", **kwargs)
    client.http._client = httpx.AsyncClient(base_url="https://hs.test", transport=transport)
    return client


@pytest.fixture
def sdk_client(mock_transport):
    """Full Client (http + adapter + crypto API) over the mock transport."""
    transport, calls = mock_transport
    return make_client(transport), transport, calls


class ScriptedTransport:
    """Adapter-level transport replaying outcomes; the last one repeats."""

    def __init__(self, *outcomes: Any) -> None:
        self.outcomes = list(outcomes)
        self.requests: list[PreparedRequest] = []

    async def send(self, request: PreparedRequest) -> Any:
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture
def scripted():
    return ScriptedTransport
