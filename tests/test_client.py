"""Unit tests for the Client class."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from mxcrypto_sdk.api.crypto import CryptoAPI
from mxcrypto_sdk.client import Client
from mxcrypto_sdk.errors import MXUnexpectedError
from mxcrypto_sdk.retry import RequestRetryAdapter

from conftest import make_client


class TestClient:
    def test_lazy_crypto_property(self):
        client = Client("https://hs.test")
        first = client.crypto
        assert isinstance(first, CryptoAPI)
        assert client.crypto is first

    def test_composition(self):
        client = Client("https://hs.test", "tok", api_prefix="/_matrix/client/r0")
        assert isinstance(client.adapter, RequestRetryAdapter)
        assert client.http.token == "tok"
        assert client.http.api_prefix == "/_matrix/client/r0"

    @pytest.mark.asyncio
    async def test_context_manager_closes_http(self):
        async with Client("https://hs.test") as client:
            assert not client.http._client.is_closed
        assert client.http._client.is_closed

    @pytest.mark.asyncio
    async def test_end_to_end_through_mock(self, sdk_client):
        client, transport, calls = sdk_client
        transport.response = httpx.Response(200, json={"changed": [], "left": ["@gone:x"]})

        result = await client.crypto.get_key_changes("s1", "s2")

        assert result.left == {"@gone:x"}
        assert calls[0]["headers"]["authorization"] == "Bearer test-token"

    @pytest.mark.asyncio
    async def test_call_from_worker_thread(self, mock_transport):
        transport, calls = mock_transport
        transport.response = httpx.Response(200, json={"devices": []})
        loop = asyncio.get_running_loop()
        client = make_client(transport, loop=loop)

        handoff = await loop.run_in_executor(None, client.crypto.get_devices)
        result = await asyncio.wrap_future(handoff)

        assert result.devices == []
        assert calls[0]["path"] == "/_matrix/client/v3/devices"

    def test_call_without_event_loop_fails_future(self):
        client = Client("https://hs.test", "tok")
        future = client.crypto.get_devices()
        assert isinstance(future.exception(), MXUnexpectedError)
