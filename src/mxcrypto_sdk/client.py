"""High-level client composing the HTTP transport, retry adapter and API groups."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from mxcrypto_sdk.http import DEFAULT_API_PREFIX, HTTPClient
from mxcrypto_sdk.retry import OfflineQueue, RequestRetryAdapter, RetryScheduler

if TYPE_CHECKING:
    from mxcrypto_sdk.api.crypto import TxnIdSource


class Client:
    """Top-level SDK client.

    Usage::

        async with Client("https://matrix.example.org", token) as client:
            counts = await client.crypto.upload_keys(device_keys=keys)
            changes = await client.crypto.get_key_changes(since, next_batch)
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        timeout: float = 30.0,
        api_prefix: str = DEFAULT_API_PREFIX,
        retry_scheduler: RetryScheduler | None = None,
        offline_queue: OfflineQueue | None = None,
        max_immediate_retries: int = 3,
        txn_id_source: TxnIdSource | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.http = HTTPClient(base_url, token, timeout=timeout, api_prefix=api_prefix)
        self.adapter = RequestRetryAdapter(
            self.http,
            scheduler=retry_scheduler,
            offline_queue=offline_queue,
            max_immediate_retries=max_immediate_retries,
            loop=loop,
        )
        self._txn_id_source = txn_id_source
        self._crypto: Any = None

    @property
    def crypto(self) -> Any:
        if self._crypto is None:
            from mxcrypto_sdk.api.crypto import CryptoAPI
            self._crypto = CryptoAPI(self.adapter, txn_id_source=self._txn_id_source)
        return self._crypto

    # --- Context manager ---

    async def close(self) -> None:
        await self.http.close()

    async def __aenter__(self) -> Client:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()
