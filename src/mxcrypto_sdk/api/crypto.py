"""End-to-end encryption key exchange and device management API methods.

Every method issues one logical operation through the retry adapter and
returns an :class:`asyncio.Future` immediately::

    counts = await client.crypto.upload_keys(device_keys=keys)

Calls from another thread are handed to the adapter's event loop; see
:meth:`~mxcrypto_sdk.retry.RequestRetryAdapter.submit` for the future type.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any, TypeVar
from urllib.parse import quote

from mxcrypto_sdk.models.devices import DeleteDeviceParams, DevicesListResponse
from mxcrypto_sdk.models.keys import (
    KeyChangesResponse,
    KeyChangesResult,
    KeysClaimResponse,
    KeysQueryResponse,
    KeysQueryResult,
    KeysUploadResponse,
    OneTimeKey,
)
from mxcrypto_sdk.retry import LogicalOperation, PreparedRequest
from mxcrypto_sdk.usersdevices import UsersDevicesMap, decode_claimed_keys, decode_device_keys

if TYPE_CHECKING:
    from mxcrypto_sdk.retry import RequestRetryAdapter

T = TypeVar("T")

TxnIdSource = Callable[[], int]

_TXN_ID_BOUND = 2**31 - 1


def random_txn_id_source(rng: random.Random | None = None) -> TxnIdSource:
    """Non-cryptographic source of non-negative transaction ids."""
    rng = rng or random.Random()
    return lambda: rng.randrange(_TXN_ID_BOUND)


def _segment(value: str) -> str:
    return quote(value, safe="")


def _require(value: str | None, name: str) -> str:
    if not value:
        raise ValueError(f"{name} must be a non-empty string")
    return value


def _plain(mapping: Mapping[str, Any] | None) -> dict[str, Any] | None:
    return dict(mapping) if mapping is not None else None


def _nested(mapping: UsersDevicesMap[Any] | Mapping[str, Mapping[str, Any]]) -> dict[str, dict[str, Any]]:
    if isinstance(mapping, UsersDevicesMap):
        return mapping.to_dict()
    return UsersDevicesMap(mapping).to_dict()


# --- request builders (pure functions of the captured arguments) ---


def _upload_keys_request(
    device_keys: dict[str, Any] | None,
    one_time_keys: dict[str, Any] | None,
    device_id: str | None,
) -> PreparedRequest:
    if device_keys is None and one_time_keys is None:
        raise ValueError("upload_keys needs device_keys and/or one_time_keys")
    body: dict[str, Any] = {}
    if device_keys is not None:
        body["device_keys"] = device_keys
    if one_time_keys is not None:
        body["one_time_keys"] = one_time_keys
    path = "/keys/upload"
    if device_id:
        path = f"{path}/{_segment(device_id)}"
    return PreparedRequest("POST", path, json=body)


def _keys_query_request(user_ids: list[str], token: str | None) -> PreparedRequest:
    body: dict[str, Any] = {"device_keys": {user_id: {} for user_id in user_ids}}
    if token:
        body["token"] = token
    return PreparedRequest("POST", "/keys/query", json=body)


def _keys_claim_request(one_time_keys: dict[str, dict[str, str]]) -> PreparedRequest:
    return PreparedRequest("POST", "/keys/claim", json={"one_time_keys": one_time_keys})


def _send_to_device_request(
    event_type: str, messages: dict[str, dict[str, Any]], transaction_id: str
) -> PreparedRequest:
    _require(event_type, "event_type")
    return PreparedRequest(
        "PUT",
        f"/sendToDevice/{_segment(event_type)}/{_segment(transaction_id)}",
        json={"messages": messages},
    )


def _devices_request() -> PreparedRequest:
    return PreparedRequest("GET", "/devices")


def _delete_device_request(device_id: str, auth: dict[str, Any]) -> PreparedRequest:
    _require(device_id, "device_id")
    return PreparedRequest("DELETE", f"/devices/{_segment(device_id)}", json=auth)


def _set_device_name_request(device_id: str, display_name: str) -> PreparedRequest:
    _require(device_id, "device_id")
    return PreparedRequest(
        "PUT", f"/devices/{_segment(device_id)}", json={"display_name": display_name}
    )


def _key_changes_request(from_token: str, to_token: str) -> PreparedRequest:
    _require(from_token, "from_token")
    _require(to_token, "to_token")
    return PreparedRequest("GET", "/keys/changes", params={"from": from_token, "to": to_token})


# --- response decoders ---


def _decode_keys_query(token: str | None) -> Callable[[Any], KeysQueryResult]:
    def decode(body: Any) -> KeysQueryResult:
        response = KeysQueryResponse.model_validate(body or {})
        return KeysQueryResult(
            device_keys=decode_device_keys(response.device_keys),
            failures=response.failures,
            token=token or None,
        )
    return decode


def _decode_keys_claim(body: Any) -> UsersDevicesMap[OneTimeKey]:
    response = KeysClaimResponse.model_validate(body or {})
    return decode_claimed_keys(response.one_time_keys)


def _decode_upload(body: Any) -> KeysUploadResponse:
    return KeysUploadResponse.model_validate(body or {})


def _decode_devices(body: Any) -> DevicesListResponse:
    return DevicesListResponse.model_validate(body or {})


def _decode_key_changes(from_token: str, to_token: str) -> Callable[[Any], KeyChangesResult]:
    def decode(body: Any) -> KeyChangesResult:
        response = KeyChangesResponse.model_validate(body or {})
        return KeyChangesResult(
            changed=set(response.changed),
            left=set(response.left),
            from_token=from_token,
            to_token=to_token,
        )
    return decode


def _ignore_body(body: Any) -> None:
    return None


class CryptoAPI:
    def __init__(
        self,
        adapter: RequestRetryAdapter,
        *,
        txn_id_source: TxnIdSource | None = None,
    ) -> None:
        self._adapter = adapter
        self._txn_id_source = txn_id_source or random_txn_id_source()

    def _submit(
        self,
        description: str,
        build: Callable[..., PreparedRequest],
        decode: Callable[[Any], T],
        arguments: Callable[[], Mapping[str, Any]],
        **options: Any,
    ) -> asyncio.Future[T]:
        try:
            operation = LogicalOperation.snapshot(
                description, build, decode, arguments(), **options
            )
        except Exception as exc:
            return self._adapter.reject(description, exc)
        return self._adapter.submit(operation)

    def upload_keys(
        self,
        device_keys: Mapping[str, Any] | None = None,
        one_time_keys: Mapping[str, Any] | None = None,
        device_id: str | None = None,
    ) -> asyncio.Future[KeysUploadResponse]:
        """Upload device and/or one-time keys.

        A non-empty ``device_id`` targets ``/keys/upload/{device_id}``;
        otherwise the device of the current access token is used. The
        response carries the server's remaining one-time key counts.
        """
        return self._submit(
            "uploadKeys",
            _upload_keys_request,
            _decode_upload,
            lambda: {
                "device_keys": _plain(device_keys),
                "one_time_keys": _plain(one_time_keys),
                "device_id": device_id,
            },
        )

    def download_keys_for_users(
        self, user_ids: Iterable[str] | None, token: str | None = None
    ) -> asyncio.Future[KeysQueryResult]:
        """Download every device key of ``user_ids``.

        ``token`` is a sync token bounding the query to changes since then.
        """
        return self._submit(
            "downloadKeysForUsers",
            _keys_query_request,
            _decode_keys_query(token),
            lambda: {"user_ids": list(user_ids or []), "token": token},
            notify_queue=True,
        )

    def claim_one_time_keys_for_users_devices(
        self, users_devices_key_types: UsersDevicesMap[str] | Mapping[str, Mapping[str, str]]
    ) -> asyncio.Future[UsersDevicesMap[OneTimeKey]]:
        """Claim one one-time key per (user, device, algorithm).

        Claiming consumes keys on the server, so the request is never
        retried after a failure that may have reached the server.
        """
        return self._submit(
            "claimOneTimeKeysForUsersDevices",
            _keys_claim_request,
            _decode_keys_claim,
            lambda: {"one_time_keys": _nested(users_devices_key_types)},
            idempotent=False,
            notify_queue=True,
        )

    def send_to_device(
        self,
        event_type: str,
        content_map: UsersDevicesMap[dict[str, Any]] | Mapping[str, Mapping[str, Any]],
        transaction_id: str | None = None,
    ) -> asyncio.Future[None]:
        """Send an event to specific devices.

        Without ``transaction_id`` a random one is generated for this call and
        reused by its retries. Pass an explicit id when re-sending the same
        message from a new call, or the server cannot deduplicate it.
        """
        def arguments() -> dict[str, Any]:
            return {
                "event_type": event_type,
                "messages": _nested(content_map),
                "transaction_id": transaction_id or str(self._txn_id_source()),
            }

        return self._submit(
            f"sendToDevice {event_type}", _send_to_device_request, _ignore_body, arguments
        )

    def get_devices(self) -> asyncio.Future[DevicesListResponse]:
        return self._submit(
            "getDevicesListInfo",
            _devices_request,
            _decode_devices,
            dict,
            notify_queue=True,
        )

    def delete_device(
        self, device_id: str, params: DeleteDeviceParams | None = None
    ) -> asyncio.Future[None]:
        """Delete a device.

        The first call usually fails with a 401 whose
        :attr:`~mxcrypto_sdk.errors.MXProtocolError.interactive_auth` holds the
        auth session; call again with ``params.auth`` filled in.
        """
        return self._submit(
            "deleteDevice",
            _delete_device_request,
            _ignore_body,
            lambda: {"device_id": device_id, "auth": params.to_body() if params else {}},
            idempotent=False,
            notify_queue=True,
        )

    def set_device_name(
        self, device_id: str, device_name: str | None = None
    ) -> asyncio.Future[None]:
        return self._submit(
            "setDeviceName",
            _set_device_name_request,
            _ignore_body,
            lambda: {"device_id": device_id, "display_name": device_name or ""},
            notify_queue=True,
        )

    def get_key_changes(self, from_token: str, to_token: str) -> asyncio.Future[KeyChangesResult]:
        """Users whose devices changed, or who left, between two sync tokens."""
        return self._submit(
            "getKeyChanges",
            _key_changes_request,
            _decode_key_changes(from_token, to_token),
            lambda: {"from_token": from_token, "to_token": to_token},
            notify_queue=True,
        )
