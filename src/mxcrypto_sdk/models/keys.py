from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from mxcrypto_sdk.models.base import MXModel

if TYPE_CHECKING:
    from mxcrypto_sdk.usersdevices import UsersDevicesMap


class KeysUploadResponse(MXModel):
    one_time_key_counts: dict[str, int] = {}

    def count_for(self, algorithm: str) -> int:
        return self.one_time_key_counts.get(algorithm, 0)


class UnsignedDeviceInfo(MXModel):
    device_display_name: str | None = None


class DeviceKeys(MXModel):
    user_id: str
    device_id: str
    algorithms: list[str] = []
    keys: dict[str, str] = {}
    signatures: dict[str, dict[str, str]] = {}
    unsigned: UnsignedDeviceInfo | None = None

    def key(self, algorithm: str) -> str | None:
        return self.keys.get(f"{algorithm}:{self.device_id}")

    @property
    def fingerprint(self) -> str | None:
        return self.key("ed25519")

    @property
    def identity_key(self) -> str | None:
        return self.key("curve25519")

    @property
    def display_name(self) -> str | None:
        return self.unsigned.device_display_name if self.unsigned else None


class KeysQueryResponse(MXModel):
    device_keys: dict[str, Any] = {}
    failures: dict[str, Any] = {}


class OneTimeKey(MXModel):
    """A single claimed one-time key.

    On the wire a key is a one-entry object ``{"<algorithm>:<key_id>": value}``
    where value is either the bare base64 key or, for signed keys,
    ``{"key": ..., "signatures": {...}}``.
    """

    algorithm: str
    key_id: str
    value: str
    signatures: dict[str, dict[str, str]] = {}

    @classmethod
    def from_key_dict(cls, data: dict[str, Any]) -> OneTimeKey:
        if not isinstance(data, dict) or len(data) != 1:
            raise ValueError(f"expected a single key entry, got {data!r}")
        full_id, body = next(iter(data.items()))
        algorithm, sep, key_id = full_id.partition(":")
        if not sep or not algorithm or not key_id:
            raise ValueError(f"malformed key id {full_id!r}")
        if isinstance(body, str):
            return cls(algorithm=algorithm, key_id=key_id, value=body)
        if isinstance(body, dict) and isinstance(body.get("key"), str):
            return cls(
                algorithm=algorithm,
                key_id=key_id,
                value=body["key"],
                signatures=body.get("signatures") or {},
            )
        raise ValueError(f"unsupported key body for {full_id!r}")

    @property
    def full_id(self) -> str:
        return f"{self.algorithm}:{self.key_id}"

    def signature_for(self, user_id: str, signing_key_id: str) -> str | None:
        return self.signatures.get(user_id, {}).get(signing_key_id)

    def to_key_dict(self) -> dict[str, Any]:
        if not self.signatures:
            return {self.full_id: self.value}
        return {self.full_id: {"key": self.value, "signatures": self.signatures}}


class KeysClaimResponse(MXModel):
    one_time_keys: dict[str, Any] = {}
    failures: dict[str, Any] = {}


class KeyChangesResponse(MXModel):
    changed: list[str] = []
    left: list[str] = []


@dataclass
class KeysQueryResult:
    device_keys: UsersDevicesMap[DeviceKeys]
    failures: dict[str, Any] = field(default_factory=dict)
    token: str | None = None


@dataclass
class KeyChangesResult:
    changed: set[str]
    left: set[str]
    from_token: str
    to_token: str
