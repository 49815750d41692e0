"""Two-level ``user_id -> device_id -> value`` map and its wire conversions.

Request payloads are encoded as-is, including users with no devices (an
empty device map asks the server for *all* of that user's devices). Decoded
responses are always pruned: a user never appears without at least one
device.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from typing import Any, Generic, TypeVar

from mxcrypto_sdk.models.keys import DeviceKeys, OneTimeKey

log = logging.getLogger(__name__)

V = TypeVar("V")
W = TypeVar("W")


class UsersDevicesMap(Generic[V]):
    """Mapping of user id to device id to value.

    Constructing from a nested mapping copies it; the caller's mapping is
    never aliased or mutated.
    """

    def __init__(self, mapping: Mapping[str, Mapping[str, V]] | None = None) -> None:
        self._map: dict[str, dict[str, V]] = {}
        if mapping:
            for user_id, devices in mapping.items():
                self._map[user_id] = dict(devices)

    @classmethod
    def from_nested(
        cls,
        mapping: Mapping[str, Any] | None,
        convert: Callable[[str, str, Any], V] | None = None,
    ) -> UsersDevicesMap[V]:
        """Decode a wire-shaped map, pruning everything that carries no value.

        ``convert(user_id, device_id, value)`` turns each leaf into ``V``; a
        leaf it rejects with ValueError is logged and skipped. Null users,
        null leaves and users left without devices are dropped.
        """
        result: UsersDevicesMap[V] = cls()
        for user_id, devices in (mapping or {}).items():
            if not isinstance(devices, Mapping):
                if devices is not None:
                    log.error("Ignoring non-object device map for %s: %r", user_id, devices)
                continue
            for device_id, value in devices.items():
                if value is None:
                    continue
                if convert is None:
                    result.set(user_id, device_id, value)
                    continue
                try:
                    result.set(user_id, device_id, convert(user_id, device_id, value))
                except ValueError as exc:
                    log.error("Dropping %s/%s: %s", user_id, device_id, exc)
        return result

    def get(self, user_id: str, device_id: str) -> V | None:
        return self._map.get(user_id, {}).get(device_id)

    def set(self, user_id: str, device_id: str, value: V) -> None:
        self._map.setdefault(user_id, {})[device_id] = value

    def set_objects(self, user_id: str, objects: Mapping[str, V]) -> None:
        """Replace every device entry for ``user_id``."""
        self._map[user_id] = dict(objects)

    def objects_for_user(self, user_id: str) -> dict[str, V]:
        return dict(self._map.get(user_id, {}))

    def user_ids(self) -> list[str]:
        return list(self._map)

    def device_ids_for_user(self, user_id: str) -> list[str]:
        return list(self._map.get(user_id, {}))

    def remove(self, user_id: str, device_id: str) -> None:
        devices = self._map.get(user_id)
        if devices is None:
            return
        devices.pop(device_id, None)
        if not devices:
            del self._map[user_id]

    def remove_user(self, user_id: str) -> None:
        self._map.pop(user_id, None)

    def add_entries(self, other: UsersDevicesMap[V]) -> None:
        for user_id, device_id, value in other.items():
            self.set(user_id, device_id, value)

    def items(self) -> Iterator[tuple[str, str, V]]:
        for user_id, devices in self._map.items():
            for device_id, value in devices.items():
                yield user_id, device_id, value

    def map_values(self, convert: Callable[[V], W]) -> UsersDevicesMap[W]:
        return UsersDevicesMap(
            {u: {d: convert(v) for d, v in devices.items()} for u, devices in self._map.items()}
        )

    def to_dict(self) -> dict[str, dict[str, V]]:
        """Fresh nested dict for a request body; empty device maps are kept."""
        return {user_id: dict(devices) for user_id, devices in self._map.items()}

    def __len__(self) -> int:
        return sum(len(devices) for devices in self._map.values())

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._map

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UsersDevicesMap):
            return NotImplemented
        return self._map == other._map

    def __repr__(self) -> str:
        return f"UsersDevicesMap({self._map!r})"


def prune_empty(mapping: Mapping[str, Any] | None) -> dict[str, dict[str, Any]]:
    """Copy of ``mapping`` without users whose device map is empty or null."""
    return UsersDevicesMap.from_nested(mapping).to_dict()


def _device_keys(user_id: str, device_id: str, raw: Any) -> DeviceKeys:
    if not isinstance(raw, Mapping):
        raise ValueError(f"expected a device keys object, got {raw!r}")
    # Ids come from the map position when the object omits them.
    return DeviceKeys.model_validate({"user_id": user_id, "device_id": device_id, **raw})


def _one_time_key(user_id: str, device_id: str, raw: Any) -> OneTimeKey:
    return OneTimeKey.from_key_dict(raw)


def decode_device_keys(mapping: Mapping[str, Any] | None) -> UsersDevicesMap[DeviceKeys]:
    """Decode the ``device_keys`` object of a key query response.

    Entries that do not validate as device keys are logged and dropped.
    """
    return UsersDevicesMap.from_nested(mapping, _device_keys)


def decode_claimed_keys(mapping: Mapping[str, Any] | None) -> UsersDevicesMap[OneTimeKey]:
    """Reshape ``user -> device -> {key_id: key}`` into one key per device.

    Devices whose key fails to parse are skipped, and so are users left with
    no claimed key at all.
    """
    return UsersDevicesMap.from_nested(mapping, _one_time_key)
