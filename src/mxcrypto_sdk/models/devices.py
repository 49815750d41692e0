from __future__ import annotations

from typing import Any

from mxcrypto_sdk.models.base import MXModel


class DeviceInfo(MXModel):
    device_id: str
    display_name: str | None = None
    last_seen_ip: str | None = None
    last_seen_ts: int | None = None


class DevicesListResponse(MXModel):
    devices: list[DeviceInfo] = []

    def get(self, device_id: str) -> DeviceInfo | None:
        for device in self.devices:
            if device.device_id == device_id:
                return device
        return None


class AuthParams(MXModel):
    """One stage of user-interactive auth, e.g. ``m.login.password``."""

    type: str | None = None
    session: str | None = None
    user: str | None = None
    password: str | None = None


class DeleteDeviceParams(MXModel):
    auth: AuthParams | None = None

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)
