"""SDK wire models and result types."""

from mxcrypto_sdk.models.base import MXModel
from mxcrypto_sdk.models.errors import ErrorCode, ErrorResponse

from mxcrypto_sdk.models.devices import (
    AuthParams,
    DeleteDeviceParams,
    DeviceInfo,
    DevicesListResponse,
)
from mxcrypto_sdk.models.keys import (
    DeviceKeys,
    KeyChangesResponse,
    KeyChangesResult,
    KeysClaimResponse,
    KeysQueryResponse,
    KeysQueryResult,
    KeysUploadResponse,
    OneTimeKey,
    UnsignedDeviceInfo,
)

__all__ = [
    "MXModel",
    "ErrorCode",
    "ErrorResponse",
    # devices
    "AuthParams",
    "DeleteDeviceParams",
    "DeviceInfo",
    "DevicesListResponse",
    # keys
    "DeviceKeys",
    "KeyChangesResponse",
    "KeyChangesResult",
    "KeysClaimResponse",
    "KeysQueryResponse",
    "KeysQueryResult",
    "KeysUploadResponse",
    "OneTimeKey",
    "UnsignedDeviceInfo",
]
