"""Matrix E2EE key exchange client SDK."""

from mxcrypto_sdk.client import Client
from mxcrypto_sdk.errors import MXError, MXNetworkError, MXProtocolError, MXUnexpectedError
from mxcrypto_sdk.retry import LogicalOperation, RequestRetryAdapter
from mxcrypto_sdk.usersdevices import UsersDevicesMap

__all__ = [
    "Client",
    "LogicalOperation",
    "MXError",
    "MXNetworkError",
    "MXProtocolError",
    "MXUnexpectedError",
    "RequestRetryAdapter",
    "UsersDevicesMap",
]
