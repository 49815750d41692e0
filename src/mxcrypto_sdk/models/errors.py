from __future__ import annotations

from enum import Enum

from mxcrypto_sdk.models.base import MXModel


class ErrorCode(str, Enum):
    FORBIDDEN = "M_FORBIDDEN"
    UNKNOWN_TOKEN = "M_UNKNOWN_TOKEN"
    MISSING_TOKEN = "M_MISSING_TOKEN"
    BAD_JSON = "M_BAD_JSON"
    NOT_JSON = "M_NOT_JSON"
    NOT_FOUND = "M_NOT_FOUND"
    LIMIT_EXCEEDED = "M_LIMIT_EXCEEDED"
    UNKNOWN = "M_UNKNOWN"
    UNRECOGNIZED = "M_UNRECOGNIZED"
    UNAUTHORIZED = "M_UNAUTHORIZED"
    USER_DEACTIVATED = "M_USER_DEACTIVATED"
    INVALID_PARAM = "M_INVALID_PARAM"
    MISSING_PARAM = "M_MISSING_PARAM"


class ErrorResponse(MXModel):
    errcode: str = ErrorCode.UNKNOWN.value
    error: str = ""
    retry_after_ms: int | None = None

    @property
    def code(self) -> ErrorCode | None:
        try:
            return ErrorCode(self.errcode)
        except ValueError:
            return None
