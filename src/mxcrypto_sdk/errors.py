"""SDK exception hierarchy.

Every logical operation ends with a result or exactly one of
:class:`MXNetworkError`, :class:`MXProtocolError` or :class:`MXUnexpectedError`.
"""

from __future__ import annotations

from typing import Any

import httpx

from mxcrypto_sdk.models.errors import ErrorCode, ErrorResponse

# Statuses a reverse proxy returns when the homeserver is unreachable.
_GATEWAY_STATUSES = {502, 503, 504}


class MXError(Exception):
    """Base class for every error delivered by the SDK."""


class MXNetworkError(MXError):
    """Transport-level failure (connection refused, timeout, gateway error).

    ``request_sent`` is False only when the request is known not to have
    reached the server, which makes retrying non-idempotent requests safe.
    """

    def __init__(
        self,
        message: str,
        *,
        request_sent: bool = True,
        status: int | None = None,
    ) -> None:
        self.request_sent = request_sent
        self.status = status
        super().__init__(message)

    @classmethod
    def from_transport_error(cls, exc: httpx.TransportError) -> MXNetworkError:
        unsent = isinstance(exc, (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout))
        return cls(str(exc) or type(exc).__name__, request_sent=not unsent)


class MXProtocolError(MXError):
    """Raised when the homeserver rejects a request with a structured error."""

    def __init__(
        self,
        status: int,
        error: ErrorResponse | None = None,
        response: httpx.Response | None = None,
        body: dict[str, Any] | None = None,
    ) -> None:
        self.status = status
        self.error = error
        self.response = response
        self.body = body
        code = error.errcode if error else "UNKNOWN"
        msg = error.error if error else f"HTTP {status}"
        super().__init__(f"[{status}] {code}: {msg}")

    @classmethod
    def from_response(cls, response: httpx.Response) -> MXProtocolError:
        """Build from an httpx response, attempting to parse the error body."""
        error: ErrorResponse | None = None
        body: dict[str, Any] | None = None
        try:
            parsed = response.json()
            if isinstance(parsed, dict):
                body = parsed
                if "errcode" in parsed:
                    error = ErrorResponse.model_validate(parsed)
        except Exception:
            pass
        return cls(status=response.status_code, error=error, response=response, body=body)

    @property
    def code(self) -> ErrorCode | None:
        return self.error.code if self.error else None

    @property
    def retry_after_ms(self) -> int | None:
        if self.error:
            return self.error.retry_after_ms
        return None

    @property
    def is_rate_limited(self) -> bool:
        return self.status == 429 or self.code == ErrorCode.LIMIT_EXCEEDED

    @property
    def interactive_auth(self) -> dict[str, Any] | None:
        """The user-interactive auth state (flows, session, params) if the
        server asked for further authentication, else None."""
        if self.status == 401 and self.body and "flows" in self.body:
            return self.body
        return None


class MXUnexpectedError(MXError):
    """A client-side failure while building, sending or decoding a request.

    The original exception is available as ``__cause__``.
    """

    def __init__(self, description: str, cause: BaseException) -> None:
        self.description = description
        super().__init__(f"{description}: {type(cause).__name__}: {cause}")


def classify_response(response: httpx.Response) -> MXError | None:
    """Map a non-2xx response to the error it represents, or None on success."""
    if response.status_code < 400:
        return None
    if response.status_code in _GATEWAY_STATUSES:
        return MXNetworkError(
            f"HTTP {response.status_code} from gateway",
            status=response.status_code,
        )
    return MXProtocolError.from_response(response)
