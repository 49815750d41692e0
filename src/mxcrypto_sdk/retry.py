"""Request retry adapter: one logical operation, one terminal outcome.

A :class:`LogicalOperation` captures the call arguments and a pure builder, so
the adapter can re-issue exactly the same request as often as the retry
policy allows. :meth:`RequestRetryAdapter.submit` returns a future right away;
the future is resolved exactly once with the decoded result or with one of
:class:`~mxcrypto_sdk.errors.MXNetworkError`,
:class:`~mxcrypto_sdk.errors.MXProtocolError` or
:class:`~mxcrypto_sdk.errors.MXUnexpectedError`.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import copy
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Protocol, TypeVar

from mxcrypto_sdk.errors import MXError, MXNetworkError, MXProtocolError, MXUnexpectedError

log = logging.getLogger(__name__)

T = TypeVar("T")

_DEFAULT_MAX_IMMEDIATE_RETRIES = 3


class OperationState(str, Enum):
    PENDING = "pending"
    RETRYING = "retrying"
    SUCCESS = "success"
    NETWORK_ERROR = "network_error"
    PROTOCOL_ERROR = "protocol_error"
    UNEXPECTED_ERROR = "unexpected_error"


@dataclass(frozen=True)
class PreparedRequest:
    method: str
    path: str
    json: Any = None
    params: Mapping[str, str] | None = None


@dataclass(frozen=True)
class LogicalOperation(Generic[T]):
    """A retryable request: a snapshot of its arguments plus how to build and
    decode it.

    ``build`` must be a pure function of ``arguments``; every call to
    :meth:`prepare` therefore yields an equal :class:`PreparedRequest`.
    """

    description: str
    build: Callable[..., PreparedRequest]
    decode: Callable[[Any], T]
    arguments: Mapping[str, Any] = field(default_factory=dict)
    idempotent: bool = True
    notify_queue: bool = False

    @classmethod
    def snapshot(
        cls,
        description: str,
        build: Callable[..., PreparedRequest],
        decode: Callable[[Any], T],
        arguments: Mapping[str, Any],
        **options: Any,
    ) -> LogicalOperation[T]:
        """Create an operation over a deep copy of ``arguments`` so later
        changes to caller-owned objects cannot leak into retries."""
        return cls(description, build, decode, copy.deepcopy(dict(arguments)), **options)

    def prepare(self) -> PreparedRequest:
        return self.build(**self.arguments)


class Transport(Protocol):
    async def send(self, request: PreparedRequest) -> Any:
        """Perform one attempt and return the decoded JSON body (or None).

        Raises MXNetworkError or MXProtocolError on failure.
        """
        ...


class RetryScheduler(Protocol):
    async def schedule_retry(
        self, operation: LogicalOperation[Any], error: MXError, attempt: int
    ) -> bool:
        """Wait until the operation may be retried; return False to give up."""
        ...


class OfflineQueue(Protocol):
    def on_operation_succeeded(self, operation: LogicalOperation[Any]) -> None:
        ...


class RequestRetryAdapter:
    """Drives logical operations against a transport.

    Without a scheduler, transient failures are retried immediately up to
    ``max_immediate_retries`` times.

    Every attempt runs on one event loop: ``loop`` when given, otherwise the
    loop of the first :meth:`submit`. Submissions from other threads are
    handed to that loop.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        scheduler: RetryScheduler | None = None,
        offline_queue: OfflineQueue | None = None,
        max_immediate_retries: int = _DEFAULT_MAX_IMMEDIATE_RETRIES,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        if max_immediate_retries < 0:
            raise ValueError("max_immediate_retries must be >= 0")
        self._transport = transport
        self._scheduler = scheduler
        self._offline_queue = offline_queue
        self._max_immediate_retries = max_immediate_retries
        self._loop = loop
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    @property
    def loop(self) -> asyncio.AbstractEventLoop | None:
        return self._loop

    def _running_loop(self) -> asyncio.AbstractEventLoop | None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            return None
        if self._loop is None or self._loop.is_closed():
            self._loop = running
        return running

    def submit(
        self, operation: LogicalOperation[T]
    ) -> asyncio.Future[T] | concurrent.futures.Future[T]:
        """Issue ``operation`` and return its future without waiting.

        On the adapter's loop the result is an :class:`asyncio.Future`. A call
        from another running loop gets an awaitable wrapper for that loop, and
        a call from a thread with no loop gets a
        :class:`concurrent.futures.Future`. With no usable loop at all the
        future fails with MXUnexpectedError.
        """
        running = self._running_loop()
        if running is not None and running is self._loop:
            future: asyncio.Future[T] = running.create_future()
            task = running.create_task(self._drive(operation, future))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            return future

        if self._loop is None or self._loop.is_closed():
            return self.reject(
                operation.description, RuntimeError("no event loop to run the request on")
            )
        log.debug("%s: handing off to the adapter's event loop", operation.description)
        handoff = asyncio.run_coroutine_threadsafe(self.run(operation), self._loop)
        if running is not None:
            return asyncio.wrap_future(handoff, loop=running)
        return handoff

    def reject(
        self, description: str, exc: Exception
    ) -> asyncio.Future[Any] | concurrent.futures.Future[Any]:
        """A future already failed with MXUnexpectedError, for operations that
        could not even be constructed."""
        error = _unexpected(description, exc)
        try:
            future: Any = asyncio.get_running_loop().create_future()
        except RuntimeError:
            future = concurrent.futures.Future()
        future.set_exception(error)
        return future

    async def run(self, operation: LogicalOperation[T]) -> T:
        return await self.submit(operation)

    async def _drive(self, operation: LogicalOperation[T], future: asyncio.Future[T]) -> None:
        try:
            await self._attempts(operation, future)
        except asyncio.CancelledError as exc:
            self._fail(operation, future, _unexpected(operation.description, exc))
            raise

    async def _attempts(self, operation: LogicalOperation[T], future: asyncio.Future[T]) -> None:
        attempt = 0
        state = OperationState.PENDING
        while True:
            log.debug("%s: attempt %d (%s)", operation.description, attempt + 1, state.value)
            try:
                request = operation.prepare()
                body = await self._transport.send(request)
                result = operation.decode(body)
            except (MXNetworkError, MXProtocolError) as exc:
                try:
                    retry = await self._should_retry(operation, exc, attempt)
                except Exception as sched_exc:
                    self._fail(operation, future, _unexpected(operation.description, sched_exc))
                    return
                if retry:
                    attempt += 1
                    state = OperationState.RETRYING
                    continue
                self._fail(operation, future, exc)
                return
            except Exception as exc:
                self._fail(operation, future, _unexpected(operation.description, exc))
                return

            self._succeed(operation, future, result, attempt)
            return

    async def _should_retry(
        self, operation: LogicalOperation[Any], error: MXError, attempt: int
    ) -> bool:
        if isinstance(error, MXProtocolError) and not error.is_rate_limited:
            return False
        if isinstance(error, MXNetworkError) and error.request_sent and not operation.idempotent:
            log.warning(
                "%s: not retrying non-idempotent request after ambiguous failure: %s",
                operation.description,
                error,
            )
            return False

        if self._scheduler is not None:
            log.warning("%s: deferring retry to scheduler after: %s", operation.description, error)
            return await self._scheduler.schedule_retry(operation, error, attempt)

        if attempt >= self._max_immediate_retries:
            log.warning(
                "%s: giving up after %d retries: %s", operation.description, attempt, error
            )
            return False
        if isinstance(error, MXProtocolError) and error.retry_after_ms:
            await asyncio.sleep(error.retry_after_ms / 1000.0)
        log.warning("%s: retrying after: %s", operation.description, error)
        return True

    def _succeed(
        self, operation: LogicalOperation[T], future: asyncio.Future[T], result: T, retries: int
    ) -> None:
        if future.done():
            log.debug("%s: result dropped, future already done", operation.description)
            return
        future.set_result(result)
        log.debug("%s: %s after %d retries", operation.description, OperationState.SUCCESS.value, retries)
        if operation.notify_queue and self._offline_queue is not None:
            try:
                self._offline_queue.on_operation_succeeded(operation)
            except Exception:
                log.exception("%s: offline queue notification failed", operation.description)

    def _fail(
        self, operation: LogicalOperation[Any], future: asyncio.Future[Any], error: MXError
    ) -> None:
        if future.done():
            log.debug("%s: error dropped, future already done: %s", operation.description, error)
            return
        future.set_exception(error)
        log.debug("%s: %s", operation.description, terminal_state(error).value)


def terminal_state(error: MXError) -> OperationState:
    if isinstance(error, MXNetworkError):
        return OperationState.NETWORK_ERROR
    if isinstance(error, MXProtocolError):
        return OperationState.PROTOCOL_ERROR
    return OperationState.UNEXPECTED_ERROR


def _unexpected(description: str, exc: BaseException) -> MXUnexpectedError:
    error = MXUnexpectedError(description, exc)
    error.__cause__ = exc
    log.error("%s: unexpected error: %r", description, exc)
    return error
