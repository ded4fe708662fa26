"""Cooperative cancellation and bounded waits for store calls.

Every suspension point of the pipeline engines (a backoff wait or a blocking
store call) goes through this module so that a cancellation signal delivered
from another thread aborts the pipeline promptly.

Usage:
    token = CancellationToken()
    threading.Timer(30, token.cancel).start()

    reader = PaginatedReader(source, cancellation_token=token)
"""

import threading
import time
from concurrent.futures import Future
from datetime import timedelta
from typing import Any, Callable, List, Optional, TypeVar, Union

import structlog

from gcp_utils.operations.errors import CancellationFailure, StoreCallTimeout

logger = structlog.get_logger()

T = TypeVar("T")

Seconds = Union[timedelta, float, int]


def to_seconds(value: Optional[Seconds]) -> Optional[float]:
    """Normalize a timedelta or a number of seconds to float seconds."""
    if value is None:
        return None
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


class CancellationToken:
    """Thread-safe, one-shot cancellation signal.

    Once cancelled a token stays cancelled. Callbacks registered with
    add_callback() run exactly once, on the thread that calls cancel().
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []
        self.reason: Optional[str] = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled by caller") -> None:
        with self._lock:
            if self._event.is_set():
                return
            self.reason = reason
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a callback to run on cancellation.

        Runs the callback immediately if the token is already cancelled.

        Returns:
            A function that unregisters the callback
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)

                def _remove() -> None:
                    with self._lock:
                        if callback in self._callbacks:
                            self._callbacks.remove(callback)

                return _remove
        callback()
        return lambda: None

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or until timeout elapses.

        Returns:
            True if the token was cancelled
        """
        return self._event.wait(timeout)

    def raise_if_cancelled(
        self, operation: Optional[str] = None, attempt: Optional[int] = None
    ) -> None:
        if self._event.is_set():
            raise CancellationFailure(
                f"{operation or 'operation'} cancelled: {self.reason}",
                operation=operation,
                attempt=attempt,
            )


def sleep_cancellable(
    seconds: float,
    token: Optional[CancellationToken] = None,
    operation: Optional[str] = None,
    attempt: Optional[int] = None,
) -> None:
    """Wait for a backoff period, returning early with an error on cancellation.

    Raises:
        CancellationFailure: If the token is cancelled before or during the wait
    """
    if token is None:
        time.sleep(seconds)
        return
    token.raise_if_cancelled(operation, attempt)
    if token.wait(seconds):
        token.raise_if_cancelled(operation, attempt)


def _start_call(call: Callable[[], T]) -> "Future[T]":
    """Run call on a daemon thread, so an abandoned call never blocks exit."""
    future: "Future[T]" = Future()

    def _run() -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            result = call()
        except BaseException as exc:
            future.set_exception(exc)
        else:
            future.set_result(result)

    threading.Thread(target=_run, name="gcp-utils-call", daemon=True).start()
    return future


def _wait_for(
    future: "Future[Any]",
    token: Optional[CancellationToken],
    timeout: Optional[float],
) -> None:
    finished = threading.Event()
    future.add_done_callback(lambda _: finished.set())
    unregister = token.add_callback(finished.set) if token is not None else None
    try:
        finished.wait(timeout)
    finally:
        if unregister is not None:
            unregister()


def run_cancellable(
    call: Callable[[], T],
    token: Optional[CancellationToken] = None,
    timeout: Optional[Seconds] = None,
    operation: Optional[str] = None,
    attempt: Optional[int] = None,
) -> T:
    """Run a blocking store call, bounding the wait by cancellation and timeout.

    Without a token or a timeout the call runs inline on the caller's thread.
    Otherwise it runs on a daemon thread while the caller waits for whichever
    comes first: completion, cancellation or timeout. A call that completes
    before the cancellation is observed keeps its result.

    An abandoned call keeps running until the store returns. A timed-out
    call's future is attached to the StoreCallTimeout as ``pending``; callers
    that issue another call to the same store wait for it with
    wait_for_settled() first.

    Args:
        call: Zero-argument callable performing the store call
        token: Optional cancellation token
        timeout: Optional bound on the wait (timedelta or seconds)
        operation: Operation name for errors and logs
        attempt: Attempt, page or batch index for errors and logs

    Returns:
        The call's result

    Raises:
        CancellationFailure: If cancelled before the call completed
        StoreCallTimeout: If the call did not complete within timeout
        Exception: Anything raised by the call itself
    """
    timeout_seconds = to_seconds(timeout)
    if token is None and timeout_seconds is None:
        return call()

    if token is not None:
        token.raise_if_cancelled(operation, attempt)

    future = _start_call(call)
    _wait_for(future, token, timeout_seconds)
    if future.done():
        return future.result()

    if token is not None and token.is_cancelled:
        logger.warning(
            "store_call_cancelled",
            operation=operation,
            attempt=attempt,
            reason=token.reason,
        )
        raise CancellationFailure(
            f"{operation or 'store call'} cancelled: {token.reason}",
            operation=operation,
            attempt=attempt,
        )

    logger.warning(
        "store_call_timed_out",
        operation=operation,
        attempt=attempt,
        timeout_seconds=timeout_seconds,
    )
    raise StoreCallTimeout(
        f"{operation or 'store call'} timed out after {timeout_seconds}s",
        pending=future,
        operation=operation,
        attempt=attempt,
        details={"timeout_seconds": timeout_seconds},
    )


def wait_for_settled(
    pending: "Future[Any]",
    token: Optional[CancellationToken] = None,
    operation: Optional[str] = None,
    attempt: Optional[int] = None,
) -> None:
    """Block until an abandoned store call returns, whatever its result.

    Raises:
        CancellationFailure: If the token is cancelled before the call returns
    """
    if token is not None:
        token.raise_if_cancelled(operation, attempt)
    _wait_for(pending, token, None)
    if not pending.done() and token is not None:
        token.raise_if_cancelled(operation, attempt)
