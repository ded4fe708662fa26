"""Bridging of SDK futures to concurrent.futures."""

import concurrent.futures
from typing import Any


def to_concurrent_future(source: Any) -> concurrent.futures.Future:
    """Convert an SDK future to a ``concurrent.futures.Future``.

    Works with any future exposing ``add_done_callback``, ``cancelled``,
    ``exception`` and ``result`` (google-api-core operation futures, grpc
    futures). The returned future completes when the source completes, with the
    same result, exception or cancellation.

    Example:
        future = to_concurrent_future(subscriber.subscribe(path, callback))
        concurrent.futures.wait([future], timeout=30)
    """
    if source is None:
        raise ValueError("source future is required")
    target: concurrent.futures.Future = concurrent.futures.Future()

    def _transfer(completed: Any) -> None:
        if completed.cancelled():
            target.cancel()
            return
        # False when the caller already cancelled the returned future
        if not target.set_running_or_notify_cancel():
            return
        exc = completed.exception()
        if exc is not None:
            target.set_exception(exc)
        else:
            target.set_result(completed.result())

    source.add_done_callback(_transfer)
    return target
