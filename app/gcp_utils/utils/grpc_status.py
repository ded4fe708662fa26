"""Extraction of gRPC status codes from exception chains."""

from typing import Optional

import grpc
from google.api_core.exceptions import GoogleAPICallError


def get_grpc_status(exc: BaseException) -> Optional[grpc.StatusCode]:
    """Get a possible gRPC status code from an exception or its causes.

    Walks ``__cause__`` (falling back to ``__context__``) until a
    ``grpc.RpcError`` or a ``GoogleAPICallError`` carrying a gRPC status is found.

    Returns:
        grpc.StatusCode or None if no exception in the chain carries one
    """
    if exc is None:
        raise ValueError("exc is required")
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, GoogleAPICallError) and current.grpc_status_code:
            return current.grpc_status_code
        if isinstance(current, grpc.RpcError) and callable(
            getattr(current, "code", None)
        ):
            return current.code()
        current = current.__cause__ or current.__context__
    return None
