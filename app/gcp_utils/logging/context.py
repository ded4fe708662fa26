"""Operation context binding for structured logging.

Usage:
    from gcp_utils.logging import bind_operation_context

    with bind_operation_context("nightly_cleanup", collection="sessions"):
        shallow_delete_query(client, query)
"""

import uuid
from contextlib import contextmanager
from typing import Any, Generator, Optional

import structlog


@contextmanager
def bind_operation_context(
    operation: str,
    correlation_id: Optional[str] = None,
    **extra_context: Any,
) -> Generator[str, None, None]:
    """Bind operation-scoped context to all logs within the block.

    Args:
        operation: Name of the operation being performed.
        correlation_id: Unique identifier. Auto-generated if not provided.
        **extra_context: Additional key-value pairs to include in logs.

    Yields:
        The correlation id bound for the block.
    """
    context: dict[str, Any] = {
        "operation": operation,
        "correlation_id": correlation_id or str(uuid.uuid4()),
    }
    context.update({k: v for k, v in extra_context.items() if v is not None})

    tokens = structlog.contextvars.bind_contextvars(**context)
    try:
        yield context["correlation_id"]
    finally:
        structlog.contextvars.reset_contextvars(**tokens)
