"""Structured logging infrastructure.

Public API:
    - configure_logging(): Initialize logging for the application
    - bind_operation_context(): Context manager for operation-scoped logging
    - truncate_large_values(): Processor to limit string lengths
"""

from gcp_utils.logging.context import bind_operation_context
from gcp_utils.logging.formatters import truncate_large_values
from gcp_utils.logging.setup import configure_logging

__all__ = [
    "configure_logging",
    "bind_operation_context",
    "truncate_large_values",
]
