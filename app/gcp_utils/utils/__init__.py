"""Small adapters around Google Cloud SDK types."""

from gcp_utils.utils.futures import to_concurrent_future
from gcp_utils.utils.grpc_status import get_grpc_status
from gcp_utils.utils.serialization import stringify
from gcp_utils.utils.timestamps import get_datetime, get_precise_datetime

__all__ = [
    "to_concurrent_future",
    "get_grpc_status",
    "stringify",
    "get_datetime",
    "get_precise_datetime",
]
