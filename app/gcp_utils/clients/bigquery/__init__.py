"""BigQuery adapters."""

from gcp_utils.clients.bigquery.insert import (
    STREAMING_INSERT_BATCH_SIZE,
    InsertAllWithRetriesOptions,
    insert_all_with_retries,
)

__all__ = [
    "STREAMING_INSERT_BATCH_SIZE",
    "InsertAllWithRetriesOptions",
    "insert_all_with_retries",
]
