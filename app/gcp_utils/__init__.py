"""Resilient bulk-mutation helpers for Google Cloud data stores.

Public API:
- RetryScheduler, RetryPolicy: Bounded retries of a write action
- PaginatedReader: Cursor-based, one-pass paginated reads
- BatchedCommitter: Bounded, strictly sequential batch commits
- ErrorClassifier, WriteOutcome: Failure classification
- CancellationToken: Cooperative cancellation

GCP adapters live in gcp_utils.clients (bigquery, firestore, google_auth).
"""

from gcp_utils.operations import (
    CancellationFailure,
    ClientPersistentFailure,
    ErrorClassifier,
    FailureClass,
    OverflowFailure,
    PartialPersistentFailure,
    PartialRetryableFailure,
    RetryExhaustedFailure,
    RowError,
    StoreCallTimeout,
    StoreOperationError,
    TransientStoreFailure,
    WriteOutcome,
)
from gcp_utils.resilience import (
    BatchedCommitter,
    CancellationToken,
    PaginatedReader,
    RetryPolicy,
    RetryReceipt,
    RetryScheduler,
    exponential_backoff,
)

__version__ = "0.1.0"

__all__ = [
    "BatchedCommitter",
    "CancellationToken",
    "PaginatedReader",
    "RetryPolicy",
    "RetryReceipt",
    "RetryScheduler",
    "exponential_backoff",
    "ErrorClassifier",
    "FailureClass",
    "RowError",
    "WriteOutcome",
    "StoreOperationError",
    "TransientStoreFailure",
    "StoreCallTimeout",
    "PartialRetryableFailure",
    "ClientPersistentFailure",
    "PartialPersistentFailure",
    "RetryExhaustedFailure",
    "CancellationFailure",
    "OverflowFailure",
]
