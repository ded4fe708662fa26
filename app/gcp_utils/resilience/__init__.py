"""Resilience engines for bulk store mutations.

Public API:
- RetryScheduler, RetryPolicy: Bounded retries of a write action
- PaginatedReader, Page: Cursor-based, one-pass paginated reads
- BatchedCommitter: Bounded, strictly sequential batch commits
- CancellationToken: Cooperative cancellation of all suspension points
"""

from gcp_utils.resilience.batching import (
    DEFAULT_MAX_BATCH_SIZE,
    BatchedCommitter,
    checked_add,
)
from gcp_utils.resilience.cancellation import (
    CancellationToken,
    run_cancellable,
    sleep_cancellable,
    wait_for_settled,
)
from gcp_utils.resilience.pagination import (
    DEFAULT_PAGE_SIZE,
    Page,
    PaginatedReader,
)
from gcp_utils.resilience.retry import (
    RetryPolicy,
    RetryReceipt,
    RetryScheduler,
    RetryState,
    exponential_backoff,
    fixed_backoff,
    no_backoff,
)

__all__ = [
    # Retry
    "RetryPolicy",
    "RetryReceipt",
    "RetryScheduler",
    "RetryState",
    "exponential_backoff",
    "fixed_backoff",
    "no_backoff",
    # Pagination
    "DEFAULT_PAGE_SIZE",
    "Page",
    "PaginatedReader",
    # Batching
    "DEFAULT_MAX_BATCH_SIZE",
    "BatchedCommitter",
    "checked_add",
    # Cancellation
    "CancellationToken",
    "run_cancellable",
    "sleep_cancellable",
    "wait_for_settled",
]
