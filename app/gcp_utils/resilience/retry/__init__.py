"""Bounded retry-with-backoff for bulk writes."""

from gcp_utils.resilience.retry.config import (
    BackoffFunction,
    RetryPolicy,
    exponential_backoff,
    fixed_backoff,
    no_backoff,
)
from gcp_utils.resilience.retry.scheduler import (
    ElapsedTimeConsumer,
    RetryReceipt,
    RetryScheduler,
    RetryState,
    WriteAction,
)

__all__ = [
    "BackoffFunction",
    "ElapsedTimeConsumer",
    "RetryPolicy",
    "RetryReceipt",
    "RetryScheduler",
    "RetryState",
    "WriteAction",
    "exponential_backoff",
    "fixed_backoff",
    "no_backoff",
]
