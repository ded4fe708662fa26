"""Outcome and failure classification enumerations."""

from enum import Enum


class OutcomeStatus(Enum):
    """Tag of a WriteOutcome.

    Attributes:
        SUCCESS: The store accepted every row
        TRANSIENT_FAILURE: The whole write failed and may succeed unchanged later
        PARTIAL_FAILURE: The store rejected some rows (errors keyed by row index)
        PERSISTENT_FAILURE: The whole write failed and will fail again
    """

    SUCCESS = "success"
    TRANSIENT_FAILURE = "transient_failure"
    PARTIAL_FAILURE = "partial_failure"
    PERSISTENT_FAILURE = "persistent_failure"


class FailureClass(Enum):
    """Classification of a failed write.

    Attributes:
        TRANSIENT: Total failure worth retrying (timeout, rate limit, 502, I/O)
        CLIENT_PERSISTENT: Total failure that must not be retried
        PARTIAL_RETRYABLE: Row errors with no substantive persistent reason
        PARTIAL_PERSISTENT: Row errors including a persistent reason
    """

    TRANSIENT = "transient"
    CLIENT_PERSISTENT = "client_persistent"
    PARTIAL_RETRYABLE = "partial_retryable"
    PARTIAL_PERSISTENT = "partial_persistent"

    @property
    def is_retryable(self) -> bool:
        return self in (FailureClass.TRANSIENT, FailureClass.PARTIAL_RETRYABLE)
