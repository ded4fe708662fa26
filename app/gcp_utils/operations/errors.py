"""Exception taxonomy for the bulk-mutation pipeline.

Only TransientStoreFailure and PartialRetryableFailure are ever absorbed, and
only by the retry scheduler. Every other failure propagates to the caller with
its classification, attempt index and diagnostic details.
"""

from typing import Any, Dict, List, Mapping, Optional

from gcp_utils.operations.result import RowError
from gcp_utils.operations.status import FailureClass


class StoreOperationError(Exception):
    """Base class for failures surfaced by the pipeline engines.

    Attributes:
        classification: FailureClass of the underlying failure, if known
        operation: Name of the operation that failed (for logs/alerts)
        attempt: Zero-based attempt, page or batch index where it failed
        details: Extra diagnostic context
    """

    classification: Optional[FailureClass] = None

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        attempt: Optional[int] = None,
        classification: Optional[FailureClass] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.attempt = attempt
        if classification is not None:
            self.classification = classification
        self.details = details or {}


class TransientStoreFailure(StoreOperationError):
    """A total failure expected to be intermittent."""

    classification = FailureClass.TRANSIENT


class StoreCallTimeout(TransientStoreFailure):
    """A store call did not complete within the configured timeout.

    Attributes:
        pending: Future of the abandoned call, done once the call returns
    """

    def __init__(self, message: str, pending: Optional[Any] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.pending = pending


class PartialRetryableFailure(StoreOperationError):
    """Row-level errors with no persistent reason among them."""

    classification = FailureClass.PARTIAL_RETRYABLE


class ClientPersistentFailure(StoreOperationError):
    """A total failure that will recur identically; never retried."""

    classification = FailureClass.CLIENT_PERSISTENT


class PartialPersistentFailure(StoreOperationError):
    """Row-level errors including a persistent reason; never retried.

    Attributes:
        relevant_errors: Row errors left after noise filtering
        relevant_errors_json: JSON rendering of relevant_errors for logs
    """

    classification = FailureClass.PARTIAL_PERSISTENT

    def __init__(
        self,
        message: str,
        relevant_errors: Mapping[int, List[RowError]],
        relevant_errors_json: str,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.relevant_errors = dict(relevant_errors)
        self.relevant_errors_json = relevant_errors_json


class RetryExhaustedFailure(StoreOperationError):
    """Every allowed attempt ended in a retryable failure.

    Attributes:
        attempts: Number of attempts performed
    """

    def __init__(self, message: str, attempts: int, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.attempts = attempts


class CancellationFailure(StoreOperationError):
    """The caller cancelled the pipeline while it was in flight."""


class OverflowFailure(StoreOperationError):
    """The committed-keys counter would exceed its 64-bit bound."""
