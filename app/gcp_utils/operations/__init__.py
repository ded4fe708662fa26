"""Write outcomes, failure classification and the error taxonomy.

Public API:
- WriteOutcome, RowError: Results returned by store write actions
- OutcomeStatus, FailureClass: Outcome tags and failure classes
- ErrorClassifier, classify*, filter_relevant_errors: Failure classification
- StoreOperationError and subclasses: Failures surfaced to callers
"""

from gcp_utils.operations.classifiers import (
    PERSISTENT_ERROR_REASONS,
    ErrorClassifier,
    classify,
    classify_exception,
    classify_partial_failure,
    contains_persistent_errors,
    filter_relevant_errors,
)
from gcp_utils.operations.errors import (
    CancellationFailure,
    ClientPersistentFailure,
    OverflowFailure,
    PartialPersistentFailure,
    PartialRetryableFailure,
    RetryExhaustedFailure,
    StoreCallTimeout,
    StoreOperationError,
    TransientStoreFailure,
)
from gcp_utils.operations.result import RowError, WriteOutcome
from gcp_utils.operations.status import FailureClass, OutcomeStatus

__all__ = [
    # Results
    "WriteOutcome",
    "RowError",
    "OutcomeStatus",
    "FailureClass",
    # Classification
    "ErrorClassifier",
    "PERSISTENT_ERROR_REASONS",
    "classify",
    "classify_exception",
    "classify_partial_failure",
    "contains_persistent_errors",
    "filter_relevant_errors",
    # Errors
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
