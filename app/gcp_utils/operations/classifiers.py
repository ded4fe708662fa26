"""Failure classifiers for store writes.

Decides whether a failed write is worth retrying. Total failures (exceptions)
are matched against transient markers; partial failures (row errors keyed by
row index) are noise-filtered and checked for persistent reasons.

Key Functions:
- classify(): any failure -> FailureClass
- classify_exception(): exception -> TRANSIENT | CLIENT_PERSISTENT
- classify_partial_failure(): row errors -> PARTIAL_RETRYABLE | PARTIAL_PERSISTENT
- filter_relevant_errors(): drop rows whose only errors are "stopped"

Usage:
    from gcp_utils.operations.classifiers import classify

    try:
        errors = client.insert_rows_json(table, rows)
    except Exception as exc:
        if classify(exc).is_retryable:
            ...
"""

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

from gcp_utils.configuration.google import (
    DEFAULT_TRANSIENT_ERROR_MARKERS,
    BigQuerySettings,
)
from gcp_utils.operations.errors import StoreOperationError
from gcp_utils.operations.result import RowError, WriteOutcome
from gcp_utils.operations.status import FailureClass, OutcomeStatus

PERSISTENT_ERROR_REASONS: FrozenSet[str] = frozenset(
    {"invalid", "invalidQuery", "notImplemented"}
)


@dataclass(frozen=True)
class ErrorClassifier:
    """Configurable failure classification policy.

    Provider error text changes across SDK versions, so the transient markers
    are policy rather than constants.

    Attributes:
        transient_markers: Case-insensitive message substrings of transient errors
        persistent_reasons: Row error reasons that will never succeed on retry
    """

    transient_markers: Tuple[str, ...] = DEFAULT_TRANSIENT_ERROR_MARKERS
    persistent_reasons: FrozenSet[str] = PERSISTENT_ERROR_REASONS

    @classmethod
    def from_settings(cls, settings: BigQuerySettings) -> "ErrorClassifier":
        return cls(transient_markers=tuple(settings.transient_error_markers))

    def is_transient_message(self, message: Optional[str]) -> bool:
        if not message:
            return False
        lowered = message.lower()
        return any(marker.lower() in lowered for marker in self.transient_markers)

    def classify_exception(self, exc: BaseException) -> FailureClass:
        """Classify a total (exception-level) write failure.

        Status Mapping:
        - Own transient/partial-retryable failure types -> TRANSIENT
        - Own persistent failure types -> CLIENT_PERSISTENT
        - Message contains a transient marker -> TRANSIENT
        - Exception or its direct cause is an OSError (I/O) -> TRANSIENT
        - Anything else -> CLIENT_PERSISTENT

        Args:
            exc: Exception raised by the write action

        Returns:
            FailureClass.TRANSIENT or FailureClass.CLIENT_PERSISTENT
        """
        if isinstance(exc, StoreOperationError) and exc.classification is not None:
            if exc.classification.is_retryable:
                return FailureClass.TRANSIENT
            return FailureClass.CLIENT_PERSISTENT

        if self.is_transient_message(str(exc)):
            return FailureClass.TRANSIENT

        if isinstance(exc, OSError) or isinstance(exc.__cause__, OSError):
            return FailureClass.TRANSIENT

        return FailureClass.CLIENT_PERSISTENT

    def filter_relevant_errors(
        self, errors_by_index: Mapping[int, Sequence[Optional[RowError]]]
    ) -> Dict[int, List[RowError]]:
        """Drop rows whose errors are only "stopped".

        When one row of a batch is invalid the store reports "stopped" for the
        other rows; those carry no independent signal.

        Args:
            errors_by_index: Raw row errors keyed by row index

        Returns:
            New dict with the rows that have at least one substantive error
        """
        return {
            index: list(errors)
            for index, errors in errors_by_index.items()
            if errors
            and any(error is not None and not error.is_noise for error in errors)
        }

    def contains_persistent_errors(
        self, errors_by_index: Mapping[int, Sequence[Optional[RowError]]]
    ) -> bool:
        """Check whether any row error has a reason that cannot be retried."""
        return any(
            error is not None
            and error.reason is not None
            and error.reason in self.persistent_reasons
            for errors in errors_by_index.values()
            if errors
            for error in errors
        )

    def classify_partial_failure(
        self, errors_by_index: Mapping[int, Sequence[Optional[RowError]]]
    ) -> FailureClass:
        """Classify row-level errors after noise filtering.

        A raw map whose rows are all noise filters down to nothing and is still
        PARTIAL_RETRYABLE: the write failed, only the cause is unknown.
        """
        relevant = self.filter_relevant_errors(errors_by_index)
        if self.contains_persistent_errors(relevant):
            return FailureClass.PARTIAL_PERSISTENT
        return FailureClass.PARTIAL_RETRYABLE

    def classify(self, failure: Any) -> FailureClass:
        """Classify an exception, a WriteOutcome or a row-errors mapping.

        Raises:
            ValueError: If given a successful WriteOutcome
            TypeError: If the failure type is not recognised
        """
        if isinstance(failure, BaseException):
            return self.classify_exception(failure)
        if isinstance(failure, WriteOutcome):
            if failure.status == OutcomeStatus.SUCCESS:
                raise ValueError("A successful outcome has no failure class")
            if failure.status == OutcomeStatus.TRANSIENT_FAILURE:
                return FailureClass.TRANSIENT
            if failure.status == OutcomeStatus.PERSISTENT_FAILURE:
                return FailureClass.CLIENT_PERSISTENT
            return self.classify_partial_failure(failure.errors_by_index)
        if isinstance(failure, Mapping):
            return self.classify_partial_failure(failure)
        raise TypeError(f"Cannot classify failure of type {type(failure).__name__}")


DEFAULT_CLASSIFIER = ErrorClassifier()


def classify(failure: Any) -> FailureClass:
    return DEFAULT_CLASSIFIER.classify(failure)


def classify_exception(exc: BaseException) -> FailureClass:
    return DEFAULT_CLASSIFIER.classify_exception(exc)


def classify_partial_failure(
    errors_by_index: Mapping[int, Sequence[Optional[RowError]]],
) -> FailureClass:
    return DEFAULT_CLASSIFIER.classify_partial_failure(errors_by_index)


def filter_relevant_errors(
    errors_by_index: Mapping[int, Sequence[Optional[RowError]]],
) -> Dict[int, List[RowError]]:
    return DEFAULT_CLASSIFIER.filter_relevant_errors(errors_by_index)


def contains_persistent_errors(
    errors_by_index: Mapping[int, Sequence[Optional[RowError]]],
) -> bool:
    return DEFAULT_CLASSIFIER.contains_persistent_errors(errors_by_index)
