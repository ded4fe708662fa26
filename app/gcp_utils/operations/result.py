"""Write outcome dataclasses.

Uniform result type returned by store write actions driven by the retry
scheduler.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from gcp_utils.operations.status import OutcomeStatus

NOISE_REASON = "stopped"

RowErrors = Mapping[int, Sequence["RowError"]]


@dataclass(frozen=True)
class RowError:
    """A single row-level error reported by the store.

    Attributes:
        index: Position of the row in the write request
        reason: Machine reason code (e.g. "invalid", "stopped")
        message: Human-friendly description
        location: Optional field/column the error refers to
    """

    index: int
    reason: Optional[str]
    message: str = ""
    location: Optional[str] = None

    @property
    def is_noise(self) -> bool:
        """True for "stopped" errors, a side effect of a sibling row's failure."""
        return self.reason is not None and self.reason.lower() == NOISE_REASON


@dataclass
class WriteOutcome:
    """Uniform result returned from a store write attempt.

    Attributes:
        status: OutcomeStatus -- variant tag
        cause: Optional[BaseException] -- cause of a transient failure
        errors_by_index: row index -> row errors, for partial failures
        reason: Optional[str] -- description of a persistent failure
    """

    status: OutcomeStatus
    cause: Optional[BaseException] = None
    errors_by_index: Dict[int, List[RowError]] = field(default_factory=dict)
    reason: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS

    @classmethod
    def success(cls) -> "WriteOutcome":
        return cls(status=OutcomeStatus.SUCCESS)

    @classmethod
    def transient_failure(cls, cause: Optional[BaseException] = None) -> "WriteOutcome":
        return cls(status=OutcomeStatus.TRANSIENT_FAILURE, cause=cause)

    @classmethod
    def persistent_failure(cls, reason: str) -> "WriteOutcome":
        return cls(status=OutcomeStatus.PERSISTENT_FAILURE, reason=reason)

    @classmethod
    def partial_failure(cls, errors_by_index: Optional[RowErrors]) -> "WriteOutcome":
        """Create a partial-failure outcome from a row index -> errors mapping.

        An empty (or missing) mapping means the store reported no row errors
        and yields a SUCCESS outcome.

        Args:
            errors_by_index: Row errors keyed by input row position

        Returns:
            WriteOutcome with PARTIAL_FAILURE status, or SUCCESS
        """
        if not errors_by_index:
            return cls.success()
        return cls(
            status=OutcomeStatus.PARTIAL_FAILURE,
            errors_by_index={
                int(index): list(errors or [])
                for index, errors in errors_by_index.items()
            },
        )


def row_errors_from_insert_errors(
    insert_errors: Sequence[Mapping[str, Any]],
) -> Dict[int, List[RowError]]:
    """Convert the BigQuery insertAll error payload to row errors by index.

    Args:
        insert_errors: ``[{"index": 0, "errors": [{"reason": ..., "message": ...}]}]``
            as returned by ``Client.insert_rows_json``

    Returns:
        Dict mapping row index to its list of RowError
    """
    errors_by_index: Dict[int, List[RowError]] = {}
    for entry in insert_errors or []:
        index = int(entry["index"])
        row_errors = errors_by_index.setdefault(index, [])
        for error in entry.get("errors") or []:
            row_errors.append(
                RowError(
                    index=index,
                    reason=error.get("reason"),
                    message=error.get("message", ""),
                    location=error.get("location"),
                )
            )
    return errors_by_index
