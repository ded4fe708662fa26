"""Batched sequential committer.

Groups a lazy sequence of mutation keys into bounded batches and commits them
one at a time, so that at most one commit is outstanding and memory stays
bounded by ``max_batch_size`` keys.
"""

from typing import Any, Callable, Generic, Iterable, List, Optional, Sequence, TypeVar

import structlog

from gcp_utils.operations.classifiers import ErrorClassifier
from gcp_utils.operations.errors import CancellationFailure, OverflowFailure
from gcp_utils.resilience.cancellation import (
    CancellationToken,
    Seconds,
    run_cancellable,
)
from gcp_utils.resilience.pagination import wrap_store_failure

logger = structlog.get_logger()

K = TypeVar("K")

# commit_batch(batch): one atomic multi-key write, raises on failure
CommitBatch = Callable[[Sequence[K]], Any]

DEFAULT_MAX_BATCH_SIZE = 500
MAX_COMMIT_TOTAL = 2**63 - 1


def checked_add(total: int, count: int, limit: int = MAX_COMMIT_TOTAL) -> int:
    """Add count to total, failing instead of exceeding the 64-bit bound.

    Raises:
        OverflowFailure: If the sum would exceed limit
    """
    if count > limit - total:
        raise OverflowFailure(
            f"Commit total overflow: {total} + {count} exceeds {limit}",
            details={"total": total, "count": count},
        )
    return total + count


class BatchedCommitter(Generic[K]):
    """Commits keys in bounded batches, strictly one batch at a time.

    All keys in a batch must belong to the same store instance. When
    ``store_of`` is given this precondition is checked and a mixed batch raises
    ValueError before anything is committed. Instances are single-use.

    Args:
        commit_batch: CommitBatch callable performing one atomic write
        max_batch_size: Maximum keys per batch
        store_of: Optional function returning the store instance of a key
        classifier: ErrorClassifier used to classify commit failures
        cancellation_token: Optional token checked before and during each commit
        call_timeout: Optional bound on each commit (timedelta or seconds)
        operation: Operation name used in logs and errors

    Example:
        committer = BatchedCommitter(store.delete_many, max_batch_size=500)
        deleted = committer.commit(key for key in keys_to_delete)
    """

    def __init__(
        self,
        commit_batch: CommitBatch,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
        store_of: Optional[Callable[[K], Any]] = None,
        classifier: Optional[ErrorClassifier] = None,
        cancellation_token: Optional[CancellationToken] = None,
        call_timeout: Optional[Seconds] = None,
        operation: str = "batched_commit",
    ) -> None:
        if max_batch_size < 1:
            raise ValueError("max_batch_size must be at least 1")
        self._commit_batch = commit_batch
        self.max_batch_size = max_batch_size
        self.store_of = store_of
        self.classifier = classifier or ErrorClassifier()
        self.cancellation_token = cancellation_token
        self.call_timeout = call_timeout
        self.operation = operation
        self._total = 0
        self._batches_committed = 0
        self._started = False
        self._logger = logger.bind(
            component="batched_committer",
            operation=operation,
            max_batch_size=max_batch_size,
        )

    @property
    def total(self) -> int:
        """Number of keys committed so far."""
        return self._total

    @property
    def batches_committed(self) -> int:
        return self._batches_committed

    def commit(self, keys: Iterable[K]) -> int:
        """Commit every key of the input in batches.

        Args:
            keys: Lazy sequence of keys, consumed once

        Returns:
            Total number of committed keys

        Raises:
            TransientStoreFailure | ClientPersistentFailure: A commit failed
            CancellationFailure: The token was cancelled mid-flight
            OverflowFailure: The total would exceed the 64-bit bound
            ValueError: A batch mixes keys of different stores
            RuntimeError: If the committer was already used
        """
        if self._started:
            raise RuntimeError("BatchedCommitter instances are single-use")
        self._started = True

        buffer: List[K] = []
        try:
            for key in keys:
                buffer.append(key)
                if len(buffer) >= self.max_batch_size:
                    self._commit(buffer)
                    buffer = []
            if buffer:
                self._commit(buffer)
        except CancellationFailure:
            self._logger.warning(
                "batched_commit_cancelled",
                batches_committed=self._batches_committed,
                total=self._total,
            )
            raise

        self._logger.info(
            "batched_commit_complete",
            batches_committed=self._batches_committed,
            total=self._total,
        )
        return self._total

    def _commit(self, keys: List[K]) -> None:
        batch = tuple(keys)
        batch_index = self._batches_committed
        self._check_same_store(batch, batch_index)
        if self.cancellation_token is not None:
            self.cancellation_token.raise_if_cancelled(self.operation, batch_index)

        try:
            run_cancellable(
                lambda: self._commit_batch(batch),
                token=self.cancellation_token,
                timeout=self.call_timeout,
                operation=self.operation,
                attempt=batch_index,
            )
        except CancellationFailure:
            raise
        except Exception as exc:
            error = wrap_store_failure(
                exc,
                self.classifier,
                f"{self.operation} failed committing batch {batch_index}",
                self.operation,
                batch_index,
                details={"batch_size": len(batch), "total_committed": self._total},
            )
            self._logger.error(
                "batched_commit_failed",
                batch_index=batch_index,
                batch_size=len(batch),
                total_committed=self._total,
                classification=getattr(error.classification, "value", None),
                error=str(exc),
            )
            raise error

        self._total = checked_add(self._total, len(batch))
        self._batches_committed += 1
        self._logger.debug(
            "batch_committed",
            batch_index=batch_index,
            batch_size=len(batch),
            total=self._total,
        )

    def _check_same_store(self, batch: Sequence[K], batch_index: int) -> None:
        if self.store_of is None:
            return
        store = self.store_of(batch[0])
        for key in batch[1:]:
            if self.store_of(key) is not store:
                raise ValueError(
                    f"{self.operation} batch {batch_index} mixes keys of "
                    "different store instances"
                )
