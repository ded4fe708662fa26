"""Batched Firestore deletes.

Documents are deleted in write batches of at most 500 operations, committed
one after the other. Sub-collections are NOT deleted.
"""

from typing import Any, Iterable, Optional, Sequence

import structlog

from gcp_utils.clients.firestore.queries import get_query_document_snapshots
from gcp_utils.configuration import get_settings
from gcp_utils.operations.classifiers import ErrorClassifier
from gcp_utils.resilience.batching import BatchedCommitter
from gcp_utils.resilience.cancellation import CancellationToken, Seconds

logger = structlog.get_logger()

WRITE_BATCH_SIZE = 500


def _batch_deleter(client: Any):
    def commit_batch(references: Sequence[Any]) -> Any:
        batch = client.batch()
        for reference in references:
            batch.delete(reference)
        return batch.commit()

    return commit_batch


def shallow_delete_document_references(
    client: Any,
    references: Iterable[Any],
    batch_size: Optional[int] = None,
    cancellation_token: Optional[CancellationToken] = None,
    call_timeout: Optional[Seconds] = None,
    classifier: Optional[ErrorClassifier] = None,
) -> int:
    """Delete documents in batches. Does NOT delete sub-collections.

    Args:
        client: google.cloud.firestore.Client every reference belongs to
        references: DocumentReference objects, consumed lazily
        batch_size: Deletes per write batch, FIRESTORE_WRITE_BATCH_SIZE by default
        cancellation_token: Optional token aborting between or during commits
        call_timeout: Optional bound on each commit,
            FIRESTORE_CALL_TIMEOUT_SECONDS by default
        classifier: ErrorClassifier used to classify commit failures

    Returns:
        Number of deleted documents
    """
    settings = get_settings().firestore
    if batch_size is None:
        batch_size = settings.write_batch_size
    if batch_size > WRITE_BATCH_SIZE:
        raise ValueError(
            f"Firestore write batches hold at most {WRITE_BATCH_SIZE} writes"
        )
    if call_timeout is None:
        call_timeout = settings.call_timeout_seconds
    committer = BatchedCommitter(
        _batch_deleter(client),
        max_batch_size=batch_size,
        classifier=classifier,
        cancellation_token=cancellation_token,
        call_timeout=call_timeout,
        operation="firestore_shallow_delete",
    )
    deleted = committer.commit(references)
    logger.info(
        "firestore_documents_deleted",
        deleted=deleted,
        batches=committer.batches_committed,
    )
    return deleted


def shallow_delete_query(
    client: Any,
    query: Any,
    batch_size: Optional[int] = None,
    cancellation_token: Optional[CancellationToken] = None,
    call_timeout: Optional[Seconds] = None,
) -> int:
    """Delete every document matched by a query. Does NOT delete sub-collections.

    Reads and deletes are interleaved, so only one page of snapshots and one
    write batch are held at any time.

    Returns:
        Number of deleted documents
    """
    snapshots = get_query_document_snapshots(
        query,
        cancellation_token=cancellation_token,
        call_timeout=call_timeout,
    )
    return shallow_delete_document_references(
        client,
        (snapshot.reference for snapshot in snapshots),
        batch_size=batch_size,
        cancellation_token=cancellation_token,
        call_timeout=call_timeout,
    )
