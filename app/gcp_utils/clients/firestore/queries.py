"""Paginated Firestore queries.

Large result sets are read with ``start_after(last_snapshot)`` cursors, one
page at a time, so memory stays bounded by one page.

Usage:
    from gcp_utils.clients.firestore import get_query_document_snapshots

    query = client.collection("sessions").where(filter=expired).order_by("created")
    for snapshot in get_query_document_snapshots(query):
        handle(snapshot.to_dict())
"""

from typing import Any, Iterator, List, Optional

import structlog

from gcp_utils.configuration import get_settings
from gcp_utils.operations.classifiers import ErrorClassifier
from gcp_utils.resilience.cancellation import CancellationToken, Seconds
from gcp_utils.resilience.pagination import PaginatedReader

logger = structlog.get_logger()

QUERY_BATCH_SIZE = 1000


class FirestoreQuerySource:
    """Fetches pages of a Firestore query after a document snapshot cursor.

    Args:
        query: google.cloud.firestore.Query or CollectionReference
    """

    def __init__(self, query: Any) -> None:
        self.query = query

    def fetch(self, cursor: Optional[Any], limit: int) -> List[Any]:
        query = self.query if cursor is None else self.query.start_after(cursor)
        return list(query.limit(limit).get())

    __call__ = fetch


def get_query_snapshots(
    query: Any,
    page_size: Optional[int] = None,
    cancellation_token: Optional[CancellationToken] = None,
    call_timeout: Optional[Seconds] = None,
    classifier: Optional[ErrorClassifier] = None,
) -> PaginatedReader:
    """Read a query page by page.

    Args:
        query: Firestore query; needs a stable order for cursors to be exact
        page_size: Documents per page, FIRESTORE_QUERY_PAGE_SIZE by default
        cancellation_token: Optional token aborting the read between or during pages
        call_timeout: Optional bound on each page fetch,
            FIRESTORE_CALL_TIMEOUT_SECONDS by default
        classifier: ErrorClassifier used to classify fetch failures

    Returns:
        A one-pass PaginatedReader yielding non-empty Page objects of
        DocumentSnapshot
    """
    settings = get_settings().firestore
    if page_size is None:
        page_size = settings.query_page_size
    if call_timeout is None:
        call_timeout = settings.call_timeout_seconds
    return PaginatedReader(
        FirestoreQuerySource(query),
        page_size=page_size,
        classifier=classifier,
        cancellation_token=cancellation_token,
        call_timeout=call_timeout,
        operation="firestore_query",
    )


def get_query_document_snapshots(
    query: Any,
    page_size: Optional[int] = None,
    cancellation_token: Optional[CancellationToken] = None,
    call_timeout: Optional[Seconds] = None,
) -> Iterator[Any]:
    """Yield every document snapshot of a query, in query order."""
    reader = get_query_snapshots(
        query,
        page_size=page_size,
        cancellation_token=cancellation_token,
        call_timeout=call_timeout,
    )
    return reader.items()
