"""Firestore adapters: id validation, paginated queries and batched deletes."""

from gcp_utils.clients.firestore.deletes import (
    WRITE_BATCH_SIZE,
    shallow_delete_document_references,
    shallow_delete_query,
)
from gcp_utils.clients.firestore.ids import is_invalid_id, is_valid_id
from gcp_utils.clients.firestore.queries import (
    QUERY_BATCH_SIZE,
    FirestoreQuerySource,
    get_query_document_snapshots,
    get_query_snapshots,
)

__all__ = [
    "QUERY_BATCH_SIZE",
    "WRITE_BATCH_SIZE",
    "FirestoreQuerySource",
    "get_query_document_snapshots",
    "get_query_snapshots",
    "is_invalid_id",
    "is_valid_id",
    "shallow_delete_document_references",
    "shallow_delete_query",
]
