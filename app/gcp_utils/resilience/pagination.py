"""Cursor-based paginated reader.

Streams a large, store-ordered result set page by page with a single mutable
cursor. Pages are fetched strictly one after the other: the next fetch is only
issued when the caller pulls the next page, so memory stays bounded by one page
and the cursor is never read and written concurrently.
"""

from dataclasses import dataclass
from typing import Callable, Generic, Iterator, Optional, Sequence, Tuple, TypeVar

import structlog

from gcp_utils.operations.classifiers import ErrorClassifier
from gcp_utils.operations.errors import (
    CancellationFailure,
    ClientPersistentFailure,
    StoreOperationError,
    TransientStoreFailure,
)
from gcp_utils.resilience.cancellation import (
    CancellationToken,
    Seconds,
    run_cancellable,
)

logger = structlog.get_logger()

T = TypeVar("T")

# fetch(cursor, limit): at most ``limit`` items strictly after ``cursor``
# (from the start when cursor is None), in store order.
FetchPage = Callable[[Optional[T], int], Sequence[T]]

DEFAULT_PAGE_SIZE = 1000


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a paginated read, in store order."""

    items: Tuple[T, ...]

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def last(self) -> Optional[T]:
        return self.items[-1] if self.items else None

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[T]:
        return iter(self.items)


def wrap_store_failure(
    exc: Exception,
    classifier: ErrorClassifier,
    message: str,
    operation: str,
    index: int,
    details: Optional[dict] = None,
) -> StoreOperationError:
    """Wrap a store exception keeping its transient/persistent classification."""
    if isinstance(exc, StoreOperationError):
        return exc
    error_class = (
        TransientStoreFailure
        if classifier.classify_exception(exc).is_retryable
        else ClientPersistentFailure
    )
    error = error_class(
        f"{message}: {exc}",
        operation=operation,
        attempt=index,
        details={"error_type": type(exc).__name__, **(details or {})},
    )
    error.__cause__ = exc
    return error


class PaginatedReader(Generic[T]):
    """One-pass iterator of pages over a cursor-paginated store query.

    Each ``next()`` issues exactly one fetch. The first empty page ends the
    sequence for good: the reader is not restartable, and a fresh reader must
    be built to scan again. A store failure or a cancellation also ends it.

    Args:
        fetch: FetchPage callable performing one store query
        page_size: Maximum items per fetch
        classifier: ErrorClassifier used to classify store failures
        cancellation_token: Optional token checked before and during each fetch
        call_timeout: Optional bound on each fetch (timedelta or seconds)
        operation: Operation name used in logs and errors

    Example:
        reader = PaginatedReader(lambda cursor, limit: store.query(cursor, limit))
        for page in reader:
            process(page.items)
    """

    def __init__(
        self,
        fetch: FetchPage,
        page_size: int = DEFAULT_PAGE_SIZE,
        classifier: Optional[ErrorClassifier] = None,
        cancellation_token: Optional[CancellationToken] = None,
        call_timeout: Optional[Seconds] = None,
        operation: str = "paginated_read",
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self._fetch = fetch
        self.page_size = page_size
        self.classifier = classifier or ErrorClassifier()
        self.cancellation_token = cancellation_token
        self.call_timeout = call_timeout
        self.operation = operation
        self._cursor: Optional[T] = None
        self._fetch_count = 0
        self._items_read = 0
        self._exhausted = False
        self._logger = logger.bind(
            component="paginated_reader", operation=operation, page_size=page_size
        )

    @property
    def cursor(self) -> Optional[T]:
        """Last item of the last non-empty page, None before the first one."""
        return self._cursor

    @property
    def fetch_count(self) -> int:
        """Number of fetches issued, the final empty one included."""
        return self._fetch_count

    @property
    def is_exhausted(self) -> bool:
        return self._exhausted

    def __iter__(self) -> "PaginatedReader[T]":
        return self

    def __next__(self) -> Page[T]:
        if self._exhausted:
            raise StopIteration

        page_index = self._fetch_count
        cursor = self._cursor
        try:
            if self.cancellation_token is not None:
                self.cancellation_token.raise_if_cancelled(self.operation, page_index)
            items = run_cancellable(
                lambda: self._fetch(cursor, self.page_size),
                token=self.cancellation_token,
                timeout=self.call_timeout,
                operation=self.operation,
                attempt=page_index,
            )
        except CancellationFailure:
            self._exhausted = True
            self._logger.warning("paginated_read_cancelled", page_index=page_index)
            raise
        except Exception as exc:
            self._exhausted = True
            error = wrap_store_failure(
                exc,
                self.classifier,
                f"{self.operation} failed fetching page {page_index}",
                self.operation,
                page_index,
                details={"items_read": self._items_read},
            )
            self._logger.error(
                "paginated_read_failed",
                page_index=page_index,
                items_read=self._items_read,
                classification=getattr(error.classification, "value", None),
                error=str(exc),
            )
            raise error

        self._fetch_count += 1
        page: Page[T] = Page(tuple(items or ()))
        if page.is_empty:
            self._exhausted = True
            self._logger.debug(
                "paginated_read_complete",
                pages=page_index,
                items_read=self._items_read,
            )
            raise StopIteration

        self._cursor = page.last
        self._items_read += len(page)
        self._logger.debug(
            "paginated_read_page",
            page_index=page_index,
            page_items=len(page),
        )
        return page

    def items(self) -> Iterator[T]:
        """Flatten the remaining pages into items, preserving store order."""
        for page in self:
            yield from page.items
