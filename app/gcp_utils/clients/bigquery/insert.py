"""BigQuery streaming inserts with bounded retries.

Each attempt is one ``insert_rows_json`` call. Row errors returned by the API
and exceptions raised by the client are classified by the retry scheduler:
transient server errors, client side I/O errors and row errors without a
persistent reason are retried; everything else fails fast.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

import structlog

from gcp_utils.configuration import get_settings
from gcp_utils.configuration.google import BigQuerySettings
from gcp_utils.logging import bind_operation_context
from gcp_utils.operations.classifiers import ErrorClassifier
from gcp_utils.operations.errors import PartialPersistentFailure
from gcp_utils.operations.result import WriteOutcome, row_errors_from_insert_errors
from gcp_utils.resilience.cancellation import CancellationToken, Seconds
from gcp_utils.resilience.retry import (
    BackoffFunction,
    ElapsedTimeConsumer,
    RetryPolicy,
    RetryReceipt,
    RetryScheduler,
    no_backoff,
)
from gcp_utils.utils.serialization import stringify

logger = structlog.get_logger()

# Recommended number of rows per streaming insert request
STREAMING_INSERT_BATCH_SIZE = 500

OPERATION = "bigquery_insert_all"


@dataclass
class InsertAllWithRetriesOptions:
    """Retry options for insert_all_with_retries.

    Attributes:
        retry_count: Total insert attempts, the first one included
        backoff: Wait before the next attempt, by zero-based failed attempt
        elapsed_time_consumer: Called with the duration of the successful call
        classifier: ErrorClassifier deciding which failures are retried
        timeout: Optional bound on each insert call (timedelta or seconds)
    """

    retry_count: int = 1
    backoff: BackoffFunction = field(default=no_backoff)
    elapsed_time_consumer: Optional[ElapsedTimeConsumer] = None
    classifier: ErrorClassifier = field(default_factory=ErrorClassifier)
    timeout: Optional[Seconds] = None

    def __post_init__(self) -> None:
        if self.retry_count < 1:
            raise ValueError("retry_count must be at least 1")

    @classmethod
    def from_settings(
        cls,
        settings: Optional[BigQuerySettings] = None,
        elapsed_time_consumer: Optional[ElapsedTimeConsumer] = None,
    ) -> "InsertAllWithRetriesOptions":
        """Build options from BIGQUERY_* settings, exponential backoff included."""
        if settings is None:
            settings = get_settings().bigquery
        policy = RetryPolicy.from_settings(settings)
        return cls(
            retry_count=policy.max_attempts,
            backoff=policy.backoff,
            elapsed_time_consumer=elapsed_time_consumer,
            classifier=ErrorClassifier.from_settings(settings),
            timeout=settings.insert_timeout_seconds,
        )

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(max_attempts=self.retry_count, backoff=self.backoff)


def insert_all_with_retries(
    client: Any,
    table: Any,
    rows: Sequence[Mapping[str, Any]],
    options: Optional[InsertAllWithRetriesOptions] = None,
    row_ids: Optional[Sequence[Optional[str]]] = None,
    cancellation_token: Optional[CancellationToken] = None,
    timeout: Optional[Seconds] = None,
) -> RetryReceipt:
    """Stream rows into a table, retrying transient failures.

    Args:
        client: google.cloud.bigquery.Client
        table: Table, TableReference or "project.dataset.table" string
        rows: JSON-compatible rows, sent unchanged on every attempt
        options: InsertAllWithRetriesOptions, single attempt by default
        row_ids: Insert ids used by BigQuery for best-effort dedup, one per
            row. Generated once when omitted, so retries reuse the same ids
        cancellation_token: Optional token aborting the retries
        timeout: Bound on each insert call, overrides options.timeout

    Returns:
        RetryReceipt with the number of attempts and the successful call duration

    Raises:
        ClientPersistentFailure: The client raised a non-retryable error
        ValueError: row_ids and rows differ in length
        PartialPersistentFailure: Some rows were rejected with a persistent reason
        RetryExhaustedFailure: Every attempt failed with a retryable error
        CancellationFailure: The token was cancelled mid-flight
    """
    options = options or InsertAllWithRetriesOptions()
    rows = list(rows)
    table_name = str(table)
    if row_ids is None:
        # Same insert ids on every attempt
        row_ids = [str(uuid.uuid4()) for _ in rows]
    else:
        row_ids = list(row_ids)
        if len(row_ids) != len(rows):
            raise ValueError("row_ids must hold one insert id per row")

    def _insert() -> WriteOutcome:
        insert_errors = client.insert_rows_json(table, rows, row_ids=row_ids)
        return WriteOutcome.partial_failure(
            row_errors_from_insert_errors(insert_errors)
        )

    scheduler = RetryScheduler(
        options.to_policy(),
        classifier=options.classifier,
        elapsed_time_consumer=options.elapsed_time_consumer,
        cancellation_token=cancellation_token,
        call_timeout=timeout if timeout is not None else options.timeout,
        operation=OPERATION,
    )
    with bind_operation_context(OPERATION, table=table_name):
        try:
            receipt = scheduler.run(_insert)
        except PartialPersistentFailure as e:
            logger.error(
                "bigquery_insert_persistent_error",
                table=table_name,
                insert_errors=e.relevant_errors_json,
                rows_stringify=stringify(rows),
            )
            raise
        logger.debug(
            "bigquery_insert_complete",
            table=table_name,
            rows=len(rows),
            attempts=receipt.attempts,
        )
        return receipt
