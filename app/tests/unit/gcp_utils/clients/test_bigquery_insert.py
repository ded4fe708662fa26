"""Unit tests for gcp_utils.clients.bigquery.insert.

Tests cover:
- insert_rows_json calls per attempt and row id forwarding
- Retry of server side and client side I/O errors
- Persistent row errors logged with the row contents
- InsertAllWithRetriesOptions validation and settings loading
"""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from gcp_utils.clients.bigquery.insert import (
    STREAMING_INSERT_BATCH_SIZE,
    InsertAllWithRetriesOptions,
    insert_all_with_retries,
)
from gcp_utils.configuration.google import BigQuerySettings
from gcp_utils.operations.errors import (
    ClientPersistentFailure,
    PartialPersistentFailure,
    RetryExhaustedFailure,
)

TABLE = "my-project.analytics.events"
ROWS = [{"user_id": "u1", "age": 31}, {"user_id": "u2", "age": "unknown"}]


@pytest.fixture
def bigquery_client():
    client = MagicMock()
    client.insert_rows_json.return_value = []
    return client


@pytest.mark.unit
class TestInsertAllWithRetries:
    """Tests for insert_all_with_retries."""

    def test_single_successful_insert(self, bigquery_client):
        consumer = MagicMock()
        options = InsertAllWithRetriesOptions(elapsed_time_consumer=consumer)

        receipt = insert_all_with_retries(bigquery_client, TABLE, ROWS, options)

        assert receipt.attempts == 1
        bigquery_client.insert_rows_json.assert_called_once()
        call = bigquery_client.insert_rows_json.call_args
        assert call.args == (TABLE, ROWS)
        assert len(call.kwargs["row_ids"]) == len(ROWS)
        assert None not in call.kwargs["row_ids"]
        consumer.assert_called_once()

    def test_generated_row_ids_are_reused_across_attempts(self, bigquery_client):
        bigquery_client.insert_rows_json.side_effect = [
            ConnectionResetError("connection reset by peer"),
            [{"index": 0, "errors": [{"reason": "backendError", "message": "timed out"}]}],
            [],
        ]
        options = InsertAllWithRetriesOptions(retry_count=3)

        insert_all_with_retries(bigquery_client, TABLE, ROWS, options)

        sent_ids = [
            call.kwargs["row_ids"]
            for call in bigquery_client.insert_rows_json.call_args_list
        ]
        assert len(sent_ids) == 3
        assert sent_ids[0] == sent_ids[1] == sent_ids[2]
        assert len(set(sent_ids[0])) == len(ROWS)

    def test_row_ids_must_match_rows(self, bigquery_client):
        with pytest.raises(ValueError):
            insert_all_with_retries(bigquery_client, TABLE, ROWS, row_ids=["a"])

        bigquery_client.insert_rows_json.assert_not_called()

    def test_forwards_row_ids(self, bigquery_client):
        insert_all_with_retries(bigquery_client, TABLE, ROWS, row_ids=["a", "b"])

        bigquery_client.insert_rows_json.assert_called_once_with(
            TABLE, ROWS, row_ids=["a", "b"]
        )

    def test_accepts_a_row_iterator(self, bigquery_client):
        insert_all_with_retries(bigquery_client, TABLE, iter(ROWS))

        assert bigquery_client.insert_rows_json.call_args.args[1] == ROWS

    def test_retries_server_side_errors(self, bigquery_client):
        bigquery_client.insert_rows_json.side_effect = [
            RuntimeError("502 Bad Gateway"),
            [],
        ]
        options = InsertAllWithRetriesOptions(retry_count=3)

        receipt = insert_all_with_retries(bigquery_client, TABLE, ROWS, options)

        assert receipt.attempts == 2
        assert bigquery_client.insert_rows_json.call_count == 2

    def test_retries_client_side_io_errors(self, bigquery_client):
        bigquery_client.insert_rows_json.side_effect = [
            ConnectionResetError("connection reset by peer"),
            [],
        ]
        options = InsertAllWithRetriesOptions(retry_count=2)

        receipt = insert_all_with_retries(bigquery_client, TABLE, ROWS, options)

        assert receipt.attempts == 2

    def test_does_not_retry_client_errors(self, bigquery_client):
        bigquery_client.insert_rows_json.side_effect = TypeError(
            "Object of type set is not JSON serializable"
        )
        options = InsertAllWithRetriesOptions(retry_count=5)

        with pytest.raises(ClientPersistentFailure):
            insert_all_with_retries(bigquery_client, TABLE, ROWS, options)

        assert bigquery_client.insert_rows_json.call_count == 1

    def test_retries_stopped_rows_until_exhausted(self, bigquery_client):
        bigquery_client.insert_rows_json.return_value = [
            {"index": 0, "errors": [{"reason": "stopped", "message": ""}]},
        ]
        options = InsertAllWithRetriesOptions(retry_count=3)

        with pytest.raises(RetryExhaustedFailure) as exc_info:
            insert_all_with_retries(bigquery_client, TABLE, ROWS, options)

        assert bigquery_client.insert_rows_json.call_count == 3
        assert exc_info.value.attempts == 3

    @patch("gcp_utils.clients.bigquery.insert.logger")
    def test_persistent_row_errors_log_rows(self, mock_logger, bigquery_client):
        bigquery_client.insert_rows_json.return_value = [
            {"index": 0, "errors": [{"reason": "stopped", "message": ""}]},
            {
                "index": 1,
                "errors": [
                    {
                        "reason": "invalid",
                        "location": "age",
                        "message": "Cannot convert value to integer",
                    }
                ],
            },
        ]
        options = InsertAllWithRetriesOptions(retry_count=3)

        with pytest.raises(PartialPersistentFailure) as exc_info:
            insert_all_with_retries(bigquery_client, TABLE, ROWS, options)

        assert bigquery_client.insert_rows_json.call_count == 1
        assert list(exc_info.value.relevant_errors) == [1]
        mock_logger.error.assert_called_once()
        kwargs = mock_logger.error.call_args.kwargs
        assert mock_logger.error.call_args.args[0] == "bigquery_insert_persistent_error"
        assert kwargs["table"] == TABLE
        assert '"unknown"' in kwargs["rows_stringify"]
        assert kwargs["insert_errors"] == exc_info.value.relevant_errors_json

    @patch("gcp_utils.resilience.cancellation.time.sleep")
    def test_backoff_between_attempts(self, mock_sleep, bigquery_client):
        bigquery_client.insert_rows_json.side_effect = [
            RuntimeError("Read timed out"),
            [],
        ]
        options = InsertAllWithRetriesOptions(
            retry_count=2, backoff=lambda attempt: timedelta(seconds=3)
        )

        insert_all_with_retries(bigquery_client, TABLE, ROWS, options)

        mock_sleep.assert_called_once_with(3.0)


@pytest.mark.unit
class TestInsertAllWithRetriesOptions:
    """Tests for InsertAllWithRetriesOptions."""

    def test_defaults(self):
        options = InsertAllWithRetriesOptions()

        assert options.retry_count == 1
        assert options.backoff(0) == timedelta(0)
        assert options.elapsed_time_consumer is None
        assert options.timeout is None

    def test_retry_count_must_be_positive(self):
        with pytest.raises(ValueError):
            InsertAllWithRetriesOptions(retry_count=0)

    def test_from_settings(self):
        settings = BigQuerySettings(
            insert_max_attempts=5,
            insert_backoff_base_seconds=2,
            insert_backoff_max_seconds=10,
            insert_timeout_seconds=20,
            transient_error_markers=["backendError"],
        )

        options = InsertAllWithRetriesOptions.from_settings(settings)

        assert options.retry_count == 5
        assert options.backoff(0) == timedelta(seconds=2)
        assert options.backoff(4) == timedelta(seconds=10)
        assert options.timeout == 20
        assert options.classifier.transient_markers == ("backendError",)

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("BIGQUERY_INSERT_MAX_ATTEMPTS", "7")

        options = InsertAllWithRetriesOptions.from_settings()

        assert options.retry_count == 7

    def test_batch_size_constant(self):
        assert STREAMING_INSERT_BATCH_SIZE == 500
