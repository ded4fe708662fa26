"""Google Cloud integration settings."""

import json
from typing import Annotated, Any, Optional

from pydantic import Field, field_validator
from pydantic_settings import NoDecode
import structlog

from gcp_utils.configuration.base import IntegrationSettings

logger = structlog.stdlib.get_logger().bind(component="config.google")

DEFAULT_TRANSIENT_ERROR_MARKERS = ("timed out", "retrying limits", "502")

# Firestore rejects write batches with more than 500 operations.
FIRESTORE_MAX_WRITE_BATCH_SIZE = 500


class BigQuerySettings(IntegrationSettings):
    """BigQuery streaming insert configuration.

    Environment Variables:
        BIGQUERY_INSERT_MAX_ATTEMPTS: Total insert attempts, first one included
        BIGQUERY_INSERT_BACKOFF_BASE_SECONDS: Base delay for exponential backoff
        BIGQUERY_INSERT_BACKOFF_MAX_SECONDS: Cap for exponential backoff
        BIGQUERY_INSERT_TIMEOUT_SECONDS: Optional bound on each insert call
        BIGQUERY_TRANSIENT_ERROR_MARKERS: JSON list or comma-separated substrings
            that mark an exception message as transient

    Exponential Backoff:
        Delay calculation: min(base * (2 ^ attempt), max)

    Example:
        ```python
        from gcp_utils.configuration import get_settings

        settings = get_settings()
        attempts = settings.bigquery.insert_max_attempts
        ```
    """

    insert_max_attempts: int = Field(
        default=3,
        alias="BIGQUERY_INSERT_MAX_ATTEMPTS",
        description="Total insertAll attempts before giving up",
    )
    insert_backoff_base_seconds: float = Field(
        default=1.0,
        alias="BIGQUERY_INSERT_BACKOFF_BASE_SECONDS",
        description="Base delay for exponential backoff (seconds)",
    )
    insert_backoff_max_seconds: float = Field(
        default=30.0,
        alias="BIGQUERY_INSERT_BACKOFF_MAX_SECONDS",
        description="Maximum delay for exponential backoff (seconds)",
    )
    insert_timeout_seconds: Optional[float] = Field(
        default=None,
        alias="BIGQUERY_INSERT_TIMEOUT_SECONDS",
        description="Bound on the wait for a single insertAll call (seconds)",
    )
    transient_error_markers: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_TRANSIENT_ERROR_MARKERS,
        alias="BIGQUERY_TRANSIENT_ERROR_MARKERS",
        description="Case-insensitive substrings marking an error as transient",
    )

    @field_validator("insert_max_attempts")
    @classmethod
    def _validate_max_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("BIGQUERY_INSERT_MAX_ATTEMPTS must be at least 1")
        return v

    @field_validator("transient_error_markers", mode="before")
    @classmethod
    def _parse_markers(cls, v: Optional[Any]) -> tuple[str, ...]:
        """Parse markers from a JSON list, a comma-separated string or a sequence."""
        if v is None:
            return DEFAULT_TRANSIENT_ERROR_MARKERS
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("["):
                try:
                    v = json.loads(s)
                except (json.JSONDecodeError, ValueError) as e:
                    logger.error("failed_to_parse_transient_markers", error=str(e))
                    raise ValueError(
                        f"BIGQUERY_TRANSIENT_ERROR_MARKERS must be valid JSON: {e}"
                    )
            else:
                v = s.split(",")
        if isinstance(v, (list, tuple, set, frozenset)):
            markers = tuple(str(m).strip() for m in v if str(m).strip())
            if not markers:
                raise ValueError("BIGQUERY_TRANSIENT_ERROR_MARKERS must not be empty")
            return markers
        raise ValueError("BIGQUERY_TRANSIENT_ERROR_MARKERS must be a list or a string")


class FirestoreSettings(IntegrationSettings):
    """Firestore pagination and batched write configuration.

    Environment Variables:
        FIRESTORE_QUERY_PAGE_SIZE: Documents fetched per paginated query
        FIRESTORE_WRITE_BATCH_SIZE: Writes per committed batch (max 500)
        FIRESTORE_CALL_TIMEOUT_SECONDS: Optional bound on each query/commit call
    """

    query_page_size: int = Field(
        default=1000,
        alias="FIRESTORE_QUERY_PAGE_SIZE",
        description="Documents fetched per paginated query",
    )
    write_batch_size: int = Field(
        default=FIRESTORE_MAX_WRITE_BATCH_SIZE,
        alias="FIRESTORE_WRITE_BATCH_SIZE",
        description="Writes per committed batch",
    )
    call_timeout_seconds: Optional[float] = Field(
        default=None,
        alias="FIRESTORE_CALL_TIMEOUT_SECONDS",
        description="Bound on the wait for a single query or commit (seconds)",
    )

    @field_validator("query_page_size")
    @classmethod
    def _validate_page_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("FIRESTORE_QUERY_PAGE_SIZE must be at least 1")
        return v

    @field_validator("write_batch_size")
    @classmethod
    def _validate_batch_size(cls, v: int) -> int:
        if not 1 <= v <= FIRESTORE_MAX_WRITE_BATCH_SIZE:
            raise ValueError(
                f"FIRESTORE_WRITE_BATCH_SIZE must be between 1 and "
                f"{FIRESTORE_MAX_WRITE_BATCH_SIZE}"
            )
        return v


class GoogleAuthSettings(IntegrationSettings):
    """Service account credentials and access token cache configuration.

    Environment Variables:
        GCP_SERVICE_ACCOUNT_KEY: Service account JSON key content
        GOOGLE_ACCESS_TOKEN_CACHE_SIZE: Maximum cached tokens (0 = unbounded)
        GOOGLE_ACCESS_TOKEN_CACHE_SECONDS: Token cache TTL (unset = no expiry)
    """

    GCP_SERVICE_ACCOUNT_KEY: str = Field(default="", alias="GCP_SERVICE_ACCOUNT_KEY")
    access_token_cache_size: int = Field(
        default=0,
        alias="GOOGLE_ACCESS_TOKEN_CACHE_SIZE",
        description="Maximum number of cached access tokens (0 = unbounded)",
    )
    access_token_cache_seconds: Optional[float] = Field(
        default=None,
        alias="GOOGLE_ACCESS_TOKEN_CACHE_SECONDS",
        description="Time-to-live for cached access tokens (seconds)",
    )
