"""Bounded retry-with-backoff controller for bulk writes.

The scheduler drives a write action through at most ``policy.max_attempts``
attempts and classifies every failure:

- CLIENT_PERSISTENT / PARTIAL_PERSISTENT -> FATAL, surfaced immediately
- TRANSIENT / PARTIAL_RETRYABLE -> RETRYING, or GIVEN_UP on the last attempt
- cancellation at any suspension point -> CANCELLED

State transitions:
    IDLE -> ATTEMPTING -> SUCCEEDED | RETRYING | GIVEN_UP | FATAL | CANCELLED
    RETRYING -> ATTEMPTING (after the backoff wait)

Backoff is only computed when another attempt follows, so GIVEN_UP never pays
a final wait. An attempt that timed out is still running on the store; the next
attempt starts only after it has returned, so at most one write is in flight.
"""

import time
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Callable, Optional

import structlog

from gcp_utils.operations.classifiers import ErrorClassifier
from gcp_utils.operations.errors import (
    CancellationFailure,
    ClientPersistentFailure,
    PartialPersistentFailure,
    PartialRetryableFailure,
    RetryExhaustedFailure,
    StoreCallTimeout,
    StoreOperationError,
    TransientStoreFailure,
)
from gcp_utils.operations.result import WriteOutcome
from gcp_utils.operations.status import FailureClass, OutcomeStatus
from gcp_utils.resilience.cancellation import (
    CancellationToken,
    Seconds,
    run_cancellable,
    sleep_cancellable,
    to_seconds,
    wait_for_settled,
)
from gcp_utils.resilience.retry.config import RetryPolicy
from gcp_utils.utils.serialization import stringify

logger = structlog.get_logger()

WriteAction = Callable[[], Optional[WriteOutcome]]
ElapsedTimeConsumer = Callable[[timedelta], None]


class RetryState(Enum):
    """Lifecycle states of a RetryScheduler."""

    IDLE = "idle"
    ATTEMPTING = "attempting"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    GIVEN_UP = "given_up"
    FATAL = "fatal"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class RetryReceipt:
    """Success signal of a scheduled write.

    Attributes:
        attempts: Number of attempts performed, the successful one included
        elapsed: Duration of the successful store call
    """

    attempts: int
    elapsed: timedelta


class RetryScheduler:
    """Drives bounded attempts of a write action.

    The write action returns a WriteOutcome (``None`` counts as success) or
    raises. Exactly one attempt is in flight at a time, timed-out attempts
    included. Instances are single-use.

    Args:
        policy: RetryPolicy with max attempts and backoff function
        classifier: ErrorClassifier deciding what is retryable
        elapsed_time_consumer: Telemetry sink called once on success
        cancellation_token: Optional token checked at every suspension point
        call_timeout: Optional bound on each write call (timedelta or seconds)
        operation: Operation name used in logs and errors

    Example:
        scheduler = RetryScheduler(
            RetryPolicy(max_attempts=3, backoff=exponential_backoff(1, 30)),
            elapsed_time_consumer=metrics.record_insert_latency,
        )
        receipt = scheduler.run(lambda: write_rows(rows))
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        classifier: Optional[ErrorClassifier] = None,
        elapsed_time_consumer: Optional[ElapsedTimeConsumer] = None,
        cancellation_token: Optional[CancellationToken] = None,
        call_timeout: Optional[Seconds] = None,
        operation: str = "write",
    ) -> None:
        self.policy = policy or RetryPolicy()
        self.classifier = classifier or ErrorClassifier()
        self.elapsed_time_consumer = elapsed_time_consumer
        self.cancellation_token = cancellation_token
        self.call_timeout = call_timeout
        self.operation = operation
        self._state = RetryState.IDLE
        self._attempts = 0
        self._logger = logger.bind(component="retry_scheduler", operation=operation)

    @property
    def state(self) -> RetryState:
        return self._state

    @property
    def attempts(self) -> int:
        return self._attempts

    def run(self, action: WriteAction) -> RetryReceipt:
        """Run the write action until success, fatal failure or exhaustion.

        Returns:
            RetryReceipt with the attempt count and the successful call's duration

        Raises:
            ClientPersistentFailure: Total failure that will not succeed on retry
            PartialPersistentFailure: Row errors with a persistent reason
            RetryExhaustedFailure: All attempts ended in retryable failures
            CancellationFailure: The token was cancelled mid-flight
            RuntimeError: If the scheduler was already run
        """
        if self._state != RetryState.IDLE:
            raise RuntimeError("RetryScheduler instances are single-use")

        max_attempts = self.policy.max_attempts
        last_failure: Optional[BaseException] = None
        try:
            for attempt in range(max_attempts):
                self._attempts = attempt + 1
                self._state = RetryState.ATTEMPTING
                self._logger.debug(
                    "write_attempt",
                    attempt=attempt + 1,
                    max_attempts=max_attempts,
                )

                try:
                    outcome, elapsed = self._invoke(action, attempt)
                except CancellationFailure:
                    raise
                except Exception as exc:
                    last_failure = self._handle_exception(exc, attempt)
                else:
                    if outcome is None or outcome.is_success:
                        return self._handle_success(attempt, elapsed)
                    last_failure = self._handle_failed_outcome(outcome, attempt)

                if attempt + 1 >= max_attempts:
                    break
                self._state = RetryState.RETRYING
                self._await_abandoned_call(last_failure, attempt)
                self._wait_before_retry(attempt)
        except CancellationFailure:
            self._state = RetryState.CANCELLED
            self._logger.warning("write_cancelled", attempts=self._attempts)
            raise

        self._state = RetryState.GIVEN_UP
        self._logger.error(
            "write_retries_exhausted",
            attempts=max_attempts,
            last_error=str(last_failure),
        )
        classification = getattr(last_failure, "classification", None)
        raise RetryExhaustedFailure(
            f"{self.operation} failed after {max_attempts} attempts",
            attempts=max_attempts,
            operation=self.operation,
            attempt=max_attempts - 1,
            classification=classification,
        ) from last_failure

    def _invoke(self, action: WriteAction, attempt: int):
        if self.cancellation_token is not None:
            self.cancellation_token.raise_if_cancelled(self.operation, attempt)
        started = time.monotonic()
        outcome = run_cancellable(
            action,
            token=self.cancellation_token,
            timeout=self.call_timeout,
            operation=self.operation,
            attempt=attempt,
        )
        # Only calls that return count; client side errors are not timed
        elapsed = timedelta(seconds=time.monotonic() - started)
        return outcome, elapsed

    def _handle_success(self, attempt: int, elapsed: timedelta) -> RetryReceipt:
        self._state = RetryState.SUCCEEDED
        if self.elapsed_time_consumer is not None:
            self.elapsed_time_consumer(elapsed)
        if attempt > 0:
            self._logger.info("write_retry_success", attempt=attempt + 1)
        return RetryReceipt(attempts=attempt + 1, elapsed=elapsed)

    def _handle_exception(self, exc: Exception, attempt: int) -> BaseException:
        classification = self.classifier.classify_exception(exc)
        if classification.is_retryable:
            self._logger.warning(
                "write_transient_error",
                attempt=attempt + 1,
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=exc,
            )
            return exc

        self._state = RetryState.FATAL
        self._logger.error(
            "write_persistent_error",
            attempt=attempt + 1,
            error=str(exc),
            error_type=type(exc).__name__,
            exc_info=exc,
        )
        if isinstance(exc, StoreOperationError):
            raise exc
        raise ClientPersistentFailure(
            f"{self.operation} failed with a non-retryable error: {exc}",
            operation=self.operation,
            attempt=attempt,
            details={"error_type": type(exc).__name__},
        ) from exc

    def _handle_failed_outcome(
        self, outcome: WriteOutcome, attempt: int
    ) -> BaseException:
        if outcome.status == OutcomeStatus.TRANSIENT_FAILURE:
            self._logger.warning(
                "write_transient_error",
                attempt=attempt + 1,
                error=str(outcome.cause),
            )
            failure = TransientStoreFailure(
                f"{self.operation} failed transiently: {outcome.cause}",
                operation=self.operation,
                attempt=attempt,
            )
            failure.__cause__ = outcome.cause
            return failure

        if outcome.status == OutcomeStatus.PERSISTENT_FAILURE:
            self._state = RetryState.FATAL
            self._logger.error(
                "write_persistent_error",
                attempt=attempt + 1,
                error=outcome.reason,
            )
            raise ClientPersistentFailure(
                f"{self.operation} failed with a non-retryable error: {outcome.reason}",
                operation=self.operation,
                attempt=attempt,
            )

        relevant_errors = self.classifier.filter_relevant_errors(
            outcome.errors_by_index
        )
        relevant_errors_json = stringify(relevant_errors)
        classification = self.classifier.classify_partial_failure(
            outcome.errors_by_index
        )
        details = {
            "rows_with_errors": len(outcome.errors_by_index),
            "rows_with_relevant_errors": len(relevant_errors),
        }

        if classification == FailureClass.PARTIAL_PERSISTENT:
            self._state = RetryState.FATAL
            self._logger.error(
                "write_persistent_row_errors",
                attempt=attempt + 1,
                insert_errors=relevant_errors_json,
                **details,
            )
            raise PartialPersistentFailure(
                relevant_errors_json,
                relevant_errors=relevant_errors,
                relevant_errors_json=relevant_errors_json,
                operation=self.operation,
                attempt=attempt,
                details=details,
            )

        self._logger.warning(
            "write_row_errors_retrying",
            attempt=attempt + 1,
            insert_errors=relevant_errors_json,
            **details,
        )
        return PartialRetryableFailure(
            f"{self.operation} rejected rows: {relevant_errors_json}",
            operation=self.operation,
            attempt=attempt,
            details=details,
        )

    def _await_abandoned_call(
        self, failure: Optional[BaseException], attempt: int
    ) -> None:
        if not isinstance(failure, StoreCallTimeout) or failure.pending is None:
            return
        self._logger.info("write_awaiting_timed_out_attempt", attempt=attempt + 1)
        wait_for_settled(
            failure.pending,
            token=self.cancellation_token,
            operation=self.operation,
            attempt=attempt,
        )

    def _wait_before_retry(self, attempt: int) -> None:
        delay = to_seconds(self.policy.backoff(attempt)) or 0.0
        if delay <= 0:
            self._logger.debug("write_retrying_immediately", attempt=attempt + 1)
            return
        self._logger.info(
            "write_backing_off",
            attempt=attempt + 1,
            delay=delay,
        )
        sleep_cancellable(
            delay,
            token=self.cancellation_token,
            operation=self.operation,
            attempt=attempt,
        )
