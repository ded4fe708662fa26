"""Retry policy configuration.

A RetryPolicy bounds the number of write attempts and maps a zero-based
attempt index to the wait before the next attempt.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Union

from gcp_utils.configuration.google import BigQuerySettings

Duration = Union[timedelta, float, int]
BackoffFunction = Callable[[int], Duration]


def no_backoff(attempt: int) -> timedelta:
    """Retry immediately."""
    return timedelta(0)


def fixed_backoff(seconds: float) -> BackoffFunction:
    """Wait the same number of seconds before every retry."""
    delay = timedelta(seconds=seconds)

    def backoff(attempt: int) -> timedelta:
        return delay

    return backoff


def exponential_backoff(
    base_seconds: float, max_seconds: float, factor: float = 2.0
) -> BackoffFunction:
    """Exponential backoff capped at max_seconds.

    Delay calculation: min(base * (factor ^ attempt), max)

    Example with base=1s, max=30s:
        Attempt 0: 1s
        Attempt 1: 2s
        Attempt 2: 4s
        Attempt 5: 30s (capped)
    """
    if base_seconds < 0:
        raise ValueError("base_seconds must be >= 0")
    if max_seconds < base_seconds:
        raise ValueError("max_seconds must be >= base_seconds")

    def backoff(attempt: int) -> timedelta:
        return timedelta(seconds=min(base_seconds * (factor**attempt), max_seconds))

    return backoff


@dataclass
class RetryPolicy:
    """Bounded retry policy for a write action.

    Attributes:
        max_attempts: Total attempts including the first one (>= 1)
        backoff: Maps the zero-based index of a failed attempt to the wait
            before the next attempt (timedelta or seconds)

    Example:
        policy = RetryPolicy(
            max_attempts=5,
            backoff=exponential_backoff(base_seconds=1, max_seconds=30),
        )
    """

    max_attempts: int = 1
    backoff: BackoffFunction = field(default=no_backoff)

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if not callable(self.backoff):
            raise ValueError("backoff must be callable")

    @classmethod
    def from_settings(cls, settings: BigQuerySettings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.insert_max_attempts,
            backoff=exponential_backoff(
                settings.insert_backoff_base_seconds,
                settings.insert_backoff_max_seconds,
            ),
        )
