"""
Retry Policy

Decides whether a failed attempt is retried and how long to wait before
the next one. Kept apart from the request executor so it can be swapped
or tested on its own.
"""

from dataclasses import dataclass, field
from typing import Callable

from residency_docs.http.errors import ApiError


class RequestAborted(Exception):
    """The caller cancelled the request through its abort signal."""


def is_retryable_status(status: int) -> bool:
    """5xx responses are retried, except 501 Not Implemented."""
    return status >= 500 and status != 501


def is_retryable_error(error: BaseException) -> bool:
    """
    Any thrown error is retried (transport failures, timeouts, undecodable
    bodies) except normalized API errors and caller-initiated aborts.
    """
    return not isinstance(error, (ApiError, RequestAborted))


@dataclass
class RetryPolicy:
    """
    Bounded retry with a fixed delay.

    ``max_retries`` counts retries, not attempts: with max_retries=2 a
    request is attempted at most three times.
    """

    max_retries: int = 1
    delay_ms: int = 500
    status_predicate: Callable[[int], bool] = field(default=is_retryable_status)
    error_predicate: Callable[[BaseException], bool] = field(default=is_retryable_error)

    @property
    def delay_seconds(self) -> float:
        return self.delay_ms / 1000

    def should_retry_status(self, status: int, attempt: int) -> bool:
        return attempt < self.max_retries and self.status_predicate(status)

    def should_retry_error(self, error: BaseException, attempt: int) -> bool:
        return attempt < self.max_retries and self.error_predicate(error)

    def with_max_retries(self, max_retries: int | None) -> "RetryPolicy":
        """Copy of this policy with a per-request retry override."""
        if max_retries is None or max_retries == self.max_retries:
            return self
        return RetryPolicy(
            max_retries=max_retries,
            delay_ms=self.delay_ms,
            status_predicate=self.status_predicate,
            error_predicate=self.error_predicate,
        )
