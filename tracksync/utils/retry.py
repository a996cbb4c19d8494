"""
Retry with exponential backoff and error classification.

Operations classify their own failures as TEMPORARY or PERMANENT by raising
ClassifiedError; RetryExecutor only decides whether to try again.
"""

import logging
import time
from dataclasses import dataclass
from enum import StrEnum
from typing import Callable, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

TEMPORARY_HTTP_STATUSES = frozenset({429, 500, 502, 503, 504})
# May just be an expired token, so worth another attempt
AUTH_HTTP_STATUSES = frozenset({401, 403})
PERMANENT_HTTP_STATUSES = frozenset({400, 404, 422})


class ErrorType(StrEnum):
    """Failure classification"""

    TEMPORARY = "temporary"  # Retry
    PERMANENT = "permanent"  # Do not retry


class ClassifiedError(Exception):
    """Error tagged with a retry classification."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType,
        original_error: BaseException | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.original_error = original_error
        self.status_code = status_code

    @property
    def is_temporary(self) -> bool:
        return self.error_type == ErrorType.TEMPORARY

    @property
    def is_permanent(self) -> bool:
        return self.error_type == ErrorType.PERMANENT


def classify_http_error(status_code: int, message: str) -> ClassifiedError:
    """
    Classify a failed HTTP response by status code.

    Args:
        status_code: HTTP status code
        message: Error message

    Returns:
        ClassifiedError; unknown status codes are TEMPORARY
    """
    if status_code in PERMANENT_HTTP_STATUSES:
        return ClassifiedError(message, ErrorType.PERMANENT, status_code=status_code)

    # Rate limiting, server errors, auth errors and anything unexpected
    return ClassifiedError(message, ErrorType.TEMPORARY, status_code=status_code)


def classify_network_error(error: BaseException) -> ClassifiedError:
    """Network and timeout errors are always TEMPORARY."""
    return ClassifiedError(
        f"Network error: {error}", ErrorType.TEMPORARY, original_error=error
    )


@dataclass
class RetryOptions:
    """Retry configuration. Delays are in seconds."""

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0
    on_retry: Callable[[int, BaseException], None] | None = None

    def wait_strategy(self) -> wait_exponential:
        """Exponential wait: initial_delay * backoff_multiplier^(attempt - 1), capped."""
        return wait_exponential(
            multiplier=self.initial_delay,
            exp_base=self.backoff_multiplier,
            max=self.max_delay,
        )


def _is_retryable(error: BaseException) -> bool:
    return not (isinstance(error, ClassifiedError) and error.is_permanent)


class RetryExecutor:
    """
    Runs an operation with bounded, exponentially backed-off retries.

    PERMANENT ClassifiedErrors fail immediately; everything else, including
    unclassified exceptions, is retried until max_attempts is reached.

    Usage:
        executor = RetryExecutor()
        data = executor.run(lambda: fetch(code), RetryOptions(max_attempts=3))
    """

    def __init__(
        self,
        options: RetryOptions | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.options = options or RetryOptions()
        self._sleep = sleep

    def run(self, operation: Callable[[], T], options: RetryOptions | None = None) -> T:
        """
        Execute operation, retrying on failure.

        Args:
            operation: Zero-argument callable to execute
            options: Overrides the executor's default options

        Returns:
            Whatever operation returns

        Raises:
            The last error raised by operation
        """
        opts = options or self.options

        def before_sleep(retry_state: RetryCallState):
            error = retry_state.outcome.exception()
            if opts.on_retry is not None:
                opts.on_retry(retry_state.attempt_number, error)
            logger.debug(
                "Retrying after attempt %d in %.2fs: %s",
                retry_state.attempt_number,
                retry_state.next_action.sleep,
                error,
            )

        retrying = Retrying(
            stop=stop_after_attempt(max(1, opts.max_attempts)),
            wait=opts.wait_strategy(),
            retry=retry_if_exception(_is_retryable),
            before_sleep=before_sleep,
            sleep=self._sleep,
            reraise=True,
        )
        return retrying(operation)
