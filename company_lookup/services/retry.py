"""
RetryPolicy - Re-issues failed requests with exponential backoff.

The policy is a plain higher-order combinator: it knows nothing about the
call it wraps, only how to classify a failure and whether that kind of
failure is worth another attempt.

Backoff after attempt n (1-based): base_delay * 2 ** (n - 1)
    attempt 1 fails -> wait 1s
    attempt 2 fails -> wait 2s
    attempt 3 fails -> give up
"""

import asyncio
from typing import Awaitable, Callable, TypeVar

from loguru import logger

from company_lookup.services.errors import ErrorKind, ErrorRecord, to_api_error

T = TypeVar("T")

RetryPredicate = Callable[[ErrorRecord], bool]

NON_RETRYABLE_KINDS = frozenset(
    {
        ErrorKind.VALIDATION_ERROR,
        ErrorKind.NOT_FOUND,
        ErrorKind.RATE_LIMIT,
    }
)


def is_transient(record: ErrorRecord) -> bool:
    """Whether a failure is worth retrying."""
    if record.kind in NON_RETRYABLE_KINDS:
        return False
    if record.status_code == 400:
        return False
    return True


class RetryPolicy:
    """
    Retry an async call with exponential backoff.

    Usage:
        policy = RetryPolicy(max_attempts=3, base_delay=1.0)
        data = await policy.execute(lambda: http.get_json(descriptor))
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        is_retryable: RetryPredicate = is_transient,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._is_retryable = is_retryable
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        return self.base_delay * 2 ** (attempt - 1)

    async def execute(
        self,
        request_fn: Callable[[], Awaitable[T]],
        max_attempts: int | None = None,
    ) -> T:
        """
        Run ``request_fn`` until it succeeds or retries are exhausted.

        Raises:
            ApiError: the classified failure of the last attempt, or of the
                first non-retryable attempt
        """
        attempts = max_attempts or self.max_attempts
        attempt = 1

        while True:
            try:
                return await request_fn()
            except Exception as e:
                error = to_api_error(e)

            if not self._is_retryable(error.record):
                logger.debug(f"Not retrying {error.kind.value}: {error}")
                raise error

            if attempt >= attempts:
                logger.error(f"Request failed after {attempts} attempts: {error}")
                raise error

            delay = self.delay_for(attempt)
            attempt += 1
            logger.warning(
                f"Request failed with {error.kind.value}, retrying "
                f"(attempt {attempt}/{attempts}) after {delay:.1f}s"
            )
            await self._sleep(delay)
