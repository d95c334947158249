"""Bounded exponential-backoff retry policy."""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


def is_retryable(error: BaseException) -> bool:
    """Classify an error for retry.

    4xx responses other than 429 are permanent; everything else (5xx, 429,
    timeouts, network failures) is worth another attempt.
    """
    status_code = getattr(error, "status_code", None)
    if status_code is not None and 400 <= status_code < 500 and status_code != 429:
        return False
    return True


class RetryPolicy:
    """Runs a fallible async operation with exponential backoff.

    The delay before attempt k (k >= 2) is ``base_delay_ms * 2 ** (k - 2)``.
    At most ``max_retries + 1`` attempts are made before the last error is
    re-raised.
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay_ms: float = 1000,
        classify: Callable[[BaseException], bool] = is_retryable,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.classify = classify
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """Backoff in milliseconds before the given (1-based) attempt."""
        if attempt <= 1:
            return 0
        return self.base_delay_ms * (2 ** (attempt - 2))

    async def run(self, operation: Callable[[], Awaitable[Any]], description: Optional[str] = None) -> Any:
        """Await ``operation()`` until it succeeds, fails permanently, or the budget runs out."""
        label = description or getattr(operation, "__name__", "operation")
        total_attempts = self.max_retries + 1

        for attempt in range(1, total_attempts + 1):
            if attempt > 1:
                delay_ms = self.delay_for(attempt)
                logger.info(f"Retrying {label} (attempt {attempt}/{total_attempts}) in {delay_ms:.0f}ms")
                await self._sleep(delay_ms / 1000)

            try:
                return await operation()
            except Exception as e:
                if not self.classify(e):
                    logger.debug(f"{label} failed with non-retryable error: {e}")
                    raise
                if attempt == total_attempts:
                    logger.warning(f"{label} failed after {total_attempts} attempts: {e}")
                    raise
                logger.warning(f"{label} failed on attempt {attempt}/{total_attempts}: {e}")
