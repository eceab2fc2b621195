"""
Retry mechanism for resilient upstream calls.

``retry_on_exception`` wraps an async callable and re-invokes it when it raises
one of the listed exception types, sleeping between attempts according to a
``RetryConfig`` backoff policy.
"""

import asyncio
import functools
import random
from dataclasses import dataclass
from typing import Any, Optional, Callable, Awaitable, Tuple, Type

from shared.logging import get_logger


@dataclass(frozen=True)
class RetryConfig:
    """Backoff policy for retried calls.

    ``backoff_strategy`` is one of ``exponential``, ``linear`` or ``fixed``.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True
    backoff_strategy: str = "exponential"

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        if self.backoff_strategy == "exponential":
            delay = self.base_delay * (self.exponential_base ** (attempt - 1))
        elif self.backoff_strategy == "linear":
            delay = self.base_delay * attempt
        else:
            delay = self.base_delay

        delay = min(delay, self.max_delay)
        if self.jitter:
            spread = delay * 0.1
            delay += random.uniform(-spread, spread)
        return max(0.0, delay)


class RetryError(Exception):
    """Exception raised when all retry attempts are exhausted."""

    def __init__(self, message: str, last_exception: Exception, attempts: int):
        super().__init__(message)
        self.last_exception = last_exception
        self.attempts = attempts


def retry_on_exception(exceptions: Tuple[Type[BaseException], ...] = (Exception,),
                       config: Optional[RetryConfig] = None) -> Callable:
    """Decorator for retrying async functions on exceptions."""

    config = config or RetryConfig()
    if config.max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        logger = get_logger(f"retry.{func.__name__}")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            attempt = 1
            while True:
                try:
                    result = await func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= config.max_attempts:
                        logger.error(
                            "All retry attempts exhausted",
                            attempts=attempt,
                            function=func.__name__,
                            error=str(e)
                        )
                        raise RetryError(
                            f"Function {func.__name__} failed after {attempt} attempts",
                            last_exception=e,
                            attempts=attempt
                        ) from e

                    delay = config.delay_for(attempt)
                    logger.warning(
                        "Retry attempt failed, waiting before next attempt",
                        attempt=attempt,
                        delay=round(delay, 3),
                        function=func.__name__,
                        error=str(e)
                    )
                    await asyncio.sleep(delay)
                    attempt += 1
                    continue

                if attempt > 1:
                    logger.info("Retry succeeded", attempt=attempt, function=func.__name__)
                return result

        return wrapper

    return decorator
