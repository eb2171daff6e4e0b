"""
Retry utilities with exponential backoff for the Daily Digest services.
Provider and Redis calls are wrapped here; callers decide what a final failure means.
"""

import asyncio
import random
import time
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Iterator, Optional, Tuple, Type

from shared.app_logging.logger import get_logger
from shared.config.settings import get_settings

logger = get_logger("shared.retry")


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""
    pass


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 2
    base_delay: float = 0.4
    max_delay: float = 4.0
    backoff_factor: float = 2.0
    jitter: bool = True
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,)

    @classmethod
    def from_settings(
        cls,
        max_retries: Optional[int],
        base_delay: Optional[float],
        jitter: bool,
        retryable_exceptions: Tuple[Type[Exception], ...],
    ) -> "RetryConfig":
        """Fill unspecified values from the service settings (``MAX_RETRIES``, ``RETRY_DELAY``)."""
        service = get_settings().service
        base = service.retry_delay if base_delay is None else base_delay
        return cls(
            max_retries=service.max_retries if max_retries is None else max_retries,
            base_delay=base,
            max_delay=base * 10,
            backoff_factor=service.retry_backoff_factor,
            jitter=jitter,
            retryable_exceptions=retryable_exceptions,
        )

    def delays(self) -> Iterator[float]:
        """Sleep before each retry: ``base * factor**n`` capped at ``max_delay``, +/-10% jitter."""
        for attempt in range(self.max_retries):
            delay = min(self.base_delay * (self.backoff_factor ** attempt), self.max_delay)
            if self.jitter:
                delay += random.uniform(-delay * 0.1, delay * 0.1)
            yield max(0.0, delay)


def retry(
    max_retries: Optional[int] = None,
    base_delay: Optional[float] = None,
    jitter: bool = True,
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,),
):
    """
    Decorator for retrying blocking calls with exponential backoff.

    Args:
        max_retries: Retries after the first attempt; defaults to ``MAX_RETRIES``
        base_delay: First delay in seconds; defaults to ``RETRY_DELAY``
        jitter: Whether to add random jitter to delays
        retryable_exceptions: Exception types worth another attempt

    Raises:
        RetryError: chained to the last exception once attempts run out
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            config = RetryConfig.from_settings(max_retries, base_delay, jitter, retryable_exceptions)
            delays = config.delays()
            attempt = 0
            while True:
                attempt += 1
                try:
                    return func(*args, **kwargs)
                except config.retryable_exceptions as e:
                    delay = next(delays, None)
                    if delay is None:
                        logger.error(f"{func.__name__} failed after {attempt} attempts: {e}")
                        raise RetryError(f"{func.__name__} failed after {attempt} attempts") from e
                    logger.warning(f"{func.__name__} failed (attempt {attempt}): {e}. Retrying in {delay:.2f}s")
                    time.sleep(delay)

        return wrapper
    return decorator


def async_retry(
    max_retries: Optional[int] = None,
    base_delay: Optional[float] = None,
    jitter: bool = True,
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,),
):
    """
    Async twin of :func:`retry`.

    Exceptions outside ``retryable_exceptions`` propagate on the first attempt.
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            config = RetryConfig.from_settings(max_retries, base_delay, jitter, retryable_exceptions)
            delays = config.delays()
            attempt = 0
            while True:
                attempt += 1
                try:
                    return await func(*args, **kwargs)
                except config.retryable_exceptions as e:
                    delay = next(delays, None)
                    if delay is None:
                        logger.warning(f"{func.__name__} failed after {attempt} attempts: {e}")
                        raise RetryError(f"{func.__name__} failed after {attempt} attempts") from e
                    logger.warning(f"{func.__name__} failed (attempt {attempt}): {e}. Retrying in {delay:.2f}s")
                    await asyncio.sleep(delay)

        return wrapper
    return decorator
