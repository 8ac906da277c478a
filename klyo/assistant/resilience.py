"""Retry policy for remote calls.

Exponential backoff with jitter. Only transient failures (transport
errors) are retried; malformed or empty responses are returned to the
caller immediately since repeating the same request rarely fixes them.
"""

import asyncio
import random
from typing import Any, Awaitable, Callable, Tuple, Type

from loguru import logger

from .errors import LLMTransportError


class RetryPolicy:
    """Retry policy with exponential backoff."""

    def __init__(self,
                 max_retries: int = 1,
                 base_delay: float = 0.5,
                 max_delay: float = 4.0,
                 exponential_base: float = 2.0,
                 jitter: bool = True,
                 retry_on: Tuple[Type[BaseException], ...] = (LLMTransportError,)):
        """
        Initialize retry policy.

        Args:
            max_retries: Retries after the first attempt
            base_delay: Base delay in seconds
            max_delay: Maximum delay in seconds
            exponential_base: Base for exponential backoff
            jitter: Whether to add jitter
            retry_on: Exception types worth retrying
        """
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.retry_on = retry_on

    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate delay for attempt.

        Args:
            attempt: Attempt number (0-based)

        Returns:
            Delay in seconds
        """
        delay = self.base_delay * (self.exponential_base ** attempt)
        delay = min(delay, self.max_delay)

        if self.jitter:
            delay = delay * (0.5 + random.random())

        return delay

    def is_retryable(self, error: BaseException) -> bool:
        """Client errors (4xx other than 429) are final."""
        status = getattr(error, "status_code", None)
        return status is None or status == 429 or status >= 500

    async def execute(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """
        Await ``func`` with the retry policy applied.

        Raises:
            The last exception once retries are exhausted, or immediately
            for exception types not listed in ``retry_on``.
        """
        for attempt in range(self.max_retries + 1):
            try:
                return await func(*args, **kwargs)
            except self.retry_on as e:
                if attempt >= self.max_retries or not self.is_retryable(e):
                    raise
                delay = self.calculate_delay(attempt)
                logger.debug(f"Retry {attempt + 1}/{self.max_retries} after {delay:.2f}s: {e}")
                await asyncio.sleep(delay)
