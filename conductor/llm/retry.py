"""
Retry strategy for model backend calls.

Rate-limit and connection failures are retried with exponential backoff;
other API errors are raised at once.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from openai import APIConnectionError, APIError, APITimeoutError
from openai import RateLimitError as OpenAIRateLimitError

from conductor.constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BASE_DELAY,
    DEFAULT_RETRY_MAX_DELAY,
)
from conductor.exceptions import APIError as ConductorAPIError
from conductor.exceptions import ConnectionError, RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryStrategy:
    """
    Strategy for retrying failed operations with exponential backoff.

    Parameters
    ----------
    max_retries : int, default=3
        Maximum number of retry attempts.
    base_delay : float, default=1.0
        Base delay in seconds for exponential backoff.
    max_delay : float, default=60.0
        Maximum delay in seconds between retries.

    Examples
    --------
    >>> strategy = RetryStrategy(max_retries=3, base_delay=1.0)
    >>> result = await strategy.execute(lambda: client.chat.completions.create(**kwargs))
    """

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        max_delay: float = DEFAULT_RETRY_MAX_DELAY,
    ) -> None:
        self.max_retries: int = max_retries
        self.base_delay: float = base_delay
        self.max_delay: float = max_delay

    def _calculate_delay(self, attempt: int) -> float:
        return min(self.base_delay * (2**attempt), self.max_delay)

    async def execute(self, func: Callable[[], Awaitable[T]]) -> T:
        """
        Execute a function with retry logic.

        Parameters
        ----------
        func : Callable[[], Awaitable[T]]
            Factory for the awaitable to run; called once per attempt.

        Returns
        -------
        T
            Result of the first successful attempt.

        Raises
        ------
        RateLimitError
            If rate limits persist after all retries.
        ConnectionError
            If the backend stays unreachable after all retries.
        APIError
            For non-retryable API errors.
        """
        for attempt in range(self.max_retries + 1):
            try:
                return await func()
            except OpenAIRateLimitError as e:
                if attempt >= self.max_retries:
                    raise RateLimitError(
                        f"Rate limit exceeded after {self.max_retries} retries: {e}",
                        cause=e,
                    ) from e
                wait_time: float = self._calculate_delay(attempt)
                logger.warning(
                    f"Rate limit exceeded (attempt {attempt + 1}/{self.max_retries + 1}), "
                    f"retrying in {wait_time:.2f}s",
                )
                await asyncio.sleep(wait_time)
            except (APIConnectionError, APITimeoutError) as e:
                if attempt >= self.max_retries:
                    raise ConnectionError(
                        f"Connection failed after {self.max_retries} retries: {e}",
                        cause=e,
                    ) from e
                wait_time = self._calculate_delay(attempt)
                logger.warning(
                    f"Connection error (attempt {attempt + 1}/{self.max_retries + 1}), "
                    f"retrying in {wait_time:.2f}s: {e}",
                )
                await asyncio.sleep(wait_time)
            except APIError as e:
                logger.error(f"API error: {e}")
                raise ConductorAPIError(
                    str(e),
                    status_code=getattr(e, "status_code", None),
                    cause=e,
                ) from e

        raise RuntimeError("Retry strategy exhausted without result")
