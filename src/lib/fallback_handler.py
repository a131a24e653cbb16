"""Retry handling for transient provider failures."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx
import openai

from src.lib.errors import (
    FatalProviderError,
    ServiceOverloadedError,
    TransientProviderError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_SIGNATURES = (
    "429",
    "quota",
    "resource exhausted",
    "rate limit",
    "503",
    "unavailable",
    "overloaded",
    "load failed",
    "failed to fetch",
    "network",
)

TRANSIENT_OPENAI_ERRORS = (
    openai.RateLimitError,
    openai.APIConnectionError,  # includes APITimeoutError
    openai.InternalServerError,
)


def _is_transient_status(status_code: Any) -> bool:
    return isinstance(status_code, int) and (status_code in (408, 429) or status_code >= 500)


def is_transient_error(exc: BaseException) -> bool:
    """Decide whether a provider failure is worth retrying.

    Args:
        exc: Exception raised by a provider call

    Returns:
        True for rate limits, overload, unavailability and network failures
    """
    if isinstance(exc, TransientProviderError):
        return True
    if isinstance(exc, FatalProviderError):
        return False
    if isinstance(exc, TRANSIENT_OPENAI_ERRORS):
        return True
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return _is_transient_status(exc.response.status_code)
    if _is_transient_status(getattr(exc, "status_code", None)):
        return True

    message = str(exc).lower()
    return any(signature in message for signature in TRANSIENT_SIGNATURES)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff schedule: base_delay * 2**attempt, capped at max_delay."""

    max_attempts: int = 4
    base_delay: float = 1.5
    max_delay: float = 20.0

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the zero-based `attempt` failed."""
        return min(self.base_delay * (2**attempt), self.max_delay)


class RetryHandler:
    """Runs a provider operation, retrying transient failures with backoff.

    Fatal errors propagate untouched on the first occurrence. Once the attempt
    ceiling is reached, a single ServiceOverloadedError is raised, chained to
    the last underlying error.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        classifier: Callable[[BaseException], bool] = is_transient_error,
    ):
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._is_transient = classifier

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Execute `fn` under the retry policy.

        Args:
            fn: Zero-argument coroutine function performing one attempt

        Returns:
            Result of the first successful attempt

        Raises:
            ServiceOverloadedError: If every attempt failed transiently
            Exception: Any non-transient error, unchanged
        """
        last_error: BaseException | None = None

        for attempt in range(self.policy.max_attempts):
            try:
                result = await fn()
                if attempt > 0:
                    logger.info(f"Retry succeeded on attempt {attempt + 1}")
                return result
            except Exception as e:
                if not self._is_transient(e):
                    logger.error(f"Non-retryable provider error: {e}")
                    raise
                last_error = e

                if attempt < self.policy.max_attempts - 1:
                    wait_time = self.policy.delay_for(attempt)
                    logger.warning(
                        f"Transient provider error on attempt {attempt + 1}/"
                        f"{self.policy.max_attempts}, retrying in {wait_time}s: {e}"
                    )
                    await self._sleep(wait_time)

        logger.error(f"All {self.policy.max_attempts} attempts failed: {last_error}")
        raise ServiceOverloadedError(self.policy.max_attempts) from last_error
