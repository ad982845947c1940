"""Retry with exponential backoff for GitHub API operations."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

import httpx
from pydantic import BaseModel, Field

from codeoba.mcp.results import GitHubApiResult, GitHubError

logger = logging.getLogger("codeoba.mcp.retry")

__all__ = [
    "RetryPolicy",
    "execute_with_retry",
    "is_retryable_error",
    "is_retryable_status",
]

_RETRYABLE_KEYWORDS = (
    "timeout",
    "timed out",
    "connection",
    "socket",
    "network",
    "rate limit",
    "too many requests",
)


class RetryPolicy(BaseModel):
    """Configures retry behaviour for GitHub API calls."""

    max_attempts: int = Field(default=3, ge=1)
    initial_delay_seconds: float = Field(default=1.0, ge=0.0)
    max_delay_seconds: float = Field(default=10.0, ge=0.0)
    factor: float = Field(default=2.0, gt=0.0)


def is_retryable_status(code: int) -> bool:
    """408, 429 and every 5xx are transient."""
    return code in (408, 429) or 500 <= code <= 599


def is_retryable_error(exc: Exception) -> bool:
    """Classify an exception as transient by type or by its message."""
    if isinstance(exc, httpx.TransportError):
        return True
    message = str(exc).lower()
    return any(keyword in message for keyword in _RETRYABLE_KEYWORDS)


async def execute_with_retry[T](
    operation: Callable[[], Awaitable[GitHubApiResult[T]]],
    policy: RetryPolicy | None = None,
    *,
    retry_on: Callable[[Exception], bool] = is_retryable_error,
) -> GitHubApiResult[T]:
    """Run *operation*, retrying transient failures with exponential backoff.

    A :class:`GitHubError` with a retryable status is retried while attempts
    remain; any other result is returned as-is, and the last retryable
    error is returned once attempts run out. Exceptions accepted by
    *retry_on* are retried the same way; other exceptions propagate at
    once, and the last exception is re-raised after the final attempt.
    """
    policy = policy or RetryPolicy()
    delay = policy.initial_delay_seconds

    for attempt in range(1, policy.max_attempts + 1):
        last = attempt >= policy.max_attempts
        try:
            result = await operation()
        except Exception as exc:
            if last or not retry_on(exc):
                raise
            reason = str(exc) or type(exc).__name__
        else:
            if not isinstance(result, GitHubError) or last:
                return result
            if not is_retryable_status(result.code):
                return result
            reason = f"HTTP {result.code}"

        logger.warning(
            "Attempt %d/%d failed (%s), retrying in %.1fs",
            attempt,
            policy.max_attempts,
            reason,
            delay,
            extra={"attempt": attempt, "delay": delay},
        )
        await asyncio.sleep(delay)
        delay = min(delay * policy.factor, policy.max_delay_seconds)

    raise AssertionError("unreachable")  # pragma: no cover
