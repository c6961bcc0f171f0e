"""Transport error classification and backoff retry for Compute API calls.

Every Compute call goes through ``with_retry``: connection failures, 429s
and 5xx responses are retried with jittered exponential backoff, anything
else the provider rejects is surfaced immediately.

Usage:
    from ycworkers.core.retryable import with_retry

    response = await with_retry(
        lambda: client.get("/instances", params=params),
        circuit_breaker="cloud",
    )
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx

from ycworkers.core.circuit_breaker import CircuitOpenError, get_circuit_breaker
from ycworkers.core.logging_schema import ErrorClass

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE = "retryable"
PERMANENT = "permanent"
UNKNOWN = "unknown"

HTTPX_RETRYABLE = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.WriteTimeout,
    httpx.PoolTimeout,
    httpx.RemoteProtocolError,
)

HTTPX_NON_RETRYABLE = (
    httpx.InvalidURL,
    httpx.TooManyRedirects,
    httpx.UnsupportedProtocol,
)


def is_status_retryable(status: int) -> bool:
    """429 and 5xx are worth another attempt; other 4xx are final."""
    if status == 429:
        return True
    return status >= 500


def classify_error(exc: Exception) -> str:
    """Classify an exception as 'retryable', 'permanent' or 'unknown'."""
    if isinstance(exc, asyncio.TimeoutError):
        return RETRYABLE
    if isinstance(exc, httpx.HTTPStatusError):
        return RETRYABLE if is_status_retryable(exc.response.status_code) else PERMANENT
    if isinstance(exc, HTTPX_RETRYABLE):
        return RETRYABLE
    if isinstance(exc, HTTPX_NON_RETRYABLE):
        return PERMANENT
    return UNKNOWN


def is_retryable(exc: Exception) -> bool:
    return classify_error(exc) == RETRYABLE


def error_class_of(exc: Exception) -> ErrorClass:
    """Map an exception onto the logging ErrorClass vocabulary."""
    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return ErrorClass.TIMEOUT
    if isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code == 429:
        return ErrorClass.RATE_LIMITED
    if isinstance(exc, CircuitOpenError) or is_retryable(exc):
        return ErrorClass.TRANSIENT
    return ErrorClass.PERMANENT


async def with_retry(
    coro_factory: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    circuit_breaker: str | None = None,
) -> T:
    """Run ``coro_factory()`` with exponential backoff on transient errors.

    Permanent and unclassified errors are raised on the first attempt.
    An open circuit is raised without retrying.

    Args:
        coro_factory: Creates a fresh awaitable for each attempt
        max_retries: Retries after the first attempt
        base_delay: Delay before the first retry, doubled each time
        max_delay: Upper bound for a single delay
        circuit_breaker: Circuit breaker name (None to disable)
    """
    cb = get_circuit_breaker(circuit_breaker, error_classifier=classify_error) if circuit_breaker else None

    attempt = 0
    while True:
        try:
            if cb:
                return await cb.call(coro_factory)
            return await coro_factory()
        except CircuitOpenError:
            raise
        except Exception as exc:
            error_class = classify_error(exc)
            if error_class != RETRYABLE:
                logger.warning(
                    "Not retrying %s error: %s",
                    error_class,
                    exc,
                    extra={"error_class": error_class, "attempt": attempt + 1},
                )
                raise
            if attempt >= max_retries:
                logger.error(
                    "Giving up after %d attempts: %s",
                    attempt + 1,
                    exc,
                    extra={"error_class": error_class, "attempt": attempt + 1},
                )
                raise

            # 50% ~ 150% jitter
            delay = min(base_delay * (2**attempt), max_delay) * (0.5 + random.random())
            logger.warning(
                "Retryable error (attempt %d/%d, retry in %.1fs): %s",
                attempt + 1,
                max_retries + 1,
                delay,
                exc,
                extra={"error_class": error_class, "attempt": attempt + 1, "delay": delay},
            )
            await asyncio.sleep(delay)
            attempt += 1
