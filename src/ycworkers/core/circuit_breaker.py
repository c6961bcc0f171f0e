"""Circuit breaker guarding the Compute API.

CLOSED passes calls through and counts consecutive failures. After
``failure_threshold`` of them the circuit OPENs and rejects calls until
``timeout`` seconds have passed; then one HALF_OPEN probe window decides
whether to close again.

Breakers are process-wide singletons keyed by name.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TypeVar

from ycworkers.app.metrics.collector import (
    CIRCUIT_BREAKER_CALLS_TOTAL,
    CIRCUIT_BREAKER_REJECTIONS_TOTAL,
    CIRCUIT_BREAKER_STATE,
)
from ycworkers.core.logging_schema import Component, LogEvent

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


_STATE_GAUGE = {
    CircuitState.CLOSED: 0,
    CircuitState.HALF_OPEN: 1,
    CircuitState.OPEN: 2,
}


class CircuitOpenError(Exception):
    """Raised when the circuit is open and a call is rejected."""

    def __init__(self, service: str, retry_after: float) -> None:
        self.service = service
        self.retry_after = retry_after
        super().__init__(f"Circuit open for {service}, retry after {retry_after:.1f}s")


class CircuitBreaker:
    """Failure-counting breaker.

    Args:
        name: Label used in logs and metrics
        failure_threshold: Consecutive failures that open the circuit
        success_threshold: HALF_OPEN successes needed to close it
        timeout: Seconds spent OPEN before probing
        error_classifier: Returns 'permanent', 'retryable' or 'unknown';
            permanent errors are the caller's fault and do not trip the circuit
    """

    def __init__(
        self,
        name: str = "default",
        failure_threshold: int = 5,
        success_threshold: int = 2,
        timeout: float = 60.0,
        error_classifier: Callable[[Exception], str] | None = None,
    ) -> None:
        self.name = name
        self.failure_threshold = failure_threshold
        self.success_threshold = success_threshold
        self.timeout = timeout
        self._error_classifier = error_classifier

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at: float | None = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def _transition(self, new_state: CircuitState, **fields: object) -> None:
        old_state = self._state
        self._state = new_state
        CIRCUIT_BREAKER_STATE.labels(circuit=self.name).set(_STATE_GAUGE[new_state])
        log = logger.warning if new_state == CircuitState.OPEN else logger.info
        log(
            "Circuit %s -> %s",
            old_state.name,
            new_state.name,
            extra={
                "event": LogEvent.STATE_CHANGED,
                "component": Component.GATEWAY,
                "circuit": self.name,
                **fields,
            },
        )

    def _retry_after(self) -> float:
        if self._opened_at is None:
            return 0.0
        return max(0.0, self.timeout - (time.monotonic() - self._opened_at))

    async def call(self, coro_factory: Callable[[], Awaitable[T]]) -> T:
        """Run ``coro_factory()`` unless the circuit is open.

        Raises:
            CircuitOpenError: The circuit is open
        """
        async with self._lock:
            if self._state == CircuitState.OPEN and self._retry_after() == 0.0:
                self._success_count = 0
                self._transition(CircuitState.HALF_OPEN)

            if self._state == CircuitState.OPEN:
                retry_after = self._retry_after()
                CIRCUIT_BREAKER_REJECTIONS_TOTAL.labels(circuit=self.name).inc()
                logger.warning(
                    "Circuit open, rejecting call",
                    extra={
                        "event": LogEvent.OPERATION_FAILED,
                        "circuit": self.name,
                        "retry_after": retry_after,
                    },
                )
                raise CircuitOpenError(self.name, retry_after)

        try:
            result = await coro_factory()
        except Exception as exc:
            CIRCUIT_BREAKER_CALLS_TOTAL.labels(circuit=self.name, result="failure").inc()
            if self._error_classifier and self._error_classifier(exc) == "permanent":
                logger.debug(
                    "Permanent error does not count toward the threshold",
                    extra={"circuit": self.name, "error": str(exc)},
                )
                raise
            await self._record_failure()
            raise

        CIRCUIT_BREAKER_CALLS_TOTAL.labels(circuit=self.name, result="success").inc()
        await self._record_success()
        return result

    async def _record_success(self) -> None:
        async with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self.success_threshold:
                    self._failure_count = 0
                    self._opened_at = None
                    self._transition(CircuitState.CLOSED, success_count=self._success_count)
            else:
                self._failure_count = 0

    async def _record_failure(self) -> None:
        async with self._lock:
            self._failure_count += 1
            if self._state == CircuitState.HALF_OPEN:
                self._opened_at = time.monotonic()
                self._transition(CircuitState.OPEN)
            elif self._state == CircuitState.CLOSED and self._failure_count >= self.failure_threshold:
                self._opened_at = time.monotonic()
                self._transition(CircuitState.OPEN, failure_count=self._failure_count)


_circuit_breakers: dict[str, CircuitBreaker] = {}


def configure_circuit_breaker(
    name: str,
    failure_threshold: int = 5,
    timeout: float = 60.0,
    error_classifier: Callable[[Exception], str] | None = None,
) -> CircuitBreaker:
    """Create (or replace) the named breaker with explicit thresholds."""
    _circuit_breakers[name] = CircuitBreaker(
        name=name,
        failure_threshold=failure_threshold,
        timeout=timeout,
        error_classifier=error_classifier,
    )
    return _circuit_breakers[name]


def get_circuit_breaker(
    name: str = "default",
    error_classifier: Callable[[Exception], str] | None = None,
) -> CircuitBreaker:
    """Get the named breaker, creating it with defaults on first use."""
    if name not in _circuit_breakers:
        _circuit_breakers[name] = CircuitBreaker(name=name, error_classifier=error_classifier)
    return _circuit_breakers[name]


def reset_all_circuit_breakers() -> None:
    """Drop every breaker (for testing)."""
    _circuit_breakers.clear()
