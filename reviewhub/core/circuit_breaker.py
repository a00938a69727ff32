"""
Circuit breaker for review platform and provider HTTP calls.

Each upstream (google_business, yelp, facebook, google_places, twilio, ...)
gets one named breaker. After ``failure_threshold`` consecutive failures the
breaker opens and calls fail fast with CircuitBreakerOpenError until
``recovery_timeout`` elapses; the next call is then let through as a trial.

Usage:
    breaker = get_circuit_breaker("yelp")

    breaker.ensure_can_execute()
    try:
        response = await client.get(url)
    except httpx.TransportError:
        await breaker.record_failure()
        raise
    await breaker.record_success()
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import structlog

from reviewhub.core.exceptions import CircuitBreakerOpenError

logger = structlog.get_logger(__name__)


class CircuitState(Enum):
    """CLOSED passes calls, OPEN rejects them, HALF_OPEN lets one trial call through."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """
    Consecutive-failure circuit breaker.

    Args:
        name: Upstream identifier used in logs and errors
        failure_threshold: Consecutive failures before the circuit opens
        recovery_timeout: Seconds the circuit stays open before a trial call
    """

    name: str
    failure_threshold: int = 5
    recovery_timeout: float = 60.0

    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _consecutive_failures: int = field(default=0, init=False)
    _opened_at: Optional[float] = field(default=None, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    @property
    def state(self) -> CircuitState:
        """Current state; an expired OPEN circuit reports HALF_OPEN."""
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            if time.monotonic() - self._opened_at >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                logger.info("circuit_breaker_half_open", name=self.name)
        return self._state

    def time_until_recovery(self) -> float:
        if self._state != CircuitState.OPEN or self._opened_at is None:
            return 0.0
        return max(0.0, self.recovery_timeout - (time.monotonic() - self._opened_at))

    def ensure_can_execute(self) -> None:
        """Raise CircuitBreakerOpenError while the circuit is open."""
        if self.state == CircuitState.OPEN:
            raise CircuitBreakerOpenError(self.name, self.time_until_recovery())

    async def record_success(self) -> None:
        async with self._lock:
            if self._state != CircuitState.CLOSED:
                logger.info("circuit_breaker_closed", name=self.name)
            self._state = CircuitState.CLOSED
            self._consecutive_failures = 0
            self._opened_at = None

    async def record_failure(self) -> None:
        async with self._lock:
            self._consecutive_failures += 1
            reopen = self._state == CircuitState.HALF_OPEN
            if reopen or self._consecutive_failures >= self.failure_threshold:
                self._state = CircuitState.OPEN
                self._opened_at = time.monotonic()
                logger.warning("circuit_breaker_opened", name=self.name, failures=self._consecutive_failures)

    def reset(self) -> None:
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at = None


_breakers: dict[str, CircuitBreaker] = {}


def get_circuit_breaker(
    name: str,
    failure_threshold: int = 5,
    recovery_timeout: float = 60.0,
) -> CircuitBreaker:
    """Get or create the breaker registered under ``name``."""
    breaker = _breakers.get(name)
    if breaker is None:
        breaker = _breakers[name] = CircuitBreaker(name, failure_threshold, recovery_timeout)
    return breaker


def reset_circuit_breakers() -> None:
    """Drop all registered breakers (for testing)."""
    _breakers.clear()
