"""
Circuit breaker around the backend order service.

A dead backend must not freeze the terminal: after enough consecutive
failures the breaker opens and calls fail immediately with a retry hint,
until a probe call after the timeout shows the backend is back.

    CLOSED --N failures--> OPEN --timeout--> HALF_OPEN --success--> CLOSED
                                                       --failure--> OPEN

Only exceptions raised inside the protected block count as failures. The
client raises inside the block for transport errors and 5xx answers, and
outside it for 4xx answers: a business rejection means the backend is up.

Usage:
    breaker = CircuitBreaker.from_settings("order-service", settings)

    async with breaker.call():
        response = await http.post(...)
"""

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from enum import Enum
from typing import AsyncIterator, Callable

from shared.config.logging import backend_logger as logger
from shared.config.settings import Settings


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    name: str
    failure_threshold: int = 5
    # Probe successes needed in HALF_OPEN before closing
    success_threshold: int = 1
    timeout_seconds: float = 15.0
    half_open_max_calls: int = 1


@dataclass
class BreakerCounters:
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    state_changes: int = 0


class CircuitBreakerError(Exception):
    """The circuit is open; the call was not attempted."""

    def __init__(self, breaker_name: str, retry_after: float):
        self.breaker_name = breaker_name
        self.retry_after = retry_after
        super().__init__(f"Circuit '{breaker_name}' is open, retry in {retry_after:.1f}s")


class CircuitBreaker:
    """
    Async circuit breaker. State changes are serialized by an asyncio lock;
    the protected calls themselves run concurrently.
    """

    def __init__(self, config: CircuitBreakerConfig, clock: Callable[[], float] = time.monotonic):
        self.config = config
        self._clock = clock
        self._lock = asyncio.Lock()
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._probe_successes = 0
        self._probes_in_flight = 0
        self._opened_at: float | None = None
        self._counters = BreakerCounters()

    @classmethod
    def from_settings(cls, name: str, settings: Settings) -> "CircuitBreaker":
        return cls(
            CircuitBreakerConfig(
                name=name,
                failure_threshold=settings.backend_breaker_failure_threshold,
                success_threshold=settings.backend_breaker_success_threshold,
                timeout_seconds=settings.backend_breaker_timeout_seconds,
            )
        )

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def stats(self) -> BreakerCounters:
        return self._counters

    def snapshot(self) -> dict:
        """State and counters, for the health endpoint."""
        return {"state": self._state.value, **asdict(self._counters)}

    # -------------------------------------------------------------------------
    # State handling (callers hold the lock)
    # -------------------------------------------------------------------------

    def _move_to(self, new_state: CircuitState) -> None:
        logger.info(
            "Circuit breaker state change",
            breaker=self.config.name,
            old_state=self._state.value,
            new_state=new_state.value,
            consecutive_failures=self._consecutive_failures,
        )
        self._state = new_state
        self._counters.state_changes += 1

        if new_state is CircuitState.OPEN:
            self._opened_at = self._clock()
            self._probes_in_flight = 0
        elif new_state is CircuitState.HALF_OPEN:
            self._probe_successes = 0
            self._probes_in_flight = 0
        else:
            self._consecutive_failures = 0
            self._opened_at = None

    def _remaining_open_time(self) -> float:
        if self._opened_at is None:
            return 0.0
        return max(0.0, self.config.timeout_seconds - (self._clock() - self._opened_at))

    async def _admit(self) -> float | None:
        """None if the call may go ahead, otherwise seconds to wait."""
        async with self._lock:
            if self._state is CircuitState.OPEN:
                remaining = self._remaining_open_time()
                if remaining > 0:
                    return remaining
                self._move_to(CircuitState.HALF_OPEN)

            if self._state is CircuitState.HALF_OPEN:
                if self._probes_in_flight >= self.config.half_open_max_calls:
                    return 1.0
                self._probes_in_flight += 1
            return None

    async def _succeeded(self) -> None:
        async with self._lock:
            self._counters.total_calls += 1
            self._counters.successful_calls += 1

            if self._state is CircuitState.HALF_OPEN:
                self._probes_in_flight = max(0, self._probes_in_flight - 1)
                self._probe_successes += 1
                if self._probe_successes >= self.config.success_threshold:
                    self._move_to(CircuitState.CLOSED)
            else:
                self._consecutive_failures = 0

    async def _failed(self, error: Exception) -> None:
        async with self._lock:
            self._counters.total_calls += 1
            self._counters.failed_calls += 1
            self._consecutive_failures += 1

            logger.warning(
                "Backend call failed",
                breaker=self.config.name,
                error=str(error) or type(error).__name__,
                consecutive_failures=self._consecutive_failures,
                threshold=self.config.failure_threshold,
            )

            if self._state is CircuitState.HALF_OPEN:
                self._move_to(CircuitState.OPEN)
            elif (
                self._state is CircuitState.CLOSED
                and self._consecutive_failures >= self.config.failure_threshold
            ):
                self._move_to(CircuitState.OPEN)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def call(self) -> AsyncIterator[None]:
        """
        Protect the enclosed block.

        Raises:
            CircuitBreakerError: the circuit is open (block not run)
        """
        retry_after = await self._admit()
        if retry_after is not None:
            self._counters.rejected_calls += 1
            raise CircuitBreakerError(self.config.name, retry_after)

        try:
            yield
        except Exception as e:
            await self._failed(e)
            raise
        await self._succeeded()
