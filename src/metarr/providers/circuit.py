# ABOUTME: Per-provider circuit breaker that stops calling a provider while it is failing.
# ABOUTME: Opens after repeated failures, probes after a timeout, closes after two good probes.

import asyncio
import enum
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, TypeVar

from metarr.providers.errors import CircuitOpenError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_THRESHOLD = 5
DEFAULT_RESET_TIMEOUT = 300.0

# Consecutive half-open successes needed before the circuit closes again.
_HALF_OPEN_SUCCESSES_TO_CLOSE = 2


class CircuitState(str, enum.Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Guards calls to one provider.

    All state changes happen synchronously between awaits, so overlapping calls
    on one event loop see consistent counters without any locking.
    """

    def __init__(
        self,
        *,
        threshold: int = DEFAULT_THRESHOLD,
        reset_timeout: float = DEFAULT_RESET_TIMEOUT,
        name: str = "",
        on_open: Callable[[], None] | None = None,
        on_close: Callable[[], None] | None = None,
        on_half_open: Callable[[], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if threshold < 1:
            msg = f"threshold must be at least 1, got {threshold}"
            raise ValueError(msg)
        if reset_timeout < 0:
            msg = f"reset_timeout must not be negative, got {reset_timeout}"
            raise ValueError(msg)
        self.name = name
        self._threshold = threshold
        self._reset_timeout = reset_timeout
        self._on_open = on_open
        self._on_close = on_close
        self._on_half_open = on_half_open
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: float | None = None
        self._last_failure_at: datetime | None = None
        self._reset_handle: asyncio.TimerHandle | None = None

    @property
    def state(self) -> CircuitState:
        return self._state

    def is_open(self) -> bool:
        return self._state is CircuitState.OPEN

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run fn through the breaker.

        Raises:
            CircuitOpenError: When the circuit is open and the reset timeout
                has not elapsed; fn is not called.
            Exception: Whatever fn raised, after it has been counted.
        """
        if self._state is CircuitState.OPEN:
            if not self._reset_timeout_elapsed():
                raise CircuitOpenError(self.name)
            self._enter_half_open()

        try:
            result = await fn()
        except Exception:
            self._record_failure()
            raise

        self._record_success()
        return result

    def record_failure(self) -> None:
        """Count a failure that happened outside execute(), such as the
        caller's timeout cancelling fn."""
        self._record_failure()

    def get_stats(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "success_count": self._success_count,
            "threshold": self._threshold,
            "reset_timeout": self._reset_timeout,
            "last_failure_at": (
                self._last_failure_at.isoformat() if self._last_failure_at else None
            ),
        }

    def reset(self) -> None:
        """Force the circuit closed and forget all failures."""
        self._cancel_reset_timer()
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time = None
        self._last_failure_at = None

    def _reset_timeout_elapsed(self) -> bool:
        if self._last_failure_time is None:
            return True
        return self._clock() - self._last_failure_time >= self._reset_timeout

    def _record_success(self) -> None:
        self._failure_count = 0
        if self._state is CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= _HALF_OPEN_SUCCESSES_TO_CLOSE:
                self._close()

    def _record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = self._clock()
        self._last_failure_at = datetime.now(timezone.utc)

        if self._state is CircuitState.HALF_OPEN:
            self._open()
        elif self._state is CircuitState.CLOSED and self._failure_count >= self._threshold:
            self._open()

    def _open(self) -> None:
        self._state = CircuitState.OPEN
        self._success_count = 0
        logger.warning(
            "Circuit breaker opened for %s after %d failures",
            self.name or "provider",
            self._failure_count,
        )
        self._schedule_reset_timer()
        if self._on_open is not None:
            self._on_open()

    def _close(self) -> None:
        self._cancel_reset_timer()
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        logger.info("Circuit breaker closed for %s", self.name or "provider")
        if self._on_close is not None:
            self._on_close()

    def _enter_half_open(self) -> None:
        if self._state is not CircuitState.OPEN:
            return
        self._cancel_reset_timer()
        self._state = CircuitState.HALF_OPEN
        self._success_count = 0
        logger.info("Circuit breaker half-open for %s", self.name or "provider")
        if self._on_half_open is not None:
            self._on_half_open()

    def _schedule_reset_timer(self) -> None:
        self._cancel_reset_timer()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: execute() performs the transition from the elapsed time.
            return
        self._reset_handle = loop.call_later(self._reset_timeout, self._enter_half_open)

    def _cancel_reset_timer(self) -> None:
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None
