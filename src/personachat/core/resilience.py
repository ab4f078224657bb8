"""
Resilience patterns for external capability calls.

Bounds every generation, voice and delivery call with a timeout and
trips a circuit breaker when a backend keeps failing, so one hung or
dead service cannot stall a whole dispatch tick.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .exceptions import CapabilityTimeoutError, CircuitBreakerOpen

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_with_timeout(
    capability: str,
    func: Callable[..., Awaitable[T]],
    *args: Any,
    timeout: float,
    **kwargs: Any,
) -> T:
    """
    Await ``func(*args, **kwargs)`` for at most ``timeout`` seconds.

    Raises:
        CapabilityTimeoutError: If the call did not complete in time
    """
    try:
        return await asyncio.wait_for(func(*args, **kwargs), timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise CapabilityTimeoutError(capability, timeout) from exc


class CircuitState(str, Enum):
    """
    Circuit breaker states.

    State transitions:
        CLOSED -> OPEN (after failure_threshold consecutive failures)
        OPEN -> HALF_OPEN (after recovery_timeout)
        HALF_OPEN -> CLOSED (on success)
        HALF_OPEN -> OPEN (on any failure)
    """
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Circuit breaker configuration."""
    failure_threshold: int = 3
    recovery_timeout: float = 300.0
    name: str = "circuit"


class CircuitBreaker:
    """
    Async circuit breaker.

    Not shared across event loops; each scheduler owns its own.

    Example:
        >>> breaker = CircuitBreaker(CircuitBreakerConfig(name="generation"))
        >>> text = await breaker.call(generator.generate_proactive_message, persona, history)
    """

    def __init__(
        self,
        config: CircuitBreakerConfig,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: Optional[float] = None

    @property
    def state(self) -> CircuitState:
        """Current state, moving OPEN -> HALF_OPEN once the recovery window passed."""
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            if self._clock() - self._opened_at >= self.config.recovery_timeout:
                logger.info(f"[{self.config.name}] Circuit transitioning to HALF_OPEN")
                self._state = CircuitState.HALF_OPEN
        return self._state

    async def call(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """
        Await func with circuit breaker protection.

        Raises:
            CircuitBreakerOpen: If circuit is open
            Exception: Any exception from func (after recording)
        """
        if self.state == CircuitState.OPEN:
            elapsed = self._clock() - (self._opened_at or 0.0)
            raise CircuitBreakerOpen(
                self.config.name, max(0.0, self.config.recovery_timeout - elapsed)
            )

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self._on_failure()
            raise
        self._on_success()
        return result

    def _on_success(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            logger.info(f"[{self.config.name}] Circuit closing (recovered)")
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at = None

    def _on_failure(self) -> None:
        self._failure_count += 1
        if self._state == CircuitState.HALF_OPEN:
            logger.warning(f"[{self.config.name}] Circuit re-opening (failed during recovery)")
            self._trip()
        elif self._failure_count >= self.config.failure_threshold:
            logger.error(
                f"[{self.config.name}] Circuit opening "
                f"({self._failure_count} consecutive failures)"
            )
            self._trip()

    def _trip(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()

    def reset(self) -> None:
        """Manually reset circuit to CLOSED state."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at = None
