"""Circuit breaker for provider channels.

One breaker guards one channel. When a provider keeps failing, the breaker
opens and further sends fail fast, so a dead provider does not soak up the
retry budget of every notification in flight.

State transitions:
- CLOSED -> OPEN: failure_threshold counted failures within window_seconds
- OPEN -> HALF_OPEN: after the cooldown expires (checked on the next call)
- HALF_OPEN -> CLOSED: the single probe succeeds
- HALF_OPEN -> OPEN: the probe fails; the cooldown grows by cooldown_multiplier

Only exceptions listed in ``counted_exceptions`` count as failures. Anything
else (a rejected recipient, a validation error) passes through without
touching the window, because the provider itself answered.
"""

import threading
import time
from collections import deque
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Tuple, Type

from courier.logging import get_module_logger

logger = get_module_logger()


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpenError(Exception):
    """Raised when the breaker rejects a call without running it."""

    def __init__(self, name: str, retry_in_seconds: float = 0.0):
        self.name = name
        self.retry_in_seconds = max(0.0, retry_in_seconds)
        super().__init__(
            f"Circuit breaker '{name}' is OPEN. "
            f"Retry in {int(self.retry_in_seconds)} seconds."
        )


class CircuitBreaker:
    """Async sliding-window circuit breaker.

    State is mutated under a threading.Lock that is never held across an
    await, so the provider call itself runs unlocked.

    Args:
        name: Name of the circuit (typically the channel)
        failure_threshold: Failures within the window before opening
        window_seconds: Sliding window for counting failures
        cooldown_seconds: Time spent OPEN before a probe is admitted
        half_open_max_calls: Probes admitted concurrently in HALF_OPEN
        cooldown_multiplier: Cooldown growth factor after a failed probe
        max_cooldown_seconds: Cap for the grown cooldown
        counted_exceptions: Exception types that count as failures
        clock: Monotonic time source (injectable for tests)
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        window_seconds: float = 60,
        cooldown_seconds: float = 60,
        half_open_max_calls: int = 1,
        cooldown_multiplier: float = 1.0,
        max_cooldown_seconds: float = 600,
        counted_exceptions: Tuple[Type[BaseException], ...] = (Exception,),
        clock: Callable[[], float] = time.monotonic,
    ):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if half_open_max_calls < 1:
            raise ValueError("half_open_max_calls must be at least 1")
        if cooldown_multiplier < 1.0:
            raise ValueError("cooldown_multiplier must be >= 1.0")

        self.name = name
        self.failure_threshold = failure_threshold
        self.window_seconds = window_seconds
        self.cooldown_seconds = cooldown_seconds
        self.half_open_max_calls = half_open_max_calls
        self.cooldown_multiplier = cooldown_multiplier
        self.max_cooldown_seconds = max(max_cooldown_seconds, cooldown_seconds)
        self.counted_exceptions = counted_exceptions
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failures: Deque[float] = deque()
        self._opened_at: Optional[float] = None
        self._current_cooldown = float(cooldown_seconds)
        self._half_open_calls = 0

        self._total_successes = 0
        self._total_failures = 0
        self._total_rejections = 0

        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Run ``func`` through the breaker.

        Raises:
            CircuitBreakerOpenError: If the circuit is OPEN, or HALF_OPEN with
                its probe slot taken
            Exception: Whatever ``func`` raises
        """
        is_probe = self._admit()

        try:
            result = await func(*args, **kwargs)
        except self.counted_exceptions as exc:
            self._on_failure(exc, is_probe)
            raise
        except BaseException:
            self._release(is_probe)
            raise

        self._on_success(is_probe)
        return result

    def _admit(self) -> bool:
        """Admit or reject a call. Returns True when the call is a probe."""
        with self._lock:
            if self._state == CircuitState.OPEN:
                remaining = self._cooldown_remaining()
                if remaining > 0:
                    self._total_rejections += 1
                    logger.warning(
                        "circuit_breaker_rejected",
                        name=self.name,
                        retry_in_seconds=int(remaining),
                    )
                    raise CircuitBreakerOpenError(self.name, remaining)
                self._transition_to_half_open()

            if self._state == CircuitState.HALF_OPEN:
                if self._half_open_calls >= self.half_open_max_calls:
                    self._total_rejections += 1
                    logger.debug(
                        "circuit_breaker_half_open_limit",
                        name=self.name,
                        calls=self._half_open_calls,
                    )
                    raise CircuitBreakerOpenError(self.name, 0.0)
                self._half_open_calls += 1
                return True

            return False

    def _on_success(self, is_probe: bool) -> None:
        with self._lock:
            self._total_successes += 1
            if is_probe and self._state == CircuitState.HALF_OPEN:
                logger.info("circuit_breaker_probe_succeeded", name=self.name)
                self._transition_to_closed()
            elif self._state == CircuitState.CLOSED and self._failures:
                self._failures.clear()

    def _on_failure(self, exc: BaseException, is_probe: bool) -> None:
        with self._lock:
            self._total_failures += 1
            now = self._clock()

            if is_probe and self._state == CircuitState.HALF_OPEN:
                self._current_cooldown = min(
                    self._current_cooldown * self.cooldown_multiplier,
                    self.max_cooldown_seconds,
                )
                logger.warning(
                    "circuit_breaker_probe_failed",
                    name=self.name,
                    error=str(exc),
                    cooldown_seconds=self._current_cooldown,
                )
                self._transition_to_open(now)
                return

            if self._state != CircuitState.CLOSED:
                return

            self._failures.append(now)
            self._prune_window(now)

            if len(self._failures) >= self.failure_threshold:
                logger.error(
                    "circuit_breaker_threshold_exceeded",
                    name=self.name,
                    failure_count=len(self._failures),
                    threshold=self.failure_threshold,
                    error=str(exc),
                )
                self._transition_to_open(now)
            else:
                logger.warning(
                    "circuit_breaker_failure",
                    name=self.name,
                    failure_count=len(self._failures),
                    threshold=self.failure_threshold,
                    error=str(exc),
                )

    def _release(self, is_probe: bool) -> None:
        """Free a probe slot after an outcome that says nothing about health."""
        if not is_probe:
            return
        with self._lock:
            if self._state == CircuitState.HALF_OPEN and self._half_open_calls > 0:
                self._half_open_calls -= 1

    def _prune_window(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._failures and self._failures[0] <= cutoff:
            self._failures.popleft()

    def _cooldown_remaining(self) -> float:
        if self._opened_at is None:
            return 0.0
        return self._current_cooldown - (self._clock() - self._opened_at)

    def _transition_to_closed(self) -> None:
        logger.info("circuit_breaker_closed", name=self.name)
        self._state = CircuitState.CLOSED
        self._failures.clear()
        self._opened_at = None
        self._current_cooldown = float(self.cooldown_seconds)
        self._half_open_calls = 0

    def _transition_to_open(self, now: float) -> None:
        logger.error(
            "circuit_breaker_opened",
            name=self.name,
            cooldown_seconds=self._current_cooldown,
        )
        self._state = CircuitState.OPEN
        self._opened_at = now
        self._failures.clear()
        self._half_open_calls = 0

    def _transition_to_half_open(self) -> None:
        logger.info("circuit_breaker_half_open", name=self.name)
        self._state = CircuitState.HALF_OPEN
        self._half_open_calls = 0

    def get_stats(self) -> Dict[str, Any]:
        """Get circuit breaker statistics."""
        with self._lock:
            if self._state == CircuitState.CLOSED:
                self._prune_window(self._clock())
            retry_in = (
                max(0.0, self._cooldown_remaining())
                if self._state == CircuitState.OPEN
                else 0.0
            )
            return {
                "name": self.name,
                "state": self._state.value,
                "failure_count": len(self._failures),
                "failure_threshold": self.failure_threshold,
                "cooldown_seconds": self._current_cooldown,
                "retry_in_seconds": retry_in,
                "half_open_calls": self._half_open_calls,
                "total_successes": self._total_successes,
                "total_failures": self._total_failures,
                "total_rejections": self._total_rejections,
            }

    def reset(self) -> None:
        """Manually reset the breaker (for testing/admin operations)."""
        with self._lock:
            logger.info("circuit_breaker_manual_reset", name=self.name)
            self._transition_to_closed()


# Global registry for monitoring
_circuit_breaker_registry: Dict[str, CircuitBreaker] = {}


def register_circuit_breaker(cb: CircuitBreaker) -> None:
    """Register a circuit breaker for monitoring. Replaces any breaker of the same name."""
    _circuit_breaker_registry[cb.name] = cb


def get_circuit_breaker(name: str) -> Optional[CircuitBreaker]:
    return _circuit_breaker_registry.get(name)


def get_all_circuit_breaker_stats() -> Dict[str, Dict[str, Any]]:
    return {name: cb.get_stats() for name, cb in _circuit_breaker_registry.items()}


def get_open_circuit_breakers() -> List[str]:
    """Get names of circuit breakers that are currently OPEN."""
    return [
        name
        for name, cb in _circuit_breaker_registry.items()
        if cb.state == CircuitState.OPEN
    ]


def clear_circuit_breaker_registry() -> None:
    """Forget every registered breaker (for testing)."""
    _circuit_breaker_registry.clear()
