"""Single-flight deduplication guard.

Wraps a delivery operation so that, per idempotency key:

- a cached terminal outcome is returned without running the operation
- concurrent callers join the one in-flight operation instead of starting
  their own
- the terminal outcome is cached for the configured TTL

Exceptions raised by the operation reach every joiner and are not cached,
so the next attempt for the key runs again. A failing store write is
logged and never fails a finished operation.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from pydantic import BaseModel

from courier.idempotency.store import OutcomeStore
from courier.logging import get_module_logger

logger = get_module_logger()


def _consume_exception(future: asyncio.Future) -> None:
    # Avoid "exception was never retrieved" when nobody joined
    if not future.cancelled():
        future.exception()


class DeduplicationGuard:
    """Claim-or-join guard over an OutcomeStore.

    Args:
        store: Outcome store holding terminal outcomes
        ttl_seconds: Lifetime of a cached outcome
        is_terminal: Predicate deciding whether an outcome may be cached.
            Defaults to caching everything.
    """

    def __init__(
        self,
        store: OutcomeStore,
        ttl_seconds: int = 300,
        is_terminal: Optional[Callable[[Any], bool]] = None,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._is_terminal = is_terminal or (lambda outcome: True)
        self._in_flight: Dict[str, asyncio.Future] = {}
        self._lock = asyncio.Lock()

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    async def run(
        self, key: str, operation: Callable[[], Awaitable[BaseModel]]
    ) -> Tuple[BaseModel, bool]:
        """Run ``operation`` at most once per key.

        Args:
            key: Idempotency key
            operation: Zero-argument coroutine function producing the outcome

        Returns:
            Tuple of (outcome, deduped). ``deduped`` is True when the outcome
            came from the store or from another caller's in-flight operation.
        """
        cached = await self.store.get(key)
        if cached is not None:
            logger.info("delivery_deduplicated", key=key, source="store")
            return cached, True

        async with self._lock:
            future = self._in_flight.get(key)
            owner = future is None
            if owner:
                # The previous owner may have finished between our read and the lock
                cached = await self.store.get(key)
                if cached is not None:
                    logger.info("delivery_deduplicated", key=key, source="store")
                    return cached, True
                future = asyncio.get_running_loop().create_future()
                future.add_done_callback(_consume_exception)
                self._in_flight[key] = future

        if not owner:
            logger.info("delivery_deduplicated", key=key, source="in_flight")
            outcome = await asyncio.shield(future)
            return outcome, True

        try:
            outcome = await operation()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(outcome)
            if self._is_terminal(outcome):
                await self._remember(key, outcome)
            return outcome, False
        finally:
            async with self._lock:
                self._in_flight.pop(key, None)

    async def _remember(self, key: str, outcome: BaseModel) -> None:
        # The operation already happened; losing the cache entry only risks a
        # duplicate on replay
        try:
            await self.store.set(key, outcome, self.ttl_seconds)
        except Exception as e:
            logger.warning(
                "delivery_outcome_not_cached",
                key=key,
                error=str(e),
                store=type(self.store).__name__,
            )
