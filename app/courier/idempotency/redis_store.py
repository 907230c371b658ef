"""Redis outcome store.

Shares cached delivery outcomes between worker processes. Outcomes are
stored as JSON and validated back into the configured pydantic model on read.

The store fails open: if Redis is unreachable a read is treated as a miss
and a write is dropped, both with a warning. A duplicate send is preferred
over a lost notification.
"""

from typing import Any, Dict, Optional, Type

from pydantic import BaseModel, ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from courier.idempotency.key_builder import IdempotencyKeyBuilder
from courier.idempotency.store import OutcomeStore
from courier.logging import get_module_logger
from courier.operations import classify_redis_error

logger = get_module_logger()


class RedisOutcomeStore(OutcomeStore):
    """Redis-backed outcome store.

    Args:
        client: ``redis.asyncio.Redis`` client
        model_type: Pydantic model used to decode cached outcomes
        key_prefix: Environment prefix used by the key builder, needed by clear()
    """

    def __init__(
        self,
        client: Redis,
        model_type: Type[BaseModel],
        key_prefix: str = "",
    ):
        self._client = client
        self._model_type = model_type
        self._match = f"{key_prefix}{IdempotencyKeyBuilder.NAMESPACE}:*"
        self._hits = 0
        self._misses = 0
        self._errors = 0

    @classmethod
    def from_url(
        cls, url: str, model_type: Type[BaseModel], key_prefix: str = ""
    ) -> "RedisOutcomeStore":
        client = Redis.from_url(url, decode_responses=True)
        return cls(client, model_type, key_prefix=key_prefix)

    async def get(self, key: str) -> Optional[BaseModel]:
        try:
            raw = await self._client.get(key)
        except RedisError as exc:
            self._errors += 1
            result = classify_redis_error(exc)
            logger.warning(
                "outcome_store_read_failed",
                key=key,
                error=result.message,
                error_code=result.error_code,
            )
            return None

        if raw is None:
            self._misses += 1
            return None

        try:
            outcome = self._model_type.model_validate_json(raw)
        except ValidationError as exc:
            self._misses += 1
            logger.warning("outcome_store_corrupt_entry", key=key, error=str(exc))
            return None

        self._hits += 1
        return outcome

    async def set(self, key: str, outcome: BaseModel, ttl_seconds: int) -> None:
        try:
            # First writer wins when several workers finish the same delivery
            await self._client.set(
                key, outcome.model_dump_json(), ex=ttl_seconds, nx=True
            )
        except RedisError as exc:
            self._errors += 1
            result = classify_redis_error(exc)
            logger.warning(
                "outcome_store_write_failed",
                key=key,
                error=result.message,
                error_code=result.error_code,
            )

    async def clear(self) -> None:
        keys = [key async for key in self._client.scan_iter(match=self._match)]
        if keys:
            await self._client.delete(*keys)
        self._hits = 0
        self._misses = 0
        self._errors = 0

    async def close(self) -> None:
        await self._client.aclose()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "backend": "redis",
            "hits": self._hits,
            "misses": self._misses,
            "errors": self._errors,
        }
