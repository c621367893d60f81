# src/cache/redis_store.py — v1
"""Redis-based image cache (CACHE_BACKEND=redis).

Requires 'redis' package: pip install redis.
Suitable when several workers share one cache. Each slot is one JSON
value; a per-entity set indexes the slot keys so ``clear`` and
``list_slots`` never scan the keyspace.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError as PydanticValidationError

from bizimages.cache.base_cache_store import BaseImageCacheStore
from bizimages.core.errors import StoreError
from bizimages.core.models import CachedImage, ImageSlot

logger = logging.getLogger(__name__)

_KEY_PREFIX = "bizimages:image:"
_INDEX_PREFIX = "bizimages:entity:"


class RedisImageCacheStore(BaseImageCacheStore):
    """Redis-backed cache store for multi-worker deployments."""

    def __init__(self, redis_url: str) -> None:
        super().__init__()
        try:
            import redis
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        self._client = redis.Redis.from_url(redis_url, decode_responses=True)
        self._redis_error: type[Exception] = redis.RedisError

    async def get(self, slot: ImageSlot) -> CachedImage | None:
        """Retrieve the cached image for a slot."""
        try:
            data = self._client.get(f"{_KEY_PREFIX}{slot.key}")
        except self._redis_error as e:
            raise StoreError("get", e) from e
        if data is None:
            return None
        try:
            return CachedImage.model_validate_json(data)
        except PydanticValidationError as e:
            logger.warning("Unreadable cache entry %s, treating as miss: %s", slot.key, e)
            return None

    async def _write(self, slot: ImageSlot, image: CachedImage) -> None:
        # MULTI/EXEC so the value and its index entry land together
        pipe = self._client.pipeline(transaction=True)
        pipe.set(f"{_KEY_PREFIX}{slot.key}", image.model_dump_json())
        pipe.sadd(f"{_INDEX_PREFIX}{slot.entity_id}", slot.key)
        try:
            pipe.execute()
        except self._redis_error as e:
            raise StoreError("put", e) from e

    async def clear(self, entity_id: str) -> int:
        """Delete every slot of an entity plus its index set."""
        index_key = f"{_INDEX_PREFIX}{entity_id}"
        try:
            keys = self._client.smembers(index_key)
            pipe = self._client.pipeline(transaction=True)
            for key in keys:
                pipe.delete(f"{_KEY_PREFIX}{key}")
            pipe.delete(index_key)
            pipe.execute()
        except self._redis_error as e:
            raise StoreError("clear", e) from e
        return len(keys)

    async def list_slots(self, entity_id: str) -> list[ImageSlot]:
        """List cached slots of an entity from its index set."""
        try:
            keys = self._client.smembers(f"{_INDEX_PREFIX}{entity_id}")
        except self._redis_error as e:
            raise StoreError("list", e) from e
        slots = [ImageSlot.from_key(key) for key in keys]
        return sorted(slots, key=lambda s: (s.slot_kind, s.index))

    def close(self) -> None:
        """Close the connection pool."""
        self._client.close()
