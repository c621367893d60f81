# src/cache/base_cache_store.py — v1
"""Abstract image cache store interface.

Backends implement the raw slot operations; ``put`` serializes writes per
slot and ``status``/``bulk_status`` are derived from ``list_slots``.
Backend failures are raised as StoreError, never swallowed.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping

from bizimages.cache.models import CacheStatus
from bizimages.core.models import CachedImage, ImageSlot


class BaseImageCacheStore(ABC):
    """Unified interface for image cache backends."""

    def __init__(self) -> None:
        self._slot_locks: dict[str, asyncio.Lock] = {}

    @abstractmethod
    async def get(self, slot: ImageSlot) -> CachedImage | None:
        """Return the cached image for a slot, or None. Never touches the network."""

    @abstractmethod
    async def _write(self, slot: ImageSlot, image: CachedImage) -> None:
        """Atomically replace the entry for a slot."""

    @abstractmethod
    async def clear(self, entity_id: str) -> int:
        """Remove every slot of an entity. Returns how many were removed."""

    @abstractmethod
    async def list_slots(self, entity_id: str) -> list[ImageSlot]:
        """List cached slots of an entity."""

    async def put(self, slot: ImageSlot, image: CachedImage) -> None:
        """Upsert the entry for ``slot``; concurrent writers to one slot are serialized."""
        if image.slot != slot:
            raise ValueError(f"image belongs to {image.slot.key}, not {slot.key}")
        if image.origin == "cache":
            # Persist the real provenance, not the hit marker
            image = image.model_copy(
                update={"origin": image.provenance, "original_origin": None}
            )
        async with self._lock_for(slot):
            await self._write(slot, image)

    async def status(self, entity_id: str, total_slots: int | None = None) -> CacheStatus:
        """Cached vs. expected slot count for one entity."""
        cached = len(await self.list_slots(entity_id))
        return CacheStatus.compute(entity_id, cached, total_slots)

    async def bulk_status(
        self,
        entity_ids: Iterable[str],
        total_slots: Mapping[str, int] | None = None,
    ) -> dict[str, CacheStatus]:
        """Status for many entities at once, keyed by entity id."""
        totals = total_slots or {}
        result: dict[str, CacheStatus] = {}
        for entity_id in entity_ids:
            result[entity_id] = await self.status(entity_id, totals.get(entity_id))
        return result

    def _lock_for(self, slot: ImageSlot) -> asyncio.Lock:
        lock = self._slot_locks.get(slot.key)
        if lock is None:
            lock = self._slot_locks[slot.key] = asyncio.Lock()
        return lock

    def close(self) -> None:
        """Release backend resources. No-op by default."""
