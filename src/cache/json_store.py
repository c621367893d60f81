# src/cache/json_store.py — v1
"""JSON file-based image cache (CACHE_BACKEND=json).

One JSON document per slot under ``{cache_root}/{quoted entity_id}/``, bytes
base64-encoded. Writes go to a temp file that is then renamed over the
target, so readers see either the old entry or the new one.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from urllib.parse import quote

from pydantic import ValidationError as PydanticValidationError

from bizimages.cache.base_cache_store import BaseImageCacheStore
from bizimages.core.errors import StoreError
from bizimages.core.models import CachedImage, ImageSlot

logger = logging.getLogger(__name__)


def _safe(name: str) -> str:
    """Percent-encode an entity id into one directory name; distinct ids never collide."""
    return quote(name, safe="").replace(".", "%2E")


class JsonImageCacheStore(BaseImageCacheStore):
    """File-based cache store using one JSON file per slot."""

    def __init__(self, cache_root: Path | str) -> None:
        super().__init__()
        self._root = Path(cache_root).expanduser()
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError("init", e) from e

    async def get(self, slot: ImageSlot) -> CachedImage | None:
        """Retrieve the cached image for a slot."""
        path = self._slot_path(slot)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StoreError("get", e) from e
        try:
            image = CachedImage.model_validate_json(raw)
        except PydanticValidationError as e:
            logger.warning("Unreadable cache entry %s, treating as miss: %s", slot.key, e)
            return None
        if image.slot != slot:
            logger.warning("Cache entry at %s belongs to %s, treating as miss", slot.key, image.slot.key)
            return None
        return image

    async def _write(self, slot: ImageSlot, image: CachedImage) -> None:
        path = self._slot_path(slot)
        tmp = path.with_suffix(".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(image.model_dump_json(), encoding="utf-8")
            os.replace(tmp, path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise StoreError("put", e) from e

    async def clear(self, entity_id: str) -> int:
        """Remove the entity's directory."""
        count = len(await self.list_slots(entity_id))
        try:
            shutil.rmtree(self._entity_dir(entity_id), ignore_errors=False)
        except FileNotFoundError:
            return 0
        except OSError as e:
            raise StoreError("clear", e) from e
        return count

    async def list_slots(self, entity_id: str) -> list[ImageSlot]:
        """Slots are recovered from file names like ``photo-2.json``."""
        entity_dir = self._entity_dir(entity_id)
        if not entity_dir.is_dir():
            return []
        slots: list[ImageSlot] = []
        for path in sorted(entity_dir.glob("*.json")):
            kind, _, index = path.stem.partition("-")
            if kind not in ("logo", "photo") or not index.isdigit():
                continue
            slots.append(ImageSlot(entity_id=entity_id, slot_kind=kind, index=int(index)))  # type: ignore[arg-type]
        return slots

    def _entity_dir(self, entity_id: str) -> Path:
        return self._root / _safe(entity_id)

    def _slot_path(self, slot: ImageSlot) -> Path:
        return self._entity_dir(slot.entity_id) / f"{slot.slot_kind}-{slot.index}.json"
