# src/cache/sqlite_store.py — v1
"""SQLite-based image cache (CACHE_BACKEND=sqlite, the default).

Uses stdlib sqlite3 — no external dependency. Image bytes live in a BLOB
column next to their metadata, so an upsert is a single-row transaction.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Mapping
from datetime import datetime
from pathlib import Path

from bizimages.cache.base_cache_store import BaseImageCacheStore
from bizimages.cache.models import CacheStatus
from bizimages.core.errors import StoreError
from bizimages.core.models import CachedImage, ImageSlot

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS cached_images (
    slot_key TEXT PRIMARY KEY,
    entity_id TEXT NOT NULL,
    slot_kind TEXT NOT NULL,
    slot_index INTEGER NOT NULL,
    data BLOB NOT NULL,
    content_type TEXT NOT NULL,
    origin TEXT NOT NULL,
    source_url TEXT,
    fetched_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_cached_images_entity ON cached_images(entity_id);
"""

_COLUMNS = "slot_key, entity_id, slot_kind, slot_index, data, content_type, origin, source_url, fetched_at"


class SqliteImageCacheStore(BaseImageCacheStore):
    """SQLite-backed cache store for thousands of entities."""

    def __init__(self, db_path: Path | str) -> None:
        super().__init__()
        self._db_path = Path(db_path).expanduser()
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self._db_path))
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(_SCHEMA)
        except (OSError, sqlite3.Error) as e:
            raise StoreError("init", e) from e

    async def get(self, slot: ImageSlot) -> CachedImage | None:
        """Retrieve the cached image for a slot."""
        try:
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM cached_images WHERE slot_key = ?",
                (slot.key,),
            ).fetchone()
        except sqlite3.Error as e:
            raise StoreError("get", e) from e
        if row is None:
            return None
        try:
            return CachedImage(
                slot=slot,
                data=bytes(row[4]),
                content_type=row[5],
                origin=row[6],
                source_url=row[7],
                fetched_at=datetime.fromisoformat(row[8]),
            )
        except ValueError as e:
            logger.warning("Unreadable cache row %s, treating as miss: %s", slot.key, e)
            return None

    async def _write(self, slot: ImageSlot, image: CachedImage) -> None:
        try:
            with self._conn:
                self._conn.execute(
                    f"INSERT OR REPLACE INTO cached_images ({_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        slot.key,
                        slot.entity_id,
                        slot.slot_kind,
                        slot.index,
                        sqlite3.Binary(image.data),
                        image.content_type,
                        image.origin,
                        image.source_url,
                        image.fetched_at.isoformat(),
                    ),
                )
        except sqlite3.Error as e:
            raise StoreError("put", e) from e

    async def clear(self, entity_id: str) -> int:
        """Delete all rows of an entity."""
        try:
            with self._conn:
                cursor = self._conn.execute(
                    "DELETE FROM cached_images WHERE entity_id = ?", (entity_id,)
                )
        except sqlite3.Error as e:
            raise StoreError("clear", e) from e
        return cursor.rowcount

    async def list_slots(self, entity_id: str) -> list[ImageSlot]:
        """List cached slots of an entity, logo first."""
        try:
            rows = self._conn.execute(
                "SELECT slot_kind, slot_index FROM cached_images "
                "WHERE entity_id = ? ORDER BY slot_kind, slot_index",
                (entity_id,),
            ).fetchall()
        except sqlite3.Error as e:
            raise StoreError("list", e) from e
        return [
            ImageSlot(entity_id=entity_id, slot_kind=kind, index=index)
            for kind, index in rows
        ]

    async def bulk_status(
        self,
        entity_ids: Iterable[str],
        total_slots: Mapping[str, int] | None = None,
    ) -> dict[str, CacheStatus]:
        """Single GROUP BY query instead of one query per entity."""
        ids = list(entity_ids)
        totals = total_slots or {}
        counts: dict[str, int] = {}
        try:
            # Chunked to stay under SQLite's bound-parameter limit
            for start in range(0, len(ids), 500):
                chunk = ids[start:start + 500]
                placeholders = ",".join("?" * len(chunk))
                for entity_id, count in self._conn.execute(
                    "SELECT entity_id, COUNT(*) FROM cached_images "
                    f"WHERE entity_id IN ({placeholders}) GROUP BY entity_id",
                    chunk,
                ):
                    counts[entity_id] = count
        except sqlite3.Error as e:
            raise StoreError("bulk_status", e) from e
        return {
            entity_id: CacheStatus.compute(
                entity_id, counts.get(entity_id, 0), totals.get(entity_id)
            )
            for entity_id in ids
        }

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
