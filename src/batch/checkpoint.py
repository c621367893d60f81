# src/batch/checkpoint.py — v1
"""Resumable-batch checkpoint: the set of entities already done.

Written atomically (temp file then rename) after every chunk, so an
interrupted run picks up where it stopped. Only entities that succeeded
are recorded; failed ones are retried on the next run.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from bizimages.core.errors import StoreError

logger = logging.getLogger(__name__)

CHECKPOINT_VERSION = "1.0"


class BatchCheckpoint:
    """Completed entity ids, persisted as JSON."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()
        self._data: dict[str, Any] = self._empty()
        self._load()

    @staticmethod
    def _empty() -> dict[str, Any]:
        now = datetime.now(timezone.utc).isoformat()
        return {
            "version": CHECKPOINT_VERSION,
            "created_at": now,
            "last_updated": now,
            "completed": {},
        }

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            loaded = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.warning("Unreadable checkpoint %s (%s), starting fresh", self.path, e)
            return
        except OSError as e:
            raise StoreError("checkpoint load", e) from e

        if not isinstance(loaded, dict) or loaded.get("version") != CHECKPOINT_VERSION:
            logger.warning("Checkpoint version mismatch in %s, starting fresh", self.path)
            return
        self._data = loaded
        logger.info(
            "Loaded checkpoint %s (%d completed entities)", self.path, len(loaded["completed"])
        )

    def is_complete(self, entity_id: str) -> bool:
        with self._lock:
            return entity_id in self._data["completed"]

    def completed_ids(self) -> set[str]:
        with self._lock:
            return set(self._data["completed"])

    def mark_complete(self, entity_ids: Iterable[str]) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self._lock:
            for entity_id in entity_ids:
                self._data["completed"][entity_id] = now
            self._data["last_updated"] = now

    def flush(self) -> None:
        """Atomically write the checkpoint to disk."""
        with self._lock:
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                tmp.write_text(json.dumps(self._data, indent=2), encoding="utf-8")
                tmp.replace(self.path)
            except OSError as e:
                raise StoreError("checkpoint flush", e) from e
        logger.debug("Checkpoint flushed to %s", self.path)

    def clear(self) -> None:
        """Forget all progress and remove the file."""
        with self._lock:
            self._data = self._empty()
            try:
                self.path.unlink(missing_ok=True)
            except OSError as e:
                raise StoreError("checkpoint clear", e) from e
        logger.info("Checkpoint %s cleared", self.path)
