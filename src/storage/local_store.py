# src/storage/local_store.py — v1
"""Local filesystem durable store (DURABLE_STORE=local).

Objects land under a root directory that a static host serves at
``public_base_url``. Writes go through a temp file and a rename.
"""

from __future__ import annotations

import os
from pathlib import Path

from bizimages.core.errors import StoreError
from bizimages.storage.base_durable_store import BaseDurableStore


class LocalDurableStore(BaseDurableStore):
    """Write images to a directory served by a static host."""

    def __init__(self, root: Path | str, public_base_url: str = "") -> None:
        """Initialize with a root directory.

        Args:
            root: Directory all object paths are relative to.
            public_base_url: URL prefix the root is served from. Empty means
                ``file://`` URLs.
        """
        self._root = Path(root).expanduser()
        self._base_url = public_base_url.rstrip("/")

    def _resolve(self, path: str) -> Path:
        resolved = (self._root / path).resolve()
        if not resolved.is_relative_to(self._root.resolve()):
            raise StoreError("resolve", f"path escapes store root: {path!r}")
        return resolved

    async def put_object(
        self, path: str, data: bytes, content_type: str = "image/jpeg"
    ) -> str:
        """Write bytes to a local file and return its public URL."""
        target = self._resolve(path)
        tmp = target.with_name(target.name + ".tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(data)
            os.replace(tmp, target)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise StoreError("put_object", e) from e
        return self.public_url(path)

    async def object_exists(self, path: str) -> bool:
        """Check if a local file exists."""
        return self._resolve(path).is_file()

    def public_url(self, path: str) -> str:
        if self._base_url:
            return f"{self._base_url}/{path}"
        return self._resolve(path).as_uri()
