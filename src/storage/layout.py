# src/storage/layout.py — v1
"""Object path conventions for the durable store.

Paths are deterministic per slot so ``object_exists`` can answer
"was this slot published before?" without a lookup table:

    businesses/{entity_id}/logos/logo.{ext}
    businesses/{entity_id}/photos/photo-{index}.{ext}
"""

from __future__ import annotations

import re
from urllib.parse import urlparse

from bizimages.core.models import ImageSlot

ROOT_DIR = "businesses"
DEFAULT_EXTENSION = "jpg"

_CONTENT_TYPE_EXTENSIONS: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/svg+xml": "svg",
}
_VALID_EXTENSIONS = {"jpg", "jpeg", "png", "webp", "gif", "svg"}
_UNSAFE = re.compile(r"[^A-Za-z0-9._-]")


def extension_for(content_type: str | None = None, url: str | None = None) -> str:
    """Pick a file extension from a content type, else from a URL path."""
    if content_type:
        ext = _CONTENT_TYPE_EXTENSIONS.get(content_type.split(";")[0].strip().lower())
        if ext:
            return ext
    if url:
        suffix = urlparse(url).path.rsplit(".", 1)
        if len(suffix) == 2 and suffix[1].lower() in _VALID_EXTENSIONS:
            return suffix[1].lower()
    return DEFAULT_EXTENSION


def entity_dir(entity_id: str) -> str:
    """Return the directory holding every object of an entity."""
    return f"{ROOT_DIR}/{_UNSAFE.sub('_', entity_id)}"


def slot_path(slot: ImageSlot, extension: str = DEFAULT_EXTENSION) -> str:
    """Return the object path for one slot."""
    if slot.slot_kind == "logo":
        return f"{entity_dir(slot.entity_id)}/logos/logo.{extension}"
    return f"{entity_dir(slot.entity_id)}/photos/photo-{slot.index}.{extension}"
