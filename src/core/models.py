# src/core/models.py — v1
"""Shared Pydantic domain models used across modules.

No module redefines these types — all imports come from core.models.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Downloads shorter than this are treated as truncated or corrupt.
MIN_VALID_SIZE = 1000

SlotKind = Literal["logo", "photo"]

Origin = Literal[
    "cache", "durable-store", "remote-api", "generic-fallback", "placeholder"
]

# Origins that came from the business itself rather than a substitute.
AUTHENTIC_ORIGINS: frozenset[str] = frozenset({"durable-store", "remote-api"})


# === ENTITY ===


class EntitySnapshot(BaseModel):
    """Read-only view of a business record, supplied by the CRUD layer."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category: str | None = None
    remote_image_reference: str | None = None
    known_durable_url: str | None = None
    photo_references: list[str] = Field(default_factory=list)
    known_photo_urls: list[str] = Field(default_factory=list)


# === IMAGE SLOTS ===


class ImageSlot(BaseModel):
    """One addressable image position (logo, or photo N) of one entity."""

    model_config = ConfigDict(frozen=True)

    entity_id: str = Field(min_length=1)
    slot_kind: SlotKind
    index: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _logo_is_index_zero(self) -> ImageSlot:
        if self.slot_kind == "logo" and self.index != 0:
            raise ValueError("logo slots always have index 0")
        return self

    @property
    def key(self) -> str:
        """Canonical cache key, e.g. ``biz_42:photo:3``."""
        return f"{self.entity_id}:{self.slot_kind}:{self.index}"

    @classmethod
    def logo(cls, entity_id: str) -> ImageSlot:
        return cls(entity_id=entity_id, slot_kind="logo", index=0)

    @classmethod
    def photo(cls, entity_id: str, index: int) -> ImageSlot:
        return cls(entity_id=entity_id, slot_kind="photo", index=index)

    @classmethod
    def from_key(cls, key: str) -> ImageSlot:
        """Inverse of ``key``. Entity ids may themselves contain colons."""
        entity_id, slot_kind, index = key.rsplit(":", 2)
        return cls(entity_id=entity_id, slot_kind=slot_kind, index=int(index))  # type: ignore[arg-type]


def slots_for(entity: EntitySnapshot, max_photos: int | None = None) -> list[ImageSlot]:
    """All slots an entity owns: the logo plus one per photo reference."""
    photo_count = max(len(entity.photo_references), len(entity.known_photo_urls))
    if max_photos is not None:
        photo_count = min(photo_count, max_photos)
    slots = [ImageSlot.logo(entity.id)]
    slots.extend(ImageSlot.photo(entity.id, i) for i in range(photo_count))
    return slots


# === CACHED IMAGES ===


class CachedImage(BaseModel):
    """Image bytes plus provenance, as committed to the cache store."""

    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")

    slot: ImageSlot
    data: bytes
    content_type: str
    origin: Origin
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source_url: str | None = None
    original_origin: Origin | None = None

    @model_validator(mode="after")
    def _enforce_min_size(self) -> CachedImage:
        # Cache hits keep the stored origin in original_origin
        if self.provenance != "placeholder" and len(self.data) < MIN_VALID_SIZE:
            raise ValueError(
                f"image for {self.slot.key} is {len(self.data)} bytes, "
                f"below the {MIN_VALID_SIZE}-byte minimum"
            )
        return self

    @property
    def provenance(self) -> Origin:
        """Where the bytes really came from, looking through cache hits."""
        return self.original_origin or self.origin

    @property
    def is_authentic(self) -> bool:
        """False for generic stock imagery and placeholders."""
        return self.provenance in AUTHENTIC_ORIGINS

    def as_cache_hit(self) -> CachedImage:
        """Copy tagged ``origin="cache"`` that remembers the stored origin."""
        return self.model_copy(
            update={"origin": "cache", "original_origin": self.provenance}
        )
