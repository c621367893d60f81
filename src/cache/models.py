# src/cache/models.py — v1
"""Cache domain models: CacheStatus."""

from __future__ import annotations

from pydantic import BaseModel


class CacheStatus(BaseModel):
    """How many of an entity's image slots are already cached."""

    entity_id: str
    total_slots: int
    cached_slots: int
    percentage: int

    @property
    def needs_download(self) -> bool:
        return self.percentage < 100

    @classmethod
    def compute(
        cls, entity_id: str, cached_slots: int, total_slots: int | None = None
    ) -> CacheStatus:
        """Build a status; total never drops below what is already cached."""
        total = max(total_slots or 0, cached_slots)
        percentage = round(cached_slots / total * 100) if total > 0 else 0
        return cls(
            entity_id=entity_id,
            total_slots=total,
            cached_slots=cached_slots,
            percentage=percentage,
        )
