# src/entities/base_repository.py — v1
"""Abstract read-only access to business records."""

from __future__ import annotations

from abc import ABC, abstractmethod

from bizimages.core.models import EntitySnapshot


class BaseEntityRepository(ABC):
    """Read-only view of the business table, supplied by the CRUD layer."""

    @abstractmethod
    async def get(self, entity_id: str) -> EntitySnapshot | None:
        """Return one entity, or None if unknown."""

    @abstractmethod
    async def list_ids(self) -> list[str]:
        """Return every entity id, in the repository's natural order."""
