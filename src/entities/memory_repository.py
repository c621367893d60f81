# src/entities/memory_repository.py — v1
"""Dict-backed entity repository."""

from __future__ import annotations

from collections.abc import Iterable

from bizimages.core.models import EntitySnapshot
from bizimages.entities.base_repository import BaseEntityRepository


class InMemoryEntityRepository(BaseEntityRepository):
    """Holds snapshots in insertion order."""

    def __init__(self, entities: Iterable[EntitySnapshot] = ()) -> None:
        self._entities: dict[str, EntitySnapshot] = {e.id: e for e in entities}

    async def get(self, entity_id: str) -> EntitySnapshot | None:
        return self._entities.get(entity_id)

    async def list_ids(self) -> list[str]:
        return list(self._entities)

    def add(self, entity: EntitySnapshot) -> None:
        self._entities[entity.id] = entity
