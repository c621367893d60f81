# src/entities/json_repository.py — v1
"""Entity repository over a business-data JSON export.

Accepts either a bare list of business records or a search response
object (``{"businesses": [...]}``). Both the API's camelCase and the
database's snake_case field names are understood.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from bizimages.core.models import EntitySnapshot
from bizimages.entities.memory_repository import InMemoryEntityRepository

logger = logging.getLogger(__name__)


def _first(record: dict[str, Any], *names: str) -> Any:
    for name in names:
        value = record.get(name)
        if value not in (None, ""):
            return value
    return None


def _url_list(value: Any) -> list[str]:
    """Photo lists come as URLs, ``{"url": ...}`` objects, or a JSON string of either."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return [value] if value else []
    if not isinstance(value, list):
        return []
    urls: list[str] = []
    for item in value:
        if isinstance(item, str) and item:
            urls.append(item)
        elif isinstance(item, dict) and item.get("url"):
            urls.append(str(item["url"]))
    return urls


def snapshot_from_record(record: dict[str, Any]) -> EntitySnapshot:
    """Map one exported business record to an EntitySnapshot."""
    return EntitySnapshot(
        id=str(record["id"]),
        name=str(record.get("name") or record["id"]),
        category=_first(record, "category"),
        remote_image_reference=_first(
            record, "logoUrl", "logo_url", "photoReference", "photo_reference"
        ),
        known_durable_url=_first(record, "logoS3Url", "logo_s3_url"),
        photo_references=_url_list(record.get("photos")),
        known_photo_urls=_url_list(_first(record, "photosS3Urls", "photos_s3_urls")),
    )


class JsonEntityRepository(InMemoryEntityRepository):
    """Loads every record of an export file once, at construction."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path).expanduser()
        data = json.loads(self._path.read_text(encoding="utf-8"))
        records = data.get("businesses", []) if isinstance(data, dict) else data

        snapshots: list[EntitySnapshot] = []
        for record in records:
            if not isinstance(record, dict) or "id" not in record:
                logger.warning("Skipping business record without id in %s", self._path)
                continue
            snapshots.append(snapshot_from_record(record))

        super().__init__(snapshots)
        logger.info("Loaded %d businesses from %s", len(snapshots), self._path)
