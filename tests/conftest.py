# tests/conftest.py — v1
"""Shared test fixtures for all unit and integration tests.

Provides sample businesses, valid image payloads, an in-memory cache store
and an httpx MockTransport factory. No external services — all network
I/O goes through mock transports.
"""

from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

from bizimages.cache.base_cache_store import BaseImageCacheStore
from bizimages.core.models import CachedImage, EntitySnapshot, ImageSlot
from bizimages.fetching.retrying_fetcher import RetryingFetcher


def image_bytes(size: int = 2048, marker: bytes = b"\xff\xd8\xff\xe0") -> bytes:
    """JPEG-looking payload above the minimum valid size."""
    return marker + b"\x00" * (size - len(marker))


def jpeg_response(size: int = 2048) -> httpx.Response:
    return httpx.Response(200, content=image_bytes(size), headers={"content-type": "image/jpeg"})


class MemoryCacheStore(BaseImageCacheStore):
    """Dict-backed cache store for orchestration tests."""

    def __init__(self) -> None:
        super().__init__()
        self.entries: dict[str, CachedImage] = {}
        self.puts: list[ImageSlot] = []

    async def get(self, slot: ImageSlot) -> CachedImage | None:
        return self.entries.get(slot.key)

    async def _write(self, slot: ImageSlot, image: CachedImage) -> None:
        self.puts.append(slot)
        self.entries[slot.key] = image

    async def clear(self, entity_id: str) -> int:
        keys = [k for k, v in self.entries.items() if v.slot.entity_id == entity_id]
        for key in keys:
            del self.entries[key]
        return len(keys)

    async def list_slots(self, entity_id: str) -> list[ImageSlot]:
        return [v.slot for v in self.entries.values() if v.slot.entity_id == entity_id]


# === FIXTURES: Sample data ===


@pytest.fixture
def sample_entity() -> EntitySnapshot:
    """Business with a remote logo reference and two photo references."""
    return EntitySnapshot(
        id="biz_001",
        name="Al Noor Typing Center",
        category="Typing Services",
        remote_image_reference="https://cdn.example.com/biz_001/logo.jpg",
        photo_references=[
            "https://cdn.example.com/biz_001/p0.jpg",
            "https://cdn.example.com/biz_001/p1.jpg",
        ],
    )


@pytest.fixture
def bare_entity() -> EntitySnapshot:
    """Business with no remote reference and no durable URL."""
    return EntitySnapshot(id="biz_bare", name="Desert Rose Medical Clinic", category="Clinic")


@pytest.fixture
def sample_image() -> Callable[..., CachedImage]:
    """Factory for valid CachedImage instances."""

    def _make(slot: ImageSlot | None = None, origin: str = "remote-api", size: int = 2048) -> CachedImage:
        return CachedImage(
            slot=slot or ImageSlot.logo("biz_001"),
            data=image_bytes(size),
            content_type="image/jpeg",
            origin=origin,  # type: ignore[arg-type]
            source_url="https://cdn.example.com/img.jpg",
        )

    return _make


@pytest.fixture
def memory_cache() -> MemoryCacheStore:
    return MemoryCacheStore()


@pytest.fixture
def make_fetcher() -> Callable[..., RetryingFetcher]:
    """Build a RetryingFetcher whose HTTP traffic goes to ``handler``."""

    def _make(handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> RetryingFetcher:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
        return RetryingFetcher(client=client, **kwargs)

    return _make


@pytest.fixture
def payload() -> Callable[..., bytes]:
    """Factory for valid image payloads (see ``image_bytes``)."""
    return image_bytes


@pytest.fixture
def ok_response() -> Callable[..., httpx.Response]:
    """Factory for a 200 image/jpeg response."""
    return jpeg_response
