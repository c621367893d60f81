# tests/unit/sources/test_resolver.py — v1
"""Tests for sources/resolver.py — candidate ordering and applicability."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from bizimages.config.settings import Settings
from bizimages.core.models import EntitySnapshot, ImageSlot
from bizimages.sources.api_switch import RemoteApiSwitch
from bizimages.sources.resolver import SourceResolver


def _kinds(candidates) -> list[str]:
    return [c.kind for c in candidates]


class TestResolve:
    def test_default_chain_with_remote_reference(self, sample_entity):
        resolver = SourceResolver()
        candidates = resolver.resolve(ImageSlot.logo("biz_001"), sample_entity)
        assert _kinds(candidates) == ["cache", "remote-api", "placeholder"]

    def test_placeholder_always_last(self, bare_entity):
        resolver = SourceResolver(source_order=["cache", "placeholder", "remote-api"])
        candidates = resolver.resolve(ImageSlot.logo("biz_bare"), bare_entity)
        assert candidates[-1].kind == "placeholder"
        assert candidates[0].kind == "cache"

    def test_generic_only_without_remote_reference(self, bare_entity, sample_entity):
        resolver = SourceResolver()
        bare = resolver.resolve(ImageSlot.logo("biz_bare"), bare_entity)
        assert "generic-fallback" in _kinds(bare)
        with_ref = resolver.resolve(ImageSlot.logo("biz_001"), sample_entity)
        assert "generic-fallback" not in _kinds(with_ref)

    def test_disabled_api_offers_no_remote_candidate(self, sample_entity):
        resolver = SourceResolver(api_switch=RemoteApiSwitch(enabled=False))
        candidates = resolver.resolve(ImageSlot.logo("biz_001"), sample_entity)
        assert _kinds(candidates) == ["cache", "placeholder"]

    def test_reenabled_api_restores_remote_candidate(self, sample_entity):
        switch = RemoteApiSwitch()
        resolver = SourceResolver(api_switch=switch)
        switch.disable()
        switch.enable()
        assert "remote-api" in _kinds(resolver.resolve(ImageSlot.logo("biz_001"), sample_entity))

    def test_generic_disallowed(self, bare_entity):
        resolver = SourceResolver()
        candidates = resolver.resolve(ImageSlot.logo("biz_bare"), bare_entity, allow_generic_fallback=False)
        assert _kinds(candidates) == ["cache", "placeholder"]

    def test_priorities_strictly_ordered(self, bare_entity):
        resolver = SourceResolver()
        priorities = [c.priority for c in resolver.resolve(ImageSlot.logo("biz_bare"), bare_entity)]
        assert priorities == sorted(priorities)
        assert len(set(priorities)) == len(priorities)

    def test_custom_order_remote_before_durable(self):
        entity = EntitySnapshot(
            id="b", name="B", remote_image_reference="https://x.test/l.jpg",
            known_durable_url="https://bucket.test/l.jpg",
        )
        resolver = SourceResolver(source_order=["cache", "remote-api", "durable-store", "placeholder"])
        assert _kinds(resolver.resolve(ImageSlot.logo("b"), entity)) == [
            "cache", "remote-api", "durable-store", "placeholder",
        ]

    def test_photo_slot_uses_its_own_reference(self, sample_entity):
        resolver = SourceResolver()
        beyond = resolver.resolve(ImageSlot.photo("biz_001", 7), sample_entity)
        assert "remote-api" not in _kinds(beyond)


class TestLocate:
    @pytest.mark.asyncio
    async def test_known_durable_url(self):
        entity = EntitySnapshot(id="b", name="B", known_durable_url="https://bucket.test/logo.jpg")
        candidates = SourceResolver().resolve(ImageSlot.logo("b"), entity)
        durable = next(c for c in candidates if c.kind == "durable-store")
        assert await durable.locate(ImageSlot.logo("b")) == "https://bucket.test/logo.jpg"

    @pytest.mark.asyncio
    async def test_durable_lookup_probes_extensions(self):
        store = MagicMock()
        store.object_exists = AsyncMock(side_effect=[False, True])
        store.public_url = MagicMock(side_effect=lambda p: f"https://objects.test/{p}")
        entity = EntitySnapshot(id="b", name="B")
        candidates = SourceResolver(durable_store=store).resolve(ImageSlot.logo("b"), entity)
        durable = next(c for c in candidates if c.kind == "durable-store")
        url = await durable.locate(ImageSlot.logo("b"))
        assert url == "https://objects.test/businesses/b/logos/logo.png"

    @pytest.mark.asyncio
    async def test_durable_lookup_miss(self):
        store = MagicMock()
        store.object_exists = AsyncMock(return_value=False)
        candidates = SourceResolver(durable_store=store).resolve(ImageSlot.logo("b"), EntitySnapshot(id="b", name="B"))
        durable = next(c for c in candidates if c.kind == "durable-store")
        assert await durable.locate(ImageSlot.logo("b")) is None
        assert store.object_exists.await_count == 3

    @pytest.mark.asyncio
    async def test_cache_and_placeholder_have_no_url(self, bare_entity):
        candidates = SourceResolver().resolve(ImageSlot.logo("biz_bare"), bare_entity)
        assert await candidates[0].locate(ImageSlot.logo("biz_bare")) is None
        assert await candidates[-1].locate(ImageSlot.logo("biz_bare")) is None


class TestRemoteUrl:
    def test_absolute_url_passthrough(self):
        assert SourceResolver().remote_url("https://lh3.example.com/x") == "https://lh3.example.com/x"

    def test_photo_reference_needs_key(self):
        assert SourceResolver().remote_url("AfLeUgABC") is None

    def test_photo_reference_url(self):
        resolver = SourceResolver(places_api_key="k&1", photo_max_width=800)
        url = resolver.remote_url("AfLe/Ug")
        assert url == (
            "https://maps.googleapis.com/maps/api/place/photo?maxwidth=800"
            "&photo_reference=AfLe%2FUg&key=k%261"
        )

    def test_from_settings(self):
        settings = Settings(
            _env_file=None, places_api_key="key", source_order="cache,remote-api,placeholder",
        )
        resolver = SourceResolver.from_settings(settings)
        assert resolver.order == ["cache", "remote-api", "placeholder"]
        assert resolver.remote_url("ref").endswith("&key=key")

    def test_from_settings_cache_only(self):
        resolver = SourceResolver.from_settings(Settings(_env_file=None, remote_api_enabled=False))
        assert resolver.api_switch.status().mode == "CACHE ONLY"
