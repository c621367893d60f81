# tests/unit/acquisition/test_orchestrator.py — v1
"""Tests for acquisition/orchestrator.py — fallback chain and commit rules."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from bizimages.acquisition.models import AcquisitionOptions
from bizimages.acquisition.orchestrator import AcquisitionOrchestrator
from bizimages.core.errors import StoreError, ValidationError
from bizimages.core.models import EntitySnapshot, ImageSlot
from bizimages.sources.resolver import SourceResolver
from bizimages.tracking.progress import UsageCounter

FAST = AcquisitionOptions(retry_attempts=3, retry_delay=0)


class _Handler:
    """MockTransport handler with scripted responses per URL prefix."""

    def __init__(self, routes=None, default=None):
        self.routes = routes or {}
        self.default = default
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        for prefix, responses in self.routes.items():
            if url.startswith(prefix):
                return _fresh(responses.pop(0) if isinstance(responses, list) else responses)
        if self.default is not None:
            return _fresh(self.default)
        raise httpx.ConnectError("unreachable", request=request)


def _fresh(response: httpx.Response) -> httpx.Response:
    """Copy so one scripted response can be served more than once."""
    return httpx.Response(response.status_code, headers=response.headers, content=response.content)


def _orchestrator(cache, fetcher, **resolver_kwargs) -> AcquisitionOrchestrator:
    durable = resolver_kwargs.pop("durable_store", None)
    resolver = SourceResolver(durable_store=durable, **resolver_kwargs)
    return AcquisitionOrchestrator(cache, resolver, fetcher, durable_store=durable)


class TestCacheHit:
    @pytest.mark.asyncio
    async def test_cache_hit_makes_no_network_call(self, memory_cache, make_fetcher, sample_entity, sample_image):
        slot = ImageSlot.logo("biz_001")
        await memory_cache.put(slot, sample_image(slot=slot))
        handler = _Handler()
        orch = _orchestrator(memory_cache, make_fetcher(handler))

        result = await orch.acquire(slot, sample_entity, FAST)

        assert result.origin == "cache"
        assert result.image.provenance == "remote-api"
        assert result.from_cache
        assert result.remote_api_calls == 0
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_second_acquire_is_idempotent(self, memory_cache, make_fetcher, sample_entity, ok_response):
        handler = _Handler(default=ok_response())
        orch = _orchestrator(memory_cache, make_fetcher(handler))
        slot = ImageSlot.logo("biz_001")

        first = await orch.acquire(slot, sample_entity, FAST)
        second = await orch.acquire(slot, sample_entity, FAST)

        assert first.origin == "remote-api"
        assert second.origin == "cache"
        assert len(handler.requests) == 1
        assert len(memory_cache.puts) == 1

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_cache(self, memory_cache, make_fetcher, sample_entity, sample_image, ok_response):
        slot = ImageSlot.logo("biz_001")
        await memory_cache.put(slot, sample_image(slot=slot, origin="generic-fallback"))
        handler = _Handler(default=ok_response(3000))
        orch = _orchestrator(memory_cache, make_fetcher(handler))

        result = await orch.acquire(slot, sample_entity, FAST.model_copy(update={"force_refresh": True}))

        assert result.origin == "remote-api"
        assert len(handler.requests) == 1
        stored = await memory_cache.get(slot)
        assert stored.origin == "remote-api"
        assert len(stored.data) == 3000

    @pytest.mark.asyncio
    async def test_cache_store_error_falls_through(self, make_fetcher, sample_entity, ok_response, memory_cache):
        memory_cache.get = AsyncMock(side_effect=StoreError("get", "locked"))
        orch = _orchestrator(memory_cache, make_fetcher(_Handler(default=ok_response())))
        result = await orch.acquire(ImageSlot.logo("biz_001"), sample_entity, FAST)
        assert result.origin == "remote-api"
        assert result.errors[0].source == "cache"
        assert result.errors[0].kind == "store"


class TestFallbackChain:
    @pytest.mark.asyncio
    async def test_remote_succeeds_on_second_attempt(self, memory_cache, make_fetcher, ok_response):
        entity = EntitySnapshot(id="E2", name="E2 Trading", remote_image_reference="https://places.test/E2.jpg")
        handler = _Handler(routes={"https://places.test/": [httpx.Response(503), ok_response()]})
        orch = _orchestrator(memory_cache, make_fetcher(handler))

        result = await orch.acquire(ImageSlot.logo("E2"), entity, FAST)

        assert result.origin == "remote-api"
        assert result.remote_api_calls == 2
        assert len(handler.requests) == 2
        assert await memory_cache.get(ImageSlot.logo("E2")) is not None

    @pytest.mark.asyncio
    async def test_exactly_one_put_after_failures(self, memory_cache, make_fetcher, ok_response):
        entity = EntitySnapshot(
            id="b", name="B",
            known_durable_url="https://bucket.test/b/logo.jpg",
            remote_image_reference="https://places.test/b.jpg",
        )
        handler = _Handler(routes={
            "https://bucket.test/": httpx.Response(403),
            "https://places.test/": ok_response(),
        })
        memory_cache.put = AsyncMock(wraps=memory_cache.put)
        orch = _orchestrator(memory_cache, make_fetcher(handler))

        result = await orch.acquire(ImageSlot.logo("b"), entity, FAST)

        assert result.origin == "remote-api"
        assert memory_cache.put.await_count == 1
        assert [e.source for e in result.errors] == ["durable-store[known]"]
        assert result.errors[0].attempts == 3

    @pytest.mark.asyncio
    async def test_durable_hit_is_not_billable(self, memory_cache, make_fetcher, ok_response):
        entity = EntitySnapshot(
            id="b", name="B", known_durable_url="https://bucket.test/b/logo.jpg",
            remote_image_reference="https://places.test/b.jpg",
        )
        handler = _Handler(default=ok_response())
        orch = _orchestrator(memory_cache, make_fetcher(handler))
        result = await orch.acquire(ImageSlot.logo("b"), entity, FAST)
        assert result.origin == "durable-store"
        assert result.remote_api_calls == 0

    @pytest.mark.asyncio
    async def test_placeholder_when_everything_fails(self, memory_cache, make_fetcher, bare_entity):
        handler = _Handler()
        orch = _orchestrator(memory_cache, make_fetcher(handler))

        result = await orch.acquire(ImageSlot.logo("biz_bare"), bare_entity, FAST)

        assert result.origin == "placeholder"
        assert not result.image.is_authentic
        assert result.errors
        assert all(e.source.startswith("generic-fallback") for e in result.errors)
        assert (await memory_cache.get(ImageSlot.logo("biz_bare"))).origin == "placeholder"
        assert len(memory_cache.puts) == 1

    @pytest.mark.asyncio
    async def test_second_acquire_of_placeholder_served_from_cache(self, memory_cache, make_fetcher, bare_entity):
        handler = _Handler()
        orch = _orchestrator(memory_cache, make_fetcher(handler))
        slot = ImageSlot.logo("biz_bare")

        first = await orch.acquire(slot, bare_entity, FAST)
        requests_after_first = len(handler.requests)
        second = await orch.acquire(slot, bare_entity, FAST)

        assert first.origin == "placeholder"
        assert second.origin == "cache"
        assert second.is_placeholder
        assert second.image.data == first.image.data
        assert len(handler.requests) == requests_after_first
        assert len(memory_cache.puts) == 1

    @pytest.mark.asyncio
    async def test_generic_fallback_tagged(self, memory_cache, make_fetcher, bare_entity, ok_response):
        orch = _orchestrator(memory_cache, make_fetcher(_Handler(default=ok_response())))
        result = await orch.acquire(ImageSlot.logo("biz_bare"), bare_entity, FAST)
        assert result.origin == "generic-fallback"
        assert not result.image.is_authentic

    @pytest.mark.asyncio
    async def test_unresolvable_reference_recorded(self, memory_cache, make_fetcher):
        entity = EntitySnapshot(id="b", name="B", remote_image_reference="AfLeUgNoKey")
        handler = _Handler()
        orch = _orchestrator(memory_cache, make_fetcher(handler))
        result = await orch.acquire(ImageSlot.logo("b"), entity, FAST)
        assert result.origin == "placeholder"
        assert result.errors[0].kind == "unresolved"
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_durable_lookup_error_is_candidate_failure(self, memory_cache, make_fetcher, ok_response):
        durable = MagicMock()
        durable.object_exists = AsyncMock(side_effect=StoreError("object_exists", "timeout"))
        entity = EntitySnapshot(id="b", name="B", remote_image_reference="https://places.test/b.jpg")
        orch = _orchestrator(memory_cache, make_fetcher(_Handler(default=ok_response())), durable_store=durable)
        result = await orch.acquire(ImageSlot.logo("b"), entity, FAST)
        assert result.origin == "remote-api"
        assert result.errors[0].kind == "store"


class TestCommitAndPublish:
    @pytest.mark.asyncio
    async def test_commit_failure_propagates(self, memory_cache, make_fetcher, sample_entity, ok_response):
        memory_cache.put = AsyncMock(side_effect=StoreError("put", "disk full"))
        orch = _orchestrator(memory_cache, make_fetcher(_Handler(default=ok_response())))
        with pytest.raises(StoreError, match="disk full"):
            await orch.acquire(ImageSlot.logo("biz_001"), sample_entity, FAST)

    @pytest.mark.asyncio
    async def test_remote_image_published(self, memory_cache, make_fetcher, sample_entity, ok_response):
        durable = MagicMock()
        durable.object_exists = AsyncMock(return_value=False)
        durable.put_object = AsyncMock(return_value="https://objects.test/logo.jpg")
        orch = _orchestrator(memory_cache, make_fetcher(_Handler(default=ok_response())), durable_store=durable)

        options = FAST.model_copy(update={"publish_to_durable": True})
        result = await orch.acquire(ImageSlot.logo("biz_001"), sample_entity, options)

        assert result.origin == "remote-api"
        path = durable.put_object.await_args.args[0]
        assert path == "businesses/biz_001/logos/logo.jpg"

    @pytest.mark.asyncio
    async def test_publish_failure_recorded_not_raised(self, memory_cache, make_fetcher, sample_entity, ok_response):
        durable = MagicMock()
        durable.object_exists = AsyncMock(return_value=False)
        durable.put_object = AsyncMock(side_effect=StoreError("put_object", "denied"))
        orch = _orchestrator(memory_cache, make_fetcher(_Handler(default=ok_response())), durable_store=durable)

        options = FAST.model_copy(update={"publish_to_durable": True})
        result = await orch.acquire(ImageSlot.logo("biz_001"), sample_entity, options)

        assert result.origin == "remote-api"
        assert result.errors[-1].kind == "publish"
        assert await memory_cache.get(ImageSlot.logo("biz_001")) is not None


class TestAcquireEntity:
    @pytest.mark.asyncio
    async def test_all_slots(self, memory_cache, make_fetcher, sample_entity, ok_response):
        orch = _orchestrator(memory_cache, make_fetcher(_Handler(default=ok_response())))
        results = await orch.acquire_entity(sample_entity, FAST)
        assert [r.slot.key for r in results] == ["biz_001:logo:0", "biz_001:photo:0", "biz_001:photo:1"]
        assert sum(r.remote_api_calls for r in results) == 3

    @pytest.mark.asyncio
    async def test_photo_cap(self, memory_cache, make_fetcher, sample_entity, ok_response):
        orch = _orchestrator(memory_cache, make_fetcher(_Handler(default=ok_response())))
        results = await orch.acquire_entity(sample_entity, FAST, max_photos=1)
        assert len(results) == 2

    @pytest.mark.asyncio
    async def test_foreign_slot_rejected(self, memory_cache, make_fetcher, sample_entity):
        orch = _orchestrator(memory_cache, make_fetcher(_Handler()))
        with pytest.raises(ValidationError):
            await orch.acquire(ImageSlot.logo("someone_else"), sample_entity, FAST)


class TestUsage:
    @pytest.mark.asyncio
    async def test_calls_and_hits_recorded(self, memory_cache, make_fetcher, ok_response):
        entity = EntitySnapshot(id="E2", name="E2 Trading", remote_image_reference="https://places.test/E2.jpg")
        handler = _Handler(routes={"https://places.test/": [httpx.Response(503), ok_response()]})
        usage = UsageCounter()
        orch = AcquisitionOrchestrator(memory_cache, SourceResolver(), make_fetcher(handler), usage=usage)

        await orch.acquire(ImageSlot.logo("E2"), entity, FAST)
        await orch.acquire(ImageSlot.logo("E2"), entity, FAST)

        report = usage.report(0.5)
        assert report.acquisitions == 2
        assert report.remote_api_calls == 2
        assert report.cache_hits == 1
        assert report.estimated_cost_usd == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_rejected_slot_not_recorded(self, memory_cache, make_fetcher, sample_entity):
        usage = UsageCounter()
        orch = AcquisitionOrchestrator(memory_cache, SourceResolver(), make_fetcher(_Handler()), usage=usage)
        with pytest.raises(ValidationError):
            await orch.acquire(ImageSlot.logo("someone_else"), sample_entity, FAST)
        assert usage.report(1.0).acquisitions == 0
