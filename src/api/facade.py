# src/api/facade.py — v1
"""Public API facade — single entry point for image acquisition.

Usage:
    from bizimages.api.facade import ImagePipeline
    pipeline = ImagePipeline.from_settings(entities=repo)
    handle = await pipeline.start_batch(["biz_1", "biz_2"], concurrency=5)
    print(pipeline.get_progress())

Wires the cache store, durable store, resolver, fetcher, orchestrator and
batch coordinator together and exposes the operational controls used by
the CLI and by whatever serves the admin UI.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from bizimages.acquisition.models import AcquisitionOptions, AcquisitionResult
from bizimages.acquisition.orchestrator import AcquisitionOrchestrator
from bizimages.batch.checkpoint import BatchCheckpoint
from bizimages.batch.coordinator import BatchCoordinator
from bizimages.cache.cache_factory import create_cache_store
from bizimages.config.settings import Settings
from bizimages.core.errors import ValidationError
from bizimages.core.models import EntitySnapshot, ImageSlot, SlotKind, slots_for
from bizimages.fetching.retrying_fetcher import RetryingFetcher
from bizimages.sources.api_switch import RemoteApiSwitch
from bizimages.sources.resolver import SourceResolver
from bizimages.storage.store_factory import create_durable_store
from bizimages.tracking.progress import UsageCounter

if TYPE_CHECKING:
    import httpx

    from bizimages.batch.models import BatchJobHandle
    from bizimages.cache.base_cache_store import BaseImageCacheStore
    from bizimages.cache.models import CacheStatus
    from bizimages.entities.base_repository import BaseEntityRepository

logger = logging.getLogger(__name__)


class ImagePipeline:
    """Operational controls over one cache store and one batch coordinator."""

    def __init__(
        self,
        entities: BaseEntityRepository,
        cache_store: BaseImageCacheStore,
        orchestrator: AcquisitionOrchestrator,
        coordinator: BatchCoordinator,
        fetcher: RetryingFetcher | None = None,
        options: AcquisitionOptions | None = None,
        default_concurrency: int = 5,
        max_photos: int | None = None,
        api_switch: RemoteApiSwitch | None = None,
        usage: UsageCounter | None = None,
        cost_per_call: float = 0.0,
    ) -> None:
        self._entities = entities
        self._cache = cache_store
        self._orchestrator = orchestrator
        self._coordinator = coordinator
        self._fetcher = fetcher
        self._options = options or AcquisitionOptions()
        self._default_concurrency = default_concurrency
        self._max_photos = max_photos
        self._api_switch = api_switch or RemoteApiSwitch()
        self._usage = usage or UsageCounter()
        self._cost_per_call = cost_per_call

    @classmethod
    def from_settings(
        cls,
        entities: BaseEntityRepository,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> ImagePipeline:
        """Build the full pipeline from configuration.

        Args:
            entities: Source of entity snapshots.
            settings: Global settings. Loaded from .env if None.
            client: Shared HTTP client for the fetcher. A private one is
                created when omitted.

        Returns:
            Ready-to-use ImagePipeline.
        """
        settings = settings or Settings()
        cache_store = create_cache_store(settings)
        durable_store = create_durable_store(settings)
        fetcher = RetryingFetcher.from_settings(settings, client=client)
        resolver = SourceResolver.from_settings(settings, durable_store)
        usage = UsageCounter()
        orchestrator = AcquisitionOrchestrator(
            cache_store,
            resolver,
            fetcher,
            durable_store=durable_store,
            max_photos_per_entity=settings.max_photos_per_entity,
            usage=usage,
        )
        options = AcquisitionOptions.from_settings(settings)
        checkpoint = (
            BatchCheckpoint(settings.batch_checkpoint_path)
            if settings.batch_checkpoint_path is not None
            else None
        )
        coordinator = BatchCoordinator.from_settings(
            settings, orchestrator, entities, options=options, checkpoint=checkpoint
        )
        logger.info(
            "Image pipeline ready: cache=%s, durable=%s, sources=%s, places API %s",
            settings.cache_backend, settings.durable_store, ",".join(resolver.order),
            resolver.api_switch.status().mode,
        )
        return cls(
            entities,
            cache_store,
            orchestrator,
            coordinator,
            fetcher=fetcher,
            options=options,
            default_concurrency=settings.batch_concurrency,
            max_photos=settings.max_photos_per_entity,
            api_switch=resolver.api_switch,
            usage=usage,
            cost_per_call=settings.remote_api_cost_per_call,
        )

    @property
    def coordinator(self) -> BatchCoordinator:
        return self._coordinator

    # --- Batch controls ---

    async def start_batch(
        self,
        entity_ids: list[str] | None = None,
        concurrency: int | None = None,
        force_refresh: bool = False,
    ) -> BatchJobHandle:
        """Start a background batch. All known entities when entity_ids is None.

        Raises:
            ValidationError: If there is nothing to process or concurrency < 1.
            ConflictError: If a batch is already running.
        """
        ids = entity_ids if entity_ids is not None else await self._entities.list_ids()
        options = self._options.model_copy(update={"force_refresh": force_refresh})
        return self._coordinator.start(
            ids,
            concurrency if concurrency is not None else self._default_concurrency,
            options=options,
        )

    def stop_batch(self) -> bool:
        return self._coordinator.stop()

    def pause_batch(self) -> bool:
        return self._coordinator.pause()

    def resume_batch(self) -> bool:
        return self._coordinator.resume()

    def get_progress(self) -> dict[str, Any]:
        """Current batch progress as JSON-ready data for polling clients."""
        snapshot = self._coordinator.get_snapshot()
        if snapshot is None:
            return {"running": False, "snapshot": None}
        return {
            "running": self._coordinator.active_job is not None,
            "snapshot": {
                **snapshot.model_dump(mode="json"),
                "percentage": snapshot.percentage,
                "estimated_cost_usd": round(snapshot.remote_api_calls * self._cost_per_call, 4),
            },
        }

    # --- Places API controls ---

    def enable_remote_api(self, reason: str = "") -> dict[str, Any]:
        """Allow billable places API requests again."""
        self._api_switch.enable(reason)
        return self.get_api_status()

    def disable_remote_api(self, reason: str = "") -> dict[str, Any]:
        """Switch to cache-only mode: no places API request is sent until re-enabled.

        Cached images, the durable store, generic stock images and the
        placeholder still serve every slot.
        """
        self._api_switch.disable(reason)
        return self.get_api_status()

    def get_api_status(self) -> dict[str, Any]:
        """Switch position plus the usage and estimated spend since startup."""
        status = self._api_switch.status()
        report = self._usage.report(self._cost_per_call, status.enabled)
        return {
            **report.model_dump(mode="json"),
            "reason": status.reason,
            "changed_at": status.changed_at.isoformat(),
            "cost_per_call_usd": self._cost_per_call,
        }

    # --- Per-entity operations ---

    async def get_status(self, entity_id: str) -> CacheStatus:
        """Cached vs. expected slots for one entity."""
        entity = await self._entities.get(entity_id)
        total = len(slots_for(entity, self._max_photos)) if entity is not None else None
        return await self._cache.status(entity_id, total)

    async def force_refresh(self, entity_id: str) -> list[AcquisitionResult]:
        """Drop an entity's cached images and acquire them again."""
        entity = await self._require(entity_id)
        removed = await self._cache.clear(entity_id)
        logger.info("Cleared %d cached slot(s) of %s", removed, entity_id)
        options = self._options.model_copy(update={"force_refresh": True})
        return await self._orchestrator.acquire_entity(entity, options, self._max_photos)

    async def get_image(
        self, entity_id: str, slot_kind: SlotKind = "logo", index: int = 0
    ) -> AcquisitionResult:
        """Cache-first image for one slot; always returns something displayable."""
        entity = await self._require(entity_id)
        slot = ImageSlot(entity_id=entity_id, slot_kind=slot_kind, index=index)
        return await self._orchestrator.acquire(slot, entity, self._options)

    async def _require(self, entity_id: str) -> EntitySnapshot:
        entity = await self._entities.get(entity_id)
        if entity is None:
            raise ValidationError(f"Unknown entity: {entity_id}")
        return entity

    # --- Lifecycle ---

    async def aclose(self) -> None:
        """Stop any running batch, wait for it, and release resources."""
        active = self._coordinator.active_job
        if active is not None:
            self._coordinator.stop(active)
            await active.wait()
        if self._fetcher is not None:
            await self._fetcher.aclose()
        self._cache.close()

    async def __aenter__(self) -> ImagePipeline:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
