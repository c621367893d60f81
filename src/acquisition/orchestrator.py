# src/acquisition/orchestrator.py — v1
"""Acquisition orchestrator — obtain one image for one slot.

Walks the resolver's candidates in order and returns the first image it
can get. Cache hits return without touching the network. Every other
success is committed to the cache store exactly once. When every real
source fails, the placeholder is committed and returned with the
accumulated candidate errors attached.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from bizimages.acquisition.models import (
    AcquisitionOptions,
    AcquisitionResult,
    CandidateError,
)
from bizimages.core.errors import FetchError, StoreError, ValidationError
from bizimages.core.models import CachedImage, EntitySnapshot, ImageSlot, slots_for
from bizimages.logging.context import set_entity_context
from bizimages.sources.placeholder import placeholder_image
from bizimages.storage import layout

if TYPE_CHECKING:
    from bizimages.cache.base_cache_store import BaseImageCacheStore
    from bizimages.fetching.retrying_fetcher import FetchedImage, RetryingFetcher
    from bizimages.sources.resolver import SourceCandidate, SourceResolver
    from bizimages.storage.base_durable_store import BaseDurableStore
    from bizimages.tracking.progress import UsageCounter

logger = logging.getLogger(__name__)


class AcquisitionOrchestrator:
    """Run the fallback chain for slots of one entity at a time."""

    def __init__(
        self,
        cache_store: BaseImageCacheStore,
        resolver: SourceResolver,
        fetcher: RetryingFetcher,
        durable_store: BaseDurableStore | None = None,
        max_photos_per_entity: int | None = None,
        usage: UsageCounter | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            cache_store: Where acquired images are committed.
            resolver: Produces the ordered candidate list per slot.
            fetcher: Shared downloader used by every URL candidate.
            durable_store: Publish target for remote-api images. None
                disables publishing regardless of options.
            max_photos_per_entity: Cap on photo slots in ``acquire_entity``.
            usage: Pipeline-wide tally fed with every acquisition result.
        """
        self._cache = cache_store
        self._resolver = resolver
        self._fetcher = fetcher
        self._durable_store = durable_store
        self._max_photos = max_photos_per_entity
        self._usage = usage

    @property
    def cache_store(self) -> BaseImageCacheStore:
        return self._cache

    async def acquire(
        self,
        slot: ImageSlot,
        entity: EntitySnapshot,
        options: AcquisitionOptions | None = None,
    ) -> AcquisitionResult:
        """Acquire the image for one slot.

        Args:
            slot: Slot to fill.
            entity: Snapshot of the business that owns the slot.
            options: Retry and fallback knobs. Defaults apply when None.

        Returns:
            AcquisitionResult whose image is never missing; ``origin`` says
            which source satisfied the request.

        Raises:
            ValidationError: If the slot does not belong to the entity.
            StoreError: If committing the final image to the cache failed.
        """
        if slot.entity_id != entity.id:
            raise ValidationError(f"slot {slot.key} does not belong to entity {entity.id}")
        options = options or AcquisitionOptions()
        set_entity_context(entity.id, slot.key)

        result = await self._run_chain(slot, entity, options)
        if self._usage is not None:
            self._usage.record(result.remote_api_calls, result.from_cache)
        return result

    async def _run_chain(
        self, slot: ImageSlot, entity: EntitySnapshot, options: AcquisitionOptions
    ) -> AcquisitionResult:
        errors: list[CandidateError] = []
        remote_calls = 0

        candidates = self._resolver.resolve(slot, entity, options.allow_generic_fallback)
        for candidate in candidates:
            if candidate.kind == "placeholder":
                break

            if candidate.kind == "cache":
                if options.force_refresh:
                    continue
                hit = await self._cache_lookup(slot, errors)
                if hit is not None:
                    logger.debug("Cache hit for %s (%s)", slot.key, hit.provenance)
                    return AcquisitionResult(image=hit.as_cache_hit(), errors=errors, from_cache=True)
                continue

            fetched, attempts = await self._try_candidate(candidate, slot, options, errors)
            if candidate.kind == "remote-api":
                remote_calls += attempts
            if fetched is None:
                continue

            image = CachedImage(
                slot=slot,
                data=fetched.data,
                content_type=fetched.content_type,
                origin=candidate.kind,
                source_url=fetched.url,
            )
            if candidate.kind == "remote-api" and options.publish_to_durable:
                await self._publish(image, errors)

            await self._commit(image)
            logger.info(
                "Acquired %s from %s (%.1fKB)", slot.key, candidate.name, len(image.data) / 1024
            )
            return AcquisitionResult(image=image, errors=errors, remote_api_calls=remote_calls)

        image = placeholder_image(slot, entity)
        await self._commit(image)
        logger.info(
            "No source produced an image for %s, using placeholder (%d error(s))",
            slot.key, len(errors),
        )
        return AcquisitionResult(image=image, errors=errors, remote_api_calls=remote_calls)

    async def acquire_entity(
        self,
        entity: EntitySnapshot,
        options: AcquisitionOptions | None = None,
        max_photos: int | None = None,
    ) -> list[AcquisitionResult]:
        """Acquire the logo and every photo slot of an entity, one after another."""
        cap = max_photos if max_photos is not None else self._max_photos
        results: list[AcquisitionResult] = []
        for slot in slots_for(entity, cap):
            results.append(await self.acquire(slot, entity, options))
        return results

    async def _cache_lookup(
        self, slot: ImageSlot, errors: list[CandidateError]
    ) -> CachedImage | None:
        try:
            return await self._cache.get(slot)
        except StoreError as e:
            logger.error("Cache lookup failed for %s: %s", slot.key, e)
            errors.append(CandidateError(source="cache", kind="store", message=str(e)))
            return None

    async def _try_candidate(
        self,
        candidate: SourceCandidate,
        slot: ImageSlot,
        options: AcquisitionOptions,
        errors: list[CandidateError],
    ) -> tuple[FetchedImage | None, int]:
        """Resolve and download one candidate. Returns (image or None, HTTP attempts)."""
        try:
            url = await candidate.locate(slot)
        except StoreError as e:
            logger.error("%s lookup failed for %s: %s", candidate.name, slot.key, e)
            errors.append(CandidateError(source=candidate.name, kind="store", message=str(e)))
            return None, 0

        if url is None:
            errors.append(
                CandidateError(
                    source=candidate.name, kind="unresolved", message="no URL for slot"
                )
            )
            return None, 0

        try:
            fetched = await self._fetcher.fetch(
                url, max_attempts=options.retry_attempts, base_delay=options.retry_delay
            )
        except FetchError as e:
            logger.warning("%s failed for %s: %s", candidate.name, slot.key, e.cause)
            errors.append(
                CandidateError(
                    source=candidate.name,
                    kind="fetch",
                    message=e.cause,
                    url=url,
                    attempts=e.attempts,
                )
            )
            return None, e.attempts
        except ValidationError as e:
            # Malformed URL in the entity record; nothing was sent
            logger.warning("%s has an invalid URL for %s: %s", candidate.name, slot.key, e)
            errors.append(
                CandidateError(source=candidate.name, kind="fetch", message=str(e), url=url)
            )
            return None, 0

        return fetched, fetched.attempts

    async def _publish(self, image: CachedImage, errors: list[CandidateError]) -> None:
        if self._durable_store is None:
            return
        ext = layout.extension_for(image.content_type, image.source_url)
        path = layout.slot_path(image.slot, ext)
        try:
            url = await self._durable_store.put_object(path, image.data, image.content_type)
        except StoreError as e:
            logger.error("Publishing %s to durable store failed: %s", image.slot.key, e)
            errors.append(
                CandidateError(source="durable-store", kind="publish", message=str(e))
            )
            return
        logger.info("Published %s to %s", image.slot.key, url)

    async def _commit(self, image: CachedImage) -> None:
        try:
            await self._cache.put(image.slot, image)
        except StoreError as e:
            logger.error("Cache commit failed for %s: %s", image.slot.key, e)
            raise
