# src/batch/coordinator.py — v1
"""Batch coordinator — acquire images for many entities with bounded concurrency.

Entities are split into chunks of ``concurrency_limit``. A chunk's
entities run concurrently; the next chunk starts only once every entity
of the previous one has settled. Stop, pause and resume act between
chunks, so in-flight acquisitions always finish.

Only one job runs at a time. A failing entity is recorded and the batch
moves on; only an unexpected coordinator error fails the whole job.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from typing import TYPE_CHECKING

from bizimages.batch.models import BatchJob, BatchJobHandle, EntityOutcome
from bizimages.core.errors import ConflictError, ImagePipelineError, StoreError, ValidationError
from bizimages.logging.context import clear_context, set_entity_context, set_job_context
from bizimages.tracking.models import ProgressDelta, ProgressSnapshot

if TYPE_CHECKING:
    from bizimages.acquisition.models import AcquisitionOptions
    from bizimages.acquisition.orchestrator import AcquisitionOrchestrator
    from bizimages.batch.checkpoint import BatchCheckpoint
    from bizimages.config.settings import Settings
    from bizimages.entities.base_repository import BaseEntityRepository

logger = logging.getLogger(__name__)


def chunked(items: list[str], size: int) -> list[list[str]]:
    """Split items into consecutive chunks of at most ``size``."""
    return [items[i:i + size] for i in range(0, len(items), size)]


class BatchCoordinator:
    """Start, control and observe batch acquisition jobs."""

    def __init__(
        self,
        orchestrator: AcquisitionOrchestrator,
        entities: BaseEntityRepository,
        options: AcquisitionOptions | None = None,
        inter_chunk_delay_s: float = 0.0,
        prioritize_uncached: bool = True,
        checkpoint: BatchCheckpoint | None = None,
        max_errors: int = 500,
        max_photos: int | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            orchestrator: Acquires the slots of one entity.
            entities: Looks up entity snapshots by id.
            options: Acquisition options used when ``start`` gets none.
            inter_chunk_delay_s: Pause between chunks, for remote rate limits.
            prioritize_uncached: Process entities with nothing cached first.
            checkpoint: Completed-entity record for resumable runs.
            max_errors: Error messages kept per job.
            max_photos: Photo slots acquired per entity. None for all.
        """
        self._orchestrator = orchestrator
        self._entities = entities
        self._options = options
        self._delay = inter_chunk_delay_s
        self._prioritize = prioritize_uncached
        self._checkpoint = checkpoint
        self._max_errors = max_errors
        self._max_photos = max_photos
        self._current: BatchJob | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        orchestrator: AcquisitionOrchestrator,
        entities: BaseEntityRepository,
        options: AcquisitionOptions | None = None,
        checkpoint: BatchCheckpoint | None = None,
    ) -> BatchCoordinator:
        return cls(
            orchestrator,
            entities,
            options=options,
            inter_chunk_delay_s=settings.batch_inter_chunk_delay_s,
            prioritize_uncached=settings.batch_prioritize_uncached,
            checkpoint=checkpoint,
            max_errors=settings.batch_max_errors,
            max_photos=settings.max_photos_per_entity,
        )

    # --- Control ---

    @property
    def active_job(self) -> BatchJobHandle | None:
        """Handle of the job still running or paused, if any."""
        if self._current is not None and self._current.is_active:
            return BatchJobHandle(self._current)
        return None

    @property
    def current_job(self) -> BatchJobHandle | None:
        """Handle of the most recent job, whatever its state."""
        return BatchJobHandle(self._current) if self._current is not None else None

    def start(
        self,
        entity_ids: list[str],
        concurrency_limit: int,
        options: AcquisitionOptions | None = None,
    ) -> BatchJobHandle:
        """Start a batch in the background and return its handle.

        Must be called from within a running event loop.

        Raises:
            ValidationError: If entity_ids is empty or concurrency_limit < 1.
            ConflictError: If another job is still running or paused.
        """
        if not entity_ids:
            raise ValidationError("entity_ids must not be empty")
        if concurrency_limit < 1:
            raise ValidationError(f"concurrency_limit must be >= 1, got {concurrency_limit}")
        if self._current is not None and self._current.is_active:
            raise ConflictError(self._current.job_id)

        # Duplicates would acquire the same slots concurrently
        unique_ids = list(dict.fromkeys(entity_ids))
        job = BatchJob(unique_ids, concurrency_limit, max_errors=self._max_errors)
        job.state = "running"
        self._current = job
        job.task = asyncio.get_running_loop().create_task(
            self._run(job, options or self._options), name=job.job_id
        )
        logger.info(
            "Started batch %s: %d entities, concurrency %d",
            job.job_id, len(unique_ids), concurrency_limit,
        )
        return BatchJobHandle(job)

    def stop(self, handle: BatchJobHandle | None = None) -> bool:
        """Stop before the next chunk. Returns False if there was nothing to stop."""
        job = self._resolve(handle)
        if job is None or not job.is_active:
            return False
        job.request_stop()
        logger.info("Stop requested for batch %s", job.job_id)
        return True

    def pause(self, handle: BatchJobHandle | None = None) -> bool:
        """Hold the job before its next chunk."""
        job = self._resolve(handle)
        if job is None or job.state != "running":
            return False
        job.pause()
        logger.info("Paused batch %s", job.job_id)
        return True

    def resume(self, handle: BatchJobHandle | None = None) -> bool:
        job = self._resolve(handle)
        if job is None or job.state != "paused":
            return False
        job.resume()
        logger.info("Resumed batch %s", job.job_id)
        return True

    def get_snapshot(self, handle: BatchJobHandle | None = None) -> ProgressSnapshot | None:
        """Progress of the given job, or of the most recent one."""
        job = self._resolve(handle)
        return job.snapshot() if job is not None else None

    def _resolve(self, handle: BatchJobHandle | None) -> BatchJob | None:
        return handle.job if handle is not None else self._current

    # --- Execution ---

    async def _run(self, job: BatchJob, options: AcquisitionOptions | None) -> None:
        set_job_context(job.job_id)
        try:
            pending = self._skip_checkpointed(job)
            if self._prioritize and pending:
                pending = await self._prioritized(pending)

            for index, chunk in enumerate(chunked(pending, job.concurrency_limit)):
                await job.wait_until_resumed()
                if job.stop_requested:
                    break
                if index > 0 and self._delay > 0:
                    await asyncio.sleep(self._delay)

                await self._run_chunk(job, chunk, options)

            job.state = "stopped" if job.stop_requested else "completed"
        except asyncio.CancelledError:
            job.state = "stopped"
            raise
        except Exception as e:
            logger.exception("Batch %s failed", job.job_id)
            job.error = f"{type(e).__name__}: {e}"
            job.state = "failed"
        finally:
            job.tracker.finish()
            snap = job.snapshot()
            logger.info(
                "Batch %s %s: %d/%d processed, %d succeeded, %d failed, %d remote API calls",
                job.job_id, job.state, snap.processed, snap.total,
                snap.succeeded, snap.failed, snap.remote_api_calls,
            )
            clear_context()

    def _skip_checkpointed(self, job: BatchJob) -> list[str]:
        if self._checkpoint is None:
            return list(job.entity_ids)
        done = self._checkpoint.completed_ids()
        pending = [eid for eid in job.entity_ids if eid not in done]
        skipped = len(job.entity_ids) - len(pending)
        if skipped:
            logger.info("Skipping %d entities completed in a previous run", skipped)
            job.tracker.update(ProgressDelta(processed=skipped, skipped=skipped))
        return pending

    async def _prioritized(self, entity_ids: list[str]) -> list[str]:
        """Entities with nothing cached first; order is otherwise preserved."""
        try:
            statuses = await self._orchestrator.cache_store.bulk_status(entity_ids)
        except StoreError as e:
            logger.warning("Cache status unavailable, keeping input order: %s", e)
            return entity_ids
        uncached = [eid for eid in entity_ids if statuses[eid].cached_slots == 0]
        cached = [eid for eid in entity_ids if statuses[eid].cached_slots > 0]
        logger.info("%d uncached entities scheduled first", len(uncached))
        return uncached + cached

    async def _run_chunk(
        self, job: BatchJob, chunk: list[str], options: AcquisitionOptions | None
    ) -> None:
        results = await asyncio.gather(
            *(self._process_entity(job, eid, options) for eid in chunk),
            return_exceptions=True,
        )
        # Anything that escaped _process_entity is a bug, not an entity failure
        for result in results:
            if isinstance(result, BaseException):
                raise result

        if self._checkpoint is not None:
            self._checkpoint.mark_complete(
                o.entity_id for o in results if isinstance(o, EntityOutcome) and o.succeeded
            )
            try:
                self._checkpoint.flush()
            except StoreError as e:
                # Progress stays in memory; the next successful flush persists it
                logger.error("Checkpoint flush failed for batch %s: %s", job.job_id, e)
                job.tracker.update(ProgressDelta(errors=[f"checkpoint: {e}"]))

    async def _process_entity(
        self, job: BatchJob, entity_id: str, options: AcquisitionOptions | None
    ) -> EntityOutcome:
        set_entity_context(entity_id)
        try:
            outcome = await self._acquire(entity_id, options)
        except Exception as e:
            logger.exception("Unexpected error while processing %s", entity_id)
            outcome = EntityOutcome(
                entity_id, succeeded=False, error=f"{entity_id}: {type(e).__name__}: {e}"
            )
        job.tracker.update(
            ProgressDelta(
                processed=1,
                succeeded=1 if outcome.succeeded else 0,
                failed=0 if outcome.succeeded else 1,
                remote_api_calls=outcome.remote_api_calls,
                origins=outcome.origins,
                errors=[outcome.error] if outcome.error else [],
            )
        )
        return outcome

    async def _acquire(
        self, entity_id: str, options: AcquisitionOptions | None
    ) -> EntityOutcome:
        entity = await self._entities.get(entity_id)
        if entity is None:
            logger.warning("Unknown entity %s", entity_id)
            return EntityOutcome(entity_id, succeeded=False, error=f"{entity_id}: unknown entity")

        try:
            results = await self._orchestrator.acquire_entity(entity, options, self._max_photos)
        except ImagePipelineError as e:
            logger.error("Acquisition failed for %s: %s", entity_id, e)
            return EntityOutcome(entity_id, succeeded=False, error=f"{entity_id}: {e}")

        origins = Counter(r.origin for r in results)
        remote_calls = sum(r.remote_api_calls for r in results)
        missing = [r.slot.key for r in results if r.is_placeholder]
        if missing:
            causes = "; ".join(
                f"{err.source}: {err.message}" for r in results for err in r.errors
            )
            error = f"{entity_id}: no image for {', '.join(missing)}"
            if causes:
                error += f" ({causes})"
            return EntityOutcome(
                entity_id, False, dict(origins), remote_calls, error=error
            )
        return EntityOutcome(entity_id, True, dict(origins), remote_calls)
