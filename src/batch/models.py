# src/batch/models.py — v1
"""Batch job models: EntityOutcome, BatchJob, BatchJobHandle."""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from bizimages.tracking.models import TERMINAL_STATES, BatchState, ProgressSnapshot
from bizimages.tracking.progress import ProgressTracker


def generate_job_id(timestamp: datetime | None = None) -> str:
    """Generate a job id: batch_yyyymmdd_hhmmss_{uuid4_short}."""
    ts = timestamp or datetime.now(timezone.utc)
    return f"batch_{ts.strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:6]}"


@dataclass(frozen=True)
class EntityOutcome:
    """How one entity of a batch settled."""

    entity_id: str
    succeeded: bool
    origins: dict[str, int] = field(default_factory=dict)
    remote_api_calls: int = 0
    error: str | None = None


class BatchJob:
    """Mutable state of one batch run. Owned by the coordinator."""

    def __init__(
        self,
        entity_ids: list[str],
        concurrency_limit: int,
        max_errors: int = 500,
        job_id: str | None = None,
    ) -> None:
        self.job_id = job_id or generate_job_id()
        self.entity_ids = entity_ids
        self.concurrency_limit = concurrency_limit
        self.tracker = ProgressTracker(self.job_id, len(entity_ids), max_errors=max_errors)
        self.state: BatchState = "idle"
        self.error: str | None = None
        self.task: asyncio.Task[None] | None = None
        self.stop_requested = False
        self._resume = asyncio.Event()
        self._resume.set()

    @property
    def is_active(self) -> bool:
        return self.state in ("idle", "running", "paused")

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def request_stop(self) -> None:
        self.stop_requested = True
        self._resume.set()

    def pause(self) -> None:
        self._resume.clear()
        self.state = "paused"

    def resume(self) -> None:
        self._resume.set()
        if self.state == "paused":
            self.state = "running"

    async def wait_until_resumed(self) -> None:
        await self._resume.wait()

    def snapshot(self) -> ProgressSnapshot:
        return self.tracker.snapshot(self.state)


class BatchJobHandle:
    """Caller-side view of a batch job: poll it or await it."""

    def __init__(self, job: BatchJob) -> None:
        self._job = job

    @property
    def job_id(self) -> str:
        return self._job.job_id

    @property
    def state(self) -> BatchState:
        return self._job.state

    @property
    def job(self) -> BatchJob:
        return self._job

    def snapshot(self) -> ProgressSnapshot:
        """Current progress, safe to call at any time."""
        return self._job.snapshot()

    async def wait(self) -> ProgressSnapshot:
        """Wait for the job to reach a terminal state and return its final snapshot."""
        if self._job.task is not None:
            await asyncio.shield(self._job.task)
        return self._job.snapshot()

    def __repr__(self) -> str:
        return f"BatchJobHandle(job_id={self.job_id!r}, state={self.state!r})"
