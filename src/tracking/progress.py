# src/tracking/progress.py — v1
"""Per-job progress tracker.

One tracker belongs to one batch job; a new job gets a fresh tracker, so
independent runs never share counters. ``update`` is the only mutator and
applies a whole delta under a lock.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from datetime import datetime, timezone

from bizimages.tracking.models import BatchState, CostReport, ProgressDelta, ProgressSnapshot


def estimate_eta(total: int, processed: int, elapsed_s: float) -> float | None:
    """Seconds left at the observed rate; None until something was processed."""
    if processed <= 0 or elapsed_s <= 0:
        return None
    remaining = max(total - processed, 0)
    return remaining / (processed / elapsed_s)


class ProgressTracker:
    """Thread-safe counters for one batch job."""

    def __init__(
        self,
        job_id: str,
        total: int,
        max_errors: int = 500,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the tracker.

        Args:
            job_id: Owning job.
            total: Number of entities in the job.
            max_errors: Error messages kept; older ones are dropped and counted.
            clock: Monotonic time source, injectable for tests.
        """
        self._job_id = job_id
        self._total = total
        self._max_errors = max_errors
        self._clock = clock
        self._lock = threading.Lock()
        self._started = clock()
        self._started_at = datetime.now(timezone.utc)
        self._finished: float | None = None

        self._processed = 0
        self._succeeded = 0
        self._failed = 0
        self._skipped = 0
        self._remote_calls = 0
        self._origins: dict[str, int] = {}
        self._errors: list[str] = []
        self._errors_dropped = 0

    @property
    def job_id(self) -> str:
        return self._job_id

    @property
    def total(self) -> int:
        return self._total

    def update(self, delta: ProgressDelta) -> None:
        """Apply a delta atomically."""
        with self._lock:
            self._processed += delta.processed
            self._succeeded += delta.succeeded
            self._failed += delta.failed
            self._skipped += delta.skipped
            self._remote_calls += delta.remote_api_calls
            for origin, count in delta.origins.items():
                self._origins[origin] = self._origins.get(origin, 0) + count
            self._errors.extend(delta.errors)
            overflow = len(self._errors) - self._max_errors
            if overflow > 0:
                del self._errors[:overflow]
                self._errors_dropped += overflow

    def finish(self) -> None:
        """Freeze elapsed time; later snapshots report the final duration."""
        with self._lock:
            if self._finished is None:
                self._finished = self._clock()

    def snapshot(self, state: BatchState = "running") -> ProgressSnapshot:
        """Consistent copy of all counters."""
        with self._lock:
            end = self._finished if self._finished is not None else self._clock()
            elapsed = max(end - self._started, 0.0)
            return ProgressSnapshot(
                job_id=self._job_id,
                state=state,
                total=self._total,
                processed=self._processed,
                succeeded=self._succeeded,
                failed=self._failed,
                skipped=self._skipped,
                remote_api_calls=self._remote_calls,
                origins=dict(self._origins),
                errors=list(self._errors),
                errors_dropped=self._errors_dropped,
                started_at=self._started_at,
                elapsed_s=round(elapsed, 3),
                eta_s=estimate_eta(self._total, self._processed, elapsed),
            )


class UsageCounter:
    """Pipeline-wide tally of billable calls and cache hits, across all jobs.

    Cache hits are what each hit would have cost had it gone to the API,
    which is how the savings estimate is derived.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._acquisitions = 0
        self._remote_calls = 0
        self._cache_hits = 0

    def record(self, remote_api_calls: int, from_cache: bool) -> None:
        with self._lock:
            self._acquisitions += 1
            self._remote_calls += remote_api_calls
            if from_cache:
                self._cache_hits += 1

    def report(self, cost_per_call: float, remote_api_enabled: bool = True) -> CostReport:
        with self._lock:
            acquisitions, calls, hits = self._acquisitions, self._remote_calls, self._cache_hits
        return CostReport(
            mode="LIVE API + CACHE" if remote_api_enabled else "CACHE ONLY",
            remote_api_enabled=remote_api_enabled,
            acquisitions=acquisitions,
            remote_api_calls=calls,
            cache_hits=hits,
            cache_ratio_pct=round(hits / acquisitions * 100, 1) if acquisitions else 0.0,
            estimated_cost_usd=round(calls * cost_per_call, 4),
            estimated_savings_usd=round(hits * cost_per_call, 4),
        )
