# src/tracking/models.py — v1
"""Progress domain models: BatchState, ProgressDelta, ProgressSnapshot, CostReport."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

BatchState = Literal["idle", "running", "paused", "completed", "stopped", "failed"]

TERMINAL_STATES: frozenset[str] = frozenset({"completed", "stopped", "failed"})


class ProgressDelta(BaseModel):
    """Increment applied to a tracker after one entity settles."""

    model_config = ConfigDict(frozen=True)

    processed: int = Field(default=0, ge=0)
    succeeded: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)
    remote_api_calls: int = Field(default=0, ge=0)
    origins: dict[str, int] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)


class ProgressSnapshot(BaseModel):
    """Point-in-time view of a batch job, JSON-ready via ``model_dump(mode="json")``."""

    job_id: str
    state: BatchState
    total: int
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    remote_api_calls: int = 0
    origins: dict[str, int] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)
    errors_dropped: int = 0
    started_at: datetime
    elapsed_s: float = 0.0
    eta_s: float | None = None

    @property
    def percentage(self) -> float:
        return round(self.processed / self.total * 100, 1) if self.total else 100.0

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


class CostReport(BaseModel):
    """Places API spend since the pipeline started, for the admin dashboard."""

    mode: str
    remote_api_enabled: bool
    acquisitions: int
    remote_api_calls: int
    cache_hits: int
    cache_ratio_pct: float
    estimated_cost_usd: float
    estimated_savings_usd: float
