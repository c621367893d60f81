# src/logging/context.py — v1
"""Contextual logging support — attach job_id, entity_id, slot to log records.

Each asyncio task gets its own copy of these variables, so concurrent
acquisitions inside one batch chunk never see each other's context.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_job_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "job_id", default=None
)
_entity_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "entity_id", default=None
)
_slot: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "slot", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    job_id: str | None = None
    entity_id: str | None = None
    slot: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        job_id=_job_id.get(),
        entity_id=_entity_id.get(),
        slot=_slot.get(),
    )


def set_job_context(job_id: str) -> None:
    """Set batch-level context (called once when a job task starts)."""
    _job_id.set(job_id)


def set_entity_context(entity_id: str, slot: str | None = None) -> None:
    """Set entity-level context (called per entity / per slot)."""
    _entity_id.set(entity_id)
    _slot.set(slot)


def clear_context() -> None:
    """Reset all context variables."""
    _job_id.set(None)
    _entity_id.set(None)
    _slot.set(None)
