# src/sources/api_switch.py — v1
"""Runtime on/off switch for the billable places API.

While the switch is off the resolver offers no remote-api candidates, so
the pipeline runs in cache-only mode: cache, durable store, generic
stock images and the placeholder still apply, and no request is billed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel

logger = logging.getLogger(__name__)

ApiMode = Literal["LIVE API + CACHE", "CACHE ONLY"]


class RemoteApiStatus(BaseModel):
    """Current switch position and why it was last flipped."""

    enabled: bool
    reason: str
    changed_at: datetime

    @property
    def mode(self) -> ApiMode:
        return "LIVE API + CACHE" if self.enabled else "CACHE ONLY"


class RemoteApiSwitch:
    """Mutable enable/disable flag shared by the resolver and the facade."""

    def __init__(self, enabled: bool = True, reason: str = "") -> None:
        self._enabled = enabled
        self._reason = reason or ("Enabled by configuration" if enabled else "Disabled by configuration")
        self._changed_at = datetime.now(timezone.utc)

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self, reason: str = "") -> None:
        self._set(True, reason or "Manually enabled")

    def disable(self, reason: str = "") -> None:
        self._set(False, reason or "Manually disabled")

    def status(self) -> RemoteApiStatus:
        return RemoteApiStatus(
            enabled=self._enabled, reason=self._reason, changed_at=self._changed_at
        )

    def _set(self, enabled: bool, reason: str) -> None:
        self._enabled = enabled
        self._reason = reason
        self._changed_at = datetime.now(timezone.utc)
        logger.warning(
            "Places API %s: %s", "enabled" if enabled else "disabled (cache-only mode)", reason
        )
