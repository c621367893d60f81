# src/acquisition/models.py — v1
"""Acquisition options and results.

An acquisition always yields an image; what went wrong along the way is
carried as ``errors`` on the result rather than raised.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict, Field

from bizimages.core.models import CachedImage, ImageSlot

if TYPE_CHECKING:
    from bizimages.config.settings import Settings


class AcquisitionOptions(BaseModel):
    """Per-call knobs for one acquisition."""

    model_config = ConfigDict(frozen=True)

    retry_attempts: int = Field(default=3, ge=1)
    retry_delay: float = Field(default=1.0, ge=0.0)
    allow_generic_fallback: bool = True
    force_refresh: bool = False
    publish_to_durable: bool = False

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: object) -> AcquisitionOptions:
        values: dict[str, object] = {
            "retry_attempts": settings.fetch_max_attempts,
            "retry_delay": settings.fetch_base_delay_s,
            "allow_generic_fallback": settings.allow_generic_fallback,
            "publish_to_durable": settings.publish_to_durable,
        }
        values.update(overrides)
        return cls(**values)


class CandidateError(BaseModel):
    """Why one candidate source did not produce the image."""

    source: str
    kind: Literal["fetch", "store", "unresolved", "publish"]
    message: str
    url: str | None = None
    attempts: int = 0


class AcquisitionResult(BaseModel):
    """Outcome of acquiring one slot."""

    image: CachedImage
    errors: list[CandidateError] = Field(default_factory=list)
    remote_api_calls: int = 0
    from_cache: bool = False

    @property
    def slot(self) -> ImageSlot:
        return self.image.slot

    @property
    def origin(self) -> str:
        return self.image.origin

    @property
    def is_placeholder(self) -> bool:
        return self.image.provenance == "placeholder"
