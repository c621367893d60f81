# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from bizimages.core.models import MIN_VALID_SIZE

SOURCE_KINDS = ("cache", "durable-store", "remote-api", "generic-fallback", "placeholder")


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Retrying fetcher ===
    fetch_timeout_s: float = 15.0
    fetch_max_attempts: int = 3
    fetch_base_delay_s: float = 1.0
    min_valid_size: int = MIN_VALID_SIZE
    max_image_bytes: int = 5 * 1024 * 1024
    fetch_user_agent: str = "Mozilla/5.0 (compatible; PhotoDownloader/1.0)"

    # === Places API ===
    places_api_base_url: str = "https://maps.googleapis.com/maps/api/place"
    places_api_key: str = ""
    places_photo_max_width: int = 400
    remote_api_enabled: bool = True
    # Rough Places photo request price, for cost reports
    remote_api_cost_per_call: float = 0.017

    # === Sources ===
    source_order: str = "cache,durable-store,remote-api,generic-fallback,placeholder"
    allow_generic_fallback: bool = True
    max_photos_per_entity: int = 5

    # === Cache ===
    cache_backend: Literal["json", "sqlite", "redis"] = "sqlite"
    cache_root: Path = Path("~/.bizimages/cache")
    cache_redis_url: str = ""

    # === Durable store ===
    durable_store: Literal["none", "local", "s3"] = "none"
    durable_local_root: Path = Path("~/.bizimages/objects")
    durable_public_base_url: str = ""
    durable_s3_bucket: str = ""
    durable_s3_prefix: str = ""
    durable_s3_region: str = ""
    durable_s3_endpoint_url: str = ""
    publish_to_durable: bool = False

    # === Batch ===
    batch_concurrency: int = 5
    batch_inter_chunk_delay_s: float = 0.3
    batch_prioritize_uncached: bool = True
    batch_checkpoint_path: Path | None = None
    batch_max_errors: int = 500

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("fetch_max_attempts", "batch_concurrency")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("min_valid_size")
    @classmethod
    def validate_min_valid_size(cls, v: int) -> int:
        """The floor can be raised, never lowered below MIN_VALID_SIZE."""
        if v < MIN_VALID_SIZE:
            raise ValueError(f"min_valid_size must be >= {MIN_VALID_SIZE}")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if not 1.0 <= self.fetch_timeout_s <= 120.0:
            errors.append("FETCH_TIMEOUT_S must be between 1 and 120 seconds")

        if self.remote_api_cost_per_call < 0:
            errors.append("REMOTE_API_COST_PER_CALL must be >= 0")

        if self.max_image_bytes < self.min_valid_size:
            errors.append("MAX_IMAGE_BYTES must be >= MIN_VALID_SIZE")

        if self.cache_backend == "redis" and not self.cache_redis_url:
            errors.append("CACHE_REDIS_URL must be set when CACHE_BACKEND=redis")

        if self.durable_store == "s3" and not self.durable_s3_bucket:
            errors.append("DURABLE_S3_BUCKET must be set when DURABLE_STORE=s3")

        if self.publish_to_durable and self.durable_store == "none":
            errors.append("PUBLISH_TO_DURABLE requires DURABLE_STORE to be configured")

        order = self.source_order_list
        unknown = [s for s in order if s not in SOURCE_KINDS]
        if unknown:
            errors.append(f"SOURCE_ORDER has unknown sources: {', '.join(unknown)}")
        if len(set(order)) != len(order):
            errors.append("SOURCE_ORDER lists a source more than once")
        if order and order[0] != "cache":
            errors.append("SOURCE_ORDER must start with cache")
        if "placeholder" in order and order[-1] != "placeholder":
            errors.append("SOURCE_ORDER must end with placeholder")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def source_order_list(self) -> list[str]:
        """Parse comma-separated source order."""
        return [s.strip() for s in self.source_order.split(",") if s.strip()]


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-run config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
