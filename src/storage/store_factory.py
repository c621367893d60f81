# src/storage/store_factory.py — v1
"""Factory: instantiate the durable store from configuration."""

from __future__ import annotations

from bizimages.config.settings import Settings
from bizimages.storage.base_durable_store import BaseDurableStore
from bizimages.storage.local_store import LocalDurableStore


def create_durable_store(settings: Settings) -> BaseDurableStore | None:
    """Create the durable store selected by DURABLE_STORE.

    Returns:
        BaseDurableStore instance, or None when DURABLE_STORE=none.

    Raises:
        ValueError: If the store type is not supported.
    """
    if settings.durable_store == "none":
        return None

    if settings.durable_store == "local":
        return LocalDurableStore(
            root=settings.durable_local_root,
            public_base_url=settings.durable_public_base_url,
        )

    if settings.durable_store == "s3":
        from bizimages.storage.s3_store import S3DurableStore
        return S3DurableStore(
            bucket=settings.durable_s3_bucket,
            prefix=settings.durable_s3_prefix,
            region=settings.durable_s3_region or None,
            endpoint_url=settings.durable_s3_endpoint_url or None,
            public_base_url=settings.durable_public_base_url or None,
        )

    raise ValueError(f"Unsupported durable store: {settings.durable_store!r}")
