# src/cache/cache_factory.py — v1
"""Factory for image cache store instantiation."""

from __future__ import annotations

from bizimages.cache.base_cache_store import BaseImageCacheStore
from bizimages.config.settings import Settings


def create_cache_store(settings: Settings | None = None) -> BaseImageCacheStore:
    """Instantiate the configured cache backend.

    Args:
        settings: Application settings. Defaults to the SQLite backend
            under ``~/.bizimages/cache``.

    Returns:
        Configured BaseImageCacheStore implementation.
    """
    backend = "sqlite" if settings is None else settings.cache_backend
    cache_root = "~/.bizimages/cache" if settings is None else str(settings.cache_root)

    if backend == "json":
        from bizimages.cache.json_store import JsonImageCacheStore
        return JsonImageCacheStore(cache_root=cache_root)

    if backend == "sqlite":
        from bizimages.cache.sqlite_store import SqliteImageCacheStore
        return SqliteImageCacheStore(db_path=f"{cache_root}/bizimages_cache.db")

    if backend == "redis":
        from bizimages.cache.redis_store import RedisImageCacheStore
        if settings is None or not settings.cache_redis_url:
            raise ValueError(
                "CACHE_REDIS_URL must be set when CACHE_BACKEND=redis"
            )
        return RedisImageCacheStore(redis_url=settings.cache_redis_url)

    raise ValueError(f"Unsupported cache backend: {backend!r}")
