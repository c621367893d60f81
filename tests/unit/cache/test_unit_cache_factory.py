# tests/unit/cache/test_unit_cache_factory.py — v1
"""Tests for cache/cache_factory.py."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from bizimages.cache.cache_factory import create_cache_store
from bizimages.cache.json_store import JsonImageCacheStore
from bizimages.cache.sqlite_store import SqliteImageCacheStore
from bizimages.config.settings import Settings


def test_sqlite_default(tmp_path):
    store = create_cache_store(Settings(_env_file=None, cache_root=tmp_path))
    assert isinstance(store, SqliteImageCacheStore)
    assert (tmp_path / "bizimages_cache.db").exists()
    store.close()


def test_json_backend(tmp_path):
    store = create_cache_store(Settings(_env_file=None, cache_backend="json", cache_root=tmp_path))
    assert isinstance(store, JsonImageCacheStore)


def test_redis_without_url_rejected():
    settings = MagicMock(cache_backend="redis", cache_redis_url="", cache_root="/tmp")
    with pytest.raises(ValueError, match="CACHE_REDIS_URL"):
        create_cache_store(settings)


def test_unknown_backend_rejected():
    settings = MagicMock(cache_backend="memcached", cache_root="/tmp")
    with pytest.raises(ValueError, match="Unsupported"):
        create_cache_store(settings)
