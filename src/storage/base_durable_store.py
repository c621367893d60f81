# src/storage/base_durable_store.py — v1
"""Abstract durable (long-term object) store interface."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseDurableStore(ABC):
    """Unified interface for long-term image storage backends."""

    @abstractmethod
    async def put_object(
        self, path: str, data: bytes, content_type: str = "image/jpeg"
    ) -> str:
        """Write an object and return its public URL."""

    @abstractmethod
    async def object_exists(self, path: str) -> bool:
        """Check whether an object exists at path."""

    @abstractmethod
    def public_url(self, path: str) -> str:
        """Public URL an object at path is (or would be) served from."""
