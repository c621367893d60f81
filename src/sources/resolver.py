# src/sources/resolver.py — v1
"""Source resolver — ranked candidate sources for one image slot.

The default chain is:

    cache → durable-store → remote-api → generic-fallback → placeholder

Candidates only appear when they apply to the slot (a durable-store
candidate needs a known URL or a configured store, a remote-api candidate
needs a remote reference and the places API switched on, generic stock
images are offered only when the slot has no remote reference). The
placeholder is always last, so resolution never dead-ends. The order
itself is configuration (SOURCE_ORDER); the acquisition code never
branches on it.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal
from urllib.parse import quote

from bizimages.core.models import EntitySnapshot, ImageSlot
from bizimages.sources.api_switch import RemoteApiSwitch
from bizimages.sources.generic_images import generic_image_urls
from bizimages.storage import layout

if TYPE_CHECKING:
    from bizimages.config.settings import Settings
    from bizimages.storage.base_durable_store import BaseDurableStore

logger = logging.getLogger(__name__)

SourceKind = Literal[
    "cache", "durable-store", "remote-api", "generic-fallback", "placeholder"
]

DEFAULT_SOURCE_ORDER: tuple[SourceKind, ...] = (
    "cache", "durable-store", "remote-api", "generic-fallback", "placeholder",
)

# Extensions probed, in order, when looking for a previously published object.
_PROBE_EXTENSIONS = ("jpg", "png", "webp")

Locator = Callable[[ImageSlot], Awaitable["str | None"]]


@dataclass(frozen=True)
class SourceCandidate:
    """One place an image for a slot might come from."""

    kind: SourceKind
    priority: int
    locator: Locator | None = None
    label: str = ""

    async def locate(self, slot: ImageSlot) -> str | None:
        """URL to fetch for this slot, or None (cache/placeholder, or nothing found)."""
        if self.locator is None:
            return None
        return await self.locator(slot)

    @property
    def name(self) -> str:
        return f"{self.kind}[{self.label}]" if self.label else self.kind


def _fixed(url: str) -> Locator:
    async def locate(_: ImageSlot) -> str | None:
        return url
    return locate


def remote_reference_for(slot: ImageSlot, entity: EntitySnapshot) -> str | None:
    """The entity-specific remote reference behind a slot, if any."""
    if slot.slot_kind == "logo":
        return entity.remote_image_reference
    if slot.index < len(entity.photo_references):
        return entity.photo_references[slot.index]
    return None


def known_durable_url_for(slot: ImageSlot, entity: EntitySnapshot) -> str | None:
    """URL the entity record says this slot was already published to."""
    if slot.slot_kind == "logo":
        return entity.known_durable_url
    if slot.index < len(entity.known_photo_urls):
        return entity.known_photo_urls[slot.index]
    return None


class SourceResolver:
    """Build the priority-ordered candidate list for a slot."""

    def __init__(
        self,
        durable_store: BaseDurableStore | None = None,
        places_api_key: str = "",
        places_api_base_url: str = "https://maps.googleapis.com/maps/api/place",
        photo_max_width: int = 400,
        source_order: Sequence[str] = DEFAULT_SOURCE_ORDER,
        api_switch: RemoteApiSwitch | None = None,
    ) -> None:
        self._durable_store = durable_store
        self._api_switch = api_switch or RemoteApiSwitch()
        self._api_key = places_api_key
        self._api_base = places_api_base_url.rstrip("/")
        self._max_width = photo_max_width
        order = [s for s in source_order if s != "placeholder"]
        if not order or order[0] != "cache":
            order.insert(0, "cache")
        self._order: list[str] = order + ["placeholder"]

    @classmethod
    def from_settings(
        cls, settings: Settings, durable_store: BaseDurableStore | None = None
    ) -> SourceResolver:
        return cls(
            durable_store=durable_store,
            places_api_key=settings.places_api_key,
            places_api_base_url=settings.places_api_base_url,
            photo_max_width=settings.places_photo_max_width,
            source_order=settings.source_order_list,
            api_switch=RemoteApiSwitch(enabled=settings.remote_api_enabled),
        )

    @property
    def order(self) -> list[str]:
        return list(self._order)

    @property
    def api_switch(self) -> RemoteApiSwitch:
        return self._api_switch

    def resolve(
        self,
        slot: ImageSlot,
        entity: EntitySnapshot,
        allow_generic_fallback: bool = True,
    ) -> list[SourceCandidate]:
        """Return candidates in ascending priority; the last one is always the placeholder."""
        candidates: list[SourceCandidate] = []
        for position, kind in enumerate(self._order):
            base = position * 10
            if kind == "cache":
                candidates.append(SourceCandidate("cache", base))
            elif kind == "durable-store":
                candidate = self._durable_candidate(slot, entity, base)
                if candidate is not None:
                    candidates.append(candidate)
            elif kind == "remote-api":
                reference = remote_reference_for(slot, entity)
                if reference and self._api_switch.enabled:
                    candidates.append(
                        SourceCandidate("remote-api", base, self._remote_locator(reference))
                    )
            elif kind == "generic-fallback":
                if allow_generic_fallback and not remote_reference_for(slot, entity):
                    urls = generic_image_urls(entity.name, entity.category, rotate=slot.index)
                    candidates.extend(
                        SourceCandidate("generic-fallback", base + i, _fixed(url), label=str(i))
                        for i, url in enumerate(urls)
                    )
            elif kind == "placeholder":
                candidates.append(SourceCandidate("placeholder", base))
        return sorted(candidates, key=lambda c: c.priority)

    def remote_url(self, reference: str) -> str | None:
        """Places-photo URL for a reference; absolute URLs pass through unchanged."""
        if reference.startswith(("http://", "https://")):
            return reference
        if not self._api_key:
            logger.debug("No PLACES_API_KEY, cannot build photo URL for %s", reference[:20])
            return None
        return (
            f"{self._api_base}/photo?maxwidth={self._max_width}"
            f"&photo_reference={quote(reference, safe='')}&key={quote(self._api_key, safe='')}"
        )

    def _remote_locator(self, reference: str) -> Locator:
        async def locate(_: ImageSlot) -> str | None:
            return self.remote_url(reference)
        return locate

    def _durable_candidate(
        self, slot: ImageSlot, entity: EntitySnapshot, priority: int
    ) -> SourceCandidate | None:
        known = known_durable_url_for(slot, entity)
        if known:
            return SourceCandidate("durable-store", priority, _fixed(known), label="known")
        if self._durable_store is None:
            return None

        store = self._durable_store

        async def locate(s: ImageSlot) -> str | None:
            for ext in _PROBE_EXTENSIONS:
                path = layout.slot_path(s, ext)
                if await store.object_exists(path):
                    return store.public_url(path)
            return None

        return SourceCandidate("durable-store", priority, locate, label="lookup")
