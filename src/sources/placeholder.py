# src/sources/placeholder.py — v1
"""Synthesized SVG placeholder with the business's initials. Never fails."""

from __future__ import annotations

import hashlib
import re
from xml.sax.saxutils import escape

from bizimages.core.models import CachedImage, EntitySnapshot, ImageSlot

PLACEHOLDER_CONTENT_TYPE = "image/svg+xml"

_WORD = re.compile(r"[^\W_]+", re.UNICODE)

_SVG_TEMPLATE = (
    '<svg width="{size}" height="{size}" viewBox="0 0 100 100" '
    'xmlns="http://www.w3.org/2000/svg">'
    "<defs>"
    '<linearGradient id="g{gid}" x1="0%" y1="0%" x2="100%" y2="100%">'
    '<stop offset="0%" style="stop-color:#3B82F6;stop-opacity:1"/>'
    '<stop offset="50%" style="stop-color:#8B5CF6;stop-opacity:1"/>'
    '<stop offset="100%" style="stop-color:#EC4899;stop-opacity:1"/>'
    "</linearGradient>"
    "</defs>"
    '<rect width="100" height="100" rx="16" fill="url(#g{gid})"/>'
    '<text x="50" y="62" font-family="Arial, Helvetica, sans-serif" '
    'font-size="32" font-weight="bold" text-anchor="middle" fill="white">'
    "{initials}</text>"
    "</svg>"
)


def initials(name: str) -> str:
    """Up to two uppercase initials; ``?`` for names with no letters."""
    words = _WORD.findall(name)
    letters = "".join(w[0] for w in words if w)[:2]
    return letters.upper() or "?"


def render_placeholder(name: str, size: int = 100) -> bytes:
    """Render the placeholder SVG for a business name."""
    gid = hashlib.sha1(name.encode("utf-8")).hexdigest()[:8]
    svg = _SVG_TEMPLATE.format(size=size, gid=gid, initials=escape(initials(name)))
    return svg.encode("utf-8")


def placeholder_image(slot: ImageSlot, entity: EntitySnapshot) -> CachedImage:
    """Build the placeholder CachedImage for a slot."""
    size = 100 if slot.slot_kind == "logo" else 400
    return CachedImage(
        slot=slot,
        data=render_placeholder(entity.name, size=size),
        content_type=PLACEHOLDER_CONTENT_TYPE,
        origin="placeholder",
    )
