# src/sources/generic_images.py — v1
"""Stock imagery keyed by naive keyword match on business name/category.

These are NOT photos of the business. Anything served from here is tagged
``origin="generic-fallback"`` so callers can show a "no authentic photo"
indicator.
"""

from __future__ import annotations

_UNSPLASH = "https://images.unsplash.com"

# Checked in order; first keyword found in the name or category wins.
GENERIC_IMAGES: dict[str, list[str]] = {
    "visa": [
        f"{_UNSPLASH}/photo-1541701494587-cb58502866ab?w=400",
        f"{_UNSPLASH}/photo-1578662996442-48f60103fc96?w=400",
        f"{_UNSPLASH}/photo-1450101499163-c8848c66ca85?w=400",
    ],
    "attestation": [
        f"{_UNSPLASH}/photo-1450101499163-c8848c66ca85?w=400",
        f"{_UNSPLASH}/photo-1507003211169-0a1dd7228f2d?w=400",
        f"{_UNSPLASH}/photo-1554224155-8d04cb21cd6c?w=400",
    ],
    "document": [
        f"{_UNSPLASH}/photo-1578662996442-48f60103fc96?w=400",
        f"{_UNSPLASH}/photo-1450101499163-c8848c66ca85?w=400",
        f"{_UNSPLASH}/photo-1507003211169-0a1dd7228f2d?w=400",
    ],
    "clearing": [
        f"{_UNSPLASH}/photo-1507003211169-0a1dd7228f2d?w=400",
        f"{_UNSPLASH}/photo-1450101499163-c8848c66ca85?w=400",
        f"{_UNSPLASH}/photo-1578662996442-48f60103fc96?w=400",
    ],
    "medical": [
        f"{_UNSPLASH}/photo-1559757148-5c350d0d3c56?w=400",
        f"{_UNSPLASH}/photo-1576091160399-112ba8d25d1f?w=400",
        f"{_UNSPLASH}/photo-1582750433449-648ed127bb54?w=400",
    ],
    "fitness": [
        f"{_UNSPLASH}/photo-1534438327276-14e5300c3a48?w=400",
        f"{_UNSPLASH}/photo-1571019613454-1cb2f99b2d8b?w=400",
        f"{_UNSPLASH}/photo-1540497077202-7c8a3999166f?w=400",
    ],
    "freelance": [
        f"{_UNSPLASH}/photo-1450101499163-c8848c66ca85?w=400",
        f"{_UNSPLASH}/photo-1507003211169-0a1dd7228f2d?w=400",
        f"{_UNSPLASH}/photo-1541746972996-4e0b0f93e586?w=400",
    ],
    "typing": [
        f"{_UNSPLASH}/photo-1450101499163-c8848c66ca85?w=400",
        f"{_UNSPLASH}/photo-1507003211169-0a1dd7228f2d?w=400",
        f"{_UNSPLASH}/photo-1578662996442-48f60103fc96?w=400",
    ],
}

DEFAULT_IMAGES: list[str] = [
    f"{_UNSPLASH}/photo-1486406146926-c627a92ad1ab?w=400",
    f"{_UNSPLASH}/photo-1512453979798-5ea266f8880c?w=400",
    f"{_UNSPLASH}/photo-1580834259967-f0fe83d7a088?w=400",
    f"{_UNSPLASH}/photo-1450101499163-c8848c66ca85?w=400",
]


def match_keyword(name: str, category: str | None = None) -> str | None:
    """Return the first keyword contained in name or category, if any."""
    haystacks = (name.lower(), (category or "").lower())
    for keyword in GENERIC_IMAGES:
        if any(keyword in text for text in haystacks):
            return keyword
    return None


def generic_image_urls(name: str, category: str | None = None, rotate: int = 0) -> list[str]:
    """Stock URLs for a business, rotated so photo N starts at a different image."""
    keyword = match_keyword(name, category)
    urls = GENERIC_IMAGES[keyword] if keyword else DEFAULT_IMAGES
    shift = rotate % len(urls)
    return urls[shift:] + urls[:shift]
