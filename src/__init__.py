# src/__init__.py — v1
"""bizimages — business image acquisition and caching pipeline."""

from bizimages.version import __version__

__all__ = ["__version__"]
