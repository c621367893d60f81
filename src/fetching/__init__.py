# src/fetching/__init__.py — v1
