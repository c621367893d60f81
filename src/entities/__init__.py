# src/entities/__init__.py — v1
