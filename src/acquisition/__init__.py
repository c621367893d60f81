# src/acquisition/__init__.py — v1
