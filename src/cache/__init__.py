# src/cache/__init__.py — v1
"""Result cache and document fingerprinting."""
