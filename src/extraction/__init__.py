# src/extraction/__init__.py — v1
"""Text extraction and core-field pattern matching."""
