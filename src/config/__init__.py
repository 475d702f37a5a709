# src/config/__init__.py — v1
"""Settings loaded from the environment."""
