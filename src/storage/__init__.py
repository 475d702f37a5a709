# src/storage/__init__.py — v1
"""Quota, repository and record storage."""
