# src/enrichment/__init__.py — v1
"""Best-effort institution and scholarship lookups."""
