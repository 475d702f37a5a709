# src/analysis/__init__.py — v1
"""Analysis domain: models, analyzers, synthesis, fallback and orchestration."""
