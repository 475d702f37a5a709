# src/__init__.py — v1
"""offerscope: admissions document analysis pipeline."""

from offerscope.version import __version__

__all__ = ["__version__"]
