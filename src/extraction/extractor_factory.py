# src/extraction/extractor_factory.py — v3
"""Factory: instantiate text extractor from MIME type or file extension."""

from __future__ import annotations

from offerscope.extraction.base_text_extractor import BaseTextExtractor
from offerscope.extraction.pdf_extractor import PdfExtractor
from offerscope.extraction.txt_extractor import TxtExtractor

# Registries map mime type / extension → extractor class.
_MIME_REGISTRY: dict[str, type[BaseTextExtractor]] = {}
_EXTENSION_REGISTRY: dict[str, type[BaseTextExtractor]] = {}


def _register_defaults() -> None:
    """Register built-in extractors."""
    for cls in [TxtExtractor, PdfExtractor]:
        instance = cls()
        for mime in instance.supported_mime_types:
            _MIME_REGISTRY[mime] = cls
        for ext in instance.supported_extensions:
            _EXTENSION_REGISTRY[ext.lower()] = cls


_register_defaults()


class UnsupportedFormatError(ValueError):
    """Raised when no extractor is available for a format."""


def create_extractor(mime_type: str) -> BaseTextExtractor:
    """Create an extractor for the given MIME type.

    Raises:
        UnsupportedFormatError: If no extractor is registered.
    """
    cls = _MIME_REGISTRY.get(mime_type.split(";")[0].strip().lower())
    if cls is None:
        raise UnsupportedFormatError(
            f"No extractor for MIME type {mime_type!r}. "
            f"Supported: {', '.join(sorted(_MIME_REGISTRY))}"
        )
    return cls()


def mime_type_for_extension(extension: str) -> str:
    """Map a file extension (with or without dot) to its registered MIME type."""
    ext = extension.lower()
    if not ext.startswith("."):
        ext = f".{ext}"
    cls = _EXTENSION_REGISTRY.get(ext)
    if cls is None:
        raise UnsupportedFormatError(
            f"No extractor for format {ext!r}. "
            f"Supported: {', '.join(sorted(_EXTENSION_REGISTRY))}"
        )
    return cls().supported_mime_types[0]
