# src/extraction/base_text_extractor.py — v1
"""Abstract text extractor interface for uploaded document formats."""

from __future__ import annotations

from abc import ABC, abstractmethod


class TextExtractionError(Exception):
    """Raised when a document's bytes cannot be turned into text."""


class BaseTextExtractor(ABC):
    """Unified interface for turning uploaded bytes into plain text."""

    @property
    @abstractmethod
    def supported_mime_types(self) -> list[str]:
        """MIME types this extractor handles (e.g., ['application/pdf'])."""

    @property
    @abstractmethod
    def supported_extensions(self) -> list[str]:
        """File extensions this extractor handles (e.g., ['.pdf'])."""

    @abstractmethod
    async def extract(self, file_bytes: bytes, mime_type: str) -> str:
        """Return the document text.

        Raises:
            TextExtractionError: If the bytes are not a readable document.
        """
