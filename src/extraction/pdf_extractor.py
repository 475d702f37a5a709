# src/extraction/pdf_extractor.py — v3
"""PDF extractor using PyMuPDF (fitz).

Reads the text layer of every page. Scanned PDFs without a text layer come
back (nearly) empty and are rejected later by the readability check.
Requires the 'pymupdf' package.
"""

from __future__ import annotations

import logging

from offerscope.extraction.base_text_extractor import (
    BaseTextExtractor,
    TextExtractionError,
)

logger = logging.getLogger(__name__)


class PdfExtractor(BaseTextExtractor):
    """Extractor for PDF files using PyMuPDF."""

    @property
    def supported_mime_types(self) -> list[str]:
        return ["application/pdf"]

    @property
    def supported_extensions(self) -> list[str]:
        return [".pdf"]

    async def extract(self, file_bytes: bytes, mime_type: str) -> str:
        """Extract the text layer page by page."""
        try:
            import fitz  # PyMuPDF
        except ImportError as e:
            raise ImportError(
                "pymupdf package required for PDF extraction: pip install pymupdf"
            ) from e

        try:
            doc = fitz.open(stream=file_bytes, filetype="pdf")
        except Exception as e:
            raise TextExtractionError(f"Cannot open PDF: {e}") from e

        try:
            pages = [doc[i].get_text("text") for i in range(len(doc))]
        except Exception as e:
            raise TextExtractionError(f"Cannot read PDF text layer: {e}") from e
        finally:
            doc.close()

        logger.debug("Extracted %d page(s) from PDF", len(pages))
        return "\n".join(pages)
