# src/extraction/txt_extractor.py — v3
"""Plain text extractor — decode with minimal processing."""

from __future__ import annotations

from offerscope.extraction.base_text_extractor import BaseTextExtractor


class TxtExtractor(BaseTextExtractor):
    """Extractor for plain text uploads (.txt)."""

    @property
    def supported_mime_types(self) -> list[str]:
        return ["text/plain"]

    @property
    def supported_extensions(self) -> list[str]:
        return [".txt"]

    async def extract(self, file_bytes: bytes, mime_type: str) -> str:
        """Decode UTF-8 (BOM tolerated), replacing undecodable bytes."""
        return file_bytes.decode("utf-8-sig", errors="replace").replace("\r\n", "\n")
