# src/storage/base_repository.py — v1
"""Abstract persistence interface for completed analyses."""

from __future__ import annotations

from abc import ABC, abstractmethod

from offerscope.analysis.models import AnalysisMetadata, AnalysisResult


class BaseRepository(ABC):
    """Unified interface for analysis record storage backends."""

    @abstractmethod
    async def save(
        self,
        result: AnalysisResult,
        metadata: AnalysisMetadata,
        user_id: str,
    ) -> str:
        """Persist one analysis and return its record id."""
