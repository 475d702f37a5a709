# src/storage/models.py — v2
"""Storage domain models: AnalysisRecord."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from offerscope.analysis.models import AnalysisMetadata, AnalysisResult


class AnalysisRecord(BaseModel):
    """One persisted analysis, as written by a repository."""

    record_id: str
    user_id: str
    document_type: str
    created_at: datetime
    result: AnalysisResult
    metadata: AnalysisMetadata
