# src/api/models.py — v2
"""API-level models: RecordedAnalysis."""

from __future__ import annotations

from pydantic import BaseModel

from offerscope.analysis.models import AnalysisMetadata, AnalysisResult


class RecordedAnalysis(BaseModel):
    """Return value of facade.analyze_document(): the outcome plus its record id."""

    record_id: str
    result: AnalysisResult
    metadata: AnalysisMetadata

    def to_json_dict(self) -> dict:
        return {
            "recordId": self.record_id,
            "analysis": self.result.to_json_dict(),
            "metadata": self.metadata.model_dump(mode="json"),
        }
