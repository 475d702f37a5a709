# src/analysis/fallback.py — v2
"""Degraded-but-valid AnalysisResult for runs that cannot be synthesized.

This is the only place that manufactures placeholder content for a whole
result. Every string leaf carries the reason's label, lists stay empty,
the score is 0, and exactly one key finding and one recommendation tell the
user what happened and what to do next.

The orchestrator itself assembles only TEMPLATE_NOT_AVAILABLE and
ALL_MODELS_FAILED. Unreadable documents raise DocumentUnreadable instead;
EXTRACTION_FAILED is for callers that catch it and still want to store or
return a placeholder record for the upload.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from offerscope.analysis.models import (
    AnalysisResult,
    ErrorKind,
    KeyFinding,
    Recommendation,
    StrategicAnalysis,
)

logger = logging.getLogger(__name__)

ANALYSIS_FAILED = "Analysis failed"
TEMPLATE_NOT_AVAILABLE = "Template not available"


@dataclass(frozen=True)
class _FailureText:
    label: str
    title: str
    description: str
    recommendation: str
    rationale: str


_FAILURE_TEXT: dict[ErrorKind, _FailureText] = {
    ErrorKind.EXTRACTION_FAILED: _FailureText(
        label=ANALYSIS_FAILED,
        title="Document Extraction Failed",
        description=(
            "The document text could not be processed. Please upload a clearer, "
            "text-based copy or contact support."
        ),
        recommendation="Re-upload the document as a text-based PDF or plain text file.",
        rationale="Scanned or image-only files often contain no readable text layer.",
    ),
    ErrorKind.TEMPLATE_NOT_AVAILABLE: _FailureText(
        label=TEMPLATE_NOT_AVAILABLE,
        title="Template Not Available",
        description=(
            "Analysis for the '{document_type}' document type is not available yet. "
            "No analysis was performed."
        ),
        recommendation="Upload an offer letter or confirmation of enrolment instead.",
        rationale="Only document types with an analysis template can be processed.",
    ),
    ErrorKind.ALL_MODELS_FAILED: _FailureText(
        label=ANALYSIS_FAILED,
        title="Analysis Incomplete",
        description=(
            "Analysis incomplete: the analysis services did not respond in time "
            "or returned unusable output. Please retry or contact support."
        ),
        recommendation="Retry the analysis in a few minutes or contact support.",
        rationale="Both analysis services were unavailable for this run.",
    ),
}


def _relabel(value: Any, label: str) -> Any:
    if isinstance(value, str):
        return label
    if isinstance(value, dict):
        return {k: _relabel(v, label) for k, v in value.items()}
    if isinstance(value, list):
        return [_relabel(v, label) for v in value]
    return value


class FallbackAssembler:
    """Build a structurally complete, clearly labeled placeholder result."""

    def assemble(self, reason: ErrorKind, document_type: str) -> AnalysisResult:
        text = _FAILURE_TEXT[reason]
        description = text.description.format(document_type=document_type)

        skeleton = _relabel(AnalysisResult().model_dump(by_alias=True), text.label)
        result = AnalysisResult.model_validate(skeleton)

        result = result.model_copy(
            update={
                "document_type": document_type,
                "summary": description,
                "analysis_score": 0,
                "key_findings": [
                    KeyFinding(
                        title=text.title,
                        description=description,
                        importance="high",
                        category="analysis",
                    )
                ],
                "strategic_analysis": StrategicAnalysis(
                    recommendations=[
                        Recommendation(
                            category="analysis",
                            recommendation=text.recommendation,
                            rationale=text.rationale,
                            priority="high",
                            timeline="Immediate",
                            resources="Support team",
                            expected_outcome="A complete analysis of the document",
                        )
                    ]
                ),
            }
        )
        logger.info("Assembled fallback result: reason=%s type=%s", reason.value, document_type)
        return result
