# src/enrichment/models.py — v1
"""Enrichment domain model: what the web lookups contributed to one run."""

from __future__ import annotations

from pydantic import BaseModel, Field

from offerscope.analysis.models import (
    CompetitorAnalysis,
    InstitutionalResearch,
    ScholarshipListing,
)


class EnrichmentResult(BaseModel):
    """Best-effort external facts; every failed lookup leaves its part empty."""

    institution_facts: InstitutionalResearch = Field(default_factory=InstitutionalResearch)
    scholarships: list[ScholarshipListing] = Field(default_factory=list, max_length=12)
    competitor_set: CompetitorAnalysis = Field(default_factory=CompetitorAnalysis)

    def has_web_data(self) -> bool:
        """True when at least one remote fetch contributed something."""
        return bool(self.scholarships) or not self.institution_facts.is_empty()
