# src/analysis/synthesizer.py — v2
"""Deterministic merge of core fields, enrichment and model partials.

Each AnalysisResult section has exactly one producer:

* institution, course, student, financial, offer-condition and compliance
  sections come from the FinancialPartial;
* strategicAnalysis and actionPlan come from the StrategicPartial;
* institutionalResearch, availableScholarships and competitorAnalysis come
  from the EnrichmentResult, never from a model.

An absent partial leaves its sections at their sentinel defaults. The two
partials write disjoint sections, so nothing is cross-validated here. The
optional consensus pass (analysis/arbitrator.py) runs after this merge.
"""

from __future__ import annotations

import logging

from offerscope.analysis.models import (
    NOT_SPECIFIED,
    AnalysisResult,
    CoreFields,
    FinancialPartial,
    KeyFinding,
    StrategicPartial,
)
from offerscope.enrichment.models import EnrichmentResult

logger = logging.getLogger(__name__)

MAX_KEY_FINDINGS = 10

_DOCUMENT_LABELS = {
    "offer_letter": "Offer letter",
    "coe": "Confirmation of Enrolment",
}

_SEVERITY_RANK = {"high": 0, "medium": 1, "low": 2}

# Score weights: core-field coverage plus one share per contributing source.
_CORE_WEIGHT = 50
_FINANCIAL_WEIGHT = 20
_STRATEGIC_WEIGHT = 20
_ENRICHMENT_WEIGHT = 10


def document_label(document_type: str) -> str:
    return _DOCUMENT_LABELS.get(document_type, document_type.replace("_", " ").title())


def _importance(value: str) -> str:
    value = value.strip().lower()
    return value if value in _SEVERITY_RANK else "medium"


class Synthesizer:
    """Builds the final AnalysisResult for a run where at least one model answered."""

    def synthesize(
        self,
        core: CoreFields,
        enrichment: EnrichmentResult,
        financial: FinancialPartial | None,
        strategic: StrategicPartial | None,
        document_type: str,
    ) -> AnalysisResult:
        sections: dict[str, object] = {}
        if financial is not None:
            sections.update(
                institution_details=financial.institution_details,
                course_details=financial.course_details,
                student_profile=financial.student_profile,
                financial_breakdown=financial.financial_breakdown,
                offer_conditions=financial.offer_conditions,
                compliance_requirements=financial.compliance_requirements,
            )
        if strategic is not None:
            sections.update(
                strategic_analysis=strategic.strategic_analysis,
                action_plan=strategic.action_plan,
            )

        result = AnalysisResult(
            document_type=document_type,
            summary=self._summary(core, enrichment, financial, strategic, document_type),
            key_findings=self._key_findings(core, financial, strategic),
            analysis_score=self._score(core, enrichment, financial, strategic),
            extracted_fields=core,
            institutional_research=enrichment.institution_facts,
            available_scholarships=enrichment.scholarships,
            competitor_analysis=enrichment.competitor_set,
            **sections,
        )
        logger.debug(
            "Synthesized result: financial=%s strategic=%s score=%d",
            financial is not None,
            strategic is not None,
            result.analysis_score,
        )
        return result

    def _summary(
        self,
        core: CoreFields,
        enrichment: EnrichmentResult,
        financial: FinancialPartial | None,
        strategic: StrategicPartial | None,
        document_type: str,
    ) -> str:
        institution = core.institution_name
        if institution == NOT_SPECIFIED and financial is not None:
            institution = financial.institution_details.name

        head = document_label(document_type)
        if core.student_name != NOT_SPECIFIED:
            head += f" for {core.student_name}"
        if institution != NOT_SPECIFIED:
            head += f" from {institution}"

        details: list[str] = []
        if core.program_name != NOT_SPECIFIED:
            program = core.program_name
            if core.program_level != NOT_SPECIFIED:
                program += f" ({core.program_level})"
            details.append(f"Program: {program}.")
        if core.start_date != NOT_SPECIFIED:
            details.append(f"Starts: {core.start_date}.")
        if core.tuition_amount != NOT_SPECIFIED:
            fee = core.tuition_amount
            if core.currency != NOT_SPECIFIED and core.currency not in fee:
                fee = f"{core.currency} {fee}"
            details.append(f"Tuition: {fee}.")

        sources = []
        if financial is not None:
            sources.append("document details")
        if strategic is not None:
            sources.append("strategic assessment")
        if enrichment.has_web_data():
            sources.append("institution research")
        details.append(f"Based on {', '.join(sources)}.")

        if financial is None:
            details.append("Detailed document extraction was unavailable; please retry later.")
        if strategic is None:
            details.append("Strategic assessment was unavailable; please retry later.")

        return " ".join([f"{head}.", *details])

    def _key_findings(
        self,
        core: CoreFields,
        financial: FinancialPartial | None,
        strategic: StrategicPartial | None,
    ) -> list[KeyFinding]:
        findings: list[KeyFinding] = []

        if strategic is not None:
            concerns = sorted(
                strategic.strategic_analysis.concerns,
                key=lambda c: _SEVERITY_RANK.get(_importance(c.severity), 1),
            )
            for concern in concerns:
                description = concern.concern
                if concern.mitigation != NOT_SPECIFIED:
                    description += f" Mitigation: {concern.mitigation}"
                findings.append(
                    KeyFinding(
                        title=f"{concern.category} concern"
                        if concern.category != NOT_SPECIFIED
                        else "Concern",
                        description=description,
                        importance=_importance(concern.severity),
                        category=concern.category,
                    )
                )

        if core.tuition_amount != NOT_SPECIFIED:
            findings.append(
                KeyFinding(
                    title="Tuition Fee",
                    description=f"The document states a tuition amount of {core.tuition_amount}.",
                    importance="medium",
                    category="financial",
                )
            )
        if core.start_date != NOT_SPECIFIED:
            findings.append(
                KeyFinding(
                    title="Start Date",
                    description=f"Study commences {core.start_date}.",
                    importance="medium",
                    category="timeline",
                )
            )

        if strategic is not None:
            for strength in strategic.strategic_analysis.strengths:
                findings.append(
                    KeyFinding(
                        title=f"{strength.category} strength"
                        if strength.category != NOT_SPECIFIED
                        else "Strength",
                        description=strength.strength,
                        importance="low",
                        category=strength.category,
                    )
                )

        findings = findings[:MAX_KEY_FINDINGS]

        if financial is None:
            findings.append(
                KeyFinding(
                    title="Document Details Incomplete",
                    description=(
                        "Detailed extraction of institution, course and fee "
                        "information did not complete. Those sections show "
                        "'Not specified'. Please retry or contact support."
                    ),
                    importance="medium",
                    category="analysis",
                )
            )
        if strategic is None:
            findings.append(
                KeyFinding(
                    title="Strategic Assessment Unavailable",
                    description=(
                        "Risks, recommendations and the action plan could not be "
                        "generated for this run. Please retry or contact support."
                    ),
                    importance="medium",
                    category="analysis",
                )
            )
        return findings

    def _score(
        self,
        core: CoreFields,
        enrichment: EnrichmentResult,
        financial: FinancialPartial | None,
        strategic: StrategicPartial | None,
    ) -> int:
        score = _CORE_WEIGHT * core.found_count() / 5
        if financial is not None:
            score += _FINANCIAL_WEIGHT
        if strategic is not None:
            score += _STRATEGIC_WEIGHT
        if enrichment.has_web_data():
            score += _ENRICHMENT_WEIGHT
        return round(score)
