# src/analysis/models.py — v2
"""Analysis domain models: CoreFields, partials, AnalysisResult, AnalysisMetadata.

Every section model fills missing leaves with a sentinel: string leaves
default to ``NOT_SPECIFIED`` and list leaves to ``[]``. Values coming from a
model backend are normalized on the way in (``null`` and blank strings fall
back to the sentinel, numbers become strings, a bare string where a list is
expected becomes a one-element list, a bare string where an object is
expected fills that object's primary text field, and list items that still
cannot be shaped are dropped), so one malformed value never sinks a whole
partial and a serialized AnalysisResult never has a missing key.

Serialization uses camelCase aliases (``institutionDetails``,
``keyFindings``...); use ``model_dump(by_alias=True)``.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, ClassVar, Literal, Union, get_args, get_origin

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from offerscope.cache.fingerprint import text_fingerprint

NOT_SPECIFIED = "Not specified"


class SectionModel(BaseModel):
    """Base for every AnalysisResult subtree.

    ``primary_field`` names the text field a bare string is wrapped into when
    a backend sends ``"address": "288 La Trobe St"`` instead of an object.
    It defaults to the first string field.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    primary_field: ClassVar[str | None] = None

    @classmethod
    def primary_text_field(cls) -> str | None:
        if cls.primary_field is not None:
            return cls.primary_field
        for name, field in cls.model_fields.items():
            if field.annotation is str:
                return name
        return None

    @model_validator(mode="before")
    @classmethod
    def _normalize_input(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        annotations: dict[str, Any] = {}
        for name, field in cls.model_fields.items():
            annotations[name] = field.annotation
            if field.alias:
                annotations[field.alias] = field.annotation
        cleaned: dict[str, Any] = {}
        for key, value in data.items():
            if value is None or (isinstance(value, str) and not value.strip()):
                continue
            annotation = annotations.get(key)
            if _is_section(annotation):
                value = _reshape_section(annotation, value)
                if value is None:
                    continue
            elif get_origin(annotation) is list and _is_section(get_args(annotation)[0]):
                value = _reshape_sections(get_args(annotation)[0], value)
            cleaned[key] = value
        return cleaned

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_leaf(cls, value: Any, info: ValidationInfo) -> Any:
        annotation = cls.model_fields[info.field_name].annotation
        if annotation is str:
            return _as_text(value)
        if get_origin(annotation) is list:
            if isinstance(value, (str, dict)):
                value = [value]
            if isinstance(value, list):
                value = [v for v in value if v is not None]
                if get_args(annotation) == (str,):
                    value = [_as_text(v) for v in value]
        return value


def _is_section(annotation: Any) -> bool:
    return isinstance(annotation, type) and issubclass(annotation, SectionModel)


def _reshape_section(model: type[SectionModel], value: Any) -> Any:
    """Coerce one nested value into *model*; None means fall back to the default."""
    if isinstance(value, model):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if isinstance(value, str):
        primary = model.primary_text_field()
        if primary is None:
            return None
        value = {primary: value}
    if not isinstance(value, dict):
        return None
    try:
        return model.model_validate(value)
    except ValidationError:
        return None


def _reshape_sections(model: type[SectionModel], value: Any) -> list[Any]:
    """Coerce a list of nested values, dropping items that cannot be shaped."""
    if not isinstance(value, list):
        value = [value]
    items = []
    for item in value:
        if item is None:
            continue
        shaped = _reshape_section(model, item)
        if shaped is not None:
            items.append(shaped)
    return items


def _as_text(value: Any) -> Any:
    """Render scalars and small containers from model output as display text."""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, dict):
        parts = [str(v) for v in value.values() if v not in (None, "")]
        return ", ".join(parts) or NOT_SPECIFIED
    if isinstance(value, list):
        parts = [str(v) for v in value if v not in (None, "")]
        return "; ".join(parts) or NOT_SPECIFIED
    return value


def _text() -> Any:
    return Field(default=NOT_SPECIFIED)


def _items() -> Any:
    return Field(default_factory=list)


# === CORE FIELDS (pattern extraction) ===


class CoreFields(SectionModel):
    """Structurally important values recovered by pattern matching."""

    model_config = ConfigDict(frozen=True)

    student_name: str = _text()
    institution_name: str = _text()
    program_name: str = _text()
    program_level: str = _text()
    tuition_amount: str = _text()
    currency: str = _text()
    start_date: str = _text()
    country_guess: str = "Other"
    country_specific: dict[str, str] = Field(default_factory=dict)

    def found_count(self) -> int:
        """Number of primary fields that were actually matched."""
        primary = (
            self.student_name,
            self.institution_name,
            self.program_name,
            self.tuition_amount,
            self.start_date,
        )
        return sum(1 for v in primary if v != NOT_SPECIFIED)


# === INSTITUTION ===


class Address(SectionModel):
    street: str = _text()
    city: str = _text()
    state: str = _text()
    country: str = _text()
    postal_code: str = _text()


class Registrations(SectionModel):
    cricos: str = _text()
    provider_id: str = _text()
    abn: str = _text()
    accreditation: str = _text()


class ContactInformation(SectionModel):
    phone: str = _text()
    email: str = _text()
    website: str = _text()


class Reputation(SectionModel):
    ranking: str = _text()
    accreditation_bodies: list[str] = _items()
    specializations: list[str] = _items()


class InstitutionDetails(SectionModel):
    name: str = _text()
    trading_name: str = _text()
    institution_type: str = _text()
    founded_year: str = _text()
    address: Address = Field(default_factory=Address)
    registrations: Registrations = Field(default_factory=Registrations)
    contact_information: ContactInformation = Field(default_factory=ContactInformation)
    reputation: Reputation = Field(default_factory=Reputation)


# === COURSE ===


class Program(SectionModel):
    name: str = _text()
    specialization: str = _text()
    level: str = _text()
    field: str = _text()
    mode: str = _text()


class CourseCodes(SectionModel):
    course_code: str = _text()
    cricos_code: str = _text()


class CourseDuration(SectionModel):
    total_weeks: str = _text()
    years: str = _text()
    units_total: str = _text()
    credits_total: str = _text()


class CourseSchedule(SectionModel):
    orientation_date: str = _text()
    start_date: str = _text()
    end_date: str = _text()
    study_periods: str = _text()
    periods_per_year: str = _text()


class CourseStructure(SectionModel):
    units_per_year: str = _text()
    credit_transfer: str = _text()
    prerequisites: str = _text()
    pathway_programs: str = _text()


class CourseAccreditation(SectionModel):
    professional_bodies: list[str] = _items()
    career_outcomes: list[str] = _items()
    industry_connections: list[str] = _items()


class CourseDetails(SectionModel):
    program: Program = Field(default_factory=Program)
    codes: CourseCodes = Field(default_factory=CourseCodes)
    duration: CourseDuration = Field(default_factory=CourseDuration)
    schedule: CourseSchedule = Field(default_factory=CourseSchedule)
    structure: CourseStructure = Field(default_factory=CourseStructure)
    accreditation: CourseAccreditation = Field(default_factory=CourseAccreditation)


# === STUDENT ===


class PersonalDetails(SectionModel):
    name: str = _text()
    date_of_birth: str = _text()
    gender: str = _text()
    nationality: str = _text()


class StudentContact(SectionModel):
    home_address: str = _text()
    phone: str = _text()
    email: str = _text()
    emergency_contact: str = _text()


class Identification(SectionModel):
    student_id: str = _text()
    passport_number: str = _text()
    passport_expiry: str = _text()


class AgentDetails(SectionModel):
    agent_name: str = _text()
    agent_contact: str = _text()


class SupportNeeds(SectionModel):
    academic: str = _text()
    accessibility: str = _text()
    services: list[str] = _items()


class StudentProfile(SectionModel):
    personal_details: PersonalDetails = Field(default_factory=PersonalDetails)
    contact: StudentContact = Field(default_factory=StudentContact)
    identification: Identification = Field(default_factory=Identification)
    agent: AgentDetails = Field(default_factory=AgentDetails)
    support_needs: SupportNeeds = Field(default_factory=SupportNeeds)


# === FINANCIAL ===


class TuitionFees(SectionModel):
    primary_field: ClassVar[str | None] = "total_fees"

    per_unit: str = _text()
    upfront_fee: str = _text()
    total_fees: str = _text()
    currency: str = _text()


class PaymentInstallment(SectionModel):
    primary_field: ClassVar[str | None] = "description"

    study_period: str = _text()
    amount: str = _text()
    due_date: str = _text()
    description: str = _text()


class AdditionalFees(SectionModel):
    enrollment_fee: str = _text()
    material_fee: str = _text()
    administrative_fees: str = _text()
    estimated_total_cost: str = _text()


class ScholarshipTerms(SectionModel):
    offered: str = _text()
    conditions: str = _text()
    renewal_criteria: str = _text()


class PaymentMethod(SectionModel):
    method: str = _text()
    details: str = _text()
    fees: str = _text()


class CostComparison(SectionModel):
    market_average: str = _text()
    competitive_position: str = _text()
    value_assessment: str = _text()


class FinancialBreakdown(SectionModel):
    tuition_fees: TuitionFees = Field(default_factory=TuitionFees)
    payment_schedule: list[PaymentInstallment] = _items()
    additional_fees: AdditionalFees = Field(default_factory=AdditionalFees)
    scholarships: ScholarshipTerms = Field(default_factory=ScholarshipTerms)
    payment_methods: list[PaymentMethod] = _items()
    cost_comparison: CostComparison = Field(default_factory=CostComparison)


# === OFFER CONDITIONS ===


class AcademicCondition(SectionModel):
    condition: str = _text()
    deadline: str = _text()
    documentation: str = _text()
    priority: str = _text()


class VisaCondition(SectionModel):
    requirement: str = _text()
    authority: str = _text()
    timeline: str = _text()
    implications: str = _text()


class HealthCondition(SectionModel):
    requirement: str = _text()
    provider: str = _text()
    coverage: str = _text()
    cost: str = _text()


class EnglishCondition(SectionModel):
    requirement: str = _text()
    accepted_tests: list[str] = _items()
    minimum_scores: str = _text()
    alternatives: str = _text()


class OtherCondition(SectionModel):
    condition: str = _text()
    category: str = _text()
    compliance: str = _text()


class OfferConditions(SectionModel):
    academic: list[AcademicCondition] = _items()
    visa: list[VisaCondition] = _items()
    health: list[HealthCondition] = _items()
    english: list[EnglishCondition] = _items()
    other: list[OtherCondition] = _items()


# === COMPLIANCE ===


class StudentVisa(SectionModel):
    subclass: str = _text()
    conditions: list[str] = _items()
    work_rights: str = _text()
    family_rights: str = _text()


class AcademicProgress(SectionModel):
    minimum_requirements: str = _text()
    attendance_requirements: str = _text()
    intervention_strategy: str = _text()
    consequences_of_failure: str = _text()


class EsosFramework(SectionModel):
    framework: str = _text()
    student_rights: list[str] = _items()
    provider_obligations: list[str] = _items()
    complaint_procedures: str = _text()


class RefundScenario(SectionModel):
    scenario: str = _text()
    percentage: str = _text()
    conditions: str = _text()
    timeline: str = _text()


class ComplianceRequirements(SectionModel):
    student_visa: StudentVisa = Field(default_factory=StudentVisa)
    academic_progress: AcademicProgress = Field(default_factory=AcademicProgress)
    esos: EsosFramework = Field(default_factory=EsosFramework)
    refund_policy: list[RefundScenario] = _items()


# === ENRICHMENT-SOURCED SECTIONS ===


class Rankings(SectionModel):
    global_: str = Field(default=NOT_SPECIFIED, alias="global")
    national: str = _text()
    subject_specific: str = _text()
    sources: list[str] = _items()


class Facilities(SectionModel):
    campus: str = _text()
    library: str = _text()
    accommodation: str = _text()
    student_services: list[str] = _items()


class CareerOutcomes(SectionModel):
    employment_rate: str = _text()
    average_salary: str = _text()
    top_employers: list[str] = _items()
    industry_connections: list[str] = _items()


class InstitutionalResearch(SectionModel):
    source_url: str = _text()
    rankings: Rankings = Field(default_factory=Rankings)
    facilities: Facilities = Field(default_factory=Facilities)
    career_outcomes: CareerOutcomes = Field(default_factory=CareerOutcomes)

    def is_empty(self) -> bool:
        return self == InstitutionalResearch()


class ScholarshipEligibility(SectionModel):
    academic: str = _text()
    nationality: str = _text()
    program: str = _text()
    other: str = _text()


class ScholarshipApplication(SectionModel):
    deadline: str = _text()
    process: str = _text()
    documents: list[str] = _items()
    link: str = _text()


class ScholarshipListing(SectionModel):
    name: str = _text()
    type: str = "merit"
    amount: str = _text()
    duration: str = _text()
    eligibility: ScholarshipEligibility = Field(default_factory=ScholarshipEligibility)
    application: ScholarshipApplication = Field(default_factory=ScholarshipApplication)


class ComparableInstitution(SectionModel):
    name: str = _text()
    location: str = _text()
    program_cost: str = _text()
    duration: str = _text()
    ranking: str = _text()
    advantages: list[str] = _items()
    disadvantages: list[str] = _items()
    website: str = _text()


class MarketPosition(SectionModel):
    cost_position: str = _text()
    quality_rating: str = _text()
    competitive_advantages: list[str] = _items()
    potential_concerns: list[str] = _items()


class CompetitorAnalysis(SectionModel):
    similar_institutions: list[ComparableInstitution] = _items()
    market_position: MarketPosition = Field(default_factory=MarketPosition)


# === STRATEGIC ===


class Strength(SectionModel):
    primary_field: ClassVar[str | None] = "strength"

    category: str = _text()
    strength: str = _text()
    impact: str = _text()
    evidence: str = _text()


class Concern(SectionModel):
    primary_field: ClassVar[str | None] = "concern"

    category: str = _text()
    concern: str = _text()
    severity: str = "medium"
    mitigation: str = _text()
    timeline: str = _text()


class Opportunity(SectionModel):
    opportunity: str = _text()
    benefit: str = _text()
    requirements: str = _text()
    timeline: str = _text()


class Recommendation(SectionModel):
    primary_field: ClassVar[str | None] = "recommendation"

    category: str = _text()
    recommendation: str = _text()
    rationale: str = _text()
    priority: str = "medium"
    timeline: str = _text()
    resources: str = _text()
    expected_outcome: str = _text()


class StrategicAnalysis(SectionModel):
    strengths: list[Strength] = _items()
    concerns: list[Concern] = _items()
    opportunities: list[Opportunity] = _items()
    recommendations: list[Recommendation] = _items()


class ImmediateAction(SectionModel):
    action: str = _text()
    description: str = _text()
    deadline: str = _text()
    priority: str = "medium"
    documents: list[str] = _items()
    estimated_time: str = _text()
    dependencies: list[str] = _items()


class ShortTermAction(SectionModel):
    action: str = _text()
    description: str = _text()
    timeline: str = _text()
    preparation: str = _text()


class LongTermAction(SectionModel):
    action: str = _text()
    description: str = _text()
    milestones: list[str] = _items()
    planning: str = _text()


class ActionPlan(SectionModel):
    immediate: list[ImmediateAction] = _items()
    short_term: list[ShortTermAction] = _items()
    long_term: list[LongTermAction] = _items()


# === MODEL PARTIALS (tagged by source) ===


class FinancialPartial(SectionModel):
    """Subtree produced by the precision (financial) analyzer."""

    source: Literal["financial"] = "financial"
    institution_details: InstitutionDetails = Field(default_factory=InstitutionDetails)
    course_details: CourseDetails = Field(default_factory=CourseDetails)
    student_profile: StudentProfile = Field(default_factory=StudentProfile)
    financial_breakdown: FinancialBreakdown = Field(default_factory=FinancialBreakdown)
    offer_conditions: OfferConditions = Field(default_factory=OfferConditions)
    compliance_requirements: ComplianceRequirements = Field(
        default_factory=ComplianceRequirements
    )
    tokens_used: int = Field(default=0, ge=0)


class StrategicPartial(SectionModel):
    """Subtree produced by the strategic (risk / recommendation) analyzer."""

    source: Literal["strategic"] = "strategic"
    strategic_analysis: StrategicAnalysis = Field(default_factory=StrategicAnalysis)
    action_plan: ActionPlan = Field(default_factory=ActionPlan)
    tokens_used: int = Field(default=0, ge=0)


ModelPartial = Annotated[
    Union[FinancialPartial, StrategicPartial], Field(discriminator="source")
]


# === RESULT ===


class KeyFinding(SectionModel):
    title: str = _text()
    description: str = _text()
    importance: Literal["high", "medium", "low"] = "medium"
    category: str = _text()


class AnalysisResult(SectionModel):
    """Full reconciled analysis record returned to callers."""

    document_type: str = _text()
    summary: str = _text()
    key_findings: list[KeyFinding] = _items()
    analysis_score: int = Field(default=0, ge=0, le=100)
    extracted_fields: CoreFields = Field(default_factory=CoreFields)
    institution_details: InstitutionDetails = Field(default_factory=InstitutionDetails)
    course_details: CourseDetails = Field(default_factory=CourseDetails)
    student_profile: StudentProfile = Field(default_factory=StudentProfile)
    financial_breakdown: FinancialBreakdown = Field(default_factory=FinancialBreakdown)
    offer_conditions: OfferConditions = Field(default_factory=OfferConditions)
    compliance_requirements: ComplianceRequirements = Field(
        default_factory=ComplianceRequirements
    )
    institutional_research: InstitutionalResearch = Field(
        default_factory=InstitutionalResearch
    )
    available_scholarships: list[ScholarshipListing] = _items()
    competitor_analysis: CompetitorAnalysis = Field(default_factory=CompetitorAnalysis)
    strategic_analysis: StrategicAnalysis = Field(default_factory=StrategicAnalysis)
    action_plan: ActionPlan = Field(default_factory=ActionPlan)

    def to_json_dict(self) -> dict[str, Any]:
        """camelCase, JSON-safe dict for callers and persistence."""
        return self.model_dump(by_alias=True, mode="json")


class AnalysisMetadata(BaseModel):
    """Run accounting; travels beside AnalysisResult, never merged into it."""

    processing_time_ms: int = 0
    enrichment_time_ms: int = 0
    total_tokens_used: int = 0
    cache_hit: bool = False
    degraded: bool = False


class AnalysisOutcome(BaseModel):
    """Return value of AnalysisOrchestrator.analyze()."""

    result: AnalysisResult
    metadata: AnalysisMetadata


class ErrorKind(str, Enum):
    """Why a degraded result was assembled.

    EXTRACTION_FAILED is never produced inside a run: the pipeline raises
    DocumentUnreadable, and callers that prefer a placeholder record over
    the exception pass this reason to FallbackAssembler themselves.
    """

    EXTRACTION_FAILED = "extraction_failed"
    TEMPLATE_NOT_AVAILABLE = "template_not_available"
    ALL_MODELS_FAILED = "all_models_failed"


class DocumentText(BaseModel):
    """Extracted text of one document with its length and head/tail fingerprint."""

    model_config = ConfigDict(frozen=True)

    text: str
    length: int
    fingerprint: str

    @classmethod
    def from_text(cls, text: str, window: int = 200) -> DocumentText:
        return cls(text=text, length=len(text), fingerprint=text_fingerprint(text, window))
