# src/api/facade.py — v4
"""Public API facade — single entry point for document analysis.

Usage:
    from offerscope.api.facade import analyze_document, create_orchestrator
    orchestrator = create_orchestrator(settings, quota_store=quotas)
    recorded = await analyze_document(
        pdf_bytes, "application/pdf", "offer_letter", "user-42",
        orchestrator=orchestrator, quota_store=quotas, repository=repo,
    )

The facade is the caller the orchestrator expects: it turns upload bytes
into text, runs the orchestrator, and only after a successful run persists
the record and increments the user's quota, in that order.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from offerscope.analysis.analyzers import FinancialAnalyzer, StrategicAnalyzer
from offerscope.analysis.arbitrator import Arbitrator
from offerscope.analysis.errors import DocumentUnreadable
from offerscope.analysis.orchestrator import AnalysisOrchestrator
from offerscope.api.models import RecordedAnalysis
from offerscope.cache.result_cache import ResultCache
from offerscope.config.settings import Settings
from offerscope.enrichment.gateway import EnrichmentGateway
from offerscope.enrichment.web_fetcher import RequestsWebFetcher
from offerscope.extraction.base_text_extractor import TextExtractionError
from offerscope.extraction.extractor_factory import UnsupportedFormatError, create_extractor
from offerscope.llm.client_factory import client_for

if TYPE_CHECKING:
    from offerscope.enrichment.web_fetcher import BaseWebFetcher
    from offerscope.extraction.base_text_extractor import BaseTextExtractor
    from offerscope.llm.base_client import BaseLLMClient
    from offerscope.storage.base_quota_store import BaseQuotaStore
    from offerscope.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)


def create_orchestrator(
    settings: Settings | None = None,
    cache: ResultCache | None = None,
    quota_store: BaseQuotaStore | None = None,
    financial_client: BaseLLMClient | None = None,
    strategic_client: BaseLLMClient | None = None,
    web_fetcher: BaseWebFetcher | None = None,
    arbitration_client: BaseLLMClient | None = None,
) -> AnalysisOrchestrator:
    """Wire an orchestrator from settings.

    Clients and the web fetcher are built from settings unless injected.
    The arbitration pass is wired only when ``arbitration_enabled``.
    A cache is created when ``cache_enabled`` and none is passed; pass the
    same ResultCache to every orchestrator that should share results.
    """
    settings = settings or Settings()

    if financial_client is None:
        financial_client = client_for("financial", settings)
    if strategic_client is None:
        strategic_client = client_for("strategic", settings)

    financial = FinancialAnalyzer(
        financial_client,
        temperature=settings.llm_financial_temperature,
        max_tokens=settings.llm_max_tokens,
        max_input_chars=settings.max_input_chars,
    )
    strategic = StrategicAnalyzer(
        strategic_client,
        temperature=settings.llm_strategic_temperature,
        max_tokens=settings.llm_max_tokens,
        max_input_chars=settings.max_input_chars,
    )

    gateway = None
    if settings.enrichment_enabled:
        gateway = EnrichmentGateway(
            web_fetcher or RequestsWebFetcher(user_agent=settings.enrichment_user_agent),
            fetch_timeout_s=settings.enrichment_fetch_timeout_s,
            max_scholarships=settings.enrichment_max_scholarships,
        )

    arbitrator = None
    if settings.arbitration_enabled:
        arbitrator = Arbitrator(
            arbitration_client or client_for("arbitration", settings),
            temperature=settings.llm_arbitration_temperature,
            max_tokens=settings.llm_max_tokens,
        )

    if cache is None and settings.cache_enabled:
        cache = ResultCache(
            capacity=settings.cache_capacity, ttl_seconds=settings.cache_ttl_seconds
        )

    return AnalysisOrchestrator(
        financial=financial,
        strategic=strategic,
        gateway=gateway,
        cache=cache,
        quota_store=quota_store,
        settings=settings,
        arbitrator=arbitrator,
    )


async def extract_text(
    file_bytes: bytes,
    mime_type: str,
    text_extractor: BaseTextExtractor | None = None,
) -> str:
    """Turn uploaded bytes into text; any extractor failure becomes DocumentUnreadable.

    A missing optional package (ImportError) is a deployment problem, not an
    unreadable document, and propagates unchanged.
    """
    try:
        extractor = text_extractor or create_extractor(mime_type)
        return await extractor.extract(file_bytes, mime_type)
    except (UnsupportedFormatError, TextExtractionError) as exc:
        raise DocumentUnreadable(f"Could not extract text: {exc}") from exc
    except ImportError:
        raise
    except Exception as exc:
        logger.warning("Text extractor failed unexpectedly: %s", exc, exc_info=True)
        raise DocumentUnreadable(f"Could not extract text: {exc}") from exc


async def analyze_document(
    file_bytes: bytes,
    mime_type: str,
    document_type: str,
    user_id: str,
    *,
    orchestrator: AnalysisOrchestrator,
    repository: BaseRepository,
    quota_store: BaseQuotaStore | None = None,
    text_extractor: BaseTextExtractor | None = None,
    website_hint: str | None = None,
    nationality: str | None = None,
) -> RecordedAnalysis:
    """Analyze one uploaded document end-to-end and record it.

    Args:
        file_bytes: Raw upload.
        mime_type: Upload MIME type, used to pick a text extractor.
        document_type: Declared type (offer_letter, coe, ...).
        user_id: Owner of the analysis, for quota and persistence.
        orchestrator: Configured orchestrator (see create_orchestrator).
        repository: Where the completed analysis is saved.
        quota_store: Incremented after a successful save. None = no quota.
        text_extractor: Override the MIME-based extractor choice.
        website_hint: Institution website, if the caller knows it.
        nationality: Student nationality, used to rank scholarships.

    Returns:
        RecordedAnalysis with the record id, result and metadata.

    Raises:
        QuotaExceeded: No analyses left; nothing is saved or counted.
        DocumentUnreadable: Text extraction failed or text too short.
    """
    text = await extract_text(file_bytes, mime_type, text_extractor)

    outcome = await orchestrator.analyze(
        text,
        document_type,
        website_hint=website_hint,
        nationality=nationality,
        user_id=user_id,
    )

    record_id = await repository.save(outcome.result, outcome.metadata, user_id)
    if quota_store is not None:
        await quota_store.increment(user_id)

    logger.info(
        "Recorded analysis %s for %s (cache_hit=%s, degraded=%s)",
        record_id, user_id, outcome.metadata.cache_hit, outcome.metadata.degraded,
    )
    return RecordedAnalysis(
        record_id=record_id, result=outcome.result, metadata=outcome.metadata
    )
