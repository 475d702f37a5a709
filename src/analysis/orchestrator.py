# src/analysis/orchestrator.py — v2
"""Analysis orchestrator — one document in, one AnalysisOutcome out.

States, in order:
  QuotaCheck → CacheLookup → Extracting → Enriching&Modeling →
  Synthesizing → [Arbitrating] → Caching → Done
with a side transition to Fallback from Extracting (no template) and
Synthesizing (both models absent).
Arbitrating runs only when an arbitrator is configured and both partials
are present; its failure keeps the merged result.

Only QuotaExceeded and DocumentUnreadable escape ``analyze()``. Every other
failure degrades the result: a failed or late branch is logged and treated
as absent. The three fan-out branches are asyncio tasks joined by a single
deadline; branches still pending at the deadline are cancelled so nothing
outlives the run.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from offerscope.analysis.errors import DocumentUnreadable, ModelCallFailed, QuotaExceeded
from offerscope.analysis.fallback import FallbackAssembler
from offerscope.analysis.models import (
    AnalysisMetadata,
    AnalysisOutcome,
    AnalysisResult,
    CoreFields,
    DocumentText,
    ErrorKind,
    FinancialPartial,
    StrategicPartial,
)
from offerscope.analysis.synthesizer import Synthesizer
from offerscope.cache.fingerprint import build_cache_key
from offerscope.config.settings import Settings
from offerscope.enrichment.gateway import build_competitor_set, derive_institution_website
from offerscope.enrichment.models import EnrichmentResult
from offerscope.extraction.field_extractor import FieldPatternExtractor
from offerscope.logging.context import (
    clear_context,
    set_branch_context,
    set_run_context,
    set_stage,
)

if TYPE_CHECKING:
    from offerscope.analysis.analyzers import ModelAnalyzer
    from offerscope.analysis.arbitrator import Arbitrator
    from offerscope.cache.result_cache import ResultCache
    from offerscope.enrichment.gateway import EnrichmentGateway
    from offerscope.storage.base_quota_store import BaseQuotaStore

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _generate_run_id() -> str:
    """Generate a run ID: yyyymmdd_hhmmss_{uuid4_short}."""
    ts = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"{ts}_{uuid.uuid4().hex[:8]}"


class AnalysisOrchestrator:
    """Top-level coordinator for one analysis run.

    Args:
        financial: Analyzer producing FinancialPartial.
        strategic: Analyzer producing StrategicPartial.
        gateway: Enrichment gateway. None skips remote lookups.
        cache: Shared result cache. None disables caching.
        quota_store: Per-user quota. None skips the quota check.
        settings: Thresholds, deadline and document-type gate.
        arbitrator: Optional consensus pass run after the merge.
    """

    def __init__(
        self,
        financial: ModelAnalyzer,
        strategic: ModelAnalyzer,
        gateway: EnrichmentGateway | None = None,
        cache: ResultCache | None = None,
        quota_store: BaseQuotaStore | None = None,
        settings: Settings | None = None,
        field_extractor: FieldPatternExtractor | None = None,
        synthesizer: Synthesizer | None = None,
        fallback: FallbackAssembler | None = None,
        arbitrator: Arbitrator | None = None,
    ) -> None:
        self._financial = financial
        self._strategic = strategic
        self._gateway = gateway
        self._cache = cache
        self._quota_store = quota_store
        self._settings = settings or Settings()
        self._extractor = field_extractor or FieldPatternExtractor()
        self._synthesizer = synthesizer or Synthesizer()
        self._fallback = fallback or FallbackAssembler()
        self._arbitrator = arbitrator

    @property
    def cache(self) -> ResultCache | None:
        return self._cache

    async def analyze(
        self,
        document_text: str,
        document_type: str,
        website_hint: str | None = None,
        nationality: str | None = None,
        user_id: str | None = None,
    ) -> AnalysisOutcome:
        """Run the full pipeline for one document.

        Raises:
            QuotaExceeded: The user has no analyses left (checked first).
            DocumentUnreadable: Text shorter than ``min_document_chars``.
        """
        start = time.monotonic()
        document_type = document_type.strip().lower()
        window = self._settings.fingerprint_window
        cache_key = build_cache_key(document_type, document_text, window)
        run_id = _generate_run_id()
        set_run_context(run_id, cache_key)

        try:
            logger.info(
                "Analysis started: type=%s, chars=%d, user=%s",
                document_type, len(document_text), user_id,
            )

            set_stage("quota_check")
            await self._check_quota(user_id)

            set_stage("cache_lookup")
            if self._cache is not None:
                entry = self._cache.lookup(cache_key)
                if entry is not None:
                    logger.info("Cache hit: %s", cache_key)
                    return self._done(
                        entry.value, start, cache_hit=True, degraded=entry.degraded
                    )

            set_stage("extracting")
            doc = DocumentText.from_text(document_text, window)
            if doc.length < self._settings.min_document_chars:
                raise DocumentUnreadable(
                    f"Extracted text too short to analyze ({doc.length} chars, "
                    f"minimum {self._settings.min_document_chars})",
                    length=doc.length,
                )

            if document_type not in self._settings.supported_document_types_list:
                set_stage("fallback")
                logger.warning(
                    "Degraded run: %s (%s)",
                    ErrorKind.TEMPLATE_NOT_AVAILABLE.value, document_type,
                )
                result = self._fallback.assemble(ErrorKind.TEMPLATE_NOT_AVAILABLE, document_type)
                return self._done(result, start, degraded=True)

            core = self._extractor.extract(doc.text)

            set_stage("enriching_modeling")
            enrichment, enrichment_ms, financial, strategic = await self._fan_out(
                doc, core, document_type, website_hint, nationality
            )

            set_stage("synthesizing")
            degraded = financial is None and strategic is None
            if degraded:
                set_stage("fallback")
                logger.warning("Degraded run: %s", ErrorKind.ALL_MODELS_FAILED.value)
                result = self._fallback.assemble(ErrorKind.ALL_MODELS_FAILED, document_type)
            else:
                result = self._synthesizer.synthesize(
                    core, enrichment, financial, strategic, document_type
                )

            tokens = sum(p.tokens_used for p in (financial, strategic) if p is not None)

            if self._arbitrator is not None and financial is not None and strategic is not None:
                set_stage("arbitrating")
                result, arbitration_tokens = await self._arbitrate(
                    result, financial, strategic, start
                )
                tokens += arbitration_tokens

            set_stage("caching")
            if self._cache is not None:
                self._cache.put(cache_key, result, degraded=degraded)

            return self._done(
                result,
                start,
                degraded=degraded,
                tokens=tokens,
                enrichment_ms=enrichment_ms,
            )
        finally:
            clear_context()

    async def _check_quota(self, user_id: str | None) -> None:
        if self._quota_store is None:
            return
        if user_id is None:
            raise ValueError("user_id is required when a quota store is configured")
        remaining = await self._quota_store.remaining(user_id)
        if remaining <= 0:
            logger.info("Quota exceeded for user %s", user_id)
            raise QuotaExceeded(user_id, remaining)

    async def _fan_out(
        self,
        doc: DocumentText,
        core: CoreFields,
        document_type: str,
        website_hint: str | None,
        nationality: str | None,
    ) -> tuple[EnrichmentResult, int, FinancialPartial | None, StrategicPartial | None]:
        """Launch enrichment and both analyzers; join them on one deadline."""
        fan_out_start = time.monotonic()
        website = website_hint or derive_institution_website(
            doc.text, self._settings.placeholder_website
        )

        enrichment_task = asyncio.create_task(
            self._run_enrichment(website, core, nationality), name="enrichment"
        )
        financial_task = asyncio.create_task(
            self._run_model(self._financial, doc.text, document_type), name="financial"
        )
        if self._settings.strategic_uses_enrichment:
            strategic_coro = self._run_model(
                self._strategic, doc.text, document_type, context_task=enrichment_task
            )
        else:
            strategic_coro = self._run_model(self._strategic, doc.text, document_type)
        strategic_task = asyncio.create_task(strategic_coro, name="strategic")

        tasks = [enrichment_task, financial_task, strategic_task]
        _, pending = await asyncio.wait(tasks, timeout=self._settings.analysis_deadline_s)
        for task in pending:
            logger.warning(
                "Branch %s missed the %.1fs deadline, abandoning it",
                task.get_name(), self._settings.analysis_deadline_s,
            )
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        enrichment_outcome = self._task_result(enrichment_task)
        if enrichment_outcome is None:
            enrichment = EnrichmentResult(
                competitor_set=build_competitor_set(core.country_guess, core.program_level)
            )
            enrichment_ms = _elapsed_ms(fan_out_start)
        else:
            enrichment, enrichment_ms = enrichment_outcome

        return (
            enrichment,
            enrichment_ms,
            self._task_result(financial_task),
            self._task_result(strategic_task),
        )

    async def _run_enrichment(
        self, website: str, core: CoreFields, nationality: str | None
    ) -> tuple[EnrichmentResult, int]:
        set_branch_context("enrichment")
        start = time.monotonic()
        if self._gateway is None:
            result = EnrichmentResult(
                competitor_set=build_competitor_set(core.country_guess, core.program_level)
            )
        else:
            result = await self._gateway.enrich(
                website,
                program_level=core.program_level,
                nationality=nationality,
                country=core.country_guess,
            )
        return result, _elapsed_ms(start)

    async def _run_model(
        self,
        analyzer: ModelAnalyzer,
        text: str,
        document_type: str,
        context_task: asyncio.Task | None = None,
    ) -> Any:
        set_branch_context(analyzer.name)
        context = None
        if context_task is not None:
            # Shielded so abandoning this branch never cancels enrichment.
            try:
                context, _ = await asyncio.shield(context_task)
            except Exception:
                logger.warning("Enrichment unavailable as %s context", analyzer.name)
        try:
            return await analyzer.analyze(text, context=context, document_type=document_type)
        except ModelCallFailed as exc:
            logger.warning("Branch %s absent: %s", analyzer.name, exc)
            return None

    async def _arbitrate(
        self,
        result: AnalysisResult,
        financial: FinancialPartial,
        strategic: StrategicPartial,
        start: float,
    ) -> tuple[AnalysisResult, int]:
        """Consensus pass bounded by what is left of the run deadline."""
        remaining = self._settings.analysis_deadline_s - (time.monotonic() - start)
        try:
            return await asyncio.wait_for(
                self._arbitrator.arbitrate(result, financial, strategic),
                timeout=max(remaining, 0.0),
            )
        except ModelCallFailed as exc:
            logger.warning("Arbitration skipped, keeping merged result: %s", exc)
        except asyncio.TimeoutError:
            logger.warning("Arbitration missed the deadline, keeping merged result")
        return result, 0

    @staticmethod
    def _task_result(task: asyncio.Task) -> Any:
        """Completed value of a branch, or None if it was cancelled or raised."""
        if task.cancelled():
            return None
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Branch %s failed unexpectedly", task.get_name(), exc_info=exc
            )
            return None
        return task.result()

    def _done(
        self,
        result: AnalysisResult,
        start: float,
        *,
        cache_hit: bool = False,
        degraded: bool = False,
        tokens: int = 0,
        enrichment_ms: int = 0,
    ) -> AnalysisOutcome:
        set_stage("done")
        metadata = AnalysisMetadata(
            processing_time_ms=_elapsed_ms(start),
            enrichment_time_ms=enrichment_ms,
            total_tokens_used=tokens,
            cache_hit=cache_hit,
            degraded=degraded,
        )
        logger.info(
            "Analysis complete: cache_hit=%s, degraded=%s, tokens=%d, %d ms",
            cache_hit, degraded, tokens, metadata.processing_time_ms,
        )
        return AnalysisOutcome(result=result, metadata=metadata)
