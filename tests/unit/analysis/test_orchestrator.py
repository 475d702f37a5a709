# tests/unit/analysis/test_orchestrator.py — v2
"""Tests for analysis/orchestrator.py — run states, fan-out and degradation."""

from __future__ import annotations

import asyncio
import json
import time

import pytest
from fakes import FakeWebFetcher, collect_nulls, hanging_call, make_llm_client

from offerscope.analysis.analyzers import FinancialAnalyzer, StrategicAnalyzer
from offerscope.analysis.arbitrator import Arbitrator
from offerscope.analysis.errors import DocumentUnreadable, QuotaExceeded
from offerscope.analysis.models import AnalysisResult
from offerscope.analysis.orchestrator import AnalysisOrchestrator
from offerscope.cache.fingerprint import build_cache_key
from offerscope.cache.result_cache import ResultCache
from offerscope.config.settings import Settings
from offerscope.enrichment.gateway import EnrichmentGateway
from offerscope.logging.context import get_context
from offerscope.storage.memory_store import InMemoryQuotaStore

INSTITUTION_PAGE = """
<html><body>
  <div class="ranking">Ranked in the top 300 world universities</div>
  <ul class="services"><li>Career counselling</li><li>Housing office</li></ul>
  <p class="employment-rate">91% graduate employment within 4 months</p>
</body></html>
"""

SCHOLARSHIP_PAGE = """
<html><body>
  <div class="scholarship"><h3>Global Excellence Award</h3><span class="amount">20% tuition</span></div>
  <div class="scholarship"><h3>Master Merit Scholarship</h3><span class="amount">AUD 5,000</span></div>
</body></html>
"""


def _orchestrator(
    settings: Settings,
    financial_client,
    strategic_client,
    **kwargs,
) -> AnalysisOrchestrator:
    return AnalysisOrchestrator(
        financial=FinancialAnalyzer(financial_client, temperature=0.1),
        strategic=StrategicAnalyzer(strategic_client, temperature=0.3),
        settings=settings,
        **kwargs,
    )


class TestHappyPath:
    @pytest.mark.asyncio
    async def test_full_analysis(self, settings, financial_client, strategic_client, offer_letter_text):
        orch = _orchestrator(settings, financial_client, strategic_client, cache=ResultCache())
        outcome = await orch.analyze(offer_letter_text, "offer_letter")

        assert outcome.metadata.cache_hit is False
        assert outcome.metadata.degraded is False
        assert outcome.metadata.total_tokens_used == 3600
        assert outcome.result.analysis_score == 90
        assert outcome.result.extracted_fields.student_name == "Priya Sharma"
        assert outcome.result.institution_details.registrations.cricos == "03122A"
        assert outcome.result.strategic_analysis.concerns
        assert collect_nulls(outcome.result.to_json_dict()) == []
        financial_client.complete.assert_awaited_once()
        strategic_client.complete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_document_type_normalized(self, settings, financial_client, strategic_client, offer_letter_text):
        cache = ResultCache()
        orch = _orchestrator(settings, financial_client, strategic_client, cache=cache)
        outcome = await orch.analyze(offer_letter_text, " Offer_Letter ")
        assert outcome.result.document_type == "offer_letter"
        assert build_cache_key("offer_letter", offer_letter_text) in cache

    @pytest.mark.asyncio
    async def test_competitor_template_without_gateway(self, settings, financial_client, strategic_client, offer_letter_text):
        orch = _orchestrator(settings, financial_client, strategic_client)
        outcome = await orch.analyze(offer_letter_text, "offer_letter")
        institutions = outcome.result.competitor_analysis.similar_institutions
        assert institutions[0].name == "Alternative Master provider in Australia"
        assert outcome.result.institutional_research.is_empty()

    @pytest.mark.asyncio
    async def test_context_cleared_after_run(self, settings, financial_client, strategic_client, offer_letter_text):
        orch = _orchestrator(settings, financial_client, strategic_client)
        await orch.analyze(offer_letter_text, "offer_letter")
        ctx = get_context()
        assert ctx.run_id is None
        assert ctx.stage is None


class TestQuota:
    @pytest.mark.asyncio
    async def test_exceeded_before_any_work(self, settings, financial_client, strategic_client, offer_letter_text):
        quotas = InMemoryQuotaStore(limit=3, usage={"u1": 3})
        orch = _orchestrator(settings, financial_client, strategic_client, quota_store=quotas)
        with pytest.raises(QuotaExceeded) as exc_info:
            await orch.analyze(offer_letter_text, "offer_letter", user_id="u1")
        assert exc_info.value.user_id == "u1"
        financial_client.complete.assert_not_awaited()
        strategic_client.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_checked_before_cache(self, settings, financial_client, strategic_client, offer_letter_text):
        quotas = InMemoryQuotaStore(limit=1, usage={"spent": 1})
        cache = ResultCache()
        orch = _orchestrator(
            settings, financial_client, strategic_client, cache=cache, quota_store=quotas
        )
        await orch.analyze(offer_letter_text, "offer_letter", user_id="fresh")
        with pytest.raises(QuotaExceeded):
            await orch.analyze(offer_letter_text, "offer_letter", user_id="spent")
        assert cache.stats().hits == 0

    @pytest.mark.asyncio
    async def test_checked_before_length(self, settings, financial_client, strategic_client):
        quotas = InMemoryQuotaStore(limit=0)
        orch = _orchestrator(settings, financial_client, strategic_client, quota_store=quotas)
        with pytest.raises(QuotaExceeded):
            await orch.analyze("too short", "coe", user_id="u1")

    @pytest.mark.asyncio
    async def test_user_required_with_store(self, settings, financial_client, strategic_client, offer_letter_text):
        orch = _orchestrator(
            settings, financial_client, strategic_client, quota_store=InMemoryQuotaStore(limit=5)
        )
        with pytest.raises(ValueError, match="user_id"):
            await orch.analyze(offer_letter_text, "offer_letter")

    @pytest.mark.asyncio
    async def test_orchestrator_does_not_increment(self, settings, financial_client, strategic_client, offer_letter_text):
        quotas = InMemoryQuotaStore(limit=5)
        orch = _orchestrator(settings, financial_client, strategic_client, quota_store=quotas)
        await orch.analyze(offer_letter_text, "offer_letter", user_id="u1")
        assert quotas.usage("u1") == 0


class TestCache:
    @pytest.mark.asyncio
    async def test_second_run_is_cache_hit(self, settings, financial_client, strategic_client, offer_letter_text):
        orch = _orchestrator(settings, financial_client, strategic_client, cache=ResultCache())
        first = await orch.analyze(offer_letter_text, "offer_letter")
        second = await orch.analyze(offer_letter_text, "offer_letter")

        assert second.metadata.cache_hit is True
        assert second.metadata.total_tokens_used == 0
        assert second.result == first.result
        assert financial_client.complete.await_count == 1
        assert strategic_client.complete.await_count == 1

    @pytest.mark.asyncio
    async def test_shared_cache_across_orchestrators(self, settings, financial_client, strategic_client, offer_letter_text):
        cache = ResultCache()
        await _orchestrator(settings, financial_client, strategic_client, cache=cache).analyze(
            offer_letter_text, "offer_letter"
        )
        other_fin, other_strat = make_llm_client("{}"), make_llm_client("{}")
        outcome = await _orchestrator(settings, other_fin, other_strat, cache=cache).analyze(
            offer_letter_text, "offer_letter"
        )
        assert outcome.metadata.cache_hit is True
        other_fin.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cache_hit_skips_length_check(self, settings, financial_client, strategic_client):
        cache = ResultCache()
        short = "x" * 40
        cache.put(build_cache_key("coe", short), AnalysisResult(document_type="coe"))
        orch = _orchestrator(settings, financial_client, strategic_client, cache=cache)
        outcome = await orch.analyze(short, "coe")
        assert outcome.metadata.cache_hit is True

    @pytest.mark.asyncio
    async def test_document_types_do_not_share_entries(self, settings, financial_client, strategic_client, offer_letter_text):
        orch = _orchestrator(settings, financial_client, strategic_client, cache=ResultCache())
        await orch.analyze(offer_letter_text, "offer_letter")
        outcome = await orch.analyze(offer_letter_text, "coe")
        assert outcome.metadata.cache_hit is False


class TestReadability:
    @pytest.mark.asyncio
    async def test_short_coe_rejected(self, settings, financial_client, strategic_client):
        cache = ResultCache()
        orch = _orchestrator(settings, financial_client, strategic_client, cache=cache)
        with pytest.raises(DocumentUnreadable) as exc_info:
            await orch.analyze("Confirmation of Enrolment for Jo Smith.", "coe")
        assert exc_info.value.length == 40
        financial_client.complete.assert_not_awaited()
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_min_length_boundary(self, financial_client, strategic_client):
        settings = Settings(_env_file=None, enrichment_enabled=False, min_document_chars=50)
        orch = _orchestrator(settings, financial_client, strategic_client)
        outcome = await orch.analyze("y" * 50, "coe")
        assert outcome.metadata.degraded is False


class TestUnsupportedType:
    @pytest.mark.asyncio
    async def test_template_not_available(self, settings, financial_client, strategic_client, offer_letter_text):
        cache = ResultCache()
        orch = _orchestrator(settings, financial_client, strategic_client, cache=cache)
        outcome = await orch.analyze(offer_letter_text, "i20")

        assert outcome.metadata.degraded is True
        assert outcome.result.analysis_score == 0
        assert outcome.result.document_type == "i20"
        assert outcome.result.key_findings[0].title == "Template Not Available"
        financial_client.complete.assert_not_awaited()
        strategic_client.complete.assert_not_awaited()
        assert len(cache) == 0


class TestPartialFailure:
    @pytest.mark.asyncio
    async def test_financial_failure_not_degraded(self, settings, strategic_client, offer_letter_text):
        failing = make_llm_client(side_effect=RuntimeError("rate limited"))
        orch = _orchestrator(settings, failing, strategic_client)
        outcome = await orch.analyze(offer_letter_text, "offer_letter")

        assert outcome.metadata.degraded is False
        assert outcome.metadata.total_tokens_used == 1600
        assert outcome.result.strategic_analysis.concerns
        assert outcome.result.institution_details.name == "Not specified"
        assert outcome.result.key_findings[-1].title == "Document Details Incomplete"
        failing.complete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_strategic_unparseable_not_degraded(self, settings, financial_client, offer_letter_text):
        orch = _orchestrator(settings, financial_client, make_llm_client("no json here"))
        outcome = await orch.analyze(offer_letter_text, "offer_letter")
        assert outcome.metadata.degraded is False
        assert outcome.result.strategic_analysis.concerns == []
        assert outcome.result.key_findings[-1].title == "Strategic Assessment Unavailable"


class TestFullFailure:
    @pytest.mark.asyncio
    async def test_all_models_failed(self, settings, offer_letter_text):
        cache = ResultCache()
        orch = _orchestrator(
            settings,
            make_llm_client(side_effect=RuntimeError("down")),
            make_llm_client("not json"),
            cache=cache,
        )
        outcome = await orch.analyze(offer_letter_text, "offer_letter")

        assert outcome.metadata.degraded is True
        assert outcome.metadata.total_tokens_used == 0
        assert outcome.result.analysis_score == 0
        assert outcome.result.key_findings[0].title == "Analysis Incomplete"
        data = outcome.result.to_json_dict()
        assert collect_nulls(data) == []
        assert AnalysisResult.model_validate(data) == outcome.result

    @pytest.mark.asyncio
    async def test_degraded_result_cached_with_flag(self, settings, offer_letter_text):
        orch = _orchestrator(
            settings,
            make_llm_client(side_effect=RuntimeError("down")),
            make_llm_client(side_effect=RuntimeError("down")),
            cache=ResultCache(),
        )
        await orch.analyze(offer_letter_text, "offer_letter")
        again = await orch.analyze(offer_letter_text, "offer_letter")
        assert again.metadata.cache_hit is True
        assert again.metadata.degraded is True

    @pytest.mark.asyncio
    async def test_unexpected_branch_error_absorbed(self, settings, offer_letter_text, financial_client):
        class BrokenAnalyzer:
            name = "strategic"

            async def analyze(self, text, context=None, document_type="offer_letter"):
                raise KeyError("boom")

        orch = AnalysisOrchestrator(
            financial=FinancialAnalyzer(financial_client, temperature=0.1),
            strategic=BrokenAnalyzer(),
            settings=settings,
        )
        outcome = await orch.analyze(offer_letter_text, "offer_letter")
        assert outcome.metadata.degraded is False
        assert outcome.result.strategic_analysis.concerns == []


class TestDeadline:
    @pytest.mark.asyncio
    async def test_late_branch_abandoned(self, financial_client, offer_letter_text):
        settings = Settings(_env_file=None, enrichment_enabled=False, analysis_deadline_s=0.2)
        slow = make_llm_client(side_effect=hanging_call(5.0))
        orch = _orchestrator(settings, financial_client, slow)

        start = time.monotonic()
        outcome = await orch.analyze(offer_letter_text, "offer_letter")
        assert time.monotonic() - start < 2.0
        assert outcome.metadata.degraded is False
        assert outcome.result.strategic_analysis.concerns == []
        assert outcome.result.institution_details.name == "Melbourne Institute of Technology"

    @pytest.mark.asyncio
    async def test_both_late_is_degraded(self, offer_letter_text):
        settings = Settings(_env_file=None, enrichment_enabled=False, analysis_deadline_s=0.2)
        orch = _orchestrator(
            settings,
            make_llm_client(side_effect=hanging_call(5.0)),
            make_llm_client(side_effect=hanging_call(5.0)),
        )
        outcome = await orch.analyze(offer_letter_text, "offer_letter")
        assert outcome.metadata.degraded is True

    @pytest.mark.asyncio
    async def test_late_enrichment_falls_back_to_template(self, financial_client, strategic_client, offer_letter_text):
        settings = Settings(_env_file=None, analysis_deadline_s=0.2)
        gateway = EnrichmentGateway(FakeWebFetcher(delay=5.0), fetch_timeout_s=10.0)
        orch = _orchestrator(settings, financial_client, strategic_client, gateway=gateway)
        outcome = await orch.analyze(offer_letter_text, "offer_letter")
        assert outcome.metadata.degraded is False
        assert outcome.result.institutional_research.is_empty()
        assert outcome.result.competitor_analysis.similar_institutions


class TestEnrichment:
    @pytest.mark.asyncio
    async def test_web_data_flows_into_result(self, financial_client, strategic_client, offer_letter_text):
        fetcher = FakeWebFetcher(
            {
                "https://mit.edu.au": INSTITUTION_PAGE,
                "https://mit.edu.au/scholarships": SCHOLARSHIP_PAGE,
            }
        )
        settings = Settings(_env_file=None, analysis_deadline_s=5.0)
        orch = _orchestrator(
            settings, financial_client, strategic_client, gateway=EnrichmentGateway(fetcher)
        )
        outcome = await orch.analyze(offer_letter_text, "offer_letter")

        research = outcome.result.institutional_research
        assert research.rankings.global_ == "Ranked in the top 300 world universities"
        assert research.facilities.student_services == ["Career counselling", "Housing office"]
        names = [s.name for s in outcome.result.available_scholarships]
        assert names[0] == "Master Merit Scholarship"
        assert outcome.result.analysis_score == 100
        assert outcome.metadata.enrichment_time_ms >= 0

    @pytest.mark.asyncio
    async def test_website_hint_overrides_document(self, financial_client, strategic_client, offer_letter_text):
        fetcher = FakeWebFetcher()
        settings = Settings(_env_file=None, analysis_deadline_s=5.0)
        orch = _orchestrator(
            settings, financial_client, strategic_client, gateway=EnrichmentGateway(fetcher)
        )
        await orch.analyze(offer_letter_text, "offer_letter", website_hint="https://other.edu")
        assert sorted(fetcher.calls) == ["https://other.edu", "https://other.edu/scholarships"]

    @pytest.mark.asyncio
    async def test_failed_fetches_do_not_degrade(self, financial_client, strategic_client, offer_letter_text):
        settings = Settings(_env_file=None, analysis_deadline_s=5.0)
        orch = _orchestrator(
            settings, financial_client, strategic_client, gateway=EnrichmentGateway(FakeWebFetcher())
        )
        outcome = await orch.analyze(offer_letter_text, "offer_letter")
        assert outcome.metadata.degraded is False
        assert outcome.result.available_scholarships == []
        assert outcome.result.analysis_score == 90

    @pytest.mark.asyncio
    async def test_strategic_can_use_enrichment(self, financial_client, strategic_client, offer_letter_text):
        fetcher = FakeWebFetcher({"https://mit.edu.au/scholarships": SCHOLARSHIP_PAGE})
        settings = Settings(
            _env_file=None, analysis_deadline_s=5.0, strategic_uses_enrichment=True
        )
        orch = _orchestrator(
            settings, financial_client, strategic_client, gateway=EnrichmentGateway(fetcher)
        )
        await orch.analyze(offer_letter_text, "offer_letter")
        prompt = strategic_client.complete.await_args.kwargs["messages"][0].content
        assert "Global Excellence Award" in prompt


class TestArbitration:
    @pytest.mark.asyncio
    async def test_reconciled_summary_and_tokens(self, settings, financial_client, strategic_client, offer_letter_text):
        arbiter_client = make_llm_client(
            json.dumps({"summary": "Reconciled view of the offer."}),
            input_tokens=300,
            output_tokens=200,
        )
        cache = ResultCache()
        orch = _orchestrator(
            settings, financial_client, strategic_client,
            cache=cache, arbitrator=Arbitrator(arbiter_client),
        )
        outcome = await orch.analyze(offer_letter_text, "offer_letter")

        assert outcome.metadata.total_tokens_used == 4100
        assert outcome.metadata.degraded is False
        assert outcome.result.summary == "Reconciled view of the offer."
        assert outcome.result.strategic_analysis.concerns
        cached = cache.get(build_cache_key("offer_letter", offer_letter_text))
        assert cached.summary == "Reconciled view of the offer."
        arbiter_client.complete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_keeps_merged_result(self, settings, financial_client, strategic_client, offer_letter_text):
        baseline = await _orchestrator(settings, financial_client, strategic_client).analyze(
            offer_letter_text, "offer_letter"
        )
        arbiter_client = make_llm_client(side_effect=RuntimeError("rate limited"))
        orch = _orchestrator(
            settings, financial_client, strategic_client, arbitrator=Arbitrator(arbiter_client)
        )
        outcome = await orch.analyze(offer_letter_text, "offer_letter")

        assert outcome.metadata.total_tokens_used == 3600
        assert outcome.metadata.degraded is False
        assert outcome.result == baseline.result
        arbiter_client.complete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_late_arbitration_abandoned(self, financial_client, strategic_client, offer_letter_text):
        settings = Settings(_env_file=None, enrichment_enabled=False, analysis_deadline_s=0.3)
        orch = _orchestrator(
            settings, financial_client, strategic_client,
            arbitrator=Arbitrator(make_llm_client(side_effect=hanging_call(5.0))),
        )
        start = time.monotonic()
        outcome = await orch.analyze(offer_letter_text, "offer_letter")

        assert time.monotonic() - start < 2.0
        assert outcome.metadata.total_tokens_used == 3600
        assert outcome.result.strategic_analysis.concerns

    @pytest.mark.asyncio
    async def test_skipped_with_one_partial(self, settings, financial_client, offer_letter_text):
        arbiter_client = make_llm_client(json.dumps({"summary": "Reconciled."}))
        orch = _orchestrator(
            settings, financial_client, make_llm_client("not json"),
            arbitrator=Arbitrator(arbiter_client),
        )
        outcome = await orch.analyze(offer_letter_text, "offer_letter")

        assert outcome.result.summary != "Reconciled."
        assert outcome.metadata.total_tokens_used == 2000
        arbiter_client.complete.assert_not_awaited()


class TestConcurrentRuns:
    @pytest.mark.asyncio
    async def test_gathered_runs_share_cache(self, settings, financial_client, strategic_client, offer_letter_text):
        cache = ResultCache(capacity=5)
        first = _orchestrator(settings, financial_client, strategic_client, cache=cache)
        second = _orchestrator(settings, financial_client, strategic_client, cache=cache)

        outcomes = await asyncio.gather(
            first.analyze(offer_letter_text, "offer_letter"),
            second.analyze(offer_letter_text, "offer_letter"),
            second.analyze(offer_letter_text, "coe"),
        )

        assert [o.metadata.degraded for o in outcomes] == [False, False, False]
        assert outcomes[0].result == outcomes[1].result
        assert outcomes[2].result.document_type == "coe"
        assert len(cache) == 2

        again = await first.analyze(offer_letter_text, "coe")
        assert again.metadata.cache_hit is True
        assert again.result == outcomes[2].result
