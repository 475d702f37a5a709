# tests/integration/test_int_analysis_pipeline.py — v1
"""End-to-end: PDF upload → extraction → fan-out → synthesis → record → cache reuse."""

from __future__ import annotations

import json

import pytest
from fakes import FakeWebFetcher, collect_nulls, make_llm_client

from offerscope.analysis.errors import QuotaExceeded
from offerscope.api.facade import analyze_document, create_orchestrator
from offerscope.cache.result_cache import ResultCache
from offerscope.config.settings import Settings
from offerscope.storage.local_repository import LocalJsonRepository
from offerscope.storage.memory_store import InMemoryQuotaStore

SCHOLARSHIPS = """
<html><body>
  <div class="scholarship"><h3>Postgraduate Excellence Scholarship</h3>
    <span class="amount">25% tuition reduction</span>
    <span class="deadline">31 January 2025</span></div>
</body></html>
"""

INSTITUTION = """
<html><body><p class="ranking">National ranking: top 20 national institutes</p></body></html>
"""


def _pdf(text: str) -> bytes:
    import fitz

    doc = fitz.open()
    page = doc.new_page()
    page.insert_textbox(fitz.Rect(50, 50, 550, 800), text, fontsize=10)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def pdf_bytes(offer_letter_text) -> bytes:
    return _pdf(offer_letter_text)


class TestAnalysisPipeline:
    @pytest.mark.asyncio
    async def test_pdf_end_to_end(self, tmp_path, pdf_bytes, financial_json, strategic_json):
        settings = Settings(_env_file=None, analysis_deadline_s=5.0)
        fetcher = FakeWebFetcher(
            {
                "https://mit.edu.au": INSTITUTION,
                "https://mit.edu.au/scholarships": SCHOLARSHIPS,
            }
        )
        shared_cache = ResultCache(capacity=10, ttl_seconds=600)
        quotas = InMemoryQuotaStore(limit=2)
        repo = LocalJsonRepository(tmp_path / "records")
        financial = make_llm_client(financial_json, input_tokens=900, output_tokens=600)
        strategic = make_llm_client(strategic_json, input_tokens=700, output_tokens=500)

        orchestrator = create_orchestrator(
            settings,
            cache=shared_cache,
            quota_store=quotas,
            financial_client=financial,
            strategic_client=strategic,
            web_fetcher=fetcher,
        )

        first = await analyze_document(
            pdf_bytes, "application/pdf", "offer_letter", "student-1",
            orchestrator=orchestrator, repository=repo, quota_store=quotas,
        )

        result = first.result
        assert first.metadata.degraded is False
        assert first.metadata.cache_hit is False
        assert first.metadata.total_tokens_used == 2700
        assert result.extracted_fields.student_name == "Priya Sharma"
        assert result.extracted_fields.country_guess == "Australia"
        assert result.institutional_research.rankings.national.startswith("National ranking")
        assert result.available_scholarships[0].name == "Postgraduate Excellence Scholarship"
        assert result.analysis_score == 100
        assert collect_nulls(result.to_json_dict()) == []

        saved = tmp_path / "records" / "student-1" / f"{first.record_id}.json"
        payload = json.loads(saved.read_text(encoding="utf-8"))
        assert payload["result"]["availableScholarships"][0]["application"]["deadline"] == "31 January 2025"

        # A second orchestrator sharing the cache serves the same document without model calls.
        other = create_orchestrator(
            settings,
            cache=shared_cache,
            quota_store=quotas,
            financial_client=make_llm_client("{}"),
            strategic_client=make_llm_client("{}"),
            web_fetcher=FakeWebFetcher(),
        )
        second = await analyze_document(
            pdf_bytes, "application/pdf", "offer_letter", "student-1",
            orchestrator=other, repository=repo, quota_store=quotas,
        )
        assert second.metadata.cache_hit is True
        assert second.metadata.total_tokens_used == 0
        assert second.result == result
        assert quotas.usage("student-1") == 2

        with pytest.raises(QuotaExceeded):
            await analyze_document(
                pdf_bytes, "application/pdf", "offer_letter", "student-1",
                orchestrator=other, repository=repo, quota_store=quotas,
            )
        assert len(list((tmp_path / "records" / "student-1").glob("*.json"))) == 2
        financial.complete.assert_awaited_once()
        strategic.complete.assert_awaited_once()
