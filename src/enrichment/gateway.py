# src/enrichment/gateway.py — v1
"""Best-effort institution, scholarship and competitor lookups.

``enrich()`` never raises for remote failures. The institution page and the
``/scholarships`` page are fetched concurrently, each bounded by its own
timeout; a failed sub-fetch logs ``EnrichmentFailed`` and contributes an
empty part while the other part is kept. The competitor set is an indicative
summary built from country and program level, not a remote lookup.

Requires the 'beautifulsoup4' package for HTML parsing.
"""

from __future__ import annotations

import asyncio
import logging
import re

from offerscope.analysis.errors import EnrichmentFailed
from offerscope.analysis.models import (
    NOT_SPECIFIED,
    CareerOutcomes,
    ComparableInstitution,
    CompetitorAnalysis,
    Facilities,
    InstitutionalResearch,
    MarketPosition,
    Rankings,
    ScholarshipApplication,
    ScholarshipListing,
)
from offerscope.enrichment.models import EnrichmentResult
from offerscope.enrichment.web_fetcher import BaseWebFetcher

logger = logging.getLogger(__name__)

MAX_SCHOLARSHIPS = 12

_URL_RE = re.compile(r"https?://(?:www\.)?([a-z0-9-]+(?:\.[a-z0-9-]+)*\.[a-z]{2,})", re.I)
_WWW_RE = re.compile(r"\bwww\.([a-z0-9-]+(?:\.[a-z0-9-]+)*\.[a-z]{2,})", re.I)

# CSS selectors used against institution pages.
_RANKING_SELECTOR = "[data-ranking], .ranking, .rank"
_SERVICE_SELECTOR = ".services li, .student-services li, [data-service]"
_EMPLOYMENT_SELECTOR = "[data-employment], .employment-rate, .graduate-outcomes"
_SCHOLARSHIP_SELECTOR = ".scholarship, .scholarship-item, .award, [data-scholarship]"
_NAME_SELECTOR = "h1, h2, h3, h4, .title, .name"
_AMOUNT_SELECTOR = ".amount, .value, [data-amount]"
_DEADLINE_SELECTOR = ".deadline, .due-date, [data-deadline]"


def derive_institution_website(text: str, placeholder: str = "https://example.edu") -> str:
    """Return the first explicit URL or ``www.`` host in *text*, else *placeholder*.

    The result is normalized to ``https://<host>`` without a ``www.`` prefix.
    """
    matches = [m for m in (_URL_RE.search(text), _WWW_RE.search(text)) if m]
    if not matches:
        return placeholder
    first = min(matches, key=lambda m: m.start())
    return f"https://{first.group(1).rstrip('.').lower()}"


def _soup(html: str):
    from bs4 import BeautifulSoup

    return BeautifulSoup(html, "html.parser")


def _text_of(element) -> str:
    return " ".join(element.get_text(" ", strip=True).split()) if element else ""


def parse_institution_page(html: str, source_url: str) -> InstitutionalResearch:
    """Pull rankings, student services and employment figures out of a page."""
    soup = _soup(html)

    rankings: dict[str, str] = {}
    for element in soup.select(_RANKING_SELECTOR):
        text = _text_of(element)
        lowered = text.lower()
        if ("world" in lowered or "global" in lowered) and "global" not in rankings:
            rankings["global"] = text
        elif "national" in lowered and "national" not in rankings:
            rankings["national"] = text

    services: list[str] = []
    for element in soup.select(_SERVICE_SELECTOR):
        text = _text_of(element)
        if text and text not in services:
            services.append(text)

    employment_rate = None
    for element in soup.select(_EMPLOYMENT_SELECTOR):
        text = _text_of(element)
        if "%" in text and "employ" in text.lower():
            employment_rate = text
            break

    if not rankings and not services and employment_rate is None:
        return InstitutionalResearch()

    return InstitutionalResearch(
        source_url=source_url,
        rankings=Rankings(**rankings, sources=[source_url] if rankings else []),
        facilities=Facilities(student_services=services),
        career_outcomes=CareerOutcomes(employment_rate=employment_rate),
    )


def parse_scholarship_page(html: str, page_url: str) -> list[ScholarshipListing]:
    """Return every named scholarship block on the page, de-duplicated by name."""
    soup = _soup(html)
    listings: list[ScholarshipListing] = []
    seen: set[str] = set()
    for element in soup.select(_SCHOLARSHIP_SELECTOR):
        name = _text_of(element.select_one(_NAME_SELECTOR))
        if not name or name.lower() in seen:
            continue
        seen.add(name.lower())
        listings.append(
            ScholarshipListing(
                name=name,
                amount=_text_of(element.select_one(_AMOUNT_SELECTOR)),
                application=ScholarshipApplication(
                    deadline=_text_of(element.select_one(_DEADLINE_SELECTOR)),
                    link=page_url,
                ),
            )
        )
    return listings


def rank_scholarships(
    listings: list[ScholarshipListing],
    program_level: str,
    nationality: str | None,
) -> list[ScholarshipListing]:
    """Stable-sort listings so ones mentioning the level or nationality come first."""
    terms = [
        t.lower()
        for t in (program_level, nationality)
        if t and t != NOT_SPECIFIED
    ]
    if not terms:
        return list(listings)

    def relevance(listing: ScholarshipListing) -> int:
        blob = listing.model_dump_json().lower()
        return -sum(1 for t in terms if t in blob)

    return sorted(listings, key=relevance)


def build_competitor_set(country: str, program_level: str) -> CompetitorAnalysis:
    """Indicative market summary for the destination; same input, same output."""
    location = country if country and country != "Other" else "the destination country"
    level = program_level if program_level != NOT_SPECIFIED else "comparable"
    return CompetitorAnalysis(
        similar_institutions=[
            ComparableInstitution(
                name=f"Alternative {level} provider in {location}",
                location=location,
                program_cost="Market rate",
                duration="Similar duration",
                ranking="Competitive ranking",
                advantages=["Lower cost", "Similar quality"],
                disadvantages=["Less prestigious", "Fewer resources"],
            )
        ],
        market_position=MarketPosition(
            cost_position="moderate",
            quality_rating="high",
            competitive_advantages=["Strong reputation", "Industry connections"],
            potential_concerns=["Higher cost", "Competitive admission"],
        ),
    )


class EnrichmentGateway:
    """Fetches institution facts and scholarships for one candidate website."""

    def __init__(
        self,
        fetcher: BaseWebFetcher,
        fetch_timeout_s: float = 15.0,
        max_scholarships: int = MAX_SCHOLARSHIPS,
    ) -> None:
        self._fetcher = fetcher
        self._timeout = fetch_timeout_s
        self._max_scholarships = min(max_scholarships, MAX_SCHOLARSHIPS)

    async def enrich(
        self,
        candidate_website: str,
        program_level: str = NOT_SPECIFIED,
        nationality: str | None = None,
        country: str = "Other",
    ) -> EnrichmentResult:
        """Gather enrichment for *candidate_website*; never raises on fetch errors."""
        base = candidate_website.rstrip("/")
        institution, scholarships = await asyncio.gather(
            self._institution_facts(base),
            self._scholarships(base, program_level, nationality),
        )
        result = EnrichmentResult(
            institution_facts=institution,
            scholarships=scholarships,
            competitor_set=build_competitor_set(country, program_level),
        )
        logger.info(
            "Enrichment for %s: institution=%s, scholarships=%d",
            base,
            "yes" if not institution.is_empty() else "no",
            len(scholarships),
        )
        return result

    async def _fetch(self, kind: str, url: str) -> str:
        try:
            return await asyncio.wait_for(
                self._fetcher.get(url, self._timeout), timeout=self._timeout
            )
        except asyncio.TimeoutError as e:
            raise EnrichmentFailed(kind, url, f"timed out after {self._timeout}s") from e
        except Exception as e:
            raise EnrichmentFailed(kind, url, str(e) or type(e).__name__) from e

    async def _institution_facts(self, base: str) -> InstitutionalResearch:
        try:
            html = await self._fetch("institution", base)
            return parse_institution_page(html, base)
        except EnrichmentFailed as e:
            logger.warning("Enrichment degraded: %s", e)
            return InstitutionalResearch()

    async def _scholarships(
        self, base: str, program_level: str, nationality: str | None
    ) -> list[ScholarshipListing]:
        url = f"{base}/scholarships"
        try:
            html = await self._fetch("scholarships", url)
            listings = parse_scholarship_page(html, url)
        except EnrichmentFailed as e:
            logger.warning("Enrichment degraded: %s", e)
            return []
        ranked = rank_scholarships(listings, program_level, nationality)
        return ranked[: self._max_scholarships]
