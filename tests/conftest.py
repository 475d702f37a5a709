# tests/conftest.py — v1
"""Shared test fixtures for all unit and integration tests.

Provides the sample offer letter, canned model replies, mock LLM clients,
a fake web fetcher and a manual clock. No external dependencies — all I/O
is mocked.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest
from fakes import (
    FINANCIAL_PAYLOAD,
    SAMPLE_OFFER_LETTER,
    STRATEGIC_PAYLOAD,
    FakeWebFetcher,
    ManualClock,
    make_llm_client,
)

from offerscope.config.settings import Settings


# === FIXTURES: Sample data ===


@pytest.fixture
def offer_letter_text() -> str:
    return SAMPLE_OFFER_LETTER


@pytest.fixture
def financial_json() -> str:
    return json.dumps(FINANCIAL_PAYLOAD)


@pytest.fixture
def strategic_json() -> str:
    return json.dumps(STRATEGIC_PAYLOAD)


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any local .env, with enrichment disabled."""
    return Settings(_env_file=None, enrichment_enabled=False, analysis_deadline_s=2.0)


# === FIXTURES: Mock LLM ===


@pytest.fixture
def financial_client(financial_json: str) -> AsyncMock:
    return make_llm_client(financial_json, input_tokens=1200, output_tokens=800)


@pytest.fixture
def strategic_client(strategic_json: str) -> AsyncMock:
    return make_llm_client(strategic_json, input_tokens=1000, output_tokens=600)


# === FIXTURES: Web / time ===


@pytest.fixture
def fake_fetcher() -> FakeWebFetcher:
    return FakeWebFetcher()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()
