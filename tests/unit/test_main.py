# tests/unit/test_main.py — v2
"""Tests for main.py — CLI parsing, exit codes and output."""

from __future__ import annotations

import json
import logging

import pytest
from fakes import SAMPLE_OFFER_LETTER, make_llm_client

import offerscope.api.facade as facade
import offerscope.config.settings as settings_module
from offerscope.enrichment.web_fetcher import RequestsWebFetcher
from offerscope.config.settings import ConfigurationError, Settings
from offerscope.main import EXIT_REJECTED, _build_parser, main


@pytest.fixture(autouse=True)
def _isolate(monkeypatch, financial_json, strategic_json):
    """Stub settings and model clients so the CLI never touches the network."""
    monkeypatch.setattr(
        settings_module,
        "load_settings",
        lambda **kw: Settings(_env_file=None, enrichment_enabled=False, log_format="text"),
    )
    real_create = facade.create_orchestrator

    def fake_create(settings=None, **kwargs):
        return real_create(
            settings,
            financial_client=make_llm_client(financial_json),
            strategic_client=make_llm_client(strategic_json),
            **kwargs,
        )

    monkeypatch.setattr(facade, "create_orchestrator", fake_create)
    yield
    logging.getLogger("offerscope").handlers.clear()


@pytest.fixture
def letter(tmp_path):
    path = tmp_path / "offer.txt"
    path.write_text(SAMPLE_OFFER_LETTER, encoding="utf-8")
    return path


class TestParser:
    def test_version(self):
        with pytest.raises(SystemExit) as exc_info:
            _build_parser().parse_args(["--version"])
        assert exc_info.value.code == 0

    def test_analyze_defaults(self, tmp_path):
        args = _build_parser().parse_args(["analyze", str(tmp_path / "x.pdf")])
        assert args.doc_type == "offer_letter"
        assert args.user == "cli"
        assert args.json is False

    def test_no_command(self):
        assert main([]) == 1


class TestAnalyzeCommand:
    def test_summary_output(self, letter, capsys):
        assert main(["analyze", str(letter)]) == 0
        out = capsys.readouterr().out
        assert "Analysis complete:" in out
        assert "Score:        90/100" in out
        assert "Degraded:     False" in out

    def test_json_output(self, letter, capsys):
        assert main(["analyze", str(letter), "--json", "-t", "offer_letter"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["recordId"]
        assert data["analysis"]["extractedFields"]["studentName"] == "Priya Sharma"
        assert data["metadata"]["degraded"] is False

    def test_save_dir(self, letter, tmp_path):
        out_dir = tmp_path / "records"
        assert main(["analyze", str(letter), "--save-dir", str(out_dir), "--user", "u7"]) == 0
        assert len(list((out_dir / "u7").glob("*.json"))) == 1

    def test_unsupported_type_still_succeeds(self, letter, capsys):
        assert main(["analyze", str(letter), "-t", "i20"]) == 0
        assert "Template Not Available" in capsys.readouterr().out


class TestExitCodes:
    def test_missing_file(self, tmp_path):
        assert main(["analyze", str(tmp_path / "nope.txt")]) == 1

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "offer.docx"
        path.write_bytes(b"PK")
        assert main(["analyze", str(path)]) == 1

    def test_short_document_rejected(self, tmp_path):
        path = tmp_path / "coe.txt"
        path.write_text("Confirmation of Enrolment for Jo Smith.", encoding="utf-8")
        assert main(["analyze", str(path), "-t", "coe"]) == EXIT_REJECTED

    def test_configuration_error(self, monkeypatch, letter):
        def broken(**kw):
            raise ConfigurationError("LLM_FINANCIAL must be 'provider:model'")

        monkeypatch.setattr(settings_module, "load_settings", broken)
        assert main(["analyze", str(letter)]) == 1


class TestFetcherLifecycle:
    @pytest.fixture
    def closes(self, monkeypatch):
        calls: list[RequestsWebFetcher] = []

        async def record_close(self):
            calls.append(self)

        monkeypatch.setattr(RequestsWebFetcher, "aclose", record_close)
        return calls

    def test_closed_after_success(self, letter, closes):
        assert main(["analyze", str(letter)]) == 0
        assert len(closes) == 1

    def test_closed_after_rejection(self, tmp_path, closes):
        path = tmp_path / "coe.txt"
        path.write_text("Confirmation of Enrolment for Jo Smith.", encoding="utf-8")
        assert main(["analyze", str(path), "-t", "coe"]) == EXIT_REJECTED
        assert len(closes) == 1
