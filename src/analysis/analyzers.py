# src/analysis/analyzers.py — v1
"""Model analyzers: one backend request per call, one tagged partial out.

FinancialAnalyzer asks a precision-tuned backend (low temperature, JSON mode)
for the factual sections; StrategicAnalyzer asks a second backend for risks,
recommendations and an action plan. Any backend error or unparseable reply
raises ModelCallFailed, which the orchestrator absorbs.
"""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from offerscope.analysis.errors import ModelCallFailed
from offerscope.analysis.models import FinancialPartial, StrategicPartial
from offerscope.llm.models import Message

if TYPE_CHECKING:
    from offerscope.enrichment.models import EnrichmentResult
    from offerscope.llm.base_client import BaseLLMClient

logger = logging.getLogger(__name__)

_PROMPT_DIR = Path(__file__).parent / "prompts"

TRUNCATION_MARKER = "\n\n[... DOCUMENT TRUNCATED FOR ANALYSIS ...]\n\n"
_HEAD_SHARE = 0.7


def truncate_text(text: str, max_chars: int) -> str:
    """Cap *text* at *max_chars*, keeping 70% from the head and the rest from the tail."""
    if len(text) <= max_chars:
        return text
    keep_start = int(max_chars * _HEAD_SHARE)
    keep_end = max(max_chars - keep_start - len(TRUNCATION_MARKER), 0)
    tail = text[-keep_end:] if keep_end else ""
    return text[:keep_start] + TRUNCATION_MARKER + tail


def _strip_fences(content: str) -> str:
    text = content.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = [l for l in lines if not l.strip().startswith("```")]
        text = "\n".join(lines)
    return text


def parse_json_payload(content: str) -> dict[str, Any]:
    """Parse a model reply into a JSON object.

    Tries the whole reply (Markdown fences removed) first, then the outermost
    ``{...}`` block once. Raises ValueError if neither yields an object.
    """
    text = _strip_fences(content)
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("no JSON object in model output") from None
        try:
            parsed = json.loads(text[start : end + 1])
        except json.JSONDecodeError as exc:
            raise ValueError(f"invalid JSON in model output: {exc.msg}") from None
    if not isinstance(parsed, dict):
        raise ValueError(f"expected JSON object, got {type(parsed).__name__}")
    return parsed


class ModelAnalyzer(ABC):
    """Shared request/parse cycle for one analysis backend."""

    def __init__(
        self,
        client: BaseLLMClient,
        temperature: float,
        max_tokens: int = 4000,
        max_input_chars: int = 32000,
    ) -> None:
        self._client = client
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._max_input_chars = max_input_chars
        self._prompt_template: str | None = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Branch name used in logs and errors."""

    @property
    @abstractmethod
    def prompt_file(self) -> str:
        """Prompt template file name under analysis/prompts/."""

    @property
    @abstractmethod
    def system_prompt(self) -> str: ...

    @property
    def json_mode(self) -> bool:
        return False

    @abstractmethod
    def _format_prompt(
        self, template: str, text: str, document_type: str, context: EnrichmentResult | None
    ) -> str: ...

    @abstractmethod
    def _build_partial(self, payload: dict[str, Any], tokens_used: int) -> Any: ...

    def _load_prompt(self) -> str:
        """Load and cache prompt template."""
        if self._prompt_template is None:
            self._prompt_template = (_PROMPT_DIR / self.prompt_file).read_text(encoding="utf-8")
        return self._prompt_template

    async def analyze(
        self,
        text: str,
        context: EnrichmentResult | None = None,
        document_type: str = "offer_letter",
    ) -> Any:
        """Send one request and return the validated partial.

        Raises:
            ModelCallFailed: Backend error, unparseable or invalid output.
        """
        prompt = self._format_prompt(
            self._load_prompt(),
            truncate_text(text, self._max_input_chars),
            document_type,
            context,
        )
        start_ms = time.monotonic_ns() // 1_000_000
        try:
            response = await self._client.complete(
                messages=[Message(role="user", content=prompt)],
                system=self.system_prompt,
                max_tokens=self._max_tokens,
                temperature=self._temperature,
                json_mode=self.json_mode,
            )
        except Exception as exc:
            raise ModelCallFailed(self.name, f"backend error: {exc}") from exc

        try:
            payload = parse_json_payload(response.content)
        except ValueError as exc:
            raise ModelCallFailed(self.name, str(exc)) from exc

        try:
            partial = self._build_partial(payload, response.total_tokens)
        except ValidationError as exc:
            raise ModelCallFailed(
                self.name, f"output failed validation ({exc.error_count()} errors)"
            ) from exc

        logger.info(
            "%s analysis done: %d tokens, %d ms",
            self.name,
            response.total_tokens,
            (time.monotonic_ns() // 1_000_000) - start_ms,
        )
        return partial


class FinancialAnalyzer(ModelAnalyzer):
    """Precision pass: institution, course, student, fees, conditions, compliance."""

    @property
    def name(self) -> str:
        return "financial"

    @property
    def prompt_file(self) -> str:
        return "financial.txt"

    @property
    def system_prompt(self) -> str:
        return (
            "You are a financial analyst specializing in international education "
            "costs. Extract numerical data, dates, fees and institutional details "
            "precisely. Respond only with valid JSON."
        )

    @property
    def json_mode(self) -> bool:
        return True

    def _format_prompt(
        self, template: str, text: str, document_type: str, context: EnrichmentResult | None
    ) -> str:
        return template.format(document_type=document_type, document_text=text)

    def _build_partial(self, payload: dict[str, Any], tokens_used: int) -> FinancialPartial:
        payload = {k: v for k, v in payload.items() if k not in ("source", "tokensUsed")}
        return FinancialPartial.model_validate(
            {**payload, "source": "financial", "tokens_used": tokens_used}
        )


class StrategicAnalyzer(ModelAnalyzer):
    """Advisory pass: strengths, concerns, recommendations, action plan."""

    @property
    def name(self) -> str:
        return "strategic"

    @property
    def prompt_file(self) -> str:
        return "strategic.txt"

    @property
    def system_prompt(self) -> str:
        return (
            "You are an expert international education consultant with deep "
            "knowledge of visa regulations and student welfare. Weigh the "
            "student's long-term success. Respond only with valid JSON."
        )

    def _format_prompt(
        self, template: str, text: str, document_type: str, context: EnrichmentResult | None
    ) -> str:
        context_json = (
            context.model_dump_json(by_alias=True, exclude={"competitor_set"})
            if context is not None and context.has_web_data()
            else "{}"
        )
        return template.format(
            document_type=document_type, document_text=text, context=context_json
        )

    def _build_partial(self, payload: dict[str, Any], tokens_used: int) -> StrategicPartial:
        payload = {k: v for k, v in payload.items() if k not in ("source", "tokensUsed")}
        return StrategicPartial.model_validate(
            {**payload, "source": "strategic", "tokens_used": tokens_used}
        )
