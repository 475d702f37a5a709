# src/analysis/arbitrator.py — v1
"""Optional consensus pass over the merged result.

When both analyzers answered, a third backend sees both partials and the
merged summary, and may return a reconciled summary and recommendation list.
Only those two fields are ever replaced; every other section keeps the
deterministic merge. Any failure raises ModelCallFailed and the orchestrator
keeps the merged result unchanged.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from offerscope.analysis.analyzers import parse_json_payload
from offerscope.analysis.errors import ModelCallFailed
from offerscope.analysis.models import AnalysisResult, StrategicAnalysis
from offerscope.llm.models import Message

if TYPE_CHECKING:
    from offerscope.analysis.models import FinancialPartial, StrategicPartial
    from offerscope.llm.base_client import BaseLLMClient

logger = logging.getLogger(__name__)

_PROMPT_FILE = Path(__file__).parent / "prompts" / "arbitration.txt"

_SYSTEM_PROMPT = (
    "You are a quality assurance specialist for international education "
    "analysis. Reconcile two independent analyses into one confidence-weighted "
    "view. Respond only with valid JSON."
)

_PARTIAL_EXCLUDE = {"source", "tokens_used"}


class Arbitrator:
    """Reconciles summary and recommendations from both model partials."""

    name = "arbitration"

    def __init__(
        self,
        client: BaseLLMClient,
        temperature: float = 0.1,
        max_tokens: int = 4000,
    ) -> None:
        self._client = client
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._prompt_template: str | None = None

    def _load_prompt(self) -> str:
        if self._prompt_template is None:
            self._prompt_template = _PROMPT_FILE.read_text(encoding="utf-8")
        return self._prompt_template

    async def arbitrate(
        self,
        result: AnalysisResult,
        financial: FinancialPartial,
        strategic: StrategicPartial,
    ) -> tuple[AnalysisResult, int]:
        """Return the reconciled result and the tokens the call consumed.

        Raises:
            ModelCallFailed: Backend error or unparseable reply.
        """
        prompt = self._load_prompt().format(
            document_type=result.document_type,
            summary=result.summary,
            financial=financial.model_dump_json(by_alias=True, exclude=_PARTIAL_EXCLUDE),
            strategic=strategic.model_dump_json(by_alias=True, exclude=_PARTIAL_EXCLUDE),
        )
        try:
            response = await self._client.complete(
                messages=[Message(role="user", content=prompt)],
                system=_SYSTEM_PROMPT,
                max_tokens=self._max_tokens,
                temperature=self._temperature,
                json_mode=True,
            )
        except Exception as exc:
            raise ModelCallFailed(self.name, f"backend error: {exc}") from exc

        try:
            payload = parse_json_payload(response.content)
        except ValueError as exc:
            raise ModelCallFailed(self.name, str(exc)) from exc

        update = self._reconciled_fields(result, payload)
        logger.info(
            "Arbitration done: %d tokens, replaced=%s",
            response.total_tokens, sorted(update) or "nothing",
        )
        return result.model_copy(update=update), response.total_tokens

    @staticmethod
    def _reconciled_fields(result: AnalysisResult, payload: dict[str, Any]) -> dict[str, Any]:
        update: dict[str, Any] = {}

        summary = payload.get("summary")
        if isinstance(summary, str) and summary.strip():
            update["summary"] = summary.strip()

        raw = payload.get("recommendations")
        if raw:
            recommendations = StrategicAnalysis.model_validate(
                {"recommendations": raw}
            ).recommendations
            if recommendations:
                update["strategic_analysis"] = result.strategic_analysis.model_copy(
                    update={"recommendations": recommendations}
                )
        return update
