# src/llm/adapters/anthropic_adapter.py — v1
"""Anthropic Claude adapter implementing BaseLLMClient.

Uses the official anthropic SDK. The Messages API has no JSON response
mode, so ``json_mode`` is expressed as a system instruction and the caller
is expected to parse defensively.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from offerscope.llm.base_client import BaseLLMClient
from offerscope.llm.models import LLMResponse, Message

logger = logging.getLogger(__name__)

_JSON_INSTRUCTION = "Respond only with a single valid JSON object and no other text."


class AnthropicAdapter(BaseLLMClient):
    """Adapter for Anthropic Claude models."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
        **kwargs: Any,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self.__client = None  # Lazy initialization

    @property
    def _client(self):
        """Lazy-init Anthropic client (only on first API call)."""
        if self.__client is None:
            import anthropic

            self.__client = anthropic.AsyncAnthropic(api_key=self._api_key or None)
        return self.__client

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Text completion via Anthropic Messages API."""
        kwargs = self._build_kwargs(messages, system, max_tokens, temperature, json_mode)

        start = time.monotonic()
        response = await self._client.messages.create(**kwargs)
        latency_ms = int((time.monotonic() - start) * 1000)

        return LLMResponse(
            content=self._extract_content(response),
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=response.model,
            provider="anthropic",
            latency_ms=latency_ms,
            raw_response=response,
        )

    @property
    def provider_name(self) -> str:
        return "anthropic"

    @property
    def model_name(self) -> str:
        return self._model

    # --- Internal helpers ---

    def _build_kwargs(
        self,
        messages: list[Message],
        system: str | None,
        max_tokens: int,
        temperature: float,
        json_mode: bool,
    ) -> dict[str, Any]:
        system_parts = [system] if system else []
        if json_mode:
            system_parts.append(_JSON_INSTRUCTION)

        # System-role messages are folded into the top-level system prompt.
        api_messages: list[dict[str, Any]] = []
        for m in messages:
            if m.role == "system":
                system_parts.append(m.content)
            else:
                api_messages.append({"role": m.role, "content": m.content})

        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": api_messages,
        }
        if system_parts:
            kwargs["system"] = "\n\n".join(system_parts)
        return kwargs

    @staticmethod
    def _extract_content(response: Any) -> str:
        """Concatenate text blocks from an Anthropic response."""
        parts = [
            block.text
            for block in response.content
            if getattr(block, "type", None) == "text"
        ]
        return "".join(parts)
