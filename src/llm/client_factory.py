# src/llm/client_factory.py — v2
"""Build the backend client for one resolved LLMAssignment.

Two providers are wired: ``openai`` and ``anthropic``. Each maps to its
adapter class and to the Settings field holding its API key. Adapters
import their SDK on first request, so building a client never needs the
other provider's package.
"""

from __future__ import annotations

import logging

from offerscope.config.settings import Settings
from offerscope.llm.adapters.anthropic_adapter import AnthropicAdapter
from offerscope.llm.adapters.openai_adapter import OpenAIAdapter
from offerscope.llm.base_client import BaseLLMClient
from offerscope.llm.config import LLMAssignment, resolve_llm

logger = logging.getLogger(__name__)

# provider → (adapter class, Settings field with its API key)
_PROVIDERS: dict[str, tuple[type[BaseLLMClient], str]] = {
    "anthropic": (AnthropicAdapter, "anthropic_api_key"),
    "openai": (OpenAIAdapter, "openai_api_key"),
}


class UnsupportedProviderError(ValueError):
    """Raised when an assignment names a provider with no adapter."""


def create_llm_client(assignment: LLMAssignment, settings: Settings) -> BaseLLMClient:
    """Instantiate the adapter for *assignment* with its API key from *settings*.

    Raises:
        UnsupportedProviderError: The provider has no adapter.
    """
    try:
        adapter_cls, key_field = _PROVIDERS[assignment.provider]
    except KeyError:
        raise UnsupportedProviderError(
            f"Unsupported LLM provider: {assignment.provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDERS))}"
        ) from None

    logger.debug("Creating LLM client: %s", assignment.key)
    return adapter_cls(model=assignment.model, api_key=getattr(settings, key_field))


def client_for(component: str, settings: Settings) -> BaseLLMClient:
    """Resolve *component*'s assignment and build its client."""
    return create_llm_client(resolve_llm(component, settings), settings)
