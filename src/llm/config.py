# src/llm/config.py — v2
"""Per-component LLM routing.

Each component reads its own ``provider:model`` assignment and temperature:
  LLM_FINANCIAL=openai:gpt-4o             (precision-oriented, low temperature)
  LLM_STRATEGIC=anthropic:claude-sonnet-… (insight-oriented, moderate temperature)
  LLM_ARBITRATION=openai:gpt-4o           (consensus pass, when ARBITRATION_ENABLED)
"""

from __future__ import annotations

from dataclasses import dataclass

from offerscope.config.settings import Settings

ANALYZER_COMPONENTS: tuple[str, ...] = ("financial", "strategic")
ARBITRATION_COMPONENT = "arbitration"

_COMPONENTS = (*ANALYZER_COMPONENTS, ARBITRATION_COMPONENT)


@dataclass(frozen=True)
class LLMAssignment:
    """Resolved LLM provider:model for one pipeline component."""

    provider: str
    model: str
    temperature: float

    @property
    def key(self) -> str:
        """Return 'provider:model' string."""
        return f"{self.provider}:{self.model}"


def _parse_assignment(value: str) -> tuple[str, str] | None:
    """Parse 'provider:model' string. Returns None if empty."""
    if not value or ":" not in value:
        return None
    provider, model = value.split(":", 1)
    return (provider.strip(), model.strip())


def resolve_llm(component: str, settings: Settings) -> LLMAssignment:
    """Resolve the LLM assignment for one component.

    Args:
        component: "financial", "strategic" or "arbitration".
        settings: Application settings.

    Returns:
        Resolved LLMAssignment with provider, model, and temperature.

    Raises:
        ValueError: If the component is unknown or its assignment is malformed.
    """
    if component not in _COMPONENTS:
        raise ValueError(
            f"Unknown LLM component: {component!r}. "
            f"Available: {', '.join(_COMPONENTS)}"
        )

    parsed = _parse_assignment(getattr(settings, f"llm_{component}"))
    if parsed is None:
        raise ValueError(f"LLM_{component.upper()} must be 'provider:model'")

    return LLMAssignment(
        provider=parsed[0],
        model=parsed[1],
        temperature=getattr(settings, f"llm_{component}_temperature"),
    )


def resolve_all(settings: Settings) -> dict[str, LLMAssignment]:
    """Resolve LLM assignments for both analyzers."""
    return {comp: resolve_llm(comp, settings) for comp in ANALYZER_COMPONENTS}
