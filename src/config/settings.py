# src/config/settings.py — v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for deployment-specific settings: LLM routing for the
two analyzers and the optional arbitration pass, document gating, cache
sizing, pipeline deadline, enrichment fetch limits, and logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === LLM PROVIDERS ===
    # Per-analyzer assignment, "provider:model"
    llm_financial: str = "openai:gpt-4o"
    llm_strategic: str = "anthropic:claude-sonnet-4-20250514"
    llm_financial_temperature: float = 0.1
    llm_strategic_temperature: float = 0.3
    llm_arbitration: str = "openai:gpt-4o"
    llm_arbitration_temperature: float = 0.1
    llm_max_tokens: int = 4000

    # Provider API keys
    openai_api_key: str = ""
    anthropic_api_key: str = ""

    # === Document gate ===
    min_document_chars: int = 100
    max_input_chars: int = 32_000
    supported_document_types: str = "offer_letter,coe"

    # === Cache ===
    cache_enabled: bool = True
    cache_capacity: int = 100
    cache_ttl_seconds: int = 3600
    fingerprint_window: int = 200

    # === Pipeline ===
    analysis_deadline_s: float = 120.0
    # Off so the strategic request never waits on the web fetches inside the
    # deadline. When on, institution data is sent as strategic prompt context.
    strategic_uses_enrichment: bool = False
    # Third-backend consensus pass over summary and recommendations.
    arbitration_enabled: bool = False

    # === Enrichment ===
    enrichment_enabled: bool = True
    enrichment_fetch_timeout_s: float = 15.0
    enrichment_max_scholarships: int = 12
    placeholder_website: str = "https://example.edu"
    enrichment_user_agent: str = "offerscope/0.1 (+https://example.edu/bot)"

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator(
        "llm_financial_temperature",
        "llm_strategic_temperature",
        "llm_arbitration_temperature",
    )
    @classmethod
    def validate_temperature(cls, v: float) -> float:  # noqa: N805
        if not 0.0 <= v <= 2.0:
            raise ValueError("temperature must be within [0, 2]")
        return v

    @field_validator(
        "cache_capacity", "cache_ttl_seconds", "fingerprint_window", "llm_max_tokens"
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:  # noqa: N805
        if v <= 0:
            raise ValueError("value must be > 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        for name in ("llm_financial", "llm_strategic", "llm_arbitration"):
            value = getattr(self, name)
            if ":" not in value or not all(p.strip() for p in value.split(":", 1)):
                errors.append(f"{name.upper()} must be 'provider:model', got {value!r}")

        if self.min_document_chars >= self.max_input_chars:
            errors.append("MIN_DOCUMENT_CHARS must be < MAX_INPUT_CHARS")

        if self.analysis_deadline_s <= 0:
            errors.append("ANALYSIS_DEADLINE_S must be > 0")

        if self.enrichment_fetch_timeout_s <= 0:
            errors.append("ENRICHMENT_FETCH_TIMEOUT_S must be > 0")

        if not self.supported_document_types_list:
            errors.append("SUPPORTED_DOCUMENT_TYPES must list at least one type")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def supported_document_types_list(self) -> list[str]:
        """Parse comma-separated document types (normalized to lower case)."""
        return [
            t.strip().lower()
            for t in self.supported_document_types.split(",")
            if t.strip()
        ]


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-call config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
