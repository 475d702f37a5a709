# src/analysis/errors.py — v1
"""Exception hierarchy for the analysis pipeline.

``QuotaExceeded`` and ``DocumentUnreadable`` propagate to the caller.
``ModelCallFailed`` and ``EnrichmentFailed`` are absorbed inside a run: the
orchestrator logs them and treats the branch as absent.
"""

from __future__ import annotations

from offerscope.analysis.models import ErrorKind

__all__ = [
    "AnalysisError",
    "DocumentUnreadable",
    "EnrichmentFailed",
    "ErrorKind",
    "ModelCallFailed",
    "QuotaExceeded",
]


class AnalysisError(Exception):
    """Base class for all offerscope analysis errors."""


class QuotaExceeded(AnalysisError):
    """The user has no analyses left."""

    def __init__(self, user_id: str, remaining: int = 0) -> None:
        self.user_id = user_id
        self.remaining = remaining
        super().__init__(
            f"Analysis quota exceeded for user {user_id!r} (remaining={remaining})"
        )


class DocumentUnreadable(AnalysisError):
    """Text extraction failed or produced too little text to analyze."""

    def __init__(self, message: str, length: int | None = None) -> None:
        self.length = length
        super().__init__(message)


class ModelCallFailed(AnalysisError):
    """A backend request errored, timed out, or returned unparseable output."""

    def __init__(self, analyzer: str, reason: str) -> None:
        self.analyzer = analyzer
        self.reason = reason
        super().__init__(f"{analyzer} analyzer failed: {reason}")


class EnrichmentFailed(AnalysisError):
    """A single enrichment sub-fetch failed; only its contribution is lost."""

    def __init__(self, fetch: str, url: str, reason: str) -> None:
        self.fetch = fetch
        self.url = url
        self.reason = reason
        super().__init__(f"{fetch} fetch from {url} failed: {reason}")
