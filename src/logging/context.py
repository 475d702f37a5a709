# src/logging/context.py — v1
"""Contextual logging support: attach run_id, cache_key, branch, stage to log records.

Context variables are task-local under asyncio, so the three fan-out
branches of one run each carry their own ``branch`` value while sharing the
run-level fields copied from the parent task.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_cache_key: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "cache_key", default=None
)
_branch: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "branch", default=None
)
_stage: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "stage", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    run_id: str | None = None
    cache_key: str | None = None
    branch: str | None = None
    stage: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        run_id=_run_id.get(),
        cache_key=_cache_key.get(),
        branch=_branch.get(),
        stage=_stage.get(),
    )


def set_run_context(run_id: str, cache_key: str | None = None) -> None:
    """Set run-level context (called once per orchestration run)."""
    _run_id.set(run_id)
    _cache_key.set(cache_key)


def set_stage(stage: str) -> None:
    """Record the orchestrator state the run has entered."""
    _stage.set(stage)


def set_branch_context(branch: str) -> None:
    """Set branch-level context (called inside each fan-out task)."""
    _branch.set(branch)


def clear_context() -> None:
    """Reset all context variables."""
    _run_id.set(None)
    _cache_key.set(None)
    _branch.set(None)
    _stage.set(None)
