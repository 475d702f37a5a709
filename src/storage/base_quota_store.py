# src/storage/base_quota_store.py — v1
"""Abstract per-user analysis quota interface."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseQuotaStore(ABC):
    """Tracks how many analyses each user may still run."""

    @abstractmethod
    async def remaining(self, user_id: str) -> int:
        """Analyses left for *user_id*; ``<= 0`` means the quota is used up."""

    @abstractmethod
    async def increment(self, user_id: str) -> None:
        """Record one completed analysis for *user_id*."""
