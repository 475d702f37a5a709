# src/storage/local_repository.py — v1
"""Local filesystem repository: one JSON file per analysis record.

Layout: ``<base_path>/<user_id>/<record_id>.json``.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from offerscope.analysis.models import AnalysisMetadata, AnalysisResult
from offerscope.storage.base_repository import BaseRepository
from offerscope.storage.memory_store import generate_record_id
from offerscope.storage.models import AnalysisRecord

logger = logging.getLogger(__name__)


class LocalJsonRepository(BaseRepository):
    """Write analysis records to the local filesystem."""

    def __init__(self, base_path: str | Path) -> None:
        self._base = Path(base_path).expanduser()

    def _record_path(self, user_id: str, record_id: str) -> Path:
        safe_user = user_id.replace("/", "_").replace("\\", "_")
        return self._base / safe_user / f"{record_id}.json"

    async def save(
        self,
        result: AnalysisResult,
        metadata: AnalysisMetadata,
        user_id: str,
    ) -> str:
        record = AnalysisRecord(
            record_id=generate_record_id(),
            user_id=user_id,
            document_type=result.document_type,
            created_at=datetime.now(timezone.utc),
            result=result,
            metadata=metadata,
        )
        path = self._record_path(user_id, record.record_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = record.model_dump(mode="json", by_alias=True)
        path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.info("Saved analysis record %s to %s", record.record_id, path)
        return record.record_id

    async def load(self, user_id: str, record_id: str) -> AnalysisRecord | None:
        """Read a record back; None if it does not exist."""
        path = self._record_path(user_id, record_id)
        if not path.exists():
            return None
        return AnalysisRecord.model_validate_json(path.read_text(encoding="utf-8"))
