"""No-op store — used when auditing is switched off.

Setting ``enabled: false`` in .promptpanel.yml (or PROMPTPANEL_ENABLED=false)
selects this store. Using a NoOpStore rather than None lets callers always
call store.append() without conditional checks.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from promptpanel_store.base import BaseStore, LoadResult, WriteResult

if TYPE_CHECKING:
    from promptpanel_store.models import AuditRecord


class NoOpStore(BaseStore):
    """Silently discards all records."""

    def append(self, record: AuditRecord) -> WriteResult:
        return WriteResult(ok=True)

    def load_window(self, days: int | None, now: datetime | None = None) -> LoadResult:
        return LoadResult()

    def update_outcome(
        self,
        date: str,
        prompt_hash: str,
        outcome: str,
        accepted_ids: list[str],
        rejected_ids: list[str],
        rejection_reasons: dict[str, str] | None = None,
    ) -> bool:
        return False
