"""Abstract audit store interface.

The CLI and the reflection/adaptation layers depend on BaseStore, not on a
concrete backend, so the JSONL log can be swapped for a disabled store (or
another backend) without touching callers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from promptpanel_store.models import AuditRecord


@dataclass
class WriteResult:
    """Outcome of a best-effort write.

    Audit and history writes must never abort the caller's pipeline, so they
    report failure here instead of raising. Callers may ignore it; tests and
    the CLI inspect it.
    """

    ok: bool
    path: str | None = None
    error: str | None = None


@dataclass
class LoadResult:
    """Records read from a time window plus what had to be left out."""

    records: list[AuditRecord] = field(default_factory=list)
    skipped: int = 0  # failed integrity verification
    malformed: int = 0  # undecodable line or schema violation


class BaseStore(ABC):
    """Pluggable persistence layer for the audit trail."""

    @abstractmethod
    def append(self, record: AuditRecord) -> WriteResult:
        """Stamp the record's integrity hash and persist it. Never raises."""

    @abstractmethod
    def load_window(self, days: int | None, now: datetime | None = None) -> LoadResult:
        """Return verified records newer than ``now - days`` (all if days is None).

        Returns an empty result if nothing is stored; never raises on bad data.
        """

    @abstractmethod
    def update_outcome(
        self,
        date: str,
        prompt_hash: str,
        outcome: str,
        accepted_ids: list[str],
        rejected_ids: list[str],
        rejection_reasons: dict[str, str] | None = None,
    ) -> bool:
        """Resolve the first pending record for ``prompt_hash`` on ``date``.

        Returns True if a record was updated.
        """

    def close(self) -> None:
        """Release any resources held by the store.

        Default is a no-op so callers can always call close() safely.
        """
