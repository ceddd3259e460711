"""WeightChangeLog — append-only JSONL record of every weight adaptation.

The config file only keeps the last few snapshots; this log keeps all of
them. It is a secondary record: the weights are already durable once the
config is written, so append() reports failure instead of raising.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from promptpanel_store.base import WriteResult
from promptpanel_store.errors import MalformedRecord
from promptpanel_store.fileio import path_lock
from promptpanel_store.models import WeightHistoryEntry

logger = logging.getLogger(__name__)

WEIGHT_HISTORY_FILENAME = "weight-history.jsonl"


class WeightChangeLog:
    def __init__(self, path: str | Path):
        self._path = Path(path)

    @classmethod
    def in_dir(cls, log_dir: str | Path) -> WeightChangeLog:
        return cls(Path(log_dir) / WEIGHT_HISTORY_FILENAME)

    @property
    def path(self) -> Path:
        return self._path

    def append(self, entry: WeightHistoryEntry) -> WriteResult:
        line = json.dumps(entry.to_dict(), ensure_ascii=False)
        try:
            with path_lock(self._path):
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with open(self._path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
        except OSError as e:
            logger.warning("WeightChangeLog.append() failed (%s): %s", type(e).__name__, e)
            return WriteResult(ok=False, path=str(self._path), error=str(e))
        return WriteResult(ok=True, path=str(self._path))

    def entries(self) -> list[WeightHistoryEntry]:
        """Return all entries, oldest first. Malformed lines are skipped."""
        if not self._path.exists():
            return []

        results = []
        with open(self._path, "rb") as f:
            for lineno, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    results.append(WeightHistoryEntry.from_dict(json.loads(line.decode("utf-8"))))
                except (UnicodeDecodeError, json.JSONDecodeError, MalformedRecord) as e:
                    logger.debug("Skipping malformed weight history line %d: %s", lineno, e)
        return results
