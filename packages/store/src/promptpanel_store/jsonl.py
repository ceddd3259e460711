"""JsonlAuditStore — the audit trail as date-partitioned JSON Lines files.

Layout: one file per UTC day, ``<log_dir>/YYYY-MM-DD.jsonl``, one AuditRecord
per line. Records are appended once (outcome="pending") and rewritten exactly
once when the outcome is reported.

Layout properties:
- Append is a single write() of one line.
- Every line is verified on its own; a corrupted or tampered line is skipped
  and the rest of the day is still read.
- update_outcome rewrites one day's file; windowed reads skip whole files
  by name.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import date as date_cls
from datetime import datetime, timedelta, timezone
from pathlib import Path

from promptpanel_store.base import BaseStore, LoadResult, WriteResult
from promptpanel_store.errors import MalformedRecord
from promptpanel_store.fileio import atomic_write_bytes, path_lock
from promptpanel_store.integrity import HASH_FIELD, stamp_hash, verify
from promptpanel_store.models import AuditRecord

logger = logging.getLogger(__name__)

_PARTITION_RE = re.compile(r"^\d{4}-\d{2}-\d{2}\.jsonl$")
_FINAL_OUTCOMES = ("approved", "edited", "rejected")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken to be UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def utc_date(timestamp: str) -> str:
    """Return the YYYY-MM-DD partition key for a timestamp."""
    return parse_timestamp(timestamp).astimezone(timezone.utc).date().isoformat()


@dataclass
class IntegrityIssue:
    line: int
    prompt_hash: str | None
    reason: str


@dataclass
class IntegrityReport:
    """Result of checking every line of one partition."""

    date: str
    total: int = 0
    valid: int = 0
    malformed: int = 0
    issues: list[IntegrityIssue] = field(default_factory=list)


class JsonlAuditStore(BaseStore):
    """Stores audit records under ``log_dir`` as one JSONL file per UTC day."""

    def __init__(self, log_dir: str | Path):
        self._log_dir = Path(log_dir)

    @property
    def log_dir(self) -> Path:
        return self._log_dir

    def partition_path(self, date: str) -> Path:
        return self._log_dir / f"{date}.jsonl"

    def append(self, record: AuditRecord) -> WriteResult:
        """Stamp the integrity hash and append the record to its day's partition.

        Failures are logged and returned, never raised: the audit trail must
        not abort the review that produced it.
        """
        try:
            path = self.partition_path(utc_date(record.timestamp))
        except ValueError as e:
            logger.warning("Cannot partition audit record with timestamp %r: %s", record.timestamp, e)
            return WriteResult(ok=False, error=f"invalid timestamp: {e}")

        stamp_hash(record)
        line = json.dumps(record.to_dict(), ensure_ascii=False)
        try:
            with path_lock(path):
                self._log_dir.mkdir(parents=True, exist_ok=True)
                with open(path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
        except OSError as e:
            logger.warning("JsonlAuditStore.append() failed (%s): %s", type(e).__name__, e)
            return WriteResult(ok=False, path=str(path), error=str(e))
        return WriteResult(ok=True, path=str(path))

    def update_outcome(
        self,
        date: str,
        prompt_hash: str,
        outcome: str,
        accepted_ids: list[str],
        rejected_ids: list[str],
        rejection_reasons: dict[str, str] | None = None,
    ) -> bool:
        """Resolve the first pending record for ``prompt_hash`` in ``date``'s partition.

        A candidate that fails integrity verification is left alone and the
        scan moves on to the next match. The partition is rewritten through a
        temp file so a crash never leaves a half-written day.
        """
        if outcome not in _FINAL_OUTCOMES:
            raise ValueError(f"outcome must be one of {', '.join(_FINAL_OUTCOMES)}; got {outcome!r}")

        path = self.partition_path(date)
        with path_lock(path):
            if not path.exists():
                return False

            # Lines that are not valid UTF-8 are carried over byte for byte.
            lines = path.read_bytes().splitlines()
            updated = False
            new_lines = []
            for line in lines:
                if updated or not line.strip():
                    new_lines.append(line)
                    continue
                try:
                    text = line.decode("utf-8")
                except UnicodeDecodeError:
                    new_lines.append(line)
                    continue
                replacement = self._resolve_line(
                    text, prompt_hash, outcome, accepted_ids, rejected_ids, rejection_reasons
                )
                if replacement is None:
                    new_lines.append(line)
                else:
                    new_lines.append(replacement.encode("utf-8"))
                    updated = True

            if not updated:
                return False

            try:
                atomic_write_bytes(path, b"\n".join(new_lines) + b"\n")
            except OSError as e:
                logger.warning("Could not rewrite %s after outcome update: %s", path, e)
                return False
        return True

    def load_window(self, days: int | None, now: datetime | None = None) -> LoadResult:
        """Read verified records from partitions inside the window.

        Records carrying an integrity hash that does not verify are counted in
        ``skipped``; undecodable lines and schema violations in ``malformed``.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=days) if days is not None else None
        result = LoadResult()

        for path in self._partitions():
            if cutoff is not None and date_cls.fromisoformat(path.stem) < cutoff.date():
                continue
            for lineno, line in _read_lines(path):
                if line is None:
                    logger.debug("Skipping undecodable line %s:%d", path.name, lineno)
                    result.malformed += 1
                    continue
                line = line.strip()
                if line:
                    self._load_line(path, lineno, line, cutoff, result)

        if result.skipped:
            logger.warning("Skipped %d audit record(s) that failed integrity verification", result.skipped)
        return result

    def check_integrity(self, date: str) -> IntegrityReport:
        """Verify every line of one partition without filtering anything out."""
        report = IntegrityReport(date=date)
        path = self.partition_path(date)
        if not path.exists():
            return report

        for lineno, line in _read_lines(path):
            if line is not None and not line.strip():
                continue
            report.total += 1
            if line is None:
                report.malformed += 1
                continue
            try:
                raw = json.loads(line)
            except json.JSONDecodeError:
                report.malformed += 1
                continue
            if not isinstance(raw, dict):
                report.malformed += 1
                continue
            verification = verify(raw)
            if verification.valid:
                report.valid += 1
            else:
                report.issues.append(IntegrityIssue(lineno, raw.get("prompt_hash"), verification.reason))
        return report

    def partition_dates(self) -> list[str]:
        """Dates that have a partition on disk, oldest first."""
        return [path.stem for path in self._partitions()]

    def _partitions(self) -> list[Path]:
        if not self._log_dir.is_dir():
            return []
        return sorted(p for p in self._log_dir.iterdir() if _is_partition_name(p.name))

    def _load_line(self, path: Path, lineno: int, line: str, cutoff: datetime | None, result: LoadResult) -> None:
        try:
            raw = json.loads(line)
            if not isinstance(raw, dict):
                raise MalformedRecord("line is not a JSON object")
            if cutoff is not None and parse_timestamp(str(raw.get("timestamp", ""))) < cutoff:
                return
        except ValueError as e:  # JSONDecodeError, MalformedRecord, bad timestamp
            logger.debug("Skipping malformed line %s:%d (%s)", path.name, lineno, e)
            result.malformed += 1
            return

        if raw.get(HASH_FIELD) and not verify(raw).valid:
            logger.debug("Skipping tampered record %s:%d", path.name, lineno)
            result.skipped += 1
            return

        try:
            result.records.append(AuditRecord.from_dict(raw))
        except MalformedRecord as e:
            logger.debug("Skipping malformed record %s:%d (%s)", path.name, lineno, e)
            result.malformed += 1

    @staticmethod
    def _resolve_line(
        line: str,
        prompt_hash: str,
        outcome: str,
        accepted_ids: list[str],
        rejected_ids: list[str],
        rejection_reasons: dict[str, str] | None,
    ) -> str | None:
        """Return the rewritten line if this line is the record to resolve."""
        try:
            raw = json.loads(line)
        except json.JSONDecodeError:
            return None
        if not isinstance(raw, dict) or raw.get("prompt_hash") != prompt_hash or raw.get("outcome") != "pending":
            return None

        verification = verify(raw)
        if not verification.valid:
            logger.warning(
                "Refusing to update record %s: integrity check failed (%s)", prompt_hash, verification.reason
            )
            return None
        try:
            record = AuditRecord.from_dict(raw)
        except MalformedRecord as e:
            logger.warning("Refusing to update malformed record %s: %s", prompt_hash, e)
            return None

        reasons = rejection_reasons or {}
        record.outcome = outcome
        record.suggestions_accepted = list(accepted_ids)
        record.suggestions_rejected = list(rejected_ids)
        record.rejection_details = {fid: reasons.get(fid, "unknown") for fid in rejected_ids}
        record.reviewer_stats = _reviewer_stats(record, set(accepted_ids), set(rejected_ids))
        stamp_hash(record)
        return json.dumps(record.to_dict(), ensure_ascii=False)


def _is_partition_name(name: str) -> bool:
    if not _PARTITION_RE.match(name):
        return False
    try:
        date_cls.fromisoformat(name[: -len(".jsonl")])
    except ValueError:
        return False
    return True


def _read_lines(path: Path):
    """Yield (lineno, text) per line; text is None when the line is not valid UTF-8."""
    with open(path, "rb") as f:
        for lineno, raw in enumerate(f, start=1):
            try:
                yield lineno, raw.decode("utf-8")
            except UnicodeDecodeError:
                yield lineno, None


def _reviewer_stats(record: AuditRecord, accepted: set[str], rejected: set[str]) -> dict[str, dict[str, int]]:
    stats: dict[str, dict[str, int]] = {}
    for finding in record.findings_detail:
        role = stats.setdefault(finding.reviewer_role, {"proposed": 0, "accepted": 0, "rejected": 0})
        role["proposed"] += 1
        if finding.finding_id in accepted:
            role["accepted"] += 1
        elif finding.finding_id in rejected:
            role["rejected"] += 1
    return stats
