"""Audit trail data models.

Decoupled from promptpanel_core so the store layer can be used on its own:
the merger builds these records, the store persists and verifies them, and
the reflection layer reads them back.

Every entity has an explicit ``from_dict`` that rejects data it cannot trust
(raising MalformedRecord) instead of passing half-parsed dicts around.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from promptpanel_store.errors import MalformedRecord

OUTCOMES = ("pending", "approved", "edited", "rejected")
SEVERITIES = ("blocker", "major", "minor", "nit")

_RECORD_FIELDS = (
    "timestamp",
    "project",
    "prompt_hash",
    "reviewers_active",
    "findings_detail",
    "suggestions_accepted",
    "suggestions_rejected",
    "rejection_details",
    "reviewer_stats",
    "severity_max",
    "conflicts",
    "outcome",
    "scores",
    "composite_score",
    "cost",
    "duration_ms",
    "integrity_hash",
)


@dataclass
class Finding:
    """One reviewer finding persisted with its audit record."""

    reviewer_role: str
    finding_id: str
    severity: str = "nit"
    op: str | None = None
    target: str | None = None
    value: str | None = None
    issue: str = ""

    def to_dict(self) -> dict:
        return {
            "reviewer_role": self.reviewer_role,
            "finding_id": self.finding_id,
            "severity": self.severity,
            "op": self.op,
            "target": self.target,
            "value": self.value,
            "issue": self.issue,
        }

    @classmethod
    def from_dict(cls, d: Any) -> Finding:
        if not isinstance(d, dict):
            raise MalformedRecord(f"finding must be an object, got {type(d).__name__}")
        role = d.get("reviewer_role")
        finding_id = d.get("finding_id")
        if not isinstance(role, str) or not role:
            raise MalformedRecord("finding is missing reviewer_role")
        if not isinstance(finding_id, str) or not finding_id:
            raise MalformedRecord(f"finding from {role!r} is missing finding_id")
        return cls(
            reviewer_role=role,
            finding_id=finding_id,
            severity=d.get("severity") or "nit",
            op=d.get("op"),
            target=d.get("target"),
            value=d.get("value"),
            issue=d.get("issue") or "",
        )


@dataclass
class AuditRecord:
    """A single review cycle in the audit trail.

    Created with outcome="pending" when reviewers finish, then mutated exactly
    once by JsonlAuditStore.update_outcome(). Keys read from disk that this
    class does not model are kept in ``extra`` so a record round-trips without
    losing data (and without breaking its integrity hash).
    """

    timestamp: str  # ISO-8601 UTC timestamp
    prompt_hash: str
    project: str = ""
    reviewers_active: list[str] = field(default_factory=list)
    findings_detail: list[Finding] = field(default_factory=list)
    suggestions_accepted: list[str] = field(default_factory=list)
    suggestions_rejected: list[str] = field(default_factory=list)
    rejection_details: dict[str, str] = field(default_factory=dict)
    reviewer_stats: dict[str, dict[str, int]] = field(default_factory=dict)
    severity_max: str = "nit"
    conflicts: int = 0
    outcome: str = "pending"  # "pending" | "approved" | "edited" | "rejected"
    scores: dict[str, float] = field(default_factory=dict)
    composite_score: float | None = None
    cost: dict[str, float] = field(default_factory=dict)
    duration_ms: int = 0
    integrity_hash: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        d = dict(self.extra)
        d.update(
            {
                "timestamp": self.timestamp,
                "project": self.project,
                "prompt_hash": self.prompt_hash,
                "reviewers_active": list(self.reviewers_active),
                "findings_detail": [f.to_dict() for f in self.findings_detail],
                "suggestions_accepted": list(self.suggestions_accepted),
                "suggestions_rejected": list(self.suggestions_rejected),
                "rejection_details": dict(self.rejection_details),
                "reviewer_stats": {role: dict(stats) for role, stats in self.reviewer_stats.items()},
                "severity_max": self.severity_max,
                "conflicts": self.conflicts,
                "outcome": self.outcome,
                "scores": dict(self.scores),
                "composite_score": self.composite_score,
                "cost": dict(self.cost),
                "duration_ms": self.duration_ms,
            }
        )
        if self.integrity_hash:
            d["integrity_hash"] = self.integrity_hash
        return d

    @classmethod
    def from_dict(cls, d: Any) -> AuditRecord:
        """Parse a decoded log line, raising MalformedRecord on schema violations."""
        if not isinstance(d, dict):
            raise MalformedRecord(f"audit record must be an object, got {type(d).__name__}")

        timestamp = d.get("timestamp")
        prompt_hash = d.get("prompt_hash")
        if not isinstance(timestamp, str) or not timestamp:
            raise MalformedRecord("audit record is missing timestamp")
        if not isinstance(prompt_hash, str) or not prompt_hash:
            raise MalformedRecord("audit record is missing prompt_hash")

        outcome = d.get("outcome") or "pending"
        if outcome not in OUTCOMES:
            raise MalformedRecord(f"unknown outcome {outcome!r}")

        findings = d.get("findings_detail") or []
        if not isinstance(findings, list):
            raise MalformedRecord("findings_detail must be a list")

        reviewers_active = _string_list(d, "reviewers_active")
        accepted = _string_list(d, "suggestions_accepted")
        rejected = _string_list(d, "suggestions_rejected")
        reviewer_stats = _mapping(d, "reviewer_stats")
        for role, stats in reviewer_stats.items():
            if not isinstance(stats, dict):
                raise MalformedRecord(f"reviewer_stats for {role!r} must be an object")

        return cls(
            timestamp=timestamp,
            prompt_hash=prompt_hash,
            project=d.get("project") or "",
            reviewers_active=reviewers_active,
            findings_detail=[Finding.from_dict(f) for f in findings],
            suggestions_accepted=accepted,
            suggestions_rejected=rejected,
            rejection_details=_mapping(d, "rejection_details"),
            reviewer_stats={role: dict(stats) for role, stats in reviewer_stats.items()},
            severity_max=d.get("severity_max") or "nit",
            conflicts=_count(d.get("conflicts")),
            outcome=outcome,
            scores=_mapping(d, "scores"),
            composite_score=d.get("composite_score"),
            cost=_mapping(d, "cost"),
            duration_ms=d.get("duration_ms") or 0,
            integrity_hash=d.get("integrity_hash"),
            extra={k: v for k, v in d.items() if k not in _RECORD_FIELDS},
        )


@dataclass
class WeightHistoryEntry:
    """One adaptation event: the weights before and after, and why."""

    timestamp: str
    weights_before: dict[str, float]
    weights_after: dict[str, float]
    precision_at_change: dict[str, dict[str, float]] = field(default_factory=dict)
    measurement_period_days: int | None = None

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "weights_before": dict(self.weights_before),
            "weights_after": dict(self.weights_after),
            "precision_at_change": {role: dict(m) for role, m in self.precision_at_change.items()},
            "measurement_period_days": self.measurement_period_days,
        }

    @classmethod
    def from_dict(cls, d: Any) -> WeightHistoryEntry:
        if not isinstance(d, dict) or not isinstance(d.get("timestamp"), str):
            raise MalformedRecord("weight history entry is missing timestamp")
        before = d.get("weights_before")
        after = d.get("weights_after")
        if not isinstance(before, dict) or not isinstance(after, dict):
            raise MalformedRecord("weight history entry must carry weights_before and weights_after")
        precision = _mapping(d, "precision_at_change")
        if not all(isinstance(m, dict) for m in precision.values()):
            raise MalformedRecord("precision_at_change values must be objects")
        return cls(
            timestamp=d["timestamp"],
            weights_before=dict(before),
            weights_after=dict(after),
            precision_at_change={role: dict(m) for role, m in precision.items()},
            measurement_period_days=d.get("measurement_period_days"),
        )


def _count(value: Any) -> int:
    # Older records stored the conflict list itself rather than its length.
    if isinstance(value, list):
        return len(value)
    if isinstance(value, int):
        return value
    return 0


def _mapping(d: dict, key: str) -> dict:
    value = d.get(key) or {}
    if not isinstance(value, dict):
        raise MalformedRecord(f"{key} must be an object, got {type(value).__name__}")
    return dict(value)


def _string_list(d: dict, key: str) -> list[str]:
    value = d.get(key) or []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise MalformedRecord(f"{key} must be a list of strings")
    return list(value)
