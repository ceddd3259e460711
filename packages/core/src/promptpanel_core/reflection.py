"""Reflection: how useful has each reviewer been over a window of reviews?

Two numbers drive weight adaptation:

- precision: accepted / proposed findings.
- outcome_correlation: of the reviews a role took part in, the fraction where
  it had at least one accepted finding and the review ended approved/edited.

Both are recomputed from the audit trail on every call; nothing here is
persisted.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

from promptpanel_store.base import BaseStore
from promptpanel_store.models import AuditRecord

logger = logging.getLogger(__name__)

DEFAULT_MIN_REVIEWS = 5
DEFAULT_PRECISION_THRESHOLD = 0.70
COVERAGE_THRESHOLD = 0.3
FAVOURABLE_OUTCOMES = ("approved", "edited")

_REJECTION_KINDS = ("invalid", "deferred", "conflict")


@dataclass
class ReviewerMetrics:
    role: str
    proposed: int = 0
    accepted: int = 0
    rejected: int = 0
    invalid_rejected: int = 0  # the finding was wrong
    deferred_rejected: int = 0  # valid but out of scope for now
    conflict_rejected: int = 0  # lost a conflict with another reviewer
    unknown_rejected: int = 0
    review_count: int = 0  # distinct reviews participated in
    precision: float = 0.0
    precision_strict: float = 0.0  # only "invalid" rejections count against
    coverage_ratio: float = 0.0  # share of all reviews this role contributed to
    outcome_correlation: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ReflectionReport:
    period: str
    generated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    total_reviews: int = 0
    reviews_with_outcome: int = 0
    reviewers: dict[str, ReviewerMetrics] = field(default_factory=dict)
    low_precision_roles: list[str] = field(default_factory=list)
    high_precision_roles: list[str] = field(default_factory=list)
    low_coverage_roles: list[str] = field(default_factory=list)
    plays_it_safe_roles: list[str] = field(default_factory=list)
    sufficient_data: bool = False
    skipped_entries: int = 0
    malformed_entries: int = 0

    @property
    def hash_verification_failed(self) -> bool:
        return self.skipped_entries > 0

    def to_dict(self) -> dict:
        d = asdict(self)
        d["reviewers"] = {role: m.to_dict() for role, m in self.reviewers.items()}
        d["hash_verification_failed"] = self.hash_verification_failed
        return d


def _ratio(numerator: int, denominator: int) -> float:
    return round(numerator / denominator, 4) if denominator else 0.0


def aggregate(records: list[AuditRecord]) -> dict[str, ReviewerMetrics]:
    """Compute per-role metrics over a set of records, keyed by role (sorted)."""
    metrics: dict[str, ReviewerMetrics] = {}
    participations: dict[str, set[str]] = {}
    effects: dict[str, set[str]] = {}

    for record in records:
        accepted = set(record.suggestions_accepted)
        rejected = set(record.suggestions_rejected)
        roles_with_accepted = set()

        for finding in record.findings_detail:
            role = finding.reviewer_role
            m = metrics.setdefault(role, ReviewerMetrics(role=role))
            m.proposed += 1
            participations.setdefault(role, set()).add(record.timestamp)

            if finding.finding_id in accepted:
                m.accepted += 1
                roles_with_accepted.add(role)
            elif finding.finding_id in rejected:
                m.rejected += 1
                reason = record.rejection_details.get(finding.finding_id)
                if reason in _REJECTION_KINDS:
                    setattr(m, f"{reason}_rejected", getattr(m, f"{reason}_rejected") + 1)
                else:
                    m.unknown_rejected += 1

        if record.outcome in FAVOURABLE_OUTCOMES:
            for role in roles_with_accepted:
                effects.setdefault(role, set()).add(record.timestamp)

    total = len(records)
    for role, m in metrics.items():
        m.review_count = len(participations.get(role, ()))
        m.precision = _ratio(m.accepted, m.proposed)
        m.precision_strict = _ratio(m.accepted, m.accepted + m.invalid_rejected)
        m.coverage_ratio = _ratio(m.review_count, total)
        m.outcome_correlation = _ratio(len(effects.get(role, ())), m.review_count)

    return dict(sorted(metrics.items()))


def generate_report(
    records: list[AuditRecord],
    days: int | None = None,
    min_reviews: int = DEFAULT_MIN_REVIEWS,
    precision_threshold: float = DEFAULT_PRECISION_THRESHOLD,
    skipped: int = 0,
    malformed: int = 0,
) -> ReflectionReport:
    """Build a reflection report from already-loaded records.

    With too few outcome-bearing reviews the report carries no reviewer
    metrics and sufficient_data=False; it never raises for lack of data.
    """
    report = ReflectionReport(
        period=f"{days}d" if days is not None else "all",
        total_reviews=len(records),
        reviews_with_outcome=sum(1 for r in records if r.outcome != "pending"),
        skipped_entries=skipped,
        malformed_entries=malformed,
    )
    report.sufficient_data = bool(records) and report.reviews_with_outcome >= min_reviews
    if not report.sufficient_data:
        logger.debug(
            "Insufficient data: %d review(s) with outcome, %d required", report.reviews_with_outcome, min_reviews
        )
        return report

    report.reviewers = aggregate(records)
    for role, m in report.reviewers.items():
        if m.precision < precision_threshold:
            report.low_precision_roles.append(role)
        else:
            report.high_precision_roles.append(role)
        if m.coverage_ratio < COVERAGE_THRESHOLD:
            report.low_coverage_roles.append(role)
            if m.precision >= precision_threshold:
                report.plays_it_safe_roles.append(role)

    # reviewers is already sorted by role, so the lists above are too.
    return report


def reflect(
    store: BaseStore,
    days: int | None,
    min_reviews: int = DEFAULT_MIN_REVIEWS,
    precision_threshold: float = DEFAULT_PRECISION_THRESHOLD,
) -> ReflectionReport:
    """Load a window from the store and report on it."""
    loaded = store.load_window(days)
    return generate_report(
        loaded.records,
        days=days,
        min_reviews=min_reviews,
        precision_threshold=precision_threshold,
        skipped=loaded.skipped,
        malformed=loaded.malformed,
    )
