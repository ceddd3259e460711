"""Adaptive reviewer weighting.

Reviewer weights scale each role's score in the composite. Adaptation nudges
them towards precision: a role whose findings are accepted more often than
the portfolio average gains weight, one below average loses it.

The control loop is bounded by an absolute clamp, [0.5, 3.0] by default, and
nothing else: a single adaptation may move a weight anywhere inside the clamp.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

import yaml

from promptpanel_core.benchmark import BenchmarkResult, benchmark_weights
from promptpanel_core.config import load_config, read_config_file, reflection_settings, save_config
from promptpanel_core.reflection import (
    DEFAULT_MIN_REVIEWS,
    ReflectionReport,
    ReviewerMetrics,
    generate_report,
)
from promptpanel_store.base import BaseStore
from promptpanel_store.errors import PersistenceFailure
from promptpanel_store.fileio import path_lock
from promptpanel_store.models import AuditRecord, WeightHistoryEntry
from promptpanel_store.weights import WeightChangeLog

logger = logging.getLogger(__name__)

WEIGHT_CLAMP_MIN = 0.5
WEIGHT_CLAMP_MAX = 3.0
DEFAULT_WEIGHT = 1.0
HISTORY_LIMIT = 10
NEUTRAL_BAND = 0.05


@dataclass
class WeightSuggestion:
    role: str
    current: float
    suggested: float
    delta: float
    reason: str


@dataclass
class AdaptationPreview:
    report: ReflectionReport | None
    diff: list[WeightSuggestion] = field(default_factory=list)
    sufficient_data: bool = False
    error: str | None = None


@dataclass
class ApplyResult:
    success: bool
    diff: list[WeightSuggestion] = field(default_factory=list)
    report: ReflectionReport | None = None
    history_logged: bool = False  # weight-change log append succeeded
    error: str | None = None


@dataclass
class RoleImpact:
    role: str
    weight_before: float
    weight_after: float
    weight_delta: float
    precision_at_change: float | None = None
    precision_strict: float | None = None
    coverage_ratio: float | None = None


@dataclass
class AdaptationImpact:
    timestamp: str
    change_date: str
    period_days: int | None
    roles: list[RoleImpact] = field(default_factory=list)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def compute_weight_suggestions(
    metrics: dict[str, ReviewerMetrics],
    current_weights: dict[str, float] | None,
    min_reviews: int = DEFAULT_MIN_REVIEWS,
    clamp_min: float = WEIGHT_CLAMP_MIN,
    clamp_max: float = WEIGHT_CLAMP_MAX,
) -> list[WeightSuggestion]:
    """Scale each qualifying role's weight by precision / mean precision.

    Only roles with review_count >= min_reviews qualify; with none, the
    result is empty. If every qualifying role has zero precision there is no
    signal to scale by and weights are suggested unchanged.
    """
    current_weights = current_weights or {}
    qualifying = {role: m for role, m in metrics.items() if m.review_count >= min_reviews}
    if not qualifying:
        return []

    avg_precision = sum(m.precision for m in qualifying.values()) / len(qualifying)

    suggestions = []
    for role in sorted(qualifying):
        m = qualifying[role]
        current = current_weights.get(role)
        if current is None:
            current = DEFAULT_WEIGHT
        scale = m.precision / avg_precision if avg_precision > 0 else 1.0
        suggested = round(_clamp(current * scale, clamp_min, clamp_max), 2)
        delta = round(suggested - current, 2)

        pct = round(m.precision * 100)
        if delta > NEUTRAL_BAND:
            reason = f"High precision ({pct}%), increase weight"
        elif delta < -NEUTRAL_BAND:
            reason = f"Low precision ({pct}%), decrease weight"
        else:
            reason = "Near portfolio average precision"

        suggestions.append(WeightSuggestion(role, current, suggested, delta, reason))
    return suggestions


def compute_adaptation_impact(entries: list[WeightHistoryEntry]) -> list[AdaptationImpact]:
    """Summarise each weight change: per role before/after/delta and the metrics that drove it."""
    impacts = []
    for entry in entries:
        impact = AdaptationImpact(
            timestamp=entry.timestamp,
            change_date=entry.timestamp[:10],
            period_days=entry.measurement_period_days,
        )
        for role in sorted(set(entry.weights_before) | set(entry.weights_after)):
            before = entry.weights_before.get(role, DEFAULT_WEIGHT)
            after = entry.weights_after.get(role, before)
            metrics = entry.precision_at_change.get(role) or {}
            impact.roles.append(
                RoleImpact(
                    role=role,
                    weight_before=before,
                    weight_after=after,
                    weight_delta=round(after - before, 2),
                    precision_at_change=metrics.get("precision"),
                    precision_strict=metrics.get("precision_strict"),
                    coverage_ratio=metrics.get("coverage_ratio"),
                )
            )
        impacts.append(impact)
    return impacts


class AdaptationController:
    """Reads metrics from the audit store and rewrites scoring weights in the config.

    ``records`` arguments let callers (and tests) supply the window directly
    instead of loading it from the store.
    """

    def __init__(self, store: BaseStore, weight_log: WeightChangeLog, config_path: str | Path):
        self._store = store
        self._weight_log = weight_log
        self._config_path = str(config_path)

    def preview(self, days: int | None, records: list[AuditRecord] | None = None) -> AdaptationPreview:
        try:
            config = load_config(self._config_path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.warning("Cannot read config %s: %s", self._config_path, e)
            return AdaptationPreview(report=None, error=str(e))

        settings = reflection_settings(config)
        min_reviews = settings["min_reviews_for_adaptation"]
        report = self._report(days, records, min_reviews, settings)
        if not report.sufficient_data:
            return AdaptationPreview(report=report)

        current_weights = (config.get("scoring") or {}).get("weights") or {}
        diff = compute_weight_suggestions(
            report.reviewers,
            current_weights,
            min_reviews,
            clamp_min=settings["weight_clamp_min"],
            clamp_max=settings["weight_clamp_max"],
        )
        return AdaptationPreview(report=report, diff=diff, sufficient_data=True)

    def apply(self, days: int | None, records: list[AuditRecord] | None = None) -> ApplyResult:
        """Write suggested weights to the config and log the change.

        The config write is the commit point: if it fails, success is False
        and nothing changed. The weight-change log append afterwards is
        best-effort; its failure only shows up as history_logged=False.
        """
        preview = self.preview(days, records)
        if not preview.sufficient_data:
            return ApplyResult(success=False, report=preview.report, error=preview.error)

        with path_lock(self._config_path):
            try:
                raw = read_config_file(self._config_path)
            except (OSError, ValueError, yaml.YAMLError) as e:
                logger.warning("Cannot re-read config %s: %s", self._config_path, e)
                return ApplyResult(success=False, diff=preview.diff, report=preview.report, error=str(e))

            scoring = raw.get("scoring") or {}
            raw["scoring"] = scoring
            weights_before = dict(scoring.get("weights") or {})
            weights_after = dict(weights_before)
            for suggestion in preview.diff:
                weights_after[suggestion.role] = suggestion.suggested

            entry = WeightHistoryEntry(
                timestamp=datetime.now(timezone.utc).isoformat(),
                weights_before=weights_before,
                weights_after=weights_after,
                precision_at_change={
                    s.role: {
                        "precision": preview.report.reviewers[s.role].precision,
                        "precision_strict": preview.report.reviewers[s.role].precision_strict,
                        "coverage_ratio": preview.report.reviewers[s.role].coverage_ratio,
                    }
                    for s in preview.diff
                },
                measurement_period_days=days,
            )

            history = list(scoring.get("weights_history") or [])
            history.append(entry.to_dict())
            scoring["weights_history"] = history[-HISTORY_LIMIT:]
            scoring["weights"] = weights_after

            try:
                save_config(raw, self._config_path)
            except PersistenceFailure as e:
                return ApplyResult(success=False, diff=preview.diff, report=preview.report, error=str(e))

        # Weights are durable from here on; a crash before the append below
        # leaves the change unaudited in the weight-change log.
        logged = self._weight_log.append(entry)
        return ApplyResult(success=True, diff=preview.diff, report=preview.report, history_logged=logged.ok)

    def history(self) -> list[AdaptationImpact]:
        return compute_adaptation_impact(self._weight_log.entries())

    def benchmark(self, days: int | None, records: list[AuditRecord] | None = None) -> BenchmarkResult:
        config = load_config(self._config_path)
        weights = (config.get("scoring") or {}).get("weights") or {}
        if records is None:
            records = self._store.load_window(days).records
        return benchmark_weights(records, weights)

    def _report(
        self, days: int | None, records: list[AuditRecord] | None, min_reviews: int, settings: dict
    ) -> ReflectionReport:
        skipped = malformed = 0
        if records is None:
            loaded = self._store.load_window(days)
            records, skipped, malformed = loaded.records, loaded.skipped, loaded.malformed
        return generate_report(
            records,
            days=days,
            min_reviews=min_reviews,
            precision_threshold=settings["precision_threshold"],
            skipped=skipped,
            malformed=malformed,
        )
