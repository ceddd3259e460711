"""Benchmark: do the current weights separate good reviews from bad ones better than uniform weights?

Each scored review is re-scored twice from its stored per-role scores, once
with the configured weights and once with every weight at 1.0. A useful
weighting pushes approved/edited reviews and rejected reviews further apart.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from statistics import mean

from promptpanel_core.merger import compute_composite_score
from promptpanel_store.models import AuditRecord

FAVOURABLE_OUTCOMES = ("approved", "edited")


@dataclass
class WeightingStats:
    mean_composite: float | None = None
    favourable_mean: float | None = None
    rejected_mean: float | None = None

    @property
    def separation(self) -> float | None:
        if self.favourable_mean is None or self.rejected_mean is None:
            return None
        return round(self.favourable_mean - self.rejected_mean, 2)


@dataclass
class BenchmarkResult:
    weights: dict[str, float]
    scored_reviews: int = 0
    current: WeightingStats = field(default_factory=WeightingStats)
    uniform: WeightingStats = field(default_factory=WeightingStats)

    @property
    def winner(self) -> str | None:
        """Which weighting separates outcomes better; None when it cannot be measured."""
        cur, uni = self.current.separation, self.uniform.separation
        if cur is None or uni is None:
            return None
        if cur > uni:
            return "current"
        if uni > cur:
            return "uniform"
        return "tie"


def _mean(values: list[float]) -> float | None:
    return round(mean(values), 2) if values else None


def _stats(rows: list[tuple[str, float]]) -> WeightingStats:
    return WeightingStats(
        mean_composite=_mean([c for _, c in rows]),
        favourable_mean=_mean([c for outcome, c in rows if outcome in FAVOURABLE_OUTCOMES]),
        rejected_mean=_mean([c for outcome, c in rows if outcome == "rejected"]),
    )


def benchmark_weights(records: list[AuditRecord], weights: dict[str, float]) -> BenchmarkResult:
    current_rows = []
    uniform_rows = []
    for record in records:
        critiques = [{"reviewer_role": role, "score": score} for role, score in record.scores.items()]
        current = compute_composite_score(critiques, weights).composite
        if current is None:
            continue
        uniform = compute_composite_score(critiques, {}).composite
        current_rows.append((record.outcome, current))
        uniform_rows.append((record.outcome, uniform))

    return BenchmarkResult(
        weights=dict(weights),
        scored_reviews=len(current_rows),
        current=_stats(current_rows),
        uniform=_stats(uniform_rows),
    )
