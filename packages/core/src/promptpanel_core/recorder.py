"""Review recording: validated critiques in, one audit record out."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from promptpanel_core.config import DEFAULT_PRIORITY_ORDER
from promptpanel_core.merger import CompositeScore, MergeResult, build_findings_detail, compute_composite_score, merge_critiques
from promptpanel_core.schemas import validate_critique
from promptpanel_store.base import BaseStore, WriteResult
from promptpanel_store.models import AuditRecord

logger = logging.getLogger(__name__)

# USD per million tokens.
PRICING = {
    "claude-haiku-4-5": {"input": 1.0, "output": 5.0},
    "claude-sonnet-4-6": {"input": 3.0, "output": 15.0},
    "claude-opus-4-6": {"input": 5.0, "output": 25.0},
}


@dataclass
class ReviewResult:
    """Everything record_review() produced, so the CLI can report it."""

    record: AuditRecord
    merge: MergeResult
    score: CompositeScore | None
    write: WriteResult
    invalid_critiques: dict[str, list[str]] = field(default_factory=dict)


def hash_prompt(prompt: str) -> str:
    return hashlib.sha256(prompt.encode("utf-8")).hexdigest()[:12]


def estimate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """Estimated USD cost of a call; 0.0 for models without a known price."""
    pricing = PRICING.get(model)
    if pricing is None:
        return 0.0
    return (input_tokens * pricing["input"] + output_tokens * pricing["output"]) / 1_000_000


def record_review(
    store: BaseStore,
    prompt: str,
    critiques: list,
    config: dict,
    project: str = "",
    usage: dict | None = None,
    duration_ms: int = 0,
) -> ReviewResult:
    """Merge reviewer critiques and append the resulting pending audit record.

    Critiques that fail schema validation are dropped and reported back in
    ``invalid_critiques`` (keyed by role, or by position when the role is
    unusable). The store write is best-effort; check ``result.write.ok``.
    """
    valid = []
    invalid: dict[str, list[str]] = {}
    for i, critique in enumerate(critiques):
        errors = validate_critique(critique)
        if errors:
            key = critique.get("reviewer_role") if isinstance(critique, dict) else None
            invalid[str(key or f"#{i}")] = errors
            logger.warning("Dropping invalid critique %s: %s", key or f"#{i}", "; ".join(errors))
        else:
            valid.append(critique)

    priority_order = (config.get("editor") or {}).get("priority_order") or DEFAULT_PRIORITY_ORDER
    merged = merge_critiques(valid, priority_order)

    scoring = config.get("scoring") or {}
    score = compute_composite_score(valid, scoring.get("weights")) if scoring.get("enabled") else None

    usage = usage or {}
    input_tokens = int(usage.get("input_tokens") or 0)
    output_tokens = int(usage.get("output_tokens") or 0)
    model = (config.get("models") or {}).get("reviewer", "")

    record = AuditRecord(
        timestamp=datetime.now(timezone.utc).isoformat(),
        project=project,
        prompt_hash=hash_prompt(prompt),
        reviewers_active=[c["reviewer_role"] for c in valid],
        findings_detail=build_findings_detail(merged.all_ops),
        severity_max=merged.severity_max,
        conflicts=len(merged.conflicts),
        outcome="pending",
        scores=dict(score.scores) if score else {},
        composite_score=score.composite if score else None,
        cost={
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "usd": round(estimate_cost(model, input_tokens, output_tokens), 6),
        },
        duration_ms=duration_ms,
    )

    write = store.append(record)
    return ReviewResult(record=record, merge=merged, score=score, write=write, invalid_critiques=invalid)
