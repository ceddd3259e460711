"""Critique merging: turns several reviewers' critiques into one ordered edit plan."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field

from promptpanel_core.schemas import SEVERITY_RANK, is_number
from promptpanel_store.models import Finding

logger = logging.getLogger(__name__)

_ADD_OPS = ("AddConstraint", "AddGuardrail")
_REMOVE_OP = "RemoveConstraint"
_SEVERITY_NAMES = {rank: name for name, rank in SEVERITY_RANK.items()}


@dataclass
class EditOp:
    """One suggested edit, tagged with the finding and reviewer it came from."""

    reviewer_role: str
    finding_id: str | None
    severity: str
    op: str
    target: str | None
    value: str | None
    confidence: float | None = None
    issue: str = ""
    evidence: str = ""
    original: str | None = None


@dataclass
class Conflict:
    target: str | None
    ops: tuple[EditOp, EditOp]  # (add, remove)
    type: str = "add_remove_conflict"
    resolution: str = "Higher-priority reviewer wins"


@dataclass
class MergeResult:
    all_ops: list[EditOp] = field(default_factory=list)
    conflicts: list[Conflict] = field(default_factory=list)
    no_changes: bool = False
    severity_max: str = "nit"


@dataclass
class CompositeScore:
    composite: float | None
    scores: dict[str, float] = field(default_factory=dict)


def _rank(severity: str | None) -> int:
    return SEVERITY_RANK.get(severity or "", 0)


def extract_ops(critiques: list[dict]) -> list[EditOp]:
    """Flatten every finding's suggested_ops into one list."""
    ops = []
    for critique in critiques:
        if critique.get("no_issues") or not critique.get("findings"):
            continue
        role = critique.get("reviewer_role", "unknown")
        for finding in critique["findings"]:
            for op in finding.get("suggested_ops") or []:
                ops.append(
                    EditOp(
                        reviewer_role=role,
                        finding_id=finding.get("id"),
                        severity=finding.get("severity", "nit"),
                        confidence=finding.get("confidence"),
                        issue=finding.get("issue") or "",
                        evidence=finding.get("evidence") or "",
                        op=op.get("op"),
                        target=op.get("target"),
                        value=op.get("value"),
                        original=op.get("original"),
                    )
                )
    return ops


def deduplicate_ops(ops: list[EditOp]) -> list[EditOp]:
    """Collapse identical (op, target, value) edits, keeping the most severe.

    Ties keep the first one seen. Output follows first-seen key order.
    """
    seen: dict[tuple, EditOp] = {}
    for op in ops:
        key = (op.op, op.target, op.value)
        existing = seen.get(key)
        if existing is None or _rank(op.severity) > _rank(existing.severity):
            seen[key] = op
    return list(seen.values())


def detect_conflicts(ops: list[EditOp]) -> list[Conflict]:
    """Find add-vs-remove pairs on the same target with the same value (case-insensitive)."""
    by_target: dict[str | None, list[EditOp]] = {}
    for op in ops:
        by_target.setdefault(op.target, []).append(op)

    conflicts = []
    for target, target_ops in by_target.items():
        adds = [o for o in target_ops if o.op in _ADD_OPS]
        removes = [o for o in target_ops if o.op == _REMOVE_OP]
        for add in adds:
            for remove in removes:
                if add.value and remove.value and add.value.lower() == remove.value.lower():
                    conflicts.append(Conflict(target=target, ops=(add, remove)))
    return conflicts


def apply_priority_order(ops: list[EditOp], priority_order: list[str]) -> list[EditOp]:
    """Stable-sort ops by their reviewer's position in priority_order.

    Roles missing from the list sort after every listed role, in input order.
    """
    unlisted = len(priority_order)
    index = {role: i for i, role in reversed(list(enumerate(priority_order)))}
    return sorted(ops, key=lambda op: index.get(op.reviewer_role, unlisted))


def severity_max(ops: list[EditOp]) -> str:
    top = max((_rank(op.severity) for op in ops), default=0)
    return _SEVERITY_NAMES.get(top, "nit")


def merge_critiques(critiques: list[dict], priority_order: list[str]) -> MergeResult:
    raw_ops = extract_ops(critiques)

    if not raw_ops:
        return MergeResult(no_changes=all(c.get("no_issues") for c in critiques))

    deduped = deduplicate_ops(raw_ops)
    conflicts = detect_conflicts(deduped)
    ordered = apply_priority_order(deduped, priority_order)
    if conflicts:
        logger.debug("Detected %d conflicting edit pair(s)", len(conflicts))

    return MergeResult(
        all_ops=ordered,
        conflicts=conflicts,
        no_changes=False,
        severity_max=severity_max(ordered),
    )


def compute_composite_score(critiques: list[dict], weights: dict | None) -> CompositeScore:
    """Weighted mean of reviewer scores: sum(score * weight) / sum(weight).

    Critiques without a usable score (missing, NaN, non-numeric, outside
    [0, 10]) are left out of both sums. Unweighted roles count as 1.0; a
    weight of 0 drops the role from the composite.
    """
    weights = weights or {}
    scores = {}
    numerator = 0.0
    denominator = 0.0

    for critique in critiques:
        score = critique.get("score")
        if not is_number(score) or not 0 <= score <= 10:
            continue
        role = critique.get("reviewer_role")
        weight = weights.get(role)
        if weight is None:
            weight = 1.0
        scores[role] = score
        numerator += score * weight
        denominator += weight

    composite = round(numerator / denominator, 2) if denominator > 0 else None
    return CompositeScore(composite=composite, scores=scores)


def build_findings_detail(ops: list[EditOp]) -> list[Finding]:
    """Map merged ops to the findings persisted with the audit record."""
    findings = []
    for op in ops:
        role = op.reviewer_role or "unknown"
        findings.append(
            Finding(
                reviewer_role=role,
                finding_id=op.finding_id or f"{role}-{secrets.token_hex(3)}",
                severity=op.severity or "nit",
                op=op.op,
                target=op.target,
                value=op.value,
                issue=op.issue,
            )
        )
    return findings
