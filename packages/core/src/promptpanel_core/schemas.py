"""Reviewer critique schema.

Reviewers return one JSON object each. Anything that fails validate_critique()
is dropped before merging so a single malformed reviewer cannot corrupt the
edit plan.
"""

from __future__ import annotations

import math

VALID_ROLES = ["domain_sme", "security", "clarity", "testing", "frontend_ux", "documentation"]

VALID_SEVERITIES = ["blocker", "major", "minor", "nit"]

SEVERITY_RANK = {"blocker": 4, "major": 3, "minor": 2, "nit": 1}

VALID_OPS = [
    "AddConstraint",
    "RemoveConstraint",
    "RefactorStructure",
    "ReplaceVague",
    "AddContext",
    "AddGuardrail",
    "AddAcceptanceCriteria",
]

VALID_TARGETS = ["constraints", "context", "output", "structure", "examples"]


def is_number(value) -> bool:
    """True for real, non-NaN numbers. bool is deliberately excluded."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


def validate_critique(critique) -> list[str]:
    """Return a list of schema errors; an empty list means the critique is valid."""
    if not isinstance(critique, dict):
        return ["Critique must be an object"]

    errors = []
    if critique.get("reviewer_role") not in VALID_ROLES:
        errors.append(f"Invalid reviewer_role: {critique.get('reviewer_role')}")
    if critique.get("severity_max") not in VALID_SEVERITIES:
        errors.append(f"Invalid severity_max: {critique.get('severity_max')}")

    confidence = critique.get("confidence")
    if not is_number(confidence) or not 0 <= confidence <= 1:
        errors.append(f"confidence must be a number between 0 and 1, got: {confidence}")

    findings = critique.get("findings")
    if not isinstance(findings, list):
        errors.append("findings must be an array")
        findings = []
    if not isinstance(critique.get("no_issues"), bool):
        errors.append("no_issues must be a boolean")

    if "score" in critique and critique["score"] is not None:
        score = critique["score"]
        if not is_number(score) or not 0 <= score <= 10:
            errors.append(f"score must be a number between 0 and 10, got: {score}")

    for finding in findings:
        if not isinstance(finding, dict):
            errors.append("Each finding must be an object")
            continue
        if not isinstance(finding.get("id"), str) or not finding.get("id"):
            errors.append("Each finding must have a string id")
        if finding.get("severity") not in VALID_SEVERITIES:
            errors.append(f"Invalid finding severity: {finding.get('severity')}")
        for op in finding.get("suggested_ops") or []:
            if not isinstance(op, dict) or op.get("op") not in VALID_OPS:
                errors.append(f"Invalid op: {op.get('op') if isinstance(op, dict) else op}")

    return errors
