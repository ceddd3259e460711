"""Tests for critique merging and composite scoring."""

import math

from promptpanel_core.merger import (
    EditOp,
    apply_priority_order,
    build_findings_detail,
    compute_composite_score,
    deduplicate_ops,
    detect_conflicts,
    extract_ops,
    merge_critiques,
    severity_max,
)


def _op(role="security", op="AddConstraint", target="constraints", value="x", severity="minor", finding_id=None):
    return EditOp(
        reviewer_role=role,
        finding_id=finding_id or f"{role}-1",
        severity=severity,
        op=op,
        target=target,
        value=value,
    )


def _critique(role, findings=None, no_issues=False, score=None):
    critique = {
        "reviewer_role": role,
        "severity_max": "nit",
        "confidence": 0.8,
        "findings": findings or [],
        "no_issues": no_issues,
    }
    if score is not None:
        critique["score"] = score
    return critique


def _finding(fid, severity="minor", ops=None, issue="issue"):
    return {
        "id": fid,
        "severity": severity,
        "confidence": 0.9,
        "issue": issue,
        "evidence": "quoted text",
        "suggested_ops": ops if ops is not None else [{"op": "AddConstraint", "target": "constraints", "value": fid}],
    }


class TestExtractOps:
    def test_flattens_ops_with_origin(self):
        critiques = [
            _critique(
                "security",
                [_finding("SEC-001", "major", [{"op": "AddGuardrail", "target": "constraints", "value": "No secrets"}])],
            )
        ]
        ops = extract_ops(critiques)
        assert len(ops) == 1
        assert ops[0].reviewer_role == "security"
        assert ops[0].finding_id == "SEC-001"
        assert ops[0].severity == "major"
        assert ops[0].confidence == 0.9
        assert ops[0].value == "No secrets"
        assert ops[0].original is None

    def test_skips_no_issue_critiques(self):
        critiques = [_critique("clarity", [_finding("CLR-001")], no_issues=True)]
        assert extract_ops(critiques) == []

    def test_findings_without_ops_contribute_nothing(self):
        critiques = [_critique("testing", [_finding("TST-001", ops=[])])]
        assert extract_ops(critiques) == []


class TestDeduplicateOps:
    def test_keeps_first_on_equal_severity(self):
        first = _op(role="security", severity="minor")
        second = _op(role="clarity", severity="minor")
        assert deduplicate_ops([first, second]) == [first]

    def test_higher_severity_replaces(self):
        first = _op(role="clarity", severity="nit")
        second = _op(role="security", severity="blocker")
        assert deduplicate_ops([first, second]) == [second]

    def test_lower_severity_does_not_replace(self):
        first = _op(role="security", severity="major")
        second = _op(role="clarity", severity="minor")
        assert deduplicate_ops([first, second]) == [first]

    def test_distinct_values_kept(self):
        ops = [_op(value="a"), _op(value="b"), _op(op="AddContext", value="a")]
        assert len(deduplicate_ops(ops)) == 3


class TestDetectConflicts:
    def test_case_insensitive_add_remove_conflict(self):
        add = _op(role="security", op="AddGuardrail", target="x", value="No secrets")
        remove = _op(role="clarity", op="RemoveConstraint", target="x", value="no secrets")

        conflicts = detect_conflicts([add, remove])

        assert len(conflicts) == 1
        assert conflicts[0].ops == (add, remove)
        assert conflicts[0].target == "x"
        assert conflicts[0].type == "add_remove_conflict"
        assert "priority" in conflicts[0].resolution.lower()

    def test_different_targets_do_not_conflict(self):
        add = _op(op="AddConstraint", target="constraints", value="v")
        remove = _op(op="RemoveConstraint", target="context", value="v")
        assert detect_conflicts([add, remove]) == []

    def test_different_values_do_not_conflict(self):
        add = _op(op="AddConstraint", value="v1")
        remove = _op(op="RemoveConstraint", value="v2")
        assert detect_conflicts([add, remove]) == []

    def test_two_adds_do_not_conflict(self):
        assert detect_conflicts([_op(op="AddConstraint"), _op(op="AddGuardrail")]) == []

    def test_empty_values_ignored(self):
        add = _op(op="AddConstraint", value="")
        remove = _op(op="RemoveConstraint", value="")
        assert detect_conflicts([add, remove]) == []


class TestApplyPriorityOrder:
    def test_listed_roles_first_unlisted_last(self):
        ops = [_op(role="clarity"), _op(role="security"), _op(role="testing")]
        ordered = apply_priority_order(ops, ["security", "testing"])
        assert [o.reviewer_role for o in ordered] == ["security", "testing", "clarity"]

    def test_stable_within_same_role(self):
        ops = [_op(role="testing", value="1"), _op(role="security", value="2"), _op(role="testing", value="3")]
        ordered = apply_priority_order(ops, ["security", "testing"])
        assert [o.value for o in ordered] == ["2", "1", "3"]

    def test_unlisted_roles_keep_relative_order(self):
        ops = [_op(role="documentation"), _op(role="clarity"), _op(role="security")]
        ordered = apply_priority_order(ops, ["security"])
        assert [o.reviewer_role for o in ordered] == ["security", "documentation", "clarity"]

    def test_does_not_mutate_input(self):
        ops = [_op(role="clarity"), _op(role="security")]
        apply_priority_order(ops, ["security"])
        assert ops[0].reviewer_role == "clarity"


class TestSeverityMax:
    def test_defaults_to_nit(self):
        assert severity_max([]) == "nit"

    def test_picks_highest(self):
        assert severity_max([_op(severity="minor"), _op(severity="blocker"), _op(severity="nit")]) == "blocker"


class TestMergeCritiques:
    def test_all_no_issues_is_no_change(self):
        result = merge_critiques([_critique("security", no_issues=True), _critique("clarity", no_issues=True)], [])
        assert result.no_changes is True
        assert result.all_ops == []
        assert result.severity_max == "nit"

    def test_empty_findings_without_no_issues_flag_is_not_no_change(self):
        result = merge_critiques([_critique("security"), _critique("clarity", no_issues=True)], [])
        assert result.no_changes is False
        assert result.all_ops == []

    def test_full_merge(self):
        critiques = [
            _critique(
                "clarity",
                [_finding("CLR-001", "minor", [{"op": "RemoveConstraint", "target": "constraints", "value": "Be safe"}])],
            ),
            _critique(
                "security",
                [_finding("SEC-001", "blocker", [{"op": "AddGuardrail", "target": "constraints", "value": "be safe"}])],
            ),
        ]

        result = merge_critiques(critiques, ["security", "clarity"])

        assert result.no_changes is False
        assert [o.reviewer_role for o in result.all_ops] == ["security", "clarity"]
        assert len(result.conflicts) == 1
        assert result.severity_max == "blocker"


class TestCompositeScore:
    def test_weighted_mean(self):
        critiques = [_critique("security", score=8), _critique("testing", score=5)]
        result = compute_composite_score(critiques, {"security": 2, "testing": 1})
        assert result.composite == round((8 * 2 + 5 * 1) / 3, 2) == 7.0
        assert result.scores == {"security": 8, "testing": 5}

    def test_missing_weight_defaults_to_one(self):
        critiques = [_critique("security", score=9), _critique("clarity", score=3)]
        assert compute_composite_score(critiques, {"security": 1.0}).composite == 6.0

    def test_zero_weight_drops_role(self):
        critiques = [_critique("security", score=8), _critique("testing", score=2)]
        assert compute_composite_score(critiques, {"security": 1.0, "testing": 0}).composite == 8.0

    def test_all_zero_weights_give_none(self):
        critiques = [_critique("security", score=8), _critique("testing", score=2)]
        assert compute_composite_score(critiques, {"security": 0, "testing": 0.0}).composite is None

    def test_unusable_scores_excluded_not_zero_filled(self):
        critiques = [
            _critique("security", score=8),
            _critique("clarity", score=math.nan),
            _critique("testing", score=11),
            _critique("documentation", score="7"),
            _critique("domain_sme"),
        ]
        result = compute_composite_score(critiques, {})
        assert result.composite == 8.0
        assert result.scores == {"security": 8}

    def test_none_when_no_scores(self):
        assert compute_composite_score([_critique("security")], {}).composite is None

    def test_rounds_to_two_decimals(self):
        critiques = [_critique("security", score=7), _critique("testing", score=8), _critique("clarity", score=8)]
        assert compute_composite_score(critiques, None).composite == 7.67


class TestBuildFindingsDetail:
    def test_maps_ops_to_findings(self):
        findings = build_findings_detail([_op(role="security", finding_id="SEC-001", severity="major")])
        assert findings[0].finding_id == "SEC-001"
        assert findings[0].reviewer_role == "security"
        assert findings[0].severity == "major"

    def test_generates_id_when_missing(self):
        op = _op(role="testing")
        op.finding_id = None
        findings = build_findings_detail([op])
        assert findings[0].finding_id.startswith("testing-")
