"""Tests for review recording, critique validation and cost estimation."""

from unittest.mock import MagicMock

import pytest

from promptpanel_core.config import load_config
from promptpanel_core.recorder import estimate_cost, hash_prompt, record_review
from promptpanel_core.schemas import validate_critique
from promptpanel_store.base import BaseStore, WriteResult
from promptpanel_store.integrity import verify
from promptpanel_store.jsonl import JsonlAuditStore


def _critique(role, findings=None, score=None, no_issues=False):
    critique = {
        "reviewer_role": role,
        "severity_max": "minor",
        "confidence": 0.8,
        "findings": findings or [],
        "no_issues": no_issues,
    }
    if score is not None:
        critique["score"] = score
    return critique


def _finding(fid, severity="minor", value=None):
    return {
        "id": fid,
        "severity": severity,
        "confidence": 0.9,
        "issue": "too vague",
        "evidence": "do the thing",
        "suggested_ops": [{"op": "AddConstraint", "target": "constraints", "value": value or fid}],
    }


@pytest.fixture
def config(tmp_path):
    return load_config(config_path=str(tmp_path / "missing.yml"))


@pytest.fixture
def mock_store():
    store = MagicMock(spec=BaseStore)
    store.append.return_value = WriteResult(ok=True, path="logs/2026-10-18.jsonl")
    return store


class TestValidateCritique:
    def test_valid_critique(self):
        assert validate_critique(_critique("security", [_finding("SEC-001")], score=7)) == []

    def test_not_a_dict(self):
        assert validate_critique(["nope"]) == ["Critique must be an object"]

    @pytest.mark.parametrize(
        "field,value,fragment",
        [
            ("reviewer_role", "poet", "reviewer_role"),
            ("severity_max", "catastrophic", "severity_max"),
            ("confidence", 1.5, "confidence"),
            ("confidence", True, "confidence"),
            ("findings", "none", "findings"),
            ("no_issues", "yes", "no_issues"),
            ("score", 11, "score"),
            ("score", float("nan"), "score"),
        ],
    )
    def test_invalid_fields(self, field, value, fragment):
        critique = _critique("security")
        critique[field] = value
        errors = validate_critique(critique)
        assert any(fragment in e for e in errors)

    def test_missing_score_is_fine(self):
        assert validate_critique(_critique("clarity")) == []

    def test_invalid_finding_op(self):
        finding = _finding("CLR-001")
        finding["suggested_ops"] = [{"op": "Rewrite", "target": "context", "value": "x"}]
        errors = validate_critique(_critique("clarity", [finding]))
        assert errors == ["Invalid op: Rewrite"]

    def test_finding_without_id(self):
        finding = _finding("")
        assert "Each finding must have a string id" in validate_critique(_critique("clarity", [finding]))


class TestHashAndCost:
    def test_hash_prompt_is_stable_and_short(self):
        assert hash_prompt("Summarise the doc") == hash_prompt("Summarise the doc")
        assert len(hash_prompt("Summarise the doc")) == 12
        assert hash_prompt("a") != hash_prompt("b")

    def test_estimate_cost_known_model(self):
        # 1M input at $1 + 1M output at $5
        assert estimate_cost("claude-haiku-4-5", 1_000_000, 1_000_000) == 6.0

    def test_estimate_cost_unknown_model(self):
        assert estimate_cost("some-other-model", 5000, 5000) == 0.0


class TestRecordReview:
    def test_builds_pending_record(self, mock_store, config):
        critiques = [
            _critique("clarity", [_finding("CLR-001", "minor")], score=6),
            _critique("security", [_finding("SEC-001", "major")], score=8),
        ]

        result = record_review(mock_store, "Write a haiku", critiques, config, project="demo", duration_ms=1200)

        record = result.record
        assert record.outcome == "pending"
        assert record.project == "demo"
        assert record.prompt_hash == hash_prompt("Write a haiku")
        assert record.reviewers_active == ["clarity", "security"]
        # Priority order puts security ahead of clarity.
        assert [f.finding_id for f in record.findings_detail] == ["SEC-001", "CLR-001"]
        assert record.severity_max == "major"
        assert record.scores == {"clarity": 6, "security": 8}
        assert record.composite_score == 7.0
        assert record.duration_ms == 1200
        mock_store.append.assert_called_once_with(record)
        assert result.write.ok is True

    def test_invalid_critiques_dropped(self, mock_store, config):
        bad = _critique("security")
        bad["confidence"] = "high"
        critiques = [bad, _critique("clarity", [_finding("CLR-001")]), "garbage"]

        result = record_review(mock_store, "p", critiques, config)

        assert result.record.reviewers_active == ["clarity"]
        assert set(result.invalid_critiques) == {"security", "#2"}

    def test_conflicts_counted(self, mock_store, config):
        remove = _finding("CLR-001")
        remove["suggested_ops"] = [{"op": "RemoveConstraint", "target": "constraints", "value": "Be brief"}]
        critiques = [
            _critique("clarity", [remove]),
            _critique("security", [_finding("SEC-001", value="be brief")]),
        ]
        result = record_review(mock_store, "p", critiques, config)
        assert result.record.conflicts == 1
        assert len(result.merge.conflicts) == 1

    def test_scoring_disabled(self, mock_store, config):
        config["scoring"]["enabled"] = False
        result = record_review(mock_store, "p", [_critique("security", score=9)], config)
        assert result.score is None
        assert result.record.scores == {}
        assert result.record.composite_score is None

    def test_uses_configured_weights(self, mock_store, config):
        config["scoring"]["weights"] = {"security": 3.0}
        critiques = [_critique("security", score=8), _critique("clarity", score=4)]
        assert record_review(mock_store, "p", critiques, config).record.composite_score == 7.0

    def test_cost_from_usage(self, mock_store, config):
        usage = {"input_tokens": 2000, "output_tokens": 1000}
        cost = record_review(mock_store, "p", [], config, usage=usage).record.cost
        assert cost == {"input_tokens": 2000, "output_tokens": 1000, "usd": 0.007}

    def test_null_usage_counts_as_zero(self, mock_store, config):
        usage = {"input_tokens": None, "output_tokens": None}
        cost = record_review(mock_store, "p", [], config, usage=usage).record.cost
        assert cost == {"input_tokens": 0, "output_tokens": 0, "usd": 0.0}

    def test_write_failure_reported_not_raised(self, mock_store, config):
        mock_store.append.return_value = WriteResult(ok=False, error="disk full")
        result = record_review(mock_store, "p", [_critique("security")], config)
        assert result.write.ok is False
        assert result.record.prompt_hash == hash_prompt("p")

    def test_persisted_record_verifies(self, tmp_path, config):
        store = JsonlAuditStore(tmp_path)
        result = record_review(store, "Explain DNS", [_critique("security", [_finding("SEC-001")], score=5)], config)

        loaded = store.load_window(days=1)

        assert result.write.ok is True
        assert len(loaded.records) == 1
        assert loaded.records[0].prompt_hash == result.record.prompt_hash
        assert verify(loaded.records[0]).valid is True
