"""Unit tests for the rule engine."""

from __future__ import annotations

import pytest

from plan_inspector.detectors import (
    CrossJoinDetector,
    UnusedCteDetector,
    default_detectors,
)
from plan_inspector.query_model import ingest
from plan_inspector.rule_engine import (
    DetectionContext,
    RuleDetector,
    RuleEngine,
    RuleEvaluationError,
    RuleSeverity,
)
from plan_inspector.rule_engine.shared import STATEMENT_LOCATION
from tests.fixtures import cte, join, select, table, tree


class ShapeErrorDetector(RuleDetector):
    def __init__(self) -> None:
        super().__init__(rule_id="shape-error", severity=RuleSeverity.CRITICAL, cost_multiplier=7.0)

    def _detect_findings(self, model, context):
        raise RuleEvaluationError(self.rule_id, "unexpected join shape")


class CrashingDetector(RuleDetector):
    def __init__(self) -> None:
        super().__init__(rule_id="crashing", severity=RuleSeverity.WARNING)

    def _detect_findings(self, model, context):
        return model.ctes[99]


def _model():
    return ingest(
        tree(
            cte("pairs", select(table("a"), table("b"), joins=[join("b", "cross")])),
            cte("dead", select(table("c"))),
            final=select(table("pairs")),
        )
    )


def test_rule_evaluation_error_becomes_info_finding():
    findings = ShapeErrorDetector().detect(_model(), DetectionContext())

    assert len(findings) == 1
    finding = findings[0]
    assert finding.rule_id == "shape-error"
    assert finding.severity == RuleSeverity.INFO
    assert finding.location.cte == STATEMENT_LOCATION
    assert finding.location.cte_index == -1
    assert "unexpected join shape" in finding.context["error"]


def test_failing_detector_does_not_abort_the_others():
    engine = RuleEngine([CrashingDetector(), CrossJoinDetector(), UnusedCteDetector()], max_workers=2)

    findings = engine.run(_model())

    assert [f.rule_id for f in findings] == ["crashing", "cross-join-without-filter", "unused-cte"]
    assert "IndexError" in findings[0].context["error"]


def test_findings_are_merged_in_registration_order():
    engine = RuleEngine([UnusedCteDetector(), CrossJoinDetector()], max_workers=4)

    assert [f.rule_id for f in engine.run(_model())] == ["unused-cte", "cross-join-without-filter"]


def test_parallel_and_sequential_runs_agree():
    model = _model()

    parallel = RuleEngine(default_detectors(), max_workers=8).run(model)
    sequential = RuleEngine(default_detectors(), max_workers=1).run(model)

    assert parallel == sequential


def test_rule_ids_in_registration_order():
    engine = RuleEngine([UnusedCteDetector(), CrossJoinDetector()])

    assert engine.rule_ids == ("unused-cte", "cross-join-without-filter")


def test_invalid_worker_count_is_rejected():
    with pytest.raises(ValueError, match="max_workers"):
        RuleEngine(default_detectors(), max_workers=0)


def test_duplicate_rule_ids_are_rejected():
    with pytest.raises(ValueError, match="unused-cte"):
        RuleEngine([UnusedCteDetector(), UnusedCteDetector()])
