"""Unit tests for report building and rendering."""

from __future__ import annotations

import json

from plan_inspector import analyze
from plan_inspector.detectors import default_detectors
from plan_inspector.reporting import ReportBuilder, render_json, render_text
from plan_inspector.rule_engine import Finding, Location, RuleSeverity
from tests.fixtures import cte, join, select, star, table, tree

RULE_IDS = [detector.rule_id for detector in default_detectors()]


def _finding(rule_id, severity, cte_index, clause="statement", clause_index=0, cte=None):
    return Finding(
        rule_id=rule_id,
        severity=severity,
        location=Location(cte=cte or f"cte_{cte_index}", cte_index=cte_index, clause=clause, clause_index=clause_index),
        rationale=f"{rule_id} at {cte_index}",
    )


def test_findings_sorted_by_severity_then_position():
    findings = [
        _finding("unused-cte", RuleSeverity.INFO, 0),
        _finding("self-join", RuleSeverity.WARNING, 5, "join"),
        _finding("cross-join-without-filter", RuleSeverity.CRITICAL, 3, "join"),
        _finding("non-sargable-predicate", RuleSeverity.WARNING, 5, "where", 1),
        _finding("non-sargable-predicate", RuleSeverity.WARNING, 5, "where", 0),
        _finding("unfiltered-full-scan", RuleSeverity.CRITICAL, 1, "from"),
        _finding("redundant-source-scan", RuleSeverity.WARNING, 2, "from"),
    ]

    report = ReportBuilder(RULE_IDS).build(findings)

    assert [(f.rule_id, f.location.cte_index, f.location.clause_index) for f in report.findings] == [
        ("unfiltered-full-scan", 1, 0),
        ("cross-join-without-filter", 3, 0),
        ("redundant-source-scan", 2, 0),
        ("self-join", 5, 0),
        ("non-sargable-predicate", 5, 0),
        ("non-sargable-predicate", 5, 1),
        ("unused-cte", 0, 0),
    ]


def test_statement_level_findings_come_first_within_severity():
    findings = [
        _finding("unused-cte", RuleSeverity.INFO, 0),
        _finding("select-star", RuleSeverity.INFO, -1, cte="<statement>"),
    ]

    report = ReportBuilder(RULE_IDS).build(findings)

    assert report.findings[0].location.cte == "<statement>"


def test_summary_includes_rules_without_findings():
    report = ReportBuilder(RULE_IDS).build([_finding("unused-cte", RuleSeverity.INFO, 0)])

    assert list(report.summary) == RULE_IDS
    assert report.summary["unused-cte"] == 1
    assert report.summary["self-join"] == 0
    assert report.severity_counts == {"critical": 0, "warning": 0, "info": 1}
    assert not report.has_critical()


def test_filter_drops_lower_severities_and_recounts():
    findings = [
        _finding("unused-cte", RuleSeverity.INFO, 0),
        _finding("cross-join-without-filter", RuleSeverity.CRITICAL, 3, "join"),
    ]
    report = ReportBuilder(RULE_IDS).build(findings)

    filtered = report.filter("warning")

    assert [f.rule_id for f in filtered.findings] == ["cross-join-without-filter"]
    assert filtered.summary["unused-cte"] == 0
    assert filtered.severity_counts["info"] == 0
    assert filtered.has_critical()
    assert report.finding_count == 2


def test_analysis_is_idempotent():
    raw = tree(
        cte("all_orders", select(table("stg_orders"), columns=[star()])),
        cte("pairs", select(table("all_orders", "a"), table("customers", "c"), joins=[join("c", "cross")])),
    )

    first = render_json(analyze(raw))
    second = render_json(analyze(raw))

    assert first == second


def test_json_report_layout():
    report = ReportBuilder(RULE_IDS).build(
        [_finding("cross-join-without-filter", RuleSeverity.CRITICAL, 3, "join")], query_id="abc"
    )

    document = json.loads(render_json(report))

    assert document["query_id"] == "abc"
    assert document["severity_counts"]["critical"] == 1
    assert document["summary"]["cross-join-without-filter"] == 1
    record = document["findings"][0]
    assert record["rule"] == "cross-join-without-filter"
    assert record["severity"] == "critical"
    assert record["location"] == {"cte": "cte_3", "cte_index": 3, "clause": "join", "clause_index": 0}
    assert record["cost_multiplier"] == 1.0


def test_text_report_numbers_findings():
    report = ReportBuilder(RULE_IDS).build(
        [
            _finding("cross-join-without-filter", RuleSeverity.CRITICAL, 3, "join"),
            _finding("unused-cte", RuleSeverity.INFO, 0),
        ],
        source="model.sql",
    )

    text = render_text(report)

    assert "1. cross-join-without-filter [CRITICAL] at cte_3 (join)" in text
    assert "2. unused-cte [INFO] at cte_0" in text
    assert "Total: 1 critical, 0 warning, 1 info (2 finding(s))" in text


def test_text_report_without_findings():
    report = ReportBuilder(RULE_IDS).build([], source="model.sql")

    assert render_text(report) == "No findings at or above 'info' (model.sql)"
