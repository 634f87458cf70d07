"""End-to-end analysis of the dbt models shipped as fixtures."""

from __future__ import annotations

import json

import pytest

from plan_inspector import analyze, render_json, render_text
from plan_inspector.rule_engine import RuleSeverity
from tests.fixtures import CUSTOMERS_MODEL


def _ctes(report, rule_id):
    return {finding.location.cte for finding in report.by_rule(rule_id)}


@pytest.mark.parametrize(
    "rule_id, expected",
    [
        ("cross-join-without-filter", {"customer_order_cross", "triple_cross"}),
        ("self-join", {"customer_self_join", "order_self_join"}),
        ("unused-cte", {"unused_cte_1", "unused_cte_2", "unused_cte_3"}),
        ("correlated-subquery", {"customer_with_correlated_stats"}),
        ("materialize-time-order-by", {"sorted_customers", "sorted_orders"}),
        ("excessive-window-functions", {"window_heavy_customers"}),
        ("union-all-fan-out", {"payment_method_counts", "order_status_counts"}),
        ("non-sargable-predicate", {"filtered_by_functions"}),
        ("redundant-source-scan", {"customers_scan_2", "orders_scan_2"}),
        ("redundant-aggregation", {"redundant_order_stats"}),
        ("unfiltered-full-scan", {"all_customers", "all_orders"}),
    ],
)
def test_customers_model_findings(customers_report, rule_id, expected):
    assert expected <= _ctes(customers_report, rule_id)


def test_customers_model_is_critical(customers_report):
    assert customers_report.has_critical()
    assert customers_report.source == str(CUSTOMERS_MODEL)
    assert customers_report.query_id
    assert sum(customers_report.summary.values()) == customers_report.finding_count


def test_correlated_subqueries_are_counted_per_column(customers_report):
    finding = customers_report.by_rule("correlated-subquery")[0]

    assert finding.severity == RuleSeverity.WARNING
    assert finding.location.cte == "customer_with_correlated_stats"
    assert len(customers_report.by_rule("correlated-subquery")) >= 4


@pytest.mark.parametrize(
    "rule_id, expected",
    [
        ("redundant-source-scan", {"query_history_scan_2", "warehouse_metering_scan_2"}),
        ("union-all-fan-out", {"warehouse_credits_by_type"}),
        ("self-join", {"query_sequence"}),
        ("cross-join-without-filter", {"user_warehouse_matrix"}),
        ("non-sargable-predicate", {"filtered_queries"}),
        ("correlated-subquery", {"user_stats_correlated"}),
        ("unfiltered-full-scan", {"all_query_history", "all_warehouse_metering"}),
        ("excessive-window-functions", {"query_rankings"}),
    ],
)
def test_snowflake_usage_model_findings(snowflake_usage_report, rule_id, expected):
    assert expected <= _ctes(snowflake_usage_report, rule_id)


def test_union_fan_out_ignores_negated_branch(snowflake_usage_report):
    finding = snowflake_usage_report.by_rule("union-all-fan-out")[0]

    assert finding.context["column"] == "warehouse_name"
    assert finding.context["literals"] == ["%COMPUTE%", "%LOAD%", "%TRANSFORM%"]


def test_findings_are_ordered(snowflake_usage_report):
    keys = [finding.sort_key for finding in snowflake_usage_report.findings]

    assert keys == sorted(keys)
    assert snowflake_usage_report.findings[0].severity == RuleSeverity.CRITICAL


def test_output_is_deterministic():
    first = analyze(CUSTOMERS_MODEL)
    second = analyze(CUSTOMERS_MODEL)

    assert render_json(first) == render_json(second)
    assert render_text(first) == render_text(second)


def test_min_severity_keeps_only_critical():
    report = analyze(CUSTOMERS_MODEL, min_severity="critical")

    assert report.findings
    assert all(f.severity == RuleSeverity.CRITICAL for f in report.findings)
    payload = json.loads(render_json(report))
    assert payload["summary"]["unused-cte"] == 0


def test_sql_text_input(tmp_path):
    sql = "with a as (select * from raw.events) select * from a"

    from_text = analyze(sql)
    path = tmp_path / "model.sql"
    path.write_text(sql)
    from_file = analyze(str(path))

    assert from_text.query_id == from_file.query_id
    assert from_file.source == str(path)
    assert from_text.source is None
    assert [f.rule_id for f in from_text.findings] == [f.rule_id for f in from_file.findings]
