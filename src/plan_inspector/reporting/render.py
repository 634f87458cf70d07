"""Report renderers.

Two output formats are supported:
- JSON: deterministic, byte-identical for identical reports
- text: numbered findings followed by counts per severity
"""

import json

from plan_inspector.models import Report

_RULE_WIDTH = 70


def render_json(report: Report, indent: int = 2) -> str:
    """Serialize report to JSON.

    Args:
        report: Report to serialize
        indent: JSON indentation

    Returns:
        JSON document with findings, summary and severity_counts
    """
    return json.dumps(report.to_dict(), indent=indent, default=str)


def render_text(report: Report) -> str:
    """Generate human-readable text summary.

    Args:
        report: Report to render

    Returns:
        Formatted text with numbered findings and counts per severity
    """
    label = report.source or report.query_id or "query"
    if not report.has_findings():
        return f"No findings at or above '{report.min_severity.value}' ({label})"

    lines = [
        f"\n{'=' * _RULE_WIDTH}",
        f"Plan Inspector Analysis - {label}",
    ]
    if report.query_id and report.source:
        lines.append(f"Query ID: {report.query_id}")
    lines.append(f"{'=' * _RULE_WIDTH}\n")

    for i, finding in enumerate(report.findings, 1):
        location = finding.location
        if location.clause == "statement":
            where = location.cte
        else:
            where = f"{location.cte} ({location.clause})"
        lines.append(f"{i}. {finding.rule_id} [{finding.severity.value.upper()}] at {where}")
        lines.append(f"   {finding.rationale}")
        lines.append(f"   Cost multiplier: x{finding.cost_multiplier:g}")
        if finding.fix_suggestion:
            lines.append(f"   Fix: {finding.fix_suggestion}")
        lines.append("")

    counts = ", ".join(f"{count} {severity}" for severity, count in report.severity_counts.items())
    lines.append(f"{'-' * _RULE_WIDTH}")
    lines.append(f"Total: {counts} ({report.finding_count} finding(s))")

    triggered = {rule_id: count for rule_id, count in report.summary.items() if count}
    if triggered:
        lines.append("By rule: " + ", ".join(f"{rule_id}={count}" for rule_id, count in triggered.items()))
    lines.append(f"{'=' * _RULE_WIDTH}\n")

    return "\n".join(lines)
