"""Data models for plan inspector analysis results.

This module defines the terminal output of an analysis:
- Report: ordered findings plus per-rule and per-severity counts
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from plan_inspector.rule_engine.shared import Finding
from plan_inspector.rule_engine.types import RuleSeverity


@dataclass(frozen=True)
class Report:
    """Result of analyzing one query.

    Never mutated after construction; filtering returns a new Report.

    Attributes:
        findings: Findings sorted by severity, then source position
        summary: Rule identifier -> finding count, including rules with zero findings
        severity_counts: Severity -> finding count, for every severity
        query_id: Identifier of the analyzed query (optional)
        source: Path or label of the analyzed query (optional)
    """

    findings: tuple[Finding, ...]
    summary: dict[str, int]
    severity_counts: dict[str, int]
    query_id: Optional[str] = None
    source: Optional[str] = None
    min_severity: RuleSeverity = field(default=RuleSeverity.INFO)

    @property
    def finding_count(self) -> int:
        return len(self.findings)

    def has_findings(self) -> bool:
        """Check if any findings were detected."""
        return bool(self.findings)

    def has_critical(self) -> bool:
        """Check if any critical findings were detected."""
        return self.severity_counts.get(RuleSeverity.CRITICAL.value, 0) > 0

    def by_rule(self, rule_id: str) -> list[Finding]:
        """Get findings of a single rule."""
        return [f for f in self.findings if f.rule_id == rule_id]

    def filter(self, min_severity: RuleSeverity | str) -> Report:
        """Return a report keeping only findings at or above ``min_severity``.

        Args:
            min_severity: Lowest severity to keep

        Returns:
            New Report; counts are recomputed from the kept findings
        """
        threshold = RuleSeverity(min_severity)
        kept = tuple(f for f in self.findings if f.severity.at_least(threshold))
        summary = {rule_id: 0 for rule_id in self.summary}
        for finding in kept:
            summary[finding.rule_id] = summary.get(finding.rule_id, 0) + 1
        severity_counts = {severity.value: 0 for severity in RuleSeverity}
        for finding in kept:
            severity_counts[finding.severity.value] += 1
        return Report(
            findings=kept,
            summary=summary,
            severity_counts=severity_counts,
            query_id=self.query_id,
            source=self.source,
            min_severity=threshold,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert report to a machine-readable dictionary."""
        return {
            "query_id": self.query_id,
            "source": self.source,
            "min_severity": self.min_severity.value,
            "finding_count": self.finding_count,
            "severity_counts": dict(self.severity_counts),
            "summary": dict(self.summary),
            "findings": [finding.to_dict() for finding in self.findings],
        }
