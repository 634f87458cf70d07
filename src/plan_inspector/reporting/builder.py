"""Report builder: aggregates findings into a deterministic Report.

The builder performs no detection. It only orders findings and counts them:
- primary key: severity (critical, warning, info)
- secondary key: source position (CTE declaration order, then clause order
  within the CTE, then position within the clause)
- rule id and rationale break any remaining ties
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

import structlog

from plan_inspector.models import Report
from plan_inspector.rule_engine.shared import Finding
from plan_inspector.rule_engine.types import RuleSeverity

logger = structlog.get_logger(__name__)


class ReportBuilder:
    """Builds Reports for a fixed set of registered rules.

    Example:
        >>> builder = ReportBuilder(["unused-cte", "self-join"])
        >>> report = builder.build([])
        >>> report.summary
        {'unused-cte': 0, 'self-join': 0}
    """

    def __init__(self, rule_ids: Sequence[str] = ()) -> None:
        """Initialize builder.

        Args:
            rule_ids: Registered rule identifiers; each appears in the summary
                even when it produced no findings
        """
        self.rule_ids = tuple(dict.fromkeys(rule_ids))

    def build(
        self,
        findings: Iterable[Finding],
        query_id: Optional[str] = None,
        source: Optional[str] = None,
    ) -> Report:
        """Order and count findings.

        Args:
            findings: Findings from every detector, in any order
            query_id: Identifier of the analyzed query
            source: Path or label of the analyzed query

        Returns:
            Immutable Report
        """
        ordered = tuple(sorted(findings, key=lambda finding: finding.sort_key))

        summary = {rule_id: 0 for rule_id in self.rule_ids}
        extra = sorted({f.rule_id for f in ordered} - set(summary))
        for rule_id in extra:
            summary[rule_id] = 0
        for finding in ordered:
            summary[finding.rule_id] += 1

        severity_counts = {severity.value: 0 for severity in RuleSeverity}
        for finding in ordered:
            severity_counts[finding.severity.value] += 1

        logger.debug("Report built", finding_count=len(ordered), **severity_counts)
        return Report(
            findings=ordered,
            summary=summary,
            severity_counts=severity_counts,
            query_id=query_id,
            source=source,
        )
