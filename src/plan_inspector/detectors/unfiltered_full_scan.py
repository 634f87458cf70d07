"""unfiltered-full-scan: Detect CTEs that read a whole base table.

This detector identifies CTEs that select from a base table without any
WHERE clause when nothing downstream narrows the rows either, so the
warehouse scans the full history of the table.
"""

from plan_inspector.query_model.model import QueryModel, SelectBody
from plan_inspector.rule_engine.detector import RuleDetector
from plan_inspector.rule_engine.shared import DetectionContext, Finding, Location
from plan_inspector.rule_engine.types import RuleSeverity, SourceKind


class UnfilteredFullScanDetector(RuleDetector):
    """Detector for unfiltered base-table scans.

    Usage views and large fact tables often retain a year or more of data.
    A CTE like ``select * from snowflake.account_usage.query_history`` with
    no WHERE clause reads all of it. The scan is only acceptable when every
    consumer of the CTE filters it, because those filters can be pushed
    down into the scan.

    Example bad query:
        with all_query_history as (
            select * from snowflake.account_usage.query_history
        )
        select user_name, count(*) from all_query_history group by 1

    Example fixed query:
        with recent_query_history as (
            select * from snowflake.account_usage.query_history
            where start_time >= dateadd('day', -7, current_timestamp())
        )
        select user_name, count(*) from recent_query_history group by 1
    """

    def __init__(self) -> None:
        """Initialize unfiltered full scan detector."""
        super().__init__(
            rule_id="unfiltered-full-scan", severity=RuleSeverity.CRITICAL, cost_multiplier=10.0
        )

    def _detect_findings(self, model: QueryModel, context: DetectionContext) -> list[Finding]:
        findings = []

        for name, index, body in self._iter_cte_bodies(model):
            if body.where:
                continue

            base_tables = sorted(self._unfiltered_tables(body))
            if not base_tables:
                continue

            consumers = model.consumers(name)
            unfiltered = [scope_name for scope_name, _, scope in consumers if not scope.where]
            if consumers and not unfiltered:
                continue

            findings.append(
                self.create_finding(
                    rationale=(
                        f"CTE '{name}' reads {', '.join(base_tables)} without a WHERE or "
                        "time-bound filter"
                        + (
                            f", and {', '.join(unfiltered)} consume it unfiltered. "
                            if unfiltered
                            else ". "
                        )
                        + "Every row of the table is scanned."
                    ),
                    location=Location(cte=name, cte_index=index, clause="from"),
                    context={"tables": base_tables, "unfiltered_consumers": unfiltered},
                )
            )

        return findings

    def _unfiltered_tables(self, body: SelectBody) -> set[str]:
        """Base tables read by ``body`` or by derived tables without their own WHERE."""
        tables = set()
        for source in body.sources:
            if source.kind == SourceKind.TABLE:
                tables.add(source.name)
            elif source.kind == SourceKind.SUBQUERY and source.body is not None:
                for branch in source.body.branches():
                    if not branch.where:
                        tables |= self._unfiltered_tables(branch)
        return tables

    def suggest_fix(self, finding: Finding) -> str:
        tables = finding.context.get("tables", [])
        return (
            f"Add a time-bound predicate (e.g. start_time >= dateadd('day', -30, current_date())) "
            f"when reading {', '.join(tables) or 'the table'}, or filter in the CTE itself."
        )
