"""redundant-source-scan: Detect CTEs that scan the same table the same way.

This detector identifies pairs of CTEs whose bodies read the same base table
with structurally identical clauses, so the warehouse does the same scan
more than once.
"""

import re
from itertools import combinations

from plan_inspector.query_model.model import QueryModel, SelectBody
from plan_inspector.rule_engine.detector import RuleDetector
from plan_inspector.rule_engine.shared import DetectionContext, Finding, Location
from plan_inspector.rule_engine.types import RuleSeverity, SourceKind

# Matches a table qualifier in front of a column: "c.customer_id" -> "customer_id"
_QUALIFIER = re.compile(r"\b[a-z_][a-z0-9_$]*\.(?=[a-z_*])")


class RedundantSourceScanDetector(RuleDetector):
    """Detector for redundant scans of the same source.

    Two CTEs are duplicates when they read the same base tables and their
    normalized clause sets match: column order is ignored, table aliases
    and column aliases are stripped, and predicates are compared as a set.
    One finding is reported per duplicate pair, located at the later CTE.

    Example bad query:
        with all_customers as (select * from stg_customers),
             customers_scan_2 as (select * from stg_customers)
        ...

    Example fixed query:
        with all_customers as (select * from stg_customers)
        -- reuse all_customers everywhere
    """

    def __init__(self) -> None:
        """Initialize redundant source scan detector."""
        super().__init__(
            rule_id="redundant-source-scan", severity=RuleSeverity.WARNING, cost_multiplier=2.0
        )

    def _detect_findings(self, model: QueryModel, context: DetectionContext) -> list[Finding]:
        scans = []
        for name, index, body in self._iter_cte_bodies(model):
            tables = frozenset(
                source.name for source in body.sources if source.kind == SourceKind.TABLE
            )
            if tables:
                scans.append((name, index, tables, self._signature(body)))

        findings = []
        for first, second in combinations(scans, 2):
            first_name, _, tables, signature = first
            second_name, second_index, other_tables, other_signature = second
            if tables != other_tables or signature != other_signature:
                continue

            findings.append(
                self.create_finding(
                    rationale=(
                        f"CTEs '{first_name}' and '{second_name}' both scan "
                        f"{', '.join(sorted(tables))} with the same columns and filters. "
                        "The table is read twice for identical rows."
                    ),
                    location=Location(cte=second_name, cte_index=second_index, clause="from"),
                    context={
                        "duplicate_of": first_name,
                        "tables": sorted(tables),
                    },
                )
            )

        return findings

    def _signature(self, body: SelectBody) -> tuple:
        """Canonical form of a SELECT for structural comparison."""
        return (
            frozenset(
                "*" if item.star else self._strip(item.expression) for item in body.columns
            ),
            frozenset(self._strip(predicate.expression) for predicate in body.where),
            frozenset(
                (join.kind, join.condition and self._strip(join.condition)) for join in body.joins
            ),
            frozenset(self._strip(key) for key in body.group_by),
            frozenset(window.spec for window in body.windows),
            body.distinct,
            body.limit,
            len(body.set_operations),
        )

    @staticmethod
    def _strip(expression: str) -> str:
        return _QUALIFIER.sub("", expression)

    def suggest_fix(self, finding: Finding) -> str:
        original = finding.context.get("duplicate_of", "the first CTE")
        return f"Remove '{finding.location.cte}' and reference '{original}' instead."
