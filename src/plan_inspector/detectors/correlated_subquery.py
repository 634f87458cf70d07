"""correlated-subquery: Detect scalar subqueries correlated to the outer query.

This detector identifies subqueries in a SELECT list whose WHERE clause
references a column of the enclosing query, which makes the engine
re-evaluate the subquery for every outer row.
"""

from plan_inspector.query_model.model import QueryModel, SelectBody
from plan_inspector.rule_engine.detector import RuleDetector
from plan_inspector.rule_engine.shared import DetectionContext, Finding, Location
from plan_inspector.rule_engine.types import RuleSeverity


class CorrelatedSubqueryDetector(RuleDetector):
    """Detector for correlated subquery anti-pattern.

    Correlated subqueries execute once for each row of the outer query (the
    N+1 pattern), which is typically far slower than a join against a
    pre-aggregated relation.

    Example bad query:
        select
            c.customer_id,
            (select count(*) from all_orders o where o.customer_id = c.customer_id) as order_count
        from all_customers c

    Example fixed query:
        select c.customer_id, coalesce(o.order_count, 0) as order_count
        from all_customers c
        left join (
            select customer_id, count(*) as order_count from all_orders group by customer_id
        ) o on c.customer_id = o.customer_id
    """

    def __init__(self) -> None:
        """Initialize correlated subquery detector."""
        super().__init__(
            rule_id="correlated-subquery", severity=RuleSeverity.WARNING, cost_multiplier=25.0
        )

    def _detect_findings(self, model: QueryModel, context: DetectionContext) -> list[Finding]:
        findings = []

        for name, index, scope in model.scopes():
            for body in scope.walk():
                for position, item in enumerate(body.columns):
                    if item.subquery is None:
                        continue

                    outer_columns = self._outer_references(item.subquery, body)
                    if not outer_columns:
                        continue

                    findings.append(
                        self.create_finding(
                            rationale=(
                                f"Subquery for column '{item.output_name}' references outer "
                                f"column(s) {', '.join(outer_columns)} and runs once per outer row."
                            ),
                            location=Location(
                                cte=name, cte_index=index, clause="select", clause_index=position
                            ),
                            context={
                                "column": item.output_name,
                                "outer_columns": outer_columns,
                                "aggregate": bool(
                                    any(column.aggregate for column in item.subquery.columns)
                                ),
                            },
                        )
                    )

        return findings

    @staticmethod
    def _outer_references(subquery: SelectBody, outer: SelectBody) -> list[str]:
        """Column references in the subquery's WHERE that belong to the outer query."""
        local = subquery.visible_names
        visible_outside = outer.visible_names
        references = set()
        for predicate in subquery.where:
            for column in predicate.columns:
                if "." not in column:
                    continue
                qualifier = column.rsplit(".", 1)[0]
                if qualifier not in local and qualifier in visible_outside:
                    references.add(column)
        return sorted(references)

    def suggest_fix(self, finding: Finding) -> str:
        outer_columns = finding.context.get("outer_columns", [])
        keys = ", ".join(column.rsplit(".", 1)[-1] for column in outer_columns[:3]) or "key"
        if finding.context.get("aggregate"):
            return (
                f"Pre-aggregate once with GROUP BY {keys} and LEFT JOIN the result "
                f"on {keys} instead of a per-row subquery."
            )
        return f"Rewrite the subquery as a LEFT JOIN on {keys}."
