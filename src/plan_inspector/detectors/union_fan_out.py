"""union-all-fan-out: Detect UNION ALL branches that split one table by literal.

This detector identifies SELECTs built from several UNION ALL branches that
each read the same source filtered on the same column with a different
literal. A single pass with GROUP BY (or CASE) computes the same result with
one scan instead of one scan per branch.
"""

from collections import defaultdict

from plan_inspector.query_model.model import QueryModel, SelectBody
from plan_inspector.rule_engine.detector import RuleDetector
from plan_inspector.rule_engine.shared import DetectionContext, Finding, Location
from plan_inspector.rule_engine.types import RuleSeverity

_SPLIT_OPERATORS = {"=", "like", "ilike"}


class UnionAllFanOutDetector(RuleDetector):
    """Detector for UNION ALL fan-out anti-pattern.

    Example bad query:
        select 'coupon' as method, count(*) from all_payments where payment_method = 'coupon'
        union all
        select 'gift_card', count(*) from all_payments where payment_method = 'gift_card'
        union all
        select 'credit_card', count(*) from all_payments where payment_method = 'credit_card'

    Example fixed query:
        select payment_method, count(*) from all_payments group by payment_method
    """

    def __init__(self) -> None:
        """Initialize UNION ALL fan-out detector."""
        super().__init__(
            rule_id="union-all-fan-out", severity=RuleSeverity.WARNING, cost_multiplier=4.0
        )

    def _detect_findings(self, model: QueryModel, context: DetectionContext) -> list[Finding]:
        min_branches = context.union_fan_out_min_branches
        findings = []

        for name, index, scope in model.scopes():
            for body in scope.walk():
                if not body.set_operations:
                    continue
                for (source, column), literals in self._split_keys(body).items():
                    if len(literals) < min_branches:
                        continue

                    findings.append(
                        self.create_finding(
                            rationale=(
                                f"{len(literals)} UNION ALL branches each scan '{source}' "
                                f"filtered on '{column}' with a different literal; one "
                                "GROUP BY over a single scan gives the same rows."
                            ),
                            location=Location(cte=name, cte_index=index, clause="set_operation"),
                            context={
                                "source": source,
                                "column": column,
                                "literals": sorted(literals),
                                "branches": len(literals),
                            },
                        )
                    )

        return findings

    @staticmethod
    def _split_keys(body: SelectBody) -> dict[tuple[str, str], set[str]]:
        """Map (source, column) to the literals UNION ALL branches filter it on."""
        branches = [body]
        for operation in body.set_operations:
            if operation.operator == "union_all":
                branches.append(operation.body)

        keys: dict[tuple[str, str], set[str]] = defaultdict(set)
        for branch in branches:
            if len(branch.sources) != 1:
                continue
            source = branch.sources[0].name
            for predicate in branch.where:
                if (
                    predicate.column
                    and predicate.literal is not None
                    and predicate.operator in _SPLIT_OPERATORS
                ):
                    column = predicate.column.rsplit(".", 1)[-1]
                    keys[(source, column)].add(predicate.literal)
        return dict(sorted(keys.items()))

    def suggest_fix(self, finding: Finding) -> str:
        column = finding.context.get("column", "column")
        return (
            f"Replace the UNION ALL branches with one SELECT over "
            f"'{finding.context.get('source')}' grouped by {column} "
            f"(use CASE on {column} for pattern-based buckets)."
        )
