"""deep-nesting: Detect SELECTs buried under several levels of subqueries."""

from plan_inspector.query_model.model import QueryModel, SelectBody
from plan_inspector.rule_engine.detector import RuleDetector
from plan_inspector.rule_engine.shared import DetectionContext, Finding, Location
from plan_inspector.rule_engine.types import RuleSeverity


class DeepNestingDetector(RuleDetector):
    """Detector for deeply nested subqueries.

    Depth counts derived tables, scalar subqueries in the SELECT list and
    subqueries in WHERE. UNION branches sit at the same depth as the first
    branch. A CTE (or the final SELECT) whose nesting reaches
    ``nesting_depth_threshold`` is reported, since the optimizer rarely
    flattens every level and the query is hard to review.

    Example bad query:
        select * from (
            select * from (
                select * from (select * from all_orders) a
            ) b
        ) c

    Example fixed query:
        with a as (select * from all_orders),
             b as (select * from a)
        select * from b
    """

    def __init__(self) -> None:
        """Initialize deep nesting detector."""
        super().__init__(rule_id="deep-nesting", severity=RuleSeverity.INFO, cost_multiplier=1.1)

    def _detect_findings(self, model: QueryModel, context: DetectionContext) -> list[Finding]:
        threshold = context.nesting_depth_threshold
        findings = []

        for name, index, scope in model.scopes():
            depth = self.nesting_depth(scope)
            if depth < threshold:
                continue

            findings.append(
                self.create_finding(
                    rationale=(
                        f"'{name}' nests subqueries {depth} levels deep "
                        f"(threshold {threshold})."
                    ),
                    location=Location(cte=name, cte_index=index, clause="from"),
                    context={"depth": depth, "threshold": threshold},
                )
            )

        return findings

    @classmethod
    def nesting_depth(cls, body: SelectBody) -> int:
        """Levels of SELECT nested below ``body``; 0 when it has none."""
        depth = 0
        for branch in body.branches():
            children = [source.body for source in branch.sources if source.body is not None]
            children += [item.subquery for item in branch.columns if item.subquery is not None]
            children += [
                predicate.subquery for predicate in branch.where if predicate.subquery is not None
            ]
            for child in children:
                depth = max(depth, 1 + cls.nesting_depth(child))
        return depth

    def suggest_fix(self, finding: Finding) -> str:
        return (
            "Refactor the inner subqueries into named CTEs, one per step, "
            "so each level can be read and tested on its own."
        )
