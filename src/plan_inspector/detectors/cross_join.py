"""cross-join-without-filter: Detect Cartesian products that nothing narrows.

This detector identifies CROSS JOINs, and inner joins without an ON
condition, whose product is never reduced by a join predicate in the same
WHERE clause or in a downstream CTE.
"""

from plan_inspector.query_model.model import Join, QueryModel, SelectBody
from plan_inspector.rule_engine.detector import RuleDetector
from plan_inspector.rule_engine.shared import DetectionContext, Finding, Location
from plan_inspector.rule_engine.types import JoinKind, RuleSeverity


class CrossJoinDetector(RuleDetector):
    """Detector for Cartesian join anti-pattern.

    Cartesian joins pair every row of one side with every row of the other,
    producing N * M rows. This causes:
    - Exponential data explosion
    - Memory spilling to local and remote storage
    - Accidental incorrect results

    A cross join is compensated when the same SELECT's WHERE clause has a
    predicate referencing both sides (the old comma-join style), or when a
    CTE consuming the result filters it with a column-to-column equality.

    Example bad query:
        select c.customer_id, o.order_id
        from all_customers c
        cross join all_orders o

    Example fixed query:
        select c.customer_id, o.order_id
        from all_customers c
        join all_orders o on c.customer_id = o.customer_id
    """

    def __init__(self) -> None:
        """Initialize Cartesian join detector."""
        super().__init__(
            rule_id="cross-join-without-filter", severity=RuleSeverity.CRITICAL, cost_multiplier=100.0
        )

    def _detect_findings(self, model: QueryModel, context: DetectionContext) -> list[Finding]:
        findings = []

        for name, index, scope in model.scopes():
            downstream_filtered = self._downstream_filtered(model, name)
            for body in scope.walk():
                for position, join in enumerate(body.joins):
                    if not self._is_cartesian(join):
                        continue
                    if downstream_filtered or self._filtered_in_place(body, join):
                        continue

                    findings.append(
                        self.create_finding(
                            rationale=(
                                f"{'CROSS JOIN' if join.kind == JoinKind.CROSS else 'JOIN without ON'} "
                                f"between '{join.left or '?'}' and '{join.right}' produces a "
                                "Cartesian product that no later filter reduces."
                            ),
                            location=Location(
                                cte=name, cte_index=index, clause="join", clause_index=position
                            ),
                            context={
                                "left": join.left,
                                "right": join.right,
                                "left_relation": self._relation(body, join.left),
                                "right_relation": self._relation(body, join.right),
                                "join_type": join.kind.value,
                            },
                        )
                    )

        return findings

    @staticmethod
    def _is_cartesian(join: Join) -> bool:
        if join.kind == JoinKind.CROSS:
            return True
        return join.kind == JoinKind.INNER and (join.condition is None or join.condition == "true")

    @staticmethod
    def _filtered_in_place(body: SelectBody, join: Join) -> bool:
        left = body.source_for(join.left)
        right = body.source_for(join.right)
        if left is None or right is None or left is right:
            return False
        return any(
            predicate.qualifiers & left.qualifiers and predicate.qualifiers & right.qualifiers
            for predicate in body.where
        )

    @staticmethod
    def _downstream_filtered(model: QueryModel, name: str) -> bool:
        if model.cte(name) is None:
            return False
        return any(
            predicate.is_column_comparison
            for _, _, consumer in model.consumers(name)
            for predicate in consumer.where
        )

    @staticmethod
    def _relation(body: SelectBody, reference: str | None) -> str | None:
        source = body.source_for(reference)
        return source.name if source is not None else None

    def suggest_fix(self, finding: Finding) -> str:
        left = finding.context.get("left") or "left"
        right = finding.context.get("right") or "right"
        return (
            f"Replace the Cartesian product with an equi-join. "
            f"Example: join {finding.context.get('right_relation') or right} {right} "
            f"on {left}.key = {right}.key"
        )
