"""self-join: Detect joins whose two sides read the same relation.

Both sides are resolved through pass-through CTEs, so joining
``all_query_history`` to ``query_history_scan_2`` is reported when both are
plain ``select *`` copies of the same view.
"""

from plan_inspector.query_model.model import QueryModel, SelectBody
from plan_inspector.rule_engine.detector import RuleDetector
from plan_inspector.rule_engine.shared import DetectionContext, Finding, Location
from plan_inspector.rule_engine.types import RuleSeverity, SourceKind


class SelfJoinDetector(RuleDetector):
    """Detector for self-join anti-pattern.

    Self-joins on inequality conditions (``o1.order_id < o2.order_id``) grow
    quadratically with table size. Ordering or sequencing questions are
    usually answered by a single pass with LAG/LEAD window functions.

    Example bad query:
        select o1.order_id, o2.order_id
        from all_orders o1
        inner join all_orders o2 on o1.order_id < o2.order_id
    """

    def __init__(self) -> None:
        """Initialize self-join detector."""
        super().__init__(rule_id="self-join", severity=RuleSeverity.WARNING, cost_multiplier=5.0)

    def _detect_findings(self, model: QueryModel, context: DetectionContext) -> list[Finding]:
        findings = []

        for name, index, scope in model.scopes():
            for body in scope.walk():
                for position, join in enumerate(body.joins):
                    left = self._resolve(model, body, join.left)
                    right = self._resolve(model, body, join.right)
                    if left is None or left != right:
                        continue

                    findings.append(
                        self.create_finding(
                            rationale=(
                                f"Join between '{join.left}' and '{join.right}' reads "
                                f"'{left}' on both sides."
                            ),
                            location=Location(
                                cte=name, cte_index=index, clause="join", clause_index=position
                            ),
                            context={
                                "relation": left,
                                "left": join.left,
                                "right": join.right,
                                "condition": join.condition,
                                "join_type": join.kind.value,
                            },
                        )
                    )

        return findings

    @staticmethod
    def _resolve(model: QueryModel, body: SelectBody, reference: str | None) -> str | None:
        source = body.source_for(reference)
        if source is None or source.kind == SourceKind.SUBQUERY:
            return None
        return model.resolve_relation(source.name)

    def suggest_fix(self, finding: Finding) -> str:
        return (
            f"Read '{finding.context.get('relation')}' once and use window functions "
            "(LAG/LEAD, ROW_NUMBER) or a GROUP BY instead of joining it to itself."
        )
