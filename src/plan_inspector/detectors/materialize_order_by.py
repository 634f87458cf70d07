"""materialize-time-order-by: Detect ORDER BY clauses inside CTEs.

A CTE's row order is not preserved by the query that consumes it, so the
sort is paid for and then discarded. A CTE that sorts to feed a LIMIT
(top-N) is left alone.
"""

from plan_inspector.query_model.model import QueryModel
from plan_inspector.rule_engine.detector import RuleDetector
from plan_inspector.rule_engine.shared import DetectionContext, Finding, Location
from plan_inspector.rule_engine.types import RuleSeverity


class MaterializeOrderByDetector(RuleDetector):
    """Detector for unnecessary sorts in CTEs."""

    def __init__(self) -> None:
        """Initialize materialize-time ORDER BY detector."""
        super().__init__(
            rule_id="materialize-time-order-by", severity=RuleSeverity.INFO, cost_multiplier=1.2
        )

    def _detect_findings(self, model: QueryModel, context: DetectionContext) -> list[Finding]:
        findings = []

        for name, index, body in self._iter_cte_bodies(model):
            if not body.order_by or body.limit is not None:
                continue

            findings.append(
                self.create_finding(
                    rationale=(
                        f"CTE '{name}' sorts its rows by {', '.join(body.order_by)}, but the "
                        "order is discarded when the CTE is consumed."
                    ),
                    location=Location(cte=name, cte_index=index, clause="order_by"),
                    context={"order_by": list(body.order_by)},
                )
            )

        return findings

    def suggest_fix(self, finding: Finding) -> str:
        return (
            f"Remove the ORDER BY from '{finding.location.cte}'. Sort only in the outermost "
            "SELECT, and only when the consumer needs ordered rows."
        )
