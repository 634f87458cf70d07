"""unused-cte: Detect CTE definitions that nothing references."""

from plan_inspector.query_model.model import QueryModel
from plan_inspector.rule_engine.detector import RuleDetector
from plan_inspector.rule_engine.shared import DetectionContext, Finding, Location
from plan_inspector.rule_engine.types import RuleSeverity


class UnusedCteDetector(RuleDetector):
    """Detector for dead CTEs.

    A CTE is used when a later CTE or the final SELECT reads it anywhere:
    FROM, JOIN, a derived table, a subquery or a set-operation branch.
    Dead CTEs still have to be compiled and, on some engines, evaluated.
    """

    def __init__(self) -> None:
        """Initialize unused CTE detector."""
        super().__init__(rule_id="unused-cte", severity=RuleSeverity.INFO, cost_multiplier=1.0)

    def _detect_findings(self, model: QueryModel, context: DetectionContext) -> list[Finding]:
        findings = []

        for cte in model.ctes:
            if model.consumers(cte.name):
                continue

            findings.append(
                self.create_finding(
                    rationale=f"CTE '{cte.name}' is never referenced by a later CTE or the final SELECT.",
                    location=Location(cte=cte.name, cte_index=cte.index),
                )
            )

        return findings

    def suggest_fix(self, finding: Finding) -> str:
        return f"Delete the '{finding.location.cte}' CTE."
