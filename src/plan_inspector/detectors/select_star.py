"""select-star: Detect SELECT * inside CTE bodies.

The final ``select * from final`` of a dbt model is conventional and is not
reported; a CTE that projects every column of its source is.
"""

from plan_inspector.query_model.model import QueryModel
from plan_inspector.rule_engine.detector import RuleDetector
from plan_inspector.rule_engine.shared import DetectionContext, Finding, Location
from plan_inspector.rule_engine.types import RuleSeverity


class SelectStarDetector(RuleDetector):
    """Detector for SELECT * anti-pattern.

    Columnar warehouses read only the columns a query needs. ``select *``
    in an intermediate CTE reads every column of wide tables such as
    account usage views, and breaks silently when the upstream schema
    changes.
    """

    def __init__(self) -> None:
        """Initialize SELECT * detector."""
        super().__init__(rule_id="select-star", severity=RuleSeverity.INFO, cost_multiplier=1.3)

    def _detect_findings(self, model: QueryModel, context: DetectionContext) -> list[Finding]:
        findings = []

        for name, index, body in self._iter_cte_bodies(model):
            for position, item in enumerate(body.columns):
                if not item.star:
                    continue
                sources = [source.name for source in body.sources]
                findings.append(
                    self.create_finding(
                        rationale=(
                            f"CTE '{name}' selects {item.expression} from "
                            f"{', '.join(sources) or 'its source'}; every column is read."
                        ),
                        location=Location(
                            cte=name, cte_index=index, clause="select", clause_index=position
                        ),
                        context={"sources": sources},
                    )
                )
                break

        return findings

    def suggest_fix(self, finding: Finding) -> str:
        return f"List the columns '{finding.location.cte}' actually needs."
