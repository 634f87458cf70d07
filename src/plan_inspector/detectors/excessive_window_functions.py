"""excessive-window-functions: Detect CTEs that need many distinct window sorts."""

from plan_inspector.query_model.model import QueryModel
from plan_inspector.rule_engine.detector import RuleDetector
from plan_inspector.rule_engine.shared import DetectionContext, Finding, Location
from plan_inspector.rule_engine.types import RuleSeverity


class ExcessiveWindowFunctionsDetector(RuleDetector):
    """Detector for excessive window specifications in one CTE.

    Each distinct OVER (PARTITION BY ... ORDER BY ...) clause needs its own
    sort or repartition of the CTE's rows. Window functions sharing one
    specification are evaluated together, so only distinct specifications
    count. More than ``window_function_threshold`` triggers a finding.

    Example bad query:
        select
            row_number() over (order by customer_id),
            row_number() over (order by first_name),
            row_number() over (order by last_name),
            row_number() over (order by customer_id desc)
        from all_customers
    """

    def __init__(self) -> None:
        """Initialize excessive window functions detector."""
        super().__init__(
            rule_id="excessive-window-functions", severity=RuleSeverity.INFO, cost_multiplier=1.5
        )

    def _detect_findings(self, model: QueryModel, context: DetectionContext) -> list[Finding]:
        threshold = context.window_function_threshold
        findings = []

        for name, index, body in self._iter_cte_bodies(model):
            specs = []
            for window in body.windows:
                if window.spec not in specs:
                    specs.append(window.spec)

            if len(specs) <= threshold:
                continue

            findings.append(
                self.create_finding(
                    rationale=(
                        f"CTE '{name}' uses {len(specs)} distinct window specifications "
                        f"across {len(body.windows)} window functions (threshold {threshold}); "
                        "each one needs a separate sort."
                    ),
                    location=Location(cte=name, cte_index=index, clause="window"),
                    context={
                        "distinct_specs": len(specs),
                        "window_functions": len(body.windows),
                        "threshold": threshold,
                    },
                )
            )

        return findings

    def suggest_fix(self, finding: Finding) -> str:
        return (
            "Drop window columns that are unused downstream and reuse one OVER clause "
            "(or a named WINDOW) for functions that can share an ordering."
        )
