"""nested-distinct: Detect DISTINCT applied to rows that are already unique.

This detector identifies a SELECT DISTINCT whose only input is itself a
SELECT DISTINCT (through a CTE or a derived table) with every column kept,
and a SELECT DISTINCT whose GROUP BY keys are all in the output. In both
cases the second deduplication is a wasted sort or hash.
"""

from plan_inspector.query_model.model import QueryModel, SelectBody, SelectItem
from plan_inspector.rule_engine.detector import RuleDetector
from plan_inspector.rule_engine.shared import DetectionContext, Finding, Location
from plan_inspector.rule_engine.types import RuleSeverity, SourceKind


class NestedDistinctDetector(RuleDetector):
    """Detector for redundant DISTINCT.

    Example bad query:
        with unique_customers as (
            select distinct customer_id, first_name from all_customers
        )
        select distinct * from unique_customers

    Example fixed query:
        with unique_customers as (
            select distinct customer_id, first_name from all_customers
        )
        select * from unique_customers
    """

    def __init__(self) -> None:
        """Initialize nested distinct detector."""
        super().__init__(rule_id="nested-distinct", severity=RuleSeverity.INFO, cost_multiplier=1.2)

    def _detect_findings(self, model: QueryModel, context: DetectionContext) -> list[Finding]:
        findings = []

        for name, index, scope in model.scopes():
            for body in scope.walk():
                if not body.distinct:
                    continue

                if body.group_by and self._groups_by_output(body):
                    findings.append(
                        self.create_finding(
                            rationale=(
                                f"SELECT DISTINCT in '{name}' also groups by "
                                f"{', '.join(body.group_by)}; every key is in the output, "
                                "so the rows are unique already."
                            ),
                            location=Location(cte=name, cte_index=index, clause="select"),
                            context={"kind": "group_by", "input": None},
                        )
                    )
                    continue

                source = self._distinct_input(model, body)
                if source is None:
                    continue
                input_name, input_body = source
                if not self._keeps_columns(body, input_body):
                    continue

                findings.append(
                    self.create_finding(
                        rationale=(
                            f"SELECT DISTINCT in '{name}' reads '{input_name}', which is "
                            "already DISTINCT on the same columns; the second "
                            "deduplication changes nothing."
                        ),
                        location=Location(cte=name, cte_index=index, clause="select"),
                        context={"kind": "distinct", "input": input_name},
                    )
                )

        return findings

    @staticmethod
    def _distinct_input(model: QueryModel, body: SelectBody) -> tuple[str, SelectBody] | None:
        if len(body.sources) != 1 or body.joins:
            return None
        source = body.sources[0]
        if source.kind == SourceKind.SUBQUERY:
            inner = source.body
        elif source.kind == SourceKind.CTE:
            cte = model.cte(model.resolve_relation(source.name))
            inner = cte.body if cte is not None else None
        else:
            return None
        if inner is None or not inner.distinct or inner.set_operations:
            return None
        return source.reference, inner

    @staticmethod
    def _plain_name(item: SelectItem) -> str | None:
        if item.star or item.functions or item.aggregate or item.subquery:
            return None
        return item.expression.rsplit(".", 1)[-1]

    def _keeps_columns(self, outer: SelectBody, inner: SelectBody) -> bool:
        if any(item.star for item in outer.columns):
            return True
        if any(item.star for item in inner.columns):
            return False
        kept = {self._plain_name(item) for item in outer.columns} - {None}
        produced = {item.output_name.rsplit(".", 1)[-1] for item in inner.columns}
        return bool(produced) and produced <= kept

    @staticmethod
    def _groups_by_output(body: SelectBody) -> bool:
        outputs = set()
        for position, item in enumerate(body.columns, start=1):
            outputs.update({item.expression, item.output_name, str(position)})
        return all(key in outputs for key in body.group_by)

    def suggest_fix(self, finding: Finding) -> str:
        if finding.context.get("kind") == "group_by":
            return "Drop DISTINCT: GROUP BY already returns one row per key."
        return (
            f"Drop the outer DISTINCT; '{finding.context.get('input') or 'the input'}' "
            "already returns unique rows."
        )
