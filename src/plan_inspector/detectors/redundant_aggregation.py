"""redundant-aggregation: Detect aggregates computed more than once in one SELECT.

This detector identifies output columns of an aggregate SELECT that compute
the same value through different but equivalent expressions, for example
``count(*)``, ``count(order_id)`` and ``sum(1)``.
"""

import re
from collections import defaultdict

from plan_inspector.query_model.model import Aggregate, QueryModel
from plan_inspector.rule_engine.detector import RuleDetector
from plan_inspector.rule_engine.shared import DetectionContext, Finding, Location
from plan_inspector.rule_engine.types import RuleSeverity

_QUALIFIER = re.compile(r"\b[a-z_][a-z0-9_$]*\.(?=[a-z_])")
_CAST = re.compile(r"^(?:try_)?cast\((.+) as [a-z0-9_ ,()]+\)$")
_COALESCE_ZERO = re.compile(r"^(?:coalesce|nvl|ifnull)\((.+), ?0\)$")
_IDENTITY_ARITHMETIC = re.compile(r"^(.+?) ?(?:\* ?1|\+ ?0|- ?0|/ ?1)$")

ROW_COUNT = ("row_count", "*", False)


class RedundantAggregationDetector(RuleDetector):
    """Detector for redundant aggregations.

    Aggregates are reduced to a canonical form before comparison:
    - ``count(*)``, ``count(<constant>)``, ``count(col)`` and ``sum(1)`` are row counts
    - ``sum(x * 1)``, ``sum(x + 0)``, ``sum(cast(x as t))`` and
      ``sum(coalesce(x, 0))`` are ``sum(x)``
    - table qualifiers are ignored

    ``count(col)`` skips NULLs, so treating it as a row count is a heuristic;
    on key columns it holds.
    """

    def __init__(self) -> None:
        """Initialize redundant aggregation detector."""
        super().__init__(
            rule_id="redundant-aggregation", severity=RuleSeverity.INFO, cost_multiplier=1.1
        )

    def _detect_findings(self, model: QueryModel, context: DetectionContext) -> list[Finding]:
        findings = []

        for name, index, scope in model.scopes():
            for body in scope.walk():
                if not body.is_aggregate:
                    continue

                groups: dict[tuple, list[tuple[int, str]]] = defaultdict(list)
                for position, item in enumerate(body.columns):
                    if item.aggregate is None:
                        continue
                    groups[self.canonical(item.aggregate)].append((position, item.output_name))

                for key, columns in groups.items():
                    if len(columns) < 2:
                        continue
                    names = [column for _, column in columns]
                    findings.append(
                        self.create_finding(
                            rationale=(
                                f"Columns {', '.join(names)} all compute "
                                f"{self._describe(key)}; the aggregate is evaluated "
                                f"{len(names)} times."
                            ),
                            location=Location(
                                cte=name, cte_index=index, clause="select", clause_index=columns[0][0]
                            ),
                            context={"columns": names, "aggregate": self._describe(key)},
                        )
                    )

        return findings

    @classmethod
    def canonical(cls, aggregate: Aggregate) -> tuple[str, str, bool]:
        """Reduce an aggregate to (function, argument, distinct) canonical form."""
        function = aggregate.function
        argument = cls._strip_argument(aggregate.argument)

        if function == "count" and not aggregate.distinct:
            return ROW_COUNT
        if function == "sum" and not aggregate.distinct and argument == "1":
            return ROW_COUNT
        if function == "sum":
            match = _COALESCE_ZERO.match(argument)
            if match:
                argument = cls._strip_argument(match.group(1))
        return (function, argument, aggregate.distinct)

    @staticmethod
    def _strip_argument(argument: str) -> str:
        argument = _QUALIFIER.sub("", argument.strip())
        changed = True
        while changed:
            changed = False
            for pattern in (_CAST, _IDENTITY_ARITHMETIC):
                match = pattern.match(argument)
                if match:
                    argument = match.group(1).strip()
                    changed = True
            while argument.startswith("(") and argument.endswith(")") and _balanced(argument[1:-1]):
                argument = argument[1:-1].strip()
                changed = True
        return argument

    @staticmethod
    def _describe(key: tuple[str, str, bool]) -> str:
        function, argument, distinct = key
        if key == ROW_COUNT:
            return "the row count"
        return f"{function}({'distinct ' if distinct else ''}{argument})"

    def suggest_fix(self, finding: Finding) -> str:
        columns = finding.context.get("columns", [])
        return (
            f"Keep one of {', '.join(columns)} and derive the others downstream if they "
            "are still needed."
        )


def _balanced(text: str) -> bool:
    depth = 0
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                return False
    return depth == 0
