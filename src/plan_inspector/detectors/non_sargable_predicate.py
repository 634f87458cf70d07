"""non-sargable-predicate: Detect WHERE predicates that wrap the column in a function.

This detector identifies filters such as ``upper(status) = 'COMPLETED'`` or
``year(order_date) = 2024`` where the compared column is transformed before
comparison, which stops the engine from using pruning metadata and forces
it to evaluate every row.
"""

from typing import Set

from plan_inspector.query_model.model import QueryModel
from plan_inspector.rule_engine.detector import RuleDetector
from plan_inspector.rule_engine.shared import DetectionContext, Finding, Location
from plan_inspector.rule_engine.types import RuleSeverity

DATE_FUNCTIONS: Set[str] = {
    "year", "month", "day", "hour", "minute", "second",
    "date", "date_trunc", "timestamp_trunc", "to_date", "extract",
    "dayofweek", "dayofmonth", "dayofyear", "weekofyear",
    "quarter", "last_day", "next_day", "date_format",
    "from_unixtime", "unix_timestamp", "to_timestamp",
}

STRING_FUNCTIONS: Set[str] = {
    "upper", "lower", "trim", "ltrim", "rtrim", "btrim", "initcap",
    "length", "len", "char_length", "character_length",
    "position", "charindex", "strpos", "instr",
    "left", "right", "substr", "substring",
    "concat", "concat_ws", "replace", "translate", "reverse", "repeat",
    "lpad", "rpad", "pad", "split",
}

CAST_FUNCTIONS: Set[str] = {"cast", "try_cast", "convert"}

MATH_FUNCTIONS: Set[str] = {
    "abs", "round", "floor", "ceil", "ceiling",
    "sqrt", "power", "pow", "exp", "ln", "log",
    "sin", "cos", "tan", "asin", "acos", "atan",
}

NULL_FUNCTIONS: Set[str] = {"coalesce", "nvl", "ifnull", "nullif"}


class NonSargablePredicateDetector(RuleDetector):
    """Detector for non-sargable predicate anti-pattern.

    Sargable = "Search ARGument ABLE": predicates that can use statistics,
    micro-partition pruning and indexes directly. Applying a function to the
    column side of a comparison defeats all of them. Common culprits:
    - String functions: upper(status) = 'COMPLETED', trim(name) = 'x'
    - Date functions: year(order_date) = 2024, date_trunc('day', ts) = '2024-01-01'
    - Type conversions: cast(amount as int) = 100
    - Math functions: abs(balance) > 100
    - NULL handling: coalesce(region, 'EU') = 'EU'

    Example bad query:
        select * from all_orders where year(order_date) = 2024

    Example fixed query:
        select * from all_orders
        where order_date >= '2024-01-01' and order_date < '2025-01-01'
    """

    NON_SARGABLE_FUNCTIONS: Set[str] = (
        DATE_FUNCTIONS | STRING_FUNCTIONS | CAST_FUNCTIONS | MATH_FUNCTIONS | NULL_FUNCTIONS
    )

    # regexp_like, regexp_count, regexp_substr, regexp_extract, regexp_replace, ...
    NON_SARGABLE_PREFIXES: tuple[str, ...] = ("regexp",)

    def __init__(self) -> None:
        """Initialize non-sargable predicate detector."""
        super().__init__(
            rule_id="non-sargable-predicate", severity=RuleSeverity.WARNING, cost_multiplier=3.0
        )

    def _detect_findings(self, model: QueryModel, context: DetectionContext) -> list[Finding]:
        findings = []

        for name, index, scope in model.scopes():
            for body in scope.walk():
                for position, predicate in enumerate(body.where):
                    if not self._is_non_sargable(predicate.function):
                        continue
                    # nested WHERE clauses share the enclosing scope's location
                    clause_index = position if body is scope else len(scope.where) + position
                    findings.append(
                        self.create_finding(
                            rationale=(
                                f"Predicate '{predicate.expression}' applies "
                                f"{predicate.function}() to column "
                                f"'{predicate.column or '?'}' before comparing it, "
                                "so pruning and statistics cannot be used."
                            ),
                            location=Location(
                                cte=name, cte_index=index, clause="where", clause_index=clause_index
                            ),
                            context={
                                "function": predicate.function,
                                "column": predicate.column,
                                "predicate": predicate.expression,
                            },
                        )
                    )

        return findings

    def _is_non_sargable(self, function: str | None) -> bool:
        if not function:
            return False
        return function in self.NON_SARGABLE_FUNCTIONS or function.startswith(
            self.NON_SARGABLE_PREFIXES
        )

    def suggest_fix(self, finding: Finding) -> str:
        function = finding.context.get("function", "function")
        column = finding.context.get("column") or "column"

        if function in DATE_FUNCTIONS:
            return (
                f"Replace {function}({column}) with a range predicate on the raw column. "
                f"Example: {column} >= '2024-01-01' and {column} < '2025-01-01'"
            )

        if function in {"upper", "lower", "trim", "ltrim", "rtrim", "btrim"}:
            return (
                f"Compare {column} directly against a normalized literal, or store a "
                f"pre-normalized column instead of calling {function}() in the filter."
            )

        if function in CAST_FUNCTIONS:
            return (
                f"Apply {function} to the literal instead of the column. "
                f"Example: {column} = cast('100' as <column type>)"
            )

        if function in MATH_FUNCTIONS:
            return (
                f"Use range predicates instead of {function}({column}). "
                f"Example: {column} between -100 and 100"
            )

        return (
            f"Rewrite the filter so {column} stands alone on one side of the comparison "
            f"(e.g. replace {function}({column}) ... with a LIKE prefix or range predicate)."
        )
