"""Exceptions raised during ingestion, detection and configuration.

All errors inherit from PlanInspectorError so clients can catch every
analysis failure with a single handler.
"""

from typing import Optional


class PlanInspectorError(Exception):
    """Base exception for plan inspector errors."""
    pass


class MalformedQueryError(PlanInspectorError):
    """Raised when a parse tree is structurally invalid.

    Ingestion aborts on this error and no partial report is produced.
    Examples:
    - Missing CTE name or join kind
    - Unresolved or forward CTE reference
    - Unsupported schema version
    - SQL text the parser adapter cannot parse
    """

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        """Initialize exception with an optional location in the parse tree.

        Args:
            message: Description of the structural problem
            path: Dotted path into the parse tree (e.g. "ctes.3.body.joins.0")
        """
        self.path = path
        if path:
            super().__init__(f"{path}: {message}")
        else:
            super().__init__(message)


class RuleEvaluationError(PlanInspectorError):
    """Raised by a detector for a query shape it cannot classify.

    The rule engine catches this per detector and turns it into an
    info-level finding, so one failing rule never aborts the analysis.
    """

    def __init__(self, rule_id: str, message: str) -> None:
        """Initialize exception with the failing rule identifier.

        Args:
            rule_id: Identifier of the rule that could not complete
            message: Description of the unexpected shape
        """
        self.rule_id = rule_id
        super().__init__(f"Rule {rule_id} could not complete: {message}")


class ConfigurationError(PlanInspectorError):
    """Raised when the configuration file is invalid."""
    pass
