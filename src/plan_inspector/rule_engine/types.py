"""Type definitions and enums for the rule engine.

This module contains enum types that are shared across the rule engine.
Separated to avoid circular imports between rule_engine.shared and config.schema.
"""

from enum import Enum


class RuleSeverity(str, Enum):
    """Finding severity levels, most severe first."""

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Sort rank (0 is most severe)."""
        return _SEVERITY_RANK[self]

    def at_least(self, other: "RuleSeverity") -> bool:
        """Check whether this severity is as severe as ``other`` or more."""
        return self.rank <= other.rank


_SEVERITY_RANK = {
    RuleSeverity.CRITICAL: 0,
    RuleSeverity.WARNING: 1,
    RuleSeverity.INFO: 2,
}


class SourceKind(str, Enum):
    """What a FROM/JOIN reference resolves to."""

    TABLE = "table"
    CTE = "cte"
    SUBQUERY = "subquery"


class JoinKind(str, Enum):
    """Supported join kinds."""

    INNER = "inner"
    LEFT = "left"
    RIGHT = "right"
    FULL = "full"
    CROSS = "cross"


# Clause order within one SELECT, used as the secondary sort key of a report
CLAUSE_ORDER = {
    "statement": 0,
    "select": 1,
    "from": 2,
    "join": 3,
    "where": 4,
    "group_by": 5,
    "window": 6,
    "order_by": 7,
    "set_operation": 8,
}
