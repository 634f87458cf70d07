"""Shared data models for the rule detection system.

This module contains the core data structures passed between detectors,
the rule engine and the report builder, avoiding circular import issues.
"""

from dataclasses import dataclass, field
from typing import Any

from plan_inspector.rule_engine.types import CLAUSE_ORDER, RuleSeverity

STATEMENT_LOCATION = "<statement>"
FINAL_SELECT_LOCATION = "<final>"


@dataclass(frozen=True)
class Location:
    """Where in the statement a finding applies.

    ``cte_index`` is the declaration index of the CTE. The final SELECT uses
    the number of CTEs, and statement-level findings use -1.
    """

    cte: str = field(metadata={"description": "CTE name, <final> or <statement>"})
    cte_index: int = field(metadata={"description": "Declaration order of the CTE"})
    clause: str = field(default="statement", metadata={"description": "Clause kind"})
    clause_index: int = field(default=0, metadata={"description": "Position within the clause"})

    @property
    def sort_key(self) -> tuple[int, int, int]:
        return (self.cte_index, CLAUSE_ORDER.get(self.clause, len(CLAUSE_ORDER)), self.clause_index)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cte": self.cte,
            "cte_index": self.cte_index,
            "clause": self.clause,
            "clause_index": self.clause_index,
        }


@dataclass(frozen=True)
class Finding:
    """Represents one detected anti-pattern instance.

    A finding is created when a detector matches an anti-pattern in the
    query model. It contains all information needed to report the issue
    and suggest a fix.
    """

    rule_id: str = field(metadata={"description": "Rule identifier (e.g., cross-join-without-filter)"})
    severity: RuleSeverity = field(metadata={"description": "Severity level of the finding"})
    location: Location = field(metadata={"description": "CTE and clause the finding refers to"})
    rationale: str = field(metadata={"description": "Human-readable description of the finding"})
    cost_multiplier: float = field(
        default=1.0,
        metadata={"description": "Heuristic, unitless relative cost estimate"}
    )
    context: dict[str, Any] = field(
        default_factory=dict,
        compare=False,
        metadata={"description": "Additional context for the finding"}
    )
    fix_suggestion: str | None = field(
        default=None,
        metadata={"description": "Suggested fix for the finding"}
    )

    @property
    def sort_key(self) -> tuple:
        return (self.severity.rank, *self.location.sort_key, self.rule_id, self.rationale)

    def to_dict(self) -> dict[str, Any]:
        """Convert finding to dictionary format.

        Returns:
            Dictionary representation of the finding
        """
        return {
            "rule": self.rule_id,
            "severity": self.severity.value,
            "location": self.location.to_dict(),
            "rationale": self.rationale,
            "cost_multiplier": self.cost_multiplier,
            "context": self.context,
            "fix_suggestion": self.fix_suggestion,
        }


@dataclass
class DetectionContext:
    """Context information available to detectors during analysis.

    Provides detector thresholds beyond the query model itself.
    """

    window_function_threshold: int = field(
        default=3,
        metadata={"description": "Distinct window specs per CTE allowed before flagging"}
    )
    union_fan_out_min_branches: int = field(
        default=3,
        metadata={"description": "UNION ALL branches on one source/column that trigger fan-out"}
    )
    nesting_depth_threshold: int = field(
        default=3,
        metadata={"description": "Subquery nesting depth that triggers deep-nesting"}
    )
    metadata: dict[str, Any] = field(
        default_factory=dict,
        metadata={"description": "Additional metadata (caller supplied)"}
    )

    @classmethod
    def from_config(cls, config: Any) -> "DetectionContext":
        """Build a context from an InspectorConfig.

        Args:
            config: Loaded configuration object

        Returns:
            DetectionContext carrying the configured thresholds
        """
        thresholds = config.thresholds
        return cls(
            window_function_threshold=thresholds.window_function_threshold,
            union_fan_out_min_branches=thresholds.union_fan_out_min_branches,
            nesting_depth_threshold=thresholds.nesting_depth_threshold,
        )
