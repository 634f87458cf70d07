"""Rule engine module for plan inspector."""

from plan_inspector.rule_engine.detector import RuleDetector
from plan_inspector.rule_engine.engine import RuleEngine
from plan_inspector.rule_engine.exceptions import (
    ConfigurationError,
    MalformedQueryError,
    PlanInspectorError,
    RuleEvaluationError,
)
from plan_inspector.rule_engine.shared import DetectionContext, Finding, Location
from plan_inspector.rule_engine.types import JoinKind, RuleSeverity, SourceKind

__all__ = [
    "RuleDetector",
    "RuleEngine",
    "DetectionContext",
    "Finding",
    "Location",
    "RuleSeverity",
    "SourceKind",
    "JoinKind",
    "PlanInspectorError",
    "MalformedQueryError",
    "RuleEvaluationError",
    "ConfigurationError",
]
