"""Abstract base class for all detectors.

This module provides the common interface that every rule detector
inherits from, so the rule engine can treat detectors polymorphically.
"""

from __future__ import annotations

import structlog
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from plan_inspector.rule_engine.shared import DetectionContext, Finding
from plan_inspector.rule_engine.types import RuleSeverity

if TYPE_CHECKING:
    from plan_inspector.query_model.model import QueryModel


class BaseDetector(ABC):
    """Abstract base class for query model anti-pattern detectors.

    The base class provides:
    - Common initialization with rule metadata
    - Shared structured logging infrastructure
    - Abstract detect() method that all subclasses must implement

    Example:
        >>> class ConcreteDetector(BaseDetector):
        ...     def detect(self, model, context=None):
        ...         return []
        >>> detector = ConcreteDetector("self-join", RuleSeverity.WARNING, 5.0)
        >>> detector.rule_id
        'self-join'
    """

    def __init__(self, rule_id: str, severity: RuleSeverity, cost_multiplier: float = 1.0) -> None:
        """Initialize detector with rule metadata.

        Args:
            rule_id: Unique rule identifier (e.g., "unused-cte")
            severity: Default severity level for findings
            cost_multiplier: Heuristic relative cost attached to findings
        """
        self.rule_id = rule_id
        self.severity = severity
        self.cost_multiplier = cost_multiplier
        self._logger = structlog.get_logger(self.__class__.__name__)

    @abstractmethod
    def detect(
        self, model: QueryModel, context: DetectionContext | None = None
    ) -> list[Finding]:
        """Detect findings in a query model.

        Args:
            model: Ingested, immutable query model
            context: Optional detection context with thresholds

        Returns:
            List of Finding objects (may be empty).
        """
        pass
