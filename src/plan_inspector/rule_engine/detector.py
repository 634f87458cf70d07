"""Base classes for rule detection system.

This module provides the abstract base class for detectors that walk the
immutable query model, plus the per-rule failure isolation the rule engine
relies on.
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Iterator

from plan_inspector.rule_engine.base_detector import BaseDetector
from plan_inspector.rule_engine.exceptions import RuleEvaluationError
from plan_inspector.rule_engine.shared import (
    STATEMENT_LOCATION,
    DetectionContext,
    Finding,
    Location,
)
from plan_inspector.rule_engine.types import RuleSeverity

if TYPE_CHECKING:
    from plan_inspector.query_model.model import QueryModel, SelectBody


class RuleDetector(BaseDetector):
    """Abstract base class for query model rule detectors.

    Each detector corresponds to one rule and is responsible for:

    1. Walking the query model to find one anti-pattern
    2. Creating Finding objects with location and context
    3. Suggesting fixes for detected findings

    Subclasses must implement the _detect_findings() method which contains
    the actual detection logic.

    Note:
        Parsing and ingestion are handled by the caller (typically
        core.analyze()). Detectors only read the model and never mutate
        shared state, so the rule engine may run them concurrently.
    """

    def detect(self, model: QueryModel, context: DetectionContext | None = None) -> list[Finding]:
        """Detect findings in an ingested query model.

        A RuleEvaluationError (or any unexpected exception) raised while
        detecting is logged and reported as a single info-level finding
        instead of aborting the whole analysis.

        Args:
            model: Ingested query model
            context: Optional detection context with thresholds

        Returns:
            List of findings for this rule.
        """
        if model is None:
            return []

        try:
            return self._detect_findings(model, context or DetectionContext())
        except RuleEvaluationError as e:
            self._logger.warning("Rule could not complete", rule_id=self.rule_id, error=str(e))
            return [self._evaluation_failure(e)]
        except Exception as e:
            self._logger.error(
                "Unexpected error during detection",
                rule_id=self.rule_id,
                error=str(e),
                exc_info=True,
            )
            return [self._evaluation_failure(RuleEvaluationError(self.rule_id, repr(e)))]

    @abstractmethod
    def _detect_findings(
        self, model: QueryModel, context: DetectionContext
    ) -> list[Finding]:
        """Detect findings in the query model.

        Args:
            model: Ingested query model
            context: Detection context with thresholds

        Returns:
            List of findings found in the query
        """
        pass

    def _evaluation_failure(self, error: RuleEvaluationError) -> Finding:
        return Finding(
            rule_id=self.rule_id,
            severity=RuleSeverity.INFO,
            location=Location(cte=STATEMENT_LOCATION, cte_index=-1),
            rationale=f"Rule '{self.rule_id}' could not complete and was skipped.",
            cost_multiplier=1.0,
            context={"error": str(error)},
        )

    def _iter_cte_bodies(self, model: QueryModel) -> Iterator[tuple[str, int, SelectBody]]:
        """Yield (name, index, body) for every CTE, skipping the final SELECT."""
        for cte in model.ctes:
            yield cte.name, cte.index, cte.body

    def suggest_fix(self, finding: Finding) -> str | None:
        """Generate fix suggestion for a finding.

        Args:
            finding: The finding to fix

        Returns:
            Fix suggestion string or None if no fix available
        """
        return None

    def create_finding(
        self,
        rationale: str,
        location: Location,
        context: dict[str, Any] | None = None,
        severity: RuleSeverity | None = None,
        cost_multiplier: float | None = None,
    ) -> Finding:
        """Helper method to create a finding with detector defaults.

        The fix suggestion is filled in from suggest_fix().

        Args:
            rationale: Human-readable description
            location: CTE and clause the finding refers to
            context: Additional context about the finding
            severity: Override default severity
            cost_multiplier: Override default cost multiplier

        Returns:
            Configured Finding object
        """
        finding = Finding(
            rule_id=self.rule_id,
            severity=severity or self.severity,
            location=location,
            rationale=rationale,
            cost_multiplier=self.cost_multiplier if cost_multiplier is None else cost_multiplier,
            context=context or {},
        )
        fix = self.suggest_fix(finding)
        if fix is None:
            return finding
        return replace(finding, fix_suggestion=fix)
