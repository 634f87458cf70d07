"""Rule engine that evaluates every detector against one query model.

Detectors only read the immutable model, so they run in a bounded thread
pool. Findings are merged after every detector has completed, in detector
registration order, which keeps the merged list deterministic.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Sequence

import structlog

from plan_inspector.rule_engine.shared import DetectionContext, Finding

if TYPE_CHECKING:
    from plan_inspector.query_model.model import QueryModel
    from plan_inspector.rule_engine.detector import RuleDetector

logger = structlog.get_logger(__name__)


class RuleEngine:
    """Runs a fixed set of detectors over a query model.

    Example:
        >>> from plan_inspector.detectors import default_detectors
        >>> engine = RuleEngine(default_detectors(), max_workers=4)
        >>> findings = engine.run(model)
    """

    def __init__(self, detectors: Sequence[RuleDetector], max_workers: int = 4) -> None:
        """Initialize engine with detectors.

        Args:
            detectors: Detector instances, in registration order
            max_workers: Worker pool size (1 runs detectors sequentially)

        Raises:
            ValueError: If max_workers is not positive or rule ids collide
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be positive, got {max_workers}")

        rule_ids = [detector.rule_id for detector in detectors]
        duplicates = sorted({rule_id for rule_id in rule_ids if rule_ids.count(rule_id) > 1})
        if duplicates:
            raise ValueError(f"Duplicate rule ids registered: {', '.join(duplicates)}")

        self.detectors = tuple(detectors)
        self.max_workers = max_workers

    @property
    def rule_ids(self) -> tuple[str, ...]:
        return tuple(detector.rule_id for detector in self.detectors)

    def run(self, model: QueryModel, context: DetectionContext | None = None) -> list[Finding]:
        """Evaluate every detector and merge their findings.

        Args:
            model: Ingested query model
            context: Detection context with thresholds

        Returns:
            Findings of all detectors, grouped by detector in registration order
        """
        context = context or DetectionContext()
        logger.info(
            "Running detectors",
            detector_count=len(self.detectors),
            cte_count=len(model.ctes),
            max_workers=self.max_workers,
        )

        if self.max_workers == 1 or len(self.detectors) <= 1:
            per_detector = [detector.detect(model, context) for detector in self.detectors]
        else:
            with ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="plan-inspector"
            ) as pool:
                per_detector = list(
                    pool.map(lambda detector: detector.detect(model, context), self.detectors)
                )

        findings: list[Finding] = []
        for detector, detected in zip(self.detectors, per_detector):
            logger.debug("Detector finished", rule_id=detector.rule_id, finding_count=len(detected))
            findings.extend(detected)

        logger.info("Detection complete", finding_count=len(findings))
        return findings
