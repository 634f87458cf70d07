"""Core analysis functions for plan inspector.

This module provides the main entry points for query analysis:
- analyze(): Analyze SQL text, a .sql/.json file or a parse tree
- analyze_model(): Run the rule engine over an ingested QueryModel
- clear_cache(): Clear the detector cache

Ingestion errors propagate; per-rule failures are reported as findings.
"""

from __future__ import annotations

import hashlib
import importlib
import json
from pathlib import Path
from typing import Any, Optional

import structlog

from plan_inspector.config.loader import load_config
from plan_inspector.config.schema import InspectorConfig
from plan_inspector.models import Report
from plan_inspector.parsers.sqlglot_adapter import parse_sql
from plan_inspector.query_model.ingest import ingest
from plan_inspector.query_model.model import QueryModel
from plan_inspector.reporting.builder import ReportBuilder
from plan_inspector.rule_engine.detector import RuleDetector
from plan_inspector.rule_engine.engine import RuleEngine
from plan_inspector.rule_engine.exceptions import ConfigurationError
from plan_inspector.rule_engine.shared import DetectionContext
from plan_inspector.rule_engine.types import RuleSeverity

logger = structlog.get_logger(__name__)

_detector_cache: dict[str, RuleDetector] = {}

_JSON_SUFFIXES = {".json"}


def analyze(
    query: str | Path | dict[str, Any] | QueryModel,
    *,
    query_id: Optional[str] = None,
    config: Optional[InspectorConfig] = None,
    config_path: Optional[str | Path] = None,
    dialect: Optional[str] = None,
    min_severity: Optional[RuleSeverity | str] = None,
) -> Report:
    """Analyze one query and build a report.

    Args:
        query: SQL text, path to a .sql (or dbt model) file, path to a
            .json parse tree, a parse tree dict, or a QueryModel
        query_id: Custom query ID (derived from the input if not provided)
        config: Already-loaded configuration (takes precedence over config_path)
        config_path: Path to YAML config file
        dialect: sqlglot dialect for SQL input (defaults to config.dialect)
        min_severity: Drop findings below this severity from the report

    Returns:
        Report with ordered findings and per-rule counts

    Raises:
        MalformedQueryError: If the query cannot be parsed or ingested
        FileNotFoundError: If a Path is given that does not exist
        ConfigurationError: If the configuration is invalid

    Examples:
        >>> report = analyze("models/customers.sql")
        >>> print(render_text(report))

        >>> report = analyze(parse_tree_dict, min_severity="warning")
        >>> report.has_critical()
        False
    """
    config = config or load_config(config_path)
    dialect = dialect or config.dialect
    logger.info("Starting query analysis", dialect=dialect)

    source = None
    if isinstance(query, QueryModel):
        model = query
    elif isinstance(query, dict):
        model = ingest(query)
        query_id = query_id or _generate_query_id(json.dumps(query, sort_keys=True, default=str))
    else:
        path = _as_path(query)
        if path is not None:
            source = str(path)
            text = path.read_text()
            is_json = path.suffix.lower() in _JSON_SUFFIXES
        else:
            text = str(query)
            is_json = text.lstrip().startswith("{")

        query_id = query_id or _generate_query_id(text)
        if is_json:
            model = ingest(text)
        else:
            model = ingest(parse_sql(text, dialect=dialect))

    return analyze_model(
        model,
        config=config,
        query_id=query_id,
        source=source,
        min_severity=min_severity,
    )


def analyze_model(
    model: QueryModel,
    *,
    config: Optional[InspectorConfig] = None,
    query_id: Optional[str] = None,
    source: Optional[str] = None,
    min_severity: Optional[RuleSeverity | str] = None,
) -> Report:
    """Run every configured detector over an ingested model.

    Args:
        model: Ingested query model
        config: Configuration (defaults are used when omitted)
        query_id: Identifier recorded on the report
        source: Path or label recorded on the report
        min_severity: Drop findings below this severity from the report

    Returns:
        Report with ordered findings and per-rule counts
    """
    config = config or InspectorConfig()

    detectors = _get_detectors(config)
    engine = RuleEngine(detectors, max_workers=config.engine.max_workers)
    findings = engine.run(model, DetectionContext.from_config(config))

    report = ReportBuilder(engine.rule_ids).build(findings, query_id=query_id, source=source)
    logger.info(
        "Analysis complete",
        query_id=query_id,
        findings=report.finding_count,
        critical=report.severity_counts[RuleSeverity.CRITICAL.value],
    )

    if min_severity is not None:
        report = report.filter(min_severity)
    return report


def clear_cache() -> None:
    """Clear cached detector instances."""
    _detector_cache.clear()
    logger.info("Detector cache cleared")


def _generate_query_id(text: str) -> str:
    """Generate unique ID for a query."""
    return hashlib.sha256(text.encode()).hexdigest()[:12]


def _as_path(query: str | Path) -> Optional[Path]:
    """Interpret ``query`` as a file path when it names one."""
    if isinstance(query, Path):
        if not query.exists():
            raise FileNotFoundError(f"Query file not found: {query}")
        return query

    if "\n" in query or len(query) > 1024:
        return None
    candidate = Path(query)
    return candidate if candidate.is_file() else None


def _get_detectors(config: InspectorConfig) -> list[RuleDetector]:
    """Load detectors with caching.

    Detectors are stateless, so one instance per path is shared between runs.
    """
    detectors = []
    for detector_path in config.detectors:
        if detector_path in _detector_cache:
            detectors.append(_detector_cache[detector_path])
            continue

        if ":" in detector_path:
            module_path, class_name = detector_path.split(":", 1)
        else:
            module_path, _, class_name = detector_path.rpartition(".")

        try:
            module = importlib.import_module(module_path)
            detector = getattr(module, class_name)()
        except (ImportError, AttributeError, TypeError) as e:
            raise ConfigurationError(f"Could not load detector {detector_path}: {e}") from e

        if not isinstance(detector, RuleDetector):
            raise ConfigurationError(f"{detector_path} is not a RuleDetector")

        _detector_cache[detector_path] = detector
        detectors.append(detector)

    logger.debug("Detectors loaded", count=len(detectors))
    return detectors
