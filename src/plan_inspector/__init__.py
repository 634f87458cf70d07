"""Plan Inspector - static anti-pattern detection for SQL query plans.

Reads a query (SQL text, a dbt model, or a parse tree in schema version 1),
builds an immutable query model, runs a registry of detectors over it and
returns a deterministic report of findings.

Example Usage:
    >>> from plan_inspector import analyze, render_text
    >>>
    >>> report = analyze("models/inefficient_customers_analysis.sql")
    >>> print(render_text(report))
    >>>
    >>> # Parse trees from any parser that emits schema version 1
    >>> report = analyze({"schema_version": 1, "ctes": [], "final": {...}})
    >>> report.has_critical()
"""

__version__ = "0.1.0"

from plan_inspector.core import analyze, analyze_model, clear_cache
from plan_inspector.models import Report
from plan_inspector.query_model import QueryModel, ingest
from plan_inspector.reporting import ReportBuilder, render_json, render_text
from plan_inspector.rule_engine import Finding, Location, RuleSeverity

__all__ = [
    # Core functions
    "analyze",
    "analyze_model",
    "clear_cache",
    "ingest",
    # Data models
    "Finding",
    "Location",
    "QueryModel",
    "Report",
    "ReportBuilder",
    "RuleSeverity",
    # Rendering
    "render_json",
    "render_text",
    # Version
    "__version__",
]
