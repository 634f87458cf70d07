"""Report building and rendering."""

from plan_inspector.reporting.builder import ReportBuilder
from plan_inspector.reporting.render import render_json, render_text

__all__ = ["ReportBuilder", "render_json", "render_text"]
