"""Parser adapters that produce schema version 1 parse trees."""

from plan_inspector.parsers.sqlglot_adapter import DEFAULT_DIALECT, parse_sql, render_dbt

__all__ = ["DEFAULT_DIALECT", "parse_sql", "render_dbt"]
