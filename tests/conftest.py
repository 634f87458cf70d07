"""Shared pytest fixtures for plan inspector tests."""

from __future__ import annotations

import pytest
import structlog

from plan_inspector import analyze, clear_cache
from plan_inspector.models import Report
from tests.fixtures import CUSTOMERS_MODEL, SNOWFLAKE_USAGE_MODEL


@pytest.fixture(autouse=True)
def _reset_state():
    yield
    structlog.reset_defaults()
    clear_cache()


@pytest.fixture(scope="session")
def customers_report() -> Report:
    """Full report for the customers dbt model, parsed through sqlglot."""
    return analyze(CUSTOMERS_MODEL)


@pytest.fixture(scope="session")
def snowflake_usage_report() -> Report:
    """Full report for the account usage dbt model, parsed through sqlglot."""
    return analyze(SNOWFLAKE_USAGE_MODEL)
