"""Parse tree builders and sample models shared by the test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

FIXTURES_DIR = Path(__file__).parent

CUSTOMERS_MODEL = FIXTURES_DIR / "inefficient_customers_analysis.sql"
SNOWFLAKE_USAGE_MODEL = FIXTURES_DIR / "inefficient_snowflake_usage.sql"


def load_sql(name: str) -> str:
    return (FIXTURES_DIR / name).read_text()


def table(name: str, alias: Optional[str] = None) -> dict[str, Any]:
    return {"name": name, "alias": alias}


def derived(alias: str, body: dict[str, Any]) -> dict[str, Any]:
    return {"name": alias, "alias": alias, "subquery": body}


def col(expression: str, alias: Optional[str] = None, **fields: Any) -> dict[str, Any]:
    return {"expression": expression, "alias": alias, **fields}


def star() -> dict[str, Any]:
    return {"expression": "*", "star": True}


def agg(expression: str, alias: str, function: str, argument: str = "*", distinct: bool = False):
    return col(
        expression,
        alias,
        functions=[function],
        aggregate={"function": function, "argument": argument, "distinct": distinct},
    )


def pred(expression: str, **fields: Any) -> dict[str, Any]:
    return {"expression": expression, **fields}


def eq(column: str, literal: str) -> dict[str, Any]:
    return pred(f"{column} = '{literal}'", operator="=", column=column, literal=literal, columns=[column])


def join(
    right: str,
    kind: str = "inner",
    left: Optional[str] = None,
    condition: Optional[str] = None,
) -> dict[str, Any]:
    return {"left": left, "right": right, "kind": kind, "condition": condition}


def window(function: str, partition_by=(), order_by=()) -> dict[str, Any]:
    return {"function": function, "partition_by": list(partition_by), "order_by": list(order_by)}


def select(
    *sources: dict[str, Any],
    columns: Optional[list] = None,
    where: Optional[list] = None,
    joins: Optional[list] = None,
    windows: Optional[list] = None,
    group_by: Optional[list] = None,
    order_by: Optional[list] = None,
    limit: Optional[int] = None,
    distinct: bool = False,
    union_all: Optional[list] = None,
) -> dict[str, Any]:
    return {
        "sources": list(sources),
        "columns": columns if columns is not None else [col("id")],
        "where": where or [],
        "joins": joins or [],
        "windows": windows or [],
        "group_by": group_by or [],
        "order_by": order_by or [],
        "limit": limit,
        "distinct": distinct,
        "set_operations": [
            {"operator": "union_all", "body": body} for body in (union_all or [])
        ],
    }


def cte(name: str, body: dict[str, Any]) -> dict[str, Any]:
    return {"name": name, "body": body}


def tree(*ctes: dict[str, Any], final: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    """Parse tree whose final SELECT reads the last CTE unless given."""
    if final is None:
        final = select(table(ctes[-1]["name"]) if ctes else table("dual"), columns=[star()])
    return {"schema_version": 1, "ctes": list(ctes), "final": final}


def findings_for(detector, raw: dict[str, Any], **thresholds: Any) -> list:
    """Ingest ``raw`` and run a single detector over it."""
    from plan_inspector.query_model import ingest
    from plan_inspector.rule_engine import DetectionContext

    return detector.detect(ingest(raw), DetectionContext(**thresholds))
