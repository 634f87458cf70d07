"""Unit tests for parse tree ingestion."""

from __future__ import annotations

import json
from dataclasses import FrozenInstanceError

import pytest

from plan_inspector.query_model import (
    QueryModel,
    ingest,
    normalize_expression,
    normalize_identifier,
)
from plan_inspector.rule_engine import JoinKind, MalformedQueryError, SourceKind
from tests.fixtures import col, cte, derived, join, pred, select, star, table, tree


def _orders_tree() -> dict:
    return tree(
        cte("all_orders", select(table("stg_orders"), columns=[star()])),
        cte(
            "recent",
            select(
                table("all_orders", "o"),
                derived("p", select(table("stg_payments"))),
                columns=[col("o.order_id"), col("p.amount")],
                joins=[join("p", "left", left="o", condition="o.order_id = p.order_id")],
                where=[pred("o.order_date > '2024-01-01'", operator=">", column="o.order_date")],
            ),
        ),
    )


def test_ctes_keep_declaration_order():
    model = ingest(_orders_tree())

    assert model.cte_names == ("all_orders", "recent")
    assert [c.index for c in model.ctes] == [0, 1]
    assert model.final_index == 2


def test_sources_resolve_to_table_cte_or_subquery():
    model = ingest(_orders_tree())

    kinds = {s.reference: s.kind for s in model.cte("recent").body.sources}
    assert kinds == {"o": SourceKind.CTE, "p": SourceKind.SUBQUERY}
    assert model.cte("all_orders").body.sources[0].kind == SourceKind.TABLE


def test_identifiers_are_normalized():
    raw = tree(cte('"All_Orders"', select(table('SNOWFLAKE."ACCOUNT_USAGE".Query_History', "QH"))))

    model = ingest(raw)

    assert model.cte_names == ("all_orders",)
    source = model.ctes[0].body.sources[0]
    assert source.name == "snowflake.account_usage.query_history"
    assert source.alias == "qh"


def test_normalize_expression_keeps_string_literals():
    assert normalize_expression("UPPER(Status)  =\n 'COMPLETED'") == "upper(status) = 'COMPLETED'"
    assert normalize_identifier(None) is None


def test_accepts_json_text():
    model = ingest(json.dumps(_orders_tree()))

    assert model.cte_names == ("all_orders", "recent")


def test_query_model_is_returned_unchanged():
    model = ingest(_orders_tree())

    assert ingest(model) is model


def test_model_is_immutable():
    model = ingest(_orders_tree())

    with pytest.raises(FrozenInstanceError):
        model.ctes[0].name = "other"  # type: ignore[misc]


def test_join_kind_aliases_are_normalized():
    raw = tree(
        cte(
            "joined",
            select(
                table("a"),
                table("b"),
                joins=[join("b", "LEFT OUTER JOIN", condition="a.id = b.id")],
            ),
        )
    )

    body = ingest(raw).cte("joined").body

    assert body.joins[0].kind == JoinKind.LEFT
    assert body.joins[0].left == "a"


@pytest.mark.parametrize(
    "raw, message",
    [
        ({"schema_version": 1, "ctes": []}, "final"),
        ({"schema_version": 2, "final": select(table("t"))}, "schema version"),
        ([1, 2, 3], "mapping"),
        ("{not json", "not valid JSON"),
    ],
)
def test_structural_errors(raw, message):
    with pytest.raises(MalformedQueryError, match=message):
        ingest(raw)


def test_missing_cte_name_is_rejected():
    raw = tree(cte("", select(table("t"))))

    with pytest.raises(MalformedQueryError, match="ctes.0.name"):
        ingest(raw)


def test_duplicate_cte_name_is_rejected():
    raw = tree(cte("a", select(table("t"))), cte("A", select(table("t"))))

    with pytest.raises(MalformedQueryError, match="Duplicate CTE name 'a'"):
        ingest(raw)


def test_forward_reference_is_rejected():
    raw = tree(cte("first", select(table("second"))), cte("second", select(table("t"))))

    with pytest.raises(MalformedQueryError, match="referenced before it is defined"):
        ingest(raw)


def test_self_reference_is_rejected():
    raw = tree(cte("loop", select(table("loop"))))

    with pytest.raises(MalformedQueryError, match="'loop' is referenced before"):
        ingest(raw)


def test_missing_join_kind_is_rejected():
    raw = tree(cte("j", select(table("a"), table("b"), joins=[{"right": "b"}])))

    with pytest.raises(MalformedQueryError, match="joins.0.kind"):
        ingest(raw)


def test_unknown_join_kind_is_rejected():
    raw = tree(cte("j", select(table("a"), table("b"), joins=[join("b", "sideways")])))

    with pytest.raises(MalformedQueryError, match="Unknown join kind"):
        ingest(raw)


def test_join_side_must_name_a_source():
    raw = tree(cte("j", select(table("a"), table("b"), joins=[join("c", "inner")])))

    with pytest.raises(MalformedQueryError, match="does not name a source"):
        ingest(raw)


def test_consumers_include_subqueries_and_set_operations():
    raw = tree(
        cte("base", select(table("t"))),
        cte("other", select(table("u"))),
        cte(
            "reader",
            select(
                table("x"),
                columns=[col("(select max(id) from base)", "m", subquery=select(table("base")))],
                union_all=[select(table("other"))],
            ),
        ),
    )

    model = ingest(raw)

    assert [name for name, _, _ in model.consumers("base")] == ["reader"]
    assert [name for name, _, _ in model.consumers("other")] == ["reader"]


def test_resolve_relation_follows_pass_through_ctes():
    raw = tree(
        cte("all_orders", select(table("stg_orders"), columns=[star()])),
        cte("sorted_orders", select(table("all_orders"), columns=[col("order_id")], order_by=["order_id"])),
        cte("filtered", select(table("all_orders"), where=[pred("status = 'x'")])),
    )

    model = ingest(raw)

    assert isinstance(model, QueryModel)
    assert model.resolve_relation("sorted_orders") == "stg_orders"
    assert model.resolve_relation("filtered") == "filtered"
