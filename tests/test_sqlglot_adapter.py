"""Unit tests for the sqlglot parser adapter."""

from __future__ import annotations

import pytest

from plan_inspector.detectors import (
    CrossJoinDetector,
    NonSargablePredicateDetector,
    RedundantAggregationDetector,
)
from plan_inspector.detectors.non_sargable_predicate import DATE_FUNCTIONS
from plan_inspector.parsers import parse_sql, render_dbt
from plan_inspector.query_model import ingest
from plan_inspector.rule_engine import JoinKind, MalformedQueryError, SourceKind
from tests.fixtures import CUSTOMERS_MODEL, SNOWFLAKE_USAGE_MODEL


def _model(sql: str):
    return ingest(parse_sql(sql))


def test_render_dbt_resolves_ref_and_source():
    sql = """
    {{ config(materialized='table') }}
    {# reviewed #}
    {% if is_incremental() %} where 1 = 1 {% endif %}
    select * from {{ ref('stg_orders') }} join {{ source("raw", "payments") }} using (order_id)
    """

    rendered = render_dbt(sql)

    assert "stg_orders" in rendered
    assert "raw.payments" in rendered
    assert "config" not in rendered
    assert "reviewed" not in rendered
    assert "{%" not in rendered


def test_render_dbt_rejects_unknown_expressions():
    with pytest.raises(MalformedQueryError, match="var"):
        render_dbt("select * from t where d > {{ var('start_date') }}")


def test_ctes_and_sources():
    model = _model(
        """
        with all_orders as (select * from analytics.stg_orders),
        recent as (
            select o.order_id from all_orders o
            left join (select order_id, amount from payments) p on o.order_id = p.order_id
        )
        select * from recent
        """
    )

    assert model.cte_names == ("all_orders", "recent")
    assert model.cte("all_orders").body.sources[0].name == "analytics.stg_orders"
    assert model.cte("all_orders").body.columns[0].star

    recent = model.cte("recent").body
    assert [(s.reference, s.kind) for s in recent.sources] == [
        ("o", SourceKind.CTE),
        ("p", SourceKind.SUBQUERY),
    ]
    assert recent.joins[0].kind == JoinKind.LEFT
    assert recent.joins[0].left == "o"
    assert recent.joins[0].right == "p"


def test_cross_and_comma_joins():
    body = _model("select a.id, b.id from a cross join b").final
    assert body.joins[0].kind == JoinKind.CROSS

    body = _model("select a.id, b.id from a, b where a.id = b.id").final
    assert body.joins[0].kind == JoinKind.CROSS
    assert body.where[0].qualifiers == {"a", "b"}


def test_where_predicates_are_split_and_classified():
    body = _model(
        """
        select order_id from orders
        where upper(status) = 'COMPLETED'
           or position('e' in status) > 0
           and region in ('EU', 'UK')
           and not status like '%x%'
        """
    ).final

    first, second, third, fourth = body.where
    assert (first.operator, first.column, first.function, first.literal) == (
        "=",
        "status",
        "upper",
        "COMPLETED",
    )
    assert second.function == "position"
    assert second.column == "status"
    assert third.operator == "in"
    assert third.column == "region"
    assert fourth.operator == "not like"


def test_union_all_chain_is_flattened():
    body = _model(
        """
        select 'a' as k from t where c = 'a'
        union all
        select 'b' as k from t where c = 'b'
        union all
        select 'c' as k from t where c = 'c'
        """
    ).final

    assert [op.operator for op in body.set_operations] == ["union_all", "union_all"]
    assert [b.where[0].literal for b in body.branches()] == ["a", "b", "c"]


def test_windows_and_aggregates():
    body = _model(
        """
        select
            customer_id,
            row_number() over (partition by region order by created_at desc) as rn,
            count(distinct order_id) as orders,
            sum(1) as row_total
        from orders
        group by customer_id, region, created_at
        order by customer_id
        limit 10
        """
    ).final

    assert len(body.windows) == 1
    assert body.windows[0].function == "row_number"
    assert body.windows[0].partition_by == ("region",)
    assert body.windows[0].order_by == ("created_at desc",)

    orders = body.columns[2].aggregate
    assert (orders.function, orders.argument, orders.distinct) == ("count", "order_id", True)
    assert body.columns[3].aggregate.argument == "1"
    assert body.columns[1].aggregate is None
    assert body.group_by == ("customer_id", "region", "created_at")
    assert body.limit == 10


def test_only_outermost_aggregate_is_recorded():
    model = _model(
        """
        with totals as (
            select
                customer_id,
                sum(amount) as total,
                sum(amount) / count(*) as avg_amount,
                count(*) as n
            from payments
            group by customer_id
        )
        select * from totals
        """
    )

    columns = model.ctes[0].body.columns
    assert columns[1].aggregate.function == "sum"
    assert columns[2].aggregate is None
    assert set(columns[2].functions) >= {"sum", "count"}
    assert RedundantAggregationDetector().detect(model) == []


def test_date_and_cast_filters_are_classified():
    model = _model(
        """
        select * from orders
        where year(order_date) = 2024
          and cast(amount as int) = 100
          and date_trunc('day', created_at) = '2024-01-01'
        """
    )

    year, cast, trunc = model.final.where
    assert (year.function, year.column) == ("year", "order_date")
    assert (cast.function, cast.column) == ("cast", "amount")
    assert trunc.function in DATE_FUNCTIONS
    assert trunc.column == "created_at"
    assert len(NonSargablePredicateDetector().detect(model)) == 3


def test_comma_join_filtered_through_table_names():
    model = _model(
        """
        select orders.id
        from raw.orders, raw.customers
        where orders.customer_id = customers.id
        """
    )

    assert model.final.joins[0].kind == JoinKind.CROSS
    assert CrossJoinDetector().detect(model) == []


def test_scalar_subquery_is_attached_to_its_column():
    body = _model(
        """
        select
            c.customer_id,
            (select count(*) from orders o where o.customer_id = c.customer_id) as order_count
        from customers c
        """
    ).final

    item = body.columns[1]
    assert item.alias == "order_count"
    assert item.aggregate is None
    assert item.subquery is not None
    assert set(item.subquery.where[0].columns) == {"o.customer_id", "c.customer_id"}


@pytest.mark.parametrize(
    "sql, message",
    [
        ("", "empty"),
        ("select * from (", "could not be parsed"),
        ("insert into t values (1)", "Only SELECT"),
    ],
)
def test_invalid_sql(sql, message):
    with pytest.raises(MalformedQueryError, match=message):
        parse_sql(sql)


@pytest.mark.parametrize("path", [CUSTOMERS_MODEL, SNOWFLAKE_USAGE_MODEL], ids=lambda p: p.stem)
def test_dbt_models_ingest(path):
    model = ingest(parse_sql(path.read_text()))

    assert model.ctes
    assert model.final.sources[0].name == "final"
    assert model.final.sources[0].kind == SourceKind.CTE
