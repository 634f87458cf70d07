"""SQL parsing adapter built on sqlglot.

This module turns SQL text (plain SQL or a dbt model) into a schema version 1
parse tree that the ingestor accepts. It performs no analysis of its own.

dbt templating is resolved textually before parsing:
- ``{{ ref('stg_orders') }}`` becomes ``stg_orders``
- ``{{ source('raw', 'orders') }}`` becomes ``raw.orders``
- ``{{ config(...) }}`` and ``{% ... %}`` blocks are dropped
- ``{# ... #}`` comments are removed
"""

import re
from typing import Any, Iterator, Optional

import sqlglot
import structlog
from sqlglot import exp
from sqlglot.errors import SqlglotError

from plan_inspector.query_model.schema import SCHEMA_VERSION
from plan_inspector.rule_engine.exceptions import MalformedQueryError

logger = structlog.get_logger(__name__)

DEFAULT_DIALECT = "snowflake"

_JINJA_COMMENT = re.compile(r"\{#.*?#\}", re.DOTALL)
_JINJA_CONFIG = re.compile(r"\{\{-?\s*config\s*\(.*?\)\s*-?\}\}", re.DOTALL)
_JINJA_BLOCK = re.compile(r"\{%-?.*?-?%\}", re.DOTALL)
_JINJA_REF = re.compile(
    r"\{\{-?\s*ref\s*\(\s*(?:['\"][^'\"]+['\"]\s*,\s*)?['\"]([^'\"]+)['\"]\s*\)\s*-?\}\}"
)
_JINJA_SOURCE = re.compile(
    r"\{\{-?\s*source\s*\(\s*['\"]([^'\"]+)['\"]\s*,\s*['\"]([^'\"]+)['\"]\s*\)\s*-?\}\}"
)
_JINJA_EXPRESSION = re.compile(r"\{\{.*?\}\}", re.DOTALL)

_SET_OPERATIONS = (exp.Union, exp.Intersect, exp.Except)
_QUERIES = (exp.Subquery, exp.Select, *_SET_OPERATIONS)

_COMPARISONS = {
    exp.EQ: "=",
    exp.NEQ: "<>",
    exp.GT: ">",
    exp.GTE: ">=",
    exp.LT: "<",
    exp.LTE: "<=",
    exp.Like: "like",
    exp.ILike: "ilike",
    exp.Is: "is",
}

# sqlglot class names that differ from the SQL spelling
_FUNCTION_ALIASES = {
    "str_position": "position",
    "strposition": "position",
    "ts_or_ds_to_date": "to_date",
    "str_to_date": "to_date",
    "str_to_time": "to_timestamp",
    "unix_to_time": "from_unixtime",
    "str_to_unix": "unix_timestamp",
    "time_to_unix": "unix_timestamp",
    "time_to_str": "date_format",
    "day_of_week": "dayofweek",
    "day_of_month": "dayofmonth",
    "day_of_year": "dayofyear",
    "week_of_year": "weekofyear",
}


def render_dbt(sql: str) -> str:
    """Resolve dbt templating to plain SQL.

    Args:
        sql: dbt model source

    Returns:
        SQL text with ref/source calls replaced by relation names

    Raises:
        MalformedQueryError: If a Jinja expression remains that cannot be resolved

    Example:
        >>> render_dbt("select * from {{ ref('stg_orders') }}")
        'select * from stg_orders'
    """
    rendered = _JINJA_COMMENT.sub("", sql)
    rendered = _JINJA_CONFIG.sub("", rendered)
    rendered = _JINJA_BLOCK.sub("", rendered)
    rendered = _JINJA_REF.sub(lambda m: m.group(1), rendered)
    rendered = _JINJA_SOURCE.sub(lambda m: f"{m.group(1)}.{m.group(2)}", rendered)

    leftover = _JINJA_EXPRESSION.search(rendered)
    if leftover:
        raise MalformedQueryError(f"Unsupported dbt expression {leftover.group(0)!r}")
    return rendered


def parse_sql(sql: str, dialect: str = DEFAULT_DIALECT) -> dict[str, Any]:
    """Parse a SELECT statement into a schema version 1 parse tree.

    Args:
        sql: SQL text; dbt templating is resolved first
        dialect: sqlglot dialect name (snowflake, databricks, ...)

    Returns:
        Parse tree dictionary ready for ``ingest``

    Raises:
        MalformedQueryError: If sqlglot cannot parse the text or the
            statement is not a query
    """
    text = render_dbt(sql)
    if not text.strip():
        raise MalformedQueryError("SQL text is empty")

    try:
        tree = sqlglot.parse_one(text, read=dialect)
    except SqlglotError as e:
        raise MalformedQueryError(f"SQL could not be parsed ({dialect}): {e}") from e

    while isinstance(tree, exp.Subquery):
        tree = tree.this
    if not isinstance(tree, (exp.Select, *_SET_OPERATIONS)):
        raise MalformedQueryError(
            f"Only SELECT statements can be analyzed, got {tree.key.upper()}"
        )

    builder = _TreeBuilder(dialect)
    parse_tree = {
        "schema_version": SCHEMA_VERSION,
        "ctes": [
            {"name": cte.alias, "body": builder.query(cte.this)}
            for cte in _ctes(tree)
        ],
        "final": builder.query(tree),
    }
    logger.debug("SQL parsed", dialect=dialect, cte_count=len(parse_tree["ctes"]))
    return parse_tree


def _arg(node: exp.Expression, name: str) -> Any:
    # newer sqlglot releases suffix keyword-named args with an underscore
    value = node.args.get(f"{name}_")
    return value if value is not None else node.args.get(name)


def _ctes(tree: exp.Expression) -> list[exp.CTE]:
    with_clause = _arg(tree, "with")
    return list(with_clause.expressions) if with_clause else []


def _local(node: exp.Expression) -> Iterator[exp.Expression]:
    """Walk ``node`` without entering nested queries."""

    def nested(child: exp.Expression) -> bool:
        return child is not node and isinstance(child, _QUERIES)

    for child in node.walk(bfs=True, prune=nested):
        if not nested(child):
            yield child


def _first_query(node: exp.Expression) -> Optional[exp.Expression]:
    """Outermost query nested in ``node`` (scalar, IN or EXISTS subquery)."""
    for child in node.walk(bfs=True):
        if child is not node and isinstance(child, _QUERIES):
            return child
    return None


def _function_name(func: exp.Expression) -> str:
    if isinstance(func, exp.Anonymous):
        name = func.name
    else:
        name = func.sql_name()
    name = name.lower()
    return _FUNCTION_ALIASES.get(name, name)


def _column_ref(column: exp.Column) -> str:
    return ".".join(part for part in (column.table, column.name) if part)


def _literal(node: exp.Expression) -> Optional[str]:
    if isinstance(node, exp.Literal):
        return node.this
    if isinstance(node, exp.Boolean):
        return "true" if node.this else "false"
    if isinstance(node, exp.Null):
        return "null"
    return None


class _TreeBuilder:
    """Converts sqlglot expressions into parse tree dictionaries."""

    def __init__(self, dialect: str) -> None:
        self.dialect = dialect
        self._derived = 0

    def sql(self, node: exp.Expression) -> str:
        return node.sql(dialect=self.dialect)

    def query(self, node: exp.Expression) -> dict[str, Any]:
        """Build a SelectNode from a SELECT or a chain of set operations."""
        while isinstance(node, exp.Subquery):
            node = node.this

        if isinstance(node, _SET_OPERATIONS):
            first = self.query(node.this)
            first["set_operations"].append(
                {"operator": self._set_operator(node), "body": self.query(node.expression)}
            )
            order = node.args.get("order")
            if order:
                first["order_by"] = [self.sql(key) for key in order.expressions]
            limit = self._limit(node)
            if limit is not None:
                first["limit"] = limit
            return first

        if not isinstance(node, exp.Select):
            raise MalformedQueryError(f"Unsupported query expression {node.key.upper()}")

        if _ctes(node) and node.parent is not None:
            logger.warning("Nested WITH clause ignored", sql=self.sql(node)[:80])

        sources = []
        joins = []
        references: dict[str, str] = {}

        from_clause = _arg(node, "from")
        if from_clause is not None:
            relations = [from_clause.this] if from_clause.this else list(from_clause.expressions)
            for relation in relations:
                sources.append(self._source(relation, references))

        for join in node.args.get("joins") or []:
            right = self._source(join.this, references)
            sources.append(right)
            joins.append(self._join(join, right, references, sources[0]))

        where = node.args.get("where")
        group = node.args.get("group")
        order = node.args.get("order")

        return {
            "sources": sources,
            "columns": [self._column(projection) for projection in node.expressions],
            "where": self._predicates(where.this) if where is not None else [],
            "joins": joins,
            "windows": [
                self._window(window)
                for projection in node.expressions
                for window in _local(projection)
                if isinstance(window, exp.Window)
            ],
            "group_by": [self.sql(key) for key in group.expressions] if group else [],
            "order_by": [self.sql(key) for key in order.expressions] if order else [],
            "limit": self._limit(node),
            "distinct": bool(node.args.get("distinct")),
            "set_operations": [],
        }

    @staticmethod
    def _set_operator(node: exp.Expression) -> str:
        if isinstance(node, exp.Intersect):
            return "intersect"
        if isinstance(node, exp.Except):
            return "except"
        return "union" if node.args.get("distinct") else "union_all"

    @staticmethod
    def _limit(node: exp.Expression) -> Optional[int]:
        limit = node.args.get("limit")
        if limit is None:
            return None
        value = limit.expression
        if isinstance(value, exp.Literal) and value.is_int:
            return int(value.this)
        return None

    def _source(self, relation: exp.Expression, references: dict[str, str]) -> dict[str, Any]:
        alias = relation.alias or None

        if isinstance(relation, exp.Table):
            name = ".".join(part for part in (relation.catalog, relation.db, relation.name) if part)
            if not name:
                name = alias or relation.key
            source = {"name": name, "alias": alias, "subquery": None}
            references[relation.name.lower()] = alias or name
            references[name.lower()] = alias or name
        elif isinstance(relation, exp.Subquery):
            self._derived += 1
            name = alias or f"derived_{self._derived}"
            source = {"name": name, "alias": alias, "subquery": self.query(relation.this)}
            references[name.lower()] = name
        else:
            # table functions, LATERAL, UNNEST
            name = alias or relation.key
            source = {"name": name, "alias": alias, "subquery": None}
            references[name.lower()] = name

        if alias:
            references[alias.lower()] = alias
        return source

    def _join(
        self,
        join: exp.Join,
        right: dict[str, Any],
        references: dict[str, str],
        first: dict[str, Any],
    ) -> dict[str, Any]:
        right_ref = right["alias"] or right["name"]
        condition = join.args.get("on")
        using = join.args.get("using")

        side = (join.side or "").lower()
        kind = (join.kind or "").lower()
        if side in {"left", "right", "full"}:
            join_kind = side
        elif kind == "cross" or (condition is None and not using and kind != "inner"):
            # comma joins carry no kind, side or condition
            join_kind = "cross"
        else:
            join_kind = "inner"

        left = None
        if condition is not None:
            for column in _local(condition):
                if not isinstance(column, exp.Column) or not column.table:
                    continue
                reference = references.get(column.table.lower())
                if reference and reference.lower() != right_ref.lower():
                    left = reference
                    break
        if left is None:
            left = first["alias"] or first["name"]

        condition_text = None
        if condition is not None:
            condition_text = self.sql(condition)
        elif using:
            condition_text = "using (" + ", ".join(self.sql(column) for column in using) + ")"

        return {"left": left, "right": right_ref, "kind": join_kind, "condition": condition_text}

    def _column(self, projection: exp.Expression) -> dict[str, Any]:
        alias = None
        inner = projection
        if isinstance(projection, exp.Alias):
            alias = projection.alias
            inner = projection.this

        functions = []
        for node in _local(inner):
            if isinstance(node, exp.Func):
                functions.append(_function_name(node))
            elif isinstance(node, exp.Binary):
                functions.append(node.key)

        # only an outermost call counts; sum(x) / count(*) is not sum(x)
        outermost = inner
        while isinstance(outermost, exp.Paren):
            outermost = outermost.this
        aggregate = self._aggregate(outermost) if isinstance(outermost, exp.AggFunc) else None

        nested = inner if isinstance(inner, exp.Subquery) else _first_query(inner)
        subquery = self.query(nested) if nested is not None else None

        return {
            "expression": self.sql(inner),
            "alias": alias,
            "star": inner.is_star,
            "functions": functions,
            "aggregate": aggregate,
            "subquery": subquery,
        }

    def _aggregate(self, func: exp.AggFunc) -> dict[str, Any]:
        argument = func.this
        distinct = isinstance(argument, exp.Distinct)
        if distinct:
            text = ", ".join(self.sql(e) for e in argument.expressions)
        elif argument is None or isinstance(argument, exp.Star):
            text = "*"
        else:
            text = self.sql(argument)
        return {"function": _function_name(func), "argument": text, "distinct": distinct}

    def _window(self, window: exp.Window) -> dict[str, Any]:
        func = window.this
        while isinstance(func, (exp.IgnoreNulls, exp.RespectNulls)):
            func = func.this
        order = window.args.get("order")
        return {
            "function": _function_name(func) if isinstance(func, exp.Func) else func.key,
            "partition_by": [self.sql(key) for key in window.args.get("partition_by") or []],
            "order_by": [self.sql(key) for key in order.expressions] if order else [],
        }

    def _predicates(self, condition: exp.Expression) -> list[dict[str, Any]]:
        """Split a WHERE condition on AND/OR into individual predicates."""
        while isinstance(condition, exp.Paren):
            condition = condition.this
        if isinstance(condition, (exp.And, exp.Or)):
            return self._predicates(condition.this) + self._predicates(condition.expression)
        return [self._predicate(condition)]

    def _predicate(self, condition: exp.Expression) -> dict[str, Any]:
        negated = False
        node = condition
        while isinstance(node, exp.Not):
            negated = not negated
            node = node.this
            while isinstance(node, exp.Paren):
                node = node.this

        operator = None
        compared = None
        literal = None

        for klass, symbol in _COMPARISONS.items():
            if isinstance(node, klass):
                operator = symbol
                left, right = node.this, node.expression
                compared, other = (right, left) if _literal(left) is not None else (left, right)
                literal = _literal(other)
                break
        else:
            if isinstance(node, exp.In):
                operator = "in"
                compared = node.this
            elif isinstance(node, exp.Between):
                operator = "between"
                compared = node.this
            elif isinstance(node, exp.Exists):
                operator = "exists"
            elif isinstance(node, exp.Func):
                compared = node

        if operator and negated:
            operator = f"not {operator}"

        column = None
        function = None
        if isinstance(compared, exp.Column):
            column = _column_ref(compared)
        elif compared is not None:
            inner = compared
            while isinstance(inner, exp.Paren):
                inner = inner.this
            if isinstance(inner, exp.Func) and not isinstance(inner, exp.AggFunc):
                function = _function_name(inner)
            first_column = next(
                (node for node in _local(inner) if isinstance(node, exp.Column)), None
            )
            if first_column is not None:
                column = _column_ref(first_column)

        columns = [
            _column_ref(node)
            for node in _local(condition)
            if isinstance(node, exp.Column) and not node.is_star
        ]

        nested = _first_query(condition)
        subquery = self.query(nested) if nested is not None else None

        return {
            "expression": self.sql(condition),
            "operator": operator,
            "column": column,
            "function": function,
            "literal": literal,
            "columns": columns,
            "subquery": subquery,
        }
