"""Query model ingestor.

Turns an external parser's output (a schema version 1 parse tree, as a dict
or JSON text) into an immutable QueryModel:
- validates structure with the pydantic schema
- normalizes identifiers (lower case, quotes stripped)
- resolves each FROM/JOIN reference to a base table, earlier CTE or
  derived table
- preserves CTE declaration order
"""

from __future__ import annotations

import json
import re
from dataclasses import replace
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from plan_inspector.query_model.model import (
    Aggregate,
    CteDefinition,
    Join,
    Predicate,
    QueryModel,
    SelectBody,
    SelectItem,
    SetOperation,
    Source,
    WindowSpec,
)
from plan_inspector.query_model.schema import (
    SCHEMA_VERSION,
    ColumnNode,
    JoinNode,
    ParseTree,
    PredicateNode,
    SelectNode,
)
from plan_inspector.rule_engine.exceptions import MalformedQueryError
from plan_inspector.rule_engine.types import JoinKind, SourceKind

logger = structlog.get_logger(__name__)

_QUOTES = "\"`[]"
_JOIN_KIND_ALIASES = {
    "": JoinKind.INNER,
    "join": JoinKind.INNER,
    "inner": JoinKind.INNER,
    "left": JoinKind.LEFT,
    "left outer": JoinKind.LEFT,
    "right": JoinKind.RIGHT,
    "right outer": JoinKind.RIGHT,
    "full": JoinKind.FULL,
    "full outer": JoinKind.FULL,
    "cross": JoinKind.CROSS,
}


def normalize_identifier(identifier: Optional[str]) -> Optional[str]:
    """Normalize a (possibly dotted) identifier.

    Example:
        >>> normalize_identifier('SNOWFLAKE."ACCOUNT_USAGE".Query_History')
        'snowflake.account_usage.query_history'
    """
    if identifier is None:
        return None
    parts = [part.strip().strip(_QUOTES).lower() for part in identifier.strip().split(".")]
    return ".".join(parts)


def normalize_expression(expression: str) -> str:
    """Collapse whitespace and lower-case an SQL expression, keeping string literals."""
    pieces = re.split(r"('(?:[^']|'')*')", expression.strip())
    normalized = []
    for i, piece in enumerate(pieces):
        if i % 2 == 1:
            normalized.append(piece)
        else:
            normalized.append(re.sub(r"\s+", " ", piece).lower())
    return "".join(normalized)


def ingest(raw_parse_tree: Any) -> QueryModel:
    """Build a QueryModel from an external parser's output.

    Args:
        raw_parse_tree: Schema version 1 parse tree as a dict, JSON text,
            validated ParseTree, or an existing QueryModel

    Returns:
        Immutable QueryModel

    Raises:
        MalformedQueryError: If required structural fields are missing or
            a CTE reference does not resolve to an earlier definition
    """
    if isinstance(raw_parse_tree, QueryModel):
        return raw_parse_tree

    tree = _validate(raw_parse_tree)
    model = _Ingestor(tree).build()
    logger.info("Query model ingested", cte_count=len(model.ctes))
    return model


def _validate(raw: Any) -> ParseTree:
    if isinstance(raw, ParseTree):
        tree = raw
    else:
        if isinstance(raw, (str, bytes)):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError as e:
                raise MalformedQueryError(f"Parse tree is not valid JSON: {e}") from e

        if not isinstance(raw, dict):
            raise MalformedQueryError(
                f"Parse tree must be a mapping, got {type(raw).__name__}"
            )

        try:
            tree = ParseTree.model_validate(raw)
        except ValidationError as e:
            first = e.errors()[0]
            path = ".".join(str(part) for part in first["loc"])
            raise MalformedQueryError(
                f"{first['msg']} ({e.error_count()} error(s) in parse tree)", path=path
            ) from e

    if tree.schema_version != SCHEMA_VERSION:
        raise MalformedQueryError(
            f"Unsupported parse tree schema version {tree.schema_version}; "
            f"expected {SCHEMA_VERSION}",
            path="schema_version",
        )
    return tree


class _Ingestor:
    """Single-use builder that tracks which CTEs are defined so far."""

    def __init__(self, tree: ParseTree) -> None:
        self.tree = tree
        self.all_cte_names = {normalize_identifier(cte.name) for cte in tree.ctes}
        self.defined: list[str] = []

    def build(self) -> QueryModel:
        ctes = []
        for index, node in enumerate(self.tree.ctes):
            path = f"ctes.{index}"
            name = normalize_identifier(node.name)
            if not name:
                raise MalformedQueryError("CTE name is empty", path=f"{path}.name")
            if name in self.defined:
                raise MalformedQueryError(f"Duplicate CTE name '{name}'", path=f"{path}.name")

            body = self._select(node.body, f"{path}.body")
            ctes.append(CteDefinition(name=name, index=index, body=body))
            self.defined.append(name)

        final = self._select(self.tree.final, "final")
        return QueryModel(ctes=tuple(ctes), final=final, schema_version=self.tree.schema_version)

    def _select(self, node: SelectNode, path: str) -> SelectBody:
        sources = tuple(
            self._source(source, f"{path}.sources.{i}")
            for i, source in enumerate(node.sources)
        )
        body = SelectBody(
            sources=sources,
            columns=tuple(
                self._column(column, f"{path}.columns.{i}")
                for i, column in enumerate(node.columns)
            ),
            where=tuple(
                self._predicate(predicate, f"{path}.where.{i}")
                for i, predicate in enumerate(node.where)
            ),
            windows=tuple(
                WindowSpec(
                    function=window.function.strip().lower(),
                    partition_by=tuple(normalize_expression(key) for key in window.partition_by),
                    order_by=tuple(normalize_expression(key) for key in window.order_by),
                )
                for window in node.windows
            ),
            group_by=tuple(normalize_expression(key) for key in node.group_by),
            order_by=tuple(normalize_expression(key) for key in node.order_by),
            limit=node.limit,
            distinct=node.distinct,
            set_operations=tuple(
                SetOperation(
                    operator=operation.operator,
                    body=self._select(operation.body, f"{path}.set_operations.{i}.body"),
                )
                for i, operation in enumerate(node.set_operations)
            ),
        )
        joins = tuple(
            self._join(join, body, f"{path}.joins.{i}") for i, join in enumerate(node.joins)
        )
        return replace(body, joins=joins)

    def _source(self, node, path: str) -> Source:
        name = normalize_identifier(node.name)
        alias = normalize_identifier(node.alias)

        if node.subquery is not None:
            return Source(
                name=name,
                alias=alias,
                kind=SourceKind.SUBQUERY,
                body=self._select(node.subquery, f"{path}.subquery"),
            )

        if name in self.defined:
            return Source(name=name, alias=alias, kind=SourceKind.CTE)

        if name in self.all_cte_names:
            raise MalformedQueryError(
                f"CTE '{name}' is referenced before it is defined", path=f"{path}.name"
            )

        return Source(name=name, alias=alias, kind=SourceKind.TABLE)

    def _column(self, node: ColumnNode, path: str) -> SelectItem:
        aggregate = None
        if node.aggregate is not None:
            aggregate = Aggregate(
                function=node.aggregate.function.strip().lower(),
                argument=normalize_expression(node.aggregate.argument),
                distinct=node.aggregate.distinct,
            )
        return SelectItem(
            expression=normalize_expression(node.expression),
            alias=normalize_identifier(node.alias),
            star=node.star,
            functions=tuple(function.strip().lower() for function in node.functions),
            aggregate=aggregate,
            subquery=(
                self._select(node.subquery, f"{path}.subquery")
                if node.subquery is not None
                else None
            ),
        )

    def _predicate(self, node: PredicateNode, path: str) -> Predicate:
        return Predicate(
            expression=normalize_expression(node.expression),
            operator=node.operator.strip().lower() if node.operator else None,
            column=normalize_identifier(node.column),
            function=node.function.strip().lower() if node.function else None,
            literal=node.literal,
            columns=tuple(normalize_identifier(column) for column in node.columns),
            subquery=(
                self._select(node.subquery, f"{path}.subquery")
                if node.subquery is not None
                else None
            ),
        )

    def _join(self, node: JoinNode, body: SelectBody, path: str) -> Join:
        kind_text = re.sub(r"\s+", " ", node.kind.strip().lower()).removesuffix(" join")
        kind = _JOIN_KIND_ALIASES.get(kind_text)
        if kind is None:
            raise MalformedQueryError(f"Unknown join kind '{node.kind}'", path=f"{path}.kind")

        right = normalize_identifier(node.right)
        if body.source_for(right) is None:
            raise MalformedQueryError(
                f"Join side '{right}' does not name a source of this SELECT", path=f"{path}.right"
            )

        left = normalize_identifier(node.left)
        if left is None and body.sources:
            left = body.sources[0].reference
        elif left is not None and body.source_for(left) is None:
            raise MalformedQueryError(
                f"Join side '{left}' does not name a source of this SELECT", path=f"{path}.left"
            )

        return Join(
            left=left,
            right=right,
            kind=kind,
            condition=normalize_expression(node.condition) if node.condition else None,
        )
