"""Pydantic models for the versioned parse tree schema.

This module defines the input boundary of the ingestor. Any parser adapter
that emits a dict (or JSON document) matching schema version 1 can feed
the analyzer. Field names and nesting:

    ParseTree        schema_version, ctes[], final
    CteNode          name, body
    SelectNode       sources[], columns[], where[], joins[], windows[],
                     group_by[], order_by[], limit, distinct, set_operations[]
    SourceNode       name, alias, subquery
    ColumnNode       expression, alias, star, functions[], aggregate, subquery
    AggregateNode    function, argument, distinct
    PredicateNode    expression, operator, column, function, literal,
                     columns[], subquery
    JoinNode         left, right, kind, condition
    WindowNode       function, partition_by[], order_by[]
    SetOperationNode operator, body

``sources`` lists every relation read in FROM and JOIN clauses. A join's
``left`` and ``right`` name one of those sources by alias or name.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

SCHEMA_VERSION = 1


class _Node(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class AggregateNode(_Node):
    function: str = Field(..., min_length=1, description="Aggregate function name")
    argument: str = Field(default="*", description="Argument SQL text")
    distinct: bool = Field(default=False, description="DISTINCT aggregate")


class ColumnNode(_Node):
    expression: str = Field(..., description="Expression SQL text")
    alias: Optional[str] = Field(default=None, description="Output alias")
    star: bool = Field(default=False, description="SELECT * or t.*")
    functions: list[str] = Field(default_factory=list, description="Functions called in the expression")
    aggregate: Optional[AggregateNode] = Field(default=None, description="Outermost aggregate call")
    subquery: Optional[SelectNode] = Field(default=None, description="Scalar subquery body")


class PredicateNode(_Node):
    expression: str = Field(..., description="Condition SQL text")
    operator: Optional[str] = Field(default=None, description="Comparison operator (=, <, like, in, ...)")
    column: Optional[str] = Field(default=None, description="Compared column")
    function: Optional[str] = Field(default=None, description="Function wrapping the compared column")
    literal: Optional[str] = Field(default=None, description="Constant compared against")
    columns: list[str] = Field(default_factory=list, description="All column references")
    subquery: Optional[SelectNode] = Field(default=None, description="Nested subquery, if any")


class SourceNode(_Node):
    name: str = Field(..., min_length=1, description="Relation name (table, CTE or derived alias)")
    alias: Optional[str] = Field(default=None, description="Alias in FROM/JOIN")
    subquery: Optional[SelectNode] = Field(default=None, description="Derived table body")


class JoinNode(_Node):
    left: Optional[str] = Field(default=None, description="Left side alias or name")
    right: str = Field(..., min_length=1, description="Right side alias or name")
    kind: str = Field(..., min_length=1, description="inner, left, right, full or cross")
    condition: Optional[str] = Field(default=None, description="ON condition SQL text")


class WindowNode(_Node):
    function: str = Field(..., min_length=1, description="Window function name")
    partition_by: list[str] = Field(default_factory=list)
    order_by: list[str] = Field(default_factory=list)


class SetOperationNode(_Node):
    operator: Literal["union_all", "union", "intersect", "except"] = Field(...)
    body: SelectNode


class SelectNode(_Node):
    sources: list[SourceNode] = Field(default_factory=list)
    columns: list[ColumnNode] = Field(default_factory=list)
    where: list[PredicateNode] = Field(default_factory=list)
    joins: list[JoinNode] = Field(default_factory=list)
    windows: list[WindowNode] = Field(default_factory=list)
    group_by: list[str] = Field(default_factory=list)
    order_by: list[str] = Field(default_factory=list)
    limit: Optional[int] = Field(default=None, ge=0)
    distinct: bool = False
    set_operations: list[SetOperationNode] = Field(default_factory=list)


class CteNode(_Node):
    name: str = Field(..., min_length=1, description="CTE name")
    body: SelectNode


class ParseTree(_Node):
    """Root of a schema version 1 parse tree."""

    schema_version: int = Field(..., description="Parse tree schema version")
    ctes: list[CteNode] = Field(default_factory=list)
    final: SelectNode = Field(..., description="Outermost SELECT")


ColumnNode.model_rebuild()
PredicateNode.model_rebuild()
SourceNode.model_rebuild()
SetOperationNode.model_rebuild()
SelectNode.model_rebuild()
CteNode.model_rebuild()
ParseTree.model_rebuild()
