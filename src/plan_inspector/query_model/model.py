"""Immutable query model consumed by detectors.

This module defines the normalized representation of one compiled SQL
statement:
- QueryModel: ordered CTE definitions plus the final SELECT
- SelectBody: the clause set of one SELECT (sources, joins, filters, windows)
- Source, Join, Predicate, SelectItem, Aggregate, WindowSpec, SetOperation

All classes are frozen dataclasses holding tuples, so a model can be shared
between detectors running on different threads without copying.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Optional

from plan_inspector.rule_engine.shared import FINAL_SELECT_LOCATION
from plan_inspector.rule_engine.types import JoinKind, SourceKind


@dataclass(frozen=True)
class Aggregate:
    """An aggregate call in a SELECT list (e.g. ``count(distinct order_id)``)."""

    function: str
    argument: str
    distinct: bool = False


@dataclass(frozen=True)
class SelectItem:
    """One output column of a SELECT.

    Attributes:
        expression: Normalized SQL text of the expression
        alias: Output alias, if any
        star: True for ``*`` or ``t.*``
        functions: Names of all functions called in the expression
        aggregate: Outermost aggregate call, if the expression is one
        subquery: Scalar subquery body, if the expression is one
    """

    expression: str
    alias: Optional[str] = None
    star: bool = False
    functions: tuple[str, ...] = ()
    aggregate: Optional[Aggregate] = None
    subquery: Optional["SelectBody"] = None

    @property
    def output_name(self) -> str:
        return self.alias or self.expression


@dataclass(frozen=True)
class Predicate:
    """One WHERE condition.

    ``column`` is the compared column, ``function`` the function wrapping it
    (``upper(status) = 'X'`` has column ``status`` and function ``upper``),
    ``literal`` the constant it is compared against. ``columns`` lists every
    column reference in the condition, qualified where the SQL qualified it.
    """

    expression: str
    operator: Optional[str] = None
    column: Optional[str] = None
    function: Optional[str] = None
    literal: Optional[str] = None
    columns: tuple[str, ...] = ()
    subquery: Optional["SelectBody"] = None

    @property
    def qualifiers(self) -> frozenset[str]:
        """Table qualifiers used by column references (``o`` in ``o.id``)."""
        return frozenset(
            ref.rsplit(".", 1)[0] for ref in self.columns if "." in ref
        )

    @property
    def is_column_comparison(self) -> bool:
        """True for ``a.x = b.y`` style conditions between two columns."""
        return self.operator == "=" and self.literal is None and len(set(self.columns)) >= 2


@dataclass(frozen=True)
class Source:
    """A relation read in FROM or JOIN."""

    name: str
    kind: SourceKind
    alias: Optional[str] = None
    body: Optional["SelectBody"] = None

    @property
    def reference(self) -> str:
        """Name other clauses use to refer to this source."""
        return self.alias or self.name

    @property
    def qualifiers(self) -> frozenset[str]:
        """Column qualifiers that point at this source.

        An alias hides the relation name. Unaliased ``raw.orders`` may be
        qualified as ``raw.orders`` or ``orders``.
        """
        if self.alias:
            return frozenset({self.alias})
        return frozenset({self.name, self.name.rsplit(".", 1)[-1]})


@dataclass(frozen=True)
class Join:
    """A join between two visible sources of the same SELECT."""

    left: Optional[str]
    right: str
    kind: JoinKind
    condition: Optional[str] = None


@dataclass(frozen=True)
class WindowSpec:
    """A window function call and its OVER clause."""

    function: str
    partition_by: tuple[str, ...] = ()
    order_by: tuple[str, ...] = ()

    @property
    def spec(self) -> tuple[tuple[str, ...], tuple[str, ...]]:
        """The OVER clause only, which determines the sort the engine needs."""
        return (self.partition_by, self.order_by)


@dataclass(frozen=True)
class SetOperation:
    """A set-operation branch appended to a SELECT (``UNION ALL select ...``)."""

    operator: str
    body: "SelectBody"


@dataclass(frozen=True)
class SelectBody:
    """The clause set of one SELECT.

    ``sources`` lists every relation in FROM and JOIN clauses, in order.
    """

    sources: tuple[Source, ...] = ()
    columns: tuple[SelectItem, ...] = ()
    where: tuple[Predicate, ...] = ()
    joins: tuple[Join, ...] = ()
    windows: tuple[WindowSpec, ...] = ()
    group_by: tuple[str, ...] = ()
    order_by: tuple[str, ...] = ()
    limit: Optional[int] = None
    distinct: bool = False
    set_operations: tuple[SetOperation, ...] = ()

    def source_for(self, reference: Optional[str]) -> Optional[Source]:
        """Find a source by alias first, then by name."""
        if reference is None:
            return None
        for source in self.sources:
            if source.alias == reference:
                return source
        for source in self.sources:
            if source.name == reference:
                return source
        return None

    @property
    def visible_names(self) -> frozenset[str]:
        """Aliases and names usable as column qualifiers in this SELECT."""
        return frozenset(
            qualifier for source in self.sources for qualifier in source.qualifiers
        )

    @property
    def is_aggregate(self) -> bool:
        return bool(self.group_by) or any(item.aggregate for item in self.columns)

    @property
    def is_pass_through(self) -> bool:
        """True when the SELECT only re-exposes one relation unchanged."""
        if len(self.sources) != 1 or self.sources[0].kind == SourceKind.SUBQUERY:
            return False
        if self.joins or self.where or self.group_by or self.distinct or self.windows:
            return False
        if self.set_operations or self.limit is not None:
            return False
        return all(
            item.star or (not item.functions and item.aggregate is None and item.subquery is None)
            for item in self.columns
        )

    def branches(self) -> Iterator["SelectBody"]:
        """Yield this SELECT and every set-operation branch after it."""
        yield self
        for operation in self.set_operations:
            yield from operation.body.branches()

    def walk(self) -> Iterator["SelectBody"]:
        """Yield this SELECT and every nested SELECT, depth first."""
        yield self
        for source in self.sources:
            if source.body is not None:
                yield from source.body.walk()
        for item in self.columns:
            if item.subquery is not None:
                yield from item.subquery.walk()
        for predicate in self.where:
            if predicate.subquery is not None:
                yield from predicate.subquery.walk()
        for operation in self.set_operations:
            yield from operation.body.walk()

    def referenced_relations(self) -> frozenset[str]:
        """Names of every non-derived relation read anywhere in this SELECT."""
        return frozenset(
            source.name
            for body in self.walk()
            for source in body.sources
            if source.kind != SourceKind.SUBQUERY
        )


@dataclass(frozen=True)
class CteDefinition:
    """A named CTE and its position in the WITH clause."""

    name: str
    index: int
    body: SelectBody


@dataclass(frozen=True)
class QueryModel:
    """Parsed representation of one compiled SQL statement.

    Immutable once ingested. CTE names are unique and every CTE reference
    points at an earlier definition.
    """

    ctes: tuple[CteDefinition, ...] = ()
    final: SelectBody = field(default_factory=SelectBody)
    schema_version: int = 1

    @property
    def final_index(self) -> int:
        """Location index used for the final SELECT."""
        return len(self.ctes)

    @property
    def cte_names(self) -> tuple[str, ...]:
        return tuple(cte.name for cte in self.ctes)

    def cte(self, name: str) -> Optional[CteDefinition]:
        for cte in self.ctes:
            if cte.name == name:
                return cte
        return None

    def scopes(self) -> Iterator[tuple[str, int, SelectBody]]:
        """Yield (location name, location index, body) for each CTE and the final SELECT."""
        for cte in self.ctes:
            yield cte.name, cte.index, cte.body
        yield FINAL_SELECT_LOCATION, self.final_index, self.final

    def consumers(self, name: str) -> list[tuple[str, int, SelectBody]]:
        """Scopes (later CTEs or the final SELECT) that read CTE ``name``."""
        return [
            scope
            for scope in self.scopes()
            if scope[0] != name and name in scope[2].referenced_relations()
        ]

    def resolve_relation(self, name: str) -> str:
        """Follow pass-through CTEs down to the relation that really gets read.

        ``all_orders as (select * from stg_orders)`` makes ``all_orders``
        resolve to ``stg_orders``.
        """
        seen = set()
        current = name
        while current not in seen:
            seen.add(current)
            cte = self.cte(current)
            if cte is None or not cte.body.is_pass_through:
                return current
            current = cte.body.sources[0].name
        return current
