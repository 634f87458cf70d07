"""Query model: versioned input schema, ingestor and immutable model."""

from plan_inspector.query_model.ingest import ingest, normalize_expression, normalize_identifier
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
from plan_inspector.query_model.schema import SCHEMA_VERSION, ParseTree

__all__ = [
    "ingest",
    "normalize_identifier",
    "normalize_expression",
    "QueryModel",
    "CteDefinition",
    "SelectBody",
    "SelectItem",
    "Source",
    "Join",
    "Predicate",
    "Aggregate",
    "WindowSpec",
    "SetOperation",
    "ParseTree",
    "SCHEMA_VERSION",
]
