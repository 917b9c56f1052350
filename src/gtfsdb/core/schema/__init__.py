"""Declarative schema model: entities, columns and foreign-key edges."""

from gtfsdb.core.schema.graph import SchemaGraph
from gtfsdb.core.schema.gtfs import GTFS_SCHEMA, build_gtfs_schema
from gtfsdb.core.schema.models import (
    AnyOfEdge,
    ColumnRef,
    ColumnSchema,
    EntitySchema,
    ForeignKeyEdge,
    ReferenceEdge,
    SelfReferenceEdge,
    column,
    entity,
    foreign_key,
)

__all__ = [
    "GTFS_SCHEMA",
    "AnyOfEdge",
    "ColumnRef",
    "ColumnSchema",
    "EntitySchema",
    "ForeignKeyEdge",
    "ReferenceEdge",
    "SchemaGraph",
    "SelfReferenceEdge",
    "build_gtfs_schema",
    "column",
    "entity",
    "foreign_key",
]
