# src/gtfsdb/core/schema/models.py
"""Types for the declarative schema model.

Leaf module: no intra-package imports beyond contracts.
Every type here is frozen: the schema is built once per process
and shared between validator, pruner and store.

Foreign keys are modelled as three tagged variants rather than one class
with optional fields, so consumers dispatch on ``edge.kind`` and handle
every shape explicitly:

- ReferenceEdge: one target in another entity
- AnyOfEdge: two or more alternative targets
- SelfReferenceEdge: target column in the source entity itself
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from gtfsdb.contracts.enums import EdgeKind, Presence
from gtfsdb.contracts.errors import SchemaConfigurationError
from gtfsdb.contracts.types import ColumnName, EntityName


@dataclass(frozen=True, slots=True, order=True)
class ColumnRef:
    """Fully qualified column: entity plus column name."""

    entity: EntityName
    column: ColumnName

    @classmethod
    def parse(cls, dotted: str) -> ColumnRef:
        """Parse ``"entity.column"`` into a ColumnRef.

        Raises:
            SchemaConfigurationError: If the string is not exactly two dotted parts
        """
        parts = dotted.split(".")
        if len(parts) != 2 or not all(parts):
            raise SchemaConfigurationError(f"Column reference must look like 'entity.column', got '{dotted}'")
        return cls(EntityName(parts[0]), ColumnName(parts[1]))

    def __str__(self) -> str:
        return f"{self.entity}.{self.column}"


@dataclass(frozen=True, slots=True)
class ColumnSchema:
    """A declared column.

    type_description and presence document the GTFS reference; neither is
    enforced. Every stored value is optional text.
    """

    name: ColumnName
    type_description: str = "Text"
    presence: Presence = Presence.OPTIONAL


@dataclass(frozen=True, slots=True)
class EntitySchema:
    """A declared entity (one GTFS file, one table).

    Columns keep declaration order; that order is used when the store
    creates the table and when violations snapshot a row.
    """

    name: EntityName
    columns: tuple[ColumnSchema, ...]
    primary_key: tuple[ColumnName, ...] = ()

    def __post_init__(self) -> None:
        if not self.name:
            raise SchemaConfigurationError("Entity name must not be empty")
        names = [column.name for column in self.columns]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise SchemaConfigurationError(f"Entity '{self.name}' declares duplicate column(s): {duplicates}")
        missing = [key for key in self.primary_key if key not in names]
        if missing:
            raise SchemaConfigurationError(f"Entity '{self.name}' primary key references undeclared column(s): {missing}")

    @property
    def column_names(self) -> tuple[ColumnName, ...]:
        return tuple(column.name for column in self.columns)

    def has_column(self, name: str) -> bool:
        return any(column.name == name for column in self.columns)

    def get_column(self, name: str) -> ColumnSchema:
        """Get a declared column.

        Raises:
            KeyError: If the column is not declared
        """
        for column in self.columns:
            if column.name == name:
                return column
        raise KeyError(f"Column not found: {self.name}.{name}")


@dataclass(frozen=True, slots=True)
class ReferenceEdge:
    """Foreign key with a single target in another entity."""

    kind: ClassVar[EdgeKind] = EdgeKind.REFERENCE

    source: ColumnRef
    target: ColumnRef
    prune_unreferenced: bool = False

    def __post_init__(self) -> None:
        if self.target.entity == self.source.entity:
            raise SchemaConfigurationError(f"{self.source} references its own entity; declare it as a SelfReferenceEdge")

    @property
    def source_entity(self) -> EntityName:
        return self.source.entity

    @property
    def source_column(self) -> ColumnName:
        return self.source.column

    @property
    def targets(self) -> tuple[ColumnRef, ...]:
        return (self.target,)


@dataclass(frozen=True, slots=True)
class AnyOfEdge:
    """Foreign key satisfied by matching any one of several targets."""

    kind: ClassVar[EdgeKind] = EdgeKind.ANY_OF

    source: ColumnRef
    alternatives: tuple[ColumnRef, ...]
    prune_unreferenced: bool = False

    def __post_init__(self) -> None:
        if len(self.alternatives) < 2:
            raise SchemaConfigurationError(f"{self.source}: any-of edge needs at least two alternatives, got {len(self.alternatives)}")
        if len(set(self.alternatives)) != len(self.alternatives):
            raise SchemaConfigurationError(f"{self.source}: any-of edge lists the same alternative twice")
        if any(alt.entity == self.source.entity for alt in self.alternatives):
            raise SchemaConfigurationError(f"{self.source}: any-of alternatives must not target the source entity")

    @property
    def source_entity(self) -> EntityName:
        return self.source.entity

    @property
    def source_column(self) -> ColumnName:
        return self.source.column

    @property
    def targets(self) -> tuple[ColumnRef, ...]:
        return self.alternatives


@dataclass(frozen=True, slots=True)
class SelfReferenceEdge:
    """Foreign key from an entity to itself (parent/child link).

    prune_unreferenced is always False: whether a parent survives is decided
    by the pruner's transitive rescue, not by the unreferenced rule.
    """

    kind: ClassVar[EdgeKind] = EdgeKind.SELF_REFERENCE

    source: ColumnRef
    target_column: ColumnName

    @property
    def source_entity(self) -> EntityName:
        return self.source.entity

    @property
    def source_column(self) -> ColumnName:
        return self.source.column

    @property
    def target(self) -> ColumnRef:
        return ColumnRef(self.source.entity, self.target_column)

    @property
    def targets(self) -> tuple[ColumnRef, ...]:
        return (self.target,)

    @property
    def prune_unreferenced(self) -> bool:
        return False


type ForeignKeyEdge = ReferenceEdge | AnyOfEdge | SelfReferenceEdge


def foreign_key(source: str, *targets: str, prune_unreferenced: bool = False) -> ForeignKeyEdge:
    """Declare a foreign key, choosing the variant from its shape.

    Args:
        source: ``"entity.column"`` holding the referencing values
        targets: One or more ``"entity.column"`` alternatives
        prune_unreferenced: Target rows exist only to serve the source rows
            and are pruned once nothing references them

    Returns:
        SelfReferenceEdge if the single target is in the source entity,
        ReferenceEdge for any other single target, AnyOfEdge otherwise.

    Raises:
        SchemaConfigurationError: If no target is given, or the shape is invalid
    """
    source_ref = ColumnRef.parse(source)
    target_refs = tuple(ColumnRef.parse(target) for target in targets)
    if not target_refs:
        raise SchemaConfigurationError(f"{source_ref}: foreign key declares no target")
    if len(target_refs) > 1:
        return AnyOfEdge(source_ref, target_refs, prune_unreferenced=prune_unreferenced)
    target_ref = target_refs[0]
    if target_ref.entity == source_ref.entity:
        if prune_unreferenced:
            raise SchemaConfigurationError(f"{source_ref}: self-referential edges cannot prune unreferenced rows")
        return SelfReferenceEdge(source_ref, target_ref.column)
    return ReferenceEdge(source_ref, target_ref, prune_unreferenced=prune_unreferenced)


def column(name: str, type_description: str = "Text", presence: Presence = Presence.OPTIONAL) -> ColumnSchema:
    """Shorthand used by declarative schema modules."""
    return ColumnSchema(ColumnName(name), type_description, presence)


def entity(name: str, *columns: ColumnSchema, primary_key: tuple[str, ...] = ()) -> EntitySchema:
    """Shorthand used by declarative schema modules."""
    return EntitySchema(EntityName(name), tuple(columns), tuple(ColumnName(key) for key in primary_key))
