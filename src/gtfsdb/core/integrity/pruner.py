# src/gtfsdb/core/integrity/pruner.py
"""Cascading pruner: filter an anchor entity, then remove every orphan.

The walk order comes from SchemaGraph.deletion_order(): the anchor first,
then outward through the propagation graph one strongly connected
component at a time. A component is revisited until a full round deletes
nothing. For each entity a round schedules:

- dangling rows: a foreign key no longer resolves (never rescued)
- predicate failures: anchor rows rejected by the keep predicate
- unreferenced rows: no prune-unreferenced edge references the row

Predicate failures and unreferenced rows are rescued while a surviving row
of the same entity still points at them through a self-referential edge,
transitively. After the cascade the validator runs in repair mode; if it
deletes anything the cascade runs again.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from gtfsdb.contracts.enums import EdgeKind, OrphanReason, ValidationMode
from gtfsdb.contracts.types import ColumnName, EntityName, KeepPredicate, RowIdentity
from gtfsdb.core.integrity.validator import IntegrityValidator, ValidationResult
from gtfsdb.core.logging import feed_context, get_logger
from gtfsdb.core.schema.graph import SchemaGraph
from gtfsdb.core.schema.models import ColumnRef, SelfReferenceEdge
from gtfsdb.core.store.database import FeedStore, StoreRow

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class PruneStep:
    """Rows deleted from one entity in one round."""

    entity: EntityName
    deleted: tuple[RowIdentity, ...]
    reasons: Mapping[OrphanReason, int]

    @property
    def count(self) -> int:
        return len(self.deleted)


@dataclass(frozen=True, slots=True)
class PruneResult:
    """What a prune() call removed.

    Attributes:
        anchor: Entity filtered by the keep predicate
        steps: Cascade deletions in the order applied
        validations: Closing repair validations, first one first
    """

    anchor: EntityName
    steps: tuple[PruneStep, ...]
    validations: tuple[ValidationResult, ...]

    @property
    def validation(self) -> ValidationResult:
        """The first closing validation; its violations are the ones the cascade missed."""
        return self.validations[0]

    @property
    def total_deleted(self) -> int:
        return sum(step.count for step in self.steps) + sum(result.deleted for result in self.validations)

    def deleted_by_entity(self) -> dict[EntityName, int]:
        """Cascade and repair deletions per entity, in first-deletion order."""
        totals: Counter[EntityName] = Counter()
        for step in self.steps:
            totals[step.entity] += step.count
        for result in self.validations:
            totals.update(result.deleted_by_entity)
        return dict(totals)


class CascadingPruner:
    """Removes rows orphaned by filtering an anchor entity."""

    def __init__(self, schema: SchemaGraph, validator: IntegrityValidator | None = None) -> None:
        self._schema = schema
        self._validator = validator if validator is not None else IntegrityValidator(schema)

    def prune(self, store: FeedStore, anchor_entity: str, keep_predicate: KeepPredicate) -> PruneResult:
        """Keep anchor rows accepted by ``keep_predicate`` and everything still consistent.

        Mutates the store in place. Each deletion commits on its own; run
        on a copy when the whole operation must be atomic.

        Raises:
            KeyError: If the anchor is not a schema entity
            StoreError: Propagated from the store
            RepairConvergenceError: Propagated from the closing validation
        """
        anchor = self._schema.get_entity(anchor_entity).name
        with feed_context(store.location, anchor=anchor):
            return self._prune(store, anchor, keep_predicate)

    def _prune(self, store: FeedStore, anchor: EntityName, keep_predicate: KeepPredicate) -> PruneResult:
        order = self._schema.deletion_order(anchor)
        logger.info("Pruning", order=[list(component) for component in order])

        steps: list[PruneStep] = []
        validations: list[ValidationResult] = []
        while True:
            self._cascade(store, anchor, keep_predicate, order, steps)
            validation = self._validator.validate(store, ValidationMode.REPAIR)
            validations.append(validation)
            if validation.deleted == 0:
                break
            logger.info("Cascading again after repair deletions", deleted=validation.deleted)

        result = PruneResult(anchor=anchor, steps=tuple(steps), validations=tuple(validations))
        logger.info("Pruning finished", deleted=result.total_deleted)
        return result

    def _cascade(
        self,
        store: FeedStore,
        anchor: EntityName,
        keep_predicate: KeepPredicate,
        order: Sequence[tuple[EntityName, ...]],
        steps: list[PruneStep],
    ) -> None:
        for component in order:
            revisit = len(component) > 1 or any(self._self_edges(entity) for entity in component)
            while True:
                deleted = 0
                for entity in component:
                    step = self._prune_entity(store, entity, anchor, keep_predicate)
                    if step is not None:
                        steps.append(step)
                        deleted += step.count
                if deleted == 0 or not revisit:
                    break

    def _self_edges(self, entity: EntityName) -> list[SelfReferenceEdge]:
        return [edge for edge in self._schema.edges_from(entity) if isinstance(edge, SelfReferenceEdge)]

    def _prune_entity(
        self,
        store: FeedStore,
        entity: EntityName,
        anchor: EntityName,
        keep_predicate: KeepPredicate,
    ) -> PruneStep | None:
        if not store.has_entity(entity):
            return None

        reasons: dict[RowIdentity, OrphanReason] = {}
        for edge in self._schema.edges_from(entity):
            for row in store.find_dangling(entity, edge.source_column, edge.targets):
                reasons.setdefault(row.identity, OrphanReason.DANGLING)

        rows: list[StoreRow] | None = None
        rescuable: dict[RowIdentity, OrphanReason] = {}
        if entity == anchor:
            rows = store.scan(entity)
            for row in rows:
                if row.identity not in reasons and not keep_predicate(row.values):
                    rescuable[row.identity] = OrphanReason.PREDICATE
        for identity in self._find_unreferenced(store, entity):
            if identity not in reasons:
                rescuable.setdefault(identity, OrphanReason.UNREFERENCED)

        self_edges = self._self_edges(entity)
        if rescuable and self_edges:
            if rows is None:
                rows = store.scan(entity)
            for identity in _rescue(rows, self_edges, set(reasons) | set(rescuable), set(rescuable)):
                del rescuable[identity]
        reasons.update(rescuable)

        if not reasons:
            return None
        deleted = tuple(sorted(reasons))
        store.delete_identities(entity, deleted)
        step = PruneStep(entity=entity, deleted=deleted, reasons=dict(Counter(reasons.values())))
        logger.info(
            f"Deleted {step.count} row(s) from {entity}",
            entity=entity,
            reasons={str(reason): count for reason, count in step.reasons.items()},
        )
        return step

    def _find_unreferenced(self, store: FeedStore, entity: EntityName) -> set[RowIdentity]:
        """Rows of ``entity`` that no prune-unreferenced edge references.

        Edges may target different columns of the entity; a row must be
        unreferenced through every one of them.
        """
        referrers: dict[ColumnName, list[ColumnRef]] = {}
        for edge in self._schema.edges_into(entity):
            if not edge.prune_unreferenced or edge.kind is EdgeKind.SELF_REFERENCE:
                continue
            for target in edge.targets:
                if target.entity == entity:
                    referrers.setdefault(target.column, []).append(edge.source)

        unreferenced: set[RowIdentity] | None = None
        for column_name in sorted(referrers):
            found = {row.identity for row in store.find_unreferenced(entity, column_name, referrers[column_name])}
            unreferenced = found if unreferenced is None else unreferenced & found
        return unreferenced or set()


def _rescue(
    rows: Sequence[StoreRow],
    self_edges: Sequence[SelfReferenceEdge],
    scheduled: set[RowIdentity],
    rescuable: set[RowIdentity],
) -> set[RowIdentity]:
    """Transitive closure of rescuable rows referenced by survivors.

    A rescued row survives, so it rescues the rows it references in turn.
    """
    by_id = {row.identity: row for row in rows}
    index: dict[tuple[ColumnName, str], list[RowIdentity]] = {}
    for row in rows:
        for edge in self_edges:
            key = row.values.get(edge.target_column)
            if key is not None:
                index.setdefault((edge.target_column, key), []).append(row.identity)

    rescued: set[RowIdentity] = set()
    frontier = [row for row in rows if row.identity not in scheduled]
    while frontier:
        next_frontier: list[StoreRow] = []
        for row in frontier:
            for edge in self_edges:
                parent = row.values.get(edge.source_column)
                if parent is None:
                    continue
                for identity in index.get((edge.target_column, parent), ()):
                    if identity in rescuable and identity not in rescued:
                        rescued.add(identity)
                        next_frontier.append(by_id[identity])
        frontier = next_frontier
    return rescued
