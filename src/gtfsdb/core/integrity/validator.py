# src/gtfsdb/core/integrity/validator.py
"""Foreign-key validation with optional repair to a fixed point.

Every sweep checks every edge whose source entity is present in the store,
in (entity, column) order. Only the first sweep's violations are reported;
later sweeps exist to find rows orphaned by the previous sweep's deletions.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from gtfsdb.contracts.enums import ValidationMode, ValidationOutcome
from gtfsdb.contracts.errors import InvalidInputError, RepairConvergenceError
from gtfsdb.contracts.types import EntityName, RowIdentity
from gtfsdb.contracts.violations import Violation
from gtfsdb.core.logging import feed_context, get_logger
from gtfsdb.core.schema.graph import SchemaGraph
from gtfsdb.core.schema.models import ForeignKeyEdge
from gtfsdb.core.store.database import FeedStore, StoreRow

logger = get_logger(__name__)

DEFAULT_MAX_REPAIR_PASSES = 100


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of a validate() call that did not raise.

    Attributes:
        outcome: VALID, REPAIRED or IGNORED
        violations: Violations found by the first sweep
        passes: Number of sweeps performed
        deleted: Rows deleted across all sweeps (repair mode only)
        deleted_by_entity: Per-entity breakdown of ``deleted``
    """

    outcome: ValidationOutcome
    violations: tuple[Violation, ...] = ()
    passes: int = 1
    deleted: int = 0
    deleted_by_entity: Mapping[EntityName, int] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def is_valid(self) -> bool:
        return not self.violations


class IntegrityValidator:
    """Checks a store against every foreign-key edge of a schema."""

    def __init__(self, schema: SchemaGraph, *, max_passes: int = DEFAULT_MAX_REPAIR_PASSES) -> None:
        """Create a validator.

        Args:
            schema: Schema whose edges are checked
            max_passes: Deletion rounds allowed in repair mode before
                RepairConvergenceError is raised

        Raises:
            ValueError: If max_passes is not positive
        """
        if max_passes < 1:
            raise ValueError(f"max_passes must be positive, got {max_passes}")
        self._schema = schema
        self._max_passes = max_passes

    @property
    def schema(self) -> SchemaGraph:
        return self._schema

    @property
    def max_passes(self) -> int:
        return self._max_passes

    def validate(self, store: FeedStore, mode: ValidationMode = ValidationMode.STRICT) -> ValidationResult:
        """Validate a store.

        Args:
            store: Populated store
            mode: STRICT raises on violations, REPAIR deletes violating rows
                until a sweep finds none, PERMISSIVE only reports

        Returns:
            ValidationResult with the first sweep's violations

        Raises:
            InvalidInputError: STRICT mode found violations (store unmodified)
            RepairConvergenceError: REPAIR mode still scheduled deletions
                after max_passes deletion rounds
            StoreError: Propagated from the store
        """
        with feed_context(store.location, mode=str(mode)):
            return self._validate(store, mode)

    def _validate(self, store: FeedStore, mode: ValidationMode) -> ValidationResult:
        logger.info("Validating")
        edges = [edge for edge in self._schema.edges() if store.has_entity(edge.source_entity)]

        violations: list[Violation] = []
        deleted_by_entity: Counter[EntityName] = Counter()
        pass_number = 0
        while True:
            scheduled: dict[EntityName, set[RowIdentity]] = {}
            for edge in edges:
                for row in store.find_dangling(edge.source_entity, edge.source_column, edge.targets):
                    if pass_number == 0:
                        violation = _to_violation(edge, row)
                        violations.append(violation)
                        self._log_violation(violation, mode)
                    if mode is ValidationMode.REPAIR:
                        scheduled.setdefault(edge.source_entity, set()).add(row.identity)

            if not scheduled:
                break
            if pass_number >= self._max_passes:
                raise RepairConvergenceError(pass_number, sum(len(identities) for identities in scheduled.values()))

            deleted = store.delete_scheduled(scheduled)
            for entity, identities in scheduled.items():
                deleted_by_entity[entity] += len(identities)
            pass_number += 1
            logger.info(f"Re-validating after force deleting {deleted} row(s)", pass_number=pass_number)

        if violations and mode is ValidationMode.STRICT:
            raise InvalidInputError(violations)

        if not violations:
            outcome = ValidationOutcome.VALID
        elif mode is ValidationMode.REPAIR:
            outcome = ValidationOutcome.REPAIRED
        else:
            outcome = ValidationOutcome.IGNORED

        result = ValidationResult(
            outcome=outcome,
            violations=tuple(violations),
            passes=pass_number + 1,
            deleted=sum(deleted_by_entity.values()),
            deleted_by_entity=MappingProxyType(dict(sorted(deleted_by_entity.items()))),
        )
        logger.info(
            "Validation finished",
            outcome=str(outcome),
            violations=len(result.violations),
            passes=result.passes,
            deleted=result.deleted,
        )
        return result

    @staticmethod
    def _log_violation(violation: Violation, mode: ValidationMode) -> None:
        if mode is ValidationMode.STRICT:
            logger.error(violation.message, entity=violation.entity, column=violation.column)
        else:
            logger.warning(violation.message, entity=violation.entity, column=violation.column)


def _to_violation(edge: ForeignKeyEdge, row: StoreRow) -> Violation:
    # find_dangling only returns rows with a non-null value
    value = row.values[edge.source_column] or ""
    context = tuple((name, text) for name, text in row.values.items() if name != edge.source_column and text)
    return Violation(
        entity=edge.source_entity,
        identity=row.identity,
        column=edge.source_column,
        value=value,
        context=context,
    )
