"""Referential integrity: validation, repair and cascading pruning."""

from gtfsdb.core.integrity.pruner import CascadingPruner, PruneResult, PruneStep
from gtfsdb.core.integrity.validator import (
    DEFAULT_MAX_REPAIR_PASSES,
    IntegrityValidator,
    ValidationResult,
)

__all__ = [
    "DEFAULT_MAX_REPAIR_PASSES",
    "CascadingPruner",
    "IntegrityValidator",
    "PruneResult",
    "PruneStep",
    "ValidationResult",
]
