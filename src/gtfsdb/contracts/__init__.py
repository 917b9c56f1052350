"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core.
Settings classes are NOT re-exported here - import them from
gtfsdb.core.config.
"""

from gtfsdb.contracts.enums import (
    EdgeKind,
    OrphanReason,
    Presence,
    ValidationMode,
    ValidationOutcome,
)
from gtfsdb.contracts.errors import (
    GtfsdbError,
    InvalidInputError,
    RepairConvergenceError,
    SchemaConfigurationError,
    StoreError,
)
from gtfsdb.contracts.types import (
    ColumnName,
    EntityName,
    KeepPredicate,
    RowIdentity,
    RowValues,
)
from gtfsdb.contracts.violations import Violation

__all__ = [
    "ColumnName",
    "EdgeKind",
    "EntityName",
    "GtfsdbError",
    "InvalidInputError",
    "KeepPredicate",
    "OrphanReason",
    "Presence",
    "RepairConvergenceError",
    "RowIdentity",
    "RowValues",
    "SchemaConfigurationError",
    "StoreError",
    "ValidationMode",
    "ValidationOutcome",
    "Violation",
]
