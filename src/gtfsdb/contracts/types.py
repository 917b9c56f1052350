"""Semantic type aliases for compile-time type safety.

NewType creates distinct types that mypy treats as incompatible,
preventing accidental misuse of entity names, column names and row ids.
"""

from collections.abc import Callable, Mapping
from typing import NewType

EntityName = NewType("EntityName", str)
"""Name of a schema entity, equal to its table name (e.g., 'stop_times')"""

ColumnName = NewType("ColumnName", str)
"""Name of a column within an entity (e.g., 'parent_station')"""

RowIdentity = NewType("RowIdentity", int)
"""Stable identity of a stored row (the SQLite rowid)"""

type RowValues = Mapping[str, str | None]
"""A stored row: column name to optional text value."""

type KeepPredicate = Callable[[RowValues], bool]
"""Decides whether an anchor row survives pruning."""
