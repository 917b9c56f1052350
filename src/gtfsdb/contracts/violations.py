"""Violation record produced by the integrity validator.

The string form is part of the external contract: callers and tests match
substrings of it, so the layout must not drift.
"""

from __future__ import annotations

from dataclasses import dataclass

from gtfsdb.contracts.types import ColumnName, EntityName, RowIdentity


@dataclass(frozen=True, slots=True)
class Violation:
    """A row whose foreign-key value does not resolve.

    Attributes:
        entity: Entity (table) holding the offending row
        identity: Stable row identity in the store
        column: Column carrying the unresolved value
        value: The unresolved value
        context: The row's other non-empty columns, in table column order
    """

    entity: EntityName
    identity: RowIdentity
    column: ColumnName
    value: str
    context: tuple[tuple[str, str], ...] = ()

    @property
    def message(self) -> str:
        details = ", ".join(f"{name}: {value}" for name, value in self.context)
        return f"{self.value} in {self.entity} is not a valid {self.column} [{details}]"

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, object]:
        return {
            "entity": self.entity,
            "identity": self.identity,
            "column": self.column,
            "value": self.value,
            "context": dict(self.context),
            "message": self.message,
        }
