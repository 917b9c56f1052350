"""Exception taxonomy.

Three families cross subsystem boundaries:

- SchemaConfigurationError: the static schema is malformed. Fatal at
  startup, never recoverable by changing input data.
- InvalidInputError: strict validation found violations. The only error
  with a structured payload, so callers can pick a policy without
  re-running validation.
- StoreError: the storage adapter failed. Propagated untouched by the
  validator and pruner.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gtfsdb.contracts.violations import Violation

# Number of violations quoted in InvalidInputError's message
_MESSAGE_PREVIEW = 5


class GtfsdbError(Exception):
    """Base class for all gtfsdb errors."""

    pass


class SchemaConfigurationError(GtfsdbError, ValueError):
    """Raised when the declarative schema is malformed."""

    pass


class RepairConvergenceError(SchemaConfigurationError):
    """Raised when repair exceeds its pass bound.

    A finite store loses at least one row per continuing pass, so running
    out of passes means the schema declares a deletion cycle the bound was
    not sized for.
    """

    def __init__(self, passes: int, pending: int) -> None:
        self.passes = passes
        self.pending = pending
        super().__init__(f"Repair did not converge after {passes} pass(es); {pending} row(s) still scheduled for deletion")


class InvalidInputError(GtfsdbError):
    """Raised by strict validation when the store has violations.

    Attributes:
        violations: Every pass-zero violation, in report order
    """

    def __init__(self, violations: Iterable[Violation]) -> None:
        self.violations: tuple[Violation, ...] = tuple(violations)
        preview = "; ".join(v.message for v in self.violations[:_MESSAGE_PREVIEW])
        more = len(self.violations) - _MESSAGE_PREVIEW
        suffix = f" (and {more} more)" if more > 0 else ""
        super().__init__(f"invalid input: {len(self.violations)} violation(s): {preview}{suffix}")


class StoreError(GtfsdbError):
    """Raised when the store adapter fails (I/O, SQL, or missing identity)."""

    pass
