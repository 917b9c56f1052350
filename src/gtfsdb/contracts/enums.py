"""All status codes, modes, and kinds used across subsystem boundaries.

Validation modes and edge kinds are closed sets: every consumer dispatches
on them exhaustively, so adding a member is a breaking change.
"""

from enum import StrEnum


class ValidationMode(StrEnum):
    """How the validator treats violations.

    STRICT fails with InvalidInputError and leaves the store untouched.
    REPAIR deletes violating rows until the store reaches a fixed point.
    PERMISSIVE reports violations and leaves the store untouched.
    """

    STRICT = "strict"
    REPAIR = "repair"
    PERMISSIVE = "permissive"


class ValidationOutcome(StrEnum):
    """Result of a validate() call that did not raise."""

    VALID = "valid"
    REPAIRED = "repaired"
    IGNORED = "ignored"


class Presence(StrEnum):
    """Presence classification of a GTFS column.

    Informational only. The validator never enforces presence.
    """

    REQUIRED = "required"
    CONDITIONALLY_REQUIRED = "conditionally_required"
    CONDITIONALLY_FORBIDDEN = "conditionally_forbidden"
    RECOMMENDED = "recommended"
    OPTIONAL = "optional"


class EdgeKind(StrEnum):
    """Tag of a foreign-key edge variant.

    REFERENCE: exactly one target in another entity.
    ANY_OF: two or more alternative targets, any one suffices.
    SELF_REFERENCE: the target column lives in the source entity.
    """

    REFERENCE = "reference"
    ANY_OF = "any_of"
    SELF_REFERENCE = "self_reference"


class OrphanReason(StrEnum):
    """Why the pruner scheduled a row for deletion."""

    PREDICATE = "predicate"  # Anchor row failed the keep predicate
    DANGLING = "dangling"  # Foreign key no longer resolves
    UNREFERENCED = "unreferenced"  # Nothing references the row any more
