"""Error kinds raised or surfaced by the reconciliation core.

None of these are fatal: the store contains them and surfaces each one as a
``Notice`` to the presentation layer.
"""

from __future__ import annotations


class ReconciliationError(Exception):
    """Base class for reconciliation diagnostics."""

    def __init__(self, message: str, *, identity: str | None = None) -> None:
        super().__init__(message)
        self.identity = identity


class MalformedPayload(ReconciliationError, ValueError):
    """Raised when a wire payload cannot be normalized into a canonical record."""

    def __init__(self, message: str, *, payload: object = None) -> None:
        super().__init__(message)
        self.payload = payload


class UnknownEntity(ReconciliationError, LookupError):
    """An update or delete referenced an identity absent from the view."""


class RollbackConflict(ReconciliationError):
    """A rejection arrived after the entity was mutated again locally."""


class MutationRolledBack(ReconciliationError):
    """The authoritative source refused a local mutation, which was rolled back."""
