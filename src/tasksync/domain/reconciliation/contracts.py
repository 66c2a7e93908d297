"""Shared reconciliation contract components.

This module intentionally holds only:
- enums tagging events, matches and notices
- small dataclasses handed across the store boundary
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from collections.abc import Callable

    from tasksync.domain.records import CanonicalRecord, View

    from .errors import ReconciliationError


class MutationKind(StrEnum):
    """Local intents the presentation layer can initiate."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True, slots=True, kw_only=True)
class MutationHandle:
    """Returned by local intents; correlates the later REST outcome.

    ``identity`` is the provisional identity for creates and the server identity
    for updates and deletes.
    """

    kind: MutationKind
    token: str
    identity: str
    revision: int = 0


class PushEventKind(StrEnum):
    """Named events delivered by the push channel."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"

    @classmethod
    def parse(cls, name: str) -> PushEventKind:
        """Accept both bare names and namespaced wire names such as ``task:created``."""

        _, _, suffix = name.strip().rpartition(":")
        try:
            return cls(suffix.lower())
        except ValueError:
            raise ValueError(f"Unknown push event: {name!r}") from None


class ResolutionStatus(StrEnum):
    """Outcome produced by identity resolution."""

    NEW = "new"
    RESOLVED = "resolved"


class MatchKind(StrEnum):
    """How the resolver matched an incoming record against the view."""

    EXACT = "exact"
    CORRELATED = "correlated"


@dataclass(frozen=True, slots=True, kw_only=True)
class NewEntityResolution:
    """Incoming record denotes an entity the view does not know yet."""

    status: Literal[ResolutionStatus.NEW] = ResolutionStatus.NEW
    reason: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class ResolvedEntityResolution:
    """Incoming record denotes ``target``, an existing record in the view."""

    target: CanonicalRecord
    match_kind: MatchKind
    reason: str | None = None
    status: Literal[ResolutionStatus.RESOLVED] = ResolutionStatus.RESOLVED


type IdentityResolution = NewEntityResolution | ResolvedEntityResolution


class NoticeKind(StrEnum):
    MALFORMED_PAYLOAD = "malformed_payload"
    UNKNOWN_ENTITY = "unknown_entity"
    ROLLBACK_CONFLICT = "rollback_conflict"
    MUTATION_ROLLED_BACK = "mutation_rolled_back"


@dataclass(frozen=True, slots=True, kw_only=True)
class Notice:
    """Transient, non-fatal diagnostic for the presentation layer."""

    kind: NoticeKind
    error: ReconciliationError

    @property
    def message(self) -> str:
        return str(self.error)

    @property
    def identity(self) -> str | None:
        return self.error.identity


type ViewListener = Callable[[View], None]
type NoticeListener = Callable[[Notice], None]
type Unsubscribe = Callable[[], None]
