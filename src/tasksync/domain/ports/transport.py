"""Ports for the transports the reconciliation core consumes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from tasksync.domain.reconciliation.contracts import PushEventKind

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping


@dataclass(frozen=True, slots=True)
class ConfirmedMutation:
    """Server acknowledgement of a create or update."""

    server_identity: str
    fields: Mapping[str, object] = field(default_factory=dict[str, object])


class MutationRejected(RuntimeError):
    """Raised by a mutation transport when the server refuses (or never answers) a mutation."""

    def __init__(self, reason: str, *, status_code: int | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code


@runtime_checkable
class MutationTransport(Protocol):
    """Request/response channel to the authoritative task service."""

    async def submit_create(
        self,
        fields: Mapping[str, object],
        *,
        correlation_token: str,
    ) -> ConfirmedMutation: ...

    async def submit_update(
        self,
        identity: str,
        fields: Mapping[str, object],
    ) -> ConfirmedMutation: ...

    async def submit_delete(self, identity: str) -> None: ...

    async def fetch_all(self) -> object: ...

    async def aclose(self) -> None: ...


@dataclass(frozen=True, slots=True)
class PushEvent:
    """One named notification from the push channel, payload still raw."""

    kind: PushEventKind
    payload: object


@runtime_checkable
class PushTransport(Protocol):
    """Subscription to mutations performed by other clients."""

    def subscribe(self) -> AsyncIterator[PushEvent]: ...

    async def aclose(self) -> None: ...


__all__ = [
    "ConfirmedMutation",
    "MutationRejected",
    "MutationTransport",
    "PushEvent",
    "PushEventKind",
    "PushTransport",
]
