"""Domain port definitions for adapters."""

from __future__ import annotations

from .transport import (
    ConfirmedMutation,
    MutationRejected,
    MutationTransport,
    PushEvent,
    PushEventKind,
    PushTransport,
)

__all__ = [
    "ConfirmedMutation",
    "MutationRejected",
    "MutationTransport",
    "PushEvent",
    "PushEventKind",
    "PushTransport",
]
