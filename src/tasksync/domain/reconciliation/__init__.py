"""Client-side reconciliation core for the shared task collection.

Layered flow:
1) normalize raw wire payloads into canonical records
2) resolve incoming records against the current view
3) apply the event to the store under its merge policy
4) emit a new immutable view snapshot
"""

from __future__ import annotations

from .contracts import (
    MatchKind,
    MutationHandle,
    MutationKind,
    Notice,
    NoticeKind,
    PushEventKind,
    ResolutionStatus,
)
from .errors import (
    MalformedPayload,
    MutationRolledBack,
    ReconciliationError,
    RollbackConflict,
    UnknownEntity,
)
from .normalize import (
    DEFAULT_SHAPE,
    PayloadKind,
    PayloadShape,
    classify_payload,
    iter_records,
    normalize_identity,
    normalize_record,
)
from .resolve import resolve_identity
from .store import ReconciliationStore

__all__ = [
    "DEFAULT_SHAPE",
    "MalformedPayload",
    "MatchKind",
    "MutationHandle",
    "MutationKind",
    "MutationRolledBack",
    "Notice",
    "NoticeKind",
    "PayloadKind",
    "PayloadShape",
    "PushEventKind",
    "ReconciliationError",
    "ReconciliationStore",
    "ResolutionStatus",
    "RollbackConflict",
    "UnknownEntity",
    "classify_payload",
    "iter_records",
    "normalize_identity",
    "normalize_record",
    "resolve_identity",
]
