"""Reconciliation store: the single authoritative view of the task collection.

Per entity the store walks ``absent -> provisional -> confirmed -> absent`` with
an extra ``provisional -> absent`` rollback edge. Events from the three input
channels (local intents, REST outcomes, push notifications) are applied one at
a time by synchronous methods; each call that changes state replaces the view
and notifies subscribers exactly once.

Merge policy:
- remote data (REST-confirmed or pushed) supersedes local optimistic data
- between two remote sources the later processed event wins
- an event that leaves a record field-for-field unchanged emits nothing
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import uuid4

from tasksync.domain.records import CanonicalRecord, View

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
    PayloadShape,
    iter_records,
    normalize_identity,
    normalize_record,
)
from .resolve import resolve_identity

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from .contracts import NoticeListener, Unsubscribe, ViewListener

log = logging.getLogger(__name__)

PROVISIONAL_PREFIX = "local-"
# deleted server ids remembered to ignore late pushes; oldest are forgotten first
MAX_TOMBSTONES = 10_000


def _new_provisional_identity() -> str:
    return f"{PROVISIONAL_PREFIX}{uuid4().hex}"


def _new_token() -> str:
    return uuid4().hex


@dataclass(slots=True)
class _Entry:
    record: CanonicalRecord
    confirmed_fields: dict[str, object] = field(default_factory=dict[str, object])
    # sequence number of the newest local update applied to this entry
    last_local_sequence: int = 0


@dataclass(frozen=True, slots=True)
class _PendingUpdate:
    identity: str
    sequence: int


@dataclass(frozen=True, slots=True)
class _PendingDelete:
    identity: str
    position: int
    entry: _Entry


@dataclass(frozen=True, slots=True)
class _DeferredPush:
    kind: PushEventKind
    identity: str
    record: CanonicalRecord | None = None


class ReconciliationStore:
    """Apply local, REST and push events to one canonical view."""

    def __init__(
        self,
        *,
        shape: PayloadShape = DEFAULT_SHAPE,
        provisional_identity_factory: Callable[[], str] = _new_provisional_identity,
        token_factory: Callable[[], str] = _new_token,
    ) -> None:
        self._shape = shape
        self._new_provisional_identity = provisional_identity_factory
        self._new_token = token_factory

        self._entries: dict[str, _Entry] = {}
        self._view = View.empty()
        self._dirty = False
        self._local_sequence = 0

        self._pending_creates: dict[str, str] = {}
        self._pending_updates: dict[str, _PendingUpdate] = {}
        self._pending_deletes: dict[str, _PendingDelete] = {}
        self._deferred: dict[str, list[_DeferredPush]] = {}
        self._deferred_identities: dict[str, str] = {}
        self._tombstones: dict[str, None] = {}

        self._view_listeners: list[ViewListener] = []
        self._notice_listeners: list[NoticeListener] = []

    # ------------------------------------------------------------------ reads

    @property
    def view(self) -> View:
        return self._view

    @property
    def pending_tokens(self) -> frozenset[str]:
        return frozenset(
            (*self._pending_creates, *self._pending_updates, *self._pending_deletes)
        )

    def subscribe(self, listener: ViewListener) -> Unsubscribe:
        self._view_listeners.append(listener)
        return lambda: self._discard(self._view_listeners, listener)

    def subscribe_notices(self, listener: NoticeListener) -> Unsubscribe:
        self._notice_listeners.append(listener)
        return lambda: self._discard(self._notice_listeners, listener)

    # ----------------------------------------------------------------- create

    def local_create(
        self,
        fields: Mapping[str, object],
        *,
        correlation_token: str | None = None,
    ) -> MutationHandle:
        token = correlation_token or self._new_token()
        if token in self._pending_creates:
            raise ValueError(f"Correlation token already pending: {token}")

        identity = self._new_provisional_identity()
        record = CanonicalRecord(
            identity=identity,
            fields=fields,
            provisional=True,
            correlation_token=token,
        )
        self._entries[identity] = _Entry(record=record)
        self._pending_creates[token] = identity
        self._dirty = True
        log.debug("Local create %s (token=%s)", identity, token)
        self._flush()
        return MutationHandle(kind=MutationKind.CREATE, token=token, identity=identity)

    def rest_confirm_create(
        self,
        token: str,
        server_identity: str,
        fields: Mapping[str, object],
    ) -> None:
        provisional_identity = self._pending_creates.pop(token, None)
        if provisional_identity is None:
            self._report(
                NoticeKind.UNKNOWN_ENTITY,
                UnknownEntity(f"No pending creation for token {token}", identity=server_identity),
            )
            self._replay_deferred(token)
            self._flush()
            return

        entry = self._entries[provisional_identity]
        if server_identity in self._tombstones or self._is_confirmed(server_identity):
            # the entity already reached the view (or left it) through the push channel
            log.debug(
                "Dropping provisional %s, %s already known",
                provisional_identity,
                server_identity,
            )
            del self._entries[provisional_identity]
            self._dirty = True
            existing = self._entries.get(server_identity)
            if existing is not None:
                self._merge_remote(existing, {**entry.record.fields, **fields})
        else:
            merged = {**entry.record.fields, **fields}
            entry.record = CanonicalRecord(
                identity=server_identity,
                fields=merged,
                provisional=False,
                revision=entry.record.revision + 1,
                correlation_token=token,
            )
            entry.confirmed_fields = dict(merged)
            self._rekey(provisional_identity, server_identity)
            self._dirty = True
            log.debug("Confirmed %s as %s", provisional_identity, server_identity)

        self._replay_deferred(token)
        self._flush()

    def rest_reject_create(self, token: str, *, reason: str | None = None) -> None:
        provisional_identity = self._pending_creates.pop(token, None)
        if provisional_identity is None:
            log.debug("Rejection for unknown creation token %s ignored", token)
        else:
            self._entries.pop(provisional_identity, None)
            self._dirty = True
            self._report(
                NoticeKind.MUTATION_ROLLED_BACK,
                MutationRolledBack(
                    f"Create rejected: {reason or 'unknown reason'}",
                    identity=provisional_identity,
                ),
            )
        self._replay_deferred(token)
        self._flush()

    # ----------------------------------------------------------------- update

    def local_update(
        self,
        identity: str,
        fields: Mapping[str, object],
    ) -> MutationHandle | None:
        entry = self._entries.get(identity)
        if entry is None or entry.record.provisional:
            self._report(
                NoticeKind.UNKNOWN_ENTITY,
                UnknownEntity(f"Cannot update unconfirmed or absent {identity}", identity=identity),
            )
            return None

        self._local_sequence += 1
        entry.last_local_sequence = self._local_sequence
        self._replace(entry, {**entry.record.fields, **fields})

        token = self._new_token()
        self._pending_updates[token] = _PendingUpdate(
            identity=identity,
            sequence=self._local_sequence,
        )
        self._flush()
        return MutationHandle(
            kind=MutationKind.UPDATE,
            token=token,
            identity=identity,
            revision=entry.record.revision,
        )

    def rest_confirm_update(
        self,
        identity: str,
        fields: Mapping[str, object],
        *,
        token: str | None = None,
    ) -> None:
        self._pop_pending_update(identity, token)

        entry = self._entries.get(identity)
        if entry is None:
            self._report(
                NoticeKind.UNKNOWN_ENTITY,
                UnknownEntity(f"Confirmed update for absent {identity}", identity=identity),
            )
            return
        self._merge_remote(entry, fields)
        self._flush()

    def rest_reject_update(
        self,
        identity: str,
        *,
        token: str | None = None,
        reason: str | None = None,
    ) -> None:
        pending = self._pop_pending_update(identity, token)
        entry = self._entries.get(identity)
        if entry is None:
            log.debug("Update rejection for absent %s ignored", identity)
            return

        if pending is not None and entry.last_local_sequence > pending.sequence:
            self._report(
                NoticeKind.ROLLBACK_CONFLICT,
                RollbackConflict(
                    f"Rejected update of {identity} superseded by newer local input",
                    identity=identity,
                ),
            )
            return

        self._replace(entry, dict(entry.confirmed_fields))
        self._report(
            NoticeKind.MUTATION_ROLLED_BACK,
            MutationRolledBack(
                f"Update rejected: {reason or 'unknown reason'}",
                identity=identity,
            ),
        )
        self._flush()

    # ----------------------------------------------------------------- delete

    def local_delete(self, identity: str) -> MutationHandle | None:
        entry = self._entries.get(identity)
        if entry is None or entry.record.provisional:
            self._report(
                NoticeKind.UNKNOWN_ENTITY,
                UnknownEntity(f"Cannot delete unconfirmed or absent {identity}", identity=identity),
            )
            return None

        position = list(self._entries).index(identity)
        del self._entries[identity]
        token = self._new_token()
        self._pending_deletes[token] = _PendingDelete(
            identity=identity,
            position=position,
            entry=entry,
        )
        self._dirty = True
        self._flush()
        return MutationHandle(
            kind=MutationKind.DELETE,
            token=token,
            identity=identity,
            revision=entry.record.revision,
        )

    def rest_confirm_delete(self, identity: str, *, token: str | None = None) -> None:
        self._pop_pending_delete(identity, token)
        self._bury(identity)
        if self._entries.pop(identity, None) is not None:
            self._dirty = True
        self._flush()

    def rest_reject_delete(
        self,
        identity: str,
        *,
        token: str | None = None,
        reason: str | None = None,
    ) -> None:
        pending = self._pop_pending_delete(identity, token)
        if pending is None:
            log.debug("Delete rejection for %s has no pending delete", identity)
            return
        if identity in self._tombstones or identity in self._entries:
            log.info("Not restoring %s: deleted or recreated remotely meanwhile", identity)
            return

        entry = pending.entry
        entry.record = entry.record.with_fields(entry.record.fields)
        items = list(self._entries.items())
        items.insert(min(pending.position, len(items)), (identity, entry))
        self._entries = dict(items)
        self._dirty = True
        self._report(
            NoticeKind.MUTATION_ROLLED_BACK,
            MutationRolledBack(
                f"Delete rejected: {reason or 'unknown reason'}",
                identity=identity,
            ),
        )
        self._flush()

    # ------------------------------------------------------------------- push

    def apply_push(self, kind: PushEventKind | str, payload: object) -> None:
        event_kind = kind if isinstance(kind, PushEventKind) else PushEventKind.parse(kind)
        match event_kind:
            case PushEventKind.CREATED:
                self.push_created(payload)
            case PushEventKind.UPDATED:
                self.push_updated(payload)
            case PushEventKind.DELETED:
                self.push_deleted(payload)

    def push_created(self, payload: object) -> None:
        record = self._normalize(payload, PushEventKind.CREATED)
        if record is not None:
            self._apply_created(record)
            self._flush()

    def push_updated(self, payload: object) -> None:
        record = self._normalize(payload, PushEventKind.UPDATED)
        if record is not None:
            self._apply_updated(record)
            self._flush()

    def push_deleted(self, payload: object) -> None:
        try:
            identity = normalize_identity(payload, shape=self._shape)
        except MalformedPayload as exc:
            self._drop_malformed(PushEventKind.DELETED, exc)
            return
        self._apply_deleted(identity)
        self._flush()

    def load_snapshot(self, payload: object) -> None:
        """Merge a full collection listing (initial fetch) as remote data.

        The listing is all-or-nothing: one malformed item drops the whole snapshot.
        """

        try:
            records = list(iter_records(payload, shape=self._shape))
        except MalformedPayload as exc:
            self._drop_malformed("snapshot", exc)
            return
        for record in records:
            self._apply_created(record)
        self._flush()

    # --------------------------------------------------------------- internal

    def _apply_created(self, record: CanonicalRecord) -> None:
        if self._defer_if_awaiting(PushEventKind.CREATED, record.identity, record):
            return

        resolution = resolve_identity(
            record,
            self._working_view(),
            correlation_token=record.correlation_token,
            pending_tokens=self._pending_creates,
        )
        if resolution.status is ResolutionStatus.RESOLVED:
            token = record.correlation_token
            if resolution.match_kind is MatchKind.CORRELATED and token is not None:
                self._defer(token, _DeferredPush(PushEventKind.CREATED, record.identity, record))
                return
            self._merge_remote(self._entries[record.identity], record.fields)
            return

        if record.identity in self._tombstones or self._is_pending_delete(record.identity):
            log.debug("Ignoring stale creation of deleted %s", record.identity)
            return
        if record.identity in self._entries:
            log.warning("Ignoring creation of %s clashing with a provisional id", record.identity)
            return

        self._entries[record.identity] = _Entry(
            record=CanonicalRecord(
                identity=record.identity,
                fields=record.fields,
                correlation_token=record.correlation_token,
            ),
            confirmed_fields=dict(record.fields),
        )
        self._dirty = True

    def _apply_updated(self, record: CanonicalRecord) -> None:
        if self._defer_if_awaiting(PushEventKind.UPDATED, record.identity, record):
            return
        if record.identity in self._tombstones or not self._is_confirmed(record.identity):
            self._report(
                NoticeKind.UNKNOWN_ENTITY,
                UnknownEntity(
                    f"Pushed update for absent {record.identity}",
                    identity=record.identity,
                ),
            )
            return
        self._merge_remote(self._entries[record.identity], record.fields)

    def _apply_deleted(self, identity: str) -> None:
        if self._defer_if_awaiting(PushEventKind.DELETED, identity):
            return
        self._bury(identity)
        entry = self._entries.get(identity)
        if entry is None or entry.record.provisional:
            log.debug("Pushed delete for absent %s is a no-op", identity)
            return
        del self._entries[identity]
        self._dirty = True

    def _defer_if_awaiting(
        self,
        kind: PushEventKind,
        identity: str,
        record: CanonicalRecord | None = None,
    ) -> bool:
        token = self._deferred_identities.get(identity)
        if token is None:
            return False
        self._defer(token, _DeferredPush(kind, identity, record))
        return True

    def _defer(self, token: str, event: _DeferredPush) -> None:
        log.debug(
            "Deferring pushed %s of %s until token %s resolves",
            event.kind,
            event.identity,
            token,
        )
        self._deferred.setdefault(token, []).append(event)
        self._deferred_identities[event.identity] = token

    def _replay_deferred(self, token: str) -> None:
        events = self._deferred.pop(token, [])
        for event in events:
            self._deferred_identities.pop(event.identity, None)
        for event in events:
            if event.kind is PushEventKind.DELETED:
                self._apply_deleted(event.identity)
            elif event.record is not None and event.kind is PushEventKind.CREATED:
                self._apply_created(event.record)
            elif event.record is not None:
                self._apply_updated(event.record)

    def _merge_remote(self, entry: _Entry, fields: Mapping[str, object]) -> None:
        entry.confirmed_fields.update(fields)
        self._replace(entry, {**entry.record.fields, **fields})

    def _replace(self, entry: _Entry, fields: Mapping[str, object]) -> None:
        if dict(entry.record.fields) == dict(fields):
            return
        entry.record = entry.record.with_fields(fields)
        self._dirty = True

    def _rekey(self, old: str, new: str) -> None:
        self._entries = {
            (new if key == old else key): value for key, value in self._entries.items()
        }

    def _working_view(self) -> View:
        if not self._dirty:
            return self._view
        return View(tuple(entry.record for entry in self._entries.values()))

    def _bury(self, identity: str) -> None:
        self._tombstones.pop(identity, None)
        self._tombstones[identity] = None
        while len(self._tombstones) > MAX_TOMBSTONES:
            del self._tombstones[next(iter(self._tombstones))]

    def _is_confirmed(self, identity: str) -> bool:
        entry = self._entries.get(identity)
        return entry is not None and not entry.record.provisional

    def _is_pending_delete(self, identity: str) -> bool:
        return any(pending.identity == identity for pending in self._pending_deletes.values())

    def _pop_pending_update(self, identity: str, token: str | None) -> _PendingUpdate | None:
        if token is not None:
            return self._pending_updates.pop(token, None)
        for key, pending in self._pending_updates.items():
            if pending.identity == identity:
                return self._pending_updates.pop(key)
        return None

    def _pop_pending_delete(self, identity: str, token: str | None) -> _PendingDelete | None:
        if token is not None:
            return self._pending_deletes.pop(token, None)
        for key, pending in self._pending_deletes.items():
            if pending.identity == identity:
                return self._pending_deletes.pop(key)
        return None

    def _normalize(self, payload: object, kind: PushEventKind) -> CanonicalRecord | None:
        try:
            return normalize_record(payload, shape=self._shape)
        except MalformedPayload as exc:
            self._drop_malformed(kind, exc)
            return None

    def _drop_malformed(self, source: str, exc: MalformedPayload) -> None:
        log.warning("Dropping malformed %s payload: %s", source, exc)
        self._report(NoticeKind.MALFORMED_PAYLOAD, exc)

    def _report(self, kind: NoticeKind, error: ReconciliationError) -> None:
        log.info("%s: %s", kind, error)
        notice = Notice(kind=kind, error=error)
        for listener in tuple(self._notice_listeners):
            try:
                listener(notice)
            except Exception:  # noqa: BLE001
                log.exception("Notice listener failed")

    def _flush(self) -> None:
        if not self._dirty:
            return
        self._dirty = False
        self._view = View(tuple(entry.record for entry in self._entries.values()))
        for listener in tuple(self._view_listeners):
            try:
                listener(self._view)
            except Exception:  # noqa: BLE001
                log.exception("View listener failed")

    @staticmethod
    def _discard[T](listeners: list[T], listener: T) -> None:
        if listener in listeners:
            listeners.remove(listener)
