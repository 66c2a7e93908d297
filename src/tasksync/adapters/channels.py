"""Channel adapters feeding transport traffic into the reconciliation store.

Each adapter is thin: it records intent or forwards a delivered event, and
leaves every merge decision to the store. Awaiting happens only here; the
store itself never suspends.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from tasksync.domain.ports.transport import MutationRejected

if TYPE_CHECKING:
    from collections.abc import Mapping

    from tasksync.domain.ports.transport import MutationTransport, PushTransport
    from tasksync.domain.reconciliation import MutationHandle, ReconciliationStore

log = getLogger(__name__)


@dataclass(slots=True)
class MutationChannel:
    """Local intents plus the REST outcome of each one."""

    store: ReconciliationStore
    transport: MutationTransport

    async def create(self, fields: Mapping[str, object]) -> MutationHandle:
        handle = self.store.local_create(fields)
        try:
            confirmed = await self.transport.submit_create(fields, correlation_token=handle.token)
        except MutationRejected as exc:
            self.store.rest_reject_create(handle.token, reason=exc.reason)
        except BaseException:
            # cancelled or crashed mid-flight: never leave a dangling provisional record
            self.store.rest_reject_create(handle.token, reason="abandoned")
            raise
        else:
            self.store.rest_confirm_create(
                handle.token,
                confirmed.server_identity,
                confirmed.fields,
            )
        return handle

    async def update(
        self,
        identity: str,
        fields: Mapping[str, object],
    ) -> MutationHandle | None:
        handle = self.store.local_update(identity, fields)
        if handle is None:
            return None
        try:
            confirmed = await self.transport.submit_update(identity, fields)
        except MutationRejected as exc:
            self.store.rest_reject_update(identity, token=handle.token, reason=exc.reason)
        except BaseException:
            self.store.rest_reject_update(identity, token=handle.token, reason="abandoned")
            raise
        else:
            self.store.rest_confirm_update(identity, confirmed.fields, token=handle.token)
        return handle

    async def delete(self, identity: str) -> MutationHandle | None:
        handle = self.store.local_delete(identity)
        if handle is None:
            return None
        try:
            await self.transport.submit_delete(identity)
        except MutationRejected as exc:
            self.store.rest_reject_delete(identity, token=handle.token, reason=exc.reason)
        except BaseException:
            self.store.rest_reject_delete(identity, token=handle.token, reason="abandoned")
            raise
        else:
            self.store.rest_confirm_delete(identity, token=handle.token)
        return handle

    async def refresh(self) -> None:
        """Merge the full task listing into the store."""

        try:
            payload = await self.transport.fetch_all()
        except httpx.HTTPError as exc:
            log.warning(f"Could not load tasks: {exc}")
            raise
        self.store.load_snapshot(payload)


@dataclass(slots=True)
class PushChannel:
    """Forward pushed events from other clients into the store."""

    store: ReconciliationStore
    transport: PushTransport

    async def run(self) -> int:
        """Consume the subscription until it ends; returns the number of events applied."""

        applied = 0
        async for event in self.transport.subscribe():
            log.debug(f"Push event {event.kind}")
            self.store.apply_push(event.kind, event.payload)
            applied += 1
        log.info(f"Push subscription ended after {applied} events")
        return applied
