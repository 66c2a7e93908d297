"""Application composition root.

Transports are created here and injected; nothing below this module reaches
for a global connection.
"""

from __future__ import annotations

import asyncio
import contextlib
from logging import getLogger
from typing import TYPE_CHECKING

from tasksync.adapters.channels import MutationChannel, PushChannel
from tasksync.adapters.push import HttpStreamPushTransport
from tasksync.adapters.rest import HttpMutationTransport
from tasksync.config.tasks import get_task_api_config
from tasksync.domain.reconciliation import ReconciliationStore

if TYPE_CHECKING:
    from types import TracebackType

    from tasksync.config.tasks import TaskApiConfig
    from tasksync.domain.ports.transport import MutationTransport, PushTransport


log = getLogger(__name__)


class SyncSession:
    """One client's live, reconciled view of the task collection."""

    def __init__(
        self,
        *,
        mutations: MutationTransport,
        push: PushTransport,
        store: ReconciliationStore | None = None,
    ) -> None:
        self.store = store or ReconciliationStore()
        self.mutations = MutationChannel(self.store, mutations)
        self.push = PushChannel(self.store, push)
        self._mutation_transport = mutations
        self._push_transport = push
        self._push_task: asyncio.Task[int] | None = None

    async def __aenter__(self) -> SyncSession:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def push_task(self) -> asyncio.Task[int] | None:
        return self._push_task

    async def start(self, *, load: bool = True, listen: bool = True) -> None:
        """Load the current listing, then follow the push channel in the background."""

        if load:
            await self.mutations.refresh()
        if listen and self._push_task is None:
            self._push_task = asyncio.create_task(self.push.run(), name="tasksync-push")
        log.info(f"Session started with {len(self.store.view)} tasks")

    async def close(self) -> None:
        task, self._push_task = self._push_task, None
        try:
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        except Exception:
            log.exception("Push subscription failed")
        finally:
            await self._push_transport.aclose()
            await self._mutation_transport.aclose()


def build_http_session(config: TaskApiConfig | None = None) -> SyncSession:
    """Wire the HTTP transports for ``config`` (defaults to the environment)."""

    effective = config or get_task_api_config()
    return SyncSession(
        mutations=HttpMutationTransport(config=effective),
        push=HttpStreamPushTransport(config=effective),
    )
