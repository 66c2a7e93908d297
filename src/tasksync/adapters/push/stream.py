"""Event-stream push transport over a long-lived HTTP response."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from tasksync.adapters.http_resilience import ResilientClient
from tasksync.config.tasks import TaskApiConfig, get_task_api_config
from tasksync.domain.ports.transport import PushEvent, PushTransport

from .schema import decode_frame

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from tasksync.config.http_resilience import ResilienceConfig

log = getLogger(__name__)

_FATAL_STATUS_CODES = frozenset({401, 403, 404})


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


async def iter_frames(lines: AsyncIterator[str]) -> AsyncIterator[tuple[str | None, str]]:
    """Group event-stream lines into ``(event name, data)`` frames."""

    event: str | None = None
    data: list[str] = []
    async for line in lines:
        if not line:
            if data:
                yield event, "\n".join(data)
            event, data = None, []
            continue
        if line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        value = value.removeprefix(" ")
        if name == "event":
            event = value
        elif name == "data":
            data.append(value)
    if data:
        yield event, "\n".join(data)


@dataclass(slots=True)
class HttpStreamPushTransport:
    """Subscribe to task events; reconnects after the stream drops.

    Events missed while disconnected are not replayed; resynchronising after a
    gap is up to the caller.
    """

    config: TaskApiConfig = field(default_factory=get_task_api_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)
    _client: ResilientClient | None = field(default=None, init=False, repr=False)

    async def subscribe(self) -> AsyncIterator[PushEvent]:
        failures = 0
        while True:
            try:
                async for event in self._stream_once():
                    failures = 0
                    yield event
                log.info("Push stream closed by server")
            except httpx.HTTPStatusError as exc:
                if exc.response.status_code in _FATAL_STATUS_CODES:
                    log.error(f"Push stream refused: {exc.response.status_code}")
                    raise
                log.warning(f"Push stream failed: {exc}")
            except httpx.HTTPError as exc:
                log.warning(f"Push stream dropped: {exc}")

            max_reconnects = self.config.max_reconnects
            if max_reconnects is not None and failures >= max_reconnects:
                log.error(f"Giving up on push stream after {failures} reconnect attempts")
                return
            failures += 1
            await self.sleep(self.config.reconnect_delay_seconds)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _stream_once(self) -> AsyncIterator[PushEvent]:
        url = f"{self.config.base_url}{self.config.events_path}"
        headers = {**self.config.auth_headers, "Accept": "text/event-stream"}
        timeout = httpx.Timeout(self.config.resilience.timeout_seconds, read=None)
        client = self._get_client()
        async with client.stream("GET", url, headers=headers, timeout=timeout) as response:
            response.raise_for_status()
            log.info(f"Push stream connected to {url}")
            async for event_name, data in iter_frames(response.aiter_lines()):
                try:
                    frame = decode_frame(event_name, data)
                except ValidationError as exc:
                    log.warning(f"Skipping undecodable push frame {event_name!r}: {exc}")
                    continue
                yield PushEvent(kind=frame.event, payload=frame.data)

    def _get_client(self) -> ResilientClient:
        if self._client is None:
            self._client = self.client_factory(self.config.resilience)
        return self._client


if TYPE_CHECKING:
    _transport_check: PushTransport = HttpStreamPushTransport()
