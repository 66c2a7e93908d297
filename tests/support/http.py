"""Helpers for driving the HTTP adapters against ``httpx.MockTransport``."""

from __future__ import annotations

from collections.abc import Callable  # noqa: TC003

import httpx

from tasksync.adapters.http_resilience import ResilienceConfig, ResilientClient
from tasksync.config.tasks import TaskApiConfig

BASE_URL = "https://tasks.test"


def make_config(**overrides: object) -> TaskApiConfig:
    values: dict[str, object] = {
        "base_url": BASE_URL,
        "token": "secret",
        "reconnect_delay_seconds": 0.5,
        "max_reconnects": 0,
        "resilience": ResilienceConfig(name="tasks", timeout_seconds=1.0),
    }
    values.update(overrides)
    return TaskApiConfig(**values)  # type: ignore[arg-type]


def make_client_factory(
    handler: Callable[[httpx.Request], httpx.Response],
) -> Callable[[ResilienceConfig], ResilientClient]:
    async def async_handler(request: httpx.Request) -> httpx.Response:
        return handler(request)

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(transport=httpx.MockTransport(async_handler))  # noqa: SLF001  # type: ignore[reportPrivateUsage]
        return client

    return factory
