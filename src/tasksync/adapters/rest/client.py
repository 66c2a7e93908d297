"""HTTP mutation transport for the task service."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Unpack
from urllib.parse import quote

import httpx

from tasksync.adapters.http_resilience import ResilientClient
from tasksync.config.tasks import TaskApiConfig, get_task_api_config
from tasksync.domain.ports.transport import ConfirmedMutation, MutationRejected, MutationTransport
from tasksync.domain.reconciliation.errors import MalformedPayload
from tasksync.domain.reconciliation.normalize import DEFAULT_SHAPE, PayloadShape, normalize_record

from .schema import CreateTaskRequest, ErrorResponse

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from tasksync.adapters.http_resilience import RequestOptions
    from tasksync.config.http_resilience import ResilienceConfig

log = getLogger(__name__)


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class HttpMutationTransport:
    """Submit creates, updates and deletes to the task service over REST."""

    config: TaskApiConfig = field(default_factory=get_task_api_config)
    shape: PayloadShape = DEFAULT_SHAPE
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    _client: ResilientClient | None = field(default=None, init=False, repr=False)

    async def submit_create(
        self,
        fields: Mapping[str, object],
        *,
        correlation_token: str,
    ) -> ConfirmedMutation:
        body = CreateTaskRequest.model_validate(
            {**fields, "correlationToken": correlation_token}
        ).to_wire()
        response = await self._call("POST", self._tasks_url(), json=body)
        return self._confirmation(response)

    async def submit_update(
        self,
        identity: str,
        fields: Mapping[str, object],
    ) -> ConfirmedMutation:
        response = await self._call("PUT", self._task_url(identity), json=dict(fields))
        return self._confirmation(response)

    async def submit_delete(self, identity: str) -> None:
        await self._call("DELETE", self._task_url(identity))

    async def fetch_all(self) -> object:
        response = await self._get_client().get(
            self._tasks_url(),
            headers=self.config.auth_headers,
        )
        response.raise_for_status()
        return response.json()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _call(
        self,
        method: str,
        url: str,
        **kwargs: Unpack[RequestOptions],
    ) -> httpx.Response:
        try:
            response = await self._get_client().request(
                method,
                url,
                headers=self.config.auth_headers,
                **kwargs,
            )
        except httpx.HTTPError as exc:
            log.warning(f"{method} {url} failed: {exc}")
            raise MutationRejected(f"Transport failure: {exc}") from exc

        if response.is_error:
            reason = _error_reason(response)
            log.warning(f"{method} {url} rejected with {response.status_code}: {reason}")
            raise MutationRejected(reason, status_code=response.status_code)
        return response

    def _confirmation(self, response: httpx.Response) -> ConfirmedMutation:
        try:
            record = normalize_record(response.json(), shape=self.shape)
        except (MalformedPayload, ValueError) as exc:
            raise MutationRejected(
                f"Malformed confirmation payload: {exc}",
                status_code=response.status_code,
            ) from exc
        return ConfirmedMutation(server_identity=record.identity, fields=record.fields)

    def _get_client(self) -> ResilientClient:
        if self._client is None:
            self._client = self.client_factory(self.config.resilience)
        return self._client

    def _tasks_url(self) -> str:
        return f"{self.config.base_url}{self.config.tasks_path}"

    def _task_url(self, identity: str) -> str:
        return f"{self._tasks_url()}/{quote(identity, safe='')}"


def _error_reason(response: httpx.Response) -> str:
    try:
        return ErrorResponse.model_validate(response.json()).message
    except ValueError:
        return f"{response.status_code} {response.reason_phrase}".strip()


if TYPE_CHECKING:
    _transport_check: MutationTransport = HttpMutationTransport()
