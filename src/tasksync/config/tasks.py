"""Task service configuration values."""

from __future__ import annotations

from dataclasses import dataclass, field

from .env import optional_float_env, optional_int_env, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig

TASKS_PATH = "/api/tasks"
EVENTS_PATH = "/api/events"
TASKS_TIMEOUT_SECONDS = 10.0
DEFAULT_RECONNECT_DELAY_SECONDS = 2.0
DEFAULT_MAX_RECONNECTS = 10


def _default_resilience() -> ResilienceConfig:
    return ResilienceConfig(name="tasks", timeout_seconds=TASKS_TIMEOUT_SECONDS)


@dataclass(frozen=True)
class TaskApiConfig:
    """Holds task service endpoints and the bearer credential."""

    base_url: str
    token: str
    tasks_path: str = TASKS_PATH
    events_path: str = EVENTS_PATH
    reconnect_delay_seconds: float = DEFAULT_RECONNECT_DELAY_SECONDS
    max_reconnects: int | None = DEFAULT_MAX_RECONNECTS
    resilience: ResilienceConfig = field(default_factory=_default_resilience)

    @property
    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


def get_task_api_config(*, resilience: ResilienceConfig | None = None) -> TaskApiConfig:
    values = require_env_vars(("TASKSYNC_API_URL", "TASKSYNC_TOKEN"))
    base_url = values["TASKSYNC_API_URL"].rstrip("/")
    return TaskApiConfig(
        base_url=base_url,
        token=values["TASKSYNC_TOKEN"],
        reconnect_delay_seconds=optional_float_env(
            "TASKSYNC_RECONNECT_DELAY", DEFAULT_RECONNECT_DELAY_SECONDS
        ),
        max_reconnects=optional_int_env("TASKSYNC_MAX_RECONNECTS", DEFAULT_MAX_RECONNECTS),
        resilience=resilience
        or ResilienceConfig(
            name="tasks",
            base_url=base_url,
            timeout_seconds=TASKS_TIMEOUT_SECONDS,
            ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
        ),
    )
