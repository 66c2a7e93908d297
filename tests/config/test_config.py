from __future__ import annotations

import logging

import pytest

from tasksync.adapters.http_resilience import build_retry
from tasksync.config import (
    ConfigurationError,
    MissingConfigurationError,
    RetryPolicy,
    configure_logging,
    get_task_api_config,
    require_env_var,
    require_env_vars,
)


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", " value ")

    result = require_env_vars(["EXAMPLE_VAR"])

    assert result["EXAMPLE_VAR"] == "value"


def test_require_env_vars_lists_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_A", raising=False)
    monkeypatch.setenv("MISSING_B", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_B", "MISSING_A"])

    assert "MISSING_A, MISSING_B" in str(exc.value)
    assert isinstance(exc.value, ConfigurationError)


def test_require_env_var_handles_blank_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "   ")

    with pytest.raises(MissingConfigurationError):
        require_env_var("EXAMPLE_VAR")


def test_task_api_config_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TASKSYNC_API_URL", "https://tasks.example/")
    monkeypatch.setenv("TASKSYNC_TOKEN", "secret")
    monkeypatch.setenv("TASKSYNC_RECONNECT_DELAY", "0.25")
    monkeypatch.setenv("TASKSYNC_MAX_RECONNECTS", "3")

    config = get_task_api_config()

    assert config.base_url == "https://tasks.example"
    assert config.auth_headers == {"Authorization": "Bearer secret"}
    assert config.tasks_path == "/api/tasks"
    assert config.reconnect_delay_seconds == 0.25
    assert config.max_reconnects == 3
    assert config.resilience.ratelimit is not None


def test_task_api_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TASKSYNC_API_URL", "https://tasks.example")
    monkeypatch.setenv("TASKSYNC_TOKEN", "secret")
    monkeypatch.delenv("TASKSYNC_RECONNECT_DELAY", raising=False)
    monkeypatch.delenv("TASKSYNC_MAX_RECONNECTS", raising=False)

    config = get_task_api_config()

    assert config.reconnect_delay_seconds == 2.0
    assert config.max_reconnects == 10


def test_task_api_config_requires_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("TASKSYNC_API_URL", raising=False)
    monkeypatch.delenv("TASKSYNC_TOKEN", raising=False)

    with pytest.raises(MissingConfigurationError, match="TASKSYNC_API_URL, TASKSYNC_TOKEN"):
        get_task_api_config()


def test_task_api_config_rejects_bad_numbers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TASKSYNC_API_URL", "https://tasks.example")
    monkeypatch.setenv("TASKSYNC_TOKEN", "secret")
    monkeypatch.setenv("TASKSYNC_MAX_RECONNECTS", "many")

    with pytest.raises(ConfigurationError, match="TASKSYNC_MAX_RECONNECTS"):
        get_task_api_config()


def test_retry_policy_never_retries_creates() -> None:
    policy = RetryPolicy()

    assert "POST" not in policy.allowed_methods
    assert "PUT" in policy.allowed_methods
    assert build_retry(policy) is not None


def test_configure_logging_passes_level_through(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: captured.update(kwargs))

    configure_logging(level=logging.DEBUG, force=True)

    assert captured["level"] == logging.DEBUG
    assert captured["force"] is True
