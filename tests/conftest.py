from __future__ import annotations

import os

import pytest

_TASKSYNC_ENV = (
    "TASKSYNC_API_URL",
    "TASKSYNC_TOKEN",
    "TASKSYNC_RECONNECT_DELAY",
    "TASKSYNC_MAX_RECONNECTS",
)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's exported service settings out of the tests."""

    for name in _TASKSYNC_ENV:
        if name in os.environ:
            monkeypatch.delenv(name)
