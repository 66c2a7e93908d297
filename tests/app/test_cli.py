from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from tasksync.app import SyncSession
from tasksync.domain.ports.transport import PushEvent, PushEventKind
from tasksync.domain.records import CanonicalRecord
from tasksync.ui.cli import main, render_record
from tests.support.transports import (
    FailingPushTransport,
    FakeMutationTransport,
    FakePushTransport,
    make_store,
    make_task,
)

if TYPE_CHECKING:
    from collections.abc import Callable


def _factory(
    mutations: FakeMutationTransport,
    push: FakePushTransport | None = None,
) -> Callable[[], SyncSession]:
    return lambda: SyncSession(
        mutations=mutations,
        push=push or FakePushTransport(),
        store=make_store(),
    )


def test_render_record_marks_completion_and_pending() -> None:
    done = CanonicalRecord(identity="srv-1", fields={"title": "a", "completed": True})
    pending = CanonicalRecord(identity="local-1", fields={"title": "b"}, provisional=True)

    assert render_record(done) == "[x] a  <srv-1>"
    assert render_record(pending) == "[ ] b  <local-1> (pending)"


def test_list_prints_current_tasks(capsys: pytest.CaptureFixture[str]) -> None:
    mutations = FakeMutationTransport([make_task("srv-1", "Buy milk")])

    main(["list"], session_factory=_factory(mutations))

    assert capsys.readouterr().out.splitlines() == ["[ ] Buy milk  <srv-1>"]
    assert mutations.closed is True


def test_list_without_tasks(capsys: pytest.CaptureFixture[str]) -> None:
    main(["list"], session_factory=_factory(FakeMutationTransport()))

    assert capsys.readouterr().out.strip() == "No tasks yet."


def test_add_creates_task(capsys: pytest.CaptureFixture[str]) -> None:
    mutations = FakeMutationTransport()

    main(["add", "  Buy milk "], session_factory=_factory(mutations))

    assert mutations.tasks["srv-100"] == {"id": "srv-100", "title": "Buy milk", "completed": False}
    assert "[ ] Buy milk  <srv-100>" in capsys.readouterr().out


def test_update_marks_task_completed(capsys: pytest.CaptureFixture[str]) -> None:
    mutations = FakeMutationTransport([make_task("srv-1", "a")])

    main(["update", "srv-1", "--completed"], session_factory=_factory(mutations))

    assert mutations.tasks["srv-1"]["completed"] is True
    assert "[x] a  <srv-1>" in capsys.readouterr().out


def test_delete_removes_task(capsys: pytest.CaptureFixture[str]) -> None:
    mutations = FakeMutationTransport([make_task("srv-1", "a")])

    main(["delete", "srv-1"], session_factory=_factory(mutations))

    assert mutations.tasks == {}
    assert capsys.readouterr().out.strip() == "No tasks yet."


def test_watch_prints_pushed_changes(capsys: pytest.CaptureFixture[str]) -> None:
    push = FakePushTransport(
        [PushEvent(kind=PushEventKind.CREATED, payload=make_task("srv-2", "b"))]
    )
    push.finish()

    main(["watch"], session_factory=_factory(FakeMutationTransport(), push))

    assert capsys.readouterr().out.splitlines() == ["No tasks yet.", "--", "[ ] b  <srv-2>"]


@pytest.mark.parametrize(
    "argv",
    [["update", "srv-1"], ["update", "srv-1", "--title", "   "], ["add", "  "]],
)
def test_invalid_input_exits_with_validation_code(argv: list[str]) -> None:
    mutations = FakeMutationTransport([make_task("srv-1", "a")])

    with pytest.raises(SystemExit) as exc:
        main(argv, session_factory=_factory(mutations))

    assert exc.value.code == 2
    assert mutations.tasks["srv-1"]["title"] == "a"


def test_transport_failure_exits_with_error_code() -> None:
    class BrokenTransport(FakeMutationTransport):
        async def fetch_all(self) -> object:
            raise httpx.ConnectError("refused")

    with pytest.raises(SystemExit) as exc:
        main(["list"], session_factory=_factory(BrokenTransport()))

    assert exc.value.code == 1


def test_unknown_command_is_rejected_by_argparse() -> None:
    with pytest.raises(SystemExit) as exc:
        main(["explode"])

    assert exc.value.code == 2


def test_watch_exits_with_error_when_push_fails() -> None:
    mutations = FakeMutationTransport()
    push = FailingPushTransport(httpx.ConnectError("refused"))

    with pytest.raises(SystemExit) as exc:
        main(["watch"], session_factory=_factory(mutations, push))

    assert exc.value.code == 1
    assert mutations.closed is True
    assert push.closed is True
