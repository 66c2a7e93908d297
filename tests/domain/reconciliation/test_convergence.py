"""Every causally valid delivery order of the same events ends in the same view."""

from __future__ import annotations

from itertools import permutations
from typing import TYPE_CHECKING

import pytest

from tests.support.transports import make_store, make_task

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from tasksync.domain.reconciliation import MutationHandle, ReconciliationStore

type Step = Callable[[ReconciliationStore, dict[str, MutationHandle]], None]


def _orders(
    names: Sequence[str],
    before: Sequence[tuple[str, str]],
) -> list[tuple[str, ...]]:
    return [
        order
        for order in permutations(names)
        if all(order.index(first) < order.index(second) for first, second in before)
    ]


def _run(order: Sequence[str], steps: dict[str, Step], seed: Step | None = None) -> list[object]:
    store = make_store()
    handles: dict[str, MutationHandle] = {}
    if seed is not None:
        seed(store, handles)
    for name in order:
        steps[name](store, handles)
    return [(record.identity, dict(record.fields), record.provisional) for record in store.view]


def _local_create(store: ReconciliationStore, handles: dict[str, MutationHandle]) -> None:
    handles["create"] = store.local_create({"title": "Buy milk"}, correlation_token="T1")


def _confirm_create(store: ReconciliationStore, _handles: dict[str, MutationHandle]) -> None:
    store.rest_confirm_create("T1", "srv-42", {"title": "Buy milk"})


def _push_created(store: ReconciliationStore, _handles: dict[str, MutationHandle]) -> None:
    store.push_created({"id": "srv-42", "title": "Buy milk", "correlationToken": "T1"})


def _push_updated(store: ReconciliationStore, _handles: dict[str, MutationHandle]) -> None:
    store.push_updated({"id": "srv-42", "title": "Buy oat milk"})


CREATE_STEPS: dict[str, Step] = {
    "local": _local_create,
    "confirm": _confirm_create,
    "push_created": _push_created,
    "push_updated": _push_updated,
}
CREATE_ORDERS = _orders(
    list(CREATE_STEPS),
    before=[
        ("local", "confirm"),
        ("local", "push_created"),
        ("push_created", "push_updated"),
    ],
)


@pytest.mark.parametrize("order", CREATE_ORDERS, ids="-".join)
def test_create_converges_for_every_delivery_order(order: tuple[str, ...]) -> None:
    assert _run(order, CREATE_STEPS) == [("srv-42", {"title": "Buy oat milk"}, False)]


def _seed_task(store: ReconciliationStore, _handles: dict[str, MutationHandle]) -> None:
    store.load_snapshot([make_task("srv-4", "Keep"), make_task("srv-5", "Old")])


def _local_delete(store: ReconciliationStore, handles: dict[str, MutationHandle]) -> None:
    handle = store.local_delete("srv-5")
    assert handle is not None
    handles["delete"] = handle


def _confirm_delete(store: ReconciliationStore, handles: dict[str, MutationHandle]) -> None:
    store.rest_confirm_delete("srv-5", token=handles["delete"].token)


def _stale_update(store: ReconciliationStore, _handles: dict[str, MutationHandle]) -> None:
    store.push_updated(make_task("srv-5", "Stale"))


def _push_deleted(store: ReconciliationStore, _handles: dict[str, MutationHandle]) -> None:
    store.push_deleted({"id": "srv-5"})


DELETE_STEPS: dict[str, Step] = {
    "local": _local_delete,
    "confirm": _confirm_delete,
    "stale_update": _stale_update,
    "push_deleted": _push_deleted,
}
DELETE_ORDERS = _orders(
    list(DELETE_STEPS),
    before=[
        ("local", "confirm"),
        ("local", "push_deleted"),
        ("stale_update", "push_deleted"),
    ],
)


@pytest.mark.parametrize("order", DELETE_ORDERS, ids="-".join)
def test_delete_converges_for_every_delivery_order(order: tuple[str, ...]) -> None:
    result = _run(order, DELETE_STEPS, seed=_seed_task)

    assert result == [("srv-4", {"title": "Keep", "completed": False}, False)]


def test_orders_cover_interleavings() -> None:
    assert len(CREATE_ORDERS) == 3
    assert len(DELETE_ORDERS) == 5
