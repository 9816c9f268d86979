import threading

import pytest

from client.api import PersistenceFailure
from client.controller import SAVE_FAILED_MESSAGE, ReorderController, ReorderState
from client.store import ItemStore
from services.ordering import InvalidPosition, InvalidScope, ItemNotFound, OrderScope
from tests.fakes import FakeOrderingApi, network_error, rejected, server_error, task_scope


def _task(item_id, order, project_id=1, section_id=None, parent_task_id=None):
    return {
        "id": item_id,
        "title": f"T{item_id}",
        "order": order,
        "project_id": project_id,
        "section_id": section_id,
        "parent_task_id": parent_task_id,
    }


def _build(*items):
    sleeps = []
    api = FakeOrderingApi("task", items)
    store = ItemStore("task", items)
    controller = ReorderController(api, store, sleep=sleeps.append)
    return controller, api, store, sleeps


@pytest.fixture
def three_tasks():
    return _build(_task(1, 1000.0), _task(2, 2000.0), _task(3, 3000.0))


def _ids(store, scope=None):
    return [item["id"] for item in store.scope_items(scope or task_scope())]


def _orders(store, scope=None):
    return [item["order"] for item in store.scope_items(scope or task_scope())]


def test_move_to_front_halves_first_order(three_tasks):
    controller, api, store, _ = three_tasks

    result = controller.reorder(2, task_scope(), 0)

    assert api.calls == [("update_order", "task", 2, 500.0, None)]
    assert _ids(store) == [2, 1, 3]
    assert result.orders == {2: 500.0}
    assert result.persisted
    assert controller.last_gesture.state == ReorderState.SETTLED
    assert controller.state == ReorderState.IDLE


def test_failed_save_reverts_to_pre_drag_state(three_tasks):
    controller, api, store, sleeps = three_tasks
    api.failures = [network_error(), network_error(), network_error()]

    with pytest.raises(PersistenceFailure) as excinfo:
        controller.reorder(2, task_scope(), 0)

    assert str(excinfo.value) == SAVE_FAILED_MESSAGE
    assert api.call_names() == ["update_order"] * 3
    assert sleeps == [0.2, 0.4]
    assert _ids(store) == [1, 2, 3]
    assert _orders(store) == [1000.0, 2000.0, 3000.0]
    assert controller.last_gesture.state == ReorderState.REVERTED

    fetched = controller.refresh(task_scope())
    assert [(item["id"], item["order"]) for item in fetched] == [(1, 1000.0), (2, 2000.0), (3, 3000.0)]


def test_transient_server_error_is_retried(three_tasks):
    controller, api, store, sleeps = three_tasks
    api.failures = [server_error()]

    controller.reorder(3, task_scope(), 0)

    assert api.call_names() == ["update_order", "update_order"]
    assert sleeps == [0.2]
    assert _ids(store) == [3, 1, 2]


def test_rejected_save_is_not_retried(three_tasks):
    controller, api, store, sleeps = three_tasks
    api.failures = [rejected()]

    with pytest.raises(PersistenceFailure) as excinfo:
        controller.reorder(3, task_scope(), 0)

    assert excinfo.value.status_code == 400
    assert not excinfo.value.retryable
    assert len(api.calls) == 1
    assert sleeps == []
    assert _ids(store) == [1, 2, 3]


@pytest.mark.parametrize("index", [-1, 3, 10])
def test_out_of_range_index_is_rejected_locally(three_tasks, index):
    controller, api, store, _ = three_tasks

    with pytest.raises(InvalidPosition):
        controller.reorder(1, task_scope(), index)

    assert api.calls == []
    assert _orders(store) == [1000.0, 2000.0, 3000.0]
    assert controller.last_gesture.state == ReorderState.IDLE


def test_unknown_item_is_rejected_locally(three_tasks):
    controller, api, _, _ = three_tasks

    with pytest.raises(ItemNotFound):
        controller.reorder(42, task_scope(), 0)

    assert api.calls == []


def test_scope_of_another_kind_is_rejected(three_tasks):
    controller, api, _, _ = three_tasks

    with pytest.raises(InvalidScope):
        controller.reorder(1, OrderScope.build("area"), 0)

    assert api.calls == []


def test_drop_on_current_position_sends_nothing(three_tasks):
    controller, api, _, _ = three_tasks

    result = controller.reorder(2, task_scope(), 1)

    assert api.calls == []
    assert not result.persisted


def test_drag_over_only_tracks_target(three_tasks):
    controller, api, store, _ = three_tasks

    gesture = controller.begin_drag(3)
    controller.drag_over(task_scope(), 1)
    controller.drag_over(task_scope(), 0)

    assert gesture.origin_index == 2
    assert controller.state == ReorderState.DRAGGING
    assert api.calls == []
    assert _ids(store) == [1, 2, 3]

    controller.drop()

    assert api.calls == [("update_order", "task", 3, 500.0, None)]
    assert _ids(store) == [3, 1, 2]
    assert controller.gesture is None


def test_second_drag_while_dragging_is_refused(three_tasks):
    controller, _, _, _ = three_tasks
    controller.begin_drag(1)

    with pytest.raises(RuntimeError):
        controller.begin_drag(2)


def test_cancelled_drag_sends_nothing(three_tasks):
    controller, api, _, _ = three_tasks
    controller.begin_drag(1)
    controller.drag_over(task_scope(), 2)

    controller.cancel_drag()

    assert api.calls == []
    assert controller.state == ReorderState.IDLE
    with pytest.raises(RuntimeError):
        controller.drop()


def test_drop_of_vanished_item_ends_the_drag(three_tasks):
    controller, api, store, _ = three_tasks
    controller.begin_drag(1)
    store.discard(1)

    with pytest.raises(ItemNotFound):
        controller.drop(task_scope(), 0)

    assert api.calls == []
    assert controller.state == ReorderState.IDLE
    assert controller.last_gesture.state == ReorderState.IDLE
    assert controller.begin_drag(2).origin_index == 0


def test_consecutive_moves_build_on_each_other(three_tasks):
    controller, api, store, _ = three_tasks

    controller.reorder(3, task_scope(), 0)
    controller.reorder(2, task_scope(), 0)

    assert [call[2:4] for call in api.calls] == [(3, 500.0), (2, 250.0)]
    assert _ids(store) == [2, 3, 1]
    assert sorted(store.get(1).items()) == sorted(api.items[1].items())


class SlowOrderingApi(FakeOrderingApi):
    """Holds the first ``update_order`` response until ``release`` is set."""

    def __init__(self, kind, items):
        super().__init__(kind, items)
        self.in_flight = threading.Event()
        self.release = threading.Event()

    def update_order(self, kind, item_id, order, scope=None):
        written = super().update_order(kind, item_id, order, scope)
        if not self.in_flight.is_set():
            self.in_flight.set()
            self.release.wait(5)
        return written


def test_concurrent_move_waits_for_pending_save():
    items = [_task(1, 1000.0), _task(2, 2000.0), _task(3, 3000.0)]
    api = SlowOrderingApi("task", items)
    store = ItemStore("task", items)
    controller = ReorderController(api, store)

    first = threading.Thread(target=controller.reorder, args=(3, task_scope(), 0))
    first.start()
    assert api.in_flight.wait(5)

    second = threading.Thread(target=controller.reorder, args=(2, task_scope(), 0))
    second.start()
    second.join(0.2)

    assert second.is_alive()
    assert api.call_names() == ["update_order"]

    api.release.set()
    first.join(5)
    second.join(5)

    assert [call[2:4] for call in api.calls] == [(3, 500.0), (2, 250.0)]
    assert _ids(store) == [2, 3, 1]


def test_move_to_other_section_appends_after_its_tasks():
    section = task_scope(section_id=5)
    controller, api, store, _ = _build(
        _task(1, 1000.0),
        _task(2, 2000.0),
        _task(10, 1000.0, section_id=5),
        _task(11, 2000.0, section_id=5),
    )

    result = controller.reorder(1, section, 2)

    assert api.calls == [("update_order", "task", 1, 3000.0, section)]
    assert store.get(1)["section_id"] == 5
    assert _ids(store, section) == [10, 11, 1]
    assert _ids(store) == [2]
    assert result.scope == section


def test_exhausted_gap_renumbers_with_one_batch_call():
    controller, api, store, _ = _build(
        _task(1, 1000.0),
        _task(2, 1000.0000000001),
        _task(3, 3000.0),
    )

    result = controller.reorder(3, task_scope(), 1)

    assert api.calls == [("batch_update_order", "task", task_scope(), [1, 3, 2])]
    assert result.renumbered
    assert _ids(store) == [1, 3, 2]
    assert _orders(store) == [1000.0, 2000.0, 3000.0]


def test_failed_renumber_reverts_every_item():
    controller, api, store, _ = _build(
        _task(1, 1000.0),
        _task(2, 1000.0000000001),
        _task(3, 3000.0),
    )
    api.failures = [rejected()]

    with pytest.raises(PersistenceFailure):
        controller.reorder(3, task_scope(), 1)

    assert _orders(store) == [1000.0, 1000.0000000001, 3000.0]


def test_reorder_all_single_change_uses_update_order(three_tasks):
    controller, api, store, _ = three_tasks

    result = controller.reorder_all(task_scope(), [3, 1, 2])

    assert api.calls == [("update_order", "task", 3, 500.0, None)]
    assert result.orders == {3: 500.0}
    assert _ids(store) == [3, 1, 2]


def test_reorder_all_several_changes_use_one_batch(three_tasks):
    controller, api, store, _ = three_tasks

    controller.reorder_all(task_scope(), [3, 2, 1])

    assert api.calls == [
        ("set_orders", "task", [{"id": 3, "order": 500.0}, {"id": 2, "order": 750.0}]),
    ]
    assert _ids(store) == [3, 2, 1]


def test_reorder_all_without_changes_sends_nothing(three_tasks):
    controller, api, _, _ = three_tasks

    result = controller.reorder_all(task_scope(), [1, 2, 3])

    assert api.calls == []
    assert not result.persisted


def test_reorder_all_pulls_items_from_other_scopes():
    controller, api, store, _ = _build(
        _task(1, 1000.0),
        _task(2, 2000.0),
        _task(10, 1000.0, section_id=5),
    )

    controller.reorder_all(task_scope(), [1, 10, 2])

    assert api.calls == [("update_order", "task", 10, 1500.0, task_scope())]
    assert _ids(store) == [1, 10, 2]
    assert _ids(store, task_scope(section_id=5)) == []


def test_reorder_all_requires_every_member(three_tasks):
    controller, api, _, _ = three_tasks

    with pytest.raises(InvalidPosition):
        controller.reorder_all(task_scope(), [2, 1])
    with pytest.raises(InvalidPosition):
        controller.reorder_all(task_scope(), [1, 2, 3, 3])

    assert api.calls == []


def test_reorder_all_falls_back_to_renumber():
    controller, api, store, _ = _build(
        _task(1, 1000.0),
        _task(2, 1000.5),
        _task(3, 3000.0),
    )

    result = controller.reorder_all(task_scope(), [1, 3, 2])

    assert api.call_names() == ["batch_update_order"]
    assert result.renumbered
    assert _orders(store) == [1000.0, 2000.0, 3000.0]


def test_insert_appends_and_remove_discards(three_tasks):
    controller, api, store, _ = three_tasks

    created = controller.insert(_task(4, None))
    controller.remove(1)

    assert created["order"] == 4000.0
    assert _ids(store) == [2, 3, 4]
    assert api.calls == []


def test_controller_requires_at_least_one_attempt():
    with pytest.raises(ValueError):
        ReorderController(FakeOrderingApi("task"), ItemStore("task"), max_attempts=0)
