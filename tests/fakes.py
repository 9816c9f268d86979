"""Stand-ins for the tasks API used by the reorder controller tests."""

from __future__ import annotations

import copy
from urllib.parse import urlsplit

from client.api import OrderingApiClient, PersistenceFailure
from services.ordering import GAP, OrderScope, sort_items


class FakeOrderingApi:
    """Keeps its own copy of the items and records every call.

    Queue exceptions in ``failures`` to make the next calls fail in turn.
    """

    def __init__(self, kind, items=()):
        self.kind = kind
        self.items = {item["id"]: dict(item) for item in items}
        self.calls = []
        self.failures = []

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if self.failures:
            raise self.failures.pop(0)

    def call_names(self):
        return [call[0] for call in self.calls]

    def list_items(self, kind, scope=None):
        self._record("list_items", kind, scope)
        items = [item for item in self.items.values() if scope is None or scope.contains(item)]
        return copy.deepcopy(sort_items(items))

    def update_order(self, kind, item_id, order, scope=None):
        self._record("update_order", kind, item_id, order, scope)
        item = self.items[item_id]
        item["order"] = order
        if scope is not None:
            item.update(scope.as_dict())
        return dict(item)

    def set_orders(self, kind, updates):
        self._record("set_orders", kind, copy.deepcopy(list(updates)))
        written = []
        for update in updates:
            item = self.items[update["id"]]
            item["order"] = update["order"]
            item.update(update.get("scope") or {})
            written.append(dict(item))
        return written

    def batch_update_order(self, kind, scope, ordered_ids):
        self._record("batch_update_order", kind, scope, list(ordered_ids))
        written = []
        for position, identifier in enumerate(ordered_ids):
            item = self.items[identifier]
            item.update(scope.as_dict())
            item["order"] = GAP * (position + 1)
            written.append(dict(item))
        return written


def network_error():
    return PersistenceFailure("Unable to reach the tasks API.")


def server_error():
    return PersistenceFailure("An internal server error occurred.", 500)


def rejected():
    return PersistenceFailure("Order must be a positive number.", 400)


def task_scope(project_id=1, section_id=None, parent_task_id=None):
    return OrderScope.build(
        "task",
        project_id=project_id,
        section_id=section_id,
        parent_task_id=parent_task_id,
    )


class FlaskClientApi(OrderingApiClient):
    """Routes ``OrderingApiClient`` requests through a Flask test client."""

    def __init__(self, test_client):
        super().__init__("http://testserver")
        self.test_client = test_client
        self.requests = []

    def _send(self, method, path, payload=None):
        self.requests.append((method, path, payload))
        target = urlsplit(path)
        response = self.test_client.open(
            target.path,
            method=method,
            query_string=target.query,
            json=payload,
        )
        return response.status_code, response.get_json(silent=True) or {}
