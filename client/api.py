"""HTTP access to the list and order endpoints of the tasks API."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Hashable, List, Mapping, Optional, Sequence, Tuple
from urllib import request as urllib_request, error as urllib_error
from urllib.parse import urlencode

from services.ordering import OrderScope, sort_items

DEFAULT_API_URL = "http://localhost:5000"
DEFAULT_TIMEOUT = 10.0
COLLECTION_PATHS = {
    "area": "/areas",
    "project": "/projects",
    "section": "/task-sections",
    "task": "/tasks",
}
LIST_KEYS = {
    "area": "areas",
    "project": "projects",
    "section": "sections",
    "task": "tasks",
}


class PersistenceFailure(RuntimeError):
    """Raised when the API cannot be reached or rejects a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.status_code is None or self.status_code >= 500


class OrderingApiClient:
    """Talks to the tasks API; every failure surfaces as ``PersistenceFailure``."""

    def __init__(self, base_url: str = DEFAULT_API_URL, timeout: float = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_env(cls) -> "OrderingApiClient":
        return cls(
            os.environ.get("TASKS_API_URL", DEFAULT_API_URL),
            float(os.environ.get("TASKS_API_TIMEOUT", DEFAULT_TIMEOUT)),
        )

    def _send(self, method: str, path: str, payload: Optional[dict] = None) -> Tuple[int, Any]:
        """Perform one request and return ``(status, decoded JSON body)``."""
        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        request = urllib_request.Request(
            f"{self.base_url}{path}",
            data=data,
            headers={"Content-Type": "application/json"},
            method=method,
        )
        try:
            with urllib_request.urlopen(request, timeout=self.timeout) as response:
                status, raw = response.getcode(), response.read()
        except urllib_error.HTTPError as error:
            status, raw = error.code, error.read()
        except OSError as error:
            # URLError, timeouts and dropped connections carry no status.
            raise PersistenceFailure(f"Unable to reach the tasks API: {error}") from error

        if status >= 400:
            logging.warning("%s %s answered %s", method, path, status)
        try:
            return status, json.loads(raw) if raw else {}
        except ValueError:
            return status, {}

    def _call(self, method: str, path: str, payload: Optional[dict] = None, *, action: str) -> Dict[str, Any]:
        status, body = self._send(method, path, payload)
        if status >= 400:
            message = body.get("message") if isinstance(body, dict) else None
            raise PersistenceFailure(message or f"Unable to {action}.", status)
        if not isinstance(body, dict):
            raise PersistenceFailure(f"Unexpected response while trying to {action}.", status)
        return body

    @staticmethod
    def _item_list(body: Mapping[str, Any], key: str, action: str) -> List[dict]:
        items = body.get(key)
        if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
            raise PersistenceFailure(f"Unexpected response while trying to {action}.")
        return items

    def list_items(self, kind: str, scope: Optional[OrderScope] = None) -> List[dict]:
        """Fetch the items of ``kind`` (restricted to ``scope``), sorted by order."""
        path = COLLECTION_PATHS[kind]
        if scope is not None and scope.fields:
            query = {name: "none" if value is None else value for name, value in scope.fields}
            path = f"{path}?{urlencode(query)}"
        body = self._call("GET", path, action=f"list {LIST_KEYS[kind]}")
        return sort_items(self._item_list(body, LIST_KEYS[kind], f"list {LIST_KEYS[kind]}"))

    def update_order(
        self,
        kind: str,
        item_id: Hashable,
        order: float,
        scope: Optional[OrderScope] = None,
    ) -> dict:
        """Set the order of one item; ``scope`` also moves it to another list."""
        payload: Dict[str, Any] = {"order": order}
        if scope is not None:
            payload["scope"] = scope.as_dict()
        action = f"save the order of {kind} {item_id}"
        body = self._call("PUT", f"{COLLECTION_PATHS[kind]}/{item_id}/order", payload, action=action)
        item = body.get("item")
        if not isinstance(item, dict):
            raise PersistenceFailure(f"Unexpected response while trying to {action}.")
        return item

    def set_orders(self, kind: str, updates: Sequence[Mapping[str, Any]]) -> List[dict]:
        """Send several ``{"id", "order", "scope"?}`` updates in one request."""
        action = f"save {LIST_KEYS[kind]} orders"
        body = self._call(
            "PUT",
            f"{COLLECTION_PATHS[kind]}/orders",
            {"items": [dict(update) for update in updates]},
            action=action,
        )
        return self._item_list(body, "items", action)

    def batch_update_order(self, kind: str, scope: OrderScope, ordered_ids: Sequence[Hashable]) -> List[dict]:
        """Ask the server to respace ``scope`` following ``ordered_ids``."""
        action = f"reorder {LIST_KEYS[kind]}"
        body = self._call(
            "PUT",
            f"{COLLECTION_PATHS[kind]}/reorder",
            {"scope": scope.as_dict(), "ids": list(ordered_ids)},
            action=action,
        )
        return self._item_list(body, "items", action)
