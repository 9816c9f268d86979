"""Drag-and-drop reordering with optimistic local updates.

A gesture moves through ``ReorderState``::

    IDLE -> DRAGGING -> RESOLVING -> PERSISTING -> SETTLED
                                               \\-> REVERTED

Only a completed drop talks to the server, with exactly one request. The
store is updated before the request goes out; on success the server's copy
of each written item replaces the local one, on failure the pre-drop snapshot
is restored and ``PersistenceFailure`` is raised.

Gestures are serialized: a second drop computes from the state left by the
first one and is only sent after the first has settled.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Callable, Hashable, Optional, Sequence

from client.api import PersistenceFailure
from client.store import ItemStore
from services.ordering import (
    InvalidPosition,
    InvalidScope,
    OrderingError,
    OrderScope,
    order_for_append,
    place_in_scope,
    plan_sequence,
)

SAVE_FAILED_MESSAGE = "Couldn't save new order, please retry."


class ReorderState(StrEnum):
    IDLE = "idle"
    DRAGGING = "dragging"
    RESOLVING = "resolving"
    PERSISTING = "persisting"
    SETTLED = "settled"
    REVERTED = "reverted"


@dataclass
class DragGesture:
    item_id: Hashable
    origin_scope: OrderScope
    origin_index: int
    state: ReorderState = ReorderState.DRAGGING
    target_scope: Optional[OrderScope] = None
    target_index: Optional[int] = None
    error: Optional[Exception] = None


@dataclass
class ReorderResult:
    scope: OrderScope
    state: ReorderState
    orders: dict[Hashable, float] = field(default_factory=dict)
    item_id: Optional[Hashable] = None
    renumbered: bool = False
    persisted: bool = False


class ReorderController:
    def __init__(
        self,
        api,
        store: ItemStore,
        *,
        max_attempts: int = 3,
        backoff: float = 0.2,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.api = api
        self.store = store
        self.max_attempts = max_attempts
        self.backoff = backoff
        self._sleep = sleep
        self._lock = threading.Lock()
        self.gesture: Optional[DragGesture] = None
        self.last_gesture: Optional[DragGesture] = None

    @property
    def kind(self) -> str:
        return self.store.kind

    @property
    def state(self) -> ReorderState:
        return self.gesture.state if self.gesture else ReorderState.IDLE

    def _check_kind(self, scope: OrderScope) -> None:
        if scope.kind != self.kind:
            raise InvalidScope(f"Cannot order {self.kind} items in a {scope.kind} scope.")

    def _index_of(self, item_id: Hashable, scope: OrderScope) -> int:
        ids = [item["id"] for item in self.store.scope_items(scope)]
        return ids.index(item_id)

    def visible_items(self, scope: OrderScope) -> list[dict]:
        """Read-only projection used by views."""
        return self.store.scope_items(scope)

    def refresh(self, scope: OrderScope) -> list[dict]:
        """Replace the local copy of ``scope`` with the server's list."""
        self._check_kind(scope)
        with self._lock:
            items = self.api.list_items(self.kind, scope)
            self.store.replace_scope(scope, items)
            return self.store.scope_items(scope)

    # Drag gesture -------------------------------------------------------

    def begin_drag(self, item_id: Hashable) -> DragGesture:
        if self.gesture is not None and self.gesture.state == ReorderState.DRAGGING:
            raise RuntimeError("A drag is already in progress.")
        scope = self.store.scope_of(item_id)
        self.gesture = DragGesture(item_id, scope, self._index_of(item_id, scope))
        return self.gesture

    def drag_over(self, scope: OrderScope, index: int) -> None:
        """Remember the hover target; nothing is computed or sent yet."""
        if self.gesture is None or self.gesture.state != ReorderState.DRAGGING:
            raise RuntimeError("No drag in progress.")
        self._check_kind(scope)
        self.gesture.target_scope = scope
        self.gesture.target_index = index

    def cancel_drag(self) -> None:
        if self.gesture is not None:
            self.gesture.state = ReorderState.IDLE
            self.last_gesture = self.gesture
        self.gesture = None

    def drop(self, scope: Optional[OrderScope] = None, index: Optional[int] = None) -> ReorderResult:
        """Complete the current drag at ``scope``/``index`` or the last hover target."""
        gesture = self.gesture
        if gesture is None or gesture.state != ReorderState.DRAGGING:
            raise RuntimeError("No drag in progress.")
        scope = scope or gesture.target_scope or gesture.origin_scope
        if index is None:
            index = gesture.target_index if gesture.target_index is not None else gesture.origin_index
        return self.reorder(gesture.item_id, scope, index)

    # Moves ----------------------------------------------------------------

    def _gesture_for(self, item_id: Hashable, scope: OrderScope) -> DragGesture:
        if self.gesture is not None and self.gesture.item_id == item_id:
            return self.gesture
        return DragGesture(item_id, scope, self._index_of(item_id, scope))

    def _finish(self, gesture: DragGesture, state: ReorderState, error: Optional[Exception] = None) -> None:
        gesture.state = state
        gesture.error = error
        self.last_gesture = gesture
        self.gesture = None

    def _persist(self, call: Callable[..., Any], *args: Any) -> Any:
        attempt = 0
        while True:
            attempt += 1
            try:
                return call(*args)
            except PersistenceFailure as error:
                if attempt >= self.max_attempts or not error.retryable:
                    raise
                logging.warning(
                    "Saving %s order failed (attempt %d of %d): %s",
                    self.kind,
                    attempt,
                    self.max_attempts,
                    error,
                )
                self._sleep(self.backoff * attempt)

    def _send(self, gesture: DragGesture, snapshot: dict, call: Callable[..., Any], *args: Any) -> list[dict]:
        gesture.state = ReorderState.PERSISTING
        try:
            response = self._persist(call, *args)
        except PersistenceFailure as error:
            self.store.restore(snapshot)
            self._finish(gesture, ReorderState.REVERTED, error)
            logging.warning("Reverted %s reorder after failed save: %s", self.kind, error)
            raise PersistenceFailure(SAVE_FAILED_MESSAGE, error.status_code) from error
        entries = response if isinstance(response, list) else [response]
        for entry in entries:
            self.store.upsert(entry)
        self._finish(gesture, ReorderState.SETTLED)
        return entries

    def reorder(self, item_id: Hashable, destination_scope: OrderScope, destination_index: int) -> ReorderResult:
        """Move one item to ``destination_index`` of ``destination_scope``.

        ``destination_index`` counts positions among the other items of the
        destination, so ``0..len(others)`` is valid and ``len(others)`` appends.
        """
        with self._lock:
            try:
                self._check_kind(destination_scope)
                item = self.store.get(item_id)
            except OrderingError as error:
                if self.gesture is not None and self.gesture.item_id == item_id:
                    self._finish(self.gesture, ReorderState.IDLE, error)
                raise
            origin_scope = OrderScope.of(self.kind, item)
            gesture = self._gesture_for(item_id, origin_scope)
            gesture.state = ReorderState.RESOLVING
            siblings = self.store.scope_items(destination_scope, exclude=item_id)
            try:
                placement = place_in_scope(siblings, destination_index, item_id)
            except OrderingError as error:
                self._finish(gesture, ReorderState.IDLE, error)
                raise

            same_scope = destination_scope == origin_scope
            if (
                same_scope
                and not placement.requires_renumber
                and self._index_of(item_id, origin_scope) == destination_index
            ):
                self._finish(gesture, ReorderState.SETTLED)
                return ReorderResult(destination_scope, ReorderState.SETTLED, item_id=item_id)

            snapshot = self.store.snapshot()
            orders = placement.renumbered or {item_id: placement.order}
            for identifier, order in orders.items():
                self.store.update(identifier, order=order)
            self.store.update(item_id, **destination_scope.as_dict())

            if placement.requires_renumber:
                ordered_ids = [sibling["id"] for sibling in siblings]
                ordered_ids.insert(destination_index, item_id)
                entries = self._send(
                    gesture,
                    snapshot,
                    self.api.batch_update_order,
                    self.kind,
                    destination_scope,
                    ordered_ids,
                )
            else:
                entries = self._send(
                    gesture,
                    snapshot,
                    self.api.update_order,
                    self.kind,
                    item_id,
                    placement.order,
                    None if same_scope else destination_scope,
                )
            return ReorderResult(
                destination_scope,
                ReorderState.SETTLED,
                orders={entry["id"]: entry["order"] for entry in entries},
                item_id=item_id,
                renumbered=placement.requires_renumber,
                persisted=True,
            )

    def reorder_all(self, scope: OrderScope, ordered_ids: Sequence[Hashable]) -> ReorderResult:
        """Make ``ordered_ids`` the sequence of ``scope``, writing only what moved.

        Every current member of ``scope`` must be listed; ids from other
        scopes are moved into it.
        """
        self._check_kind(scope)
        with self._lock:
            if len(set(ordered_ids)) != len(ordered_ids):
                raise InvalidPosition("The new sequence lists an item more than once.")
            sequence = [self.store.get(identifier) for identifier in ordered_ids]
            current = self.store.scope_items(scope)
            listed = set(ordered_ids)
            missing = [item["id"] for item in current if item["id"] not in listed]
            if missing:
                raise InvalidPosition(f"The new sequence leaves out {missing}.")

            plan = plan_sequence(sequence, [item["id"] for item in current])
            if not plan.orders:
                return ReorderResult(scope, ReorderState.SETTLED)

            moved_in = {item["id"] for item in sequence if not scope.contains(item)}
            gesture = DragGesture(None, scope, 0, state=ReorderState.RESOLVING)
            snapshot = self.store.snapshot()
            for identifier, order in plan.orders.items():
                self.store.update(identifier, order=order)
            for identifier in moved_in:
                self.store.update(identifier, **scope.as_dict())

            if plan.renumbered:
                entries = self._send(gesture, snapshot, self.api.batch_update_order, self.kind, scope, list(ordered_ids))
            elif len(plan.orders) == 1:
                ((identifier, order),) = plan.orders.items()
                entries = self._send(
                    gesture,
                    snapshot,
                    self.api.update_order,
                    self.kind,
                    identifier,
                    order,
                    scope if identifier in moved_in else None,
                )
            else:
                updates = []
                for identifier, order in plan.orders.items():
                    update = {"id": identifier, "order": order}
                    if identifier in moved_in:
                        update["scope"] = scope.as_dict()
                    updates.append(update)
                entries = self._send(gesture, snapshot, self.api.set_orders, self.kind, updates)
            return ReorderResult(
                scope,
                ReorderState.SETTLED,
                orders={entry["id"]: entry["order"] for entry in entries},
                renumbered=plan.renumbered,
                persisted=True,
            )

    # Create / delete bookkeeping -------------------------------------------

    def insert(self, item: dict) -> dict:
        """Track a newly created item, appending it when it has no order yet."""
        with self._lock:
            item = dict(item)
            if item.get("order") is None:
                scope = OrderScope.of(self.kind, item)
                item["order"] = order_for_append(entry["order"] for entry in self.store.scope_items(scope))
            self.store.upsert(item)
            return dict(item)

    def remove(self, item_id: Hashable) -> None:
        with self._lock:
            self.store.discard(item_id)
