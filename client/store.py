"""Client-side state, split per concern.

``ItemStore`` holds one kind of orderable item and is written only by the
reorder controller. Views read sorted copies from ``scope_items``.
``NavigationStore`` keeps what the user is looking at, apart from item data.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Hashable, Iterable, Mapping, Optional

from services.ordering import SCOPE_FIELDS, InvalidScope, ItemNotFound, OrderScope, sort_items

NAVIGATION_VIEWS = ("today", "upcoming", "anytime", "someday", "logbook", "calendar", "planner")


class ItemStore:
    def __init__(self, kind: str, items: Iterable[Mapping[str, Any]] = ()):
        if kind not in SCOPE_FIELDS:
            raise InvalidScope(f"Unknown item kind '{kind}'.")
        self.kind = kind
        self._items: dict[Hashable, dict] = {}
        self.load(items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: Hashable) -> bool:
        return item_id in self._items

    def load(self, items: Iterable[Mapping[str, Any]]) -> None:
        self._items = {}
        for item in items:
            self.upsert(item)

    def get(self, item_id: Hashable) -> dict:
        try:
            return dict(self._items[item_id])
        except KeyError:
            raise ItemNotFound(item_id, self.kind) from None

    def scope_of(self, item_id: Hashable) -> OrderScope:
        return OrderScope.of(self.kind, self.get(item_id))

    def scope_items(self, scope: OrderScope, exclude: Optional[Hashable] = None) -> list[dict]:
        """Return copies of the items of ``scope`` in render order."""
        return [
            dict(item)
            for item in sort_items(self._items.values())
            if scope.contains(item) and item["id"] != exclude
        ]

    def upsert(self, item: Mapping[str, Any]) -> None:
        if item.get("id") is None:
            raise ValueError("Items need an id before they can be stored.")
        self._items[item["id"]] = dict(item)

    def update(self, item_id: Hashable, **changes: Any) -> None:
        if item_id not in self._items:
            raise ItemNotFound(item_id, self.kind)
        self._items[item_id].update(changes)

    def discard(self, item_id: Hashable) -> None:
        if self._items.pop(item_id, None) is None:
            raise ItemNotFound(item_id, self.kind)

    def replace_scope(self, scope: OrderScope, items: Iterable[Mapping[str, Any]]) -> None:
        """Swap the contents of ``scope`` for a freshly fetched list."""
        for identifier in [key for key, item in self._items.items() if scope.contains(item)]:
            del self._items[identifier]
        for item in items:
            self.upsert(item)

    def snapshot(self) -> dict[Hashable, dict]:
        return copy.deepcopy(self._items)

    def restore(self, snapshot: Mapping[Hashable, dict]) -> None:
        self._items = copy.deepcopy(dict(snapshot))


@dataclass
class NavigationStore:
    selected_view: str = "today"
    selected_project_id: Optional[Hashable] = None
    selected_area_id: Optional[Hashable] = None
    selected_tag_id: Optional[Hashable] = None
    search_query: str = ""

    def select_view(self, view: str) -> None:
        if view not in NAVIGATION_VIEWS:
            raise ValueError(f"Unknown view '{view}'.")
        self.selected_view = view

    def select_project(self, project_id: Optional[Hashable]) -> None:
        self.selected_project_id = project_id

    def select_area(self, area_id: Optional[Hashable]) -> None:
        self.selected_area_id = area_id

    def select_tag(self, tag_id: Optional[Hashable]) -> None:
        self.selected_tag_id = tag_id

    def search(self, query: str) -> None:
        self.search_query = query.strip()
