"""Order values for user-sortable lists.

Areas, projects, task sections and tasks carry a float ``order``. Within a
scope (see ``OrderScope``) items sort by ``(order, id)`` ascending.

Positions are assigned fractionally: a new or moved item takes the midpoint
between its neighbours, so a move rewrites a single record. Appends and
renumbering use ``GAP`` spacing. When the room between two neighbours drops
below ``MIN_GAP`` the whole scope is renumbered before placing the item.

Everything in this module is pure: no Flask, no database, no network. The
server (``services.order_service``) and the client (``client.controller``)
both route every order computation through it.
"""
from __future__ import annotations

import math
from bisect import bisect_left
from collections.abc import Mapping
from dataclasses import dataclass, field
from numbers import Real
from typing import Any, Hashable, Iterable, Optional, Sequence

GAP = 1000.0
MIN_GAP = 1.0
# Past this, ``order + GAP`` stops being reliably distinct in float arithmetic.
MAX_ORDER = 1e15

# Fields that define the grouping within which an order value is comparable.
SCOPE_FIELDS: dict[str, tuple[str, ...]] = {
    "area": (),
    "project": ("area_id",),
    "section": ("project_id",),
    "task": ("project_id", "section_id", "parent_task_id"),
}


class OrderingError(ValueError):
    """Base class for ordering failures."""


class InvalidPosition(OrderingError):
    """Raised when a destination index or order value is not acceptable."""


class ItemNotFound(OrderingError):
    """Raised when an item id is unknown."""

    def __init__(self, item_id: Any, kind: str | None = None):
        label = kind or "item"
        super().__init__(f"{label.capitalize()} {item_id!r} was not found.")
        self.item_id = item_id
        self.kind = kind


class InvalidScope(OrderingError):
    """Raised when a scope does not fit the kind of item being ordered."""


class PrecisionExhausted(OrderingError):
    """Raised when no value fits strictly between two neighbours."""


def _field(item: Any, name: str, default: Any = None) -> Any:
    if isinstance(item, Mapping):
        return item.get(name, default)
    return getattr(item, name, default)


def item_id(item: Any) -> Hashable:
    return _field(item, "id")


def item_order(item: Any) -> float:
    value = _field(item, "order")
    return float(value) if value is not None else 0.0


def sort_key(item: Any) -> tuple:
    """Return the ``(order, id)`` key used to render a scope."""
    identifier = item_id(item)
    return (item_order(item), identifier is None, identifier)


def sort_items(items: Iterable[Any]) -> list[Any]:
    return sorted(items, key=sort_key)


@dataclass(frozen=True)
class OrderScope:
    """The grouping within which ``order`` values are compared.

    ``fields`` is a tuple of ``(name, value)`` pairs in the order listed by
    ``SCOPE_FIELDS`` for ``kind``. Areas have a single global scope.
    """

    kind: str
    fields: tuple[tuple[str, Any], ...] = ()

    @classmethod
    def build(cls, kind: str, **values: Any) -> "OrderScope":
        try:
            names = SCOPE_FIELDS[kind]
        except KeyError:
            raise InvalidScope(f"Unknown item kind '{kind}'.") from None
        unknown = sorted(set(values) - set(names))
        if unknown:
            raise InvalidScope(
                f"{', '.join(unknown)} cannot scope the order of a {kind}."
            )
        return cls(kind, tuple((name, values.get(name)) for name in names))

    @classmethod
    def of(cls, kind: str, item: Any) -> "OrderScope":
        """Return the scope an existing item currently belongs to."""
        if kind not in SCOPE_FIELDS:
            raise InvalidScope(f"Unknown item kind '{kind}'.")
        return cls.build(kind, **{name: _field(item, name) for name in SCOPE_FIELDS[kind]})

    def as_dict(self) -> dict[str, Any]:
        return dict(self.fields)

    def contains(self, item: Any) -> bool:
        return all(_field(item, name) == value for name, value in self.fields)

    def __str__(self) -> str:
        if not self.fields:
            return self.kind
        inner = ", ".join(f"{name}={value}" for name, value in self.fields)
        return f"{self.kind}[{inner}]"


@dataclass
class Placement:
    """Where a moved or inserted item lands.

    ``renumbered`` is only set when the destination gap was exhausted; it then
    maps every id of the final sequence (moved item included) to its new order.
    """

    order: float
    renumbered: Optional[dict[Hashable, float]] = None

    @property
    def requires_renumber(self) -> bool:
        return self.renumbered is not None


@dataclass
class SequencePlan:
    """New order values for a full re-sequencing of one scope."""

    orders: dict[Hashable, float] = field(default_factory=dict)
    renumbered: bool = False


def validate_order_value(value: Any) -> float:
    """Return ``value`` as a float or raise ``InvalidPosition``."""
    if isinstance(value, bool) or not isinstance(value, Real):
        raise InvalidPosition("Order must be a number.")
    value = float(value)
    if not math.isfinite(value) or value <= 0:
        raise InvalidPosition("Order must be a positive number.")
    if value > MAX_ORDER:
        raise InvalidPosition(f"Order must not exceed {MAX_ORDER:g}.")
    return value


def order_for_append(existing_orders: Iterable[Optional[float]]) -> float:
    """Return an order greater than every existing one (``GAP`` when empty)."""
    orders = [float(order) for order in existing_orders if order is not None]
    if not orders:
        return GAP
    highest = max(max(orders), 0.0)
    result = highest + GAP
    if not result > highest:
        raise PrecisionExhausted(f"No room after order {highest!r}.")
    return result


def gap_exhausted(prev: Optional[float], next_: Optional[float]) -> bool:
    """Return True when a value placed before ``next_`` would need renumbering.

    Inserting before the first item uses 0 as the lower bound, so a first item
    with ``order < MIN_GAP`` also counts as exhausted.
    """
    if next_ is None:
        return False
    lower = 0.0 if prev is None else prev
    return next_ - lower < MIN_GAP


def order_for_insert_between(prev: Optional[float], next_: Optional[float]) -> float:
    """Return an order strictly between ``prev`` and ``next_``.

    Either bound may be ``None`` (start or end of the scope). Callers must pass
    ``prev < next_`` when both are given.
    """
    if prev is None and next_ is None:
        return GAP
    if prev is None:
        result = next_ / 2
        if not 0 < result < next_:
            raise PrecisionExhausted(f"No room before order {next_!r}.")
        return result
    if next_ is None:
        return order_for_append([prev])
    result = prev + (next_ - prev) / 2
    if not prev < result < next_:
        raise PrecisionExhausted(f"No room between orders {prev!r} and {next_!r}.")
    return result


def _neighbours(items: Sequence[Any], destination_index: int) -> tuple[Optional[float], Optional[float]]:
    if (
        isinstance(destination_index, bool)
        or not isinstance(destination_index, int)
        or not 0 <= destination_index <= len(items)
    ):
        raise InvalidPosition(
            f"Position {destination_index!r} is outside 0..{len(items)}."
        )
    prev = item_order(items[destination_index - 1]) if destination_index > 0 else None
    next_ = item_order(items[destination_index]) if destination_index < len(items) else None
    return prev, next_


def order_for_index_move(items: Sequence[Any], destination_index: int) -> float:
    """Return the order that puts an item at ``destination_index`` of ``items``.

    ``items`` must be sorted and must not contain the item being moved.
    """
    prev, next_ = _neighbours(items, destination_index)
    return order_for_insert_between(prev, next_)


def renumber_scope(items: Sequence[Any]) -> dict[Hashable, float]:
    """Map the ids of ``items`` to ``GAP, 2*GAP, ...`` in their given sequence."""
    return {item_id(item): GAP * (position + 1) for position, item in enumerate(items)}


def place_in_scope(siblings: Sequence[Any], destination_index: int, moved_id: Hashable) -> Placement:
    """Place ``moved_id`` at ``destination_index`` among sorted ``siblings``.

    Renumbers the final sequence when the destination gap is exhausted, so the
    caller never sees ``PrecisionExhausted``.
    """
    prev, next_ = _neighbours(siblings, destination_index)
    if not gap_exhausted(prev, next_):
        try:
            return Placement(order=order_for_insert_between(prev, next_))
        except PrecisionExhausted:
            pass
    sequence = list(siblings[:destination_index]) + [{"id": moved_id}] + list(siblings[destination_index:])
    renumbered = renumber_scope(sequence)
    return Placement(order=renumbered[moved_id], renumbered=renumbered)


def _longest_increasing_run(values: Sequence[int]) -> set[int]:
    """Return the indices of one longest strictly increasing subsequence."""
    tail_values: list[int] = []
    tail_indices: list[int] = []
    previous = [-1] * len(values)
    for index, value in enumerate(values):
        slot = bisect_left(tail_values, value)
        if slot > 0:
            previous[index] = tail_indices[slot - 1]
        if slot == len(tail_values):
            tail_values.append(value)
            tail_indices.append(index)
        else:
            tail_values[slot] = value
            tail_indices[slot] = index
    members: set[int] = set()
    cursor = tail_indices[-1] if tail_indices else -1
    while cursor != -1:
        members.add(cursor)
        cursor = previous[cursor]
    return members


def plan_sequence(sequence: Sequence[Any], previous_ids: Sequence[Hashable]) -> SequencePlan:
    """Return the order changes that make ``sequence`` the sorted order.

    ``previous_ids`` is the scope's sorted id list before the change. Items
    that keep their relative order (a longest increasing run of previous
    positions) are left alone; every other item gets a midpoint between its
    new neighbours. Falls back to renumbering the whole sequence when a gap
    runs out.
    """
    positions = {identifier: position for position, identifier in enumerate(previous_ids)}
    candidates = [
        index for index, item in enumerate(sequence) if item_id(item) in positions
    ]
    run = _longest_increasing_run([positions[item_id(sequence[index])] for index in candidates])
    kept = {candidates[index] for index in run}

    next_kept: list[Optional[float]] = [None] * len(sequence)
    upcoming: Optional[float] = None
    for index in range(len(sequence) - 1, -1, -1):
        next_kept[index] = upcoming
        if index in kept:
            upcoming = item_order(sequence[index])

    plan = SequencePlan()
    last: Optional[float] = None
    for index, item in enumerate(sequence):
        if index in kept:
            last = item_order(item)
            continue
        upper = next_kept[index]
        if gap_exhausted(last, upper):
            return SequencePlan(orders=renumber_scope(sequence), renumbered=True)
        try:
            value = order_for_insert_between(last, upper)
        except PrecisionExhausted:
            return SequencePlan(orders=renumber_scope(sequence), renumbered=True)
        plan.orders[item_id(item)] = value
        last = value
    return plan


__all__ = [
    "GAP",
    "MAX_ORDER",
    "MIN_GAP",
    "SCOPE_FIELDS",
    "InvalidPosition",
    "InvalidScope",
    "ItemNotFound",
    "OrderScope",
    "OrderingError",
    "Placement",
    "PrecisionExhausted",
    "SequencePlan",
    "gap_exhausted",
    "item_id",
    "item_order",
    "order_for_append",
    "order_for_index_move",
    "order_for_insert_between",
    "place_in_scope",
    "plan_sequence",
    "renumber_scope",
    "sort_items",
    "sort_key",
    "validate_order_value",
]
