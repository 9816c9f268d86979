"""Persist order values for areas, projects, task sections and tasks.

The functions here load and mutate rows through the shared session but never
commit; routes and CLI commands own the transaction. All order arithmetic is
delegated to ``services.ordering``.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Iterable, Mapping, Optional, Sequence

from sqlalchemy import func

from database import db
from models.area import Area
from models.project import Project
from models.section import TaskSection
from models.task import Task
from services.ordering import (
    SCOPE_FIELDS,
    InvalidPosition,
    InvalidScope,
    ItemNotFound,
    OrderScope,
    Placement,
    PrecisionExhausted,
    order_for_append,
    place_in_scope,
    renumber_scope,
    sort_items,
    validate_order_value,
)

ORDERABLE_MODELS = {
    "area": Area,
    "project": Project,
    "section": TaskSection,
    "task": Task,
}


def model_for_kind(kind: str):
    try:
        return ORDERABLE_MODELS[kind]
    except KeyError:
        raise InvalidScope(f"Unknown item kind '{kind}'.") from None


def get_item(kind: str, item_id: Any):
    model = model_for_kind(kind)
    item = db.session.get(model, item_id) if isinstance(item_id, int) and not isinstance(item_id, bool) else None
    if item is None:
        raise ItemNotFound(item_id, kind)
    return item


def _coerce_reference(name: str, value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidScope(f"{name} must be an id or null.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in {"", "none", "null"}:
            return None
        if text.isdigit():
            return int(text)
    raise InvalidScope(f"{name} must be an id or null.")


def scope_from_payload(
    kind: str,
    payload: Optional[Mapping[str, Any]],
    default: Optional[OrderScope] = None,
) -> OrderScope:
    """Build a scope from JSON, filling omitted fields from ``default``."""
    if payload is not None and not isinstance(payload, Mapping):
        raise InvalidScope("Scope must be an object.")
    values = default.as_dict() if default is not None else {}
    for name, value in (payload or {}).items():
        values[name] = _coerce_reference(name, value)
    return OrderScope.build(kind, **values)


def scope_query(scope: OrderScope, exclude_id: Optional[int] = None):
    model = model_for_kind(scope.kind)
    query = model.query.filter_by(**scope.as_dict())
    if exclude_id is not None:
        query = query.filter(model.id != exclude_id)
    return query.order_by(model.order.asc(), model.id.asc())


def scope_items(scope: OrderScope, exclude_id: Optional[int] = None) -> list:
    return scope_query(scope, exclude_id=exclude_id).all()


def validate_scope(scope: OrderScope) -> None:
    """Check that every id named by ``scope`` refers to an existing row."""
    values = scope.as_dict()
    if scope.kind == "project" and values["area_id"] is not None:
        if db.session.get(Area, values["area_id"]) is None:
            raise InvalidScope(f"Area {values['area_id']} does not exist.")
    elif scope.kind == "section":
        if values["project_id"] is None:
            raise InvalidScope("A section must belong to a project.")
        if db.session.get(Project, values["project_id"]) is None:
            raise InvalidScope(f"Project {values['project_id']} does not exist.")
    elif scope.kind == "task":
        project_id = values["project_id"]
        if project_id is not None and db.session.get(Project, project_id) is None:
            raise InvalidScope(f"Project {project_id} does not exist.")
        section_id = values["section_id"]
        if section_id is not None:
            section = db.session.get(TaskSection, section_id)
            if section is None:
                raise InvalidScope(f"Section {section_id} does not exist.")
            if section.project_id != project_id:
                raise InvalidScope(f"Section {section_id} is not part of project {project_id}.")
        parent_id = values["parent_task_id"]
        if parent_id is not None and db.session.get(Task, parent_id) is None:
            raise InvalidScope(f"Task {parent_id} does not exist.")


def _check_task_parent(task: Task, parent_id: Optional[int]) -> None:
    parent = db.session.get(Task, parent_id) if parent_id is not None else None
    while parent is not None:
        if parent.id == task.id:
            raise InvalidScope("A task cannot be nested under itself.")
        parent = parent.parent_task


def _apply_scope(item, scope: OrderScope) -> None:
    if scope.kind == "task":
        _check_task_parent(item, scope.as_dict()["parent_task_id"])
    for name, value in scope.fields:
        setattr(item, name, value)


def next_order(scope: OrderScope) -> float:
    """Return the append position of ``scope``."""
    model = model_for_kind(scope.kind)
    highest = (
        model.query.with_entities(func.max(model.order))
        .filter_by(**scope.as_dict())
        .scalar()
    )
    try:
        return order_for_append([] if highest is None else [highest])
    except PrecisionExhausted:
        logging.info("Renumbering %s before appending", scope)
        members = scope_items(scope)
        orders = renumber_scope(members)
        for member in members:
            member.order = orders[member.id]
        return order_for_append(orders.values())


def assign_initial_order(item, kind: str, order: Any = None) -> float:
    """Set the order of a new row before it is added to the session."""
    scope = OrderScope.of(kind, item)
    validate_scope(scope)
    item.order = validate_order_value(order) if order is not None else next_order(scope)
    return item.order


def relocate(item, kind: str, scope: OrderScope, order: Any = None) -> float:
    """Move ``item`` into ``scope``, appending unless an order is given."""
    validate_scope(scope)
    if order is not None:
        value = validate_order_value(order)
    elif scope == OrderScope.of(kind, item):
        value = item.order
    else:
        value = next_order(scope)
    _apply_scope(item, scope)
    item.order = value
    return value


def update_order(kind: str, item_id: Any, order: Any, scope: Optional[OrderScope] = None):
    """Set the order of one item, optionally moving it to another scope."""
    item = get_item(kind, item_id)
    value = validate_order_value(order)
    if scope is not None and scope != OrderScope.of(kind, item):
        validate_scope(scope)
        _apply_scope(item, scope)
    item.order = value
    return item


def set_orders(kind: str, updates: Sequence[Mapping[str, Any]]) -> list:
    """Apply a batch of ``{"id", "order", "scope"?}`` updates.

    Everything is validated before the first write, so an invalid entry leaves
    the whole batch unapplied.
    """
    if not isinstance(updates, (list, tuple)) or not updates:
        raise InvalidPosition("Provide at least one order update.")
    resolved = []
    seen = set()
    for entry in updates:
        if not isinstance(entry, Mapping):
            raise InvalidPosition("Each update must be an object with id and order.")
        item = get_item(kind, entry.get("id"))
        if item.id in seen:
            raise InvalidPosition(f"Item {item.id} is listed more than once.")
        seen.add(item.id)
        scope = None
        if entry.get("scope") is not None:
            scope = scope_from_payload(kind, entry["scope"], default=OrderScope.of(kind, item))
            validate_scope(scope)
        resolved.append((item, validate_order_value(entry.get("order")), scope))
    for item, value, scope in resolved:
        if scope is not None:
            _apply_scope(item, scope)
        item.order = value
    return [item for item, _, _ in resolved]


def move_item(kind: str, item_id: Any, destination_index: Any, scope: Optional[OrderScope] = None):
    """Place an item at ``destination_index`` of ``scope`` (its own scope by default).

    Returns ``(item, placement)``. Only the moved item changes unless the gap
    at the destination was exhausted, in which case the scope is renumbered.
    """
    item = get_item(kind, item_id)
    destination = scope or OrderScope.of(kind, item)
    validate_scope(destination)
    siblings = scope_items(destination, exclude_id=item.id)
    placement: Placement = place_in_scope(siblings, destination_index, item.id)
    _apply_scope(item, destination)
    if placement.renumbered:
        logging.info("Renumbering %s after gap exhaustion", destination)
        for sibling in siblings:
            sibling.order = placement.renumbered[sibling.id]
    item.order = placement.order
    return item, placement


def reindex_scope(scope: OrderScope, ordered_ids: Sequence[Any]) -> list:
    """Assign ``GAP``-spaced orders following ``ordered_ids``.

    Listed items from other scopes are moved into ``scope``. Members of the
    scope that are not listed keep their relative order after the listed ones.
    """
    if not isinstance(ordered_ids, (list, tuple)):
        raise InvalidPosition("ids must be a list.")
    if len(set(map(repr, ordered_ids))) != len(ordered_ids):
        raise InvalidPosition("ids must not contain duplicates.")
    validate_scope(scope)
    listed = [get_item(scope.kind, identifier) for identifier in ordered_ids]
    listed_ids = {item.id for item in listed}
    unlisted = [item for item in scope_items(scope) if item.id not in listed_ids]
    sequence = listed + unlisted
    orders = renumber_scope(sequence)
    for item in listed:
        _apply_scope(item, scope)
    for item in sequence:
        item.order = orders[item.id]
    return sequence


def append_all(kind: str, items: Iterable, scope: OrderScope) -> None:
    """Move ``items`` to the end of ``scope`` keeping their relative order."""
    position = next_order(scope)
    for item in sort_items(items):
        _apply_scope(item, scope)
        item.order = position
        position = order_for_append([position])


def detach_section_tasks(section: TaskSection) -> None:
    """Move the tasks of a section into the project's unsectioned lists."""
    groups = defaultdict(list)
    for task in Task.query.filter_by(section_id=section.id).all():
        groups[task.parent_task_id].append(task)
    for parent_id, tasks in groups.items():
        target = OrderScope.build(
            "task",
            project_id=section.project_id,
            section_id=None,
            parent_task_id=parent_id,
        )
        append_all("task", tasks, target)


def detach_area_projects(area: Area) -> None:
    """Move the projects of an area to the area-less list."""
    projects = Project.query.filter_by(area_id=area.id).all()
    if projects:
        append_all("project", projects, OrderScope.build("project", area_id=None))


def renumber_all(kind: str) -> int:
    """Respace every scope of ``kind`` to ``GAP`` steps; returns rows changed."""
    model = model_for_kind(kind)
    groups = defaultdict(list)
    for item in model.query.order_by(model.order.asc(), model.id.asc()).all():
        groups[OrderScope.of(kind, item)].append(item)
    changed = 0
    for scope, items in groups.items():
        orders = renumber_scope(items)
        for item in items:
            if item.order != orders[item.id]:
                item.order = orders[item.id]
                changed += 1
        logging.info("Renumbered %d %s rows in %s", len(items), kind, scope)
    return changed


__all__ = [
    "ORDERABLE_MODELS",
    "SCOPE_FIELDS",
    "append_all",
    "assign_initial_order",
    "detach_area_projects",
    "detach_section_tasks",
    "get_item",
    "model_for_kind",
    "move_item",
    "next_order",
    "reindex_scope",
    "relocate",
    "renumber_all",
    "scope_from_payload",
    "scope_items",
    "scope_query",
    "set_orders",
    "update_order",
    "validate_scope",
]
