"""Task blueprint: CRUD, smart lists and completion."""
from __future__ import annotations

import logging
from typing import Any

from flask import Blueprint, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from database import db
from forms import TaskForm
from models.tag import Tag
from models.task import Task
from routes import (
    database_error_response,
    form_input,
    json_error,
    load_json_payload,
    ordering_error_response,
    scope_filters,
)
from services.ordering import OrderingError, OrderScope
from services.order_service import assign_initial_order, get_item, relocate
from services.task_views import VIEWS, view_query

tasks_bp = Blueprint("tasks", __name__, url_prefix="/tasks")

TASK_FIELDS = (
    "title",
    "notes",
    "due_date",
    "start_date",
    "reminder_time",
    "status",
    "priority",
    "flagged",
    "recurrence",
    "project_id",
    "section_id",
    "parent_task_id",
)


class TagLookupError(ValueError):
    """Raised when a task payload references unknown tags."""


def _parse_tag_ids(raw_value: Any) -> list[int]:
    if raw_value is None:
        return []
    if not isinstance(raw_value, list):
        raise TagLookupError("tag_ids must be a list of tag ids.")
    tag_ids = []
    for value in raw_value:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TagLookupError("tag_ids must be a list of tag ids.")
        if value not in tag_ids:
            tag_ids.append(value)
    return tag_ids


def _tags_for_ids(tag_ids: list[int]) -> list[Tag]:
    if not tag_ids:
        return []
    tags = Tag.query.filter(Tag.id.in_(tag_ids)).all()
    missing = set(tag_ids) - {tag.id for tag in tags}
    if missing:
        raise TagLookupError(f"Unknown tag ids: {', '.join(str(tag_id) for tag_id in sorted(missing))}.")
    by_id = {tag.id: tag for tag in tags}
    return [by_id[tag_id] for tag_id in tag_ids]


def _apply_task_form(task: Task, form: TaskForm) -> None:
    task.title = form.title.data.strip()
    task.notes = form.notes.data or None
    task.due_date = form.due_date.data
    task.start_date = form.start_date.data
    task.reminder_time = form.reminder_time.data
    task.priority = form.priority.data or None
    task.flagged = bool(form.flagged.data)
    task.recurrence = form.recurrence.data or None


def _apply_status(task: Task, status: str) -> None:
    if status == task.status:
        return
    if status == "completed":
        task.complete_task()
    elif status == "pending":
        task.uncomplete_task()
    else:
        task.status = status
        task.completed_at = None


def _form_scope(form: TaskForm) -> OrderScope:
    return OrderScope.build(
        "task",
        project_id=form.project_id.data,
        section_id=form.section_id.data,
        parent_task_id=form.parent_task_id.data,
    )


@tasks_bp.route("", methods=["GET"])
def list_tasks():
    view = request.args.get("view")
    if view and view not in VIEWS:
        return json_error(f"Unknown view '{view}'.")
    try:
        filters = scope_filters("task")
    except OrderingError as error:
        return ordering_error_response(error)

    if view:
        query = view_query(view)
    else:
        query = Task.query.order_by(Task.order.asc(), Task.id.asc())
    if filters:
        query = query.filter_by(**filters)
    status = request.args.get("status")
    if status:
        query = query.filter(Task.status == status)
    tag_id = request.args.get("tag_id", type=int)
    if tag_id is not None:
        query = query.filter(Task.tags.any(Tag.id == tag_id))
    return jsonify({"tasks": [task.to_dict() for task in query.all()]})


@tasks_bp.route("", methods=["POST"])
def create_task():
    payload = load_json_payload()
    if payload is None:
        return json_error("Request body must be a JSON object.")
    form = TaskForm(formdata=form_input(payload, TASK_FIELDS))
    if not form.validate():
        return json_error("Please correct the highlighted fields.", errors=form.errors)

    task = Task()
    _apply_task_form(task, form)
    task.status = "pending"
    for name, value in _form_scope(form).fields:
        setattr(task, name, value)
    try:
        assign_initial_order(task, "task", payload.get("order"))
        tags = _tags_for_ids(_parse_tag_ids(payload.get("tag_ids")))
        db.session.add(task)
        task.tags = tags
        _apply_status(task, form.status.data)
        db.session.commit()
    except TagLookupError as error:
        db.session.rollback()
        return json_error(str(error))
    except OrderingError as error:
        return ordering_error_response(error)
    except SQLAlchemyError as error:
        return database_error_response("adding task", error)
    return jsonify({"success": True, "message": f'Task "{task.title}" added!', "task": task.to_dict()}), 201


@tasks_bp.route("/<int:task_id>", methods=["GET"])
def get_task(task_id):
    try:
        task = get_item("task", task_id)
    except OrderingError as error:
        return ordering_error_response(error)
    return jsonify({"task": task.to_dict()})


@tasks_bp.route("/<int:task_id>", methods=["PUT"])
def update_task(task_id):
    payload = load_json_payload()
    if payload is None:
        return json_error("Request body must be a JSON object.")
    try:
        task = get_item("task", task_id)
        form = TaskForm(formdata=form_input(payload, TASK_FIELDS, current=task))
        if not form.validate():
            return json_error("Please correct the highlighted fields.", errors=form.errors)
        _apply_task_form(task, form)
        _apply_status(task, form.status.data)
        if "tag_ids" in payload:
            task.tags = _tags_for_ids(_parse_tag_ids(payload["tag_ids"]))
        # A new project, section or parent appends the task there unless an order is given.
        relocate(task, "task", _form_scope(form), payload.get("order"))
        db.session.commit()
    except TagLookupError as error:
        db.session.rollback()
        return json_error(str(error))
    except OrderingError as error:
        return ordering_error_response(error)
    except SQLAlchemyError as error:
        return database_error_response("updating task", error)
    return jsonify({"success": True, "task": task.to_dict()})


@tasks_bp.route("/<int:task_id>", methods=["DELETE"])
def delete_task(task_id):
    try:
        task = get_item("task", task_id)
        title = task.title
        db.session.delete(task)
        db.session.commit()
    except OrderingError as error:
        return ordering_error_response(error)
    except SQLAlchemyError as error:
        return database_error_response("deleting task", error)
    return jsonify({"success": True, "message": f'Task "{title}" deleted!'})


@tasks_bp.route("/<int:task_id>/complete", methods=["POST"])
def complete_task(task_id):
    try:
        task = get_item("task", task_id)
        task.complete_task()
        db.session.commit()
    except OrderingError as error:
        return ordering_error_response(error)
    except SQLAlchemyError as error:
        return database_error_response("completing task", error)
    logging.info("Task %s completed", task_id)
    return jsonify({"success": True, "message": f'Task "{task.title}" completed!', "task": task.to_dict()})


@tasks_bp.route("/<int:task_id>/uncomplete", methods=["POST"])
def uncomplete_task(task_id):
    try:
        task = get_item("task", task_id)
        task.uncomplete_task()
        db.session.commit()
    except OrderingError as error:
        return ordering_error_response(error)
    except SQLAlchemyError as error:
        return database_error_response("reopening task", error)
    return jsonify({"success": True, "message": f'Task "{task.title}" reopened!', "task": task.to_dict()})
