"""Shared helpers for route blueprints."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Mapping

from flask import jsonify, request
from werkzeug.datastructures import MultiDict

from database import db
from services.ordering import SCOPE_FIELDS, InvalidScope, ItemNotFound, OrderingError

__all__ = [
    "COLLECTION_KINDS",
    "database_error_response",
    "form_input",
    "json_error",
    "load_json_payload",
    "ordering_error_response",
    "scope_filters",
    "to_formdata",
]

# URL prefix of each orderable kind.
COLLECTION_KINDS = {
    "areas": "area",
    "projects": "project",
    "task-sections": "section",
    "tasks": "task",
}


def json_error(message: str, status: int = 400, errors: Mapping[str, Any] | None = None):
    """Return the error payload used by every endpoint."""
    payload: dict[str, Any] = {"success": False, "message": message}
    if errors:
        payload["errors"] = errors
    return jsonify(payload), status


def load_json_payload() -> dict[str, Any] | None:
    """Return the JSON object sent with the request, or None."""
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else None


def ordering_error_response(error: OrderingError):
    db.session.rollback()
    status = 404 if isinstance(error, ItemNotFound) else 400
    return json_error(str(error), status)


def database_error_response(action: str, error: Exception):
    db.session.rollback()
    logging.error("Database error while %s: %s", action, error, exc_info=True)
    return json_error("An internal server error occurred.", 500)


def _formdata_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "y" if value else ""
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def to_formdata(values: Mapping[str, Any]) -> MultiDict:
    """Flatten JSON values into the string form data WTForms parses."""
    return MultiDict({key: _formdata_value(value) for key, value in values.items()})


def form_input(
    payload: Mapping[str, Any],
    fields: Iterable[str],
    current: Any | None = None,
) -> MultiDict:
    """Return form data for ``fields``; omitted fields keep ``current``'s values."""
    values: dict[str, Any] = {}
    for name in fields:
        if name in payload:
            values[name] = payload[name]
        elif current is not None:
            values[name] = getattr(current, name)
    return to_formdata(values)


def scope_filters(kind: str) -> dict[str, int | None]:
    """Read scope fields from the query string; ``none``/``null`` mean no parent."""
    filters: dict[str, int | None] = {}
    for name in SCOPE_FIELDS[kind]:
        if name not in request.args:
            continue
        raw = request.args.get(name, "").strip().lower()
        if raw in {"", "none", "null"}:
            filters[name] = None
        elif raw.isdigit():
            filters[name] = int(raw)
        else:
            raise InvalidScope(f"{name} must be an id or 'none'.")
    return filters
