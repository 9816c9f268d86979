"""Order endpoints shared by areas, projects, task sections and tasks."""
from __future__ import annotations

import logging

from flask import Blueprint, jsonify
from sqlalchemy.exc import SQLAlchemyError

from database import db
from routes import (
    COLLECTION_KINDS,
    database_error_response,
    json_error,
    load_json_payload,
    ordering_error_response,
)
from services.ordering import SCOPE_FIELDS, InvalidScope, OrderingError, OrderScope
from services.order_service import (
    get_item,
    move_item,
    reindex_scope,
    scope_from_payload,
    scope_items,
    set_orders,
    update_order,
)

ordering_bp = Blueprint("ordering", __name__)


def _kind_or_404(collection: str):
    return COLLECTION_KINDS.get(collection)


def _payload_scope(kind: str, payload: dict, item=None) -> OrderScope | None:
    if "scope" not in payload:
        return None
    current = OrderScope.of(kind, item) if item is not None else None
    return scope_from_payload(kind, payload["scope"], default=current)


@ordering_bp.route("/<string:collection>/<int:item_id>/order", methods=["PUT"])
def update_item_order(collection, item_id):
    """Set a single order value (and optionally the scope) of one item."""
    kind = _kind_or_404(collection)
    if kind is None:
        return json_error("Item type not found.", 404)
    payload = load_json_payload()
    if payload is None or "order" not in payload:
        return json_error("Provide the new order value.")

    try:
        item = get_item(kind, item_id)
        scope = _payload_scope(kind, payload, item)
        item = update_order(kind, item_id, payload["order"], scope)
        db.session.commit()
    except OrderingError as error:
        return ordering_error_response(error)
    except SQLAlchemyError as error:
        return database_error_response(f"updating {kind} order", error)
    return jsonify({"success": True, "item": item.to_dict()})


@ordering_bp.route("/<string:collection>/<int:item_id>/move", methods=["POST"])
def move_item_to_index(collection, item_id):
    """Place one item at an index of its (or another) scope."""
    kind = _kind_or_404(collection)
    if kind is None:
        return json_error("Item type not found.", 404)
    payload = load_json_payload()
    if payload is None or "index" not in payload:
        return json_error("Provide the destination index.")

    try:
        item = get_item(kind, item_id)
        scope = _payload_scope(kind, payload, item)
        item, placement = move_item(kind, item_id, payload["index"], scope)
        db.session.commit()
        items = scope_items(OrderScope.of(kind, item))
    except OrderingError as error:
        return ordering_error_response(error)
    except SQLAlchemyError as error:
        return database_error_response(f"moving {kind}", error)
    return jsonify(
        {
            "success": True,
            "item": item.to_dict(),
            "renumbered": placement.requires_renumber,
            "items": [entry.to_dict() for entry in items],
        }
    )


@ordering_bp.route("/<string:collection>/orders", methods=["PUT"])
def update_item_orders(collection):
    """Apply several ``{"id", "order"}`` pairs in one transaction."""
    kind = _kind_or_404(collection)
    if kind is None:
        return json_error("Item type not found.", 404)
    payload = load_json_payload()
    if payload is None:
        return json_error("Request body must be a JSON object.")

    try:
        items = set_orders(kind, payload.get("items"))
        db.session.commit()
    except OrderingError as error:
        return ordering_error_response(error)
    except SQLAlchemyError as error:
        return database_error_response(f"updating {kind} orders", error)
    return jsonify({"success": True, "items": [item.to_dict() for item in items]})


@ordering_bp.route("/<string:collection>/reorder", methods=["PUT"])
def reorder_items(collection):
    """Rewrite a whole scope with ``GAP`` spacing following ``ids``."""
    kind = _kind_or_404(collection)
    if kind is None:
        return json_error("Item type not found.", 404)
    payload = load_json_payload()
    if payload is None:
        return json_error("Request body must be a JSON object.")

    try:
        if SCOPE_FIELDS[kind] and "scope" not in payload:
            raise InvalidScope(f"Reordering {collection} requires a scope.")
        scope = scope_from_payload(kind, payload.get("scope"))
        sequence = reindex_scope(scope, payload.get("ids"))
        db.session.commit()
    except OrderingError as error:
        return ordering_error_response(error)
    except SQLAlchemyError as error:
        return database_error_response(f"reordering {collection}", error)
    logging.info("Reindexed %d items in %s", len(sequence), scope)
    return jsonify({"success": True, "items": [item.to_dict() for item in sequence]})
