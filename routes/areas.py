"""Area management blueprint."""
from __future__ import annotations

from flask import Blueprint, jsonify
from sqlalchemy.exc import SQLAlchemyError

from database import db
from forms import AreaForm
from models.area import Area
from routes import (
    database_error_response,
    form_input,
    json_error,
    load_json_payload,
    ordering_error_response,
)
from services.ordering import OrderingError, OrderScope, validate_order_value
from services.order_service import (
    assign_initial_order,
    detach_area_projects,
    get_item,
    scope_query,
)

areas_bp = Blueprint("areas", __name__, url_prefix="/areas")

AREA_FIELDS = ("name", "color")
DEFAULT_AREA_COLOR = "#3b82f6"


@areas_bp.route("", methods=["GET"])
def list_areas():
    areas = scope_query(OrderScope.build("area")).all()
    return jsonify({"areas": [area.to_dict() for area in areas]})


@areas_bp.route("", methods=["POST"])
def create_area():
    payload = load_json_payload()
    if payload is None:
        return json_error("Request body must be a JSON object.")
    form = AreaForm(formdata=form_input(payload, AREA_FIELDS))
    if not form.validate():
        return json_error("Please correct the highlighted fields.", errors=form.errors)

    area = Area(name=form.name.data.strip(), color=form.color.data or DEFAULT_AREA_COLOR)
    try:
        assign_initial_order(area, "area", payload.get("order"))
        db.session.add(area)
        db.session.commit()
    except OrderingError as error:
        return ordering_error_response(error)
    except SQLAlchemyError as error:
        return database_error_response("creating area", error)
    return jsonify({"success": True, "area": area.to_dict()}), 201


@areas_bp.route("/<int:area_id>", methods=["GET"])
def get_area(area_id):
    try:
        area = get_item("area", area_id)
    except OrderingError as error:
        return ordering_error_response(error)
    return jsonify({"area": area.to_dict()})


@areas_bp.route("/<int:area_id>", methods=["PUT"])
def update_area(area_id):
    payload = load_json_payload()
    if payload is None:
        return json_error("Request body must be a JSON object.")
    try:
        area = get_item("area", area_id)
        form = AreaForm(formdata=form_input(payload, AREA_FIELDS, current=area))
        if not form.validate():
            return json_error("Please correct the highlighted fields.", errors=form.errors)
        area.name = form.name.data.strip()
        area.color = form.color.data or area.color
        if payload.get("order") is not None:
            area.order = validate_order_value(payload["order"])
        db.session.commit()
    except OrderingError as error:
        return ordering_error_response(error)
    except SQLAlchemyError as error:
        return database_error_response("updating area", error)
    return jsonify({"success": True, "area": area.to_dict()})


@areas_bp.route("/<int:area_id>", methods=["DELETE"])
def delete_area(area_id):
    try:
        area = get_item("area", area_id)
        name = area.name
        detach_area_projects(area)
        db.session.delete(area)
        db.session.commit()
    except OrderingError as error:
        return ordering_error_response(error)
    except SQLAlchemyError as error:
        return database_error_response("deleting area", error)
    return jsonify({"success": True, "message": f'Area "{name}" deleted!'})
