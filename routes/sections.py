"""Task section blueprint."""
from __future__ import annotations

from flask import Blueprint, jsonify
from sqlalchemy.exc import SQLAlchemyError

from database import db
from forms import TaskSectionForm
from models.section import TaskSection
from routes import (
    database_error_response,
    form_input,
    json_error,
    load_json_payload,
    ordering_error_response,
    scope_filters,
)
from services.ordering import OrderingError, OrderScope
from services.order_service import (
    assign_initial_order,
    detach_section_tasks,
    get_item,
    relocate,
)

sections_bp = Blueprint("sections", __name__, url_prefix="/task-sections")

SECTION_FIELDS = ("title", "project_id")


@sections_bp.route("", methods=["GET"])
def list_sections():
    try:
        filters = scope_filters("section")
    except OrderingError as error:
        return ordering_error_response(error)
    sections = (
        TaskSection.query.filter_by(**filters)
        .order_by(TaskSection.project_id.asc(), TaskSection.order.asc(), TaskSection.id.asc())
        .all()
    )
    return jsonify({"sections": [section.to_dict() for section in sections]})


@sections_bp.route("", methods=["POST"])
def create_section():
    payload = load_json_payload()
    if payload is None:
        return json_error("Request body must be a JSON object.")
    form = TaskSectionForm(formdata=form_input(payload, SECTION_FIELDS))
    if not form.validate():
        return json_error("Please correct the highlighted fields.", errors=form.errors)

    section = TaskSection(title=form.title.data.strip(), project_id=form.project_id.data)
    try:
        assign_initial_order(section, "section", payload.get("order"))
        db.session.add(section)
        db.session.commit()
    except OrderingError as error:
        return ordering_error_response(error)
    except SQLAlchemyError as error:
        return database_error_response("creating task section", error)
    return jsonify({"success": True, "section": section.to_dict()}), 201


@sections_bp.route("/<int:section_id>", methods=["GET"])
def get_section(section_id):
    try:
        section = get_item("section", section_id)
    except OrderingError as error:
        return ordering_error_response(error)
    return jsonify({"section": section.to_dict()})


@sections_bp.route("/<int:section_id>", methods=["PUT"])
def update_section(section_id):
    payload = load_json_payload()
    if payload is None:
        return json_error("Request body must be a JSON object.")
    try:
        section = get_item("section", section_id)
        form = TaskSectionForm(formdata=form_input(payload, SECTION_FIELDS, current=section))
        if not form.validate():
            return json_error("Please correct the highlighted fields.", errors=form.errors)
        section.title = form.title.data.strip()
        previous_project_id = section.project_id
        relocate(
            section,
            "section",
            OrderScope.build("section", project_id=form.project_id.data),
            payload.get("order"),
        )
        if section.project_id != previous_project_id:
            # Tasks travel with their section and keep their order inside it.
            for task in section.tasks:
                task.project_id = section.project_id
        db.session.commit()
    except OrderingError as error:
        return ordering_error_response(error)
    except SQLAlchemyError as error:
        return database_error_response("updating task section", error)
    return jsonify({"success": True, "section": section.to_dict()})


@sections_bp.route("/<int:section_id>", methods=["DELETE"])
def delete_section(section_id):
    try:
        section = get_item("section", section_id)
        title = section.title
        detach_section_tasks(section)
        db.session.delete(section)
        db.session.commit()
    except OrderingError as error:
        return ordering_error_response(error)
    except SQLAlchemyError as error:
        return database_error_response("deleting task section", error)
    return jsonify({"success": True, "message": f'Section "{title}" deleted!'})
