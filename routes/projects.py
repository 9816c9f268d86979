"""Project management blueprint."""
from __future__ import annotations

from flask import Blueprint, jsonify
from sqlalchemy.exc import SQLAlchemyError

from database import db
from forms import ProjectForm
from models.project import Project
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

projects_bp = Blueprint("projects", __name__, url_prefix="/projects")

PROJECT_FIELDS = ("name", "description", "notes", "deadline", "area_id")


def _apply_project_form(project: Project, form: ProjectForm) -> None:
    project.name = form.name.data.strip()
    project.description = form.description.data or None
    project.notes = form.notes.data or None
    project.deadline = form.deadline.data


@projects_bp.route("", methods=["GET"])
def list_projects():
    try:
        filters = scope_filters("project")
    except OrderingError as error:
        return ordering_error_response(error)
    projects = (
        Project.query.filter_by(**filters)
        .order_by(Project.order.asc(), Project.id.asc())
        .all()
    )
    return jsonify({"projects": [project.to_dict() for project in projects]})


@projects_bp.route("", methods=["POST"])
def create_project():
    payload = load_json_payload()
    if payload is None:
        return json_error("Request body must be a JSON object.")
    form = ProjectForm(formdata=form_input(payload, PROJECT_FIELDS))
    if not form.validate():
        return json_error("Please correct the highlighted fields.", errors=form.errors)

    project = Project(area_id=form.area_id.data)
    _apply_project_form(project, form)
    try:
        assign_initial_order(project, "project", payload.get("order"))
        db.session.add(project)
        db.session.commit()
    except OrderingError as error:
        return ordering_error_response(error)
    except SQLAlchemyError as error:
        return database_error_response("creating project", error)
    return jsonify({"success": True, "project": project.to_dict()}), 201


@projects_bp.route("/<int:project_id>", methods=["GET"])
def get_project(project_id):
    try:
        project = get_item("project", project_id)
    except OrderingError as error:
        return ordering_error_response(error)
    return jsonify({"project": project.to_dict()})


@projects_bp.route("/<int:project_id>", methods=["PUT"])
def update_project(project_id):
    payload = load_json_payload()
    if payload is None:
        return json_error("Request body must be a JSON object.")
    try:
        project = get_item("project", project_id)
        form = ProjectForm(formdata=form_input(payload, PROJECT_FIELDS, current=project))
        if not form.validate():
            return json_error("Please correct the highlighted fields.", errors=form.errors)
        _apply_project_form(project, form)
        # Moving to another area appends the project there unless an order is given.
        relocate(
            project,
            "project",
            OrderScope.build("project", area_id=form.area_id.data),
            payload.get("order"),
        )
        db.session.commit()
    except OrderingError as error:
        return ordering_error_response(error)
    except SQLAlchemyError as error:
        return database_error_response("updating project", error)
    return jsonify({"success": True, "project": project.to_dict()})


@projects_bp.route("/<int:project_id>", methods=["DELETE"])
def delete_project(project_id):
    try:
        project = get_item("project", project_id)
        name = project.name
        db.session.delete(project)
        db.session.commit()
    except OrderingError as error:
        return ordering_error_response(error)
    except SQLAlchemyError as error:
        return database_error_response("deleting project", error)
    return jsonify({"success": True, "message": f'Project "{name}" deleted!'})
