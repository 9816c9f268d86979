"""Tag blueprint."""
from __future__ import annotations

from flask import Blueprint, jsonify
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from database import db
from forms import TagForm
from models.tag import Tag
from routes import database_error_response, form_input, json_error, load_json_payload

tags_bp = Blueprint("tags", __name__, url_prefix="/tags")

TAG_FIELDS = ("name", "color")
DEFAULT_TAG_COLOR = "#6b7280"


def _get_tag_or_none(tag_id):
    return db.session.get(Tag, tag_id)


@tags_bp.route("", methods=["GET"])
def list_tags():
    tags = Tag.query.order_by(Tag.name.asc()).all()
    return jsonify({"tags": [tag.to_dict() for tag in tags]})


@tags_bp.route("", methods=["POST"])
def create_tag():
    payload = load_json_payload()
    if payload is None:
        return json_error("Request body must be a JSON object.")
    form = TagForm(formdata=form_input(payload, TAG_FIELDS))
    if not form.validate():
        return json_error("Please correct the highlighted fields.", errors=form.errors)

    name = form.name.data.strip()
    if Tag.query.filter(db.func.lower(Tag.name) == name.lower()).first():
        return json_error("Tag already exists.", 409)
    tag = Tag(name=name, color=form.color.data or DEFAULT_TAG_COLOR)
    try:
        db.session.add(tag)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return json_error("Tag already exists.", 409)
    except SQLAlchemyError as error:
        return database_error_response("creating tag", error)
    return jsonify({"success": True, "tag": tag.to_dict()}), 201


@tags_bp.route("/<int:tag_id>", methods=["PUT"])
def update_tag(tag_id):
    tag = _get_tag_or_none(tag_id)
    if tag is None:
        return json_error("Tag not found.", 404)
    payload = load_json_payload()
    if payload is None:
        return json_error("Request body must be a JSON object.")
    form = TagForm(formdata=form_input(payload, TAG_FIELDS, current=tag))
    if not form.validate():
        return json_error("Please correct the highlighted fields.", errors=form.errors)

    tag.name = form.name.data.strip()
    tag.color = form.color.data or tag.color
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return json_error("Tag already exists.", 409)
    except SQLAlchemyError as error:
        return database_error_response("updating tag", error)
    return jsonify({"success": True, "tag": tag.to_dict()})


@tags_bp.route("/<int:tag_id>", methods=["DELETE"])
def delete_tag(tag_id):
    tag = _get_tag_or_none(tag_id)
    if tag is None:
        return json_error("Tag not found.", 404)
    try:
        db.session.delete(tag)
        db.session.commit()
    except SQLAlchemyError as error:
        return database_error_response("deleting tag", error)
    return jsonify({"success": True, "message": "Tag deleted."})
