from __future__ import annotations

from flask import Blueprint, abort, jsonify

from ..app import get_store
from ..shared.http import MALFORMED_PAYLOAD_ERRORS, invalid_payload, json_payload

bp = Blueprint("templates", __name__, url_prefix="/api/templates")


@bp.get("")
def list_templates():
    store = get_store()
    return jsonify(
        {
            "templates": [t.to_dict() for t in store.templates],
            "currentTemplateId": store.current_template_id,
        }
    )


@bp.get("/<template_id>")
def get_template(template_id: str):
    template = get_store().state.find_template(template_id)
    if template is None:
        abort(404)
    return jsonify(template.to_dict())


@bp.post("")
def create_template():
    payload = json_payload()
    if payload is None:
        return jsonify({"error": "Invalid request payload."}), 400
    try:
        template_id = get_store().add_template(payload)
    except MALFORMED_PAYLOAD_ERRORS:
        return invalid_payload()
    return jsonify({"id": template_id}), 201


@bp.put("/<template_id>")
def update_template(template_id: str):
    payload = json_payload()
    if payload is None:
        return jsonify({"error": "Invalid request payload."}), 400
    try:
        get_store().update_template(template_id, payload)
    except MALFORMED_PAYLOAD_ERRORS:
        return invalid_payload()
    return "", 204


@bp.delete("/<template_id>")
def delete_template(template_id: str):
    get_store().delete_template(template_id)
    return "", 204


@bp.post("/<template_id>/current")
def set_current_template(template_id: str):
    get_store().set_current_template(template_id)
    return "", 204
