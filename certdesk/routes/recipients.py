from __future__ import annotations

from flask import Blueprint, abort, jsonify

from ..app import get_store
from ..shared.http import MALFORMED_PAYLOAD_ERRORS, invalid_payload, json_payload

bp = Blueprint("recipients", __name__, url_prefix="/api/recipients")


@bp.get("")
def list_recipients():
    return jsonify({"recipients": [r.to_dict() for r in get_store().recipients]})


@bp.get("/<recipient_id>")
def get_recipient(recipient_id: str):
    recipient = get_store().state.find_recipient(recipient_id)
    if recipient is None:
        abort(404)
    return jsonify(recipient.to_dict())


@bp.post("")
def create_recipient():
    payload = json_payload()
    if payload is None:
        return jsonify({"error": "Invalid request payload."}), 400
    try:
        recipient_id = get_store().add_recipient(payload)
    except MALFORMED_PAYLOAD_ERRORS:
        return invalid_payload()
    return jsonify({"id": recipient_id}), 201


@bp.post("/batch")
def create_recipients():
    payload = json_payload(list)
    if payload is None or not all(isinstance(item, dict) for item in payload):
        return jsonify({"error": "Expected a list of recipients."}), 400
    try:
        ids = get_store().add_recipients(payload)
    except MALFORMED_PAYLOAD_ERRORS:
        return invalid_payload("Expected a list of recipients.")
    return jsonify({"ids": ids}), 201


@bp.put("/<recipient_id>")
def update_recipient(recipient_id: str):
    payload = json_payload()
    if payload is None:
        return jsonify({"error": "Invalid request payload."}), 400
    try:
        get_store().update_recipient(recipient_id, payload)
    except MALFORMED_PAYLOAD_ERRORS:
        return invalid_payload()
    return "", 204


@bp.delete("/<recipient_id>")
def delete_recipient(recipient_id: str):
    get_store().delete_recipient(recipient_id)
    return "", 204
