from __future__ import annotations

from flask import Blueprint, abort, jsonify

from ..app import get_store
from ..shared.http import MALFORMED_PAYLOAD_ERRORS, invalid_payload, json_payload

bp = Blueprint("collections", __name__, url_prefix="/api/collections")


def _certificate_ids():
    payload = json_payload()
    ids = payload.get("certificateIds") if payload else None
    if not isinstance(ids, list):
        return None
    return [str(i) for i in ids]


@bp.get("")
def list_collections():
    return jsonify({"collections": [c.to_dict() for c in get_store().collections]})


@bp.get("/<collection_id>")
def get_collection(collection_id: str):
    collection = get_store().state.find_collection(collection_id)
    if collection is None:
        abort(404)
    return jsonify(collection.to_dict())


@bp.post("")
def create_collection():
    payload = json_payload()
    if not payload or not payload.get("name"):
        return jsonify({"error": "name is required."}), 400
    collection_id = get_store().create_collection(
        payload["name"], payload.get("description"), payload.get("templateId")
    )
    return jsonify({"id": collection_id}), 201


@bp.patch("/<collection_id>")
def update_collection(collection_id: str):
    payload = json_payload()
    if payload is None:
        return jsonify({"error": "Invalid request payload."}), 400
    try:
        get_store().update_collection(collection_id, payload)
    except MALFORMED_PAYLOAD_ERRORS:
        return invalid_payload()
    return "", 204


@bp.delete("/<collection_id>")
def delete_collection(collection_id: str):
    get_store().delete_collection(collection_id)
    return "", 204


@bp.post("/<collection_id>/certificates")
def add_certificates(collection_id: str):
    ids = _certificate_ids()
    if ids is None:
        return jsonify({"error": "certificateIds must be a list."}), 400
    get_store().add_certificates_to_collection(collection_id, ids)
    return "", 204


@bp.delete("/<collection_id>/certificates")
def remove_certificates(collection_id: str):
    ids = _certificate_ids()
    if ids is None:
        return jsonify({"error": "certificateIds must be a list."}), 400
    get_store().remove_certificates_from_collection(collection_id, ids)
    return "", 204
