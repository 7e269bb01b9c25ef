from __future__ import annotations

from flask import Blueprint, Response, jsonify, request

from ..app import get_store

bp = Blueprint("data", __name__, url_prefix="/api/data")


@bp.get("/export")
def export_data():
    resp = Response(get_store().export_data(), mimetype="application/json")
    resp.headers["Content-Disposition"] = "attachment; filename=certificates-export.json"
    return resp


@bp.post("/import")
def import_data():
    if not get_store().import_data(request.get_data(as_text=True)):
        return jsonify({"error": "Could not import data."}), 400
    return "", 204


@bp.post("/defaults")
def load_defaults():
    get_store().load_default_data()
    return "", 204


@bp.post("/clear")
def clear_data():
    get_store().clear_all_data()
    return "", 204
