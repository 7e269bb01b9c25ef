from __future__ import annotations

from dataclasses import asdict

from flask import Blueprint, abort, jsonify, redirect

from ..app import get_store
from ..services.certificate_records import get_certificate_record
from ..shared.http import MALFORMED_PAYLOAD_ERRORS, invalid_payload, json_payload

bp = Blueprint("certificates", __name__)


@bp.get("/api/certificates")
def list_certificates():
    return jsonify({"certificates": [c.to_dict() for c in get_store().certificates]})


@bp.get("/api/certificates/<certificate_id>")
def get_certificate(certificate_id: str):
    certificate = get_store().state.find_certificate(certificate_id)
    if certificate is None:
        abort(404)
    record = get_certificate_record(certificate_id)
    data = certificate.to_dict()
    data["record"] = record.to_dict() if record else None
    return jsonify(data)


@bp.post("/api/certificates")
def issue_certificate():
    payload = json_payload()
    if not payload or not payload.get("recipientId") or not payload.get("templateId"):
        return jsonify({"error": "recipientId and templateId are required."}), 400
    certificate_id = get_store().generate_certificate(
        str(payload["recipientId"]), str(payload["templateId"])
    )
    return jsonify({"id": certificate_id}), 201


@bp.post("/api/certificates/bulk")
def issue_certificates():
    payload = json_payload()
    recipient_ids = payload.get("recipientIds") if payload else None
    if not isinstance(recipient_ids, list) or not payload.get("templateId"):
        return jsonify({"error": "recipientIds and templateId are required."}), 400
    ids = get_store().generate_bulk_certificates(
        [str(rid) for rid in recipient_ids], str(payload["templateId"])
    )
    return jsonify({"ids": ids}), 201


@bp.get("/api/certificates/<certificate_id>/outcome")
def certificate_outcome(certificate_id: str):
    store = get_store()
    future = store.issuance_jobs.get(certificate_id) or store.bulk_jobs.get(certificate_id)
    if future is None:
        abort(404)
    if not future.done():
        return jsonify({"status": "pending"}), 202
    return jsonify({"status": "done", "result": asdict(future.result())})


@bp.patch("/api/certificates/<certificate_id>")
def update_certificate(certificate_id: str):
    payload = json_payload()
    if payload is None:
        return jsonify({"error": "Invalid request payload."}), 400
    try:
        get_store().update_certificate(certificate_id, payload)
    except MALFORMED_PAYLOAD_ERRORS:
        return invalid_payload()
    return "", 204


@bp.delete("/api/certificates/<certificate_id>")
def delete_certificate(certificate_id: str):
    get_store().delete_certificate(certificate_id)
    return "", 204


@bp.get("/certificates/<certificate_id>/pdf")
def download_certificate(certificate_id: str):
    store = get_store()
    storage = store.issuer.storage if store.issuer else None
    if storage is None:
        return jsonify({"error": "Object storage is not configured."}), 503
    return redirect(storage.public_url(certificate_id))
