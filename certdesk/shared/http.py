from __future__ import annotations

from flask import jsonify, request


def json_payload(expected: type = dict):
    """Return the request JSON when it has the ``expected`` shape, else None."""
    try:
        payload = request.get_json(force=True)
    except Exception:
        return None
    return payload if isinstance(payload, expected) else None


# raised by entity builders when a well-formed JSON body has the wrong shape
MALFORMED_PAYLOAD_ERRORS = (AttributeError, TypeError, ValueError)


def invalid_payload(message: str = "Invalid request payload."):
    return jsonify({"error": message}), 400
