# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

OPERATOR_HEADER = "X-Operator-Id"


def current_operator_id() -> str | None:
    """
    Opaque operator identity for the current request.

    Body "operator_id" wins over the X-Operator-Id header. Nothing here
    authenticates the value; it is recorded as-is on audit rows.
    """
    payload = request.get_json(silent=True)
    if isinstance(payload, dict) and payload.get("operator_id") not in (None, ""):
        return str(payload["operator_id"]).strip() or None
    header = request.headers.get(OPERATOR_HEADER)
    if header and header.strip():
        return header.strip()
    return None


def require_operator(f):
    """
    Require an operator identity and place it on g.operator_id.

    Returns 401 when neither the body nor the header carries one.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        operator_id = current_operator_id()
        if not operator_id:
            return jsonify({
                "success": False,
                "error": f"Operator identity required (operator_id or {OPERATOR_HEADER} header)",
                "kind": "unauthorized",
                "details": {},
            }), 401
        if len(operator_id) > 64:
            return jsonify({
                "success": False,
                "error": "operator_id exceeds max length 64",
                "kind": "validation_error",
                "details": {},
            }), 400

        g.operator_id = operator_id
        return f(*args, **kwargs)

    return decorated_function


def optional_operator(f):
    """Like require_operator, but a missing identity leaves g.operator_id as None."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        operator_id = current_operator_id()
        if operator_id and len(operator_id) > 64:
            return jsonify({
                "success": False,
                "error": "operator_id exceeds max length 64",
                "kind": "validation_error",
                "details": {},
            }), 400
        g.operator_id = operator_id
        return f(*args, **kwargs)

    return decorated_function
