# Overview: Request context decorator for API routes.

from functools import wraps

from flask import g, jsonify, request


def require_context(f):
    """
    Establish tenant context from request headers.

    Sets the following Flask g attributes:
    - g.org_id: organization ID from X-Organization-Id (REQUIRED)
    - g.actor: opaque reviewer identity from X-Actor-Id (may be None)

    Returns 400 when the organization header is missing or not an integer.
    Authentication happens upstream of this service.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw_org = request.headers.get("X-Organization-Id")
        if not raw_org:
            return jsonify({"error": "X-Organization-Id header is required"}), 400
        try:
            g.org_id = int(raw_org)
        except ValueError:
            return jsonify({"error": "X-Organization-Id must be an integer"}), 400
        g.actor = (request.headers.get("X-Actor-Id") or "").strip() or None
        return f(*args, **kwargs)

    return decorated_function
