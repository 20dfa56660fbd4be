# Overview: Request decorators for API routes.

from functools import wraps

from flask import g, jsonify, request


ACTOR_HEADER = "X-Actor-Id"


def require_actor(f):
    """
    Require an acting user id for a mutating request.

    Sets g.actor_id from the X-Actor-Id header. Routes pass it explicitly to
    the services; services never read request state themselves.

    Returns 401 if the header is missing or not a positive integer.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = (request.headers.get(ACTOR_HEADER) or "").strip()
        if not raw:
            return jsonify({"error": f"{ACTOR_HEADER} header required"}), 401
        if not raw.isdigit() or int(raw) <= 0:
            return jsonify({"error": f"{ACTOR_HEADER} must be a positive integer"}), 401

        g.actor_id = int(raw)
        return f(*args, **kwargs)

    return decorated_function
