# Overview: Request decorators for API routes.

from functools import wraps
from flask import current_app, g, jsonify, request


def require_actor(f):
    """
    Require the actor identity header set by the upstream auth layer.

    Authentication and permission checks happen before requests reach this
    service; here the actor id is only read and recorded on the entities a
    mutation touches. Sets g.actor_id. Returns 401 when the header is missing
    or blank.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        header = current_app.config.get("ACTOR_HEADER", "X-Actor-Id")
        actor_id = (request.headers.get(header) or "").strip()
        if not actor_id:
            return jsonify({"error": f"{header} header is required"}), 401
        if len(actor_id) > 64:
            return jsonify({"error": f"{header} header is too long"}), 400

        g.actor_id = actor_id
        return f(*args, **kwargs)

    return decorated_function
