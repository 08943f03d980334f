# Overview: Request decorators for API routes (authenticated actor, role checks).

from functools import wraps
from flask import jsonify, g

from .errors import AuthenticationError
from .services import actor_service


def require_actor(f):
    """
    Resolve the authenticated actor and store it on g.actor.

    Returns 401 when the request carries no usable identity (missing or
    non-numeric X-User-Id, unknown or inactive employee).
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            g.actor = actor_service.resolve_actor()
        except AuthenticationError as e:
            return jsonify(e.to_dict()), e.status_code
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require the actor's role to be one of `roles`. Use after @require_actor.

    Usage:
        @require_actor
        @require_role("Manager")
        def approve(...):
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            actor = getattr(g, "actor", None)
            if actor is None:
                return jsonify({"error": "Authentication required"}), 401
            if actor.role not in roles:
                return jsonify({"error": f"Requires role: {' or '.join(roles)}"}), 403
            return f(*args, **kwargs)

        return decorated_function

    return decorator
