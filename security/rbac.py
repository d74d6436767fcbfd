from functools import wraps
from flask import g, jsonify

from utils.roles import Role

def require_roles(*roles: Role):
    """
    Usage: @require_roles(Role.ADMIN)

    Checks the live account row loaded for this request, so a role change
    applies to existing sessions on their next request.
    """
    allowed = {r.value for r in roles}

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return jsonify(error="Authentication required"), 401

            if user.role not in allowed:
                return jsonify(error="Forbidden"), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator
