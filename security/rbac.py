from functools import wraps
from flask import g, jsonify

def require_roles(*roles: str, allow_admin: bool = True):
    """
    Usage: @require_roles(CUSTOMER) or @require_roles(PROVIDER, ADMIN)
    Admins pass every check unless allow_admin=False.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            actor = getattr(g, "actor", None)
            if actor is None:
                return jsonify(error="Authentication required"), 401

            if actor.role not in roles and not (allow_admin and actor.role == "admin"):
                return jsonify(error="Forbidden"), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator
