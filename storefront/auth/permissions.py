# storefront/auth/permissions.py
from functools import wraps

from flask import jsonify
from flask_login import current_user

from storefront.models.user import STAFF_ROLES


def _denied():
    if not current_user.is_authenticated:
        return jsonify({"error": "Unauthorized"}), 401
    return jsonify({"error": "Forbidden"}), 403


def roles_required(*roles):
    """Allow only logged-in, active users whose role is in `roles`."""
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            if not current_user.is_authenticated:
                return _denied()
            if not current_user.is_active or current_user.role not in roles:
                return _denied()
            return view(*args, **kwargs)
        return wrapped
    return decorator


staff_required = roles_required(*STAFF_ROLES)


def permission_required(module: str, action: str = "view"):
    """ADMIN/MANAGER always pass, TEAM needs a matching Permission row."""
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            if not current_user.is_authenticated or not current_user.can(module, action):
                return _denied()
            return view(*args, **kwargs)
        return wrapped
    return decorator
