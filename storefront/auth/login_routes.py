# storefront/auth/login_routes.py
# Staff login/logout for the admin backend (JSON, session cookie)
from datetime import datetime

from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_user, logout_user
import sqlalchemy as sa

from storefront.api.routes.user_routes import _user_dict
from storefront.api.utils.payload import clean_str, get_payload
from storefront.extensions import db
from storefront.models.user import STAFF_ROLES, User

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def authenticate(email: str, password: str, allowed_roles):
    """
    Shared by staff and customer login.
    Returns (user, None) or (None, (message, status)).
    """
    if not email or not password:
        return None, ("Email and password are required", 400)

    user = User.query.filter(sa.func.lower(User.email) == email.lower()).first()
    if not user or not user.check_password(password):
        return None, ("Invalid email or password", 401)
    if not user.is_active:
        return None, ("Account is deactivated", 403)
    if user.role not in allowed_roles:
        return None, ("Access denied", 403)
    return user, None


@auth_bp.post("/login")
def login():
    data = get_payload()
    email = clean_str(data.get("email")) or ""
    password = str(data.get("password") or "")

    user, err = authenticate(email, password, STAFF_ROLES)
    if err:
        current_app.logger.info("Staff login refused for %s: %s", email or "-", err[0])
        return jsonify({"error": err[0]}), err[1]

    login_user(user, remember=bool(data.get("remember")))
    user.last_login_at = datetime.utcnow()
    db.session.commit()
    return jsonify({"user": _user_dict(user)}), 200


@auth_bp.post("/logout")
def logout():
    logout_user()
    return jsonify({"success": True}), 200


@auth_bp.get("/session")
def session_info():
    if not current_user.is_authenticated:
        return jsonify({"authenticated": False, "user": None}), 200
    return jsonify({"authenticated": True, "user": _user_dict(current_user)}), 200
