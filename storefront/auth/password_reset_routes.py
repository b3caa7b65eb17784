# storefront/auth/password_reset_routes.py
# Forgotten password flow for staff and customers (JSON, signed e-mail links)
import logging

from flask import current_app, jsonify
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
import sqlalchemy as sa

from storefront.api.utils.email import send_email
from storefront.api.utils.payload import clean_str, get_payload, to_int
from storefront.auth.customer_routes import customer_bp
from storefront.auth.login_routes import auth_bp  # same blueprints as login
from storefront.extensions import db
from storefront.models.user import STAFF_ROLES, User

logger = logging.getLogger(__name__)

RESET_REQUESTED = "If an account with that email exists, we have sent a password reset link."
MIN_PASSWORD_LENGTH = 8


# ── Tokens ───────────────────────────────────────────────────────────────────

def _get_serializer() -> URLSafeTimedSerializer:
    secret = current_app.config.get("SECRET_KEY")
    if not secret:
        raise RuntimeError("SECRET_KEY is not set; reset tokens cannot be signed")
    salt = current_app.config.get("PASSWORD_RESET_SALT", "storefront-password-reset")
    return URLSafeTimedSerializer(secret_key=secret, salt=salt)


def _fingerprint(user: User) -> str:
    # changes with every new password hash, so a used link stops working
    return (user.password_hash or "")[-12:]


def generate_reset_token(user: User) -> str:
    return _get_serializer().dumps({"uid": user.id, "pw": _fingerprint(user)})


def load_reset_token(token: str, roles) -> User | None:
    """
    User the token was issued for, or None when it no longer matches an active
    account in `roles`. Raises SignatureExpired / BadSignature from itsdangerous.
    """
    max_age = current_app.config.get("PASSWORD_RESET_MAX_AGE", 3600)
    data = _get_serializer().loads(token, max_age=max_age)
    if not isinstance(data, dict):
        return None
    user = db.session.get(User, to_int(data.get("uid"), 0))
    if user is None or not user.is_active or user.role not in roles:
        return None
    if data.get("pw") != _fingerprint(user):
        return None
    return user


# ── Shared handlers ──────────────────────────────────────────────────────────

def _request_reset(roles, reset_path: str):
    email = clean_str(get_payload().get("email"))
    if not email:
        return jsonify({"error": "Email is required"}), 400

    # the answer never reveals whether the account exists
    done = jsonify({"success": True, "message": RESET_REQUESTED}), 200

    user = User.query.filter(sa.func.lower(User.email) == email.lower()).first()
    if user is None or not user.is_active or user.role not in roles:
        logger.info("Password reset requested for unknown or ineligible account %s", email)
        return done

    token = generate_reset_token(user)
    base = (current_app.config.get("STORE_URL") or "").rstrip("/")
    reset_url = f"{base}{reset_path}?token={token}"
    store = current_app.config.get("STORE_NAME") or "Our store"
    minutes = int(current_app.config.get("PASSWORD_RESET_MAX_AGE", 3600)) // 60

    body = "\n".join([
        f"Hello {user.name or user.email.split('@')[0]},",
        "",
        f"We received a request to reset your {store} password. Open this link to choose a new one:",
        "",
        reset_url,
        "",
        f"The link is valid for {minutes} minutes. If you did not ask for this, ignore this e-mail.",
        "",
        store,
    ])
    try:
        send_email(subject=f"Reset your password - {store}", recipients=[user.email], body=body)
        logger.info("Password reset link sent to user #%s", user.id)
    except Exception:
        logger.exception("Password reset e-mail to %s failed", user.email)
    return done


def _reset_password(roles):
    data = get_payload()
    token = clean_str(data.get("token"))
    password = str(data.get("password") or "")
    if not token:
        return jsonify({"error": "Reset token is required"}), 400
    if len(password) < MIN_PASSWORD_LENGTH:
        return jsonify({"error": f"Password must be at least {MIN_PASSWORD_LENGTH} characters"}), 400
    confirm = data.get("confirmPassword")
    if confirm is not None and str(confirm) != password:
        return jsonify({"error": "Passwords do not match"}), 400

    try:
        user = load_reset_token(token, roles)
    except SignatureExpired:
        return jsonify({"error": "Reset link has expired"}), 400
    except BadSignature:
        return jsonify({"error": "Invalid reset link"}), 400
    if user is None:
        return jsonify({"error": "Invalid reset link"}), 400

    user.set_password(password)
    user.is_new_customer = False
    db.session.commit()
    logger.info("Password reset completed for user #%s", user.id)
    return jsonify({"success": True, "message": "Password has been reset. You can now log in."}), 200


# ── Routes ───────────────────────────────────────────────────────────────────

@auth_bp.post("/forgot-password")
def staff_forgot_password():
    return _request_reset(STAFF_ROLES, "/admin/reset-password")


@auth_bp.post("/reset-password")
def staff_reset_password():
    return _reset_password(STAFF_ROLES)


@customer_bp.post("/forgot-password")
def customer_forgot_password():
    return _request_reset(("CUSTOMER",), "/reset-password")


@customer_bp.post("/reset-password")
def customer_reset_password():
    return _reset_password(("CUSTOMER",))
