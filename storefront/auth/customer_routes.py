# storefront/auth/customer_routes.py
# Storefront customer account: registration, login, order history, profile
from datetime import datetime

from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_user
import sqlalchemy as sa

from storefront.api.routes.order_routes import _order_dict
from storefront.api.routes.user_routes import _user_dict
from storefront.api.utils.email import send_email
from storefront.api.utils.payload import clean_str, get_payload
from storefront.auth.login_routes import authenticate
from storefront.auth.permissions import roles_required
from storefront.extensions import db
from storefront.models import Order, User
from storefront.services.orders import EMAIL_RE

customer_bp = Blueprint("customer", __name__, url_prefix="/api/customer")


@customer_bp.post("/login")
def login():
    data = get_payload()
    user, err = authenticate(clean_str(data.get("email")) or "", str(data.get("password") or ""), ("CUSTOMER",))
    if err:
        return jsonify({"error": err[0]}), err[1]

    login_user(user, remember=bool(data.get("remember")))
    user.last_login_at = datetime.utcnow()
    db.session.commit()
    return jsonify({"user": _user_dict(user, with_permissions=False)}), 200


@customer_bp.post("/register")
def register():
    data = get_payload()
    name = clean_str(data.get("name"))
    email = clean_str(data.get("email"))
    password = str(data.get("password") or "")
    if not (name and email and password):
        return jsonify({"error": "Name, email, and password are required"}), 400
    if not EMAIL_RE.match(email):
        return jsonify({"error": "Invalid email address"}), 400
    if len(password) < 8:
        return jsonify({"error": "Password must be at least 8 characters"}), 400
    if User.query.filter(sa.func.lower(User.email) == email.lower()).first():
        # checkout creates accounts too; those owners recover access via forgot-password
        return jsonify({"error": "An account with this email already exists"}), 400

    user = User(
        email=email,
        name=name,
        phone=clean_str(data.get("phone")),
        city=clean_str(data.get("city")),
        address=clean_str(data.get("address")),
        role="CUSTOMER",
        is_active=True,
        is_new_customer=False,
        email_verified=False,
    )
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    login_user(user)
    current_app.logger.info("Customer #%s registered", user.id)

    store = current_app.config.get("STORE_NAME") or "Our store"
    try:
        send_email(
            subject=f"Welcome to {store}",
            recipients=[user.email],
            body=f"Hello {user.name},\n\nYour {store} account is ready. Happy brewing!\n\n{store}",
        )
    except Exception:
        current_app.logger.exception("Welcome e-mail to %s failed", user.email)

    return jsonify({"user": _user_dict(user, with_permissions=False)}), 201


@customer_bp.get("/orders")
@roles_required("CUSTOMER")
def my_orders():
    orders = (
        Order.query.filter(Order.user_id == current_user.id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    return jsonify({"orders": [_order_dict(o, with_items=True) for o in orders]}), 200


@customer_bp.get("/profile")
@roles_required("CUSTOMER")
def get_profile():
    return jsonify({"user": _user_dict(current_user, with_permissions=False)}), 200


@customer_bp.patch("/profile")
@roles_required("CUSTOMER")
def update_profile():
    data = get_payload()
    user = current_user

    if "name" in data:
        name = clean_str(data.get("name"))
        if not name:
            return jsonify({"error": "Name cannot be empty"}), 400
        user.name = name
    for field in ("phone", "city", "address"):
        if field in data:
            setattr(user, field, clean_str(data.get(field)))

    new_password = str(data.get("newPassword") or data.get("password") or "")
    if new_password:
        if not user.check_password(str(data.get("currentPassword") or "")):
            return jsonify({"error": "Current password is incorrect"}), 400
        if len(new_password) < 8:
            return jsonify({"error": "Password must be at least 8 characters"}), 400
        user.set_password(new_password)
        user.is_new_customer = False

    db.session.commit()
    return jsonify({"user": _user_dict(user, with_permissions=False)}), 200
