from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user
import sqlalchemy as sa

from storefront.api.utils.payload import clean_str, get_payload, iso, pick, to_bool
from storefront.auth.permissions import roles_required
from storefront.extensions import db
from storefront.models import Order, Permission, User
from storefront.models.user import PERMISSION_MODULES, ROLES, STAFF_ROLES
from storefront.services.orders import EMAIL_RE

api_users = Blueprint("api_users", __name__, url_prefix="/api/users")


def _permission_dict(p: Permission) -> dict:
    return {
        "id": p.id,
        "module": p.module,
        "canView": bool(p.can_view),
        "canCreate": bool(p.can_create),
        "canEdit": bool(p.can_edit),
        "canDelete": bool(p.can_delete),
    }


def _user_dict(u: User, with_permissions: bool = True) -> dict:
    data = {
        "id": u.id,
        "email": u.email,
        "name": u.name,
        "role": u.role,
        "isActive": bool(u.is_active),
        "phone": u.phone,
        "city": u.city,
        "address": u.address,
        "isNewCustomer": bool(u.is_new_customer),
        "emailVerified": bool(u.email_verified),
        "lastLoginAt": iso(u.last_login_at),
        "createdAt": iso(u.created_at),
        "updatedAt": iso(u.updated_at),
    }
    if with_permissions:
        data["permissions"] = [_permission_dict(p) for p in u.permissions]
    return data


def _apply_permission(perm: Permission, raw: dict) -> None:
    perm.can_view = to_bool(pick(raw, "canView", "can_view"))
    perm.can_create = to_bool(pick(raw, "canCreate", "can_create"))
    perm.can_edit = to_bool(pick(raw, "canEdit", "can_edit"))
    perm.can_delete = to_bool(pick(raw, "canDelete", "can_delete"))
    perm.normalize()


def _clean_permissions(raw_list) -> tuple[list[dict] | None, str | None]:
    if raw_list is None:
        return [], None
    if not isinstance(raw_list, list):
        return None, "'permissions' must be a list"
    seen = set()
    out = []
    for raw in raw_list:
        if not isinstance(raw, dict):
            return None, "Invalid permission entry"
        module = clean_str(raw.get("module")) or ""
        if module not in PERMISSION_MODULES:
            return None, f"Unknown permission module '{module}'"
        if module in seen:
            return None, f"Duplicate permission module '{module}'"
        seen.add(module)
        out.append(raw)
    return out, None


def _sync_permissions(user: User, raw_list: list[dict]) -> None:
    """
    Update existing rows, create new modules, drop modules missing from the payload.

    Rows are matched by module; an `id` in the payload never moves a row to another module.
    """
    by_module = {p.module: p for p in user.permissions}
    keep = set()
    for raw in raw_list:
        module = clean_str(raw.get("module"))
        perm = by_module.get(module)
        if perm is None:
            perm = Permission(module=module)
            user.permissions.append(perm)
        _apply_permission(perm, raw)
        keep.add(module)
    for perm in list(user.permissions):
        if perm.module not in keep:
            user.permissions.remove(perm)


def _email_taken(email: str, exclude_id: int | None = None) -> bool:
    q = User.query.filter(sa.func.lower(User.email) == email.lower())
    if exclude_id:
        q = q.filter(User.id != exclude_id)
    return q.first() is not None


@api_users.get("")
@roles_required("ADMIN")
def list_users():
    q = User.query.filter(User.role.in_(STAFF_ROLES))
    role = (request.args.get("role") or "").strip().upper()
    if role and role != "ALL":
        q = q.filter(User.role == role)
    search = (request.args.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        q = q.filter(sa.or_(User.email.ilike(like), User.name.ilike(like)))

    users = q.order_by(User.created_at.desc(), User.id.desc()).all()
    counts = dict(
        db.session.query(Order.user_id, sa.func.count(Order.id))
        .filter(Order.user_id.in_([u.id for u in users] or [0]))
        .group_by(Order.user_id)
        .all()
    )
    out = []
    for u in users:
        d = _user_dict(u)
        d["orderCount"] = counts.get(u.id, 0)
        out.append(d)
    return jsonify({"users": out}), 200


@api_users.post("")
@roles_required("ADMIN")
def create_user():
    data = get_payload()
    email = clean_str(data.get("email")) or ""
    password = str(data.get("password") or "")
    if not email or not password:
        return jsonify({"error": "Email and password are required"}), 400
    if not EMAIL_RE.match(email):
        return jsonify({"error": "Invalid email address"}), 400
    if _email_taken(email):
        return jsonify({"error": "User with this email already exists"}), 400

    role = (clean_str(data.get("role")) or "TEAM").upper()
    if role not in ROLES:
        return jsonify({"error": f"Invalid role '{role}'"}), 400

    perms, err = _clean_permissions(data.get("permissions"))
    if err:
        return jsonify({"error": err}), 400

    try:
        user = User(
            email=email,
            name=clean_str(data.get("name")),
            role=role,
            is_active=to_bool(pick(data, "isActive", "is_active"), True),
            phone=clean_str(data.get("phone")),
        )
        user.set_password(password)
        db.session.add(user)
        _sync_permissions(user, perms)
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("create_user failed")
        return jsonify({"error": "Failed to create user"}), 500

    current_app.logger.info("User %s (%s) created by %s", user.email, user.role, current_user.email)
    body = _user_dict(user)
    return jsonify({"user": body, "permissions": body["permissions"]}), 201


@api_users.get("/<int:user_id>")
@roles_required("ADMIN")
def get_user(user_id: int):
    user = db.get_or_404(User, user_id)
    return jsonify({"user": _user_dict(user)}), 200


@api_users.put("/<int:user_id>")
@roles_required("ADMIN")
def update_user(user_id: int):
    user = db.get_or_404(User, user_id)
    data = get_payload()

    if "email" in data:
        email = clean_str(data.get("email")) or ""
        if not EMAIL_RE.match(email):
            return jsonify({"error": "Invalid email address"}), 400
        if _email_taken(email, exclude_id=user.id):
            return jsonify({"error": "Email is already in use by another user"}), 400
        user.email = email

    if "role" in data:
        role = (clean_str(data.get("role")) or "").upper()
        if role not in ROLES:
            return jsonify({"error": f"Invalid role '{role}'"}), 400
        user.role = role

    if "name" in data:
        user.name = clean_str(data.get("name"))
    if "phone" in data:
        user.phone = clean_str(data.get("phone"))
    if "isActive" in data or "is_active" in data:
        user.is_active = to_bool(pick(data, "isActive", "is_active"))

    password = str(data.get("password") or "")
    if password:
        user.set_password(password)

    if "permissions" in data:
        perms, err = _clean_permissions(data.get("permissions"))
        if err:
            return jsonify({"error": err}), 400
        _sync_permissions(user, perms)

    db.session.commit()
    return jsonify({"user": _user_dict(user)}), 200


@api_users.delete("/<int:user_id>")
@roles_required("ADMIN")
def delete_user(user_id: int):
    user = db.get_or_404(User, user_id)
    if user.id == current_user.id:
        return jsonify({"error": "You cannot delete your own account"}), 400

    if user.orders.count() > 0:
        user.is_active = False
        db.session.commit()
        return jsonify({"success": True, "deactivated": True, "message": "User deactivated (has existing orders)"}), 200

    db.session.delete(user)
    db.session.commit()
    return jsonify({"success": True, "deactivated": False}), 200
