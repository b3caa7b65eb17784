from flask import Blueprint, current_app, jsonify, request
import sqlalchemy as sa

from storefront.api.routes.order_routes import _order_dict
from storefront.api.routes.user_routes import _user_dict
from storefront.api.utils.payload import clean_str, get_payload, iso, num, page_args, paginate, pick, to_bool
from storefront.auth.permissions import permission_required
from storefront.errors import NotFound
from storefront.extensions import db
from storefront.models import Order, User

api_customers = Blueprint("api_customers", __name__, url_prefix="/api/customers")


def _get_customer(customer_id: int) -> User:
    user = db.session.get(User, customer_id)
    if user is None or user.role != "CUSTOMER":
        raise NotFound("Customer not found")
    return user


def _customer_dict(u: User) -> dict:
    data = _user_dict(u, with_permissions=False)
    orders = u.orders.order_by(Order.created_at.desc(), Order.id.desc())
    total_orders = orders.count()
    spent = (
        db.session.query(sa.func.coalesce(sa.func.sum(Order.total), 0))
        .filter(Order.user_id == u.id, Order.status.notin_(("CANCELLED", "REFUNDED")))
        .scalar()
    )
    recent = orders.limit(5).all()
    data.update({
        "totalOrders": total_orders,
        "totalSpent": num(spent),
        "lastOrderDate": iso(recent[0].created_at) if recent else None,
        "orders": [_order_dict(o) for o in recent],
    })
    return data


@api_customers.get("")
@permission_required("customers", "view")
def list_customers():
    q = User.query.filter(User.role == "CUSTOMER")
    search = (request.args.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        q = q.filter(sa.or_(User.name.ilike(like), User.email.ilike(like), User.phone.ilike(like)))

    page, limit = page_args(default_limit=10)
    customers, pagination = paginate(q.order_by(User.created_at.desc(), User.id.desc()), page, limit)
    return jsonify({"customers": [_customer_dict(c) for c in customers], "pagination": pagination}), 200


@api_customers.get("/<int:customer_id>")
@permission_required("customers", "view")
def get_customer(customer_id: int):
    return jsonify(_customer_dict(_get_customer(customer_id))), 200


@api_customers.patch("/<int:customer_id>")
@permission_required("customers", "edit")
def update_customer(customer_id: int):
    user = _get_customer(customer_id)
    data = get_payload()

    if "isActive" in data or "is_active" in data:
        user.is_active = to_bool(pick(data, "isActive", "is_active"))
    if "emailVerified" in data or "email_verified" in data:
        user.email_verified = to_bool(pick(data, "emailVerified", "email_verified"))
    if "name" in data:
        name = clean_str(data.get("name"))
        if not name:
            return jsonify({"error": "Name cannot be empty"}), 400
        user.name = name
    for field in ("phone", "city", "address"):
        if field in data:
            setattr(user, field, clean_str(data.get(field)))

    db.session.commit()
    return jsonify(_customer_dict(user)), 200


@api_customers.delete("/<int:customer_id>")
@permission_required("customers", "delete")
def delete_customer(customer_id: int):
    user = _get_customer(customer_id)
    if user.orders.count() > 0:
        user.is_active = False
        db.session.commit()
        current_app.logger.info("Customer %s deactivated instead of deleted", user.id)
        return jsonify({"success": True, "message": "Customer deactivated (has existing orders)"}), 200

    db.session.delete(user)
    db.session.commit()
    return jsonify({"success": True, "message": "Customer deleted successfully"}), 200
