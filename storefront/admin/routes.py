from decimal import Decimal

from flask import jsonify
import sqlalchemy as sa

from . import admin_bp
from storefront.api.routes.order_routes import _order_dict
from storefront.auth.permissions import staff_required
from storefront.extensions import db
from storefront.models import Category, Contact, Order, Payment, Product, User
from storefront.models.order import ORDER_STATUSES
from storefront.services.pricing import money


@admin_bp.get("/dashboard")
@staff_required
def dashboard():
    by_status = dict(db.session.query(Order.status, sa.func.count(Order.id)).group_by(Order.status).all())
    orders_by_status = {s: by_status.get(s, 0) for s in ORDER_STATUSES}

    gross = db.session.query(sa.func.coalesce(sa.func.sum(Payment.amount), 0)).filter(
        Payment.status.in_(("SUCCEEDED", "REFUNDED", "PARTIALLY_REFUNDED"))
    ).scalar()
    refunded = db.session.query(sa.func.coalesce(sa.func.sum(Payment.refunded_amount), 0)).scalar()

    recent = Order.query.order_by(Order.created_at.desc(), Order.id.desc()).limit(5).all()
    return jsonify({
        "counts": {
            "products": Product.query.count(),
            "activeProducts": Product.query.filter(Product.is_active.is_(True)).count(),
            "categories": Category.query.count(),
            "orders": sum(orders_by_status.values()),
            "customers": User.query.filter(User.role == "CUSTOMER").count(),
            "unreadContacts": Contact.query.filter(Contact.status == "NEW").count(),
        },
        "ordersByStatus": orders_by_status,
        "revenue": float(money(Decimal(gross or 0) - Decimal(refunded or 0))),
        "recentOrders": [_order_dict(o) for o in recent],
    }), 200
