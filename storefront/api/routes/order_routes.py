from flask import Blueprint, current_app, jsonify, request
import sqlalchemy as sa
from sqlalchemy.orm import selectinload

from storefront.api.utils.payload import clean_str, get_payload, iso, num, page_args, paginate, to_int
from storefront.auth.permissions import permission_required
from storefront.errors import NotFound, ServiceError
from storefront.extensions import db
from storefront.models import Order, OrderItem
from storefront.models.order import ORDER_STATUSES
from storefront.services.orders import place_order, send_order_emails

order_bp = Blueprint("order_bp", __name__, url_prefix="/api/orders")


def _item_dict(it: OrderItem) -> dict:
    v = it.variation
    return {
        "id": it.id,
        "productId": it.product_id,
        "variationId": it.variation_id,
        "name": it.product.name if it.product else None,
        "nameAr": it.product.name_ar if it.product else None,
        "imageUrl": (v.image_url if v and v.image_url else (it.product.image_url if it.product else None)),
        "size": v.size.display_name if v and v.size else None,
        "type": v.type.name if v and v.type else None,
        "beans": v.beans.name if v and v.beans else None,
        "quantity": it.quantity,
        "unitPrice": num(it.unit_price),
        "subtotal": num(it.subtotal),
    }


def _payment_brief(p) -> dict | None:
    if p is None:
        return None
    return {
        "id": p.id,
        "provider": p.provider,
        "status": p.status,
        "amount": num(p.amount),
        "refundedAmount": num(p.refunded_amount),
        "currency": p.currency,
        "last4": p.last4,
        "brand": p.brand,
        "receiptUrl": p.receipt_url,
    }


def _order_dict(o: Order, with_items: bool = False) -> dict:
    data = {
        "id": o.id,
        "userId": o.user_id,
        "customerName": o.customer_name,
        "customerEmail": o.customer_email,
        "customerPhone": o.customer_phone,
        "city": o.city,
        "shippingAddress": o.shipping_address,
        "subtotal": num(o.subtotal),
        "tax": num(o.tax),
        "shippingCost": num(o.shipping_cost),
        "discount": num(o.discount),
        "total": num(o.total),
        "status": o.status,
        "paymentMethod": o.payment_method,
        "promotionId": o.promotion_id,
        "emailSent": bool(o.email_sent),
        "itemCount": sum(it.quantity for it in o.items),
        "createdAt": iso(o.created_at),
        "updatedAt": iso(o.updated_at),
    }
    if with_items:
        data["items"] = [_item_dict(it) for it in o.items]
        data["payment"] = _payment_brief(o.payment)
    return data


def _get_order(order_id: int) -> Order:
    o = db.session.get(Order, order_id)
    if o is None:
        raise NotFound("Order not found")
    return o


@order_bp.post("")
def create_order():
    data = get_payload()
    try:
        result = place_order(data)
    except ServiceError:
        raise
    except Exception:
        db.session.rollback()
        current_app.logger.exception("create_order failed")
        return jsonify({"error": "Failed to create order"}), 500

    order = result["order"]
    is_new = result["isNewCustomer"]
    send_order_emails(order, is_new, result["temporaryPassword"])

    return jsonify({
        "success": True,
        "orderId": order.id,
        "isNewCustomer": is_new,
        "status": order.status,
        "total": num(order.total),
        "message": (
            "Order created successfully! Check your email for account credentials."
            if is_new else "Order created successfully! Thank you for your purchase."
        ),
    }), 201


@order_bp.get("")
@permission_required("orders", "view")
def list_orders():
    q = Order.query.options(selectinload(Order.items))

    status = (request.args.get("status") or "").strip().upper()
    if status and status != "ALL":
        q = q.filter(Order.status == status)

    user_id = to_int(request.args.get("userId"))
    if user_id is not None:
        q = q.filter(Order.user_id == user_id)

    search = (request.args.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        conds = [
            Order.customer_name.ilike(like),
            Order.customer_email.ilike(like),
            Order.customer_phone.ilike(like),
        ]
        if search.lstrip("#").isdigit():
            conds.append(Order.id == int(search.lstrip("#")))
        q = q.filter(sa.or_(*conds))

    page, limit = page_args(default_limit=10)
    orders, pagination = paginate(q.order_by(Order.created_at.desc(), Order.id.desc()), page, limit)
    return jsonify({"orders": [_order_dict(o) for o in orders], "pagination": pagination}), 200


@order_bp.get("/<int:order_id>")
@permission_required("orders", "view")
def get_order(order_id: int):
    o = _get_order(order_id)
    data = _order_dict(o, with_items=True)
    data["user"] = (
        {"id": o.user.id, "email": o.user.email, "name": o.user.name, "phone": o.user.phone}
        if o.user else None
    )
    return jsonify(data), 200


@order_bp.patch("/<int:order_id>")
@permission_required("orders", "edit")
def update_order_status(order_id: int):
    o = _get_order(order_id)
    status = (clean_str(get_payload().get("status")) or "").upper()
    if status not in ORDER_STATUSES:
        return jsonify({"error": f"Invalid status. Allowed: {', '.join(ORDER_STATUSES)}"}), 400

    previous = o.status
    o.status = status
    db.session.commit()
    current_app.logger.info("Order #%s status %s -> %s", o.id, previous, status)
    return jsonify(_order_dict(o, with_items=True)), 200


@order_bp.delete("/<int:order_id>")
@permission_required("orders", "delete")
def delete_order(order_id: int):
    o = _get_order(order_id)
    try:
        # items and payments go with the order (delete-orphan cascade)
        db.session.delete(o)
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("delete_order failed")
        return jsonify({"error": "Failed to delete order"}), 500
    return jsonify({"success": True}), 200
