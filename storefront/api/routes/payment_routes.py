from datetime import datetime
from decimal import Decimal

from flask import Blueprint, current_app, jsonify, request
import sqlalchemy as sa

from storefront.api.routes.order_routes import _payment_brief
from storefront.api.utils.payload import clean_str, get_payload, iso, num, page_args, paginate, to_int
from storefront.auth.permissions import permission_required
from storefront.errors import NotFound
from storefront.extensions import db
from storefront.models import Order, Payment
from storefront.services.payment_actions import capture_payment, refund_payment
from storefront.services.pricing import money

payment_bp = Blueprint("payment_bp", __name__, url_prefix="/api/payments")

# money that reached the shop, refunds are subtracted separately
CAPTURED_STATUSES = ("SUCCEEDED", "REFUNDED", "PARTIALLY_REFUNDED")


def _payment_dict(p: Payment) -> dict:
    data = _payment_brief(p)
    data.update({
        "orderId": p.order_id,
        "userId": p.user_id,
        "providerPaymentId": p.provider_payment_id,
        "providerChargeId": p.provider_charge_id,
        "refundableAmount": num(p.refundable_amount),
        "paymentMethod": p.payment_method,
        "createdAt": iso(p.created_at),
        "updatedAt": iso(p.updated_at),
        "order": (
            {
                "id": p.order.id,
                "status": p.order.status,
                "customerName": p.order.customer_name,
                "customerEmail": p.order.customer_email,
                "total": num(p.order.total),
            }
            if p.order else None
        ),
    })
    return data


@payment_bp.get("")
@permission_required("payments", "view")
def list_payments():
    q = Payment.query.join(Order, Payment.order_id == Order.id)

    status = (request.args.get("status") or "").strip().upper()
    if status and status != "ALL":
        q = q.filter(Payment.status == status)

    search = (request.args.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        q = q.filter(sa.or_(
            Payment.provider_payment_id.ilike(like),
            Payment.provider_charge_id.ilike(like),
            Order.customer_name.ilike(like),
            Order.customer_email.ilike(like),
        ))

    page, limit = page_args(default_limit=20)
    payments, pagination = paginate(q.order_by(Payment.created_at.desc(), Payment.id.desc()), page, limit)
    return jsonify({"payments": [_payment_dict(p) for p in payments], "pagination": pagination}), 200


@payment_bp.post("")
@permission_required("payments", "edit")
def payment_action():
    data = get_payload()
    action = (clean_str(data.get("action")) or "").lower()
    payment_id = to_int(data.get("paymentId"))
    if payment_id is None:
        return jsonify({"error": "Payment ID is required"}), 400

    payment = db.session.get(Payment, payment_id)
    if payment is None:
        raise NotFound("Payment not found")

    if action == "refund":
        refund = refund_payment(payment, data.get("amount"))
        currency = (payment.currency or "").upper()
        return jsonify({
            "success": True,
            "refund": refund,
            "payment": _payment_dict(payment),
            "message": f"Refund of {refund['amount']:.2f} {currency} processed successfully via {payment.provider}",
        }), 200

    if action == "capture":
        capture_payment(payment)
        return jsonify({
            "success": True,
            "payment": _payment_dict(payment),
            "message": "Payment captured successfully",
        }), 200

    return jsonify({"error": "Invalid action"}), 400


def _month_start(dt: datetime) -> datetime:
    return dt.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _shift_months(dt: datetime, months: int) -> datetime:
    idx = dt.year * 12 + (dt.month - 1) + months
    return dt.replace(year=idx // 12, month=idx % 12 + 1)


@payment_bp.get("/stats")
@permission_required("payments", "view")
def payment_stats():
    def _count(*conds):
        return Payment.query.filter(*conds).count()

    total = _count()
    succeeded = _count(Payment.status == "SUCCEEDED")
    failed = _count(Payment.status == "FAILED")
    refunded = _count(Payment.status.in_(("REFUNDED", "PARTIALLY_REFUNDED")))
    pending = _count(Payment.status.in_(("PENDING", "PROCESSING")))

    revenue = db.session.query(sa.func.coalesce(sa.func.sum(Payment.amount), 0)).filter(
        Payment.status.in_(CAPTURED_STATUSES)
    ).scalar()
    total_refunded = db.session.query(sa.func.coalesce(sa.func.sum(Payment.refunded_amount), 0)).filter(
        Payment.status.in_(("REFUNDED", "PARTIALLY_REFUNDED"))
    ).scalar()

    # bucketed in Python, SQLite has no date_trunc
    first_month = _shift_months(_month_start(datetime.utcnow()), -11)
    rows = (
        db.session.query(Payment.created_at, Payment.amount)
        .filter(Payment.status.in_(CAPTURED_STATUSES), Payment.created_at >= first_month)
        .all()
    )
    buckets = {}
    for created_at, amount in rows:
        key = created_at.strftime("%Y-%m")
        revenue_sum, count = buckets.get(key, (Decimal(0), 0))
        buckets[key] = (revenue_sum + Decimal(amount or 0), count + 1)

    monthly = []
    for offset in range(12):
        key = _shift_months(first_month, offset).strftime("%Y-%m")
        revenue_sum, count = buckets.get(key, (Decimal(0), 0))
        monthly.append({"month": key, "revenue": num(money(revenue_sum)), "transactions": count})
    monthly.reverse()

    success_rate = round(succeeded / total * 100, 2) if total else 0
    return jsonify({
        "stats": {
            "totalPayments": total,
            "successfulPayments": succeeded,
            "failedPayments": failed,
            "refundedPayments": refunded,
            "pendingPayments": pending,
            "totalRevenue": num(money(revenue)),
            "totalRefunded": num(money(total_refunded)),
            "netRevenue": num(money(Decimal(revenue or 0) - Decimal(total_refunded or 0))),
            "successRate": success_rate,
            "currency": current_app.config.get("CURRENCY", "aed"),
        },
        "monthlyRevenue": monthly,
    }), 200
