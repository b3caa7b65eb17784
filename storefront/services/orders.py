# storefront/services/orders.py
"""
Checkout: turns a cart payload into an Order with its items and payment.

Prices, shipping, discount and tax are computed here from the database; the
client only says what it wants and how many.
"""
from __future__ import annotations

import logging
import re
import secrets
from decimal import Decimal

import sqlalchemy as sa
from flask import current_app

from storefront.api.utils.email import notify_owner, send_email
from storefront.errors import Conflict, ServiceError
from storefront.extensions import db
from storefront.models import Order, OrderItem, Payment, Product, ProductVariation, Promotion, User
from storefront.models.order import PAYMENT_METHODS
from storefront.services.payment_providers import StripeGateway, card_details, intent_amount
from storefront.services.pricing import money
from storefront.services.promotions import evaluate_promotion
from storefront.services.shipping import calculate_shipping

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _to_int(val):
    try:
        return int(val)
    except (TypeError, ValueError):
        return None


def generate_password(length: int = 10) -> str:
    alphabet = "abcdefghijkmnopqrstuvwxyzABCDEFGHJKLMNPQRSTUVWXYZ23456789"
    return "".join(secrets.choice(alphabet) for _ in range(length))


def _decrement_stock(model, row_id: int, qty: int) -> bool:
    """Conditional UPDATE so concurrent checkouts can never push stock below zero."""
    remaining = model.stock_quantity - qty
    values = {"stock_quantity": remaining}
    if model is Product:
        values["in_stock"] = sa.case((remaining > 0, True), else_=False)
    stmt = (
        sa.update(model)
        .where(model.id == row_id, model.stock_quantity >= qty)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return db.session.execute(stmt).rowcount == 1


def _claim_promotion(promo: Promotion) -> bool:
    stmt = sa.update(Promotion).where(Promotion.id == promo.id)
    if promo.max_uses is not None:
        stmt = stmt.where(Promotion.current_uses < promo.max_uses)
    stmt = stmt.values(current_uses=Promotion.current_uses + 1).execution_options(synchronize_session=False)
    return db.session.execute(stmt).rowcount == 1


def _resolve_lines(items_in) -> list[dict]:
    if not isinstance(items_in, list) or not items_in:
        raise ServiceError("Order must contain at least one item")

    raw = []
    for it in items_in:
        if not isinstance(it, dict):
            raise ServiceError("Invalid order item")
        pid = _to_int(it.get("productId") or it.get("id"))
        qty = _to_int(it.get("quantity", 1))
        if pid is None:
            raise ServiceError("Each item needs a productId")
        if qty is None or qty < 1:
            raise ServiceError("Quantity must be at least 1")
        raw.append((pid, _to_int(it.get("variationId")), qty))

    ids = {pid for pid, _, _ in raw}
    products = {p.id: p for p in Product.query.filter(Product.id.in_(ids)).all()}
    missing = [str(pid) for pid in sorted(ids) if pid not in products]
    if missing:
        raise ServiceError(f"Products not found: {', '.join(missing)}")

    lines = []
    for pid, vid, qty in raw:
        product = products[pid]
        if not product.is_active:
            raise ServiceError(f"Product {product.name} is not available")
        variation = None
        if vid is not None:
            variation = db.session.get(ProductVariation, vid)
            if variation is None or variation.product_id != pid or not variation.is_active:
                raise ServiceError(f"Variation {vid} is not available for {product.name}")
            unit_price = variation.effective_price
        else:
            unit_price = product.effective_price
        lines.append({
            "product": product,
            "variation": variation,
            "quantity": qty,
            "unit_price": unit_price,
            "subtotal": money(unit_price * qty),
        })
    return lines


def quote_order(lines: list[dict], promotion_code: str | None = None) -> dict:
    subtotal = money(sum((ln["subtotal"] for ln in lines), Decimal(0)))

    promotion = None
    discount = Decimal("0.00")
    free_shipping = False
    if promotion_code:
        promo_quote = evaluate_promotion(promotion_code, subtotal)
        promotion = promo_quote["promotion"]
        discount = promo_quote["discount"]
        free_shipping = promo_quote["freeShipping"]

    shipping_cost = Decimal("0.00") if free_shipping else calculate_shipping(subtotal)["cost"]
    tax_rate = Decimal(current_app.config.get("TAX_RATE") or 0)
    tax = money((subtotal - discount) * tax_rate)
    total = money(subtotal - discount + shipping_cost + tax)
    return {
        "subtotal": subtotal,
        "discount": discount,
        "shipping_cost": shipping_cost,
        "tax": tax,
        "total": total,
        "promotion": promotion,
    }


def _upsert_customer(email: str, name: str, phone: str | None, city: str | None, address: str):
    user = User.query.filter(sa.func.lower(User.email) == email.lower()).first()
    if user is None:
        temp_password = generate_password()
        user = User(
            email=email,
            name=name,
            phone=phone,
            city=city,
            address=address,
            role="CUSTOMER",
            is_new_customer=True,
            email_verified=False,
        )
        user.set_password(temp_password)
        db.session.add(user)
        db.session.flush()
        return user, True, temp_password

    user.is_new_customer = False
    return user, False, None


def place_order(data: dict) -> dict:
    """
    Validate, price and persist a checkout.

    Returns ``{"order", "isNewCustomer", "temporaryPassword"}``. Nothing is
    committed when a ServiceError is raised.
    """
    customer = data.get("customerInfo") or {}
    shipping = data.get("shippingInfo") or {}
    if not isinstance(customer, dict) or not isinstance(shipping, dict):
        raise ServiceError("Invalid customer or shipping information")

    name = str(customer.get("fullName") or customer.get("name") or "").strip()
    email = str(customer.get("email") or "").strip()
    phone = str(customer.get("phone") or "").strip() or None
    address = str(shipping.get("address") or "").strip()
    city = str(shipping.get("city") or "").strip() or None

    if not (name and email):
        raise ServiceError("Customer name and email are required")
    if not EMAIL_RE.match(email):
        raise ServiceError("Invalid email address")
    if not address:
        raise ServiceError("Shipping address is required")

    payment_method = str(data.get("paymentMethod") or ("stripe" if data.get("paymentIntentId") else "cod")).lower()
    if payment_method not in PAYMENT_METHODS:
        raise ServiceError(f"Unsupported payment method '{payment_method}'")

    lines = _resolve_lines(data.get("items"))
    quote = quote_order(lines, str(data.get("promotionCode") or "").strip() or None)
    if quote["total"] <= 0:
        raise ServiceError("Order total must be greater than zero")

    intent = None
    provider_payment_id = None
    if payment_method == "stripe":
        provider_payment_id = str(data.get("paymentIntentId") or "").strip()
        if not provider_payment_id:
            raise ServiceError("paymentIntentId is required for card payments")
        if Payment.query.filter_by(provider="STRIPE", provider_payment_id=provider_payment_id).first():
            raise Conflict("An order already exists for this payment")
        intent = StripeGateway().retrieve_intent(provider_payment_id)
        if intent.get("status") != "succeeded":
            raise ServiceError("Payment not completed")
        paid = intent_amount(intent)
        if paid != quote["total"]:
            logger.warning("Intent %s amount %s differs from order total %s", provider_payment_id, paid, quote["total"])
    elif payment_method == "tabby":
        provider_payment_id = str(data.get("tabbyPaymentId") or "").strip()
        if not provider_payment_id:
            raise ServiceError("tabbyPaymentId is required for Tabby payments")

    try:
        user, is_new, temp_password = _upsert_customer(email, name, phone, city, address)

        for ln in lines:
            target = ln["variation"] or ln["product"]
            if not _decrement_stock(type(target), target.id, ln["quantity"]):
                db.session.refresh(target)
                raise ServiceError(
                    f"Only {target.stock_quantity or 0} left in stock for {ln['product'].name}"
                )

        promotion = quote["promotion"]
        if promotion is not None and not _claim_promotion(promotion):
            raise ServiceError("This promotion has reached its usage limit")

        order = Order(
            user_id=user.id,
            customer_name=name,
            customer_email=email,
            customer_phone=phone,
            city=city,
            shipping_address=address,
            subtotal=quote["subtotal"],
            discount=quote["discount"],
            shipping_cost=quote["shipping_cost"],
            tax=quote["tax"],
            total=quote["total"],
            status="PROCESSING" if payment_method == "stripe" else "NEW",
            payment_method=payment_method,
            promotion_id=promotion.id if promotion else None,
        )
        db.session.add(order)
        for ln in lines:
            order.items.append(OrderItem(
                product_id=ln["product"].id,
                variation_id=ln["variation"].id if ln["variation"] else None,
                quantity=ln["quantity"],
                unit_price=ln["unit_price"],
                subtotal=ln["subtotal"],
            ))

        payment = Payment(
            user_id=user.id,
            provider={"stripe": "STRIPE", "tabby": "TABBY"}.get(payment_method, "MANUAL"),
            provider_payment_id=provider_payment_id,
            amount=quote["total"],
            refunded_amount=Decimal("0.00"),
            currency=current_app.config.get("CURRENCY", "aed"),
            status="SUCCEEDED" if payment_method == "stripe" else "PENDING",
            payment_method="card" if payment_method == "stripe" else payment_method,
        )
        if intent is not None:
            for key, value in card_details(intent).items():
                if value:
                    setattr(payment, key, value)
        order.payments.append(payment)

        db.session.commit()
    except ServiceError:
        db.session.rollback()
        raise

    # stock counters were updated behind the ORM's back
    for ln in lines:
        db.session.expire(ln["product"])
        if ln["variation"] is not None:
            db.session.expire(ln["variation"])

    logger.info("Order #%s placed by %s total=%s (%s)", order.id, email, order.total, payment_method)
    return {"order": order, "isNewCustomer": is_new, "temporaryPassword": temp_password}


def _order_lines_text(order: Order) -> list[str]:
    currency = (current_app.config.get("CURRENCY") or "aed").upper()
    lines = []
    for it in order.items:
        label = it.product.name if it.product else f"Product {it.product_id}"
        if it.variation is not None and it.variation.size is not None:
            label = f"{label} ({it.variation.size.display_name})"
        lines.append(f"- {label} x {it.quantity}: {money(it.subtotal):.2f} {currency}")
    return lines


def send_order_emails(order: Order, is_new_customer: bool, temporary_password: str | None) -> None:
    """Welcome or thank-you mail to the customer plus a note to the shop owner. Never raises."""
    store = current_app.config.get("STORE_NAME") or "Our store"
    currency = (current_app.config.get("CURRENCY") or "aed").upper()

    try:
        if is_new_customer:
            body = [
                f"Hello {order.customer_name},",
                "",
                f"Welcome to {store}! Your order #{order.id} has been received.",
                "",
                "We created an account for you so you can follow your orders:",
                f"E-mail: {order.customer_email}",
                f"Temporary password: {temporary_password}",
                "",
                "Please change the password after your first login.",
            ]
            subject = f"Welcome to {store} - order #{order.id}"
        else:
            body = [
                f"Hello {order.customer_name},",
                "",
                f"Thank you for your order #{order.id}.",
                "",
            ]
            subject = f"Thank you for your order #{order.id}"
        body += ["", "Items:"] + _order_lines_text(order) + [
            "",
            f"Shipping: {money(order.shipping_cost):.2f} {currency}",
            f"Total: {money(order.total):.2f} {currency}",
            "",
            store,
        ]
        send_email(subject=subject, recipients=[order.customer_email], body="\n".join(body))
        order.email_sent = True
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Customer e-mail for order #%s failed", order.id)

    notify_owner(
        "ORDER_NOTIFY_EMAIL",
        f"New order #{order.id}",
        "\n".join([
            f"Order #{order.id}",
            f"Customer: {order.customer_name} <{order.customer_email}>",
            f"Phone: {order.customer_phone or '-'}",
            f"Address: {order.shipping_address}, {order.city or ''}",
            f"Payment: {order.payment_method}",
            f"Total: {money(order.total):.2f} {currency}",
        ]),
    )
