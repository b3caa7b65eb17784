# storefront/services/payment_actions.py
from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

from storefront.errors import ProviderError, ServiceError
from storefront.extensions import db
from storefront.models import Payment
from storefront.services.payment_providers import StripeGateway, get_gateway
from storefront.services.pricing import money, to_decimal

logger = logging.getLogger(__name__)


def refund_payment(payment: Payment, amount_raw) -> dict:
    """Refund part or all of a payment through its gateway and record the result."""
    try:
        amount = money(to_decimal(amount_raw, "amount"))
    except InvalidOperation:
        raise ServiceError("Valid refund amount is required")
    if amount <= 0:
        raise ServiceError("Valid refund amount is required")
    if amount > payment.refundable_amount:
        raise ServiceError("Refund amount exceeds available amount")

    gateway = get_gateway(payment.provider)
    if gateway is None or not payment.provider_payment_id:
        raise ServiceError("Invalid payment provider or missing payment ID")

    try:
        result = gateway.refund(payment.provider_payment_id, amount)
    except ProviderError as e:
        raise ServiceError(f"Refund failed: {e.message}")

    payment.refunded_amount = money(Decimal(payment.refunded_amount or 0) + amount)
    fully_refunded = payment.refunded_amount >= money(payment.amount)
    payment.status = "REFUNDED" if fully_refunded else "PARTIALLY_REFUNDED"
    if fully_refunded and payment.order is not None:
        payment.order.status = "REFUNDED"
    db.session.commit()

    logger.info("Refunded %s %s on payment #%s via %s", amount, payment.currency, payment.id, payment.provider)
    return {
        "id": result.get("id"),
        "amount": float(amount),
        "status": result.get("status") or "processed",
    }


def capture_payment(payment: Payment) -> None:
    """Capture an authorised Stripe intent."""
    if payment.provider != "STRIPE" or not payment.provider_payment_id:
        raise ServiceError("Only Stripe payments can be captured")
    if payment.status not in ("PENDING", "PROCESSING"):
        raise ServiceError(f"Payment cannot be captured in status {payment.status}")

    try:
        StripeGateway().capture(payment.provider_payment_id)
    except ProviderError as e:
        raise ServiceError(f"Capture failed: {e.message}")

    payment.status = "SUCCEEDED"
    db.session.commit()
    logger.info("Captured payment #%s", payment.id)
