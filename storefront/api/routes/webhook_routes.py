import json

from flask import Blueprint, current_app, jsonify, request

from storefront.extensions import db
from storefront.models import Payment
from storefront.services.payment_providers import card_details, verify_stripe_signature

webhook_bp = Blueprint("webhook_bp", __name__, url_prefix="/api/webhooks")

# event type -> (payment status, order status or None to leave it)
STRIPE_EVENTS = {
    "payment_intent.succeeded": ("SUCCEEDED", "PROCESSING"),
    "payment_intent.payment_failed": ("FAILED", "CANCELLED"),
    "payment_intent.canceled": ("CANCELLED", "CANCELLED"),
}


@webhook_bp.post("/stripe")
def stripe_webhook():
    payload = request.get_data()
    secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    if not secret:
        current_app.logger.error("Stripe webhook received but STRIPE_WEBHOOK_SECRET is not set")
        return jsonify({"error": "Webhook not configured"}), 503

    if not verify_stripe_signature(payload, request.headers.get("Stripe-Signature"), secret):
        current_app.logger.warning("Stripe webhook with invalid signature")
        return jsonify({"error": "Invalid signature"}), 400

    try:
        event = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return jsonify({"error": "Invalid payload"}), 400
    if not isinstance(event, dict):
        return jsonify({"error": "Invalid payload"}), 400

    event_type = event.get("type")
    mapping = STRIPE_EVENTS.get(event_type) if isinstance(event_type, str) else None
    if mapping is None:
        current_app.logger.info("Stripe webhook %s ignored", event_type)
        return jsonify({"received": True}), 200

    data = event.get("data")
    intent = data.get("object") if isinstance(data, dict) else None
    if not isinstance(intent, dict):
        return jsonify({"error": "Invalid payload"}), 400
    intent_id = intent.get("id")
    payment = Payment.query.filter_by(provider="STRIPE", provider_payment_id=intent_id).first() if intent_id else None
    if payment is None:
        # checkout has not created the order yet; it verifies the intent itself
        current_app.logger.info("Stripe webhook %s for unknown intent %s", event_type, intent_id)
        return jsonify({"received": True}), 200

    payment_status, order_status = mapping
    if payment.status in ("REFUNDED", "PARTIALLY_REFUNDED"):
        current_app.logger.info("Stripe webhook %s ignored for refunded payment #%s", event_type, payment.id)
        return jsonify({"received": True}), 200

    payment.status = payment_status
    if payment_status == "SUCCEEDED":
        for key, value in card_details(intent).items():
            if value:
                setattr(payment, key, value)
    if order_status and payment.order is not None and payment.order.status in ("NEW", "PROCESSING"):
        payment.order.status = order_status
    db.session.commit()

    current_app.logger.info("Stripe webhook %s -> payment #%s %s", event_type, payment.id, payment_status)
    return jsonify({"received": True}), 200
