# storefront/services/payment_providers.py
"""
Thin REST clients for the payment gateways.

Every gateway failure is raised as ProviderError so callers decide which
status code the client sees.
"""
from __future__ import annotations

import hashlib
import hmac
import logging
import time
from decimal import Decimal

import requests
from flask import current_app

from storefront.errors import ProviderError
from storefront.services.pricing import money

logger = logging.getLogger(__name__)

STRIPE_API = "https://api.stripe.com/v1"
TABBY_API = "https://api.tabby.ai/api/v2"
SIGNATURE_TOLERANCE = 300  # seconds


def _timeout() -> int:
    return int(current_app.config.get("PROVIDER_TIMEOUT") or 15)


def _error_text(response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or f"HTTP {response.status_code}"
    err = body.get("error") if isinstance(body, dict) else None
    if isinstance(err, dict):
        return err.get("message") or str(err)
    return str(err or body)


def to_minor_units(amount) -> int:
    return int((money(amount) * 100).to_integral_value())


class StripeGateway:
    name = "STRIPE"

    def __init__(self, secret_key: str | None = None):
        self.secret_key = secret_key or current_app.config.get("STRIPE_SECRET_KEY")

    def _request(self, method: str, path: str, data: dict | None = None, params: dict | None = None) -> dict:
        if not self.secret_key:
            raise ProviderError("Stripe is not configured")
        url = f"{STRIPE_API}{path}"
        try:
            response = requests.request(
                method, url, auth=(self.secret_key, ""), data=data, params=params, timeout=_timeout()
            )
        except requests.RequestException as e:
            logger.error("Stripe request %s %s failed: %s", method, path, e)
            raise ProviderError(str(e))
        if response.status_code >= 400:
            message = _error_text(response)
            logger.error("Stripe %s %s -> %s: %s", method, path, response.status_code, message)
            raise ProviderError(message)
        return response.json()

    def retrieve_intent(self, intent_id: str) -> dict:
        return self._request("GET", f"/payment_intents/{intent_id}", params={"expand[]": "latest_charge"})

    def refund(self, intent_id: str, amount) -> dict:
        return self._request("POST", "/refunds", data={
            "payment_intent": intent_id,
            "amount": to_minor_units(amount),
            "reason": "requested_by_customer",
        })

    def capture(self, intent_id: str) -> dict:
        return self._request("POST", f"/payment_intents/{intent_id}/capture")


class TabbyGateway:
    name = "TABBY"

    def __init__(self, secret_key: str | None = None):
        self.secret_key = secret_key or current_app.config.get("TABBY_SECRET_KEY")

    def refund(self, payment_id: str, amount) -> dict:
        if not self.secret_key:
            raise ProviderError("Tabby is not configured")
        url = f"{TABBY_API}/payments/{payment_id}/refunds"
        try:
            response = requests.post(
                url,
                json={"amount": f"{money(amount):.2f}"},
                headers={"Authorization": f"Bearer {self.secret_key}"},
                timeout=_timeout(),
            )
        except requests.RequestException as e:
            logger.error("Tabby refund for %s failed: %s", payment_id, e)
            raise ProviderError(str(e))
        if response.status_code >= 400:
            message = _error_text(response)
            logger.error("Tabby refund for %s -> %s: %s", payment_id, response.status_code, message)
            raise ProviderError(message)
        return response.json()


def get_gateway(provider: str):
    if provider == "STRIPE":
        return StripeGateway()
    if provider == "TABBY":
        return TabbyGateway()
    return None


def card_details(intent: dict) -> dict:
    """Pull charge id, card brand/last4 and receipt url out of an expanded intent."""
    charge = intent.get("latest_charge")
    if not isinstance(charge, dict):
        return {"provider_charge_id": charge if isinstance(charge, str) else None}
    card = (charge.get("payment_method_details") or {}).get("card") or {}
    return {
        "provider_charge_id": charge.get("id"),
        "payment_method": (charge.get("payment_method_details") or {}).get("type"),
        "last4": card.get("last4"),
        "brand": card.get("brand"),
        "receipt_url": charge.get("receipt_url"),
    }


def intent_amount(intent: dict) -> Decimal:
    return money(Decimal(int(intent.get("amount_received") or intent.get("amount") or 0)) / 100)


def verify_stripe_signature(payload: bytes, header: str | None, secret: str,
                            tolerance: int = SIGNATURE_TOLERANCE, now: float | None = None) -> bool:
    """Check a `Stripe-Signature` header (t=<ts>,v1=<hex hmac of "t.payload">)."""
    if not header or not secret:
        return False
    timestamp = None
    signatures = []
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1":
            signatures.append(value)
    if not timestamp or not signatures:
        return False
    try:
        ts = int(timestamp)
    except ValueError:
        return False
    now = time.time() if now is None else now
    if abs(now - ts) > tolerance:
        return False
    signed = f"{timestamp}.".encode("utf-8") + payload
    expected = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return any(hmac.compare_digest(expected, sig) for sig in signatures)
