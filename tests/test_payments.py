from decimal import Decimal

import pytest
import requests

from conftest import FakeResponse
from storefront.extensions import db
from storefront.models import Order, Payment


@pytest.fixture
def stripe_calls(monkeypatch):
    calls = []

    def fake_request(method, url, **kwargs):
        calls.append((method, url, kwargs))
        return FakeResponse(200, {"id": "re_1", "status": "succeeded"})

    monkeypatch.setattr("storefront.services.payment_providers.requests.request", fake_request)
    return calls


def _stripe_order(factory, total="100.00", status="SUCCEEDED", **payment):
    fields = {"provider": "STRIPE", "provider_payment_id": "pi_1", "status": status}
    fields.update(payment)
    return factory.order(total=total, status="PROCESSING", payment=fields)


def _payment_id(app, order_id):
    with app.app_context():
        return Payment.query.filter_by(order_id=order_id).one().id


def test_partial_then_full_stripe_refund(app, admin_client, factory, stripe_calls):
    oid = _stripe_order(factory)
    pay_id = _payment_id(app, oid)

    first = admin_client.post("/api/payments", json={"action": "refund", "paymentId": pay_id, "amount": "40"})
    assert first.status_code == 200
    body = first.get_json()
    assert body["refund"] == {"id": "re_1", "amount": 40.0, "status": "succeeded"}
    assert body["payment"]["status"] == "PARTIALLY_REFUNDED"
    assert body["payment"]["refundableAmount"] == 60.0
    assert "40.00 AED" in body["message"]

    method, url, kwargs = stripe_calls[0]
    assert (method, url) == ("POST", "https://api.stripe.com/v1/refunds")
    assert kwargs["data"]["amount"] == 4000
    assert kwargs["data"]["payment_intent"] == "pi_1"
    assert kwargs["auth"] == ("sk_test_dummy", "")

    too_much = admin_client.post("/api/payments", json={"action": "refund", "paymentId": pay_id, "amount": "60.01"})
    assert too_much.status_code == 400
    assert too_much.get_json()["error"] == "Refund amount exceeds available amount"

    rest = admin_client.post("/api/payments", json={"action": "refund", "paymentId": pay_id, "amount": 60})
    assert rest.get_json()["payment"]["status"] == "REFUNDED"
    with app.app_context():
        assert db.session.get(Order, oid).status == "REFUNDED"
        assert db.session.get(Payment, pay_id).refunded_amount == Decimal("100.00")


def test_refund_validation(app, admin_client, factory, stripe_calls):
    pay_id = _payment_id(app, _stripe_order(factory))

    for amount in (None, "abc", "0", "-5", "NaN", "Infinity", "-Infinity"):
        resp = admin_client.post("/api/payments", json={"action": "refund", "paymentId": pay_id, "amount": amount})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Valid refund amount is required"

    assert admin_client.post("/api/payments", json={"action": "refund"}).status_code == 400
    assert admin_client.post("/api/payments", json={"action": "refund", "paymentId": 999, "amount": 1}).status_code == 404
    assert stripe_calls == []


def test_manual_payment_cannot_be_refunded(app, admin_client, factory):
    oid = factory.order(payment={"provider": "MANUAL", "status": "SUCCEEDED"})
    resp = admin_client.post("/api/payments", json={"action": "refund", "paymentId": _payment_id(app, oid), "amount": 10})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Invalid payment provider or missing payment ID"


def test_gateway_error_is_reported_and_nothing_recorded(app, admin_client, factory, monkeypatch):
    monkeypatch.setattr(
        "storefront.services.payment_providers.requests.request",
        lambda method, url, **kw: FakeResponse(400, {"error": {"message": "Charge already refunded"}}),
    )
    pay_id = _payment_id(app, _stripe_order(factory))

    resp = admin_client.post("/api/payments", json={"action": "refund", "paymentId": pay_id, "amount": 10})

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Refund failed: Charge already refunded"
    with app.app_context():
        payment = db.session.get(Payment, pay_id)
        assert payment.status == "SUCCEEDED"
        assert payment.refunded_amount == Decimal("0.00")


def test_network_error_is_reported(app, admin_client, factory, monkeypatch):
    def boom(method, url, **kw):
        raise requests.ConnectionError("connection reset")

    monkeypatch.setattr("storefront.services.payment_providers.requests.request", boom)
    pay_id = _payment_id(app, _stripe_order(factory))

    resp = admin_client.post("/api/payments", json={"action": "refund", "paymentId": pay_id, "amount": 10})
    assert resp.get_json()["error"] == "Refund failed: connection reset"


def test_tabby_refund_posts_decimal_string(app, admin_client, factory, monkeypatch):
    sent = {}

    def fake_post(url, json=None, headers=None, timeout=None):
        sent.update(url=url, json=json, headers=headers)
        return FakeResponse(200, {"id": "tr_1"})

    monkeypatch.setattr("storefront.services.payment_providers.requests.post", fake_post)
    oid = factory.order(payment={"provider": "TABBY", "provider_payment_id": "tb_1", "status": "SUCCEEDED"})

    resp = admin_client.post("/api/payments", json={"action": "refund", "paymentId": _payment_id(app, oid), "amount": "25"})

    assert resp.status_code == 200
    assert resp.get_json()["refund"]["status"] == "processed"
    assert sent["url"] == "https://api.tabby.ai/api/v2/payments/tb_1/refunds"
    assert sent["json"] == {"amount": "25.00"}
    assert sent["headers"]["Authorization"] == "Bearer tabby_test_dummy"


def test_capture(app, admin_client, factory, stripe_calls):
    pending = _payment_id(app, _stripe_order(factory, status="PROCESSING"))
    done = _payment_id(app, _stripe_order(factory, status="SUCCEEDED", provider_payment_id="pi_2"))

    ok = admin_client.post("/api/payments", json={"action": "capture", "paymentId": pending})
    assert ok.status_code == 200
    assert ok.get_json()["payment"]["status"] == "SUCCEEDED"
    assert stripe_calls[0][1] == "https://api.stripe.com/v1/payment_intents/pi_1/capture"

    again = admin_client.post("/api/payments", json={"action": "capture", "paymentId": done})
    assert again.status_code == 400

    unknown = admin_client.post("/api/payments", json={"action": "void", "paymentId": done})
    assert unknown.get_json()["error"] == "Invalid action"


def test_list_payments_filters(admin_client, factory):
    _stripe_order(factory, provider_payment_id="pi_alpha")
    factory.order(email="cash@example.com", payment={"provider": "MANUAL", "status": "PENDING"})

    everything = admin_client.get("/api/payments").get_json()
    assert everything["pagination"]["total"] == 2

    pending = admin_client.get("/api/payments?status=pending").get_json()["payments"]
    assert [p["order"]["customerEmail"] for p in pending] == ["cash@example.com"]

    by_intent = admin_client.get("/api/payments?search=alpha").get_json()["payments"]
    assert [p["providerPaymentId"] for p in by_intent] == ["pi_alpha"]


def test_stats(admin_client, factory):
    factory.order(total="100.00", payment={"provider": "STRIPE", "status": "SUCCEEDED"})
    factory.order(total="50.00", payment={"provider": "STRIPE", "status": "FAILED"})
    factory.order(total="80.00", payment={
        "provider": "STRIPE", "status": "PARTIALLY_REFUNDED", "refunded_amount": Decimal("30.00"),
    })

    body = admin_client.get("/api/payments/stats").get_json()
    stats = body["stats"]

    assert stats["totalPayments"] == 3
    assert stats["failedPayments"] == 1
    assert stats["refundedPayments"] == 1
    assert stats["totalRevenue"] == 180.0
    assert stats["totalRefunded"] == 30.0
    assert stats["netRevenue"] == 150.0
    assert stats["successRate"] == 33.33
    assert len(body["monthlyRevenue"]) == 12
    assert body["monthlyRevenue"][0]["revenue"] == 180.0
    assert body["monthlyRevenue"][0]["transactions"] == 2


def test_payments_need_permission(make_team_client, factory):
    viewer = make_team_client({"payments": ("view",)})
    assert viewer.get("/api/payments").status_code == 200
    assert viewer.post("/api/payments", json={"action": "refund", "paymentId": 1, "amount": 1}).status_code == 403
