"""Forgotten password links and customer self-registration."""
import re
import time

from itsdangerous import TimestampSigner

from conftest import PASSWORD, login
from storefront.extensions import db, mail
from storefront.models import User

FORGOT_MESSAGE = "If an account with that email exists, we have sent a password reset link."


def _request_link(client, email, path="/api/auth/forgot-password"):
    with mail.record_messages() as outbox:
        resp = client.post(path, json={"email": email})
    assert resp.status_code == 200
    assert resp.get_json() == {"success": True, "message": FORGOT_MESSAGE}
    return outbox


def _token(message):
    return re.search(r"token=(\S+)", message.body).group(1)


def test_staff_reset_link_changes_password_once(app, client, factory):
    factory.user("admin@example.com", name="Owner")

    outbox = _request_link(client, "ADMIN@example.com")
    assert len(outbox) == 1
    assert outbox[0].recipients == ["admin@example.com"]
    assert "http://localhost:3000/admin/reset-password?token=" in outbox[0].body
    token = _token(outbox[0])

    resp = client.post("/api/auth/reset-password", json={"token": token, "password": "brand-new-pass"})
    assert resp.status_code == 200
    assert resp.get_json()["success"] is True

    login(app.test_client(), "admin@example.com", password="brand-new-pass")
    old = app.test_client().post("/api/auth/login", json={"email": "admin@example.com", "password": PASSWORD})
    assert old.status_code == 401

    reused = client.post("/api/auth/reset-password", json={"token": token, "password": "another-pass-9"})
    assert reused.status_code == 400
    assert reused.get_json()["error"] == "Invalid reset link"


def test_unknown_or_ineligible_accounts_get_the_same_answer(client, factory):
    factory.user("buyer@example.com", role="CUSTOMER")
    factory.user("gone@example.com", is_active=False)

    assert _request_link(client, "ghost@example.com") == []
    assert _request_link(client, "buyer@example.com") == []
    assert _request_link(client, "gone@example.com") == []

    missing = client.post("/api/auth/forgot-password", json={})
    assert missing.status_code == 400
    assert missing.get_json()["error"] == "Email is required"


def test_customer_reset_clears_new_customer_flag(app, client, factory):
    uid = factory.user("buyer@example.com", role="CUSTOMER", is_new_customer=True)

    outbox = _request_link(client, "buyer@example.com", path="/api/customer/forgot-password")
    assert "http://localhost:3000/reset-password?token=" in outbox[0].body
    token = _token(outbox[0])

    # a customer link does not work on the staff endpoint
    staff = client.post("/api/auth/reset-password", json={"token": token, "password": "brand-new-pass"})
    assert staff.status_code == 400

    resp = client.post("/api/customer/reset-password", json={
        "token": token, "password": "brand-new-pass", "confirmPassword": "brand-new-pass",
    })
    assert resp.status_code == 200
    login(app.test_client(), "buyer@example.com", password="brand-new-pass", path="/api/customer/login")
    with app.app_context():
        assert db.session.get(User, uid).is_new_customer is False


def test_reset_validation(client, factory):
    factory.user("admin@example.com")
    token = _token(_request_link(client, "admin@example.com")[0])

    no_token = client.post("/api/auth/reset-password", json={"password": "brand-new-pass"})
    assert no_token.get_json()["error"] == "Reset token is required"

    short = client.post("/api/auth/reset-password", json={"token": token, "password": "short"})
    assert short.get_json()["error"] == "Password must be at least 8 characters"

    mismatch = client.post("/api/auth/reset-password", json={
        "token": token, "password": "brand-new-pass", "confirmPassword": "brand-new-pas",
    })
    assert mismatch.get_json()["error"] == "Passwords do not match"

    tampered = client.post("/api/auth/reset-password", json={"token": token[:-2] + "xx", "password": "brand-new-pass"})
    assert tampered.status_code == 400
    assert tampered.get_json()["error"] == "Invalid reset link"


def test_expired_link_is_rejected(client, factory, monkeypatch):
    factory.user("admin@example.com")
    monkeypatch.setattr(TimestampSigner, "get_timestamp", lambda self: int(time.time()) - 7200)
    token = _token(_request_link(client, "admin@example.com")[0])
    monkeypatch.undo()

    resp = client.post("/api/auth/reset-password", json={"token": token, "password": "brand-new-pass"})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Reset link has expired"


# --- registration --------------------------------------------------------

def test_customer_can_register_and_is_logged_in(app, client):
    with mail.record_messages() as outbox:
        resp = client.post("/api/customer/register", json={
            "name": "Omar", "email": "omar@example.com", "password": "coffee-lover-1", "phone": "+971501112222",
        })

    assert resp.status_code == 201
    user = resp.get_json()["user"]
    assert (user["role"], user["isNewCustomer"], user["phone"]) == ("CUSTOMER", False, "+971501112222")
    assert "permissions" not in user
    assert [m.recipients for m in outbox] == [["omar@example.com"]]

    assert client.get("/api/customer/profile").get_json()["user"]["email"] == "omar@example.com"
    staff = app.test_client().post("/api/auth/login", json={"email": "omar@example.com", "password": "coffee-lover-1"})
    assert staff.status_code == 403


def test_registration_validation(client, factory):
    factory.user("taken@example.com", role="CUSTOMER")

    def register(**body):
        return client.post("/api/customer/register", json=body)

    assert register(email="a@example.com", password="coffee-lover-1").status_code == 400
    assert register(name="A", email="not-an-email", password="coffee-lover-1").get_json()["error"] == (
        "Invalid email address"
    )
    assert register(name="A", email="a@example.com", password="short").status_code == 400
    dup = register(name="A", email="TAKEN@example.com", password="coffee-lover-1")
    assert dup.status_code == 400
    assert dup.get_json()["error"] == "An account with this email already exists"
