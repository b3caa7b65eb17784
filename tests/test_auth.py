"""Staff and customer login, session and profile endpoints."""
from storefront.extensions import db
from storefront.models import User

from conftest import PASSWORD, login


def test_staff_login_returns_user_with_permissions(client, factory):
    factory.user("team@example.com", role="TEAM", permissions={"orders": ("edit",)})

    resp = client.post("/api/auth/login", json={"email": "TEAM@example.com", "password": PASSWORD})

    assert resp.status_code == 200
    user = resp.get_json()["user"]
    assert user["role"] == "TEAM"
    assert "password_hash" not in user
    perms = {p["module"]: p for p in user["permissions"]}
    assert perms["orders"]["canEdit"] is True
    assert perms["orders"]["canView"] is True
    assert user["lastLoginAt"] is not None


def test_staff_login_errors(client, factory):
    factory.user("admin@example.com")
    factory.user("off@example.com", is_active=False)
    factory.user("buyer@example.com", role="CUSTOMER")

    missing = client.post("/api/auth/login", json={"email": "admin@example.com"})
    assert missing.status_code == 400

    wrong = client.post("/api/auth/login", json={"email": "admin@example.com", "password": "nope"})
    assert wrong.status_code == 401
    assert wrong.get_json()["error"] == "Invalid email or password"

    unknown = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})
    assert unknown.status_code == 401

    inactive = client.post("/api/auth/login", json={"email": "off@example.com", "password": PASSWORD})
    assert inactive.status_code == 403
    assert inactive.get_json()["error"] == "Account is deactivated"

    customer = client.post("/api/auth/login", json={"email": "buyer@example.com", "password": PASSWORD})
    assert customer.status_code == 403
    assert customer.get_json()["error"] == "Access denied"


def test_session_and_logout(client, factory):
    factory.user("admin@example.com")

    assert client.get("/api/auth/session").get_json() == {"authenticated": False, "user": None}

    login(client, "admin@example.com")
    session = client.get("/api/auth/session").get_json()
    assert session["authenticated"] is True
    assert session["user"]["email"] == "admin@example.com"

    assert client.post("/api/auth/logout").get_json() == {"success": True}
    assert client.get("/api/auth/session").get_json()["authenticated"] is False


def test_customer_login_rejects_staff(client, factory):
    factory.user("admin@example.com")
    resp = client.post("/api/customer/login", json={"email": "admin@example.com", "password": PASSWORD})
    assert resp.status_code == 403


def test_customer_sees_only_own_orders(app, factory, customer_client):
    with app.app_context():
        me = User.query.filter_by(email="customer@example.com").first().id
    other = factory.user("other@example.com", role="CUSTOMER")
    factory.order(email="customer@example.com", user_id=me, total="30.00")
    factory.order(email="customer@example.com", user_id=me, total="45.00")
    factory.order(email="other@example.com", user_id=other, total="99.00")

    resp = customer_client.get("/api/customer/orders")

    assert resp.status_code == 200
    orders = resp.get_json()["orders"]
    assert sorted(o["total"] for o in orders) == [30.0, 45.0]
    assert all("items" in o for o in orders)


def test_customer_endpoints_require_customer_role(client, admin_client):
    assert client.get("/api/customer/profile").status_code == 401
    assert admin_client.get("/api/customer/profile").status_code == 403


def test_customer_profile_update_and_password_change(app, client, customer_client):
    resp = customer_client.patch("/api/customer/profile", json={"name": "Sara", "city": "Sharjah"})
    assert resp.status_code == 200
    assert resp.get_json()["user"]["city"] == "Sharjah"

    bad = customer_client.patch("/api/customer/profile", json={"newPassword": "another-pass", "currentPassword": "x"})
    assert bad.status_code == 400
    assert bad.get_json()["error"] == "Current password is incorrect"

    short = customer_client.patch("/api/customer/profile", json={"newPassword": "short", "currentPassword": PASSWORD})
    assert short.status_code == 400

    ok = customer_client.patch(
        "/api/customer/profile", json={"newPassword": "another-pass", "currentPassword": PASSWORD}
    )
    assert ok.status_code == 200

    login(client, "customer@example.com", password="another-pass", path="/api/customer/login")
    with app.app_context():
        user = db.session.execute(db.select(User).filter_by(email="customer@example.com")).scalar_one()
        assert user.name == "Sara"
        assert user.is_new_customer is False


def test_login_with_non_string_credentials(client, factory):
    factory.user("admin@example.com")

    staff = client.post("/api/auth/login", json={"email": 12345, "password": 12345})
    assert staff.status_code == 401
    customer = client.post("/api/customer/login", json={"email": ["a"], "password": {"x": 1}})
    assert customer.status_code == 401
