from storefront.extensions import db
from storefront.models import User


def test_list_customers_with_totals(admin_client, factory):
    buyer = factory.user("layla@example.com", role="CUSTOMER", name="Layla", phone="+971501112233")
    factory.user("omar@example.com", role="CUSTOMER", name="Omar")
    factory.order(user_id=buyer, total="120.00", status="DELIVERED")
    factory.order(user_id=buyer, total="80.00", status="NEW")
    factory.order(user_id=buyer, total="500.00", status="CANCELLED")

    body = admin_client.get("/api/customers").get_json()
    assert body["pagination"]["total"] == 2
    emails = [c["email"] for c in body["customers"]]
    assert "admin@example.com" not in emails

    layla = next(c for c in body["customers"] if c["email"] == "layla@example.com")
    assert layla["totalOrders"] == 3
    assert layla["totalSpent"] == 200.0
    assert len(layla["orders"]) == 3
    assert layla["lastOrderDate"] is not None

    found = admin_client.get("/api/customers?search=1112233").get_json()["customers"]
    assert [c["name"] for c in found] == ["Layla"]


def test_get_and_update_customer(admin_client, factory):
    cid = factory.user("layla@example.com", role="CUSTOMER", name="Layla")

    assert admin_client.get(f"/api/customers/{cid}").get_json()["totalOrders"] == 0

    resp = admin_client.patch(f"/api/customers/{cid}", json={
        "isActive": False, "emailVerified": True, "city": " Sharjah ", "phone": "",
    })
    body = resp.get_json()
    assert resp.status_code == 200
    assert body["isActive"] is False
    assert body["emailVerified"] is True
    assert body["city"] == "Sharjah"
    assert body["phone"] is None

    assert admin_client.patch(f"/api/customers/{cid}", json={"name": " "}).status_code == 400


def test_staff_accounts_are_not_customers(app, admin_client):
    with app.app_context():
        admin_id = User.query.filter_by(email="admin@example.com").one().id
    assert admin_client.get(f"/api/customers/{admin_id}").status_code == 404
    assert admin_client.delete(f"/api/customers/{admin_id}").status_code == 404


def test_delete_customer(app, admin_client, factory):
    with_orders = factory.user("layla@example.com", role="CUSTOMER")
    factory.order(user_id=with_orders)
    without = factory.user("omar@example.com", role="CUSTOMER")

    resp = admin_client.delete(f"/api/customers/{with_orders}")
    assert resp.get_json()["message"] == "Customer deactivated (has existing orders)"
    assert admin_client.delete(f"/api/customers/{without}").get_json()["message"] == "Customer deleted successfully"

    with app.app_context():
        assert db.session.get(User, with_orders).is_active is False
        assert db.session.get(User, without) is None


def test_customers_need_permission(make_team_client, factory):
    cid = factory.user("layla@example.com", role="CUSTOMER")
    viewer = make_team_client({"customers": ("view",)})
    assert viewer.get(f"/api/customers/{cid}").status_code == 200
    assert viewer.delete(f"/api/customers/{cid}").status_code == 403
