from storefront.extensions import db
from storefront.models import Permission, User


def _create(admin_client, **overrides):
    body = {
        "email": "new.staff@example.com",
        "password": "Staff-pass-1",
        "name": "New Staff",
        "permissions": [
            {"module": "orders", "canEdit": True},
            {"module": "products", "canView": True},
        ],
    }
    body.update(overrides)
    return admin_client.post("/api/users", json=body)


def test_create_user_defaults_to_team_and_normalises_permissions(admin_client):
    resp = _create(admin_client)

    assert resp.status_code == 201
    body = resp.get_json()
    assert body["user"]["role"] == "TEAM"
    perms = {p["module"]: p for p in body["permissions"]}
    assert set(perms) == {"orders", "products"}
    # edit implies view
    assert perms["orders"]["canView"] is True
    assert perms["products"]["canEdit"] is False


def test_create_user_validation(admin_client):
    assert admin_client.post("/api/users", json={"email": "x@example.com"}).status_code == 400
    assert _create(admin_client, email="not-an-email").status_code == 400
    assert _create(admin_client, role="OWNER").status_code == 400

    unknown_module = _create(admin_client, permissions=[{"module": "warehouse", "canView": True}])
    assert unknown_module.status_code == 400

    assert _create(admin_client).status_code == 201
    dup = _create(admin_client, email="NEW.STAFF@example.com")
    assert dup.status_code == 400
    assert dup.get_json()["error"] == "User with this email already exists"


def test_only_admin_manages_users(manager_client):
    assert manager_client.get("/api/users").status_code == 403
    assert _create(manager_client).status_code == 403


def test_list_users_excludes_customers_and_counts_orders(admin_client, factory):
    team_id = factory.user("t@example.com", role="TEAM")
    factory.user("buyer@example.com", role="CUSTOMER")
    factory.order(user_id=team_id)

    users = admin_client.get("/api/users").get_json()["users"]

    emails = {u["email"]: u for u in users}
    assert "buyer@example.com" not in emails
    assert emails["t@example.com"]["orderCount"] == 1

    teams = admin_client.get("/api/users?role=team").get_json()["users"]
    assert [u["email"] for u in teams] == ["t@example.com"]


def test_update_syncs_permissions(app, admin_client):
    user = _create(admin_client).get_json()["user"]
    products_perm = next(p for p in user["permissions"] if p["module"] == "products")

    resp = admin_client.put(f"/api/users/{user['id']}", json={
        "name": "Renamed",
        "permissions": [
            {"id": products_perm["id"], "module": "products", "canView": True, "canCreate": True},
            {"module": "contacts", "canView": True},
        ],
    })

    assert resp.status_code == 200
    perms = {p["module"]: p for p in resp.get_json()["user"]["permissions"]}
    assert set(perms) == {"products", "contacts"}
    assert perms["products"]["id"] == products_perm["id"]
    assert perms["products"]["canCreate"] is True
    with app.app_context():
        assert Permission.query.filter_by(user_id=user["id"], module="orders").first() is None


def test_permission_rows_are_matched_by_module_not_id(app, admin_client):
    user = _create(admin_client).get_json()["user"]
    ids = {p["module"]: p["id"] for p in user["permissions"]}

    # the orders row id sent with the products module
    resp = admin_client.put(f"/api/users/{user['id']}", json={
        "permissions": [{"id": ids["orders"], "module": "products", "canEdit": True}],
    })

    assert resp.status_code == 200
    perms = resp.get_json()["user"]["permissions"]
    assert [(p["module"], p["id"], p["canEdit"]) for p in perms] == [("products", ids["products"], True)]
    with app.app_context():
        assert Permission.query.filter_by(user_id=user["id"]).count() == 1


def test_update_rejects_email_of_another_user(admin_client):
    user = _create(admin_client).get_json()["user"]
    resp = admin_client.put(f"/api/users/{user['id']}", json={"email": "admin@example.com"})
    assert resp.status_code == 400


def test_update_rehashes_password(app, admin_client):
    user = _create(admin_client).get_json()["user"]
    admin_client.put(f"/api/users/{user['id']}", json={"password": "Changed-pass-2"})

    with app.app_context():
        row = db.session.get(User, user["id"])
        assert row.check_password("Changed-pass-2")
        assert not row.check_password("Staff-pass-1")


def test_delete_user_rules(app, admin_client, factory):
    with app.app_context():
        admin_id = User.query.filter_by(email="admin@example.com").first().id
    self_delete = admin_client.delete(f"/api/users/{admin_id}")
    assert self_delete.status_code == 400

    busy = factory.user("busy@example.com", role="TEAM")
    factory.order(user_id=busy)
    resp = admin_client.delete(f"/api/users/{busy}")
    assert resp.get_json()["deactivated"] is True

    idle = factory.user("idle@example.com", role="TEAM", permissions={"orders": ("view",)})
    resp = admin_client.delete(f"/api/users/{idle}")
    assert resp.get_json()["deactivated"] is False

    with app.app_context():
        assert db.session.get(User, busy).is_active is False
        assert db.session.get(User, idle) is None
        assert Permission.query.filter_by(user_id=idle).count() == 0


def test_team_permissions_are_enforced(make_team_client, factory):
    order_id = factory.order()
    viewer = make_team_client({"orders": ("view",)})

    assert viewer.get("/api/orders").status_code == 200
    assert viewer.get(f"/api/orders/{order_id}").status_code == 200
    assert viewer.patch(f"/api/orders/{order_id}", json={"status": "SHIPPED"}).status_code == 403
    assert viewer.get("/api/payments").status_code == 403


def test_customer_is_forbidden_from_staff_modules(customer_client):
    assert customer_client.get("/api/orders").status_code == 403
    assert customer_client.get("/api/customers").status_code == 403
