from storefront.extensions import mail


def test_public_contact_form_notifies_owner(client):
    with mail.record_messages() as outbox:
        resp = client.post("/api/contacts", json={
            "name": "Jane",
            "email": "jane@example.com",
            "subject": "Wholesale",
            "message": "Do you supply cafes?",
        })

    assert resp.status_code == 201
    assert resp.get_json()["contact"]["status"] == "NEW"
    assert len(outbox) == 1
    note = outbox[0]
    assert note.recipients == ["owner@example.com"]
    assert note.reply_to == "jane@example.com"
    assert note.subject == "New contact message: Wholesale"
    assert "Do you supply cafes?" in note.body


def test_contact_form_validation(client):
    missing = client.post("/api/contacts", json={"name": "Jane", "email": "jane@example.com"})
    assert missing.status_code == 400
    assert missing.get_json()["error"] == "Name, email, and message are required"

    bad_email = client.post("/api/contacts", json={"name": "Jane", "email": "jane", "message": "hi"})
    assert bad_email.status_code == 400


def test_list_with_status_counts(admin_client, factory):
    factory.contact("Jane", status="NEW")
    factory.contact("Sam", email="sam@example.com", status="NEW", subject="Order delay")
    factory.contact("Ali", email="ali@example.com", status="RESOLVED")

    body = admin_client.get("/api/contacts").get_json()
    counts = body["statusCounts"]
    assert counts["NEW"] == 2
    assert counts["RESOLVED"] == 1
    assert counts["ARCHIVED"] == 0
    assert counts["ALL"] == 3

    resolved = admin_client.get("/api/contacts?status=resolved").get_json()["contacts"]
    assert [c["name"] for c in resolved] == ["Ali"]
    delayed = admin_client.get("/api/contacts?search=delay").get_json()["contacts"]
    assert [c["name"] for c in delayed] == ["Sam"]


def test_update_and_delete_contact(admin_client, factory):
    cid = factory.contact()

    bad = admin_client.patch(f"/api/contacts/{cid}", json={"status": "SPAM"})
    assert bad.status_code == 400

    resp = admin_client.patch(f"/api/contacts/{cid}", json={"status": "replied", "notes": "Sent price list"})
    assert resp.get_json()["status"] == "REPLIED"
    assert resp.get_json()["notes"] == "Sent price list"

    assert admin_client.delete(f"/api/contacts/{cid}").status_code == 200
    assert admin_client.get(f"/api/contacts/{cid}").status_code == 404


def test_inbox_is_staff_only(client, customer_client):
    assert client.get("/api/contacts").status_code == 401
    assert customer_client.get("/api/contacts").status_code == 403
