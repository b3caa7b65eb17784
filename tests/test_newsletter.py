import re

from storefront.extensions import db, mail
from storefront.models import NewsletterSubscriber


def _subscribe(client, email, **extra):
    with mail.record_messages() as outbox:
        resp = client.post("/api/newsletter", json={"email": email, **extra},
                           headers={"User-Agent": "pytest", "X-Forwarded-For": "10.0.0.7, 10.0.0.1"})
    return resp, outbox


def _unsubscribe_token(message):
    return re.search(r"/newsletter/unsubscribe\?token=(\w+)", message.body).group(1)


def test_subscribe_stores_lowercase_email_and_sends_welcome(app, client):
    resp, outbox = _subscribe(client, "Fan@Example.com", source="footer")

    assert resp.status_code == 201
    body = resp.get_json()
    assert body["message"] == "Successfully subscribed to newsletter!"
    assert body["subscriber"]["email"] == "fan@example.com"
    assert [m.recipients for m in outbox] == [["fan@example.com"]]

    with app.app_context():
        row = db.session.get(NewsletterSubscriber, body["subscriber"]["id"])
        assert (row.status, row.source, row.ip_address, row.user_agent) == ("ACTIVE", "footer", "10.0.0.7", "pytest")
        assert row.unsubscribe_token == _unsubscribe_token(outbox[0])
        assert row.confirmed_at is not None


def test_subscribe_rejects_bad_email_and_duplicates(client):
    for bad in ("", "nope", 42):
        resp, outbox = _subscribe(client, bad)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Valid email address is required"
        assert outbox == []

    assert _subscribe(client, "fan@example.com")[0].status_code == 201
    dup, outbox = _subscribe(client, "FAN@example.com")
    assert dup.status_code == 409
    assert outbox == []


def test_unsubscribe_then_resubscribe(app, client):
    first, outbox = _subscribe(client, "fan@example.com")
    token = _unsubscribe_token(outbox[0])

    resp = client.post("/api/newsletter/unsubscribe", json={"token": token})
    assert resp.status_code == 200
    assert resp.get_json()["success"] is True
    with app.app_context():
        assert NewsletterSubscriber.query.one().status == "UNSUBSCRIBED"

    again, outbox = _subscribe(client, "fan@example.com")
    assert again.status_code == 200
    assert again.get_json()["message"] == "Successfully resubscribed to newsletter!"
    assert again.get_json()["subscriber"]["id"] == first.get_json()["subscriber"]["id"]
    new_token = _unsubscribe_token(outbox[0])
    assert new_token != token

    # the old link is dead once a new one was issued
    assert client.post("/api/newsletter/unsubscribe", json={"token": token}).status_code == 404
    with app.app_context():
        assert NewsletterSubscriber.query.one().status == "ACTIVE"


def test_unsubscribe_validation(client):
    missing = client.post("/api/newsletter/unsubscribe", json={})
    assert missing.status_code == 400
    assert missing.get_json()["error"] == "Unsubscribe token is required"

    unknown = client.post("/api/newsletter/unsubscribe", json={"token": "abc123"})
    assert unknown.status_code == 404
    assert unknown.get_json()["error"] == "Subscription not found"


def test_staff_list_with_stats_and_filters(client, admin_client):
    for email in ("a@example.com", "b@example.com", "c@other.org"):
        _subscribe(client, email)
    ids = {s["email"]: s["id"] for s in admin_client.get("/api/newsletter").get_json()["subscribers"]}
    admin_client.patch(f"/api/newsletter/{ids['b@example.com']}", json={"status": "bounced"})

    body = admin_client.get("/api/newsletter").get_json()
    assert body["pagination"]["total"] == 3
    assert body["stats"] == {"active": 2, "unsubscribed": 0, "bounced": 1, "complained": 0}

    active = admin_client.get("/api/newsletter?status=active").get_json()["subscribers"]
    assert sorted(s["email"] for s in active) == ["a@example.com", "c@other.org"]

    found = admin_client.get("/api/newsletter?search=other").get_json()["subscribers"]
    assert [s["email"] for s in found] == ["c@other.org"]

    paged = admin_client.get("/api/newsletter?limit=2&page=2").get_json()
    assert len(paged["subscribers"]) == 1
    assert paged["pagination"]["pages"] == 2


def test_staff_update_and_delete(client, admin_client):
    sid = _subscribe(client, "fan@example.com")[0].get_json()["subscriber"]["id"]

    bad = admin_client.patch(f"/api/newsletter/{sid}", json={"status": "GONE"})
    assert bad.status_code == 400
    assert bad.get_json()["error"] == "Invalid status"

    resp = admin_client.patch(f"/api/newsletter/{sid}", json={"status": "complained", "notes": "  spam report "})
    assert resp.status_code == 200
    sub = resp.get_json()["subscriber"]
    assert (sub["status"], sub["notes"]) == ("COMPLAINED", "spam report")
    assert admin_client.get(f"/api/newsletter/{sid}").get_json()["status"] == "COMPLAINED"

    assert admin_client.delete(f"/api/newsletter/{sid}").status_code == 200
    gone = admin_client.get(f"/api/newsletter/{sid}")
    assert gone.status_code == 404
    assert gone.get_json()["error"] == "Subscriber not found"


def test_subscriber_admin_needs_permission(client, customer_client, make_team_client):
    sid = _subscribe(client, "fan@example.com")[0].get_json()["subscriber"]["id"]

    assert client.get("/api/newsletter").status_code == 401
    assert customer_client.get("/api/newsletter").status_code == 403

    viewer = make_team_client({"newsletter": ("view",)})
    assert viewer.get("/api/newsletter").status_code == 200
    assert viewer.get(f"/api/newsletter/{sid}").status_code == 200
    assert viewer.patch(f"/api/newsletter/{sid}", json={"status": "BOUNCED"}).status_code == 403
    assert viewer.delete(f"/api/newsletter/{sid}").status_code == 403
