import secrets
from datetime import datetime

from flask import Blueprint, current_app, jsonify, request
import sqlalchemy as sa

from storefront.api.utils.email import send_email
from storefront.api.utils.payload import clean_str, get_payload, iso, page_args, paginate
from storefront.auth.permissions import permission_required
from storefront.errors import NotFound
from storefront.extensions import db
from storefront.models import NewsletterSubscriber
from storefront.models.newsletter import SUBSCRIBER_STATUSES
from storefront.services.orders import EMAIL_RE

api_newsletter = Blueprint("api_newsletter", __name__, url_prefix="/api/newsletter")


def _subscriber_dict(s: NewsletterSubscriber) -> dict:
    return {
        "id": s.id,
        "email": s.email,
        "status": s.status,
        "source": s.source,
        "ipAddress": s.ip_address,
        "userAgent": s.user_agent,
        "confirmedAt": iso(s.confirmed_at),
        "notes": s.notes,
        "createdAt": iso(s.created_at),
        "updatedAt": iso(s.updated_at),
    }


def _get_subscriber(subscriber_id: int) -> NewsletterSubscriber:
    s = db.session.get(NewsletterSubscriber, subscriber_id)
    if s is None:
        raise NotFound("Subscriber not found")
    return s


def _client_ip() -> str | None:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()[:64]
    return request.headers.get("X-Real-IP") or request.remote_addr


def _send_welcome(s: NewsletterSubscriber) -> None:
    store = current_app.config.get("STORE_NAME") or "Our store"
    base = (current_app.config.get("STORE_URL") or "").rstrip("/")
    try:
        send_email(
            subject=f"You are subscribed to {store} news",
            recipients=[s.email],
            body="\n".join([
                "Thanks for subscribing! We will let you know about new roasts and offers.",
                "",
                f"Unsubscribe at any time: {base}/newsletter/unsubscribe?token={s.unsubscribe_token}",
                "",
                store,
            ]),
        )
    except Exception:
        current_app.logger.exception("Newsletter welcome e-mail to %s failed", s.email)


@api_newsletter.post("")
def subscribe():
    data = get_payload()
    email = (clean_str(data.get("email")) or "").lower()
    if not EMAIL_RE.match(email):
        return jsonify({"error": "Valid email address is required"}), 400

    s = NewsletterSubscriber.query.filter(NewsletterSubscriber.email == email).first()
    if s is not None and s.status == "ACTIVE":
        return jsonify({"error": "Email is already subscribed to our newsletter"}), 409

    created = s is None
    if created:
        s = NewsletterSubscriber(email=email, source=clean_str(data.get("source")) or "website")
        db.session.add(s)
    s.status = "ACTIVE"
    s.ip_address = _client_ip()
    s.user_agent = (request.headers.get("User-Agent") or "")[:500] or None
    s.unsubscribe_token = secrets.token_hex(32)
    s.confirmed_at = datetime.utcnow()
    db.session.commit()

    _send_welcome(s)
    current_app.logger.info("Newsletter %s: %s", "subscribe" if created else "resubscribe", email)
    return jsonify({
        "message": "Successfully subscribed to newsletter!" if created else "Successfully resubscribed to newsletter!",
        "subscriber": {"id": s.id, "email": s.email},
    }), 201 if created else 200


@api_newsletter.post("/unsubscribe")
def unsubscribe():
    token = clean_str(get_payload().get("token"))
    if not token:
        return jsonify({"error": "Unsubscribe token is required"}), 400
    s = NewsletterSubscriber.query.filter(NewsletterSubscriber.unsubscribe_token == token).first()
    if s is None:
        return jsonify({"error": "Subscription not found"}), 404

    s.status = "UNSUBSCRIBED"
    db.session.commit()
    return jsonify({"success": True, "message": "You have been unsubscribed."}), 200


@api_newsletter.get("")
@permission_required("newsletter", "view")
def list_subscribers():
    q = NewsletterSubscriber.query
    status = (request.args.get("status") or "").strip().upper()
    if status and status != "ALL":
        q = q.filter(NewsletterSubscriber.status == status)
    search = (request.args.get("search") or "").strip()
    if search:
        q = q.filter(NewsletterSubscriber.email.ilike(f"%{search}%"))

    page, limit = page_args(default_limit=10)
    subscribers, pagination = paginate(
        q.order_by(NewsletterSubscriber.created_at.desc(), NewsletterSubscriber.id.desc()), page, limit
    )

    counts = dict(
        db.session.query(NewsletterSubscriber.status, sa.func.count(NewsletterSubscriber.id))
        .group_by(NewsletterSubscriber.status)
        .all()
    )
    return jsonify({
        "subscribers": [_subscriber_dict(s) for s in subscribers],
        "pagination": pagination,
        "stats": {st.lower(): counts.get(st, 0) for st in SUBSCRIBER_STATUSES},
    }), 200


@api_newsletter.get("/<int:subscriber_id>")
@permission_required("newsletter", "view")
def get_subscriber(subscriber_id: int):
    return jsonify(_subscriber_dict(_get_subscriber(subscriber_id))), 200


@api_newsletter.patch("/<int:subscriber_id>")
@permission_required("newsletter", "edit")
def update_subscriber(subscriber_id: int):
    s = _get_subscriber(subscriber_id)
    data = get_payload()

    if "status" in data:
        status = (clean_str(data.get("status")) or "").upper()
        if status not in SUBSCRIBER_STATUSES:
            return jsonify({"error": "Invalid status"}), 400
        s.status = status
    if "notes" in data:
        s.notes = clean_str(data.get("notes"))

    db.session.commit()
    return jsonify({"message": "Subscriber updated successfully", "subscriber": _subscriber_dict(s)}), 200


@api_newsletter.delete("/<int:subscriber_id>")
@permission_required("newsletter", "delete")
def delete_subscriber(subscriber_id: int):
    s = _get_subscriber(subscriber_id)
    db.session.delete(s)
    db.session.commit()
    return jsonify({"message": "Subscriber deleted successfully"}), 200
