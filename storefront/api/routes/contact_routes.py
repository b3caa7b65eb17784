from flask import Blueprint, current_app, jsonify, request
import sqlalchemy as sa

from storefront.api.utils.email import notify_owner
from storefront.api.utils.payload import clean_str, get_payload, iso, page_args, paginate
from storefront.auth.permissions import permission_required
from storefront.errors import NotFound
from storefront.extensions import db
from storefront.models import Contact
from storefront.models.contact import CONTACT_STATUSES
from storefront.services.orders import EMAIL_RE

api_contacts = Blueprint("api_contacts", __name__, url_prefix="/api/contacts")


def _contact_dict(c: Contact) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "email": c.email,
        "phone": c.phone,
        "subject": c.subject,
        "message": c.message,
        "status": c.status,
        "notes": c.notes,
        "createdAt": iso(c.created_at),
        "updatedAt": iso(c.updated_at),
    }


def _get_contact(contact_id: int) -> Contact:
    c = db.session.get(Contact, contact_id)
    if c is None:
        raise NotFound("Contact not found")
    return c


@api_contacts.post("")
def create_contact():
    data = get_payload()
    name = clean_str(data.get("name"))
    email = clean_str(data.get("email"))
    message = clean_str(data.get("message"))
    if not (name and email and message):
        return jsonify({"error": "Name, email, and message are required"}), 400
    if not EMAIL_RE.match(email):
        return jsonify({"error": "Invalid email address"}), 400

    c = Contact(
        name=name,
        email=email,
        phone=clean_str(data.get("phone")),
        subject=clean_str(data.get("subject")),
        message=message,
        status="NEW",
    )
    db.session.add(c)
    db.session.commit()

    notify_owner(
        "CONTACT_NOTIFY_EMAIL",
        f"New contact message: {c.subject or 'no subject'}",
        "\n".join([
            f"From: {c.name} <{c.email}>",
            f"Phone: {c.phone or '-'}",
            "",
            c.message,
        ]),
        reply_to=c.email,
    )
    current_app.logger.info("Contact message #%s received from %s", c.id, c.email)
    return jsonify({"success": True, "contact": _contact_dict(c)}), 201


@api_contacts.get("")
@permission_required("contacts", "view")
def list_contacts():
    q = Contact.query
    status = (request.args.get("status") or "").strip().upper()
    if status and status != "ALL":
        q = q.filter(Contact.status == status)

    search = (request.args.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        q = q.filter(sa.or_(
            Contact.name.ilike(like),
            Contact.email.ilike(like),
            Contact.subject.ilike(like),
            Contact.message.ilike(like),
        ))

    page, limit = page_args(default_limit=20)
    contacts, pagination = paginate(q.order_by(Contact.created_at.desc(), Contact.id.desc()), page, limit)

    counts = dict(db.session.query(Contact.status, sa.func.count(Contact.id)).group_by(Contact.status).all())
    status_counts = {s: counts.get(s, 0) for s in CONTACT_STATUSES}
    status_counts["ALL"] = sum(status_counts.values())

    return jsonify({
        "contacts": [_contact_dict(c) for c in contacts],
        "pagination": pagination,
        "statusCounts": status_counts,
    }), 200


@api_contacts.get("/<int:contact_id>")
@permission_required("contacts", "view")
def get_contact(contact_id: int):
    return jsonify(_contact_dict(_get_contact(contact_id))), 200


@api_contacts.patch("/<int:contact_id>")
@permission_required("contacts", "edit")
def update_contact(contact_id: int):
    c = _get_contact(contact_id)
    data = get_payload()

    if "status" in data:
        status = (clean_str(data.get("status")) or "").upper()
        if status not in CONTACT_STATUSES:
            return jsonify({"error": f"Invalid status. Allowed: {', '.join(CONTACT_STATUSES)}"}), 400
        c.status = status
    if "notes" in data:
        c.notes = clean_str(data.get("notes"))

    db.session.commit()
    return jsonify(_contact_dict(c)), 200


@api_contacts.delete("/<int:contact_id>")
@permission_required("contacts", "delete")
def delete_contact(contact_id: int):
    c = _get_contact(contact_id)
    db.session.delete(c)
    db.session.commit()
    return jsonify({"success": True}), 200
