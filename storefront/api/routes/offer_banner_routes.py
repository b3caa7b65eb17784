from flask import Blueprint, jsonify

from storefront.api.utils.payload import clean_str, get_payload, has_any, iso, pick, to_bool, to_int
from storefront.auth.permissions import permission_required
from storefront.errors import NotFound
from storefront.extensions import db
from storefront.models import OfferBanner

api_offer_banner = Blueprint("api_offer_banner", __name__, url_prefix="/api/offer-banner")

TEXT_FIELDS = {
    "title_ar": ("titleAr", "title_ar"),
    "subtitle": ("subtitle",),
    "subtitle_ar": ("subtitleAr", "subtitle_ar"),
    "button_text": ("buttonText", "button_text"),
    "button_text_ar": ("buttonTextAr", "button_text_ar"),
    "button_link": ("buttonLink", "button_link"),
    "image_url": ("imageUrl", "image_url"),
}
STYLE_FIELDS = {
    "background_color": (("backgroundColor", "background_color"), "#ffffff"),
    "text_color": (("textColor", "text_color"), "#000000"),
    "button_color": (("buttonColor", "button_color"), "#000000"),
    "overlay_color": (("overlayColor", "overlay_color"), "rgba(0,0,0,0.3)"),
}


def _banner_dict(b: OfferBanner) -> dict:
    return {
        "id": b.id,
        "title": b.title,
        "titleAr": b.title_ar,
        "subtitle": b.subtitle,
        "subtitleAr": b.subtitle_ar,
        "buttonText": b.button_text,
        "buttonTextAr": b.button_text_ar,
        "buttonLink": b.button_link,
        "backgroundColor": b.background_color,
        "textColor": b.text_color,
        "buttonColor": b.button_color,
        "overlayColor": b.overlay_color,
        "overlayOpacity": b.overlay_opacity,
        "imageUrl": b.image_url,
        "isActive": bool(b.is_active),
        "createdAt": iso(b.created_at),
        "updatedAt": iso(b.updated_at),
    }


def _deactivate_others(banner: OfferBanner) -> None:
    q = OfferBanner.query.filter(OfferBanner.is_active.is_(True))
    if banner.id is not None:
        q = q.filter(OfferBanner.id != banner.id)
    for other in q.all():
        other.is_active = False


def _apply(b: OfferBanner, data: dict, creating: bool):
    """Returns an error message or None."""
    if creating or "title" in data:
        title = clean_str(data.get("title"))
        if not title:
            return "Title is required"
        b.title = title
    for attr, keys in TEXT_FIELDS.items():
        if creating or has_any(data, *keys):
            setattr(b, attr, clean_str(pick(data, *keys)))
    for attr, (keys, default) in STYLE_FIELDS.items():
        if creating or has_any(data, *keys):
            setattr(b, attr, clean_str(pick(data, *keys)) or default)
    if creating or has_any(data, "overlayOpacity", "overlay_opacity"):
        opacity = to_int(pick(data, "overlayOpacity", "overlay_opacity"), 30)
        if opacity is None or not 0 <= opacity <= 100:
            return "Overlay opacity must be between 0 and 100"
        b.overlay_opacity = opacity
    if has_any(data, "isActive", "is_active"):
        b.is_active = to_bool(pick(data, "isActive", "is_active"))
    elif creating:
        b.is_active = True
    return None


@api_offer_banner.get("")
def get_active_banner():
    b = (
        OfferBanner.query.filter(OfferBanner.is_active.is_(True))
        .order_by(OfferBanner.updated_at.desc(), OfferBanner.id.desc())
        .first()
    )
    if b is None:
        return jsonify({"error": "No active offer banner"}), 404
    return jsonify(_banner_dict(b)), 200


@api_offer_banner.get("/all")
@permission_required("content", "view")
def list_banners():
    banners = OfferBanner.query.order_by(OfferBanner.updated_at.desc(), OfferBanner.id.desc()).all()
    return jsonify([_banner_dict(b) for b in banners]), 200


@api_offer_banner.post("")
@permission_required("content", "create")
def create_banner():
    b = OfferBanner()
    err = _apply(b, get_payload(), creating=True)
    if err:
        return jsonify({"error": err}), 400
    if b.is_active:
        _deactivate_others(b)
    db.session.add(b)
    db.session.commit()
    return jsonify(_banner_dict(b)), 201


@api_offer_banner.put("/<int:banner_id>")
@permission_required("content", "edit")
def update_banner(banner_id: int):
    b = db.session.get(OfferBanner, banner_id)
    if b is None:
        raise NotFound("Offer banner not found")
    err = _apply(b, get_payload(), creating=False)
    if err:
        db.session.rollback()
        return jsonify({"error": err}), 400
    if b.is_active:
        _deactivate_others(b)
    db.session.commit()
    return jsonify(_banner_dict(b)), 200


@api_offer_banner.delete("/<int:banner_id>")
@permission_required("content", "delete")
def delete_banner(banner_id: int):
    b = db.session.get(OfferBanner, banner_id)
    if b is None:
        raise NotFound("Offer banner not found")
    db.session.delete(b)
    db.session.commit()
    return jsonify({"success": True}), 200
