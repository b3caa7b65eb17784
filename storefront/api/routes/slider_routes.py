from flask import Blueprint, jsonify, request

from storefront.api.utils.payload import clean_str, get_payload, has_any, iso, pick, to_bool, to_int
from storefront.auth.permissions import permission_required
from storefront.errors import NotFound
from storefront.extensions import db
from storefront.models import Slider

api_sliders = Blueprint("api_sliders", __name__, url_prefix="/api/sliders")

# payload key(s) -> column, for the optional fields
OPTIONAL_FIELDS = {
    "title_ar": ("titleAr", "title_ar"),
    "subtitle_ar": ("subtitleAr", "subtitle_ar"),
    "button_text_ar": ("buttonTextAr", "button_text_ar"),
    "background_color": ("backgroundColor", "background_color"),
    "text_animation": ("textAnimation", "text_animation"),
    "image_animation": ("imageAnimation", "image_animation"),
    "transition_speed": ("transitionSpeed", "transition_speed"),
}
DEFAULTS = {
    "background_color": "#f4f6f8",
    "text_animation": "fade-up",
    "image_animation": "fade-in",
    "transition_speed": "medium",
}


def _slider_dict(s: Slider) -> dict:
    return {
        "id": s.id,
        "title": s.title,
        "titleAr": s.title_ar,
        "subtitle": s.subtitle,
        "subtitleAr": s.subtitle_ar,
        "buttonText": s.button_text,
        "buttonTextAr": s.button_text_ar,
        "buttonLink": s.button_link,
        "backgroundColor": s.background_color,
        "imageUrl": s.image_url,
        "order": s.order,
        "isActive": bool(s.is_active),
        "textAnimation": s.text_animation,
        "imageAnimation": s.image_animation,
        "transitionSpeed": s.transition_speed,
        "createdAt": iso(s.created_at),
        "updatedAt": iso(s.updated_at),
    }


def _ordered(active_only: bool = False) -> list[dict]:
    q = Slider.query
    if active_only:
        q = q.filter(Slider.is_active.is_(True))
    return [_slider_dict(s) for s in q.order_by(Slider.order.asc(), Slider.id.asc()).all()]


def _required(data) -> dict | None:
    values = {
        "title": clean_str(data.get("title")),
        "subtitle": clean_str(data.get("subtitle")),
        "button_text": clean_str(pick(data, "buttonText", "button_text")),
        "button_link": clean_str(pick(data, "buttonLink", "button_link")),
    }
    return values if all(values.values()) else None


@api_sliders.get("")
def list_sliders():
    return jsonify(_ordered(active_only=to_bool(request.args.get("active")))), 200


@api_sliders.post("")
@permission_required("content", "create")
def create_slider():
    data = get_payload()
    values = _required(data)
    image_url = clean_str(pick(data, "imageUrl", "image_url"))
    if values is None or not image_url:
        return jsonify({"error": "Title, subtitle, button text, button link and image are required"}), 400

    order = to_int(data.get("order"))
    if order is None:
        last = Slider.query.order_by(Slider.order.desc()).first()
        order = (last.order + 1) if last else 0

    s = Slider(image_url=image_url, order=order, is_active=to_bool(pick(data, "isActive", "is_active"), True), **values)
    for attr, keys in OPTIONAL_FIELDS.items():
        setattr(s, attr, clean_str(pick(data, *keys)) or DEFAULTS.get(attr))
    db.session.add(s)
    db.session.commit()
    return jsonify({"slider": _slider_dict(s), "sliders": _ordered()}), 201


@api_sliders.put("/reorder")
@permission_required("content", "edit")
def reorder_sliders():
    ids = get_payload().get("ids")
    if not isinstance(ids, list) or not ids:
        return jsonify({"error": "'ids' must be a non-empty list"}), 400
    ids = [to_int(i) for i in ids]
    if None in ids or len(set(ids)) != len(ids):
        return jsonify({"error": "'ids' must be unique slider ids"}), 400

    sliders = {s.id: s for s in Slider.query.filter(Slider.id.in_(ids)).all()}
    unknown = [str(i) for i in ids if i not in sliders]
    if unknown:
        return jsonify({"error": f"Unknown slider ids: {', '.join(unknown)}"}), 400

    for position, slider_id in enumerate(ids):
        sliders[slider_id].order = position
    db.session.commit()
    return jsonify({"sliders": _ordered()}), 200


@api_sliders.put("/<int:slider_id>")
@permission_required("content", "edit")
def update_slider(slider_id: int):
    s = db.session.get(Slider, slider_id)
    if s is None:
        raise NotFound("Slider not found")
    data = get_payload()

    values = _required(data)
    if values is None:
        return jsonify({"error": "Title, subtitle, button text and button link are required"}), 400
    for attr, value in values.items():
        setattr(s, attr, value)

    image_url = clean_str(pick(data, "imageUrl", "image_url"))
    if image_url:
        s.image_url = image_url
    for attr, keys in OPTIONAL_FIELDS.items():
        if has_any(data, *keys):
            value = clean_str(pick(data, *keys))
            setattr(s, attr, value if value or attr not in DEFAULTS else getattr(s, attr))
    order = to_int(data.get("order"))
    if order is not None:
        s.order = order
    if has_any(data, "isActive", "is_active"):
        s.is_active = to_bool(pick(data, "isActive", "is_active"))

    db.session.commit()
    return jsonify({"slider": _slider_dict(s), "sliders": _ordered()}), 200


@api_sliders.delete("/<int:slider_id>")
@permission_required("content", "delete")
def delete_slider(slider_id: int):
    s = db.session.get(Slider, slider_id)
    if s is None:
        raise NotFound("Slider not found")
    db.session.delete(s)
    db.session.commit()
    return jsonify({"success": True, "sliders": _ordered()}), 200
