from datetime import datetime
from decimal import InvalidOperation

from flask import Blueprint, jsonify, request
import sqlalchemy as sa

from storefront.api.utils.payload import (
    clean_str,
    get_payload,
    has_any,
    iso,
    num,
    opt_decimal,
    parse_datetime,
    pick,
    to_bool,
    to_int,
)
from storefront.auth.permissions import permission_required
from storefront.errors import NotFound, ServiceError
from storefront.extensions import db
from storefront.models import Order, Product, Promotion
from storefront.models.promotion import PROMOTION_TYPES
from storefront.services.promotions import evaluate_promotion

api_promotions = Blueprint("api_promotions", __name__, url_prefix="/api/promotions")


def _promotion_dict(p: Promotion) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "description": p.description,
        "code": p.code,
        "type": p.type,
        "value": num(p.value),
        "minOrderAmount": num(p.min_order_amount),
        "maxUses": p.max_uses,
        "currentUses": p.current_uses,
        "isActive": bool(p.is_active),
        "isRunning": p.is_running(),
        "startDate": iso(p.start_date),
        "endDate": iso(p.end_date),
        "productIds": [prod.id for prod in p.products],
        "createdAt": iso(p.created_at),
        "updatedAt": iso(p.updated_at),
    }


def _get_promotion(promotion_id: int) -> Promotion:
    p = db.session.get(Promotion, promotion_id)
    if p is None:
        raise NotFound("Promotion not found")
    return p


def _snake(key: str) -> str:
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in key)


def _apply(p: Promotion, data: dict, creating: bool) -> None:
    if creating:
        missing = [k for k in ("name", "type", "startDate", "endDate") if not pick(data, k, _snake(k))]
        if missing:
            raise ServiceError(f"Missing required fields: {', '.join(missing)}")

    if creating or "name" in data:
        name = clean_str(data.get("name"))
        if not name:
            raise ServiceError("Name is required")
        p.name = name
    if creating or "type" in data:
        promo_type = (clean_str(data.get("type")) or "").upper()
        if promo_type not in PROMOTION_TYPES:
            raise ServiceError(f"Type must be one of {', '.join(PROMOTION_TYPES)}")
        p.type = promo_type

    if creating or "value" in data:
        try:
            value = opt_decimal(data.get("value"), "value")
        except InvalidOperation:
            raise ServiceError("Value must be a number")
        if value is None and p.type != "FREE_SHIPPING":
            raise ServiceError("Value is required for this promotion type")
        if value is not None and value < 0:
            raise ServiceError("Value cannot be negative")
        p.value = value or 0
    # checked on the stored value too, a PUT may change only the type
    if p.type == "PERCENTAGE" and (p.value or 0) > 100:
        raise ServiceError("Percentage cannot exceed 100")

    if creating or "code" in data:
        code = clean_str(data.get("code"))
        if code:
            code = code.upper()
            clash = Promotion.query.filter(sa.func.upper(Promotion.code) == code)
            if p.id is not None:
                clash = clash.filter(Promotion.id != p.id)
            if clash.first():
                raise ServiceError("Promotion code already exists")
        p.code = code

    for key, attr in (("startDate", "start_date"), ("endDate", "end_date")):
        if creating or has_any(data, key, attr):
            parsed = parse_datetime(pick(data, key, attr))
            if parsed is None:
                raise ServiceError(f"Invalid {key}")
            setattr(p, attr, parsed)
    if p.end_date < p.start_date:
        raise ServiceError("End date must be after start date")

    if creating or has_any(data, "minOrderAmount", "min_order_amount"):
        try:
            p.min_order_amount = opt_decimal(pick(data, "minOrderAmount", "min_order_amount"), "minOrderAmount")
        except InvalidOperation:
            raise ServiceError("Minimum order amount must be a number")
    if creating or has_any(data, "maxUses", "max_uses"):
        raw = pick(data, "maxUses", "max_uses")
        max_uses = to_int(raw) if raw not in (None, "") else None
        if raw not in (None, "") and (max_uses is None or max_uses < 1):
            raise ServiceError("Max uses must be a positive integer")
        p.max_uses = max_uses
    if creating or "description" in data:
        p.description = clean_str(data.get("description"))
    if has_any(data, "isActive", "is_active"):
        p.is_active = to_bool(pick(data, "isActive", "is_active"))
    elif creating:
        p.is_active = True

    if has_any(data, "productIds", "product_ids"):
        raw_ids = pick(data, "productIds", "product_ids") or []
        if not isinstance(raw_ids, list):
            raise ServiceError("'productIds' must be a list")
        ids = [to_int(i) for i in raw_ids]
        ids = [i for i in ids if i is not None]
        products = Product.query.filter(Product.id.in_(ids)).all() if ids else []
        if len(products) != len(set(ids)):
            raise ServiceError("Some products were not found")
        p.products = products


@api_promotions.get("")
@permission_required("promotions", "view")
def list_promotions():
    q = Promotion.query
    if to_bool(request.args.get("active")):
        now = datetime.utcnow()
        q = q.filter(Promotion.is_active.is_(True), Promotion.start_date <= now, Promotion.end_date >= now)
    promotions = q.order_by(Promotion.created_at.desc(), Promotion.id.desc()).all()
    return jsonify([_promotion_dict(p) for p in promotions]), 200


@api_promotions.post("")
@permission_required("promotions", "create")
def create_promotion():
    p = Promotion(current_uses=0)
    _apply(p, get_payload(), creating=True)
    db.session.add(p)
    db.session.commit()
    return jsonify(_promotion_dict(p)), 201


@api_promotions.get("/<int:promotion_id>")
@permission_required("promotions", "view")
def get_promotion(promotion_id: int):
    return jsonify(_promotion_dict(_get_promotion(promotion_id))), 200


@api_promotions.put("/<int:promotion_id>")
@permission_required("promotions", "edit")
def update_promotion(promotion_id: int):
    p = _get_promotion(promotion_id)
    _apply(p, get_payload(), creating=False)
    db.session.commit()
    return jsonify(_promotion_dict(p)), 200


@api_promotions.delete("/<int:promotion_id>")
@permission_required("promotions", "delete")
def delete_promotion(promotion_id: int):
    p = _get_promotion(promotion_id)
    Order.query.filter(Order.promotion_id == p.id).update({Order.promotion_id: None}, synchronize_session=False)
    db.session.delete(p)
    db.session.commit()
    return jsonify({"success": True}), 200


@api_promotions.post("/validate")
def validate_code():
    data = get_payload()
    code = clean_str(data.get("code"))
    if not code:
        return jsonify({"error": "Promotion code is required"}), 400
    try:
        total = opt_decimal(pick(data, "orderTotal", "order_total"), "orderTotal")
    except InvalidOperation:
        total = None
    if total is None or total < 0:
        return jsonify({"error": "Valid order total is required"}), 400

    quote = evaluate_promotion(code, total)
    promo = quote["promotion"]
    return jsonify({
        "valid": True,
        "promotion": {"id": promo.id, "name": promo.name, "code": promo.code, "type": promo.type, "value": num(promo.value)},
        "discount": num(quote["discount"]),
        "freeShipping": quote["freeShipping"],
    }), 200
