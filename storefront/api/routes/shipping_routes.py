from decimal import InvalidOperation

from flask import Blueprint, jsonify

from storefront.api.utils.payload import clean_str, get_payload, has_any, iso, num, opt_decimal, pick, to_bool, to_int
from storefront.auth.permissions import permission_required
from storefront.errors import NotFound, ServiceError
from storefront.extensions import db
from storefront.models import ShippingRule
from storefront.models.shipping_rule import SHIPPING_RULE_TYPES
from storefront.services.shipping import calculate_shipping

api_shipping = Blueprint("api_shipping", __name__, url_prefix="/api/shipping")


def _rule_dict(r: ShippingRule) -> dict:
    return {
        "id": r.id,
        "name": r.name,
        "nameAr": r.name_ar,
        "description": r.description,
        "type": r.type,
        "cost": num(r.cost),
        "minOrderAmount": num(r.min_order_amount),
        "maxOrderAmount": num(r.max_order_amount),
        "isActive": bool(r.is_active),
        "priority": r.priority,
        "createdAt": iso(r.created_at),
        "updatedAt": iso(r.updated_at),
    }


def _money_field(data, *keys):
    try:
        value = opt_decimal(pick(data, *keys), keys[0])
    except InvalidOperation:
        raise ServiceError(f"'{keys[0]}' must be a number")
    if value is not None and value < 0:
        raise ServiceError(f"'{keys[0]}' cannot be negative")
    return value


def _apply(r: ShippingRule, data: dict, creating: bool) -> None:
    if creating or "name" in data:
        name = clean_str(data.get("name"))
        if not name:
            raise ServiceError("Name is required")
        r.name = name
    if creating or "type" in data:
        rule_type = (clean_str(data.get("type")) or "").upper()
        if rule_type not in SHIPPING_RULE_TYPES:
            raise ServiceError(f"Type must be one of {', '.join(SHIPPING_RULE_TYPES)}")
        r.type = rule_type
    if creating or "cost" in data:
        r.cost = _money_field(data, "cost") or 0
    if creating or has_any(data, "minOrderAmount", "min_order_amount"):
        r.min_order_amount = _money_field(data, "minOrderAmount", "min_order_amount")
    if creating or has_any(data, "maxOrderAmount", "max_order_amount"):
        r.max_order_amount = _money_field(data, "maxOrderAmount", "max_order_amount")
    if r.min_order_amount is not None and r.max_order_amount is not None and r.max_order_amount < r.min_order_amount:
        raise ServiceError("Maximum order amount cannot be below the minimum")
    if r.type == "FREE":
        r.cost = 0
    if creating or has_any(data, "nameAr", "name_ar"):
        r.name_ar = clean_str(pick(data, "nameAr", "name_ar"))
    if creating or "description" in data:
        r.description = clean_str(data.get("description"))
    if creating or "priority" in data:
        r.priority = to_int(data.get("priority"), 0) or 0
    if has_any(data, "isActive", "is_active"):
        r.is_active = to_bool(pick(data, "isActive", "is_active"))
    elif creating:
        r.is_active = True


@api_shipping.get("")
@permission_required("settings", "view")
def list_rules():
    rules = ShippingRule.query.order_by(ShippingRule.priority.asc(), ShippingRule.id.asc()).all()
    return jsonify([_rule_dict(r) for r in rules]), 200


@api_shipping.post("")
@permission_required("settings", "create")
def create_rule():
    r = ShippingRule()
    _apply(r, get_payload(), creating=True)
    db.session.add(r)
    db.session.commit()
    return jsonify(_rule_dict(r)), 201


@api_shipping.put("/<int:rule_id>")
@permission_required("settings", "edit")
def update_rule(rule_id: int):
    r = db.session.get(ShippingRule, rule_id)
    if r is None:
        raise NotFound("Shipping rule not found")
    _apply(r, get_payload(), creating=False)
    db.session.commit()
    return jsonify(_rule_dict(r)), 200


@api_shipping.delete("/<int:rule_id>")
@permission_required("settings", "delete")
def delete_rule(rule_id: int):
    r = db.session.get(ShippingRule, rule_id)
    if r is None:
        raise NotFound("Shipping rule not found")
    db.session.delete(r)
    db.session.commit()
    return jsonify({"success": True}), 200


@api_shipping.post("/calculate")
def calculate():
    data = get_payload()
    try:
        total = opt_decimal(pick(data, "orderTotal", "order_total"), "orderTotal")
    except InvalidOperation:
        total = None
    if total is None or total < 0:
        return jsonify({"error": "Valid order total is required"}), 400

    result = calculate_shipping(total)
    rule = result["rule"]
    body = {
        "shippingCost": num(result["cost"]),
        "shippingRule": _rule_dict(rule) if rule else None,
    }
    if "freeShippingThreshold" in result:
        body["freeShippingThreshold"] = num(result["freeShippingThreshold"])
        body["amountToFreeShipping"] = num(result["amountToFreeShipping"])
    return jsonify(body), 200
