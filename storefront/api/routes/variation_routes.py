from __future__ import annotations

from decimal import InvalidOperation

from flask import Blueprint, current_app, jsonify, request
import sqlalchemy as sa

from storefront.api.utils.payload import clean_str, get_payload, has_any, iso, num, opt_decimal, pick, to_bool, to_int
from storefront.auth.permissions import permission_required
from storefront.errors import NotFound, ServiceError
from storefront.extensions import db
from storefront.models import Product, ProductVariation, VariationBeans, VariationSize, VariationType
from storefront.models.product import DISCOUNT_TYPES
from storefront.services.sku import generate_sku
from storefront.services.variations import (
    ensure_lookups_exist,
    ensure_unique_sku,
    ensure_unique_variation,
    sku_in_use,
)

api_variations = Blueprint("api_variations", __name__, url_prefix="/api/variations")

LOOKUP_KINDS = "any(sizes, types, beans)"


# ---------------------------------------------------------------- serializers

def _size_dict(s: VariationSize) -> dict:
    return {
        "id": s.id,
        "name": s.name,
        "displayName": s.display_name,
        "value": s.value,
        "isActive": bool(s.is_active),
        "createdAt": iso(s.created_at),
        "updatedAt": iso(s.updated_at),
    }


def _named_dict(n) -> dict:
    return {
        "id": n.id,
        "name": n.name,
        "arabicName": n.arabic_name,
        "description": n.description,
        "isActive": bool(n.is_active),
        "createdAt": iso(n.created_at),
        "updatedAt": iso(n.updated_at),
    }


def _variation_dict(v: ProductVariation) -> dict:
    return {
        "id": v.id,
        "productId": v.product_id,
        "sizeId": v.size_id,
        "typeId": v.type_id,
        "beansId": v.beans_id,
        "size": _size_dict(v.size) if v.size else None,
        "type": _named_dict(v.type) if v.type else None,
        "beans": _named_dict(v.beans) if v.beans else None,
        "price": num(v.price),
        "discount": num(v.discount),
        "discountType": v.discount_type,
        "effectivePrice": num(v.effective_price),
        "sku": v.sku,
        "stockQuantity": v.stock_quantity,
        "isActive": bool(v.is_active),
        "imageUrl": v.image_url,
        "createdAt": iso(v.created_at),
        "updatedAt": iso(v.updated_at),
    }


LOOKUPS = {
    "sizes": (VariationSize, _size_dict, "size_id", "size"),
    "types": (VariationType, _named_dict, "type_id", "type"),
    "beans": (VariationBeans, _named_dict, "beans_id", "beans"),
}


# ---------------------------------------------------------------- lookups

def _apply_lookup(kind: str, obj, data: dict, creating: bool):
    """Validate and copy payload fields onto a lookup row. Returns an error string or None."""
    if kind == "sizes":
        name = clean_str(data.get("name")) if (creating or "name" in data) else obj.name
        display = (
            clean_str(pick(data, "displayName", "display_name"))
            if (creating or has_any(data, "displayName", "display_name"))
            else obj.display_name
        )
        raw_value = pick(data, "value") if (creating or "value" in data) else obj.value
        value = to_int(raw_value)
        if not name or not display or raw_value in (None, ""):
            return "Name, display name, and value are required"
        if value is None or value <= 0:
            return "Value must be a positive whole number of grams"
        obj.name, obj.display_name, obj.value = name, display, value
    else:
        name = clean_str(data.get("name")) if (creating or "name" in data) else obj.name
        if not name:
            return "Name is required"
        obj.name = name
        if creating or has_any(data, "arabicName", "arabic_name"):
            obj.arabic_name = clean_str(pick(data, "arabicName", "arabic_name"))
        if creating or "description" in data:
            obj.description = clean_str(data.get("description"))

    if has_any(data, "isActive", "is_active"):
        obj.is_active = to_bool(pick(data, "isActive", "is_active"))
    elif creating:
        obj.is_active = True
    return None


def _get_lookup(kind: str, item_id: int):
    model = LOOKUPS[kind][0]
    obj = db.session.get(model, item_id)
    if obj is None:
        raise NotFound(f"{LOOKUPS[kind][3].capitalize()} not found")
    return obj


@api_variations.get(f"/<{LOOKUP_KINDS}:kind>")
def list_lookups(kind: str):
    model, to_dict, _, _ = LOOKUPS[kind]
    q = model.query
    if to_bool(request.args.get("active")):
        q = q.filter(model.is_active.is_(True))
    order = model.value.asc() if model is VariationSize else model.name.asc()
    return jsonify([to_dict(o) for o in q.order_by(order, model.id.asc()).all()]), 200


@api_variations.post(f"/<{LOOKUP_KINDS}:kind>")
@permission_required("variations", "create")
def create_lookup(kind: str):
    model, to_dict, _, _ = LOOKUPS[kind]
    obj = model()
    err = _apply_lookup(kind, obj, get_payload(), creating=True)
    if err:
        return jsonify({"error": err}), 400
    db.session.add(obj)
    db.session.commit()
    return jsonify(to_dict(obj)), 201


@api_variations.get(f"/<{LOOKUP_KINDS}:kind>/<int:item_id>")
def get_lookup(kind: str, item_id: int):
    return jsonify(LOOKUPS[kind][1](_get_lookup(kind, item_id))), 200


@api_variations.put(f"/<{LOOKUP_KINDS}:kind>/<int:item_id>")
@permission_required("variations", "edit")
def update_lookup(kind: str, item_id: int):
    obj = _get_lookup(kind, item_id)
    err = _apply_lookup(kind, obj, get_payload(), creating=False)
    if err:
        db.session.rollback()
        return jsonify({"error": err}), 400
    db.session.commit()
    return jsonify(LOOKUPS[kind][1](obj)), 200


@api_variations.delete(f"/<{LOOKUP_KINDS}:kind>/<int:item_id>")
@permission_required("variations", "delete")
def delete_lookup(kind: str, item_id: int):
    obj = _get_lookup(kind, item_id)
    fk = getattr(ProductVariation, LOOKUPS[kind][2])
    if ProductVariation.query.filter(fk == obj.id).first():
        label = LOOKUPS[kind][3]
        return jsonify({"error": f"Cannot delete {label} that is used by product variations"}), 400
    db.session.delete(obj)
    db.session.commit()
    return jsonify({"success": True}), 200


# ---------------------------------------------------------------- product variations

def _get_variation(variation_id: int) -> ProductVariation:
    v = db.session.get(ProductVariation, variation_id)
    if v is None:
        raise NotFound("Product variation not found")
    return v


def _opt_id(data, *keys):
    raw = pick(data, *keys)
    if raw in (None, "", "null"):
        return None
    return to_int(raw)


def _generated_sku(product: Product, size_id, type_id, beans_id) -> str:
    size = db.session.get(VariationSize, size_id)
    vtype = db.session.get(VariationType, type_id) if type_id else None
    beans = db.session.get(VariationBeans, beans_id) if beans_id else None
    category_name = product.category.name if product.category else None
    while True:
        sku = generate_sku(
            product.name,
            category_name,
            size.display_name if size else "",
            vtype.name if vtype else None,
            beans.name if beans else None,
        )
        if not sku_in_use(sku):
            return sku


def _apply_pricing(v: ProductVariation, data: dict, creating: bool):
    if creating or "price" in data:
        try:
            price = opt_decimal(data.get("price"), "price")
        except InvalidOperation:
            raise ServiceError("Price must be a number")
        if price is None or price < 0:
            raise ServiceError("Price must be a non-negative number")
        v.price = price
    if creating or "discount" in data:
        try:
            v.discount = opt_decimal(data.get("discount"), "discount")
        except InvalidOperation:
            raise ServiceError("Discount must be a number")
    if creating or has_any(data, "discountType", "discount_type"):
        dtype = clean_str(pick(data, "discountType", "discount_type"))
        if dtype and dtype not in DISCOUNT_TYPES:
            raise ServiceError(f"Invalid discount type '{dtype}'")
        v.discount_type = dtype
    if creating or has_any(data, "stockQuantity", "stock_quantity"):
        stock = to_int(pick(data, "stockQuantity", "stock_quantity"), 0)
        if stock is None or stock < 0:
            raise ServiceError("Stock quantity cannot be negative")
        v.stock_quantity = stock
    if has_any(data, "isActive", "is_active"):
        v.is_active = to_bool(pick(data, "isActive", "is_active"))
    if creating or has_any(data, "imageUrl", "image_url"):
        v.image_url = clean_str(pick(data, "imageUrl", "image_url"))


@api_variations.get("/products")
def list_product_variations():
    product_id = to_int(request.args.get("productId"))
    if product_id is None:
        return jsonify({"error": "Product ID is required"}), 400

    q = (
        ProductVariation.query.filter(ProductVariation.product_id == product_id)
        .join(VariationSize, ProductVariation.size_id == VariationSize.id)
        .outerjoin(VariationType, ProductVariation.type_id == VariationType.id)
    )
    if to_bool(request.args.get("active")):
        q = q.filter(ProductVariation.is_active.is_(True))
    items = q.order_by(VariationSize.value.asc(), VariationType.name.asc(), ProductVariation.id.asc()).all()
    return jsonify([_variation_dict(v) for v in items]), 200


@api_variations.post("/products")
@permission_required("variations", "create")
def create_product_variation():
    data = get_payload()
    product_id = _opt_id(data, "productId", "product_id")
    size_id = _opt_id(data, "sizeId", "size_id")
    if product_id is None or size_id is None or data.get("price") in (None, ""):
        return jsonify({"error": "Product ID, size ID, and price are required"}), 400

    product = db.session.get(Product, product_id)
    if product is None:
        return jsonify({"error": "Product not found"}), 404

    type_id = _opt_id(data, "typeId", "type_id")
    beans_id = _opt_id(data, "beansId", "beans_id")
    ensure_lookups_exist(size_id, type_id, beans_id)
    ensure_unique_variation(product.id, size_id, type_id, beans_id)

    sku = clean_str(data.get("sku"))
    ensure_unique_sku(sku)

    v = ProductVariation(product_id=product.id, size_id=size_id, type_id=type_id, beans_id=beans_id, is_active=True)
    _apply_pricing(v, data, creating=True)
    v.sku = sku or _generated_sku(product, size_id, type_id, beans_id)

    db.session.add(v)
    db.session.commit()
    current_app.logger.info("Variation %s (%s) added to product %s", v.id, v.sku, product.id)
    return jsonify(_variation_dict(v)), 201


@api_variations.get("/products/<int:variation_id>")
def get_product_variation(variation_id: int):
    return jsonify(_variation_dict(_get_variation(variation_id))), 200


@api_variations.put("/products/<int:variation_id>")
@permission_required("variations", "edit")
def update_product_variation(variation_id: int):
    v = _get_variation(variation_id)
    data = get_payload()

    size_id = _opt_id(data, "sizeId", "size_id") if has_any(data, "sizeId", "size_id") else v.size_id
    type_id = _opt_id(data, "typeId", "type_id") if has_any(data, "typeId", "type_id") else v.type_id
    beans_id = _opt_id(data, "beansId", "beans_id") if has_any(data, "beansId", "beans_id") else v.beans_id
    if size_id is None:
        return jsonify({"error": "Size ID is required"}), 400

    ensure_lookups_exist(size_id, type_id, beans_id)
    ensure_unique_variation(v.product_id, size_id, type_id, beans_id, exclude_id=v.id)

    if "sku" in data:
        sku = clean_str(data.get("sku"))
        ensure_unique_sku(sku, exclude_id=v.id)
        v.sku = sku or v.sku

    _apply_pricing(v, data, creating=False)
    v.size_id, v.type_id, v.beans_id = size_id, type_id, beans_id

    db.session.commit()
    db.session.refresh(v)
    return jsonify(_variation_dict(v)), 200


@api_variations.delete("/products/<int:variation_id>")
@permission_required("variations", "delete")
def delete_product_variation(variation_id: int):
    v = _get_variation(variation_id)
    db.session.delete(v)
    db.session.commit()
    return jsonify({"success": True}), 200


@api_variations.get("/search")
def search_lookups():
    query = (request.args.get("query") or request.args.get("q") or "").strip()
    if not query:
        return jsonify({"beans": [], "types": [], "sizes": []}), 200

    like = f"%{query}%"
    beans = (
        VariationBeans.query.filter(
            VariationBeans.is_active.is_(True),
            sa.or_(VariationBeans.name.ilike(like), VariationBeans.arabic_name.ilike(like)),
        ).order_by(VariationBeans.name.asc()).limit(5).all()
    )
    types = (
        VariationType.query.filter(
            VariationType.is_active.is_(True),
            sa.or_(VariationType.name.ilike(like), VariationType.arabic_name.ilike(like)),
        ).order_by(VariationType.name.asc()).limit(5).all()
    )
    sizes = (
        VariationSize.query.filter(
            VariationSize.is_active.is_(True),
            sa.or_(VariationSize.name.ilike(like), VariationSize.display_name.ilike(like)),
        ).order_by(VariationSize.value.asc()).limit(5).all()
    )
    return jsonify({
        "beans": [_named_dict(b) for b in beans],
        "types": [_named_dict(t) for t in types],
        "sizes": [_size_dict(s) for s in sizes],
    }), 200
