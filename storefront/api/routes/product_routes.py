from __future__ import annotations

from decimal import InvalidOperation

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user
import sqlalchemy as sa
from sqlalchemy.orm import selectinload

from storefront.api.routes.variation_routes import _variation_dict
from storefront.api.utils.payload import (
    clean_str,
    get_payload,
    has_any,
    iso,
    num,
    opt_decimal,
    pick,
    to_bool,
    to_int,
)
from storefront.auth.permissions import roles_required
from storefront.errors import NotFound, ServiceError
from storefront.extensions import db
from storefront.models import Category, OrderItem, Product, ProductImage
from storefront.models.product import DISCOUNT_TYPES
from storefront.services.slugs import resolve_slug
from storefront.services.variations import build_inline_variations, parse_inline_variations

api_products = Blueprint("api_products", __name__, url_prefix="/api/products")


def _is_staff() -> bool:
    return current_user.is_authenticated and current_user.is_staff


def _image_dict(img: ProductImage) -> dict:
    return {"id": img.id, "url": img.url, "alt": img.alt, "position": img.position}


def _product_dict(p: Product, lang: str | None = None, with_details: bool = False) -> dict:
    arabic = lang == "ar"
    data = {
        "id": p.id,
        "name": p.name_ar if arabic and p.name_ar else p.name,
        "nameEn": p.name,
        "nameAr": p.name_ar,
        "description": p.description_ar if arabic and p.description_ar else p.description,
        "descriptionAr": p.description_ar,
        "slug": p.slug,
        "sku": p.sku,
        "price": num(p.price),
        "discount": num(p.discount),
        "discountType": p.discount_type,
        "effectivePrice": num(p.effective_price),
        "imageUrl": p.image_url,
        "origin": p.origin,
        "inStock": p.is_in_stock,
        "stockQuantity": p.stock_quantity,
        "weight": num(p.weight),
        "dimensions": p.dimensions,
        "isActive": bool(p.is_active),
        "categoryId": p.category_id,
        "category": (
            {"id": p.category.id, "name": p.category.display_name(lang), "slug": p.category.slug}
            if p.category else None
        ),
        "createdAt": iso(p.created_at),
        "updatedAt": iso(p.updated_at),
    }
    if with_details:
        data["images"] = [_image_dict(i) for i in p.images]
        variations = [v for v in p.variations if v.is_active or _is_staff()]
        variations.sort(key=lambda v: (v.size.value if v.size else 0, v.type.name if v.type else ""))
        data["variations"] = [_variation_dict(v) for v in variations]
    return data


def _parse_images(raw) -> list[ProductImage]:
    if not isinstance(raw, list):
        raise ServiceError("'images' must be a list")
    out = []
    for item in raw:
        if isinstance(item, str):
            url, alt = item.strip(), None
        elif isinstance(item, dict):
            url, alt = clean_str(item.get("url")) or "", clean_str(item.get("alt"))
        else:
            continue
        if url:
            out.append(ProductImage(url=url, alt=alt, position=len(out)))
    return out


def _apply_fields(p: Product, data: dict, creating: bool) -> None:
    """Copy and validate scalar fields; raises ServiceError on bad input."""
    if creating or "price" in data:
        try:
            price = opt_decimal(data.get("price"), "price")
        except InvalidOperation:
            raise ServiceError("Price must be a valid number")
        if price is None or price < 0:
            raise ServiceError("Price must be a non-negative number")
        p.price = price

    if has_any(data, "categoryId", "category_id"):
        category_id = to_int(pick(data, "categoryId", "category_id"))
        if category_id is None or db.session.get(Category, category_id) is None:
            raise ServiceError("Category not found")
        p.category_id = category_id

    if "discount" in data:
        try:
            discount = opt_decimal(data.get("discount"), "discount")
        except InvalidOperation:
            raise ServiceError("Discount must be a valid number")
        if discount is not None and discount < 0:
            raise ServiceError("Discount cannot be negative")
        p.discount = discount
    if has_any(data, "discountType", "discount_type"):
        dtype = clean_str(pick(data, "discountType", "discount_type"))
        if dtype and dtype not in DISCOUNT_TYPES:
            raise ServiceError(f"Invalid discount type '{dtype}'")
        p.discount_type = dtype

    if has_any(data, "stockQuantity", "stock_quantity"):
        stock = to_int(pick(data, "stockQuantity", "stock_quantity"))
        if stock is None or stock < 0:
            raise ServiceError("Stock quantity must be a non-negative integer")
        p.stock_quantity = stock
    if has_any(data, "inStock", "in_stock"):
        p.in_stock = to_bool(pick(data, "inStock", "in_stock"))
    if has_any(data, "isActive", "is_active"):
        p.is_active = to_bool(pick(data, "isActive", "is_active"))
    if "weight" in data:
        try:
            p.weight = opt_decimal(data.get("weight"), "weight")
        except InvalidOperation:
            raise ServiceError("Weight must be a valid number")

    text_fields = {
        "name_ar": ("nameAr", "name_ar"),
        "description": ("description",),
        "description_ar": ("descriptionAr", "description_ar"),
        "sku": ("sku",),
        "image_url": ("imageUrl", "image_url", "image"),
        "origin": ("origin",),
        "dimensions": ("dimensions",),
    }
    for attr, keys in text_fields.items():
        if has_any(data, *keys):
            setattr(p, attr, clean_str(pick(data, *keys)))


def _load_product(ident: str) -> Product | None:
    q = Product.query.options(
        selectinload(Product.images),
        selectinload(Product.category),
        selectinload(Product.variations),
    )
    if ident.isdigit():
        return q.filter(Product.id == int(ident)).first()
    return q.filter(Product.slug == ident.strip()).first()


@api_products.get("")
def list_products():
    lang = request.args.get("lang")
    q = Product.query.options(selectinload(Product.category))

    if not (to_bool(request.args.get("all")) and _is_staff()):
        q = q.filter(Product.is_active.is_(True))

    category_id = to_int(request.args.get("categoryId"))
    if category_id is not None:
        q = q.filter(Product.category_id == category_id)

    category_name = (request.args.get("category") or "").strip()
    if category_name:
        q = q.join(Category, Product.category_id == Category.id).filter(
            sa.func.lower(Category.name) == category_name.lower()
        )

    in_stock = (request.args.get("inStock") or "").strip().lower()
    if in_stock == "true":
        q = q.filter(Product.in_stock.is_(True), Product.stock_quantity > 0)
    elif in_stock == "false":
        q = q.filter(sa.or_(Product.in_stock.is_(False), Product.stock_quantity <= 0))

    search = (request.args.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        q = q.filter(sa.or_(
            Product.name.ilike(like),
            Product.name_ar.ilike(like),
            Product.description.ilike(like),
            Product.origin.ilike(like),
            Product.sku.ilike(like),
            Product.category.has(Category.name.ilike(like)),
        ))

    q = q.order_by(Product.updated_at.desc(), Product.id.desc())
    limit = to_int(request.args.get("limit"))
    if limit and limit > 0:
        q = q.limit(limit)
    return jsonify([_product_dict(p, lang) for p in q.all()]), 200


@api_products.get("/<string:ident>")
def get_product(ident: str):
    p = _load_product(ident)
    if p is None or (not p.is_active and not _is_staff()):
        return jsonify({"error": "Product not found"}), 404
    return jsonify(_product_dict(p, request.args.get("lang"), with_details=True)), 200


@api_products.post("")
@roles_required("ADMIN", "MANAGER")
def create_product():
    data = get_payload()
    name = clean_str(data.get("name")) or ""
    if not name or data.get("price") in (None, "") or not has_any(data, "categoryId", "category_id"):
        return jsonify({"error": "Name, price, and category are required"}), 400

    slug, err = resolve_slug(Product, data.get("slug"), name, fallback="product")
    if err:
        return jsonify({"error": err}), 400

    p = Product(name=name, slug=slug, in_stock=True, is_active=True, stock_quantity=0)
    try:
        _apply_fields(p, data, creating=True)
        drafts = parse_inline_variations(data.get("variations"))
        if "images" in data:
            p.images = _parse_images(data.get("images"))
        db.session.add(p)
        db.session.flush()
        build_inline_variations(p, drafts)
        db.session.commit()
    except ServiceError:
        db.session.rollback()
        raise
    except Exception:
        db.session.rollback()
        current_app.logger.exception("create_product failed")
        return jsonify({"error": "Failed to create product"}), 500

    current_app.logger.info("Product %s created (slug=%s, %d variations)", p.id, p.slug, len(p.variations))
    return jsonify(_product_dict(p, with_details=True)), 201


@api_products.route("/<int:product_id>", methods=["PUT", "PATCH"])
@roles_required("ADMIN", "MANAGER")
def update_product(product_id: int):
    p = db.session.get(Product, product_id)
    if p is None:
        raise NotFound("Product not found")
    data = get_payload()

    if "name" in data:
        name = clean_str(data.get("name")) or ""
        if not name:
            return jsonify({"error": "Invalid 'name'"}), 400
        p.name = name

    if clean_str(data.get("slug")):
        slug, err = resolve_slug(Product, data.get("slug"), p.name, exclude_id=p.id, fallback="product")
        if err:
            return jsonify({"error": err}), 400
        p.slug = slug

    _apply_fields(p, data, creating=False)
    if "images" in data:
        p.images = _parse_images(data.get("images"))

    db.session.commit()
    return jsonify(_product_dict(p, with_details=True)), 200


@api_products.delete("/<int:product_id>")
@roles_required("ADMIN", "MANAGER")
def delete_product(product_id: int):
    p = db.session.get(Product, product_id)
    if p is None:
        raise NotFound("Product not found")

    if OrderItem.query.filter(OrderItem.product_id == p.id).first():
        return jsonify({
            "error": "Cannot delete product that has been ordered. Consider deactivating it instead."
        }), 400

    db.session.delete(p)
    db.session.commit()
    current_app.logger.info("Product %s deleted", product_id)
    return jsonify({"success": True}), 200
