from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user

from storefront.api.routes.product_routes import _product_dict
from storefront.api.utils.payload import clean_str, get_payload, has_any, iso, pick, to_bool, to_int
from storefront.auth.permissions import roles_required
from storefront.errors import NotFound
from storefront.extensions import db
from storefront.models import Category, Product
from storefront.services.slugs import resolve_slug

api_categories = Blueprint("api_categories", __name__, url_prefix="/api/categories")


def _is_staff() -> bool:
    return current_user.is_authenticated and current_user.is_staff


def _cat_to_dict(c: Category, lang: str | None = None, with_children: bool = False, active_only: bool = True) -> dict:
    data = {
        "id": c.id,
        "name": c.display_name(lang),
        "nameEn": c.name,
        "nameAr": c.name_ar,
        "description": (c.description_ar if lang == "ar" and c.description_ar else c.description),
        "descriptionAr": c.description_ar,
        "slug": c.slug,
        "imageUrl": c.image_url,
        "isActive": bool(c.is_active),
        "parentId": c.parent_id,
        "productCount": c.products.count(),
        "createdAt": iso(c.created_at),
        "updatedAt": iso(c.updated_at),
    }
    if with_children:
        children = [ch for ch in c.children if ch.is_active or not active_only]
        data["children"] = [_cat_to_dict(ch, lang) for ch in children]
    return data


def _get_category(category_id: int) -> Category:
    c = db.session.get(Category, category_id)
    if c is None:
        raise NotFound("Category not found")
    return c


def _resolve_parent(data, category: Category | None = None):
    """Returns (parent_id, error)."""
    raw = pick(data, "parentId", "parent_id")
    if raw in (None, "", "null"):
        return None, None
    parent_id = to_int(raw)
    if parent_id is None:
        return None, "Invalid 'parentId'"
    parent = db.session.get(Category, parent_id)
    if parent is None:
        return None, "Parent category not found"
    if category is not None:
        if parent.id == category.id:
            return None, "A category cannot be its own parent"
        if parent.is_descendant_of(category.id):
            return None, "A category cannot be moved under its own subcategory"
    return parent.id, None


@api_categories.get("")
def list_categories():
    lang = request.args.get("lang")
    show_all = to_bool(request.args.get("all")) and _is_staff()

    q = Category.query
    if show_all:
        items = q.order_by(Category.name.asc()).all()
        return jsonify([_cat_to_dict(c, lang, with_children=True, active_only=False) for c in items]), 200

    items = (
        q.filter(Category.parent_id.is_(None), Category.is_active.is_(True))
        .order_by(Category.name.asc())
        .all()
    )
    return jsonify([_cat_to_dict(c, lang, with_children=True) for c in items]), 200


@api_categories.get("/<int:category_id>")
def get_category(category_id: int):
    c = _get_category(category_id)
    if not c.is_active and not _is_staff():
        raise NotFound("Category not found")
    lang = request.args.get("lang")
    data = _cat_to_dict(c, lang, with_children=True, active_only=not _is_staff())
    data["parent"] = _cat_to_dict(c.parent, lang) if c.parent else None
    return jsonify(data), 200


@api_categories.get("/slug/<string:slug>")
def get_category_by_slug(slug: str):
    c = Category.query.filter(Category.slug == str(slug).strip()).first()
    if not c or (not c.is_active and not _is_staff()):
        return jsonify({"error": "Category not found"}), 404

    lang = request.args.get("lang")
    products = (
        Product.query.filter(Product.category_id == c.id, Product.is_active.is_(True))
        .order_by(Product.updated_at.desc(), Product.id.desc())
        .all()
    )
    return jsonify({
        "category": _cat_to_dict(c, lang, with_children=True),
        "products": [_product_dict(p, lang) for p in products],
    }), 200


@api_categories.post("")
@roles_required("ADMIN", "MANAGER")
def create_category():
    data = get_payload()
    name = clean_str(data.get("name")) or ""
    if not name:
        return jsonify({"error": "Missing 'name'"}), 400

    slug, err = resolve_slug(Category, data.get("slug"), name, fallback="category")
    if err:
        return jsonify({"error": err}), 400

    parent_id, err = _resolve_parent(data)
    if err:
        return jsonify({"error": err}), 400

    c = Category(
        name=name,
        name_ar=clean_str(pick(data, "nameAr", "name_ar")),
        description=clean_str(data.get("description")),
        description_ar=clean_str(pick(data, "descriptionAr", "description_ar")),
        slug=slug,
        image_url=clean_str(pick(data, "imageUrl", "image_url", "image")),
        is_active=to_bool(pick(data, "isActive", "is_active"), True),
        parent_id=parent_id,
    )
    db.session.add(c)
    db.session.commit()
    current_app.logger.info("Category %s created (slug=%s)", c.id, c.slug)
    return jsonify(_cat_to_dict(c, with_children=True)), 201


@api_categories.route("/<int:category_id>", methods=["PUT", "PATCH"])
@roles_required("ADMIN", "MANAGER")
def update_category(category_id: int):
    c = _get_category(category_id)
    data = get_payload()

    if "name" in data:
        name = clean_str(data.get("name")) or ""
        if not name:
            return jsonify({"error": "Invalid 'name'"}), 400
        c.name = name

    if has_any(data, "nameAr", "name_ar"):
        c.name_ar = clean_str(pick(data, "nameAr", "name_ar"))
    if "description" in data:
        c.description = clean_str(data.get("description"))
    if has_any(data, "descriptionAr", "description_ar"):
        c.description_ar = clean_str(pick(data, "descriptionAr", "description_ar"))
    if has_any(data, "imageUrl", "image_url", "image"):
        c.image_url = clean_str(pick(data, "imageUrl", "image_url", "image"))
    if has_any(data, "isActive", "is_active"):
        c.is_active = to_bool(pick(data, "isActive", "is_active"))

    if has_any(data, "parentId", "parent_id"):
        parent_id, err = _resolve_parent(data, c)
        if err:
            return jsonify({"error": err}), 400
        c.parent_id = parent_id

    if clean_str(data.get("slug")):
        slug, err = resolve_slug(Category, data.get("slug"), c.name, exclude_id=c.id, fallback="category")
        if err:
            return jsonify({"error": err}), 400
        c.slug = slug
    elif "name" in data and "slug" in data:
        # slug explicitly cleared -> derive again from the new name
        c.slug, _ = resolve_slug(Category, None, c.name, exclude_id=c.id, fallback="category")

    db.session.commit()
    return jsonify(_cat_to_dict(c, with_children=True, active_only=False)), 200


@api_categories.patch("/<int:category_id>/toggle-active")
@roles_required("ADMIN", "MANAGER")
def toggle_category(category_id: int):
    c = _get_category(category_id)
    c.is_active = not c.is_active
    db.session.commit()
    return jsonify(_cat_to_dict(c)), 200


@api_categories.delete("/<int:category_id>")
@roles_required("ADMIN")
def delete_category(category_id: int):
    c = _get_category(category_id)
    if c.children:
        return jsonify({"error": "Cannot delete category with subcategories"}), 400
    if c.products.count() > 0:
        return jsonify({"error": "Cannot delete category with products"}), 400

    db.session.delete(c)
    db.session.commit()
    current_app.logger.info("Category %s deleted", category_id)
    return jsonify({"success": True}), 200
