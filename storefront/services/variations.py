# storefront/services/variations.py
"""
Variation rules shared by the product and variation endpoints.

A product may hold at most one variation per (size, type, beans) combination
and every SKU is unique across all variations.
"""
from __future__ import annotations

from decimal import InvalidOperation

from storefront.errors import ServiceError
from storefront.extensions import db
from storefront.models import ProductVariation, VariationBeans, VariationSize, VariationType
from storefront.services.pricing import to_decimal
from storefront.services.sku import inline_sku

DUPLICATE_MESSAGE = "A variation with these attributes already exists"


def _opt_int(val):
    if val in (None, "", "null"):
        return None
    try:
        return int(val)
    except (TypeError, ValueError):
        return None


def _opt_decimal(val):
    if val in (None, "", "null"):
        return None
    try:
        return to_decimal(val, "discount")
    except InvalidOperation:
        return None


def _opt_str(val):
    if val is None:
        return None
    return str(val).strip() or None


def variation_key(size_id, type_id=None, beans_id=None) -> tuple:
    return (_opt_int(size_id), _opt_int(type_id), _opt_int(beans_id))


def find_duplicate(drafts: list[dict], key: tuple, exclude_index: int | None = None) -> int | None:
    """Index of the first draft with the same key, skipping `exclude_index`."""
    for idx, draft in enumerate(drafts):
        if idx == exclude_index:
            continue
        if variation_key(draft.get("sizeId"), draft.get("typeId"), draft.get("beansId")) == key:
            return idx
    return None


def parse_inline_variations(raw) -> list[dict]:
    """
    Clean a list of inline variation payloads.

    Entries without a size or a usable price are skipped; two entries with the
    same (size, type, beans) key are rejected.
    """
    drafts: list[dict] = []
    for item in raw or []:
        if not isinstance(item, dict):
            continue
        size_id = _opt_int(item.get("sizeId") or item.get("size_id"))
        if size_id is None:
            continue
        try:
            price = to_decimal(item.get("price"), "price")
        except InvalidOperation:
            continue
        if price < 0:
            continue
        draft = {
            "sizeId": size_id,
            "typeId": _opt_int(item.get("typeId") or item.get("type_id")),
            "beansId": _opt_int(item.get("beansId") or item.get("beans_id")),
            "price": price,
            "discount": _opt_decimal(item.get("discount")),
            "discountType": _opt_str(item.get("discountType") or item.get("discount_type")),
            "sku": _opt_str(item.get("sku")),
            "stockQuantity": _opt_int(item.get("stockQuantity") or item.get("stock_quantity")) or 0,
            "isActive": item.get("isActive", True) is not False,
            "imageUrl": _opt_str(item.get("imageUrl") or item.get("image_url")),
        }
        key = variation_key(draft["sizeId"], draft["typeId"], draft["beansId"])
        if find_duplicate(drafts, key) is not None:
            raise ServiceError(DUPLICATE_MESSAGE)
        drafts.append(draft)
    return drafts


def ensure_unique_variation(product_id: int, size_id, type_id=None, beans_id=None, exclude_id: int | None = None) -> None:
    q = ProductVariation.query.filter(
        ProductVariation.product_id == product_id,
        ProductVariation.size_id == size_id,
        ProductVariation.type_id.is_(None) if type_id is None else ProductVariation.type_id == type_id,
        ProductVariation.beans_id.is_(None) if beans_id is None else ProductVariation.beans_id == beans_id,
    )
    if exclude_id:
        q = q.filter(ProductVariation.id != exclude_id)
    if q.first():
        raise ServiceError(DUPLICATE_MESSAGE)


def sku_in_use(sku: str, exclude_id: int | None = None) -> bool:
    q = ProductVariation.query.filter(ProductVariation.sku == sku)
    if exclude_id:
        q = q.filter(ProductVariation.id != exclude_id)
    return q.first() is not None


def ensure_unique_sku(sku: str | None, exclude_id: int | None = None) -> None:
    if sku and sku_in_use(sku, exclude_id):
        raise ServiceError("A variation with this SKU already exists")


def _free_sku(base: str, reserved: set[str]) -> str:
    candidate = base
    n = 1
    while candidate in reserved or sku_in_use(candidate):
        n += 1
        candidate = f"{base}-{n}"
    return candidate


def ensure_lookups_exist(size_id, type_id=None, beans_id=None) -> None:
    if db.session.get(VariationSize, size_id) is None:
        raise ServiceError(f"Size {size_id} not found")
    if type_id is not None and db.session.get(VariationType, type_id) is None:
        raise ServiceError(f"Type {type_id} not found")
    if beans_id is not None and db.session.get(VariationBeans, beans_id) is None:
        raise ServiceError(f"Beans {beans_id} not found")


def build_inline_variations(product, drafts: list[dict]) -> list[ProductVariation]:
    """Turn cleaned drafts into ProductVariation rows for `product`, added to the session but not committed."""
    reserved: set[str] = set()
    rows = []
    for draft in drafts:
        ensure_lookups_exist(draft["sizeId"], draft["typeId"], draft["beansId"])
        sku = draft["sku"]
        if sku:
            if sku in reserved:
                raise ServiceError("A variation with this SKU already exists")
            ensure_unique_sku(sku)
        else:
            size = db.session.get(VariationSize, draft["sizeId"])
            sku = _free_sku(
                inline_sku(product.sku, size.value, draft["typeId"] is not None, draft["beansId"] is not None),
                reserved,
            )
        reserved.add(sku)
        rows.append(ProductVariation(
            product=product,
            size_id=draft["sizeId"],
            type_id=draft["typeId"],
            beans_id=draft["beansId"],
            price=draft["price"],
            discount=draft["discount"],
            discount_type=draft["discountType"],
            sku=sku,
            stock_quantity=draft["stockQuantity"],
            is_active=draft["isActive"],
            image_url=draft["imageUrl"],
        ))
    db.session.add_all(rows)
    return rows
