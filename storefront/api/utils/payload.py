"""Request parsing and response helpers shared by the route modules."""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from flask import request

from storefront.services.pricing import to_decimal


def get_payload() -> dict:
    return request.get_json(silent=True) or request.form or {}


def pick(data, *keys, default=None):
    """First key present in `data` (camelCase and snake_case aliases)."""
    for key in keys:
        if key in data:
            return data.get(key)
    return default


def has_any(data, *keys) -> bool:
    return any(key in data for key in keys)


def clean_str(val) -> str | None:
    if val is None:
        return None
    s = str(val).strip()
    return s or None


def to_bool(val, default: bool = False) -> bool:
    if val is None:
        return default
    if isinstance(val, bool):
        return val
    return str(val).strip().lower() in ("1", "true", "t", "yes", "y", "on")


def to_int(val, default=None):
    try:
        return int(val)
    except (TypeError, ValueError):
        return default


def opt_decimal(val, field: str = "") -> Decimal | None:
    """None for empty input, raises InvalidOperation for garbage."""
    if val in (None, ""):
        return None
    return to_decimal(val, field)


def parse_datetime(val) -> datetime | None:
    if not val:
        return None
    if isinstance(val, datetime):
        return val
    s = str(val).strip().replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(s)
    except ValueError:
        return None
    # stored naive in UTC
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def num(val):
    return float(val) if val is not None else None


def iso(dt):
    return dt.isoformat() if dt else None


def page_args(default_limit: int = 10, max_limit: int = 100) -> tuple[int, int]:
    page = max(to_int(request.args.get("page"), 1) or 1, 1)
    limit = to_int(request.args.get("limit"), default_limit) or default_limit
    return page, min(max(limit, 1), max_limit)


def paginate(query, page: int, limit: int):
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": (total + limit - 1) // limit,
    }
