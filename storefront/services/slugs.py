# storefront/services/slugs.py
from __future__ import annotations

import re
import unicodedata


def slugify(val: str, fallback: str = "item") -> str:
    raw = str(val or "").strip().lower()
    if not raw:
        return fallback
    normalized = unicodedata.normalize("NFKD", raw)
    normalized = "".join(ch for ch in normalized if not unicodedata.combining(ch))
    normalized = re.sub(r"[^a-z0-9]+", "-", normalized).strip("-")
    return normalized or fallback


def slug_taken(model, slug: str, exclude_id: int | None = None) -> bool:
    q = model.query.filter(model.slug == slug)
    if exclude_id:
        q = q.filter(model.id != exclude_id)
    return q.first() is not None


def unique_slug(model, base: str, exclude_id: int | None = None) -> str:
    slug = base or "item"
    candidate = slug
    suffix = 1
    while slug_taken(model, candidate, exclude_id):
        suffix += 1
        candidate = f"{slug}-{suffix}"
    return candidate


def resolve_slug(model, explicit: str | None, name: str, exclude_id: int | None = None, fallback: str = "item"):
    """
    Slug for a create/update.

    An explicitly supplied slug must be free (returns ``(None, error)`` when taken);
    a slug derived from the name is suffixed with -2, -3... until unique.
    """
    explicit = str(explicit or "").strip()
    if explicit:
        slug = slugify(explicit, fallback)
        if slug_taken(model, slug, exclude_id):
            return None, f"Slug '{slug}' is already in use"
        return slug, None
    return unique_slug(model, slugify(name, fallback), exclude_id), None
