from flask import Blueprint, jsonify

from storefront.api.utils.payload import get_payload, has_any, iso, pick
from storefront.auth.permissions import permission_required
from storefront.extensions import db
from storefront.models import PageContent
from storefront.models.page_content import PAGE_TYPES

api_content = Blueprint("api_content", __name__, url_prefix="/api/content")

PAGE_TYPE_RULE = "any(" + ", ".join(PAGE_TYPES) + ")"


def _page_dict(page: PageContent | None, page_type: str) -> dict:
    if page is None:
        return {
            "type": page_type,
            "title": "",
            "titleAr": "",
            "content": "",
            "contentAr": "",
            "updatedAt": None,
        }
    return {
        "id": page.id,
        "type": page.type,
        "title": page.title or "",
        "titleAr": page.title_ar or "",
        "content": page.content or "",
        "contentAr": page.content_ar or "",
        "updatedAt": iso(page.updated_at),
    }


@api_content.get(f"/<{PAGE_TYPE_RULE}:page_type>")
def get_page(page_type: str):
    page = PageContent.query.filter_by(type=page_type).first()
    return jsonify(_page_dict(page, page_type)), 200


@api_content.put(f"/<{PAGE_TYPE_RULE}:page_type>")
@permission_required("content", "edit")
def save_page(page_type: str):
    data = get_payload()
    page = PageContent.query.filter_by(type=page_type).first()
    if page is None:
        page = PageContent(type=page_type)
        db.session.add(page)

    fields = {
        "title": ("title",),
        "title_ar": ("titleAr", "title_ar"),
        "content": ("content",),
        "content_ar": ("contentAr", "content_ar"),
    }
    for attr, keys in fields.items():
        if has_any(data, *keys):
            value = pick(data, *keys)
            setattr(page, attr, str(value) if value is not None else None)

    db.session.commit()
    return jsonify(_page_dict(page, page_type)), 200
