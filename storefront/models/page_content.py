# storefront/models/page_content.py
from datetime import datetime

from storefront.extensions import db

PAGE_TYPES = ("about", "privacy", "terms", "refund")


class PageContent(db.Model):
    __tablename__ = "page_content"

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(30), unique=True, nullable=False)
    title = db.Column(db.String(255), nullable=True)
    title_ar = db.Column(db.String(255), nullable=True)
    content = db.Column(db.Text, nullable=True)
    content_ar = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<PageContent {self.type}>"
