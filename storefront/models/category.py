# storefront/models/category.py
from datetime import datetime

from storefront.extensions import db


class Category(db.Model):
    __tablename__ = "category"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    name_ar = db.Column(db.String(150), nullable=True)
    description = db.Column(db.Text, nullable=True)
    description_ar = db.Column(db.Text, nullable=True)
    slug = db.Column(db.String(150), unique=True, nullable=False, index=True)
    image_url = db.Column(db.String(500), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    parent_id = db.Column(db.Integer, db.ForeignKey("category.id"), nullable=True, index=True)
    parent = db.relationship("Category", remote_side=[id], back_populates="children")
    children = db.relationship("Category", back_populates="parent", lazy=True, order_by="Category.name")

    products = db.relationship("Product", back_populates="category", lazy="dynamic")

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def display_name(self, lang: str | None = None) -> str:
        if lang == "ar" and self.name_ar:
            return self.name_ar
        return self.name

    def is_descendant_of(self, other_id: int) -> bool:
        """True when `other_id` appears anywhere above this category."""
        node = self.parent
        seen = set()
        while node is not None and node.id not in seen:
            if node.id == other_id:
                return True
            seen.add(node.id)
            node = node.parent
        return False

    def __repr__(self):
        return f"<Category {self.name}>"
