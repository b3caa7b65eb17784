# storefront/models/variation.py
from datetime import datetime

from storefront.extensions import db
from storefront.services.pricing import effective_price


class VariationSize(db.Model):
    __tablename__ = "variation_size"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    display_name = db.Column(db.String(100), nullable=False)
    value = db.Column(db.Integer, nullable=False)  # grams
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<VariationSize {self.display_name}>"


class VariationType(db.Model):
    __tablename__ = "variation_type"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    arabic_name = db.Column(db.String(100), nullable=True)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<VariationType {self.name}>"


class VariationBeans(db.Model):
    __tablename__ = "variation_beans"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    arabic_name = db.Column(db.String(100), nullable=True)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<VariationBeans {self.name}>"


class ProductVariation(db.Model):
    __tablename__ = "product_variation"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id", ondelete="CASCADE"), nullable=False, index=True)
    size_id = db.Column(db.Integer, db.ForeignKey("variation_size.id"), nullable=False)
    type_id = db.Column(db.Integer, db.ForeignKey("variation_type.id"), nullable=True)
    beans_id = db.Column(db.Integer, db.ForeignKey("variation_beans.id"), nullable=True)

    price = db.Column(db.Numeric(10, 2), nullable=False)
    discount = db.Column(db.Numeric(10, 2), nullable=True)
    discount_type = db.Column(db.String(20), nullable=True)
    sku = db.Column(db.String(100), unique=True, nullable=True)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    image_url = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    product = db.relationship("Product", back_populates="variations")
    size = db.relationship("VariationSize", lazy="joined")
    type = db.relationship("VariationType", lazy="joined")
    beans = db.relationship("VariationBeans", lazy="joined")

    @property
    def key(self) -> tuple:
        return (self.size_id, self.type_id, self.beans_id)

    @property
    def effective_price(self):
        return effective_price(self.price, self.discount, self.discount_type)

    def __repr__(self):
        return f"<ProductVariation product={self.product_id} sku={self.sku}>"
