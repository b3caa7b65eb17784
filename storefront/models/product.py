# storefront/models/product.py
from datetime import datetime

from storefront.extensions import db
from storefront.services.pricing import effective_price

DISCOUNT_TYPES = ("PERCENTAGE", "FIXED_AMOUNT")


class Product(db.Model):
    __tablename__ = "product"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    name_ar = db.Column(db.String(200), nullable=True)
    description = db.Column(db.Text, nullable=True)
    description_ar = db.Column(db.Text, nullable=True)
    slug = db.Column(db.String(200), unique=True, nullable=False, index=True)
    sku = db.Column(db.String(100), nullable=True, index=True)

    price = db.Column(db.Numeric(10, 2), nullable=False)
    discount = db.Column(db.Numeric(10, 2), nullable=True)
    discount_type = db.Column(db.String(20), nullable=True)

    image_url = db.Column(db.String(500), nullable=True)
    origin = db.Column(db.String(120), nullable=True)
    in_stock = db.Column(db.Boolean, nullable=False, default=True)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    weight = db.Column(db.Numeric(10, 2), nullable=True)
    dimensions = db.Column(db.String(120), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    category_id = db.Column(db.Integer, db.ForeignKey("category.id"), nullable=False, index=True)
    category = db.relationship("Category", back_populates="products")

    images = db.relationship(
        "ProductImage",
        back_populates="product",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ProductImage.position",
    )
    variations = db.relationship(
        "ProductVariation",
        back_populates="product",
        lazy=True,
        cascade="all, delete-orphan",
    )

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def effective_price(self):
        return effective_price(self.price, self.discount, self.discount_type)

    @property
    def is_in_stock(self) -> bool:
        return bool(self.in_stock) and (self.stock_quantity or 0) > 0

    def __repr__(self) -> str:
        return f"<Product {self.name}>"


class ProductImage(db.Model):
    __tablename__ = "product_image"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id", ondelete="CASCADE"), nullable=False, index=True)
    url = db.Column(db.String(500), nullable=False)
    alt = db.Column(db.String(255), nullable=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    product = db.relationship("Product", back_populates="images")

    def __repr__(self):
        return f"<ProductImage {self.url}>"
