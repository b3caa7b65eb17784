# storefront/models/promotion.py
from datetime import datetime

from storefront.extensions import db

PROMOTION_TYPES = ("PERCENTAGE", "FIXED_AMOUNT", "FREE_SHIPPING")

promotion_product = db.Table(
    "promotion_product",
    db.Column("promotion_id", db.Integer, db.ForeignKey("promotion.id", ondelete="CASCADE"), primary_key=True),
    db.Column("product_id", db.Integer, db.ForeignKey("product.id", ondelete="CASCADE"), primary_key=True),
)


class Promotion(db.Model):
    __tablename__ = "promotion"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text, nullable=True)
    code = db.Column(db.String(50), unique=True, nullable=True, index=True)
    type = db.Column(db.String(20), nullable=False)
    value = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    min_order_amount = db.Column(db.Numeric(10, 2), nullable=True)
    max_uses = db.Column(db.Integer, nullable=True)
    current_uses = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)

    products = db.relationship(
        "Product", secondary=promotion_product, lazy=True, backref=db.backref("promotions", lazy=True)
    )

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def is_running(self, now: datetime | None = None) -> bool:
        now = now or datetime.utcnow()
        return bool(self.is_active) and self.start_date <= now <= self.end_date

    def __repr__(self):
        return f"<Promotion {self.code or self.name} {self.type}>"
