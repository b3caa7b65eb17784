# storefront/models/shipping_rule.py
from datetime import datetime

from storefront.extensions import db

SHIPPING_RULE_TYPES = ("FREE", "FIXED", "PERCENTAGE")


class ShippingRule(db.Model):
    __tablename__ = "shipping_rule"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    name_ar = db.Column(db.String(150), nullable=True)
    description = db.Column(db.Text, nullable=True)
    type = db.Column(db.String(20), nullable=False)
    cost = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    min_order_amount = db.Column(db.Numeric(10, 2), nullable=True)
    max_order_amount = db.Column(db.Numeric(10, 2), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    priority = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def matches(self, order_total) -> bool:
        if self.min_order_amount is not None and order_total < self.min_order_amount:
            return False
        if self.max_order_amount is not None and order_total > self.max_order_amount:
            return False
        return True

    def __repr__(self):
        return f"<ShippingRule {self.name} {self.type}>"
