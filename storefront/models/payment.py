# storefront/models/payment.py
from datetime import datetime
from decimal import Decimal

from storefront.extensions import db

PAYMENT_PROVIDERS = ("STRIPE", "TABBY", "MANUAL")
PAYMENT_STATUSES = (
    "PENDING",
    "PROCESSING",
    "SUCCEEDED",
    "FAILED",
    "CANCELLED",
    "REFUNDED",
    "PARTIALLY_REFUNDED",
)


class Payment(db.Model):
    __tablename__ = "payment"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("order.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True, index=True)

    provider = db.Column(db.String(20), nullable=False, default="MANUAL")
    provider_payment_id = db.Column(db.String(255), nullable=True, index=True)
    provider_charge_id = db.Column(db.String(255), nullable=True)

    amount = db.Column(db.Numeric(10, 2), nullable=False)
    refunded_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    currency = db.Column(db.String(3), nullable=False, default="aed")
    status = db.Column(db.String(20), nullable=False, default="PENDING", index=True)

    # card details reported by the gateway
    payment_method = db.Column(db.String(50), nullable=True)
    last4 = db.Column(db.String(4), nullable=True)
    brand = db.Column(db.String(30), nullable=True)
    receipt_url = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    order = db.relationship("Order", back_populates="payments")
    user = db.relationship("User")

    @property
    def refundable_amount(self) -> Decimal:
        return Decimal(self.amount or 0) - Decimal(self.refunded_amount or 0)

    def __repr__(self):
        return f"<Payment #{self.id} {self.provider} {self.amount} {self.status}>"
