# storefront/models/order.py
from datetime import datetime

from storefront.extensions import db

ORDER_STATUSES = ("NEW", "PROCESSING", "SHIPPED", "DELIVERED", "CANCELLED", "REFUNDED")
PAYMENT_METHODS = ("stripe", "tabby", "cod")


class Order(db.Model):
    __tablename__ = "order"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True, index=True)

    # customer snapshot at checkout time
    customer_name = db.Column(db.String(150), nullable=False)
    customer_email = db.Column(db.String(255), nullable=False, index=True)
    customer_phone = db.Column(db.String(50), nullable=True)
    city = db.Column(db.String(120), nullable=True)
    shipping_address = db.Column(db.Text, nullable=False)

    subtotal = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    shipping_cost = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(10, 2), nullable=False)

    status = db.Column(db.String(20), nullable=False, default="NEW", index=True)
    payment_method = db.Column(db.String(20), nullable=True)
    promotion_id = db.Column(db.Integer, db.ForeignKey("promotion.id"), nullable=True)
    email_sent = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship("User", back_populates="orders")
    promotion = db.relationship("Promotion")
    items = db.relationship("OrderItem", back_populates="order", lazy=True, cascade="all, delete-orphan")
    payments = db.relationship(
        "Payment",
        back_populates="order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="Payment.created_at.desc()",
    )

    @property
    def payment(self):
        return self.payments[0] if self.payments else None

    def __repr__(self):
        return f"<Order #{self.id} {self.customer_email} {self.status}>"
