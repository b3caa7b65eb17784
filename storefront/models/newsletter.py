# storefront/models/newsletter.py
from datetime import datetime

from storefront.extensions import db

SUBSCRIBER_STATUSES = ("ACTIVE", "UNSUBSCRIBED", "BOUNCED", "COMPLAINED")


class NewsletterSubscriber(db.Model):
    __tablename__ = "newsletter_subscriber"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)  # stored lower-case
    status = db.Column(db.String(20), nullable=False, default="ACTIVE", index=True)
    source = db.Column(db.String(50), nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(500), nullable=True)
    unsubscribe_token = db.Column(db.String(64), nullable=True, unique=True)
    confirmed_at = db.Column(db.DateTime, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<NewsletterSubscriber {self.email} {self.status}>"
