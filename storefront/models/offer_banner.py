# storefront/models/offer_banner.py
from datetime import datetime

from storefront.extensions import db


class OfferBanner(db.Model):
    __tablename__ = "offer_banner"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    title_ar = db.Column(db.String(255), nullable=True)
    subtitle = db.Column(db.String(255), nullable=True)
    subtitle_ar = db.Column(db.String(255), nullable=True)
    button_text = db.Column(db.String(100), nullable=True)
    button_text_ar = db.Column(db.String(100), nullable=True)
    button_link = db.Column(db.String(500), nullable=True)
    background_color = db.Column(db.String(30), nullable=False, default="#ffffff")
    text_color = db.Column(db.String(30), nullable=False, default="#000000")
    button_color = db.Column(db.String(30), nullable=False, default="#000000")
    overlay_color = db.Column(db.String(40), nullable=False, default="rgba(0,0,0,0.3)")
    overlay_opacity = db.Column(db.Integer, nullable=False, default=30)
    image_url = db.Column(db.String(500), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<OfferBanner #{self.id} active={self.is_active}>"
