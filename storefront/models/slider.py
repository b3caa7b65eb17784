# storefront/models/slider.py
from datetime import datetime

from storefront.extensions import db


class Slider(db.Model):
    __tablename__ = "slider"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    title_ar = db.Column(db.String(255), nullable=True)
    subtitle = db.Column(db.String(255), nullable=False)
    subtitle_ar = db.Column(db.String(255), nullable=True)
    button_text = db.Column(db.String(100), nullable=False)
    button_text_ar = db.Column(db.String(100), nullable=True)
    button_link = db.Column(db.String(500), nullable=False)
    background_color = db.Column(db.String(30), nullable=False, default="#f4f6f8")
    image_url = db.Column(db.String(500), nullable=False)
    order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    text_animation = db.Column(db.String(30), nullable=False, default="fade-up")
    image_animation = db.Column(db.String(30), nullable=False, default="fade-in")
    transition_speed = db.Column(db.String(30), nullable=False, default="medium")

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Slider #{self.id} order={self.order}>"
