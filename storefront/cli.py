# storefront/cli.py
import os
from decimal import Decimal

import click

from storefront.extensions import db


def register_cli(app):

    @app.cli.command("init-db")
    @click.option("--drop", is_flag=True, default=False, help="Drop all tables first")
    def init_db(drop: bool):
        """Create all tables (for local SQLite; use `flask db upgrade` elsewhere)."""
        if drop:
            click.confirm("This deletes ALL data. Continue?", abort=True)
            db.drop_all()
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("create-admin")
    @click.option("--email", default=lambda: os.environ.get("ADMIN_EMAIL", "admin@example.com"),
                  show_default=True, help="Admin e-mail (login)")
    @click.option("--name", default=lambda: os.environ.get("ADMIN_NAME", "Administrator"),
                  show_default=True, help="Display name")
    @click.option("--password", default=lambda: os.environ.get("ADMIN_PASSWORD"),
                  help="Password (prompted when omitted)")
    @click.option("--force", is_flag=True, default=False,
                  help="Reset password and role when the account already exists")
    def create_admin(email: str, name: str, password, force: bool):
        """Create or reset an ADMIN account."""
        from storefront.models import User

        db.create_all()  # empty database on first run

        if not password:
            password = click.prompt("Password", hide_input=True, confirmation_prompt=True)

        user = User.query.filter_by(email=email).first()
        if user and not force:
            click.echo(f"User '{email}' already exists. Use --force to reset the password.")
            return

        if not user:
            user = User(email=email)
            db.session.add(user)

        user.name = name
        user.role = "ADMIN"
        user.is_active = True
        user.set_password(password)
        db.session.commit()
        click.echo(f"Admin ready: {email}")

    @app.cli.command("seed-catalog")
    def seed_catalog():
        """Insert variation lookups, a starter category, shipping rules and page shells when missing."""
        from storefront.models import (
            Category,
            PageContent,
            ShippingRule,
            VariationBeans,
            VariationSize,
            VariationType,
        )
        from storefront.models.page_content import PAGE_TYPES

        db.create_all()
        created = 0

        for name, display, value in (
            ("250g", "250 g", 250),
            ("500g", "500 g", 500),
            ("1kg", "1 kg", 1000),
        ):
            if not VariationSize.query.filter_by(value=value).first():
                db.session.add(VariationSize(name=name, display_name=display, value=value))
                created += 1

        for name, arabic in (("Whole Beans", "حبوب كاملة"), ("Ground", "مطحون")):
            if not VariationType.query.filter_by(name=name).first():
                db.session.add(VariationType(name=name, arabic_name=arabic))
                created += 1

        for name, arabic in (("Arabica", "أرابيكا"), ("Robusta", "روبوستا")):
            if not VariationBeans.query.filter_by(name=name).first():
                db.session.add(VariationBeans(name=name, arabic_name=arabic))
                created += 1

        if not Category.query.filter_by(slug="coffee").first():
            db.session.add(Category(name="Coffee", name_ar="قهوة", slug="coffee"))
            created += 1

        if ShippingRule.query.count() == 0:
            db.session.add(ShippingRule(
                name="Free Shipping", name_ar="شحن مجاني", type="FREE", cost=Decimal("0"),
                min_order_amount=app.config["FREE_SHIPPING_THRESHOLD"], priority=1,
                description="Free shipping above the threshold",
            ))
            db.session.add(ShippingRule(
                name="Standard Shipping", name_ar="شحن عادي", type="FIXED",
                cost=app.config["DEFAULT_SHIPPING_COST"], priority=2,
                description="Standard shipping rate",
            ))
            created += 2

        for page_type in PAGE_TYPES:
            if not PageContent.query.filter_by(type=page_type).first():
                db.session.add(PageContent(type=page_type, title=page_type.capitalize()))
                created += 1

        db.session.commit()
        click.echo(f"Seed complete ({created} rows added).")
