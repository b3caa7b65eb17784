"""
Pytest fixtures for the storefront backend.

Every test gets a fresh app bound to an in-memory SQLite database. Requests
run in their own app context (the fixtures never hold one open), so the
factory returns ids and tests reopen a context to inspect rows.
"""
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from storefront.app import create_app
from storefront.config import TestConfig
from storefront.extensions import db as _db
from storefront.models import (
    Category,
    Contact,
    OfferBanner,
    Order,
    OrderItem,
    Payment,
    Permission,
    Product,
    ProductVariation,
    Promotion,
    ShippingRule,
    Slider,
    User,
    VariationBeans,
    VariationSize,
    VariationType,
)

PASSWORD = "secret-pass-1"


class FakeResponse:
    """Stand-in for `requests.Response` in provider and image host tests."""

    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class Factory:
    def __init__(self, app):
        self.app = app

    def _save(self, obj):
        with self.app.app_context():
            _db.session.add(obj)
            _db.session.commit()
            return obj.id

    def user(self, email, role="ADMIN", password=PASSWORD, is_active=True, permissions=None, **kw):
        """`permissions` maps module -> iterable of actions, e.g. {"orders": ("view",)}."""
        with self.app.app_context():
            user = User(email=email, role=role, is_active=is_active, name=kw.pop("name", email.split("@")[0]), **kw)
            user.set_password(password)
            for module, actions in (permissions or {}).items():
                perm = Permission(module=module, **{f"can_{a}": True for a in actions})
                perm.normalize()
                user.permissions.append(perm)
            _db.session.add(user)
            _db.session.commit()
            return user.id

    def category(self, name="Coffee", slug=None, parent_id=None, is_active=True, **kw):
        return self._save(Category(
            name=name,
            slug=slug or name.lower().replace(" ", "-"),
            parent_id=parent_id,
            is_active=is_active,
            **kw,
        ))

    def product(self, name="Ethiopia Yirgacheffe", price="50.00", category_id=None, stock=10, **kw):
        if category_id is None:
            with self.app.app_context():
                existing = Category.query.filter_by(slug="coffee").first()
                category_id = existing.id if existing else None
            if category_id is None:
                category_id = self.category()
        return self._save(Product(
            name=name,
            slug=kw.pop("slug", name.lower().replace(" ", "-")),
            price=Decimal(price),
            category_id=category_id,
            stock_quantity=stock,
            in_stock=kw.pop("in_stock", True),
            is_active=kw.pop("is_active", True),
            **kw,
        ))

    def size(self, name="250g", display_name="250g", value=250, **kw):
        return self._save(VariationSize(name=name, display_name=display_name, value=value, is_active=True, **kw))

    def vtype(self, name="Espresso", **kw):
        return self._save(VariationType(name=name, is_active=kw.pop("is_active", True), **kw))

    def beans(self, name="Arabica", **kw):
        return self._save(VariationBeans(name=name, is_active=kw.pop("is_active", True), **kw))

    def variation(self, product_id, size_id, price="40.00", stock=5, **kw):
        return self._save(ProductVariation(
            product_id=product_id,
            size_id=size_id,
            price=Decimal(price),
            stock_quantity=stock,
            is_active=kw.pop("is_active", True),
            **kw,
        ))

    def order(self, email="buyer@example.com", total="100.00", status="NEW", user_id=None,
              product_id=None, payment=None, created_at=None):
        """Order with one line and, when `payment` is a dict, one Payment built from it."""
        with self.app.app_context():
            order = Order(
                user_id=user_id,
                customer_name="Buyer",
                customer_email=email,
                shipping_address="1 Palm Street",
                city="Dubai",
                subtotal=Decimal(total),
                total=Decimal(total),
                status=status,
                payment_method="cod",
            )
            if created_at is not None:
                order.created_at = created_at
            if product_id is not None:
                order.items.append(OrderItem(
                    product_id=product_id, quantity=1, unit_price=Decimal(total), subtotal=Decimal(total)
                ))
            if payment is not None:
                fields = {"amount": Decimal(total), "refunded_amount": Decimal("0"), "currency": "aed"}
                fields.update(payment)
                order.payments.append(Payment(user_id=user_id, **fields))
            _db.session.add(order)
            _db.session.commit()
            return order.id

    def promotion(self, code="SAVE10", type="PERCENTAGE", value="10", **kw):
        now = datetime.utcnow()
        return self._save(Promotion(
            name=kw.pop("name", f"Promo {code}"),
            code=code,
            type=type,
            value=Decimal(value),
            current_uses=kw.pop("current_uses", 0),
            is_active=kw.pop("is_active", True),
            start_date=kw.pop("start_date", now - timedelta(days=1)),
            end_date=kw.pop("end_date", now + timedelta(days=30)),
            **kw,
        ))

    def shipping_rule(self, name="Standard", type="FIXED", cost="15.00", priority=0, **kw):
        return self._save(ShippingRule(
            name=name,
            type=type,
            cost=Decimal(cost),
            priority=priority,
            is_active=kw.pop("is_active", True),
            **kw,
        ))

    def slider(self, title="Fresh roast", order=0, **kw):
        return self._save(Slider(
            title=title,
            subtitle=kw.pop("subtitle", "Roasted this week"),
            button_text=kw.pop("button_text", "Shop now"),
            button_link=kw.pop("button_link", "/shop"),
            image_url=kw.pop("image_url", "https://img.example.com/slide.webp"),
            order=order,
            is_active=kw.pop("is_active", True),
            **kw,
        ))

    def banner(self, title="Summer sale", is_active=True, **kw):
        return self._save(OfferBanner(title=title, is_active=is_active, **kw))

    def contact(self, name="Jane", email="jane@example.com", status="NEW", **kw):
        return self._save(Contact(
            name=name, email=email, message=kw.pop("message", "Do you ship to Abu Dhabi?"), status=status, **kw
        ))


def login(client, email, password=PASSWORD, path="/api/auth/login"):
    resp = client.post(path, json={"email": email, "password": password})
    assert resp.status_code == 200, resp.get_json()
    return client


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        _db.create_all()
    yield app
    with app.app_context():
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def factory(app):
    return Factory(app)


@pytest.fixture
def admin_client(app, factory):
    factory.user("admin@example.com", role="ADMIN")
    return login(app.test_client(), "admin@example.com")


@pytest.fixture
def manager_client(app, factory):
    factory.user("manager@example.com", role="MANAGER")
    return login(app.test_client(), "manager@example.com")


@pytest.fixture
def make_team_client(app, factory):
    """Log in a TEAM user holding the given permissions."""
    counter = {"n": 0}

    def _make(permissions=None):
        counter["n"] += 1
        email = f"team{counter['n']}@example.com"
        factory.user(email, role="TEAM", permissions=permissions or {})
        return login(app.test_client(), email)

    return _make


@pytest.fixture
def customer_client(app, factory):
    factory.user("customer@example.com", role="CUSTOMER")
    return login(app.test_client(), "customer@example.com", path="/api/customer/login")
