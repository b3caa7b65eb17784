# storefront/app.py
import logging

from flask import Flask

from storefront.config import Config

# Extensions
from storefront.extensions import bcrypt, cors, db, init_mail, login_manager, migrate
from storefront.errors import register_error_handlers

# Blueprints
from storefront.admin import admin_bp
from storefront.auth.login_routes import auth_bp
from storefront.auth.customer_routes import customer_bp
from storefront.auth import password_reset_routes as _password_reset  # noqa: F401  adds routes to auth_bp/customer_bp
from storefront.api.routes.category_routes import api_categories
from storefront.api.routes.contact_routes import api_contacts
from storefront.api.routes.content_routes import api_content
from storefront.api.routes.customer_routes import api_customers
from storefront.api.routes.newsletter_routes import api_newsletter
from storefront.api.routes.offer_banner_routes import api_offer_banner
from storefront.api.routes.order_routes import order_bp
from storefront.api.routes.payment_routes import payment_bp
from storefront.api.routes.product_routes import api_products
from storefront.api.routes.promotion_routes import api_promotions
from storefront.api.routes.shipping_routes import api_shipping
from storefront.api.routes.slider_routes import api_sliders
from storefront.api.routes.upload_routes import api_upload
from storefront.api.routes.user_routes import api_users
from storefront.api.routes.variation_routes import api_variations
from storefront.api.routes.webhook_routes import webhook_bp
from storefront import models as _models  # noqa: F401

BLUEPRINTS = (
    auth_bp,
    customer_bp,
    admin_bp,
    api_categories,
    api_products,
    api_variations,
    order_bp,
    payment_bp,
    webhook_bp,
    api_customers,
    api_contacts,
    api_newsletter,
    api_users,
    api_sliders,
    api_offer_banner,
    api_content,
    api_promotions,
    api_shipping,
    api_upload,
)


def create_app(config_object=Config) -> Flask:
    # Show INFO logs even outside the werkzeug access log
    logging.basicConfig(level=logging.INFO)

    app = Flask(__name__)
    app.config.from_object(config_object)

    # Init extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    bcrypt.init_app(app)
    init_mail(app)

    cors.init_app(
        app,
        resources={
            r"/api/*": {
                "origins": app.config.get("CORS_ORIGINS") or [],
                "supports_credentials": True,
            }
        },
    )

    register_error_handlers(app)
    for bp in BLUEPRINTS:
        app.register_blueprint(bp)

    from storefront.cli import register_cli
    register_cli(app)

    @app.get("/api/health")
    def health():
        return {"status": "ok"}, 200

    # Diagnostics: list all routes
    if app.debug:
        @app.get("/__routes")
        def __routes():
            lines = []
            for r in sorted(app.url_map.iter_rules(), key=lambda x: x.rule):
                methods = ",".join(
                    sorted(m for m in r.methods if m in {"GET", "POST", "PUT", "DELETE", "PATCH"})
                )
                lines.append(f"{r.rule:45s} -> {r.endpoint} [{methods}]")
            return "<pre>" + "\n".join(lines) + "</pre>"

    return app
