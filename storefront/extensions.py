# storefront/extensions.py
from __future__ import annotations

import socket

from flask import jsonify
from flask_bcrypt import Bcrypt
from flask_cors import CORS
from flask_login import LoginManager
from flask_mail import Mail
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

# Extension singletons, bound to the app in create_app()
db = SQLAlchemy()
login_manager = LoginManager()
bcrypt = Bcrypt()
migrate = Migrate()
cors = CORS()
mail = Mail()

login_manager.session_protection = "basic"


@login_manager.user_loader
def load_user(user_id):
    from storefront.models.user import User
    try:
        return db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None


@login_manager.unauthorized_handler
def unauthorized():
    # JSON API: never redirect to a login page
    return jsonify({"error": "Unauthorized"}), 401


def _mail_host(value: str | None) -> str:
    """'smtps://mail.example.com:465/' -> 'mail.example.com'."""
    host = (value or "").strip()
    host = host.split("://", 1)[-1]
    host = host.split("/", 1)[0]
    return host.split(":", 1)[0]


def _default_port(use_ssl: bool, use_tls: bool) -> int:
    if use_ssl:
        return 465
    return 587 if use_tls else 25


def _check_mail_dns(app, host: str, port: int) -> None:
    try:
        addresses = {info[4][0] for info in socket.getaddrinfo(host, port, proto=socket.IPPROTO_TCP)}
    except OSError as e:
        app.logger.error("Cannot resolve MAIL_SERVER '%s': %s; order and contact e-mails will fail", host, e)
        return
    if not addresses:
        app.logger.warning("MAIL_SERVER '%s' resolved to no addresses", host)


def init_mail(app):
    """
    Bind Flask-Mail after tidying the SMTP settings that come from .env:
    host without scheme, SSL winning over TLS, a port that matches them and
    a sender that falls back to the SMTP login.
    """
    cfg = app.config

    host = _mail_host(cfg.get("MAIL_SERVER")) or "localhost"
    if host != cfg.get("MAIL_SERVER"):
        app.logger.info("MAIL_SERVER normalised to '%s'", host)
    cfg["MAIL_SERVER"] = host

    if cfg.get("MAIL_USE_SSL") and cfg.get("MAIL_USE_TLS"):
        app.logger.info("Both MAIL_USE_SSL and MAIL_USE_TLS set, using SSL")
        cfg["MAIL_USE_TLS"] = False

    try:
        cfg["MAIL_PORT"] = int(cfg.get("MAIL_PORT"))
    except (TypeError, ValueError):
        cfg["MAIL_PORT"] = _default_port(bool(cfg.get("MAIL_USE_SSL")), bool(cfg.get("MAIL_USE_TLS")))
        app.logger.info("MAIL_PORT missing or invalid, using %s", cfg["MAIL_PORT"])

    if not cfg.get("MAIL_DEFAULT_SENDER"):
        cfg["MAIL_DEFAULT_SENDER"] = cfg.get("MAIL_USERNAME")

    if not cfg.get("MAIL_SUPPRESS_SEND") and not app.testing:
        _check_mail_dns(app, host, cfg["MAIL_PORT"])

    app.logger.info(
        "Mail: %s:%s ssl=%s tls=%s from=%s suppressed=%s",
        host,
        cfg["MAIL_PORT"],
        bool(cfg.get("MAIL_USE_SSL")),
        bool(cfg.get("MAIL_USE_TLS")),
        cfg.get("MAIL_DEFAULT_SENDER"),
        bool(cfg.get("MAIL_SUPPRESS_SEND")),
    )

    mail.init_app(app)
