# storefront/config.py
import os
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv

BASE_DIR = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(BASE_DIR, ".env"))

INSTANCE_DIR = os.path.join(BASE_DIR, "instance")


def _env(key: str, default=None):
    v = os.getenv(key)
    return v if v not in (None, "", "None") else default


def _env_bool(key: str, default: bool = False) -> bool:
    v = os.getenv(key)
    if v in (None, "", "None"):
        return default
    return str(v).strip().lower() in ("1", "true", "t", "yes", "y", "on")


def _env_int(key: str, default: int) -> int:
    try:
        return int(_env(key, default))
    except (TypeError, ValueError):
        return default


def _env_decimal(key: str, default: str) -> Decimal:
    try:
        return Decimal(str(_env(key, default)))
    except InvalidOperation:
        return Decimal(default)


def _env_list(key: str, default: str = "") -> list[str]:
    raw = _env(key, default) or ""
    return [part.strip() for part in raw.split(",") if part.strip()]


def _resolve_sqlite_uri(db_url: str | None) -> str:
    if not db_url:
        db_path = os.path.join(INSTANCE_DIR, "storefront.db")
        os.makedirs(os.path.dirname(db_path), exist_ok=True)
        return "sqlite:///" + db_path.replace("\\", "/")

    if db_url.startswith("sqlite:///"):
        raw_path = db_url.replace("sqlite:///", "", 1)
        if not os.path.isabs(raw_path):
            raw_path = os.path.join(BASE_DIR, raw_path)
        db_path = os.path.normpath(raw_path)
        os.makedirs(os.path.dirname(db_path), exist_ok=True)
        return "sqlite:///" + db_path.replace("\\", "/")

    # Heroku-style URLs still say postgres://
    if db_url.startswith("postgres://"):
        return db_url.replace("postgres://", "postgresql://", 1)
    return db_url


class Config:
    SECRET_KEY = _env("SECRET_KEY", "dev-please-change-me")

    SQLALCHEMY_DATABASE_URI = _resolve_sqlite_uri(_env("DATABASE_URL"))
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_AS_ASCII = False  # Arabic names stay readable in JSON output

    CORS_ORIGINS = _env_list("CORS_ORIGINS", "http://localhost:3000")

    MAIL_SERVER = _env("MAIL_SERVER", "smtp.gmail.com")
    MAIL_PORT = int(_env("MAIL_PORT", 465))
    MAIL_USE_SSL = _env_bool("MAIL_USE_SSL", True)
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", False)
    MAIL_USERNAME = _env("MAIL_USERNAME")
    MAIL_PASSWORD = _env("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = _env("MAIL_DEFAULT_SENDER", _env("MAIL_USERNAME"))
    MAIL_SUPPRESS_SEND = _env_bool("MAIL_SUPPRESS_SEND", False)
    MAIL_DEBUG = _env_bool("MAIL_DEBUG", False)

    ORDER_NOTIFY_EMAIL = _env("ORDER_NOTIFY_EMAIL")
    CONTACT_NOTIFY_EMAIL = _env("CONTACT_NOTIFY_EMAIL", _env("ORDER_NOTIFY_EMAIL"))
    STORE_NAME = _env("STORE_NAME", "Green Roasteries")
    STORE_URL = _env("STORE_URL", "http://localhost:3000")

    # Money
    CURRENCY = _env("CURRENCY", "aed")
    TAX_RATE = _env_decimal("TAX_RATE", "0")
    DEFAULT_SHIPPING_COST = _env_decimal("DEFAULT_SHIPPING_COST", "25.00")
    FREE_SHIPPING_THRESHOLD = _env_decimal("FREE_SHIPPING_THRESHOLD", "200.00")

    # Image host
    CLOUDINARY_CLOUD_NAME = _env("CLOUDINARY_CLOUD_NAME")
    CLOUDINARY_UPLOAD_PRESET = _env("CLOUDINARY_UPLOAD_PRESET")
    CLOUDINARY_FOLDER_PREFIX = _env("CLOUDINARY_FOLDER_PREFIX", "storefront")
    UPLOAD_MAX_BYTES = _env_int("UPLOAD_MAX_BYTES", 5 * 1024 * 1024)
    IMAGE_MAX_SIDE = _env_int("IMAGE_MAX_SIDE", 1600)

    # Payment providers
    STRIPE_SECRET_KEY = _env("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = _env("STRIPE_WEBHOOK_SECRET")
    TABBY_SECRET_KEY = _env("TABBY_SECRET_KEY")
    PROVIDER_TIMEOUT = _env_int("PROVIDER_TIMEOUT", 15)

    BCRYPT_LOG_ROUNDS = _env_int("BCRYPT_LOG_ROUNDS", 12)

    # Password reset links
    PASSWORD_RESET_SALT = _env("PASSWORD_RESET_SALT", "storefront-password-reset")
    PASSWORD_RESET_MAX_AGE = _env_int("PASSWORD_RESET_MAX_AGE", 3600)


class TestConfig(Config):
    __test__ = False  # not a pytest test class

    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    MAIL_SUPPRESS_SEND = True
    MAIL_DEFAULT_SENDER = "shop@example.com"
    ORDER_NOTIFY_EMAIL = "owner@example.com"
    CONTACT_NOTIFY_EMAIL = "owner@example.com"
    BCRYPT_LOG_ROUNDS = 4
    CORS_ORIGINS = ["http://localhost:3000"]

    CLOUDINARY_CLOUD_NAME = "demo"
    CLOUDINARY_UPLOAD_PRESET = "unsigned-test"
    CLOUDINARY_FOLDER_PREFIX = "storefront"

    STRIPE_SECRET_KEY = "sk_test_dummy"
    STRIPE_WEBHOOK_SECRET = "whsec_test"
    TABBY_SECRET_KEY = "tabby_test_dummy"
