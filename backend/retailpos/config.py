# backend/retailpos/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # All documents, products and stock live for the lifetime of the process.
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///:memory:",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Flat settings (company, Peppyrus, Shopify) are the only thing written to disk
    SETTINGS_FILE = os.environ.get("SETTINGS_FILE", "settings.json")

    DEFAULT_VAT_RATE = int(os.environ.get("DEFAULT_VAT_RATE", "21"))
    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "EUR")
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "10"))

    DOCUMENT_NUMBER_PAD = int(os.environ.get("DOCUMENT_NUMBER_PAD", "6"))
    DOCUMENTS_DEFAULT_LIMIT = int(os.environ.get("DOCUMENTS_DEFAULT_LIMIT", "200"))

    # When False, a line whose product_id does not resolve is skipped (and logged)
    # during stock movements. When True the whole operation is rejected with 404.
    STRICT_STOCK_PRODUCTS = _env_bool("STRICT_STOCK_PRODUCTS", False)

    CORS_ALLOWED_ORIGINS = [
        o.strip()
        for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000",
        ).split(",")
        if o.strip()
    ]
