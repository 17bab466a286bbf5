# Overview: JSON-file persistence for flat settings (company profile, Peppyrus, Shopify).

"""
Settings store.

The only state written to disk. One JSON file holds three sections; every
section is merged over its defaults on load, so a file written by an older
version (or hand-edited with missing keys) still yields a complete section.

load() never raises on a bad file: a corrupt or unreadable file is logged
and the defaults are used. save() writes to a temporary file and renames it
so a crash never leaves a half-written file behind.
"""

from __future__ import annotations

import copy
import json
import os
import tempfile
from typing import Any

from flask import current_app

from ..validation import NotFoundError, ValidationError, parse_int


DEFAULT_SETTINGS: dict[str, dict[str, Any]] = {
    "company": {
        "company_name": "My Company",
        "legal_name": "My Company SPRL",
        "company_id": "",
        "vat_number": "BE0123456789",
        "peppol_id": "",
        "street_name": "Rue de la Paix",
        "building_number": "123",
        "address_line": "",
        "city": "Brussels",
        "postal_code": "1000",
        "country": "BE",
        "phone": "+32 2 123 45 67",
        "email": "info@mycompany.be",
        "website": "www.mycompany.be",
        "bank_account_iban": "BE68539007547034",
        "bank_account_bic": "GEBABEBB",
        "bank_name": "BNP Paribas Fortis",
        "default_payment_terms_days": 30,
        "invoice_footer_text": "Merci pour votre confiance",
        "quote_footer_text": "Devis valable 30 jours",
    },
    "peppyrus": {
        "enabled": False,
        "api_key": "",
        "api_secret": "",
        "api_url": "https://api.peppyrus.be",
        "sender_id": "",
        "test_mode": True,
        "auto_send_invoices": False,
    },
    "shopify": {
        "enabled": False,
        "shop_url": "",
        "access_token": "",
        "api_key": "",
        "api_secret": "",
        "auto_sync": False,
        "sync_interval_minutes": 30,
        "last_sync": None,
    },
}

SECTIONS = tuple(DEFAULT_SETTINGS.keys())

# Secrets are write-only through the API
SECRET_KEYS = {"api_key", "api_secret", "access_token"}


def _settings_path() -> str:
    return current_app.config["SETTINGS_FILE"]


def defaults() -> dict[str, dict[str, Any]]:
    return copy.deepcopy(DEFAULT_SETTINGS)


def load() -> dict[str, dict[str, Any]]:
    """Read the settings file merged over defaults."""
    settings = defaults()
    path = _settings_path()
    if not os.path.exists(path):
        return settings

    try:
        with open(path, "r", encoding="utf-8") as fh:
            stored = json.load(fh)
    except (OSError, ValueError):
        current_app.logger.exception("Error loading settings from %s, using defaults", path)
        return settings

    if not isinstance(stored, dict):
        current_app.logger.warning("Settings file %s is not an object, using defaults", path)
        return settings

    for section in SECTIONS:
        values = stored.get(section)
        if isinstance(values, dict):
            settings[section].update(values)
    return settings


def save(settings: dict[str, dict[str, Any]]) -> None:
    path = _settings_path()
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(prefix=".settings-", suffix=".json", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump({s: settings[s] for s in SECTIONS}, fh, indent=2, ensure_ascii=False)
        os.replace(tmp_path, path)
    except OSError:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
    current_app.logger.info("Settings saved to %s", path)


def _require_section(section: str) -> None:
    if section not in SECTIONS:
        raise NotFoundError(f"Unknown settings section: {section}")


def _coerce(section: str, key: str, value: Any) -> Any:
    default = DEFAULT_SETTINGS[section][key]
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ValidationError(f"{key} must be a boolean")
        return value
    if isinstance(default, int):
        number = parse_int(value, key)
        if number < 0:
            raise ValidationError(f"{key} must be >= 0")
        return number
    if default is None:
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"{key} must be a string or null")
        return value
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value.strip()


def public_view(section: str, values: dict[str, Any]) -> dict[str, Any]:
    """Section as returned to clients: secrets are masked, with a *_set flag instead."""
    view = {}
    for key, value in values.items():
        if key in SECRET_KEYS:
            view[f"{key}_set"] = bool(value)
            continue
        view[key] = value
    return view


def get_section(section: str) -> dict[str, Any]:
    _require_section(section)
    return load()[section]


def update_section(section: str, patch: Any) -> dict[str, Any]:
    """
    Merge a partial update into one section and persist the whole file.

    Raises:
        NotFoundError: unknown section
        ValidationError: unknown key or wrong value type
    """
    _require_section(section)
    if not isinstance(patch, dict):
        raise ValidationError("Invalid JSON payload")

    patch = dict(patch)
    # Older clients send store_domain for the Shopify shop URL
    if section == "shopify" and "store_domain" in patch:
        domain = patch.pop("store_domain")
        patch.setdefault("shop_url", domain)

    cleaned = {}
    for key, value in patch.items():
        if key not in DEFAULT_SETTINGS[section]:
            raise ValidationError(f"Unknown {section} setting: {key}")
        cleaned[key] = _coerce(section, key, value)

    settings = load()
    settings[section].update(cleaned)
    save(settings)
    return settings[section]
