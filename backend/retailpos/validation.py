from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text, JSON
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: 9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

DISCOUNT_TYPES = {"percent", "fixed"}
DISCOUNT_TARGETS = {"htva", "ttc"}


class ValidationError(ValueError):
    """400-level input problem (missing/unrecognized argument, malformed amount)."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., returning more than is returnable)."""


class NotFoundError(LookupError):
    """404-level: a referenced document, product, invoice or customer does not exist."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def parse_int(value: Any, field: str) -> int:
    """Strict integer parsing: rejects bools, floats, decimals and scientific notation."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def parse_decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not result.is_finite():
        raise ValidationError(f"{field} must be a number")
    return result


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return parse_int(value, col.key)

    if isinstance(coltype, Numeric):
        return parse_decimal(value, col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    if isinstance(coltype, JSON):
        return value

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    """
    if "price_cents" in patch and patch["price_cents"] is not None:
        price = patch["price_cents"]
        if price < 0:
            raise ValidationError("price_cents must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"price_cents cannot exceed {MAX_PRICE_CENTS}")

    if "vat_rate" in patch and patch["vat_rate"] is not None:
        if patch["vat_rate"] < 0 or patch["vat_rate"] > 100:
            raise ValidationError("vat_rate must be between 0 and 100")

    if "min_stock" in patch and patch["min_stock"] is not None and patch["min_stock"] < 0:
        raise ValidationError("min_stock must be >= 0")

    attributes = patch.get("attributes")
    if attributes is not None:
        if not isinstance(attributes, dict):
            raise ValidationError("attributes must be an object of string values")
        for key, value in attributes.items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise ValidationError("attributes must map strings to strings")


def validate_discount(discount_type: Any, discount_value: Any, field: str) -> tuple[str | None, Decimal]:
    """Normalize a (type, value) discount pair. Percent is in points, fixed in cents."""
    if discount_type in (None, "", "none"):
        return None, Decimal("0")
    if discount_type not in DISCOUNT_TYPES:
        raise ValidationError(f"{field}_type must be one of {sorted(DISCOUNT_TYPES)}")
    value = parse_decimal(discount_value if discount_value is not None else 0, f"{field}_value")
    if value < 0:
        raise ValidationError(f"{field}_value must be >= 0")
    if discount_type == "percent" and value > 100:
        raise ValidationError(f"{field}_value cannot exceed 100 percent")
    return discount_type, value


def validate_document_items(items: Any, *, default_vat_rate: int) -> list[dict]:
    """
    Validate the `items` array of a document payload.

    Returns normalized line dicts ready to become DocumentLine rows.
    """
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValidationError("items must be a list")

    cleaned: list[dict] = []
    for idx, raw in enumerate(items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{idx}] must be an object")

        qty = parse_int(raw.get("qty"), f"items[{idx}].qty")
        if qty <= 0:
            raise ValidationError(f"items[{idx}].qty must be > 0")

        unit_price_cents = parse_int(raw.get("unit_price_cents", 0), f"items[{idx}].unit_price_cents")
        if unit_price_cents < 0 or unit_price_cents > MAX_PRICE_CENTS:
            raise ValidationError(f"items[{idx}].unit_price_cents out of range")

        discount_type, discount_value = validate_discount(
            raw.get("discount_type"), raw.get("discount_value"), f"items[{idx}].discount"
        )
        discount_target = raw.get("discount_target") or "htva"
        if discount_target not in DISCOUNT_TARGETS:
            raise ValidationError(f"items[{idx}].discount_target must be one of {sorted(DISCOUNT_TARGETS)}")

        vat_raw = raw.get("vat_rate")
        vat_rate = parse_decimal(vat_raw, f"items[{idx}].vat_rate") if vat_raw is not None else Decimal(default_vat_rate)
        if vat_rate < 0 or vat_rate > 100:
            raise ValidationError(f"items[{idx}].vat_rate must be between 0 and 100")

        product_id = raw.get("product_id")
        cleaned.append({
            "product_id": parse_int(product_id, f"items[{idx}].product_id") if product_id is not None else None,
            "sku": (raw.get("sku") or None),
            "description": (raw.get("description") or raw.get("name") or None),
            "qty": qty,
            "unit_price_cents": unit_price_cents,
            "discount_type": discount_type,
            "discount_value": discount_value,
            "discount_target": discount_target,
            "vat_rate": vat_rate,
        })

    return cleaned
