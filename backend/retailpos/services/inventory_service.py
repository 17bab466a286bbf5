# Overview: Service-layer operations for product stock; every on-hand change goes through here.

"""
Inventory Ledger

Stock is a mutable on-hand counter on Product (stock_qty). Movements are
applied inside the caller's unit of work: nothing here commits, so a
conversion or return either lands completely with its stock movements or not
at all.

Invariants:
- Read-modify-write happens on rows loaded FOR UPDATE, under the store lock,
  and Product.version_id catches any concurrent write that slipped through.
- A line whose product_id does not resolve is skipped with a warning. With
  STRICT_STOCK_PRODUCTS enabled the caller is expected to call
  ensure_products_exist() first, which raises before anything is mutated.
- Document-driven decrements may take stock below zero (goods already left);
  manual adjustments may not.
"""

from __future__ import annotations

from typing import Any, Iterable

from flask import current_app

from ..extensions import db
from ..models import Product
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import lock_for_update, run_with_retry


def _get(line: Any, key: str) -> Any:
    if isinstance(line, dict):
        return line.get(key)
    return getattr(line, key, None)


def _load_products(product_ids: Iterable[int]) -> dict[int, Product]:
    ids = sorted({pid for pid in product_ids if pid is not None})
    if not ids:
        return {}
    rows = lock_for_update(db.session.query(Product).filter(Product.id.in_(ids))).all()
    return {p.id: p for p in rows}


def find_product(product_id: int) -> Product | None:
    return db.session.get(Product, product_id)


def ensure_products_exist(lines: Iterable[Any]) -> None:
    """
    Raise NotFoundError if strict stock mode is on and a line's product is unknown.

    No-op in the default (lenient) mode.
    """
    if not current_app.config.get("STRICT_STOCK_PRODUCTS"):
        return
    lines = list(lines)
    products = _load_products(_get(line, "product_id") for line in lines)
    for line in lines:
        product_id = _get(line, "product_id")
        if product_id is not None and product_id not in products:
            raise NotFoundError(f"Product {product_id} not found")


def _apply(lines: Iterable[Any], sign: int, *, reason: str) -> list[dict]:
    lines = list(lines)
    products = _load_products(_get(line, "product_id") for line in lines)

    moves: list[dict] = []
    for line in lines:
        product_id = _get(line, "product_id")
        if product_id is None:
            continue
        qty = int(_get(line, "qty") or 0)
        if qty <= 0:
            continue

        product = products.get(product_id)
        if product is None:
            current_app.logger.warning(
                "Stock movement skipped: product %s not found (%s)", product_id, reason
            )
            continue

        product.stock_qty = (product.stock_qty or 0) + sign * qty
        if product.stock_qty < 0:
            current_app.logger.warning(
                "Product %s (%s) stock went negative: %s (%s)",
                product.id, product.sku, product.stock_qty, reason,
            )
        moves.append({"product_id": product.id, "sku": product.sku, "delta": sign * qty})

    db.session.flush()
    return moves


def decrement_for_lines(lines: Iterable[Any], *, reason: str) -> list[dict]:
    """Goods leave: subtract each line's qty from its product. Returns the applied moves."""
    return _apply(lines, -1, reason=reason)


def increment_for_lines(lines: Iterable[Any], *, reason: str) -> list[dict]:
    """Goods come back: add each line's qty to its product. Returns the applied moves."""
    return _apply(lines, 1, reason=reason)


def adjust_stock(product_id: int, *, delta: int | None = None, set_to: int | None = None, reason: str | None = None) -> Product:
    """
    Manual stock correction (count, breakage, reception outside the document chain).

    Exactly one of delta / set_to must be given. The result may not be negative.
    """
    if (delta is None) == (set_to is None):
        raise ValidationError("Provide exactly one of delta or set_to")

    def _op() -> Product:
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).one_or_none()
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")

        new_qty = set_to if set_to is not None else (product.stock_qty or 0) + delta
        if new_qty < 0:
            raise ConflictError(
                f"Stock for {product.sku} cannot go below zero (on hand {product.stock_qty})"
            )
        previous = product.stock_qty
        product.stock_qty = new_qty
        db.session.commit()
        current_app.logger.info(
            "Stock adjusted for %s: %s -> %s (%s)", product.sku, previous, new_qty, reason or "manual"
        )
        return product

    return run_with_retry(_op)


def low_stock_products(threshold: int | None = None) -> list[Product]:
    """
    Active products at or under their alert level.

    A product's own min_stock wins when set; otherwise the global threshold applies.
    """
    if threshold is None:
        threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 10)
    products = (
        db.session.query(Product)
        .filter(Product.is_active.is_(True))
        .order_by(Product.stock_qty.asc(), Product.sku.asc())
        .all()
    )
    return [p for p in products if p.stock_qty <= (p.min_stock or threshold)]
