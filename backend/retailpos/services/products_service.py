# backend/retailpos/services/products_service.py
"""
Product catalog.

stock_qty is not writable through create/update: on-hand changes go through
inventory_service (document movements or a manual adjustment) so every
change is serialized and logged.

Products are never hard-deleted: documents keep referencing them, so
deactivate_product only flips is_active.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Category, Product
from ..validation import ConflictError, ModelValidationPolicy, NotFoundError, ValidationError
from .concurrency import lock_for_update, run_with_retry

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name", "description", "category_id", "price_cents", "vat_rate",
        "min_stock", "unit", "barcode", "attributes", "is_active",
    },
    required_on_create={"sku", "name"},
)

# Opening stock may be given once, at creation time
PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_POLICY.writable_fields | {"stock_qty"},
    required_on_create={"sku", "name"},
)


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_POLICY.writable_fields:
            continue
        setattr(p, k, v)


def list_products(
    search: str | None = None,
    category_id: int | None = None,
    category_slug: str | None = None,
    active_only: bool = False,
) -> list[Product]:
    query = db.session.query(Product)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            or_(Product.sku.ilike(like), Product.name.ilike(like), Product.barcode.ilike(like))
        )
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if category_slug:
        query = query.join(Category, Category.id == Product.category_id).filter(Category.slug == category_slug)
    if active_only:
        query = query.filter(Product.is_active.is_(True))
    return query.order_by(Product.sku.asc()).all()


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def _ensure_sku_free(sku: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Product.id).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"SKU {sku} already exists")


def _ensure_category_exists(patch: dict) -> None:
    category_id = patch.get("category_id")
    if category_id is not None and db.session.get(Category, category_id) is None:
        raise ValidationError(f"category_id {category_id} does not exist")


def create_product(*, patch: dict) -> Product:
    """
    Create product from a validated patch dict.

    Raises:
        ConflictError: If SKU already exists
        ValidationError: negative opening stock or unknown category_id
    """
    def _op() -> Product:
        _ensure_sku_free(patch["sku"])
        _ensure_category_exists(patch)
        product = Product(**patch)
        if product.stock_qty is None:
            product.stock_qty = 0
        if product.stock_qty < 0:
            raise ValidationError("stock_qty must be >= 0")
        db.session.add(product)
        db.session.commit()
        return product

    return run_with_retry(_op)


def update_product(*, product_id: int, patch: dict) -> Product:
    def _op() -> Product:
        product = get_product(product_id)
        if "sku" in patch and patch["sku"] != product.sku:
            _ensure_sku_free(patch["sku"], exclude_id=product.id)
        _ensure_category_exists(patch)
        apply_product_patch(product, patch)
        db.session.commit()
        return product

    return run_with_retry(_op)


def deactivate_product(*, product_id: int) -> Product:
    """
    Soft-delete a product.

    Raises:
        NotFoundError: product missing
    """
    def _op() -> Product:
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).one_or_none()
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        # Soft-delete only: documents keep their product_id
        if product.is_active:
            product.is_active = False
        db.session.commit()
        return product

    product = run_with_retry(_op)
    current_app.logger.info("Product deactivated: %s", product.sku)
    return product
