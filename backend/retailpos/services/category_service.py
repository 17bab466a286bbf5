# Overview: Service-layer operations for product categories.

"""
Product categories.

A category has a French and a Dutch name and a unique slug. When no slug is
given it is derived from name_fr: accents folded, lower-cased, every run of
other characters turned into "-". Products point at a category through
Product.category_id; product_count is computed, never stored.
"""

from __future__ import annotations

import re
import unicodedata

from sqlalchemy import func

from ..extensions import db
from ..models import Category, Product
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    validate_payload,
)
from .concurrency import run_with_retry

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name_fr", "name_nl", "slug", "image_url", "is_active"},
    required_on_create={"name_fr"},
)


def slugify(text: str) -> str:
    folded = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "-", folded.lower()).strip("-")


def product_counts() -> dict[int, int]:
    rows = (
        db.session.query(Product.category_id, func.count(Product.id))
        .filter(Product.category_id.isnot(None))
        .group_by(Product.category_id)
        .all()
    )
    return {int(category_id): int(count) for category_id, count in rows}


def list_categories(active_only: bool = False) -> list[Category]:
    query = db.session.query(Category)
    if active_only:
        query = query.filter(Category.is_active.is_(True))
    return query.order_by(Category.name_fr.asc(), Category.id.asc()).all()


def get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError(f"Category {category_id} not found")
    return category


def find_by_slug(slug: str) -> Category | None:
    return db.session.query(Category).filter(Category.slug == slug).one_or_none()


def category_to_dict(category: Category, counts: dict[int, int] | None = None) -> dict:
    if counts is None:
        counts = product_counts()
    return category.to_dict(product_count=counts.get(category.id, 0))


def _clean_slug(raw: str) -> str:
    slug = slugify(raw)
    if not slug:
        raise ValidationError("slug must contain at least one letter or digit")
    return slug


def _ensure_slug_free(slug: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Category.id).filter(Category.slug == slug)
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"Category slug {slug} already exists")


def create_category(payload: dict | None) -> Category:
    """
    Create a category. name_fr is required.

    Raises:
        ValidationError: malformed payload or a slug with nothing usable in it
        ConflictError: slug already taken
    """
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
    patch["slug"] = _clean_slug(patch.get("slug") or patch["name_fr"])

    def _op() -> Category:
        _ensure_slug_free(patch["slug"])
        category = Category(**patch)
        db.session.add(category)
        db.session.commit()
        return category

    return run_with_retry(_op)


def update_category(category_id: int, payload: dict | None) -> Category:
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
    if "slug" in patch:
        patch["slug"] = _clean_slug(patch["slug"])

    def _op() -> Category:
        category = get_category(category_id)
        if "slug" in patch and patch["slug"] != category.slug:
            _ensure_slug_free(patch["slug"], exclude_id=category.id)
        for key, value in patch.items():
            setattr(category, key, value)
        db.session.commit()
        return category

    return run_with_retry(_op)
