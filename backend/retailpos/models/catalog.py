from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ._numbers import number_or_none


class Category(db.Model):
    """Product family, named in French and Dutch. slug is unique."""
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("slug", name="uq_categories_slug"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name_fr = db.Column(db.String(128), nullable=False)
    name_nl = db.Column(db.String(128), nullable=True)
    slug = db.Column(db.String(128), nullable=False)
    image_url = db.Column(db.String(512), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    products = db.relationship("Product", back_populates="category", lazy=True)

    def to_dict(self, product_count: int = 0) -> dict:
        return {
            "id": self.id,
            "name_fr": self.name_fr,
            "name_nl": self.name_nl,
            "slug": self.slug,
            "image_url": self.image_url,
            "is_active": self.is_active,
            "product_count": product_count,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product master data.

    stock_qty is a mutable on-hand counter. It is only changed through
    inventory_service so every movement is serialized and versioned.

    attributes is a free-form string->string extension map (dimensions,
    packaging, commercial and custom keys) kept apart from the fixed columns.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.Index("ix_products_category_name", "category_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)

    price_cents = db.Column(db.Integer, nullable=False, default=0)
    vat_rate = db.Column(db.Numeric(5, 2), nullable=False, default=21)

    stock_qty = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)
    unit = db.Column(db.String(32), nullable=True)
    barcode = db.Column(db.String(64), nullable=True, index=True)

    attributes = db.Column(db.JSON, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", back_populates="products")

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} stock_qty={self.stock_qty}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "category_id": self.category_id,
            "category": self.category.name_fr if self.category is not None else None,
            "price_cents": self.price_cents,
            "vat_rate": number_or_none(self.vat_rate),
            "stock_qty": self.stock_qty,
            "min_stock": self.min_stock,
            "unit": self.unit,
            "barcode": self.barcode,
            "attributes": dict(self.attributes or {}),
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Customer(db.Model):
    """
    Customer master data.

    Documents copy name/VAT/address at creation time; editing a customer
    never rewrites documents that were already issued.
    """
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.String(512), nullable=True)
    vat_number = db.Column(db.String(64), nullable=True)
    peppol_id = db.Column(db.String(128), nullable=True)

    # Store credit owed to the customer (credit notes settled as customer credit)
    credit_balance_cents = db.Column(db.Integer, nullable=False, default=0)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "vat_number": self.vat_number,
            "peppol_id": self.peppol_id,
            "credit_balance_cents": self.credit_balance_cents,
            "created_at": to_utc_z(self.created_at),
        }


class CustomerCreditEntry(db.Model):
    """
    Append-only ledger of customer store-credit movements.

    ENTRY TYPES:
    - credit: balance increased (credit note settled as customer credit)
    - debit: balance consumed (document paid with customer credit)
    """
    __tablename__ = "customer_credit_entries"
    __table_args__ = (
        db.Index("ix_credit_entries_customer_created", "customer_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    entry_type = db.Column(db.String(16), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    source = db.Column(db.String(32), nullable=False)
    source_id = db.Column(db.Integer, nullable=True)
    description = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("credit_entries", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "type": self.entry_type,
            "amount_cents": self.amount_cents,
            "source": self.source,
            "source_id": self.source_id,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }
