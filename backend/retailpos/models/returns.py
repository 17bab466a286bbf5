from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ._numbers import number_or_none


class Return(db.Model):
    """
    Customer return against an invoice.

    LIFECYCLE:
    - validated: lines checked against returnable quantities, restock applied,
      credit note issued (one-shot, there is no separate approval step)
    - cancelled: credit note cancelled and restocked units taken back out
    - draft: reserved for returns that were never validated

    Credited quantities are never cached here; they are always recomputed from
    the credit notes that point at the invoice.
    """
    __tablename__ = "returns"
    __table_args__ = (
        db.UniqueConstraint("number", name="uq_returns_number"),
        db.Index("ix_returns_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "RET-2026-000012")
    number = db.Column(db.String(64), nullable=False)

    invoice_id = db.Column(db.Integer, db.ForeignKey("documents.id"), nullable=False, index=True)
    invoice_number = db.Column(db.String(64), nullable=True)
    customer_id = db.Column(db.Integer, nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="draft", index=True)  # draft, validated, cancelled
    reason = db.Column(db.Text, nullable=True)

    # Sum of per-line restocking fees (cents, excl. VAT)
    restocking_fee_cents = db.Column(db.Integer, nullable=False, default=0)

    credit_note_id = db.Column(db.Integer, nullable=True)
    credit_note_number = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    validated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "ReturnLine",
        backref="return_doc",
        order_by="ReturnLine.id",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "number": self.number,
            "invoice_id": self.invoice_id,
            "invoice_number": self.invoice_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "status": self.status,
            "reason": self.reason,
            "restocking_fee_cents": self.restocking_fee_cents,
            "credit_note_id": self.credit_note_id,
            "credit_note_number": self.credit_note_number,
            "lines": [line.to_dict() for line in self.lines],
            "created_at": to_utc_z(self.created_at),
            "validated_at": to_utc_z(self.validated_at) if self.validated_at else None,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
        }


class ReturnLine(db.Model):
    """
    One returned invoice line.

    qty_returnable is the snapshot taken when the return was validated
    (invoiced minus previously credited). restock decides whether the units
    go back into sellable stock; the financial credit happens either way.
    """
    __tablename__ = "return_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("returns.id"), nullable=False, index=True)

    # Position of the invoice line (DocumentLine.line_no)
    invoice_line_id = db.Column(db.Integer, nullable=False)
    product_id = db.Column(db.Integer, nullable=True, index=True)
    sku = db.Column(db.String(64), nullable=True)
    description = db.Column(db.String(512), nullable=True)

    qty_credited = db.Column(db.Integer, nullable=False)
    qty_returnable = db.Column(db.Integer, nullable=False)

    # Net per-unit price charged on the invoice (cents, excl. VAT)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    vat_rate = db.Column(db.Numeric(5, 2), nullable=False, default=21)

    condition = db.Column(db.String(32), nullable=False, default="new")  # new, opened, damaged, ...
    restock = db.Column(db.Boolean, nullable=False, default=True)
    restocking_fee_cents = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_line_id": self.invoice_line_id,
            "product_id": self.product_id,
            "sku": self.sku,
            "description": self.description,
            "qty_credited": self.qty_credited,
            "qty_returnable": self.qty_returnable,
            "unit_price_cents": self.unit_price_cents,
            "vat_rate": number_or_none(self.vat_rate),
            "condition": self.condition,
            "restock": self.restock,
            "restocking_fee_cents": self.restocking_fee_cents,
        }
