from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ._numbers import number_or_none


class DocumentSequence(db.Model):
    """
    Process-wide numbering counters.

    One row per sequence name ("DOCUMENT" for every commercial document,
    "RETURN" for return slips). next_number is incremented with a single
    UPDATE so two concurrent creations never share a number.
    """
    __tablename__ = "document_sequences"

    id = db.Column(db.Integer, primary_key=True)
    sequence_name = db.Column(db.String(32), nullable=False, unique=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sequence_name": self.sequence_name,
            "next_number": self.next_number,
        }


class Document(db.Model):
    """
    Commercial document: quote, purchase order, delivery note, invoice,
    credit note, receipt or proforma.

    A document never changes doc_type. Conversion creates a new document of
    the target type and links it back through source_document_*. The total is
    a snapshot taken at creation/conversion and is never recomputed.

    LINKS:
    - source_document_*: set only on documents created by conversion or by a
      return (credit notes point at their invoice)
    - credit_note_*: set on the invoice once a credit note is issued against it
    """
    __tablename__ = "documents"
    __table_args__ = (
        db.UniqueConstraint("number", name="uq_documents_number"),
        db.Index("ix_documents_type_date", "doc_type", "date"),
        db.Index("ix_documents_source", "source_document_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "FAC-000042")
    number = db.Column(db.String(64), nullable=False)
    doc_type = db.Column(db.String(32), nullable=False, index=True)
    status = db.Column(db.String(32), nullable=False, index=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    # Customer snapshot
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=True)
    customer_vat = db.Column(db.String(64), nullable=True)
    customer_address = db.Column(db.String(512), nullable=True)
    customer_reference = db.Column(db.String(128), nullable=True)

    currency = db.Column(db.String(3), nullable=False, default="EUR")
    notes = db.Column(db.Text, nullable=True)

    global_discount_type = db.Column(db.String(16), nullable=True)
    global_discount_value = db.Column(db.Numeric(12, 4), nullable=True)

    # All amounts in cents
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    paid_total_cents = db.Column(db.Integer, nullable=False, default=0)

    # Backward link (conversion / credit note -> invoice)
    source_document_id = db.Column(db.Integer, db.ForeignKey("documents.id"), nullable=True)
    source_document_type = db.Column(db.String(32), nullable=True)
    source_document_number = db.Column(db.String(64), nullable=True)

    # Forward link on the credited invoice
    credit_note_id = db.Column(db.Integer, nullable=True)
    credit_note_number = db.Column(db.String(64), nullable=True)

    # Receipt an invoice was issued for (stock already moved at the till)
    sale_id = db.Column(db.Integer, nullable=True, index=True)

    # Credit notes produced by a return
    return_id = db.Column(db.Integer, nullable=True, index=True)
    settlement_status = db.Column(db.String(16), nullable=True)
    settlement_method = db.Column(db.String(32), nullable=True)
    settled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "DocumentLine",
        backref="document",
        order_by="DocumentLine.line_no",
        cascade="all, delete-orphan",
        lazy=True,
    )
    payments = db.relationship(
        "DocumentPayment",
        backref="document",
        order_by="DocumentPayment.id",
        cascade="all, delete-orphan",
        lazy=True,
    )
    customer = db.relationship("Customer")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def payment_status(self) -> str:
        """Payment dimension, independent of the lifecycle status."""
        if self.paid_total_cents >= self.total_cents and self.paid_total_cents > 0:
            return "paid"
        if self.paid_total_cents > 0:
            return "partially_paid"
        return "unpaid"

    def line_by_no(self, line_no: int) -> "DocumentLine | None":
        for line in self.lines:
            if line.line_no == line_no:
                return line
        return None

    def __repr__(self) -> str:
        return f"<Document id={self.id} number={self.number!r} type={self.doc_type} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "number": self.number,
            "doc_type": self.doc_type,
            "status": self.status,
            "date": to_utc_z(self.date),
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_vat": self.customer_vat,
            "customer_address": self.customer_address,
            "customer_reference": self.customer_reference,
            "currency": self.currency,
            "notes": self.notes,
            "items": [line.to_dict() for line in self.lines],
            "global_discount_type": self.global_discount_type,
            "global_discount_value": number_or_none(self.global_discount_value),
            "total_cents": self.total_cents,
            "payments": [p.to_dict() for p in self.payments],
            "paid_total_cents": self.paid_total_cents,
            "payment_status": self.payment_status,
            "source_document_id": self.source_document_id,
            "source_document_type": self.source_document_type,
            "source_document_number": self.source_document_number,
            "credit_note_id": self.credit_note_id,
            "credit_note_number": self.credit_note_number,
            "sale_id": self.sale_id,
            "return_id": self.return_id,
            "settlement_status": self.settlement_status,
            "settlement_method": self.settlement_method,
            "settled_at": to_utc_z(self.settled_at) if self.settled_at else None,
            "version_id": self.version_id,
        }


class DocumentLine(db.Model):
    """
    Line item on a document.

    line_no is the stable 1-based position assigned at creation; it is what
    the API exposes as the line "id" and what credit notes reference through
    invoice_line_id.
    """
    __tablename__ = "document_lines"
    __table_args__ = (
        db.UniqueConstraint("document_id", "line_no", name="uq_document_lines_position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(db.Integer, db.ForeignKey("documents.id"), nullable=False, index=True)
    line_no = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, nullable=True, index=True)
    sku = db.Column(db.String(64), nullable=True)
    description = db.Column(db.String(512), nullable=True)

    qty = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)

    discount_type = db.Column(db.String(16), nullable=True)  # percent, fixed
    discount_value = db.Column(db.Numeric(12, 4), nullable=True)
    discount_target = db.Column(db.String(8), nullable=False, default="htva")  # htva, ttc
    vat_rate = db.Column(db.Numeric(5, 2), nullable=False, default=21)

    # Credit note lines only: position of the credited invoice line
    invoice_line_id = db.Column(db.Integer, nullable=True)

    def to_calc_dict(self) -> dict:
        """Shape consumed by the pricing engine."""
        return {
            "qty": self.qty,
            "unit_price_cents": self.unit_price_cents,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "discount_target": self.discount_target,
            "vat_rate": self.vat_rate,
        }

    def copy_fields(self) -> dict:
        """Column values needed to clone this line onto another document."""
        return {
            "line_no": self.line_no,
            "product_id": self.product_id,
            "sku": self.sku,
            "description": self.description,
            "qty": self.qty,
            "unit_price_cents": self.unit_price_cents,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "discount_target": self.discount_target,
            "vat_rate": self.vat_rate,
            "invoice_line_id": self.invoice_line_id,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.line_no,
            "product_id": self.product_id,
            "sku": self.sku,
            "description": self.description,
            "qty": self.qty,
            "unit_price_cents": self.unit_price_cents,
            "discount_type": self.discount_type,
            "discount_value": number_or_none(self.discount_value),
            "discount_target": self.discount_target,
            "vat_rate": number_or_none(self.vat_rate),
            "invoice_line_id": self.invoice_line_id,
        }


class DocumentPayment(db.Model):
    """
    Payment recorded against a document.

    Append-only: the Payment Ledger adds rows and recomputes
    Document.paid_total_cents, it never edits or removes them.
    """
    __tablename__ = "document_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(db.Integer, db.ForeignKey("documents.id"), nullable=False, index=True)
    method = db.Column(db.String(32), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    reference = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "method": self.method,
            "amount_cents": self.amount_cents,
            "date": to_utc_z(self.created_at),
            "reference": self.reference,
        }
