# Overview: Service-layer operations for documents; numbering, creation, listing and duplication.

from __future__ import annotations

from datetime import datetime
from typing import Any

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import Customer, Document, DocumentLine, DocumentSequence
from ..time_utils import utcnow
from ..validation import (
    NotFoundError,
    ValidationError,
    parse_int,
    validate_discount,
    validate_document_items,
)
from . import document_types, inventory_service, payment_service, pricing
from .concurrency import run_with_retry


SNAPSHOT_FIELDS = ("customer_name", "customer_vat", "customer_address", "customer_reference")


# =============================================================================
# NUMBERING
# =============================================================================

def next_sequence_value(sequence_name: str) -> int:
    """
    Allocate the next value of a process-wide sequence.

    Runs inside the caller's unit of work: the increment is a single UPDATE, so
    two creations can never read the same value, and a rolled-back creation
    gives its number back.
    """
    if not sequence_name:
        raise ValidationError("sequence_name is required")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.sequence_name == sequence_name)
        .values(next_number=DocumentSequence.next_number + 1)
    )
    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(sequence_name=sequence_name)
            .scalar()
        )
        return current - 1

    db.session.add(DocumentSequence(sequence_name=sequence_name, next_number=2))
    db.session.flush()
    return 1


def next_document_number(doc_type: str) -> str:
    """e.g. FAC-000042. Every type draws from the same DOCUMENT sequence."""
    pad = current_app.config.get("DOCUMENT_NUMBER_PAD", 6)
    seq = next_sequence_value(document_types.DOCUMENT_SEQUENCE)
    return f"{document_types.prefix_for(doc_type)}-{seq:0{pad}d}"


def next_return_number(year: int | None = None) -> str:
    """e.g. RET-2026-000003."""
    pad = current_app.config.get("DOCUMENT_NUMBER_PAD", 6)
    seq = next_sequence_value(document_types.RETURN_SEQUENCE)
    return f"RET-{year or utcnow().year}-{seq:0{pad}d}"


# =============================================================================
# BUILDING BLOCKS
# =============================================================================

def new_line(line_no: int, fields: dict) -> DocumentLine:
    line = DocumentLine(
        line_no=line_no,
        product_id=fields.get("product_id"),
        sku=fields.get("sku"),
        description=fields.get("description"),
        qty=fields["qty"],
        unit_price_cents=fields["unit_price_cents"],
        discount_type=fields.get("discount_type"),
        discount_value=fields.get("discount_value") if fields.get("discount_type") else None,
        discount_target=fields.get("discount_target") or "htva",
        vat_rate=fields.get("vat_rate"),
        invoice_line_id=fields.get("invoice_line_id"),
    )
    return line


def _fill_from_products(items: list[dict]) -> None:
    """Complete sku/description from the catalog when the client only sent product_id."""
    for item in items:
        if item["product_id"] is None or (item["sku"] and item["description"]):
            continue
        product = inventory_service.find_product(item["product_id"])
        if product is None:
            continue
        item["sku"] = item["sku"] or product.sku
        item["description"] = item["description"] or product.name


def _customer_snapshot(payload: dict) -> dict:
    """
    Copy customer details onto the document.

    Explicit snapshot fields in the payload win; anything missing is taken from
    the customer record as it is right now.
    """
    snapshot = {k: payload.get(k) for k in SNAPSHOT_FIELDS}
    customer_id = payload.get("customer_id")
    if customer_id is None:
        snapshot["customer_id"] = None
        return snapshot

    customer_id = parse_int(customer_id, "customer_id")
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found")

    snapshot["customer_id"] = customer.id
    snapshot["customer_name"] = snapshot["customer_name"] or customer.name
    snapshot["customer_vat"] = snapshot["customer_vat"] or customer.vat_number
    snapshot["customer_address"] = snapshot["customer_address"] or customer.address
    return snapshot


def _parse_payments(raw: Any) -> list[dict]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("payments must be a list")
    payments = []
    for idx, p in enumerate(raw, start=1):
        if not isinstance(p, dict):
            raise ValidationError(f"payments[{idx}] must be an object")
        method, amount_cents = payment_service.validate_payment(p.get("method"), p.get("amount_cents"))
        payments.append({"method": method, "amount_cents": amount_cents, "reference": p.get("reference")})
    return payments


def _build(payload: dict, *, doc_type: str, status: str | None) -> tuple[Document, list[dict]]:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    items = validate_document_items(
        payload.get("items"),
        default_vat_rate=current_app.config.get("DEFAULT_VAT_RATE", 21),
    )
    global_type, global_value = validate_discount(
        payload.get("global_discount_type"), payload.get("global_discount_value"), "global_discount"
    )
    payments = _parse_payments(payload.get("payments"))

    sale_id = payload.get("sale_id")
    sale_id = parse_int(sale_id, "sale_id") if sale_id is not None else None

    defaults = document_types.get_document_defaults(doc_type, None)
    if status is not None and status not in document_types.STATUSES.get(doc_type, ()):
        raise ValidationError(f"Invalid status {status!r} for {doc_type}")

    snapshot = _customer_snapshot(payload)
    _fill_from_products(items)

    doc = Document(
        doc_type=doc_type,
        status=status or defaults.status,
        date=utcnow(),
        currency=(payload.get("currency") or current_app.config.get("DEFAULT_CURRENCY", "EUR")),
        notes=payload.get("notes"),
        global_discount_type=global_type,
        global_discount_value=global_value if global_type else None,
        total_cents=pricing.calculate_total(items, global_type, global_value),
        paid_total_cents=0,
        sale_id=sale_id,
        **snapshot,
    )
    for line_no, fields in enumerate(items, start=1):
        doc.lines.append(new_line(line_no, fields))
    return doc, payments


def _persist(doc: Document, payments: list[dict], *, decrease_stock: bool) -> Document:
    if decrease_stock:
        inventory_service.ensure_products_exist(doc.lines)

    doc.number = next_document_number(doc.doc_type)
    db.session.add(doc)
    db.session.flush()

    for p in payments:
        payment_service.record_payment(doc, method=p["method"], amount_cents=p["amount_cents"], reference=p["reference"])

    if decrease_stock:
        inventory_service.decrement_for_lines(doc.lines, reason=doc.number)

    db.session.commit()
    return doc


# =============================================================================
# OPERATIONS
# =============================================================================

def create_document(payload: dict) -> Document:
    """
    Direct creation of a document of any registered type.

    Stock follows the registry with no source: a delivery note or invoice
    created directly decrements stock, unless the payload references the
    sale_id of a till receipt whose stock already moved.

    Raises:
        ValidationError: unknown doc_type, malformed items, discounts or payments
        NotFoundError: customer_id (or, in strict mode, a product) does not exist
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    doc_type = payload.get("doc_type")
    if not document_types.is_known_type(doc_type):
        raise ValidationError(f"doc_type must be one of {list(document_types.DOCUMENT_TYPES)}")

    def _op() -> Document:
        doc, payments = _build(payload, doc_type=doc_type, status=payload.get("status"))
        defaults = document_types.get_document_defaults(doc_type, None)
        decrease = defaults.should_decrease_stock and doc.sale_id is None
        return _persist(doc, payments, decrease_stock=decrease)

    doc = run_with_retry(_op)
    current_app.logger.info("Document created: %s (%s)", doc.number, doc.status)
    return doc


def create_sale(payload: dict) -> Document:
    """
    Till checkout: a receipt with its payments. Goods leave immediately, so
    stock is always decremented.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    if not payload.get("items"):
        raise ValidationError("A sale needs at least one item")

    def _op() -> Document:
        doc, payments = _build(payload, doc_type=document_types.RECEIPT, status="unpaid")
        return _persist(doc, payments, decrease_stock=True)

    doc = run_with_retry(_op)
    current_app.logger.info(
        "Sale created: %s total %s paid %s", doc.number, doc.total_cents, doc.paid_total_cents
    )
    return doc


def get_document(doc_id: int) -> Document:
    doc = db.session.get(Document, doc_id)
    if doc is None:
        raise NotFoundError(f"Document {doc_id} not found")
    return doc


def list_documents(
    doc_type: str | None = None,
    limit: int | None = None,
    *,
    status: str | None = None,
    customer_id: int | None = None,
) -> list[Document]:
    """Newest first by date."""
    if limit is None:
        limit = current_app.config.get("DOCUMENTS_DEFAULT_LIMIT", 200)
    if limit < 0:
        raise ValidationError("limit must be >= 0")

    query = db.session.query(Document)
    if doc_type:
        query = query.filter(Document.doc_type == doc_type)
    if status:
        query = query.filter(Document.status == status)
    if customer_id is not None:
        query = query.filter(Document.customer_id == customer_id)
    return query.order_by(Document.date.desc(), Document.id.desc()).limit(limit).all()


def duplicate_document(doc_id: int) -> Document:
    """
    Re-quote workflow: same type, same items, discounts and customer, status
    draft. No backward link and no stock movement.
    """
    def _op() -> Document:
        source = get_document(doc_id)
        copy = Document(
            doc_type=source.doc_type,
            status="draft",
            date=utcnow(),
            customer_id=source.customer_id,
            customer_name=source.customer_name,
            customer_vat=source.customer_vat,
            customer_address=source.customer_address,
            customer_reference=source.customer_reference,
            currency=source.currency,
            notes=source.notes,
            global_discount_type=source.global_discount_type,
            global_discount_value=source.global_discount_value,
            total_cents=source.total_cents,
            paid_total_cents=0,
        )
        for line in source.lines:
            fields = line.copy_fields()
            fields["invoice_line_id"] = None
            copy.lines.append(new_line(line.line_no, fields))

        copy.number = next_document_number(copy.doc_type)
        db.session.add(copy)
        db.session.commit()
        return copy

    doc = run_with_retry(_op)
    current_app.logger.info("Document %s duplicated as %s", doc_id, doc.number)
    return doc


def serialize_document(doc: Document) -> dict:
    """to_dict() plus the dimensions that need a query (credit status on invoices)."""
    from .return_service import credit_status

    data = doc.to_dict()
    if doc.doc_type == document_types.INVOICE:
        data["credit_status"] = credit_status(doc)
    return data


def documents_in_range(doc_types: tuple[str, ...], start: datetime, end: datetime) -> list[Document]:
    return (
        db.session.query(Document)
        .filter(
            Document.doc_type.in_(doc_types),
            Document.status != "cancelled",
            Document.date >= start,
            Document.date <= end,
        )
        .order_by(Document.date.asc(), Document.id.asc())
        .all()
    )
