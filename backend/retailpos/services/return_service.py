# Overview: Service-layer operations for returns and credit notes; credit tracking, restock and settlement.

"""
Returns & Credit Engine

WHY: An invoice can be returned in several goes. How much of each invoice
line is still returnable must always be derived from the credit notes that
exist, never from a cached counter, so repeated or concurrent returns stay
correct.

DESIGN PRINCIPLES:
- Credited quantity per invoice line = sum of qty over credit note lines
  carrying that invoice_line_id, for non-cancelled credit notes whose
  source_document_id is the invoice
- A return is validated and credited in one step: lines are checked against
  returnable quantities, restockable lines go back on the shelf, and a
  credit_note document is issued
- Stock and money are decoupled per line: restock=False (damaged goods)
  still credits the customer but leaves stock_qty alone
- Payment status and credit status are independent dimensions. The invoice
  status becomes "credited" only once every line is fully credited

LIFECYCLE:
1. create_return -> Return "validated" + credit note "validated", settlement "pending"
2. settle_credit_note -> "settled" (cash, customer credit) or "processing" (card, bank)
3. cancel_return (only before settlement) -> both "cancelled", restock reversed
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Document, DocumentLine, Return, ReturnLine
from ..time_utils import utcnow
from ..validation import ConflictError, NotFoundError, ValidationError, parse_int
from . import customer_service, document_types, inventory_service, payment_service, pricing
from .concurrency import lock_for_update, run_with_retry
from .document_service import new_line, next_document_number, next_return_number, serialize_document


RETURN_STATUS_DRAFT = "draft"
RETURN_STATUS_VALIDATED = "validated"
RETURN_STATUS_CANCELLED = "cancelled"

SETTLEMENT_PENDING = "pending"
SETTLEMENT_PROCESSING = "processing"
SETTLEMENT_SETTLED = "settled"

SETTLEMENT_METHODS = [
    payment_service.METHOD_CASH,
    payment_service.METHOD_CARD,
    payment_service.METHOD_BANK_TRANSFER,
    payment_service.METHOD_CUSTOMER_CREDIT,
]

RESTOCK_FEE_SKU = "RESTOCK-FEE"


# =============================================================================
# CREDITED QUANTITIES
# =============================================================================

def get_credited_quantities(invoice_id: int) -> dict[int, int]:
    """Map invoice line position -> quantity already credited by live credit notes."""
    rows = (
        db.session.query(DocumentLine.invoice_line_id, func.sum(DocumentLine.qty))
        .join(Document, Document.id == DocumentLine.document_id)
        .filter(
            Document.doc_type == document_types.CREDIT_NOTE,
            Document.source_document_id == invoice_id,
            Document.status != "cancelled",
            DocumentLine.invoice_line_id.isnot(None),
        )
        .group_by(DocumentLine.invoice_line_id)
        .all()
    )
    return {int(line_id): int(qty or 0) for line_id, qty in rows}


def compute_returnable(invoice: Document, credited: dict[int, int] | None = None) -> list[dict]:
    """Invoice lines annotated with qty_credited and qty_returnable (never below 0)."""
    if credited is None:
        credited = get_credited_quantities(invoice.id)
    items = []
    for line in invoice.lines:
        already = credited.get(line.line_no, 0)
        item = line.to_dict()
        item["qty_credited"] = already
        item["qty_returnable"] = max(0, line.qty - already)
        items.append(item)
    return items


def credit_status(invoice: Document) -> str:
    credited = get_credited_quantities(invoice.id)
    if not any(credited.values()):
        return "not_credited"
    if all(credited.get(line.line_no, 0) >= line.qty for line in invoice.lines):
        return "credited"
    return "partially_credited"


def _get_invoice(invoice_id: int, *, for_update: bool = False) -> Document:
    query = db.session.query(Document).filter_by(id=invoice_id)
    if for_update:
        query = lock_for_update(query)
    invoice = query.one_or_none()
    if invoice is None or invoice.doc_type != document_types.INVOICE:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    return invoice


def get_returnable_invoice(invoice_id: int) -> dict:
    invoice = _get_invoice(invoice_id)
    items = compute_returnable(invoice)
    data = serialize_document(invoice)
    data["items"] = items
    data["has_returnable_items"] = any(item["qty_returnable"] > 0 for item in items)
    return data


# =============================================================================
# RETURN CREATION
# =============================================================================

def _parse_return_lines(lines: Any) -> list[dict]:
    if not isinstance(lines, list) or not lines:
        raise ValidationError("lines must be a non-empty list")

    parsed: list[dict] = []
    seen: set[int] = set()
    for idx, raw in enumerate(lines, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"lines[{idx}] must be an object")
        if raw.get("invoice_line_id") is None:
            raise ValidationError(f"lines[{idx}].invoice_line_id is required")
        invoice_line_id = parse_int(raw.get("invoice_line_id"), f"lines[{idx}].invoice_line_id")
        if invoice_line_id in seen:
            raise ValidationError(f"Invoice line {invoice_line_id} appears more than once")
        seen.add(invoice_line_id)

        qty = parse_int(raw.get("qty_returned", 0), f"lines[{idx}].qty_returned")
        if qty < 0:
            raise ValidationError(f"lines[{idx}].qty_returned must be >= 0")

        fee = parse_int(raw.get("restocking_fee_cents", 0), f"lines[{idx}].restocking_fee_cents")
        if fee < 0:
            raise ValidationError(f"lines[{idx}].restocking_fee_cents must be >= 0")

        restock = raw.get("restock", True)
        if not isinstance(restock, bool):
            raise ValidationError(f"lines[{idx}].restock must be a boolean")

        parsed.append({
            "invoice_line_id": invoice_line_id,
            "qty_returned": qty,
            "restock": restock,
            "condition": (raw.get("condition") or "new"),
            "restocking_fee_cents": fee,
        })

    if not any(line["qty_returned"] > 0 for line in parsed):
        raise ValidationError("At least one line must have qty_returned > 0")
    return parsed


def credit_line_fields(invoice_line: DocumentLine, qty: int) -> dict:
    """Credit note line for qty units of an invoice line, at the net unit price charged."""
    return {
        "product_id": invoice_line.product_id,
        "sku": invoice_line.sku,
        "description": invoice_line.description,
        "qty": qty,
        "unit_price_cents": pricing.net_unit_price_cents(
            pricing.calculate_line_total(invoice_line), invoice_line.qty
        ),
        "vat_rate": invoice_line.vat_rate,
        "invoice_line_id": invoice_line.line_no,
    }


def remaining_credit_lines(invoice: Document, credited: dict[int, int]) -> list[dict]:
    """Credit lines for whatever is still uncredited on each invoice line; fully credited lines are left out."""
    lines = []
    for invoice_line in invoice.lines:
        remaining = invoice_line.qty - credited.get(invoice_line.line_no, 0)
        if remaining > 0:
            lines.append(credit_line_fields(invoice_line, remaining))
    return lines


def credit_note_discount(invoice: Document, credited_base_cents: int) -> tuple[str | None, Decimal | None]:
    """Percent discounts carry over as-is; a fixed discount is prorated on the credited base."""
    if invoice.global_discount_type == "percent":
        return "percent", invoice.global_discount_value
    if invoice.global_discount_type == "fixed":
        invoice_base = sum(pricing.calculate_line_total(line) for line in invoice.lines)
        if invoice_base <= 0:
            return None, None
        share = Decimal(invoice.global_discount_value or 0) * credited_base_cents / invoice_base
        return "fixed", Decimal(pricing.round_cents(share))
    return None, None


def create_return(invoice_id: Any, lines: Any, reason: str | None = None) -> Return:
    """
    Return goods from an invoice and issue the matching credit note.

    Raises:
        ValidationError: empty/malformed lines, no positive quantity, unknown invoice line
        NotFoundError: invoice missing or not an invoice
        ConflictError: qty_returned above what is still returnable, or invoice not returnable
    """
    if invoice_id is None:
        raise ValidationError("invoice_id is required")
    invoice_id = parse_int(invoice_id, "invoice_id")
    parsed = _parse_return_lines(lines)

    def _op() -> Return:
        invoice = _get_invoice(invoice_id, for_update=True)
        if invoice.status in ("draft", "cancelled"):
            raise ConflictError(f"Cannot create a return for a {invoice.status} invoice")

        credited = get_credited_quantities(invoice.id)
        selected = []
        for line in parsed:
            invoice_line = invoice.line_by_no(line["invoice_line_id"])
            if invoice_line is None:
                raise ValidationError(f"Invoice line {line['invoice_line_id']} not found")
            returnable = max(0, invoice_line.qty - credited.get(invoice_line.line_no, 0))
            if line["qty_returned"] > returnable:
                raise ConflictError(
                    f"Invalid quantity for line {invoice_line.line_no}. Max returnable: {returnable}"
                )
            if line["qty_returned"] > 0:
                selected.append((line, invoice_line, returnable))

        now = utcnow()
        credit_note = Document(
            doc_type=document_types.CREDIT_NOTE,
            status="validated",
            date=now,
            customer_id=invoice.customer_id,
            customer_name=invoice.customer_name,
            customer_vat=invoice.customer_vat,
            customer_address=invoice.customer_address,
            customer_reference=invoice.customer_reference,
            currency=invoice.currency,
            notes=reason,
            paid_total_cents=0,
            source_document_id=invoice.id,
            source_document_type=invoice.doc_type,
            source_document_number=invoice.number,
            settlement_status=SETTLEMENT_PENDING,
        )

        ret = Return(
            invoice_id=invoice.id,
            invoice_number=invoice.number,
            customer_id=invoice.customer_id,
            customer_name=invoice.customer_name,
            status=RETURN_STATUS_VALIDATED,
            reason=reason,
            created_at=now,
            validated_at=now,
        )

        credit_lines: list[dict] = []
        fee_lines: list[dict] = []
        restock_moves: list[dict] = []
        for line, invoice_line, returnable in selected:
            fields = credit_line_fields(invoice_line, line["qty_returned"])
            unit_price = fields["unit_price_cents"]
            credit_lines.append(fields)
            if line["restocking_fee_cents"] > 0:
                fee_lines.append({
                    "sku": RESTOCK_FEE_SKU,
                    "description": f"Restocking fee - {invoice_line.description or invoice_line.sku or invoice_line.line_no}",
                    "qty": 1,
                    "unit_price_cents": -line["restocking_fee_cents"],
                    "vat_rate": invoice_line.vat_rate,
                    "invoice_line_id": None,
                })
            if line["restock"]:
                restock_moves.append({"product_id": invoice_line.product_id, "qty": line["qty_returned"]})

            ret.lines.append(ReturnLine(
                invoice_line_id=invoice_line.line_no,
                product_id=invoice_line.product_id,
                sku=invoice_line.sku,
                description=invoice_line.description,
                qty_credited=line["qty_returned"],
                qty_returnable=returnable,
                unit_price_cents=unit_price,
                vat_rate=invoice_line.vat_rate,
                condition=line["condition"],
                restock=line["restock"],
                restocking_fee_cents=line["restocking_fee_cents"],
            ))

        if restock_moves:
            inventory_service.ensure_products_exist(restock_moves)

        credited_base = sum(c["qty"] * c["unit_price_cents"] for c in credit_lines)
        discount_type, discount_value = credit_note_discount(invoice, credited_base)
        all_lines = credit_lines + fee_lines
        credit_note.global_discount_type = discount_type
        credit_note.global_discount_value = discount_value
        credit_note.total_cents = pricing.calculate_total(all_lines, discount_type, discount_value)
        for line_no, fields in enumerate(all_lines, start=1):
            credit_note.lines.append(new_line(line_no, fields))

        credit_note.number = next_document_number(document_types.CREDIT_NOTE)
        ret.number = next_return_number(now.year)
        ret.restocking_fee_cents = sum(line["restocking_fee_cents"] for line, _, _ in selected)
        db.session.add(credit_note)
        db.session.add(ret)
        db.session.flush()

        credit_note.return_id = ret.id
        ret.credit_note_id = credit_note.id
        ret.credit_note_number = credit_note.number

        if restock_moves:
            inventory_service.increment_for_lines(restock_moves, reason=ret.number)

        invoice.credit_note_id = credit_note.id
        invoice.credit_note_number = credit_note.number
        if credit_status(invoice) == "credited":
            invoice.status = "credited"

        db.session.commit()
        return ret

    ret = run_with_retry(_op)
    current_app.logger.info(
        "Return %s created for invoice %s: credit note %s",
        ret.number, ret.invoice_number, ret.credit_note_number,
    )
    return ret


# =============================================================================
# QUERIES
# =============================================================================

def get_return(return_id: int) -> Return:
    ret = db.session.get(Return, return_id)
    if ret is None:
        raise NotFoundError(f"Return {return_id} not found")
    return ret


def list_returns(
    customer_id: int | None = None,
    status: str | None = None,
    invoice_id: int | None = None,
) -> list[Return]:
    query = db.session.query(Return)
    if customer_id is not None:
        query = query.filter(Return.customer_id == customer_id)
    if status:
        query = query.filter(Return.status == status)
    if invoice_id is not None:
        query = query.filter(Return.invoice_id == invoice_id)
    return query.order_by(Return.created_at.desc(), Return.id.desc()).all()


def return_to_dict(ret: Return) -> dict:
    data = ret.to_dict()
    credit_note = db.session.get(Document, ret.credit_note_id) if ret.credit_note_id else None
    data["credit_note"] = credit_note.to_dict() if credit_note else None
    return data


def list_credit_notes(customer_id: int | None = None, status: str | None = None) -> list[Document]:
    query = db.session.query(Document).filter(Document.doc_type == document_types.CREDIT_NOTE)
    if customer_id is not None:
        query = query.filter(Document.customer_id == customer_id)
    if status:
        query = query.filter(Document.status == status)
    return query.order_by(Document.date.desc(), Document.id.desc()).all()


# =============================================================================
# CANCELLATION
# =============================================================================

def _status_without_credit(invoice: Document) -> str:
    if invoice.paid_total_cents >= invoice.total_cents and invoice.paid_total_cents > 0:
        return "paid"
    if invoice.paid_total_cents > 0:
        return "partially_paid"
    return "unpaid"


def cancel_return(return_id: int) -> Return:
    """
    Cancel a validated return before its credit note is settled.

    The credit note is cancelled (so it no longer counts toward credited
    quantities) and restocked units are taken back out of stock.
    """
    def _op() -> Return:
        ret = lock_for_update(db.session.query(Return).filter_by(id=return_id)).one_or_none()
        if ret is None:
            raise NotFoundError(f"Return {return_id} not found")
        if ret.status == RETURN_STATUS_CANCELLED:
            raise ConflictError(f"Return {ret.number} is already cancelled")

        credit_note = db.session.get(Document, ret.credit_note_id) if ret.credit_note_id else None
        if credit_note is not None and credit_note.settlement_status not in (None, SETTLEMENT_PENDING):
            raise ConflictError(
                f"Credit note {credit_note.number} is already {credit_note.settlement_status}"
            )

        if ret.status == RETURN_STATUS_VALIDATED:
            restocked = [
                {"product_id": line.product_id, "qty": line.qty_credited}
                for line in ret.lines
                if line.restock
            ]
            if restocked:
                inventory_service.decrement_for_lines(restocked, reason=f"cancel {ret.number}")

        ret.status = RETURN_STATUS_CANCELLED
        ret.cancelled_at = utcnow()

        if credit_note is not None:
            credit_note.status = "cancelled"
            db.session.flush()

            invoice = db.session.get(Document, ret.invoice_id)
            if invoice is not None:
                if invoice.status == "credited" and credit_status(invoice) != "credited":
                    invoice.status = _status_without_credit(invoice)
                if invoice.credit_note_id == credit_note.id:
                    latest = (
                        db.session.query(Document)
                        .filter(
                            Document.doc_type == document_types.CREDIT_NOTE,
                            Document.source_document_id == invoice.id,
                            Document.status != "cancelled",
                        )
                        .order_by(Document.id.desc())
                        .first()
                    )
                    invoice.credit_note_id = latest.id if latest else None
                    invoice.credit_note_number = latest.number if latest else None

        db.session.commit()
        return ret

    ret = run_with_retry(_op)
    current_app.logger.info("Return %s cancelled", ret.number)
    return ret


# =============================================================================
# SETTLEMENT
# =============================================================================

def settle_credit_note(credit_note_id: int, method: Any) -> Document:
    """
    Pay a credit note back to the customer.

    - customer_credit: amount added to the customer's store credit (settled)
    - cash: refunded on the spot (settled)
    - card / bank_transfer: refund initiated with the provider (processing)
    """
    if not method:
        raise ValidationError("settlement_method is required")
    if method not in SETTLEMENT_METHODS:
        raise ValidationError(f"settlement_method must be one of {SETTLEMENT_METHODS}")

    def _op() -> Document:
        cn = lock_for_update(db.session.query(Document).filter_by(id=credit_note_id)).one_or_none()
        if cn is None or cn.doc_type != document_types.CREDIT_NOTE:
            raise NotFoundError(f"Credit note {credit_note_id} not found")
        if cn.status == "cancelled":
            raise ConflictError(f"Credit note {cn.number} is cancelled")
        if cn.settlement_status not in (None, SETTLEMENT_PENDING):
            raise ConflictError(f"Credit note {cn.number} already settled")

        if method == payment_service.METHOD_CUSTOMER_CREDIT:
            if cn.customer_id is None:
                raise ValidationError("customer_credit settlement requires a customer on the credit note")
            if cn.total_cents > 0:
                customer_service.credit_customer(
                    cn.customer_id,
                    cn.total_cents,
                    source="credit_note",
                    source_id=cn.id,
                    description=f"Credit note {cn.number}",
                )
            cn.settlement_status = SETTLEMENT_SETTLED
            cn.settled_at = utcnow()
        elif method == payment_service.METHOD_CASH:
            cn.settlement_status = SETTLEMENT_SETTLED
            cn.settled_at = utcnow()
        else:
            cn.settlement_status = SETTLEMENT_PROCESSING

        cn.settlement_method = method
        db.session.commit()
        return cn

    cn = run_with_retry(_op)
    current_app.logger.info("Credit note %s settled by %s (%s)", cn.number, method, cn.settlement_status)
    return cn


def cash_refunded_between(start, end) -> int:
    """Sum of credit notes refunded in cash and settled in [start, end]."""
    total = (
        db.session.query(db.func.coalesce(db.func.sum(Document.total_cents), 0))
        .filter(
            Document.doc_type == document_types.CREDIT_NOTE,
            Document.settlement_method == payment_service.METHOD_CASH,
            Document.settlement_status == SETTLEMENT_SETTLED,
            Document.settled_at >= start,
            Document.settled_at <= end,
        )
        .scalar()
    )
    return int(total or 0)
