# Overview: Service-layer operations for document payments; appends and derives payment status.

"""
Payment Ledger

DESIGN PRINCIPLES:
- Payments are append-only rows on a document (many-to-one)
- paid_total_cents is always recomputed from the rows, never incremented
- Status only moves upward: unpaid -> partially_paid -> paid. Overpaying is
  allowed and no payment ever regresses a status
- credited / cancelled are set by other flows and are never overwritten here;
  paid_total and payment_status still move for those documents
"""

from __future__ import annotations

from typing import Any

from flask import current_app

from ..extensions import db
from ..models import Document, DocumentPayment
from ..time_utils import utcnow
from ..validation import NotFoundError, ValidationError, parse_int
from . import customer_service
from .concurrency import lock_for_update, run_with_retry


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_CASH = "cash"
METHOD_CARD = "card"
METHOD_BANK_TRANSFER = "bank_transfer"
METHOD_CHECK = "check"
METHOD_CUSTOMER_CREDIT = "customer_credit"
METHOD_VOUCHER = "voucher"
METHOD_OTHER = "other"

VALID_METHODS = [
    METHOD_CASH,
    METHOD_CARD,
    METHOD_BANK_TRANSFER,
    METHOD_CHECK,
    METHOD_CUSTOMER_CREDIT,
    METHOD_VOUCHER,
    METHOD_OTHER,
]

STATUS_RANK = {"partially_paid": 1, "paid": 2}
FROZEN_STATUSES = {"credited", "cancelled"}


def validate_payment(method: Any, amount: Any) -> tuple[str, int]:
    if not method:
        raise ValidationError("method is required")
    if method not in VALID_METHODS:
        raise ValidationError(f"Invalid payment method: {method}. Must be one of {VALID_METHODS}")
    if amount is None:
        raise ValidationError("amount_cents is required")
    amount_cents = parse_int(amount, "amount_cents")
    if amount_cents <= 0:
        raise ValidationError("Payment amount must be positive")
    return method, amount_cents


def derive_status(doc: Document) -> str:
    """
    Recompute paid_total_cents and move the status upward if the payments warrant it.

    Returns the (possibly unchanged) status.
    """
    doc.paid_total_cents = sum(p.amount_cents for p in doc.payments)

    if doc.status in FROZEN_STATUSES:
        return doc.status

    if doc.paid_total_cents >= doc.total_cents and doc.paid_total_cents > 0:
        candidate = "paid"
    elif doc.paid_total_cents > 0:
        candidate = "partially_paid"
    else:
        return doc.status

    if STATUS_RANK[candidate] > STATUS_RANK.get(doc.status, 0):
        doc.status = candidate
    return doc.status


def record_payment(
    doc: Document,
    *,
    method: str,
    amount_cents: int,
    reference: str | None = None,
) -> DocumentPayment:
    """
    Append a payment to doc inside the caller's unit of work (no commit).

    customer_credit payments consume the customer's store credit.
    """
    if method == METHOD_CUSTOMER_CREDIT:
        if doc.customer_id is None:
            raise ValidationError("customer_credit payments require a customer on the document")
        customer_service.debit_customer(
            doc.customer_id,
            amount_cents,
            source="payment",
            source_id=doc.id,
            description=f"Payment on {doc.number}",
        )

    payment = DocumentPayment(
        method=method,
        amount_cents=amount_cents,
        reference=(reference or None),
        created_at=utcnow(),
    )
    doc.payments.append(payment)
    derive_status(doc)
    return payment


def add_payment(doc_id: int, method: Any, amount: Any, reference: str | None = None) -> Document:
    """
    Record a payment against a document and return it.

    Raises:
        ValidationError: unknown method or non-positive amount
        NotFoundError: document missing
        ConflictError: customer credit balance too low
    """
    method, amount_cents = validate_payment(method, amount)

    def _op() -> Document:
        doc = lock_for_update(db.session.query(Document).filter_by(id=doc_id)).one_or_none()
        if doc is None:
            raise NotFoundError(f"Document {doc_id} not found")

        record_payment(doc, method=method, amount_cents=amount_cents, reference=reference)
        db.session.commit()
        return doc

    doc = run_with_retry(_op)
    current_app.logger.info(
        "Payment %s %s on %s: paid %s/%s, status %s",
        method, amount_cents, doc.number, doc.paid_total_cents, doc.total_cents, doc.status,
    )
    return doc


def cash_received_between(start, end) -> int:
    """Sum of cash payments recorded in [start, end]."""
    total = (
        db.session.query(db.func.coalesce(db.func.sum(DocumentPayment.amount_cents), 0))
        .filter(
            DocumentPayment.method == METHOD_CASH,
            DocumentPayment.created_at >= start,
            DocumentPayment.created_at <= end,
        )
        .scalar()
    )
    return int(total or 0)
