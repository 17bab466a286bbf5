# Overview: Service-layer conversion of one document into the next document of the chain.

"""
Conversion Engine (order-to-cash state machine)

convert_document(source_id, target_type):
1. Source must exist (NotFoundError), target_type must be a registered type
   (ValidationError). Nothing is created or moved when either check fails.
2. The new document gets a fresh number under the target prefix, a deep copy
   of the source lines, no payments, the source total verbatim and the
   registry's initial status.
3. The source status moves per document_types.source_status_after; a credit
   note also sets the source's forward credit_note_* link.
4. Stock is decremented when the registry says so (delivery notes always,
   invoices unless they come from a delivery note). Documents descending
   from a till receipt carry its sale_id and never move stock again.

Invoice -> credit note only credits what live credit notes have not already
credited. Once a return or an earlier conversion has credited part of the
invoice, the new credit note carries the remaining quantities at the net unit
price charged and its total is recomputed. A fully credited invoice cannot be
converted again (ConflictError).

Everything happens in one unit of work under the store lock, so two
conversions of the same source are applied one after the other, never
interleaved.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Document
from ..time_utils import utcnow
from ..validation import ConflictError, NotFoundError, ValidationError
from . import document_types, inventory_service, pricing, return_service
from .concurrency import lock_for_update, run_with_retry
from .document_service import new_line, next_document_number


def _credit_remainder(invoice: Document) -> list[dict] | None:
    """
    Lines still creditable on an invoice.

    None when nothing has been credited yet, so the caller copies the invoice
    as is.
    """
    credited = return_service.get_credited_quantities(invoice.id)
    if not any(credited.values()):
        return None
    lines = return_service.remaining_credit_lines(invoice, credited)
    if not lines:
        raise ConflictError(f"Invoice {invoice.number} is already fully credited")
    return lines


def _copy_lines(source: Document, target: Document) -> None:
    credits_invoice = (
        target.doc_type == document_types.CREDIT_NOTE
        and source.doc_type == document_types.INVOICE
    )
    for line in source.lines:
        fields = line.copy_fields()
        fields["invoice_line_id"] = line.line_no if credits_invoice else None
        target.lines.append(new_line(line.line_no, fields))


def convert_document(source_id: int, target_type: str | None) -> Document:
    """
    Derive a new document of target_type from an existing one.

    Raises:
        NotFoundError: source document missing (or, in strict mode, a product)
        ValidationError: target_type empty or not a registered document type
        ConflictError: credit note requested for an invoice with nothing left to credit
    """
    def _op() -> Document:
        source = lock_for_update(db.session.query(Document).filter_by(id=source_id)).one_or_none()
        if source is None:
            raise NotFoundError(f"Document {source_id} not found")
        if not target_type:
            raise ValidationError("target_type required")
        if not document_types.is_known_type(target_type):
            raise ValidationError(f"target_type must be one of {list(document_types.DOCUMENT_TYPES)}")

        remainder = None
        if target_type == document_types.CREDIT_NOTE and source.doc_type == document_types.INVOICE:
            remainder = _credit_remainder(source)

        defaults = document_types.get_document_defaults(target_type, source.doc_type)
        # Lines rung up at the till already left the shelf
        sale_id = source.id if source.doc_type == document_types.RECEIPT else source.sale_id
        decrease = defaults.should_decrease_stock and sale_id is None
        if decrease:
            inventory_service.ensure_products_exist(source.lines)

        target = Document(
            doc_type=target_type,
            status=defaults.status,
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
            sale_id=sale_id,
            source_document_id=source.id,
            source_document_type=source.doc_type,
            source_document_number=source.number,
        )
        if remainder is None:
            _copy_lines(source, target)
        else:
            base = sum(line["qty"] * line["unit_price_cents"] for line in remainder)
            discount_type, discount_value = return_service.credit_note_discount(source, base)
            target.global_discount_type = discount_type
            target.global_discount_value = discount_value
            target.total_cents = pricing.calculate_total(remainder, discount_type, discount_value)
            for line_no, fields in enumerate(remainder, start=1):
                target.lines.append(new_line(line_no, fields))

        target.number = next_document_number(target_type)
        db.session.add(target)
        db.session.flush()

        new_status = document_types.source_status_after(source.doc_type, target_type)
        if new_status:
            source.status = new_status
        if target_type == document_types.CREDIT_NOTE:
            source.credit_note_id = target.id
            source.credit_note_number = target.number

        if decrease:
            inventory_service.decrement_for_lines(
                target.lines, reason=f"{target.number} from {source.number}"
            )
        else:
            current_app.logger.info(
                "No stock change for %s (source: %s)", target_type, source.doc_type
            )

        db.session.commit()
        return target

    target = run_with_retry(_op)
    current_app.logger.info(
        "Document converted: %s -> %s (%s -> %s)",
        target.source_document_number, target.number, target.source_document_type, target.doc_type,
    )
    return target
