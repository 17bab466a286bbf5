# Overview: Static registry of document types: numbering prefix, initial status and stock policy.

"""
Document Type Registry

DOCUMENT CHAIN:
    quote -> purchase_order -> delivery_note -> invoice -> credit_note

STOCK POLICY:
Stock moves exactly once per physical shipment. A delivery note always
represents goods leaving, so it always decrements. An invoice decrements only
when no delivery note preceded it in the chain. Credit notes never touch stock
here; restocking is decided per return line by the returns engine.
"""

from __future__ import annotations

from dataclasses import dataclass


QUOTE = "quote"
PURCHASE_ORDER = "purchase_order"
DELIVERY_NOTE = "delivery_note"
INVOICE = "invoice"
CREDIT_NOTE = "credit_note"
RECEIPT = "receipt"
PROFORMA = "proforma"

DOCUMENT_TYPES = (QUOTE, PURCHASE_ORDER, DELIVERY_NOTE, INVOICE, CREDIT_NOTE, RECEIPT, PROFORMA)

PREFIXES = {
    QUOTE: "DEV",
    INVOICE: "FAC",
    PURCHASE_ORDER: "BC",
    DELIVERY_NOTE: "BL",
    CREDIT_NOTE: "AV",
}
DEFAULT_PREFIX = "DOC"

# Every commercial document shares one numbering sequence
DOCUMENT_SEQUENCE = "DOCUMENT"
RETURN_SEQUENCE = "RETURN"

STATUSES = {
    QUOTE: ("draft", "sent", "accepted", "cancelled"),
    PURCHASE_ORDER: ("draft", "confirmed", "completed", "credited"),
    DELIVERY_NOTE: ("draft", "delivered", "invoiced", "credited"),
    INVOICE: ("draft", "unpaid", "partially_paid", "paid", "credited", "cancelled"),
    CREDIT_NOTE: ("draft", "validated", "cancelled"),
    RECEIPT: ("draft", "unpaid", "partially_paid", "paid", "credited"),
    PROFORMA: ("draft", "sent", "accepted", "credited"),
}

# Source status after conversion, keyed by (source type, target type)
SOURCE_TRANSITIONS = {
    (QUOTE, PURCHASE_ORDER): "accepted",
    (QUOTE, DELIVERY_NOTE): "accepted",
    (QUOTE, INVOICE): "accepted",
    (PURCHASE_ORDER, DELIVERY_NOTE): "completed",
    (PURCHASE_ORDER, INVOICE): "completed",
    (DELIVERY_NOTE, INVOICE): "invoiced",
}


@dataclass(frozen=True)
class DocumentDefaults:
    status: str
    should_decrease_stock: bool


def is_known_type(doc_type: str | None) -> bool:
    return doc_type in DOCUMENT_TYPES


def prefix_for(doc_type: str) -> str:
    return PREFIXES.get(doc_type, DEFAULT_PREFIX)


def get_document_defaults(target_type: str, source_type: str | None = None) -> DocumentDefaults:
    """
    Initial status and stock policy for a new document of target_type.

    source_type is None for directly created documents.
    """
    if target_type == QUOTE:
        return DocumentDefaults("draft", False)
    if target_type == PURCHASE_ORDER:
        return DocumentDefaults("confirmed", False)
    if target_type == DELIVERY_NOTE:
        return DocumentDefaults("delivered", True)
    if target_type == INVOICE:
        return DocumentDefaults("unpaid", source_type != DELIVERY_NOTE)
    if target_type == CREDIT_NOTE:
        return DocumentDefaults("draft", False)
    return DocumentDefaults("draft", False)


def source_status_after(source_type: str, target_type: str) -> str | None:
    """New status for the source of a conversion, or None when it is left unchanged."""
    if target_type == CREDIT_NOTE:
        return "credited"
    return SOURCE_TRANSITIONS.get((source_type, target_type))
