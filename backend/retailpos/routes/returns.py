# Overview: Flask API routes for returns and credit notes; parses input and returns JSON responses.

# backend/retailpos/routes/returns.py
"""
Return Processing API Routes

DESIGN:
- A return references an invoice and lists the invoice lines given back
- Creating a return validates it at once: quantities are checked against what
  is still returnable, restockable units go back to stock, and a credit note
  is issued
- A return can be cancelled until its credit note has been settled
- Credit notes are settled to the customer (cash, card, bank transfer or
  store credit)
"""

from flask import Blueprint, current_app, jsonify, request

from ..services import document_service, return_service
from ..validation import ConflictError, NotFoundError, ValidationError, parse_int


returns_bp = Blueprint("returns", __name__, url_prefix="/api")


def _optional_int(name: str):
    raw = request.args.get(name)
    return parse_int(raw, name) if raw is not None else None


# =============================================================================
# RETURN CREATION
# =============================================================================

@returns_bp.post("/returns")
def create_return_route():
    """
    Create and validate a return against an invoice.

    Request body:
    {
        "invoice_id": 12,
        "reason": "Wrong colour",
        "lines": [
            {"invoice_line_id": 1, "qty_returned": 2, "restock": true,
             "condition": "new", "restocking_fee_cents": 0}
        ]
    }

    Returns:
        201: Return created (with its credit note)
        400: Invalid input (no lines, unknown invoice line, bad quantity)
        404: Invoice not found
        409: Quantity exceeds what is still returnable
    """
    data = request.get_json(silent=True) or {}
    try:
        ret = return_service.create_return(
            data.get("invoice_id"),
            data.get("lines"),
            data.get("reason"),
        )
        return jsonify(return_service.return_to_dict(ret)), 201
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("/invoices/<int:invoice_id>/returnable")
def returnable_invoice_route(invoice_id: int):
    """Invoice with qty_credited / qty_returnable on every line."""
    try:
        return jsonify(return_service.get_returnable_invoice(invoice_id))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


# =============================================================================
# RETURN QUERIES & CANCELLATION
# =============================================================================

@returns_bp.get("/returns")
def list_returns_route():
    """
    Query params:
    - customer_id: int (optional)
    - invoice_id: int (optional)
    - status: str (optional)
    """
    try:
        returns = return_service.list_returns(
            customer_id=_optional_int("customer_id"),
            status=request.args.get("status") or None,
            invoice_id=_optional_int("invoice_id"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify([return_service.return_to_dict(r) for r in returns])


@returns_bp.get("/returns/<int:return_id>")
def get_return_route(return_id: int):
    try:
        ret = return_service.get_return(return_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(return_service.return_to_dict(ret))


@returns_bp.post("/returns/<int:return_id>/cancel")
def cancel_return_route(return_id: int):
    try:
        ret = return_service.cancel_return(return_id)
        return jsonify(return_service.return_to_dict(ret))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to cancel return")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# CREDIT NOTES
# =============================================================================

@returns_bp.get("/credit-notes")
def list_credit_notes_route():
    try:
        notes = return_service.list_credit_notes(
            customer_id=_optional_int("customer_id"),
            status=request.args.get("status") or None,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify([document_service.serialize_document(n) for n in notes])


@returns_bp.post("/credit-notes/<int:credit_note_id>/settle")
def settle_credit_note_route(credit_note_id: int):
    """
    Request body:
    {
        "settlement_method": "customer_credit"   (cash | card | bank_transfer | customer_credit)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        cn = return_service.settle_credit_note(credit_note_id, data.get("settlement_method"))
        return jsonify(document_service.serialize_document(cn))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to settle credit note")
        return jsonify({"error": "Internal server error"}), 500
