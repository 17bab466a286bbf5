# Overview: Flask API routes for commercial documents; create, list, convert, duplicate and pay.

# backend/retailpos/routes/documents.py
"""
Document API Routes

Every document type (quote, purchase order, delivery note, invoice, credit
note, receipt, proforma) shares one resource. Conversions and payments are
sub-resources of the source document.

ERRORS:
- 400: malformed payload, unknown doc_type/target_type, bad payment amount
- 404: document (or referenced customer) not found
- 409: business rule conflict (e.g. not enough customer credit)
"""

from flask import Blueprint, current_app, jsonify, request

from ..services import conversion_service, document_service, payment_service
from ..validation import ConflictError, NotFoundError, ValidationError, parse_int


documents_bp = Blueprint("documents", __name__, url_prefix="/api/documents")


# =============================================================================
# CREATION & QUERIES
# =============================================================================

@documents_bp.post("")
def create_document_route():
    """
    Create a document directly.

    Request body:
    {
        "doc_type": "quote",
        "customer_id": 1,                      (optional)
        "items": [{"product_id": 1, "qty": 2, "unit_price_cents": 1250, "vat_rate": 21}],
        "global_discount_type": "percent",     (optional: percent | fixed)
        "global_discount_value": 10,           (optional)
        "sale_id": 12                          (optional: receipt already rung up)
    }
    """
    payload = request.get_json(silent=True)
    try:
        doc = document_service.create_document(payload)
        return jsonify(document_service.serialize_document(doc)), 201
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create document")
        return jsonify({"error": "Internal server error"}), 500


@documents_bp.get("")
def list_documents_route():
    """
    List documents, newest first.

    Query params:
    - doc_type: str (optional)
    - status: str (optional)
    - customer_id: int (optional)
    - limit: int (optional, default DOCUMENTS_DEFAULT_LIMIT)
    """
    try:
        limit = request.args.get("limit")
        customer_id = request.args.get("customer_id")
        docs = document_service.list_documents(
            request.args.get("doc_type") or None,
            parse_int(limit, "limit") if limit is not None else None,
            status=request.args.get("status") or None,
            customer_id=parse_int(customer_id, "customer_id") if customer_id is not None else None,
        )
        return jsonify([document_service.serialize_document(d) for d in docs])
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@documents_bp.get("/<int:doc_id>")
def get_document_route(doc_id: int):
    try:
        doc = document_service.get_document(doc_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(document_service.serialize_document(doc))


# =============================================================================
# TRANSITIONS
# =============================================================================

@documents_bp.post("/<int:doc_id>/convert")
def convert_document_route(doc_id: int):
    """
    Convert a document into the next one of the chain.

    Query params:
    - target_type: str (required), also accepted in the JSON body

    Returns:
        201: the new document
        400: target_type missing or unknown
        404: source document not found
        409: credit note requested for an invoice already fully credited
    """
    body = request.get_json(silent=True) or {}
    target_type = request.args.get("target_type") or body.get("target_type")
    try:
        doc = conversion_service.convert_document(doc_id, target_type)
        return jsonify(document_service.serialize_document(doc)), 201
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to convert document")
        return jsonify({"error": "Internal server error"}), 500


@documents_bp.post("/<int:doc_id>/duplicate")
def duplicate_document_route(doc_id: int):
    try:
        doc = document_service.duplicate_document(doc_id)
        return jsonify(document_service.serialize_document(doc)), 201
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to duplicate document")
        return jsonify({"error": "Internal server error"}), 500


@documents_bp.post("/<int:doc_id>/pay")
def pay_document_route(doc_id: int):
    """
    Record a payment on a document.

    Request body:
    {
        "method": "cash",
        "amount_cents": 5000,
        "reference": "TPE-123"   (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        doc = payment_service.add_payment(
            doc_id,
            data.get("method"),
            data.get("amount_cents"),
            reference=data.get("reference"),
        )
        return jsonify(document_service.serialize_document(doc))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500
