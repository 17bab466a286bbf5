# Overview: Flask API routes for till checkout; parses input and returns JSON responses.

from flask import Blueprint, current_app, request

from ..services import document_service
from ..validation import ConflictError, NotFoundError, ValidationError


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
def create_sale_route():
    """
    Ring up a sale: a receipt with its payments. Stock leaves immediately.

    Request body:
    {
        "items": [{"product_id": 1, "qty": 1, "unit_price_cents": 1250}],
        "payments": [{"method": "cash", "amount_cents": 1513}],
        "customer_id": 2   (optional)
    }
    """
    payload = request.get_json(silent=True)
    try:
        doc = document_service.create_sale(payload)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return {"error": "Internal server error"}, 500

    return document_service.serialize_document(doc), 201
