# Overview: Flask API routes for customers and their store-credit ledger.

from flask import Blueprint, jsonify, request

from ..services import customer_service
from ..validation import NotFoundError, ValidationError


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
def list_customers_route():
    customers = customer_service.list_customers(search=request.args.get("search") or None)
    return jsonify([c.to_dict() for c in customers])


@customers_bp.post("")
def create_customer_route():
    try:
        customer = customer_service.create_customer(request.get_json(silent=True))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(customer.to_dict()), 201


@customers_bp.get("/<int:customer_id>")
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(customer_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(customer.to_dict())


@customers_bp.put("/<int:customer_id>")
def update_customer_route(customer_id: int):
    try:
        customer = customer_service.update_customer(customer_id, request.get_json(silent=True))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(customer.to_dict())


@customers_bp.get("/<int:customer_id>/credit-ledger")
def credit_ledger_route(customer_id: int):
    """Store-credit movements, newest first, with the current balance."""
    try:
        customer = customer_service.get_customer(customer_id)
        entries = customer_service.credit_ledger(customer_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({
        "customer_id": customer.id,
        "credit_balance_cents": customer.credit_balance_cents,
        "entries": [e.to_dict() for e in entries],
    })
