# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/retailpos/routes/products.py
"""
Product catalog routes.

stock_qty can be set once when a product is created. After that, on-hand
changes come from documents or from the explicit /stock adjustment.
"""
from flask import Blueprint, current_app, request

from ..models import Product
from ..services import inventory_service
from ..services.products_service import (
    PRODUCT_CREATE_POLICY,
    PRODUCT_POLICY,
    create_product,
    deactivate_product,
    get_product,
    list_products as list_products_service,
    update_product,
)
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    enforce_rules_product,
    parse_int,
    validate_payload,
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    List products ordered by SKU.

    Query params:
    - search: str (optional) - matches sku, name or barcode
    - category_id: int (optional)
    - category: str (optional) - category slug
    - active: "1" to return only active products
    """
    category_id = None
    if request.args.get("category_id"):
        try:
            category_id = parse_int(request.args["category_id"], "category_id")
        except ValidationError as e:
            return {"error": str(e)}, 400
    products = list_products_service(
        search=request.args.get("search") or None,
        category_id=category_id,
        category_slug=request.args.get("category") or None,
        active_only=request.args.get("active") in ("1", "true"),
    )
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        return get_product(product_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404


@products_bp.post("")
def create_product_route():
    """Create a new product. sku and name are required."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = create_product(patch=patch)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValueError as e:
        return {"error": str(e)}, 400

    current_app.logger.info("Product created: %s", created.sku)
    return created.to_dict(), 201


@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    """Partial update of catalog fields (stock_qty is not writable here)."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = update_product(product_id=product_id, patch=patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400

    return updated.to_dict()


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    """
    Delete a product.

    Soft delete: the product is deactivated and stays referenced by documents.
    """
    try:
        deactivate_product(product_id=product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {"ok": True}, 200


@products_bp.post("/<int:product_id>/stock")
def adjust_stock_route(product_id: int):
    """
    Manual stock correction.

    Request body (exactly one of delta / set_to):
    {
        "delta": -2,
        "set_to": 40,
        "reason": "breakage"
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        delta = parse_int(data["delta"], "delta") if data.get("delta") is not None else None
        set_to = parse_int(data["set_to"], "set_to") if data.get("set_to") is not None else None
        product = inventory_service.adjust_stock(
            product_id, delta=delta, set_to=set_to, reason=data.get("reason")
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400

    return product.to_dict()
