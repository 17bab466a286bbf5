# Overview: Flask API routes for product categories.

from flask import Blueprint, jsonify, request

from ..services import category_service
from ..validation import ConflictError, NotFoundError, ValidationError


categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
def list_categories_route():
    """
    List categories by French name, each with its product_count.

    Query params:
    - active: "1" to return only active categories
    """
    categories = category_service.list_categories(
        active_only=request.args.get("active") in ("1", "true"),
    )
    counts = category_service.product_counts()
    return jsonify([category_service.category_to_dict(c, counts) for c in categories])


@categories_bp.post("")
def create_category_route():
    """
    Request body:
    {
        "name_fr": "Carrelage",      (required)
        "name_nl": "Tegels",
        "slug": "carrelage",         (derived from name_fr when omitted)
        "image_url": null,
        "is_active": true
    }
    """
    try:
        category = category_service.create_category(request.get_json(silent=True))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    return jsonify(category_service.category_to_dict(category)), 201


@categories_bp.get("/<int:category_id>")
def get_category_route(category_id: int):
    try:
        category = category_service.get_category(category_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(category_service.category_to_dict(category))


@categories_bp.put("/<int:category_id>")
def update_category_route(category_id: int):
    try:
        category = category_service.update_category(category_id, request.get_json(silent=True))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(category_service.category_to_dict(category))
