# Overview: Flask API routes for cash-register shifts; parses input and returns JSON responses.

# backend/retailpos/routes/registers.py
"""
Register Shift API Routes

LIFECYCLE:
- POST /open with the opening float
- POST /close with the counted drawer; expected cash and variance are computed
- GET /current returns {"status": "no_shift"} when nothing is open
"""

from flask import Blueprint, current_app, jsonify, request

from ..services import register_service
from ..validation import ConflictError, ValidationError, parse_int


registers_bp = Blueprint("registers", __name__, url_prefix="/api/shifts")


@registers_bp.get("")
def list_shifts_route():
    try:
        limit = parse_int(request.args.get("limit", 10), "limit")
        shifts = register_service.list_shifts(limit)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify([s.to_dict() for s in shifts])


@registers_bp.get("/current")
def current_shift_route():
    shift = register_service.get_current_shift()
    if shift is None:
        return jsonify({"status": "no_shift"})
    return jsonify(shift.to_dict())


@registers_bp.post("/open")
def open_shift_route():
    """
    Request body:
    {
        "opening_cash_cents": 10000,
        "cashier_name": "Marie",     (optional)
        "register_number": "1"       (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        shift = register_service.open_shift(
            data.get("opening_cash_cents", 0),
            data.get("cashier_name"),
            data.get("register_number"),
        )
        return jsonify(shift.to_dict()), 201
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to open shift")
        return jsonify({"error": "Internal server error"}), 500


@registers_bp.post("/close")
def close_shift_route():
    """
    Request body:
    {
        "counted_cash_cents": 23450,
        "close_notes": "..."   (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        shift = register_service.close_shift(data.get("counted_cash_cents"), data.get("close_notes"))
        return jsonify(shift.to_dict())
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to close shift")
        return jsonify({"error": "Internal server error"}), 500
