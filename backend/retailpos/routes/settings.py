# Overview: Flask API routes for flat settings sections (company, peppyrus, shopify).

from flask import Blueprint, current_app, request

from ..services import settings_service
from ..validation import NotFoundError, ValidationError


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/<section>")
def get_settings_route(section: str):
    try:
        values = settings_service.get_section(section)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return settings_service.public_view(section, values)


@settings_bp.put("/<section>")
def update_settings_route(section: str):
    """Merge the given keys into the section. Secrets are accepted but never echoed."""
    try:
        values = settings_service.update_section(section, request.get_json(silent=True))
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except OSError:
        current_app.logger.exception("Failed to save settings")
        return {"error": "Internal server error"}, 500
    return settings_service.public_view(section, values)
