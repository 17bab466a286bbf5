# Overview: Flask API routes for reports; read-only aggregates over documents and stock.

from flask import Blueprint, current_app, request

from ..services import reporting_service
from ..services.reporting_service import ReportError


reports_bp = Blueprint("reports", __name__, url_prefix="/api")


@reports_bp.get("/reports/vat")
def vat_report_route():
    """
    VAT collected per rate.

    Query params:
    - date_from: YYYY-MM-DD (optional)
    - date_to: YYYY-MM-DD (optional)
    """
    try:
        return reporting_service.vat_report(request.args.get("date_from"), request.args.get("date_to"))
    except ReportError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to build VAT report")
        return {"error": "Internal server error"}, 500


@reports_bp.get("/reports/dashboard")
def dashboard_report_route():
    try:
        return reporting_service.dashboard_report(request.args.get("date_from"), request.args.get("date_to"))
    except ReportError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to build dashboard report")
        return {"error": "Internal server error"}, 500


@reports_bp.get("/reports/inventory")
def inventory_report_route():
    return reporting_service.inventory_report()


@reports_bp.get("/stock-alerts")
def stock_alerts_route():
    alerts = reporting_service.stock_alerts()
    return {"items": alerts, "count": len(alerts)}
