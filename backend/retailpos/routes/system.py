# backend/retailpos/routes/system.py
"""
System health endpoint.

Reports whether the in-memory store answers queries and how much it holds.
"""

import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import Document, Product, Shift
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        details = {
            "products": db.session.query(Product).count(),
            "documents": db.session.query(Document).count(),
            "open_shifts": db.session.query(Shift).filter_by(status="open").count(),
        }
        return {
            "status": "healthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "details": details,
        }
    except Exception:
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: store reachable
    - 503: store query failed
    """
    database_health = check_database_health()
    http_status = 200 if database_health["status"] == "healthy" else 503
    return {
        "status": database_health["status"],
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database_health},
    }, http_status
