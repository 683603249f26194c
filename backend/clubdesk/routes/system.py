# backend/clubdesk/routes/system.py
"""
System health endpoint.

Reports database reachability and row counts of the core tables for
deployment debugging.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Booking, InventoryMovement, Order, PricelistItem
from clubdesk.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        details = {
            "pricelist_items": db.session.query(PricelistItem).count(),
            "inventory_movements": db.session.query(InventoryMovement).count(),
            "orders": db.session.query(Order).count(),
            "bookings": db.session.query(Booking).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": details,
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    status = "healthy" if database["status"] == "healthy" else "unhealthy"
    body = {
        "status": status,
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database},
    }
    return body, (200 if status == "healthy" else 503)
