# backend/truckcheck/routes/system.py
"""
System health endpoint.

Reports database reachability and whether an invoice directory is
configured. The directory itself is not called; a health probe must not
depend on an external system's latency.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Checkout, InventoryItem, ItemNameMapping
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        checkout_count = db.session.query(Checkout).count()
        item_count = db.session.query(InventoryItem).count()
        mapping_count = db.session.query(ItemNameMapping).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "checkouts": checkout_count,
                "inventory_items": item_count,
                "alias_mappings": mapping_count,
            }
        }
    except Exception:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_invoice_directory_config() -> dict:
    if current_app.extensions.get("invoice_directory") is not None:
        return {"status": "healthy", "details": {"source": "installed"}}
    url = current_app.config.get("INVOICE_DIRECTORY_URL")
    if not url:
        return {"status": "degraded", "warning": "INVOICE_DIRECTORY_URL is not set"}
    return {"status": "healthy", "details": {"source": "http", "url": url}}


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    directory_health = check_invoice_directory_config()

    all_checks = [database_health, directory_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "invoice_directory": directory_health,
        }
    }

    return response, http_status
