# backend/stockledger/routes/system.py
"""
System health endpoint.

Reports database reachability and whether the stock table still agrees with
the movement ledger.
"""

import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import Stock, StockMovement, Store
from ..services import consistency_service
from stockledger.time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        details = {
            "stores": db.session.query(Store).count(),
            "stock_rows": db.session.query(Stock).count(),
            "movements": db.session.query(StockMovement).count(),
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


def check_ledger_health() -> dict:
    """A ledger that disagrees with stock is degraded, not down."""
    start_time = time.time()
    try:
        discrepancies = consistency_service.find_discrepancies()
        elapsed_ms = round((time.time() - start_time) * 1000, 2)
        if discrepancies:
            return {
                "status": "degraded",
                "latency_ms": elapsed_ms,
                "warning": f"{len(discrepancies)} stock/ledger discrepancies",
            }
        return {"status": "healthy", "latency_ms": elapsed_ms}
    except Exception:
        current_app.logger.exception("Ledger health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": "Ledger check error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    ledger_health = (
        check_ledger_health()
        if database_health["status"] == "healthy"
        else {"status": "unhealthy", "error": "Skipped: database unavailable"}
    )

    all_checks = [database_health, ledger_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "ledger": ledger_health,
        },
    }, http_status
