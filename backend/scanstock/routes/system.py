# backend/scanstock/routes/system.py
"""
System health endpoint.

Reports database connectivity and whether any product currently breaks
0 <= available_stock <= stock.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError
from ..extensions import db
from ..models import Product, Order
from ..services.stock_ledger_service import find_invariant_violations
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        product_count = db.session.query(Product).count()
        order_count = db.session.query(Order).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "products": product_count,
                "orders": order_count,
            }
        }
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_stock_invariants() -> dict:
    """Degraded (not down) when counters are out of bounds."""
    start_time = time.time()
    try:
        violations = find_invariant_violations()
    except SQLAlchemyError:
        current_app.logger.exception("Stock invariant check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": "Database error"
        }

    elapsed_ms = (time.time() - start_time) * 1000
    if violations:
        current_app.logger.warning("%s product(s) violate stock invariants", len(violations))
        return {
            "status": "degraded",
            "latency_ms": round(elapsed_ms, 2),
            "warning": f"{len(violations)} product(s) violate 0 <= available_stock <= stock",
            "details": {"violations": violations},
        }
    return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}


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
    stock_health = check_stock_invariants()

    all_checks = [database_health, stock_health]
    unhealthy_count = sum(1 for check in all_checks if check["status"] == "unhealthy")
    degraded_count = sum(1 for check in all_checks if check["status"] == "degraded")

    if unhealthy_count > 0:
        overall_status = "unhealthy"
        http_status = 503
    elif degraded_count > 0:
        overall_status = "degraded"
        http_status = 200  # Degraded is still operational
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "stock_invariants": stock_health,
        }
    }

    return response, http_status
