# backend/pmsrecon/routes/system.py
"""
System health endpoint.
"""

import time

from flask import Blueprint, current_app, jsonify

from ..extensions import db
from ..models import MeterReading, PmsCalculation, PumpConfiguration
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        pump_count = db.session.query(PumpConfiguration).count()
        reading_count = db.session.query(MeterReading).count()
        pending_count = db.session.query(PmsCalculation).filter_by(approval_state="pending").count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "pumps": pump_count,
                "readings": reading_count,
                "pending_approvals": pending_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    body = {
        "status": "ok" if healthy else "degraded",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database},
    }
    return jsonify(body), 200 if healthy else 503
