# Overview: Flask API routes for the pump registry; parses input and returns JSON responses.

from flask import Blueprint, current_app, request

from ..decorators import require_identity
from ..errors import PmsError
from ..extensions import db
from ..responses import bad_request, failure, server_error, success
from ..services import pump_service


pumps_bp = Blueprint("pumps", __name__, url_prefix="/api/pump-configurations")


@pumps_bp.get("")
@require_identity
def list_pumps_route():
    """
    List pumps for a station.

    Query parameters:
        station_id: required
        active_only: "true" to return only active pumps
    """
    station_id = request.args.get("station_id")
    if not station_id:
        return bad_request("station_id is required", field="station_id")

    try:
        active_only = request.args.get("active_only", "false").lower() == "true"
        pumps = pump_service.list_pumps(station_id, active_only=active_only)
        return success([p.to_dict() for p in pumps])

    except PmsError as e:
        return failure(e)
    except Exception:
        current_app.logger.exception("Failed to list pumps")
        return server_error()


@pumps_bp.post("")
@require_identity
def create_pump_route():
    """
    Register a pump.

    Request body:
    {
        "station_id": int,
        "pms_product_id": int,
        "pump_number": str,
        "meter_capacity": number,
        "install_date": "YYYY-MM-DD",
        "last_calibration_date": "YYYY-MM-DD" (optional),
        "status": str (optional)
    }

    Returns:
        201: Pump created
        400: Invalid payload or duplicate pump number
    """
    try:
        pump = pump_service.create_pump(request.get_json(silent=True))
        db.session.commit()
        return success(pump.to_dict(), 201)

    except PmsError as e:
        db.session.rollback()
        return failure(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create pump")
        return server_error()


@pumps_bp.get("/<int:pump_id>")
@require_identity
def get_pump_route(pump_id: int):
    try:
        return success(pump_service.get_pump(pump_id).to_dict())

    except PmsError as e:
        return failure(e)
    except Exception:
        current_app.logger.exception("Failed to load pump")
        return server_error()


@pumps_bp.put("/<int:pump_id>")
@require_identity
def update_pump_route(pump_id: int):
    """
    Update configuration fields (pms_product_id, pump_number,
    meter_capacity, last_calibration_date).

    Returns:
        200: Pump updated
        400: Invalid payload or duplicate pump number
        404: Pump not found
    """
    try:
        pump = pump_service.update_pump(pump_id, request.get_json(silent=True))
        db.session.commit()
        return success(pump.to_dict())

    except PmsError as e:
        db.session.rollback()
        return failure(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update pump")
        return server_error()


@pumps_bp.patch("/<int:pump_id>/status")
@require_identity
def update_pump_status_route(pump_id: int):
    """
    Request body:
    {
        "status": "active" | "maintenance" | "calibration" | "repair",
        "notes": str (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    if "status" not in data:
        return bad_request("status is required", field="status")

    try:
        pump = pump_service.update_status(pump_id, data["status"], data.get("notes"))
        db.session.commit()
        return success(pump.to_dict())

    except PmsError as e:
        db.session.rollback()
        return failure(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update pump status")
        return server_error()


@pumps_bp.delete("/<int:pump_id>")
@require_identity
def delete_pump_route(pump_id: int):
    """Soft delete: the pump is marked repair/inactive, never removed."""
    try:
        pump = pump_service.soft_delete_pump(pump_id)
        db.session.commit()
        return success(pump.to_dict())

    except PmsError as e:
        db.session.rollback()
        return failure(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete pump")
        return server_error()
