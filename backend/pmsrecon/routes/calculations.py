# Overview: Flask API routes for PMS calculations; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, request

from ..decorators import require_identity
from ..errors import PmsError
from ..extensions import db
from ..responses import bad_request, failure, server_error, success
from ..services import calculation_service, rollover_service


calculations_bp = Blueprint("pms_calculations", __name__, url_prefix="/api/pms-calculations")


@calculations_bp.get("")
@require_identity
def list_calculations_route():
    """
    Query parameters:
        station_id, start_date, end_date: required
    """
    args = request.args
    missing = [k for k in ("station_id", "start_date", "end_date") if not args.get(k)]
    if missing:
        return bad_request(f"Missing required parameters: {', '.join(missing)}", field=missing[0])

    try:
        rows = calculation_service.list_calculations(args["station_id"], args["start_date"], args["end_date"])
        return success(rows)

    except PmsError as e:
        return failure(e)
    except Exception:
        current_app.logger.exception("Failed to list calculations")
        return server_error()


@calculations_bp.post("")
@require_identity
def calculate_route():
    """
    Calculate every active pump at a station for a day.

    Request body:
    {
        "station_id": int,
        "calculation_date": "YYYY-MM-DD",
        "force_recalculate": bool (optional),
        "threshold_percent": number (optional)
    }

    Returns:
        201: Calculation run finished (per-pump failures in data.errors)
        400: Missing or invalid fields
        404: No active pumps at the station
    """
    data = request.get_json(silent=True) or {}
    missing = [k for k in ("station_id", "calculation_date") if data.get(k) is None]
    if missing:
        return bad_request(f"Missing required fields: {', '.join(missing)}", field=missing[0])

    try:
        result = calculation_service.calculate(
            data["station_id"],
            data["calculation_date"],
            user_id=g.user_id,
            force_recalculate=data.get("force_recalculate", False),
            threshold_percent=data.get("threshold_percent"),
        )
        db.session.commit()
        return success(result, 201)

    except PmsError as e:
        db.session.rollback()
        return failure(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to calculate PMS sales")
        return server_error()


@calculations_bp.post("/<int:calculation_id>/approve")
@require_identity
def approve_route(calculation_id: int):
    """
    Approve or reject a pending calculation.

    Request body:
    {
        "approved": bool,
        "notes": str (optional)
    }

    Returns:
        200: Decision recorded
        400: approved missing or not a boolean
        404: Calculation not found
        409: Calculation is not pending
    """
    data = request.get_json(silent=True) or {}
    if "approved" not in data:
        return bad_request("approved is required", field="approved")

    try:
        calc = calculation_service.approve(
            calculation_id,
            data["approved"],
            user_id=g.user_id,
            notes=data.get("notes"),
        )
        db.session.commit()
        return success(calc.to_dict())

    except PmsError as e:
        db.session.rollback()
        return failure(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to approve calculation")
        return server_error()


@calculations_bp.post("/rollover")
@require_identity
def confirm_rollover_route():
    """
    Confirm a meter rollover.

    Request body:
    {
        "pump_id": int,
        "calculation_date": "YYYY-MM-DD",
        "rollover_value": number,
        "new_reading": number
    }

    Returns:
        200: Calculation updated with the confirmed rollover
        400: Invalid, negative or over-capacity values
        404: Pump, reading or calculation not found
    """
    data = request.get_json(silent=True) or {}
    required = ("pump_id", "calculation_date", "rollover_value", "new_reading")
    missing = [k for k in required if data.get(k) is None]
    if missing:
        return bad_request(f"Missing required fields: {', '.join(missing)}", field=missing[0])

    try:
        calc = rollover_service.confirm_rollover(
            data["pump_id"],
            data["calculation_date"],
            data["rollover_value"],
            data["new_reading"],
            user_id=g.user_id,
        )
        db.session.commit()
        return success(calc.to_dict())

    except PmsError as e:
        db.session.rollback()
        return failure(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to confirm rollover")
        return server_error()


@calculations_bp.get("/deviations")
@require_identity
def deviations_route():
    """
    Query parameters:
        station_id: required
        threshold_percent: optional (default from config)
        days: optional (default from config)
        as_of: optional end date (default today)
    """
    args = request.args
    if not args.get("station_id"):
        return bad_request("station_id is required", field="station_id")

    try:
        rows = calculation_service.list_deviations(
            args["station_id"],
            threshold_percent=args.get("threshold_percent"),
            days=args.get("days"),
            as_of=args.get("as_of"),
        )
        return success(rows)

    except PmsError as e:
        return failure(e)
    except Exception:
        current_app.logger.exception("Failed to list deviations")
        return server_error()
