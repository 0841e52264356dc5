# Overview: Flask API routes for meter readings; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, request

from ..decorators import require_identity
from ..errors import PmsError
from ..extensions import db
from ..responses import bad_request, failure, server_error, success
from ..services import reading_service, status_service


readings_bp = Blueprint("meter_readings", __name__, url_prefix="/api/meter-readings")


@readings_bp.get("")
@require_identity
def list_readings_route():
    """
    Query parameters:
        station_id, start_date, end_date: required
        pump_id: optional
    """
    args = request.args
    missing = [k for k in ("station_id", "start_date", "end_date") if not args.get(k)]
    if missing:
        return bad_request(f"Missing required parameters: {', '.join(missing)}", field=missing[0])

    try:
        rows = reading_service.list_readings(
            args["station_id"], args["start_date"], args["end_date"], args.get("pump_id")
        )
        return success(rows)

    except PmsError as e:
        return failure(e)
    except Exception:
        current_app.logger.exception("Failed to list meter readings")
        return server_error()


@readings_bp.post("")
@require_identity
def record_reading_route():
    """
    Record one reading.

    Request body:
    {
        "pump_id": int,
        "reading_date": "YYYY-MM-DD",
        "reading_type": "opening" | "closing",
        "meter_value": number,
        "notes": str (optional),
        "is_estimated": bool (optional),
        "estimation_method": str (optional)
    }

    Returns:
        201: Reading recorded
        400: Invalid payload or duplicate reading
        404: Pump not found or inactive
    """
    data = request.get_json(silent=True) or {}
    missing = [k for k in ("pump_id", "reading_date", "reading_type", "meter_value") if data.get(k) is None]
    if missing:
        return bad_request(f"Missing required fields: {', '.join(missing)}", field=missing[0])

    try:
        reading = reading_service.record_reading(
            data["pump_id"],
            data["reading_date"],
            data["reading_type"],
            data["meter_value"],
            data.get("notes"),
            recorded_by=g.user_id,
            is_estimated=data.get("is_estimated", False),
            estimation_method=data.get("estimation_method"),
        )
        db.session.commit()
        return success(reading.to_dict(), 201)

    except PmsError as e:
        db.session.rollback()
        return failure(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record meter reading")
        return server_error()


@readings_bp.put("/<int:reading_id>")
@require_identity
def update_reading_route(reading_id: int):
    """
    Correct a reading inside its modification window.

    Request body:
    {
        "meter_value": number,
        "notes": str (optional)
    }

    Returns:
        200: Reading updated, day recomputed
        400: Invalid payload
        403: Modification window expired
        404: Reading not found
    """
    data = request.get_json(silent=True) or {}
    if data.get("meter_value") is None:
        return bad_request("meter_value is required", field="meter_value")

    try:
        reading, calc = reading_service.update_reading(
            reading_id,
            data["meter_value"],
            data.get("notes"),
            modified_by=g.user_id,
        )
        db.session.commit()
        return success({
            "reading": reading.to_dict(),
            "calculation": calc.to_dict() if calc is not None else None,
        })

    except PmsError as e:
        db.session.rollback()
        return failure(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update meter reading")
        return server_error()


@readings_bp.post("/bulk")
@require_identity
def record_bulk_route():
    """
    Record readings for several pumps at once.

    Request body:
    {
        "station_id": int,
        "reading_date": "YYYY-MM-DD",
        "reading_type": "opening" | "closing",
        "readings": [{"pump_id": int, "meter_value": number, "notes": str}]
    }

    Returns:
        201: Request processed; per-pump failures listed in data.errors
        400: Malformed request
    """
    data = request.get_json(silent=True) or {}
    missing = [k for k in ("station_id", "reading_date", "reading_type", "readings") if data.get(k) is None]
    if missing:
        return bad_request(f"Missing required fields: {', '.join(missing)}", field=missing[0])

    try:
        result = reading_service.record_bulk(
            data["station_id"],
            data["reading_date"],
            data["reading_type"],
            data["readings"],
            recorded_by=g.user_id,
        )
        db.session.commit()
        return success(result, 201)

    except PmsError as e:
        db.session.rollback()
        return failure(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record bulk meter readings")
        return server_error()


@readings_bp.get("/daily-status")
@require_identity
def daily_status_route():
    """
    Query parameters:
        station_id: required
        date: required (YYYY-MM-DD)
    """
    station_id = request.args.get("station_id")
    status_date = request.args.get("date")
    if not station_id or not status_date:
        return bad_request("station_id and date are required")

    try:
        return success(status_service.get_daily_status(station_id, status_date))

    except PmsError as e:
        return failure(e)
    except Exception:
        current_app.logger.exception("Failed to load daily reading status")
        return server_error()
