# Overview: Meter reading capture, bulk capture and time-boxed correction.

"""
Meter reading store.

UNIQUENESS: one reading per (pump, date, type). The insert itself is the
check: it runs in a savepoint against the unique constraint, so of two
concurrent submissions exactly one succeeds and the other gets
DuplicateReading.

MODIFICATION WINDOW: a reading can be corrected until the cutoff hour
(PMS_MODIFICATION_CUTOFF_HOUR, station time) of the day after its reading
date. Later corrections fail with ModificationWindowExpired.

CALCULATION TRIGGERS:
- recording the reading that completes an opening/closing pair calculates
  that pump/day if it has no calculation yet
- a correction fully recomputes the pump/day
A trigger that fails for business reasons (e.g. no price yet) is logged
and does not undo the reading.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .. import repositories
from ..errors import (
    DuplicateReading,
    ModificationWindowExpired,
    PmsError,
    PumpNotFound,
    ReadingNotFound,
    StorageError,
    ValidationError,
)
from ..extensions import db
from ..models import MeterReading, PmsCalculation, PumpConfiguration
from ..time_utils import is_past, modification_deadline, to_utc_z, utcnow
from ..validation import (
    READING_TYPES,
    ReadingInput,
    parse_choice,
    parse_date,
    parse_decimal,
    parse_id,
    parse_notes,
)
from . import calculation_service
from .concurrency import run_with_retry

logger = logging.getLogger(__name__)


def reading_deadline(reading_date: date):
    return modification_deadline(
        reading_date,
        current_app.config["PMS_STATION_TIMEZONE"],
        int(current_app.config["PMS_MODIFICATION_CUTOFF_HOUR"]),
    )


def can_modify_reading(reading: MeterReading, now=None) -> bool:
    return not is_past(reading_deadline(reading.reading_date), now)


def _check_capacity(pump: PumpConfiguration, value: Decimal) -> None:
    if value > Decimal(pump.meter_capacity):
        raise ValidationError(
            f"Meter value exceeds pump capacity of {pump.meter_capacity}",
            field="meter_value",
        )


def _trigger_calculation(pump: PumpConfiguration, reading_date: date, user_id: str, *, recompute: bool):
    day = repositories.readings.for_pump_day(pump.id, reading_date)
    complete = "opening" in day and "closing" in day
    if not complete and not (recompute and repositories.calculations.find(pump.id, reading_date)):
        return None

    try:
        with db.session.begin_nested():
            if recompute:
                return calculation_service.recalculate_pump_day(pump, reading_date, user_id=user_id)
            calc, written = calculation_service.calculate_pump(pump, reading_date, user_id=user_id)
            if written:
                calculation_service.refresh_sales_record(pump.station_id, reading_date)
            return calc
    except PmsError as exc:
        logger.warning(
            "Automatic calculation for pump %s on %s skipped: %s",
            pump.id, reading_date, exc,
        )
        return None


def _record(data: ReadingInput, recorded_by: str, *, station_id: int | None = None) -> MeterReading:
    pump = repositories.pumps.get(data.pump_id)
    if pump is None or not pump.is_active or (station_id is not None and pump.station_id != station_id):
        raise PumpNotFound(f"Pump {data.pump_id} not found or not active", field="pump_id")

    _check_capacity(pump, data.meter_value)

    reading = MeterReading(
        pump_id=pump.id,
        reading_date=data.reading_date,
        reading_type=data.reading_type,
        meter_value=data.meter_value,
        notes=data.notes,
        recorded_by=recorded_by,
        is_estimated=data.is_estimated,
        estimation_method=data.estimation_method,
    )
    if not repositories.readings.add(reading):
        raise DuplicateReading(
            f"A {data.reading_type} reading already exists for pump {pump.id} on {data.reading_date.isoformat()}",
            field="reading_type",
        )

    logger.info(
        "Recorded %s reading %s for pump %s on %s",
        data.reading_type, data.meter_value, pump.id, data.reading_date,
    )
    _trigger_calculation(pump, data.reading_date, recorded_by, recompute=False)
    return reading


def record_reading(
    pump_id,
    reading_date,
    reading_type,
    meter_value,
    notes=None,
    *,
    recorded_by: str,
    is_estimated=False,
    estimation_method=None,
) -> MeterReading:
    """
    Record one opening or closing reading.

    Raises:
        ValidationError: bad value/type/date, or value above pump capacity
        PumpNotFound: unknown or inactive pump
        DuplicateReading: reading already exists for (pump, date, type)
    """
    data = ReadingInput.build(
        pump_id, reading_date, reading_type, meter_value, notes,
        is_estimated=is_estimated, estimation_method=estimation_method,
    )
    return run_with_retry(lambda: _record(data, recorded_by))


def record_bulk(station_id, reading_date, reading_type, readings, *, recorded_by: str) -> dict:
    """
    Record one reading per pump for a station/day/type, best effort.

    Each item is inserted in its own savepoint. A bad item is reported in
    `errors` and never aborts the batch; items are not retried.

    Raises:
        ValidationError: the request itself is malformed
    """
    station_id = parse_id(station_id, "station_id")
    reading_date = parse_date(reading_date, "reading_date")
    reading_type = parse_choice(reading_type, "reading_type", READING_TYPES)
    if not isinstance(readings, list) or not readings:
        raise ValidationError("readings must be a non-empty list", field="readings")

    recorded = []
    errors = []

    for item in readings:
        pump_ref = item.get("pump_id") if isinstance(item, dict) else None
        try:
            if not isinstance(item, dict):
                raise ValidationError("Each reading must be an object", field="readings")
            data = ReadingInput.build(
                pump_ref, reading_date, reading_type, item.get("meter_value"), item.get("notes"),
            )
            with db.session.begin_nested():
                recorded.append(_record(data, recorded_by, station_id=station_id))
        except PmsError as exc:
            errors.append({"pump_id": pump_ref, "reason": exc.message, "code": exc.code})
        except SQLAlchemyError as exc:
            logger.exception("Storage failure recording bulk reading for pump %s", pump_ref)
            failure = StorageError(f"Storage failure: {exc.__class__.__name__}")
            errors.append({"pump_id": pump_ref, "reason": failure.message, "code": failure.code})

    if errors:
        logger.warning(
            "Bulk %s readings for station %s on %s: %s recorded, %s failed",
            reading_type, station_id, reading_date, len(recorded), len(errors),
        )

    return {
        "recorded_count": len(recorded),
        "errors": errors,
        "readings": [r.to_dict() for r in recorded],
    }


def update_reading(
    reading_id,
    meter_value,
    notes=None,
    *,
    modified_by: str,
    now=None,
) -> tuple[MeterReading, PmsCalculation | None]:
    """
    Correct a reading inside its modification window and recompute the day.

    Returns the reading and the recomputed calculation (None when the day
    has nothing to compute yet).

    Raises:
        ValidationError: bad value, or value above pump capacity
        ReadingNotFound: unknown reading
        ModificationWindowExpired: the window closed
    """
    reading_id = parse_id(reading_id, "reading_id")
    value = parse_decimal(meter_value, "meter_value", minimum=Decimal("0"))
    notes = parse_notes(notes)

    def _op():
        reading = repositories.readings.get(reading_id, for_update=True)
        if reading is None:
            raise ReadingNotFound(f"Meter reading {reading_id} not found")

        deadline = reading_deadline(reading.reading_date)
        if is_past(deadline, now):
            raise ModificationWindowExpired(
                "Modification window expired. Readings can only be modified until "
                f"{deadline.strftime('%H:%M')} the day after the reading date.",
                details={"deadline": to_utc_z(deadline)},
            )

        pump = reading.pump
        _check_capacity(pump, value)

        if not reading.is_modified:
            reading.original_value = reading.meter_value
        reading.meter_value = value
        if notes is not None:
            reading.notes = notes
        reading.is_modified = True
        reading.modified_by = modified_by
        reading.modified_at = utcnow()
        db.session.flush()

        calc = _trigger_calculation(pump, reading.reading_date, modified_by, recompute=True)
        return reading, calc

    return run_with_retry(_op)


def list_readings(station_id, start_date, end_date, pump_id=None) -> list[dict]:
    station_id = parse_id(station_id, "station_id")
    start_date = parse_date(start_date, "start_date")
    end_date = parse_date(end_date, "end_date")
    if pump_id is not None:
        pump_id = parse_id(pump_id, "pump_id")
    rows = repositories.readings.list_range(station_id, start_date, end_date, pump_id)
    return [
        {**reading.to_dict(), "pump_number": number, "can_modify": can_modify_reading(reading)}
        for reading, number in rows
    ]
