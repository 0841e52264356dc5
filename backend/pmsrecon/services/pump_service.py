# Overview: Pump registry; configuration lifecycle for station pumps.

"""
Pump configuration lifecycle.

STATUS: active | maintenance | calibration | repair.
is_active mirrors status == "active". Deletion is soft: status becomes
repair and is_active False; rows are never removed because readings and
calculations keep pointing at them.

PUMP NUMBER: unique per station. Every write re-checks it and the
database constraint has the final word.
"""
from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from .. import repositories
from ..errors import DuplicatePumpNumber, PumpNotFound, ValidationError
from ..extensions import db
from ..models import PUMP_STATUSES, PumpConfiguration
from ..validation import ModelValidationPolicy, parse_choice, parse_id, parse_notes, validate_payload
from .concurrency import run_with_retry

logger = logging.getLogger(__name__)


CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "station_id",
        "pms_product_id",
        "pump_number",
        "meter_capacity",
        "install_date",
        "last_calibration_date",
        "status",
    },
    required_on_create={"station_id", "pms_product_id", "pump_number", "meter_capacity", "install_date"},
)

UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"pms_product_id", "pump_number", "meter_capacity", "last_calibration_date"},
)


def _enforce_rules(patch: dict) -> None:
    if "meter_capacity" in patch and patch["meter_capacity"] < Decimal("1"):
        raise ValidationError("meter_capacity must be at least 1", field="meter_capacity")
    if "status" in patch:
        parse_choice(patch["status"], "status", PUMP_STATUSES)
    install = patch.get("install_date")
    calibrated = patch.get("last_calibration_date")
    if install and calibrated and calibrated < install:
        raise ValidationError(
            "last_calibration_date cannot be before install_date",
            field="last_calibration_date",
        )


def _duplicate(station_id: int, pump_number: str) -> DuplicatePumpNumber:
    return DuplicatePumpNumber(
        f"Pump number {pump_number} already exists for station {station_id}",
        field="pump_number",
    )


def get_pump(pump_id) -> PumpConfiguration:
    pump = repositories.pumps.get(parse_id(pump_id, "pump_id"))
    if pump is None:
        raise PumpNotFound(f"Pump {pump_id} not found")
    return pump


def create_pump(payload: dict) -> PumpConfiguration:
    """
    Register a new pump.

    Raises:
        ValidationError: malformed payload
        DuplicatePumpNumber: pump_number already used at the station
    """
    patch = validate_payload(model=PumpConfiguration, payload=payload, policy=CREATE_POLICY, partial=False)
    _enforce_rules(patch)
    patch.setdefault("status", "active")
    patch["is_active"] = patch["status"] == "active"

    def _op():
        if repositories.pumps.find_by_number(patch["station_id"], patch["pump_number"]):
            raise _duplicate(patch["station_id"], patch["pump_number"])

        pump = PumpConfiguration(**patch)
        if not repositories.pumps.add(pump):
            raise _duplicate(patch["station_id"], patch["pump_number"])

        logger.info("Registered pump %s at station %s", pump.pump_number, pump.station_id)
        return pump

    return run_with_retry(_op)


def update_pump(pump_id, payload: dict) -> PumpConfiguration:
    """
    Partial update of configuration fields.

    meter_capacity is fixed once any reading references the pump.
    """
    patch = validate_payload(model=PumpConfiguration, payload=payload, policy=UPDATE_POLICY, partial=True)
    _enforce_rules(patch)
    pump_id = parse_id(pump_id, "pump_id")

    def _op():
        pump = repositories.pumps.get(pump_id, for_update=True)
        if pump is None:
            raise PumpNotFound(f"Pump {pump_id} not found")

        capacity = patch.get("meter_capacity")
        if (
            capacity is not None
            and capacity != pump.meter_capacity
            and repositories.readings.exists_for_pump(pump.id)
        ):
            raise ValidationError(
                "meter_capacity cannot change once readings exist for the pump",
                field="meter_capacity",
            )

        new_number = patch.get("pump_number")
        if new_number is not None and new_number != pump.pump_number:
            clash = repositories.pumps.find_by_number(pump.station_id, new_number)
            if clash is not None and clash.id != pump.id:
                raise _duplicate(pump.station_id, new_number)

        calibrated = patch.get("last_calibration_date")
        if calibrated is not None and calibrated < pump.install_date:
            raise ValidationError(
                "last_calibration_date cannot be before install_date",
                field="last_calibration_date",
            )

        for key, value in patch.items():
            setattr(pump, key, value)

        # The unique constraint catches a concurrent rename.
        try:
            with db.session.begin_nested():
                db.session.flush()
        except IntegrityError as exc:
            raise _duplicate(pump.station_id, new_number) from exc

        return pump

    return run_with_retry(_op)


def update_status(pump_id, status, notes=None) -> PumpConfiguration:
    status = parse_choice(status, "status", PUMP_STATUSES)
    notes = parse_notes(notes)
    pump_id = parse_id(pump_id, "pump_id")

    def _op():
        pump = repositories.pumps.get(pump_id, for_update=True)
        if pump is None:
            raise PumpNotFound(f"Pump {pump_id} not found")

        pump.status = status
        pump.is_active = status == "active"
        if notes is not None:
            pump.status_notes = notes
        logger.info("Pump %s status set to %s", pump.id, status)
        return pump

    return run_with_retry(_op)


def list_pumps(station_id, *, active_only: bool = False) -> list[PumpConfiguration]:
    return repositories.pumps.list_for_station(parse_id(station_id, "station_id"), active_only=active_only)


def list_active_pumps(station_id) -> list[PumpConfiguration]:
    return list_pumps(station_id, active_only=True)


def soft_delete_pump(pump_id) -> PumpConfiguration:
    pump_id = parse_id(pump_id, "pump_id")

    def _op():
        pump = repositories.pumps.get(pump_id, for_update=True)
        if pump is None:
            raise PumpNotFound(f"Pump {pump_id} not found")
        pump.is_active = False
        pump.status = "repair"
        logger.info("Pump %s soft-deleted", pump.id)
        return pump

    return run_with_retry(_op)
