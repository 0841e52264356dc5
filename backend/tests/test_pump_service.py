# Overview: Pytest coverage for the pump registry service.

"""
Pump Registry Tests

Covers:
- pump_number uniqueness per station on create and on update
- status / is_active staying in step
- soft delete keeping the row
- payload validation on create
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from pmsrecon.errors import DuplicatePumpNumber, PumpNotFound, ValidationError
from pmsrecon.extensions import db
from pmsrecon.models import PumpConfiguration
from pmsrecon.services import pump_service

from conftest import DAY, OTHER_STATION_ID, PRODUCT_ID, STATION_ID, make_pump, record_day


def pump_payload(**overrides):
    payload = {
        "station_id": STATION_ID,
        "pms_product_id": PRODUCT_ID,
        "pump_number": "P1",
        "meter_capacity": 999999.9,
        "install_date": "2024-01-01",
    }
    payload.update(overrides)
    return payload


class TestCreatePump:

    def test_create_defaults_to_active(self, db_session):
        pump = pump_service.create_pump(pump_payload())
        db_session.commit()

        assert pump.id is not None
        assert pump.status == "active"
        assert pump.is_active is True
        assert pump.meter_capacity == Decimal("999999.9")

    def test_duplicate_number_same_station(self, db_session):
        pump_service.create_pump(pump_payload())
        db_session.commit()

        with pytest.raises(DuplicatePumpNumber) as exc_info:
            pump_service.create_pump(pump_payload(meter_capacity=5000))
        assert exc_info.value.field == "pump_number"

    def test_same_number_other_station(self, db_session):
        pump_service.create_pump(pump_payload())
        other = pump_service.create_pump(pump_payload(station_id=OTHER_STATION_ID))
        db_session.commit()

        assert other.station_id == OTHER_STATION_ID

    def test_unique_constraint_enforced_by_database(self, db_session):
        """Bypassing the service still cannot create a second P1."""
        make_pump(db_session, "P1")
        db_session.add(PumpConfiguration(
            station_id=STATION_ID,
            pms_product_id=PRODUCT_ID,
            pump_number="P1",
            meter_capacity=Decimal("1000.0"),
            install_date=date(2024, 1, 1),
        ))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_missing_required_field(self, db_session):
        payload = pump_payload()
        del payload["meter_capacity"]
        with pytest.raises(ValidationError):
            pump_service.create_pump(payload)

    def test_capacity_must_be_at_least_one(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            pump_service.create_pump(pump_payload(meter_capacity=0.5))
        assert exc_info.value.field == "meter_capacity"

    def test_unknown_status_rejected(self, db_session):
        with pytest.raises(ValidationError):
            pump_service.create_pump(pump_payload(status="broken"))

    def test_calibration_before_install_rejected(self, db_session):
        with pytest.raises(ValidationError):
            pump_service.create_pump(pump_payload(last_calibration_date="2023-06-01"))


class TestUpdatePump:

    def test_rename_to_taken_number(self, db_session):
        make_pump(db_session, "P1")
        p2 = make_pump(db_session, "P2")

        with pytest.raises(DuplicatePumpNumber):
            pump_service.update_pump(p2.id, {"pump_number": "P1"})

    def test_rename_to_free_number(self, db_session):
        p1 = make_pump(db_session, "P1")
        updated = pump_service.update_pump(p1.id, {"pump_number": "P9", "meter_capacity": 99999.9})
        db_session.commit()

        assert updated.pump_number == "P9"
        assert updated.meter_capacity == Decimal("99999.9")

    def test_keeping_own_number_is_not_a_duplicate(self, db_session):
        p1 = make_pump(db_session, "P1")
        updated = pump_service.update_pump(p1.id, {"pump_number": "P1"})
        assert updated.pump_number == "P1"

    def test_station_is_not_writable(self, db_session):
        p1 = make_pump(db_session, "P1")
        with pytest.raises(ValidationError):
            pump_service.update_pump(p1.id, {"station_id": OTHER_STATION_ID})

    def test_unknown_pump(self, db_session):
        with pytest.raises(PumpNotFound):
            pump_service.update_pump(9999, {"pump_number": "P2"})

    def test_capacity_fixed_once_readings_exist(self, db_session, price):
        p1 = make_pump(db_session, "P1")
        record_day(p1, DAY, opening="999950.0")

        with pytest.raises(ValidationError) as exc_info:
            pump_service.update_pump(p1.id, {"meter_capacity": 500000.0})
        db_session.rollback()

        assert exc_info.value.field == "meter_capacity"
        assert db.session.get(PumpConfiguration, p1.id).meter_capacity == Decimal("999999.9")

    def test_same_capacity_allowed_with_readings(self, db_session, price):
        p1 = make_pump(db_session, "P1")
        record_day(p1, DAY, opening="100.0")

        updated = pump_service.update_pump(p1.id, {"meter_capacity": 999999.9, "pump_number": "P5"})
        assert updated.pump_number == "P5"


class TestStatusLifecycle:

    def test_status_drives_is_active(self, db_session):
        p1 = make_pump(db_session, "P1")

        pump_service.update_status(p1.id, "maintenance", "Nozzle replacement")
        db_session.commit()
        assert p1.is_active is False
        assert p1.status_notes == "Nozzle replacement"

        pump_service.update_status(p1.id, "active")
        db_session.commit()
        assert p1.is_active is True

    def test_invalid_status(self, db_session):
        p1 = make_pump(db_session, "P1")
        with pytest.raises(ValidationError):
            pump_service.update_status(p1.id, "retired")

    def test_soft_delete_keeps_row(self, db_session):
        p1 = make_pump(db_session, "P1")
        pump_service.soft_delete_pump(p1.id)
        db_session.commit()

        row = db.session.get(PumpConfiguration, p1.id)
        assert row is not None
        assert row.status == "repair"
        assert row.is_active is False

    def test_list_active_excludes_inactive(self, db_session):
        make_pump(db_session, "P1")
        make_pump(db_session, "P2", status="calibration")
        make_pump(db_session, "P3", station_id=OTHER_STATION_ID)

        all_pumps = pump_service.list_pumps(STATION_ID)
        active = pump_service.list_active_pumps(STATION_ID)

        assert [p.pump_number for p in all_pumps] == ["P1", "P2"]
        assert [p.pump_number for p in active] == ["P1"]
