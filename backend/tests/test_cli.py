# Overview: Pytest coverage for the Flask CLI command groups.

from decimal import Decimal

from pmsrecon.extensions import db
from pmsrecon.models import FuelPrice, PmsCalculation

from conftest import DAY, PRODUCT_ID, STATION_ID, record_day


def test_prices_set_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["prices", "set", "--product-id", str(PRODUCT_ID), "--from", "2026-02-01", "--price", "2.95"])
    assert "PASS" in result.output

    row = db.session.query(FuelPrice).filter_by(product_id=PRODUCT_ID).one()
    assert row.unit_price == Decimal("2.95")

    result = runner.invoke(args=["prices", "list", "--product-id", str(PRODUCT_ID)])
    assert "2026-02-01" in result.output


def test_prices_set_rejects_bad_price(app, db_session):
    result = app.test_cli_runner().invoke(args=["prices", "set", "--product-id", "1", "--from", "2026-02-01", "--price", "free"])
    assert "FAIL" in result.output


def test_calc_run_and_approve(app, db_session, pump):
    record_day(pump, DAY, closing="5000.0")
    runner = app.test_cli_runner()

    result = runner.invoke(args=["calc", "run", "--station-id", str(STATION_ID), "--date", DAY.isoformat()])
    assert "PASS 1 calculated" in result.output
    assert "pending_approval" in result.output

    calc = db.session.query(PmsCalculation).filter_by(pump_id=pump.id).one()
    result = runner.invoke(args=["calc", "approve", str(calc.id), "--reject", "--notes", "No photo"])
    assert f"PASS Calculation {calc.id} rejected" in result.output


def test_pumps_list(app, db_session, pump):
    result = app.test_cli_runner().invoke(args=["pumps", "list", "--station-id", str(STATION_ID)])
    assert "P1" in result.output


def test_readings_status(app, db_session, pump):
    record_day(pump, DAY, opening="1000.0")
    result = app.test_cli_runner().invoke(
        args=["readings", "status", "--station-id", str(STATION_ID), "--date", DAY.isoformat()]
    )
    assert "1000.0" in result.output
    assert "1/1 opening, 0/1 closing" in result.output
