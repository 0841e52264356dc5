"""
Pytest fixtures for PMS reconciliation backend tests.

Provides an in-memory application, a per-test clean database, pump and
price fixtures, and a test client with identity headers.
"""

from datetime import date
from decimal import Decimal

import pytest

from pmsrecon import create_app
from pmsrecon.extensions import db
from pmsrecon.models import FuelPrice, MeterReading, PumpConfiguration
from pmsrecon.services import reading_service


STATION_ID = 1
OTHER_STATION_ID = 2
PRODUCT_ID = 10
UNIT_PRICE = Decimal("2.50")
DAY = date(2026, 1, 15)
USER = "attendant-1"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'PMS_STATION_TIMEZONE': 'UTC',
        'PMS_MODIFICATION_CUTOFF_HOUR': 6,
        'PMS_DEVIATION_WINDOW_DAYS': 7,
        'PMS_DEVIATION_THRESHOLD_PERCENT': '20',
        'PMS_ESTIMATION_WINDOW_DAYS': 30,
        'PMS_DEFAULT_DAILY_VOLUME': '120.0',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def price(db_session):
    """Unit price for PRODUCT_ID, effective well before any test date."""
    row = FuelPrice(product_id=PRODUCT_ID, effective_from=date(2025, 1, 1), unit_price=UNIT_PRICE)
    db_session.add(row)
    db_session.commit()
    return row


def make_pump(db_session, pump_number="P1", *, station_id=STATION_ID, capacity="999999.9", status="active"):
    pump = PumpConfiguration(
        station_id=station_id,
        pms_product_id=PRODUCT_ID,
        pump_number=pump_number,
        meter_capacity=Decimal(capacity),
        install_date=date(2024, 1, 1),
        status=status,
        is_active=status == "active",
    )
    db_session.add(pump)
    db_session.commit()
    return pump


@pytest.fixture(scope='function')
def pump(db_session, price):
    """Active pump P1 at STATION_ID with a 999999.9 meter."""
    return make_pump(db_session, "P1")


@pytest.fixture(scope='function')
def second_pump(db_session, price):
    """Active pump P2 at STATION_ID."""
    return make_pump(db_session, "P2")


def record_day(pump, day, opening=None, closing=None, user=USER):
    """Record the given readings for a pump/day and commit."""
    readings = []
    if opening is not None:
        readings.append(reading_service.record_reading(pump.id, day, "opening", opening, recorded_by=user))
    if closing is not None:
        readings.append(reading_service.record_reading(pump.id, day, "closing", closing, recorded_by=user))
    db.session.commit()
    return readings


def get_reading(pump_id, day, reading_type) -> MeterReading:
    return (
        db.session.query(MeterReading)
        .filter_by(pump_id=pump_id, reading_date=day, reading_type=reading_type)
        .one()
    )


def auth_headers(user_id: str = USER) -> dict:
    """Helper to create identity headers."""
    return {'X-User-Id': user_id}
