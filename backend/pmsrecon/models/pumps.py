from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z


PUMP_STATUSES = ("active", "maintenance", "calibration", "repair")


def _decimal_str(value) -> str | None:
    return str(value) if value is not None else None


class PumpConfiguration(db.Model):
    """
    Pump master data.

    Stations and fuel products live in external services; station_id and
    pms_product_id are opaque references, not foreign keys.

    PUMP NUMBER: unique within a station, enforced by the database so two
    concurrent creates cannot both succeed.

    CAPACITY: meter_capacity is the highest value the physical meter shows
    before it wraps to zero. Stored calculations keep their own readings and
    confirmed rollover value, so changing it later never rewrites history.
    """
    __tablename__ = "pump_configurations"
    __table_args__ = (
        db.UniqueConstraint("station_id", "pump_number", name="uq_pumps_station_number"),
        db.Index("ix_pumps_station_status", "station_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    station_id = db.Column(db.Integer, nullable=False, index=True)
    pms_product_id = db.Column(db.Integer, nullable=False)
    pump_number = db.Column(db.String(32), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    meter_capacity = db.Column(db.Numeric(12, 1), nullable=False)
    install_date = db.Column(db.Date, nullable=False)
    last_calibration_date = db.Column(db.Date, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="active")
    status_notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<PumpConfiguration id={self.id} station_id={self.station_id} number={self.pump_number!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "station_id": self.station_id,
            "pms_product_id": self.pms_product_id,
            "pump_number": self.pump_number,
            "is_active": self.is_active,
            "meter_capacity": _decimal_str(self.meter_capacity),
            "install_date": to_iso_date(self.install_date),
            "last_calibration_date": to_iso_date(self.last_calibration_date),
            "status": self.status,
            "status_notes": self.status_notes,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
