from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z
from .pumps import _decimal_str


class MeterReading(db.Model):
    """
    One opening or closing meter value for a pump on a calendar day.

    UNIQUENESS: (pump_id, reading_date, reading_type) is a database
    constraint. A second insert fails; corrections go through update.

    AUDIT: the first correction keeps the recorded value in original_value.
    """
    __tablename__ = "pump_meter_readings"
    __table_args__ = (
        db.UniqueConstraint(
            "pump_id", "reading_date", "reading_type",
            name="uq_readings_pump_date_type",
        ),
        db.Index("ix_readings_date", "reading_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    pump_id = db.Column(db.Integer, db.ForeignKey("pump_configurations.id"), nullable=False, index=True)

    reading_date = db.Column(db.Date, nullable=False)
    reading_type = db.Column(db.String(16), nullable=False)
    meter_value = db.Column(db.Numeric(12, 1), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    recorded_by = db.Column(db.String(64), nullable=False)
    is_estimated = db.Column(db.Boolean, nullable=False, default=False)
    estimation_method = db.Column(db.String(32), nullable=True)

    is_modified = db.Column(db.Boolean, nullable=False, default=False)
    original_value = db.Column(db.Numeric(12, 1), nullable=True)
    modified_by = db.Column(db.String(64), nullable=True)
    modified_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    pump = db.relationship("PumpConfiguration", backref=db.backref("readings", lazy="dynamic"))

    def __repr__(self) -> str:
        return (
            f"<MeterReading id={self.id} pump_id={self.pump_id} "
            f"{self.reading_date} {self.reading_type}={self.meter_value}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "pump_id": self.pump_id,
            "reading_date": to_iso_date(self.reading_date),
            "reading_type": self.reading_type,
            "meter_value": _decimal_str(self.meter_value),
            "notes": self.notes,
            "recorded_by": self.recorded_by,
            "is_estimated": self.is_estimated,
            "estimation_method": self.estimation_method,
            "is_modified": self.is_modified,
            "original_value": _decimal_str(self.original_value),
            "modified_by": self.modified_by,
            "modified_at": to_utc_z(self.modified_at),
            "created_at": to_utc_z(self.created_at),
        }
