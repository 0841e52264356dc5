from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z
from .pumps import _decimal_str


CALCULATION_METHODS = ("meter_readings", "estimated", "manual_override")
APPROVAL_STATES = ("none", "pending", "approved", "rejected")


class PmsCalculation(db.Model):
    """
    Daily dispensed volume and revenue for one pump.

    LIFECYCLE:
    NoData -> Computed(meter_readings) | Estimated
           -> Finalized (approval_state=none) | PendingApproval (pending)
           -> Approved | Rejected

    One row per (pump_id, calculation_date). Recompute rewrites the row in
    place and only happens on request (force recalculate) or after a
    reading correction.
    """
    __tablename__ = "daily_pms_calculations"
    __table_args__ = (
        db.UniqueConstraint("pump_id", "calculation_date", name="uq_calculations_pump_date"),
        db.Index("ix_calculations_date", "calculation_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    pump_id = db.Column(db.Integer, db.ForeignKey("pump_configurations.id"), nullable=False, index=True)
    calculation_date = db.Column(db.Date, nullable=False)

    opening_reading = db.Column(db.Numeric(12, 1), nullable=False)
    closing_reading = db.Column(db.Numeric(12, 1), nullable=False)
    volume_dispensed = db.Column(db.Numeric(12, 1), nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    total_revenue = db.Column(db.Numeric(14, 2), nullable=False)

    has_rollover = db.Column(db.Boolean, nullable=False, default=False)
    rollover_value = db.Column(db.Numeric(12, 1), nullable=True)
    deviation_from_average = db.Column(db.Numeric(9, 2), nullable=True)

    is_estimated = db.Column(db.Boolean, nullable=False, default=False)
    calculation_method = db.Column(db.String(32), nullable=False, default="meter_readings")
    approval_state = db.Column(db.String(16), nullable=False, default="none", index=True)
    notes = db.Column(db.Text, nullable=True)

    calculated_by = db.Column(db.String(64), nullable=False)
    calculated_at = db.Column(db.DateTime(timezone=True), nullable=False)
    approved_by = db.Column(db.String(64), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    approval_notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    pump = db.relationship("PumpConfiguration", backref=db.backref("calculations", lazy="dynamic"))

    @property
    def state(self) -> str:
        if self.approval_state == "none":
            return "finalized"
        if self.approval_state == "pending":
            return "pending_approval"
        return self.approval_state

    def __repr__(self) -> str:
        return (
            f"<PmsCalculation id={self.id} pump_id={self.pump_id} "
            f"date={self.calculation_date} volume={self.volume_dispensed}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "pump_id": self.pump_id,
            "calculation_date": to_iso_date(self.calculation_date),
            "opening_reading": _decimal_str(self.opening_reading),
            "closing_reading": _decimal_str(self.closing_reading),
            "volume_dispensed": _decimal_str(self.volume_dispensed),
            "unit_price": _decimal_str(self.unit_price),
            "total_revenue": _decimal_str(self.total_revenue),
            "has_rollover": self.has_rollover,
            "rollover_value": _decimal_str(self.rollover_value),
            "deviation_from_average": _decimal_str(self.deviation_from_average),
            "is_estimated": self.is_estimated,
            "calculation_method": self.calculation_method,
            "approval_state": self.approval_state,
            "state": self.state,
            "notes": self.notes,
            "calculated_by": self.calculated_by,
            "calculated_at": to_utc_z(self.calculated_at),
            "approved_by": self.approved_by,
            "approved_at": to_utc_z(self.approved_at),
            "approval_notes": self.approval_notes,
        }


class PmsSalesRecord(db.Model):
    """Station-wide totals for one day, rebuilt after each station calculation."""
    __tablename__ = "pms_sales_records"
    __table_args__ = (
        db.UniqueConstraint("station_id", "record_date", name="uq_sales_records_station_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    station_id = db.Column(db.Integer, nullable=False, index=True)
    record_date = db.Column(db.Date, nullable=False)

    total_volume_dispensed = db.Column(db.Numeric(14, 1), nullable=False)
    total_revenue = db.Column(db.Numeric(16, 2), nullable=False)
    average_unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    pump_count = db.Column(db.Integer, nullable=False)
    estimated_volume = db.Column(db.Numeric(14, 1), nullable=False, default=0)
    calculation_details = db.Column(db.JSON, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "station_id": self.station_id,
            "record_date": to_iso_date(self.record_date),
            "total_volume_dispensed": _decimal_str(self.total_volume_dispensed),
            "total_revenue": _decimal_str(self.total_revenue),
            "average_unit_price": _decimal_str(self.average_unit_price),
            "pump_count": self.pump_count,
            "estimated_volume": _decimal_str(self.estimated_volume),
            "calculation_details": self.calculation_details,
            "updated_at": to_utc_z(self.updated_at),
        }
