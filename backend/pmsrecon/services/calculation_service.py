# Overview: Daily volume/revenue calculation, deviation review and approval.

"""
Calculation engine.

For each active pump at a station and a calendar day, turns the opening
and closing meter readings into a PmsCalculation:

1. Readings -> volume
   - both readings, closing >= opening: meter_readings
   - both readings, closing < opening, rollover already confirmed: the
     confirmed rollover value is reused with the current readings
   - both readings, closing < opening, nothing confirmed: estimated from
     the trailing average, flagged for approval
   - one reading: the other side is reconstructed from the trailing
     average (estimated)
   - no readings: NoData, no row is written
2. Revenue = volume x unit price as of the calculation date.
3. Deviation against the trailing average of non-estimated volumes.
4. Approval state: estimated rows and rows whose |deviation| exceeds the
   threshold wait for sign-off (pending); everything else is final.

Existing rows are left alone unless a recompute is forced. A recompute
locks the row and rewrites every derived field.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

from flask import current_app

from .. import repositories
from ..errors import CalculationNotFound, InvalidStateTransition, PmsError, PumpNotFound
from ..extensions import db
from ..models import MeterReading, PmsCalculation, PmsSalesRecord, PumpConfiguration
from ..time_utils import utcnow
from ..validation import (
    MONEY_QUANT,
    METER_QUANT,
    PERCENT_QUANT,
    parse_bool,
    parse_date,
    parse_decimal,
    parse_id,
    parse_notes,
    quantize,
)
from . import rollover
from .concurrency import run_with_retry
from .pricing_service import unit_price_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalculationSettings:
    deviation_window_days: int
    deviation_threshold: Decimal
    estimation_window_days: int
    default_daily_volume: Decimal

    @classmethod
    def from_config(cls, config, threshold_percent=None) -> "CalculationSettings":
        if threshold_percent is None:
            threshold_percent = config["PMS_DEVIATION_THRESHOLD_PERCENT"]
        return cls(
            deviation_window_days=int(config["PMS_DEVIATION_WINDOW_DAYS"]),
            deviation_threshold=parse_decimal(
                threshold_percent,
                "threshold_percent",
                minimum=Decimal("0"),
                exclusive_minimum=True,
                quant=PERCENT_QUANT,
            ),
            estimation_window_days=int(config["PMS_ESTIMATION_WINDOW_DAYS"]),
            default_daily_volume=parse_decimal(
                config["PMS_DEFAULT_DAILY_VOLUME"], "PMS_DEFAULT_DAILY_VOLUME", minimum=Decimal("0")
            ),
        )


def current_settings(threshold_percent=None) -> CalculationSettings:
    return CalculationSettings.from_config(current_app.config, threshold_percent)


@dataclass(frozen=True)
class Computation:
    """Derived values for one pump/day, before pricing and review."""
    opening: Decimal
    closing: Decimal
    volume: Decimal
    has_rollover: bool
    rollover_value: Decimal | None
    is_estimated: bool
    method: str
    notes: str | None = None


# =============================================================================
# Trailing history
# =============================================================================

def trailing_average(pump_id: int, before: date, days: int) -> Decimal | None:
    volumes = repositories.calculations.trailing_volumes(pump_id, before, days)
    if not volumes:
        return None
    return sum(volumes, Decimal("0")) / len(volumes)


def deviation_percent(volume: Decimal, average: Decimal | None) -> Decimal | None:
    """Signed percent difference from the average; None without a baseline."""
    if average is None or average == 0:
        return None
    return quantize((volume - average) / average * 100, PERCENT_QUANT)


def review_state(is_estimated: bool, deviation: Decimal | None, threshold: Decimal) -> str:
    if is_estimated:
        return "pending"
    if deviation is not None and abs(deviation) > threshold:
        return "pending"
    return "none"


def _estimated_daily_volume(pump_id: int, calculation_date: date, settings: CalculationSettings) -> Decimal:
    average = trailing_average(pump_id, calculation_date, settings.estimation_window_days)
    if average is None:
        return settings.default_daily_volume
    return quantize(average, METER_QUANT)


# =============================================================================
# Computation
# =============================================================================

def _confirmed_rollover(existing: PmsCalculation | None) -> Decimal | None:
    if existing is None or not existing.has_rollover or existing.rollover_value is None:
        return None
    if existing.calculation_method != "meter_readings":
        return None
    return Decimal(existing.rollover_value)


def compute(
    pump: PumpConfiguration,
    calculation_date: date,
    opening: MeterReading | None,
    closing: MeterReading | None,
    existing: PmsCalculation | None,
    settings: CalculationSettings,
) -> Computation | None:
    """Turn a pump's readings for a day into volumes. None means NoData."""
    if opening is None and closing is None:
        return None

    if opening is not None and closing is not None:
        o = Decimal(opening.meter_value)
        c = Decimal(closing.meter_value)
        inputs_estimated = bool(opening.is_estimated or closing.is_estimated)
        method = "estimated" if inputs_estimated else "meter_readings"

        resolved = rollover.resolve(o, c)
        if resolved is not None:
            return Computation(
                opening=o,
                closing=c,
                volume=resolved.volume,
                has_rollover=False,
                rollover_value=None,
                is_estimated=inputs_estimated,
                method=method,
            )

        confirmed = _confirmed_rollover(existing)
        if confirmed is not None and o <= confirmed <= Decimal(pump.meter_capacity):
            return Computation(
                opening=o,
                closing=c,
                volume=rollover.rollover_volume(o, confirmed, c),
                has_rollover=True,
                rollover_value=confirmed,
                is_estimated=inputs_estimated,
                method=method,
                notes=f"Rollover confirmed at {confirmed}",
            )

        candidate = rollover.detect_candidate(o, c, Decimal(pump.meter_capacity))
        return Computation(
            opening=o,
            closing=c,
            volume=_estimated_daily_volume(pump.id, calculation_date, settings),
            has_rollover=False,
            rollover_value=None,
            is_estimated=True,
            method="estimated",
            notes=(
                f"Closing reading {c} is below opening reading {o}; rollover not confirmed "
                f"(candidate volume {candidate} at capacity {pump.meter_capacity})"
            ),
        )

    volume = _estimated_daily_volume(pump.id, calculation_date, settings)
    if closing is None:
        o = Decimal(opening.meter_value)
        return Computation(
            opening=o,
            closing=o + volume,
            volume=volume,
            has_rollover=False,
            rollover_value=None,
            is_estimated=True,
            method="estimated",
            notes="Closing reading missing; estimated from trailing average",
        )

    c = Decimal(closing.meter_value)
    o = max(c - volume, Decimal("0"))
    return Computation(
        opening=o,
        closing=c,
        volume=c - o,
        has_rollover=False,
        rollover_value=None,
        is_estimated=True,
        method="estimated",
        notes="Opening reading missing; estimated from trailing average",
    )


def _apply(
    calc: PmsCalculation,
    comp: Computation,
    unit_price: Decimal,
    deviation: Decimal | None,
    approval_state: str,
    user_id: str,
) -> None:
    calc.opening_reading = comp.opening
    calc.closing_reading = comp.closing
    calc.volume_dispensed = quantize(comp.volume, METER_QUANT)
    calc.unit_price = unit_price
    calc.total_revenue = quantize(comp.volume * unit_price, MONEY_QUANT)
    calc.has_rollover = comp.has_rollover
    calc.rollover_value = comp.rollover_value
    calc.deviation_from_average = deviation
    calc.is_estimated = comp.is_estimated
    calc.calculation_method = comp.method
    calc.approval_state = approval_state
    calc.notes = comp.notes
    calc.calculated_by = user_id
    calc.calculated_at = utcnow()
    calc.approved_by = None
    calc.approved_at = None
    calc.approval_notes = None


def store_computation(
    pump: PumpConfiguration,
    calculation_date: date,
    comp: Computation,
    existing: PmsCalculation | None,
    *,
    user_id: str,
    settings: CalculationSettings,
) -> PmsCalculation:
    """
    Price, review and persist a computation, replacing `existing` in place.

    Caller holds the row lock on `existing` when there is one.
    """
    unit_price = unit_price_for(pump.pms_product_id, calculation_date)
    baseline = trailing_average(pump.id, calculation_date, settings.deviation_window_days)
    deviation = deviation_percent(comp.volume, baseline)
    state = review_state(comp.is_estimated, deviation, settings.deviation_threshold)

    calc = existing
    if calc is None:
        calc = PmsCalculation(pump_id=pump.id, calculation_date=calculation_date)
        _apply(calc, comp, unit_price, deviation, state, user_id)
        if not repositories.calculations.add(calc):
            # Lost an insert race: take the winner's row and overwrite it.
            calc = repositories.calculations.find(pump.id, calculation_date, for_update=True)
            _apply(calc, comp, unit_price, deviation, state, user_id)
    else:
        _apply(calc, comp, unit_price, deviation, state, user_id)

    db.session.flush()

    if state == "pending":
        logger.info(
            "Calculation for pump %s on %s awaits approval (method=%s, deviation=%s)",
            pump.id, calculation_date, comp.method, deviation,
        )
    return calc


def calculate_pump(
    pump: PumpConfiguration,
    calculation_date: date,
    *,
    user_id: str,
    force: bool = False,
    settings: CalculationSettings | None = None,
) -> tuple[PmsCalculation | None, bool]:
    """
    Calculate one pump/day.

    Returns (calculation, written). `written` is False when an existing
    row was left untouched or there was no data.
    """
    if settings is None:
        settings = current_settings()

    existing = repositories.calculations.find(pump.id, calculation_date, for_update=True)
    if existing is not None and not force:
        return existing, False

    day = repositories.readings.for_pump_day(pump.id, calculation_date)
    comp = compute(pump, calculation_date, day.get("opening"), day.get("closing"), existing, settings)
    if comp is None:
        return existing, False

    calc = store_computation(pump, calculation_date, comp, existing, user_id=user_id, settings=settings)
    return calc, True


# =============================================================================
# Station-level operations
# =============================================================================

def calculate(
    station_id,
    calculation_date,
    *,
    user_id: str,
    force_recalculate=False,
    threshold_percent=None,
) -> dict:
    """
    Calculate every active pump at a station for a day.

    A failure on one pump (e.g. no price) is reported in `errors` and does
    not stop the others.

    Raises:
        ValidationError: malformed input
        PumpNotFound: the station has no active pumps
    """
    station_id = parse_id(station_id, "station_id")
    calculation_date = parse_date(calculation_date, "calculation_date")
    force = parse_bool(force_recalculate, "force_recalculate")
    settings = current_settings(threshold_percent)

    def _op():
        pumps = repositories.pumps.list_for_station(station_id, active_only=True)
        if not pumps:
            raise PumpNotFound(f"No active pumps found for station {station_id}")

        written = []
        unchanged = []
        no_data = []
        errors = []

        for pump in pumps:
            try:
                with db.session.begin_nested():
                    calc, was_written = calculate_pump(
                        pump, calculation_date, user_id=user_id, force=force, settings=settings
                    )
            except PmsError as exc:
                logger.warning("Calculation for pump %s on %s failed: %s", pump.id, calculation_date, exc)
                errors.append({"pump_id": pump.id, "reason": exc.message, "code": exc.code})
                continue

            if calc is None:
                no_data.append(pump.id)
            elif was_written:
                written.append(calc)
            else:
                unchanged.append(calc)

        record = refresh_sales_record(station_id, calculation_date)
        calcs = written + unchanged
        return {
            "station_id": station_id,
            "calculation_date": calculation_date.isoformat(),
            "calculated_count": len(written),
            "unchanged_count": len(unchanged),
            "total_volume": str(sum((Decimal(c.volume_dispensed) for c in calcs), Decimal("0.0"))),
            "total_revenue": str(sum((Decimal(c.total_revenue) for c in calcs), Decimal("0.00"))),
            "calculations": [c.to_dict() for c in sorted(calcs, key=lambda c: c.pump_id)],
            "no_data_pump_ids": no_data,
            "errors": errors,
            "sales_record": record.to_dict() if record is not None else None,
        }

    return run_with_retry(_op)


def recalculate_pump_day(pump: PumpConfiguration, calculation_date: date, *, user_id: str) -> PmsCalculation | None:
    """Full recompute after a reading correction, then refresh station totals."""
    calc, _ = calculate_pump(pump, calculation_date, user_id=user_id, force=True)
    refresh_sales_record(pump.station_id, calculation_date)
    return calc


def refresh_sales_record(station_id: int, record_date: date) -> PmsSalesRecord | None:
    """Rebuild the station/day totals from the stored calculations."""
    rows = [
        (calc, number)
        for calc, number in repositories.calculations.for_station_day(station_id, record_date)
        if calc.approval_state != "rejected"
    ]
    record = repositories.calculations.find_sales_record(station_id, record_date)
    if not rows and record is None:
        return None

    total_volume = sum((Decimal(c.volume_dispensed) for c, _ in rows), Decimal("0.0"))
    total_revenue = sum((Decimal(c.total_revenue) for c, _ in rows), Decimal("0.00"))
    estimated_volume = sum((Decimal(c.volume_dispensed) for c, _ in rows if c.is_estimated), Decimal("0.0"))
    average_price = quantize(total_revenue / total_volume, MONEY_QUANT) if total_volume else Decimal("0.00")
    details = {
        "pump_calculations": [
            {
                "pump_id": c.pump_id,
                "pump_number": number,
                "volume": str(c.volume_dispensed),
                "revenue": str(c.total_revenue),
                "is_estimated": c.is_estimated,
            }
            for c, number in rows
        ]
    }

    values = dict(
        total_volume_dispensed=total_volume,
        total_revenue=total_revenue,
        average_unit_price=average_price,
        pump_count=len(rows),
        estimated_volume=estimated_volume,
        calculation_details=details,
    )

    if record is None:
        record = PmsSalesRecord(station_id=station_id, record_date=record_date, **values)
        if repositories.calculations.add_sales_record(record):
            return record
        record = repositories.calculations.find_sales_record(station_id, record_date)

    for key, value in values.items():
        setattr(record, key, value)
    return record


# =============================================================================
# Approval
# =============================================================================

def approve(calculation_id, approved, *, user_id: str, notes=None) -> PmsCalculation:
    """
    Record an approval decision on a pending calculation.

    Rejection keeps the row (approval_state=rejected). It does not trigger
    a recompute and does not block later calculations; a forced recompute
    replaces it once corrected readings exist.

    Raises:
        ValidationError: approved is not a boolean
        CalculationNotFound: unknown id
        InvalidStateTransition: calculation is not pending
    """
    calculation_id = parse_id(calculation_id, "calculation_id")
    approved = parse_bool(approved, "approved")
    notes = parse_notes(notes)

    def _op():
        calc = repositories.calculations.get(calculation_id, for_update=True)
        if calc is None:
            raise CalculationNotFound(f"Calculation {calculation_id} not found")
        if calc.approval_state != "pending":
            raise InvalidStateTransition(
                f"Calculation {calculation_id} is {calc.approval_state}; only pending calculations can be reviewed",
                details={"approval_state": calc.approval_state},
            )

        calc.approval_state = "approved" if approved else "rejected"
        calc.approved_by = user_id
        calc.approved_at = utcnow()
        calc.approval_notes = notes

        if not approved:
            refresh_sales_record(calc.pump.station_id, calc.calculation_date)

        logger.info("Calculation %s %s by %s", calc.id, calc.approval_state, user_id)
        return calc

    return run_with_retry(_op)


# =============================================================================
# Queries
# =============================================================================

def _with_pump_number(calc: PmsCalculation, pump_number: str) -> dict:
    return {**calc.to_dict(), "pump_number": pump_number}


def list_calculations(station_id, start_date, end_date) -> list[dict]:
    station_id = parse_id(station_id, "station_id")
    start_date = parse_date(start_date, "start_date")
    end_date = parse_date(end_date, "end_date")
    rows = repositories.calculations.list_range(station_id, start_date, end_date)
    return [_with_pump_number(calc, number) for calc, number in rows]


def list_deviations(station_id, *, threshold_percent=None, days=None, as_of=None) -> list[dict]:
    """
    Calculations from the last `days` days whose |deviation| >= threshold,
    largest deviation first.
    """
    station_id = parse_id(station_id, "station_id")
    settings = current_settings(threshold_percent)
    if days is None:
        days = settings.deviation_window_days
    days = parse_id(days, "days")
    end_date = parse_date(as_of, "as_of") if as_of is not None else utcnow().date()
    start_date = end_date - timedelta(days=days)

    flagged = []
    for calc, number in repositories.calculations.list_range(station_id, start_date, end_date):
        if calc.deviation_from_average is None:
            continue
        deviation = Decimal(calc.deviation_from_average)
        if abs(deviation) < settings.deviation_threshold:
            continue
        average = trailing_average(calc.pump_id, calc.calculation_date, settings.deviation_window_days)
        row = _with_pump_number(calc, number)
        row["average_volume"] = str(quantize(average, METER_QUANT)) if average is not None else None
        flagged.append((abs(deviation), row))

    flagged.sort(key=lambda item: item[0], reverse=True)
    return [row for _, row in flagged]
