# Overview: Manual rollover confirmation for a pump/day.

from __future__ import annotations

import logging
from decimal import Decimal

from .. import repositories
from ..errors import CalculationNotFound, PumpNotFound
from ..models import PmsCalculation
from ..validation import RolloverInput
from . import calculation_service, rollover
from .concurrency import run_with_retry

logger = logging.getLogger(__name__)


def confirm_rollover(
    pump_id,
    calculation_date,
    rollover_value,
    new_reading,
    *,
    user_id: str,
    threshold_percent=None,
) -> PmsCalculation:
    """
    Make a meter wraparound authoritative.

    volume = (rollover_value - opening) + new_reading, where opening comes
    from the day's opening reading (or the stored calculation when the
    reading is gone). The resulting calculation is meter_readings based
    with has_rollover set, and still goes through the deviation review.

    Raises:
        ValidationError / RolloverValueOutOfRange: bad values
        PumpNotFound: unknown pump
        CalculationNotFound: no opening reading or calculation to anchor on
    """
    data = RolloverInput.build(pump_id, calculation_date, rollover_value, new_reading)
    settings = calculation_service.current_settings(threshold_percent)

    def _op():
        pump = repositories.pumps.get(data.pump_id)
        if pump is None:
            raise PumpNotFound(f"Pump {data.pump_id} not found")
        capacity = Decimal(pump.meter_capacity)
        rollover.check_bounds(data.rollover_value, data.new_reading, capacity)

        existing = repositories.calculations.find(pump.id, data.calculation_date, for_update=True)
        opening_reading = repositories.readings.find(pump.id, data.calculation_date, "opening")
        if opening_reading is not None:
            opening = Decimal(opening_reading.meter_value)
        elif existing is not None:
            opening = Decimal(existing.opening_reading)
        else:
            raise CalculationNotFound(
                f"No opening reading or calculation for pump {pump.id} on {data.calculation_date.isoformat()}"
            )

        rollover.check_against_opening(opening, data.rollover_value)

        comp = calculation_service.Computation(
            opening=opening,
            closing=data.new_reading,
            volume=rollover.rollover_volume(opening, data.rollover_value, data.new_reading),
            has_rollover=True,
            rollover_value=data.rollover_value,
            is_estimated=False,
            method="meter_readings",
            notes=f"Rollover confirmed at {data.rollover_value}",
        )
        calc = calculation_service.store_computation(
            pump, data.calculation_date, comp, existing, user_id=user_id, settings=settings
        )
        calculation_service.refresh_sales_record(pump.station_id, data.calculation_date)

        logger.info(
            "Rollover confirmed for pump %s on %s at %s (volume %s)",
            pump.id, data.calculation_date, data.rollover_value, calc.volume_dispensed,
        )
        return calc

    return run_with_retry(_op)
