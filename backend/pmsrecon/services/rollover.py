# Overview: Meter wraparound arithmetic. Pure functions, no storage access.

"""
A pump meter counts up to its capacity and wraps to zero. For one day:

- closing >= opening: dispensed = closing - opening, no rollover.
- closing <  opening: ambiguous. Either the meter wrapped or a reading is
  wrong. Nothing here assumes a wrap; detect_candidate only reports what
  the volume would be if it did. A wrap becomes authoritative when an
  operator confirms the value the meter rolled over at.

All arithmetic is Decimal so tenths of a litre stay exact.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..errors import RolloverValueOutOfRange, ValidationError


@dataclass(frozen=True)
class VolumeResult:
    volume: Decimal
    has_rollover: bool
    rollover_value: Decimal | None = None


def resolve(opening: Decimal, closing: Decimal) -> VolumeResult | None:
    """Volume for an unambiguous day, or None when closing < opening."""
    if closing >= opening:
        return VolumeResult(volume=closing - opening, has_rollover=False)
    return None


def detect_candidate(opening: Decimal, closing: Decimal, capacity: Decimal) -> Decimal | None:
    """
    Volume assuming the meter wrapped at `capacity`.

    Informational only (UI hints, estimation notes); never persisted as a
    meter_readings result. None when there is nothing to explain.
    """
    if closing >= opening:
        return None
    return (capacity - opening) + closing


def rollover_volume(opening: Decimal, rollover_value: Decimal, new_reading: Decimal) -> Decimal:
    return (rollover_value - opening) + new_reading


def check_bounds(rollover_value: Decimal, new_reading: Decimal, capacity: Decimal) -> None:
    """
    Capacity preconditions for a manual rollover confirmation. These hold
    whatever the day's readings are.

    Raises:
        RolloverValueOutOfRange: rollover_value outside (0, capacity]
        ValidationError: new_reading negative or above capacity
    """
    if rollover_value <= 0 or rollover_value > capacity:
        raise RolloverValueOutOfRange(
            f"Rollover value must be greater than 0 and at most the pump capacity of {capacity}",
            field="rollover_value",
            details={"meter_capacity": str(capacity)},
        )
    if new_reading < 0:
        raise ValidationError("new_reading must be >= 0", field="new_reading")
    if new_reading > capacity:
        raise ValidationError(
            f"new_reading exceeds pump capacity of {capacity}",
            field="new_reading",
        )


def check_against_opening(opening: Decimal, rollover_value: Decimal) -> None:
    """Raises RolloverValueOutOfRange when the wrap point is below the opening reading."""
    if rollover_value < opening:
        raise RolloverValueOutOfRange(
            f"Rollover value {rollover_value} is below the opening reading {opening}",
            field="rollover_value",
            details={"opening_reading": str(opening)},
        )

