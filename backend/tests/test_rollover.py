# Overview: Pytest coverage for meter wraparound arithmetic.

"""
Rollover Arithmetic Tests

Pure functions, no database:
1. closing >= opening is always a plain difference
2. a wrap is only a candidate until confirmed
3. confirmation values are bounds-checked against the pump capacity
"""

from decimal import Decimal

import pytest

from pmsrecon.errors import RolloverValueOutOfRange, ValidationError
from pmsrecon.services import rollover


CAPACITY = Decimal("999999.9")


class TestResolve:
    """Unambiguous days."""

    @pytest.mark.parametrize("opening,closing", [
        ("0.0", "0.0"),
        ("500000.0", "500150.0"),
        ("12.3", "12.4"),
        ("999999.8", "999999.9"),
    ])
    def test_closing_at_or_above_opening(self, opening, closing):
        result = rollover.resolve(Decimal(opening), Decimal(closing))
        assert result.volume == Decimal(closing) - Decimal(opening)
        assert result.has_rollover is False
        assert result.rollover_value is None

    def test_closing_below_opening_is_not_resolved(self):
        assert rollover.resolve(Decimal("999950.0"), Decimal("100.0")) is None

    def test_tenths_stay_exact(self):
        result = rollover.resolve(Decimal("0.1"), Decimal("0.3"))
        assert result.volume == Decimal("0.2")


class TestDetectCandidate:
    """Wrap candidates are informational only."""

    def test_candidate_volume(self):
        candidate = rollover.detect_candidate(Decimal("999950.0"), Decimal("100.0"), CAPACITY)
        assert candidate == Decimal("149.9")

    def test_no_candidate_without_decrease(self):
        assert rollover.detect_candidate(Decimal("10.0"), Decimal("20.0"), CAPACITY) is None


class TestConfirmation:
    """Manual rollover confirmation bounds."""

    def test_capacity_scenario(self):
        opening = Decimal("999950.0")
        rollover.check_bounds(CAPACITY, Decimal("100.0"), CAPACITY)
        rollover.check_against_opening(opening, CAPACITY)
        assert rollover.rollover_volume(opening, CAPACITY, Decimal("100.0")) == Decimal("149.9")

    def test_rollover_value_above_capacity(self):
        with pytest.raises(RolloverValueOutOfRange):
            rollover.check_bounds(Decimal("1000000.0"), Decimal("100.0"), CAPACITY)

    def test_rollover_value_zero(self):
        with pytest.raises(RolloverValueOutOfRange):
            rollover.check_bounds(Decimal("0"), Decimal("100.0"), CAPACITY)

    def test_rollover_value_below_opening(self):
        with pytest.raises(RolloverValueOutOfRange) as exc_info:
            rollover.check_against_opening(Decimal("999950.0"), Decimal("999000.0"))
        assert exc_info.value.field == "rollover_value"

    def test_negative_new_reading(self):
        with pytest.raises(ValidationError) as exc_info:
            rollover.check_bounds(CAPACITY, Decimal("-1.0"), CAPACITY)
        assert exc_info.value.field == "new_reading"

    def test_new_reading_above_capacity(self):
        with pytest.raises(ValidationError):
            rollover.check_bounds(CAPACITY, Decimal("1000000.0"), CAPACITY)

    def test_out_of_range_is_a_validation_error(self):
        assert issubclass(RolloverValueOutOfRange, ValidationError)
        assert RolloverValueOutOfRange.status_code == 400
