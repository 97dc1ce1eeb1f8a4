"""
Tests for tick and price conversions.
"""

import math

import pytest

from lp_rebalancer.core.exceptions import InvalidPriceError, InvalidRangeError
from lp_rebalancer.core.tick_math import (
    MAX_TICK,
    MIN_TICK,
    calculate_price_deviation,
    calculate_price_range,
    calculate_utilization_rate,
    is_in_range,
    nearest_usable_tick,
    price_to_tick,
    tick_to_price,
)

SAMPLE_TICKS = [-500000, -200311, -1001, -1, 0, 1, 7, 12345, 400000]


class TestTickToPrice:
    """Test tick to price conversion."""

    def test_tick_zero_is_unit_price(self):
        assert tick_to_price(0, 0, 0) == 1.0

    def test_decimals_scaling(self):
        """Token decimals shift the price by powers of ten."""
        assert tick_to_price(0, 18, 6) == pytest.approx(1e12)
        assert tick_to_price(0, 6, 18) == pytest.approx(1e-12)

    def test_known_value(self):
        assert tick_to_price(1000, 0, 0) == pytest.approx(1.0001 ** 1000)

    @pytest.mark.parametrize("decimals", [(0, 0), (18, 6), (6, 18)])
    def test_strictly_increasing(self, decimals):
        """Price is strictly increasing in tick."""
        d0, d1 = decimals
        for tick in SAMPLE_TICKS:
            assert tick_to_price(tick + 1, d0, d1) > tick_to_price(tick, d0, d1)

    def test_extreme_ticks_are_finite(self):
        assert math.isfinite(tick_to_price(MAX_TICK, 0, 0))
        assert tick_to_price(MIN_TICK, 0, 0) > 0


class TestPriceToTick:
    """Test price to tick conversion."""

    def test_round_trip_without_decimals(self):
        """price_to_tick inverts tick_to_price within one tick."""
        for tick in SAMPLE_TICKS:
            assert abs(price_to_tick(tick_to_price(tick, 0, 0), 1) - tick) <= 1

    @pytest.mark.parametrize("decimals", [(18, 6), (6, 18), (8, 8)])
    def test_round_trip_with_decimals(self, decimals):
        d0, d1 = decimals
        for tick in SAMPLE_TICKS:
            price = tick_to_price(tick, d0, d1)
            assert abs(price_to_tick(price, 1, d0, d1) - tick) <= 1

    def test_result_is_multiple_of_spacing(self):
        for spacing in (1, 10, 60, 200):
            tick = price_to_tick(1.2345, spacing)
            assert tick % spacing == 0

    def test_rounds_to_nearest_spacing(self):
        # 1.0001 ** 29 rounds down to 0 and 1.0001 ** 31 rounds up to 60
        assert price_to_tick(1.0001 ** 29, 60) == 0
        assert price_to_tick(1.0001 ** 31, 60) == 60

    @pytest.mark.parametrize("price", [0, -1.0, -1e-18])
    def test_non_positive_price_raises(self, price):
        with pytest.raises(InvalidPriceError):
            price_to_tick(price, 1)

    def test_invalid_spacing_raises(self):
        with pytest.raises(ValueError, match="Tick spacing must be positive"):
            price_to_tick(1.0, 0)


class TestPriceRange:
    """Test tick range to price range conversion."""

    def test_bounds_are_ordered(self):
        price_range = calculate_price_range(-1000, 1000, 0, 0)

        assert price_range.lower < price_range.upper
        assert price_range.lower == pytest.approx(1.0001 ** -1000)
        assert price_range.upper == pytest.approx(1.0001 ** 1000)

    def test_with_decimals(self):
        price_range = calculate_price_range(-201000, -199020, 18, 6)
        assert price_range.lower < 2000 < price_range.upper

    @pytest.mark.parametrize("ticks", [(10, 10), (10, -10)])
    def test_malformed_range_raises(self, ticks):
        with pytest.raises(InvalidRangeError):
            calculate_price_range(ticks[0], ticks[1], 0, 0)


class TestIsInRange:
    """Test the inclusive range check."""

    def test_bounds_are_inclusive(self):
        assert is_in_range(-1000, -1000, 1000)
        assert is_in_range(1000, -1000, 1000)
        assert is_in_range(0, -1000, 1000)

    def test_just_outside(self):
        assert not is_in_range(-1001, -1000, 1000)
        assert not is_in_range(1001, -1000, 1000)


class TestUtilizationRate:
    """Test range utilization."""

    def test_midpoint(self):
        assert calculate_utilization_rate(0, -100, 100) == pytest.approx(0.5)

    def test_degenerate_range(self):
        assert calculate_utilization_rate(5, 5, 5) == 0.0

    def test_clamped(self):
        assert calculate_utilization_rate(-500, -100, 100) == 0.0
        assert calculate_utilization_rate(500, -100, 100) == 1.0


class TestPriceDeviation:
    """Test price deviation from a range."""

    @pytest.mark.parametrize("price", [0.9, 1.0, 1.05, 1.1])
    def test_zero_inside_range(self, price):
        assert calculate_price_deviation(price, 0.9, 1.1) == 0.0

    def test_below_range(self):
        assert calculate_price_deviation(0.8, 0.9, 1.1) == pytest.approx(0.5)

    def test_above_range(self):
        assert calculate_price_deviation(1.5, 0.9, 1.1) == pytest.approx(2.0)

    def test_malformed_range_raises(self):
        with pytest.raises(InvalidRangeError):
            calculate_price_deviation(2.0, 1.1, 0.9)


class TestNearestUsableTick:
    """Test alignment to the tick grid."""

    def test_floor_and_ceil(self):
        assert nearest_usable_tick(-35, 60) == -60
        assert nearest_usable_tick(-35, 60, round_up=True) == 0
        assert nearest_usable_tick(61, 60, round_up=True) == 120

    def test_clamped_to_protocol_bounds(self):
        assert nearest_usable_tick(MAX_TICK + 100, 60) == 887220
        assert nearest_usable_tick(MIN_TICK - 100, 60, round_up=True) == -887220
