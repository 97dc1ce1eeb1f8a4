"""
Tests for range calculation.
"""

import pytest

from lp_rebalancer.core.exceptions import InvalidPriceError
from lp_rebalancer.core.tick_math import is_in_range, price_to_tick
from lp_rebalancer.strategies.range_calculator import (
    assess_risk,
    calculate_expected_fees,
    calculate_new_tick_range,
    calculate_position_health,
    calculate_range_width,
    calculate_tick_range_for_width,
    calculate_width_mismatch,
    current_sqrt_price,
    estimate_apr_improvement,
    refresh_position,
)
from lp_rebalancer.strategies.risk_profiles import RISK_PROFILES, RiskLevel

from conftest import make_unit_pool, make_unit_position, make_weth_usdc_pool


class TestNewTickRange:
    """Test volatility-sized tick ranges."""

    VOLATILITIES = [0.0, 0.001, 0.05, 0.3, 1.0, 10.0]
    SPACINGS = [1, 10, 60, 200]
    MARKETS = [(1.0, 0, 0), (2000.0, 18, 6), (1e-6, 18, 18), (35000.0, 8, 6)]

    def test_always_valid(self):
        """Ranges are ordered, on the tick grid, and bracket the price tick."""
        for price, d0, d1 in self.MARKETS:
            price_tick = price_to_tick(price, 1, d0, d1)
            for profile in RISK_PROFILES.values():
                for volatility in self.VOLATILITIES:
                    for spacing in self.SPACINGS:
                        result = calculate_new_tick_range(price, volatility, profile, d0, d1, spacing)

                        assert result.tick_lower < result.tick_upper
                        assert result.tick_lower % spacing == 0
                        assert result.tick_upper % spacing == 0
                        assert is_in_range(price_tick, result.tick_lower, result.tick_upper)
                        assert result.price_range.lower < price < result.price_range.upper

    def test_rounds_outward(self):
        """The aligned range is never narrower than requested."""
        result = calculate_tick_range_for_width(2000.0, 0.10, 18, 6, tick_spacing=60)

        assert result.price_range.lower <= 1900.0
        assert result.price_range.upper >= 2100.0
        assert result.width_percent == 0.10

    def test_width_follows_profile(self):
        profile = RISK_PROFILES[RiskLevel.MEDIUM]
        result = calculate_new_tick_range(1.0, 0.1, profile, 0, 0)

        assert result.width_percent == pytest.approx(0.3)
        assert calculate_range_width(result.price_range, 1.0) == pytest.approx(0.3, rel=1e-3)

    def test_tiny_width_is_widened_to_one_spacing(self):
        result = calculate_tick_range_for_width(1.0, 1e-9, 0, 0, tick_spacing=60)
        assert result.tick_upper - result.tick_lower >= 60

    def test_invalid_inputs(self):
        with pytest.raises(InvalidPriceError):
            calculate_tick_range_for_width(0.0, 0.1, 0, 0)
        with pytest.raises(ValueError, match="Range width must be positive"):
            calculate_tick_range_for_width(1.0, 0.0, 0, 0)


class TestWidths:
    """Test width and mismatch helpers."""

    def test_width_mismatch(self):
        assert calculate_width_mismatch(0.3, 0.2) == pytest.approx(0.5)
        assert calculate_width_mismatch(0.1, 0.2) == pytest.approx(0.5)
        assert calculate_width_mismatch(0.2, 0.2) == 0.0

    def test_width_mismatch_requires_positive_optimal(self):
        with pytest.raises(ValueError):
            calculate_width_mismatch(0.1, 0.0)


class TestPositionState:
    """Test position refresh, health and risk labels."""

    def test_refresh_derives_amounts_from_liquidity(self):
        position = make_unit_position(liquidity=10 ** 12)
        refreshed = refresh_position(position, make_unit_pool(0))

        assert refreshed.is_in_range
        assert refreshed.amount0 > 0 and refreshed.amount1 > 0
        # Centred at price 1 both sides hold the same amount
        assert refreshed.amount0 == pytest.approx(refreshed.amount1, rel=1e-6)
        assert position.amount0 == 0

    def test_refresh_out_of_range_is_single_sided(self):
        refreshed = refresh_position(make_unit_position(liquidity=10 ** 12), make_unit_pool(2000))

        assert not refreshed.is_in_range
        assert refreshed.amount0 == 0
        assert refreshed.amount1 > 0

    def test_refresh_without_liquidity_keeps_amounts(self, out_of_range_weth_position):
        refreshed = refresh_position(out_of_range_weth_position, make_weth_usdc_pool())

        assert not refreshed.is_in_range
        assert refreshed.amount0 == out_of_range_weth_position.amount0
        assert refreshed.amount1 == out_of_range_weth_position.amount1

    def test_sqrt_price_prefers_x96(self):
        pool = make_unit_pool(0)
        assert current_sqrt_price(pool) == pytest.approx(1.0)

        pool.sqrt_price_x96 = 2 ** 97
        assert current_sqrt_price(pool) == 2.0

    def test_health_of_centred_position(self):
        health = calculate_position_health(make_unit_position(), make_unit_pool(0))
        assert 95 < health <= 100

    def test_health_out_of_range_is_zero(self):
        assert calculate_position_health(make_unit_position(), make_unit_pool(5000)) == 0.0

    def test_health_drops_off_centre(self):
        centred = calculate_position_health(make_unit_position(), make_unit_pool(0))
        off_centre = calculate_position_health(make_unit_position(), make_unit_pool(900))
        assert 50 <= off_centre < centred

    def test_risk_labels(self):
        assert assess_risk(0.0) == "Low"
        assert assess_risk(0.15) == "Medium"
        assert assess_risk(0.5) == "High"


class TestEstimates:
    """Test APR and fee estimates."""

    def test_apr_improvement_below_range_uses_lower_bound(self):
        """
        The old range [2000, 3000] is measured at its lower bound.

        Both ranges span a factor of 1.0001 ** 500 in sqrt price, so the
        efficiency ratio reduces to the ratio of the sqrt prices involved.
        """
        improvement = estimate_apr_improvement(1.0, 2000, 3000, -1000, 1000)
        assert improvement == pytest.approx((1.0001 ** 1000 / 2 - 1) * 100)

    def test_apr_improvement_above_range_uses_upper_bound(self):
        b = 1.0001 ** 500
        improvement = estimate_apr_improvement(b * b, -1000, 1000, 1000, 3000)
        assert improvement == pytest.approx(((b + 1) / (2 * b * b) - 1) * 100)

    def test_apr_improvement_out_of_range_depends_on_ranges(self):
        assert estimate_apr_improvement(1.0, 2000, 3000, -1000, 1000) != pytest.approx(
            estimate_apr_improvement(1.0, 2000, 6000, -1000, 1000)
        )

    def test_apr_improvement_for_narrower_range(self):
        assert estimate_apr_improvement(1.0, -2000, 2000, -500, 500) > 0

    def test_apr_worse_for_wider_range(self):
        assert estimate_apr_improvement(1.0, -500, 500, -2000, 2000) < 0

    def test_expected_fees(self):
        pool = make_weth_usdc_pool()
        fees = calculate_expected_fees(pool, -200400, -200200, pool.liquidity // 10)
        # 5m volume * 0.05% fee * full coverage * 10% share
        assert fees == pytest.approx(250.0)

    def test_expected_fees_degenerate(self):
        pool = make_weth_usdc_pool()
        assert calculate_expected_fees(pool, 10, 10, 1) == 0.0

