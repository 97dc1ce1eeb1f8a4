"""
Tests for volatility estimation and risk profiles.
"""

import math
from datetime import datetime, timedelta

import numpy as np
import pytest

from lp_rebalancer.core.exceptions import InsufficientDataError, InvalidPriceError
from lp_rebalancer.models.defi import PricePoint, TokenMarketData
from lp_rebalancer.strategies.risk_profiles import (
    RISK_PROFILES,
    RiskLevel,
    VolatilityMethod,
    get_available_risk_profiles,
    get_risk_profile,
)
from lp_rebalancer.strategies.volatility import (
    calculate_pair_price_series,
    calculate_volatility,
    get_volatility_adjusted_range,
)

START = datetime(2024, 1, 1)


def series(prices):
    return [PricePoint(timestamp=START + timedelta(hours=i), price=p) for i, p in enumerate(prices)]


class TestRiskProfiles:
    """Test the risk profile registry."""

    def test_all_profiles_validate(self):
        for profile in RISK_PROFILES.values():
            profile.validate()

    def test_lookup_by_name(self):
        assert get_risk_profile("low").name == RiskLevel.LOW
        assert get_risk_profile(" HIGH ").name == RiskLevel.HIGH
        assert get_risk_profile(RiskLevel.MEDIUM).name == RiskLevel.MEDIUM

    def test_unknown_profile_raises(self):
        with pytest.raises(ValueError, match="Unknown risk profile"):
            get_risk_profile("reckless")

    def test_available_in_ascending_order(self):
        assert get_available_risk_profiles() == ["low", "medium", "high"]

    def test_higher_risk_is_more_tolerant(self):
        low, medium, high = (RISK_PROFILES[level] for level in RiskLevel)

        assert low.rebalance_threshold < medium.rebalance_threshold < high.rebalance_threshold
        assert low.default_range_width < medium.default_range_width < high.default_range_width
        assert (
            low.min_rebalance_interval_seconds
            > medium.min_rebalance_interval_seconds
            > high.min_rebalance_interval_seconds
        )


class TestCalculateVolatility:
    """Test the volatility estimators."""

    @pytest.mark.parametrize("method", list(VolatilityMethod))
    def test_single_point_is_insufficient(self, method):
        with pytest.raises(InsufficientDataError):
            calculate_volatility(series([100.0]), method)

    def test_empty_series_is_insufficient(self):
        with pytest.raises(InsufficientDataError):
            calculate_volatility([])

    @pytest.mark.parametrize("method", list(VolatilityMethod))
    def test_two_points_give_absolute_return(self, method):
        """With a single return every estimator reduces to its magnitude."""
        metrics = calculate_volatility(series([100.0, 110.0]), method)

        assert math.isfinite(metrics.value)
        assert metrics.value >= 0
        assert metrics.value == pytest.approx(abs(math.log(1.1)))
        assert metrics.sample_size == 2
        assert metrics.method == method

    def test_standard_is_sample_std_of_log_returns(self):
        prices = [100.0, 102.0, 99.0, 101.0, 105.0]
        expected = np.std(np.diff(np.log(prices)), ddof=1)

        assert calculate_volatility(series(prices), "standard").value == pytest.approx(expected)

    def test_ewma_recursion(self):
        prices = [100.0, 101.0, 100.0]
        r1, r2 = math.log(1.01), math.log(100 / 101)
        expected = math.sqrt(0.94 * r1 ** 2 + 0.06 * r2 ** 2)

        assert calculate_volatility(series(prices), VolatilityMethod.EWMA).value == pytest.approx(expected)

    def test_garch_recursion(self):
        prices = [100.0, 101.0, 100.0, 103.0]
        returns = np.diff(np.log(prices))
        alpha, beta = 0.10, 0.85
        omega = (1 - alpha - beta) * np.mean(returns ** 2)
        variance = np.var(returns, ddof=1)
        for r in returns:
            variance = omega + alpha * r ** 2 + beta * variance

        metrics = calculate_volatility(series(prices), VolatilityMethod.GARCH)
        assert metrics.value == pytest.approx(math.sqrt(variance))

    def test_garch_rejects_non_stationary_parameters(self):
        with pytest.raises(ValueError, match="alpha \\+ beta"):
            calculate_volatility(series([1.0, 1.1, 1.2]), "garch", garch_alpha=0.5, garch_beta=0.5)

    def test_constant_prices_have_zero_volatility(self):
        for method in VolatilityMethod:
            assert calculate_volatility(series([5.0] * 10), method).value == pytest.approx(0.0)

    def test_order_independent(self):
        points = series([100.0, 104.0, 98.0, 101.0])
        shuffled = [points[2], points[0], points[3], points[1]]

        assert calculate_volatility(shuffled).value == pytest.approx(calculate_volatility(points).value)

    def test_non_positive_price_raises(self):
        with pytest.raises(InvalidPriceError):
            calculate_volatility(series([100.0, 0.0, 101.0]))


class TestHorizonScaling:
    """Test scaling per-period volatility to a horizon."""

    def test_period_is_median_spacing(self):
        points = series([100.0, 101.0, 100.0, 102.0])
        points[-1] = PricePoint(points[-1].timestamp + timedelta(hours=5), 102.0)

        assert calculate_volatility(points).period_seconds == 3600.0

    def test_scaled_by_square_root_of_periods(self):
        metrics = calculate_volatility(series([100.0, 102.0, 99.0, 101.0]))

        assert metrics.scaled_to(24) == pytest.approx(metrics.value * math.sqrt(24))
        assert metrics.to_dict()["period_seconds"] == 3600.0

    def test_horizon_shorter_than_period_is_not_scaled(self):
        metrics = calculate_volatility(series([100.0, 102.0, 99.0]))

        assert metrics.scaled_to(0.25) == metrics.value

    def test_identical_timestamps_are_not_scaled(self):
        points = [PricePoint(START, 100.0), PricePoint(START, 110.0)]
        metrics = calculate_volatility(points)

        assert metrics.period_seconds is None
        assert metrics.scaled_to(168) == metrics.value

    @pytest.mark.parametrize("level", [RiskLevel.LOW, RiskLevel.MEDIUM])
    def test_hourly_swings_size_width_between_bounds(self, level):
        """A 1% hourly swing lands between the profile's width bounds once scaled."""
        profile = RISK_PROFILES[level]
        prices = series([1.01 if i % 2 else 1.0 for i in range(profile.volatility_lookback_hours + 1)])
        metrics = calculate_volatility(prices, profile.volatility_method)

        width = get_volatility_adjusted_range(
            metrics.scaled_to(profile.volatility_lookback_hours), profile
        ).width_percent

        assert get_volatility_adjusted_range(metrics.value, profile).width_percent == profile.min_range_width
        assert profile.min_range_width < width < profile.max_range_width


class TestPairPriceSeries:
    """Test alignment of two token histories."""

    def test_token_without_history_is_constant(self):
        weth = TokenMarketData("WETH", "0xweth", 18, 2100.0, series([2000.0, 2100.0]))
        usdc = TokenMarketData("USDC", "0xusdc", 6, 1.0)

        pair = calculate_pair_price_series(weth, usdc)
        assert [point.price for point in pair] == pytest.approx([2000.0, 2100.0])

    def test_inner_join_on_timestamps(self):
        token0 = TokenMarketData("A", "0xa", 18, 4.0, series([2.0, 4.0, 8.0]))
        token1 = TokenMarketData("B", "0xb", 18, 2.0, series([1.0, 2.0]))

        pair = calculate_pair_price_series(token0, token1)
        assert [point.price for point in pair] == pytest.approx([2.0, 2.0])
        assert pair[0].timestamp == START

    def test_no_history(self):
        token0 = TokenMarketData("A", "0xa", 18, 4.0)
        token1 = TokenMarketData("B", "0xb", 18, 2.0)

        assert calculate_pair_price_series(token0, token1) == []


class TestVolatilityAdjustedRange:
    """Test mapping of volatility to range width."""

    VOLATILITIES = [0.0, 0.001, 0.01, 0.05, 0.1, 0.2, 0.5, 1.0, 5.0]

    def test_non_decreasing_in_volatility(self):
        for profile in RISK_PROFILES.values():
            widths = [
                get_volatility_adjusted_range(v, profile).width_percent for v in self.VOLATILITIES
            ]
            assert widths == sorted(widths)

    def test_non_decreasing_in_risk_level(self):
        for volatility in self.VOLATILITIES:
            widths = [
                get_volatility_adjusted_range(volatility, RISK_PROFILES[level]).width_percent
                for level in RiskLevel
            ]
            assert widths == sorted(widths)

    def test_clamped_to_profile_bounds(self):
        profile = RISK_PROFILES[RiskLevel.MEDIUM]

        assert get_volatility_adjusted_range(0.0, profile).width_percent == profile.min_range_width
        assert get_volatility_adjusted_range(10.0, profile).width_percent == profile.max_range_width
        assert get_volatility_adjusted_range(0.1, profile).width_percent == pytest.approx(0.3)

    def test_negative_volatility_raises(self):
        with pytest.raises(ValueError, match="Volatility cannot be negative"):
            get_volatility_adjusted_range(-0.01, RISK_PROFILES[RiskLevel.LOW])
