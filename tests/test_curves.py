"""
Unit tests for curves module.
"""

import numpy as np
import pytest

from pricinglib.conventions import CompoundingConvention
from pricinglib.curves import (
    LinearZeroInterpolator,
    LogLinearInterpolator,
    YieldCurve,
    create_flat_curve,
    create_interpolator,
)
from pricinglib.exceptions import ValidationError


@pytest.fixture
def flat_curve():
    """Flat 5% continuously compounded curve."""
    return create_flat_curve(0.05)


@pytest.fixture
def upward_curve():
    """Upward sloping curve from zero rates."""
    return YieldCurve.from_zero_rates([0.5, 1, 2, 5, 10], [0.03, 0.035, 0.04, 0.045, 0.05])


class TestYieldCurveConstruction:
    """Tests for curve validation."""

    def test_unsorted_maturities(self):
        """Test non-increasing maturities raise ValidationError."""
        with pytest.raises(ValidationError):
            YieldCurve([1.0, 0.5], [0.95, 0.97])

    def test_non_positive_discount_factor(self):
        """Test non-positive discount factors raise ValidationError."""
        with pytest.raises(ValidationError):
            YieldCurve([1.0, 2.0], [0.95, 0.0])

    def test_length_mismatch(self):
        with pytest.raises(ValidationError):
            YieldCurve([1.0, 2.0], [0.95])

    def test_empty_curve(self):
        with pytest.raises(ValidationError):
            YieldCurve([], [])


class TestYieldCurve:
    """Tests for discount factors and rates."""

    def test_df_at_zero(self, flat_curve):
        """Test DF(0) = 1."""
        assert abs(flat_curve.discount_factor(0.0) - 1.0) < 1e-12

    def test_flat_curve_df(self, flat_curve):
        """Test discount factors on a flat curve."""
        for t in [0.1, 1.0, 3.7, 10.0, 30.0]:
            assert abs(flat_curve.discount_factor(t) - np.exp(-0.05 * t)) < 1e-12

    def test_array_input(self, flat_curve):
        t = np.array([1.0, 2.0])
        np.testing.assert_allclose(flat_curve.discount_factor(t), np.exp(-0.05 * t), rtol=1e-12)

    def test_flat_zero_rate(self, flat_curve):
        """Test zero rates on a flat curve in several conventions."""
        assert abs(flat_curve.zero_rate(2.0) - 0.05) < 1e-12
        annual = flat_curve.zero_rate(2.0, CompoundingConvention.ANNUAL)
        assert abs(annual - (np.exp(0.05) - 1)) < 1e-12

    def test_forward_rate(self, flat_curve):
        """Test simple forward rate between two dates."""
        fwd = flat_curve.forward_rate(1.0, 2.0)
        assert abs(fwd - (np.exp(0.05) - 1)) < 1e-12

    def test_forward_rate_order(self, flat_curve):
        with pytest.raises(ValidationError):
            flat_curve.forward_rate(2.0, 1.0)

    def test_log_linear_interpolation(self, upward_curve):
        """Test DFs are geometric means between knots."""
        df1 = upward_curve.discount_factor(1.0)
        df2 = upward_curve.discount_factor(2.0)
        assert abs(upward_curve.discount_factor(1.5) - np.sqrt(df1 * df2)) < 1e-12

    def test_discount_factors_decrease(self, upward_curve):
        t = np.linspace(0.01, 40, 400)
        dfs = upward_curve.discount_factor(t)
        assert np.all(np.diff(dfs) < 0)

    def test_flat_forward_extrapolation(self, upward_curve):
        """Test extrapolation continues at the last segment forward."""
        last_fwd = upward_curve.forward_rate(5.0, 10.0, CompoundingConvention.CONTINUOUS)
        df10 = upward_curve.discount_factor(10.0)
        assert abs(upward_curve.discount_factor(15.0) - df10 * np.exp(-last_fwd * 5.0)) < 1e-12
        assert abs(upward_curve.instantaneous_forward(20.0) - last_fwd) < 1e-12

    def test_spot_forward_consistency(self, upward_curve):
        """Test spot(t) * t equals the integral of instantaneous forwards."""
        t = 7.0
        grid = np.linspace(0.0, t, 20001)
        f = upward_curve.instantaneous_forward(grid)
        trapezoid = getattr(np, "trapezoid", None) or np.trapz
        integral = trapezoid(f, grid)
        assert abs(upward_curve.zero_rate(t) * t - integral) < 1e-4

    def test_points(self, flat_curve):
        """Test curve snapshots."""
        pts = flat_curve.points([1.0, 5.0])
        assert len(pts) == 2
        assert abs(pts[1].spot_rate - 0.05) < 1e-12
        assert abs(pts[1].forward_rate - 0.05) < 1e-12
        assert pts[0].discount_factor > pts[1].discount_factor
        assert set(pts[0].to_dict()) == {"maturity", "spot_rate", "forward_rate", "discount_factor"}


class TestCurveBumps:
    """Tests for curve shifts."""

    def test_parallel_shift(self, flat_curve):
        shifted = flat_curve.shift_parallel(100)
        assert abs(shifted.zero_rate(5.0) - 0.06) < 1e-12

    def test_node_bump_is_local(self, upward_curve):
        bumped = upward_curve.bump_node(2, 10)
        assert abs(bumped.zero_rate(2.0) - upward_curve.zero_rate(2.0) - 0.001) < 1e-12
        assert abs(bumped.zero_rate(10.0) - upward_curve.zero_rate(10.0)) < 1e-12

    def test_invalid_node(self, flat_curve):
        with pytest.raises(IndexError):
            flat_curve.bump_node(99, 1)


class TestInterpolators:
    """Tests for interpolators."""

    def test_factory(self):
        assert isinstance(create_interpolator("log_linear"), LogLinearInterpolator)
        assert isinstance(create_interpolator("linear_zero"), LinearZeroInterpolator)
        with pytest.raises(ValueError):
            create_interpolator("spline")

    def test_linear_zero_curve(self):
        """Test linear-in-zero interpolation hits knots and interpolates zeros."""
        curve = YieldCurve.from_zero_rates([1, 2], [0.02, 0.04], interpolation_method="linear_zero")
        assert abs(curve.zero_rate(1.0) - 0.02) < 1e-12
        assert abs(curve.zero_rate(1.5) - 0.03) < 1e-12
