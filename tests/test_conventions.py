"""
Unit tests for conventions and exceptions modules.
"""

import numpy as np
import pytest

from pricinglib.conventions import (
    CompoundingConvention,
    Frequency,
    NumericalSettings,
    OptionType,
    convert_rate,
)
from pricinglib.exceptions import ConvergenceError, PricingError, ValidationError


class TestFrequency:
    """Tests for coupon frequency parsing."""

    def test_from_value(self):
        """Test parsing integers into frequencies."""
        assert Frequency.from_value(2) is Frequency.SEMI_ANNUAL
        assert Frequency.from_value("12") is Frequency.MONTHLY
        assert Frequency.from_value(Frequency.ANNUAL) is Frequency.ANNUAL

    def test_invalid_frequency(self):
        """Test unsupported frequency raises ValidationError."""
        with pytest.raises(ValidationError) as exc:
            Frequency.from_value(3)
        assert exc.value.field == "frequency"
        assert exc.value.value == 3


class TestCompounding:
    """Tests for rate conversion."""

    def test_continuous_to_annual(self):
        """Test continuous to annual conversion."""
        r = convert_rate(0.05, CompoundingConvention.CONTINUOUS, CompoundingConvention.ANNUAL)
        assert abs(r - (np.exp(0.05) - 1)) < 1e-12

    def test_semi_annual_roundtrip(self):
        """Test conversion through continuous and back."""
        cont = convert_rate(0.06, CompoundingConvention.SEMI_ANNUAL, CompoundingConvention.CONTINUOUS)
        back = convert_rate(cont, CompoundingConvention.CONTINUOUS, CompoundingConvention.SEMI_ANNUAL)
        assert abs(cont - 2 * np.log(1.03)) < 1e-12
        assert abs(back - 0.06) < 1e-12

    def test_simple_depends_on_horizon(self):
        """Test simple rates use the horizon."""
        r = convert_rate(0.05, CompoundingConvention.CONTINUOUS, CompoundingConvention.SIMPLE, 0.5)
        assert abs(r - (np.exp(0.025) - 1) / 0.5) < 1e-12

    def test_from_frequency(self):
        """Test periodic compounding from coupon frequency."""
        assert CompoundingConvention.from_frequency(4) is CompoundingConvention.QUARTERLY


class TestOptionType:
    """Tests for option type parsing."""

    def test_from_string(self):
        assert OptionType.from_string(" Call ") is OptionType.CALL
        assert OptionType.from_string("put").sign == -1

    def test_unknown(self):
        with pytest.raises(ValidationError):
            OptionType.from_string("straddle")


class TestNumericalSettings:
    """Tests for numerical settings presets."""

    def test_defaults(self):
        """Test default constants."""
        s = NumericalSettings.default()
        assert s.ytm_tolerance == 1e-8
        assert s.ytm_max_iterations == 100
        assert s.binomial_steps == 200
        assert s.spot_bump_pct == 0.01
        assert s.vol_bump == 1e-4
        assert abs(s.time_bump - 1 / 252) < 1e-15

    def test_presets(self):
        """Test fast and precise presets."""
        assert NumericalSettings.fast().binomial_steps < NumericalSettings.default().binomial_steps
        assert NumericalSettings.precise().ytm_tolerance < NumericalSettings.default().ytm_tolerance

    def test_effective_shift_bounds(self):
        """Test effective-duration shift must lie in 1-10bp."""
        with pytest.raises(ValidationError):
            NumericalSettings(effective_shift_bp=25.0)

    def test_to_dict(self):
        d = NumericalSettings().to_dict()
        assert d["strategy_grid_points"] == 2001


class TestExceptions:
    """Tests for the exception hierarchy."""

    def test_validation_error_is_value_error(self):
        err = ValidationError("must be positive", field="strike", value=-1)
        assert isinstance(err, ValueError)
        assert isinstance(err, PricingError)
        assert "strike" in str(err)

    def test_convergence_error_message(self):
        err = ConvergenceError("ytm", "no root", iterations=100)
        assert isinstance(err, RuntimeError)
        assert err.method == "ytm"
        assert "after 100 iterations" in str(err)
