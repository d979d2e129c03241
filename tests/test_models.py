"""
Unit tests for stochastic volatility and jump models.
"""

import numpy as np
import pytest

from pricinglib.exceptions import ModelFallbackWarning, NumericalInstabilityWarning, ValidationError
from pricinglib.options import (
    OptionTerms,
    PricingModel,
    black_scholes_greeks,
    black_scholes_price,
    heston_price,
    merton_price,
    price_option,
)
from pricinglib.options.heston import check_feller
from pricinglib.vol import (
    HestonParams,
    JumpDiffusionParams,
    MonteCarloConfig,
    SabrParams,
    hagan_black_vol,
    sabr_implied_vol,
)


@pytest.fixture
def heston():
    return HestonParams(v0=0.04, kappa=2.0, theta=0.04, sigma=0.3, rho=-0.7)


@pytest.fixture
def terms():
    return OptionTerms(100, 100, 1.0, 0.05, 0.01, 0.2)


class TestHeston:
    """Tests for the Heston Fourier pricer."""

    def test_params_validation(self):
        with pytest.raises(ValidationError):
            HestonParams(v0=-0.01, kappa=2.0, theta=0.04, sigma=0.3, rho=0.0)
        with pytest.raises(ValidationError):
            HestonParams(v0=0.04, kappa=2.0, theta=0.04, sigma=0.3, rho=-1.5)

    def test_small_vol_of_vol_approaches_black_scholes(self):
        params = HestonParams(v0=0.04, kappa=2.0, theta=0.04, sigma=0.01, rho=0.0)
        price = heston_price(100, 100, 1.0, 0.05, 0.0, params, True)
        assert abs(price - black_scholes_price(100, 100, 1.0, 0.05, 0.0, 0.2, True)) < 0.02

    def test_put_call_parity(self, heston):
        S, K, T, r, q = 100, 90, 0.5, 0.04, 0.02
        call = heston_price(S, K, T, r, q, heston, True)
        put = heston_price(S, K, T, r, q, heston, False)
        assert abs(call - put - (S * np.exp(-q * T) - K * np.exp(-r * T))) < 1e-8

    def test_negative_correlation_skew(self, heston):
        """Test rho < 0 makes low strikes richer in implied vol terms."""
        T = 1.0
        low = heston_price(100, 80, T, 0.0, 0.0, heston, False)
        high = heston_price(100, 120, T, 0.0, 0.0, heston, True)
        flat_low = black_scholes_price(100, 80, T, 0.0, 0.0, 0.2, False)
        flat_high = black_scholes_price(100, 120, T, 0.0, 0.0, 0.2, True)
        assert low > flat_low
        assert high < flat_high

    def test_engine_greeks(self, terms, heston):
        result = price_option(terms, PricingModel.HESTON, model_params=heston)
        assert result.model_used is PricingModel.HESTON
        assert 0 < result.greeks.delta < 1
        assert result.greeks.gamma > 0
        assert result.greeks.vega > 0

    def test_feller_violation_warns(self, terms):
        params = HestonParams(v0=0.04, kappa=0.5, theta=0.04, sigma=1.0, rho=-0.5)
        assert not params.feller_satisfied
        with pytest.warns(NumericalInstabilityWarning):
            assert not check_feller(params)
        with pytest.warns(NumericalInstabilityWarning):
            result = price_option(terms, PricingModel.HESTON, model_params=params,
                                  compute_greeks=False)
        assert any("Feller" in w for w in result.warnings)
        assert result.fair_value > 0

    def test_monte_carlo_matches_fourier(self, terms, heston):
        """Test Heston paths reproduce the semi-analytic price."""
        european = price_option(terms, PricingModel.HESTON, model_params=heston, compute_greeks=False)
        config = MonteCarloConfig(path_count=20_000, time_steps=50, seed=17)
        with pytest.warns(ModelFallbackWarning):
            american = price_option(OptionTerms(100, 100, 1.0, 0.05, 0.01, 0.2, style="american"),
                                    PricingModel.HESTON, model_params=heston, mc_config=config,
                                    compute_greeks=False)
        assert american.model_used is PricingModel.MONTE_CARLO
        # Early exercise of a call with q > 0 is worth very little
        assert abs(american.fair_value - european.fair_value) < 4 * american.standard_error + 0.1


class TestSabr:
    """Tests for SABR pricing."""

    def test_params_validation(self):
        with pytest.raises(ValidationError):
            SabrParams(alpha=0.2, beta=1.5, nu=0.3, rho=0.0)
        with pytest.raises(ValidationError):
            SabrParams(alpha=0.2, beta=0.5, nu=0.3, rho=1.0)

    def test_lognormal_limit(self):
        """Test beta=1 with negligible vol-of-vol collapses to Black-Scholes."""
        params = SabrParams(alpha=0.25, beta=1.0, nu=1e-4, rho=0.0)
        terms = OptionTerms(100, 105, 0.5, 0.03, 0.01, 0.2)
        result = price_option(terms, PricingModel.SABR, model_params=params)
        bs = black_scholes_price(100, 105, 0.5, 0.03, 0.01, 0.25, True)
        assert abs(result.fair_value - bs) < 1e-4
        vega = black_scholes_greeks(100, 105, 0.5, 0.03, 0.01, 0.25, True).vega
        assert abs(result.greeks.vega - vega) / vega < 1e-2

    def test_atm_continuity(self):
        """Test the ATM branch agrees with nearby strikes."""
        atm = hagan_black_vol(100, 100, 1.0, 2.0, 0.5, -0.3, 0.4)
        near = hagan_black_vol(100, 100.001, 1.0, 2.0, 0.5, -0.3, 0.4)
        assert abs(atm - near) < 1e-4

    def test_skew(self):
        params = SabrParams(alpha=2.0, beta=0.5, nu=0.4, rho=-0.3)
        assert sabr_implied_vol(100, 80, 1.0, params) > sabr_implied_vol(100, 120, 1.0, params)

    def test_non_positive_forward(self):
        with pytest.raises(ValidationError):
            hagan_black_vol(-1.0, 100, 1.0, 0.2, 0.5, 0.0, 0.3)

    def test_round_trip_dict(self):
        params = SabrParams(alpha=0.2, beta=0.5, nu=0.3, rho=-0.2, shift=0.01)
        assert SabrParams.from_dict(params.to_dict()) == params


class TestJumpDiffusion:
    """Tests for the Merton series."""

    def test_no_jumps_is_black_scholes(self):
        params = JumpDiffusionParams(intensity=0.0, jump_mean=-0.1, jump_vol=0.2)
        price = merton_price(100, 95, 1.0, 0.05, 0.01, 0.2, params, True)
        assert abs(price - black_scholes_price(100, 95, 1.0, 0.05, 0.01, 0.2, True)) < 1e-12

    def test_put_call_parity(self):
        params = JumpDiffusionParams(intensity=0.8, jump_mean=-0.05, jump_vol=0.15)
        S, K, T, r, q = 100, 105, 0.75, 0.04, 0.01
        call = merton_price(S, K, T, r, q, 0.2, params, True)
        put = merton_price(S, K, T, r, q, 0.2, params, False)
        assert abs(call - put - (S * np.exp(-q * T) - K * np.exp(-r * T))) < 1e-8

    def test_jumps_fatten_tails(self):
        """Test downward jumps raise out-of-the-money put values."""
        params = JumpDiffusionParams(intensity=1.0, jump_mean=-0.1, jump_vol=0.1)
        jumpy = merton_price(100, 80, 1.0, 0.05, 0.0, 0.2, params, False)
        assert jumpy > black_scholes_price(100, 80, 1.0, 0.05, 0.0, 0.2, False)

    def test_invalid_params(self):
        with pytest.raises(ValidationError):
            JumpDiffusionParams(intensity=-1.0, jump_mean=0.0, jump_vol=0.1)

    def test_engine(self, terms):
        params = JumpDiffusionParams(intensity=0.5, jump_mean=-0.05, jump_vol=0.1)
        result = price_option(terms, "jump_diffusion", model_params=params)
        expected = merton_price(100, 100, 1.0, 0.05, 0.01, 0.2, params, True)
        assert result.fair_value == expected
        assert result.greeks.delta > 0
