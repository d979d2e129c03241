"""
Unit tests for trade-dict dispatch.
"""

import pytest

from pricinglib.curves import create_flat_curve
from pricinglib.exceptions import CalculationCancelled, ValidationError
from pricinglib.jobs import CancellationToken
from pricinglib.options import black_scholes_price
from pricinglib.pricers import BondTerms, price_bond, price_trade


class TestBondTrades:
    """Tests for BOND trades."""

    def test_plain_bond(self):
        trade = {
            "instrument_type": "BOND",
            "face_value": 100,
            "coupon": 0.05,
            "maturity": 5,
            "frequency": 2,
            "rate": 0.04,
            "notional": 1_000_000,
        }
        out = price_trade(trade)
        expected = price_bond(BondTerms(100, 0.05, 5), create_flat_curve(0.04))
        assert out.instrument_type == "BOND"
        assert abs(out.pv - expected.dirty_price * 10_000) < 1e-6
        assert out.details["dirty_price"] == expected.dirty_price
        assert out.to_dict()["pv"] == out.pv

    def test_curve_and_rating(self):
        base = {
            "instrument_type": "bond",
            "coupon": 0.04,
            "maturity": 7,
            "curve": {"maturities": [1, 5, 10], "zero_rates": [0.03, 0.035, 0.04]},
        }
        risk_free = price_trade(base)
        rated = price_trade(dict(base, rating="BBB"))
        assert rated.pv < risk_free.pv
        assert rated.details["expected_loss"] > 0

    def test_callable(self):
        trade = {
            "instrument_type": "BOND",
            "coupon": 0.06,
            "maturity": 10,
            "rate": 0.05,
            "embedded_options": [
                {"option_type": "call", "exercise_price": 100, "exercise_dates": [3.0],
                 "exercise_style": "american"},
            ],
        }
        out = price_trade(trade)
        straight = price_trade({k: v for k, v in trade.items() if k != "embedded_options"})
        assert out.pv < straight.pv
        assert out.details["option_value"] < 0

    def test_cancelled(self):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(CalculationCancelled):
            price_trade({"instrument_type": "BOND", "coupon": 0.05, "maturity": 5}, cancel_token=token)


class TestOptionTrades:
    """Tests for OPTION trades."""

    def test_black_scholes(self):
        trade = {
            "instrument_type": "OPTION",
            "spot": 100,
            "strike": 95,
            "expiry": 0.5,
            "rate": 0.03,
            "vol": 0.25,
            "option_type": "put",
            "quantity": 10,
        }
        out = price_trade(trade)
        expected = black_scholes_price(100, 95, 0.5, 0.03, 0.0, 0.25, False)
        assert abs(out.pv - 10 * expected) < 1e-10
        assert out.details["model_used"] == "black_scholes"
        assert out.details["greeks"]["delta"] < 0

    def test_heston_needs_params(self):
        trade = {"instrument_type": "OPTION", "spot": 100, "strike": 100, "expiry": 1.0,
                 "model": "heston"}
        with pytest.raises(ValidationError):
            price_trade(trade)
        trade["heston"] = {"v0": 0.04, "kappa": 2.0, "theta": 0.04, "sigma": 0.3, "rho": -0.5}
        assert price_trade(trade).details["model_used"] == "heston"

    def test_barrier(self):
        trade = {"instrument_type": "EQUITY_OPTION", "spot": 100, "strike": 100, "expiry": 1.0,
                 "rate": 0.05, "barrier": {"barrier": 80.0, "barrier_type": "down_and_out"}}
        vanilla = price_trade({k: v for k, v in trade.items() if k != "barrier"})
        assert 0 < price_trade(trade).pv < vanilla.pv


class TestStrategyTrades:
    """Tests for STRATEGY trades."""

    def test_template(self):
        trade = {"instrument_type": "STRATEGY", "strategy": "long_straddle", "spot": 100,
                 "strikes": [100], "expiry": 0.25, "rate": 0.05, "vol": 0.2}
        out = price_trade(trade)
        call = black_scholes_price(100, 100, 0.25, 0.05, 0.0, 0.2, True)
        put = black_scholes_price(100, 100, 0.25, 0.05, 0.0, 0.2, False)
        assert abs(out.pv - (call + put)) < 1e-10

    def test_custom_legs(self):
        trade = {
            "instrument_type": "OPTION_STRATEGY",
            "spot": 100,
            "rate": 0.05,
            "vol": 0.2,
            "legs": [
                {"option_type": "call", "strike": 95, "expiration": 0.5, "signed_quantity": 1},
                {"option_type": "call", "strike": 105, "expiration": 0.5, "signed_quantity": -1},
            ],
        }
        out = price_trade(trade)
        expected = (black_scholes_price(100, 95, 0.5, 0.05, 0.0, 0.2, True)
                    - black_scholes_price(100, 105, 0.5, 0.05, 0.0, 0.2, True))
        assert abs(out.pv - expected) < 1e-10


def test_unknown_instrument():
    with pytest.raises(ValidationError):
        price_trade({"instrument_type": "SWAP"})
