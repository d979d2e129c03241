"""
Unit tests for portfolio aggregation, VaR and stress scenarios.
"""

import numpy as np
import pandas as pd
import pytest
from scipy.stats import norm

from pricinglib.curves import create_flat_curve
from pricinglib.exceptions import ValidationError
from pricinglib.options import OptionTerms, price_option
from pricinglib.pricers import BondTerms, EmbeddedOption, price_bond
from pricinglib.risk import (
    STANDARD_SCENARIOS,
    Position,
    RiskAggregator,
    StressScenario,
    aggregate_portfolio,
    delta_normal_es,
    delta_normal_var,
    historical_es,
    historical_var,
    position_pnl,
    run_scenarios,
    scenario_pnl,
)


@pytest.fixture
def call_result():
    return price_option(OptionTerms(100, 100, 0.5, 0.05, 0.0, 0.2))


@pytest.fixture
def bond_result():
    return price_bond(BondTerms(100, 0.05, 10), create_flat_curve(0.04))


class TestVarFormulas:
    """Tests for parametric and empirical VaR/ES."""

    def test_delta_normal(self):
        assert abs(delta_normal_var(1000.0, 0.99) - 2326.3479) < 1e-3
        assert abs(delta_normal_var(1000.0, 0.95) - 1644.8536) < 1e-3
        assert abs(delta_normal_es(1000.0, 0.99) - 1000.0 * norm.pdf(norm.ppf(0.99)) / 0.01) < 1e-9
        assert delta_normal_es(1000.0, 0.99) > delta_normal_var(1000.0, 0.99)

    def test_invalid_confidence(self):
        with pytest.raises(ValidationError):
            delta_normal_var(1.0, 1.5)

    def test_historical(self):
        pnl = np.arange(-50, 50, dtype=float)
        var = historical_var(pnl, 0.95)
        assert abs(var - (-np.percentile(pnl, 5))) < 1e-12
        es = historical_es(pnl, 0.95)
        assert es >= var
        assert abs(es - (-np.mean(pnl[pnl <= -var]))) < 1e-12

    def test_historical_matches_normal(self):
        rng = np.random.default_rng(0)
        pnl = rng.normal(0.0, 100.0, 200_000)
        assert abs(historical_var(pnl, 0.99) - delta_normal_var(100.0, 0.99)) < 4.0
        assert abs(historical_es(pnl, 0.99) - delta_normal_es(100.0, 0.99)) < 5.0

    def test_empty_sample(self):
        with pytest.raises(ValidationError):
            historical_var([], 0.99)


class TestPosition:
    """Tests for weighted positions."""

    def test_option_position(self, call_result):
        pos = Position(call_result, weight=10, label="call")
        assert pos.value == 10 * call_result.fair_value
        assert pos.greeks.delta == 10 * call_result.greeks.delta
        assert abs(pos.equity_exposure - 10 * call_result.greeks.delta * 100) < 1e-12
        assert abs(pos.dv01 + 10 * call_result.greeks.rho * 1e-4) < 1e-15

    def test_bond_position(self, bond_result):
        pos = Position(bond_result, weight=5)
        assert pos.is_bond
        assert pos.value == 5 * bond_result.dirty_price
        assert pos.dv01 == 5 * bond_result.dv01
        assert pos.equity_exposure == 0.0
        assert pos.greeks.delta == 0.0

    def test_rejects_other_objects(self):
        with pytest.raises(ValidationError):
            Position(object())


class TestRiskAggregator:
    """Tests for portfolio aggregation."""

    def test_sums(self, call_result, bond_result):
        positions = [Position(call_result, 10, "call"), Position(bond_result, 5, "bond"),
                     Position(call_result, -4, "call")]
        agg = RiskAggregator(positions)
        assert abs(agg.portfolio_value() - (6 * call_result.fair_value + 5 * bond_result.dirty_price)) < 1e-9
        assert abs(agg.portfolio_greeks().delta - 6 * call_result.greeks.delta) < 1e-12
        result = agg.compute()
        assert result.num_positions == 3
        assert abs(result.position_values["call"] - 6 * call_result.fair_value) < 1e-9
        assert set(result.to_dict()) >= {"var_99", "es_95", "dv01"}

    def test_single_factor_var(self, call_result):
        """Test an option-only book with no rate vol is pure equity VaR."""
        agg = RiskAggregator([Position(call_result, 100)], equity_vol=0.25, rate_vol_bp=0.0)
        exposure = 100 * call_result.greeks.delta * 100
        sigma = exposure * 0.25 * np.sqrt(10 / 252)
        assert abs(agg.pnl_volatility(10) - sigma) < 1e-9
        assert abs(agg.var(0.99, 10) - norm.ppf(0.99) * sigma) < 1e-9

    def test_bond_var(self, bond_result):
        agg = RiskAggregator([Position(bond_result, 1000)], rate_vol_bp=80.0)
        sigma = 1000 * bond_result.dv01 * 80.0 / np.sqrt(252)
        assert abs(agg.pnl_volatility() - sigma) < 1e-9

    def test_correlation(self, call_result, bond_result):
        """Test a long call hedges a long bond when yields and stocks co-move."""
        positions = [Position(call_result, 100), Position(bond_result, 100)]
        uncorrelated = RiskAggregator(positions, correlation=0.0).pnl_volatility()
        correlated = RiskAggregator(positions, correlation=0.8).pnl_volatility()
        assert correlated < uncorrelated

    def test_scaling(self, call_result):
        one = aggregate_portfolio([Position(call_result, 1)], horizon_days=1)
        ten = aggregate_portfolio([Position(call_result, 1)], horizon_days=10)
        assert abs(ten.var_99 - one.var_99 * np.sqrt(10)) < 1e-9
        assert ten.es_99 > ten.var_99 > ten.var_95

    def test_invalid_inputs(self, call_result):
        with pytest.raises(ValidationError):
            RiskAggregator([Position(call_result)], correlation=2.0)
        with pytest.raises(ValidationError):
            RiskAggregator([Position(call_result)]).pnl_volatility(0)


class TestScenarios:
    """Tests for stress scenarios."""

    def test_standard_set(self):
        assert set(STANDARD_SCENARIOS) == {"bull", "base", "bear", "equity_crash", "vol_spike"}
        assert STANDARD_SCENARIOS["bear"].rate_shift == 0.03

    def test_bond_pnl(self, bond_result):
        pos = Position(bond_result, 2)
        pnl = position_pnl(pos, STANDARD_SCENARIOS["bear"])
        dy = 0.032
        price = bond_result.dirty_price
        expected = 2 * (-bond_result.modified_duration * price * dy
                        + 0.5 * bond_result.convexity * price * dy ** 2)
        assert abs(pnl - expected) < 1e-9
        assert pnl < 0
        assert position_pnl(pos, STANDARD_SCENARIOS["bull"]) > 0

    def test_callable_bond_pnl_uses_effective_measures(self):
        """Test a callable bond's scenario P&L follows its lattice duration."""
        call = EmbeddedOption("call", 100.0, (1.0,), exercise_style="american", volatility=0.15)
        result = price_bond(BondTerms(100, 0.07, 10, structure="callable"), create_flat_curve(0.05),
                            embedded_options=[call])
        pos = Position(result)
        scenario = StressScenario("Up 100bp", rate_shift=0.01)
        price = result.dirty_price
        expected = -result.effective_duration * price * 0.01 + 0.5 * result.effective_convexity * price * 1e-4
        assert abs(position_pnl(pos, scenario) - expected) < 1e-9
        assert pos.dv01 == result.dv01
        assert abs(pos.dv01 - result.effective_duration * price * 1e-4) < 1e-12

    def test_option_pnl(self, call_result):
        g = call_result.greeks
        scenario = StressScenario("Down", spot_shift=-0.1, vol_shift=0.05)
        expected = (g.delta * -10 + 0.5 * g.gamma * 100 + g.vega * 0.05
                    + g.vanna * -10 * 0.05 + 0.5 * g.volga * 0.05 ** 2)
        assert abs(position_pnl(Position(call_result), scenario) - expected) < 1e-9

    def test_base_is_flat(self, call_result, bond_result):
        positions = [Position(call_result, 3), Position(bond_result, 2)]
        assert scenario_pnl(positions, STANDARD_SCENARIOS["base"]) == 0.0

    def test_run_scenarios(self, call_result, bond_result):
        positions = [Position(call_result, 10), Position(bond_result, 5)]
        df = run_scenarios(positions)
        assert isinstance(df, pd.DataFrame)
        assert list(df["Scenario"]) == ["Bull", "Base", "Bear", "Equity Crash", "Vol Spike"]
        np.testing.assert_allclose(df["P&L"], df["Option P&L"] + df["Bond P&L"])
        vol_spike = df.set_index("Scenario").loc["Vol Spike"]
        assert vol_spike["Bond P&L"] == 0.0
        assert vol_spike["Option P&L"] > 0

    def test_empty_scenarios(self, call_result):
        df = run_scenarios([Position(call_result)], [])
        assert df.empty
        assert "P&L" in df.columns
