"""
Unit tests for bond pricing.
"""

import numpy as np
import pytest

from pricinglib.conventions import NumericalSettings
from pricinglib.curves import YieldCurve, create_flat_curve
from pricinglib.exceptions import ConvergenceError, ModelFallbackWarning, ValidationError
from pricinglib.pricers import (
    BondPricer,
    BondTerms,
    CreditAnalysis,
    EmbeddedOption,
    TaxAnalysis,
    price_bond,
)


@pytest.fixture
def flat_curve():
    return create_flat_curve(0.05)


@pytest.fixture
def sloped_curve():
    return YieldCurve.from_zero_rates([0.5, 1, 2, 5, 10, 30], [0.03, 0.032, 0.036, 0.04, 0.045, 0.048])


class TestBondTerms:
    """Tests for bond term validation."""

    def test_periods_and_accrual(self):
        terms = BondTerms(100, 0.05, 4.8)
        assert terms.periods == 10
        assert abs(terms.accrued_fraction - 0.4) < 1e-12
        assert terms.coupon_payment == 2.5

    def test_whole_periods_have_no_accrual(self):
        assert BondTerms(100, 0.05, 10).accrued_fraction == 0.0

    def test_invalid_inputs(self):
        with pytest.raises(ValidationError):
            BondTerms(0, 0.05, 10)
        with pytest.raises(ValidationError):
            BondTerms(100, -0.01, 10)
        with pytest.raises(ValidationError):
            BondTerms(100, 0.05, 0)
        with pytest.raises(ValidationError):
            BondTerms(100, 0.05, 10, frequency=3)
        with pytest.raises(ValidationError):
            BondTerms(100, 0.05, 10, market_price=-1)

    def test_structure_from_string(self):
        assert BondTerms(100, 0.05, 10, structure="Callable").structure.value == "callable"
        with pytest.raises(ValidationError):
            BondTerms(100, 0.05, 10, structure="perpetual")


class TestBondPricing:
    """Tests for prices and yields."""

    def test_zero_coupon_bond(self, flat_curve):
        """Test a zero-coupon bond is face times the discount factor."""
        result = price_bond(BondTerms(100, 0.0, 5), flat_curve)
        assert abs(result.dirty_price - 100 * np.exp(-0.25)) < 1e-9
        assert result.accrued_interest == 0.0
        assert result.current_yield == 0.0

    def test_par_bond(self, flat_curve):
        """Test a $1,000 bond yielding its coupon prices at par."""
        result = price_bond(BondTerms(1000, 0.05, 10, market_yield=0.05), flat_curve)
        assert result.dirty_price == pytest.approx(1000.00, abs=1e-8)
        assert abs(result.clean_price - 1000.0) < 1e-8
        assert result.ytm == 0.05
        assert abs(result.current_yield - 0.05) < 1e-9

    def test_dirty_equals_clean_plus_accrued(self, sloped_curve):
        result = price_bond(BondTerms(100, 0.06, 4.8), sloped_curve)
        assert result.accrued_interest > 0
        assert result.dirty_price == result.clean_price + result.accrued_interest
        assert abs(result.accrued_interest - 3.0 * 0.4) < 1e-12

    def test_ytm_reprices_market_price(self, flat_curve):
        """Test the solved yield reprices the quoted clean price."""
        terms = BondTerms(100, 0.05, 10, market_price=95.0)
        result = price_bond(terms, flat_curve)
        pricer = BondPricer(flat_curve)
        cfs = pricer.generate_cashflows(terms)
        assert result.ytm > 0.05
        assert abs(pricer.price_from_yield(cfs, result.ytm) - 95.0) < 1e-7

    def test_bisection_fallback(self, flat_curve):
        """Test bisection recovers the yield when Newton runs out of iterations."""
        terms = BondTerms(100, 0.05, 10, market_price=80.0)
        full = price_bond(terms, flat_curve)
        limited = price_bond(terms, flat_curve, settings=NumericalSettings(ytm_max_iterations=1))
        assert abs(full.ytm - limited.ytm) < 1e-8

    def test_unreachable_price(self, flat_curve):
        pricer = BondPricer(flat_curve)
        cfs = pricer.generate_cashflows(BondTerms(100, 0.05, 10))
        with pytest.raises(ConvergenceError):
            pricer.solve_yield(cfs, -5.0)

    def test_credit_spread_lowers_price(self, flat_curve):
        base = price_bond(BondTerms(100, 0.05, 10), flat_curve)
        risky = price_bond(BondTerms(100, 0.05, 10), flat_curve, credit=CreditAnalysis(spread=0.01))
        assert risky.dirty_price < base.dirty_price
        assert abs(risky.z_spread - 0.01) < 1e-8
        assert risky.oas == risky.z_spread

    def test_i_spread_on_flat_curve(self, flat_curve):
        """Test a bond priced off a flat curve has near-zero spreads."""
        result = price_bond(BondTerms(100, 0.05, 10), flat_curve)
        assert abs(result.z_spread) < 1e-8
        assert abs(result.i_spread) < 1e-3


class TestDurationAndConvexity:
    """Tests for risk measures."""

    def test_modified_duration_identity(self, sloped_curve):
        result = price_bond(BondTerms(100, 0.045, 7.3), sloped_curve)
        expected = result.macaulay_duration / (1 + result.ytm / result.frequency)
        assert abs(result.modified_duration - expected) < 1e-9

    def test_zero_coupon_macaulay(self, flat_curve):
        """Test a zero-coupon bond's Macaulay duration equals its maturity."""
        result = price_bond(BondTerms(100, 0.0, 5), flat_curve)
        assert abs(result.macaulay_duration - 5.0) < 1e-9

    def test_effective_matches_modified_for_straight_bond(self, flat_curve):
        result = price_bond(BondTerms(100, 0.05, 10), flat_curve)
        assert abs(result.effective_duration - result.modified_duration) < 1e-3
        assert abs(result.effective_convexity - result.convexity) / result.convexity < 1e-2

    def test_dv01_and_pvbp(self, flat_curve):
        result = price_bond(BondTerms(100, 0.05, 10), flat_curve)
        assert result.dv01 > 0
        assert abs(result.dv01 - result.modified_duration * result.dirty_price * 1e-4) < 1e-12
        assert abs(result.pvbp - result.dv01) / result.dv01 < 1e-4

    def test_key_rate_durations_sum(self, sloped_curve):
        """Test key-rate durations add up to the parallel curve duration."""
        terms = BondTerms(100, 0.05, 10)
        result = price_bond(terms, sloped_curve)
        pricer = BondPricer(sloped_curve)
        cfs = pricer.generate_cashflows(terms)
        p_up = pricer.curve_price(cfs, curve=sloped_curve.shift_parallel(1))
        p_dn = pricer.curve_price(cfs, curve=sloped_curve.shift_parallel(-1))
        parallel = -(p_up - p_dn) / (2 * result.dirty_price * 1e-4)
        assert set(result.key_rate_durations) == {0.5, 1.0, 2.0, 5.0, 10.0, 30.0}
        assert abs(sum(result.key_rate_durations.values()) - parallel) < 1e-4
        assert result.key_rate_durations[30.0] == pytest.approx(0.0, abs=1e-10)


class TestEmbeddedOptions:
    """Tests for callable and putable bonds."""

    @pytest.fixture
    def call(self):
        return EmbeddedOption("call", 100.0, (3.0,), exercise_style="american", volatility=0.15)

    @pytest.fixture
    def put(self):
        return EmbeddedOption("put", 100.0, (3.0,), exercise_style="american", volatility=0.15)

    def test_callable_below_straight(self, flat_curve, call):
        straight = price_bond(BondTerms(100, 0.06, 10), flat_curve)
        callable_ = price_bond(BondTerms(100, 0.06, 10, structure="callable"), flat_curve,
                               embedded_options=[call])
        assert callable_.dirty_price < straight.dirty_price
        assert callable_.option_value < 0
        assert abs(callable_.dirty_price - callable_.option_value - straight.dirty_price) < 1e-6

    def test_putable_above_straight(self, flat_curve, put):
        straight = price_bond(BondTerms(100, 0.04, 10), flat_curve)
        putable = price_bond(BondTerms(100, 0.04, 10, structure="putable"), flat_curve,
                             embedded_options=[put])
        assert putable.dirty_price > straight.dirty_price
        assert putable.option_value > 0
        # The put pays at most par, no earlier than year 3
        assert putable.option_value < 100.0 * flat_curve.discount_factor(3.0)
        assert putable.dirty_price < 100.0
        assert putable.ytm > 0

    def test_par_put_at_maturity_is_worthless(self, flat_curve):
        """Test a put struck at par on the redemption date adds nothing."""
        straight = price_bond(BondTerms(100, 0.04, 10), flat_curve)
        at_maturity = EmbeddedOption("put", 100.0, (10.0,), volatility=0.15)
        putable = price_bond(BondTerms(100, 0.04, 10, structure="putable"), flat_curve,
                             embedded_options=[at_maturity])
        assert abs(putable.dirty_price - straight.dirty_price) < 1e-6
        assert abs(putable.option_value) < 1e-6

    def test_american_put_matches_bermudan_before_maturity(self, flat_curve, put):
        """Test continuous exercise equals exercise on every coupon date before redemption."""
        dates = tuple(3.0 + 0.5 * i for i in range(14))
        bermudan = EmbeddedOption("put", 100.0, dates, exercise_style="bermudan", volatility=0.15)
        terms = BondTerms(100, 0.04, 10, structure="putable")
        american = price_bond(terms, flat_curve, embedded_options=[put])
        on_dates = price_bond(terms, flat_curve, embedded_options=[bermudan])
        assert abs(american.dirty_price - on_dates.dirty_price) < 1e-10

    def test_oas_below_z_spread(self, flat_curve, call):
        """Test a callable bond's OAS strips out the option cost."""
        terms = BondTerms(100, 0.06, 10, structure="callable", market_price=100.0)
        result = price_bond(terms, flat_curve, embedded_options=[call])
        assert result.oas < result.z_spread

    def test_oas_defaults_to_credit_spread(self, flat_curve, call):
        terms = BondTerms(100, 0.06, 10, structure="callable")
        result = price_bond(terms, flat_curve, credit=CreditAnalysis(spread=0.005),
                            embedded_options=[call])
        assert result.oas == 0.005

    def test_callable_yields(self, flat_curve, call):
        result = price_bond(BondTerms(100, 0.06, 10, structure="callable"), flat_curve,
                            embedded_options=[call])
        assert result.ytc is not None
        assert result.ytw <= result.ytm
        assert result.ytw <= result.ytc

    def test_callable_shortens_duration(self, flat_curve, call):
        straight = price_bond(BondTerms(100, 0.06, 10), flat_curve)
        callable_ = price_bond(BondTerms(100, 0.06, 10, structure="callable"), flat_curve,
                               embedded_options=[call])
        assert callable_.effective_duration < straight.effective_duration

    def test_callable_dv01_uses_effective_duration(self, flat_curve):
        """Test DV01 of a deep-in-the-money callable follows the call date, not maturity."""
        call = EmbeddedOption("call", 100.0, (1.0,), exercise_style="american", volatility=0.15)
        result = price_bond(BondTerms(100, 0.07, 10, structure="callable"), flat_curve,
                            embedded_options=[call])
        assert result.has_embedded_options
        assert result.rate_duration == result.effective_duration
        assert abs(result.dv01 - result.effective_duration * result.dirty_price * 1e-4) < 1e-12
        assert result.effective_duration < 0.5 * result.modified_duration
        assert result.dv01 < 0.5 * result.modified_duration * result.dirty_price * 1e-4

    def test_straight_bond_uses_modified_duration(self, flat_curve):
        result = price_bond(BondTerms(100, 0.07, 10), flat_curve)
        assert not result.has_embedded_options
        assert result.rate_duration == result.modified_duration
        assert result.rate_convexity == result.convexity

    def test_structure_validation(self, flat_curve, call, put):
        with pytest.raises(ValidationError):
            price_bond(BondTerms(100, 0.05, 10), flat_curve, embedded_options=[call])
        with pytest.raises(ValidationError):
            price_bond(BondTerms(100, 0.05, 10, structure="callable"), flat_curve,
                       embedded_options=[put])
        with pytest.raises(ValidationError):
            price_bond(BondTerms(100, 0.05, 10, structure="putable"), flat_curve)
        late = EmbeddedOption("call", 100.0, (12.0,))
        with pytest.raises(ValidationError):
            price_bond(BondTerms(100, 0.05, 10, structure="callable"), flat_curve,
                       embedded_options=[late])

    def test_invalid_embedded_option(self):
        with pytest.raises(ValidationError):
            EmbeddedOption("call", 0.0, (3.0,))
        with pytest.raises(ValidationError):
            EmbeddedOption("call", 100.0, ())
        with pytest.raises(ValidationError):
            EmbeddedOption("call", 100.0, (3.0,), exercise_style="quarterly")

    def test_convertible_warns(self, flat_curve):
        terms = BondTerms(100, 0.03, 5, structure="convertible")
        with pytest.warns(ModelFallbackWarning):
            result = price_bond(terms, flat_curve)
        assert result.warnings
        straight = price_bond(BondTerms(100, 0.03, 5), flat_curve)
        assert abs(result.dirty_price - straight.dirty_price) < 1e-12


class TestCreditAndTax:
    """Tests for credit and tax analytics."""

    def test_from_rating(self):
        credit = CreditAnalysis.from_rating("bbb")
        assert credit.rating == "BBB"
        assert credit.default_probability == 0.005
        assert credit.spread == 0.004
        assert credit.is_investment_grade
        assert not CreditAnalysis.from_rating("BB").is_investment_grade

    def test_unknown_rating(self):
        with pytest.raises(ValidationError):
            CreditAnalysis.from_rating("ZZZ")

    def test_expected_loss(self):
        credit = CreditAnalysis(default_probability=0.02, recovery_rate=0.4)
        assert abs(credit.expected_loss(1000) - 12.0) < 1e-12

    def test_credit_var(self):
        """Test credit VaR under the binomial default model."""
        single = CreditAnalysis(default_probability=0.005, recovery_rate=0.4)
        assert single.credit_var(100) == 0.0
        distressed = CreditAnalysis(default_probability=0.05, recovery_rate=0.4)
        assert abs(distressed.credit_var(100) - 60.0) < 1e-12
        pooled = CreditAnalysis(default_probability=0.02, recovery_rate=0.4, obligor_count=100)
        assert 0 < pooled.credit_var(100) < 60.0

    def test_credit_fields_on_result(self, flat_curve):
        credit = CreditAnalysis(default_probability=0.02, recovery_rate=0.5)
        result = price_bond(BondTerms(100, 0.05, 10), flat_curve, credit=credit)
        assert abs(result.expected_loss - 1.0) < 1e-12

    def test_tax_yields(self, flat_curve):
        taxable = TaxAnalysis(federal_rate=0.3, state_rate=0.05)
        exempt = TaxAnalysis(federal_rate=0.3, state_rate=0.05, is_exempt=True)
        result = price_bond(BondTerms(100, 0.05, 10, market_yield=0.05), flat_curve, tax=taxable)
        assert abs(result.after_tax_yield - 0.05 * 0.65) < 1e-12
        assert result.tax_equivalent_yield == 0.05
        assert abs(exempt.tax_equivalent_yield(0.03) - 0.03 / 0.65) < 1e-12
        assert exempt.after_tax_yield(0.03) == 0.03

    def test_invalid_tax(self):
        with pytest.raises(ValidationError):
            TaxAnalysis(federal_rate=0.6, state_rate=0.5)
