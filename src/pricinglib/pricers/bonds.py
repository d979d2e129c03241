"""
Bond pricing engine.

Prices fixed-coupon bonds, optionally with embedded call/put features,
against a yield curve.

Features:
- Cashflow schedule generation
- Yield to maturity / call / worst (Newton-Raphson with bisection fallback)
- Macaulay, modified and effective duration; convexity
- DV01, PVBP, key-rate durations
- Z-spread, I-spread and option-adjusted spread (BDT lattice)
- Credit expected loss and credit VaR
- After-tax and tax-equivalent yields

Conventions:
- Prices are expressed per bond, in the same units as face value
- Yields are compounded at the coupon frequency
- Curve spreads (z-spread, OAS, credit spread) are continuously compounded
- Times are year fractions from today
"""

import logging
import math
import warnings
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy.optimize import bisect, brentq
from scipy.stats import binom

from ..conventions import (
    BondStructure,
    CompoundingConvention,
    ExerciseStyle,
    Frequency,
    NumericalSettings,
    OptionType,
    convert_rate,
)
from ..curves.curve import YieldCurve
from ..exceptions import ConvergenceError, ModelFallbackWarning, ValidationError
from ..jobs import CancellationToken, check_cancelled
from .lattice import ExerciseBoundary, ShortRateLattice, exercise_steps

logger = logging.getLogger(__name__)


# Rating -> (one-year default probability, credit spread)
CREDIT_RATINGS: Dict[str, Tuple[float, float]] = {
    "AAA": (0.0002, 0.0005),
    "AA+": (0.0005, 0.0010),
    "AA": (0.0005, 0.0010),
    "AA-": (0.0008, 0.0015),
    "A+": (0.0015, 0.0020),
    "A": (0.0015, 0.0020),
    "A-": (0.0025, 0.0025),
    "BBB+": (0.0050, 0.0040),
    "BBB": (0.0050, 0.0040),
    "BBB-": (0.0080, 0.0060),
    "BB+": (0.0150, 0.0150),
    "BB": (0.0150, 0.0150),
    "BB-": (0.0250, 0.0250),
    "B+": (0.0500, 0.0400),
    "B": (0.0500, 0.0400),
    "B-": (0.0800, 0.0600),
    "CCC+": (0.1500, 0.1000),
    "CCC": (0.1500, 0.1000),
    "CCC-": (0.2500, 0.1500),
    "CC": (0.4000, 0.2500),
    "C": (0.6000, 0.4000),
    "D": (1.0000, 0.8000),
}

INVESTMENT_GRADE = ("AAA", "AA+", "AA", "AA-", "A+", "A", "A-", "BBB+", "BBB", "BBB-")


@dataclass(frozen=True)
class BondTerms:
    """
    Static terms of a bond.

    Attributes:
        face_value: Redemption amount
        coupon_rate: Annual coupon rate (decimal)
        maturity: Years to final payment
        frequency: Coupons per year (1, 2, 4, 12)
        structure: Redemption structure
        market_price: Quoted clean price, if any
        market_yield: Quoted yield, if any (used when no market_price)
    """
    face_value: float
    coupon_rate: float
    maturity: float
    frequency: int = 2
    structure: BondStructure = BondStructure.FIXED
    market_price: Optional[float] = None
    market_yield: Optional[float] = None

    def __post_init__(self):
        if not self.face_value > 0:
            raise ValidationError("face value must be positive", field="face_value",
                                  value=self.face_value)
        if self.coupon_rate < 0:
            raise ValidationError("coupon rate must be non-negative", field="coupon_rate",
                                  value=self.coupon_rate)
        if not self.maturity > 0:
            raise ValidationError("maturity must be positive", field="maturity",
                                  value=self.maturity)
        object.__setattr__(self, "frequency", Frequency.from_value(self.frequency).value)
        if not isinstance(self.structure, BondStructure):
            try:
                object.__setattr__(self, "structure", BondStructure(str(self.structure).lower()))
            except ValueError:
                raise ValidationError("unknown bond structure", field="structure",
                                      value=self.structure) from None
        if self.market_price is not None and not self.market_price > 0:
            raise ValidationError("market price must be positive", field="market_price",
                                  value=self.market_price)
        if self.market_yield is not None and self.market_yield <= -self.frequency:
            raise ValidationError("yield below -100% per period", field="market_yield",
                                  value=self.market_yield)

    @property
    def periods(self) -> int:
        """Number of remaining coupon periods N."""
        return int(math.ceil(self.maturity * self.frequency - 1e-9))

    @property
    def accrued_fraction(self) -> float:
        """Elapsed fraction of the current coupon period."""
        fraction = self.periods - self.maturity * self.frequency
        return 0.0 if fraction < 1e-9 else fraction

    @property
    def coupon_payment(self) -> float:
        return self.face_value * self.coupon_rate / self.frequency


@dataclass(frozen=True)
class EmbeddedOption:
    """
    Call or put feature embedded in a bond.

    Attributes:
        option_type: CALL (issuer may redeem) or PUT (holder may sell back)
        exercise_price: Clean redemption price on exercise
        exercise_dates: Exercise dates in years from today
        exercise_style: EUROPEAN, AMERICAN or BERMUDAN
        volatility: Lognormal short-rate volatility for the lattice
    """
    option_type: OptionType
    exercise_price: float
    exercise_dates: Tuple[float, ...]
    exercise_style: ExerciseStyle = ExerciseStyle.EUROPEAN
    volatility: float = 0.10

    def __post_init__(self):
        object.__setattr__(self, "option_type", OptionType.from_string(self.option_type))
        object.__setattr__(self, "exercise_style", ExerciseStyle.from_string(self.exercise_style))
        object.__setattr__(self, "exercise_dates", tuple(float(d) for d in self.exercise_dates))
        if not self.exercise_price > 0:
            raise ValidationError("exercise price must be positive", field="exercise_price",
                                  value=self.exercise_price)
        if not self.exercise_dates or min(self.exercise_dates) <= 0:
            raise ValidationError("exercise dates must be positive and non-empty",
                                  field="exercise_dates", value=self.exercise_dates)
        if self.volatility < 0:
            raise ValidationError("volatility must be non-negative", field="volatility",
                                  value=self.volatility)


@dataclass(frozen=True)
class CreditAnalysis:
    """
    Issuer credit inputs.

    Attributes:
        rating: Letter rating (informational unless built with from_rating)
        spread: Credit spread over the curve (continuous)
        recovery_rate: Fraction of face recovered on default
        default_probability: Probability of default over the horizon
        obligor_count: Number of independent equal slices in the binomial
            default model (1 for a single-name bond)
    """
    rating: str = "NR"
    spread: float = 0.0
    recovery_rate: float = 0.4
    default_probability: float = 0.0
    obligor_count: int = 1

    def __post_init__(self):
        if not 0.0 <= self.recovery_rate <= 1.0:
            raise ValidationError("must be in [0, 1]", field="recovery_rate", value=self.recovery_rate)
        if not 0.0 <= self.default_probability <= 1.0:
            raise ValidationError("must be in [0, 1]", field="default_probability",
                                  value=self.default_probability)
        if self.obligor_count < 1:
            raise ValidationError("must be at least 1", field="obligor_count", value=self.obligor_count)

    @classmethod
    def from_rating(cls, rating: str, recovery_rate: float = 0.4, obligor_count: int = 1) -> "CreditAnalysis":
        """Build from the rating table's default probability and spread."""
        key = rating.strip().upper()
        if key not in CREDIT_RATINGS:
            raise ValidationError("unknown credit rating", field="rating", value=rating)
        pd_, spread = CREDIT_RATINGS[key]
        return cls(rating=key, spread=spread, recovery_rate=recovery_rate,
                   default_probability=pd_, obligor_count=obligor_count)

    @property
    def loss_given_default(self) -> float:
        return 1.0 - self.recovery_rate

    @property
    def is_investment_grade(self) -> bool:
        return self.rating.upper() in INVESTMENT_GRADE

    def expected_loss(self, face_value: float) -> float:
        return self.default_probability * self.loss_given_default * face_value

    def credit_var(self, face_value: float, confidence: float = 0.99) -> float:
        """Loss quantile under a binomial default model."""
        n = self.obligor_count
        defaults = binom.ppf(confidence, n, self.default_probability)
        return float(defaults) * self.loss_given_default * face_value / n


@dataclass(frozen=True)
class TaxAnalysis:
    """Investor tax rates."""
    federal_rate: float = 0.0
    state_rate: float = 0.0
    local_rate: float = 0.0
    is_exempt: bool = False

    def __post_init__(self):
        for name in ("federal_rate", "state_rate", "local_rate"):
            value = getattr(self, name)
            if not 0.0 <= value < 1.0:
                raise ValidationError("must be in [0, 1)", field=name, value=value)
        if self.total_rate >= 1.0:
            raise ValidationError("total tax rate must be below 100%", field="total_rate",
                                  value=self.total_rate)

    @property
    def total_rate(self) -> float:
        return self.federal_rate + self.state_rate + self.local_rate

    def after_tax_yield(self, ytm: float) -> float:
        if self.is_exempt:
            return ytm
        return ytm * (1.0 - self.total_rate)

    def tax_equivalent_yield(self, ytm: float) -> float:
        """Taxable yield needed to match an exempt yield."""
        if self.is_exempt:
            return ytm / (1.0 - self.total_rate)
        return ytm


@dataclass(frozen=True)
class BondCashflow:
    """A single bond cashflow."""
    period: int
    time: float  # Years from today
    amount: float
    type: str  # "COUPON", "PRINCIPAL", "COUPON+PRINCIPAL"


@dataclass(frozen=True)
class BondCashflows:
    """Complete set of bond cashflows."""
    cashflows: Tuple[BondCashflow, ...]
    face_value: float
    coupon_rate: float
    frequency: int
    accrued_fraction: float

    @property
    def times(self) -> np.ndarray:
        return np.array([cf.time for cf in self.cashflows])

    @property
    def amounts(self) -> np.ndarray:
        return np.array([cf.amount for cf in self.cashflows])

    @property
    def periods(self) -> np.ndarray:
        """Discounting exponents in coupon periods (k - accrued fraction)."""
        return np.array([cf.period for cf in self.cashflows]) - self.accrued_fraction

    @property
    def accrued_interest(self) -> float:
        return self.face_value * self.coupon_rate / self.frequency * self.accrued_fraction

    @property
    def total_coupons(self) -> float:
        """Sum of all coupon payments."""
        coupon = self.face_value * self.coupon_rate / self.frequency
        return coupon * len(self.cashflows)

    def truncated(self, time: float, redemption: float) -> "BondCashflows":
        """Cash flows up to ``time`` with ``redemption`` paid on the last one."""
        kept = [cf for cf in self.cashflows if cf.time <= time + 1e-9]
        if not kept:
            kept = [self.cashflows[0]]
        coupon = self.face_value * self.coupon_rate / self.frequency
        last = kept[-1]
        kept[-1] = BondCashflow(last.period, last.time, coupon + redemption, "COUPON+PRINCIPAL")
        return BondCashflows(tuple(kept), self.face_value, self.coupon_rate,
                             self.frequency, self.accrued_fraction)


@dataclass(frozen=True)
class BondResult:
    """
    Bond valuation and risk.

    Invariants:
        dirty_price == clean_price + accrued_interest
        modified_duration == macaulay_duration / (1 + ytm / frequency)
    """
    dirty_price: float
    clean_price: float
    accrued_interest: float
    ytm: float
    ytc: Optional[float]
    ytw: float
    current_yield: float
    macaulay_duration: float
    modified_duration: float
    effective_duration: float
    convexity: float
    effective_convexity: float
    dv01: float
    pvbp: float
    z_spread: float
    i_spread: float
    oas: float
    credit_var: float
    expected_loss: float
    option_value: float = 0.0
    after_tax_yield: Optional[float] = None
    tax_equivalent_yield: Optional[float] = None
    frequency: int = 2
    key_rate_durations: Dict[float, float] = field(default_factory=dict)
    cashflows: Optional[BondCashflows] = None
    warnings: Tuple[str, ...] = ()
    has_embedded_options: bool = False

    @property
    def fair_value(self) -> float:
        return self.dirty_price

    @property
    def rate_duration(self) -> float:
        """Duration to use for rate risk: effective when options are embedded."""
        return self.effective_duration if self.has_embedded_options else self.modified_duration

    @property
    def rate_convexity(self) -> float:
        return self.effective_convexity if self.has_embedded_options else self.convexity

    def to_dict(self) -> Dict:
        """Convert to dictionary."""
        return {
            "dirty_price": self.dirty_price,
            "clean_price": self.clean_price,
            "accrued_interest": self.accrued_interest,
            "ytm": self.ytm,
            "ytc": self.ytc,
            "ytw": self.ytw,
            "current_yield": self.current_yield,
            "macaulay_duration": self.macaulay_duration,
            "modified_duration": self.modified_duration,
            "effective_duration": self.effective_duration,
            "convexity": self.convexity,
            "effective_convexity": self.effective_convexity,
            "dv01": self.dv01,
            "pvbp": self.pvbp,
            "z_spread": self.z_spread,
            "i_spread": self.i_spread,
            "oas": self.oas,
            "credit_var": self.credit_var,
            "expected_loss": self.expected_loss,
            "option_value": self.option_value,
            "after_tax_yield": self.after_tax_yield,
            "tax_equivalent_yield": self.tax_equivalent_yield,
            "key_rate_durations": dict(self.key_rate_durations),
            "warnings": list(self.warnings),
            "has_embedded_options": self.has_embedded_options,
        }


class BondPricer:
    """
    Bond pricing engine.

    Prices bonds by discounting cashflows at a yield or against a curve,
    and values embedded options on a BDT lattice calibrated to the curve.

    Attributes:
        curve: Risk-free yield curve
        settings: Numerical tolerances and bump sizes
    """

    def __init__(
        self,
        curve: YieldCurve,
        settings: Optional[NumericalSettings] = None,
        cancel_token: Optional[CancellationToken] = None,
    ):
        self.curve = curve
        self.settings = settings or NumericalSettings.default()
        self.cancel_token = cancel_token

    # ------------------------------------------------------------------
    # Cash flows and yield pricing
    # ------------------------------------------------------------------

    def generate_cashflows(self, terms: BondTerms) -> BondCashflows:
        """
        Generate bond cashflows for periods 1..N.

        Args:
            terms: Bond terms

        Returns:
            BondCashflows object
        """
        n = terms.periods
        a = terms.accrued_fraction
        coupon = terms.coupon_payment
        cashflows = []
        for k in range(1, n + 1):
            t = (k - a) / terms.frequency
            if k == n:
                cashflows.append(BondCashflow(k, t, coupon + terms.face_value, "COUPON+PRINCIPAL"))
            else:
                cashflows.append(BondCashflow(k, t, coupon, "COUPON"))

        return BondCashflows(tuple(cashflows), terms.face_value, terms.coupon_rate,
                             terms.frequency, a)

    @staticmethod
    def price_from_yield(cfs: BondCashflows, y: float) -> float:
        """Dirty price: sum of CF / (1 + y/f)^(k - a)."""
        base = 1.0 + y / cfs.frequency
        return float(np.sum(cfs.amounts * base ** (-cfs.periods)))

    @staticmethod
    def _price_and_slope(cfs: BondCashflows, y: float) -> Tuple[float, float]:
        f = cfs.frequency
        base = 1.0 + y / f
        tau = cfs.periods
        pv = cfs.amounts * base ** (-tau)
        return float(np.sum(pv)), float(-np.sum(tau * pv) / (base * f))

    def solve_yield(self, cfs: BondCashflows, target_dirty: float, guess: Optional[float] = None) -> float:
        """
        Yield that reprices ``cfs`` to ``target_dirty``.

        Newton-Raphson from the coupon rate; on failure, bisection over the
        configured bracket; otherwise ConvergenceError.
        """
        s = self.settings
        y = cfs.coupon_rate if guess is None else guess
        floor = -cfs.frequency + 1e-6

        for i in range(s.ytm_max_iterations):
            price, slope = self._price_and_slope(cfs, y)
            diff = price - target_dirty
            if abs(diff) < s.ytm_tolerance:
                logger.debug("YTM Newton converged in %d iterations: %.10f", i, y)
                return y
            if slope == 0 or not np.isfinite(slope):
                break
            y = y - diff / slope
            if not np.isfinite(y) or y <= floor:
                break

        logger.debug("Newton-Raphson failed for target %.6f, falling back to bisection", target_dirty)

        def objective(rate: float) -> float:
            return self.price_from_yield(cfs, rate) - target_dirty

        lo, hi = s.ytm_lower, s.ytm_upper
        try:
            if objective(lo) * objective(hi) > 0:
                raise ValueError("no sign change")
            return float(bisect(objective, lo, hi, xtol=1e-14, maxiter=500))
        except (ValueError, RuntimeError):
            raise ConvergenceError(
                "ytm", f"no yield in [{lo}, {hi}] reprices {target_dirty:.6f}",
                iterations=s.ytm_max_iterations,
            ) from None

    # ------------------------------------------------------------------
    # Curve pricing
    # ------------------------------------------------------------------

    def curve_price(self, cfs: BondCashflows, spread: float = 0.0,
                    curve: Optional[YieldCurve] = None) -> float:
        """Sum of CF * P(0,t) * exp(-spread * t)."""
        curve = curve or self.curve
        t = cfs.times
        return float(np.sum(cfs.amounts * curve.discount_factor(t) * np.exp(-spread * t)))

    def z_spread(self, cfs: BondCashflows, target_dirty: float) -> float:
        """Constant continuous spread over the curve matching ``target_dirty``."""
        def objective(s: float) -> float:
            return self.curve_price(cfs, s) - target_dirty

        try:
            return float(brentq(objective, -0.5, 5.0, xtol=1e-12))
        except ValueError:
            raise ConvergenceError("z_spread", f"no spread reprices {target_dirty:.6f}") from None

    def key_rate_durations(self, cfs: BondCashflows, spread: float, bp: float = 1.0) -> Dict[float, float]:
        """
        Key-rate durations by bumping each curve anchor.

        Returns:
            {anchor maturity: -(P_up - P_down) / (2 * P * dy)}
        """
        base = self.curve_price(cfs, spread)
        dy = bp / 10000.0
        krd = {}
        for i, tenor in enumerate(self.curve.maturities):
            p_up = self.curve_price(cfs, spread, self.curve.bump_node(i, bp))
            p_dn = self.curve_price(cfs, spread, self.curve.bump_node(i, -bp))
            krd[float(tenor)] = -(p_up - p_dn) / (2.0 * base * dy)
        return krd

    # ------------------------------------------------------------------
    # Duration and convexity
    # ------------------------------------------------------------------

    @staticmethod
    def macaulay_duration(cfs: BondCashflows, y: float) -> float:
        """Macaulay duration in years."""
        base = 1.0 + y / cfs.frequency
        tau = cfs.periods
        pv = cfs.amounts * base ** (-tau)
        return float(np.sum(tau * pv) / np.sum(pv) / cfs.frequency)

    @staticmethod
    def convexity(cfs: BondCashflows, y: float) -> float:
        """Convexity in years^2: sum t(t+1) CF / (1+y/f)^(t+2) / P / f^2."""
        f = cfs.frequency
        base = 1.0 + y / f
        tau = cfs.periods
        price = np.sum(cfs.amounts * base ** (-tau))
        return float(np.sum(tau * (tau + 1) * cfs.amounts * base ** (-(tau + 2))) / price / f ** 2)

    # ------------------------------------------------------------------
    # Lattice (embedded options)
    # ------------------------------------------------------------------

    def _lattice(self, cfs: BondCashflows, volatility: float,
                 curve: Optional[YieldCurve] = None) -> ShortRateLattice:
        times = np.concatenate([[0.0], cfs.times])
        return ShortRateLattice(curve or self.curve, times, volatility, self.cancel_token)

    @staticmethod
    def _boundary(cfs: BondCashflows, options: Sequence[EmbeddedOption]) -> ExerciseBoundary:
        step_times = cfs.times
        calls: Dict[int, float] = {}
        puts: Dict[int, float] = {}
        for opt in options:
            steps = exercise_steps(step_times, opt.exercise_dates, opt.exercise_style.value)
            target = calls if opt.option_type is OptionType.CALL else puts
            for k in steps:
                if k in target:
                    # Most favourable level for the exercising party
                    if opt.option_type is OptionType.CALL:
                        target[k] = min(target[k], opt.exercise_price)
                    else:
                        target[k] = max(target[k], opt.exercise_price)
                else:
                    target[k] = opt.exercise_price
        return ExerciseBoundary(call_prices=calls, put_prices=puts)

    def option_adjusted_spread(
        self,
        lattice: ShortRateLattice,
        cfs: BondCashflows,
        boundary: ExerciseBoundary,
        target_dirty: float,
    ) -> float:
        """Bisection for the spread at which the lattice price equals the target."""
        s = self.settings

        def objective(spread: float) -> float:
            return lattice.rollback(cfs.amounts, spread, boundary, self.cancel_token) - target_dirty

        lo, hi = s.oas_lower, s.oas_upper
        f_lo, f_hi = objective(lo), objective(hi)
        if f_lo * f_hi > 0:
            raise ConvergenceError("oas", f"target {target_dirty:.6f} outside OAS bracket [{lo}, {hi}]")
        return float(bisect(objective, lo, hi, xtol=1e-10, maxiter=200))

    # ------------------------------------------------------------------
    # Full analysis
    # ------------------------------------------------------------------

    def price(
        self,
        terms: BondTerms,
        credit: Optional[CreditAnalysis] = None,
        embedded_options: Sequence[EmbeddedOption] = (),
        tax: Optional[TaxAnalysis] = None,
    ) -> BondResult:
        """
        Price a bond and compute its analytics.

        Args:
            terms: Bond terms
            credit: Credit inputs (spread used when pricing off the curve)
            embedded_options: Call/put features
            tax: Investor tax rates

        Returns:
            BondResult
        """
        options = list(embedded_options)
        _validate_structure(terms, options)
        notes: List[str] = []

        if terms.structure is BondStructure.CONVERTIBLE:
            msg = "Conversion feature is not modelled; convertible priced as a straight bond"
            notes.append(msg)
            warnings.warn(msg, ModelFallbackWarning, stacklevel=3)
            logger.warning(msg)
            options = []

        credit = credit or CreditAnalysis()
        cfs = self.generate_cashflows(terms)
        accrued = cfs.accrued_interest
        has_options = bool(options)
        s = self.settings

        lattice = boundary = None
        if has_options:
            lattice = self._lattice(cfs, options[0].volatility)
            boundary = self._boundary(cfs, options)
        check_cancelled(self.cancel_token)

        # Target dirty price
        if terms.market_price is not None:
            dirty = terms.market_price + accrued
        elif terms.market_yield is not None:
            dirty = self.price_from_yield(cfs, terms.market_yield)
        elif has_options:
            dirty = lattice.rollback(cfs.amounts, credit.spread, boundary, self.cancel_token)
        else:
            dirty = self.curve_price(cfs, credit.spread)

        clean = dirty - accrued
        dirty = clean + accrued

        if terms.market_yield is not None and terms.market_price is None:
            ytm = float(terms.market_yield)
        else:
            ytm = self.solve_yield(cfs, dirty)

        macaulay = self.macaulay_duration(cfs, ytm)
        modified = macaulay / (1.0 + ytm / terms.frequency)
        convexity = self.convexity(cfs, ytm)

        z = self.z_spread(cfs, dirty)
        curve_zero = self.curve.zero_rate(terms.maturity)
        par_basis = convert_rate(curve_zero, CompoundingConvention.CONTINUOUS,
                                 CompoundingConvention.from_frequency(terms.frequency))
        i_spread = ytm - par_basis

        dy_bp = s.effective_shift_bp
        dy = dy_bp / 10000.0
        option_value = 0.0
        if has_options:
            if terms.market_price is None and terms.market_yield is None:
                oas = credit.spread
            else:
                oas = self.option_adjusted_spread(lattice, cfs, boundary, dirty)
            straight = lattice.rollback(cfs.amounts, oas, None, self.cancel_token)
            option_value = dirty - straight

            up = self._lattice(cfs, options[0].volatility, self.curve.shift_parallel(dy_bp))
            dn = self._lattice(cfs, options[0].volatility, self.curve.shift_parallel(-dy_bp))
            p_up = up.rollback(cfs.amounts, oas, boundary, self.cancel_token)
            p_dn = dn.rollback(cfs.amounts, oas, boundary, self.cancel_token)
        else:
            oas = z
            p_up = self.price_from_yield(cfs, ytm + dy)
            p_dn = self.price_from_yield(cfs, ytm - dy)

        effective_duration = (p_dn - p_up) / (2.0 * dirty * dy)
        effective_convexity = (p_dn + p_up - 2.0 * dirty) / (dirty * dy ** 2)

        one_bp = 1e-4
        pvbp = (self.price_from_yield(cfs, ytm - one_bp) - self.price_from_yield(cfs, ytm + one_bp)) / 2.0
        # Analytic duration ignores exercise, so option bonds use the lattice measure
        dv01 = (effective_duration if has_options else modified) * dirty * one_bp

        ytc, yields_to_call = self._yields_to_exercise(cfs, options, OptionType.CALL, dirty, ytm)
        ytw = min([ytm] + yields_to_call)

        result = BondResult(
            dirty_price=dirty,
            clean_price=clean,
            accrued_interest=accrued,
            ytm=ytm,
            ytc=ytc,
            ytw=ytw,
            current_yield=terms.face_value * terms.coupon_rate / clean,
            macaulay_duration=macaulay,
            modified_duration=modified,
            effective_duration=effective_duration,
            convexity=convexity,
            effective_convexity=effective_convexity,
            dv01=dv01,
            pvbp=pvbp,
            z_spread=z,
            i_spread=i_spread,
            oas=oas,
            credit_var=credit.credit_var(terms.face_value),
            expected_loss=credit.expected_loss(terms.face_value),
            option_value=option_value,
            after_tax_yield=tax.after_tax_yield(ytm) if tax else None,
            tax_equivalent_yield=tax.tax_equivalent_yield(ytm) if tax else None,
            frequency=terms.frequency,
            key_rate_durations=self.key_rate_durations(cfs, z),
            cashflows=cfs,
            warnings=tuple(notes),
            has_embedded_options=has_options,
        )
        logger.debug("Priced bond: dirty=%.6f ytm=%.6f oas=%.6f", dirty, ytm, oas)
        return result

    def _yields_to_exercise(
        self,
        cfs: BondCashflows,
        options: Sequence[EmbeddedOption],
        option_type: OptionType,
        dirty: float,
        guess: float,
    ) -> Tuple[Optional[float], List[float]]:
        """Yield to first exercise date and yields to every eligible date."""
        exercisable = [o for o in options if o.option_type is option_type]
        if not exercisable:
            return None, []

        step_times = cfs.times
        yields: Dict[float, float] = {}
        for opt in exercisable:
            for k in exercise_steps(step_times, opt.exercise_dates, opt.exercise_style.value):
                t = float(step_times[k - 1])
                if t in yields:
                    continue
                yields[t] = self.solve_yield(cfs.truncated(t, opt.exercise_price), dirty, guess)

        first = min(yields)
        return yields[first], list(yields.values())


def _validate_structure(terms: BondTerms, options: Sequence[EmbeddedOption]) -> None:
    types = {o.option_type for o in options}
    if terms.structure is BondStructure.FIXED and options:
        raise ValidationError("fixed bonds cannot carry embedded options",
                              field="embedded_options", value=len(options))
    if terms.structure is BondStructure.CALLABLE and OptionType.CALL not in types:
        raise ValidationError("callable bond requires a call option",
                              field="embedded_options", value=sorted(t.value for t in types))
    if terms.structure is BondStructure.PUTABLE and OptionType.PUT not in types:
        raise ValidationError("putable bond requires a put option",
                              field="embedded_options", value=sorted(t.value for t in types))
    for opt in options:
        if max(opt.exercise_dates) > terms.maturity + 1e-9:
            raise ValidationError("exercise date beyond maturity", field="exercise_dates",
                                  value=opt.exercise_dates)


def price_bond(
    terms: BondTerms,
    curve: YieldCurve,
    credit: Optional[CreditAnalysis] = None,
    embedded_options: Sequence[EmbeddedOption] = (),
    tax: Optional[TaxAnalysis] = None,
    settings: Optional[NumericalSettings] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> BondResult:
    """
    Convenience function to price a bond.

    Args:
        terms: Bond terms
        curve: Risk-free yield curve
        credit: Credit inputs
        embedded_options: Call/put features
        tax: Investor tax rates
        settings: Numerical settings

    Returns:
        BondResult
    """
    return BondPricer(curve, settings, cancel_token).price(terms, credit, embedded_options, tax)


__all__ = [
    "CREDIT_RATINGS",
    "BondTerms",
    "EmbeddedOption",
    "CreditAnalysis",
    "TaxAnalysis",
    "BondCashflow",
    "BondCashflows",
    "BondResult",
    "BondPricer",
    "price_bond",
]
