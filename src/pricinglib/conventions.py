"""
Market conventions, instrument enumerations and numerical settings.

Compounding:
- Continuous: P = exp(-z t)
- Periodic (m per year): P = (1 + z/m)^(-m t)
- Simple: P = 1 / (1 + z t)

NumericalSettings collects every tunable constant used by the engines
(solver tolerances, bump sizes, lattice depth) so that callers configure
precision explicitly rather than through globals.
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict
import numpy as np

from .exceptions import ValidationError


class Frequency(Enum):
    """Coupon payment frequency (payments per year)."""
    ANNUAL = 1
    SEMI_ANNUAL = 2
    QUARTERLY = 4
    MONTHLY = 12

    @classmethod
    def from_value(cls, value) -> "Frequency":
        """Parse a frequency from an int or a Frequency."""
        if isinstance(value, cls):
            return value
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            raise ValidationError("frequency must be one of 1, 2, 4, 12",
                                  field="frequency", value=value) from None


class CompoundingConvention(Enum):
    """Interest rate compounding convention."""
    CONTINUOUS = "Continuous"
    ANNUAL = "Annual"
    SEMI_ANNUAL = "SemiAnnual"
    QUARTERLY = "Quarterly"
    MONTHLY = "Monthly"
    SIMPLE = "Simple"

    @property
    def periods_per_year(self) -> int:
        return {
            CompoundingConvention.ANNUAL: 1,
            CompoundingConvention.SEMI_ANNUAL: 2,
            CompoundingConvention.QUARTERLY: 4,
            CompoundingConvention.MONTHLY: 12,
        }.get(self, 0)

    @classmethod
    def from_frequency(cls, frequency: int) -> "CompoundingConvention":
        """Periodic compounding matching a coupon frequency."""
        mapping = {1: cls.ANNUAL, 2: cls.SEMI_ANNUAL, 4: cls.QUARTERLY, 12: cls.MONTHLY}
        return mapping[Frequency.from_value(frequency).value]


class BondStructure(Enum):
    """Redemption structure of a bond."""
    FIXED = "fixed"
    CALLABLE = "callable"
    PUTABLE = "putable"
    CONVERTIBLE = "convertible"


class OptionType(Enum):
    """Option payoff direction."""
    CALL = "call"
    PUT = "put"

    @property
    def sign(self) -> int:
        return 1 if self is OptionType.CALL else -1

    @classmethod
    def from_string(cls, s) -> "OptionType":
        if isinstance(s, cls):
            return s
        key = str(s).strip().lower()
        for member in cls:
            if member.value == key:
                return member
        raise ValidationError("unknown option type", field="option_type", value=s)


class ExerciseStyle(Enum):
    """Exercise style of an option (bond or equity)."""
    EUROPEAN = "european"
    AMERICAN = "american"
    BERMUDAN = "bermudan"

    @classmethod
    def from_string(cls, s) -> "ExerciseStyle":
        if isinstance(s, cls):
            return s
        key = str(s).strip().lower()
        for member in cls:
            if member.value == key:
                return member
        raise ValidationError("unknown exercise style", field="exercise_style", value=s)


class VarianceReduction(Enum):
    """Monte Carlo variance-reduction technique."""
    NONE = "none"
    ANTITHETIC = "antithetic"
    CONTROL_VARIATE = "control_variate"


def convert_rate(
    rate: float,
    from_conv: CompoundingConvention,
    to_conv: CompoundingConvention,
    t: float = 1.0
) -> float:
    """
    Convert a rate between compounding conventions for horizon t.

    Args:
        rate: Rate quoted in from_conv
        from_conv: Source convention
        to_conv: Target convention
        t: Horizon in years (only matters for SIMPLE)

    Returns:
        Equivalent rate in to_conv
    """
    if from_conv == to_conv:
        return rate

    # Go through the continuously compounded rate
    if from_conv == CompoundingConvention.CONTINUOUS:
        z = rate
    elif from_conv == CompoundingConvention.SIMPLE:
        z = np.log1p(rate * t) / t
    else:
        m = from_conv.periods_per_year
        z = m * np.log1p(rate / m)

    if to_conv == CompoundingConvention.CONTINUOUS:
        return z
    if to_conv == CompoundingConvention.SIMPLE:
        return np.expm1(z * t) / t
    m = to_conv.periods_per_year
    return m * np.expm1(z / m)


@dataclass(frozen=True)
class NumericalSettings:
    """
    Tunable numerical constants.

    Attributes:
        ytm_tolerance: Newton-Raphson tolerance on price for YTM
        ytm_max_iterations: Newton-Raphson iteration cap
        ytm_lower / ytm_upper: Bisection bracket for the YTM fallback
        effective_shift_bp: Parallel shift for effective duration (1-10bp)
        oas_lower / oas_upper: Bisection bracket for OAS
        binomial_steps: Default CRR tree depth
        spot_bump_pct: Relative spot bump for finite-difference Greeks
        vol_bump: Absolute volatility bump
        time_bump: Time bump in years (one trading day)
        rate_bump: Absolute rate bump
        strategy_grid_points: Grid size for breakeven search
        strategy_grid_upper: Grid upper bound as a multiple of spot
    """
    ytm_tolerance: float = 1e-8
    ytm_max_iterations: int = 100
    ytm_lower: float = -0.99
    ytm_upper: float = 10.0
    effective_shift_bp: float = 10.0
    oas_lower: float = -0.2
    oas_upper: float = 0.2
    binomial_steps: int = 200
    spot_bump_pct: float = 0.01
    vol_bump: float = 1e-4
    time_bump: float = 1.0 / 252.0
    rate_bump: float = 1e-4
    strategy_grid_points: int = 2001
    strategy_grid_upper: float = 5.0

    def __post_init__(self):
        if not 1.0 <= self.effective_shift_bp <= 10.0:
            raise ValidationError("must be between 1bp and 10bp",
                                  field="effective_shift_bp", value=self.effective_shift_bp)
        if self.binomial_steps < 1:
            raise ValidationError("must be positive", field="binomial_steps",
                                  value=self.binomial_steps)
        if self.ytm_lower >= self.ytm_upper:
            raise ValidationError("empty bisection bracket", field="ytm_lower",
                                  value=(self.ytm_lower, self.ytm_upper))

    def to_dict(self) -> Dict:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def default(cls) -> "NumericalSettings":
        return cls()

    @classmethod
    def fast(cls) -> "NumericalSettings":
        """Coarser settings for interactive use."""
        return cls(binomial_steps=100, strategy_grid_points=501)

    @classmethod
    def precise(cls) -> "NumericalSettings":
        """Tighter settings for batch valuation."""
        return cls(
            ytm_tolerance=1e-12,
            ytm_max_iterations=200,
            effective_shift_bp=1.0,
            binomial_steps=1000,
            strategy_grid_points=8001,
        )


__all__ = [
    "Frequency",
    "CompoundingConvention",
    "BondStructure",
    "OptionType",
    "ExerciseStyle",
    "VarianceReduction",
    "convert_rate",
    "NumericalSettings",
]
