"""
Yield curve representation and operations.

The YieldCurve class provides:
- Discount factor P(0,t)
- Zero rate z(t)
- Forward rate f(t1, t2)
- Instantaneous forward rate f(t)
- YieldCurvePoint snapshots (spot, forward, discount factor)

Anchors are (maturity, discount factor) pairs with strictly increasing
maturities. A node at t=0 with P=1 is always implied. Interpolation happens
in log discount factor space; beyond the last anchor the curve extrapolates
flat at the last forward rate.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Union
import numpy as np

from ..conventions import CompoundingConvention, convert_rate
from ..exceptions import ValidationError
from .interpolation import Interpolator, create_interpolator

ArrayLike = Union[float, np.ndarray]


@dataclass(frozen=True)
class YieldCurvePoint:
    """
    A single observation of the curve.

    Attributes:
        maturity: Year fraction
        spot_rate: Continuously compounded zero rate
        forward_rate: Instantaneous forward rate at maturity
        discount_factor: P(0, maturity)
    """
    maturity: float
    spot_rate: float
    forward_rate: float
    discount_factor: float

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary."""
        return {
            "maturity": self.maturity,
            "spot_rate": self.spot_rate,
            "forward_rate": self.forward_rate,
            "discount_factor": self.discount_factor,
        }


class YieldCurve:
    """
    Discount curve built from anchor points.

    Attributes:
        interpolation_method: Name of interpolation method
        name: Free-form label

    Conventions:
        - Zero rates are continuously compounded
        - Times are year fractions from today
        - Discount factor at t=0 is 1.0
    """

    def __init__(
        self,
        maturities: Sequence[float],
        discount_factors: Sequence[float],
        interpolation_method: str = "log_linear",
        name: str = "",
    ):
        maturities = np.asarray(maturities, dtype=np.float64)
        dfs = np.asarray(discount_factors, dtype=np.float64)

        if maturities.ndim != 1 or len(maturities) == 0:
            raise ValidationError("at least one anchor is required", field="maturities",
                                  value=list(maturities.ravel()))
        if len(maturities) != len(dfs):
            raise ValidationError("maturities and discount factors differ in length",
                                  field="discount_factors", value=len(dfs))
        if np.any(maturities <= 0):
            raise ValidationError("anchor maturities must be positive",
                                  field="maturities", value=maturities.tolist())
        if np.any(np.diff(maturities) <= 0):
            raise ValidationError("anchors must be sorted by strictly increasing maturity",
                                  field="maturities", value=maturities.tolist())
        if np.any(~np.isfinite(dfs)) or np.any(dfs <= 0):
            raise ValidationError("discount factors must be positive",
                                  field="discount_factors", value=dfs.tolist())

        self.interpolation_method = interpolation_method
        self.name = name
        self._maturities = maturities
        self._dfs = dfs

        self._interpolator: Interpolator = create_interpolator(interpolation_method)
        self._interpolator.fit(
            np.concatenate([[0.0], maturities]),
            np.concatenate([[0.0], np.log(dfs)]),
        )

    @classmethod
    def from_zero_rates(
        cls,
        maturities: Sequence[float],
        zero_rates: Sequence[float],
        compounding: CompoundingConvention = CompoundingConvention.CONTINUOUS,
        **kwargs
    ) -> "YieldCurve":
        """
        Build a curve from zero rates.

        Args:
            maturities: Anchor year fractions
            zero_rates: Zero rates quoted in ``compounding``
            compounding: Quote convention of the rates
        """
        maturities = np.asarray(maturities, dtype=np.float64)
        cont = np.array([
            convert_rate(z, compounding, CompoundingConvention.CONTINUOUS, t)
            for z, t in zip(zero_rates, maturities)
        ])
        return cls(maturities, np.exp(-cont * maturities), **kwargs)

    @property
    def maturities(self) -> np.ndarray:
        return self._maturities.copy()

    @property
    def anchor_discount_factors(self) -> np.ndarray:
        return self._dfs.copy()

    def discount_factor(self, t: ArrayLike) -> ArrayLike:
        """
        Get discount factor P(0,t).

        Args:
            t: Year fraction (scalar or array)

        Returns:
            Discount factor
        """
        return np.exp(self._interpolator.interpolate(t))

    def zero_rate(
        self,
        t: float,
        compounding: CompoundingConvention = CompoundingConvention.CONTINUOUS
    ) -> float:
        """
        Get zero rate z(t).

        Args:
            t: Year fraction
            compounding: Compounding convention for output

        Returns:
            Zero rate (default continuously compounded)
        """
        if t <= 0:
            # Short rate
            z = self.instantaneous_forward(0.0)
        else:
            z = -self._interpolator.interpolate(t) / t
        return convert_rate(z, CompoundingConvention.CONTINUOUS, compounding, max(t, 1e-12))

    def forward_rate(
        self,
        t1: float,
        t2: float,
        compounding: CompoundingConvention = CompoundingConvention.SIMPLE
    ) -> float:
        """
        Get forward rate f(t1, t2).

        Args:
            t1: Start time
            t2: End time
            compounding: Compounding convention

        Returns:
            Forward rate between t1 and t2
        """
        if t2 <= t1:
            raise ValidationError("t2 must be greater than t1", field="t2", value=t2)

        delta = t2 - t1
        cont = (self._interpolator.interpolate(t1) - self._interpolator.interpolate(t2)) / delta
        return convert_rate(cont, CompoundingConvention.CONTINUOUS, compounding, delta)

    def instantaneous_forward(self, t: ArrayLike) -> ArrayLike:
        """
        Get instantaneous forward rate f(t) = -d/dt log P(0,t).

        The curve's log discount factors are piecewise linear under the
        default interpolation, so f(t) is piecewise constant.
        """
        return self._interpolator.forward(t)

    def rate(self, maturity: float) -> YieldCurvePoint:
        """Spot rate, forward rate and discount factor at a maturity."""
        if maturity < 0:
            raise ValidationError("maturity must be non-negative", field="maturity", value=maturity)
        return YieldCurvePoint(
            maturity=float(maturity),
            spot_rate=float(self.zero_rate(maturity)),
            forward_rate=float(self.instantaneous_forward(maturity)),
            discount_factor=float(self.discount_factor(maturity)),
        )

    def points(self, maturities: Iterable[float]) -> List[YieldCurvePoint]:
        """Curve snapshots at several maturities."""
        return [self.rate(t) for t in maturities]

    def shift_parallel(self, bp: float) -> "YieldCurve":
        """
        Create a new curve with every anchor zero rate shifted.

        Args:
            bp: Bump size in basis points

        Returns:
            New bumped curve
        """
        bump = bp / 10000.0
        return YieldCurve(
            self._maturities,
            self._dfs * np.exp(-bump * self._maturities),
            interpolation_method=self.interpolation_method,
            name=self.name,
        )

    def bump_node(self, node_index: int, bp: float) -> "YieldCurve":
        """
        Create a new curve with a single anchor's zero rate bumped.

        Args:
            node_index: Index of anchor to bump (0-based)
            bp: Bump size in basis points
        """
        if node_index < 0 or node_index >= len(self._maturities):
            raise IndexError(f"Invalid node index: {node_index}")

        dfs = self._dfs.copy()
        dfs[node_index] *= np.exp(-bp / 10000.0 * self._maturities[node_index])
        return YieldCurve(self._maturities, dfs,
                          interpolation_method=self.interpolation_method, name=self.name)

    def __repr__(self) -> str:
        return (f"YieldCurve(name={self.name!r}, anchors={len(self._maturities)}, "
                f"method={self.interpolation_method})")


def create_flat_curve(
    rate: float,
    max_tenor_years: float = 30.0,
    compounding: CompoundingConvention = CompoundingConvention.CONTINUOUS,
) -> YieldCurve:
    """
    Create a flat yield curve.

    Args:
        rate: Flat rate quoted in ``compounding``
        max_tenor_years: Maximum tenor in years
        compounding: Quote convention of ``rate``

    Returns:
        Flat curve
    """
    tenors = [t for t in [0.25, 0.5, 1, 2, 5, 10, 20] if t < max_tenor_years]
    tenors.append(max_tenor_years)
    return YieldCurve.from_zero_rates(tenors, [rate] * len(tenors), compounding=compounding,
                                      name=f"flat_{rate:.4%}")


__all__ = [
    "YieldCurve",
    "YieldCurvePoint",
    "create_flat_curve",
]
