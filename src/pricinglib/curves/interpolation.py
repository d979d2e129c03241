"""
Interpolation methods for yield curves.

Provides:
- LogLinearInterpolator: linear in log discount factors (piecewise-flat
  forwards); the default, guarantees positive monotone discount factors
  for positive forwards
- LinearZeroInterpolator: linear in continuously compounded zero rates

Both interpolators work in year fractions and return log discount factors,
so the curve can treat them interchangeably. Beyond the last knot both
extrapolate flat at the last instantaneous forward rate.
"""

from abc import ABC, abstractmethod
from typing import Optional, Union
import numpy as np

ArrayLike = Union[float, np.ndarray]


class Interpolator(ABC):
    """Abstract base class for curve interpolation on log discount factors."""

    def __init__(self):
        self.times: Optional[np.ndarray] = None
        self.log_df: Optional[np.ndarray] = None

    def fit(self, times: np.ndarray, log_df: np.ndarray) -> None:
        """
        Fit the interpolator to knot points.

        Args:
            times: Year fractions, sorted ascending, starting at 0
            log_df: Log discount factors at the knots
        """
        times = np.asarray(times, dtype=np.float64)
        log_df = np.asarray(log_df, dtype=np.float64)
        if len(times) != len(log_df):
            raise ValueError("Times and values must have same length")
        if len(times) < 2:
            raise ValueError("Need at least 2 points for interpolation")
        self.times = times
        self.log_df = log_df
        self._fit()

    def _fit(self) -> None:
        pass

    def _check(self) -> None:
        if self.times is None or self.log_df is None:
            raise RuntimeError("Interpolator not fitted")

    @property
    def terminal_forward(self) -> float:
        """Instantaneous forward used beyond the last knot."""
        self._check()
        return float(self._forward_inside(np.array([self.times[-1]]), left=True)[0])

    def interpolate(self, t: ArrayLike) -> ArrayLike:
        """Log discount factor at t (scalar or array)."""
        self._check()
        t_arr = np.atleast_1d(np.asarray(t, dtype=np.float64))
        out = np.empty_like(t_arr)

        inside = t_arr <= self.times[-1]
        out[inside] = self._interpolate_inside(np.clip(t_arr[inside], 0.0, None))
        if np.any(~inside):
            f_last = self.terminal_forward
            out[~inside] = self.log_df[-1] - f_last * (t_arr[~inside] - self.times[-1])

        return float(out[0]) if np.ndim(t) == 0 else out

    def __call__(self, t: ArrayLike) -> ArrayLike:
        """Convenience method to call interpolate."""
        return self.interpolate(t)

    def forward(self, t: ArrayLike) -> ArrayLike:
        """
        Instantaneous forward rate f(t) = -d/dt log P(0,t).

        At a knot the forward of the segment ending there is used.
        """
        self._check()
        t_arr = np.atleast_1d(np.asarray(t, dtype=np.float64))
        out = np.full_like(t_arr, self.terminal_forward)
        inside = t_arr <= self.times[-1]
        out[inside] = self._forward_inside(t_arr[inside], left=True)
        return float(out[0]) if np.ndim(t) == 0 else out

    @abstractmethod
    def _interpolate_inside(self, t: np.ndarray) -> np.ndarray:
        pass

    @abstractmethod
    def _forward_inside(self, t: np.ndarray, left: bool) -> np.ndarray:
        pass

    def _segment(self, t: np.ndarray, left: bool) -> np.ndarray:
        side = "left" if left else "right"
        idx = np.searchsorted(self.times, t, side=side) - 1
        return np.clip(idx, 0, len(self.times) - 2)


class LogLinearInterpolator(Interpolator):
    """
    Log-linear interpolation on discount factors.

    Interpolates linearly in log(discount factor) space,
    which corresponds to piecewise constant forward rates.
    """

    def _interpolate_inside(self, t: np.ndarray) -> np.ndarray:
        return np.interp(t, self.times, self.log_df)

    def _forward_inside(self, t: np.ndarray, left: bool) -> np.ndarray:
        idx = self._segment(t, left)
        dt = self.times[idx + 1] - self.times[idx]
        return -(self.log_df[idx + 1] - self.log_df[idx]) / dt


class LinearZeroInterpolator(Interpolator):
    """
    Linear interpolation on continuously compounded zero rates.

    The zero rate at t=0 is taken equal to the first segment's rate.
    """

    def _fit(self) -> None:
        zero = np.empty_like(self.times)
        zero[1:] = -self.log_df[1:] / self.times[1:]
        zero[0] = zero[1]
        self._zero = zero

    def _interpolate_inside(self, t: np.ndarray) -> np.ndarray:
        return -np.interp(t, self.times, self._zero) * t

    def _forward_inside(self, t: np.ndarray, left: bool) -> np.ndarray:
        idx = self._segment(t, left)
        slope = (self._zero[idx + 1] - self._zero[idx]) / (self.times[idx + 1] - self.times[idx])
        z = np.interp(t, self.times, self._zero)
        # f(t) = z(t) + t z'(t)
        return z + t * slope


def create_interpolator(method: str) -> Interpolator:
    """
    Factory function to create an interpolator by name.

    Args:
        method: One of "log_linear", "linear_zero"

    Returns:
        Interpolator instance
    """
    method = method.lower().replace("-", "_").replace(" ", "_")

    if method in ("log_linear", "loglinear"):
        return LogLinearInterpolator()
    elif method in ("linear_zero", "linear"):
        return LinearZeroInterpolator()
    else:
        raise ValueError(f"Unknown interpolation method: {method}")


__all__ = [
    "Interpolator",
    "LogLinearInterpolator",
    "LinearZeroInterpolator",
    "create_interpolator",
]
