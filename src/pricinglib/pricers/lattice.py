"""
Black-Derman-Toy short-rate lattice for bonds with embedded options.

The lattice is a recombining binomial tree of continuously compounded short
rates r(i, j) = a_i * exp(b_i * j), j = 0..i, with b_i = 2 * sigma * sqrt(dt_i).
The drift terms a_i are calibrated step by step so that the lattice reprices
the input curve's discount factors exactly, using Arrow-Debreu state prices
propagated forward through the tree.

Step boundaries are supplied by the caller (bond coupon dates), so the grid
may be non-uniform in its first step.

References:
- Black, F., Derman, E. and Toy, W. (1990). "A One-Factor Model of Interest
  Rates and Its Application to Treasury Bond Options."
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np
from scipy.optimize import brentq

from ..curves.curve import YieldCurve
from ..exceptions import ConvergenceError, ValidationError
from ..jobs import CancellationToken, check_cancelled

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExerciseBoundary:
    """
    Exercise rule applied at lattice steps.

    Attributes:
        call_prices: step index -> price at which the issuer may call
        put_prices: step index -> price at which the holder may put
    """
    call_prices: Dict[int, float]
    put_prices: Dict[int, float]

    @property
    def is_empty(self) -> bool:
        return not self.call_prices and not self.put_prices


class ShortRateLattice:
    """
    Calibrated BDT lattice.

    Attributes:
        times: Step boundaries t_0 = 0 < t_1 < ... < t_N
        volatility: Lognormal short-rate volatility
        rates: rates[i] is the array of short rates on step i (length i+1)
    """

    def __init__(
        self,
        curve: YieldCurve,
        times: Sequence[float],
        volatility: float,
        cancel_token: Optional[CancellationToken] = None,
    ):
        times = np.asarray(times, dtype=np.float64)
        if times[0] != 0.0 or np.any(np.diff(times) <= 0):
            raise ValidationError("lattice times must start at 0 and increase",
                                  field="times", value=times.tolist())
        if volatility < 0:
            raise ValidationError("short-rate volatility must be non-negative",
                                  field="volatility", value=volatility)

        self.times = times
        self.volatility = float(volatility)
        self.dt = np.diff(times)
        self.rates: List[np.ndarray] = []
        self._calibrate(curve, cancel_token)

    @property
    def n_steps(self) -> int:
        return len(self.dt)

    def _calibrate(self, curve: YieldCurve, cancel_token: Optional[CancellationToken]) -> None:
        """Forward induction on Arrow-Debreu prices, one root solve per step."""
        targets = curve.discount_factor(self.times[1:])
        q = np.array([1.0])

        for i, dt in enumerate(self.dt):
            check_cancelled(cancel_token)
            spacing = 2.0 * self.volatility * np.sqrt(dt) * np.arange(i + 1)
            target = float(targets[i])

            def objective(log_a: float) -> float:
                r = np.exp(log_a + spacing)
                return float(np.sum(q * np.exp(-r * dt))) - target

            try:
                log_a = brentq(objective, -40.0, 3.0, xtol=1e-14)
            except ValueError:
                raise ConvergenceError(
                    "bdt_calibration",
                    f"cannot match discount factor {target:.6f} at t={self.times[i + 1]:.4f}; "
                    "lognormal short rates require positive forward rates"
                ) from None

            r = np.exp(log_a + spacing)
            self.rates.append(r)

            disc = q * np.exp(-r * dt)
            q_next = np.zeros(i + 2)
            q_next[:-1] += 0.5 * disc
            q_next[1:] += 0.5 * disc
            q = q_next

        logger.debug("Calibrated BDT lattice with %d steps, sigma=%.4f", self.n_steps, self.volatility)

    def rollback(
        self,
        cashflows: Sequence[float],
        spread: float = 0.0,
        exercise: Optional[ExerciseBoundary] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> float:
        """
        Value a cash-flow stream by backward induction.

        Args:
            cashflows: Amount paid at each step boundary t_1..t_N
            spread: Constant spread added to every short rate (the OAS)
            exercise: Call caps / put floors on the ex-coupon value

        Returns:
            Value at t_0
        """
        cashflows = np.asarray(cashflows, dtype=np.float64)
        if len(cashflows) != self.n_steps:
            raise ValidationError("one cash flow per lattice step is required",
                                  field="cashflows", value=len(cashflows))

        calls = exercise.call_prices if exercise else {}
        puts = exercise.put_prices if exercise else {}

        # Values at t_N before the final payment
        values = np.zeros(self.n_steps + 1)
        for k in range(self.n_steps, 0, -1):
            # values are ex-coupon at step boundary k; the bond redeems at
            # t_N, so exercise there has nothing left to act on
            if k < self.n_steps:
                if k in calls:
                    values = np.minimum(values, calls[k])
                if k in puts:
                    values = np.maximum(values, puts[k])
            values = values + cashflows[k - 1]

            i = k - 1
            disc = np.exp(-(self.rates[i] + spread) * self.dt[i])
            values = disc * 0.5 * (values[:-1] + values[1:])
            if i % 64 == 0:
                check_cancelled(cancel_token)

        return float(values[0])


def exercise_steps(
    step_times: np.ndarray,
    exercise_dates: Sequence[float],
    style: str,
) -> List[int]:
    """
    Map exercise dates to lattice step indices.

    - european: first listed date only
    - bermudan: every listed date
    - american: every step from the first listed date onward

    Args:
        step_times: Step boundaries t_1..t_N (without t_0)
        exercise_dates: Exercise dates in years
        style: "european", "bermudan" or "american"
    """
    dates = sorted(float(d) for d in exercise_dates)
    if not dates:
        return []

    def nearest(d: float) -> int:
        return int(np.argmin(np.abs(step_times - d))) + 1

    if style == "european":
        return [nearest(dates[0])]
    if style == "bermudan":
        return sorted({nearest(d) for d in dates})
    first = nearest(dates[0])
    return list(range(first, len(step_times) + 1))


__all__ = [
    "ExerciseBoundary",
    "ShortRateLattice",
    "exercise_steps",
]
