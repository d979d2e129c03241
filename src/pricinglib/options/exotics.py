"""
Exotic payoffs: barrier, Asian and lookback options.

Closed forms (Black-Scholes dynamics, continuous dividend yield q):
- Single-barrier European options: Reiner-Rubinstein (1991) as tabulated by
  Haug; rebates are paid at expiry
- First-passage (knock) probability for a continuously monitored barrier
- Discrete geometric-average Asian options (Kemna-Vorst)
- Arithmetic Asian options by lognormal moment matching (Levy)
- Floating-strike lookback options (Goldman-Sosin-Gatto)

Monte Carlo payoffs for every exotic are provided for the other models and
for cases without a closed form (fixed-strike lookbacks, arithmetic Asians on
request).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

import numpy as np
from scipy.stats import norm

from ..exceptions import ValidationError
from .base_models import black_scholes_price
from .monte_carlo import PathPayoff, barrier_hit

N = norm.cdf


class BarrierType(Enum):
    UP_AND_IN = "up_and_in"
    UP_AND_OUT = "up_and_out"
    DOWN_AND_IN = "down_and_in"
    DOWN_AND_OUT = "down_and_out"

    @property
    def is_up(self) -> bool:
        return self in (BarrierType.UP_AND_IN, BarrierType.UP_AND_OUT)

    @property
    def is_knock_in(self) -> bool:
        return self in (BarrierType.UP_AND_IN, BarrierType.DOWN_AND_IN)


class AveragingType(Enum):
    ARITHMETIC = "arithmetic"
    GEOMETRIC = "geometric"


class LookbackType(Enum):
    FLOATING_STRIKE = "floating_strike"
    FIXED_STRIKE = "fixed_strike"


@dataclass(frozen=True)
class BarrierSpec:
    """Single continuously monitored barrier."""
    barrier: float
    barrier_type: BarrierType
    rebate: float = 0.0

    def __post_init__(self):
        if not isinstance(self.barrier_type, BarrierType):
            object.__setattr__(self, "barrier_type", BarrierType(str(self.barrier_type).lower()))
        if not self.barrier > 0:
            raise ValidationError("barrier must be positive", field="barrier", value=self.barrier)
        if self.rebate < 0:
            raise ValidationError("rebate must be non-negative", field="rebate", value=self.rebate)


@dataclass(frozen=True)
class AsianSpec:
    """
    Average-price option.

    Attributes:
        averaging: ARITHMETIC or GEOMETRIC
        fixings: Number of equally spaced fixings ending at expiry
        use_monte_carlo: Price arithmetic averages by simulation instead of
            moment matching
    """
    averaging: AveragingType = AveragingType.ARITHMETIC
    fixings: int = 12
    use_monte_carlo: bool = False

    def __post_init__(self):
        if not isinstance(self.averaging, AveragingType):
            object.__setattr__(self, "averaging", AveragingType(str(self.averaging).lower()))
        if self.fixings < 1:
            raise ValidationError("at least one fixing is required", field="fixings",
                                  value=self.fixings)


@dataclass(frozen=True)
class LookbackSpec:
    """Lookback option on the path extremum (observed from today)."""
    lookback_type: LookbackType = LookbackType.FLOATING_STRIKE

    def __post_init__(self):
        if not isinstance(self.lookback_type, LookbackType):
            object.__setattr__(self, "lookback_type", LookbackType(str(self.lookback_type).lower()))


# ---------------------------------------------------------------------------
# Barrier
# ---------------------------------------------------------------------------

def barrier_hit_probability(S: float, H: float, T: float, r: float, q: float, sigma: float) -> float:
    """
    Risk-neutral probability that a continuously monitored barrier is touched.

    Uses the first-passage law of drifted Brownian motion for ln S.
    """
    if H == S:
        return 1.0
    if T <= 0:
        return 0.0
    if sigma <= 0:
        # Deterministic path: S e^{(r-q)t}
        end = S * np.exp((r - q) * T)
        return 1.0 if (H > S and end >= H) or (H < S and end <= H) else 0.0

    nu = r - q - 0.5 * sigma ** 2
    vol = sigma * np.sqrt(T)
    x = np.log(H / S)
    power = (H / S) ** (2 * nu / sigma ** 2)
    if H < S:
        p = N((x - nu * T) / vol) + power * N((x + nu * T) / vol)
    else:
        p = N((-x + nu * T) / vol) + power * N((-x - nu * T) / vol)
    return float(min(max(p, 0.0), 1.0))


def barrier_price(
    S: float,
    K: float,
    T: float,
    r: float,
    q: float,
    sigma: float,
    spec: BarrierSpec,
    is_call: bool = True,
) -> Tuple[float, float]:
    """
    Reiner-Rubinstein single-barrier price.

    Returns:
        (price, knock probability)
    """
    H = spec.barrier
    btype = spec.barrier_type
    df = np.exp(-r * T)
    breached = (btype.is_up and S >= H) or (not btype.is_up and S <= H)
    if breached or T <= 0:
        vanilla = black_scholes_price(S, K, T, r, q, sigma, is_call)
        if btype.is_knock_in:
            return (vanilla, 1.0) if breached else (spec.rebate * df, 0.0)
        return (spec.rebate * df, 1.0) if breached else (vanilla, 0.0)

    hit_prob = barrier_hit_probability(S, H, T, r, q, sigma)
    if sigma <= 0:
        vanilla = black_scholes_price(S, K, T, r, q, sigma, is_call)
        alive = hit_prob if btype.is_knock_in else 1.0 - hit_prob
        return vanilla * alive + spec.rebate * df * (1.0 - alive), hit_prob

    b = r - q
    sqrt_t = np.sqrt(T)
    sv = sigma * sqrt_t
    mu = (b - 0.5 * sigma ** 2) / sigma ** 2
    phi = 1.0 if is_call else -1.0
    eta = -1.0 if btype.is_up else 1.0
    carry = np.exp((b - r) * T)

    x1 = np.log(S / K) / sv + (1 + mu) * sv
    x2 = np.log(S / H) / sv + (1 + mu) * sv
    y1 = np.log(H ** 2 / (S * K)) / sv + (1 + mu) * sv
    y2 = np.log(H / S) / sv + (1 + mu) * sv
    hs1 = (H / S) ** (2 * (mu + 1))
    hs2 = (H / S) ** (2 * mu)

    A = phi * S * carry * N(phi * x1) - phi * K * df * N(phi * x1 - phi * sv)
    B = phi * S * carry * N(phi * x2) - phi * K * df * N(phi * x2 - phi * sv)
    C = phi * S * carry * hs1 * N(eta * y1) - phi * K * df * hs2 * N(eta * y1 - eta * sv)
    D = phi * S * carry * hs1 * N(eta * y2) - phi * K * df * hs2 * N(eta * y2 - eta * sv)

    above = K > H
    table = {
        (BarrierType.DOWN_AND_IN, True): (C, A - B + D),
        (BarrierType.UP_AND_IN, True): (A, B - C + D),
        (BarrierType.DOWN_AND_IN, False): (B - C + D, A),
        (BarrierType.UP_AND_IN, False): (A - B + D, C),
        (BarrierType.DOWN_AND_OUT, True): (A - C, B - D),
        (BarrierType.UP_AND_OUT, True): (0.0, A - B + C - D),
        (BarrierType.DOWN_AND_OUT, False): (A - B + C - D, 0.0),
        (BarrierType.UP_AND_OUT, False): (B - D, A - C),
    }
    strike_above, strike_below = table[(btype, is_call)]
    value = strike_above if above else strike_below

    if btype.is_knock_in:
        rebate = spec.rebate * df * (1.0 - hit_prob)
    else:
        rebate = spec.rebate * df * hit_prob

    return float(max(value, 0.0) + rebate), hit_prob


def barrier_payoff(
    K: float,
    spec: BarrierSpec,
    is_call: bool,
    bridge_vol: Optional[float],
    dt: float,
) -> PathPayoff:
    """Monte Carlo payoff; reports the knock fraction as ``barrier_hit``."""
    phi = 1.0 if is_call else -1.0

    def payoff(paths: np.ndarray, rng: np.random.Generator):
        hit = barrier_hit(paths, spec.barrier, spec.barrier_type.is_up, rng, bridge_vol, dt)
        vanilla = np.maximum(phi * (paths[:, -1] - K), 0.0)
        active = hit if spec.barrier_type.is_knock_in else ~hit
        values = np.where(active, vanilla, spec.rebate)
        return values, {"barrier_hit": hit.astype(float)}

    return payoff


# ---------------------------------------------------------------------------
# Asian
# ---------------------------------------------------------------------------

def _fixing_times(T: float, fixings: int) -> np.ndarray:
    return T * np.arange(1, fixings + 1) / fixings


def geometric_asian_price(
    S: float, K: float, T: float, r: float, q: float, sigma: float,
    fixings: int, is_call: bool = True,
) -> Tuple[float, float]:
    """
    Discrete geometric-average price option.

    ln G is normal with mean m and variance v, so the price is a Black
    formula on E[G] = exp(m + v/2).

    Returns:
        (price, expected geometric average)
    """
    n = fixings
    b = r - q
    m = np.log(S) + (b - 0.5 * sigma ** 2) * T * (n + 1) / (2 * n)
    v = sigma ** 2 * T * (n + 1) * (2 * n + 1) / (6 * n ** 2)
    expected = float(np.exp(m + 0.5 * v))
    return _lognormal_black(expected, K, v, np.exp(-r * T), is_call), expected


def arithmetic_asian_price(
    S: float, K: float, T: float, r: float, q: float, sigma: float,
    fixings: int, is_call: bool = True,
) -> Tuple[float, float]:
    """
    Discrete arithmetic-average price option by moment matching.

    The first two moments of the average are matched to a lognormal.

    Returns:
        (price, expected arithmetic average)
    """
    b = r - q
    t = _fixing_times(T, fixings)
    m1 = S * np.mean(np.exp(b * t))
    ti, tj = np.meshgrid(t, t)
    m2 = S ** 2 * np.mean(np.exp(b * (ti + tj) + sigma ** 2 * np.minimum(ti, tj)))
    v = max(np.log(m2 / m1 ** 2), 0.0)
    return _lognormal_black(float(m1), K, v, np.exp(-r * T), is_call), float(m1)


def _lognormal_black(mean: float, K: float, v: float, df: float, is_call: bool) -> float:
    phi = 1.0 if is_call else -1.0
    if v <= 0:
        return float(df * max(phi * (mean - K), 0.0))
    sd = np.sqrt(v)
    d1 = (np.log(mean / K) + 0.5 * v) / sd
    d2 = d1 - sd
    return float(df * phi * (mean * N(phi * d1) - K * N(phi * d2)))


def asian_payoff(K: float, spec: AsianSpec, T: float, dt: float, is_call: bool) -> PathPayoff:
    """Monte Carlo payoff on the average over the fixing dates."""
    phi = 1.0 if is_call else -1.0
    idx = np.clip(np.rint(_fixing_times(T, spec.fixings) / dt).astype(int), 1, None)

    def payoff(paths: np.ndarray, rng: np.random.Generator):
        fixes = paths[:, np.minimum(idx, paths.shape[1] - 1)]
        if spec.averaging is AveragingType.GEOMETRIC:
            avg = np.exp(np.mean(np.log(fixes), axis=1))
        else:
            avg = np.mean(fixes, axis=1)
        return np.maximum(phi * (avg - K), 0.0), {"average_price": avg}

    return payoff


# ---------------------------------------------------------------------------
# Lookback
# ---------------------------------------------------------------------------

def floating_lookback_prices(S: float, T: float, r: float, q: float, sigma: float) -> Tuple[float, float]:
    """
    Goldman-Sosin-Gatto floating-strike lookback call and put at inception.

    Call pays S_T - min, put pays max - S_T.

    Returns:
        (call price, put price)
    """
    b = r - q
    # The closed form is singular at zero carry
    if abs(b) < 1e-8:
        b = 1e-8
    sqrt_t = np.sqrt(T)
    sv = sigma * sqrt_t
    carry = np.exp((b - r) * T)
    df = np.exp(-r * T)
    k = sigma ** 2 / (2 * b)

    a1 = (b + 0.5 * sigma ** 2) * T / sv
    a2 = a1 - sv
    call = (S * carry * N(a1) - S * df * N(a2)
            + S * df * k * (N(-a1 + 2 * b * sqrt_t / sigma) - np.exp(b * T) * N(-a1)))

    b1 = a1
    b2 = b1 - sv
    put = (S * df * N(-b2) - S * carry * N(-b1)
           + S * df * k * (-N(b1 - 2 * b * sqrt_t / sigma) + np.exp(b * T) * N(b1)))

    return float(call), float(put)


def expected_extrema(S: float, T: float, r: float, q: float, sigma: float) -> Tuple[float, float]:
    """
    Risk-neutral expected path minimum and maximum, backed out of the
    floating lookback prices.

    Returns:
        (E[min], E[max])
    """
    call, put = floating_lookback_prices(S, T, r, q, sigma)
    growth = np.exp(r * T)
    fwd_pv = S * np.exp(-q * T)
    return float(growth * (fwd_pv - call)), float(growth * (put + fwd_pv))


def lookback_payoff(K: float, spec: LookbackSpec, is_call: bool) -> PathPayoff:
    """Monte Carlo payoff on the discretely monitored path extrema."""

    def payoff(paths: np.ndarray, rng: np.random.Generator):
        low = np.min(paths, axis=1)
        high = np.max(paths, axis=1)
        last = paths[:, -1]
        if spec.lookback_type is LookbackType.FLOATING_STRIKE:
            values = last - low if is_call else high - last
        else:
            values = np.maximum(high - K, 0.0) if is_call else np.maximum(K - low, 0.0)
        return values, {"path_min": low, "path_max": high}

    return payoff


__all__ = [
    "BarrierType",
    "AveragingType",
    "LookbackType",
    "BarrierSpec",
    "AsianSpec",
    "LookbackSpec",
    "barrier_hit_probability",
    "barrier_price",
    "barrier_payoff",
    "geometric_asian_price",
    "arithmetic_asian_price",
    "asian_payoff",
    "floating_lookback_prices",
    "expected_extrema",
    "lookback_payoff",
]
