"""
Closed-form option pricing models.

Implements:
- Black-Scholes-Merton for spot options with continuous dividend yield
- Black'76 for options on forwards (used by the SABR engine)
- Analytic Black-Scholes Greeks up to third order
- Implied volatility inversion

Degenerate inputs are terminal states, not errors:
- T = 0 returns intrinsic value
- sigma = 0 returns max(S e^{-qT} - K e^{-rT}, 0) for calls (puts mirrored)
"""

import logging
from typing import Tuple

import numpy as np
from scipy.optimize import brentq
from scipy.stats import norm

from ..exceptions import ConvergenceError, ValidationError
from .greeks import GreeksSet

logger = logging.getLogger(__name__)

# Standard normal CDF and PDF
N = norm.cdf
n = norm.pdf


def _d1_d2(S: float, K: float, T: float, r: float, q: float, sigma: float) -> Tuple[float, float]:
    sqrt_t = np.sqrt(T)
    d1 = (np.log(S / K) + (r - q + 0.5 * sigma ** 2) * T) / (sigma * sqrt_t)
    return d1, d1 - sigma * sqrt_t


def black_scholes_price(
    S: float,
    K: float,
    T: float,
    r: float,
    q: float,
    sigma: float,
    is_call: bool = True
) -> float:
    """
    Black-Scholes-Merton European option price.

    Args:
        S: Spot
        K: Strike
        T: Time to expiry (years)
        r: Continuously compounded risk-free rate
        q: Continuous dividend yield
        sigma: Lognormal volatility
        is_call: True for call, False for put

    Returns:
        Option price
    """
    phi = 1.0 if is_call else -1.0
    if T <= 0:
        return max(phi * (S - K), 0.0)

    fwd_s = S * np.exp(-q * T)
    fwd_k = K * np.exp(-r * T)
    if sigma <= 0:
        return max(phi * (fwd_s - fwd_k), 0.0)

    d1, d2 = _d1_d2(S, K, T, r, q, sigma)
    return float(phi * (fwd_s * N(phi * d1) - fwd_k * N(phi * d2)))


def black_scholes_call(S, K, T, r, q, sigma) -> float:
    return black_scholes_price(S, K, T, r, q, sigma, True)


def black_scholes_put(S, K, T, r, q, sigma) -> float:
    return black_scholes_price(S, K, T, r, q, sigma, False)


def black76_call(
    F: float,
    K: float,
    T: float,
    sigma_b: float,
    df: float = 1.0
) -> float:
    """
    Black'76 model call option price.

    Assumes forward follows geometric Brownian motion:
    dF = sigma_b * F * dW

    Args:
        F: Forward
        K: Strike
        T: Time to expiry
        sigma_b: Black (lognormal) volatility
        df: Discount factor

    Returns:
        Call option price
    """
    if T <= 0 or sigma_b <= 0:
        return max(F - K, 0) * df

    if F <= 0 or K <= 0:
        raise ValidationError("forward and strike must be positive for Black model",
                              field="forward", value=(F, K))

    sqrt_t = np.sqrt(T)
    d1 = (np.log(F / K) + 0.5 * sigma_b**2 * T) / (sigma_b * sqrt_t)
    d2 = d1 - sigma_b * sqrt_t

    return float(df * (F * N(d1) - K * N(d2)))


def black76_put(
    F: float,
    K: float,
    T: float,
    sigma_b: float,
    df: float = 1.0
) -> float:
    """Black'76 model put option price (see black76_call)."""
    if T <= 0 or sigma_b <= 0:
        return max(K - F, 0) * df

    if F <= 0 or K <= 0:
        raise ValidationError("forward and strike must be positive for Black model",
                              field="forward", value=(F, K))

    sqrt_t = np.sqrt(T)
    d1 = (np.log(F / K) + 0.5 * sigma_b**2 * T) / (sigma_b * sqrt_t)
    d2 = d1 - sigma_b * sqrt_t

    return float(df * (K * N(-d2) - F * N(-d1)))


def black_scholes_greeks(
    S: float,
    K: float,
    T: float,
    r: float,
    q: float,
    sigma: float,
    is_call: bool = True
) -> GreeksSet:
    """
    Analytic Black-Scholes Greeks.

    Requires T > 0 and sigma > 0; degenerate cases are handled by the
    engine before calling this.

    Returns:
        GreeksSet with theta and charm per year of calendar time
    """
    if T <= 0 or sigma <= 0:
        raise ValidationError("analytic Greeks need positive T and sigma",
                              field="sigma", value=(T, sigma))

    d1, d2 = _d1_d2(S, K, T, r, q, sigma)
    sqrt_t = np.sqrt(T)
    eq = np.exp(-q * T)
    er = np.exp(-r * T)
    pdf = n(d1)

    gamma = eq * pdf / (S * sigma * sqrt_t)
    vega = S * eq * pdf * sqrt_t
    vanna = -eq * pdf * d2 / sigma
    volga = vega * d1 * d2 / sigma
    speed = -gamma / S * (d1 / (sigma * sqrt_t) + 1)
    zomma = gamma * (d1 * d2 - 1) / sigma
    ultima = -vega / sigma ** 2 * (d1 * d2 * (1 - d1 * d2) + d1 ** 2 + d2 ** 2)
    charm_common = eq * pdf * (2 * (r - q) * T - d2 * sigma * sqrt_t) / (2 * T * sigma * sqrt_t)
    theta_common = -S * eq * pdf * sigma / (2 * sqrt_t)

    if is_call:
        delta = eq * N(d1)
        theta = theta_common - r * K * er * N(d2) + q * S * eq * N(d1)
        rho = K * T * er * N(d2)
        charm = q * eq * N(d1) - charm_common
    else:
        delta = -eq * N(-d1)
        theta = theta_common + r * K * er * N(-d2) - q * S * eq * N(-d1)
        rho = -K * T * er * N(-d2)
        charm = -q * eq * N(-d1) - charm_common

    return GreeksSet(
        delta=float(delta),
        gamma=float(gamma),
        theta=float(theta),
        vega=float(vega),
        rho=float(rho),
        vanna=float(vanna),
        volga=float(volga),
        charm=float(charm),
        speed=float(speed),
        zomma=float(zomma),
        ultima=float(ultima),
    )


def implied_volatility(
    price: float,
    S: float,
    K: float,
    T: float,
    r: float,
    q: float = 0.0,
    is_call: bool = True,
    initial_vol: float = 0.2,
    tol: float = 1e-10,
    max_iter: int = 100
) -> float:
    """
    Black-Scholes implied volatility.

    Newton-Raphson on vega, with a Brent fallback on [1e-6, 5].

    Args:
        price: Observed option price
        S, K, T, r, q: Contract and market inputs
        is_call: True for call
        initial_vol: Starting guess

    Returns:
        Implied volatility
    """
    if T <= 0:
        raise ValidationError("implied vol undefined at expiry", field="T", value=T)

    phi = 1.0 if is_call else -1.0
    lower = max(phi * (S * np.exp(-q * T) - K * np.exp(-r * T)), 0.0)
    upper = S * np.exp(-q * T) if is_call else K * np.exp(-r * T)
    if not lower <= price < upper:
        raise ValidationError("price outside no-arbitrage bounds", field="price", value=price)

    vol = initial_vol
    for _ in range(max_iter):
        diff = black_scholes_price(S, K, T, r, q, vol, is_call) - price
        if abs(diff) < tol:
            return vol
        d1, _ = _d1_d2(S, K, T, r, q, vol)
        vega = S * np.exp(-q * T) * n(d1) * np.sqrt(T)
        if vega < 1e-12:
            break
        vol -= diff / vega
        if not 1e-6 < vol < 5.0:
            break

    logger.debug("Implied vol Newton failed for price %.6f, using Brent", price)
    try:
        return float(brentq(
            lambda v: black_scholes_price(S, K, T, r, q, v, is_call) - price,
            1e-6, 5.0, xtol=tol
        ))
    except ValueError:
        raise ConvergenceError("implied_vol", f"no volatility reprices {price:.6f}",
                               iterations=max_iter) from None


__all__ = [
    "black_scholes_price",
    "black_scholes_call",
    "black_scholes_put",
    "black76_call",
    "black76_put",
    "black_scholes_greeks",
    "implied_volatility",
]
