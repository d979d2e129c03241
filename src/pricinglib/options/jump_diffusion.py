"""
Merton (1976) jump-diffusion - European pricing by Poisson series.

Conditional on n jumps the terminal log-spot is normal, so the price is a
Poisson-weighted sum of Black-Scholes prices:

    V = sum_n  e^{-l' T} (l' T)^n / n!  BS(S, K, T, r_n, q, sigma_n)

with l' = l (1 + k), 1 + k = exp(mu_J + delta^2 / 2),
sigma_n^2 = sigma^2 + n delta^2 / T and r_n = r - l k + n ln(1 + k) / T.
"""

import numpy as np
from scipy.stats import poisson

from ..vol.models import JumpDiffusionParams
from .base_models import black_scholes_price

MAX_TERMS = 200
TAIL_TOLERANCE = 1e-12


def merton_price(
    S: float,
    K: float,
    T: float,
    r: float,
    q: float,
    sigma: float,
    params: JumpDiffusionParams,
    is_call: bool = True,
) -> float:
    """
    European option price under Merton jump-diffusion.

    Args:
        S, K, T, r, q: Contract and market inputs
        sigma: Diffusion volatility
        params: Jump parameters
        is_call: True for call

    Returns:
        Option price
    """
    if T <= 0:
        return max((S - K) if is_call else (K - S), 0.0)

    k = params.compensator
    lam_prime = params.intensity * (1.0 + k)
    mean_jumps = lam_prime * T
    log_growth = params.jump_mean + 0.5 * params.jump_vol ** 2

    price = 0.0
    weight_sum = 0.0
    for n in range(MAX_TERMS):
        weight = poisson.pmf(n, mean_jumps)
        sigma_n = np.sqrt(sigma ** 2 + n * params.jump_vol ** 2 / T)
        r_n = r - params.intensity * k + n * log_growth / T
        price += weight * black_scholes_price(S, K, T, r_n, q, sigma_n, is_call)
        weight_sum += weight
        if n > mean_jumps and 1.0 - weight_sum < TAIL_TOLERANCE:
            break

    return float(price)


__all__ = [
    "merton_price",
]
