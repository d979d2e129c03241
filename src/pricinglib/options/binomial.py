"""
Cox-Ross-Rubinstein binomial tree.

u = exp(sigma sqrt(dt)), d = 1/u, p = (exp((r - q) dt) - d) / (u - d).
Backward induction is vectorised over the nodes of each time slice; American
nodes take max(intrinsic, continuation).

If p falls outside [0, 1] (large carry relative to sigma sqrt(dt)) the tree
is rebuilt once with four times as many steps before giving up.
"""

import logging
from typing import Optional

import numpy as np

from ..exceptions import ConvergenceError
from ..jobs import CancellationToken, check_cancelled

logger = logging.getLogger(__name__)

REFINEMENT_FACTOR = 4


def _risk_neutral_probability(T: float, r: float, q: float, sigma: float, steps: int) -> float:
    dt = T / steps
    u = np.exp(sigma * np.sqrt(dt))
    d = 1.0 / u
    return (np.exp((r - q) * dt) - d) / (u - d)


def crr_price(
    S: float,
    K: float,
    T: float,
    r: float,
    q: float,
    sigma: float,
    is_call: bool = True,
    american: bool = False,
    steps: int = 200,
    cancel_token: Optional[CancellationToken] = None,
) -> float:
    """
    Price a vanilla option on a CRR tree.

    Args:
        S, K, T, r, q, sigma: Contract and market inputs
        is_call: True for call
        american: Allow early exercise at every node
        steps: Number of time steps

    Returns:
        Option price
    """
    phi = 1.0 if is_call else -1.0
    if T <= 0:
        return max(phi * (S - K), 0.0)
    if sigma <= 0:
        # Deterministic forward; early exercise of a put is worth max(K - S, .)
        european = max(phi * (S * np.exp(-q * T) - K * np.exp(-r * T)), 0.0)
        return max(european, max(phi * (S - K), 0.0)) if american else european

    p = _risk_neutral_probability(T, r, q, sigma, steps)
    if not 0.0 <= p <= 1.0:
        refined = steps * REFINEMENT_FACTOR
        logger.debug("CRR probability %.4f outside [0,1] at %d steps; retrying with %d",
                     p, steps, refined)
        steps = refined
        p = _risk_neutral_probability(T, r, q, sigma, steps)
        if not 0.0 <= p <= 1.0:
            raise ConvergenceError("crr", f"risk-neutral probability {p:.4f} outside [0, 1]",
                                   iterations=steps)

    dt = T / steps
    u = np.exp(sigma * np.sqrt(dt))
    disc = np.exp(-r * dt)
    p_up = disc * p
    p_dn = disc * (1.0 - p)

    # Node j at step i has spot S * u^(i - 2j)
    spots = S * u ** (steps - 2.0 * np.arange(steps + 1))
    values = np.maximum(phi * (spots - K), 0.0)

    for i in range(steps - 1, -1, -1):
        values = p_up * values[:-1] + p_dn * values[1:]
        if american:
            spots = S * u ** (i - 2.0 * np.arange(i + 1))
            np.maximum(values, phi * (spots - K), out=values)
        if i % 50 == 0:
            check_cancelled(cancel_token)

    return float(values[0])


__all__ = [
    "crr_price",
]
