"""
SABR stochastic volatility model.

Implements:
- Hagan et al. lognormal implied volatility approximation
- ATM special case
- Shifted SABR for negative forwards

The option engine prices SABR by feeding the Hagan vol into Black-76 on the
forward F = S exp((r - q) T).

References:
- Hagan, P.S. et al. (2002). "Managing Smile Risk." Wilmott Magazine.
"""

from dataclasses import dataclass
from typing import Dict
import numpy as np

from ..exceptions import ValidationError


@dataclass(frozen=True)
class SabrParams:
    """
    SABR model parameters.

    Attributes:
        alpha: Initial volatility level
        beta: CEV exponent (0 = normal, 1 = lognormal)
        nu: Volatility of volatility
        rho: Correlation between forward and vol
        shift: Shift parameter for negative forwards (default 0)
    """
    alpha: float
    beta: float
    nu: float
    rho: float
    shift: float = 0.0

    def __post_init__(self):
        """Validate parameters."""
        if not self.alpha > 0:
            raise ValidationError("must be positive", field="alpha", value=self.alpha)
        if not 0 <= self.beta <= 1:
            raise ValidationError("must be in [0, 1]", field="beta", value=self.beta)
        if not self.nu > 0:
            raise ValidationError("must be positive", field="nu", value=self.nu)
        if not -1 < self.rho < 1:
            raise ValidationError("must be in (-1, 1)", field="rho", value=self.rho)

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary."""
        return {
            "alpha": self.alpha,
            "beta": self.beta,
            "nu": self.nu,
            "rho": self.rho,
            "shift": self.shift,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, float]) -> "SabrParams":
        """Create from dictionary."""
        return cls(
            alpha=d["alpha"],
            beta=d["beta"],
            nu=d["nu"],
            rho=d["rho"],
            shift=d.get("shift", 0.0),
        )


def hagan_black_vol(
    F: float,
    K: float,
    T: float,
    alpha: float,
    beta: float,
    rho: float,
    nu: float,
    shift: float = 0.0
) -> float:
    """
    Hagan et al. approximation for SABR Black implied volatility.

    Args:
        F: Forward
        K: Strike
        T: Time to expiry (years)
        alpha: SABR alpha (instantaneous vol)
        beta: CEV exponent
        rho: Correlation
        nu: Vol of vol
        shift: Shift for negative forwards

    Returns:
        Black implied volatility
    """
    F_s = F + shift
    K_s = K + shift

    if F_s <= 0 or K_s <= 0:
        raise ValidationError("shifted forward and strike must be positive",
                              field="forward", value=(F_s, K_s))

    if abs(F_s - K_s) < 1e-10 * F_s:
        return _hagan_atm_vol(F_s, T, alpha, beta, rho, nu)

    log_fk = np.log(F_s / K_s)
    one_minus_beta = 1 - beta
    fk_mid = (F_s * K_s) ** (one_minus_beta / 2)

    denom = fk_mid * (1 + one_minus_beta**2 / 24 * log_fk**2
                      + one_minus_beta**4 / 1920 * log_fk**4)

    z = nu / alpha * fk_mid * log_fk
    if abs(z) < 1e-10:
        z_over_x = 1.0
    else:
        sqrt_term = np.sqrt(1 - 2 * rho * z + z**2)
        z_over_x = z / np.log((sqrt_term + z - rho) / (1 - rho))

    term1 = one_minus_beta**2 * alpha**2 / (24 * fk_mid**2)
    term2 = rho * beta * nu * alpha / (4 * fk_mid)
    term3 = (2 - 3 * rho**2) * nu**2 / 24

    return float(alpha / denom * z_over_x * (1 + (term1 + term2 + term3) * T))


def _hagan_atm_vol(
    F: float,
    T: float,
    alpha: float,
    beta: float,
    rho: float,
    nu: float
) -> float:
    """ATM Black vol from Hagan formula."""
    F_beta = F ** (1 - beta)

    term1 = (1 - beta)**2 * alpha**2 / (24 * F**(2 - 2*beta))
    term2 = rho * beta * nu * alpha / (4 * F_beta)
    term3 = (2 - 3 * rho**2) * nu**2 / 24

    return float(alpha / F_beta * (1 + (term1 + term2 + term3) * T))


def sabr_implied_vol(F: float, K: float, T: float, params: SabrParams) -> float:
    """Black implied volatility for a parameter bundle."""
    return hagan_black_vol(F, K, T, params.alpha, params.beta, params.rho, params.nu, params.shift)


__all__ = [
    "SabrParams",
    "hagan_black_vol",
    "sabr_implied_vol",
]
