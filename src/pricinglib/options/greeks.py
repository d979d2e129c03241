"""
Greeks container and finite-difference sensitivities.

GreeksSet holds first-, second- and third-order sensitivities. Theta and
charm are derivatives with respect to calendar time (per year), so a long
vanilla option normally has negative theta.

finite_difference_greeks bumps a pricing function of (spot, vol, T, rate):
- dS = 1% of spot, dsigma = 1bp, dt = 1 trading day, dr = 1bp by default
- central differences throughout; one-sided in time when T < 2 dt

Monte Carlo pricing functions must reuse the same random numbers for every
bump (common random numbers) so the differences are deterministic.
"""

from dataclasses import dataclass, asdict, fields
from typing import Callable, Dict, Optional

from ..conventions import NumericalSettings

# price_fn(spot, vol, T, rate) -> price
PriceFunction = Callable[[float, float, float, float], float]


@dataclass(frozen=True)
class GreeksSet:
    """
    Option sensitivities.

    Attributes:
        delta: dV/dS
        gamma: d2V/dS2
        theta: dV/dt (calendar time, per year)
        vega: dV/dsigma
        rho: dV/dr
        vanna: d2V/dS dsigma
        volga: d2V/dsigma2
        charm: d(delta)/dt
        speed: d3V/dS3
        zomma: d(gamma)/dsigma
        ultima: d3V/dsigma3
    """
    delta: float = 0.0
    gamma: float = 0.0
    theta: float = 0.0
    vega: float = 0.0
    rho: float = 0.0
    vanna: float = 0.0
    volga: float = 0.0
    charm: float = 0.0
    speed: float = 0.0
    zomma: float = 0.0
    ultima: float = 0.0

    def __add__(self, other: "GreeksSet") -> "GreeksSet":
        if not isinstance(other, GreeksSet):
            return NotImplemented
        return GreeksSet(**{f.name: getattr(self, f.name) + getattr(other, f.name)
                            for f in fields(self)})

    def __mul__(self, scalar: float) -> "GreeksSet":
        return GreeksSet(**{f.name: getattr(self, f.name) * scalar for f in fields(self)})

    __rmul__ = __mul__

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary."""
        return asdict(self)


def finite_difference_greeks(
    price_fn: PriceFunction,
    spot: float,
    vol: float,
    T: float,
    rate: float,
    settings: Optional[NumericalSettings] = None,
    base_price: Optional[float] = None,
) -> GreeksSet:
    """
    Bump-and-reprice Greeks.

    Args:
        price_fn: Pricing function of (spot, vol, T, rate)
        spot, vol, T, rate: Base point
        settings: Bump sizes
        base_price: Price at the base point, if already known

    Returns:
        GreeksSet
    """
    s = settings or NumericalSettings.default()
    h = s.spot_bump_pct * spot
    k = s.vol_bump
    dt = s.time_bump
    dr = s.rate_bump

    # Keep the vol stencil non-negative
    v = max(vol, 2.0 * k)

    def V(ds=0.0, dv=0.0, dT=0.0, drate=0.0) -> float:
        return price_fn(spot + ds, v + dv, T + dT, rate + drate)

    p0 = base_price if (base_price is not None and v == vol) else V()
    p_up, p_dn = V(ds=h), V(ds=-h)
    p_up2, p_dn2 = V(ds=2 * h), V(ds=-2 * h)

    delta = (p_up - p_dn) / (2 * h)
    gamma = (p_up - 2 * p0 + p_dn) / h ** 2
    speed = (p_up2 - 2 * p_up + 2 * p_dn - p_dn2) / (2 * h ** 3)

    v_up, v_dn = V(dv=k), V(dv=-k)
    v_up2, v_dn2 = V(dv=2 * k), V(dv=-2 * k)
    vega = (v_up - v_dn) / (2 * k)
    volga = (v_up - 2 * p0 + v_dn) / k ** 2
    ultima = (v_up2 - 2 * v_up + 2 * v_dn - v_dn2) / (2 * k ** 3)

    uu, ud = V(ds=h, dv=k), V(ds=h, dv=-k)
    du, dd = V(ds=-h, dv=k), V(ds=-h, dv=-k)
    vanna = (uu - ud - du + dd) / (4 * h * k)
    gamma_vup = (uu - 2 * v_up + du) / h ** 2
    gamma_vdn = (ud - 2 * v_dn + dd) / h ** 2
    zomma = (gamma_vup - gamma_vdn) / (2 * k)

    # Calendar time runs against time to expiry
    if T > 2 * dt:
        t_up, t_dn = V(dT=dt), V(dT=-dt)
        theta = -(t_up - t_dn) / (2 * dt)
        delta_tup = (V(ds=h, dT=dt) - V(ds=-h, dT=dt)) / (2 * h)
        delta_tdn = (V(ds=h, dT=-dt) - V(ds=-h, dT=-dt)) / (2 * h)
        charm = -(delta_tup - delta_tdn) / (2 * dt)
    else:
        t_up = V(dT=dt)
        theta = -(t_up - p0) / dt
        delta_tup = (V(ds=h, dT=dt) - V(ds=-h, dT=dt)) / (2 * h)
        charm = -(delta_tup - delta) / dt

    rho = (V(drate=dr) - V(drate=-dr)) / (2 * dr)

    return GreeksSet(
        delta=delta,
        gamma=gamma,
        theta=theta,
        vega=vega,
        rho=rho,
        vanna=vanna,
        volga=volga,
        charm=charm,
        speed=speed,
        zomma=zomma,
        ultima=ultima,
    )


__all__ = [
    "GreeksSet",
    "PriceFunction",
    "finite_difference_greeks",
]
