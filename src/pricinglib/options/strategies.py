"""
Multi-leg option strategies.

A strategy is a list of signed option legs on one underlying plus an
optional stock position. Pricing values each leg with price_option() and
aggregates linearly:

    fair value = sum(q_i * V_i) + underlying * S
    Greeks     = sum(q_i * Greeks_i) + (underlying, 0, ...)

Greek additivity assumes every leg references the same underlying, spot
and volatility.

Payoff analytics are evaluated at the earliest expiry. Legs expiring then
pay intrinsic value; longer-dated legs are revalued with Black-Scholes.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy.optimize import bisect

from ..conventions import ExerciseStyle, NumericalSettings, OptionType
from ..exceptions import ValidationError
from ..jobs import CancellationToken, check_cancelled
from ..vol.models import MonteCarloConfig
from .base_models import black_scholes_price
from .engine import (
    ModelParams,
    OptionResult,
    OptionTerms,
    PricingModel,
    lognormal_probability,
    price_option,
)
from .greeks import GreeksSet

logger = logging.getLogger(__name__)

_SLOPE_TOLERANCE = 1e-9


class LegType(Enum):
    CALL = "call"
    PUT = "put"
    UNDERLYING = "underlying"


class StrategyKind(Enum):
    """Standard strategies understood by create_strategy()."""
    LONG_CALL = "long_call"
    LONG_PUT = "long_put"
    COVERED_CALL = "covered_call"
    PROTECTIVE_PUT = "protective_put"
    BULL_CALL_SPREAD = "bull_call_spread"
    BEAR_CALL_SPREAD = "bear_call_spread"
    BULL_PUT_SPREAD = "bull_put_spread"
    BEAR_PUT_SPREAD = "bear_put_spread"
    LONG_STRADDLE = "long_straddle"
    SHORT_STRADDLE = "short_straddle"
    LONG_STRANGLE = "long_strangle"
    SHORT_STRANGLE = "short_strangle"
    BUTTERFLY = "butterfly"
    IRON_CONDOR = "iron_condor"
    IRON_BUTTERFLY = "iron_butterfly"
    CALENDAR_SPREAD = "calendar_spread"
    RATIO_SPREAD = "ratio_spread"
    COLLAR = "collar"
    SYNTHETIC_LONG = "synthetic_long"
    SYNTHETIC_SHORT = "synthetic_short"
    BOX_SPREAD = "box_spread"
    CONVERSION = "conversion"
    REVERSAL = "reversal"
    CUSTOM = "custom"


@dataclass(frozen=True)
class StrategyLeg:
    """
    One position in a strategy.

    Attributes:
        option_type: CALL, PUT or UNDERLYING
        strike: Strike (ignored for the underlying)
        expiration: Years to expiry (ignored for the underlying)
        signed_quantity: Positive long, negative short
        entry_price: Premium paid per unit; model value when None
    """
    option_type: LegType
    strike: float
    expiration: float
    signed_quantity: float
    entry_price: Optional[float] = None

    def __post_init__(self):
        if not isinstance(self.option_type, LegType):
            object.__setattr__(self, "option_type", LegType(str(self.option_type).lower()))
        if self.signed_quantity == 0:
            raise ValidationError("leg quantity must be non-zero", field="signed_quantity",
                                  value=self.signed_quantity)
        if self.option_type is not LegType.UNDERLYING:
            if not self.strike > 0:
                raise ValidationError("strike must be positive", field="strike", value=self.strike)
            if self.expiration < 0:
                raise ValidationError("expiration must be non-negative", field="expiration",
                                      value=self.expiration)

    @property
    def is_option(self) -> bool:
        return self.option_type is not LegType.UNDERLYING

    @property
    def payoff(self) -> OptionType:
        return OptionType(self.option_type.value)

    def intrinsic(self, prices: np.ndarray) -> np.ndarray:
        """Per-unit payoff at expiry (unsigned)."""
        if self.option_type is LegType.CALL:
            return np.maximum(prices - self.strike, 0.0)
        if self.option_type is LegType.PUT:
            return np.maximum(self.strike - prices, 0.0)
        return np.asarray(prices, dtype=float)


@dataclass(frozen=True)
class StrategyDefinition:
    """
    A named set of legs.

    Attributes:
        legs: Option legs
        underlying_position_size: Shares held (negative for short)
        kind: Strategy kind
        underlying_price: Entry price of the shares
    """
    legs: Tuple[StrategyLeg, ...]
    underlying_position_size: float = 0.0
    kind: StrategyKind = StrategyKind.CUSTOM
    underlying_price: float = 0.0

    @property
    def total_cost(self) -> float:
        """Net premium paid; legs without an entry price count as zero."""
        premium = sum(leg.signed_quantity * (leg.entry_price or 0.0) for leg in self.legs)
        return premium + self.underlying_position_size * self.underlying_price

    @property
    def net_debit(self) -> float:
        return max(self.total_cost, 0.0)

    @property
    def net_credit(self) -> float:
        return max(-self.total_cost, 0.0)


# (leg type, strike index, quantity) per kind; strikes ascend
_TEMPLATES: Dict[StrategyKind, Tuple[Tuple[LegType, int, float], ...]] = {
    StrategyKind.LONG_CALL: ((LegType.CALL, 0, 1),),
    StrategyKind.LONG_PUT: ((LegType.PUT, 0, 1),),
    StrategyKind.COVERED_CALL: ((LegType.CALL, 0, -1),),
    StrategyKind.PROTECTIVE_PUT: ((LegType.PUT, 0, 1),),
    StrategyKind.BULL_CALL_SPREAD: ((LegType.CALL, 0, 1), (LegType.CALL, 1, -1)),
    StrategyKind.BEAR_CALL_SPREAD: ((LegType.CALL, 0, -1), (LegType.CALL, 1, 1)),
    StrategyKind.BULL_PUT_SPREAD: ((LegType.PUT, 0, 1), (LegType.PUT, 1, -1)),
    StrategyKind.BEAR_PUT_SPREAD: ((LegType.PUT, 0, -1), (LegType.PUT, 1, 1)),
    StrategyKind.LONG_STRADDLE: ((LegType.CALL, 0, 1), (LegType.PUT, 0, 1)),
    StrategyKind.SHORT_STRADDLE: ((LegType.CALL, 0, -1), (LegType.PUT, 0, -1)),
    StrategyKind.LONG_STRANGLE: ((LegType.PUT, 0, 1), (LegType.CALL, 1, 1)),
    StrategyKind.SHORT_STRANGLE: ((LegType.PUT, 0, -1), (LegType.CALL, 1, -1)),
    StrategyKind.BUTTERFLY: ((LegType.CALL, 0, 1), (LegType.CALL, 1, -2), (LegType.CALL, 2, 1)),
    StrategyKind.IRON_CONDOR: ((LegType.PUT, 0, 1), (LegType.PUT, 1, -1),
                               (LegType.CALL, 2, -1), (LegType.CALL, 3, 1)),
    StrategyKind.IRON_BUTTERFLY: ((LegType.PUT, 0, 1), (LegType.PUT, 1, -1),
                                  (LegType.CALL, 1, -1), (LegType.CALL, 2, 1)),
    StrategyKind.CALENDAR_SPREAD: ((LegType.CALL, 0, -1), (LegType.CALL, 0, 1)),
    StrategyKind.RATIO_SPREAD: ((LegType.CALL, 0, 1), (LegType.CALL, 1, -2)),
    StrategyKind.COLLAR: ((LegType.PUT, 0, 1), (LegType.CALL, 1, -1)),
    StrategyKind.SYNTHETIC_LONG: ((LegType.CALL, 0, 1), (LegType.PUT, 0, -1)),
    StrategyKind.SYNTHETIC_SHORT: ((LegType.CALL, 0, -1), (LegType.PUT, 0, 1)),
    StrategyKind.BOX_SPREAD: ((LegType.CALL, 0, 1), (LegType.CALL, 1, -1),
                              (LegType.PUT, 0, -1), (LegType.PUT, 1, 1)),
    StrategyKind.CONVERSION: ((LegType.PUT, 0, 1), (LegType.CALL, 0, -1)),
    StrategyKind.REVERSAL: ((LegType.CALL, 0, 1), (LegType.PUT, 0, -1)),
}

_STOCK_POSITION = {
    StrategyKind.COVERED_CALL: 1.0,
    StrategyKind.PROTECTIVE_PUT: 1.0,
    StrategyKind.COLLAR: 1.0,
    StrategyKind.CONVERSION: 1.0,
    StrategyKind.REVERSAL: -1.0,
}


def create_strategy(
    kind: StrategyKind,
    spot: float,
    strikes: Sequence[float],
    expiration: float,
    far_expiration: Optional[float] = None,
    quantity: float = 1.0,
) -> StrategyDefinition:
    """
    Build the standard legs of a strategy.

    Args:
        kind: Strategy kind (not CUSTOM)
        spot: Underlying price, used as the share entry price
        strikes: Strikes in ascending order (as many as the kind needs)
        expiration: Years to expiry
        far_expiration: Back-month expiry for calendar spreads
        quantity: Contracts per unit leg

    Returns:
        StrategyDefinition

    Raises:
        ValidationError: Unknown kind or wrong number of strikes
    """
    kind = StrategyKind(kind)
    if kind is StrategyKind.CUSTOM:
        raise ValidationError("custom strategies are built from explicit legs", field="kind",
                              value=kind.value)
    template = _TEMPLATES[kind]
    needed = max(idx for _, idx, _ in template) + 1
    strikes = sorted(float(k) for k in strikes)
    if len(strikes) < needed:
        raise ValidationError(f"{kind.value} needs {needed} strike(s)", field="strikes",
                              value=strikes)

    legs = []
    for i, (leg_type, idx, qty) in enumerate(template):
        expiry = expiration
        if kind is StrategyKind.CALENDAR_SPREAD and i == 1:
            if far_expiration is None or far_expiration <= expiration:
                raise ValidationError("calendar spread needs a later far_expiration",
                                      field="far_expiration", value=far_expiration)
            expiry = far_expiration
        legs.append(StrategyLeg(leg_type, strikes[idx], expiry, qty * quantity))

    return StrategyDefinition(
        legs=tuple(legs),
        underlying_position_size=_STOCK_POSITION.get(kind, 0.0) * quantity,
        kind=kind,
        underlying_price=spot,
    )


def _profit_function(
    legs: Sequence[StrategyLeg],
    underlying: float,
    total_cost: float,
    horizon: float,
    r: float,
    q: float,
    sigma: float,
):
    """P&L at the horizon as a function of the underlying price."""
    expiring = [leg for leg in legs if leg.expiration <= horizon + 1e-12]
    remaining = [leg for leg in legs if leg.expiration > horizon + 1e-12]

    def profit(x):
        x_arr = np.atleast_1d(np.asarray(x, dtype=float))
        value = underlying * x_arr - total_cost
        for leg in expiring:
            value = value + leg.signed_quantity * leg.intrinsic(x_arr)
        for leg in remaining:
            tau = leg.expiration - horizon
            is_call = leg.option_type is LegType.CALL
            value = value + leg.signed_quantity * np.array([
                black_scholes_price(max(s, 1e-12), leg.strike, tau, r, q, sigma, is_call)
                for s in x_arr
            ])
        return value if np.ndim(x) else float(value[0])

    return profit


def _breakevens(profit, grid: np.ndarray, values: np.ndarray) -> List[float]:
    roots: List[float] = []
    for i in range(len(grid) - 1):
        a, b = values[i], values[i + 1]
        if a == 0.0 and grid[i] > 0:
            roots.append(float(grid[i]))
        elif a * b < 0:
            roots.append(float(bisect(profit, grid[i], grid[i + 1], xtol=1e-10)))
    if values[-1] == 0.0:
        roots.append(float(grid[-1]))
    return roots


def _profit_probability(profit, roots: List[float], top: float, spot: float,
                        horizon: float, r: float, q: float, sigma: float) -> float:
    edges = [0.0] + roots + [float("inf")]
    total = 0.0
    for lo, hi in zip(edges[:-1], edges[1:]):
        hi_eff = hi if np.isfinite(hi) else max(top, lo * 1.1 + 1e-9)
        if profit(0.5 * (lo + hi_eff)) > 0:
            total += lognormal_probability(lo, hi, spot, horizon, r, q, sigma)
    return min(total, 1.0)


def price_complex_strategy(
    kind: StrategyKind,
    legs: Sequence[StrategyLeg],
    spot: float,
    risk_free_rate: float,
    dividend_yield: float,
    volatility: float,
    model: PricingModel = PricingModel.BLACK_SCHOLES,
    underlying_position_size: float = 0.0,
    model_params: ModelParams = None,
    mc_config: Optional[MonteCarloConfig] = None,
    settings: Optional[NumericalSettings] = None,
    workers: int = 1,
    cancel_token: Optional[CancellationToken] = None,
) -> OptionResult:
    """
    Price a multi-leg strategy on a single underlying.

    Greeks are summed leg by leg, which assumes every leg shares the same
    underlying, spot and volatility.

    Args:
        kind: Strategy kind (informational)
        legs: Option legs; UNDERLYING legs add to the stock position
        spot: Underlying price
        risk_free_rate: Continuously compounded rate
        dividend_yield: Continuous dividend yield
        volatility: Lognormal volatility
        model: Model used for every leg
        underlying_position_size: Shares held
        model_params: Parameters for HESTON, SABR or JUMP_DIFFUSION
        mc_config: Monte Carlo settings
        settings: Numerical settings (grid size and upper multiple)
        workers: Threads used to price legs concurrently
        cancel_token: Cooperative cancellation

    Returns:
        OptionResult for the whole position
    """
    s = settings or NumericalSettings.default()
    kind = StrategyKind(kind)
    legs = list(legs)
    if not legs and underlying_position_size == 0:
        raise ValidationError("strategy has no legs", field="legs", value=legs)

    stock = underlying_position_size + sum(l.signed_quantity for l in legs if not l.is_option)
    option_legs = [l for l in legs if l.is_option]

    def price_leg(leg: StrategyLeg) -> OptionResult:
        check_cancelled(cancel_token)
        terms = OptionTerms(
            spot=spot,
            strike=leg.strike,
            time_to_expiration=leg.expiration,
            risk_free_rate=risk_free_rate,
            dividend_yield=dividend_yield,
            volatility=volatility,
            style=ExerciseStyle.EUROPEAN,
            payoff=leg.payoff,
        )
        return price_option(terms, model, model_params, mc_config=mc_config, settings=s,
                            cancel_token=cancel_token)

    if workers > 1 and len(option_legs) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(price_leg, option_legs))
    else:
        results = [price_leg(leg) for leg in option_legs]

    fair_value = stock * spot
    intrinsic = stock * spot
    total_cost = stock * spot
    greeks = GreeksSet(delta=stock)
    notes: List[str] = []
    for leg, res in zip(option_legs, results):
        qty = leg.signed_quantity
        fair_value += qty * res.fair_value
        intrinsic += qty * res.intrinsic_value
        premium = leg.entry_price if leg.entry_price is not None else res.fair_value
        total_cost += qty * premium
        greeks = greeks + qty * res.greeks
        notes.extend(w for w in res.warnings if w not in notes)

    horizon = min((l.expiration for l in option_legs), default=0.0)
    profit = _profit_function(option_legs, stock, total_cost, horizon,
                              risk_free_rate, dividend_yield, volatility)

    top = s.strategy_grid_upper * spot
    grid = np.linspace(0.0, top, s.strategy_grid_points)
    values = profit(grid)
    roots = _breakevens(profit, grid, values)

    slope = (values[-1] - values[-2]) / (grid[-1] - grid[-2])
    max_profit = float("inf") if slope > _SLOPE_TOLERANCE else float(values.max())
    max_loss = float("-inf") if slope < -_SLOPE_TOLERANCE else float(values.min())
    pop = _profit_probability(profit, roots, top, spot, horizon,
                              risk_free_rate, dividend_yield, volatility)

    model_used = results[0].model_used if results else model
    logger.debug("Priced %s strategy with %d option legs: %.6f", kind.value,
                 len(option_legs), fair_value)

    return OptionResult(
        fair_value=float(fair_value),
        model_used=model_used,
        model_values={model_used.value: float(fair_value)},
        greeks=greeks,
        spot=spot,
        breakeven_prices=tuple(roots),
        max_profit=max_profit,
        max_loss=max_loss,
        probability_of_profit=pop,
        intrinsic_value=float(intrinsic),
        time_value=float(fair_value - intrinsic),
        total_cost=float(total_cost),
        warnings=tuple(notes),
    )


def price_strategy(
    definition: StrategyDefinition,
    spot: float,
    risk_free_rate: float,
    dividend_yield: float,
    volatility: float,
    **kwargs: Any,
) -> OptionResult:
    """price_complex_strategy() for a StrategyDefinition."""
    return price_complex_strategy(
        definition.kind, definition.legs, spot, risk_free_rate, dividend_yield, volatility,
        underlying_position_size=definition.underlying_position_size, **kwargs,
    )


__all__ = [
    "LegType",
    "StrategyKind",
    "StrategyLeg",
    "StrategyDefinition",
    "create_strategy",
    "price_complex_strategy",
    "price_strategy",
]
