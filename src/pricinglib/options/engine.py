"""
Option pricing dispatcher.

price_option() routes a request to exactly one handler per PricingModel:

    BLACK_SCHOLES   closed form, analytic Greeks, closed-form exotics
    BINOMIAL_TREE   CRR tree (European or American vanillas)
    MONTE_CARLO     GBM paths, Longstaff-Schwartz for American exercise
    HESTON          Lewis/Gatheral Fourier integral
    SABR            Hagan implied vol into Black-76
    JUMP_DIFFUSION  Merton Poisson series

American exercise always ends on the binomial tree (Black-Scholes requests)
or on Longstaff-Schwartz Monte Carlo under the requested dynamics.
Combinations a handler cannot value in closed form are re-priced by Monte
Carlo and a ModelFallbackWarning is attached to the result.

Greeks are analytic for Black-Scholes European vanillas and central finite
differences elsewhere. For each model "volatility" means:
- Black-Scholes, binomial, Monte Carlo, jump-diffusion: diffusion vol
- Heston: initial volatility sqrt(v0)
- SABR: alpha
"""

import logging
import warnings
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import numpy as np
from scipy.stats import norm

from ..conventions import ExerciseStyle, NumericalSettings, OptionType
from ..exceptions import ModelFallbackWarning, NumericalInstabilityWarning, ValidationError
from ..jobs import CancellationToken
from ..vol.models import HestonParams, JumpDiffusionParams, MonteCarloConfig
from ..vol.sabr import SabrParams, sabr_implied_vol
from .base_models import black76_call, black76_put, black_scholes_greeks, black_scholes_price
from .base_models import implied_volatility as bs_implied_volatility
from .binomial import crr_price
from .exotics import (
    AsianSpec,
    AveragingType,
    BarrierSpec,
    LookbackSpec,
    LookbackType,
    arithmetic_asian_price,
    asian_payoff,
    barrier_payoff,
    barrier_price,
    expected_extrema,
    floating_lookback_prices,
    geometric_asian_price,
    lookback_payoff,
)
from .greeks import GreeksSet, PriceFunction, finite_difference_greeks
from .heston import check_feller, feller_warning, heston_price
from .jump_diffusion import merton_price
from .monte_carlo import (
    Dynamics,
    MonteCarloEngine,
    MonteCarloResult,
    PathSimulator,
    vanilla_payoff,
)

logger = logging.getLogger(__name__)

ModelParams = Union[HestonParams, SabrParams, JumpDiffusionParams, None]

DEFAULT_FALLBACK_CONFIG = MonteCarloConfig(path_count=50_000, time_steps=100)


class PricingModel(Enum):
    """Closed set of valuation models."""
    BLACK_SCHOLES = "black_scholes"
    BINOMIAL_TREE = "binomial_tree"
    MONTE_CARLO = "monte_carlo"
    HESTON = "heston"
    SABR = "sabr"
    JUMP_DIFFUSION = "jump_diffusion"


@dataclass(frozen=True)
class OptionTerms:
    """
    Vanilla option contract and market inputs.

    Attributes:
        spot: Underlying price
        strike: Strike price
        time_to_expiration: Years to expiry
        risk_free_rate: Continuously compounded rate
        dividend_yield: Continuous dividend yield
        volatility: Lognormal volatility
        style: EUROPEAN or AMERICAN
        payoff: CALL or PUT
    """
    spot: float
    strike: float
    time_to_expiration: float
    risk_free_rate: float = 0.0
    dividend_yield: float = 0.0
    volatility: float = 0.2
    style: ExerciseStyle = ExerciseStyle.EUROPEAN
    payoff: OptionType = OptionType.CALL

    def __post_init__(self):
        object.__setattr__(self, "style", ExerciseStyle.from_string(self.style))
        object.__setattr__(self, "payoff", OptionType.from_string(self.payoff))
        if self.style is ExerciseStyle.BERMUDAN:
            raise ValidationError("options are European or American", field="style",
                                  value=self.style.value)
        if not self.spot > 0:
            raise ValidationError("spot must be positive", field="spot", value=self.spot)
        if not self.strike > 0:
            raise ValidationError("strike must be positive", field="strike", value=self.strike)
        if self.time_to_expiration < 0:
            raise ValidationError("time to expiration must be non-negative",
                                  field="time_to_expiration", value=self.time_to_expiration)
        if self.volatility < 0:
            raise ValidationError("volatility must be non-negative", field="volatility",
                                  value=self.volatility)

    @property
    def is_call(self) -> bool:
        return self.payoff is OptionType.CALL

    @property
    def is_american(self) -> bool:
        return self.style is ExerciseStyle.AMERICAN

    @property
    def intrinsic_value(self) -> float:
        return max(self.payoff.sign * (self.spot - self.strike), 0.0)


@dataclass(frozen=True)
class OptionResult:
    """
    Valuation of an option or option strategy.

    Attributes:
        fair_value: Model value
        model_used: Model that produced fair_value
        model_values: Fair value per model used
        greeks: Sensitivities
        spot: Underlying spot the result was computed at
        breakeven_prices: Underlying prices at expiry where P&L is zero
        max_profit / max_loss: Supremum / infimum of expiry P&L (+/-inf when
            unbounded, None when not defined for the payoff)
        probability_of_profit: Risk-neutral lognormal probability of a gain
        intrinsic_value / time_value: Decomposition of fair_value
        total_cost: Premium paid for the position
        standard_error / confidence_interval: Monte Carlo statistics
        barrier_knock_probability: Probability the barrier is touched
        asian_average_price: Expected average over the fixings
        lookback_extrema: Expected (min, max) of the path
        warnings: Fallbacks and numerical notes
    """
    fair_value: float
    model_used: PricingModel
    model_values: Dict[str, float]
    greeks: GreeksSet
    spot: float
    breakeven_prices: Tuple[float, ...] = ()
    max_profit: Optional[float] = None
    max_loss: Optional[float] = None
    probability_of_profit: Optional[float] = None
    intrinsic_value: float = 0.0
    time_value: float = 0.0
    total_cost: float = 0.0
    standard_error: Optional[float] = None
    confidence_interval: Optional[Tuple[float, float]] = None
    barrier_knock_probability: Optional[float] = None
    asian_average_price: Optional[float] = None
    lookback_extrema: Optional[Tuple[float, float]] = None
    warnings: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "fair_value": self.fair_value,
            "model_used": self.model_used.value,
            "model_values": dict(self.model_values),
            "greeks": self.greeks.to_dict(),
            "spot": self.spot,
            "breakeven_prices": list(self.breakeven_prices),
            "max_profit": self.max_profit,
            "max_loss": self.max_loss,
            "probability_of_profit": self.probability_of_profit,
            "intrinsic_value": self.intrinsic_value,
            "time_value": self.time_value,
            "total_cost": self.total_cost,
            "standard_error": self.standard_error,
            "confidence_interval": self.confidence_interval,
            "barrier_knock_probability": self.barrier_knock_probability,
            "asian_average_price": self.asian_average_price,
            "lookback_extrema": self.lookback_extrema,
            "warnings": list(self.warnings),
        }


@dataclass
class _Request:
    terms: OptionTerms
    model: PricingModel
    params: ModelParams
    barrier: Optional[BarrierSpec]
    asian: Optional[AsianSpec]
    lookback: Optional[LookbackSpec]
    mc_config: Optional[MonteCarloConfig]
    settings: NumericalSettings
    cancel_token: Optional[CancellationToken]
    notes: List[str] = field(default_factory=list)

    @property
    def is_exotic(self) -> bool:
        return any(x is not None for x in (self.barrier, self.asian, self.lookback))

    def note(self, msg: str, category=ModelFallbackWarning) -> None:
        self.notes.append(msg)
        logger.warning(msg)
        warnings.warn(msg, category, stacklevel=4)


@dataclass
class _Valuation:
    price: float
    model: PricingModel
    greeks: Optional[GreeksSet] = None
    price_fn: Optional[PriceFunction] = None
    base_vol: float = 0.0
    mc: Optional[MonteCarloResult] = None
    knock_probability: Optional[float] = None
    average_price: Optional[float] = None
    extrema: Optional[Tuple[float, float]] = None


# ---------------------------------------------------------------------------
# Monte Carlo (shared by every model for path-dependent and American cases)
# ---------------------------------------------------------------------------

def _mc_config(req: _Request) -> MonteCarloConfig:
    cfg = req.mc_config or DEFAULT_FALLBACK_CONFIG
    if cfg.seed is None:
        # Fix the entropy for this request so every Greek bump sees the same paths
        cfg = replace(cfg, seed=int(np.random.SeedSequence().entropy))
    return cfg


def _dynamics_for(req: _Request) -> Tuple[Dynamics, float]:
    """Path dynamics for the request's model and its 'volatility' level."""
    if req.model is PricingModel.HESTON:
        return Dynamics.HESTON, float(np.sqrt(req.params.v0))
    if req.model is PricingModel.SABR:
        return Dynamics.SABR, req.params.alpha
    if req.model is PricingModel.JUMP_DIFFUSION:
        return Dynamics.MERTON, req.terms.volatility
    return Dynamics.GBM, req.terms.volatility


def _simulator(req: _Request, cfg: MonteCarloConfig, dynamics: Dynamics,
               S: float, vol: float, T: float, r: float) -> PathSimulator:
    q = req.terms.dividend_yield
    kwargs: Dict[str, Any] = {}
    if dynamics is Dynamics.HESTON:
        kwargs["heston"] = replace(req.params, v0=vol ** 2)
    elif dynamics is Dynamics.SABR:
        kwargs["sabr"] = replace(req.params, alpha=vol)
    else:
        kwargs["sigma"] = vol
        if dynamics is Dynamics.MERTON:
            kwargs["jump"] = req.params
    return PathSimulator(S, T, r, q, cfg, dynamics, **kwargs)


def _price_monte_carlo(req: _Request) -> _Valuation:
    terms = req.terms
    cfg = _mc_config(req)
    dynamics, base_vol = _dynamics_for(req)
    K, is_call = terms.strike, terms.is_call

    def run(S: float, vol: float, T: float, r: float) -> MonteCarloResult:
        sim = _simulator(req, cfg, dynamics, S, vol, T, r)
        engine = MonteCarloEngine(sim, req.cancel_token)
        if req.barrier is not None:
            return engine.price(barrier_payoff(K, req.barrier, is_call, sim.bridge_vol, sim.dt))
        if req.asian is not None:
            return engine.price(asian_payoff(K, req.asian, T, sim.dt, is_call))
        if req.lookback is not None:
            return engine.price(lookback_payoff(K, req.lookback, is_call))
        if terms.is_american:
            return engine.price_american(K, is_call)
        return engine.price(vanilla_payoff(K, is_call))

    result = run(terms.spot, base_vol, terms.time_to_expiration, terms.risk_free_rate)
    stats = result.statistics
    extrema = None
    if "path_min" in stats:
        extrema = (stats["path_min"], stats["path_max"])

    return _Valuation(
        price=result.price,
        model=PricingModel.MONTE_CARLO,
        price_fn=lambda S, v, T, r: run(S, v, T, r).price,
        base_vol=base_vol,
        mc=result,
        knock_probability=stats.get("barrier_hit"),
        average_price=stats.get("average_price"),
        extrema=extrema,
    )


def _fallback_to_monte_carlo(req: _Request, reason: str) -> _Valuation:
    req.note(f"{reason}; priced by Monte Carlo")
    return _price_monte_carlo(req)


# ---------------------------------------------------------------------------
# Model handlers
# ---------------------------------------------------------------------------

def _price_black_scholes(req: _Request) -> _Valuation:
    t = req.terms
    S, K, T, r, q, sigma = (t.spot, t.strike, t.time_to_expiration,
                            t.risk_free_rate, t.dividend_yield, t.volatility)
    is_call = t.is_call
    model = PricingModel.BLACK_SCHOLES

    if req.barrier is not None:
        spec = req.barrier
        price, knock = barrier_price(S, K, T, r, q, sigma, spec, is_call)
        return _Valuation(price, model, base_vol=sigma, knock_probability=knock,
                          price_fn=lambda s, v, tt, rr: barrier_price(s, K, tt, rr, q, v, spec, is_call)[0])

    if req.asian is not None:
        spec = req.asian
        if spec.averaging is AveragingType.GEOMETRIC:
            fn = geometric_asian_price
        elif spec.use_monte_carlo:
            return _price_monte_carlo(req)
        else:
            fn = arithmetic_asian_price
        price, average = fn(S, K, T, r, q, sigma, spec.fixings, is_call)
        return _Valuation(price, model, base_vol=sigma, average_price=average,
                          price_fn=lambda s, v, tt, rr: fn(s, K, tt, rr, q, v, spec.fixings, is_call)[0])

    if req.lookback is not None:
        if req.lookback.lookback_type is LookbackType.FIXED_STRIKE or sigma <= 0:
            return _fallback_to_monte_carlo(req, "No closed form for this lookback")
        index = 0 if is_call else 1
        price = floating_lookback_prices(S, T, r, q, sigma)[index]
        return _Valuation(price, model, base_vol=sigma,
                          extrema=expected_extrema(S, T, r, q, sigma),
                          price_fn=lambda s, v, tt, rr: floating_lookback_prices(s, tt, rr, q, v)[index])

    price = black_scholes_price(S, K, T, r, q, sigma, is_call)
    if sigma <= 0:
        return _Valuation(price, model, greeks=_degenerate_greeks(req), base_vol=sigma)
    return _Valuation(price, model, base_vol=sigma,
                      greeks=black_scholes_greeks(S, K, T, r, q, sigma, is_call))


def _price_binomial(req: _Request) -> _Valuation:
    if req.is_exotic:
        return _fallback_to_monte_carlo(req, "Binomial tree does not support path-dependent payoffs")

    t = req.terms
    steps = req.settings.binomial_steps

    def fn(S: float, vol: float, T: float, r: float) -> float:
        return crr_price(S, t.strike, T, r, t.dividend_yield, vol, t.is_call,
                         t.is_american, steps, req.cancel_token)

    price = fn(t.spot, t.volatility, t.time_to_expiration, t.risk_free_rate)
    return _Valuation(price, PricingModel.BINOMIAL_TREE, price_fn=fn, base_vol=t.volatility)


def _require_params(req: _Request, kind: type) -> None:
    if not isinstance(req.params, kind):
        raise ValidationError(f"{req.model.value} requires {kind.__name__}",
                              field="model_params", value=type(req.params).__name__)


def _price_heston(req: _Request) -> _Valuation:
    _require_params(req, HestonParams)
    params: HestonParams = req.params
    if not params.feller_satisfied:
        # check_feller emits the warning; record it on the result too
        check_feller(params)
        req.notes.append(feller_warning(params))

    if req.is_exotic or req.terms.is_american:
        return _price_monte_carlo(req)

    t = req.terms

    def fn(S: float, vol: float, T: float, r: float) -> float:
        return heston_price(S, t.strike, T, r, t.dividend_yield, replace(params, v0=vol ** 2), t.is_call)

    base_vol = float(np.sqrt(params.v0))
    return _Valuation(fn(t.spot, base_vol, t.time_to_expiration, t.risk_free_rate),
                      PricingModel.HESTON, price_fn=fn, base_vol=base_vol)


def _price_sabr(req: _Request) -> _Valuation:
    _require_params(req, SabrParams)
    params: SabrParams = req.params
    if req.is_exotic or req.terms.is_american:
        return _price_monte_carlo(req)

    t = req.terms

    def fn(S: float, vol: float, T: float, r: float) -> float:
        if T <= 0:
            return max(t.payoff.sign * (S - t.strike), 0.0)
        F = S * np.exp((r - t.dividend_yield) * T)
        sigma_b = sabr_implied_vol(F, t.strike, T, replace(params, alpha=vol))
        black = black76_call if t.is_call else black76_put
        return black(F, t.strike, T, sigma_b, np.exp(-r * T))

    return _Valuation(fn(t.spot, params.alpha, t.time_to_expiration, t.risk_free_rate),
                      PricingModel.SABR, price_fn=fn, base_vol=params.alpha)


def _price_jump_diffusion(req: _Request) -> _Valuation:
    _require_params(req, JumpDiffusionParams)
    params: JumpDiffusionParams = req.params
    if req.is_exotic or req.terms.is_american:
        return _price_monte_carlo(req)

    t = req.terms

    def fn(S: float, vol: float, T: float, r: float) -> float:
        return merton_price(S, t.strike, T, r, t.dividend_yield, vol, params, t.is_call)

    return _Valuation(fn(t.spot, t.volatility, t.time_to_expiration, t.risk_free_rate),
                      PricingModel.JUMP_DIFFUSION, price_fn=fn, base_vol=t.volatility)


_HANDLERS: Dict[PricingModel, Callable[[_Request], _Valuation]] = {
    PricingModel.BLACK_SCHOLES: _price_black_scholes,
    PricingModel.BINOMIAL_TREE: _price_binomial,
    PricingModel.MONTE_CARLO: _price_monte_carlo,
    PricingModel.HESTON: _price_heston,
    PricingModel.SABR: _price_sabr,
    PricingModel.JUMP_DIFFUSION: _price_jump_diffusion,
}

_missing = set(PricingModel) - set(_HANDLERS)
if _missing:
    raise ImportError(f"No pricing handler for {sorted(m.value for m in _missing)}")


# ---------------------------------------------------------------------------
# Payoff analytics
# ---------------------------------------------------------------------------

def lognormal_probability(
    lower: float,
    upper: float,
    spot: float,
    T: float,
    r: float,
    q: float,
    sigma: float,
) -> float:
    """Risk-neutral probability that S_T lies in (lower, upper)."""
    if T <= 0 or sigma <= 0:
        terminal = spot * np.exp((r - q) * max(T, 0.0))
        return 1.0 if lower < terminal < upper else 0.0

    def cdf(x: float) -> float:
        if x <= 0:
            return 0.0
        if np.isinf(x):
            return 1.0
        d2 = (np.log(spot / x) + (r - q - 0.5 * sigma ** 2) * T) / (sigma * np.sqrt(T))
        return float(norm.cdf(-d2))

    return max(cdf(upper) - cdf(lower), 0.0)


def _single_option_analytics(terms: OptionTerms, premium: float) -> Dict[str, Any]:
    K = terms.strike
    args = (terms.spot, terms.time_to_expiration, terms.risk_free_rate,
            terms.dividend_yield, terms.volatility)
    if terms.is_call:
        breakeven = K + premium
        return {
            "breakeven_prices": (breakeven,),
            "max_profit": float("inf"),
            "max_loss": -premium,
            "probability_of_profit": lognormal_probability(breakeven, float("inf"), *args),
        }
    breakeven = K - premium
    return {
        "breakeven_prices": (breakeven,) if breakeven > 0 else (),
        "max_profit": K - premium,
        "max_loss": -premium,
        "probability_of_profit": lognormal_probability(0.0, breakeven, *args) if breakeven > 0 else 0.0,
    }


def _degenerate_greeks(req: _Request) -> GreeksSet:
    """Greeks at zero vol or expiry: moneyness-indicator delta, the rest zero."""
    t = req.terms
    T = t.time_to_expiration
    forward_gap = (t.spot * np.exp(-t.dividend_yield * T)
                   - t.strike * np.exp(-t.risk_free_rate * T))
    in_the_money = t.payoff.sign * forward_gap > 0
    delta = t.payoff.sign * np.exp(-t.dividend_yield * T) if in_the_money else 0.0
    req.note("Greeks are degenerate at zero volatility or expiry", NumericalInstabilityWarning)
    return GreeksSet(delta=float(delta))


def _terminal_valuation(req: _Request) -> _Valuation:
    """Value at T = 0 without invoking a model."""
    t = req.terms
    intrinsic = t.intrinsic_value
    if req.barrier is not None:
        price, knock = barrier_price(t.spot, t.strike, 0.0, t.risk_free_rate, t.dividend_yield,
                                     t.volatility, req.barrier, t.is_call)
        return _Valuation(price, req.model, greeks=_degenerate_greeks(req), knock_probability=knock)
    if req.lookback is not None and req.lookback.lookback_type is LookbackType.FLOATING_STRIKE:
        return _Valuation(0.0, req.model, greeks=GreeksSet(), extrema=(t.spot, t.spot))
    valuation = _Valuation(intrinsic, req.model, greeks=_degenerate_greeks(req))
    if req.asian is not None:
        valuation.average_price = t.spot
    if req.lookback is not None:
        valuation.extrema = (t.spot, t.spot)
    return valuation


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def _resolve_model(req: _Request) -> None:
    """Apply the exercise-style routing rules in place."""
    if not req.terms.is_american:
        return
    if req.is_exotic:
        req.note("American exercise is not supported for path-dependent payoffs; "
                 "valued with European exercise")
        req.terms = replace(req.terms, style=ExerciseStyle.EUROPEAN)
        return
    if req.model is PricingModel.BLACK_SCHOLES:
        req.note("Black-Scholes values European exercise only; American option priced on the binomial tree")
        req.model = PricingModel.BINOMIAL_TREE
    elif req.model in (PricingModel.HESTON, PricingModel.SABR, PricingModel.JUMP_DIFFUSION):
        req.note(f"American exercise under {req.model.value} priced by Longstaff-Schwartz Monte Carlo")


def price_option(
    terms: OptionTerms,
    model: PricingModel = PricingModel.BLACK_SCHOLES,
    model_params: ModelParams = None,
    barrier: Optional[BarrierSpec] = None,
    asian: Optional[AsianSpec] = None,
    lookback: Optional[LookbackSpec] = None,
    mc_config: Optional[MonteCarloConfig] = None,
    settings: Optional[NumericalSettings] = None,
    cancel_token: Optional[CancellationToken] = None,
    compute_greeks: bool = True,
) -> OptionResult:
    """
    Price a single option.

    Args:
        terms: Contract and market inputs
        model: Valuation model
        model_params: HestonParams, SabrParams or JumpDiffusionParams when
            the model needs them
        barrier / asian / lookback: At most one exotic feature
        mc_config: Monte Carlo settings (also used by fallbacks)
        settings: Numerical settings
        cancel_token: Cooperative cancellation
        compute_greeks: Skip the Greek bumps when False

    Returns:
        OptionResult

    Raises:
        ValidationError: Invalid inputs
        ConvergenceError: A numerical method failed after its fallback
        CalculationCancelled: The token was cancelled
    """
    if not isinstance(model, PricingModel):
        try:
            model = PricingModel(str(model).lower())
        except ValueError:
            raise ValidationError("unknown pricing model", field="model", value=model) from None
    if sum(x is not None for x in (barrier, asian, lookback)) > 1:
        raise ValidationError("at most one exotic feature per option", field="exotic",
                              value=[type(x).__name__ for x in (barrier, asian, lookback) if x])

    req = _Request(terms, model, model_params, barrier, asian, lookback, mc_config,
                   settings or NumericalSettings.default(), cancel_token)
    _resolve_model(req)
    terms = req.terms

    if terms.time_to_expiration == 0:
        valuation = _terminal_valuation(req)
    else:
        valuation = _HANDLERS[req.model](req)

    if valuation.greeks is not None:
        greeks = valuation.greeks
    elif compute_greeks and valuation.price_fn is not None:
        greeks = finite_difference_greeks(
            valuation.price_fn, terms.spot, valuation.base_vol, terms.time_to_expiration,
            terms.risk_free_rate, req.settings, valuation.price,
        )
    else:
        greeks = GreeksSet()

    price = valuation.price
    if req.is_exotic:
        analytics = {"breakeven_prices": (), "max_profit": None, "max_loss": -price,
                     "probability_of_profit": None}
    else:
        analytics = _single_option_analytics(terms, price)

    intrinsic = terms.intrinsic_value
    mc = valuation.mc
    logger.debug("Priced %s %s with %s: %.6f", terms.style.value, terms.payoff.value,
                 valuation.model.value, price)

    return OptionResult(
        fair_value=price,
        model_used=valuation.model,
        model_values={valuation.model.value: price},
        greeks=greeks,
        spot=terms.spot,
        intrinsic_value=intrinsic,
        time_value=price - intrinsic,
        total_cost=price,
        standard_error=mc.standard_error if mc else None,
        confidence_interval=mc.confidence_interval if mc else None,
        barrier_knock_probability=valuation.knock_probability,
        asian_average_price=valuation.average_price,
        lookback_extrema=valuation.extrema,
        warnings=tuple(req.notes),
        **analytics,
    )


def implied_volatility(price: float, terms: OptionTerms, initial_vol: Optional[float] = None) -> float:
    """
    Black-Scholes volatility that reproduces an observed premium.

    Args:
        price: Observed option price
        terms: Contract and market inputs (volatility is the starting guess
            unless initial_vol is given)
        initial_vol: Starting guess

    Returns:
        Implied volatility
    """
    guess = initial_vol if initial_vol is not None else (terms.volatility or 0.2)
    return bs_implied_volatility(price, terms.spot, terms.strike, terms.time_to_expiration,
                                 terms.risk_free_rate, terms.dividend_yield, terms.is_call, guess)


__all__ = [
    "PricingModel",
    "OptionTerms",
    "OptionResult",
    "price_option",
    "implied_volatility",
    "lognormal_probability",
]
