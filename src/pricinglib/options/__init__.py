"""
Options pricing engine.

Provides:
- Black-Scholes, Black-76 and implied volatility
- CRR binomial tree, Monte Carlo (GBM, Heston, Merton, SABR) with LSM
- Heston and Merton semi-analytic pricing
- Barrier, Asian and lookback exotics
- price_option() dispatch over PricingModel
- Multi-leg strategies
"""

from .base_models import (
    black76_call,
    black76_put,
    black_scholes_call,
    black_scholes_greeks,
    black_scholes_price,
    black_scholes_put,
)
from .binomial import crr_price
from .engine import (
    OptionResult,
    OptionTerms,
    PricingModel,
    implied_volatility,
    lognormal_probability,
    price_option,
)
from .exotics import (
    AsianSpec,
    AveragingType,
    BarrierSpec,
    BarrierType,
    LookbackSpec,
    LookbackType,
    barrier_hit_probability,
)
from .greeks import GreeksSet, finite_difference_greeks
from .heston import heston_price
from .jump_diffusion import merton_price
from .monte_carlo import Dynamics, MonteCarloEngine, MonteCarloResult, PathSimulator
from .strategies import (
    LegType,
    StrategyDefinition,
    StrategyKind,
    StrategyLeg,
    create_strategy,
    price_complex_strategy,
    price_strategy,
)

__all__ = [
    "black76_call",
    "black76_put",
    "black_scholes_call",
    "black_scholes_greeks",
    "black_scholes_price",
    "black_scholes_put",
    "crr_price",
    "OptionResult",
    "OptionTerms",
    "PricingModel",
    "implied_volatility",
    "lognormal_probability",
    "price_option",
    "AsianSpec",
    "AveragingType",
    "BarrierSpec",
    "BarrierType",
    "LookbackSpec",
    "LookbackType",
    "barrier_hit_probability",
    "GreeksSet",
    "finite_difference_greeks",
    "heston_price",
    "merton_price",
    "Dynamics",
    "MonteCarloEngine",
    "MonteCarloResult",
    "PathSimulator",
    "LegType",
    "StrategyDefinition",
    "StrategyKind",
    "StrategyLeg",
    "create_strategy",
    "price_complex_strategy",
    "price_strategy",
]
