"""
PricingLib: Bond and Option Fair-Value & Risk Engine

A modular library for:
- Building discount curves and pricing fixed, callable and putable bonds
  (OAS on a Black-Derman-Toy lattice, duration, convexity, credit and tax)
- Pricing vanilla and exotic options under Black-Scholes, CRR, Monte Carlo,
  Heston, SABR and Merton jump-diffusion, with full Greeks
- Multi-leg option strategies with breakeven and payoff analytics
- Portfolio aggregation, delta-normal VaR/ES and stress scenarios

Every calculation is a pure function of its inputs; cancellation of long
calculations is cooperative via pricinglib.jobs.
"""

__version__ = "0.1.0"

# Core modules
from .conventions import (
    BondStructure,
    CompoundingConvention,
    ExerciseStyle,
    Frequency,
    NumericalSettings,
    OptionType,
    VarianceReduction,
    convert_rate,
)
from .exceptions import (
    CalculationCancelled,
    ConvergenceError,
    ModelFallbackWarning,
    NumericalInstabilityWarning,
    PricingError,
    ValidationError,
)
from .jobs import CancellationToken, LatestRequestRunner

# Curves
from .curves import YieldCurve, YieldCurvePoint, create_flat_curve

# Volatility models
from .vol import HestonParams, JumpDiffusionParams, MonteCarloConfig, SabrParams

# Options
from .options import (
    AsianSpec,
    BarrierSpec,
    GreeksSet,
    LookbackSpec,
    OptionResult,
    OptionTerms,
    PricingModel,
    StrategyDefinition,
    StrategyKind,
    StrategyLeg,
    create_strategy,
    implied_volatility,
)

# Pricers
from .pricers import (
    BondResult,
    BondTerms,
    CreditAnalysis,
    EmbeddedOption,
    PricerOutput,
    TaxAnalysis,
    price_bond,
    price_complex_strategy,
    price_option,
    price_trade,
)

# Risk
from .risk import (
    STANDARD_SCENARIOS,
    PortfolioRiskResult,
    Position,
    RiskAggregator,
    StressScenario,
    historical_es,
    historical_var,
    run_scenarios,
)

__all__ = [
    "__version__",
    # Core
    "BondStructure",
    "CompoundingConvention",
    "ExerciseStyle",
    "Frequency",
    "NumericalSettings",
    "OptionType",
    "VarianceReduction",
    "convert_rate",
    "CalculationCancelled",
    "ConvergenceError",
    "ModelFallbackWarning",
    "NumericalInstabilityWarning",
    "PricingError",
    "ValidationError",
    "CancellationToken",
    "LatestRequestRunner",
    # Curves
    "YieldCurve",
    "YieldCurvePoint",
    "create_flat_curve",
    # Vol
    "HestonParams",
    "JumpDiffusionParams",
    "MonteCarloConfig",
    "SabrParams",
    # Options
    "AsianSpec",
    "BarrierSpec",
    "GreeksSet",
    "LookbackSpec",
    "OptionResult",
    "OptionTerms",
    "PricingModel",
    "StrategyDefinition",
    "StrategyKind",
    "StrategyLeg",
    "create_strategy",
    "implied_volatility",
    # Pricers
    "BondResult",
    "BondTerms",
    "CreditAnalysis",
    "EmbeddedOption",
    "PricerOutput",
    "TaxAnalysis",
    "price_bond",
    "price_complex_strategy",
    "price_option",
    "price_trade",
    # Risk
    "STANDARD_SCENARIOS",
    "PortfolioRiskResult",
    "Position",
    "RiskAggregator",
    "StressScenario",
    "historical_es",
    "historical_var",
    "run_scenarios",
]
