"""
Pricers package - bond pricing and the trade dispatch boundary.

Provides:
- Fixed, callable, putable and convertible bond pricing with credit and tax
- Black-Derman-Toy short-rate lattice for embedded options
- price_trade() dispatch over bonds, options and strategies
"""

from .bonds import (
    CREDIT_RATINGS,
    BondCashflow,
    BondCashflows,
    BondPricer,
    BondResult,
    BondTerms,
    CreditAnalysis,
    EmbeddedOption,
    TaxAnalysis,
    price_bond,
)
from .lattice import ExerciseBoundary, ShortRateLattice, exercise_steps
from .dispatcher import PricerOutput, price_complex_strategy, price_option, price_trade

__all__ = [
    "CREDIT_RATINGS",
    "BondCashflow",
    "BondCashflows",
    "BondPricer",
    "BondResult",
    "BondTerms",
    "CreditAnalysis",
    "EmbeddedOption",
    "TaxAnalysis",
    "price_bond",
    "ExerciseBoundary",
    "ShortRateLattice",
    "exercise_steps",
    "PricerOutput",
    "price_complex_strategy",
    "price_option",
    "price_trade",
]
