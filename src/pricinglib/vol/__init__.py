"""
Volatility model set - parameter bundles for the option engines.

Provides:
- HestonParams, JumpDiffusionParams, MonteCarloConfig
- SabrParams with the Hagan implied-vol approximation
"""

from .models import HestonParams, JumpDiffusionParams, MonteCarloConfig
from .sabr import SabrParams, hagan_black_vol, sabr_implied_vol

__all__ = [
    "HestonParams",
    "JumpDiffusionParams",
    "MonteCarloConfig",
    "SabrParams",
    "hagan_black_vol",
    "sabr_implied_vol",
]
