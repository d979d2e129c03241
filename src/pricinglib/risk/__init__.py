"""
Risk package - portfolio aggregation, VaR/ES and stress scenarios.
"""

from .aggregator import (
    PortfolioRiskResult,
    Position,
    RiskAggregator,
    aggregate_portfolio,
    delta_normal_es,
    delta_normal_var,
    historical_es,
    historical_var,
)
from .scenarios import STANDARD_SCENARIOS, StressScenario, position_pnl, run_scenarios, scenario_pnl

__all__ = [
    "PortfolioRiskResult",
    "Position",
    "RiskAggregator",
    "aggregate_portfolio",
    "delta_normal_es",
    "delta_normal_var",
    "historical_es",
    "historical_var",
    "STANDARD_SCENARIOS",
    "StressScenario",
    "position_pnl",
    "run_scenarios",
    "scenario_pnl",
]
