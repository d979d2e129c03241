"""
Stress scenarios by Taylor expansion.

Each scenario shocks spot (relative), volatility, rates and credit spreads
(absolute, decimal). P&L is approximated from the stored sensitivities with
no model recalibration:

    options: delta dS + 1/2 gamma dS^2 + vega dsigma + rho dr
             + vanna dS dsigma + 1/2 volga dsigma^2
    bonds:   -D P dy + 1/2 C P dy^2,  dy = rate shift + spread shift

D and C are modified duration and convexity for straight bonds and the
effective (lattice) measures for bonds with embedded options.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Sequence

import pandas as pd

from .aggregator import Position


@dataclass(frozen=True)
class StressScenario:
    """
    Definition of a market stress.

    Attributes:
        name: Scenario name
        spot_shift: Relative move of the underlying (-0.20 = down 20%)
        vol_shift: Absolute volatility move
        rate_shift: Absolute rate move
        spread_shift: Absolute credit-spread move
        description: Description of the scenario
    """
    name: str
    spot_shift: float = 0.0
    vol_shift: float = 0.0
    rate_shift: float = 0.0
    spread_shift: float = 0.0
    description: str = ""


STANDARD_SCENARIOS: Dict[str, StressScenario] = {
    "bull": StressScenario(
        name="Bull",
        rate_shift=-0.02,
        spread_shift=-0.001,
        description="Yields down 200bp, spreads tighten 10bp",
    ),
    "base": StressScenario(
        name="Base",
        description="No change",
    ),
    "bear": StressScenario(
        name="Bear",
        rate_shift=0.03,
        spread_shift=0.002,
        description="Yields up 300bp, spreads widen 20bp",
    ),
    "equity_crash": StressScenario(
        name="Equity Crash",
        spot_shift=-0.20,
        vol_shift=0.15,
        rate_shift=-0.01,
        spread_shift=0.005,
        description="Spot down 20%, vol up 15 points, flight to quality",
    ),
    "vol_spike": StressScenario(
        name="Vol Spike",
        vol_shift=0.10,
        description="Implied vol up 10 points, spot unchanged",
    ),
}


def position_pnl(position: Position, scenario: StressScenario) -> float:
    """Second-order P&L of one position under a scenario."""
    result = position.result
    if position.is_bond:
        dy = scenario.rate_shift + scenario.spread_shift
        price = result.dirty_price
        pnl = -result.rate_duration * price * dy + 0.5 * result.rate_convexity * price * dy ** 2
        return position.weight * pnl

    g = result.greeks
    dS = result.spot * scenario.spot_shift
    dv = scenario.vol_shift
    dr = scenario.rate_shift
    pnl = (
        g.delta * dS
        + 0.5 * g.gamma * dS ** 2
        + g.vega * dv
        + g.rho * dr
        + g.vanna * dS * dv
        + 0.5 * g.volga * dv ** 2
    )
    return position.weight * pnl


def scenario_pnl(positions: Iterable[Position], scenario: StressScenario) -> float:
    return float(sum(position_pnl(p, scenario) for p in positions))


def run_scenarios(
    positions: Sequence[Position],
    scenarios: Optional[Iterable[StressScenario]] = None,
) -> pd.DataFrame:
    """
    Run stress scenarios over a portfolio.

    Args:
        positions: Weighted priced instruments
        scenarios: Scenarios to run (default: STANDARD_SCENARIOS)

    Returns:
        DataFrame with one row per scenario
    """
    scenarios = list(scenarios) if scenarios is not None else list(STANDARD_SCENARIOS.values())
    columns = ["Scenario", "Description", "Spot Shift", "Vol Shift", "Rate Shift",
               "Spread Shift", "Option P&L", "Bond P&L", "P&L"]
    if not scenarios:
        return pd.DataFrame(columns=columns)

    rows = []
    for sc in scenarios:
        option_pnl = sum(position_pnl(p, sc) for p in positions if not p.is_bond)
        bond_pnl = sum(position_pnl(p, sc) for p in positions if p.is_bond)
        rows.append({
            "Scenario": sc.name,
            "Description": sc.description,
            "Spot Shift": sc.spot_shift,
            "Vol Shift": sc.vol_shift,
            "Rate Shift": sc.rate_shift,
            "Spread Shift": sc.spread_shift,
            "Option P&L": float(option_pnl),
            "Bond P&L": float(bond_pnl),
            "P&L": float(option_pnl + bond_pnl),
        })
    return pd.DataFrame(rows, columns=columns)


__all__ = [
    "StressScenario",
    "STANDARD_SCENARIOS",
    "position_pnl",
    "scenario_pnl",
    "run_scenarios",
]
