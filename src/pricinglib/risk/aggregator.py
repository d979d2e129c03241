"""
Portfolio aggregation and parametric / empirical VaR.

Positions wrap priced results (options, strategies or bonds) with a
weight. The aggregator sums value, Greeks and DV01, maps the portfolio onto
two risk factors and computes delta-normal VaR and Expected Shortfall:

    equity factor: dollar delta  E = sum(w * delta * spot), annual vol sigma_E
    rates factor:  dollar DV01   D = sum(w * dv01),         annual vol sigma_y (bp)

    P&L ~ E * r_equity - D * dy_bp
    sigma_P^2 = E^2 sigma_E^2 + D^2 sigma_y^2 - 2 rho E D sigma_E sigma_y

scaled to the horizon by sqrt(h / 252). Option rho contributes to the rates
factor as an equivalent DV01 of -rho * 1bp.

    VaR(c) = z_c sigma_P
    ES(c)  = sigma_P phi(z_c) / (1 - c)

VaR and ES are reported as positive losses.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
from scipy.stats import norm

from ..exceptions import ValidationError
from ..options.engine import OptionResult
from ..options.greeks import GreeksSet
from ..pricers.bonds import BondResult

logger = logging.getLogger(__name__)

TRADING_DAYS = 252
ONE_BP = 1e-4


@dataclass(frozen=True)
class Position:
    """
    A weighted priced instrument.

    Attributes:
        result: OptionResult (single option or strategy) or BondResult
        weight: Units held (negative for short)
        label: Identifier used in reports
    """
    result: Union[OptionResult, BondResult]
    weight: float = 1.0
    label: str = ""

    def __post_init__(self):
        if not isinstance(self.result, (OptionResult, BondResult)):
            raise ValidationError("position must wrap an OptionResult or BondResult",
                                  field="result", value=type(self.result).__name__)

    @property
    def is_bond(self) -> bool:
        return isinstance(self.result, BondResult)

    @property
    def value(self) -> float:
        return self.weight * self.result.fair_value

    @property
    def greeks(self) -> GreeksSet:
        if self.is_bond:
            return GreeksSet()
        return self.weight * self.result.greeks

    @property
    def dv01(self) -> float:
        """Dollar value lost for a 1bp rise in rates."""
        if self.is_bond:
            return self.weight * self.result.dv01
        return -self.weight * self.result.greeks.rho * ONE_BP

    @property
    def equity_exposure(self) -> float:
        """Dollar delta."""
        if self.is_bond:
            return 0.0
        return self.weight * self.result.greeks.delta * self.result.spot


@dataclass
class PortfolioRiskResult:
    """
    Aggregated portfolio risk.

    Attributes:
        value: Sum of weighted fair values
        greeks: Sum of weighted Greeks
        dv01: Portfolio DV01
        equity_exposure: Portfolio dollar delta
        pnl_volatility: Horizon P&L standard deviation
        var_95 / var_99: Delta-normal VaR
        es_95 / es_99: Delta-normal Expected Shortfall
        horizon_days: Risk horizon in trading days
        num_positions: Number of positions
    """
    value: float
    greeks: GreeksSet
    dv01: float
    equity_exposure: float
    pnl_volatility: float
    var_95: float
    var_99: float
    es_95: float
    es_99: float
    horizon_days: float
    num_positions: int
    position_values: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        """Convert to dictionary for reporting."""
        return {
            "value": self.value,
            "greeks": self.greeks.to_dict(),
            "dv01": self.dv01,
            "equity_exposure": self.equity_exposure,
            "pnl_volatility": self.pnl_volatility,
            "var_95": self.var_95,
            "var_99": self.var_99,
            "es_95": self.es_95,
            "es_99": self.es_99,
            "horizon_days": self.horizon_days,
            "num_positions": self.num_positions,
            "position_values": dict(self.position_values),
        }


def _check_confidence(confidence: float) -> None:
    if not 0.0 < confidence < 1.0:
        raise ValidationError("confidence must be in (0, 1)", field="confidence", value=confidence)


def delta_normal_var(sigma: float, confidence: float = 0.99) -> float:
    """VaR of a zero-mean normal P&L with standard deviation sigma."""
    _check_confidence(confidence)
    return float(norm.ppf(confidence) * sigma)


def delta_normal_es(sigma: float, confidence: float = 0.99) -> float:
    """Expected Shortfall of a zero-mean normal P&L with standard deviation sigma."""
    _check_confidence(confidence)
    z = norm.ppf(confidence)
    return float(sigma * norm.pdf(z) / (1.0 - confidence))


def historical_var(pnl: Sequence[float], confidence: float = 0.99) -> float:
    """
    Empirical VaR from a P&L sample.

    Args:
        pnl: P&L observations (gains positive)
        confidence: Confidence level

    Returns:
        VaR as a positive loss
    """
    _check_confidence(confidence)
    pnl_array = np.asarray(pnl, dtype=float)
    if pnl_array.size == 0:
        raise ValidationError("P&L sample is empty", field="pnl", value=[])
    return float(-np.percentile(pnl_array, (1.0 - confidence) * 100))


def historical_es(pnl: Sequence[float], confidence: float = 0.99) -> float:
    """Empirical Expected Shortfall: mean loss at or beyond the VaR."""
    var = historical_var(pnl, confidence)
    pnl_array = np.asarray(pnl, dtype=float)
    tail = pnl_array[pnl_array <= -var]
    return float(-np.mean(tail)) if len(tail) > 0 else var


class RiskAggregator:
    """
    Portfolio risk aggregator.

    Combines positions into portfolio value, Greeks, DV01 and delta-normal
    VaR/ES on an equity and a rates factor.
    """

    def __init__(
        self,
        positions: Sequence[Position],
        equity_vol: float = 0.20,
        rate_vol_bp: float = 100.0,
        correlation: float = 0.0,
    ):
        """
        Initialize aggregator.

        Args:
            positions: Weighted priced instruments
            equity_vol: Annual volatility of underlying returns
            rate_vol_bp: Annual volatility of yields in basis points
            correlation: Correlation between equity returns and yield changes
        """
        if equity_vol < 0 or rate_vol_bp < 0:
            raise ValidationError("factor volatilities must be non-negative", field="vol",
                                  value=(equity_vol, rate_vol_bp))
        if not -1.0 <= correlation <= 1.0:
            raise ValidationError("must be in [-1, 1]", field="correlation", value=correlation)
        self.positions: List[Position] = list(positions)
        self.equity_vol = equity_vol
        self.rate_vol_bp = rate_vol_bp
        self.correlation = correlation

    def portfolio_value(self) -> float:
        return float(sum(p.value for p in self.positions))

    def portfolio_greeks(self) -> GreeksSet:
        total = GreeksSet()
        for p in self.positions:
            total = total + p.greeks
        return total

    def portfolio_dv01(self) -> float:
        return float(sum(p.dv01 for p in self.positions))

    def equity_exposure(self) -> float:
        return float(sum(p.equity_exposure for p in self.positions))

    def pnl_volatility(self, horizon_days: float = 1.0) -> float:
        """Standard deviation of horizon P&L."""
        if horizon_days <= 0:
            raise ValidationError("horizon must be positive", field="horizon_days",
                                  value=horizon_days)
        scale = np.sqrt(horizon_days / TRADING_DAYS)
        e = self.equity_exposure() * self.equity_vol * scale
        d = self.portfolio_dv01() * self.rate_vol_bp * scale
        variance = e ** 2 + d ** 2 - 2.0 * self.correlation * e * d
        return float(np.sqrt(max(variance, 0.0)))

    def var(self, confidence: float = 0.99, horizon_days: float = 1.0) -> float:
        return delta_normal_var(self.pnl_volatility(horizon_days), confidence)

    def expected_shortfall(self, confidence: float = 0.99, horizon_days: float = 1.0) -> float:
        return delta_normal_es(self.pnl_volatility(horizon_days), confidence)

    def compute(self, horizon_days: float = 1.0) -> PortfolioRiskResult:
        """
        Aggregate the portfolio.

        Args:
            horizon_days: Risk horizon in trading days

        Returns:
            PortfolioRiskResult
        """
        sigma = self.pnl_volatility(horizon_days)
        values: Dict[str, float] = {}
        for i, p in enumerate(self.positions):
            label = p.label or f"position_{i}"
            values[label] = values.get(label, 0.0) + p.value

        result = PortfolioRiskResult(
            value=self.portfolio_value(),
            greeks=self.portfolio_greeks(),
            dv01=self.portfolio_dv01(),
            equity_exposure=self.equity_exposure(),
            pnl_volatility=sigma,
            var_95=delta_normal_var(sigma, 0.95),
            var_99=delta_normal_var(sigma, 0.99),
            es_95=delta_normal_es(sigma, 0.95),
            es_99=delta_normal_es(sigma, 0.99),
            horizon_days=horizon_days,
            num_positions=len(self.positions),
            position_values=values,
        )
        logger.debug("Aggregated %d positions: value=%.4f var_99=%.4f",
                     result.num_positions, result.value, result.var_99)
        return result


def aggregate_portfolio(
    positions: Sequence[Position],
    horizon_days: float = 1.0,
    equity_vol: float = 0.20,
    rate_vol_bp: float = 100.0,
    correlation: float = 0.0,
) -> PortfolioRiskResult:
    """Convenience wrapper around RiskAggregator.compute()."""
    return RiskAggregator(positions, equity_vol, rate_vol_bp, correlation).compute(horizon_days)


__all__ = [
    "Position",
    "PortfolioRiskResult",
    "RiskAggregator",
    "aggregate_portfolio",
    "delta_normal_var",
    "delta_normal_es",
    "historical_var",
    "historical_es",
]
