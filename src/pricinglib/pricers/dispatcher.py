"""
Unified trade-level pricing dispatch.

The engine boundary: price_bond(), price_option() and price_complex_strategy()
take typed inputs; price_trade() accepts a plain trade dict and returns a
PricerOutput with a consistent shape for every instrument.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..conventions import NumericalSettings
from ..curves import YieldCurve, create_flat_curve
from ..exceptions import ValidationError
from ..jobs import CancellationToken
from ..options.engine import OptionTerms, PricingModel, price_option
from ..options.exotics import AsianSpec, BarrierSpec, LookbackSpec
from ..options.strategies import (
    StrategyKind,
    StrategyLeg,
    create_strategy,
    price_complex_strategy,
)
from ..vol.models import HestonParams, JumpDiffusionParams, MonteCarloConfig
from ..vol.sabr import SabrParams
from .bonds import BondTerms, CreditAnalysis, EmbeddedOption, TaxAnalysis, price_bond


@dataclass
class PricerOutput:
    """Container for pricing outputs to keep return type consistent."""

    instrument_type: str
    pv: float
    details: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"instrument_type": self.instrument_type, "pv": self.pv, **self.details}


_MODEL_PARAMS = {
    PricingModel.HESTON: ("heston", HestonParams),
    PricingModel.SABR: ("sabr", SabrParams),
    PricingModel.JUMP_DIFFUSION: ("jump", JumpDiffusionParams),
}


def _curve(trade: Dict[str, Any]) -> YieldCurve:
    curve = trade.get("curve")
    if isinstance(curve, YieldCurve):
        return curve
    if curve is not None:
        return YieldCurve.from_zero_rates(list(curve["maturities"]), list(curve["zero_rates"]))
    return create_flat_curve(float(trade.get("rate", 0.0)))


def _credit(trade: Dict[str, Any]) -> Optional[CreditAnalysis]:
    recovery = float(trade.get("recovery_rate", 0.4))
    if trade.get("rating"):
        credit = CreditAnalysis.from_rating(str(trade["rating"]), recovery_rate=recovery)
        if "credit_spread" in trade:
            return CreditAnalysis(credit.rating, float(trade["credit_spread"]), recovery,
                                  credit.default_probability, credit.obligor_count)
        return credit
    if "credit_spread" in trade or "default_probability" in trade:
        return CreditAnalysis(
            spread=float(trade.get("credit_spread", 0.0)),
            recovery_rate=recovery,
            default_probability=float(trade.get("default_probability", 0.0)),
        )
    return None


def _model_inputs(trade: Dict[str, Any], model: PricingModel) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {}
    if model in _MODEL_PARAMS:
        key, cls = _MODEL_PARAMS[model]
        if key not in trade:
            raise ValidationError(f"{model.value} trade needs '{key}' parameters", field=key)
        kwargs["model_params"] = cls(**trade[key])
    if "monte_carlo" in trade:
        kwargs["mc_config"] = MonteCarloConfig(**trade["monte_carlo"])
    return kwargs


def _price_bond_trade(trade, inst, settings, cancel_token) -> PricerOutput:
    face_value = float(trade.get("face_value", 100.0))
    notional = float(trade.get("notional", face_value))
    terms = BondTerms(
        face_value=face_value,
        coupon_rate=float(trade.get("coupon", 0.0)),
        maturity=float(trade["maturity"]),
        frequency=int(trade.get("frequency", 2)),
        structure=trade.get("structure", "fixed"),
        market_price=trade.get("market_price"),
        market_yield=trade.get("market_yield"),
    )
    options = [EmbeddedOption(**opt) for opt in trade.get("embedded_options", ())]
    tax = TaxAnalysis(**trade["tax"]) if "tax" in trade else None

    result = price_bond(terms, _curve(trade), _credit(trade), options, tax, settings, cancel_token)
    return PricerOutput(
        instrument_type=inst,
        pv=result.dirty_price / face_value * notional,
        details=result.to_dict(),
    )


def _price_option_trade(trade, inst, settings, cancel_token) -> PricerOutput:
    model = PricingModel(str(trade.get("model", "black_scholes")).lower())
    quantity = float(trade.get("quantity", 1.0))
    terms = OptionTerms(
        spot=float(trade["spot"]),
        strike=float(trade["strike"]),
        time_to_expiration=float(trade["expiry"]),
        risk_free_rate=float(trade.get("rate", 0.0)),
        dividend_yield=float(trade.get("dividend_yield", 0.0)),
        volatility=float(trade.get("vol", 0.2)),
        style=trade.get("style", "european"),
        payoff=trade.get("option_type", "call"),
    )
    result = price_option(
        terms,
        model,
        barrier=BarrierSpec(**trade["barrier"]) if "barrier" in trade else None,
        asian=AsianSpec(**trade["asian"]) if "asian" in trade else None,
        lookback=LookbackSpec(**trade["lookback"]) if "lookback" in trade else None,
        settings=settings,
        cancel_token=cancel_token,
        **_model_inputs(trade, model),
    )
    return PricerOutput(
        instrument_type=inst,
        pv=result.fair_value * quantity,
        details=result.to_dict(),
    )


def _price_strategy_trade(trade, inst, settings, cancel_token) -> PricerOutput:
    model = PricingModel(str(trade.get("model", "black_scholes")).lower())
    kind = StrategyKind(str(trade.get("strategy", "custom")).lower())
    spot = float(trade["spot"])
    if kind is StrategyKind.CUSTOM:
        legs = [StrategyLeg(**leg) for leg in trade["legs"]]
        underlying = float(trade.get("underlying_position_size", 0.0))
    else:
        definition = create_strategy(
            kind,
            spot,
            trade["strikes"],
            float(trade["expiry"]),
            far_expiration=trade.get("far_expiry"),
            quantity=float(trade.get("quantity", 1.0)),
        )
        legs = list(definition.legs)
        underlying = definition.underlying_position_size

    result = price_complex_strategy(
        kind,
        legs,
        spot,
        float(trade.get("rate", 0.0)),
        float(trade.get("dividend_yield", 0.0)),
        float(trade.get("vol", 0.2)),
        model=model,
        underlying_position_size=underlying,
        settings=settings,
        workers=int(trade.get("workers", 1)),
        cancel_token=cancel_token,
        **_model_inputs(trade, model),
    )
    return PricerOutput(
        instrument_type=inst,
        pv=result.fair_value,
        details=result.to_dict(),
    )


def price_trade(
    trade: Dict[str, Any],
    settings: Optional[NumericalSettings] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> PricerOutput:
    """
    Price a trade dict.

    Expected trade keys (subset used per instrument):
        instrument_type: BOND, OPTION or STRATEGY
        BOND: face_value, coupon, maturity, frequency, structure,
            market_price/market_yield, curve or rate, rating/credit_spread,
            embedded_options (list of dicts), tax (dict), notional
        OPTION: spot, strike, expiry, rate, dividend_yield, vol, style,
            option_type, model, heston/sabr/jump (dicts), barrier/asian/
            lookback (dicts), monte_carlo (dict), quantity
        STRATEGY: strategy, spot, strikes, expiry, far_expiry, rate, vol,
            legs (dicts, for custom strategies), quantity, workers
    """
    inst = str(trade.get("instrument_type", "")).upper()

    if inst in {"BOND", "UST"}:
        return _price_bond_trade(trade, inst, settings, cancel_token)

    if inst in {"OPTION", "EQUITY_OPTION"}:
        return _price_option_trade(trade, inst, settings, cancel_token)

    if inst in {"STRATEGY", "OPTION_STRATEGY"}:
        return _price_strategy_trade(trade, inst, settings, cancel_token)

    raise ValidationError(f"Unsupported instrument_type: {inst}", field="instrument_type", value=inst)


__all__ = [
    "price_bond",
    "price_option",
    "price_complex_strategy",
    "price_trade",
    "PricerOutput",
]
