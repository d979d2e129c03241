"""
Curves package - yield curve interpolation.

Provides:
- YieldCurve: discount factors, spot and forward rates from anchor points
- YieldCurvePoint: snapshot value object
- Interpolators on log discount factors
"""

from .curve import YieldCurve, YieldCurvePoint, create_flat_curve
from .interpolation import (
    Interpolator,
    LogLinearInterpolator,
    LinearZeroInterpolator,
    create_interpolator,
)

__all__ = [
    "YieldCurve",
    "YieldCurvePoint",
    "create_flat_curve",
    "Interpolator",
    "LogLinearInterpolator",
    "LinearZeroInterpolator",
    "create_interpolator",
]
