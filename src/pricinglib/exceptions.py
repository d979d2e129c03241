"""
Exception and warning taxonomy for the pricing engines.

- ValidationError: an input is outside its valid domain. Raised before any
  computation; no partial result is ever returned.
- ConvergenceError: a root-finder or lattice failed within its budget after
  its one deterministic fallback.
- CalculationCancelled: a cooperative cancellation token was tripped.
- NumericalInstabilityWarning: non-fatal numerical issue (Feller violation,
  degenerate Greeks) attached to an otherwise valid result.
- ModelFallbackWarning: the requested model/payoff combination was priced
  with a different model.
"""

from typing import Any, Optional


class PricingError(Exception):
    """Base class for all engine errors."""


class ValidationError(PricingError, ValueError):
    """Input outside its valid domain."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        self.field = field
        self.value = value
        if field is not None:
            message = f"{field}: {message} (got {value!r})"
        super().__init__(message)


class ConvergenceError(PricingError, RuntimeError):
    """Root-finder or lattice failed after its fallback attempt."""

    def __init__(self, method: str, message: str, iterations: Optional[int] = None):
        self.method = method
        self.iterations = iterations
        suffix = f" after {iterations} iterations" if iterations is not None else ""
        super().__init__(f"[{method}] {message}{suffix}")


class CalculationCancelled(PricingError):
    """Raised inside a long-running calculation whose token was cancelled."""


class NumericalInstabilityWarning(UserWarning):
    """Non-fatal numerical issue attached to a valid result."""


class ModelFallbackWarning(UserWarning):
    """The requested model was replaced by a supported one."""


__all__ = [
    "PricingError",
    "ValidationError",
    "ConvergenceError",
    "CalculationCancelled",
    "NumericalInstabilityWarning",
    "ModelFallbackWarning",
]
