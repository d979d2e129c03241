"""
Model parameter bundles for the option engines.

Each bundle validates itself on construction and raises ValidationError for
values outside the model's domain:
- HestonParams: stochastic variance (v0, kappa, theta, sigma, rho)
- JumpDiffusionParams: Merton lognormal jumps (intensity, jump_mean, jump_vol)
- MonteCarloConfig: path count, discretisation, seeding and parallelism

SabrParams lives in vol.sabr next to the Hagan formulas.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Optional

import numpy as np

from ..conventions import VarianceReduction
from ..exceptions import ValidationError


@dataclass(frozen=True)
class HestonParams:
    """
    Heston (1993) stochastic volatility parameters.

        dS = (r - q) S dt + sqrt(v) S dW_1
        dv = kappa (theta - v) dt + sigma sqrt(v) dW_2
        Corr(dW_1, dW_2) = rho

    Attributes:
        v0: Initial variance
        kappa: Mean-reversion speed
        theta: Long-run variance
        sigma: Volatility of variance
        rho: Spot/variance correlation
    """
    v0: float
    kappa: float
    theta: float
    sigma: float
    rho: float

    def __post_init__(self):
        for name in ("v0", "kappa", "theta", "sigma"):
            value = getattr(self, name)
            if not value > 0:
                raise ValidationError("must be positive", field=name, value=value)
        if not -1.0 <= self.rho <= 1.0:
            raise ValidationError("must be in [-1, 1]", field="rho", value=self.rho)

    @property
    def feller_satisfied(self) -> bool:
        """2 kappa theta >= sigma^2 keeps the variance strictly positive."""
        return 2.0 * self.kappa * self.theta >= self.sigma ** 2

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass(frozen=True)
class JumpDiffusionParams:
    """
    Merton (1976) jump-diffusion parameters.

    Jumps arrive as a Poisson process; each multiplies the spot by exp(Y)
    with Y ~ N(jump_mean, jump_vol^2).

    Attributes:
        intensity: Expected jumps per year
        jump_mean: Mean of log jump size
        jump_vol: Std dev of log jump size
    """
    intensity: float
    jump_mean: float
    jump_vol: float

    def __post_init__(self):
        if self.intensity < 0:
            raise ValidationError("must be non-negative", field="intensity", value=self.intensity)
        if self.jump_vol < 0:
            raise ValidationError("must be non-negative", field="jump_vol", value=self.jump_vol)

    @property
    def compensator(self) -> float:
        """E[exp(Y)] - 1, the drift correction per unit intensity."""
        return float(np.exp(self.jump_mean + 0.5 * self.jump_vol ** 2) - 1.0)

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass(frozen=True)
class MonteCarloConfig:
    """
    Monte Carlo simulation settings.

    Paths are generated in blocks of ``block_size``; block k draws from
    ``SeedSequence(seed, spawn_key=(k,))``. Results therefore depend only on
    (seed, path_count, block_size) and never on ``workers``.

    Attributes:
        path_count: Number of simulated paths
        time_steps: Discretisation steps per path
        seed: Entropy for reproducible runs (None draws fresh OS entropy)
        variance_reduction: NONE, ANTITHETIC or CONTROL_VARIATE
        block_size: Paths per seeded block (even, for antithetic pairs)
        workers: Threads used to simulate blocks
    """
    path_count: int = 100_000
    time_steps: int = 100
    seed: Optional[int] = None
    variance_reduction: VarianceReduction = VarianceReduction.NONE
    block_size: int = 10_000
    workers: int = 1

    def __post_init__(self):
        if not isinstance(self.variance_reduction, VarianceReduction):
            object.__setattr__(self, "variance_reduction",
                               VarianceReduction(str(self.variance_reduction).lower()))
        if self.path_count < 2:
            raise ValidationError("at least 2 paths are required", field="path_count",
                                  value=self.path_count)
        if self.time_steps < 1:
            raise ValidationError("must be positive", field="time_steps", value=self.time_steps)
        if self.block_size < 2 or self.block_size % 2:
            raise ValidationError("must be a positive even number", field="block_size",
                                  value=self.block_size)
        if self.workers < 1:
            raise ValidationError("must be positive", field="workers", value=self.workers)
        if self.seed is not None and self.seed < 0:
            raise ValidationError("must be non-negative", field="seed", value=self.seed)

    @property
    def n_blocks(self) -> int:
        return -(-self.path_count // self.block_size)

    def to_dict(self) -> Dict:
        """Convert to dictionary."""
        d = asdict(self)
        d["variance_reduction"] = self.variance_reduction.value
        return d


__all__ = [
    "HestonParams",
    "JumpDiffusionParams",
    "MonteCarloConfig",
]
