"""
Monte Carlo option pricing.

Path dynamics:
- GBM: exact log-Euler steps
- Heston: full-truncation Euler on the variance
- Merton jump-diffusion: compensated Poisson jumps with lognormal sizes
- SABR: lognormal Euler on the forward with stochastic alpha

Variance reduction:
- Antithetic variates: each block holds (Z, -Z) pairs; statistics are taken
  over pair averages
- Control variate: discounted terminal spot, whose expectation is S e^{-qT}

Reproducibility:
Paths are generated in fixed-size blocks. Block k draws from
``SeedSequence(entropy, spawn_key=(k,))`` and its moments are merged in block
order, so the estimate depends on (seed, path_count, block_size) but not on
how many worker threads simulate the blocks.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from ..conventions import VarianceReduction
from ..exceptions import ValidationError
from ..jobs import CancellationToken, check_cancelled
from ..vol.models import HestonParams, JumpDiffusionParams, MonteCarloConfig
from ..vol.sabr import SabrParams

logger = logging.getLogger(__name__)

Z_95 = 1.96

# payoff(paths, rng) -> (undiscounted payoffs, {statistic: per-path values})
PathPayoff = Callable[[np.ndarray, np.random.Generator], Tuple[np.ndarray, Dict[str, np.ndarray]]]


class Dynamics(Enum):
    """Underlying process simulated by the path generator."""
    GBM = "gbm"
    HESTON = "heston"
    MERTON = "merton"
    SABR = "sabr"


@dataclass
class MonteCarloResult:
    """
    Monte Carlo estimate.

    Attributes:
        price: Discounted mean payoff (control-variate adjusted if enabled)
        standard_error: Standard error of the estimate
        confidence_interval: price -/+ 1.96 standard errors
        path_count: Paths simulated
        statistics: Path averages of auxiliary quantities (hit fraction,
            average price, extrema)
    """
    price: float
    standard_error: float
    confidence_interval: Tuple[float, float]
    path_count: int
    statistics: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        """Convert to dictionary."""
        return {
            "price": self.price,
            "standard_error": self.standard_error,
            "ci_lower": self.confidence_interval[0],
            "ci_upper": self.confidence_interval[1],
            "path_count": self.path_count,
            **self.statistics,
        }


@dataclass
class _Moments:
    """Running moments of (Y, X) merged with Chan's parallel update."""
    n: int = 0
    mean_y: float = 0.0
    mean_x: float = 0.0
    m2_y: float = 0.0
    m2_x: float = 0.0
    c_xy: float = 0.0

    @classmethod
    def from_samples(cls, y: np.ndarray, x: np.ndarray) -> "_Moments":
        my, mx = float(np.mean(y)), float(np.mean(x))
        dy, dx = y - my, x - mx
        return cls(len(y), my, mx, float(dy @ dy), float(dx @ dx), float(dx @ dy))

    def merge(self, other: "_Moments") -> "_Moments":
        if self.n == 0:
            return other
        n = self.n + other.n
        dy = other.mean_y - self.mean_y
        dx = other.mean_x - self.mean_x
        w = self.n * other.n / n
        return _Moments(
            n=n,
            mean_y=self.mean_y + dy * other.n / n,
            mean_x=self.mean_x + dx * other.n / n,
            m2_y=self.m2_y + other.m2_y + dy * dy * w,
            m2_x=self.m2_x + other.m2_x + dx * dx * w,
            c_xy=self.c_xy + other.c_xy + dx * dy * w,
        )


class PathSimulator:
    """
    Generates seeded blocks of spot paths.

    Attributes:
        S, T, r, q: Market inputs
        config: MonteCarloConfig
        dynamics: Process to simulate
        sigma: Diffusion volatility (GBM, Merton; also Brownian-bridge vol)
        entropy: Seed entropy shared by every block
    """

    def __init__(
        self,
        S: float,
        T: float,
        r: float,
        q: float,
        config: MonteCarloConfig,
        dynamics: Dynamics = Dynamics.GBM,
        sigma: Optional[float] = None,
        heston: Optional[HestonParams] = None,
        jump: Optional[JumpDiffusionParams] = None,
        sabr: Optional[SabrParams] = None,
    ):
        if T <= 0:
            raise ValidationError("simulation horizon must be positive", field="T", value=T)
        if dynamics in (Dynamics.GBM, Dynamics.MERTON) and (sigma is None or sigma < 0):
            raise ValidationError("diffusion volatility required", field="sigma", value=sigma)
        if dynamics is Dynamics.HESTON and heston is None:
            raise ValidationError("Heston parameters required", field="heston", value=None)
        if dynamics is Dynamics.MERTON and jump is None:
            raise ValidationError("jump parameters required", field="jump", value=None)
        if dynamics is Dynamics.SABR and sabr is None:
            raise ValidationError("SABR parameters required", field="sabr", value=None)

        self.S, self.T, self.r, self.q = S, T, r, q
        self.config = config
        self.dynamics = dynamics
        self.sigma = sigma
        self.heston = heston
        self.jump = jump
        self.sabr = sabr
        self.steps = config.time_steps
        self.dt = T / config.time_steps
        self.antithetic = config.variance_reduction is VarianceReduction.ANTITHETIC
        self.entropy = config.seed if config.seed is not None else np.random.SeedSequence().entropy

    @property
    def bridge_vol(self) -> Optional[float]:
        """Constant diffusion vol for the Brownian-bridge correction, if any."""
        if self.dynamics in (Dynamics.GBM, Dynamics.MERTON):
            return self.sigma
        return None

    def block_sizes(self) -> List[int]:
        cfg = self.config
        sizes = [cfg.block_size] * (cfg.n_blocks - 1)
        last = cfg.path_count - cfg.block_size * (cfg.n_blocks - 1)
        if self.antithetic and last % 2:
            last += 1
        sizes.append(last)
        return sizes

    def rng(self, block: int) -> np.random.Generator:
        return np.random.default_rng(np.random.SeedSequence(self.entropy, spawn_key=(block,)))

    def _normals(self, rng: np.random.Generator, n_paths: int, dims: int) -> np.ndarray:
        if self.antithetic:
            z = rng.standard_normal((n_paths // 2, self.steps, dims))
            return np.concatenate([z, -z])
        return rng.standard_normal((n_paths, self.steps, dims))

    def simulate(self, block: int, n_paths: int) -> Tuple[np.ndarray, np.random.Generator]:
        """
        Simulate one block.

        Returns:
            (paths of shape (n_paths, steps + 1), the block's generator for
            any further payoff draws)
        """
        rng = self.rng(block)
        if self.dynamics is Dynamics.GBM:
            paths = self._gbm(rng, n_paths)
        elif self.dynamics is Dynamics.HESTON:
            paths = self._heston(rng, n_paths)
        elif self.dynamics is Dynamics.MERTON:
            paths = self._merton(rng, n_paths)
        else:
            paths = self._sabr(rng, n_paths)
        return paths, rng

    def _from_log_increments(self, increments: np.ndarray) -> np.ndarray:
        log_paths = np.concatenate(
            [np.zeros((increments.shape[0], 1)), np.cumsum(increments, axis=1)], axis=1
        )
        return self.S * np.exp(log_paths)

    def _gbm(self, rng, n_paths):
        z = self._normals(rng, n_paths, 1)[:, :, 0]
        drift = (self.r - self.q - 0.5 * self.sigma ** 2) * self.dt
        return self._from_log_increments(drift + self.sigma * np.sqrt(self.dt) * z)

    def _merton(self, rng, n_paths):
        p = self.jump
        z = self._normals(rng, n_paths, 2)
        n_draw = n_paths // 2 if self.antithetic else n_paths
        counts = rng.poisson(p.intensity * self.dt, size=(n_draw, self.steps))
        if self.antithetic:
            counts = np.concatenate([counts, counts])
        jumps = counts * p.jump_mean + np.sqrt(counts) * p.jump_vol * z[:, :, 1]
        drift = (self.r - self.q - p.intensity * p.compensator - 0.5 * self.sigma ** 2) * self.dt
        return self._from_log_increments(drift + self.sigma * np.sqrt(self.dt) * z[:, :, 0] + jumps)

    def _heston(self, rng, n_paths):
        p = self.heston
        z = self._normals(rng, n_paths, 2)
        dt, sqrt_dt = self.dt, np.sqrt(self.dt)
        corr = np.sqrt(1.0 - p.rho ** 2)
        log_s = np.zeros((n_paths, self.steps + 1))
        v = np.full(n_paths, p.v0)
        for i in range(self.steps):
            v_pos = np.maximum(v, 0.0)
            z1 = z[:, i, 0]
            z2 = p.rho * z1 + corr * z[:, i, 1]
            log_s[:, i + 1] = log_s[:, i] + (self.r - self.q - 0.5 * v_pos) * dt + np.sqrt(v_pos) * sqrt_dt * z1
            v = v + p.kappa * (p.theta - v_pos) * dt + p.sigma * np.sqrt(v_pos) * sqrt_dt * z2
        return self.S * np.exp(log_s)

    def _sabr(self, rng, n_paths):
        p = self.sabr
        z = self._normals(rng, n_paths, 2)
        dt, sqrt_dt = self.dt, np.sqrt(self.dt)
        corr = np.sqrt(1.0 - p.rho ** 2)
        carry = self.r - self.q
        fwd = np.full(n_paths, self.S * np.exp(carry * self.T))
        alpha = np.full(n_paths, p.alpha)
        paths = np.empty((n_paths, self.steps + 1))
        paths[:, 0] = self.S
        for i in range(self.steps):
            z1 = z[:, i, 0]
            z2 = p.rho * z1 + corr * z[:, i, 1]
            local = alpha * (fwd + p.shift) ** (p.beta - 1.0)
            fwd = (fwd + p.shift) * np.exp(-0.5 * local ** 2 * dt + local * sqrt_dt * z1) - p.shift
            alpha = alpha * np.exp(-0.5 * p.nu ** 2 * dt + p.nu * sqrt_dt * z2)
            t = (i + 1) * dt
            paths[:, i + 1] = fwd * np.exp(-carry * (self.T - t))
        return paths


class MonteCarloEngine:
    """
    Prices path payoffs over seeded blocks.

    Example:
        >>> sim = PathSimulator(100, 1.0, 0.05, 0.0, MonteCarloConfig(seed=7), sigma=0.2)
        >>> MonteCarloEngine(sim).price(vanilla_payoff(100, True)).price
    """

    def __init__(self, simulator: PathSimulator, cancel_token: Optional[CancellationToken] = None):
        self.sim = simulator
        self.cancel_token = cancel_token

    @property
    def discount(self) -> float:
        return float(np.exp(-self.sim.r * self.sim.T))

    def _map_blocks(self, fn: Callable[[int, int], object]) -> list:
        sizes = self.sim.block_sizes()
        workers = self.sim.config.workers
        logger.debug("Simulating %d blocks on %d workers", len(sizes), workers)

        def run(k: int):
            check_cancelled(self.cancel_token)
            return fn(k, sizes[k])

        if workers > 1 and len(sizes) > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                return list(executor.map(run, range(len(sizes))))
        return [run(k) for k in range(len(sizes))]

    def _sample_moments(self, y: np.ndarray, x: np.ndarray) -> _Moments:
        if self.sim.antithetic:
            half = len(y) // 2
            y = 0.5 * (y[:half] + y[half:])
            x = 0.5 * (x[:half] + x[half:])
        return _Moments.from_samples(y, x)

    def _finish(self, moments: _Moments, path_count: int, stats: Dict[str, float]) -> MonteCarloResult:
        n = moments.n
        dof = max(n - 1, 1)
        if self.sim.config.variance_reduction is VarianceReduction.CONTROL_VARIATE and moments.m2_x > 0:
            beta = moments.c_xy / moments.m2_x
            expected_x = self.sim.S * np.exp(-self.sim.q * self.sim.T)
            price = moments.mean_y - beta * (moments.mean_x - expected_x)
            var = max(moments.m2_y - moments.c_xy ** 2 / moments.m2_x, 0.0) / dof
        else:
            price = moments.mean_y
            var = moments.m2_y / dof

        se = float(np.sqrt(var / n))
        return MonteCarloResult(
            price=float(price),
            standard_error=se,
            confidence_interval=(float(price - Z_95 * se), float(price + Z_95 * se)),
            path_count=path_count,
            statistics=stats,
        )

    def price(self, payoff: PathPayoff) -> MonteCarloResult:
        """
        Price a European path payoff.

        Args:
            payoff: Maps (paths, rng) to undiscounted payoffs and per-path
                statistics

        Returns:
            MonteCarloResult
        """
        disc = self.discount

        def block(k: int, size: int):
            paths, rng = self.sim.simulate(k, size)
            values, extras = payoff(paths, rng)
            moments = self._sample_moments(disc * values, disc * paths[:, -1])
            return moments, {name: float(np.sum(v)) for name, v in extras.items()}, size

        total = _Moments()
        sums: Dict[str, float] = {}
        count = 0
        for moments, extras, size in self._map_blocks(block):
            total = total.merge(moments)
            for name, value in extras.items():
                sums[name] = sums.get(name, 0.0) + value
            count += size

        return self._finish(total, count, {name: v / count for name, v in sums.items()})

    def price_american(self, strike: float, is_call: bool) -> MonteCarloResult:
        """
        Longstaff-Schwartz valuation of an American vanilla.

        Exercise is allowed at every time step. The continuation value of
        in-the-money paths is regressed on (1, x, x^2) with x = S / K.
        """
        sim = self.sim
        phi = 1.0 if is_call else -1.0
        blocks = self._map_blocks(lambda k, size: sim.simulate(k, size)[0])
        sizes = [len(b) for b in blocks]
        paths = np.concatenate(blocks)

        step_disc = np.exp(-sim.r * sim.dt)
        exercise = np.maximum(phi * (paths - strike), 0.0)
        cash = exercise[:, -1].copy()

        for t in range(sim.steps - 1, 0, -1):
            if t % 16 == 0:
                check_cancelled(self.cancel_token)
            cash *= step_disc
            itm = np.nonzero(exercise[:, t] > 0)[0]
            if len(itm) < 4:
                continue
            x = paths[itm, t] / strike
            basis = np.column_stack([np.ones_like(x), x, x * x])
            coef, *_ = np.linalg.lstsq(basis, cash[itm], rcond=None)
            continuation = basis @ coef
            ex_now = exercise[itm, t] > continuation
            chosen = itm[ex_now]
            cash[chosen] = exercise[chosen, t]
        cash *= step_disc

        control = self.discount * paths[:, -1]
        total = _Moments()
        start = 0
        for size in sizes:
            total = total.merge(self._sample_moments(cash[start:start + size],
                                                     control[start:start + size]))
            start += size

        result = self._finish(total, len(paths), {})
        intrinsic = max(phi * (sim.S - strike), 0.0)
        if intrinsic > result.price:
            lo, hi = result.confidence_interval
            shift = intrinsic - result.price
            result = MonteCarloResult(intrinsic, result.standard_error, (lo + shift, hi + shift),
                                      result.path_count, result.statistics)
        return result


def vanilla_payoff(strike: float, is_call: bool) -> PathPayoff:
    """European call/put payoff on the terminal spot."""
    phi = 1.0 if is_call else -1.0

    def payoff(paths: np.ndarray, rng: np.random.Generator):
        return np.maximum(phi * (paths[:, -1] - strike), 0.0), {}

    return payoff


def barrier_hit(
    paths: np.ndarray,
    barrier: float,
    is_up: bool,
    rng: np.random.Generator,
    bridge_vol: Optional[float] = None,
    dt: float = 0.0,
) -> np.ndarray:
    """
    Flag paths that touch the barrier.

    Discrete monitoring at every step, plus a Brownian-bridge crossing test
    between steps when a constant diffusion vol is known.
    """
    if is_up:
        hit = np.any(paths >= barrier, axis=1)
    else:
        hit = np.any(paths <= barrier, axis=1)

    if bridge_vol is not None and bridge_vol > 0 and dt > 0:
        log_dist = np.log(paths / barrier)
        a, b = log_dist[:, :-1], log_dist[:, 1:]
        same_side = (a * b) > 0
        prob = np.where(same_side, np.exp(-2.0 * a * b / (bridge_vol ** 2 * dt)), 0.0)
        u = rng.random(prob.shape)
        hit |= np.any(u < prob, axis=1)
    return hit


__all__ = [
    "Dynamics",
    "MonteCarloResult",
    "PathSimulator",
    "MonteCarloEngine",
    "PathPayoff",
    "vanilla_payoff",
    "barrier_hit",
]
