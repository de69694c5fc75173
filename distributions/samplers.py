"""
Inverse-transform samplers built on a numpy Generator.

All samplers are pure functions of the generator state; the only state they
advance is the generator passed in.
"""

from __future__ import annotations

import math
from typing import Tuple

import numpy as np


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def standard_normal(rng: np.random.Generator) -> float:
    """Box-Muller over two uniform draws (u shifted into (0, 1] so log(u) is finite)."""
    u = 1.0 - rng.random()
    v = rng.random()
    return math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)


def sample_normal(rng: np.random.Generator, mean: float = 0.0, std: float = 1.0) -> float:
    return mean + std * standard_normal(rng)


def lognormal_params(mean: float, cv: float) -> Tuple[float, float]:
    """
    Location/scale (mu, sigma) of a log-normal with the given arithmetic mean and
    coefficient of variation, so callers can think in "percentage volatility".
    """
    if mean <= 0:
        raise ValueError("log-normal mean must be positive")
    sigma = math.sqrt(math.log(1.0 + max(cv, 0.0) ** 2))
    mu = math.log(mean) - 0.5 * sigma ** 2
    return mu, sigma


def sample_lognormal(rng: np.random.Generator, mean: float, cv: float) -> float:
    """
    Log-normal draw with arithmetic mean `mean` and coefficient of variation `cv`.
    A non-positive mean has no log-normal; it contributes zero (the normal draw
    is still consumed to keep the stream aligned).
    """
    z = standard_normal(rng)
    if mean <= 0:
        return 0.0
    mu, sigma = lognormal_params(mean, cv)
    return math.exp(mu + sigma * z)


def sample_triangular(u: float, low: float, mode: float, high: float) -> float:
    """Closed-form inverse CDF of the triangular distribution at uniform u."""
    if high <= low:
        return low
    mode = clamp(mode, low, high)
    c = (mode - low) / (high - low)
    if u < c:
        return low + math.sqrt(u * (high - low) * (mode - low))
    return high - math.sqrt((1.0 - u) * (high - low) * (high - mode))
