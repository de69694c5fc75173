"""
Single-factor Gaussian copula.

Entities on the same project share labour pools, suppliers and weather, so their
demand overruns tend to move together. One common normal factor drives all of
them:

    latent_i = sqrt(rho) * common + sqrt(1 - rho) * specific_i
    u_i      = Phi(latent_i)

rho = 0 gives independent uniforms, rho = 1 makes every entity draw the same
uniform.
"""

from __future__ import annotations

import math

import numpy as np
from scipy.stats import norm

from .samplers import standard_normal


def correlated_uniforms(rng: np.random.Generator, n: int, rho: float) -> np.ndarray:
    """n uniforms in (0, 1) with pairwise latent correlation rho."""
    rho = min(max(float(rho), 0.0), 1.0)
    common = standard_normal(rng)
    specific = np.array([standard_normal(rng) for _ in range(n)], dtype=float)
    latent = math.sqrt(rho) * common + math.sqrt(1.0 - rho) * specific
    return norm.cdf(latent)
