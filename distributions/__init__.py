"""
Distributions package — reproducible random streams and the samplers built on them.

  prng.py      — one PCG64 generator per (seed, trial)
  samplers.py  — normal (Box–Muller), log-normal from mean/CV, triangular inverse CDF
  copula.py    — single-factor Gaussian copula for correlated uniforms
"""

from .prng import UniformStream, trial_generator
from .samplers import sample_lognormal, sample_normal, sample_triangular
from .copula import correlated_uniforms

__all__ = [
    "UniformStream",
    "trial_generator",
    "sample_lognormal",
    "sample_normal",
    "sample_triangular",
    "correlated_uniforms",
]
