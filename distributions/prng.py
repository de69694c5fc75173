"""
Deterministic random streams.

Every Monte Carlo trial owns one generator seeded with (seed + trial_index), so
a trial's draws never depend on how many trials ran before it or on which
worker process ran it. numpy's PCG64 gives bit-identical sequences for the
same seed on every platform.
"""

from __future__ import annotations

import numpy as np


def trial_generator(seed: int, trial_index: int = 0) -> np.random.Generator:
    """Fresh generator for one trial."""
    return np.random.Generator(np.random.PCG64(int(seed) + int(trial_index)))


class UniformStream:
    """
    Unbounded reproducible stream of uniforms in [0, 1).

    Usage:
        stream = UniformStream(seed=42)
        u = stream.next()
        block = stream.take(10)
    """

    def __init__(self, seed: int, trial_index: int = 0):
        self.seed = int(seed) + int(trial_index)
        self.rng = trial_generator(seed, trial_index)

    def next(self) -> float:
        return float(self.rng.random())

    def take(self, n: int) -> np.ndarray:
        return self.rng.random(n)

    def __iter__(self):
        return self

    def __next__(self) -> float:
        return self.next()
