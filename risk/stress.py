"""
Stress transforms for the sensitivity tornado — the opposite of risk.neutralize:
each pure RiskParams -> RiskParams function makes one source of risk worse and
leaves everything else untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Tuple

from .params import RiskParams

OVERRUN_MEAN_STEP = 0.10


def stress_material_volatility(p: RiskParams, factor: float = 1.5) -> RiskParams:
    return replace(p, material_vol=replace(p.material_vol, sigma_market=p.material_vol.sigma_market * factor))


def stress_execution(p: RiskParams, step: float = OVERRUN_MEAN_STEP) -> RiskParams:
    # lower schedule confidence shows up as a higher mean overrun
    return replace(p, overrun=replace(p.overrun, mean=p.overrun.mean + step))


def stress_scope_drift(p: RiskParams, factor: float = 2.0) -> RiskParams:
    return replace(p, scope_drift=replace(p.scope_drift, mean=p.scope_drift.mean * factor))


@dataclass(frozen=True)
class StressTest:
    name: str
    change: str
    stress: Callable[[RiskParams], RiskParams]


STRESS_TESTS: Tuple[StressTest, ...] = (
    StressTest("Material Volatility", "market sigma x1.5", stress_material_volatility),
    StressTest("Execution Confidence", "overrun mean +0.10", stress_execution),
    StressTest("Scope Drift", "drift mean x2", stress_scope_drift),
)
