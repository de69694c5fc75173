"""
Sensitivity tornado — how much worse does the peak P80 shortfall get when one
risk factor is stressed?

Like attribution, the baseline and every stressed run use
settings.sensitivity_trials trials and the same seed, so the difference comes
from the stressed factor and not from sampling noise.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from core.config import PolicyConfig, ProjectConfig, SimulationSettings
from core.results import SensitivityFactor
from data_prep.grid_builder import PreparedInputs
from engine.runner import build_context, run_trials
from risk.params import RiskParams
from risk.stress import STRESS_TESTS, StressTest

from .aggregator import peak_shortfall_p80

logger = logging.getLogger(__name__)


def _peak_shortfall(
    inputs: PreparedInputs,
    params: RiskParams,
    policy: PolicyConfig,
    project: ProjectConfig,
    settings: SimulationSettings,
) -> float:
    ctx = build_context(inputs, params, policy, project, seed=settings.seed)
    return peak_shortfall_p80(run_trials(ctx, settings.sensitivity_trials))


def sensitivity_analysis(
    inputs: PreparedInputs,
    params: RiskParams,
    policy: PolicyConfig,
    project: ProjectConfig,
    settings: SimulationSettings,
    *,
    tests: Sequence[StressTest] = STRESS_TESTS,
) -> List[SensitivityFactor]:
    """One stressed re-run per test, largest absolute impact first."""
    base = _peak_shortfall(inputs, params, policy, project, settings)
    factors = []
    for test in tests:
        stressed = _peak_shortfall(inputs, test.stress(params), policy, project, settings)
        logger.info("Sensitivity %-22s base=%.2f stressed=%.2f", test.name, base, stressed)
        factors.append(
            SensitivityFactor(
                factor=test.name,
                change=test.change,
                base_shortfall_p80=base,
                stressed_shortfall_p80=stressed,
                impact_on_shortfall=stressed - base,
            )
        )
    factors.sort(key=lambda f: abs(f.impact_on_shortfall), reverse=True)
    return factors
