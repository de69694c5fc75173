"""Shared fixtures: a small two-entity, six-month project with 100/month of planned work."""

from __future__ import annotations

from dataclasses import replace

import pytest

from core.config import ProjectConfig, RiskConfig, SimulationSettings
from core.utils import month_sequence
from risk.neutralize import neutralize_all
from risk.params import Reserve, derive_risk_params
from service.messages import SimulationRequest

START = "2025-01"
N_MONTHS = 6
MONTHS = month_sequence(START, N_MONTHS)

# per-month planned demand by entity and component (sums to 100)
MONTHLY_PLAN = {
    "CIVIL": {"SERVICE": 30.0, "MATERIAL": 20.0, "INFRA": 10.0},
    "MEP": {"SERVICE": 20.0, "MATERIAL": 10.0, "INFRA": 10.0},
}


def outflow_grid(months, plan=MONTHLY_PLAN, activity="BUILD"):
    return {m: {e: {activity: dict(comps)} for e, comps in plan.items()} for m in months}


def allocation_grid(months, amount):
    if isinstance(amount, (int, float)):
        amount = [amount] * len(months)
    return {m: {"ENGINEERING": float(a)} for m, a in zip(months, amount)}


@pytest.fixture
def months():
    return list(MONTHS)


@pytest.fixture
def project():
    return ProjectConfig(
        name="Test Works",
        start_month=START,
        as_of_month=START,
        duration_months=N_MONTHS,
        cap_total=1_000_000.0,
        entities=["CIVIL", "MEP"],
        activities=["BUILD"],
    )


@pytest.fixture
def make_request(project):
    """Factory: SimulationRequest with the fixture project and optional overrides."""

    def _make(allocation=110.0, plan=MONTHLY_PLAN, **overrides):
        proj = overrides.pop("project", project)
        months = month_sequence(proj.start_month, proj.duration_months)
        fields = dict(
            project=proj,
            allocations=allocation_grid(months, allocation),
            planned_outflows=outflow_grid(months, plan),
            n_trials=200,
        )
        fields.update(overrides)
        return SimulationRequest(**fields)

    return _make


@pytest.fixture
def settings():
    return SimulationSettings(n_trials=200, run_attribution=False, run_sensitivity=False, n_sample_paths=5)


@pytest.fixture
def quiet_params():
    """Every risk factor switched off and no reserve: the plan executes exactly."""
    params = neutralize_all(derive_risk_params(RiskConfig()))
    return replace(params, reserve=Reserve(enabled=False, total=0.0, monthly_cap=0.0))
