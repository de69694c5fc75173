"""
Request/response messages of the simulation service.

Everything the engine needs travels by value in SimulationRequest; everything
it produces comes back in SimulationResponse. request_id is echoed so a caller
can match responses to requests and drop superseded ones.
"""

from __future__ import annotations

import uuid
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.config import CurrentMonthActuals, PolicyConfig, ProjectConfig, RiskConfig
from core.results import (
    BreachRadarResults,
    EarlyWarning,
    KillChain,
    Kpis,
    MonthlyStats,
    NowCastResults,
    RiskScore,
    RootCause,
    SamplePath,
    SensitivityFactor,
)

# {month: {entity: {activity: {component: amount}}}}
OutflowGrid = Dict[str, Dict[str, Dict[str, Dict[str, float]]]]
# {month: {"ENGINEERING": amount}}
AllocationGrid = Dict[str, Dict[str, float]]

DEFAULT_SEED = 42


class SimulationRequest(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    request_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    project: ProjectConfig
    policy: PolicyConfig = PolicyConfig()
    risk: RiskConfig = RiskConfig()

    allocations: AllocationGrid
    actual_allocations: AllocationGrid = Field(default_factory=dict)
    planned_outflows: OutflowGrid
    active_outflows: OutflowGrid = Field(default_factory=dict)  # empty = execute the baseline
    actual_outflows: OutflowGrid = Field(default_factory=dict)
    current_month_actuals: Optional[CurrentMonthActuals] = None

    volatility_factor: float = Field(default=1.0, ge=0)
    n_trials: int = Field(default=1000, ge=1, le=200_000)
    seed: int = DEFAULT_SEED


class SimulationResponse(BaseModel):
    request_id: str
    monthly_stats: List[MonthlyStats]
    kpis: Kpis
    now_cast: Optional[NowCastResults] = None
    breach_radar: Optional[BreachRadarResults] = None
    early_warnings: List[EarlyWarning] = Field(default_factory=list)
    sample_paths: List[SamplePath] = Field(default_factory=list)
    kill_chain: Optional[KillChain] = None
    risk_scores: List[RiskScore] = Field(default_factory=list)
    root_cause: Optional[RootCause] = None
    sensitivity_analysis: List[SensitivityFactor] = Field(default_factory=list)
    validation_warnings: List[str] = Field(default_factory=list)
    elapsed_seconds: float = 0.0
