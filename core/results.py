"""
Output records returned in the SimulationResponse.
All currency values share the unit of ProjectConfig.cap_total.
"""

from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class MonthlyStats(BaseModel):
    month: str
    is_historical: bool
    planned_allocation: float

    realizable_inflow_p10: float
    realizable_inflow_p20: float
    realizable_inflow_p50: float
    realizable_inflow_p80: float
    realizable_inflow_p90: float

    planned_outflow_total: float
    cash_outflow_p10: float
    cash_outflow_p50: float
    cash_outflow_p80: float
    cash_outflow_p90: float

    demand_p10: float
    demand_p50: float
    demand_p80: float
    demand_p90: float

    shortfall_p50: float
    shortfall_p80: float
    shortfall_p90: float
    shortfall_expected: float
    shortfall_prob: float
    coverage_prob: float
    safe_spend_limit: float
    gap_to_fix: float

    payables_backlog_p50: float
    payables_backlog_p80: float
    payables_backlog_expected: float

    schedule_debt_p50: float
    schedule_debt_p80: float
    schedule_debt_expected: float
    deferred_cost_expected: float

    throttle_pct_expected: float
    reserve_draw_expected: float


class ValidationFlags(BaseModel):
    lag_conservation: bool = True
    carry_forward_non_negative: bool = True
    backlog_non_negative: bool = True
    schedule_debt_monotonic: bool = True
    clamping_occurred: bool = False
    clamping_details: List[str] = Field(default_factory=list)


class Diagnostics(BaseModel):
    horizon_months: int
    n_trials: int
    seed: int
    planned_total_inflow: float
    planned_total_outflow: float
    grounded_months: int
    grounded_total_inflow: float
    grounded_total_outflow: float
    sim_total_inflow_p50: float
    sum_monthly_cash_p50: float
    validation_flags: ValidationFlags
    monthly_throttle_pct: Dict[str, float] = Field(default_factory=dict)
    monthly_backlog_carried: Dict[str, float] = Field(default_factory=dict)
    trial_failures: List[str] = Field(default_factory=list)


class DriverContribution(BaseModel):
    name: str
    lever: str
    contribution: float          # share of baseline shortfall probability
    delta_shortfall_prob: float  # baseline - neutralized, floored at 0
    neutralized_shortfall_prob: float


class WorstMonth(BaseModel):
    month: str
    prob: float
    amount: float


class Kpis(BaseModel):
    total_realizable_inflow_p10: float
    total_realizable_inflow_p50: float
    total_realizable_inflow_p90: float
    prob_shortfall_any_month: float
    prob_meet_plan: float
    worst_month: WorstMonth
    peak_schedule_debt: float
    peak_schedule_debt_p80: float
    peak_payables_backlog_p80: float
    total_deferred_cost: float
    red_months_count: int
    primary_driver: Optional[DriverContribution] = None
    top_drivers: List[DriverContribution] = Field(default_factory=list)
    monthly_coverage_prob: Dict[str, float] = Field(default_factory=dict)
    monthly_shortfall_p80: Dict[str, float] = Field(default_factory=dict)
    monthly_shortfall_prob: Dict[str, float] = Field(default_factory=dict)
    diagnostics: Diagnostics


class NowCastDriver(BaseModel):
    component: Literal["SERVICE", "MATERIAL", "INFRA"]
    contribution: float
    label: str


class SuggestedAction(BaseModel):
    id: str
    title: str
    impact: str


class NowCastResults(BaseModel):
    month: str
    eom_cash_due_p50: float
    eom_cash_due_p80: float
    prob_exceed_plan: float
    performance_factor: float
    top_drivers: List[NowCastDriver] = Field(default_factory=list)
    suggested_actions: List[SuggestedAction] = Field(default_factory=list)
    planned_total: float
    avg_simulated_month_total: float


class BreachProbability(BaseModel):
    month: str
    probability: float


class BreachRadarResults(BaseModel):
    earliest_breach_month_p50: Optional[str]
    earliest_breach_month_p80: Optional[str]
    time_to_breach_p50: Optional[int]  # months from the current month
    time_to_breach_p80: Optional[int]
    breach_distribution: List[BreachProbability]


class EarlyWarning(BaseModel):
    id: str
    level: Literal["LOW", "MED", "HIGH", "CRITICAL"]
    title: str
    message: str
    metric: str
    value: float
    threshold: float


class PathPoint(BaseModel):
    month: str
    cash_outflow: float
    shortfall: float
    schedule_debt: float


class SamplePath(BaseModel):
    id: int
    monthly_data: List[PathPoint]


class KillChainEvent(BaseModel):
    month: str
    description: str
    severity: Literal["LOW", "MED", "HIGH", "CRITICAL"]
    impact_type: Literal["COST", "SCHEDULE", "LIQUIDITY"]


class KillChain(BaseModel):
    trial_id: int
    total_shortfall: float
    events: List[KillChainEvent] = Field(default_factory=list)


class RiskScoreBreakdown(BaseModel):
    velocity: int
    capacity: int
    liquidity: int


class RiskScore(BaseModel):
    """Operational health of one month, 0-100 (the worst of its three factors)."""
    month: str
    month_index: int  # 1-based
    score: int
    level: Literal["LOW", "MED", "HIGH", "CRITICAL"]
    primary_factor: Literal["VELOCITY", "CAPACITY", "LIQUIDITY"]
    breakdown: RiskScoreBreakdown


class RootCauseDrivers(BaseModel):
    price: float
    usage: float
    time: float
    funding: float


class RootCause(BaseModel):
    shortfall_amount: float
    primary_driver: str
    drivers: RootCauseDrivers


class SensitivityFactor(BaseModel):
    factor: str
    change: str
    base_shortfall_p80: float
    stressed_shortfall_p80: float
    impact_on_shortfall: float
