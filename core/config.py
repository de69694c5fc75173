"""
Simulation input configuration.

Project, policy and risk settings are pydantic models so the request message can
be validated at the boundary. Run-level knobs that never cross the boundary
live in SimulationSettings (plain frozen dataclass).
Internal distribution parameters live in risk/params.py (RiskParams).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"

VolatilityClass = Literal["low", "med", "high", "critical"]
ContractorRisk = Literal["reliable", "shaky", "high-risk"]
BreachMode = Literal["payables_backlog_throttle", "defer_uncommitted_only"]
UnderspendPolicy = Literal["ROLLOVER_NEXT_MONTH", "LAPSE"]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class ComponentAmounts(_Frozen):
    """One non-negative value per cost component."""
    service: float = Field(default=0.0, ge=0)
    material: float = Field(default=0.0, ge=0)
    infra: float = Field(default=0.0, ge=0)

    def as_array(self) -> np.ndarray:
        return np.array([self.service, self.material, self.infra], dtype=float)

    @property
    def total(self) -> float:
        return self.service + self.material + self.infra


class ProjectConfig(_Frozen):
    name: str = "Untitled Project"
    start_month: str = Field(pattern=MONTH_PATTERN)
    as_of_month: str = Field(pattern=MONTH_PATTERN)  # grounding month: earlier months are history
    duration_months: int = Field(ge=1, le=120)
    cap_total: float = Field(gt=0)  # ceiling on cumulative released inflow
    entities: List[str]
    activities: List[str]
    underspend_policy: UnderspendPolicy = "ROLLOVER_NEXT_MONTH"


class PolicyConfig(_Frozen):
    breach_mode: BreachMode = "payables_backlog_throttle"
    max_throttle_pct_per_month: float = Field(default=0.40, ge=0, le=1)
    commitment_ratio_defaults: ComponentAmounts = ComponentAmounts(
        service=0.50, material=0.80, infra=0.60
    )
    friction_multiplier: float = Field(default=1.10, ge=1, le=2)  # penalty on deferred work


class ManualThreat(_Frozen):
    name: str
    month: int = Field(ge=1)  # 1-based index into the horizon
    amount: float = Field(ge=0)
    probability: float = Field(ge=0, le=1)


class EntityUncertainty(_Frozen):
    """Triangular demand multiplier for one entity (1.0 = plan)."""
    entity: str
    low_mult: float = Field(default=1.0, gt=0)
    mode_mult: float = Field(default=1.0, gt=0)
    high_mult: float = Field(default=1.0, gt=0)


class MarketRisk(_Frozen):
    volatility_class: VolatilityClass = "med"
    inflation_expectation: float = Field(default=0.06, ge=-0.5, le=2.0)
    fx_exposure_pct: float = Field(default=0.0, ge=0, le=1)


class ExecutionRisk(_Frozen):
    schedule_confidence: float = Field(default=0.7, ge=0, le=1)
    contractor_risk: ContractorRisk = "reliable"
    rain_season_months: List[int] = Field(default_factory=lambda: [6, 7, 8, 9])


class FundingRisk(_Frozen):
    collection_efficiency: float = Field(default=0.90, ge=0, le=1)
    covenant_hard_stop: bool = False
    min_progress_covenant: float = Field(default=0.20, ge=0, le=1)


class DesignRisk(_Frozen):
    completion_pct: float = Field(default=1.0, ge=0, le=1)


class QualityRisk(_Frozen):
    first_time_right_pct: float = Field(default=1.0, ge=0, le=1)


class SupplyRisk(_Frozen):
    vendor_reliability: float = Field(default=1.0, ge=0, le=1)


class RiskLimits(_Frozen):
    """Operational limits the monthly risk scores are measured against."""
    max_monthly_burn: float = Field(default=100.0, gt=0)  # P80 cash outflow capacity per month
    max_velocity_change: float = Field(default=1.5, gt=0)  # month-on-month P50 ramp-up ratio


class ReserveConfig(_Frozen):
    enabled: bool = True
    total: float = Field(default=50.0, ge=0)
    monthly_cap: float = Field(default=10.0, ge=0)


class InvoiceLagConfig(_Frozen):
    """
    Fraction of a month's incurred cost falling due 0, 1, 2, ... months later.
    Each vector must sum to 1 (checked in data_prep.validators).
    """
    service: List[float] = Field(default_factory=lambda: [0.7, 0.3])
    material: List[float] = Field(default_factory=lambda: [0.0, 0.6, 0.4])
    infra: List[float] = Field(default_factory=lambda: [0.8, 0.2, 0.0])


class RiskConfig(_Frozen):
    market: MarketRisk = MarketRisk()
    execution: ExecutionRisk = ExecutionRisk()
    funding: FundingRisk = FundingRisk()
    reserve: ReserveConfig = ReserveConfig()
    invoice_lag: InvoiceLagConfig = InvoiceLagConfig()
    design: DesignRisk = DesignRisk()
    quality: QualityRisk = QualityRisk()
    supply: SupplyRisk = SupplyRisk()
    limits: RiskLimits = RiskLimits()
    threats: List[ManualThreat] = Field(default_factory=list)
    entity_uncertainty: List[EntityUncertainty] = Field(default_factory=list)
    demand_correlation: float = Field(default=0.3, ge=0, le=1)


class CurrentMonthActuals(_Frozen):
    current_month: int = Field(ge=1)  # 1-based index into the horizon
    actual_paid_to_date: ComponentAmounts = ComponentAmounts()
    elapsed_progress: float = Field(default=0.0, ge=0, le=1)
    committed_po_value: float = Field(default=0.0, ge=0)
    physical_progress_pct: float = Field(default=0.0, ge=0, le=1)
    planned_progress_pct: float = Field(default=0.0, ge=0, le=1)
    estimate_to_complete: float = Field(default=0.0, ge=0)


@dataclass(frozen=True)
class SimulationSettings:
    n_trials: int = 1000
    seed: int = 42

    # counterfactual re-runs use fewer trials
    attribution_trials: int = 200
    run_attribution: bool = True

    # a month counts as short only above this amount (currency units)
    materiality_threshold: float = 1.0
    red_month_threshold: float = 0.5
    safe_spend_percentile: float = 0.20

    # stressed re-runs for the sensitivity tornado (skipped below the trial count)
    run_sensitivity: bool = True
    sensitivity_trials: int = 100

    n_sample_paths: int = 50
    n_workers: int = 1  # >1 shards trials over a process pool
