"""
Internal risk parameters for the simulation engine.

RiskParams is what the engine samples from. It is derived from the user-facing
RiskConfig by derive_risk_params(), starting from DEFAULT_RISK_PARAMS:

  RiskConfig (knobs)  --derive_risk_params-->  RiskParams (distributions)
                                                   |
                          neutralizers (risk/neutralize.py) map RiskParams to
                          RiskParams for the counterfactual runs

Every dataclass here is frozen; variations are built with dataclasses.replace
so the baseline can never be mutated by a counterfactual.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Literal, Tuple

from core.config import RiskConfig
from core.schema import COMPONENTS

# Market sigma by volatility class.
VOLATILITY_MAP: Dict[str, float] = {
    "low": 0.05,
    "med": 0.10,
    "high": 0.20,
    "critical": 0.40,
}

# Multiplier on overrun sigma by contractor reliability class.
CONTRACTOR_RISK_MAP: Dict[str, float] = {
    "reliable": 1.0,
    "shaky": 1.25,
    "high-risk": 1.5,
}

# Share of normal output achieved in rain/monsoon months.
RAIN_PRODUCTIVITY_FACTOR = 0.90

LAG_TOLERANCE = 1e-6


@dataclass(frozen=True)
class InvoiceLag:
    service: Tuple[float, ...] = (0.7, 0.3)
    material: Tuple[float, ...] = (0.0, 0.6, 0.4)
    infra: Tuple[float, ...] = (0.8, 0.2, 0.0)

    def for_component(self, idx: int) -> Tuple[float, ...]:
        return (self.service, self.material, self.infra)[idx]

    @property
    def max_lag(self) -> int:
        return max(len(self.service), len(self.material), len(self.infra)) - 1


@dataclass(frozen=True)
class MaterialVolatility:
    sigma_market: float = 0.12
    sigma_idio: float = 0.10
    market_weight: float = 0.6
    dist: Literal["lognormal", "normal"] = "lognormal"
    clamp_max: float = 2.0
    inflation_annual: float = 0.0
    fx_exposure: float = 0.0
    vendor_penalty: float = 1.0  # 1 + (1 - vendor reliability)


@dataclass(frozen=True)
class OverrunDistribution:
    mean: float = 0.03
    sigma: float = 0.10
    floor: float = -0.20
    clamp_max: float = 0.50


@dataclass(frozen=True)
class ScopeDrift:
    mean: float = 0.005
    sigma: float = 0.002
    cap: float = 0.15
    design_factor: float = 1.0  # 1 + (1 - design completion)


@dataclass(frozen=True)
class Reserve:
    enabled: bool = True
    total: float = 50.0
    monthly_cap: float = 10.0


@dataclass(frozen=True)
class Seasonality:
    rain_months: Tuple[int, ...] = ()
    productivity_factor: float = RAIN_PRODUCTIVITY_FACTOR


@dataclass(frozen=True)
class Rework:
    rate: float = 0.0  # 1 - first-time-right
    cv: float = 0.2


@dataclass(frozen=True)
class FundingTerms:
    collection_efficiency: float = 0.90
    covenant_hard_stop: bool = False
    min_progress_covenant: float = 0.20


@dataclass(frozen=True)
class EntityDemand:
    # (entity, low, mode, high) multipliers; entities not listed stay at 1.0
    multipliers: Tuple[Tuple[str, float, float, float], ...] = ()
    correlation: float = 0.3


@dataclass(frozen=True)
class Threat:
    name: str
    month: int  # 1-based
    amount: float
    probability: float


@dataclass(frozen=True)
class RiskParams:
    invoice_lag: InvoiceLag = field(default_factory=InvoiceLag)
    material_vol: MaterialVolatility = field(default_factory=MaterialVolatility)
    overrun: OverrunDistribution = field(default_factory=OverrunDistribution)
    scope_drift: ScopeDrift = field(default_factory=ScopeDrift)
    reserve: Reserve = field(default_factory=Reserve)
    seasonality: Seasonality = field(default_factory=Seasonality)
    rework: Rework = field(default_factory=Rework)
    funding: FundingTerms = field(default_factory=FundingTerms)
    entity_demand: EntityDemand = field(default_factory=EntityDemand)
    threats: Tuple[Threat, ...] = ()
    volatility_factor: float = 1.0


DEFAULT_RISK_PARAMS = RiskParams()


def derive_risk_params(
    risk_config: RiskConfig,
    *,
    volatility_factor: float = 1.0,
    base: RiskParams = DEFAULT_RISK_PARAMS,
) -> RiskParams:
    """
    Merge the user-facing risk knobs into the engine's distribution parameters.

      volatility class      -> material sigma_market
      schedule confidence   -> overrun mean x (1 + (1 - confidence))
      contractor risk       -> overrun sigma x CONTRACTOR_RISK_MAP
      design completion     -> scope drift mean/sigma x (1 + (1 - completion))
      vendor reliability    -> market shock weight x (1 + (1 - reliability))
      first-time-right      -> rework rate
    """
    rc = risk_config
    material_vol = replace(
        base.material_vol,
        sigma_market=VOLATILITY_MAP.get(rc.market.volatility_class, 0.10),
        inflation_annual=rc.market.inflation_expectation,
        fx_exposure=rc.market.fx_exposure_pct,
        vendor_penalty=1.0 + (1.0 - rc.supply.vendor_reliability),
    )
    overrun = replace(
        base.overrun,
        mean=base.overrun.mean * (1.0 + (1.0 - rc.execution.schedule_confidence)),
        sigma=base.overrun.sigma * CONTRACTOR_RISK_MAP.get(rc.execution.contractor_risk, 1.0),
    )
    scope_drift = replace(
        base.scope_drift,
        design_factor=1.0 + (1.0 - rc.design.completion_pct),
    )
    invoice_lag = InvoiceLag(
        service=tuple(rc.invoice_lag.service),
        material=tuple(rc.invoice_lag.material),
        infra=tuple(rc.invoice_lag.infra),
    )
    return replace(
        base,
        invoice_lag=invoice_lag,
        material_vol=material_vol,
        overrun=overrun,
        scope_drift=scope_drift,
        reserve=Reserve(
            enabled=rc.reserve.enabled,
            total=rc.reserve.total,
            monthly_cap=rc.reserve.monthly_cap,
        ),
        seasonality=replace(base.seasonality, rain_months=tuple(rc.execution.rain_season_months)),
        rework=replace(base.rework, rate=1.0 - rc.quality.first_time_right_pct),
        funding=FundingTerms(
            collection_efficiency=rc.funding.collection_efficiency,
            covenant_hard_stop=rc.funding.covenant_hard_stop,
            min_progress_covenant=rc.funding.min_progress_covenant,
        ),
        entity_demand=EntityDemand(
            multipliers=tuple(
                (u.entity, u.low_mult, u.mode_mult, u.high_mult) for u in rc.entity_uncertainty
            ),
            correlation=rc.demand_correlation,
        ),
        threats=tuple(
            Threat(name=t.name, month=t.month, amount=t.amount, probability=t.probability)
            for t in rc.threats
        ),
        volatility_factor=volatility_factor,
    )


def lag_sum_errors(invoice_lag: InvoiceLag) -> list:
    """Human-readable violations of the lag invariants (empty when valid)."""
    errors = []
    for i, comp in enumerate(COMPONENTS):
        lag = invoice_lag.for_component(i)
        if len(lag) == 0:
            errors.append(f"Invoice lag for {comp} is empty.")
            continue
        if any(f < 0 for f in lag):
            errors.append(f"Invoice lag for {comp} has negative fractions: {list(lag)}.")
        total = float(sum(lag))
        if abs(total - 1.0) > LAG_TOLERANCE:
            errors.append(f"Invoice lag fractions for {comp} sum to {total:.6f}, expected 1.")
    return errors
