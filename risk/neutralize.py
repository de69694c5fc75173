"""
Counterfactual neutralizers — one pure RiskParams -> RiskParams function per
risk factor.

Each function switches off exactly one source of risk and leaves everything
else untouched. The attribution engine re-runs the simulation once per entry of
RISK_FACTORS and compares the shortfall probability with the baseline.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Tuple

from .params import RiskParams


def neutralize_material_volatility(p: RiskParams) -> RiskParams:
    return replace(
        p,
        material_vol=replace(p.material_vol, sigma_market=0.0, sigma_idio=0.0, inflation_annual=0.0),
    )


def neutralize_overrun(p: RiskParams) -> RiskParams:
    return replace(p, overrun=replace(p.overrun, mean=0.0, sigma=0.0))


def neutralize_scope_drift(p: RiskParams) -> RiskParams:
    return replace(p, scope_drift=replace(p.scope_drift, mean=0.0, sigma=0.0))


def neutralize_invoice_lag(p: RiskParams) -> RiskParams:
    # everything invoiced is paid in the month it is incurred
    return replace(p, invoice_lag=replace(p.invoice_lag, service=(1.0,), material=(1.0,), infra=(1.0,)))


def neutralize_seasonality(p: RiskParams) -> RiskParams:
    return replace(p, seasonality=replace(p.seasonality, rain_months=()))


def neutralize_threats(p: RiskParams) -> RiskParams:
    # probability 0 rather than dropping the threats: the Bernoulli draws still
    # happen, so every other factor sees the same random numbers as the baseline
    return replace(p, threats=tuple(replace(t, probability=0.0) for t in p.threats))


def neutralize_collection(p: RiskParams) -> RiskParams:
    return replace(p, funding=replace(p.funding, collection_efficiency=1.0))


def neutralize_covenant(p: RiskParams) -> RiskParams:
    return replace(p, funding=replace(p.funding, covenant_hard_stop=False))


def neutralize_rework(p: RiskParams) -> RiskParams:
    return replace(p, rework=replace(p.rework, rate=0.0))


def neutralize_entity_demand(p: RiskParams) -> RiskParams:
    return replace(p, entity_demand=replace(p.entity_demand, multipliers=()))


@dataclass(frozen=True)
class RiskFactor:
    name: str
    lever: str
    neutralize: Callable[[RiskParams], RiskParams]


RISK_FACTORS: Tuple[RiskFactor, ...] = (
    RiskFactor("Material Volatility", "Procurement", neutralize_material_volatility),
    RiskFactor("Execution Overrun", "Execution", neutralize_overrun),
    RiskFactor("Scope Drift", "Design Governance", neutralize_scope_drift),
    RiskFactor("Invoice Lag", "Payment Terms", neutralize_invoice_lag),
    RiskFactor("Seasonal Productivity", "Planning", neutralize_seasonality),
    RiskFactor("Manual Threats", "Governance", neutralize_threats),
    RiskFactor("Collection Efficiency", "Finance", neutralize_collection),
    RiskFactor("Funding Covenant", "Finance", neutralize_covenant),
    RiskFactor("Quality Rework", "Quality", neutralize_rework),
    RiskFactor("Entity Demand Uncertainty", "Planning", neutralize_entity_demand),
)


def neutralize_all(p: RiskParams) -> RiskParams:
    """Every factor switched off at once (deterministic plan execution)."""
    for factor in RISK_FACTORS:
        p = factor.neutralize(p)
    return p
