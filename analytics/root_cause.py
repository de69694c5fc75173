"""
Root-cause split of the projected cost overrun.

Over the projected months only:
  overrun  = max(0, sum of P80 cash outflow - sum of planned outflow)
  time     = overrun x (1 - schedule confidence) x 0.4
  price    = (overrun - time) x price weight of the volatility class
  usage    = (overrun - time) x (1 - price weight)
  funding  = sum of max(0, planned allocation - P20 realizable inflow)

Funding is a shortfall driver rather than a cost driver, so it is reported
beside the cost split and is not taken out of it.
"""

from __future__ import annotations

from typing import List

from core.config import RiskConfig
from core.results import MonthlyStats, RootCause, RootCauseDrivers

TIME_WEIGHT = 0.4
PRICE_WEIGHT = {"low": 0.2, "med": 0.4, "high": 0.6, "critical": 0.8}

# label per driver, in tie-break order
DRIVER_LABELS = (
    ("price", "Market Volatility (Price)"),
    ("usage", "Execution Efficiency (Usage)"),
    ("time", "Schedule Drift (Time)"),
    ("funding", "Inflow Reliability (Funding)"),
)


def root_cause(stats: List[MonthlyStats], risk_config: RiskConfig) -> RootCause:
    future = [s for s in stats if not s.is_historical]

    projected_p80 = sum(s.cash_outflow_p80 for s in future)
    planned = sum(s.planned_outflow_total for s in future)
    overrun = max(0.0, projected_p80 - planned)

    time_var = overrun * (1.0 - risk_config.execution.schedule_confidence) * TIME_WEIGHT
    funding = sum(max(0.0, s.planned_allocation - s.realizable_inflow_p20) for s in future)

    price_weight = PRICE_WEIGHT.get(risk_config.market.volatility_class, 0.3)
    remaining = max(0.0, overrun - time_var)
    drivers = RootCauseDrivers(
        price=remaining * price_weight,
        usage=remaining * (1.0 - price_weight),
        time=time_var,
        funding=funding,
    )

    primary, best = "Unknown", -1.0
    for key, label in DRIVER_LABELS:
        value = getattr(drivers, key)
        if value > best:
            primary, best = label, value

    return RootCause(shortfall_amount=overrun, primary_driver=primary, drivers=drivers)
