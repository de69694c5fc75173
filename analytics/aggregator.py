"""
Aggregate per-trial ledger samples into MonthlyStats, KPIs and Diagnostics.

Every percentile is nearest-rank over the trials of one month:
sort ascending, take s[min(floor(n * p), n - 1)]. Probability fields count the
share of trials above a materiality threshold (shortfall > 1.0 currency unit by
default), so rounding noise does not show up as a breach.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

import numpy as np

from core.config import SimulationSettings
from core.results import (
    Diagnostics,
    DriverContribution,
    Kpis,
    MonthlyStats,
    ValidationFlags,
    WorstMonth,
)
from core.schema import PERCENTILE_LEVELS
from data_prep.grid_builder import PreparedInputs
from engine.runner import TrialResults

logger = logging.getLogger(__name__)


def _sorted(values: np.ndarray) -> np.ndarray:
    """Sort each month column across trials: (n_trials, n_months) -> same shape."""
    return np.sort(values, axis=0)


def _rank(sorted_values: np.ndarray, p: float) -> np.ndarray:
    """Nearest-rank percentile of every column of an axis-0 sorted array."""
    n = sorted_values.shape[0]
    idx = min(int(np.floor(n * p)), n - 1)
    return sorted_values[idx]


def monthly_stats(
    results: TrialResults,
    inputs: PreparedInputs,
    settings: SimulationSettings,
) -> List[MonthlyStats]:
    """One MonthlyStats record per horizon month, in chronological order."""
    inflow = _sorted(results["inflow"])
    opening = results["opening_funds"]
    opening_sorted = _sorted(opening)
    cash = results["cash_due"]
    cash_sorted = _sorted(cash)
    demand = _sorted(results["workload"])
    shortfall = results["shortfall"]
    shortfall_sorted = _sorted(shortfall)
    backlog = _sorted(results["backlog"])
    debt = _sorted(results["schedule_debt"])

    threshold = settings.materiality_threshold
    shortfall_prob = (shortfall > threshold).mean(axis=0)
    coverage_prob = (cash <= opening).mean(axis=0)
    safe_spend = _rank(opening_sorted, settings.safe_spend_percentile)
    planned_outflow = inputs.baseline_totals

    def pcts(arr: np.ndarray, prefix: str, levels) -> Dict[str, np.ndarray]:
        return {f"{prefix}_p{int(round(p * 100))}": _rank(arr, p) for p in levels}

    columns: Dict[str, np.ndarray] = {}
    columns.update(pcts(inflow, "realizable_inflow", PERCENTILE_LEVELS))
    columns.update(pcts(cash_sorted, "cash_outflow", (0.10, 0.50, 0.80, 0.90)))
    columns.update(pcts(demand, "demand", (0.10, 0.50, 0.80, 0.90)))
    columns.update(pcts(shortfall_sorted, "shortfall", (0.50, 0.80, 0.90)))
    columns.update(pcts(backlog, "payables_backlog", (0.50, 0.80)))
    columns.update(pcts(debt, "schedule_debt", (0.50, 0.80)))
    columns.update(
        shortfall_expected=shortfall.mean(axis=0),
        shortfall_prob=shortfall_prob,
        coverage_prob=coverage_prob,
        safe_spend_limit=safe_spend,
        gap_to_fix=np.maximum(0.0, planned_outflow - safe_spend),
        payables_backlog_expected=results["backlog"].mean(axis=0),
        schedule_debt_expected=results["schedule_debt"].mean(axis=0),
        deferred_cost_expected=results["deferred"].mean(axis=0),
        throttle_pct_expected=results["throttle"].mean(axis=0),
        reserve_draw_expected=results["reserve_draw"].mean(axis=0),
    )

    stats = []
    for m, month in enumerate(inputs.months):
        record = {name: float(values[m]) for name, values in columns.items()}
        stats.append(
            MonthlyStats(
                month=month,
                is_historical=bool(inputs.is_historical[m]),
                planned_allocation=float(inputs.planned_allocation[m]),
                planned_outflow_total=float(planned_outflow[m]),
                **record,
            )
        )
    return stats


def validation_flags(results: TrialResults) -> ValidationFlags:
    details = [f"{key}: {count} draws clamped" for key, count in sorted(results.clamp_counts.items())]
    flags = ValidationFlags(
        lag_conservation=results.lag_conservation,
        carry_forward_non_negative=results.carry_non_negative,
        backlog_non_negative=results.backlog_non_negative,
        schedule_debt_monotonic=results.schedule_debt_monotonic,
        clamping_occurred=bool(details),
        clamping_details=details,
    )
    failed = [
        name for name in (
            "lag_conservation",
            "carry_forward_non_negative",
            "backlog_non_negative",
            "schedule_debt_monotonic",
        )
        if not getattr(flags, name)
    ]
    if failed:
        logger.warning("Validation flags failed: %s", ", ".join(failed))
    return flags


def diagnostics(
    results: TrialResults,
    inputs: PreparedInputs,
    stats: List[MonthlyStats],
    *,
    seed: int,
) -> Diagnostics:
    hist = inputs.is_historical
    return Diagnostics(
        horizon_months=inputs.n_months,
        n_trials=results.n_trials,
        seed=seed,
        planned_total_inflow=float(inputs.planned_allocation.sum()),
        planned_total_outflow=float(inputs.baseline_totals.sum()),
        grounded_months=int(hist.sum()),
        grounded_total_inflow=float(inputs.inflow[hist].sum()),
        grounded_total_outflow=float(inputs.grounded_incurred[hist].sum()),
        sim_total_inflow_p50=sum(s.realizable_inflow_p50 for s in stats),
        sum_monthly_cash_p50=sum(s.cash_outflow_p50 for s in stats),
        validation_flags=validation_flags(results),
        monthly_throttle_pct={s.month: s.throttle_pct_expected for s in stats},
        monthly_backlog_carried={s.month: s.payables_backlog_expected for s in stats},
        trial_failures=list(results.failures),
    )


def prob_shortfall_any_month(results: TrialResults, threshold: float) -> float:
    """Share of trials with at least one month of material shortfall."""
    return float((results["shortfall"] > threshold).any(axis=1).mean())


def peak_shortfall_p80(results: TrialResults) -> float:
    """Largest monthly P80 shortfall."""
    return float(_rank(_sorted(results["shortfall"]), 0.80).max())


def compute_kpis(
    results: TrialResults,
    inputs: PreparedInputs,
    stats: List[MonthlyStats],
    settings: SimulationSettings,
    *,
    drivers: Optional[List[DriverContribution]] = None,
) -> Kpis:
    totals = np.sort(results["inflow"].sum(axis=1))
    prob_any = prob_shortfall_any_month(results, settings.materiality_threshold)

    worst = stats[0]
    for s in stats[1:]:
        if s.shortfall_prob > worst.shortfall_prob:
            worst = s

    drivers = list(drivers or [])
    return Kpis(
        total_realizable_inflow_p10=float(_rank(totals, 0.10)),
        total_realizable_inflow_p50=float(_rank(totals, 0.50)),
        total_realizable_inflow_p90=float(_rank(totals, 0.90)),
        prob_shortfall_any_month=prob_any,
        prob_meet_plan=1.0 - prob_any,
        worst_month=WorstMonth(month=worst.month, prob=worst.shortfall_prob, amount=worst.shortfall_p80),
        peak_schedule_debt=max(s.schedule_debt_expected for s in stats),
        peak_schedule_debt_p80=max(s.schedule_debt_p80 for s in stats),
        peak_payables_backlog_p80=max(s.payables_backlog_p80 for s in stats),
        total_deferred_cost=sum(s.deferred_cost_expected for s in stats),
        red_months_count=sum(1 for s in stats if s.shortfall_prob > settings.red_month_threshold),
        primary_driver=drivers[0] if drivers else None,
        top_drivers=drivers,
        monthly_coverage_prob={s.month: s.coverage_prob for s in stats},
        monthly_shortfall_p80={s.month: s.shortfall_p80 for s in stats},
        monthly_shortfall_prob={s.month: s.shortfall_prob for s in stats},
        diagnostics=diagnostics(results, inputs, stats, seed=settings.seed),
    )
