"""
Now-cast — project the current, partially elapsed month to month end.

  performance factor = paid to date / (mean simulated cash due x elapsed fraction)
  EOM cash due       = paid to date + simulated cash due x (1 - elapsed) x factor

A project paying faster than simulated (factor > 1) is assumed to keep doing so
for the rest of the month. With nothing elapsed, or nothing simulated, the
factor is 1.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

import numpy as np

from core.config import CurrentMonthActuals
from core.results import NowCastDriver, NowCastResults, SuggestedAction
from core.schema import COMPONENTS, INFRA, MATERIAL, SERVICE
from core.utils import percentile, safe_mean
from data_prep.grid_builder import PreparedInputs
from engine.runner import TrialResults

# Lever table keyed by the component running furthest from plan.
COMPONENT_ACTIONS: Dict[int, Tuple[SuggestedAction, ...]] = {
    SERVICE: (
        SuggestedAction(id="defer-scope", title="Defer non-critical scope", impact="Lower labour cash due this month"),
        SuggestedAction(id="resequence-crews", title="Resequence crews onto critical path", impact="Fewer idle crew-days"),
    ),
    MATERIAL: (
        SuggestedAction(id="split-po", title="Split large POs", impact="-15% EOM variance"),
        SuggestedAction(id="extend-terms", title="Negotiate extended supplier terms", impact="Shift material cash one month"),
    ),
    INFRA: (
        SuggestedAction(id="stage-mobilization", title="Stage equipment mobilization", impact="Spread infra cash over two months"),
        SuggestedAction(id="lease-not-buy", title="Lease instead of buying equipment", impact="Lower upfront infra outlay"),
    ),
}

_DRIVER_LABELS = {SERVICE: "Labour & services", MATERIAL: "Materials", INFRA: "Infrastructure"}


def performance_factor(paid_to_date: float, mean_simulated: float, elapsed: float) -> float:
    denominator = mean_simulated * elapsed
    if denominator <= 0:
        return 1.0
    return paid_to_date / denominator


def component_drivers(actuals: CurrentMonthActuals, planned: np.ndarray) -> List[NowCastDriver]:
    """Components ranked by |paid to date - plan x elapsed|; contribution is the share of that total."""
    variance = actuals.actual_paid_to_date.as_array() - planned * actuals.elapsed_progress
    total = float(np.abs(variance).sum())
    if total <= 0:
        return []
    order = sorted(range(len(COMPONENTS)), key=lambda c: abs(variance[c]), reverse=True)
    drivers = []
    for c in order:
        if variance[c] == 0:
            continue
        direction = "ahead of" if variance[c] > 0 else "behind"
        drivers.append(
            NowCastDriver(
                component=COMPONENTS[c],
                contribution=float(abs(variance[c]) / total),
                label=f"{_DRIVER_LABELS[c]} {direction} plan",
            )
        )
    return drivers


def now_cast(
    results: TrialResults,
    inputs: PreparedInputs,
    actuals: CurrentMonthActuals,
) -> Optional[NowCastResults]:
    """End-of-month projection for actuals.current_month (1-based); None outside the horizon."""
    idx = actuals.current_month - 1
    if idx >= inputs.n_months:
        return None

    simulated = results["cash_due"][:, idx]
    mean_sim = safe_mean(simulated)
    paid = actuals.actual_paid_to_date.total
    elapsed = actuals.elapsed_progress
    factor = performance_factor(paid, mean_sim, elapsed)

    eom = paid + simulated * max(0.0, 1.0 - elapsed) * factor
    planned_total = float(inputs.baseline_totals[idx])

    drivers = component_drivers(actuals, inputs.baseline_by_component[idx])
    actions: List[SuggestedAction] = []
    if drivers:
        actions = list(COMPONENT_ACTIONS[COMPONENTS.index(drivers[0].component)])

    return NowCastResults(
        month=inputs.months[idx],
        eom_cash_due_p50=percentile(eom, 0.5),
        eom_cash_due_p80=percentile(eom, 0.8),
        prob_exceed_plan=float((eom > planned_total).mean()),
        performance_factor=factor,
        top_drivers=drivers,
        suggested_actions=actions,
        planned_total=planned_total,
        avg_simulated_month_total=mean_sim,
    )
