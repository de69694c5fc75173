"""
Breach radar — when does the first liquidity breach happen?

A breach is any month with shortfall > 0 (no materiality threshold: the radar
is about timing, not size). Percentiles are nearest-rank over the breaching
trials only; the distribution is over all trials.
"""

from __future__ import annotations

from typing import List, Optional

import numpy as np

from core.results import BreachProbability, BreachRadarResults
from core.utils import nearest_rank
from engine.runner import TrialResults


def breach_radar(
    results: TrialResults,
    months: List[str],
    current_idx: int,
) -> Optional[BreachRadarResults]:
    """None when no trial ever breaches."""
    first = results.first_breach
    breached = np.sort(first[first >= 0])
    if breached.size == 0:
        return None

    counts = np.bincount(breached, minlength=len(months))
    distribution = [
        BreachProbability(month=month, probability=float(counts[i] / results.n_trials))
        for i, month in enumerate(months)
    ]
    p50 = int(nearest_rank(breached, 0.5))
    p80 = int(nearest_rank(breached, 0.8))
    return BreachRadarResults(
        earliest_breach_month_p50=months[p50],
        earliest_breach_month_p80=months[p80],
        time_to_breach_p50=p50 - current_idx,
        time_to_breach_p80=p80 - current_idx,
        breach_distribution=distribution,
    )
