"""Sample paths and the worst-trial kill chain, for replaying individual trials."""

from __future__ import annotations

from typing import List, Optional

from core.results import KillChain, KillChainEvent, PathPoint, SamplePath
from engine.runner import TrialResults


def sample_paths(results: TrialResults, months: List[str], n_paths: int) -> List[SamplePath]:
    """Month-by-month cash due, shortfall and schedule debt of the first n_paths trials."""
    cash, shortfall, debt = results["cash_due"], results["shortfall"], results["schedule_debt"]
    paths = []
    for row in range(min(n_paths, results.n_trials)):
        points = [
            PathPoint(
                month=month,
                cash_outflow=float(cash[row, m]),
                shortfall=float(shortfall[row, m]),
                schedule_debt=float(debt[row, m]),
            )
            for m, month in enumerate(months)
        ]
        paths.append(SamplePath(id=int(results.trial_ids[row]), monthly_data=points))
    return paths


def kill_chain(results: TrialResults) -> Optional[KillChain]:
    """Event log of the trial with the largest total shortfall (None if no trial breached)."""
    worst = results.worst
    if worst is None:
        return None
    return KillChain(
        trial_id=worst.trial_id,
        total_shortfall=worst.total_shortfall,
        events=[
            KillChainEvent(
                month=e.month,
                description=e.description,
                severity=e.severity,
                impact_type=e.impact_type,
            )
            for e in worst.events
        ],
    )
