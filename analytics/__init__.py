"""
Analytics — turn per-trial ledger samples into the numbers a project controller
acts on: monthly statistics, KPIs, driver attribution, sensitivity, now-cast,
breach radar, risk scores and root cause.
"""

from .aggregator import compute_kpis, monthly_stats
from .attribution import attribute_drivers
from .breach_radar import breach_radar
from .early_warnings import early_warnings
from .nowcast import now_cast
from .paths import kill_chain, sample_paths
from .risk_scores import risk_scores
from .root_cause import root_cause
from .sensitivity import sensitivity_analysis

__all__ = [
    "monthly_stats",
    "compute_kpis",
    "attribute_drivers",
    "breach_radar",
    "early_warnings",
    "now_cast",
    "kill_chain",
    "sample_paths",
    "risk_scores",
    "root_cause",
    "sensitivity_analysis",
]
