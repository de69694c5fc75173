"""
Liquidity engine — invoice-lag distributor, per-trial ledger state machine, and
the Monte Carlo trial runner.
"""

from .runner import TrialResults, build_context, run_trials

__all__ = ["TrialResults", "build_context", "run_trials"]
