"""
Liquidity ledger — the per-trial month-by-month cash state machine.

State carried from month to month inside one trial:
  carry_forward      unspent cash rolled into next month (>= 0)
  payables_backlog   cash due but unpaid, re-presented next month (>= 0)
  schedule_debt      deferred work (with friction) folded into next month (>= 0)
  reserve_remaining  emergency reserve still available (>= 0)
  throttle_pct       share of next month's execution suppressed

Feedback loop (the reason this is a state machine and not a formula):
  unpaid cash -> backlog + throttle -> deferred work with friction
              -> more workload next month -> more cash due -> ...
which is what produces multi-month "death spirals".

resolve_month() is pure: it takes a LedgerState and returns a new one.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Tuple

import numpy as np


@dataclass(frozen=True)
class LedgerState:
    carry_forward: float = 0.0
    payables_backlog: float = 0.0
    schedule_debt: float = 0.0
    reserve_remaining: float = 0.0
    scope_index: float = 0.0
    throttle_pct: float = 0.0
    executed_to_date: float = 0.0
    inflow_released: float = 0.0  # cumulative, checked against the budget cap


@dataclass(frozen=True)
class LedgerTerms:
    """Run-wide constants of the ledger (policy + funding terms)."""
    collection_efficiency: float
    covenant_hard_stop: bool
    min_progress_covenant: float
    planned_horizon_total: float
    reserve_enabled: bool
    reserve_monthly_cap: float
    max_throttle_pct: float
    friction_multiplier: float
    rollover: bool
    cap_total: float
    defer_uncommitted_only: bool = False
    commitment_ratios: Tuple[float, float, float] = (0.5, 0.8, 0.6)


@dataclass(frozen=True)
class MonthOutcome:
    inflow: float            # realizable inflow after cap, haircut and covenant
    opening_funds: float     # inflow + carry-forward, before any reserve draw
    available: float         # opening funds + reserve draw
    reserve_draw: float
    paid: float
    shortfall: float
    throttle_pct: float      # set for the following month
    deferred: float          # schedule debt created this month
    lapsed: float            # surplus dropped under the LAPSE policy
    covenant_frozen: bool
    breach: bool


def opening_state(terms: LedgerTerms, reserve_total: float) -> LedgerState:
    """Fresh state for a new trial."""
    return LedgerState(reserve_remaining=float(reserve_total) if terms.reserve_enabled else 0.0)


def throttle_fraction(
    unpaid: float,
    next_planned: np.ndarray,
    terms: LedgerTerms,
) -> float:
    """
    Share of next month's planned work to suppress: unpaid / next plan, capped.
    Zero next-month plan (or last month) means nothing to throttle.
    """
    planned_total = float(next_planned.sum())
    if planned_total <= 0.0 or unpaid <= 0.0:
        return 0.0
    theta = min(unpaid / planned_total, terms.max_throttle_pct)
    if terms.defer_uncommitted_only:
        committed = float(next_planned @ np.asarray(terms.commitment_ratios, dtype=float))
        theta = min(theta, max(0.0, 1.0 - committed / planned_total))
    return max(0.0, theta)


def resolve_month(
    state: LedgerState,
    terms: LedgerTerms,
    *,
    inflow: float,
    cash_due: float,
    workload: float,
    is_historical: bool,
    next_planned: np.ndarray,
) -> Tuple[LedgerState, MonthOutcome]:
    """Pay what can be paid this month and work out what carries forward."""
    # budget cap: nothing beyond cap_total is ever released
    headroom = max(0.0, terms.cap_total - state.inflow_released)
    released = min(max(inflow, 0.0), headroom)

    effective = released
    if not is_historical:
        effective = released * terms.collection_efficiency

    executed_to_date = state.executed_to_date + workload
    covenant_frozen = False
    if not is_historical and terms.covenant_hard_stop:
        progress = (
            executed_to_date / terms.planned_horizon_total
            if terms.planned_horizon_total > 0 else 1.0
        )
        if progress < terms.min_progress_covenant:
            # lender freeze: only cash already held is available
            effective = 0.0
            released = 0.0
            covenant_frozen = True

    opening_funds = effective + state.carry_forward
    available = opening_funds
    reserve_remaining = state.reserve_remaining
    reserve_draw = 0.0
    if cash_due > available and terms.reserve_enabled and reserve_remaining > 0.0:
        deficit = cash_due - available
        reserve_draw = min(deficit, terms.reserve_monthly_cap, reserve_remaining)
        reserve_remaining -= reserve_draw
        available += reserve_draw

    base = replace(
        state,
        reserve_remaining=reserve_remaining,
        executed_to_date=executed_to_date,
        inflow_released=state.inflow_released + released,
    )

    if cash_due <= available:
        surplus = available - cash_due
        carry = surplus if terms.rollover else 0.0
        new_state = replace(
            base, carry_forward=carry, payables_backlog=0.0, schedule_debt=0.0, throttle_pct=0.0
        )
        outcome = MonthOutcome(
            inflow=effective,
            opening_funds=opening_funds,
            available=available,
            reserve_draw=reserve_draw,
            paid=cash_due,
            shortfall=0.0,
            throttle_pct=0.0,
            deferred=0.0,
            lapsed=surplus - carry,
            covenant_frozen=covenant_frozen,
            breach=False,
        )
        return new_state, outcome

    unpaid = cash_due - available
    theta = throttle_fraction(unpaid, next_planned, terms)
    deferred = float(next_planned.sum()) * theta * terms.friction_multiplier
    new_state = replace(
        base,
        carry_forward=0.0,
        payables_backlog=unpaid,
        schedule_debt=deferred,
        throttle_pct=theta,
    )
    outcome = MonthOutcome(
        inflow=effective,
        opening_funds=opening_funds,
        available=available,
        reserve_draw=reserve_draw,
        paid=available,
        shortfall=unpaid,
        throttle_pct=theta,
        deferred=deferred,
        lapsed=0.0,
        covenant_frozen=covenant_frozen,
        breach=True,
    )
    return new_state, outcome
