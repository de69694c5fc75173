"""
Trial runner — drives Monte Carlo trials through the risk model, the lag
distributor and the liquidity ledger.

Per trial, per month:
  1. incurred cost     history: recorded actuals; projection: risk-adjusted demand
  2. execution         projection: throttled by last month's breach, plus the
                       schedule debt carried in
  3. cash due          history: paid as incurred; projection: invoice lags,
                       plus pending cash from earlier months, plus payables backlog
  4. resolution        ledger.resolve_month -> new state for the next month

Trials share nothing mutable: each one builds its own generator, ledger state
and pending-cash buffer. That makes the trial loop embarrassingly parallel;
with n_workers > 1 contiguous trial shards run in a process pool and the
results are concatenated in trial order, giving exactly the sequential output.
"""

from __future__ import annotations

import logging
from collections import Counter
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence

import numpy as np

from core.config import PolicyConfig, ProjectConfig
from core.errors import SimulationError
from core.schema import SERVICE
from data_prep.grid_builder import PreparedInputs
from distributions.prng import trial_generator
from risk.factors import RiskFactorModel
from risk.params import RiskParams

from .events import TrialEventLog
from .lags import LagDistributor
from .ledger import LedgerTerms, opening_state, resolve_month

logger = logging.getLogger(__name__)

LAG_CHECK_TOLERANCE = 1e-6

# per-(trial, month) series recorded by the runner
SERIES = (
    "inflow",
    "opening_funds",
    "workload",
    "cash_due",
    "shortfall",
    "backlog",
    "schedule_debt",
    "deferred",
    "carry",
    "throttle",
    "reserve_draw",
    "reserve_remaining",
    "lapsed",
    "available",
)


@dataclass
class RunContext:
    """Everything a trial needs; built once per run and shipped to workers."""
    inputs: PreparedInputs
    params: RiskParams
    terms: LedgerTerms
    lags: LagDistributor
    model: RiskFactorModel
    seed: int


@dataclass
class TrialResults:
    """Per-trial, per-month samples of one run (rows = successful trials)."""
    trial_ids: np.ndarray
    series: Dict[str, np.ndarray]      # name -> (n_trials, n_months)
    incurred: np.ndarray               # (n_trials, n_months, 3)
    first_breach: np.ndarray           # (n_trials,), -1 when no breach
    clamp_counts: Counter = field(default_factory=Counter)
    lag_conservation: bool = True
    carry_non_negative: bool = True
    backlog_non_negative: bool = True
    schedule_debt_monotonic: bool = True
    failures: List[str] = field(default_factory=list)
    worst: Optional[TrialEventLog] = None

    @property
    def n_trials(self) -> int:
        return len(self.trial_ids)

    def __getitem__(self, name: str) -> np.ndarray:
        return self.series[name]

    @classmethod
    def allocate(cls, trial_ids: Sequence[int], n_months: int) -> "TrialResults":
        n = len(trial_ids)
        return cls(
            trial_ids=np.asarray(trial_ids, dtype=int),
            series={name: np.zeros((n, n_months), dtype=float) for name in SERIES},
            incurred=np.zeros((n, n_months, 3), dtype=float),
            first_breach=np.full(n, -1, dtype=int),
        )

    def select(self, rows: np.ndarray) -> "TrialResults":
        return replace(
            self,
            trial_ids=self.trial_ids[rows],
            series={k: v[rows] for k, v in self.series.items()},
            incurred=self.incurred[rows],
            first_breach=self.first_breach[rows],
        )

    @classmethod
    def concat(cls, parts: Sequence["TrialResults"]) -> "TrialResults":
        worst = None
        clamps: Counter = Counter()
        for p in parts:
            clamps.update(p.clamp_counts)
            if p.worst is not None and (worst is None or p.worst.total_shortfall > worst.total_shortfall):
                worst = p.worst
        return cls(
            trial_ids=np.concatenate([p.trial_ids for p in parts]),
            series={k: np.concatenate([p.series[k] for p in parts]) for k in SERIES},
            incurred=np.concatenate([p.incurred for p in parts]),
            first_breach=np.concatenate([p.first_breach for p in parts]),
            clamp_counts=clamps,
            lag_conservation=all(p.lag_conservation for p in parts),
            carry_non_negative=all(p.carry_non_negative for p in parts),
            backlog_non_negative=all(p.backlog_non_negative for p in parts),
            schedule_debt_monotonic=all(p.schedule_debt_monotonic for p in parts),
            failures=[f for p in parts for f in p.failures],
            worst=worst,
        )


def build_context(
    inputs: PreparedInputs,
    params: RiskParams,
    policy: PolicyConfig,
    project: ProjectConfig,
    *,
    seed: int,
) -> RunContext:
    terms = LedgerTerms(
        collection_efficiency=params.funding.collection_efficiency,
        covenant_hard_stop=params.funding.covenant_hard_stop,
        min_progress_covenant=params.funding.min_progress_covenant,
        planned_horizon_total=float(inputs.baseline_totals.sum()),
        reserve_enabled=params.reserve.enabled,
        reserve_monthly_cap=params.reserve.monthly_cap,
        max_throttle_pct=policy.max_throttle_pct_per_month,
        friction_multiplier=policy.friction_multiplier,
        rollover=project.underspend_policy == "ROLLOVER_NEXT_MONTH",
        cap_total=inputs.cap_total,
        defer_uncommitted_only=policy.breach_mode == "defer_uncommitted_only",
        commitment_ratios=tuple(policy.commitment_ratio_defaults.as_array().tolist()),
    )
    return RunContext(
        inputs=inputs,
        params=params,
        terms=terms,
        lags=LagDistributor(params.invoice_lag, inputs.n_months),
        model=RiskFactorModel(params, inputs.entities),
        seed=int(seed),
    )


def _component_mix(planned: np.ndarray) -> np.ndarray:
    """Planned component shares of a month; all SERVICE when nothing is planned."""
    total = planned.sum()
    if total <= 0:
        mix = np.zeros(3, dtype=float)
        mix[SERVICE] = 1.0
        return mix
    return planned / total


def simulate_trial(ctx: RunContext, trial_id: int, out: TrialResults, row: int) -> TrialEventLog:
    """Run one trial and write its month series into row `row` of `out`."""
    inputs, model, lags, terms = ctx.inputs, ctx.model, ctx.lags, ctx.terms
    n_months = inputs.n_months
    planned = inputs.planned_by_component
    log = TrialEventLog(trial_id=trial_id)

    rng = trial_generator(ctx.seed, trial_id)
    state = opening_state(terms, ctx.params.reserve.total)
    buffer = lags.new_buffer()
    market_shock = model.draw_market_shock(rng)
    log.market_shock(market_shock)

    lagged_in = 0.0
    paid_now = 0.0
    debt_seen = False
    for m in range(n_months):
        month = inputs.months[m]
        hist = bool(inputs.is_historical[m])

        if hist:
            incurred = inputs.grounded_incurred[m].copy()
            executed = incurred
        else:
            draw = model.sample_month(rng, m, int(inputs.calendar_months[m]), market_shock, state.scope_index)
            state = replace(state, scope_index=draw.scope_index)
            incurred = model.apply(inputs.active_demand[m], draw)
            executed = incurred * (1.0 - state.throttle_pct)
            out.clamp_counts.update(draw.clamps)
            if draw.rain_season:
                log.monsoon(month, ctx.params.seasonality.productivity_factor)
            for name in draw.threats_hit:
                log.threat(month, name)

        work = executed + state.schedule_debt * _component_mix(planned[m])
        if hist:
            cash_now = float(work.sum())
        else:
            cash_now = lags.distribute(buffer, m, work)
            lagged_in += float(work.sum())
            paid_now += cash_now
        cash_due = cash_now + float(buffer[m]) + state.payables_backlog

        if m + 1 < n_months and not inputs.is_historical[m + 1]:
            next_planned = planned[m + 1]
        else:
            next_planned = np.zeros(3, dtype=float)

        state, outcome = resolve_month(
            state,
            terms,
            inflow=float(inputs.inflow[m]),
            cash_due=cash_due,
            workload=float(work.sum()),
            is_historical=hist,
            next_planned=next_planned,
        )

        if outcome.breach:
            log.breach(month, outcome.shortfall, outcome.throttle_pct)
            if out.first_breach[row] < 0:
                out.first_breach[row] = m
        debt_seen = debt_seen or state.schedule_debt > 0.0

        s = out.series
        s["inflow"][row, m] = outcome.inflow
        s["opening_funds"][row, m] = outcome.opening_funds
        s["available"][row, m] = outcome.available
        s["workload"][row, m] = float(work.sum())
        s["cash_due"][row, m] = cash_due
        s["shortfall"][row, m] = outcome.shortfall
        s["backlog"][row, m] = state.payables_backlog
        s["schedule_debt"][row, m] = state.schedule_debt
        s["deferred"][row, m] = outcome.deferred
        s["carry"][row, m] = state.carry_forward
        s["throttle"][row, m] = outcome.throttle_pct
        s["reserve_draw"][row, m] = outcome.reserve_draw
        s["reserve_remaining"][row, m] = state.reserve_remaining
        s["lapsed"][row, m] = outcome.lapsed
        out.incurred[row, m] = incurred

    # lag conservation: everything incurred in projection is scheduled exactly once
    scheduled = paid_now + float(buffer.sum())
    if abs(scheduled - lagged_in) > LAG_CHECK_TOLERANCE * max(1.0, abs(lagged_in)):
        out.lag_conservation = False

    if min(out.series["carry"][row].min(), out.series["reserve_remaining"][row].min()) < 0:
        out.carry_non_negative = False
    if out.series["backlog"][row].min() < 0:
        out.backlog_non_negative = False
    if out.first_breach[row] < 0 and debt_seen:
        # without any breach no work may ever be deferred
        out.schedule_debt_monotonic = False

    for name in SERIES:
        if not np.all(np.isfinite(out.series[name][row])):
            raise FloatingPointError(f"non-finite {name} values")
    return log


def run_block(ctx: RunContext, trial_ids: Sequence[int]) -> TrialResults:
    """Run a contiguous block of trials sequentially."""
    out = TrialResults.allocate(trial_ids, ctx.inputs.n_months)
    out.lag_conservation = ctx.lags.conserves
    ok = np.ones(len(trial_ids), dtype=bool)
    for row, trial_id in enumerate(trial_ids):
        try:
            log = simulate_trial(ctx, int(trial_id), out, row)
        except (ArithmeticError, ValueError) as exc:
            ok[row] = False
            out.failures.append(f"trial {trial_id}: {exc}")
            logger.warning("Trial %d failed and is excluded: %s", trial_id, exc)
            continue
        if log.total_shortfall > 0 and (out.worst is None or log.total_shortfall > out.worst.total_shortfall):
            out.worst = log
    if not ok.all():
        out = out.select(ok)
    return out


def _shards(n_trials: int, n_workers: int) -> List[range]:
    size = -(-n_trials // n_workers)
    return [range(i, min(i + size, n_trials)) for i in range(0, n_trials, size)]


def run_trials(ctx: RunContext, n_trials: int, *, n_workers: int = 1) -> TrialResults:
    """
    Run n_trials trials (ids 0..n_trials-1, trial i seeded with seed + i).

    Raises SimulationError only when no trial completed.
    """
    if n_trials <= 0:
        raise SimulationError("n_trials must be positive.")

    if n_workers <= 1 or n_trials < 2 * n_workers:
        results = run_block(ctx, range(n_trials))
    else:
        shards = _shards(n_trials, n_workers)
        logger.debug("Dispatching %d trials in %d shards", n_trials, len(shards))
        with ProcessPoolExecutor(max_workers=n_workers) as executor:
            parts = list(executor.map(run_block, [ctx] * len(shards), shards))
        results = TrialResults.concat(parts)

    if results.n_trials == 0:
        raise SimulationError(f"All {n_trials} trials failed: {results.failures[:3]}")
    if results.clamp_counts:
        logger.warning("Tail clamping occurred: %s", dict(results.clamp_counts))
    return results
