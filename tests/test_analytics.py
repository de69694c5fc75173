"""Aggregation, attribution, now-cast, breach radar, early warnings, risk scores, root cause and sensitivity."""

from dataclasses import replace

import numpy as np
import pytest

from analytics.aggregator import compute_kpis, monthly_stats, prob_shortfall_any_month
from analytics.attribution import attribute_drivers, rank_contributions
from analytics.breach_radar import breach_radar
from analytics.early_warnings import early_warnings
from analytics.nowcast import now_cast, performance_factor
from analytics.paths import kill_chain, sample_paths
from analytics.risk_scores import risk_scores
from analytics.root_cause import root_cause
from analytics.sensitivity import sensitivity_analysis
from core.config import ComponentAmounts, CurrentMonthActuals, PolicyConfig, RiskConfig, RiskLimits
from data_prep.grid_builder import prepare_inputs
from engine.runner import TrialResults, build_context, run_trials
from risk.neutralize import RISK_FACTORS
from risk.params import derive_risk_params
from risk.stress import stress_execution, stress_material_volatility, stress_scope_drift

from conftest import MONTHS, allocation_grid, outflow_grid

PERCENTILE_FAMILIES = {
    "realizable_inflow": (10, 20, 50, 80, 90),
    "cash_outflow": (10, 50, 80, 90),
    "demand": (10, 50, 80, 90),
    "shortfall": (50, 80, 90),
    "payables_backlog": (50, 80),
    "schedule_debt": (50, 80),
}


@pytest.fixture
def inputs(project):
    return prepare_inputs(
        project,
        allocations=allocation_grid(MONTHS, 100.0),
        actual_allocations=None,
        planned_outflows=outflow_grid(MONTHS),
        active_outflows=None,
        actual_outflows=None,
    )


@pytest.fixture
def results(project, inputs):
    ctx = build_context(inputs, derive_risk_params(RiskConfig()), PolicyConfig(), project, seed=42)
    return run_trials(ctx, 300)


def test_monthly_stats_are_chronological_and_monotone(results, inputs, settings):
    stats = monthly_stats(results, inputs, settings)
    assert [s.month for s in stats] == MONTHS
    for s in stats:
        for family, levels in PERCENTILE_FAMILIES.items():
            values = [getattr(s, f"{family}_p{p}") for p in levels]
            assert values == sorted(values), (s.month, family)
        assert 0.0 <= s.shortfall_prob <= 1.0 and 0.0 <= s.coverage_prob <= 1.0
        assert s.gap_to_fix == pytest.approx(max(0.0, s.planned_outflow_total - s.safe_spend_limit))


def test_shortfall_probability_uses_materiality_threshold(inputs, settings):
    res = TrialResults.allocate(range(4), inputs.n_months)
    res["shortfall"][:, 0] = [0.0, 0.5, 1.0, 3.0]
    stats = monthly_stats(res, inputs, settings)
    assert stats[0].shortfall_prob == pytest.approx(0.25)
    assert prob_shortfall_any_month(res, 1.0) == pytest.approx(0.25)


def test_safe_spend_is_p20_of_opening_funds(inputs, settings):
    res = TrialResults.allocate(range(10), inputs.n_months)
    res["opening_funds"][:, 0] = np.arange(10, 0, -1, dtype=float)
    stats = monthly_stats(res, inputs, settings)
    # sorted 1..10, index floor(10 * 0.2) = 2
    assert stats[0].safe_spend_limit == pytest.approx(3.0)


def test_kpis(results, inputs, settings):
    stats = monthly_stats(results, inputs, settings)
    kpis = compute_kpis(results, inputs, stats, settings)
    assert kpis.total_realizable_inflow_p10 <= kpis.total_realizable_inflow_p50 <= kpis.total_realizable_inflow_p90
    assert kpis.prob_meet_plan == pytest.approx(1.0 - kpis.prob_shortfall_any_month)
    assert kpis.prob_shortfall_any_month >= max(s.shortfall_prob for s in stats)
    assert kpis.worst_month.prob == max(s.shortfall_prob for s in stats)
    assert kpis.red_months_count == sum(s.shortfall_prob > 0.5 for s in stats)
    assert kpis.primary_driver is None
    diag = kpis.diagnostics
    assert diag.horizon_months == 6 and diag.n_trials == 300 and diag.seed == settings.seed
    assert diag.planned_total_outflow == pytest.approx(600.0)
    assert diag.validation_flags.lag_conservation
    assert set(diag.monthly_throttle_pct) == set(MONTHS)


def test_rank_contributions_floors_ranks_and_normalizes():
    factors = RISK_FACTORS[:3]
    drivers = rank_contributions(0.5, [0.3, 0.6, 0.1], factors)
    assert [d.name for d in drivers] == [factors[2].name, factors[0].name, factors[1].name]
    assert all(d.delta_shortfall_prob >= 0 for d in drivers)
    assert drivers[-1].delta_shortfall_prob == 0.0
    assert sum(d.contribution for d in drivers) == pytest.approx(0.5)


def test_rank_contributions_all_zero():
    drivers = rank_contributions(0.0, [0.0] * len(RISK_FACTORS))
    assert all(d.contribution == 0.0 for d in drivers)


def test_attribution_contributions_are_non_negative(project, inputs, settings):
    s = replace(settings, attribution_trials=60)
    drivers = attribute_drivers(inputs, derive_risk_params(RiskConfig()), PolicyConfig(), project, s)
    assert len(drivers) == len(RISK_FACTORS)
    assert all(d.contribution >= 0 and d.delta_shortfall_prob >= 0 for d in drivers)
    deltas = [d.delta_shortfall_prob for d in drivers]
    assert deltas == sorted(deltas, reverse=True)


def test_collection_haircut_is_the_only_driver_when_funding_is_exact(project, inputs, settings, quiet_params):
    # inflow exactly equals the plan: only the 10% collection haircut makes months short
    params = replace(quiet_params, funding=replace(quiet_params.funding, collection_efficiency=0.9))
    s = replace(settings, attribution_trials=20)
    drivers = attribute_drivers(inputs, params, PolicyConfig(), project, s)
    assert drivers[0].name == "Collection Efficiency"
    assert drivers[0].delta_shortfall_prob == pytest.approx(1.0)
    assert drivers[0].contribution == pytest.approx(1.0)
    assert all(d.delta_shortfall_prob == 0.0 for d in drivers[1:])


# --- Now-cast ---

def _constant_cash(inputs, value, n=4):
    res = TrialResults.allocate(range(n), inputs.n_months)
    res["cash_due"][:] = value
    return res


def test_performance_factor_guards_zero_denominator():
    assert performance_factor(10.0, 0.0, 0.5) == 1.0
    assert performance_factor(10.0, 100.0, 0.0) == 1.0
    assert performance_factor(30.0, 100.0, 0.5) == pytest.approx(0.6)


def test_now_cast_projection_and_drivers(inputs):
    actuals = CurrentMonthActuals(
        current_month=2,
        actual_paid_to_date=ComponentAmounts(service=20.0, material=5.0, infra=5.0),
        elapsed_progress=0.5,
    )
    nc = now_cast(_constant_cash(inputs, 100.0), inputs, actuals)
    assert nc.month == MONTHS[1]
    assert nc.performance_factor == pytest.approx(0.6)
    # 30 paid + 100 x 0.5 remaining x 0.6
    assert nc.eom_cash_due_p50 == pytest.approx(60.0)
    assert nc.eom_cash_due_p80 == pytest.approx(60.0)
    assert nc.prob_exceed_plan == 0.0
    assert nc.planned_total == pytest.approx(100.0)
    # plan x elapsed = (25, 15, 10): MATERIAL is furthest behind
    assert nc.top_drivers[0].component == "MATERIAL"
    assert nc.top_drivers[0].contribution == pytest.approx(0.5)
    assert nc.suggested_actions[0].id == "split-po"


def test_now_cast_overspend_exceeds_plan(inputs):
    actuals = CurrentMonthActuals(
        current_month=1,
        actual_paid_to_date=ComponentAmounts(service=60.0, material=30.0, infra=20.0),
        elapsed_progress=0.5,
    )
    nc = now_cast(_constant_cash(inputs, 100.0), inputs, actuals)
    assert nc.performance_factor == pytest.approx(2.2)
    assert nc.prob_exceed_plan == 1.0


def test_now_cast_outside_horizon_is_none(inputs):
    actuals = CurrentMonthActuals(current_month=99)
    assert now_cast(_constant_cash(inputs, 100.0), inputs, actuals) is None


# --- Breach radar ---

def test_breach_radar_percentiles_and_distribution(inputs):
    res = TrialResults.allocate(range(4), inputs.n_months)
    res.first_breach[:] = [-1, 2, 3, 2]
    radar = breach_radar(res, MONTHS, current_idx=1)
    assert radar.earliest_breach_month_p50 == MONTHS[2]
    assert radar.earliest_breach_month_p80 == MONTHS[3]
    assert radar.time_to_breach_p50 == 1 and radar.time_to_breach_p80 == 2
    probs = {b.month: b.probability for b in radar.breach_distribution}
    assert probs[MONTHS[2]] == 0.5 and probs[MONTHS[3]] == 0.25 and probs[MONTHS[0]] == 0.0


def test_breach_radar_none_without_breaches(inputs):
    res = TrialResults.allocate(range(4), inputs.n_months)
    assert breach_radar(res, MONTHS, current_idx=0) is None


# --- Paths and kill chain ---

def test_sample_paths_and_kill_chain(results):
    paths = sample_paths(results, MONTHS, 3)
    assert [p.id for p in paths] == [0, 1, 2]
    assert len(paths[0].monthly_data) == 6
    chain = kill_chain(results)
    if chain is not None:
        assert chain.total_shortfall == pytest.approx(results["shortfall"].sum(axis=1).max())


# --- Early warnings ---

def test_early_warnings_all_fire_sorted_by_severity():
    actuals = CurrentMonthActuals(
        current_month=2,
        actual_paid_to_date=ComponentAmounts(service=300.0, material=100.0, infra=100.0),
        committed_po_value=400.0,
        physical_progress_pct=0.3,
        planned_progress_pct=0.5,
        estimate_to_complete=800.0,
    )
    warnings = early_warnings(actuals, cap_total=1000.0, next_3_months_budget=300.0)
    ids = {w.id for w in warnings}
    assert ids == {"commitment-iceberg", "low-cpi", "schedule-slip", "hard-budget-breach"}
    order = {"CRITICAL": 0, "HIGH": 1, "MED": 2, "LOW": 3}
    assert [order[w.level] for w in warnings] == sorted(order[w.level] for w in warnings)


def test_early_warnings_quiet_when_on_track():
    actuals = CurrentMonthActuals(
        current_month=2,
        actual_paid_to_date=ComponentAmounts(service=100.0),
        committed_po_value=100.0,
        physical_progress_pct=0.2,
        planned_progress_pct=0.2,
        estimate_to_complete=500.0,
    )
    assert early_warnings(actuals, cap_total=1000.0, next_3_months_budget=300.0) == []
    assert early_warnings(None, 1000.0, 300.0) == []


# --- Risk scores and root cause ---

def _with(stats, *updates):
    return [s.model_copy(update=u) for s, u in zip(stats, updates)]


def test_risk_scores_take_the_worst_factor(results, inputs, settings):
    stats = _with(
        monthly_stats(results, inputs, settings)[:3],
        dict(cash_outflow_p50=100.0, cash_outflow_p80=100.0, shortfall_prob=0.0),
        # 2x ramp-up, P80 10 over the burn limit, 30% shortfall probability
        dict(cash_outflow_p50=200.0, cash_outflow_p80=110.0, shortfall_prob=0.3),
        dict(cash_outflow_p50=200.0, cash_outflow_p80=100.0, shortfall_prob=0.6),
    )
    scores = risk_scores(stats, RiskLimits(max_monthly_burn=100.0, max_velocity_change=1.5))
    assert [s.month_index for s in scores] == [1, 2, 3]

    assert scores[0].score == 0 and scores[0].level == "LOW"
    assert scores[1].breakdown.model_dump() == {"velocity": 100, "capacity": 50, "liquidity": 30}
    assert scores[1].score == 100 and scores[1].level == "CRITICAL"
    assert scores[1].primary_factor == "VELOCITY"
    assert scores[2].score == 60 and scores[2].level == "HIGH"
    assert scores[2].primary_factor == "LIQUIDITY"


def test_root_cause_splits_projected_overrun(results, inputs, settings):
    base = dict(planned_outflow_total=100.0, cash_outflow_p80=150.0,
                planned_allocation=100.0, realizable_inflow_p20=90.0)
    stats = _with(
        monthly_stats(results, inputs, settings)[:3],
        dict(base, is_historical=True, cash_outflow_p80=10_000.0),
        dict(base, is_historical=False),
        dict(base, is_historical=False),
    )
    rca = root_cause(stats, RiskConfig())
    # overrun 100; time = 100 x (1 - 0.7) x 0.4
    assert rca.shortfall_amount == pytest.approx(100.0)
    assert rca.drivers.time == pytest.approx(12.0)
    assert rca.drivers.price == pytest.approx(88.0 * 0.4)
    assert rca.drivers.usage == pytest.approx(88.0 * 0.6)
    assert rca.drivers.funding == pytest.approx(20.0)
    assert rca.primary_driver == "Execution Efficiency (Usage)"


def test_root_cause_on_plan_has_no_overrun(results, inputs, settings):
    stats = _with(
        monthly_stats(results, inputs, settings)[:1],
        dict(is_historical=False, planned_outflow_total=100.0, cash_outflow_p80=90.0,
             planned_allocation=100.0, realizable_inflow_p20=100.0),
    )
    rca = root_cause(stats, RiskConfig())
    assert rca.shortfall_amount == 0.0
    assert rca.drivers.model_dump() == {"price": 0.0, "usage": 0.0, "time": 0.0, "funding": 0.0}


# --- Sensitivity ---

def test_sensitivity_isolates_the_stressed_factor(project, settings, quiet_params):
    exact = prepare_inputs(
        project,
        allocations=allocation_grid(MONTHS, 100.0),
        actual_allocations=None,
        planned_outflows=outflow_grid(MONTHS),
        active_outflows=None,
        actual_outflows=None,
    )
    s = replace(settings, sensitivity_trials=10)
    factors = sensitivity_analysis(exact, quiet_params, PolicyConfig(), project, s)
    assert [f.factor for f in factors][0] == "Execution Confidence"
    assert all(f.base_shortfall_p80 == 0.0 for f in factors)
    # a deterministic 10% overrun on SERVICE (50) and INFRA (20) leaves month 1 short by 7
    assert factors[0].impact_on_shortfall >= 7.0 - 1e-9
    assert all(f.impact_on_shortfall == 0.0 for f in factors[1:])


def test_stress_transforms_only_touch_their_factor():
    params = derive_risk_params(RiskConfig())
    stressed = stress_material_volatility(params)
    assert stressed.material_vol.sigma_market == pytest.approx(params.material_vol.sigma_market * 1.5)
    assert stressed.overrun == params.overrun and stressed.scope_drift == params.scope_drift
    assert stress_execution(params).overrun.mean == pytest.approx(params.overrun.mean + 0.1)
    assert stress_scope_drift(params).scope_drift.mean == pytest.approx(params.scope_drift.mean * 2)
