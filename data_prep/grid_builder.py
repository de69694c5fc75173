"""
Turn the nested request grids into dense arrays for the engine.

Request grids are nested dicts:
  OutflowGrid    {month: {entity: {activity: {component: amount}}}}
  AllocationGrid {month: {"ENGINEERING": amount}}

They are flattened to long DataFrames (one row per cell), cleaned, and pivoted
onto the (month, entity, component) axes fixed by ProjectConfig. Entities and
activities not declared in ProjectConfig are ignored (validators warn about
them).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from core.config import ProjectConfig
from core.schema import COMPONENTS, FUNDED_DEPT
from core.utils import calendar_month, month_offset, month_sequence

OUTFLOW_COLUMNS = ["month", "entity", "activity", "component", "amount"]


def outflow_frame(grid: Optional[Dict]) -> pd.DataFrame:
    """Flatten an OutflowGrid to long format."""
    rows = []
    for month, entities in (grid or {}).items():
        for entity, activities in (entities or {}).items():
            for activity, comps in (activities or {}).items():
                for comp, amount in (comps or {}).items():
                    rows.append((str(month), str(entity), str(activity), str(comp).upper(), amount))
    df = pd.DataFrame(rows, columns=OUTFLOW_COLUMNS)
    df["amount"] = pd.to_numeric(df["amount"], errors="coerce")
    return df.dropna(subset=["amount"])


def allocation_series(grid: Optional[Dict], months: List[str]) -> pd.Series:
    """Funded-department allocation per month (NaN where the grid has no value)."""
    values = {
        str(m): depts.get(FUNDED_DEPT)
        for m, depts in (grid or {}).items()
        if depts is not None and depts.get(FUNDED_DEPT) is not None
    }
    s = pd.Series(values, dtype=float)
    return s.reindex(months)


def _restrict(df: pd.DataFrame, project: ProjectConfig, months: List[str]) -> pd.DataFrame:
    mask = (
        df["month"].isin(months)
        & df["entity"].isin(project.entities)
        & df["activity"].isin(project.activities)
        & df["component"].isin(COMPONENTS)
    )
    return df.loc[mask]


def demand_cube(df: pd.DataFrame, months: List[str], entities: List[str]) -> np.ndarray:
    """Sum over activities -> array (n_months, n_entities, 3)."""
    if df.empty:
        return np.zeros((len(months), len(entities), len(COMPONENTS)), dtype=float)
    index = pd.MultiIndex.from_product([months, entities, list(COMPONENTS)],
                                       names=["month", "entity", "component"])
    summed = df.groupby(["month", "entity", "component"])["amount"].sum()
    dense = summed.reindex(index, fill_value=0.0)
    return dense.to_numpy(dtype=float).reshape(len(months), len(entities), len(COMPONENTS))


def grounded_frame(actual: pd.DataFrame, planned: pd.DataFrame) -> pd.DataFrame:
    """Cell-level actuals, falling back to the planned baseline where no actual was recorded."""
    if actual.empty:
        return planned
    if planned.empty:
        return actual
    keys = ["month", "entity", "activity", "component"]
    a = actual.groupby(keys)["amount"].sum()
    p = planned.groupby(keys)["amount"].sum()
    return a.combine_first(p).rename("amount").reset_index()


@dataclass
class PreparedInputs:
    """Dense, validated inputs for one simulation run."""
    months: List[str]
    entities: List[str]
    is_historical: np.ndarray        # (n_months,) bool
    calendar_months: np.ndarray      # (n_months,) 1..12
    planned_allocation: np.ndarray   # (n_months,)
    inflow: np.ndarray               # (n_months,) actual for history, plan otherwise
    active_demand: np.ndarray        # (n_months, n_entities, 3) risk-adjusted plan
    grounded_incurred: np.ndarray    # (n_months, 3) actuals with baseline fallback
    baseline_by_component: np.ndarray  # (n_months, 3) planned baseline
    cap_total: float
    as_of_idx: int                   # first projected month index (n_months if none)

    @property
    def n_months(self) -> int:
        return len(self.months)

    @property
    def planned_by_component(self) -> np.ndarray:
        """Active plan per month and component (n_months, 3)."""
        return self.active_demand.sum(axis=1)

    @property
    def baseline_totals(self) -> np.ndarray:
        return self.baseline_by_component.sum(axis=1)


def prepare_inputs(
    project: ProjectConfig,
    *,
    allocations: Dict,
    actual_allocations: Optional[Dict],
    planned_outflows: Dict,
    active_outflows: Optional[Dict],
    actual_outflows: Optional[Dict],
) -> PreparedInputs:
    months = month_sequence(project.start_month, project.duration_months)
    entities = list(project.entities)
    is_hist = np.array([m < project.as_of_month for m in months], dtype=bool)

    planned_alloc = allocation_series(allocations, months).fillna(0.0)
    actual_alloc = allocation_series(actual_allocations, months)
    inflow = np.where(is_hist, actual_alloc.fillna(planned_alloc).to_numpy(), planned_alloc.to_numpy())

    baseline_df = _restrict(outflow_frame(planned_outflows), project, months)
    # missing risk-adjusted demand means "execute the baseline"
    active_df = (
        _restrict(outflow_frame(active_outflows), project, months)
        if active_outflows else baseline_df
    )
    actual_df = _restrict(outflow_frame(actual_outflows), project, months)

    baseline = demand_cube(baseline_df, months, entities)
    active = demand_cube(active_df, months, entities)
    grounded = demand_cube(grounded_frame(actual_df, baseline_df), months, entities)

    as_of_idx = month_offset(project.as_of_month, months)

    return PreparedInputs(
        months=months,
        entities=entities,
        is_historical=is_hist,
        calendar_months=np.array([calendar_month(m) for m in months], dtype=int),
        planned_allocation=planned_alloc.to_numpy(dtype=float),
        inflow=inflow.astype(float),
        active_demand=active,
        grounded_incurred=grounded.sum(axis=1),
        baseline_by_component=baseline.sum(axis=1),
        cap_total=float(project.cap_total),
        as_of_idx=as_of_idx,
    )
