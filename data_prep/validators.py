"""
Input validation before anything enters the engine.

Catches problems early:
- Invoice-lag fractions that do not sum to 1 (cash would be created or lost)
- As-of month, threat months or current month outside the horizon
- Negative grid amounts
- Grid entities/activities/components not declared in ProjectConfig

Schema-level checks (types, ranges) are already done by the pydantic models;
this module covers invariants that span several fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pandas as pd

from core.config import CurrentMonthActuals, ProjectConfig, RiskConfig
from core.errors import ConfigValidationError
from core.schema import COMPONENTS
from core.utils import month_sequence
from risk.params import InvoiceLag, lag_sum_errors

from .grid_builder import outflow_frame


@dataclass
class ValidationResult:
    """Collects all validation warnings/errors for a request."""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def summary(self) -> str:
        lines = []
        if self.errors:
            lines.append(f"ERRORS ({len(self.errors)}):")
            for e in self.errors:
                lines.append(f"  ✗ {e}")
        if self.warnings:
            lines.append(f"WARNINGS ({len(self.warnings)}):")
            for w in self.warnings:
                lines.append(f"  ⚠ {w}")
        if not lines:
            lines.append("✓ All checks passed.")
        return "\n".join(lines)

    def raise_if_invalid(self) -> None:
        if not self.is_valid:
            raise ConfigValidationError(self.errors, self.warnings)


def _check_grid(name: str, df: pd.DataFrame, project: ProjectConfig, months: List[str],
                result: ValidationResult) -> None:
    if df.empty:
        return
    n_neg = int((df["amount"] < 0).sum())
    if n_neg > 0:
        result.errors.append(f"{name}: {n_neg} cells have negative amounts.")

    unknown_comp = sorted(set(df["component"]) - set(COMPONENTS))
    if unknown_comp:
        result.errors.append(f"{name}: unknown cost components {unknown_comp}.")

    unknown_ent = sorted(set(df["entity"]) - set(project.entities))
    if unknown_ent:
        result.warnings.append(f"{name}: entities not in project config are ignored: {unknown_ent}.")
    unknown_act = sorted(set(df["activity"]) - set(project.activities))
    if unknown_act:
        result.warnings.append(f"{name}: activities not in project config are ignored: {unknown_act}.")
    outside = sorted(set(df["month"]) - set(months))
    if outside:
        result.warnings.append(f"{name}: {len(outside)} months outside the horizon are ignored.")


def _check_allocations(name: str, grid: Optional[Dict], result: ValidationResult) -> None:
    for month, depts in (grid or {}).items():
        for dept, amount in (depts or {}).items():
            if amount is not None and float(amount) < 0:
                result.errors.append(f"{name}: negative allocation for {dept} in {month}.")


def validate_inputs(
    project: ProjectConfig,
    risk: RiskConfig,
    *,
    allocations: Dict,
    actual_allocations: Optional[Dict] = None,
    planned_outflows: Optional[Dict] = None,
    active_outflows: Optional[Dict] = None,
    actual_outflows: Optional[Dict] = None,
    current_month_actuals: Optional[CurrentMonthActuals] = None,
) -> ValidationResult:
    """
    Run all cross-field checks on a simulation request.
    Returns a ValidationResult with errors (blocking) and warnings (informational).
    """
    result = ValidationResult()

    # --- Project ---
    if not project.entities:
        result.errors.append("Project has no entities.")
    if not project.activities:
        result.errors.append("Project has no activities.")
    if not result.is_valid:
        return result  # grids cannot be interpreted without the axes

    months = month_sequence(project.start_month, project.duration_months)
    if project.as_of_month < months[0]:
        result.warnings.append(f"As-of month {project.as_of_month} precedes the horizon; no history is grounded.")
    elif project.as_of_month > months[-1]:
        result.warnings.append(f"As-of month {project.as_of_month} is after the horizon; every month is history.")

    # --- Invoice lag ---
    lag = InvoiceLag(
        service=tuple(risk.invoice_lag.service),
        material=tuple(risk.invoice_lag.material),
        infra=tuple(risk.invoice_lag.infra),
    )
    result.errors.extend(lag_sum_errors(lag))

    # --- Threats ---
    for threat in risk.threats:
        if threat.month > project.duration_months:
            result.errors.append(
                f"Threat '{threat.name}' targets month {threat.month}, beyond the "
                f"{project.duration_months}-month horizon."
            )
        elif months[threat.month - 1] < project.as_of_month:
            result.warnings.append(
                f"Threat '{threat.name}' targets {months[threat.month - 1]}, which is already "
                f"history; it is never drawn."
            )

    for u in risk.entity_uncertainty:
        if not (u.low_mult <= u.mode_mult <= u.high_mult):
            result.errors.append(f"Entity uncertainty for {u.entity} must satisfy low <= mode <= high.")
        if u.entity not in project.entities:
            result.warnings.append(f"Entity uncertainty for unknown entity {u.entity} is ignored.")

    bad_rain = [m for m in risk.execution.rain_season_months if not 1 <= m <= 12]
    if bad_rain:
        result.errors.append(f"Rain season months must be calendar months 1..12: {bad_rain}.")

    # --- Current month ---
    if current_month_actuals is not None and current_month_actuals.current_month > project.duration_months:
        result.errors.append(
            f"Current month {current_month_actuals.current_month} is outside the horizon."
        )

    # --- Grids ---
    _check_allocations("Allocations", allocations, result)
    _check_allocations("Actual allocations", actual_allocations, result)
    for name, grid in (
        ("Planned outflows", planned_outflows),
        ("Active demand", active_outflows),
        ("Actual outflows", actual_outflows),
    ):
        _check_grid(name, outflow_frame(grid), project, months, result)

    return result
