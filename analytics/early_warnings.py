"""
Early warnings — deterministic checks on the current month's actuals.

These are immediate signals from reported figures, not Monte Carlo output:
  Commitment iceberg   committed POs vs the next three months' allocation
  Low CPI              earned value (cap x physical progress) / paid to date
  Schedule slip        physical / planned progress (SPI)
  Hard budget breach   paid to date + estimate to complete > cap
"""

from __future__ import annotations

from typing import List, Optional

from core.config import CurrentMonthActuals
from core.results import EarlyWarning

ICEBERG_RATIO = 1.2
ICEBERG_CRITICAL_RATIO = 1.5
CPI_THRESHOLD = 0.85
CPI_CRITICAL = 0.70
SPI_THRESHOLD = 0.85
SPI_HIGH = 0.70

LEVEL_ORDER = {"CRITICAL": 0, "HIGH": 1, "MED": 2, "LOW": 3}


def early_warnings(
    actuals: Optional[CurrentMonthActuals],
    cap_total: float,
    next_3_months_budget: float,
) -> List[EarlyWarning]:
    if actuals is None:
        return []

    warnings: List[EarlyWarning] = []
    paid = actuals.actual_paid_to_date.total

    if actuals.committed_po_value > 0 and next_3_months_budget > 0:
        ratio = actuals.committed_po_value / next_3_months_budget
        if ratio > ICEBERG_RATIO:
            warnings.append(EarlyWarning(
                id="commitment-iceberg",
                level="CRITICAL" if ratio > ICEBERG_CRITICAL_RATIO else "HIGH",
                title="Commitment Iceberg",
                message=(
                    f"Committed POs ({actuals.committed_po_value:.1f}) are {ratio:.0%} of the next "
                    f"3 months' budget. Expect a cash crunch within ~60 days."
                ),
                metric="PO/Budget Ratio",
                value=ratio,
                threshold=ICEBERG_RATIO,
            ))

    if actuals.physical_progress_pct > 0 and paid > 0 and cap_total > 0:
        cpi = cap_total * actuals.physical_progress_pct / paid
        if cpi < CPI_THRESHOLD:
            warnings.append(EarlyWarning(
                id="low-cpi",
                level="CRITICAL" if cpi < CPI_CRITICAL else "MED",
                title="Low Cost Efficiency",
                message=f"CPI {cpi:.2f}: each 1.00 spent earns {cpi:.2f} of value. Target >= {CPI_THRESHOLD}.",
                metric="CPI",
                value=cpi,
                threshold=CPI_THRESHOLD,
            ))

    if actuals.physical_progress_pct > 0 and actuals.planned_progress_pct > 0:
        spi = actuals.physical_progress_pct / actuals.planned_progress_pct
        if spi < SPI_THRESHOLD:
            warnings.append(EarlyWarning(
                id="schedule-slip",
                level="HIGH" if spi < SPI_HIGH else "MED",
                title="Schedule Slippage",
                message=(
                    f"SPI {spi:.2f}: physical progress ({actuals.physical_progress_pct:.0%}) "
                    f"lags planned ({actuals.planned_progress_pct:.0%})."
                ),
                metric="SPI",
                value=spi,
                threshold=SPI_THRESHOLD,
            ))

    if actuals.estimate_to_complete > 0 and cap_total > 0:
        forecast = paid + actuals.estimate_to_complete
        if forecast > cap_total:
            warnings.append(EarlyWarning(
                id="hard-budget-breach",
                level="CRITICAL",
                title="Hard Budget Breach",
                message=f"Paid + ETC = {forecast:.1f} exceeds the cap by {forecast - cap_total:.1f}.",
                metric="Forecast vs Cap",
                value=forecast,
                threshold=cap_total,
            ))

    warnings.sort(key=lambda w: LEVEL_ORDER[w.level])
    return warnings
