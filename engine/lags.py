"""
Invoice-lag distributor — turns incurred cost into a schedule of cash due.

Each component has a lag vector: lag[k] is the fraction of this month's incurred
cost that must be paid k months later. The vectors sum to 1, so the distributor
neither creates nor destroys cash: sum(schedule(x)) == x.

Historical months never go through here; recorded actuals are cash facts.
"""

from __future__ import annotations

import numpy as np

from core.schema import COMPONENTS
from risk.params import LAG_TOLERANCE, InvoiceLag


class LagDistributor:
    def __init__(self, invoice_lag: InvoiceLag, horizon: int):
        self.invoice_lag = invoice_lag
        self.horizon = int(horizon)
        self.max_lag = invoice_lag.max_lag
        # (3, max_lag + 1) matrix, zero-padded
        self.matrix = np.zeros((len(COMPONENTS), self.max_lag + 1), dtype=float)
        for i in range(len(COMPONENTS)):
            lag = invoice_lag.for_component(i)
            self.matrix[i, : len(lag)] = lag
        self.conserves = bool(
            np.all(np.abs(self.matrix.sum(axis=1) - 1.0) <= LAG_TOLERANCE)
        )

    def new_buffer(self) -> np.ndarray:
        """Per-trial pending-cash buffer indexed by absolute month."""
        return np.zeros(self.horizon + self.max_lag + 1, dtype=float)

    def schedule(self, amount: float, component: int) -> np.ndarray:
        """Cash due at offsets 0..max_lag for `amount` incurred in `component`."""
        return float(amount) * self.matrix[component]

    def distribute(self, buffer: np.ndarray, month_idx: int, incurred: np.ndarray) -> float:
        """
        Spread this month's incurred cost (per component) over the buffer.
        Returns the part due in the current month; later parts go to buffer[month_idx + k].
        """
        due = incurred @ self.matrix  # (max_lag + 1,)
        buffer[month_idx + 1 : month_idx + 1 + self.max_lag] += due[1:]
        return float(due[0])
