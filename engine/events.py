"""
Trial event log — what happened, month by month, inside one trial.

Only the trial with the largest total shortfall is kept (the "kill chain"), so
a reader can replay how a bad outcome built up:
  GLOBAL   market shock of -31%
  2025-06  monsoon season (0.90x productivity)
  2025-07  threat materialized: land acquisition delay (12.0)
  2025-07  liquidity breach: 8.40 shortfall
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

# market shocks beyond this magnitude are worth reporting
MARKET_SHOCK_EVENT_THRESHOLD = 0.25


@dataclass
class LedgerEvent:
    month: str
    description: str
    severity: str     # LOW / MED / HIGH / CRITICAL
    impact_type: str  # COST / SCHEDULE / LIQUIDITY


@dataclass
class TrialEventLog:
    trial_id: int
    total_shortfall: float = 0.0
    events: List[LedgerEvent] = field(default_factory=list)

    def market_shock(self, shock: float) -> None:
        if abs(shock) > MARKET_SHOCK_EVENT_THRESHOLD:
            self.events.append(
                LedgerEvent("GLOBAL", f"Global market shock: {shock * 100:.1f}%", "HIGH", "COST")
            )

    def monsoon(self, month: str, productivity_factor: float) -> None:
        self.events.append(
            LedgerEvent(month, f"Monsoon season ({productivity_factor:.2f}x productivity)", "LOW", "SCHEDULE")
        )

    def threat(self, month: str, name: str) -> None:
        self.events.append(LedgerEvent(month, f"Threat materialized: {name}", "CRITICAL", "COST"))

    def breach(self, month: str, shortfall: float, throttle_pct: float) -> None:
        self.total_shortfall += shortfall
        text = f"Liquidity breach: {shortfall:.2f} shortfall"
        if throttle_pct > 0:
            text += f", next month throttled {throttle_pct:.0%}"
        self.events.append(LedgerEvent(month, text, "CRITICAL", "LIQUIDITY"))
