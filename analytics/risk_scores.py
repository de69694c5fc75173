"""
Monthly operational risk scores.

Three independent 0-100 scores per month, the month's score being the largest:
  velocity   P50 cash outflow ramp-up vs the previous month, above max_velocity_change
  capacity   P80 cash outflow above max_monthly_burn
  liquidity  shortfall probability, once it exceeds 10%
"""

from __future__ import annotations

import math
from typing import List

from core.config import RiskLimits
from core.results import MonthlyStats, RiskScore, RiskScoreBreakdown

VELOCITY_FULL_SCALE = 0.5      # ramp-up excess that scores 100
CAPACITY_FULL_SCALE = 0.2      # overflow, as a share of the burn limit, that scores 100
LIQUIDITY_FLOOR_PROB = 0.1


def _round(x: float) -> int:
    return int(math.floor(x + 0.5))


def score_level(score: float) -> str:
    if score > 80:
        return "CRITICAL"
    if score > 50:
        return "HIGH"
    if score > 20:
        return "MED"
    return "LOW"


def risk_scores(stats: List[MonthlyStats], limits: RiskLimits) -> List[RiskScore]:
    scores = []
    for i, current in enumerate(stats):
        velocity = capacity = liquidity = 0.0

        if i > 0 and stats[i - 1].cash_outflow_p50 > 0:
            ratio = current.cash_outflow_p50 / stats[i - 1].cash_outflow_p50
            if ratio > limits.max_velocity_change:
                velocity = min(100.0, (ratio - limits.max_velocity_change) / VELOCITY_FULL_SCALE * 100)

        if current.cash_outflow_p80 > limits.max_monthly_burn:
            overflow = current.cash_outflow_p80 - limits.max_monthly_burn
            capacity = min(100.0, overflow / (limits.max_monthly_burn * CAPACITY_FULL_SCALE) * 100)

        if current.shortfall_prob > LIQUIDITY_FLOOR_PROB:
            liquidity = current.shortfall_prob * 100

        top = max(velocity, capacity, liquidity)
        # ties go to liquidity, then capacity
        if liquidity == top:
            primary = "LIQUIDITY"
        elif capacity == top:
            primary = "CAPACITY"
        else:
            primary = "VELOCITY"

        scores.append(
            RiskScore(
                month=current.month,
                month_index=i + 1,
                score=_round(top),
                level=score_level(top),
                primary_factor=primary,
                breakdown=RiskScoreBreakdown(
                    velocity=_round(velocity),
                    capacity=_round(capacity),
                    liquidity=_round(liquidity),
                ),
            )
        )
    return scores
