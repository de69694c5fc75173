"""
Risk factor model — per-trial, per-month sampling of cost shocks.

Two layers of randomness, as in any project cost Monte Carlo:
  Trial level:  one market shock shared by every month and every material cost
                in the trial (systemic correlation: a commodity spike hits the
                whole project, not one invoice).
  Month level:  idiosyncratic material shock, execution overrun, scope creep,
                entity demand noise, rework noise and manual threats.

Draw order inside a projected month is fixed and never depends on parameter
values. A counterfactual run that zeroes one factor therefore consumes the same
random numbers as the baseline, and differences between the runs come from the
neutralized factor alone.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Sequence

import numpy as np

from core.schema import INFRA, MATERIAL, SERVICE
from distributions.copula import correlated_uniforms
from distributions.samplers import (
    clamp,
    sample_lognormal,
    sample_normal,
    sample_triangular,
)

from .params import RiskParams

CLAMP_MATERIAL_CAP = "material_multiplier_cap"
CLAMP_MATERIAL_FLOOR = "material_multiplier_floor"
CLAMP_OVERRUN_CAP = "overrun_cap"
CLAMP_OVERRUN_FLOOR = "overrun_floor"


@dataclass
class MonthDraw:
    """Everything sampled for one projected month of one trial."""
    scope_index: float
    entity_multipliers: np.ndarray   # (n_entities,)
    material_multiplier: float
    overrun: np.ndarray              # (3,), MATERIAL slot unused
    rework_noise: np.ndarray         # (3,)
    rain_season: bool
    threat_amount: float = 0.0
    threats_hit: List[str] = field(default_factory=list)
    clamps: List[str] = field(default_factory=list)


class RiskFactorModel:
    """
    Samples cost shocks from RiskParams and applies them to planned demand.

    Usage (one trial):
        model = RiskFactorModel(params, entities)
        shock = model.draw_market_shock(rng)
        scope = 0.0
        for m in projected months:
            draw = model.sample_month(rng, m, calendar_month, shock, scope)
            scope = draw.scope_index
            incurred = model.apply(base_by_entity[m], draw)
    """

    def __init__(self, params: RiskParams, entities: Sequence[str]):
        self.params = params
        self.entities = list(entities)
        v = params.volatility_factor

        low = np.ones(len(self.entities))
        mode = np.ones(len(self.entities))
        high = np.ones(len(self.entities))
        index = {e: i for i, e in enumerate(self.entities)}
        for name, lo, mo, hi in params.entity_demand.multipliers:
            if name not in index:
                continue
            i = index[name]
            # spread around 1.0 scales with the volatility factor
            low[i] = 1.0 + (lo - 1.0) * v
            mode[i] = 1.0 + (mo - 1.0) * v
            high[i] = 1.0 + (hi - 1.0) * v
        self._tri_low, self._tri_mode, self._tri_high = low, mode, high

    def draw_market_shock(self, rng: np.random.Generator) -> float:
        mv = self.params.material_vol
        return sample_normal(rng, 0.0, mv.sigma_market * self.params.volatility_factor)

    def sample_month(
        self,
        rng: np.random.Generator,
        month_idx: int,
        calendar_month: int,
        market_shock: float,
        scope_index: float,
    ) -> MonthDraw:
        p = self.params
        v = p.volatility_factor
        clamps: List[str] = []

        # 1. scope drift: one-directional walk, capped
        sd = p.scope_drift
        step = sample_normal(rng, sd.mean * sd.design_factor, sd.sigma * sd.design_factor)
        scope_index = min(scope_index + max(0.0, step), sd.cap)

        # 2. entity demand noise through the copula
        u = correlated_uniforms(rng, len(self.entities), p.entity_demand.correlation)
        entity_mult = np.array(
            [
                sample_triangular(u[i], self._tri_low[i], self._tri_mode[i], self._tri_high[i])
                for i in range(len(self.entities))
            ],
            dtype=float,
        )

        # 3. material: inflation drift + market/idiosyncratic blend
        mv = p.material_vol
        idio = sample_normal(rng, 0.0, mv.sigma_idio * v)
        bias = mv.inflation_annual / 12.0 * (month_idx + 1)
        shock = (
            bias
            + market_shock * mv.market_weight * mv.vendor_penalty * (1.0 + mv.fx_exposure)
            + idio * (1.0 - mv.market_weight)
        )
        if mv.dist == "lognormal":
            material_mult = math.exp(shock)
        else:
            material_mult = 1.0 + shock
            if material_mult < 0.0:
                material_mult = 0.0
                clamps.append(CLAMP_MATERIAL_FLOOR)
        if material_mult > mv.clamp_max:
            material_mult = mv.clamp_max
            clamps.append(CLAMP_MATERIAL_CAP)

        # 4. execution overrun (labour and infra only)
        ov = p.overrun
        overrun = np.zeros(3, dtype=float)
        for comp in (SERVICE, INFRA):
            raw = sample_normal(rng, ov.mean, ov.sigma * v)
            if raw > ov.clamp_max:
                clamps.append(CLAMP_OVERRUN_CAP)
            elif raw < ov.floor:
                clamps.append(CLAMP_OVERRUN_FLOOR)
            overrun[comp] = clamp(raw, ov.floor, ov.clamp_max)

        # 5. rework noise, mean 1
        rework_noise = np.array(
            [sample_lognormal(rng, 1.0, p.rework.cv) for _ in range(3)], dtype=float
        )

        draw = MonthDraw(
            scope_index=scope_index,
            entity_multipliers=entity_mult,
            material_multiplier=material_mult,
            overrun=overrun,
            rework_noise=rework_noise,
            rain_season=calendar_month in p.seasonality.rain_months,
            clamps=clamps,
        )

        # 6. manual threats: one Bernoulli draw per configured threat
        for threat in p.threats:
            hit = rng.random() < threat.probability
            if hit and threat.month == month_idx + 1:
                draw.threat_amount += threat.amount
                draw.threats_hit.append(threat.name)
        return draw

    def apply(self, base: np.ndarray, draw: MonthDraw) -> np.ndarray:
        """
        Risk-adjusted incurred cost per component for one month.

        base: (n_entities, 3) planned demand of the month
        """
        p = self.params
        by_comp = (draw.entity_multipliers[:, np.newaxis] * base).sum(axis=0)

        by_comp[MATERIAL] *= draw.material_multiplier
        by_comp[SERVICE] *= 1.0 + draw.overrun[SERVICE]
        by_comp[INFRA] *= 1.0 + draw.overrun[INFRA]
        by_comp *= 1.0 + draw.scope_index

        if draw.rain_season and p.seasonality.productivity_factor > 0:
            by_comp[SERVICE] /= p.seasonality.productivity_factor

        # rework: the non-first-time-right share is paid for twice
        by_comp += np.maximum(0.0, by_comp * p.rework.rate * draw.rework_noise)

        by_comp[SERVICE] += draw.threat_amount
        return by_comp
