"""
Risk layer — engine parameters derived from the user's risk knobs, the per-month
shock model, the counterfactual neutralizers used for attribution and the
stress transforms used for the sensitivity tornado.
"""

from .params import DEFAULT_RISK_PARAMS, RiskParams, derive_risk_params
from .factors import RiskFactorModel
from .neutralize import RISK_FACTORS, RiskFactor, neutralize_all
from .stress import STRESS_TESTS, StressTest

__all__ = [
    "DEFAULT_RISK_PARAMS",
    "RiskParams",
    "derive_risk_params",
    "RiskFactorModel",
    "RISK_FACTORS",
    "RiskFactor",
    "neutralize_all",
    "STRESS_TESTS",
    "StressTest",
]
