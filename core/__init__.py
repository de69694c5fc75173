"""
Core package — schema constants, input/output models, run settings, and shared
utilities. No simulation logic lives here.
"""

from .schema import COMPONENTS, FUNDED_DEPT
from .config import (
    CurrentMonthActuals,
    PolicyConfig,
    ProjectConfig,
    RiskConfig,
    SimulationSettings,
)
from .errors import ConfigValidationError, SimulationError, StaleRequestError
from .utils import month_sequence, percentile

__all__ = [
    "COMPONENTS",
    "FUNDED_DEPT",
    "CurrentMonthActuals",
    "PolicyConfig",
    "ProjectConfig",
    "RiskConfig",
    "SimulationSettings",
    "ConfigValidationError",
    "SimulationError",
    "StaleRequestError",
    "month_sequence",
    "percentile",
]
