from __future__ import annotations

from typing import Tuple

# Cost components in the fixed order used for every (..., 3) array in the engine.
COMPONENTS: Tuple[str, ...] = ("SERVICE", "MATERIAL", "INFRA")
SERVICE, MATERIAL, INFRA = 0, 1, 2

# The only department whose allocation funds the simulated work.
FUNDED_DEPT = "ENGINEERING"

# Realizable-inflow percentile levels reported in MonthlyStats.
PERCENTILE_LEVELS: Tuple[float, ...] = (0.10, 0.20, 0.50, 0.80, 0.90)

MONTH_FORMAT = "%Y-%m"
