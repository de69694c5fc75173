from __future__ import annotations

from typing import List

import numpy as np
import pandas as pd
from dateutil.relativedelta import relativedelta

from .schema import MONTH_FORMAT


def parse_month(label: str) -> pd.Timestamp:
    """Parse a 'YYYY-MM' label to the month-start Timestamp."""
    return pd.to_datetime(str(label).strip(), format=MONTH_FORMAT)


def month_sequence(start_month: str, n_months: int) -> List[str]:
    """'YYYY-MM' labels for n consecutive months beginning at start_month."""
    first = parse_month(start_month).to_pydatetime()
    return [(first + relativedelta(months=k)).strftime(MONTH_FORMAT) for k in range(n_months)]


def calendar_month(label: str) -> int:
    """1..12 calendar month of a 'YYYY-MM' label."""
    return int(parse_month(label).month)


def month_offset(label: str, months: List[str]) -> int:
    """
    Position of `label` relative to a month sequence.
    Labels before the first month map to 0, after the last to len(months).
    """
    if label in months:
        return months.index(label)
    if label < months[0]:
        return 0
    return len(months)


def nearest_rank(sorted_values: np.ndarray, p: float) -> float:
    """Nearest-rank percentile of an already sorted array: s[min(floor(n*p), n-1)]."""
    n = len(sorted_values)
    if n == 0:
        return 0.0
    idx = min(int(np.floor(n * p)), n - 1)
    return float(sorted_values[idx])


def percentile(values, p: float) -> float:
    """Nearest-rank percentile (sort ascending, index = floor(n*p))."""
    return nearest_rank(np.sort(np.asarray(values, dtype=float)), p)


def safe_mean(values) -> float:
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return 0.0
    return float(arr.mean())
