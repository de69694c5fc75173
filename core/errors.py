"""
Exception types raised by the simulator.

Only configuration problems and misuse of a stale worker handle are raised;
numeric trouble inside a trial is recorded in Diagnostics instead.
"""

from __future__ import annotations

from typing import List, Optional


class SimulationError(Exception):
    """Base class for simulator errors."""


class ConfigValidationError(SimulationError, ValueError):
    """Input invariants violated — raised before any trial runs."""

    def __init__(self, errors: List[str], warnings: Optional[List[str]] = None):
        self.errors = list(errors)
        self.warnings = list(warnings or [])
        super().__init__("Invalid simulation input: " + "; ".join(self.errors))


class StaleRequestError(SimulationError):
    """The request was superseded by a newer one before its result was read."""
