"""
Data preparation — flattening request grids into dense engine arrays, validation.
"""

from .grid_builder import PreparedInputs, outflow_frame, prepare_inputs
from .validators import ValidationResult, validate_inputs

__all__ = [
    "PreparedInputs",
    "outflow_frame",
    "prepare_inputs",
    "ValidationResult",
    "validate_inputs",
]
