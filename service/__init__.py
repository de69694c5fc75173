"""
Service boundary — request/response messages and the simulation worker.
"""

from .messages import SimulationRequest, SimulationResponse
from .worker import SimulationTask, SimulationWorker, simulate

__all__ = [
    "SimulationRequest",
    "SimulationResponse",
    "SimulationTask",
    "SimulationWorker",
    "simulate",
]
