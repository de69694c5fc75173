"""
Simulation service — one request in, one response out.

simulate() is the whole pipeline as a pure function:

  request -> validate -> prepare grids -> derive RiskParams
          -> run trials -> aggregate -> attribution / sensitivity
          -> now-cast / radar / warnings / risk scores / root cause
          -> response

SimulationWorker runs simulate() off the caller's thread and enforces
last-request-wins: submitting a new request marks the previous task stale and
cancels it if it has not started. If it is already running, the worker's
executor is abandoned (its process terminated) and the new request starts on
a fresh one, so it never waits behind stale work. A thread cannot be killed:
in thread mode the stale computation finishes in the background and is
ignored. A stale task's result is never delivered
(StaleRequestError), even if the computation finishes. There is no internal
timeout; the caller decides when to stop waiting.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Executor, Future, ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import replace
from typing import Optional

from analytics.aggregator import compute_kpis, monthly_stats
from analytics.attribution import attribute_drivers
from analytics.breach_radar import breach_radar
from analytics.early_warnings import early_warnings
from analytics.nowcast import now_cast
from analytics.paths import kill_chain, sample_paths
from analytics.risk_scores import risk_scores
from analytics.root_cause import root_cause
from analytics.sensitivity import sensitivity_analysis
from core.config import SimulationSettings
from core.errors import StaleRequestError
from core.logging_utils import configure_package_logging
from data_prep.grid_builder import prepare_inputs
from data_prep.validators import validate_inputs
from engine.runner import build_context, run_trials
from risk.params import RiskParams, derive_risk_params

from .messages import SimulationRequest, SimulationResponse

logger = logging.getLogger(__name__)

NEAR_TERM_MONTHS = 3


def simulate(
    request: SimulationRequest,
    settings: Optional[SimulationSettings] = None,
    *,
    risk_params: Optional[RiskParams] = None,
) -> SimulationResponse:
    """
    Run the full simulation for one request.

    Parameters
    ----------
    request : SimulationRequest
        Project, policy, risk and grid inputs. request.n_trials and request.seed
        override the same fields of `settings`.
    settings : SimulationSettings, optional
        Run-level knobs (attribution, thresholds, workers). Defaults apply if omitted.
    risk_params : RiskParams, optional
        Use these engine parameters instead of deriving them from request.risk.

    Raises
    ------
    ConfigValidationError
        Input invariants are violated; no trial has run.
    SimulationError
        Every trial failed.
    """
    t0 = time.perf_counter()
    settings = replace(settings or SimulationSettings(), n_trials=request.n_trials, seed=request.seed)
    project = request.project

    grids = dict(
        allocations=request.allocations,
        actual_allocations=request.actual_allocations,
        planned_outflows=request.planned_outflows,
        active_outflows=request.active_outflows,
        actual_outflows=request.actual_outflows,
    )
    validation = validate_inputs(
        project, request.risk, current_month_actuals=request.current_month_actuals, **grids
    )
    for w in validation.warnings:
        logger.warning("%s: %s", request.request_id, w)
    validation.raise_if_invalid()

    inputs = prepare_inputs(project, **grids)
    params = risk_params or derive_risk_params(request.risk, volatility_factor=request.volatility_factor)

    logger.info(
        "Simulating %s: %d trials, %d months (%d grounded), seed=%d",
        request.request_id, settings.n_trials, inputs.n_months, inputs.as_of_idx, settings.seed,
    )
    ctx = build_context(inputs, params, request.policy, project, seed=settings.seed)
    results = run_trials(ctx, settings.n_trials, n_workers=settings.n_workers)

    stats = monthly_stats(results, inputs, settings)
    drivers = []
    if settings.run_attribution:
        drivers = attribute_drivers(inputs, params, request.policy, project, settings)
    kpis = compute_kpis(results, inputs, stats, settings, drivers=drivers)
    sensitivity = []
    if settings.run_sensitivity and settings.n_trials >= settings.sensitivity_trials:
        sensitivity = sensitivity_analysis(inputs, params, request.policy, project, settings)

    actuals = request.current_month_actuals
    current_idx = actuals.current_month - 1 if actuals is not None else inputs.as_of_idx
    near_term = float(inputs.planned_allocation[current_idx:current_idx + NEAR_TERM_MONTHS].sum())

    response = SimulationResponse(
        request_id=request.request_id,
        monthly_stats=stats,
        kpis=kpis,
        now_cast=now_cast(results, inputs, actuals) if actuals is not None else None,
        breach_radar=breach_radar(results, inputs.months, current_idx),
        early_warnings=early_warnings(actuals, project.cap_total, near_term),
        sample_paths=sample_paths(results, inputs.months, settings.n_sample_paths),
        kill_chain=kill_chain(results),
        risk_scores=risk_scores(stats, request.risk.limits),
        root_cause=root_cause(stats, request.risk),
        sensitivity_analysis=sensitivity,
        validation_warnings=list(validation.warnings),
        elapsed_seconds=time.perf_counter() - t0,
    )
    logger.info(
        "Finished %s in %.2fs: P(shortfall any month)=%.3f, red months=%d",
        request.request_id, response.elapsed_seconds,
        kpis.prob_shortfall_any_month, kpis.red_months_count,
    )
    return response


class SimulationTask:
    """Handle for one submitted request."""

    def __init__(self, request_id: str, future: Future):
        self.request_id = request_id
        self.future = future
        self._stale = False

    @property
    def is_stale(self) -> bool:
        return self._stale

    def mark_stale(self) -> None:
        self._stale = True
        self.future.cancel()

    def done(self) -> bool:
        return self.future.done()

    def running(self) -> bool:
        return self.future.running()

    def cancel(self) -> bool:
        return self.future.cancel()

    def result(self, timeout: Optional[float] = None) -> SimulationResponse:
        """Block for the response; StaleRequestError if a newer request superseded this one."""
        if self._stale:
            raise StaleRequestError(f"Request {self.request_id} was superseded.")
        response = self.future.result(timeout=timeout)
        if self._stale:
            raise StaleRequestError(f"Request {self.request_id} was superseded.")
        return response


class SimulationWorker:
    """
    Runs simulations off the caller's thread, last request wins.

    Usage:
        with SimulationWorker() as worker:
            task = worker.submit(request)
            response = task.result()
    """

    def __init__(
        self,
        settings: Optional[SimulationSettings] = None,
        *,
        use_processes: bool = True,
        executor: Optional[Executor] = None,
    ):
        self.settings = settings or SimulationSettings()
        self.use_processes = use_processes
        self._own_executor = executor is None
        self._executor = executor if executor is not None else self._new_executor()
        self._lock = threading.Lock()
        self._latest: Optional[SimulationTask] = None
        configure_package_logging()
        self.logger = logger

    def _new_executor(self) -> Executor:
        if self.use_processes:
            return ProcessPoolExecutor(max_workers=1)
        return ThreadPoolExecutor(max_workers=1)

    def _abandon_executor(self) -> None:
        """Drop the executor busy with a stale request and start a fresh one."""
        # the pool forgets its processes on shutdown, so grab them first
        processes = list((getattr(self._executor, "_processes", None) or {}).values())
        self._executor.shutdown(wait=False, cancel_futures=True)
        for process in processes:
            if process.is_alive():
                process.terminate()
        self._executor = self._new_executor()

    def submit(self, request: SimulationRequest) -> SimulationTask:
        with self._lock:
            previous = self._latest
            if previous is not None:
                if not previous.done():
                    self.logger.info("Request %s superseded by %s; result will be discarded",
                                     previous.request_id, request.request_id)
                previous.mark_stale()
                # a running computation would hold the single slot; do not queue behind it
                if previous.running() and self._own_executor:
                    self._abandon_executor()
            task = SimulationTask(request.request_id, self._executor.submit(simulate, request, self.settings))
            self._latest = task
        return task

    @property
    def latest(self) -> Optional[SimulationTask]:
        return self._latest

    def shutdown(self, wait: bool = True) -> None:
        if self._own_executor:
            self._executor.shutdown(wait=wait, cancel_futures=True)

    def __enter__(self) -> "SimulationWorker":
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()
