"""HTTP surface - a FastAPI router over a :class:`Simulator`.

Requires the ``api`` extra::

    pip install mock-iot-generator[api]

Mount it in an existing application::

    app.include_router(create_router(simulator))

or serve the standalone app returned by :func:`create_app`.  Query
parameters are bounds-checked by FastAPI before any task is created; an
out-of-range value is answered with ``422``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from pydantic import BaseModel

from mock_iot.errors import ConfigurationError
from mock_iot.models import (
    MAX_DAYS,
    MAX_INTERVAL_MINUTES,
    MIN_DAYS,
    MIN_INTERVAL_MINUTES,
    GenerationResult,
    PredictionResult,
    ReplayControlResult,
    ReplayStatus,
    ScenarioResult,
    TaskSnapshot,
)
from mock_iot.replay import MAX_PUBLISH_COUNT
from mock_iot.scenarios import MAX_DURATION_MINUTES, MAX_VEHICLES
from mock_iot.simulator import SCENARIOS, Simulator

__all__ = ["TaskAccepted", "create_app", "create_router"]

logger = logging.getLogger("mock_iot.api")

MAX_REPLAY_INTERVAL_S = 3600
MAX_REPLAY_BATCH = 1000

try:
    from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, status

    FASTAPI_AVAILABLE = True
except ImportError:
    FASTAPI_AVAILABLE = False


class TaskAccepted(BaseModel):
    """Response of every ``.../async`` endpoint."""

    success: bool = True
    message: str
    task_id: str


def _require_fastapi() -> None:
    if not FASTAPI_AVAILABLE:
        raise ImportError("fastapi is required for the HTTP API.  Install with: pip install mock-iot-generator[api]")


def create_router(simulator: Simulator, *, prefix: str = "/mock-iot") -> APIRouter:
    """Build the router; every endpoint operates on *simulator*."""
    _require_fastapi()
    router = APIRouter(prefix=prefix, tags=["Mock IoT"])

    def get_simulator() -> Simulator:
        return simulator

    def _check_scenario(name: str) -> None:
        if name not in SCENARIOS:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Unknown scenario '{name}'",
            )

    def _scenario_params(
        name: str,
        duration: int | None,
        interval: int | None,
        count: int | None,
    ) -> dict[str, Any]:
        given = {"duration": duration, "interval": interval, "count": count}
        return {k: v for k, v in given.items() if k in SCENARIOS[name] and v is not None}

    # =========================================
    # Scenarios
    # =========================================

    @router.get("/scenarios", summary="List available scenarios")
    async def list_scenarios() -> dict[str, list[str]]:
        return {name: list(params) for name, params in SCENARIOS.items()}

    @router.post("/scenarios/{name}", response_model=ScenarioResult, summary="Run a scenario and wait for it")
    async def run_scenario(
        name: str,
        duration: int | None = Query(None, ge=1, le=MAX_DURATION_MINUTES, description="Loading: minutes simulated"),
        interval: int | None = Query(None, ge=1, le=MAX_INTERVAL_MINUTES, description="Loading: minutes per step"),
        count: int | None = Query(None, ge=1, le=MAX_VEHICLES, description="Vehicle entry: number of trucks"),
        sim: Simulator = Depends(get_simulator),
    ) -> ScenarioResult:
        _check_scenario(name)
        try:
            return await sim.run_scenario(name, **_scenario_params(name, duration, interval, count))
        except ConfigurationError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc

    @router.post(
        "/scenarios/{name}/async",
        response_model=TaskAccepted,
        status_code=status.HTTP_202_ACCEPTED,
        summary="Start a scenario in the background",
    )
    async def start_scenario(
        name: str,
        duration: int | None = Query(None, ge=1, le=MAX_DURATION_MINUTES),
        interval: int | None = Query(None, ge=1, le=MAX_INTERVAL_MINUTES),
        count: int | None = Query(None, ge=1, le=MAX_VEHICLES),
        sim: Simulator = Depends(get_simulator),
    ) -> TaskAccepted:
        _check_scenario(name)
        try:
            task_id = sim.start_scenario_async(name, **_scenario_params(name, duration, interval, count))
        except ConfigurationError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return TaskAccepted(message=f"Started {name} scenario", task_id=task_id)

    # =========================================
    # Time series
    # =========================================

    @router.post("/time-series", response_model=GenerationResult, summary="Generate a carbon time series")
    async def generate_time_series(
        days: int = Query(30, ge=MIN_DAYS, le=MAX_DAYS),
        interval: int = Query(60, ge=MIN_INTERVAL_MINUTES, le=MAX_INTERVAL_MINUTES),
        trend: float = Query(0.1, ge=-0.5, le=0.5),
        seasonality: float = Query(0.5, ge=0.0, le=1.0),
        noise: float = Query(0.2, ge=0.0, le=1.0),
        outliers: float = Query(0.02, ge=0.0, le=0.1),
        device_ids: list[str] | None = Query(None),
        sim: Simulator = Depends(get_simulator),
    ) -> GenerationResult:
        return await sim.generate_carbon_time_series(
            days,
            interval,
            trend=trend,
            seasonality=seasonality,
            noise=noise,
            outliers=outliers,
            device_ids=device_ids or (),
        )

    @router.post(
        "/time-series/async",
        response_model=TaskAccepted,
        status_code=status.HTTP_202_ACCEPTED,
        summary="Start a carbon time series in the background",
    )
    async def start_time_series(
        days: int = Query(30, ge=MIN_DAYS, le=MAX_DAYS),
        interval: int = Query(60, ge=MIN_INTERVAL_MINUTES, le=MAX_INTERVAL_MINUTES),
        trend: float = Query(0.1, ge=-0.5, le=0.5),
        seasonality: float = Query(0.5, ge=0.0, le=1.0),
        noise: float = Query(0.2, ge=0.0, le=1.0),
        outliers: float = Query(0.02, ge=0.0, le=0.1),
        device_ids: list[str] | None = Query(None),
        sim: Simulator = Depends(get_simulator),
    ) -> TaskAccepted:
        task_id = sim.start_carbon_time_series_async(
            days,
            interval,
            trend=trend,
            seasonality=seasonality,
            noise=noise,
            outliers=outliers,
            device_ids=device_ids or (),
        )
        return TaskAccepted(
            message=f"Started carbon time series: {days} days at {interval}-minute intervals, trend={trend}",
            task_id=task_id,
        )

    @router.post("/prediction-dataset", response_model=PredictionResult, summary="Generate a prediction dataset")
    async def generate_prediction_dataset(
        days: int = Query(90, ge=MIN_DAYS, le=MAX_DAYS),
        interval: int = Query(60, ge=MIN_INTERVAL_MINUTES, le=MAX_INTERVAL_MINUTES),
        sim: Simulator = Depends(get_simulator),
    ) -> PredictionResult:
        return await sim.generate_prediction_dataset(days, interval)

    @router.post(
        "/prediction-dataset/async",
        response_model=TaskAccepted,
        status_code=status.HTTP_202_ACCEPTED,
        summary="Start a prediction dataset in the background",
    )
    async def start_prediction_dataset(
        days: int = Query(90, ge=MIN_DAYS, le=MAX_DAYS),
        interval: int = Query(60, ge=MIN_INTERVAL_MINUTES, le=MAX_INTERVAL_MINUTES),
        sim: Simulator = Depends(get_simulator),
    ) -> TaskAccepted:
        task_id = sim.start_prediction_dataset_async(days, interval)
        return TaskAccepted(message=f"Started prediction dataset: {days} days", task_id=task_id)

    # =========================================
    # CSV replay
    # =========================================

    def _replay_error(exc: Exception) -> HTTPException:
        if isinstance(exc, FileNotFoundError):
            return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    @router.get("/replay/status", response_model=ReplayStatus, summary="Replay state and loaded rows")
    async def replay_status(sim: Simulator = Depends(get_simulator)) -> ReplayStatus:
        return sim.replay_status()

    @router.post("/replay/reload", response_model=ReplayStatus, summary="Re-read the replay CSV")
    async def reload_replay(sim: Simulator = Depends(get_simulator)) -> ReplayStatus:
        try:
            sim.load_replay_data()
        except (ConfigurationError, FileNotFoundError) as exc:
            raise _replay_error(exc) from exc
        return sim.replay_status()

    @router.post("/replay/start", response_model=ReplayControlResult, summary="Start the continuous replay")
    async def start_replay(
        interval_s: float | None = Query(None, gt=0, le=MAX_REPLAY_INTERVAL_S, description="Seconds between batches"),
        devices_per_interval: int | None = Query(None, ge=1, le=MAX_REPLAY_BATCH, description="Rows per batch"),
        randomize: bool | None = Query(None, description="Pick rows at random instead of in file order"),
        sim: Simulator = Depends(get_simulator),
    ) -> ReplayControlResult:
        try:
            return sim.start_replay(
                interval_s=interval_s,
                devices_per_interval=devices_per_interval,
                randomize=randomize,
            )
        except (ConfigurationError, FileNotFoundError) as exc:
            raise _replay_error(exc) from exc

    @router.post("/replay/stop", response_model=ReplayControlResult, summary="Stop the continuous replay")
    async def stop_replay(sim: Simulator = Depends(get_simulator)) -> ReplayControlResult:
        return await sim.stop_replay()

    @router.post(
        "/replay/publish",
        response_model=TaskAccepted,
        status_code=status.HTTP_202_ACCEPTED,
        summary="Publish a one-off paced batch of replay rows",
    )
    async def publish_replay(
        count: int = Query(10, ge=1, le=MAX_PUBLISH_COUNT),
        interval_s: float = Query(1.0, ge=0, le=MAX_REPLAY_INTERVAL_S),
        sim: Simulator = Depends(get_simulator),
    ) -> TaskAccepted:
        task_id = sim.start_publish_replay_async(count, interval_s)
        return TaskAccepted(message=f"Publishing up to {count} replay rows", task_id=task_id)

    # =========================================
    # Tasks
    # =========================================

    @router.get("/tasks", response_model=list[TaskSnapshot], summary="List all tasks")
    async def list_tasks(sim: Simulator = Depends(get_simulator)) -> list[TaskSnapshot]:
        return sim.list_tasks()

    @router.get("/tasks/{task_id}", response_model=TaskSnapshot, summary="Get one task's status")
    async def get_task(task_id: str, sim: Simulator = Depends(get_simulator)) -> TaskSnapshot:
        snapshot = sim.get_status(task_id)
        if snapshot is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Task {task_id} not found")
        return snapshot

    return router


def create_app(simulator: Simulator | None = None) -> FastAPI:
    """Standalone application serving :func:`create_router` at ``/mock-iot``."""
    _require_fastapi()
    sim = simulator if simulator is not None else Simulator()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Mock IoT API starting")
        yield
        await sim.close()
        logger.info("Mock IoT API stopped")

    app = FastAPI(title="Mock IoT Generator", lifespan=lifespan)
    app.include_router(create_router(sim))
    app.state.simulator = sim
    return app
