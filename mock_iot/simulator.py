"""Simulator - top-level facade that wires the device catalog, the telemetry
sink, the task registry, the generation engines and the CSV replay together.
"""

from __future__ import annotations

import asyncio
import logging
import random
import threading
from collections.abc import Awaitable, Callable, Coroutine, Sequence
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

from mock_iot.catalog import DeviceCatalog, DeviceCatalogAdapter, InMemoryDeviceCatalog
from mock_iot.config import ServiceYAMLConfig
from mock_iot.errors import ConfigurationError
from mock_iot.models import (
    GenerationConfig,
    GenerationResult,
    PredictionResult,
    ReplayConfig,
    ReplayControlResult,
    ReplayPublishResult,
    ReplayStatus,
    ScenarioResult,
    TaskSnapshot,
    TelemetryRecord,
)
from mock_iot.replay import ReplayEngine
from mock_iot.scenarios import ScenarioEngine
from mock_iot.sinks.base import TelemetrySink, TelemetrySinkAdapter
from mock_iot.sinks.callback import CallbackSink
from mock_iot.sinks.factory import create_sink
from mock_iot.sinks.fanout import FanOutSink
from mock_iot.sinks.memory import MemorySink
from mock_iot.tasks import TaskRegistry, TaskRunner
from mock_iot.time_patterns import TimePatternEngine
from mock_iot.timeseries import TimeSeriesEngine

__all__ = ["SCENARIOS", "Simulator"]

logger = logging.getLogger("mock_iot")

T = TypeVar("T")

# Scenario name -> parameters it accepts.
SCENARIOS: dict[str, tuple[str, ...]] = {
    "loading": ("duration", "interval"),
    "vehicle_entry": ("count",),
    "carbon_peak": (),
    "carbon_reduction": (),
    "workday_peak": (),
    "night": (),
}


class Simulator:
    """High-level API for generating synthetic telemetry.

    Example::

        from mock_iot import Simulator
        from mock_iot.sinks import ConsoleSink

        sim = Simulator(sink=ConsoleSink(), time_scale=0)
        sim.catalog.add_device("carbon_sensor")
        result = sim.run(sim.generate_carbon_time_series(days=1, interval=60))

    Parameters:
        catalog:
            Device registry to draw devices from.  Defaults to an empty
            :class:`InMemoryDeviceCatalog`.
        sink:
            A :class:`TelemetrySink` **or** any callable accepting
            ``list[TelemetryRecord]``.  Defaults to a :class:`MemorySink`.
        registry:
            Task registry; pass one to configure retention.
        time_scale:
            Multiplier applied to scenario pacing.  ``1.0`` is real time,
            ``0`` disables pacing entirely.
        seed:
            Seed for the shared random source.
        replay_csv:
            CSV file replayed by :meth:`start_replay` and
            :meth:`publish_replay`.  Read on first use.
        replay_config:
            Initial continuous-replay settings.  Replay intervals are
            wall-clock seconds and are not affected by *time_scale*.
    """

    def __init__(
        self,
        *,
        catalog: DeviceCatalog | None = None,
        sink: TelemetrySink | Callable[[list[TelemetryRecord]], Any] | None = None,
        registry: TaskRegistry | None = None,
        time_scale: float = 1.0,
        seed: int | None = None,
        replay_csv: str | Path | None = None,
        replay_config: ReplayConfig | None = None,
    ) -> None:
        if time_scale < 0:
            raise ConfigurationError(f"time_scale must be >= 0, got {time_scale}")
        if sink is None:
            sink = MemorySink()
        elif not isinstance(sink, TelemetrySink):
            sink = CallbackSink(sink)

        self.catalog = catalog if catalog is not None else InMemoryDeviceCatalog()
        self.sink = sink
        self.time_scale = time_scale
        self.rng = random.Random(seed)
        self.sink_adapter = TelemetrySinkAdapter(sink)
        self.registry = registry if registry is not None else TaskRegistry()
        self.runner = TaskRunner(self.registry)

        devices = DeviceCatalogAdapter(self.catalog)
        self.timeseries = TimeSeriesEngine(devices, self.sink_adapter, self.runner, rng=self.rng)
        self.scenarios = ScenarioEngine(devices, self.sink_adapter, self.runner, rng=self.rng, sleep=self._pace)
        self.time_patterns = TimePatternEngine(devices, self.sink_adapter, self.runner, rng=self.rng)
        self.replay = ReplayEngine(
            devices,
            self.sink_adapter,
            self.runner,
            csv_path=replay_csv,
            config=replay_config,
            rng=self.rng,
        )

    @classmethod
    def from_config(cls, config: ServiceYAMLConfig) -> Simulator:
        """Build a simulator from a parsed YAML config."""
        sinks = [create_sink(c) for c in config.sink_configs]
        if not sinks:
            sink: TelemetrySink | None = None
        elif len(sinks) == 1:
            sink = sinks[0]
        else:
            sink = FanOutSink(sinks)

        return cls(
            catalog=config.build_catalog(),
            sink=sink,
            registry=TaskRegistry(max_tasks=config.tasks.max_tasks, ttl_s=config.tasks.ttl_s),
            time_scale=config.service.time_scale,
            seed=config.service.seed,
            replay_csv=config.replay.csv_path,
            replay_config=config.replay.replay_config(),
        )

    async def _pace(self, seconds: float) -> None:
        # Always yield, even with pacing disabled.
        await asyncio.sleep(seconds * self.time_scale)

    # ------------------------------------------------------------------
    # Time series
    # ------------------------------------------------------------------

    @staticmethod
    def _series_config(
        days: int,
        interval: int,
        trend: float | None,
        seasonality: float | None,
        noise: float | None,
        outliers: float | None,
        device_ids: Sequence[str],
        end: datetime | None,
    ) -> GenerationConfig:
        return GenerationConfig.from_window(
            days,
            interval,
            trend=trend,
            seasonality=seasonality,
            noise=noise,
            outlier_rate=outliers,
            device_ids=tuple(device_ids),
            end=end,
        )

    async def generate_carbon_time_series(
        self,
        days: int = 30,
        interval: int = 60,
        *,
        trend: float | None = None,
        seasonality: float | None = None,
        noise: float | None = None,
        outliers: float | None = None,
        device_ids: Sequence[str] = (),
        end: datetime | None = None,
    ) -> GenerationResult:
        config = self._series_config(days, interval, trend, seasonality, noise, outliers, device_ids, end)
        return await self.timeseries.generate_carbon_time_series(config)

    def start_carbon_time_series_async(
        self,
        days: int = 30,
        interval: int = 60,
        *,
        trend: float | None = None,
        seasonality: float | None = None,
        noise: float | None = None,
        outliers: float | None = None,
        device_ids: Sequence[str] = (),
        end: datetime | None = None,
    ) -> str:
        config = self._series_config(days, interval, trend, seasonality, noise, outliers, device_ids, end)
        return self.timeseries.start_carbon_time_series_async(config)

    async def generate_prediction_dataset(
        self, days: int = 90, interval: int = 60, *, end: datetime | None = None
    ) -> PredictionResult:
        return await self.timeseries.generate_prediction_dataset(days, interval, end=end)

    def start_prediction_dataset_async(self, days: int = 90, interval: int = 60, *, end: datetime | None = None) -> str:
        return self.timeseries.start_prediction_dataset_async(days, interval, end=end)

    # ------------------------------------------------------------------
    # Scenarios
    # ------------------------------------------------------------------

    def _scenario(self, name: str) -> tuple[Callable[..., Awaitable[ScenarioResult]], Callable[..., str]]:
        table = {
            "loading": (self.scenarios.generate_loading, self.scenarios.start_loading_async),
            "vehicle_entry": (self.scenarios.generate_vehicle_entry, self.scenarios.start_vehicle_entry_async),
            "carbon_peak": (self.scenarios.generate_carbon_peak, self.scenarios.start_carbon_peak_async),
            "carbon_reduction": (
                self.scenarios.generate_carbon_reduction,
                self.scenarios.start_carbon_reduction_async,
            ),
            "workday_peak": (self.time_patterns.generate_workday_peak, self.time_patterns.start_workday_peak_async),
            "night": (self.time_patterns.generate_night_pattern, self.time_patterns.start_night_pattern_async),
        }
        if name not in table:
            raise ConfigurationError(f"Unknown scenario '{name}'.  Available: {sorted(SCENARIOS)}")
        return table[name]

    @staticmethod
    def _scenario_params(name: str, params: dict[str, Any]) -> dict[str, Any]:
        unknown = set(params) - set(SCENARIOS[name])
        if unknown:
            raise ConfigurationError(f"Scenario '{name}' does not accept {', '.join(sorted(unknown))}")
        return {k: v for k, v in params.items() if v is not None}

    async def run_scenario(self, name: str, **params: Any) -> ScenarioResult:
        """Run scenario *name* to completion and return its result."""
        sync_fn, _ = self._scenario(name)
        return await sync_fn(**self._scenario_params(name, params))

    def start_scenario_async(self, name: str, **params: Any) -> str:
        """Submit scenario *name* as a background task and return the task id."""
        _, async_fn = self._scenario(name)
        return async_fn(**self._scenario_params(name, params))

    # ------------------------------------------------------------------
    # CSV replay
    # ------------------------------------------------------------------

    def load_replay_data(self, path: str | Path | None = None) -> int:
        """(Re)load the replay CSV; return the number of rows."""
        return self.replay.load(path)

    def start_replay(
        self,
        *,
        interval_s: float | None = None,
        devices_per_interval: int | None = None,
        randomize: bool | None = None,
    ) -> ReplayControlResult:
        return self.replay.start(
            interval_s=interval_s,
            devices_per_interval=devices_per_interval,
            randomize=randomize,
        )

    async def stop_replay(self) -> ReplayControlResult:
        return await self.replay.stop()

    def replay_status(self) -> ReplayStatus:
        return self.replay.status()

    async def publish_replay(self, count: int = 10, interval_s: float = 1.0) -> ReplayPublishResult:
        return await self.replay.publish(count, interval_s)

    def start_publish_replay_async(self, count: int = 10, interval_s: float = 1.0) -> str:
        return self.replay.start_publish_async(count, interval_s)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def get_status(self, task_id: str) -> TaskSnapshot | None:
        return self.registry.get_status(task_id)

    def list_tasks(self) -> list[TaskSnapshot]:
        return self.registry.list_all()

    async def wait(self, task_id: str, timeout: float | None = None) -> TaskSnapshot | None:
        return await self.runner.wait(task_id, timeout)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Stop the replay, wait for background tasks, then flush and close the sink."""
        await self.replay.stop()
        await self.runner.wait_all()
        await self.sink_adapter.close()

    async def __aenter__(self) -> Simulator:
        await self.sink_adapter.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def run(self, coro: Coroutine[Any, Any, T]) -> T:
        """Blocking entry point - run *coro* on a fresh event loop.

        Background tasks started by *coro* are awaited and the sink is
        closed before returning.  Works inside environments that already
        have a running event loop (Jupyter, IPython) by spawning a
        dedicated thread with its own loop.
        """

        async def _main() -> T:
            try:
                return await coro
            finally:
                await self.close()

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            return asyncio.run(_main())

        # Inside an existing event loop: give asyncio.run() its own thread.
        outcome: dict[str, Any] = {}

        def _target() -> None:
            try:
                outcome["value"] = asyncio.run(_main())
            except BaseException as e:
                outcome["error"] = e

        t = threading.Thread(target=_target, daemon=True)
        t.start()
        t.join()
        if "error" in outcome:
            raise outcome["error"]
        return outcome["value"]
