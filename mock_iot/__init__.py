"""Mock IoT generator - synthetic time-series and scenario telemetry with
background task tracking.

Quick start::

    from mock_iot import InMemoryDeviceCatalog, Simulator
    from mock_iot.sinks import ConsoleSink

    sim = Simulator(catalog=InMemoryDeviceCatalog.demo(), sink=ConsoleSink(), time_scale=0)
    result = sim.run(sim.generate_carbon_time_series(days=1, interval=60))
    print(result.count)
"""

from __future__ import annotations

from mock_iot.catalog import DeviceCatalog, DeviceCatalogAdapter, InMemoryDeviceCatalog
from mock_iot.errors import ConfigurationError, InvalidTransitionError, MissingDevicesError, ReplayDataError
from mock_iot.models import (
    DeviceHandle,
    DeviceType,
    GenerationConfig,
    GenerationResult,
    PredictionResult,
    ReplayConfig,
    ReplayStatus,
    ScenarioResult,
    TaskSnapshot,
    TaskStatus,
    TelemetryRecord,
)
from mock_iot.replay import ReplayEngine
from mock_iot.simulator import Simulator
from mock_iot.tasks import TaskRegistry, TaskRunner

__all__ = [
    "ConfigurationError",
    "DeviceCatalog",
    "DeviceCatalogAdapter",
    "DeviceHandle",
    "DeviceType",
    "GenerationConfig",
    "GenerationResult",
    "InMemoryDeviceCatalog",
    "InvalidTransitionError",
    "MissingDevicesError",
    "PredictionResult",
    "ReplayConfig",
    "ReplayDataError",
    "ReplayEngine",
    "ReplayStatus",
    "ScenarioResult",
    "Simulator",
    "TaskRegistry",
    "TaskRunner",
    "TaskSnapshot",
    "TaskStatus",
    "TelemetryRecord",
]

__version__ = "0.1.0"
