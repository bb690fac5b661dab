"""Multi-device narrative scenarios.

Each scenario emits a coherent sequence of telemetry across several device
roles:

* **loading** - loaders, conveyors and forklifts cycle through
  ``idle -> startup -> running -> high_load -> running -> slowing -> idle``
  one step per interval, paced in (scaled) real time.
* **vehicle entry** - gate detection, plate recognition, weighing and the
  gate's open/close power draw for each arriving truck.
* **carbon peak** / **carbon reduction** - one elevated (or reduced) reading
  per device across the carbon-relevant roles.

Every scenario has a blocking coroutine and a ``start_*_async`` variant
that runs through the :class:`~mock_iot.tasks.TaskRunner`.
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
from collections.abc import Awaitable, Callable
from typing import NamedTuple

from mock_iot.catalog import DeviceCatalogAdapter
from mock_iot.errors import ConfigurationError, MissingDevicesError
from mock_iot.models import (
    DeviceHandle,
    DeviceType,
    MetadataValue,
    ScenarioResult,
    ScenarioSample,
    VehicleEntry,
    utcnow,
)
from mock_iot.sinks.base import TelemetrySinkAdapter
from mock_iot.tasks import ProgressReporter, TaskRunner

__all__ = [
    "LOADING_CYCLE",
    "LOADING_DEVICE_TYPES",
    "ReadingRole",
    "ScenarioEngine",
]

logger = logging.getLogger("mock_iot.scenarios")

Sleep = Callable[[float], Awaitable[None]]

LOADING_DEVICE_TYPES: tuple[str, ...] = (DeviceType.LOADER, DeviceType.CONVEYOR, DeviceType.FORKLIFT)

LOADING_CYCLE: tuple[str, ...] = ("idle", "startup", "running", "high_load", "running", "slowing", "idle")

# status -> ((power low, power high), (load low, load high))
_LOADING_RANGES: dict[str, tuple[tuple[float, float], tuple[float, float]]] = {
    "idle": ((5, 15), (0, 5)),
    "startup": ((30, 50), (10, 20)),
    "running": ((60, 80), (40, 60)),
    "high_load": ((85, 95), (70, 90)),
    "slowing": ((40, 60), (30, 50)),
}

MAX_DURATION_MINUTES = 1440
MAX_INTERVAL_MINUTES = 1440
MAX_VEHICLES = 100
SAMPLE_PREVIEW_SIZE = 10

# Vehicle-entry pauses, in seconds.
_DETECTION_PAUSE = 1.0
_PLATE_PAUSE = 0.5
_GATE_OPEN_PAUSE = 3.0


class ReadingRole(NamedTuple):
    """One device role of a single-reading scenario."""

    device_types: tuple[str, ...]
    data_type: str
    low: float
    high: float
    tags: dict[str, MetadataValue]


CARBON_PEAK_ROLES: tuple[ReadingRole, ...] = (
    ReadingRole((DeviceType.CARBON_SENSOR,), "carbon_emission", 80, 130, {"status": "alert"}),
    ReadingRole((DeviceType.ENERGY_METER,), "power_consumption", 75, 130, {"load": "high"}),
    ReadingRole((DeviceType.AIR_QUALITY_MONITOR,), "air_quality_index", 180, 300, {"quality": "poor"}),
    ReadingRole((DeviceType.HVAC,), "load_percentage", 85, 100, {}),
    ReadingRole((DeviceType.TRUCK, DeviceType.FORKLIFT), "usage_rate", 70, 100, {"status": "heavy_use"}),
)

CARBON_REDUCTION_ROLES: tuple[ReadingRole, ...] = (
    ReadingRole((DeviceType.CARBON_SENSOR,), "carbon_emission", 20, 50, {"status": "optimal"}),
    ReadingRole((DeviceType.ENERGY_METER,), "power_consumption", 15, 40, {"load": "optimized"}),
    ReadingRole((DeviceType.SOLAR_PANEL,), "power_generation", 70, 100, {"efficiency": "high"}),
    ReadingRole((DeviceType.SMART_GRID,), "optimization_rate", 85, 100, {"mode": "eco"}),
    ReadingRole((DeviceType.HVAC,), "eco_mode_level", 30, 50, {"mode": "energy_saving"}),
    ReadingRole((DeviceType.LIGHTING,), "brightness_level", 40, 70, {"mode": "smart_lighting"}),
)


def _no_progress(progress: int, message: str) -> None:
    pass


def _check_range(name: str, value: int, low: int, high: int) -> None:
    if not low <= value <= high:
        raise ConfigurationError(f"{name} must be between {low} and {high}, got {value}")


class ScenarioEngine:
    """Runs the loading, vehicle-entry and carbon scenarios.

    Parameters:
        catalog: Resolves device roles.
        sink: Destination for every emitted reading.
        runner: Executes the ``start_*_async`` variants.
        rng: Random source.
        sleep: Coroutine used for real-time pacing (seconds).
    """

    def __init__(
        self,
        catalog: DeviceCatalogAdapter,
        sink: TelemetrySinkAdapter,
        runner: TaskRunner,
        *,
        rng: random.Random | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.catalog = catalog
        self.sink = sink
        self.runner = runner
        self.rng = rng or random.Random()
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Loading dock
    # ------------------------------------------------------------------

    async def generate_loading(self, duration: int = 60, interval: int = 5) -> ScenarioResult:
        """Simulate *duration* minutes of loading-dock work, one step per *interval* minutes."""
        _check_range("duration", duration, 1, MAX_DURATION_MINUTES)
        _check_range("interval", interval, 1, MAX_INTERVAL_MINUTES)
        return await self._guard(self._run_loading(duration, interval, _no_progress))

    def start_loading_async(self, duration: int = 60, interval: int = 5) -> str:
        _check_range("duration", duration, 1, MAX_DURATION_MINUTES)
        _check_range("interval", interval, 1, MAX_INTERVAL_MINUTES)
        return self.runner.submit("loading_scenario", lambda report: self._run_loading(duration, interval, report))

    async def _run_loading(self, duration: int, interval: int, report: ProgressReporter) -> ScenarioResult:
        equipment = await self.catalog.resolve(LOADING_DEVICE_TYPES)
        if not equipment:
            logger.warning("No loading-area devices found - cannot run the loading scenario")
            raise MissingDevicesError(
                "Missing devices: no loaders, conveyors or forklifts found",
                device_types=list(LOADING_DEVICE_TYPES),
            )

        iterations = math.ceil(duration / interval)
        # Random starting points keep the devices out of step with each other.
        position = {device.id: self.rng.randrange(len(LOADING_CYCLE)) for device in equipment}
        samples = 0
        logger.info(
            "Loading scenario: %d devices, %d steps of %d minutes",
            len(equipment),
            iterations,
            interval,
        )

        for i in range(iterations):
            progress = int(i / iterations * 100)
            report(progress, f"Step {i + 1}/{iterations}")

            for device in equipment:
                position[device.id] = (position[device.id] + 1) % len(LOADING_CYCLE)
                status = LOADING_CYCLE[position[device.id]]
                (power_lo, power_hi), (load_lo, load_hi) = _LOADING_RANGES[status]
                tags: dict[str, MetadataValue] = {"scenario": "loading", "status": status}

                await self.sink.record(device.id, "power_consumption", self.rng.uniform(power_lo, power_hi), tags)
                await self.sink.record(device.id, "load", self.rng.uniform(load_lo, load_hi), tags)
                samples += 2

                if device.type == DeviceType.FORKLIFT:
                    speed = 0.0 if status == "idle" else self.rng.uniform(2, 10)
                    battery = 50 - i * 50 / iterations
                    await self.sink.record(device.id, "speed", speed, tags)
                    await self.sink.record(device.id, "battery_level", battery, tags)
                    samples += 2

            if i < iterations - 1:
                await self._sleep(interval * 60)

        return ScenarioResult(
            success=True,
            message=f"Simulated {duration} minutes of loading-area work at {interval}-minute intervals",
            devices=len(equipment),
            samples_count=samples,
        )

    # ------------------------------------------------------------------
    # Vehicle entry
    # ------------------------------------------------------------------

    async def generate_vehicle_entry(self, count: int = 1) -> ScenarioResult:
        """Simulate *count* trucks passing the entrance gate."""
        _check_range("count", count, 1, MAX_VEHICLES)
        return await self._guard(self._run_vehicle_entry(count, _no_progress))

    def start_vehicle_entry_async(self, count: int = 1) -> str:
        _check_range("count", count, 1, MAX_VEHICLES)
        return self.runner.submit("vehicle_entry", lambda report: self._run_vehicle_entry(count, report))

    async def _run_vehicle_entry(self, count: int, report: ProgressReporter) -> ScenarioResult:
        roles = await self.catalog.resolve_by_type([DeviceType.GATE, DeviceType.WEIGHT_SCALE, DeviceType.CAMERA])
        gates = roles[DeviceType.GATE]
        scales = roles[DeviceType.WEIGHT_SCALE]
        cameras = roles[DeviceType.CAMERA]
        if not gates or not scales:
            logger.warning("Vehicle entry needs at least one gate and one weight scale")
            raise MissingDevicesError(
                "Missing devices: vehicle entry needs a gate and a weight scale",
                device_types=[DeviceType.GATE.value, DeviceType.WEIGHT_SCALE.value],
            )

        vehicles: list[VehicleEntry] = []
        samples = 0
        for i in range(count):
            report(int(i / count * 100), f"Vehicle {i + 1}/{count}")
            entry_time = utcnow()
            vehicle_id = f"TRUCK-{self.rng.randrange(10000)}"
            weight = self.rng.uniform(5000, 25000)
            gate = self.rng.choice(gates)

            await self.sink.record(gate.id, "vehicle_detection", 1, {"vehicle_id": vehicle_id, "action": "entry"})
            samples += 1
            await self._sleep(_DETECTION_PAUSE)

            if cameras:
                camera = self.rng.choice(cameras)
                plate = f"PLT-{self.rng.randrange(100000):05d}"
                await self.sink.record(
                    camera.id,
                    "license_plate_recognition",
                    1,
                    {"vehicle_id": vehicle_id, "plate_number": plate},
                )
                samples += 1
                await self._sleep(_PLATE_PAUSE)

            scale = self.rng.choice(scales)
            await self.sink.record(scale.id, "weight_measurement", weight, {"vehicle_id": vehicle_id})
            await self.sink.record(
                gate.id,
                "power_consumption",
                2.5 + self.rng.uniform(0, 1.5),
                {"vehicle_id": vehicle_id, "action": "gate_open"},
            )
            samples += 2
            await self._sleep(_GATE_OPEN_PAUSE)

            await self.sink.record(
                gate.id,
                "power_consumption",
                0.8 + self.rng.uniform(0, 0.4),
                {"vehicle_id": vehicle_id, "action": "gate_close"},
            )
            samples += 1

            vehicles.append(VehicleEntry(vehicle_id=vehicle_id, entry_time=entry_time, gate_id=gate.id, weight=weight))
            logger.debug("Vehicle %s entered through %s (%.0f kg)", vehicle_id, gate.device_id or gate.id, weight)

        return ScenarioResult(
            success=True,
            message=f"Generated vehicle entry data for {count} vehicles",
            devices=len(gates) + len(scales) + len(cameras),
            samples_count=samples,
            vehicles=vehicles,
        )

    # ------------------------------------------------------------------
    # Carbon peak / reduction
    # ------------------------------------------------------------------

    async def generate_carbon_peak(self) -> ScenarioResult:
        return await self._guard(self._run_readings("carbon_peak", CARBON_PEAK_ROLES, _no_progress))

    def start_carbon_peak_async(self) -> str:
        return self.runner.submit(
            "carbon_peak", lambda report: self._run_readings("carbon_peak", CARBON_PEAK_ROLES, report)
        )

    async def generate_carbon_reduction(self) -> ScenarioResult:
        return await self._guard(self._run_readings("carbon_reduction", CARBON_REDUCTION_ROLES, _no_progress))

    def start_carbon_reduction_async(self) -> str:
        return self.runner.submit(
            "carbon_reduction",
            lambda report: self._run_readings("carbon_reduction", CARBON_REDUCTION_ROLES, report),
        )

    async def _run_readings(
        self,
        scenario: str,
        roles: tuple[ReadingRole, ...],
        report: ProgressReporter,
    ) -> ScenarioResult:
        """Emit one reading per device for every role in *roles*."""
        resolved: list[tuple[ReadingRole, list[DeviceHandle]]] = [
            (role, await self.catalog.resolve(role.device_types)) for role in roles
        ]
        total = sum(len(devices) for _, devices in resolved)
        if total == 0:
            wanted = sorted({str(t) for role in roles for t in role.device_types})
            logger.warning("No devices found for the %s scenario", scenario)
            raise MissingDevicesError(f"Missing devices: none of {', '.join(wanted)} found", device_types=wanted)

        logger.info("Generating %s readings for %d devices", scenario, total)
        samples: list[ScenarioSample] = []
        for role, devices in resolved:
            for device in devices:
                value = self.rng.uniform(role.low, role.high)
                await self.sink.record(device.id, role.data_type, value, {"scenario": scenario, **role.tags})
                samples.append(
                    ScenarioSample(device_id=device.device_id or device.id, data_type=role.data_type, value=value)
                )
            report(len(samples) * 100 // total, f"{len(samples)}/{total} readings")

        label = scenario.replace("_", " ")
        return ScenarioResult(
            success=True,
            message=f"Generated {label} scenario data",
            devices=total,
            samples_count=len(samples),
            samples=samples[:SAMPLE_PREVIEW_SIZE],
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _guard(run: Awaitable[ScenarioResult]) -> ScenarioResult:
        """Turn a missing-devices precondition into a ``success=False`` result."""
        try:
            return await run
        except MissingDevicesError as exc:
            return ScenarioResult(success=False, message=str(exc))
