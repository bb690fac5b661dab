"""Time-of-day activity patterns.

A pattern emits one set of readings for every HVAC unit, lighting circuit,
security system, charging station and forklift, shaped like a particular
period of the day.  Each device is active with a pattern-specific
probability; active and standby devices draw power from different ranges.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable

from mock_iot.catalog import DeviceCatalogAdapter
from mock_iot.errors import MissingDevicesError
from mock_iot.models import DeviceType, MetadataValue, ScenarioResult, ScenarioSample
from mock_iot.sinks.base import TelemetrySinkAdapter
from mock_iot.tasks import ProgressReporter, TaskRunner

__all__ = ["NIGHT", "WORKDAY_PEAK", "TimePatternEngine"]

logger = logging.getLogger("mock_iot.time_patterns")

SAMPLE_PREVIEW_SIZE = 10

# (data_type, value, status or None)
Reading = tuple[str, float, str | None]
ReadingFn = Callable[[random.Random], list[Reading]]


# -----------------------------------------------------------------------
# Workday peak
# -----------------------------------------------------------------------


def _workday_hvac(rng: random.Random) -> list[Reading]:
    return [
        ("power_consumption", rng.uniform(8, 12), None),
        ("temperature", rng.uniform(24, 26), None),
    ]


def _workday_charger(rng: random.Random) -> list[Reading]:
    if rng.random() < 0.85:
        return [
            ("power_consumption", rng.uniform(20, 35), "charging"),
            ("charging_current", rng.uniform(30, 50), None),
        ]
    return [("power_consumption", rng.uniform(0.5, 1.0), "standby")]


def _workday_forklift(rng: random.Random) -> list[Reading]:
    if rng.random() < 0.9:
        return [
            ("power_consumption", rng.uniform(12, 20), "operating"),
            ("speed", rng.uniform(3, 10), None),
            ("load", rng.uniform(60, 100), None),
        ]
    return [("power_consumption", rng.uniform(0.2, 0.5), "standby")]


WORKDAY_PEAK: dict[str, ReadingFn] = {
    DeviceType.HVAC: _workday_hvac,
    DeviceType.CHARGING_STATION: _workday_charger,
    DeviceType.FORKLIFT: _workday_forklift,
}


# -----------------------------------------------------------------------
# Night
# -----------------------------------------------------------------------


def _night_hvac(rng: random.Random) -> list[Reading]:
    if rng.random() < 0.2:
        return [("power_consumption", rng.uniform(2, 4), "low_power")]
    return [("power_consumption", rng.uniform(0.1, 0.3), "standby")]


def _night_lighting(rng: random.Random) -> list[Reading]:
    if rng.random() < 0.4:
        return [("power_consumption", rng.uniform(1, 2.5), "low_power")]
    return [("power_consumption", 0.0, "off")]


def _night_security(rng: random.Random) -> list[Reading]:
    return [("power_consumption", rng.uniform(2, 3), "active")]


def _night_charger(rng: random.Random) -> list[Reading]:
    # Overnight charging tapers to a low current.
    if rng.random() < 0.3:
        return [
            ("power_consumption", rng.uniform(15, 25), "charging"),
            ("charging_current", rng.uniform(10, 25), None),
        ]
    return [("power_consumption", rng.uniform(0.2, 0.5), "standby")]


NIGHT: dict[str, ReadingFn] = {
    DeviceType.HVAC: _night_hvac,
    DeviceType.LIGHTING: _night_lighting,
    DeviceType.SECURITY: _night_security,
    DeviceType.CHARGING_STATION: _night_charger,
}


def _no_progress(progress: int, message: str) -> None:
    pass


class TimePatternEngine:
    """Emits workday-peak and night activity snapshots."""

    def __init__(
        self,
        catalog: DeviceCatalogAdapter,
        sink: TelemetrySinkAdapter,
        runner: TaskRunner,
        *,
        rng: random.Random | None = None,
    ) -> None:
        self.catalog = catalog
        self.sink = sink
        self.runner = runner
        self.rng = rng or random.Random()

    async def generate_workday_peak(self) -> ScenarioResult:
        return await self._guarded("workday_peak", WORKDAY_PEAK)

    def start_workday_peak_async(self) -> str:
        return self.runner.submit("workday_peak", lambda report: self._run("workday_peak", WORKDAY_PEAK, report))

    async def generate_night_pattern(self) -> ScenarioResult:
        return await self._guarded("night", NIGHT)

    def start_night_pattern_async(self) -> str:
        return self.runner.submit("night_pattern", lambda report: self._run("night", NIGHT, report))

    async def _guarded(self, pattern: str, table: dict[str, ReadingFn]) -> ScenarioResult:
        try:
            return await self._run(pattern, table, _no_progress)
        except MissingDevicesError as exc:
            return ScenarioResult(success=False, message=str(exc))

    async def _run(self, pattern: str, table: dict[str, ReadingFn], report: ProgressReporter) -> ScenarioResult:
        by_type = await self.catalog.resolve_by_type(list(table))
        total = sum(len(devices) for devices in by_type.values())
        if total == 0:
            logger.warning("No devices found for the %s pattern", pattern)
            raise MissingDevicesError(
                f"Missing devices: none of {', '.join(table)} found",
                device_types=[str(t) for t in table],
            )

        samples: list[ScenarioSample] = []
        done = 0
        for device_type, devices in by_type.items():
            for device in devices:
                for data_type, value, status in table[device_type](self.rng):
                    tags: dict[str, MetadataValue] = {"time_pattern": pattern}
                    if status is not None:
                        tags["status"] = status
                    await self.sink.record(device.id, data_type, value, tags)
                    samples.append(
                        ScenarioSample(device_id=device.device_id or device.id, data_type=data_type, value=value)
                    )
                done += 1
            report(done * 100 // total, f"{done}/{total} devices")

        logger.info("%s pattern: %d readings from %d devices", pattern, len(samples), total)
        return ScenarioResult(
            success=True,
            message=f"Generated {pattern.replace('_', ' ')} pattern data",
            devices=total,
            samples_count=len(samples),
            samples=samples[:SAMPLE_PREVIEW_SIZE],
        )
