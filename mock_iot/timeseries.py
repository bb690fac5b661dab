"""Long-horizon time-series generation.

Two runs are supported:

* **carbon time series** - ``total_points`` interval-spaced samples per
  carbon-related device (sensors, energy meters, air-quality monitors and
  emissions analyzers), each persisted through the sink adapter.
* **prediction dataset** - one emission value per point for the first carbon
  sensor, derived from calendar-driven drivers (temperature, occupancy,
  traffic, ...), plus correlated ``power_consumption`` writes to up to three
  energy meters.

Each run is available as a coroutine that returns the full result and as a
``start_*_async`` method that submits the same body to the task runner.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Sequence
from datetime import datetime

from mock_iot.catalog import DeviceCatalogAdapter
from mock_iot.errors import MissingDevicesError
from mock_iot.models import (
    DeviceHandle,
    DeviceType,
    GenerationConfig,
    GenerationResult,
    PredictionResult,
    PredictionRow,
    SyntheticSample,
    TimeRange,
)
from mock_iot.sinks.base import TelemetrySinkAdapter
from mock_iot.tasks import ProgressReporter, TaskRunner
from mock_iot.values import (
    base_value_for,
    compute_components,
    data_type_for,
    emission_from_factors,
    prediction_factors,
)

__all__ = ["CARBON_DEVICE_TYPES", "TimeSeriesEngine"]

logger = logging.getLogger("mock_iot.timeseries")

CARBON_DEVICE_TYPES: tuple[str, ...] = (
    DeviceType.CARBON_SENSOR,
    DeviceType.ENERGY_METER,
    DeviceType.AIR_QUALITY_MONITOR,
    DeviceType.EMISSIONS_ANALYZER,
)

SAMPLE_PREVIEW_SIZE = 10
DATASET_PREVIEW_SIZE = 100
PROGRESS_EVERY = 100
PROGRESS_CAP = 95
MAX_CORRELATED_METERS = 3


def _no_progress(progress: int, message: str) -> None:
    """Reporter used by the blocking entry points."""


class TimeSeriesEngine:
    """Generates and persists interval-sampled synthetic datasets.

    Parameters:
        catalog: Resolves the devices a run targets.
        sink: Destination for every generated point.
        runner: Executes the ``start_*_async`` variants in the background.
        rng: Random source (seed it for reproducible runs).
    """

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

    # ------------------------------------------------------------------
    # Carbon time series
    # ------------------------------------------------------------------

    async def generate_carbon_time_series(self, config: GenerationConfig) -> GenerationResult:
        """Generate the full series and return once every point is written.

        An empty device set is reported as ``success=False``.
        """
        try:
            return await self._run_carbon_time_series(config, _no_progress)
        except MissingDevicesError as exc:
            return GenerationResult(success=False, message=str(exc))

    def start_carbon_time_series_async(self, config: GenerationConfig) -> str:
        """Submit the series as a background task and return its id."""
        return self.runner.submit(
            "carbon_time_series",
            lambda report: self._run_carbon_time_series(config, report),
        )

    async def _run_carbon_time_series(
        self, config: GenerationConfig, report: ProgressReporter
    ) -> GenerationResult:
        devices = await self.catalog.resolve_for(config, CARBON_DEVICE_TYPES)
        if not devices:
            logger.warning("No carbon-related devices found - cannot generate a time series")
            raise MissingDevicesError(
                "No carbon-related devices found; create some devices first",
                device_types=list(CARBON_DEVICE_TYPES),
            )

        timestamps = config.timestamps()
        total_points = len(timestamps)
        total = total_points * len(devices)
        logger.info("Generating %d points for %d devices (%d records)", total_points, len(devices), total)
        report(0, f"Generating {total} records for {len(devices)} devices")

        preview: list[SyntheticSample] = []
        created = 0
        for n, device in enumerate(devices, start=1):
            base = base_value_for(device.type)
            data_type = data_type_for(device.type)

            for i, ts in enumerate(timestamps):
                components = compute_components(base, ts, i, total_points, config, self.rng)
                value = components.value
                await self.sink.record(
                    device.id,
                    data_type,
                    value,
                    {
                        "generated": True,
                        "date_time": ts.isoformat(),
                        "trend": components.trend,
                        "seasonality": components.seasonal,
                        "noise": components.noise,
                        "is_outlier": components.is_outlier,
                    },
                )
                if len(preview) < SAMPLE_PREVIEW_SIZE:
                    preview.append(
                        SyntheticSample(
                            device_id=device.device_id or device.id,
                            data_type=data_type,
                            value=value,
                            timestamp=ts,
                            components=components,
                        )
                    )

                created += 1
                if created % PROGRESS_EVERY == 0:
                    progress = min(PROGRESS_CAP, created * 100 // total)
                    report(progress, f"Processed {created}/{total} records ({progress}%)")
                    # Let status pollers on the same loop run.
                    await asyncio.sleep(0)

            logger.info("Finished device %d/%d (%s)", n, len(devices), device.device_id or device.id)

        logger.info("Carbon time series complete: %d records", created)
        return GenerationResult(
            success=True,
            message=f"Generated {created} carbon time-series records",
            count=created,
            time_series=preview,
            devices=list(devices),
        )

    # ------------------------------------------------------------------
    # Prediction dataset
    # ------------------------------------------------------------------

    async def generate_prediction_dataset(
        self, days: int = 90, interval: int = 60, *, end: datetime | None = None
    ) -> PredictionResult:
        """Generate a prediction dataset covering the last *days* days.

        Raises:
            ConfigurationError: if *days* or *interval* is out of bounds.
        """
        config = GenerationConfig.from_window(days, interval, end=end)
        try:
            return await self._run_prediction_dataset(config, _no_progress)
        except MissingDevicesError as exc:
            return PredictionResult(success=False, message=str(exc))

    def start_prediction_dataset_async(self, days: int = 90, interval: int = 60, *, end: datetime | None = None) -> str:
        config = GenerationConfig.from_window(days, interval, end=end)
        return self.runner.submit(
            "prediction_dataset",
            lambda report: self._run_prediction_dataset(config, report),
        )

    async def _run_prediction_dataset(
        self, config: GenerationConfig, report: ProgressReporter
    ) -> PredictionResult:
        sensors = await self.catalog.resolve([DeviceType.CARBON_SENSOR])
        if not sensors:
            logger.warning("No carbon sensor found - cannot generate a prediction dataset")
            raise MissingDevicesError(
                "No carbon sensor found; cannot generate a prediction dataset",
                device_types=[DeviceType.CARBON_SENSOR.value],
            )
        target = sensors[0]
        meters = (await self.catalog.resolve([DeviceType.ENERGY_METER]))[:MAX_CORRELATED_METERS]

        timestamps = config.timestamps()
        total_points = len(timestamps)
        logger.info(
            "Generating %d prediction points for %s (%d correlated meters)",
            total_points,
            target.device_id or target.id,
            len(meters),
        )
        report(0, f"Generating {total_points} prediction points")

        rows: list[PredictionRow] = []
        for i, ts in enumerate(timestamps):
            factors = prediction_factors(ts, i, self.rng)
            emission = emission_from_factors(factors, self.rng)
            stamp = ts.isoformat()

            await self.sink.record(
                target.id,
                "carbon_emission",
                emission,
                {
                    "generated": True,
                    "prediction_dataset": True,
                    "date_time": stamp,
                    "temperature": factors.temperature,
                    "humidity": factors.humidity,
                    "occupancy": factors.occupancy,
                    "traffic": factors.traffic,
                    "production": factors.production,
                },
            )
            await self._write_correlated_meters(meters, emission, stamp)

            if len(rows) < DATASET_PREVIEW_SIZE:
                rows.append(PredictionRow(timestamp=ts, carbon_emission=emission, **factors.model_dump()))

            done = i + 1
            if done % PROGRESS_EVERY == 0:
                progress = min(PROGRESS_CAP, done * 100 // total_points)
                report(progress, f"Generated {done}/{total_points} prediction points ({progress}%)")
                await asyncio.sleep(0)

        logger.info("Prediction dataset complete: %d points", total_points)
        return PredictionResult(
            success=True,
            message=f"Generated carbon prediction dataset with {total_points} points",
            dataset=rows,
            total_points=total_points,
            time_range=TimeRange(start=config.start, end=config.end, interval_minutes=config.interval_minutes),
            target_device=target,
        )

    async def _write_correlated_meters(self, meters: Sequence[DeviceHandle], emission: float, stamp: str) -> None:
        for meter in meters:
            # Main meters draw more than sub-meters.
            weight = 1.2 if "main" in meter.id else 0.9
            consumption = emission * self.rng.uniform(0.7, 1.3) * weight
            await self.sink.record(
                meter.id,
                "power_consumption",
                consumption,
                {"generated": True, "prediction_dataset": True, "date_time": stamp},
            )
