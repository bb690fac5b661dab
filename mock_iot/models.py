"""Common data models for the mock IoT generator.

Defines the device and telemetry shapes every component exchanges, the
immutable :class:`GenerationConfig` that describes a time-series run, the
task record tracked by the registry, and the summary results returned to
callers.
"""

from __future__ import annotations

import math
import uuid
from datetime import datetime, timedelta, timezone
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from mock_iot.errors import ConfigurationError

__all__ = [
    "MAX_DAYS",
    "MAX_INTERVAL_MINUTES",
    "MIN_DAYS",
    "MIN_INTERVAL_MINUTES",
    "DeviceHandle",
    "DeviceType",
    "GenerationConfig",
    "GenerationResult",
    "GenerationTask",
    "MetadataValue",
    "PredictionResult",
    "PredictionRow",
    "ReplayConfig",
    "ReplayControlResult",
    "ReplayPublishResult",
    "ReplayStatus",
    "SampleComponents",
    "ScenarioResult",
    "ScenarioSample",
    "SyntheticSample",
    "TaskSnapshot",
    "TaskStatus",
    "TelemetryRecord",
    "TimeRange",
    "VehicleEntry",
    "utcnow",
]

MIN_DAYS = 1
MAX_DAYS = 365
MIN_INTERVAL_MINUTES = 1
MAX_INTERVAL_MINUTES = 1440

# Closed set of scalar types allowed in telemetry metadata bags.
MetadataValue = str | int | float | bool | datetime


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class DeviceType(StrEnum):
    """Device type tags understood by the device registry."""

    TRUCK = "truck"
    FORKLIFT = "forklift"
    PACKAGING = "packaging"
    STORAGE = "storage"
    CONVEYOR = "conveyor"
    CRANE = "crane"
    WAREHOUSE = "warehouse"
    TERMINAL = "terminal"
    REFRIGERATION = "refrigeration"
    HVAC = "hvac"
    LIGHTING = "lighting"
    SECURITY = "security"
    CHARGING_STATION = "charging_station"
    GATE = "gate"
    WEIGHT_SCALE = "weight_scale"
    CAMERA = "camera"
    LOADER = "loader"
    CARBON_SENSOR = "carbon_sensor"
    ENERGY_METER = "energy_meter"
    AIR_QUALITY_MONITOR = "air_quality_monitor"
    EMISSIONS_ANALYZER = "emissions_analyzer"
    SOLAR_PANEL = "solar_panel"
    SMART_GRID = "smart_grid"
    OTHER = "other"


class DeviceHandle(BaseModel):
    """Read-only view of a device held by the external registry.

    Attributes:
        id: Registry primary key; telemetry is written against this id.
        device_id: Human-facing device code, e.g. ``"DEV-FLT-A001"``.
        name: Display name.
        type: Device type tag (a :class:`DeviceType` value or a free string).
    """

    model_config = ConfigDict(frozen=True)

    id: str
    device_id: str = ""
    name: str = ""
    type: str = DeviceType.OTHER.value


class TelemetryRecord(BaseModel):
    """A single telemetry write handed to a sink.

    Attributes:
        record_id: Identifier returned to the caller as the record handle.
        device_id: Registry id of the device the value belongs to.
        data_type: Measurement kind, e.g. ``"power_consumption"``.
        value: The measured (synthetic) value.
        metadata: Free-form diagnostic tags (scenario label, components, ...).
        created_at: When the record was built.
    """

    record_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    device_id: str
    data_type: str
    value: float
    metadata: dict[str, MetadataValue] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Return a plain ``dict`` representation (JSON-safe types)."""
        return self.model_dump(mode="json")

    def to_json(self) -> str:
        """Return a compact JSON string."""
        return self.model_dump_json()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TelemetryRecord:
        """Construct a ``TelemetryRecord`` from a plain dict."""
        return cls.model_validate(data)


# -----------------------------------------------------------------------
# Synthetic samples
# -----------------------------------------------------------------------


class SampleComponents(BaseModel):
    """Additive breakdown of one synthetic value, kept for diagnostics."""

    base: float
    trend: float = 0.0
    seasonal: float = 0.0
    noise: float = 0.0
    outlier: float = 0.0
    is_outlier: bool = False

    @property
    def value(self) -> float:
        """Sum of the components, floored at zero."""
        return max(0.0, self.base + self.trend + self.seasonal + self.noise + self.outlier)


class SyntheticSample(BaseModel):
    """One emitted telemetry point together with its component breakdown."""

    device_id: str
    data_type: str
    value: float
    timestamp: datetime
    components: SampleComponents


class GenerationConfig(BaseModel):
    """Immutable description of a time-series run.

    Attributes:
        start: First sample timestamp.
        end: End of the window (exclusive upper bound for samples).
        interval_minutes: Sampling interval.
        trend: Linear ramp strength across the run, ``[-0.5, 0.5]``.
        seasonality: Hour/day/month cycle strength, ``[0, 1]``.
        noise: Uniform noise strength, ``[0, 1]``.
        outlier_rate: Probability that a point carries an outlier, ``[0, 0.1]``.
        device_ids: Explicit devices to target; empty means "by type".
    """

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    interval_minutes: int = Field(60, ge=MIN_INTERVAL_MINUTES, le=MAX_INTERVAL_MINUTES)
    trend: float = Field(0.1, ge=-0.5, le=0.5)
    seasonality: float = Field(0.5, ge=0.0, le=1.0)
    noise: float = Field(0.2, ge=0.0, le=1.0)
    outlier_rate: float = Field(0.02, ge=0.0, le=0.1)
    device_ids: tuple[str, ...] = ()

    @model_validator(mode="after")
    def _check_window(self) -> GenerationConfig:
        if (self.start.tzinfo is None) != (self.end.tzinfo is None):
            raise ValueError("start and end must both be timezone-aware or both naive")
        if self.end < self.start:
            raise ValueError("end must not be earlier than start")
        return self

    @classmethod
    def from_window(
        cls,
        days: int,
        interval: int,
        *,
        trend: float | None = None,
        seasonality: float | None = None,
        noise: float | None = None,
        outlier_rate: float | None = None,
        device_ids: list[str] | tuple[str, ...] = (),
        end: datetime | None = None,
    ) -> GenerationConfig:
        """Build a config covering the last *days* days up to *end*.

        Raises:
            ConfigurationError: if any parameter is outside its bounds.
        """
        if not MIN_DAYS <= days <= MAX_DAYS:
            raise ConfigurationError(f"days must be between {MIN_DAYS} and {MAX_DAYS}, got {days}")
        end = end or utcnow()
        overrides = {
            key: value
            for key, value in (
                ("trend", trend),
                ("seasonality", seasonality),
                ("noise", noise),
                ("outlier_rate", outlier_rate),
            )
            if value is not None
        }
        try:
            return cls(
                start=end - timedelta(days=days),
                end=end,
                interval_minutes=interval,
                device_ids=tuple(device_ids),
                **overrides,
            )
        except ValidationError as exc:
            details = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())
            raise ConfigurationError(f"invalid generation parameters: {details}") from exc

    @property
    def total_minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60

    @property
    def total_points(self) -> int:
        """Number of samples generated per device."""
        return math.ceil(self.total_minutes / self.interval_minutes)

    def timestamps(self) -> list[datetime]:
        """Sample timestamps in ascending order."""
        step = timedelta(minutes=self.interval_minutes)
        return [self.start + i * step for i in range(self.total_points)]


# -----------------------------------------------------------------------
# Tasks
# -----------------------------------------------------------------------


class TaskStatus(StrEnum):
    """Lifecycle states of a background generation task."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


class GenerationTask(BaseModel):
    """Mutable task record owned by the :class:`~mock_iot.tasks.TaskRegistry`."""

    task_id: str
    kind: str
    status: TaskStatus = TaskStatus.PENDING
    progress: int = 0
    message: str = ""
    result: dict[str, Any] | None = None
    error: str | None = None
    start_time: datetime = Field(default_factory=utcnow)
    end_time: datetime | None = None


class TaskSnapshot(GenerationTask):
    """Frozen copy of a task handed out to status pollers."""

    model_config = ConfigDict(frozen=True)


# -----------------------------------------------------------------------
# Results
# -----------------------------------------------------------------------


class GenerationResult(BaseModel):
    """Summary of a time-series run."""

    success: bool
    message: str
    count: int = 0
    time_series: list[SyntheticSample] = Field(default_factory=list)
    devices: list[DeviceHandle] = Field(default_factory=list)


class PredictionRow(BaseModel):
    """One row of the prediction dataset: the emission and its drivers."""

    timestamp: datetime
    carbon_emission: float
    temperature: float
    humidity: float
    occupancy: float
    traffic: int
    production: float


class TimeRange(BaseModel):
    start: datetime
    end: datetime
    interval_minutes: int


class PredictionResult(BaseModel):
    """Summary of a prediction-dataset run."""

    success: bool
    message: str
    dataset: list[PredictionRow] = Field(default_factory=list)
    total_points: int = 0
    time_range: TimeRange | None = None
    target_device: DeviceHandle | None = None


class ScenarioSample(BaseModel):
    device_id: str
    data_type: str
    value: float


class VehicleEntry(BaseModel):
    vehicle_id: str
    entry_time: datetime
    gate_id: str
    weight: float


class ScenarioResult(BaseModel):
    """Summary of a scenario or time-pattern run."""

    success: bool
    message: str
    devices: int = 0
    samples_count: int = 0
    samples: list[ScenarioSample] = Field(default_factory=list)
    vehicles: list[VehicleEntry] = Field(default_factory=list)


# -----------------------------------------------------------------------
# Replay
# -----------------------------------------------------------------------


class ReplayConfig(BaseModel):
    """How a running replay picks and paces CSV rows.

    Attributes:
        interval_s: Wall-clock seconds between two batches.
        devices_per_interval: Rows published per batch.
        randomize: Pick rows at random; otherwise walk the file in order.
    """

    model_config = ConfigDict(frozen=True)

    interval_s: float = Field(5.0, gt=0)
    devices_per_interval: int = Field(3, ge=1)
    randomize: bool = True


class ReplayStatus(BaseModel):
    active: bool
    config: ReplayConfig
    total_items: int
    file_path: str | None = None
    batches_sent: int = 0
    published: int = 0
    skipped: int = 0


class ReplayControlResult(BaseModel):
    """Outcome of starting or stopping a replay."""

    status: str
    message: str
    config: ReplayConfig | None = None


class ReplayPublishResult(BaseModel):
    success: bool
    message: str
    count: int = 0
    published: int = 0
    skipped: int = 0
