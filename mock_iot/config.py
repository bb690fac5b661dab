"""YAML configuration loader.

Parses YAML files with the following top-level sections::

    service:   # log level, pacing scale, RNG seed
    tasks:     # task-registry retention policy
    replay:    # CSV replay source and pacing
    devices:   # devices seeded into the in-memory catalog
    sinks:     # telemetry destinations built by the sink factory

Example:

.. code-block:: yaml

    service:
      log_level: INFO
      time_scale: 0.0      # 0 disables real-time pacing
      seed: 42

    tasks:
      max_tasks: 500
      ttl_s: 3600

    replay:
      csv_path: ./mock_data/mock_iot_storage.csv
      interval_s: 5
      devices_per_interval: 3

    devices:
      - device_id: DEV-CO2-A001
        name: Main hall CO2 sensor
      - id: em-main-1
        device_id: DEV-EM-A001
        type: energy_meter

    sinks:
      - type: console
        fmt: json
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from mock_iot.catalog import InMemoryDeviceCatalog
from mock_iot.errors import ConfigurationError
from mock_iot.models import ReplayConfig

__all__ = ["ReplaySettings", "ServiceSettings", "ServiceYAMLConfig", "TaskSettings", "load_yaml_config"]

logger = logging.getLogger("mock_iot.config")

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ServiceSettings(BaseModel):
    """The ``service:`` section."""

    log_level: str = "INFO"
    time_scale: float = Field(1.0, ge=0.0)
    seed: int | None = None

    @field_validator("log_level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        level = value.upper().strip()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")
        return level


class TaskSettings(BaseModel):
    """The ``tasks:`` section (task-registry retention)."""

    max_tasks: int | None = Field(1000, ge=1)
    ttl_s: float | None = Field(None, gt=0)


class ReplaySettings(ReplayConfig):
    """The ``replay:`` section: CSV source plus continuous-replay pacing."""

    csv_path: str | None = None

    def replay_config(self) -> ReplayConfig:
        return ReplayConfig(**self.model_dump(exclude={"csv_path"}))


class ServiceYAMLConfig(BaseModel):
    """Parsed representation of the full YAML configuration.

    Attributes:
        service: Logging, pacing and seeding.
        tasks: Registry retention policy.
        replay: CSV replay source and pacing.
        devices: Raw device dicts for :meth:`InMemoryDeviceCatalog.from_dicts`.
        sink_configs: Raw dicts passed to the sink factory.
    """

    service: ServiceSettings = Field(default_factory=ServiceSettings)
    tasks: TaskSettings = Field(default_factory=TaskSettings)
    replay: ReplaySettings = Field(default_factory=ReplaySettings)
    devices: list[dict[str, Any]] = Field(default_factory=list)
    sink_configs: list[dict[str, Any]] = Field(default_factory=list)

    def build_catalog(self) -> InMemoryDeviceCatalog:
        return InMemoryDeviceCatalog.from_dicts(self.devices)


def load_yaml_config(path: str | Path) -> ServiceYAMLConfig:
    """Load and validate a YAML configuration file.

    Raises:
        FileNotFoundError: if *path* does not exist.
        ConfigurationError: if a section is malformed.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with path.open("r") as fh:
        raw = yaml.safe_load(fh) or {}

    if not isinstance(raw, dict):
        raise ConfigurationError(f"{path}: top level must be a mapping")

    devices = raw.get("devices") or []
    for i, entry in enumerate(devices):
        if not isinstance(entry, dict) or not (entry.get("id") or entry.get("device_id")):
            raise ConfigurationError(f"{path}: devices[{i}] needs an 'id' or a 'device_id'")

    try:
        config = ServiceYAMLConfig(
            service=raw.get("service") or {},
            tasks=raw.get("tasks") or {},
            replay=raw.get("replay") or {},
            devices=devices,
            sink_configs=raw.get("sinks") or [],
        )
    except ValidationError as exc:
        raise ConfigurationError(f"{path}: {exc}") from exc

    logger.info(
        "Loaded config: %d devices, %d sinks, time_scale=%.2f",
        len(config.devices),
        len(config.sink_configs),
        config.service.time_scale,
    )
    return config
