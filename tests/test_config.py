"""Tests for mock_iot.config - YAML config loading and parsing."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from mock_iot.config import ReplaySettings, ServiceSettings, ServiceYAMLConfig, TaskSettings, load_yaml_config
from mock_iot.models import ReplayConfig
from mock_iot.errors import ConfigurationError

# -----------------------------------------------------------------------
# Models
# -----------------------------------------------------------------------


class TestServiceYAMLConfig:
    """Section defaults and validation."""

    def test_defaults(self) -> None:
        cfg = ServiceYAMLConfig()
        assert cfg.service.log_level == "INFO"
        assert cfg.service.time_scale == 1.0
        assert cfg.service.seed is None
        assert cfg.tasks.max_tasks == 1000
        assert cfg.tasks.ttl_s is None
        assert cfg.devices == []
        assert cfg.sink_configs == []

    def test_log_level_normalised(self) -> None:
        assert ServiceSettings(log_level=" debug ").log_level == "DEBUG"

    def test_bad_log_level(self) -> None:
        with pytest.raises(ValidationError):
            ServiceSettings(log_level="LOUD")

    def test_negative_time_scale_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ServiceSettings(time_scale=-1)

    def test_task_bounds(self) -> None:
        with pytest.raises(ValidationError):
            TaskSettings(max_tasks=0)
        with pytest.raises(ValidationError):
            TaskSettings(ttl_s=0)

    def test_replay_defaults(self) -> None:
        cfg = ServiceYAMLConfig()
        assert cfg.replay == ReplaySettings()
        assert cfg.replay.csv_path is None
        assert cfg.replay.replay_config() == ReplayConfig()
        with pytest.raises(ValidationError):
            ReplaySettings(interval_s=0)

    def test_build_catalog(self) -> None:
        cfg = ServiceYAMLConfig(devices=[{"device_id": "DEV-GATE-A001"}, {"id": "x1", "type": "camera"}])
        catalog = cfg.build_catalog()
        assert [d.type for d in catalog.devices] == ["gate", "camera"]


# -----------------------------------------------------------------------
# load_yaml_config
# -----------------------------------------------------------------------


class TestLoadYAMLConfig:
    """load_yaml_config() parsing from temporary YAML files."""

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_yaml_config(tmp_path / "nonexistent.yaml")

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "empty.yaml"
        cfg_file.write_text("")
        cfg = load_yaml_config(cfg_file)
        assert cfg == ServiceYAMLConfig()

    def test_full_config(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "mock-iot.yaml"
        cfg_file.write_text("""\
service:
  log_level: debug
  time_scale: 0
  seed: 42
tasks:
  max_tasks: 10
  ttl_s: 60
devices:
  - device_id: DEV-CO2-A001
    name: Hall sensor
  - id: em-main-1
    device_id: DEV-EM-A001
sinks:
  - type: console
    fmt: json
  - type: memory
""")
        cfg = load_yaml_config(cfg_file)
        assert cfg.service.log_level == "DEBUG"
        assert cfg.service.time_scale == 0.0
        assert cfg.service.seed == 42
        assert cfg.tasks.max_tasks == 10
        assert cfg.tasks.ttl_s == 60
        assert len(cfg.devices) == 2
        assert [s["type"] for s in cfg.sink_configs] == ["console", "memory"]

        catalog = cfg.build_catalog()
        assert [d.type for d in catalog.devices] == ["carbon_sensor", "energy_meter"]
        assert catalog.devices[1].id == "em-main-1"

    def test_top_level_list_rejected(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "bad.yaml"
        cfg_file.write_text("- just\n- a list\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_yaml_config(cfg_file)

    def test_device_without_identifier_rejected(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "bad.yaml"
        cfg_file.write_text("devices:\n  - name: Nameless\n")
        with pytest.raises(ConfigurationError, match=r"devices\[0\]"):
            load_yaml_config(cfg_file)

    def test_invalid_section_value(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "bad.yaml"
        cfg_file.write_text("service:\n  time_scale: -2\n")
        with pytest.raises(ConfigurationError):
            load_yaml_config(cfg_file)

    def test_replay_section(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "replay.yaml"
        cfg_file.write_text("""\
replay:
  csv_path: ./mock_data/readings.csv
  interval_s: 0.5
  devices_per_interval: 10
  randomize: false
""")
        cfg = load_yaml_config(cfg_file)
        assert cfg.replay.csv_path == "./mock_data/readings.csv"
        assert cfg.replay.replay_config() == ReplayConfig(interval_s=0.5, devices_per_interval=10, randomize=False)

    def test_replay_bounds(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "bad.yaml"
        cfg_file.write_text("replay:\n  devices_per_interval: 0\n")
        with pytest.raises(ConfigurationError):
            load_yaml_config(cfg_file)
