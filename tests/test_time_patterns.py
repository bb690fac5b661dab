"""Tests for mock_iot.time_patterns - workday-peak and night activity."""

from __future__ import annotations

import random

import pytest

from mock_iot.catalog import DeviceCatalogAdapter, InMemoryDeviceCatalog
from mock_iot.models import DeviceType, TaskStatus
from mock_iot.sinks.base import TelemetrySinkAdapter
from mock_iot.sinks.memory import MemorySink
from mock_iot.tasks import TaskRunner
from mock_iot.time_patterns import NIGHT, WORKDAY_PEAK, TimePatternEngine


def _engine(*device_types: str, seed: int = 5) -> tuple[TimePatternEngine, MemorySink]:
    catalog = InMemoryDeviceCatalog()
    for device_type in device_types:
        catalog.add_device(device_type)
    sink = MemorySink()
    engine = TimePatternEngine(
        DeviceCatalogAdapter(catalog),
        TelemetrySinkAdapter(sink),
        TaskRunner(),
        rng=random.Random(seed),
    )
    return engine, sink


# -----------------------------------------------------------------------
# Reading tables
# -----------------------------------------------------------------------


class TestReadingTables:
    def test_covered_device_types(self) -> None:
        assert set(WORKDAY_PEAK) == {"hvac", "charging_station", "forklift"}
        assert set(NIGHT) == {"hvac", "lighting", "security", "charging_station"}

    @pytest.mark.parametrize("table", [WORKDAY_PEAK, NIGHT])
    def test_every_reading_has_power(self, table: dict) -> None:
        rng = random.Random(1)
        for fn in table.values():
            for _ in range(50):
                readings = fn(rng)
                assert readings[0][0] == "power_consumption"
                assert all(value >= 0 for _, value, _ in readings)

    def test_night_lighting_off_or_low(self) -> None:
        rng = random.Random(2)
        statuses = {NIGHT[DeviceType.LIGHTING](rng)[0][2] for _ in range(100)}
        assert statuses == {"off", "low_power"}


# -----------------------------------------------------------------------
# Engine
# -----------------------------------------------------------------------


class TestWorkdayPeak:
    @pytest.mark.asyncio
    async def test_every_device_reports(self) -> None:
        engine, sink = _engine(DeviceType.HVAC, DeviceType.HVAC, DeviceType.FORKLIFT, DeviceType.LIGHTING)
        result = await engine.generate_workday_peak()
        assert result.success
        assert result.devices == 3
        assert {r.device_id for r in sink.records} == {
            d.id for d in engine.catalog.catalog.devices if d.type != DeviceType.LIGHTING
        }
        assert all(r.metadata["time_pattern"] == "workday_peak" for r in sink.records)
        assert result.samples_count == len(sink.records)

    @pytest.mark.asyncio
    async def test_hvac_readings(self) -> None:
        engine, sink = _engine(DeviceType.HVAC)
        await engine.generate_workday_peak()
        power, temperature = sink.records
        assert 8 <= power.value <= 12
        assert 24 <= temperature.value <= 26
        assert "status" not in power.metadata

    @pytest.mark.asyncio
    async def test_missing_devices(self) -> None:
        engine, sink = _engine(DeviceType.SECURITY)
        result = await engine.generate_workday_peak()
        assert not result.success
        assert "Missing devices" in result.message
        assert sink.records == []

    @pytest.mark.asyncio
    async def test_async_variant(self) -> None:
        engine, _ = _engine(DeviceType.CHARGING_STATION)
        snap = await engine.runner.wait(engine.start_workday_peak_async())
        assert snap.kind == "workday_peak"
        assert snap.status is TaskStatus.COMPLETED
        assert snap.progress == 100


class TestNightPattern:
    @pytest.mark.asyncio
    async def test_security_always_active(self) -> None:
        engine, sink = _engine(DeviceType.SECURITY, DeviceType.SECURITY)
        result = await engine.generate_night_pattern()
        assert result.success
        assert len(sink.records) == 2
        for rec in sink.records:
            assert rec.metadata == {"time_pattern": "night", "status": "active"}
            assert 2 <= rec.value <= 3

    @pytest.mark.asyncio
    async def test_forklifts_not_part_of_night(self) -> None:
        engine, sink = _engine(DeviceType.FORKLIFT)
        result = await engine.generate_night_pattern()
        assert not result.success
        assert sink.records == []

    @pytest.mark.asyncio
    async def test_async_without_devices_fails(self) -> None:
        engine, sink = _engine()
        snap = await engine.runner.wait(engine.start_night_pattern_async())
        assert snap.kind == "night_pattern"
        assert snap.status is TaskStatus.FAILED
        assert snap.error
        assert sink.records == []
