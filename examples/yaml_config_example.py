#!/usr/bin/env python3
"""YAML config-driven example -- load devices, sinks, pacing and task
retention from a YAML file, run a time series and a loading scenario, then
replay a few recorded CSV rows.

Directly runnable (uses Console + File sinks only).

Usage::

    python examples/yaml_config_example.py

Equivalent CLI::

    mock-iot timeseries --config examples/configs/mock_iot_config.yaml --days 1
    mock-iot scenario loading --config examples/configs/mock_iot_config.yaml --duration 30
    mock-iot replay --config examples/configs/mock_iot_config.yaml --count 5 --interval 0.2
"""

from __future__ import annotations

import logging
from pathlib import Path


def main() -> None:
    print("=== YAML Config-Driven Example ===\n")

    config_path = Path(__file__).parent / "configs" / "mock_iot_config.yaml"
    if not config_path.exists():
        print(f"  Config file not found: {config_path}")
        return

    from mock_iot.config import load_yaml_config

    cfg = load_yaml_config(config_path)

    logging.basicConfig(
        level=getattr(logging, cfg.service.log_level, logging.INFO),
        format="%(asctime)s %(name)-30s %(levelname)-7s %(message)s",
        datefmt="%H:%M:%S",
    )

    print(f"  Config file:  {config_path}")
    print(f"  Devices:      {len(cfg.devices)}")
    print(f"  Time scale:   {cfg.service.time_scale}")
    for i, sc in enumerate(cfg.sink_configs, 1):
        print(f"    Sink {i}: type={sc.get('type')}")
    print()

    from mock_iot.simulator import Simulator

    sim = Simulator.from_config(cfg)
    sim.load_replay_data(Path(__file__).parent / "configs" / "replay_sample.csv")

    async def session():
        series = await sim.generate_carbon_time_series(days=1, interval=120)
        loading = await sim.run_scenario("loading", duration=30, interval=10)
        replay = await sim.publish_replay(count=5, interval_s=0.2)
        return series, loading, replay

    series, loading, replay = sim.run(session())
    print(f"\n  {series.message}")
    print(f"  {loading.message} ({loading.samples_count} readings)")
    print(f"  {replay.message} ({replay.skipped} skipped)")


if __name__ == "__main__":
    main()
