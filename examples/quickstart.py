#!/usr/bin/env python3
"""Quick start -- generate a carbon time series and run two scenarios against
a demo device catalog.

Directly runnable (no external services required).

Usage::

    python examples/quickstart.py

Equivalent CLI::

    mock-iot timeseries --demo --days 1 --interval 60 --sink memory
    mock-iot scenario vehicle_entry --demo --count 3 --time-scale 0
"""

from __future__ import annotations

import logging
from collections import Counter


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)-30s %(levelname)-7s %(message)s",
        datefmt="%H:%M:%S",
    )

    from mock_iot import InMemoryDeviceCatalog, Simulator
    from mock_iot.sinks import MemorySink

    print("=== Quick start ===\n")

    sink = MemorySink()
    # time_scale=0 skips the real-time pauses of the scenarios.
    sim = Simulator(catalog=InMemoryDeviceCatalog.demo(), sink=sink, time_scale=0, seed=42)

    async def session():
        series = await sim.generate_carbon_time_series(days=1, interval=60, trend=0.2)
        peak = await sim.run_scenario("carbon_peak")
        trucks = await sim.run_scenario("vehicle_entry", count=3)
        return series, peak, trucks

    series, peak, trucks = sim.run(session())

    print(f"\n  Time series:  {series.message}")
    for sample in series.time_series[:3]:
        c = sample.components
        print(
            f"    {sample.timestamp:%Y-%m-%d %H:%M} {sample.device_id:<14} {sample.value:8.2f}"
            f"  (trend {c.trend:+.2f}, seasonal {c.seasonal:+.2f}, noise {c.noise:+.2f})"
        )
    print(f"  Carbon peak:  {peak.message} ({peak.samples_count} readings)")
    print(f"  Vehicles:     {', '.join(v.vehicle_id for v in trucks.vehicles)}")

    print("\n  Records per data type:")
    for data_type, n in Counter(r.data_type for r in sink.records).most_common():
        print(f"    {data_type:<28} {n}")


if __name__ == "__main__":
    main()
